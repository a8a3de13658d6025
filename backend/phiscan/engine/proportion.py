"""Golden-ratio proportion analysis.

Pure and total: degenerate input, including magnitudes whose ratio overflows,
yields a maximal-penalty sentinel instead of raising.
"""

from __future__ import annotations

import math

from phiscan.models.analysis import ProportionResult

GOLDEN_RATIO = 1.61803398875
TARGET = round(GOLDEN_RATIO, 3)

# Score points lost per percent of deviation from phi.
_PENALTY_PER_PCT = 2
_RATIO_PLACES = 3
_VARIANCE_PLACES = 2

_SENTINEL = ProportionResult(ratio=0, variance=100, score=0, target=TARGET)


def _usable(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        value = float(value)
    except OverflowError:
        return False
    return math.isfinite(value) and value > 0


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def analyze(a: float | None, b: float | None) -> ProportionResult:
    """Score how closely the ratio of two magnitudes approaches phi.

    The ratio is always taken larger-over-smaller, so argument order does not
    matter. Variance is signed: positive when the ratio overshoots phi.
    """
    if not (_usable(a) and _usable(b)):
        return _SENTINEL

    ratio = max(a, b) / min(a, b)
    variance = (ratio - GOLDEN_RATIO) / GOLDEN_RATIO * 100
    if not math.isfinite(variance):
        return _SENTINEL
    score = max(0, min(100, _round_half_up(100 - abs(variance) * _PENALTY_PER_PCT)))

    return ProportionResult(
        ratio=round(ratio, _RATIO_PLACES),
        variance=round(variance, _VARIANCE_PLACES),
        score=score,
        target=TARGET,
    )
