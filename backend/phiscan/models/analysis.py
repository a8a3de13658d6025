"""Core analysis data model: proportions in, critique out."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, computed_field

# Score at or above which a proportion counts as golden-tier.
GOLDEN_TIER_SCORE = 90
# |variance| in percent beyond which a proportion is flagged as drifting from phi.
DRIFT_VARIANCE_PCT = 10.0

# Leading decimal number of a form field; trailing unit text such as "cm" is ignored.
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class Dimensions:
    """A (height, width) measurement pair; either side may be absent until resolved."""

    height: float | None = None
    width: float | None = None

    @classmethod
    def parse(cls, height: float | str | None = None, width: float | str | None = None) -> Dimensions:
        """Build from numbers or form-field text. Blank text means absent.

        Text is read by its leading number, so "190cm" is 190.0.

        Raises:
            ValueError: if a text value has no leading number.
        """
        return cls(height=_coerce(height, "height"), width=_coerce(width, "width"))

    def resolve(self, pixel_height: float | None, pixel_width: float | None) -> Dimensions:
        """Fill absent sides from the image's pixel extents."""
        return Dimensions(
            height=self.height if self.height is not None else pixel_height,
            width=self.width if self.width is not None else pixel_width,
        )

    @property
    def complete(self) -> bool:
        return self.height is not None and self.width is not None


def _coerce(value: float | str | None, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        match = _LEADING_NUMBER.match(value)
        if match is None:
            raise ValueError(f"{name} must start with a number, got {value!r}")
        return float(match.group())
    return float(value)


@dataclass(frozen=True)
class EncodedPayload:
    """Raw encoded image bytes ready for inline transport (no data-URI framing)."""

    data: bytes
    mime_type: str
    width: int
    height: int

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class ProportionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ratio: float
    variance: float  # signed percent deviation from phi
    score: int  # 0-100
    target: float

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_golden(self) -> bool:
        return self.score >= GOLDEN_TIER_SCORE

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_drifting(self) -> bool:
        return abs(self.variance) > DRIFT_VARIANCE_PCT


class CritiqueReport(BaseModel):
    """Four-part structured design critique. Fields must be strings, nothing else."""

    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    composition: str
    geometry: str
    styling: str
    verdict: str

    @classmethod
    def fallback(cls) -> CritiqueReport:
        """Degraded report used when every critique attempt failed."""
        return cls(
            composition="Audit synthesis interrupted by network variance. Please try again.",
            geometry="Proportional data stream inconsistent.",
            styling="Aesthetic details could not be resolved.",
            verdict="Audit Incomplete",
        )
