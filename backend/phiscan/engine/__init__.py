"""PhiScan analysis engine."""

from phiscan.engine.image_prep import MAX_WIDTH, measure, prepare
from phiscan.engine.proportion import GOLDEN_RATIO, analyze
from phiscan.engine.workflow import WorkflowController

__all__ = [
    "MAX_WIDTH",
    "measure",
    "prepare",
    "GOLDEN_RATIO",
    "analyze",
    "WorkflowController",
]
