"""Session aggregate for the scan workflow.

SessionState is immutable; the controller replaces it wholesale on every
transition. __post_init__ rejects phase/field combinations that cannot occur.
"""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass, field

from phiscan.errors import WorkflowStateError
from phiscan.models.analysis import CritiqueReport, Dimensions, ProportionResult


class Phase(str, enum.Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    SCANNING = "scanning"
    COMPLETE = "complete"


class ImageHandle:
    """The single live reference to the bytes backing the selected image.

    Must be released when superseded or on reset.
    """

    def __init__(self, data: bytes, content_type: str, filename: str = "") -> None:
        self.content_type = content_type
        self.filename = filename
        self.size_bytes = len(data)
        self._buffer: io.BytesIO | None = io.BytesIO(data)

    @property
    def released(self) -> bool:
        return self._buffer is None

    def read(self) -> bytes:
        if self._buffer is None:
            raise WorkflowStateError(f"image {self.filename!r} was already released")
        return self._buffer.getvalue()

    def release(self) -> None:
        if self._buffer is not None:
            self._buffer.close()
            self._buffer = None

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size_bytes} bytes"
        return f"ImageHandle({self.filename!r}, {self.content_type}, {state})"


@dataclass(frozen=True)
class SessionState:
    phase: Phase = Phase.EMPTY
    image: ImageHandle | None = None
    dimensions: Dimensions = field(default_factory=Dimensions)
    proportions: ProportionResult | None = None
    critique: CritiqueReport | None = None
    error: str | None = None
    # True while a critique request sequence is in flight
    analyzing: bool = False
    progress: int = 0
    generation: int = 0

    def __post_init__(self) -> None:
        if self.phase is Phase.EMPTY:
            if self.image is not None or self.proportions is not None or self.critique is not None:
                raise WorkflowStateError("empty session cannot hold an image or results")
            return
        if self.image is None:
            raise WorkflowStateError(f"{self.phase.value} session requires an image")
        if self.phase is Phase.COMPLETE and self.proportions is None:
            raise WorkflowStateError("complete session requires a proportion result")
        if self.phase is not Phase.COMPLETE and (self.critique is not None or self.analyzing):
            raise WorkflowStateError(f"{self.phase.value} session cannot carry a critique")
