"""API response models."""

from __future__ import annotations

from pydantic import BaseModel

from phiscan.models.analysis import CritiqueReport, ProportionResult
from phiscan.models.session import SessionState


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    critique_configured: bool = False


class DimensionsView(BaseModel):
    height: float | None = None
    width: float | None = None


class ImageView(BaseModel):
    filename: str = ""
    content_type: str
    size_bytes: int


class SessionResponse(BaseModel):
    phase: str
    generation: int = 0
    image: ImageView | None = None
    dimensions: DimensionsView = DimensionsView()
    proportions: ProportionResult | None = None
    critique: CritiqueReport | None = None
    error: str | None = None
    analyzing: bool = False
    progress: int = 0

    @classmethod
    def from_state(cls, state: SessionState) -> SessionResponse:
        image = None
        if state.image is not None:
            image = ImageView(
                filename=state.image.filename,
                content_type=state.image.content_type,
                size_bytes=state.image.size_bytes,
            )
        return cls(
            phase=state.phase.value,
            generation=state.generation,
            image=image,
            dimensions=DimensionsView(height=state.dimensions.height, width=state.dimensions.width),
            proportions=state.proportions,
            critique=state.critique,
            error=state.error,
            analyzing=state.analyzing,
            progress=state.progress,
        )
