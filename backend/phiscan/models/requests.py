"""API request models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProportionsRequest(BaseModel):
    height: float | None = Field(default=None, description="Height in any consistent unit")
    width: float | None = Field(default=None, description="Width in the same unit as height")


class DimensionsRequest(BaseModel):
    height: float | str | None = Field(default=None, description="Real-world height; blank falls back to pixels")
    width: float | str | None = Field(default=None, description="Real-world width; blank falls back to pixels")
