"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from phiscan import __version__
from phiscan.dependencies import get_settings
from phiscan.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(settings=Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        critique_configured=bool(settings.gemini_api_key),
    )


@router.get("/prompts")
async def prompts() -> dict[str, str]:
    from phiscan.llm.prompts import get_all_templates

    return get_all_templates()
