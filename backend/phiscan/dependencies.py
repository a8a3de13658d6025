"""FastAPI dependency injection."""

from __future__ import annotations

from functools import lru_cache

from phiscan.config import settings
from phiscan.engine.workflow import WorkflowController
from phiscan.llm.client import CritiqueClient


def get_settings():
    return settings


@lru_cache
def get_critique_client() -> CritiqueClient:
    return CritiqueClient(
        settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        max_attempts=settings.critique_max_attempts,
        backoff_base=settings.critique_backoff_base_s,
        timeout=settings.critique_timeout_s,
        max_output_tokens=settings.critique_max_output_tokens,
    )


@lru_cache
def get_workflow() -> WorkflowController:
    """The single process-wide scan session."""
    return WorkflowController(
        get_critique_client(),
        max_width=settings.max_image_width,
        decode_timeout=settings.image_decode_timeout_s,
    )


async def shutdown() -> None:
    if get_critique_client.cache_info().currsize:
        await get_critique_client().aclose()
    get_workflow.cache_clear()
    get_critique_client.cache_clear()
