"""Gemini critique client with bounded exponential-backoff retries.

Idle -> Requesting -> Success
                   -> Retrying -> Requesting
                   -> Exhausted
                   -> Abandoned

Every classified failure (transport, empty response, schema mismatch) is
retried until max_attempts requests have been issued; callers always get one
CritiqueOutcome back and never a raw transport error. A caller-supplied
is_current check ends the sequence early once its session is superseded:
the request already on the wire completes, but no further delay or retry
follows.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from phiscan.errors import CritiqueError, EmptyResponseError, SchemaParseError, TransportError
from phiscan.llm.prompts import MAX_OUTPUT_TOKENS, build_request_body
from phiscan.models.analysis import CritiqueReport, EncodedPayload, ProportionResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-preview-09-2025"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
MAX_ATTEMPTS = 5
EXHAUSTED_MESSAGE = "Neural synchronization timeout. Please re-initialize the scan."
SUPERSEDED_MESSAGE = "Critique abandoned: the scan was superseded."


class CritiqueState(str, enum.Enum):
    """How one critique invocation ended. IDLE means no request was issued."""

    IDLE = "idle"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class CritiqueOutcome:
    report: CritiqueReport
    error: str | None = None
    attempts: int = 0
    state: CritiqueState = CritiqueState.IDLE

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_text(result: Any) -> str | None:
    """candidates[0].content.parts[0].text, or None when any link is missing."""
    try:
        text = result["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text.strip() else None


def parse_report(text: str) -> CritiqueReport:
    try:
        return CritiqueReport.model_validate_json(text)
    except ValidationError as e:
        raise SchemaParseError(f"Response does not match critique schema ({e.error_count()} errors)") from e


class CritiqueClient:
    """Sends one image + proportion result to generateContent and validates the reply."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base: float = 1.0,
        timeout: float = 60.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._max_output_tokens = max_output_tokens
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt `attempt` (0-based): 1, 2, 4, 8, ..."""
        return self._backoff_base * 2**attempt

    async def critique(
        self,
        payload: EncodedPayload,
        stats: ProportionResult,
        is_current: Callable[[], bool] | None = None,
    ) -> CritiqueOutcome:
        body = build_request_body(payload, stats, self._max_output_tokens)

        def superseded() -> bool:
            return is_current is not None and not is_current()

        for attempt in range(self._max_attempts):
            logger.debug("Critique attempt %d/%d", attempt + 1, self._max_attempts)
            try:
                report = await self._request(body)
            except CritiqueError as e:
                if attempt + 1 >= self._max_attempts:
                    logger.error(
                        "Critique attempt %d/%d failed (%s): %s; giving up",
                        attempt + 1, self._max_attempts, e.code, e,
                    )
                    break
                if superseded():
                    return self._abandoned(attempt + 1)
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Critique attempt %d/%d failed (%s): %s; retrying in %.1fs",
                    attempt + 1, self._max_attempts, e.code, e, delay,
                )
                await self._sleep(delay)
                if superseded():
                    return self._abandoned(attempt + 1)
                continue

            logger.info("Critique received after %d attempt(s): %s", attempt + 1, report.verdict)
            return CritiqueOutcome(report=report, attempts=attempt + 1, state=CritiqueState.SUCCESS)

        return CritiqueOutcome(
            report=CritiqueReport.fallback(),
            error=EXHAUSTED_MESSAGE,
            attempts=self._max_attempts,
            state=CritiqueState.EXHAUSTED,
        )

    def _abandoned(self, attempts: int) -> CritiqueOutcome:
        logger.info("Critique abandoned after %d attempt(s): session superseded", attempts)
        return CritiqueOutcome(
            report=CritiqueReport.fallback(),
            error=SUPERSEDED_MESSAGE,
            attempts=attempts,
            state=CritiqueState.ABANDONED,
        )

    async def _request(self, body: dict[str, Any]) -> CritiqueReport:
        if not self._api_key:
            raise TransportError("Gemini API key not configured")

        try:
            response = await self._http.post(self.endpoint, params={"key": self._api_key}, json=body)
        except httpx.HTTPError as e:
            # Exception text can carry the request URL, which includes the key.
            raise TransportError(f"Request failed: {type(e).__name__}") from None

        if not response.is_success:
            raise TransportError(f"API_ERROR_{response.status_code}", status_code=response.status_code)

        try:
            result = response.json()
        except ValueError as e:
            raise TransportError("Response body is not JSON") from e

        text = extract_text(result)
        if text is None:
            raise EmptyResponseError("EMPTY_RESPONSE")
        return parse_report(text)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
