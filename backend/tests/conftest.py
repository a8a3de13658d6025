"""Shared test fixtures."""

from __future__ import annotations

import io
import json

import httpx
import pytest
from PIL import Image

from phiscan.llm.client import CritiqueClient
from phiscan.models.analysis import CritiqueReport

REPORT = {
    "composition": "A low, elongated silhouette that anchors the room.",
    "geometry": "Width and height settle close to phi, giving a calm horizontal rhythm.",
    "styling": "Walnut veneer and brushed brass read as coherent and restrained.",
    "verdict": "Classical Masterpiece",
}


def make_png(width: int, height: int, mode: str = "RGB") -> bytes:
    """Encode a solid-colour test image."""
    color = (180, 140, 60) if mode == "RGB" else 0
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def gemini_body(text: str | None) -> dict:
    """generateContent response envelope around the model text."""
    if text is None:
        return {"candidates": []}
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class Endpoint:
    """Scripted mock generateContent endpoint.

    `script` lists responses in order; the last entry repeats once exhausted.
    """

    def __init__(self, *script: httpx.Response) -> None:
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self.script[min(len(self.requests), len(self.script)) - 1]
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)

    @property
    def calls(self) -> int:
        return len(self.requests)


class SleepRecorder:
    """Stands in for asyncio.sleep; records backoff delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def ok_response(report: dict | None = None) -> httpx.Response:
    return httpx.Response(200, json=gemini_body(json.dumps(report or REPORT)))


def error_response(status: int = 503) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": status, "message": "unavailable"}})


def make_client(endpoint, sleep: SleepRecorder | None = None, **kwargs) -> CritiqueClient:
    return CritiqueClient(
        kwargs.pop("api_key", "test-key"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )


@pytest.fixture
def report() -> CritiqueReport:
    return CritiqueReport(**REPORT)


@pytest.fixture
def small_png() -> bytes:
    return make_png(200, 120)


@pytest.fixture
def wide_png() -> bytes:
    return make_png(2048, 1266)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()
