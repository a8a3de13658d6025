"""Tests for the scan workflow controller."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest

from phiscan.engine.workflow import DECODE_FAILURE_MESSAGE, WorkflowController
from phiscan.errors import ImageDecodeError, WorkflowStateError
from phiscan.llm.client import EXHAUSTED_MESSAGE, SUPERSEDED_MESSAGE, CritiqueState
from phiscan.models.analysis import CritiqueReport
from phiscan.models.session import Phase, SessionState
from tests.conftest import REPORT, Endpoint, error_response, make_client, ok_response


def _controller(endpoint, sleep=None, **kwargs) -> WorkflowController:
    return WorkflowController(make_client(endpoint, sleep), **kwargs)


def test_starts_empty():
    controller = _controller(Endpoint(ok_response()))
    assert controller.state == SessionState()
    assert controller.state.phase is Phase.EMPTY


def test_non_image_selection_ignored(small_png):
    controller = _controller(Endpoint(ok_response()))
    assert controller.select_image(b"%PDF-1.7", "application/pdf", "invoice.pdf") is False
    assert controller.select_image(small_png, None) is False
    assert controller.state.phase is Phase.EMPTY
    assert controller.state.image is None


def test_select_image_loads(small_png):
    controller = _controller(Endpoint(ok_response()))
    assert controller.select_image(small_png, "image/png", "chair.png")
    state = controller.state
    assert state.phase is Phase.LOADED
    assert state.image.filename == "chair.png"
    assert state.proportions is None


def test_reselect_releases_previous_image(small_png):
    controller = _controller(Endpoint(ok_response()))
    controller.select_image(small_png, "image/png", "first.png")
    first = controller.state.image
    controller.select_image(small_png, "image/png", "second.png")
    assert first.released
    assert not controller.state.image.released


def test_dimensions_require_image():
    controller = _controller(Endpoint(ok_response()))
    with pytest.raises(WorkflowStateError):
        controller.set_dimensions("10", "20")


@pytest.mark.asyncio
async def test_scan_requires_image():
    controller = _controller(Endpoint(ok_response()))
    with pytest.raises(WorkflowStateError):
        await controller.start_scan()


@pytest.mark.asyncio
async def test_scan_with_user_dimensions(small_png, sleep):
    endpoint = Endpoint(ok_response())
    controller = _controller(endpoint, sleep)
    controller.select_image(small_png, "image/png", "table.png")
    controller.set_dimensions("190", "117.43")

    state = await controller.start_scan()

    assert state.phase is Phase.COMPLETE
    assert state.proportions.score == 100
    assert state.progress == 100
    assert state.analyzing
    assert state.critique is None

    final = await controller.wait_for_critique()
    assert final.phase is Phase.COMPLETE
    assert final.critique == CritiqueReport(**REPORT)
    assert final.error is None
    assert not final.analyzing
    assert endpoint.calls == 1


@pytest.mark.asyncio
async def test_scan_falls_back_to_pixel_extents(small_png):
    controller = _controller(Endpoint(ok_response()))
    controller.select_image(small_png, "image/png")
    controller.set_dimensions(height="", width="")

    state = await controller.start_scan()

    # 200x120 px
    assert state.proportions.ratio == pytest.approx(200 / 120, abs=1e-3)
    assert state.dimensions.height is None
    await controller.wait_for_critique()


@pytest.mark.asyncio
async def test_partial_dimensions_mix_with_pixels(small_png):
    controller = _controller(Endpoint(ok_response()))
    controller.select_image(small_png, "image/png")
    controller.set_dimensions(height=60)

    state = await controller.start_scan()

    # 60 user units against 200 px wide
    assert state.proportions.ratio == pytest.approx(200 / 60, abs=1e-3)
    await controller.wait_for_critique()


@pytest.mark.asyncio
async def test_exhausted_critique_keeps_complete_phase(small_png, sleep):
    endpoint = Endpoint(error_response(500))
    controller = _controller(endpoint, sleep)
    controller.select_image(small_png, "image/png")
    await controller.start_scan()

    final = await controller.wait_for_critique()

    assert final.phase is Phase.COMPLETE
    assert final.proportions is not None
    assert final.critique == CritiqueReport.fallback()
    assert final.error == EXHAUSTED_MESSAGE
    assert endpoint.calls == 5


@pytest.mark.asyncio
async def test_undecodable_image_degrades(sleep):
    endpoint = Endpoint(ok_response())
    controller = _controller(endpoint, sleep)
    controller.select_image(b"not really a png", "image/png", "broken.png")

    state = await controller.start_scan()
    assert state.proportions.score == 0
    assert state.proportions.variance == 100

    final = await controller.wait_for_critique()
    assert final.critique == CritiqueReport.fallback()
    assert final.error == DECODE_FAILURE_MESSAGE
    assert endpoint.calls == 0


@pytest.mark.asyncio
async def test_rescan_clears_previous_critique(small_png):
    controller = _controller(Endpoint(ok_response()))
    controller.select_image(small_png, "image/png")
    await controller.start_scan()
    await controller.wait_for_critique()

    state = await controller.start_scan()
    assert state.critique is None
    assert state.analyzing
    await controller.wait_for_critique()
    assert controller.state.critique is not None


@pytest.mark.asyncio
async def test_reset_discards_everything(small_png):
    controller = _controller(Endpoint(ok_response()))
    controller.select_image(small_png, "image/png")
    controller.set_dimensions(10, 20)
    await controller.start_scan()
    await controller.wait_for_critique()
    handle = controller.state.image

    with patch.object(handle, "release", wraps=handle.release) as release:
        state = controller.reset()
        controller.reset()

    release.assert_called_once()
    assert handle.released
    assert state.phase is Phase.EMPTY
    assert state.image is None
    assert state.proportions is None
    assert state.critique is None
    assert state.error is None
    assert state.dimensions.height is None and state.dimensions.width is None


@pytest.mark.asyncio
async def test_stale_critique_is_dropped_after_reset(small_png):
    gate = asyncio.Event()
    requests = []

    async def slow_endpoint(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        await gate.wait()
        return ok_response()

    controller = _controller(slow_endpoint)
    controller.select_image(small_png, "image/png")
    await controller.start_scan()
    task = next(iter(controller._tasks))

    while not requests:
        await asyncio.sleep(0)
    controller.reset()
    gate.set()
    outcome = await task

    assert outcome.ok
    assert controller.state.phase is Phase.EMPTY
    assert controller.state.critique is None


@pytest.mark.asyncio
async def test_stale_critique_does_not_overwrite_new_scan(small_png):
    gate = asyncio.Event()
    requests = []

    async def endpoint(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            await gate.wait()
            return ok_response({**REPORT, "verdict": "Stale Verdict"})
        return ok_response({**REPORT, "verdict": "Fresh Verdict"})

    controller = _controller(endpoint)
    controller.select_image(small_png, "image/png")
    await controller.start_scan()
    stale_task = controller._critique_task

    while not requests:
        await asyncio.sleep(0)
    await controller.start_scan()
    await controller.wait_for_critique()
    gate.set()
    await stale_task

    assert controller.state.critique.verdict == "Fresh Verdict"


@pytest.mark.asyncio
async def test_preparer_is_injectable(small_png):
    async def failing_preparer(source, **kwargs):
        raise ImageDecodeError("timed out")

    endpoint = Endpoint(ok_response())
    controller = _controller(endpoint, preparer=failing_preparer)
    controller.select_image(small_png, "image/png")
    await controller.start_scan()
    final = await controller.wait_for_critique()

    assert final.error == DECODE_FAILURE_MESSAGE
    assert endpoint.calls == 0


@pytest.mark.asyncio
async def test_rescan_stops_superseded_retry_loop(small_png):
    endpoint = Endpoint(error_response(503))
    gate = asyncio.Event()
    delays = []

    async def gated_sleep(delay: float) -> None:
        delays.append(delay)
        await gate.wait()

    controller = _controller(endpoint, gated_sleep)
    controller.select_image(small_png, "image/png")
    await controller.start_scan()
    first = controller._critique_task

    # First critique has failed once and is waiting out its backoff.
    while not delays:
        await asyncio.sleep(0)
    assert endpoint.calls == 1

    await controller.start_scan()
    gate.set()
    stale = await first
    final = await controller.wait_for_critique()

    assert stale.state is CritiqueState.ABANDONED
    assert stale.error == SUPERSEDED_MESSAGE
    assert stale.attempts == 1
    # One request from the superseded scan, five from the current one.
    assert endpoint.calls == 1 + 5
    assert final.critique == CritiqueReport.fallback()
    assert final.error == EXHAUSTED_MESSAGE
    assert not final.analyzing


@pytest.mark.asyncio
async def test_dimensions_locked_while_scanning(small_png):
    gate = asyncio.Event()

    async def gated_measure(source, **kwargs):
        await gate.wait()
        return 200, 120

    controller = _controller(Endpoint(ok_response()))
    controller.select_image(small_png, "image/png")

    with patch("phiscan.engine.workflow.measure", gated_measure):
        scan = asyncio.create_task(controller.start_scan())
        while controller.state.phase is not Phase.SCANNING:
            await asyncio.sleep(0)

        with pytest.raises(WorkflowStateError):
            controller.set_dimensions("999", "1")
        assert controller.state.dimensions.height is None

        gate.set()
        state = await scan

    assert state.phase is Phase.COMPLETE
    assert state.proportions.ratio == pytest.approx(200 / 120, abs=1e-3)
    await controller.wait_for_critique()
    # Editable again once the scan has completed.
    assert controller.set_dimensions("190", "117.43").dimensions.height == 190.0
