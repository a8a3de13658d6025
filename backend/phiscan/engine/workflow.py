"""Scan workflow controller for one session: Empty -> Loaded -> Scanning -> Complete.

The proportion result is computed and published before any critique work
starts. The critique then runs as a background task and refines the Complete
state in place. Every selection, scan and reset bumps the session generation,
and a critique that belongs to an older generation stops retrying and its result
is dropped. A request already in flight is not cancelled, so at most one
request per superseded scan is still outstanding.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from phiscan.engine.image_prep import DEFAULT_DECODE_TIMEOUT, MAX_WIDTH, measure, prepare
from phiscan.engine.proportion import analyze
from phiscan.errors import ImageDecodeError, WorkflowStateError
from phiscan.llm.client import SUPERSEDED_MESSAGE, CritiqueClient, CritiqueOutcome, CritiqueState
from phiscan.models.analysis import CritiqueReport, Dimensions, EncodedPayload, ProportionResult
from phiscan.models.session import ImageHandle, Phase, SessionState

logger = logging.getLogger(__name__)

DECODE_FAILURE_MESSAGE = "The image could not be decoded. Please select another file."

Preparer = Callable[..., Awaitable[EncodedPayload]]


class WorkflowController:
    def __init__(
        self,
        client: CritiqueClient,
        *,
        max_width: int = MAX_WIDTH,
        decode_timeout: float = DEFAULT_DECODE_TIMEOUT,
        preparer: Preparer = prepare,
    ) -> None:
        self._client = client
        self._max_width = max_width
        self._decode_timeout = decode_timeout
        self._prepare = preparer
        self._state = SessionState()
        self._critique_task: asyncio.Task[CritiqueOutcome] | None = None
        # Strong refs so superseded tasks are not garbage-collected mid-flight.
        self._tasks: set[asyncio.Task[CritiqueOutcome]] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    def select_image(self, data: bytes, content_type: str | None, filename: str = "") -> bool:
        """Load a new image, replacing any previous session. Non-images are ignored."""
        if not content_type or not content_type.startswith("image/"):
            logger.info("Ignoring non-image selection %r (%s)", filename, content_type)
            return False

        self._release_image()
        self._state = SessionState(
            phase=Phase.LOADED,
            image=ImageHandle(data, content_type, filename),
            generation=self._state.generation + 1,
        )
        logger.info("Loaded image %r (%s, %d bytes)", filename, content_type, len(data))
        return True

    def set_dimensions(self, height: float | str | None = None, width: float | str | None = None) -> SessionState:
        """Record real-world measurements; they are captured at the next scan.

        Raises:
            WorkflowStateError: if no image is loaded or a scan is measuring.
            ValueError: if a value has no leading number.
        """
        if self._state.phase is Phase.EMPTY:
            raise WorkflowStateError("Select an image before entering dimensions")
        if self._state.phase is Phase.SCANNING:
            raise WorkflowStateError("Dimensions cannot change while a scan is running")
        self._state = replace(self._state, dimensions=Dimensions.parse(height, width))
        return self._state

    async def start_scan(self) -> SessionState:
        """Run the proportion analysis now and schedule the critique in the background.

        Raises:
            WorkflowStateError: if no image is loaded or a scan is already running.
        """
        current = self._state
        if current.phase is Phase.EMPTY:
            raise WorkflowStateError("No image selected")
        if current.phase is Phase.SCANNING:
            raise WorkflowStateError("Scan already in progress")

        generation = current.generation + 1
        source = current.image.read()
        dims = current.dimensions
        self._state = SessionState(
            phase=Phase.SCANNING,
            image=current.image,
            dimensions=dims,
            generation=generation,
        )
        logger.info("Scan %d started", generation)

        if not dims.complete:
            try:
                px_width, px_height = await measure(source, timeout=self._decode_timeout)
            except ImageDecodeError as e:
                logger.warning("Pixel fallback unavailable: %s", e)
                px_width = px_height = None
            dims = dims.resolve(px_height, px_width)
            if self._state.generation != generation:
                logger.info("Scan %d superseded while measuring", generation)
                return self._state

        stats = analyze(dims.height, dims.width)
        self._state = replace(
            self._state,
            phase=Phase.COMPLETE,
            proportions=stats,
            progress=100,
            analyzing=True,
        )
        logger.info("Scan %d complete: ratio=%s score=%d", generation, stats.ratio, stats.score)

        task = asyncio.create_task(self._run_critique(source, stats, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._critique_task = task
        return self._state

    async def wait_for_critique(self) -> SessionState:
        """Wait for the most recently scheduled critique, then return the current state."""
        if self._critique_task is not None:
            await self._critique_task
        return self._state

    def reset(self) -> SessionState:
        """Discard the whole session and release the image. In-flight critiques are orphaned."""
        self._release_image()
        self._state = SessionState(generation=self._state.generation + 1)
        self._critique_task = None
        logger.info("Session reset (generation %d)", self._state.generation)
        return self._state

    async def _run_critique(self, source: bytes, stats: ProportionResult, generation: int) -> CritiqueOutcome:
        def is_current() -> bool:
            return self._state.generation == generation

        try:
            payload = await self._prepare(source, max_width=self._max_width, timeout=self._decode_timeout)
        except ImageDecodeError as e:
            logger.error("Image preparation failed: %s", e)
            outcome = CritiqueOutcome(report=CritiqueReport.fallback(), error=DECODE_FAILURE_MESSAGE)
        else:
            if not is_current():
                logger.info("Scan %d superseded before its critique was requested", generation)
                return CritiqueOutcome(
                    report=CritiqueReport.fallback(), error=SUPERSEDED_MESSAGE, state=CritiqueState.ABANDONED
                )
            outcome = await self._client.critique(payload, stats, is_current=is_current)

        if not is_current():
            logger.info("Dropping critique for superseded scan %d (current %d)", generation, self._state.generation)
            return outcome

        self._state = replace(self._state, critique=outcome.report, error=outcome.error, analyzing=False)
        return outcome

    def _release_image(self) -> None:
        if self._state.image is not None:
            self._state.image.release()
