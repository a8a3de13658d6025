"""/api/session — select image, set dimensions, scan, reset, SSE stream."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from phiscan.dependencies import get_workflow
from phiscan.engine.workflow import WorkflowController
from phiscan.errors import WorkflowStateError
from phiscan.models.requests import DimensionsRequest
from phiscan.models.responses import SessionResponse

router = APIRouter(prefix="/session")
logger = logging.getLogger(__name__)


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


@router.get("", response_model=SessionResponse)
async def get_session(workflow: WorkflowController = Depends(get_workflow)) -> SessionResponse:
    return SessionResponse.from_state(workflow.state)


@router.post("/image", response_model=SessionResponse)
async def select_image(
    file: UploadFile = File(...),
    workflow: WorkflowController = Depends(get_workflow),
) -> SessionResponse:
    data = await file.read()
    workflow.select_image(data, file.content_type, file.filename or "")
    return SessionResponse.from_state(workflow.state)


@router.put("/dimensions", response_model=SessionResponse)
async def set_dimensions(
    req: DimensionsRequest,
    workflow: WorkflowController = Depends(get_workflow),
) -> SessionResponse:
    try:
        state = workflow.set_dimensions(req.height, req.width)
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return SessionResponse.from_state(state)


@router.post("/scan", response_model=SessionResponse)
async def start_scan(workflow: WorkflowController = Depends(get_workflow)) -> SessionResponse:
    try:
        state = await workflow.start_scan()
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return SessionResponse.from_state(state)


@router.post("/reset", response_model=SessionResponse)
async def reset(workflow: WorkflowController = Depends(get_workflow)) -> SessionResponse:
    return SessionResponse.from_state(workflow.reset())


async def _stream_session(workflow: WorkflowController) -> AsyncGenerator[str, None]:
    """Current state now, the refined state once the critique resolves, then done."""
    state = workflow.state
    yield _sse("progress", SessionResponse.from_state(state).model_dump(mode="json"))

    if state.analyzing:
        state = await workflow.wait_for_critique()
        yield _sse("result", SessionResponse.from_state(state).model_dump(mode="json"))

    yield _sse("done", {"type": "done"})


@router.get("/stream")
async def stream_session(workflow: WorkflowController = Depends(get_workflow)) -> StreamingResponse:
    return StreamingResponse(
        _stream_session(workflow),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
