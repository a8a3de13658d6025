"""POST /api/proportions — stateless golden-ratio scoring."""

from __future__ import annotations

from fastapi import APIRouter

from phiscan.engine.proportion import analyze
from phiscan.models.analysis import ProportionResult
from phiscan.models.requests import ProportionsRequest

router = APIRouter()


@router.post("/proportions", response_model=ProportionResult)
async def proportions(req: ProportionsRequest) -> ProportionResult:
    return analyze(req.height, req.width)
