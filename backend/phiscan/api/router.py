"""Master API router — mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from phiscan.api import health, proportions, session

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(proportions.router)
api_router.include_router(session.router)
