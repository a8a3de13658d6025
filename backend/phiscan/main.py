"""FastAPI app factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from phiscan import __version__
from phiscan.config import settings

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.phiscan_log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    from phiscan.dependencies import shutdown

    await shutdown()


def create_app() -> FastAPI:
    app = FastAPI(
        title="PhiScan",
        description="Golden-ratio proportion scoring with a generative design critique",
        version=__version__,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from phiscan.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()
