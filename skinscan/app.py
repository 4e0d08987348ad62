"""
FastAPI application entry point for the SkinScan backend.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from skinscan.bootstrap import run_startup_tasks
from skinscan.config import configure_logging, get_settings
from skinscan.dependencies import (
    get_identity_provider,
    get_kv_store,
    get_storage_client,
)
from skinscan.errors import install_error_handlers
from skinscan.repository import ScanRepository
from skinscan.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.run_bootstrap:
        run_startup_tasks(
            storage=get_storage_client(),
            identity=get_identity_provider(),
            repository=ScanRepository(get_kv_store()),
            settings=settings,
        )
    yield
    logger.info("Shutting down")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(title="SkinScan Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.time() - start_time) * 1000,
        )
        return response

    install_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
