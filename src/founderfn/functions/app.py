"""FastAPI application serving the functions as JSON endpoints."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from founderfn import __version__
from founderfn.auth.two_factor import TwoFactorService
from founderfn.config import Settings
from founderfn.config import settings as default_settings
from founderfn.db import open_pool
from founderfn.errors import FunctionError
from founderfn.functions.routes import challenges, notifications, two_factor
from founderfn.gamification.challenges import ChallengeProgressUpdater
from founderfn.store import PostgresStore

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

_MISSING_ERRORS = {"missing", "string_too_short"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _describe_validation(exc: RequestValidationError) -> str:
    missing: list[str] = []
    problems: list[str] = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())[1:])
        if not field:
            problems.append("Request body must be a JSON object")
        elif err.get("type") in _MISSING_ERRORS:
            missing.append(field)
        else:
            problems.append(f"{field}: {err.get('msg')}")
    if missing:
        problems.insert(0, f"Missing required fields: {', '.join(missing)}")
    return "; ".join(problems) or "Invalid request"


def _install_services(app: FastAPI, store: PostgresStore, cfg: Settings, clock: Callable[[], float]) -> None:
    app.state.store = store
    app.state.two_factor = TwoFactorService(store, cfg, clock=clock)
    app.state.progress_updater = ChallengeProgressUpdater(store, cfg)


def create_app(
    cfg: Settings | None = None,
    *,
    store: PostgresStore | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the app. Without an explicit store, a pool is opened on startup."""
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store is not None:
            yield
            return
        pool = await open_pool(cfg)
        _install_services(app, PostgresStore(pool), cfg, clock)
        try:
            yield
        finally:
            await pool.close()

    app = FastAPI(
        title="Founder Platform Functions",
        description="Two-factor authentication, challenge progress and notifications",
        version=__version__,
        lifespan=lifespan,
    )
    if store is not None:
        # Installed here rather than in lifespan so the app works before startup runs.
        _install_services(app, store, cfg, clock)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    @app.exception_handler(FunctionError)
    async def _function_error(request: Request, exc: FunctionError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, _describe_validation(exc))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

    @app.get("/health")
    async def health(request: Request):
        await request.app.state.store.ping()
        return {"status": "ok", "version": __version__}

    app.include_router(two_factor.router)
    app.include_router(challenges.router)
    app.include_router(notifications.router)
    return app
