from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stakeledger.api.config import load_api_config
from stakeledger.api.errors import ApiError, from_apply_error
from stakeledger.api.routes_public import public_router
from stakeledger.api.security import RequestSizeLimitMiddleware
from stakeledger.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from stakeledger.runtime.errors import ApplyError
from stakeledger.runtime.event_log import log_event
from stakeledger.runtime.executor_boot import build_executor as _build_executor
from stakeledger.runtime.node_config import apply_node_config_to_env, load_node_config

log = logging.getLogger("stakeledger.api")


def build_executor():
    """Build a SettlementExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `stakeledger.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ApplyError)
    async def _apply_error(_request: Request, exc: ApplyError) -> JSONResponse:
        err = from_apply_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ApiError.bad_request(
            "invalid_request",
            "request body failed validation",
            {"errors": [{"loc": list(e.get("loc", ())), "msg": str(e.get("msg", ""))} for e in exc.errors()]},
        )
        return JSONResponse(status_code=err.status_code, content=err.to_json())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load node config into env + attach the executor
      - False: keep lightweight for unit tests / import-time validation
    """
    if boot_runtime:
        apply_node_config_to_env(load_node_config())

    configure_structured_logging()
    cfg = load_api_config()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(log, "api_start", program_id=getattr(ex, "program_id", None), mode=cfg.mode)
        yield
        log_event(log, "api_stop", program_id=getattr(ex, "program_id", None))

    # Disable docs in production.
    if cfg.docs_enabled:
        app = FastAPI(title="Stakeledger API", lifespan=_lifespan)
    else:
        app = FastAPI(
            title="Stakeledger API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )

    app.state.cfg = cfg
    app.state.executor = build_executor() if boot_runtime else None

    _install_error_handlers(app)

    # --- Middleware (last added runs first) ---
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    # CORS (explicit allowlist only by default).
    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_origins,
            allow_credentials=cfg.cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "X-Request-Id"],
        )

    # --- Routers ---
    app.include_router(public_router)

    return app
