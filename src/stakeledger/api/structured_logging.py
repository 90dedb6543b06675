# src/stakeledger/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from stakeledger.runtime.event_log import log_event

Json = Dict[str, Any]

_CONFIGURED_ATTR = "_stakeledger_configured"
_FALSEY = {"0", "false", "no", "n", "off"}


def configure_structured_logging() -> None:
    """Route stdlib logging to stdout as one JSON object per line.

    Level comes from STAKELEDGER_LOG_LEVEL (default INFO). Repeated calls only
    update the level, so create_app() can run more than once per process.
    """
    level_name = (os.environ.get("STAKELEDGER_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, _CONFIGURED_ATTR, False):
        return

    handler = logging.StreamHandler()
    # log_event() already renders the JSON line.
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.handlers = [handler]
    setattr(root, _CONFIGURED_ATTR, True)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request.

    Settlement routes put `tx_id` and `settlement_status` on request.state;
    those are copied into the event so an operator can join HTTP logs with
    `stakeledger.settlement` events. STAKELEDGER_LOG_REQUESTS=0 turns it off.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("STAKELEDGER_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in _FALSEY
        self._logger = logging.getLogger("stakeledger.http")

    @staticmethod
    def _settlement_fields(request: Request) -> Json:
        out: Json = {}
        for k in ("tx_id", "settlement_status"):
            v = getattr(request.state, k, None)
            if v is not None:
                out[k] = v
        return out

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        status = 500
        err: Optional[str] = None
        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        except Exception as e:
            err = f"{type(e).__name__}: {e}"
            raise
        finally:
            log_event(
                self._logger,
                "http_request",
                level=logging.WARNING if status >= 500 else logging.INFO,
                request_id=request_id,
                method=request.method,
                path=str(request.url.path or ""),
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                error=err,
                **self._settlement_fields(request),
            )


__all__ = ["RequestLogMiddleware", "configure_structured_logging", "log_event"]
