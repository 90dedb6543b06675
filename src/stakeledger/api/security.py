from __future__ import annotations

import os
from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from stakeledger.api.errors import ApiError

DEFAULT_MAX_REQUEST_BYTES = 64_000
_BODY_METHODS = {"POST", "PUT", "PATCH"}


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized request bodies before they reach JSON parsing.

    A settlement envelope is a few hundred bytes, so the cap can be tight.
    STAKELEDGER_MAX_REQUEST_BYTES sets it (default 64000); 0 disables it.
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)
        if max_bytes is None:
            max_bytes = _env_int("STAKELEDGER_MAX_REQUEST_BYTES", DEFAULT_MAX_REQUEST_BYTES)
        self._max_bytes = max(0, int(max_bytes))
        self._exempt_prefixes = exempt_prefixes

    def _reject(self, seen: int) -> JSONResponse:
        err = ApiError(
            413,
            "request_too_large",
            "request body too large",
            {"max_bytes": self._max_bytes, "bytes": seen},
        )
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    def _declared_length(self, request: Request) -> Optional[int]:
        cl = request.headers.get("content-length")
        if not cl:
            return None
        try:
            return int(cl)
        except ValueError:
            return None

    async def dispatch(self, request: Request, call_next):
        if self._max_bytes == 0 or (request.url.path or "").startswith(self._exempt_prefixes):
            return await call_next(request)

        declared = self._declared_length(request)
        if declared is not None and declared > self._max_bytes:
            return self._reject(declared)

        # Chunked bodies carry no Content-Length; measure the buffered body.
        if (request.method or "").upper() in _BODY_METHODS:
            body = await request.body()
            if len(body) > self._max_bytes:
                return self._reject(len(body))

        return await call_next(request)
