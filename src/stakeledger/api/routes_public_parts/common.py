from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from stakeledger.api.errors import ApiError

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _owner_param(owner: Any) -> str:
    o = str(owner or "").strip()
    if not o:
        raise ApiError.bad_request("invalid_owner", "owner id must be non-empty", {})
    return o


def _int_param(v: Any, default: int) -> int:
    """Parse an int-ish query param safely."""
    if v is None:
        return int(default)
    s = str(v).strip()
    if s == "":
        return int(default)
    try:
        return int(s)
    except ValueError:
        raise ApiError.bad_request("invalid_param", "expected an integer", {"value": s}) from None
