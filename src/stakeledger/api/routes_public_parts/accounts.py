from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from stakeledger.api.errors import ApiError
from stakeledger.api.routes_public_parts.common import _executor, _int_param, _owner_param

router = APIRouter()

Json = Dict[str, Any]


@router.get("/accounts/{owner}")
def get_account(owner: str, request: Request, limit: Optional[str] = None) -> Json:
    ex = _executor(request)
    o = _owner_param(owner)

    acct = ex.get_account(o)
    if acct is None:
        raise ApiError.not_found("account_not_found", "no staking account for owner", {"owner": o})

    return {
        "ok": True,
        "owner": o,
        "state": acct.state,
        "account": acct.to_json(),
        "wallet": ex.get_wallet(o),
        "settlements": ex.settlements_for(o, limit=max(1, min(200, _int_param(limit, 20)))),
    }


@router.get("/accounts/{owner}/preview")
def get_preview(owner: str, request: Request, now: Optional[str] = None) -> Json:
    """Pending reward, computed by the same function HARVEST settles with.

    `now` (seconds) previews a future instant; it defaults to the server clock.
    """
    ex = _executor(request)
    o = _owner_param(owner)
    at = None if now is None else _int_param(now, 0)
    preview = ex.get_preview(o, now=at)
    return {"ok": True, "preview": preview.to_json()}
