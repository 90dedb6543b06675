from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import _executor

router = APIRouter()

Json = Dict[str, Any]


@router.get("/stats")
def get_stats(request: Request) -> Json:
    """Program-wide totals: staked, reward pool, harvested, stakers."""
    return {"ok": True, "stats": _executor(request).get_stats()}
