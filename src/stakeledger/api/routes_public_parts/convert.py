from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import _executor
from stakeledger.api.schemas import ConvertToRawRequest
from stakeledger.ledger import units

router = APIRouter()

Json = Dict[str, Any]


@router.post("/convert/to-raw")
def convert_to_raw(body: ConvertToRawRequest, request: Request) -> Json:
    """Display amount -> raw integer, so clients never scale amounts themselves."""
    decimals = body.decimals
    if decimals is None:
        decimals = _executor(request).get_config().decimals

    raw = units.to_raw(body.display, decimals)
    return {
        "ok": True,
        "display": str(body.display),
        "decimals": int(decimals),
        "raw": raw,
        # Echo the canonical rendering so the UI shows exactly what will settle.
        "display_normalized": units.format_display(raw, decimals),
    }
