from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakeledger.api.errors import ApiError
from stakeledger.api.routes_public_parts.common import _executor
from stakeledger.api.schemas import TxSubmitRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def tx_submit(body: TxSubmitRequest, request: Request) -> Json:
    """Settle a signed envelope.

    Idempotent: resubmitting the same envelope returns the stored receipt
    with status "already_settled" and moves nothing.

    Returns:
      { ok, tx_id, status: settled|already_settled, receipt }
    """
    ex = _executor(request)
    res = ex.submit(body.model_dump())
    request.state.tx_id = res.tx_id
    request.state.settlement_status = res.status
    return res.to_json()


@router.get("/tx/status/{tx_id}")
def tx_status(tx_id: str, request: Request) -> Json:
    t = str(tx_id or "").strip().lower()
    if len(t) != 64 or any(c not in "0123456789abcdef" for c in t):
        raise ApiError.bad_request("invalid_tx_id", "tx_id must be 64 hex chars", {"tx_id": tx_id})
    return _executor(request).tx_status(t)
