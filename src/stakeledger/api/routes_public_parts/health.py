from __future__ import annotations

import sqlite3
import time
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _health_payload(request: Request) -> Json:
    cfg = request.app.state.cfg
    ex = getattr(request.app.state, "executor", None)

    ledger: Json = {"attached": ex is not None, "initialized": None, "settled_count": None, "error": None}
    if ex is not None:
        try:
            view = ex.view()
            st = ex.read_state()
            ledger["initialized"] = view.initialized
            ledger["settled_count"] = int(st.get("settled_count", 0) or 0)
            ledger["staked_total_raw"] = view.staked_total_raw
            ledger["reward_pool_raw"] = view.reward_pool_raw
        except (sqlite3.Error, OSError, ValueError) as e:
            ledger["error"] = str(e)

    return {
        "ok": ex is not None and ledger["error"] is None,
        "service": "stakeledger",
        "version": "v1",
        "ts_ms": _now_ms(),
        "program_id": getattr(ex, "program_id", None) or cfg.program_id,
        "node_id": cfg.node_id,
        "mode": cfg.mode,
        "ledger": ledger,
    }


@router.get("/health")
def v1_health(request: Request) -> Json:
    return _health_payload(request)
