from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from stakeledger.api.routes_public_parts.common import _executor
from stakeledger.ledger import rates, rewards, units

router = APIRouter()

Json = Dict[str, Any]


@router.get("/config")
def get_config(request: Request) -> Json:
    """Current ProgramConfig plus display renderings of its rate, period summaries and thresholds."""
    cfg = _executor(request).get_config()
    return {
        "ok": True,
        "config": cfg.to_json(),
        "rate": rates.describe(cfg.rate_per_second_encoded),
        "rate_summary": rewards.rate_summary(cfg.rate_fraction),
        "thresholds_display": {
            "harvest": units.format_display(cfg.harvest_threshold_raw, cfg.decimals),
            "stake": units.format_display(cfg.stake_threshold_raw, cfg.decimals),
            "unstake": units.format_display(cfg.unstake_threshold_raw, cfg.decimals),
        },
    }
