# src/stakeledger/ledger/thresholds.py
from __future__ import annotations

"""Minimum-amount gate for stake, unstake and harvest.

Comparisons happen in raw units only. Display amounts entered by a user are
converted with `units.to_raw` before they reach this module.
"""

from typing import Any

from stakeledger.runtime.errors import BelowThreshold, InvalidAmount

OP_STAKE = "stake"
OP_UNSTAKE = "unstake"
OP_HARVEST = "harvest"


def _as_nonneg_int(v: Any, *, field: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidAmount(f"{field}_not_integer", {field: repr(v)})
    if v < 0:
        raise InvalidAmount(f"{field}_negative", {field: int(v)})
    return int(v)


def passes(amount_raw: int, threshold_raw: int) -> bool:
    """Inclusive minimum: amount == threshold passes."""
    a = _as_nonneg_int(amount_raw, field="amount_raw")
    t = _as_nonneg_int(threshold_raw, field="threshold_raw")
    return a >= t


def check(amount_raw: int, threshold_raw: int, *, operation: str = OP_STAKE) -> None:
    if not passes(amount_raw, threshold_raw):
        raise BelowThreshold(operation=operation, amount_raw=int(amount_raw), threshold_raw=int(threshold_raw))


__all__ = ["OP_HARVEST", "OP_STAKE", "OP_UNSTAKE", "check", "passes"]
