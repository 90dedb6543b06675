from __future__ import annotations

import os
import threading
import time
from typing import Dict

# Settlement counters bumped by the executor.
SETTLED_TOTAL = "settlements_settled_total"
DUPLICATE_TOTAL = "settlements_duplicate_total"
REJECTED_TOTAL = "settlements_rejected_total"
OVERFLOW_TOTAL = "settlements_overflow_total"
PREVIEW_TOTAL = "reward_previews_total"

# Gauges refreshed after each settlement.
STAKED_TOTAL_RAW = "vault_staked_total_raw"
REWARD_POOL_RAW = "vault_reward_pool_raw"
CONFIG_VERSION = "program_config_version"

_lock = threading.Lock()
_counters: Dict[str, int] = {}
_gauges: Dict[str, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("STAKELEDGER_METRICS_ENABLED") or "").strip().lower()
    if not v:
        return False
    return v in {"1", "true", "yes", "y", "on"}


def inc_counter(name: str, value: int = 1) -> None:
    n = str(name or "").strip()
    if not n:
        return
    with _lock:
        _counters[n] = int(_counters.get(n, 0)) + int(value)


def rejected_counter(code: str) -> str:
    return f"settlements_rejected_{str(code or 'unknown').strip().lower()}_total"


def set_gauge(name: str, value: int) -> None:
    n = str(name or "").strip()
    if not n:
        return
    with _lock:
        _gauges[n] = int(value)


def snapshot() -> dict:
    with _lock:
        return {
            "ts_ms": int(time.time() * 1000),
            "started_ms": int(_started_ms),
            "uptime_ms": int(time.time() * 1000) - int(_started_ms),
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def reset() -> None:
    """Clear counters and gauges. Used by tests."""
    with _lock:
        _counters.clear()
        _gauges.clear()


def format_prometheus(prefix: str = "stakeledger_") -> str:
    """Prometheus exposition text. Integer counters/gauges only.

    Gauges carry raw token amounts, which can exceed float precision on the
    scraper side; they are still emitted as exact integers here.
    """
    pre = str(prefix or "").strip() or "stakeledger_"
    snap = snapshot()
    lines: list[str] = [f"{pre}uptime_ms {int(snap['uptime_ms'])}"]

    for kind, values in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
        for name in sorted(values):
            lines.append(f"# TYPE {pre}{name} {kind}")
            lines.append(f"{pre}{name} {int(values[name])}")

    return "\n".join(lines) + "\n"


__all__ = [
    "CONFIG_VERSION",
    "DUPLICATE_TOTAL",
    "OVERFLOW_TOTAL",
    "PREVIEW_TOTAL",
    "REJECTED_TOTAL",
    "REWARD_POOL_RAW",
    "SETTLED_TOTAL",
    "STAKED_TOTAL_RAW",
    "format_prometheus",
    "inc_counter",
    "metrics_enabled",
    "rejected_counter",
    "reset",
    "set_gauge",
    "snapshot",
]
