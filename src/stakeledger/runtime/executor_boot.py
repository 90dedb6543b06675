# src/stakeledger/runtime/executor_boot.py

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from stakeledger.runtime.executor import SettlementExecutor


@dataclass
class ExecutorBootConfig:
    db_path: str
    program_id: str
    allow_unsigned_txs: bool = False


def boot_config_from_env() -> ExecutorBootConfig:
    db_path = os.environ.get("STAKELEDGER_DB_PATH") or "./data/stakeledger.db"
    program_id = os.environ.get("STAKELEDGER_PROGRAM_ID") or "stakeledger-dev"
    unsigned = (os.environ.get("STAKELEDGER_ALLOW_UNSIGNED_TXS") or "").strip().lower() in {"1", "true", "yes", "y", "on"}

    return ExecutorBootConfig(db_path=db_path, program_id=program_id, allow_unsigned_txs=unsigned)


def build_executor(cfg: Optional[ExecutorBootConfig] = None) -> SettlementExecutor:
    """
    Build a SettlementExecutor from an explicit boot config or, if omitted,
    from environment variables (see node_config.apply_node_config_to_env).
    """
    c = cfg or boot_config_from_env()
    return SettlementExecutor(
        db_path=c.db_path,
        program_id=c.program_id,
        allow_unsigned_txs=c.allow_unsigned_txs,
    )
