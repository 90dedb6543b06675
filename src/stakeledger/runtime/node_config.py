# src/stakeledger/runtime/node_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class NodeConfig:
    # Included in every settlement id, so two programs never share ids.
    program_id: str
    node_id: str
    mode: str  # "dev" | "testnet" | "prod"

    db_path: str

    api_host: str
    api_port: int

    allow_unsigned_txs: bool

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_node_config(cfg: NodeConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.program_id, str) or not cfg.program_id.strip():
        raise ValueError("program_id must be a non-empty string")

    if not isinstance(cfg.node_id, str) or not cfg.node_id.strip():
        raise ValueError("node_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")

    # Unsigned settlements would let anyone move anyone's stake.
    if cfg.allow_unsigned_txs and mode == "prod":
        raise ValueError("allow_unsigned_txs is not permitted in prod mode")


def default_node_config() -> NodeConfig:
    return NodeConfig(
        program_id="stakeledger-dev",
        node_id="local-node",
        # Without an explicit config file the node must not start permissive.
        mode="prod",
        db_path="./data/stakeledger.db",
        api_host="0.0.0.0",
        api_port=8000,
        allow_unsigned_txs=False,
        log_level="INFO",
    )


def node_config_from_dict(raw: Any) -> NodeConfig:
    if not isinstance(raw, dict):
        raise ValueError("node config must be a JSON object")

    d = default_node_config()

    cfg = NodeConfig(
        program_id=_as_str(raw.get("program_id"), d.program_id),
        node_id=_as_str(raw.get("node_id"), d.node_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        allow_unsigned_txs=_as_bool(raw.get("allow_unsigned_txs"), d.allow_unsigned_txs),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )

    validate_node_config(cfg)
    return cfg


def read_node_config_file(path: str) -> NodeConfig:
    return node_config_from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


def load_node_config(*, config_path: Optional[str] = None) -> NodeConfig:
    p = config_path or os.environ.get("STAKELEDGER_NODE_CONFIG_PATH")
    if p:
        return read_node_config_file(p)

    cfg = default_node_config()
    validate_node_config(cfg)
    return cfg


def apply_node_config_to_env(cfg: NodeConfig) -> None:
    validate_node_config(cfg)
    os.environ["STAKELEDGER_PROGRAM_ID"] = cfg.program_id
    os.environ["STAKELEDGER_NODE_ID"] = cfg.node_id

    # sqlite_db reads the mode to pick its synchronous pragma.
    os.environ["STAKELEDGER_MODE"] = (cfg.mode or "prod").strip().lower()

    os.environ["STAKELEDGER_DB_PATH"] = cfg.db_path
    os.environ["STAKELEDGER_LOG_LEVEL"] = cfg.log_level
    os.environ["STAKELEDGER_ALLOW_UNSIGNED_TXS"] = "1" if cfg.allow_unsigned_txs else "0"
