from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path

import pytest

from stakeledger.runtime.executor_boot import boot_config_from_env
from stakeledger.runtime.node_config import (
    apply_node_config_to_env,
    default_node_config,
    load_node_config,
    read_node_config_file,
    validate_node_config,
)


def test_defaults_are_production_safe(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STAKELEDGER_NODE_CONFIG_PATH", raising=False)
    cfg = load_node_config()
    assert cfg == default_node_config()
    assert cfg.mode == "prod"
    assert cfg.allow_unsigned_txs is False


def test_read_file_overrides_and_normalizes(tmp_path: Path) -> None:
    p = tmp_path / "node.json"
    p.write_text(
        json.dumps(
            {
                "program_id": "stake-main",
                "mode": "DEV",
                "db_path": str(tmp_path / "db.sqlite"),
                "api_port": "9001",
                "allow_unsigned_txs": "yes",
                "log_level": "debug",
            }
        ),
        encoding="utf-8",
    )
    cfg = read_node_config_file(str(p))
    assert cfg.program_id == "stake-main"
    assert cfg.mode == "dev"
    assert cfg.api_port == 9001
    assert cfg.allow_unsigned_txs is True
    assert cfg.log_level == "DEBUG"
    assert cfg.node_id == "local-node"


@pytest.mark.parametrize(
    "override",
    [
        {"mode": "staging"},
        {"api_port": 70_000},
        {"log_level": "LOUD"},
        {"mode": "prod", "allow_unsigned_txs": True},
    ],
)
def test_validation_fails_fast(tmp_path: Path, override: dict) -> None:
    p = tmp_path / "node.json"
    p.write_text(json.dumps(override), encoding="utf-8")
    with pytest.raises(ValueError):
        read_node_config_file(str(p))


def test_non_object_rejected(tmp_path: Path) -> None:
    p = tmp_path / "node.json"
    p.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_node_config_file(str(p))


def test_apply_to_env_feeds_executor_boot(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for k in list(os.environ):
        if k.startswith("STAKELEDGER_"):
            monkeypatch.delenv(k, raising=False)

    cfg = default_node_config()
    cfg = replace(cfg, mode="testnet", db_path=str(tmp_path / "x.db"), allow_unsigned_txs=True)
    validate_node_config(cfg)

    # apply_node_config_to_env writes os.environ directly; register keys for cleanup.
    for k in ("PROGRAM_ID", "NODE_ID", "MODE", "DB_PATH", "LOG_LEVEL", "ALLOW_UNSIGNED_TXS"):
        monkeypatch.setenv(f"STAKELEDGER_{k}", "")
    apply_node_config_to_env(cfg)

    boot = boot_config_from_env()
    assert boot.db_path == str(tmp_path / "x.db")
    assert boot.program_id == cfg.program_id
    assert boot.allow_unsigned_txs is True
    assert os.environ["STAKELEDGER_MODE"] == "testnet"
