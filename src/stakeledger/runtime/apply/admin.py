# src/stakeledger/runtime/apply/admin.py
from __future__ import annotations

"""
Program administration apply semantics.

- INITIALIZE_PROGRAM: create the single ProgramConfig (once).
- UPDATE_CONFIG: admin-only rate/threshold change; takes effect for every
  later calculation. reward_model and decimals are fixed at initialization.
- FUND_REWARDS: admin-only top-up of the reward pool that harvests pay from.
"""

from dataclasses import replace
from typing import Any, Dict, Optional

from stakeledger.ledger import rates, units
from stakeledger.ledger.constants import (
    DEFAULT_HARVEST_THRESHOLD_TOKENS,
    DEFAULT_REWARD_MODEL,
    DEFAULT_STAKE_THRESHOLD_TOKENS,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_UNSTAKE_THRESHOLD_TOKENS,
    MAX_TOKEN_DECIMALS,
    U64_MAX,
)
from stakeledger.ledger.types import ProgramConfig, config_from_state
from stakeledger.runtime.errors import ConfigurationError, InvalidAmount, Overflow, Unauthorized
from stakeledger.runtime.tx_types import TX_FUND_REWARDS, TX_INITIALIZE_PROGRAM, TX_UPDATE_CONFIG, TxEnvelope, transfer

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _strict_int(payload: Json, key: str, *, required: bool = True, default: int = 0) -> int:
    if key not in payload or payload.get(key) is None:
        if required:
            raise InvalidAmount("missing_field", {"field": key})
        return int(default)
    v = payload.get(key)
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidAmount("field_not_integer", {"field": key, "value": repr(v)})
    return int(v)


def _threshold(payload: Json, key: str, default: Optional[int] = None) -> int:
    v = _strict_int(payload, key, required=default is None, default=default or 0)
    if v < 0:
        raise InvalidAmount("threshold_negative", {"field": key, "value": v})
    if v > U64_MAX:
        raise InvalidAmount("threshold_exceeds_u64", {"field": key, "value": v, "max": U64_MAX})
    return v


def _require_admin(cfg: ProgramConfig, env: TxEnvelope) -> None:
    if env.signer != cfg.admin:
        raise Unauthorized("admin_required", {"tx_type": env.tx_type, "signer": env.signer})


def _apply_initialize(state: Json, env: TxEnvelope, now: int) -> Json:
    if isinstance(state.get("config"), dict) and state.get("config"):
        raise ConfigurationError("program_already_initialized", {})

    payload = _as_dict(env.payload)
    rate = rates.validate_encoded(payload.get("rate_per_second_encoded"))
    decimals = _strict_int(payload, "decimals", required=False, default=DEFAULT_TOKEN_DECIMALS)
    if decimals < 0 or decimals > MAX_TOKEN_DECIMALS:
        raise ConfigurationError("decimals_out_of_range", {"decimals": decimals})
    cfg = ProgramConfig(
        rate_per_second_encoded=rate,
        harvest_threshold_raw=_threshold(payload, "harvest_threshold_raw", units.to_raw(DEFAULT_HARVEST_THRESHOLD_TOKENS, decimals)),
        stake_threshold_raw=_threshold(payload, "stake_threshold_raw", units.to_raw(DEFAULT_STAKE_THRESHOLD_TOKENS, decimals)),
        unstake_threshold_raw=_threshold(payload, "unstake_threshold_raw", units.to_raw(DEFAULT_UNSTAKE_THRESHOLD_TOKENS, decimals)),
        admin=env.signer,
        reward_model=str(payload.get("reward_model") or DEFAULT_REWARD_MODEL).strip().lower(),
        decimals=decimals,
        version=1,
        updated_at=int(now),
    ).validate()

    state["config"] = cfg.to_json()
    return {"applied": TX_INITIALIZE_PROGRAM, "admin": cfg.admin, "config": cfg.to_json()}


def _apply_update_config(state: Json, env: TxEnvelope, now: int) -> Json:
    cfg = config_from_state(state)
    _require_admin(cfg, env)

    payload = _as_dict(env.payload)
    for fixed in ("reward_model", "decimals", "admin"):
        if fixed in payload:
            raise ConfigurationError("field_fixed_at_initialization", {"field": fixed})

    rate = rates.validate_encoded(payload.get("rate_per_second_encoded"))
    new_cfg = replace(
        cfg,
        rate_per_second_encoded=rate,
        harvest_threshold_raw=_threshold(payload, "harvest_threshold_raw"),
        stake_threshold_raw=_threshold(payload, "stake_threshold_raw"),
        unstake_threshold_raw=_threshold(payload, "unstake_threshold_raw"),
        version=cfg.version + 1,
        updated_at=max(cfg.updated_at, int(now)),
    ).validate()

    state["config"] = new_cfg.to_json()
    return {
        "applied": TX_UPDATE_CONFIG,
        "previous_version": cfg.version,
        "config": new_cfg.to_json(),
    }


def _apply_fund_rewards(state: Json, env: TxEnvelope, now: int) -> Json:
    cfg = config_from_state(state)
    _require_admin(cfg, env)

    amount = _strict_int(_as_dict(env.payload), "amount_raw")
    if amount <= 0:
        raise InvalidAmount("amount_must_be_positive", {"tx_type": env.tx_type, "amount_raw": amount})

    vault = state.get("vault")
    if not isinstance(vault, dict):
        vault = {"staked_total_raw": 0, "reward_pool_raw": 0}
        state["vault"] = vault
    pool = int(vault.get("reward_pool_raw", 0) or 0) + amount
    if pool > U64_MAX:
        raise Overflow("reward_pool_exceeds_u64", {"reward_pool_raw": pool - amount, "add": amount, "max": U64_MAX})
    vault["reward_pool_raw"] = pool

    return {
        "applied": TX_FUND_REWARDS,
        "amount_raw": amount,
        "reward_pool_raw": pool,
        "transfers": [transfer("reward_token", "in", env.signer, amount)],
    }


ADMIN_APPLIERS = {
    TX_INITIALIZE_PROGRAM: _apply_initialize,
    TX_UPDATE_CONFIG: _apply_update_config,
    TX_FUND_REWARDS: _apply_fund_rewards,
}


def apply_admin(state: Json, env: TxEnvelope, *, now: int) -> Optional[Json]:
    fn = ADMIN_APPLIERS.get(str(env.tx_type or "").strip().upper())
    if fn is None:
        return None
    return fn(state, env, now)


__all__ = ["ADMIN_APPLIERS", "apply_admin"]
