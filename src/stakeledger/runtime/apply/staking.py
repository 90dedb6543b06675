# src/stakeledger/runtime/apply/staking.py
from __future__ import annotations

"""
Staking domain apply semantics.

State machine per owner:

    Unstaked --STAKE--> Staked --STAKE (top-up)--> Staked
    Staked   --HARVEST--> Staked
    Staked   --UNSTAKE (partial)--> Staked
    Staked   --UNSTAKE (full)--> Unstaked (dormant; history kept)

Every check runs before the first write. The executor also applies on a
deep copy, so a rejection leaves the ledger untouched either way.
"""

from typing import Any, Dict, Optional

from stakeledger.ledger import rewards, thresholds
from stakeledger.ledger.constants import U64_MAX
from stakeledger.ledger.types import StakingAccount, config_from_state
from stakeledger.runtime.errors import (
    InsufficientPrincipal,
    InsufficientRewardPool,
    InvalidAmount,
    NoStakingAccount,
    Overflow,
)
from stakeledger.runtime.tx_types import TX_HARVEST, TX_STAKE, TX_UNSTAKE, TxEnvelope, transfer

Json = Dict[str, Any]

TOKEN_STAKE = "stake_token"
TOKEN_REWARD = "reward_token"


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return int(default)


def _payload_amount(env: TxEnvelope) -> int:
    raw = _as_dict(env.payload).get("amount_raw")
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidAmount("amount_raw_required", {"tx_type": env.tx_type, "amount_raw": repr(raw)})
    if raw <= 0:
        raise InvalidAmount("amount_must_be_positive", {"tx_type": env.tx_type, "amount_raw": int(raw)})
    if raw > U64_MAX:
        raise Overflow("amount_exceeds_u64", {"tx_type": env.tx_type, "amount_raw": int(raw), "max": U64_MAX})
    return int(raw)


def _ensure_root_dict(state: Json, key: str) -> Json:
    cur = state.get(key)
    if not isinstance(cur, dict):
        cur = {}
        state[key] = cur
    return cur


def _vault(state: Json) -> Json:
    v = _ensure_root_dict(state, "vault")
    v.setdefault("staked_total_raw", 0)
    v.setdefault("reward_pool_raw", 0)
    v.setdefault("total_harvested_raw", 0)
    v.setdefault("active_stakers", 0)
    return v


def _wallet(state: Json, owner: str) -> Json:
    wallets = _ensure_root_dict(state, "wallets")
    w = wallets.get(owner)
    if not isinstance(w, dict):
        w = {"stake_token_raw": 0, "reward_token_raw": 0}
        wallets[owner] = w
    return w


def _load_account(state: Json, owner: str) -> Optional[StakingAccount]:
    rec = _ensure_root_dict(state, "accounts").get(owner)
    if not isinstance(rec, dict):
        return None
    return StakingAccount.from_json(owner, rec)


def _store_account(state: Json, acct: StakingAccount) -> None:
    _ensure_root_dict(state, "accounts")[acct.owner] = acct.to_json()


def _checked_add(a: int, b: int, *, field: str) -> int:
    out = int(a) + int(b)
    if out > U64_MAX:
        raise Overflow(f"{field}_exceeds_u64", {"field": field, "current": int(a), "add": int(b), "max": U64_MAX})
    return out


def _require_pool(state: Json, reward_raw: int) -> None:
    pool = _as_int(_vault(state).get("reward_pool_raw"), 0)
    if reward_raw > pool:
        raise InsufficientRewardPool(reward_raw=reward_raw, reward_pool_raw=pool)


def _apply_stake(state: Json, env: TxEnvelope, now: int) -> Json:
    cfg = config_from_state(state)
    amount = _payload_amount(env)
    thresholds.check(amount, cfg.stake_threshold_raw, operation=thresholds.OP_STAKE)

    owner = env.signer
    prev = _load_account(state, owner)
    vault = _vault(state)
    new_total = _checked_add(_as_int(vault.get("staked_total_raw")), amount, field="staked_total")

    if prev is None or not prev.is_staked:
        # Fresh or dormant: nothing is pending on zero principal, so the clock restarts.
        # A skewed clock must not move a dormant account's timestamps backwards.
        restart = int(now) if prev is None else max(prev.last_harvest_time, int(now))
        acct = StakingAccount(
            owner=owner,
            staked_amount_raw=amount,
            stake_start_time=restart,
            last_harvest_time=restart,
            total_harvested_raw=prev.total_harvested_raw if prev is not None else 0,
        )
        created = prev is None
        activated = True
    else:
        # Top-up keeps last_harvest_time so pending reward on the old principal survives.
        acct = StakingAccount(
            owner=owner,
            staked_amount_raw=_checked_add(prev.staked_amount_raw, amount, field="staked_amount"),
            stake_start_time=prev.stake_start_time,
            last_harvest_time=prev.last_harvest_time,
            total_harvested_raw=prev.total_harvested_raw,
        )
        created = False
        activated = False

    _store_account(state, acct)
    vault["staked_total_raw"] = new_total
    if activated:
        vault["active_stakers"] = _as_int(vault.get("active_stakers")) + 1

    return {
        "applied": TX_STAKE,
        "owner": owner,
        "amount_raw": amount,
        "created": created,
        "staked_amount_raw": acct.staked_amount_raw,
        "transfers": [transfer(TOKEN_STAKE, "in", owner, amount)],
    }


def _apply_harvest(state: Json, env: TxEnvelope, now: int) -> Json:
    cfg = config_from_state(state)
    owner = env.signer
    acct = _load_account(state, owner)
    if acct is None or not acct.is_staked:
        raise NoStakingAccount(owner=owner)

    reward_raw, elapsed = rewards.pending_reward(acct, cfg, now)
    thresholds.check(reward_raw, cfg.harvest_threshold_raw, operation=thresholds.OP_HARVEST)
    _require_pool(state, reward_raw)
    total = _checked_add(acct.total_harvested_raw, reward_raw, field="total_harvested")
    program_harvested = _checked_add(
        _as_int(_vault(state).get("total_harvested_raw")), reward_raw, field="program_total_harvested"
    )

    wallet = _wallet(state, owner)
    credited = _checked_add(_as_int(wallet.get("reward_token_raw")), reward_raw, field="reward_token_balance")

    # Writes start here.
    _store_account(
        state,
        StakingAccount(
            owner=owner,
            staked_amount_raw=acct.staked_amount_raw,
            stake_start_time=acct.stake_start_time,
            last_harvest_time=max(acct.last_harvest_time, int(now)),
            total_harvested_raw=total,
        ),
    )
    vault = _vault(state)
    vault["reward_pool_raw"] = _as_int(vault.get("reward_pool_raw")) - reward_raw
    vault["total_harvested_raw"] = program_harvested
    wallet["reward_token_raw"] = credited

    return {
        "applied": TX_HARVEST,
        "owner": owner,
        "reward_raw": reward_raw,
        "elapsed_seconds": elapsed,
        "rate_per_second_encoded": cfg.rate_per_second_encoded,
        "reward_model": cfg.reward_model,
        "config_version": cfg.version,
        "total_harvested_raw": total,
        "transfers": [transfer(TOKEN_REWARD, "out", owner, reward_raw)],
    }


def _apply_unstake(state: Json, env: TxEnvelope, now: int) -> Json:
    cfg = config_from_state(state)
    amount = _payload_amount(env)
    owner = env.signer
    acct = _load_account(state, owner)
    if acct is None or not acct.is_staked:
        raise NoStakingAccount(owner=owner)
    if amount > acct.staked_amount_raw:
        raise InsufficientPrincipal(amount_raw=amount, staked_amount_raw=acct.staked_amount_raw)
    thresholds.check(amount, cfg.unstake_threshold_raw, operation=thresholds.OP_UNSTAKE)

    # Implicit harvest: same computation as HARVEST, not threshold-gated.
    reward_raw, elapsed = rewards.pending_reward(acct, cfg, now)
    _require_pool(state, reward_raw)
    total = _checked_add(acct.total_harvested_raw, reward_raw, field="total_harvested")
    program_harvested = _checked_add(
        _as_int(_vault(state).get("total_harvested_raw")), reward_raw, field="program_total_harvested"
    )

    wallet = _wallet(state, owner)
    reward_credit = _checked_add(_as_int(wallet.get("reward_token_raw")), reward_raw, field="reward_token_balance")
    stake_credit = _checked_add(_as_int(wallet.get("stake_token_raw")), amount, field="stake_token_balance")

    remaining = acct.staked_amount_raw - amount

    # Writes start here.
    _store_account(
        state,
        StakingAccount(
            owner=owner,
            staked_amount_raw=remaining,
            stake_start_time=acct.stake_start_time,
            last_harvest_time=max(acct.last_harvest_time, int(now)),
            total_harvested_raw=total,
        ),
    )
    vault = _vault(state)
    vault["staked_total_raw"] = max(0, _as_int(vault.get("staked_total_raw")) - amount)
    vault["reward_pool_raw"] = _as_int(vault.get("reward_pool_raw")) - reward_raw
    vault["total_harvested_raw"] = program_harvested
    wallet["reward_token_raw"] = reward_credit
    wallet["stake_token_raw"] = stake_credit
    if remaining == 0:
        vault["active_stakers"] = max(0, _as_int(vault.get("active_stakers")) - 1)

    transfers = [transfer(TOKEN_STAKE, "out", owner, amount)]
    if reward_raw > 0:
        transfers.append(transfer(TOKEN_REWARD, "out", owner, reward_raw))

    return {
        "applied": TX_UNSTAKE,
        "owner": owner,
        "amount_raw": amount,
        "reward_raw": reward_raw,
        "elapsed_seconds": elapsed,
        "staked_amount_raw": remaining,
        "dormant": remaining == 0,
        "total_harvested_raw": total,
        "transfers": transfers,
    }


STAKING_TX_TYPES = {TX_STAKE, TX_UNSTAKE, TX_HARVEST}


def apply_staking(state: Json, env: TxEnvelope, *, now: int) -> Optional[Json]:
    """Apply STAKE / HARVEST / UNSTAKE. Returns None if tx_type is not ours."""
    t = str(env.tx_type or "").strip().upper()
    if t not in STAKING_TX_TYPES:
        return None

    if t == TX_STAKE:
        return _apply_stake(state, env, now)
    if t == TX_HARVEST:
        return _apply_harvest(state, env, now)
    return _apply_unstake(state, env, now)


__all__ = ["STAKING_TX_TYPES", "TOKEN_REWARD", "TOKEN_STAKE", "apply_staking"]
