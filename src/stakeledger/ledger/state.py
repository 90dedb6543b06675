from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from stakeledger.ledger.types import ProgramConfig, StakingAccount, config_from_state

Json = Dict[str, Any]

CURRENT_STATE_VERSION = 1


def empty_state() -> Json:
    return {
        "state_version": CURRENT_STATE_VERSION,
        "config": None,
        "accounts": {},
        "wallets": {},
        "vault": {
            "staked_total_raw": 0,
            "reward_pool_raw": 0,
            "total_harvested_raw": 0,
            "active_stakers": 0,
        },
        "settled_count": 0,
    }


def ensure_state(state: Json) -> Json:
    """Backfill missing roots in place (never overwrites existing values)."""
    if not isinstance(state, dict):
        raise ValueError("ledger state must be a dict")
    state.setdefault("state_version", CURRENT_STATE_VERSION)
    state.setdefault("config", None)
    for key in ("accounts", "wallets"):
        if not isinstance(state.get(key), dict):
            state[key] = {}
    vault = state.get("vault")
    if not isinstance(vault, dict):
        vault = {}
        state["vault"] = vault
    vault.setdefault("staked_total_raw", 0)
    vault.setdefault("reward_pool_raw", 0)
    vault.setdefault("total_harvested_raw", 0)
    vault.setdefault("active_stakers", 0)
    state.setdefault("settled_count", 0)
    return state


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only ledger view used by previews and the API.
    """

    config: Optional[Json] = None
    accounts: Dict[str, Any] = field(default_factory=dict)
    wallets: Dict[str, Any] = field(default_factory=dict)
    vault: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "LedgerView":
        st = ensure_state(copy.deepcopy(state) if isinstance(state, dict) else {})
        return cls(
            config=st.get("config") if isinstance(st.get("config"), dict) else None,
            accounts=st["accounts"],
            wallets=st["wallets"],
            vault=st["vault"],
        )

    @property
    def initialized(self) -> bool:
        return isinstance(self.config, dict) and bool(self.config)

    def program_config(self) -> ProgramConfig:
        return config_from_state({"config": self.config})

    def get_account(self, owner: str) -> Optional[StakingAccount]:
        rec = self.accounts.get(str(owner))
        if not isinstance(rec, dict):
            return None
        return StakingAccount.from_json(str(owner), rec)

    def get_wallet(self, owner: str) -> Json:
        w = self.wallets.get(str(owner))
        if not isinstance(w, dict):
            return {"stake_token_raw": 0, "reward_token_raw": 0}
        return {
            "stake_token_raw": int(w.get("stake_token_raw", 0) or 0),
            "reward_token_raw": int(w.get("reward_token_raw", 0) or 0),
        }

    @property
    def reward_pool_raw(self) -> int:
        return int(self.vault.get("reward_pool_raw", 0) or 0)

    @property
    def staked_total_raw(self) -> int:
        return int(self.vault.get("staked_total_raw", 0) or 0)

    def stats(self) -> Json:
        """Program-wide totals; `accounts_total` includes dormant accounts."""
        return {
            "staked_total_raw": self.staked_total_raw,
            "reward_pool_raw": self.reward_pool_raw,
            "total_harvested_raw": int(self.vault.get("total_harvested_raw", 0) or 0),
            "active_stakers": int(self.vault.get("active_stakers", 0) or 0),
            "accounts_total": len(self.accounts),
        }


__all__ = ["CURRENT_STATE_VERSION", "LedgerView", "Json", "empty_state", "ensure_state"]
