"""stakeledger.ledger.types

Typed views over the JSON-backed ledger snapshot.

The persisted ledger is a plain JSON object (see runtime/sqlite_db.py). These
dataclasses are the typed, validated shape of its records:
  - ProgramConfig: the single admin-owned config root ("config")
  - StakingAccount: one entry of "accounts"
  - RewardPreview: derived, never persisted
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from stakeledger.ledger import rates
from stakeledger.ledger.constants import (
    MAX_TOKEN_DECIMALS,
    REWARD_MODELS,
    U64_MAX,
)
from stakeledger.runtime.errors import ConfigurationError, InvalidAmount

Json = Dict[str, Any]


def _coerce_int(v: Any, *, field: str) -> int:
    # bool is an int subclass; disallow it explicitly
    if isinstance(v, bool):
        raise InvalidAmount("field_not_integer", {"field": field, "value": v})
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise InvalidAmount("field_not_integer", {"field": field, "value": repr(v)}) from e


def _raw_amount(v: Any, *, field: str) -> int:
    i = _coerce_int(v, field=field)
    if i < 0 or i > U64_MAX:
        raise InvalidAmount("raw_amount_out_of_range", {"field": field, "value": i, "max": U64_MAX})
    return i


@dataclass(frozen=True)
class ProgramConfig:
    rate_per_second_encoded: int
    harvest_threshold_raw: int
    stake_threshold_raw: int
    unstake_threshold_raw: int
    admin: str
    reward_model: str
    decimals: int
    version: int = 1
    updated_at: int = 0

    def validate(self) -> "ProgramConfig":
        rates.validate_encoded(self.rate_per_second_encoded)
        for name in ("harvest_threshold_raw", "stake_threshold_raw", "unstake_threshold_raw"):
            _raw_amount(getattr(self, name), field=name)
        if not str(self.admin or "").strip():
            raise ConfigurationError("admin_missing", {})
        if self.reward_model not in REWARD_MODELS:
            raise ConfigurationError("unknown_reward_model", {"reward_model": self.reward_model, "allowed": list(REWARD_MODELS)})
        if self.decimals < 0 or self.decimals > MAX_TOKEN_DECIMALS:
            raise ConfigurationError("decimals_out_of_range", {"decimals": self.decimals})
        if self.version < 1:
            raise ConfigurationError("config_version_invalid", {"version": self.version})
        return self

    def to_json(self) -> Json:
        return asdict(self)

    @classmethod
    def from_json(cls, d: Any) -> "ProgramConfig":
        if not isinstance(d, dict) or not d:
            raise ConfigurationError("program_not_initialized", {})
        try:
            cfg = cls(
                rate_per_second_encoded=_coerce_int(d.get("rate_per_second_encoded"), field="rate_per_second_encoded"),
                harvest_threshold_raw=_coerce_int(d.get("harvest_threshold_raw", 0), field="harvest_threshold_raw"),
                stake_threshold_raw=_coerce_int(d.get("stake_threshold_raw", 0), field="stake_threshold_raw"),
                unstake_threshold_raw=_coerce_int(d.get("unstake_threshold_raw", 0), field="unstake_threshold_raw"),
                admin=str(d.get("admin") or ""),
                reward_model=str(d.get("reward_model") or ""),
                decimals=_coerce_int(d.get("decimals"), field="decimals"),
                version=_coerce_int(d.get("version", 1), field="version"),
                updated_at=_coerce_int(d.get("updated_at", 0), field="updated_at"),
            )
        except InvalidAmount as e:
            raise ConfigurationError("config_corrupt", e.details) from e
        return cfg.validate()

    @property
    def rate_fraction(self):
        return rates.decode(self.rate_per_second_encoded)


@dataclass(frozen=True)
class StakingAccount:
    owner: str
    staked_amount_raw: int = 0
    stake_start_time: int = 0
    last_harvest_time: int = 0
    total_harvested_raw: int = 0

    @property
    def is_staked(self) -> bool:
        return self.staked_amount_raw > 0

    @property
    def state(self) -> str:
        return "staked" if self.is_staked else "unstaked"

    def to_json(self) -> Json:
        return {
            "staked_amount_raw": int(self.staked_amount_raw),
            "stake_start_time": int(self.stake_start_time),
            "last_harvest_time": int(self.last_harvest_time),
            "total_harvested_raw": int(self.total_harvested_raw),
        }

    @classmethod
    def from_json(cls, owner: str, d: Any) -> "StakingAccount":
        if not isinstance(d, dict):
            return cls(owner=str(owner))
        return cls(
            owner=str(owner),
            staked_amount_raw=_raw_amount(d.get("staked_amount_raw", 0), field="staked_amount_raw"),
            stake_start_time=_coerce_int(d.get("stake_start_time", 0), field="stake_start_time"),
            last_harvest_time=_coerce_int(d.get("last_harvest_time", 0), field="last_harvest_time"),
            total_harvested_raw=_coerce_int(d.get("total_harvested_raw", 0), field="total_harvested_raw"),
        )


@dataclass(frozen=True)
class RewardPreview:
    owner: str
    pending_raw: int
    pending_display: str
    elapsed_seconds: int
    computed_at: int
    config_version: int
    reward_model: str
    harvestable: bool
    harvest_threshold_raw: int
    staked_amount_raw: int

    def to_json(self) -> Json:
        return asdict(self)


def account_from_state(state: Json, owner: str) -> Optional[StakingAccount]:
    accts = state.get("accounts")
    if not isinstance(accts, dict):
        return None
    rec = accts.get(str(owner))
    if not isinstance(rec, dict):
        return None
    return StakingAccount.from_json(str(owner), rec)


def config_from_state(state: Json) -> ProgramConfig:
    """Return the program config or raise ConfigurationError when absent."""
    return ProgramConfig.from_json(state.get("config"))


__all__ = [
    "Json",
    "ProgramConfig",
    "RewardPreview",
    "StakingAccount",
    "account_from_state",
    "config_from_state",
]
