from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

Json = Dict[str, Any]


@dataclass
class ApplyError(Exception):
    """Canonical error type for reward math, apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    def to_json(self) -> Json:
        return {
            "code": str(self.code),
            "reason": str(self.reason),
            "details": self.details if isinstance(self.details, dict) else ({} if self.details is None else {"detail": self.details}),
        }


class ConfigurationError(ApplyError):
    """Program config missing, not yet initialized, or initialized twice."""

    def __init__(self, reason: str = "program_not_initialized", details: Optional[Json] = None) -> None:
        super().__init__("configuration_error", reason, details or {})


class InvalidRate(ApplyError):
    def __init__(self, reason: str = "rate_out_of_range", details: Optional[Json] = None) -> None:
        super().__init__("invalid_rate", reason, details or {})


class InvalidAmount(ApplyError):
    def __init__(self, reason: str = "invalid_amount", details: Optional[Json] = None) -> None:
        super().__init__("invalid_amount", reason, details or {})


class BelowThreshold(ApplyError):
    """Amount is under the configured inclusive minimum for an operation."""

    def __init__(self, *, operation: str, amount_raw: int, threshold_raw: int) -> None:
        super().__init__(
            "below_threshold",
            f"{operation}_below_threshold",
            {
                "operation": str(operation),
                "amount_raw": int(amount_raw),
                "threshold_raw": int(threshold_raw),
                "shortfall_raw": int(threshold_raw) - int(amount_raw),
            },
        )

    @property
    def amount_raw(self) -> int:
        return int(self.details["amount_raw"])

    @property
    def threshold_raw(self) -> int:
        return int(self.details["threshold_raw"])


class InsufficientPrincipal(ApplyError):
    def __init__(self, *, amount_raw: int, staked_amount_raw: int) -> None:
        super().__init__(
            "insufficient_principal",
            "unstake_exceeds_principal",
            {"amount_raw": int(amount_raw), "staked_amount_raw": int(staked_amount_raw)},
        )


class Overflow(ApplyError):
    """Arithmetic would leave the safe raw-amount range. Fatal to one operation only."""

    def __init__(self, reason: str = "arithmetic_overflow", details: Optional[Json] = None) -> None:
        super().__init__("overflow", reason, details or {})


class NoStakingAccount(ApplyError):
    def __init__(self, *, owner: str) -> None:
        super().__init__("no_staking_account", "account_not_staked", {"owner": str(owner)})


class InsufficientRewardPool(ApplyError):
    def __init__(self, *, reward_raw: int, reward_pool_raw: int) -> None:
        super().__init__(
            "insufficient_reward_pool",
            "reward_pool_cannot_cover_payout",
            {"reward_raw": int(reward_raw), "reward_pool_raw": int(reward_pool_raw)},
        )


class Unauthorized(ApplyError):
    def __init__(self, reason: str = "admin_required", details: Optional[Json] = None) -> None:
        super().__init__("forbidden", reason, details or {})


class InvalidSignature(ApplyError):
    def __init__(self, reason: str = "invalid_signature", details: Optional[Json] = None) -> None:
        super().__init__("invalid_signature", reason, details or {})


class UnknownOperation(ApplyError):
    def __init__(self, *, tx_type: str) -> None:
        super().__init__("tx_unimplemented", "tx_type_not_implemented", {"tx_type": str(tx_type)})


__all__ = [
    "ApplyError",
    "BelowThreshold",
    "ConfigurationError",
    "InsufficientPrincipal",
    "InsufficientRewardPool",
    "InvalidAmount",
    "InvalidRate",
    "InvalidSignature",
    "NoStakingAccount",
    "Overflow",
    "Unauthorized",
    "UnknownOperation",
]
