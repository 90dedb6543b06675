from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator

Json = Dict[str, Any]

TX_INITIALIZE_PROGRAM = "INITIALIZE_PROGRAM"
TX_UPDATE_CONFIG = "UPDATE_CONFIG"
TX_FUND_REWARDS = "FUND_REWARDS"
TX_STAKE = "STAKE"
TX_UNSTAKE = "UNSTAKE"
TX_HARVEST = "HARVEST"

ADMIN_TX_TYPES = frozenset({TX_INITIALIZE_PROGRAM, TX_UPDATE_CONFIG, TX_FUND_REWARDS})
USER_TX_TYPES = frozenset({TX_STAKE, TX_UNSTAKE, TX_HARVEST})
SUPPORTED_TX_TYPES = ADMIN_TX_TYPES | USER_TX_TYPES

STATUS_SETTLED = "settled"
STATUS_ALREADY_SETTLED = "already_settled"


@dataclass(frozen=True)
class TxEnvelope:
    tx_type: str
    signer: str
    nonce: int
    payload: Dict[str, Any]
    sig: str = ""

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")).strip().upper(),
            signer=str(j.get("signer", "")).strip(),
            nonce=int(j.get("nonce", 0)),
            payload=dict(j.get("payload", {}) or {}),
            sig=str(j.get("sig", "") or ""),
        )

    def to_json(self) -> Json:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "nonce": int(self.nonce),
            "payload": dict(self.payload),
            "sig": self.sig,
        }


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a submission. A duplicate is a success, not an error."""

    tx_id: str
    status: str
    receipt: Json = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in {STATUS_SETTLED, STATUS_ALREADY_SETTLED}

    @property
    def already_settled(self) -> bool:
        return self.status == STATUS_ALREADY_SETTLED

    def __iter__(self) -> Iterator[Any]:
        """Allow `tx_id, receipt = executor.submit(...)` unpacking."""
        yield self.tx_id
        yield self.receipt

    def to_json(self) -> Json:
        return {"ok": self.ok, "tx_id": self.tx_id, "status": self.status, "receipt": dict(self.receipt)}


def transfer(token: str, direction: str, owner: str, amount_raw: int) -> Json:
    return {"token": str(token), "direction": str(direction), "owner": str(owner), "amount_raw": int(amount_raw)}


__all__ = [
    "ADMIN_TX_TYPES",
    "STATUS_ALREADY_SETTLED",
    "STATUS_SETTLED",
    "SUPPORTED_TX_TYPES",
    "SettlementResult",
    "TX_FUND_REWARDS",
    "TX_HARVEST",
    "TX_INITIALIZE_PROGRAM",
    "TX_STAKE",
    "TX_UNSTAKE",
    "TX_UPDATE_CONFIG",
    "TxEnvelope",
    "USER_TX_TYPES",
    "transfer",
]
