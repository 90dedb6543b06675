from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from stakeledger.crypto.sig import verify_tx_signature
from stakeledger.ledger import rewards, thresholds, units
from stakeledger.ledger.state import LedgerView
from stakeledger.ledger.types import ProgramConfig, RewardPreview, StakingAccount
from stakeledger.runtime import metrics
from stakeledger.runtime.domain_apply import apply_tx_atomic
from stakeledger.runtime.errors import ApplyError, InvalidSignature, NoStakingAccount, Overflow
from stakeledger.runtime.event_log import log_event
from stakeledger.runtime.node_config import load_node_config
from stakeledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from stakeledger.runtime.tx_id import compute_tx_id_from_envelope
from stakeledger.runtime.tx_types import (
    STATUS_ALREADY_SETTLED,
    STATUS_SETTLED,
    SettlementResult,
    TxEnvelope,
)

Json = Dict[str, Any]

log = logging.getLogger("stakeledger.settlement")


def _now_s() -> int:
    return int(time.time())


class SettlementExecutor:
    """Settlement authority for one staking program, persisted in SQLite.

    Every mutation goes through submit(): signature check, then one write
    transaction that either returns the stored receipt for a known tx_id or
    applies the envelope and records its receipt. Reads never write.
    """

    def __init__(
        self,
        *,
        db_path: str,
        program_id: str,
        allow_unsigned_txs: bool = False,
        now_fn: Optional[Callable[[], int]] = None,
    ) -> None:
        self.db_path = str(db_path)
        self.program_id = str(program_id)
        self.allow_unsigned_txs = bool(allow_unsigned_txs)
        self._now_fn = now_fn or _now_s

        self._db = SqliteDB(path=self.db_path)
        self._store = SqliteLedgerStore(db=self._db)

        # SQLite serializes writers across processes; this keeps threads in
        # one process from queueing on the writer lock's retry loop.
        self._lock = threading.Lock()

    # ----------------------------
    # Clock + snapshots
    # ----------------------------

    def now(self) -> int:
        return int(self._now_fn())

    def read_state(self) -> Json:
        return self._store.read()

    def view(self) -> LedgerView:
        return LedgerView.from_ledger(self._store.read())

    # ----------------------------
    # Settlement
    # ----------------------------

    def _check_signature(self, tx: TxEnvelope) -> None:
        if self.allow_unsigned_txs:
            return
        ok, details = verify_tx_signature(
            program_id=self.program_id,
            tx_type=tx.tx_type,
            signer=tx.signer,
            nonce=tx.nonce,
            payload=tx.payload,
            sig=tx.sig,
        )
        if not ok:
            raise InvalidSignature(str(details.get("reason") or "invalid_signature"), {"signer": tx.signer})

    @staticmethod
    def _normalize(env: Any) -> TxEnvelope:
        try:
            return TxEnvelope.from_json(env)
        except (TypeError, ValueError) as e:
            raise ApplyError("invalid_tx", "malformed_envelope", {"error": str(e)}) from e

    def submit(self, env: Any) -> SettlementResult:
        """Settle one envelope. Raises ApplyError on rejection; nothing is recorded then."""
        tx = self._normalize(env)
        tx_id = compute_tx_id_from_envelope(self.program_id, tx)

        try:
            self._check_signature(tx)
            now = self.now()
            gauges: Json = {}

            def _mut(st: Json) -> Json:
                meta = apply_tx_atomic(st, tx, now=now)
                view = LedgerView.from_ledger(st)
                gauges[metrics.STAKED_TOTAL_RAW] = view.staked_total_raw
                gauges[metrics.REWARD_POOL_RAW] = view.reward_pool_raw
                if view.initialized:
                    gauges[metrics.CONFIG_VERSION] = view.program_config().version
                receipt: Json = {
                    "tx_id": tx_id,
                    "tx_type": tx.tx_type,
                    "signer": tx.signer,
                    "nonce": int(tx.nonce),
                    "settled_at": int(now),
                }
                receipt.update(meta)
                return receipt

            with self._lock:
                already, receipt = self._store.settle(tx_id=tx_id, tx_type=tx.tx_type, signer=tx.signer, mut=_mut)
        except Overflow as e:
            metrics.inc_counter(metrics.OVERFLOW_TOTAL)
            metrics.inc_counter(metrics.REJECTED_TOTAL)
            log_event(
                log,
                "settlement_overflow",
                level=logging.WARNING,
                tx_id=tx_id,
                tx_type=tx.tx_type,
                signer=tx.signer,
                reason=e.reason,
                details=e.details,
            )
            raise
        except ApplyError as e:
            metrics.inc_counter(metrics.REJECTED_TOTAL)
            metrics.inc_counter(metrics.rejected_counter(e.code))
            log_event(
                log,
                "settlement_rejected",
                tx_id=tx_id,
                tx_type=tx.tx_type,
                signer=tx.signer,
                code=e.code,
                reason=e.reason,
                details=e.details,
            )
            raise

        if already:
            metrics.inc_counter(metrics.DUPLICATE_TOTAL)
            log_event(log, "settlement_duplicate", tx_id=tx_id, tx_type=tx.tx_type, signer=tx.signer)
            return SettlementResult(tx_id=tx_id, status=STATUS_ALREADY_SETTLED, receipt=receipt)

        metrics.inc_counter(metrics.SETTLED_TOTAL)
        for name, value in gauges.items():
            metrics.set_gauge(name, int(value))
        log_event(
            log,
            "settlement_settled",
            tx_id=tx_id,
            tx_type=tx.tx_type,
            signer=tx.signer,
            transfers=receipt.get("transfers", []),
        )
        return SettlementResult(tx_id=tx_id, status=STATUS_SETTLED, receipt=receipt)

    def tx_status(self, tx_id: str) -> Json:
        receipt = self._store.receipt(str(tx_id))
        if receipt is None:
            return {"ok": True, "tx_id": str(tx_id), "status": "unknown"}
        return {"ok": True, "tx_id": str(tx_id), "status": STATUS_SETTLED, "receipt": receipt}

    def settlements_for(self, owner: str, *, limit: int = 50) -> list[Json]:
        return self._store.settled_for(str(owner), limit=limit)

    # ----------------------------
    # Reads
    # ----------------------------

    def get_config(self) -> ProgramConfig:
        return self.view().program_config()

    def get_account(self, owner: str) -> Optional[StakingAccount]:
        return self.view().get_account(owner)

    def get_wallet(self, owner: str) -> Json:
        return self.view().get_wallet(owner)

    def get_stats(self) -> Json:
        return self.view().stats()

    def get_preview(self, owner: str, *, now: Optional[int] = None) -> RewardPreview:
        """Pending reward at `now`, from the same function settlement uses.

        The raw value equals what HARVEST would transfer at the same instant
        under the same config.
        """
        view = self.view()
        cfg = view.program_config()
        acct = view.get_account(owner)
        if acct is None:
            raise NoStakingAccount(owner=str(owner))

        at = self.now() if now is None else int(now)
        try:
            pending, elapsed = rewards.pending_reward(acct, cfg, at)
        except Overflow as e:
            log_event(log, "preview_overflow", level=logging.WARNING, owner=str(owner), details=e.details)
            raise

        metrics.inc_counter(metrics.PREVIEW_TOTAL)
        harvestable = (
            acct.is_staked
            and thresholds.passes(pending, cfg.harvest_threshold_raw)
            and pending <= view.reward_pool_raw
        )
        return RewardPreview(
            owner=str(owner),
            pending_raw=pending,
            pending_display=units.format_display(pending, cfg.decimals),
            elapsed_seconds=elapsed,
            computed_at=at,
            config_version=cfg.version,
            reward_model=cfg.reward_model,
            harvestable=bool(harvestable),
            harvest_threshold_raw=cfg.harvest_threshold_raw,
            staked_amount_raw=acct.staked_amount_raw,
        )

    @classmethod
    def from_env(cls) -> "SettlementExecutor":
        cfg = load_node_config()
        return cls(
            db_path=cfg.db_path,
            program_id=cfg.program_id,
            allow_unsigned_txs=cfg.allow_unsigned_txs,
        )


__all__ = ["SettlementExecutor"]
