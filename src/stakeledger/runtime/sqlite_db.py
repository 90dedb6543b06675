# src/stakeledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from stakeledger.ledger.state import empty_state

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Non-JSON types must fail here rather than be coerced (no default=str), so
    a Decimal or Fraction leaking into the ledger is caught at write time.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except ValueError:
        return int(default)


class SqliteDB:
    """SQLite manager for the settlement authority.

    Design goals:
      - single durable DB file for the ledger snapshot + settled receipts
      - one writer at a time (BEGIN IMMEDIATE), any number of readers (WAL)
      - cross-thread safe by never sharing connections

    SQLite allows only one writer. Under contention BEGIN IMMEDIATE can
    transiently fail with "database is locked"; write_tx() retries with
    bounded backoff.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with STAKELEDGER_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("STAKELEDGER_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("STAKELEDGER_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("STAKELEDGER_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # BEGIN/COMMIT managed by write_tx()
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode and mode != "wal" and mode != "memory":
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = max(0, _env_int("STAKELEDGER_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  config_version INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS settlements (
                  tx_id TEXT PRIMARY KEY,
                  tx_type TEXT NOT NULL,
                  signer TEXT NOT NULL,
                  receipt_json TEXT NOT NULL,
                  settled_ts INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_settlements_signer ON settlements(signer);")

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except ValueError:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    def _backoff(self, attempt: int) -> None:
        base_sleep = max(0.001, float(_env_int("STAKELEDGER_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("STAKELEDGER_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)
        sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
        time.sleep(sleep_s * (0.5 + random.random()))

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE until a deadline
          - exponential backoff with jitter
          - then raise (fail closed)
        """
        deadline_ts = _now_ms() + max(250, _env_int("STAKELEDGER_SQLITE_WRITE_DEADLINE_MS", 30_000))

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    self._backoff(attempt)
                    attempt += 1

            try:
                yield con

                c_attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        self._backoff(c_attempt)
                        c_attempt += 1
            except BaseException:
                con.execute("ROLLBACK;")
                raise


class SqliteLedgerStore:
    """Ledger snapshot + settled-receipt index persisted in SQLite.

    This provides:
      - read(): latest ledger snapshot (initialized empty on first use)
      - settle(tx_id, mut): read-modify-write of the snapshot and insertion of
        the receipt inside ONE write transaction; returns the stored receipt
        instead of re-applying when tx_id is already settled
      - receipt(tx_id): settled receipt lookup
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()
        self._ensure_row()

    def _ensure_row(self) -> None:
        with self._db.write_tx() as con:
            row = con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone()
            if row is None:
                self._write_row(con, empty_state())

    @staticmethod
    def _config_version(st: Json) -> int:
        cfg = st.get("config")
        if isinstance(cfg, dict):
            try:
                return int(cfg.get("version", 0))
            except (TypeError, ValueError):
                return 0
        return 0

    def _write_row(self, con: sqlite3.Connection, st: Json) -> None:
        payload = _canon_json(st)
        con.execute(
            """
            INSERT INTO ledger_state(id, config_version, state_json, updated_ts_ms)
            VALUES(1, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              config_version=excluded.config_version,
              state_json=excluded.state_json,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (self._config_version(st), payload, _now_ms()),
        )

    @staticmethod
    def _read_row(con: sqlite3.Connection) -> Json:
        row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError("sqlite ledger_state is missing")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("ledger_state is not a JSON object")
        return st

    @staticmethod
    def _read_receipt(con: sqlite3.Connection, tx_id: str) -> Optional[Json]:
        row = con.execute("SELECT receipt_json FROM settlements WHERE tx_id=? LIMIT 1;", (str(tx_id),)).fetchone()
        if row is None:
            return None
        rec = json.loads(str(row["receipt_json"]))
        return rec if isinstance(rec, dict) else None

    def read(self) -> Json:
        with self._db.connection() as con:
            return self._read_row(con)

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._db.write_tx() as con:
            self._write_row(con, st)

    def receipt(self, tx_id: str) -> Optional[Json]:
        with self._db.connection() as con:
            return self._read_receipt(con, tx_id)

    def settle(self, *, tx_id: str, tx_type: str, signer: str, mut: Callable[[Json], Json]) -> tuple[bool, Json]:
        """Apply `mut` and record its receipt atomically.

        Returns (already_settled, receipt). `mut` mutates the snapshot in place
        and returns the receipt; if it raises, nothing is written.
        """
        with self._db.write_tx() as con:
            prior = self._read_receipt(con, tx_id)
            if prior is not None:
                return True, prior

            st = self._read_row(con)
            receipt = mut(st)
            st["settled_count"] = int(st.get("settled_count", 0) or 0) + 1

            self._write_row(con, st)
            con.execute(
                "INSERT INTO settlements(tx_id, tx_type, signer, receipt_json, settled_ts) VALUES(?, ?, ?, ?, ?);",
                (str(tx_id), str(tx_type), str(signer), _canon_json(receipt), int(receipt.get("settled_at", 0) or 0)),
            )
            return False, receipt

    def settled_for(self, signer: str, *, limit: int = 50) -> list[Json]:
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT receipt_json FROM settlements WHERE signer=? ORDER BY settled_ts DESC, tx_id LIMIT ?;",
                (str(signer), max(1, int(limit))),
            ).fetchall()
        out: list[Json] = []
        for row in rows:
            rec = json.loads(str(row["receipt_json"]))
            if isinstance(rec, dict):
                out.append(rec)
        return out
