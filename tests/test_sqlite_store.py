from __future__ import annotations

import multiprocessing as mp
from pathlib import Path

import pytest

from stakeledger.ledger.state import empty_state
from stakeledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore


def _bump(st: dict) -> dict:
    st["vault"]["reward_pool_raw"] = int(st["vault"]["reward_pool_raw"]) + 1
    return {"settled_at": 0}


def _worker(db_path: str, start: int, n: int) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=db_path))
    for i in range(start, start + n):
        store.settle(tx_id=f"tx-{i}", tx_type="FUND_REWARDS", signer="admin", mut=_bump)


def test_store_initializes_empty_ledger(tmp_path: Path) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "a" / "ledger.db")))
    assert store.read() == empty_state()
    assert store.receipt("missing") is None


def test_settle_is_idempotent_per_tx_id(tmp_path: Path) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))

    already, rec = store.settle(tx_id="t1", tx_type="X", signer="s", mut=_bump)
    assert already is False
    already, rec2 = store.settle(tx_id="t1", tx_type="X", signer="s", mut=_bump)
    assert already is True
    assert rec2 == rec

    st = store.read()
    assert st["vault"]["reward_pool_raw"] == 1
    assert st["settled_count"] == 1


def test_failed_mutation_writes_nothing(tmp_path: Path) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))

    def _boom(st: dict) -> dict:
        st["vault"]["reward_pool_raw"] = 999
        raise RuntimeError("rejected")

    with pytest.raises(RuntimeError):
        store.settle(tx_id="t1", tx_type="X", signer="s", mut=_boom)

    assert store.read()["vault"]["reward_pool_raw"] == 0
    assert store.receipt("t1") is None


def test_settle_is_cross_process_safe(tmp_path: Path) -> None:
    """Several processes settle disjoint tx ids against one DB; none may be lost."""
    db_path = str(tmp_path / "ledger.db")
    store = SqliteLedgerStore(db=SqliteDB(path=db_path))

    procs: list[mp.Process] = []
    workers = 4
    per = 50

    for w in range(workers):
        pr = mp.Process(target=_worker, args=(db_path, w * per, per))
        pr.start()
        procs.append(pr)

    for pr in procs:
        pr.join(60)
        assert pr.exitcode == 0

    final = store.read()
    assert final["vault"]["reward_pool_raw"] == workers * per
    assert final["settled_count"] == workers * per


def test_schema_version_mismatch_refuses_to_start(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "ledger.db"))
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        SqliteLedgerStore(db=db)
