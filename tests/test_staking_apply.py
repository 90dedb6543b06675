from __future__ import annotations

import copy

import pytest

from stakeledger.ledger.state import empty_state
from stakeledger.runtime.domain_apply import apply_tx, apply_tx_atomic
from stakeledger.runtime.errors import (
    ApplyError,
    BelowThreshold,
    ConfigurationError,
    InsufficientPrincipal,
    InsufficientRewardPool,
    InvalidAmount,
    NoStakingAccount,
    UnknownOperation,
)

ADMIN = "admin"
ALICE = "alice"
TOKEN = 10**9
T0 = 1_700_000_000
DAY = 86_400


def _env(tx_type: str, signer: str, payload: dict | None = None, nonce: int = 1) -> dict:
    return {"tx_type": tx_type, "signer": signer, "nonce": nonce, "payload": payload or {}}


def _program(*, harvest_thr: int = TOKEN, stake_thr: int = 10 * TOKEN, unstake_thr: int = 10 * TOKEN,
             model: str = "linear", pool: int = 1_000_000 * TOKEN) -> dict:
    st = empty_state()
    apply_tx(
        st,
        _env(
            "INITIALIZE_PROGRAM",
            ADMIN,
            {
                "rate_per_second_encoded": 12,
                "harvest_threshold_raw": harvest_thr,
                "stake_threshold_raw": stake_thr,
                "unstake_threshold_raw": unstake_thr,
                "reward_model": model,
            },
        ),
        now=T0,
    )
    if pool:
        apply_tx(st, _env("FUND_REWARDS", ADMIN, {"amount_raw": pool}), now=T0)
    return st


def _acct(st: dict, owner: str = ALICE) -> dict:
    return st["accounts"][owner]


def test_stake_creates_account_and_moves_principal_in() -> None:
    st = _program()
    meta = apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)

    assert meta["created"] is True
    assert meta["transfers"] == [{"token": "stake_token", "direction": "in", "owner": ALICE, "amount_raw": 1_000 * TOKEN}]
    assert _acct(st) == {
        "staked_amount_raw": 1_000 * TOKEN,
        "stake_start_time": T0,
        "last_harvest_time": T0,
        "total_harvested_raw": 0,
    }
    assert st["vault"]["staked_total_raw"] == 1_000 * TOKEN


def test_stake_below_threshold_rejected() -> None:
    st = _program()
    with pytest.raises(BelowThreshold) as e:
        apply_tx_atomic(st, _env("STAKE", ALICE, {"amount_raw": 10 * TOKEN - 1}), now=T0)
    assert e.value.details["operation"] == "stake"
    assert ALICE not in st["accounts"]


@pytest.mark.parametrize("amount", [0, -1, "5", 1.5, None, True])
def test_stake_amount_must_be_positive_int(amount) -> None:
    st = _program(stake_thr=0)
    with pytest.raises(InvalidAmount):
        apply_tx(st, _env("STAKE", ALICE, {"amount_raw": amount}), now=T0)


def test_top_up_keeps_pending_reward_clock() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 500 * TOKEN}, nonce=2), now=T0 + DAY)

    a = _acct(st)
    assert a["staked_amount_raw"] == 1_500 * TOKEN
    assert a["last_harvest_time"] == T0
    assert a["stake_start_time"] == T0


def test_harvest_scenario_pays_linear_reward() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    pool_before = st["vault"]["reward_pool_raw"]

    meta = apply_tx(st, _env("HARVEST", ALICE), now=T0 + DAY)

    assert meta["reward_raw"] == 10_368_000_000
    assert meta["elapsed_seconds"] == DAY
    assert _acct(st)["last_harvest_time"] == T0 + DAY
    assert _acct(st)["total_harvested_raw"] == 10_368_000_000
    assert st["wallets"][ALICE]["reward_token_raw"] == 10_368_000_000
    assert st["vault"]["reward_pool_raw"] == pool_before - 10_368_000_000


def test_harvest_below_threshold_is_atomic() -> None:
    st = _program(harvest_thr=20 * TOKEN)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    before = copy.deepcopy(st)

    with pytest.raises(BelowThreshold) as e:
        apply_tx_atomic(st, _env("HARVEST", ALICE), now=T0 + DAY)

    assert e.value.amount_raw == 10_368_000_000
    assert e.value.threshold_raw == 20 * TOKEN
    assert st == before


def test_harvest_requires_funded_pool() -> None:
    st = _program(pool=0)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    before = copy.deepcopy(st)

    with pytest.raises(InsufficientRewardPool):
        apply_tx_atomic(st, _env("HARVEST", ALICE), now=T0 + DAY)
    assert st == before


def test_harvest_without_account() -> None:
    st = _program()
    with pytest.raises(NoStakingAccount):
        apply_tx(st, _env("HARVEST", ALICE), now=T0)


def test_harvest_zero_reward_passes_zero_threshold() -> None:
    st = _program(harvest_thr=0)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    meta = apply_tx(st, _env("HARVEST", ALICE), now=T0)
    assert meta["reward_raw"] == 0


def test_clock_skew_never_moves_last_harvest_backwards() -> None:
    st = _program(harvest_thr=0)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    meta = apply_tx(st, _env("HARVEST", ALICE), now=T0 - 50)
    assert meta["reward_raw"] == 0
    assert _acct(st)["last_harvest_time"] == T0


def test_partial_unstake_harvests_implicitly() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)

    meta = apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 400 * TOKEN}), now=T0 + DAY)

    assert meta["reward_raw"] == 10_368_000_000
    assert meta["staked_amount_raw"] == 600 * TOKEN
    assert meta["dormant"] is False
    assert [t["token"] for t in meta["transfers"]] == ["stake_token", "reward_token"]
    assert st["wallets"][ALICE] == {"stake_token_raw": 400 * TOKEN, "reward_token_raw": 10_368_000_000}
    assert st["vault"]["staked_total_raw"] == 600 * TOKEN
    assert _acct(st)["last_harvest_time"] == T0 + DAY


def test_full_unstake_leaves_dormant_account() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    meta = apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0 + DAY)

    assert meta["dormant"] is True
    a = _acct(st)
    assert a["staked_amount_raw"] == 0
    assert a["total_harvested_raw"] == 10_368_000_000

    with pytest.raises(NoStakingAccount):
        apply_tx(st, _env("HARVEST", ALICE), now=T0 + 2 * DAY)


def test_restake_dormant_restarts_clock_and_keeps_history() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0 + DAY)

    meta = apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 100 * TOKEN}, nonce=3), now=T0 + 5 * DAY)

    assert meta["created"] is False
    a = _acct(st)
    assert a["stake_start_time"] == T0 + 5 * DAY
    assert a["last_harvest_time"] == T0 + 5 * DAY
    assert a["total_harvested_raw"] == 10_368_000_000


def test_unstake_checks_principal_before_threshold() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 10 * TOKEN}), now=T0)

    with pytest.raises(InsufficientPrincipal):
        apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 11 * TOKEN}), now=T0)
    with pytest.raises(BelowThreshold):
        apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 5 * TOKEN}), now=T0)


def test_unstake_pool_shortfall_is_atomic() -> None:
    st = _program(pool=1)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    before = copy.deepcopy(st)

    with pytest.raises(InsufficientRewardPool):
        apply_tx_atomic(st, _env("UNSTAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0 + DAY)
    assert st == before


def test_ledger_is_monotonic_over_a_sequence() -> None:
    st = _program(harvest_thr=0, stake_thr=0, unstake_thr=0)
    ops = [
        ("STAKE", {"amount_raw": 700 * TOKEN}),
        ("HARVEST", {}),
        ("STAKE", {"amount_raw": 300 * TOKEN}),
        ("UNSTAKE", {"amount_raw": 250 * TOKEN}),
        ("HARVEST", {}),
        ("UNSTAKE", {"amount_raw": 750 * TOKEN}),
        ("STAKE", {"amount_raw": 1 * TOKEN}),
        ("HARVEST", {}),
    ]
    last_total = 0
    for i, (t, payload) in enumerate(ops):
        apply_tx_atomic(st, _env(t, ALICE, payload, nonce=i), now=T0 + i * 3_600)
        a = _acct(st)
        assert a["total_harvested_raw"] >= last_total
        assert a["staked_amount_raw"] >= 0
        last_total = a["total_harvested_raw"]

    assert st["vault"]["staked_total_raw"] == _acct(st)["staked_amount_raw"]


def test_user_ops_require_initialized_program() -> None:
    with pytest.raises(ConfigurationError) as e:
        apply_tx(empty_state(), _env("STAKE", ALICE, {"amount_raw": 1}), now=T0)
    assert e.value.reason == "program_not_initialized"


def test_unknown_tx_type_fails_closed() -> None:
    with pytest.raises(UnknownOperation) as e:
        apply_tx(_program(), _env("SWAP", ALICE), now=T0)
    assert e.value.code == "tx_unimplemented"


def test_missing_signer_rejected() -> None:
    with pytest.raises(ApplyError) as e:
        apply_tx(_program(), _env("STAKE", "", {"amount_raw": 1}), now=T0)
    assert e.value.reason == "missing_signer"


def test_restake_dormant_under_clock_skew_keeps_timestamps() -> None:
    st = _program()
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0 + DAY)

    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 100 * TOKEN}, nonce=3), now=T0 + DAY - 500)

    a = _acct(st)
    assert a["last_harvest_time"] == T0 + DAY
    assert a["stake_start_time"] == T0 + DAY

    # Nothing accrues for the skewed interval.
    meta = apply_tx(st, _env("UNSTAKE", ALICE, {"amount_raw": 100 * TOKEN}, nonce=4), now=T0 + DAY)
    assert meta["reward_raw"] == 0


def test_program_stats_track_stakers_and_harvests() -> None:
    st = _program(harvest_thr=0)
    vault = st["vault"]
    assert vault["active_stakers"] == 0
    assert vault["total_harvested_raw"] == 0

    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 1_000 * TOKEN}), now=T0)
    apply_tx(st, _env("STAKE", "bob", {"amount_raw": 1_000 * TOKEN}), now=T0)
    apply_tx(st, _env("STAKE", ALICE, {"amount_raw": 10 * TOKEN}, nonce=2), now=T0)
    assert st["vault"]["active_stakers"] == 2

    apply_tx(st, _env("HARVEST", ALICE), now=T0 + DAY)
    assert st["vault"]["total_harvested_raw"] == _acct(st)["total_harvested_raw"]

    apply_tx(st, _env("UNSTAKE", "bob", {"amount_raw": 1_000 * TOKEN}), now=T0 + DAY)
    assert st["vault"]["active_stakers"] == 1
    assert st["vault"]["total_harvested_raw"] == (
        _acct(st)["total_harvested_raw"] + _acct(st, "bob")["total_harvested_raw"]
    )
    assert _acct(st, "bob")["total_harvested_raw"] == 10_368_000_000

    # Dormant re-stake counts the owner as active again.
    apply_tx(st, _env("STAKE", "bob", {"amount_raw": 10 * TOKEN}, nonce=5), now=T0 + 2 * DAY)
    assert st["vault"]["active_stakers"] == 2
