from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

import pytest

from stakeledger.ledger import rates
from stakeledger.ledger.constants import CANONICAL_ENCODED_RATES
from stakeledger.runtime.errors import InvalidRate


def test_decode_is_two_exact_steps() -> None:
    assert rates.to_percent(12_000) == Fraction(12_000, 1_000_000)
    assert rates.decode(12_000) == Fraction(12_000, 100_000_000)
    assert rates.decode(12) == Fraction(12, 10**8)
    assert rates.decode(1_000_000) == Fraction(1, 100)


@pytest.mark.parametrize("v", CANONICAL_ENCODED_RATES)
def test_canonical_rates_round_trip_exactly(v: int) -> None:
    f = rates.decode(v)
    assert rates.encode(f) == v
    assert rates.decode(rates.encode(rates.decode(v))) == f


def test_encode_accepts_float_by_shortest_repr() -> None:
    # 1.2e-7 has no exact binary form; its repr does.
    assert rates.encode(1.2e-7) == 12
    assert rates.encode(Decimal("0.00012")) == 12_000
    assert rates.encode("1.2e-7") == 12


def test_encode_rounds_and_clamps() -> None:
    assert rates.encode(Fraction(1, 10**9)) == 1  # below resolution clamps up
    assert rates.encode(Fraction(0)) == 1
    assert rates.encode(Fraction(1, 2)) == 1_000_000
    assert rates.encode(Fraction(125, 10**8)) == 125
    # 12.5 steps rounds half to even
    assert rates.encode(Fraction(25, 2 * 10**8)) == 12


@pytest.mark.parametrize("bad", [-1e-7, float("nan"), float("inf"), Fraction(-1, 3), "not-a-rate"])
def test_encode_rejects_negative_and_non_finite(bad) -> None:
    with pytest.raises(InvalidRate):
        rates.encode(bad)


@pytest.mark.parametrize("bad", [0, -5, 1_000_001, True, 1.5, None])
def test_decode_rejects_out_of_range(bad) -> None:
    with pytest.raises(InvalidRate) as e:
        rates.decode(bad)
    assert e.value.code == "invalid_rate"


def test_describe_renders_strings() -> None:
    d = rates.describe(12)
    assert d == {
        "encoded": 12,
        "percent_per_second": "0.000012",
        "fraction_per_second": "1.2E-7",
        "canonical": True,
    }
    assert rates.is_canonical(12_000)
    assert not rates.is_canonical(13)
    assert not rates.is_canonical(0)
    assert rates.resolution() == Fraction(1, 10**8)
