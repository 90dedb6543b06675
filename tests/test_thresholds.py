from __future__ import annotations

import pytest

from stakeledger.ledger import thresholds
from stakeledger.runtime.errors import BelowThreshold, InvalidAmount


@pytest.mark.parametrize("thr", [1, 10, 10_000_000_000])
def test_threshold_boundary_is_inclusive(thr: int) -> None:
    thresholds.check(thr, thr)
    with pytest.raises(BelowThreshold) as e:
        thresholds.check(thr - 1, thr, operation=thresholds.OP_HARVEST)

    err = e.value
    assert err.code == "below_threshold"
    assert err.reason == "harvest_below_threshold"
    assert err.amount_raw == thr - 1
    assert err.threshold_raw == thr
    assert err.details["shortfall_raw"] == 1


def test_zero_threshold_passes_zero() -> None:
    assert thresholds.passes(0, 0)
    thresholds.check(0, 0)


def test_passes_rejects_non_integers() -> None:
    with pytest.raises(InvalidAmount):
        thresholds.passes(1.5, 1)  # type: ignore[arg-type]
    with pytest.raises(InvalidAmount):
        thresholds.passes(1, -1)
