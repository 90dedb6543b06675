# src/stakeledger/ledger/rewards.py
from __future__ import annotations

"""Reward accrual.

`pending_reward()` is the single entry point used by both the preview path
(executor.get_preview) and the settlement path (apply/staking.py). Both read
the model, rate and decimals from the same ProgramConfig, so there is no way
for the two paths to disagree about units.

Models:
  linear    floor(staked_raw * rate * elapsed)                 exact integers
  compound  to_raw(to_display(staked_raw) * ((1 + rate)^elapsed - 1))
"""

from decimal import Decimal, DivisionByZero, InvalidOperation, localcontext
from decimal import Overflow as DecimalOverflow
from fractions import Fraction
from typing import Any, Dict, Tuple

from stakeledger.ledger import units
from stakeledger.ledger.constants import (
    COMPOUND_PRECISION,
    REWARD_MODEL_COMPOUND,
    REWARD_MODEL_LINEAR,
    REWARD_MODELS,
    REWARD_SUMMARY_PERIODS,
    U64_MAX,
)
from stakeledger.ledger.types import ProgramConfig, StakingAccount
from stakeledger.runtime.errors import ConfigurationError, InvalidAmount, InvalidRate, Overflow


def elapsed_seconds(now: int, last_harvest_time: int) -> int:
    """Whole seconds since last harvest; clock skew clamps to zero."""
    return max(0, int(now) - int(last_harvest_time))


def _check_inputs(staked_amount_raw: Any, elapsed: Any, rate: Any) -> Tuple[int, int, Fraction]:
    if isinstance(staked_amount_raw, bool) or not isinstance(staked_amount_raw, int) or staked_amount_raw < 0:
        raise InvalidAmount("staked_amount_invalid", {"staked_amount_raw": repr(staked_amount_raw)})
    if staked_amount_raw > U64_MAX:
        raise Overflow("staked_amount_exceeds_u64", {"staked_amount_raw": int(staked_amount_raw), "max": U64_MAX})
    if isinstance(elapsed, bool) or not isinstance(elapsed, int):
        raise InvalidAmount("elapsed_not_integer", {"elapsed_seconds": repr(elapsed)})
    if not isinstance(rate, Fraction) or rate < 0:
        raise InvalidRate("rate_fraction_invalid", {"rate": repr(rate)})
    return int(staked_amount_raw), max(0, int(elapsed)), rate


def _bounded(reward_raw: int, *, staked_amount_raw: int, elapsed: int, rate: Fraction, model: str) -> int:
    if reward_raw > U64_MAX:
        raise Overflow(
            "reward_exceeds_u64",
            {
                "model": model,
                "staked_amount_raw": int(staked_amount_raw),
                "elapsed_seconds": int(elapsed),
                "rate": str(rate),
                "max": U64_MAX,
            },
        )
    return int(reward_raw)


def linear_reward(staked_amount_raw: int, elapsed: int, rate: Fraction) -> int:
    staked, secs, r = _check_inputs(staked_amount_raw, elapsed, rate)
    # Python ints are arbitrary precision; the product cannot wrap.
    reward = (staked * r.numerator * secs) // r.denominator
    return _bounded(reward, staked_amount_raw=staked, elapsed=secs, rate=r, model=REWARD_MODEL_LINEAR)


def compound_factor(elapsed: int, rate: Fraction) -> Decimal:
    """(1 + rate)^elapsed - 1 at COMPOUND_PRECISION significant digits.

    Decimal integer powers use binary exponentiation, so large exponents cost
    O(log elapsed) multiplications and no float rounding is involved.
    """
    secs = max(0, int(elapsed))
    if secs == 0 or rate == 0:
        return Decimal(0)
    with localcontext() as ctx:
        ctx.prec = COMPOUND_PRECISION
        try:
            r = Decimal(rate.numerator) / Decimal(rate.denominator)
            return (Decimal(1) + r) ** secs - Decimal(1)
        except (DecimalOverflow, InvalidOperation, DivisionByZero) as e:
            raise Overflow(
                "compound_factor_overflow",
                {"elapsed_seconds": secs, "rate": str(rate)},
            ) from e


def compound_reward(staked_amount_raw: int, elapsed: int, rate: Fraction, decimals: int) -> int:
    staked, secs, r = _check_inputs(staked_amount_raw, elapsed, rate)
    principal = units.to_display(staked, decimals)
    factor = compound_factor(secs, r)
    with localcontext() as ctx:
        ctx.prec = COMPOUND_PRECISION
        try:
            reward_tokens = principal * factor
        except (DecimalOverflow, InvalidOperation) as e:
            raise Overflow("compound_reward_overflow", {"staked_amount_raw": staked, "elapsed_seconds": secs}) from e
    try:
        reward = units.to_raw(reward_tokens, decimals)
    except Overflow as e:
        raise Overflow(
            "reward_exceeds_u64",
            {"model": REWARD_MODEL_COMPOUND, "staked_amount_raw": staked, "elapsed_seconds": secs, "rate": str(r), "max": U64_MAX},
        ) from e
    return _bounded(reward, staked_amount_raw=staked, elapsed=secs, rate=r, model=REWARD_MODEL_COMPOUND)


def reward(staked_amount_raw: int, elapsed: int, rate: Fraction, model: str, *, decimals: int) -> int:
    """Reward accrued in raw units of the stake domain."""
    if model == REWARD_MODEL_LINEAR:
        return linear_reward(staked_amount_raw, elapsed, rate)
    if model == REWARD_MODEL_COMPOUND:
        return compound_reward(staked_amount_raw, elapsed, rate, decimals)
    raise ConfigurationError("unknown_reward_model", {"reward_model": model, "allowed": list(REWARD_MODELS)})


def pending_reward(account: StakingAccount, config: ProgramConfig, now: int) -> Tuple[int, int]:
    """Return (reward_raw, elapsed_seconds) for an account at `now`."""
    secs = elapsed_seconds(now, account.last_harvest_time)
    if account.staked_amount_raw <= 0:
        return 0, secs
    amt = reward(
        account.staked_amount_raw,
        secs,
        config.rate_fraction,
        config.reward_model,
        decimals=config.decimals,
    )
    return amt, secs


def rate_summary(rate: Fraction) -> Dict[str, Dict[str, Any]]:
    """APR and APY in percent over fixed periods, as decimal strings.

    APR is the simple rate (rate * seconds). APY compounds every second with
    the same compound_factor() the compound model settles with, so a client
    never needs its own reward formula.
    """
    if not isinstance(rate, Fraction) or rate < 0:
        raise InvalidRate("rate_fraction_invalid", {"rate": repr(rate)})
    out: Dict[str, Dict[str, Any]] = {}
    for name, secs in REWARD_SUMMARY_PERIODS:
        apr = rate * secs * 100
        apy = compound_factor(secs, rate)
        with localcontext() as ctx:
            ctx.prec = COMPOUND_PRECISION
            out[name] = {
                "seconds": secs,
                "apr_percent": str(Decimal(apr.numerator) / Decimal(apr.denominator)),
                "apy_percent": str(apy * 100),
            }
    return out


__all__ = [
    "compound_factor",
    "compound_reward",
    "elapsed_seconds",
    "linear_reward",
    "pending_reward",
    "rate_summary",
    "reward",
]
