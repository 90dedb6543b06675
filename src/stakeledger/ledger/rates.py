# src/stakeledger/ledger/rates.py
from __future__ import annotations

"""Rate codec.

The ledger stores the reward rate as an integer scaled by RATE_DENOMINATOR.
Decoding is two exact rational steps:

    encoded  --(/ 1_000_000)-->  percent per second
    percent  --(/ 100)-------->  fraction per second

Fractions are kept as `fractions.Fraction`, so every encoded value decodes
exactly and the canonical admin table round-trips without drift.
"""

import math
from decimal import Decimal
from fractions import Fraction
from typing import Any, Union

from stakeledger.ledger.constants import (
    CANONICAL_ENCODED_RATES,
    PERCENT,
    RATE_DENOMINATOR,
    RATE_ENCODED_MAX,
    RATE_ENCODED_MIN,
)
from stakeledger.runtime.errors import InvalidRate

RateLike = Union[Fraction, Decimal, int, float, str]

_FULL_DENOMINATOR: int = RATE_DENOMINATOR * PERCENT


def _as_encoded_int(encoded: Any) -> int:
    if isinstance(encoded, bool):
        raise InvalidRate("rate_not_integer", {"encoded": encoded})
    if isinstance(encoded, int):
        return int(encoded)
    if isinstance(encoded, str) and encoded.strip().lstrip("-").isdigit():
        return int(encoded.strip())
    raise InvalidRate("rate_not_integer", {"encoded": repr(encoded)})


def validate_encoded(encoded: Any) -> int:
    """Return the encoded rate as int, or raise InvalidRate if outside [1, 1_000_000]."""
    v = _as_encoded_int(encoded)
    if v < RATE_ENCODED_MIN or v > RATE_ENCODED_MAX:
        raise InvalidRate(
            "rate_out_of_range",
            {"encoded": v, "min": RATE_ENCODED_MIN, "max": RATE_ENCODED_MAX},
        )
    return v


def to_percent(encoded: Any) -> Fraction:
    """Encoded integer -> percent per second (first step only)."""
    return Fraction(validate_encoded(encoded), RATE_DENOMINATOR)


def decode(encoded: Any) -> Fraction:
    """Encoded integer -> exact fraction of principal accrued per second."""
    return to_percent(encoded) / PERCENT


def _as_fraction(rate: RateLike) -> Fraction:
    if isinstance(rate, bool):
        raise InvalidRate("rate_not_numeric", {"rate": rate})
    if isinstance(rate, Fraction):
        return rate
    if isinstance(rate, float):
        if not math.isfinite(rate):
            raise InvalidRate("rate_not_finite", {"rate": repr(rate)})
        # shortest repr keeps 1.2e-07 as 12/10**8 rather than its binary expansion
        return Fraction(repr(rate))
    if isinstance(rate, Decimal):
        if not rate.is_finite():
            raise InvalidRate("rate_not_finite", {"rate": str(rate)})
        return Fraction(rate)
    if isinstance(rate, (int, str)):
        try:
            return Fraction(str(rate).strip())
        except (ValueError, ZeroDivisionError) as e:
            raise InvalidRate("rate_not_numeric", {"rate": str(rate)}) from e
    raise InvalidRate("rate_not_numeric", {"rate": repr(rate)})


def encode(rate: RateLike) -> int:
    """Fraction per second -> encoded integer.

    Rounds to the nearest encoded step (ties to even) and clamps into
    [1, 1_000_000]. Negative or non-finite rates raise InvalidRate.
    """
    f = _as_fraction(rate)
    if f < 0:
        raise InvalidRate("rate_negative", {"rate": str(f)})
    scaled = round(f * _FULL_DENOMINATOR)
    return max(RATE_ENCODED_MIN, min(RATE_ENCODED_MAX, int(scaled)))


def is_canonical(encoded: Any) -> bool:
    try:
        return validate_encoded(encoded) in CANONICAL_ENCODED_RATES
    except InvalidRate:
        return False


def resolution() -> Fraction:
    """Smallest representable change in the per-second fraction."""
    return Fraction(1, _FULL_DENOMINATOR)


def describe(encoded: Any) -> dict:
    """Human-facing rendering of a configured rate (strings, never floats)."""
    v = validate_encoded(encoded)
    pct = to_percent(v)
    frac = decode(v)
    return {
        "encoded": v,
        "percent_per_second": str(Decimal(pct.numerator) / Decimal(pct.denominator)),
        "fraction_per_second": str(Decimal(frac.numerator) / Decimal(frac.denominator)),
        "canonical": v in CANONICAL_ENCODED_RATES,
    }


__all__ = [
    "decode",
    "describe",
    "encode",
    "is_canonical",
    "resolution",
    "to_percent",
    "validate_encoded",
]
