# src/stakeledger/ledger/units.py
from __future__ import annotations

"""Raw <-> display amount conversion.

This module is the only place a token amount is scaled. The factor is
10**decimals, applied once per direction. Any caller that seems to need a
second factor is working in the wrong unit domain upstream.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from decimal import Overflow as DecimalOverflow
from typing import Any, Union

from stakeledger.ledger.constants import MAX_TOKEN_DECIMALS, U64_MAX
from stakeledger.runtime.errors import InvalidAmount, Overflow

DisplayLike = Union[Decimal, int, float, str]

# Digits of headroom above u64 raw amounts at the widest supported decimals.
_CONVERSION_PRECISION = 80


def _check_decimals(decimals: Any) -> int:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise InvalidAmount("decimals_not_integer", {"decimals": repr(decimals)})
    if decimals < 0 or decimals > MAX_TOKEN_DECIMALS:
        raise InvalidAmount("decimals_out_of_range", {"decimals": int(decimals), "max": MAX_TOKEN_DECIMALS})
    return int(decimals)


def _check_raw(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidAmount("raw_amount_not_integer", {"raw": repr(raw)})
    if raw < 0:
        raise InvalidAmount("raw_amount_negative", {"raw": int(raw)})
    return int(raw)


def _as_decimal(display: DisplayLike) -> Decimal:
    if isinstance(display, bool):
        raise InvalidAmount("display_amount_not_numeric", {"display": display})
    try:
        if isinstance(display, Decimal):
            d = display
        elif isinstance(display, float):
            d = Decimal(repr(display))
        elif isinstance(display, (int, str)):
            d = Decimal(str(display).strip())
        else:
            raise InvalidAmount("display_amount_not_numeric", {"display": repr(display)})
    except InvalidOperation as e:
        raise InvalidAmount("display_amount_not_numeric", {"display": str(display)}) from e
    if not d.is_finite():
        raise InvalidAmount("display_amount_not_finite", {"display": str(display)})
    if d < 0:
        raise InvalidAmount("display_amount_negative", {"display": str(display)})
    return d


def to_display(raw: int, decimals: int) -> Decimal:
    """Raw integer -> exact display amount (raw / 10**decimals)."""
    r = _check_raw(raw)
    d = _check_decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = _CONVERSION_PRECISION
        return Decimal(r).scaleb(-d)


def to_raw(display: DisplayLike, decimals: int) -> int:
    """Display amount -> raw integer, round(display * 10**decimals), ties to even.

    The raw side is u64; anything larger raises Overflow.
    """
    d = _check_decimals(decimals)
    amount = _as_decimal(display)
    with localcontext() as ctx:
        ctx.prec = _CONVERSION_PRECISION
        try:
            scaled = amount.scaleb(d).to_integral_value(rounding=ROUND_HALF_EVEN)
        except (DecimalOverflow, InvalidOperation) as e:
            raise Overflow("display_amount_overflow", {"display": str(display), "decimals": d}) from e
    # Compare as Decimal so an out-of-range amount is never expanded to a huge int.
    if scaled > U64_MAX:
        raise Overflow(
            "raw_amount_exceeds_u64",
            {"display": str(display), "decimals": d, "max": U64_MAX},
        )
    return int(scaled)


def format_display(raw: int, decimals: int) -> str:
    """Fixed-point string with exactly `decimals` fractional digits."""
    d = _check_decimals(decimals)
    value = to_display(raw, d)
    if d == 0:
        return str(int(value))
    return f"{value:.{d}f}"


__all__ = ["format_display", "to_display", "to_raw"]
