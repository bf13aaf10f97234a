"""
Fixed-point money helpers.

Amounts are carried as `Decimal` quantized to two fractional digits with
half-up rounding, so `50.005` becomes `50.01` regardless of how the float was
represented in binary.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Coerce `value` to a two-decimal `Decimal`.

    Raises
    ------
    ValueError
        If the value is not numeric, is a bool, or is not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        # str() first: Decimal(50.005) would keep the binary error 50.00499...
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return dec.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value!r}") from exc


def coerce_money(value: Any, default: Decimal = ZERO) -> Decimal:
    """Total variant of `to_money`: anything unusable becomes `default`."""
    if value is None:
        return default
    try:
        return to_money(value)
    except ValueError:
        return default


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _group_indian(digits: str) -> str:
    # en-IN grouping: last three digits, then pairs (12,34,567).
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_money(amount: Decimal, symbol: str = "₹", signed: bool = False) -> str:
    """
    Render an amount the way the dashboard shows it, e.g. `₹12,543.50`.

    With `signed=True` a leading `+`/`-` is always shown.
    """
    quantized = to_money(amount)
    sign = "-" if quantized < 0 else ("+" if signed else "")
    whole, _, frac = f"{abs(quantized):.2f}".partition(".")
    return f"{sign}{symbol}{_group_indian(whole)}.{frac}"


__all__ = ["CENTS", "ZERO", "to_money", "coerce_money", "round_half_up", "format_money"]
