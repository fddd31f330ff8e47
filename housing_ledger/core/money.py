"""Fixed-point money helpers.

Money is always ``decimal.Decimal`` quantized to cents. Floats are rejected at
the boundary so binary rounding never enters a sum. Inputs with more than two
decimal places are rounded half-up to the cent.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from housing_ledger.core.errors import InvalidAmountError

Money = Decimal

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")
# Money columns are NUMERIC(12, 2).
MAX_ABS_AMOUNT = Decimal("10000000000")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


def parse_amount(raw: object) -> Money:
    """Parse user or storage input into a cent-quantized amount."""

    if raw is None or isinstance(raw, (bool, float)):
        raise InvalidAmountError()

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, str):
        text = raw.strip().replace(",", "")
        negative = text.startswith("-")
        if negative:
            text = text[1:]
        if text.startswith("$"):
            text = text[1:]
        if not text:
            raise InvalidAmountError()
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Invalid amount: {raw!r}.") from exc
        if negative:
            value = -value
    else:
        raise InvalidAmountError()

    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {raw!r}.")
    try:
        amount = _q2(value)
    except InvalidOperation as exc:
        raise InvalidAmountError("Amount is too large.") from exc
    if abs(amount) >= MAX_ABS_AMOUNT:
        raise InvalidAmountError("Amount is too large.")
    return amount


def coerce(value: Decimal | None) -> Money:
    """Normalize a nullable stored amount; missing contributes zero."""

    if value is None:
        return ZERO
    return _q2(value)


def add(*amounts: Decimal) -> Money:
    result = ZERO
    for amount in amounts:
        result += coerce(amount)
    return _q2(result)


def subtract(minuend: Decimal, subtrahend: Decimal) -> Money:
    return _q2(coerce(minuend) - coerce(subtrahend))


def total(amounts: Iterable[Decimal | None]) -> Money:
    return add(*(coerce(amount) for amount in amounts))


def is_zero(amount: Decimal) -> bool:
    return coerce(amount) == ZERO


def is_positive(amount: Decimal) -> bool:
    return coerce(amount) > ZERO


def is_negative(amount: Decimal) -> bool:
    return coerce(amount) < ZERO


def to_wire(amount: Decimal | None) -> str:
    """Plain string form used in JSON payloads, e.g. ``"1234.50"``."""

    return str(coerce(amount))


def to_display_string(amount: Decimal | None) -> str:
    """Human form, e.g. ``"$1,234.50"`` or ``"-$20.00"``."""

    value = coerce(amount)
    sign = "-" if value < ZERO else ""
    return f"{sign}${abs(value):,.2f}"
