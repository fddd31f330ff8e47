from __future__ import annotations

from decimal import Decimal

import pytest

from housing_ledger.core import money
from housing_ledger.core.errors import InvalidAmountError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("500", Decimal("500.00")),
        (" 1,234.5 ", Decimal("1234.50")),
        ("$20.00", Decimal("20.00")),
        ("-$20.00", Decimal("-20.00")),
        (125, Decimal("125.00")),
        (Decimal("0.1"), Decimal("0.10")),
    ],
)
def test_parse_amount_accepts_decimal_inputs(raw: object, expected: Decimal) -> None:
    assert money.parse_amount(raw) == expected


def test_parse_amount_rounds_half_up_to_cents() -> None:
    assert money.parse_amount("10.005") == Decimal("10.01")
    assert money.parse_amount("10.004") == Decimal("10.00")
    assert money.parse_amount("-10.005") == Decimal("-10.01")


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "1.2.3", "NaN", "Infinity", 1.5, True])
def test_parse_amount_rejects_invalid_input(raw: object) -> None:
    with pytest.raises(InvalidAmountError) as exc_info:
        money.parse_amount(raw)

    assert exc_info.value.status_code == 422
    assert exc_info.value.headers == {"X-Error-Code": "invalid_amount"}


@pytest.mark.parametrize("raw", ["1" * 30, "123456789012345", "10000000000", "-10000000000.00", 10**12])
def test_parse_amount_rejects_amounts_beyond_column_range(raw: object) -> None:
    with pytest.raises(InvalidAmountError) as exc_info:
        money.parse_amount(raw)

    assert exc_info.value.headers == {"X-Error-Code": "invalid_amount"}


def test_parse_amount_accepts_largest_storable_amount() -> None:
    assert money.parse_amount("9999999999.99") == Decimal("9999999999.99")


def test_many_small_additions_do_not_drift() -> None:
    assert money.total([Decimal("0.10")] * 1000) == Decimal("100.00")
    assert money.total([]) == Decimal("0.00")


def test_add_subtract_and_sign_predicates() -> None:
    balance = money.subtract(Decimal("500.00"), money.add(Decimal("450.00"), Decimal("30.00"), Decimal("20.00")))

    assert balance == Decimal("0.00")
    assert money.is_zero(balance) is True
    assert money.is_positive(Decimal("0.01")) is True
    assert money.is_negative(Decimal("-0.01")) is True
    assert money.is_zero(None) is True


def test_display_and_wire_strings() -> None:
    assert money.to_display_string(Decimal("1234.5")) == "$1,234.50"
    assert money.to_display_string(Decimal("-20")) == "-$20.00"
    assert money.to_display_string(None) == "$0.00"
    assert money.to_wire(Decimal("7.1")) == "7.10"
