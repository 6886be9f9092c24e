"""
Tests des calculs monétaires (montants de ligne, taxe, remise).
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from quotedesk.quotations.arithmetic import calculate_totals, line_amount, to_decimal


def _line(qty, unit_price):
    return SimpleNamespace(qty=qty, unit_price=unit_price)


@pytest.mark.parametrize("value", [None, "", "abc", "-5", -1, float("nan"), float("inf"), True, object()])
def test_invalid_numeric_input_is_zero(value):
    assert to_decimal(value) == Decimal("0")


def test_numeric_strings_are_accepted():
    assert to_decimal(" 12.5 ") == Decimal("12.5")
    assert to_decimal(3) == Decimal("3")
    assert to_decimal(0.1) == Decimal("0.1")


def test_line_amount_rounds_half_up():
    assert line_amount(2, "10.50") == Decimal("21.00")
    assert line_amount(1, "0.125") == Decimal("0.13")
    assert line_amount("x", 100) == Decimal("0.00")


def test_totals_with_tax_and_discount():
    totals = calculate_totals([_line(2, 100), _line(1, "50.50")], 18, 10)
    assert totals.subtotal == Decimal("250.50")
    assert totals.tax_amount == Decimal("45.09")
    assert totals.grand_total == Decimal("285.59")


def test_subtotal_sums_rounded_line_amounts():
    # 3 x 0.335 = 1.005 -> 1.01 par ligne, donc 2.02 et non 2.01
    totals = calculate_totals([_line(3, "0.335"), _line(3, "0.335")], 0, 0)
    assert totals.subtotal == Decimal("2.02")


def test_tax_is_rounded_to_two_places():
    totals = calculate_totals([_line(1, "10.05")], 18, 0)
    assert totals.tax_amount == Decimal("1.81")
    assert totals.grand_total == Decimal("11.86")


def test_grand_total_never_negative():
    totals = calculate_totals([_line(1, 100)], 0, 500)
    assert totals.grand_total == Decimal("0.00")


def test_invalid_tax_and_discount_count_as_zero():
    totals = calculate_totals([_line(1, 100)], "eighteen", None)
    assert totals.tax_amount == Decimal("0.00")
    assert totals.grand_total == Decimal("100.00")


def test_totals_serialize_as_camel_case_numbers():
    totals = calculate_totals([_line(1, 100)], 18, 0)
    assert totals.model_dump(mode="json", by_alias=True) == {
        "subtotal": 100.0,
        "taxAmount": 18.0,
        "grandTotal": 118.0,
    }


def test_huge_amounts_are_rounded_without_error():
    assert line_amount("1e27", 1) == Decimal("1000000000000000000000000000.00")
    totals = calculate_totals([_line("1e27", "1")], 18, 0)
    assert totals.grand_total == Decimal("1180000000000000000000000000.00")


def test_absurd_magnitudes_count_as_zero():
    assert to_decimal("1e101") == Decimal("0")
    assert to_decimal("9e100") == Decimal("9e100")
