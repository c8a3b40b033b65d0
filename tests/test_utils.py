from decimal import Decimal

import pytest

from emi_calc.exceptions import LoanValidationError
from emi_calc.utils import check_range, decimal_from_str, parse_amount, parse_int, parse_percent


@pytest.mark.parametrize(
    "text, expected",
    [
        ("500000", Decimal("500000")),
        ("5,00,000", Decimal("500000")),
        ("₹ 25,000", Decimal("25000")),
        ("500k", Decimal("500000")),
        ("12l", Decimal("1200000")),
        ("12 lakh", Decimal("1200000")),
        ("1.2cr", Decimal("12000000")),
        ("1 Crore", Decimal("10000000")),
        ("2M", Decimal("2000000")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "12x", "nan", "inf", "k"])
def test_parse_amount_rejects_garbage(text):
    with pytest.raises(LoanValidationError) as excinfo:
        parse_amount(text, "principal")
    assert excinfo.value.field == "principal"


def test_parse_percent():
    assert parse_percent("8.5") == Decimal("8.5")
    assert parse_percent(" 8.5% ") == Decimal("8.5")
    with pytest.raises(LoanValidationError):
        parse_percent("eight")


def test_decimal_from_str_keeps_precision():
    assert decimal_from_str("0.1") + decimal_from_str("0.2") == Decimal("0.3")


@pytest.mark.parametrize("value, expected", [("12", 12), ("12.0", 12), (7, 7), (" 30 ", 30)])
def test_parse_int(value, expected):
    assert parse_int(value, "tenure") == expected


@pytest.mark.parametrize("value", ["12.5", "twelve", True])
def test_parse_int_rejects_fractions_and_flags(value):
    with pytest.raises(LoanValidationError):
        parse_int(value, "tenure")


def test_check_range():
    assert check_range("rate", Decimal("8"), Decimal("5"), Decimal("25")) == Decimal("8")
    assert check_range("rate", Decimal("80"), Decimal("5"), None) == Decimal("80")
    with pytest.raises(LoanValidationError, match="at least 5"):
        check_range("rate", Decimal("4.9"), Decimal("5"), Decimal("25"))
    with pytest.raises(LoanValidationError, match="at most 25"):
        check_range("rate", Decimal("25.1"), Decimal("5"), Decimal("25"))
