from decimal import Decimal

import pytest

from emi_calc.data_models import LoanParameters
from emi_calc.engine import amortize, compute_schedule, principal_interest_split
from emi_calc.exceptions import LoanValidationError
from emi_calc.formatter import whole


def test_twenty_year_home_loan_matches_standard_emi(home_loan):
    result = amortize(home_loan)

    assert home_loan.rate_per_period.quantize(Decimal("0.0000001")) == Decimal("0.0070833")
    assert whole(result.payment) == 8678
    # 8,678 x 240 = 20,82,720; the unrounded EMI differs by well under a rupee per month
    assert abs(result.total_payment - Decimal("2082720")) < 240
    assert abs(result.total_interest - Decimal("1082720")) < 240
    assert result.periods == 240


def test_zero_rate_is_straight_line():
    result = compute_schedule(500_000, 0, 36)

    assert result.payment == Decimal(500_000) / Decimal(36)
    assert result.payment.quantize(Decimal("0.01")) == Decimal("13888.89")
    assert result.total_interest == 0
    assert all(row.interest_payment == 0 for row in result.schedule)
    assert result.schedule[-1].ending_balance == 0


@pytest.mark.parametrize(
    "principal, rate, periods, per_year",
    [
        (1_000_000, "8.5", 240, 12),
        (250_000, "12", 36, 12),
        (5_000_000, "7.25", 360, 12),
        (75_000, "18", 7, 12),
        (100_000, "8", 20, 4),
        (1_234_567, "0", 13, 12),
        (50_000, "25", 1, 12),
    ],
)
def test_schedule_invariants(principal, rate, periods, per_year):
    result = compute_schedule(principal, rate, periods, per_year)

    assert len(result.schedule) == periods
    assert [row.period for row in result.schedule] == list(range(1, periods + 1))
    principal_paid = sum(row.principal_payment for row in result.schedule)
    assert abs(principal_paid - Decimal(principal)) < 1
    assert result.schedule[-1].ending_balance == 0
    assert abs(result.total_payment - (result.total_interest + Decimal(principal))) < Decimal("0.000001")
    assert result.total_payment == sum(row.payment for row in result.schedule)
    assert result.total_interest == sum(row.interest_payment for row in result.schedule)


def test_rows_chain_balances():
    result = compute_schedule(300_000, "10.5", 48)

    previous_end = Decimal(300_000)
    for row in result.schedule:
        assert row.starting_balance == previous_end
        assert row.payment == row.principal_payment + row.interest_payment
        assert row.ending_balance == row.starting_balance - row.principal_payment
        previous_end = row.ending_balance


def test_only_final_period_absorbs_drift():
    result = compute_schedule(1_000_000, "8.5", 240)

    assert all(abs(row.payment - result.payment) < Decimal("1e-15") for row in result.schedule[:-1])
    assert abs(result.schedule[-1].payment - result.payment) < Decimal("0.01")


def test_total_interest_grows_with_rate():
    interests = [compute_schedule(1_000_000, rate, 120).total_interest for rate in ("0", "1", "5", "8.5", "12", "20")]

    assert interests == sorted(interests)
    assert interests[0] == 0


def test_longer_tenure_lowers_payment_and_raises_interest():
    results = [compute_schedule(1_000_000, "9", periods) for periods in (12, 60, 120, 240, 360)]
    payments = [r.payment for r in results]
    interests = [r.total_interest for r in results]

    assert payments == sorted(payments, reverse=True)
    assert interests == sorted(interests)


def test_same_inputs_give_identical_results():
    first = compute_schedule(2_500_000, "8.75", 180)
    second = compute_schedule(2_500_000, "8.75", 180)

    assert first == second
    assert first is not second


def test_accepts_strings_floats_and_decimals():
    from_numbers = compute_schedule(1_000_000, 8.5, 240)
    from_strings = compute_schedule("1000000", "8.5", 240)
    from_decimals = compute_schedule(Decimal("1000000"), Decimal("8.5"), 240)

    assert from_numbers == from_strings == from_decimals


def test_zero_principal_gives_empty_schedule():
    result = compute_schedule(0, "8.5", 240)

    assert result.schedule == []
    assert result.payment == result.total_interest == result.total_payment == 0
    assert principal_interest_split(result) == (0, 0)


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"principal": -1}, "principal"),
        ({"annual_rate_percent": "-0.5"}, "annual_rate"),
        ({"periods": 0}, "periods"),
        ({"periods": -12}, "periods"),
        ({"periods": 12.5}, "periods"),
        ({"periods": True}, "periods"),
        ({"periods_per_year": 0}, "periods_per_year"),
        ({"annual_rate_percent": "abc"}, "annual_rate"),
        ({"principal": float("nan")}, "principal"),
        ({"principal": float("inf")}, "principal"),
        ({"principal": None}, "principal"),
        ({"principal": True}, "principal"),
    ],
)
def test_invalid_inputs_are_rejected(kwargs, field):
    args = {"principal": 100_000, "annual_rate_percent": "10", "periods": 12, "periods_per_year": 12}
    args.update(kwargs)

    with pytest.raises(LoanValidationError) as excinfo:
        compute_schedule(**args)
    assert excinfo.value.field == field
    assert isinstance(excinfo.value, ValueError)


def test_parameters_are_immutable(home_loan):
    with pytest.raises(AttributeError):
        home_loan.principal = Decimal("1")


def test_principal_interest_split():
    result = compute_schedule(1_000_000, "8.5", 240)

    assert principal_interest_split(result) == (48, 52)
    assert compute_schedule(120_000, 0, 12).principal_interest_split() == (100, 0)


def test_quarterly_frequency_uses_quarterly_rate():
    params = LoanParameters(principal=100_000, annual_rate=8, periods=20, periods_per_year=4)
    result = amortize(params)

    assert params.rate_per_period == Decimal("0.02")
    assert result.schedule[0].interest_payment == Decimal("2000.00")
    assert result.periods_per_year == 4


def test_rate_below_working_precision_is_straight_line():
    # (1 + i)^n rounds to exactly 1 at 28 digits
    result = compute_schedule(1_000_000, "1e-26", 240)

    assert result.payment == Decimal(1_000_000) / Decimal(240)
    assert result.schedule[-1].ending_balance == 0
    assert result.total_interest < Decimal("0.01")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"principal": 1_000_000, "annual_rate_percent": "1e3000", "periods": 360},
        {"principal": 1_000_000, "annual_rate_percent": "1e3000", "periods": 360, "balloon": 100_000},
        {
            "principal": 1_000_000,
            "annual_rate_percent": "1e3000",
            "periods": 12,
            "moratorium_periods": 400,
            "moratorium_mode": "compound",
        },
    ],
)
def test_unrepresentable_rate_is_a_validation_error(kwargs):
    with pytest.raises(LoanValidationError) as excinfo:
        compute_schedule(**kwargs)

    assert excinfo.value.field == "annual_rate"
