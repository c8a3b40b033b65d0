from decimal import Decimal

import pytest

from emi_calc.data_models import LoanParameters
from emi_calc.engine import amortize, extra_payment_impact, prepayment_impact
from emi_calc.exceptions import LoanValidationError


@pytest.fixture
def car_loan():
    """Rs 8 lakh at 9 % over 5 years."""
    return LoanParameters(principal=800_000, annual_rate=9, periods=60)


def test_reduce_term_keeps_installment(car_loan):
    baseline = amortize(car_loan)
    impact = prepayment_impact(car_loan, 100_000, 12, "term")

    assert impact.payment == baseline.payment
    assert impact.periods_saved > 0
    assert impact.interest_saved > 0
    assert impact.total_interest == baseline.total_interest - impact.interest_saved


def test_reduce_installment_keeps_term(car_loan):
    baseline = amortize(car_loan)
    impact = prepayment_impact(car_loan, 100_000, 12, "installment")

    assert impact.periods_saved == 0
    assert impact.payment < baseline.payment
    assert impact.interest_saved > 0


def test_reducing_term_saves_more_interest_than_reducing_installment(car_loan):
    term = prepayment_impact(car_loan, 100_000, 12, "term")
    installment = prepayment_impact(car_loan, 100_000, 12, "installment")

    assert term.interest_saved > installment.interest_saved


def test_larger_prepayment_saves_more(car_loan):
    small = prepayment_impact(car_loan, 50_000, 12)
    large = prepayment_impact(car_loan, 200_000, 12)

    assert large.interest_saved > small.interest_saved
    assert large.periods_saved >= small.periods_saved


def test_prepayment_beyond_balance_closes_loan(car_loan):
    baseline = amortize(car_loan)
    impact = prepayment_impact(car_loan, 10_000_000, 12)

    assert impact.payment == 0
    assert impact.periods_saved == 48
    interest_first_year = sum(row.interest_payment for row in baseline.schedule[:12])
    assert impact.total_interest == pytest.approx(interest_first_year, abs=Decimal("0.0001"))


def test_prepayment_before_first_installment(car_loan):
    impact = prepayment_impact(car_loan, 400_000, 0, "installment")
    half_loan = amortize(LoanParameters(principal=400_000, annual_rate=9, periods=60))

    assert abs(impact.payment - half_loan.payment) < Decimal("0.000001")


def test_interest_free_prepayment_saves_no_interest():
    params = LoanParameters(principal=120_000, annual_rate=0, periods=12)
    impact = prepayment_impact(params, 20_000, 2)

    assert impact.interest_saved == 0
    assert impact.periods_saved == 2


@pytest.mark.parametrize(
    "amount, after_period, mode, field",
    [
        (0, 12, "term", "amount"),
        (-500, 12, "term", "amount"),
        ("lots", 12, "term", "amount"),
        (1_000, 60, "term", "after_period"),
        (1_000, -1, "term", "after_period"),
        (1_000, 1.5, "term", "after_period"),
        (1_000, 12, "tenure", "mode"),
    ],
)
def test_invalid_prepayments_are_rejected(car_loan, amount, after_period, mode, field):
    with pytest.raises(LoanValidationError) as excinfo:
        prepayment_impact(car_loan, amount, after_period, mode)
    assert excinfo.value.field == field


def test_nothing_to_prepay_on_zero_principal():
    params = LoanParameters(principal=0, annual_rate=9, periods=60)

    with pytest.raises(LoanValidationError):
        prepayment_impact(params, 1_000, 0)


def test_extra_installment_closes_loan_sooner(car_loan):
    baseline = amortize(car_loan)
    impact = extra_payment_impact(car_loan, 10)

    assert impact.payment == baseline.payment * Decimal("1.1")
    assert impact.periods < 60
    assert impact.periods_saved == 60 - impact.periods
    assert impact.interest_saved > 0
    assert impact.total_interest == baseline.total_interest - impact.interest_saved


def test_zero_extra_changes_nothing(car_loan):
    impact = extra_payment_impact(car_loan, 0)

    assert impact.periods == 60
    assert impact.interest_saved == 0


def test_larger_extra_saves_more(car_loan):
    small = extra_payment_impact(car_loan, 5)
    large = extra_payment_impact(car_loan, 25)

    assert large.interest_saved > small.interest_saved
    assert large.periods <= small.periods


@pytest.mark.parametrize(
    "params, extra, field",
    [
        (LoanParameters(principal=800_000, annual_rate=9, periods=60), -5, "extra_percent"),
        (LoanParameters(principal=800_000, annual_rate=9, periods=60), "lots", "extra_percent"),
        (LoanParameters(principal=0, annual_rate=9, periods=60), 10, "principal"),
    ],
)
def test_invalid_extra_installment(params, extra, field):
    with pytest.raises(LoanValidationError) as excinfo:
        extra_payment_impact(params, extra)

    assert excinfo.value.field == field
