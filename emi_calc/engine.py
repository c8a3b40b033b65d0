"""Core calculation engine for the EMI calculator.

This module implements the financial logic required to build amortization
schedules for equated-installment loans. A single loop amortises the financed
principal; the moratorium and balloon variants are pre-processing steps that
adjust the principal fed into that loop. Results are returned as an
``AmortizationResult`` holding the installment, the totals and one
``AmortizationRow`` per period.

Everything here is a pure function of its inputs.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, DivisionByZero, InvalidOperation, Overflow, getcontext
from typing import List, Tuple

from .data_models import (
    MORATORIUM_COMPOUND,
    MORATORIUM_INTEREST_ONLY,
    MORATORIUM_SIMPLE,
    PREPAYMENT_MODES,
    AmortizationResult,
    AmortizationRow,
    Affordability,
    ExtraPaymentImpact,
    LoanParameters,
    PrepaymentImpact,
    TaxBenefit,
    to_decimal,
)
from .exceptions import LoanValidationError

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _calculate_annuity_payment(principal: Decimal, rate_per_period: Decimal, periods: int) -> Decimal:
    """Return the equated installment for a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the periodic interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``. A rate too small to move ``(1 + i)^n``
    at the working precision is treated the same way.
    """
    if periods <= 0:
        raise LoanValidationError("periods must be positive", "periods")
    if rate_per_period == 0:
        return principal / Decimal(periods)
    factor = (1 + rate_per_period) ** periods
    if factor == 1:
        return principal / Decimal(periods)
    return principal * (rate_per_period * factor) / (factor - 1)


def _moratorium_interest(params: LoanParameters) -> Tuple[Decimal, Decimal]:
    """Return ``(capitalized, paid)`` interest for the moratorium period."""
    months = params.moratorium_periods
    if months == 0 or params.principal == 0:
        return ZERO, ZERO
    rate = params.rate_per_period
    if params.moratorium_mode == MORATORIUM_SIMPLE:
        years = Decimal(months) / Decimal(params.periods_per_year)
        return params.principal * (params.annual_rate / Decimal(100)) * years, ZERO
    if params.moratorium_mode == MORATORIUM_COMPOUND:
        return params.principal * ((1 + rate) ** months - 1), ZERO
    if params.moratorium_mode == MORATORIUM_INTEREST_ONLY:
        return ZERO, params.principal * rate * Decimal(months)
    raise LoanValidationError(f"Unknown moratorium mode: {params.moratorium_mode}", "moratorium_mode")


def _present_value(amount: Decimal, rate_per_period: Decimal, periods: int) -> Decimal:
    if amount == 0:
        return ZERO
    if rate_per_period == 0:
        return amount
    return amount / (1 + rate_per_period) ** periods


def _amortization_rows(
    principal: Decimal, rate_per_period: Decimal, payment: Decimal, periods: int
) -> Tuple[List[AmortizationRow], Decimal, Decimal]:
    """Walk the schedule and return ``(rows, total_interest, total_payment)``.

    The principal portion is clamped to the outstanding balance on the final
    period (or earlier, should the installment ever exceed what is owed), so
    the terminal balance is exactly zero.
    """
    rows: List[AmortizationRow] = []
    balance = principal
    total_interest = ZERO
    total_payment = ZERO
    for period in range(1, periods + 1):
        starting_balance = balance
        interest_payment = balance * rate_per_period
        principal_payment = payment - interest_payment
        if period == periods or principal_payment > balance:
            principal_payment = balance
        balance = balance - principal_payment
        period_payment = principal_payment + interest_payment
        total_interest += interest_payment
        total_payment += period_payment
        rows.append(
            AmortizationRow(
                period=period,
                starting_balance=starting_balance,
                payment=period_payment,
                principal_payment=principal_payment,
                interest_payment=interest_payment,
                ending_balance=balance,
            )
        )
    return rows, total_interest, total_payment


def amortize(params: LoanParameters) -> AmortizationResult:
    """Compute the amortization schedule and totals for ``params``.

    Parameters
    ----------
    params: LoanParameters
        Validated loan inputs. A moratorium adds its capitalised interest to
        the financed principal; a balloon removes its present value from it.

    Returns
    -------
    AmortizationResult
        The installment, totals and per-period rows. A zero principal gives
        an all-zero result with an empty schedule.

    Raises
    ------
    LoanValidationError
        If the balloon is worth more than the financed principal, or the
        rate and term push the arithmetic outside what ``Decimal`` can
        represent.
    """
    try:
        return _amortize(params)
    except (Overflow, DivisionByZero, InvalidOperation) as exc:
        raise _out_of_range(exc) from exc


def _out_of_range(exc: ArithmeticError) -> LoanValidationError:
    logger.debug("Decimal arithmetic failed: %r", exc)
    return LoanValidationError(
        "annual_rate is outside the range this calculator can evaluate", "annual_rate"
    )


def _amortize(params: LoanParameters) -> AmortizationResult:
    rate = params.rate_per_period
    capitalized, interest_paid = _moratorium_interest(params)
    financed = params.principal + capitalized
    balloon_pv = _present_value(params.balloon, rate, params.periods)
    if balloon_pv > financed:
        raise LoanValidationError(
            "balloon payment is worth more than the financed principal", "balloon"
        )
    if params.principal == 0:
        return AmortizationResult(
            principal=ZERO,
            financed_principal=ZERO,
            payment=ZERO,
            total_interest=ZERO,
            total_payment=ZERO,
            schedule=[],
            periods_per_year=params.periods_per_year,
        )

    amortized = financed - balloon_pv
    if capitalized or interest_paid or balloon_pv:
        logger.debug(
            "Adjusted principal %s -> %s (capitalized %s, balloon pv %s)",
            params.principal,
            amortized,
            capitalized,
            balloon_pv,
        )
    payment = _calculate_annuity_payment(amortized, rate, params.periods)
    logger.debug(
        "Installment %s for %s over %d periods at %s per period",
        payment,
        amortized,
        params.periods,
        rate,
    )
    schedule, rows_interest, rows_payment = _amortization_rows(amortized, rate, payment, params.periods)

    total_interest = rows_interest + capitalized + interest_paid + (params.balloon - balloon_pv)
    total_payment = rows_payment + interest_paid + params.balloon
    return AmortizationResult(
        principal=params.principal,
        financed_principal=amortized,
        payment=payment,
        total_interest=total_interest,
        total_payment=total_payment,
        schedule=schedule,
        periods_per_year=params.periods_per_year,
        capitalized_interest=capitalized,
        moratorium_interest_paid=interest_paid,
        balloon_payment=params.balloon,
        processing_fee=params.processing_fee,
    )


def compute_schedule(
    principal,
    annual_rate_percent,
    periods: int,
    periods_per_year: int = 12,
    *,
    moratorium_periods: int = 0,
    moratorium_mode: str = MORATORIUM_SIMPLE,
    balloon=0,
    processing_fee_percent=0,
) -> AmortizationResult:
    """Compute an amortization schedule from plain numeric inputs.

    Monetary values and the rate may be given as ``int``, ``float``, ``str``
    or ``Decimal``; ``annual_rate_percent`` is a percentage (``8.5`` for
    8.5 %). Invalid input raises ``LoanValidationError`` before any
    arithmetic is attempted.
    """
    params = LoanParameters(
        principal=principal,
        annual_rate=annual_rate_percent,
        periods=periods,
        periods_per_year=periods_per_year,
        moratorium_periods=moratorium_periods,
        moratorium_mode=moratorium_mode,
        balloon=balloon,
        processing_fee_percent=processing_fee_percent,
    )
    return amortize(params)


def loan_amount(price, down_payment=0) -> Decimal:
    """Return the amount to finance for an asset bought with a down payment.

    A down payment at or above the price leaves nothing to borrow.
    """
    price = to_decimal(price, "price")
    if price < 0:
        raise LoanValidationError("price must not be negative", "price")
    down_payment = to_decimal(down_payment, "down_payment")
    if down_payment < 0:
        raise LoanValidationError("down_payment must not be negative", "down_payment")
    return max(price - down_payment, ZERO)


def principal_interest_split(result: AmortizationResult) -> Tuple[int, int]:
    """Return ``(principal_pct, interest_pct)`` for the donut chart."""
    return result.principal_interest_split()


def _pay_down(balance: Decimal, rate_per_period: Decimal, payment: Decimal, limit: int) -> Tuple[Decimal, int]:
    """Repay ``balance`` with a fixed installment; return ``(interest, periods)``."""
    interest_total = ZERO
    used = 0
    while balance > 0 and used < limit:
        used += 1
        interest = balance * rate_per_period
        principal_payment = payment - interest
        if used == limit or principal_payment > balance:
            principal_payment = balance
        balance -= principal_payment
        interest_total += interest
    return interest_total, used


def prepayment_impact(params: LoanParameters, amount, after_period: int, mode: str = "term") -> PrepaymentImpact:
    """Estimate the effect of a lump-sum prepayment.

    The prepayment is applied to the outstanding balance right after
    installment ``after_period`` (0 means before the first installment).

    * ``"term"`` keeps the installment and repays the loan sooner.
    * ``"installment"`` keeps the remaining term and re-amortises the
      reduced balance into a smaller installment.

    Interest saved is measured against the unmodified schedule of ``params``.
    A prepayment larger than the outstanding balance closes the loan.
    """
    amount = to_decimal(amount, "amount")
    if amount <= 0:
        raise LoanValidationError("prepayment amount must be positive", "amount")
    mode = str(mode).lower()
    if mode not in PREPAYMENT_MODES:
        raise LoanValidationError(f"prepayment mode must be 'term' or 'installment'; got {mode}", "mode")
    if isinstance(after_period, bool) or not isinstance(after_period, int):
        raise LoanValidationError("after_period must be an integer", "after_period")
    if not 0 <= after_period < params.periods:
        raise LoanValidationError(
            f"after_period must be between 0 and {params.periods - 1}; got {after_period}", "after_period"
        )

    baseline = amortize(params)
    if not baseline.schedule:
        raise LoanValidationError("there is no outstanding balance to prepay", "principal")

    rate = params.rate_per_period
    paid_rows = baseline.schedule[:after_period]
    interest_before = sum((row.interest_payment for row in paid_rows), ZERO)
    outstanding = paid_rows[-1].ending_balance if paid_rows else baseline.financed_principal
    balance = max(outstanding - amount, ZERO)
    remaining = params.periods - after_period

    if balance == 0:
        payment = ZERO
        future_interest = ZERO
        periods_used = 0
    elif mode == "term":
        payment = baseline.payment
        future_interest, periods_used = _pay_down(balance, rate, payment, remaining)
    else:
        payment = _calculate_annuity_payment(balance, rate, remaining)
        _, future_interest, _ = _amortization_rows(balance, rate, payment, remaining)
        periods_used = remaining

    baseline_interest = sum((row.interest_payment for row in baseline.schedule), ZERO)
    interest_saved = max(baseline_interest - interest_before - future_interest, ZERO)
    logger.debug(
        "Prepayment of %s after period %d (%s): saves %s interest, %d periods",
        amount,
        after_period,
        mode,
        interest_saved,
        remaining - periods_used,
    )
    return PrepaymentImpact(
        mode=mode,
        amount=amount,
        after_period=after_period,
        payment=payment,
        total_interest=baseline.total_interest - interest_saved,
        interest_saved=interest_saved,
        periods_saved=remaining - periods_used,
    )


def extra_payment_impact(params: LoanParameters, extra_percent) -> ExtraPaymentImpact:
    """Estimate the effect of paying ``extra_percent`` % more than the EMI.

    The raised installment is paid from the first period onwards, so the
    loan closes early. Interest saved is measured against the unmodified
    schedule of ``params``.
    """
    extra_percent = to_decimal(extra_percent, "extra_percent")
    if extra_percent < 0:
        raise LoanValidationError("extra_percent must not be negative", "extra_percent")

    baseline = amortize(params)
    if not baseline.schedule:
        raise LoanValidationError("there is no outstanding balance to repay", "principal")

    try:
        payment = baseline.payment * (1 + extra_percent / Decimal(100))
        interest, periods_used = _pay_down(
            baseline.financed_principal, params.rate_per_period, payment, params.periods
        )
    except (Overflow, InvalidOperation) as exc:
        raise LoanValidationError("extra_percent is too large", "extra_percent") from exc

    baseline_interest = sum((row.interest_payment for row in baseline.schedule), ZERO)
    interest_saved = max(baseline_interest - interest, ZERO)
    logger.debug(
        "Paying %s%% extra: %d periods instead of %d, saves %s interest",
        extra_percent,
        periods_used,
        params.periods,
        interest_saved,
    )
    return ExtraPaymentImpact(
        extra_percent=extra_percent,
        payment=payment,
        periods=periods_used,
        total_interest=baseline.total_interest - interest_saved,
        interest_saved=interest_saved,
        periods_saved=params.periods - periods_used,
    )


def affordability(result: AmortizationResult, monthly_income, max_ratio=Decimal("0.5")) -> Affordability:
    """Check the installment against ``max_ratio`` of the monthly income.

    Lenders usually cap all loan installments at half of the take-home pay.
    Installments on a non-monthly frequency are converted to their monthly
    equivalent first. Amounts are compared in whole rupees.
    """
    monthly_income = to_decimal(monthly_income, "monthly_income")
    if monthly_income <= 0:
        raise LoanValidationError("monthly_income must be positive", "monthly_income")
    max_ratio = to_decimal(max_ratio, "max_ratio")
    if not 0 < max_ratio <= 1:
        raise LoanValidationError("max_ratio must be above 0 and at most 1", "max_ratio")

    monthly_payment = result.payment * Decimal(result.periods_per_year) / Decimal(12)
    max_safe = (monthly_income * max_ratio).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    affordable = monthly_payment.quantize(Decimal("1"), rounding=ROUND_HALF_UP) <= max_safe
    return Affordability(
        monthly_income=monthly_income,
        max_ratio=max_ratio,
        monthly_payment=monthly_payment,
        max_safe_payment=max_safe,
        affordable=affordable,
    )


def tax_benefit(result: AmortizationResult, tax_bracket, max_years: int = 8) -> TaxBenefit:
    """Estimate the income-tax deduction on education-loan interest.

    The interest is spread evenly over the repayment years, and the deduction
    is available for at most ``max_years`` of them (eight under section 80E
    of the Indian Income Tax Act). Savings are rounded to whole rupees.
    """
    tax_bracket = to_decimal(tax_bracket, "tax_bracket")
    if not 0 <= tax_bracket <= 100:
        raise LoanValidationError("tax_bracket must be between 0 and 100", "tax_bracket")
    if isinstance(max_years, bool) or not isinstance(max_years, int) or max_years < 0:
        raise LoanValidationError("max_years must be a non-negative integer", "max_years")
    if not result.schedule:
        return TaxBenefit(tax_bracket, ZERO, ZERO, ZERO, ZERO)

    years = Decimal(result.periods) / Decimal(result.periods_per_year)
    annual_interest = result.total_interest / years
    annual_saving = (annual_interest * tax_bracket / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    total_saving = (annual_saving * min(years, Decimal(max_years))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return TaxBenefit(
        tax_bracket=tax_bracket,
        years=years,
        annual_saving=annual_saving,
        total_saving=total_saving,
        effective_interest=max(result.total_interest - total_saving, ZERO),
    )
