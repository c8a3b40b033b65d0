"""Data models for the EMI calculator.

This module defines dataclasses for the inputs and outputs of the amortization
engine: the validated loan parameters, one row of the amortization schedule,
the overall result and the outcome of a prepayment. Inputs are frozen so a
parameter set cannot change once it has been validated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Tuple

from .exceptions import LoanValidationError

MORATORIUM_SIMPLE = "simple"
MORATORIUM_COMPOUND = "compound"
MORATORIUM_INTEREST_ONLY = "interest-only"
MORATORIUM_MODES = (MORATORIUM_SIMPLE, MORATORIUM_COMPOUND, MORATORIUM_INTEREST_ONLY)

PREPAYMENT_MODES = ("term", "installment")

# Common payment frequencies expressed as periods per year.
FREQUENCIES = {
    "monthly": 12,
    "quarterly": 4,
    "half-yearly": 2,
    "yearly": 1,
}


def to_decimal(value: object, name: str) -> Decimal:
    """Convert a numeric input to a finite ``Decimal``.

    Floats go through ``str`` so that ``8.5`` becomes ``Decimal("8.5")``
    rather than its binary expansion. Booleans, NaN and infinities are
    rejected.
    """
    if isinstance(value, bool) or value is None:
        raise LoanValidationError(f"{name} must be a number", name)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise LoanValidationError(f"{name} must be a number; got {value!r}", name) from exc
    else:
        raise LoanValidationError(f"{name} must be a number; got {type(value).__name__}", name)
    if not result.is_finite():
        raise LoanValidationError(f"{name} must be finite", name)
    return result


def _require_int(value: object, name: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise LoanValidationError(f"{name} must be an integer; got {value!r}", name)
    if value < minimum:
        raise LoanValidationError(f"{name} must be at least {minimum}; got {value}", name)
    return value


@dataclass(frozen=True)
class LoanParameters:
    """Validated inputs for one amortization calculation.

    Attributes
    ----------
    principal: Decimal
        The amount borrowed. Zero is allowed and yields an empty schedule.
    annual_rate: Decimal
        Annual nominal interest rate in percent (``8.5`` means 8.5 %).
    periods: int
        Number of repayment periods after any moratorium.
    periods_per_year: int
        Payment and compounding frequency (12 for monthly EMIs).
    moratorium_periods: int
        Periods before repayment starts during which no principal is repaid.
    moratorium_mode: str
        How moratorium interest is handled: ``"simple"`` capitalises simple
        interest, ``"compound"`` capitalises interest compounded each period
        and ``"interest-only"`` has the borrower pay the interest as it
        accrues.
    balloon: Decimal
        Lump sum due together with the final installment.
    processing_fee_percent: Decimal
        One-time fee charged upfront, in percent of ``principal``. It is a
        cost of the loan but never part of the schedule.
    """

    principal: Decimal
    annual_rate: Decimal
    periods: int
    periods_per_year: int = 12
    moratorium_periods: int = 0
    moratorium_mode: str = MORATORIUM_SIMPLE
    balloon: Decimal = Decimal("0")
    processing_fee_percent: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        # frozen dataclass: normalise through object.__setattr__
        principal = to_decimal(self.principal, "principal")
        if principal < 0:
            raise LoanValidationError("principal must not be negative", "principal")
        annual_rate = to_decimal(self.annual_rate, "annual_rate")
        if annual_rate < 0:
            raise LoanValidationError("annual_rate must not be negative", "annual_rate")
        balloon = to_decimal(self.balloon, "balloon")
        if balloon < 0:
            raise LoanValidationError("balloon must not be negative", "balloon")
        fee_percent = to_decimal(self.processing_fee_percent, "processing_fee_percent")
        if not 0 <= fee_percent <= 100:
            raise LoanValidationError(
                "processing_fee_percent must be between 0 and 100", "processing_fee_percent"
            )
        _require_int(self.periods, "periods", 1)
        _require_int(self.periods_per_year, "periods_per_year", 1)
        _require_int(self.moratorium_periods, "moratorium_periods", 0)
        mode = str(self.moratorium_mode).lower()
        if mode not in MORATORIUM_MODES:
            raise LoanValidationError(
                f"moratorium_mode must be one of {', '.join(MORATORIUM_MODES)}; got {self.moratorium_mode}",
                "moratorium_mode",
            )
        object.__setattr__(self, "principal", principal)
        object.__setattr__(self, "annual_rate", annual_rate)
        object.__setattr__(self, "balloon", balloon)
        object.__setattr__(self, "processing_fee_percent", fee_percent)
        object.__setattr__(self, "moratorium_mode", mode)

    @property
    def rate_per_period(self) -> Decimal:
        """Periodic interest rate as a fraction."""
        return self.annual_rate / Decimal(self.periods_per_year) / Decimal(100)

    @property
    def processing_fee(self) -> Decimal:
        return self.principal * self.processing_fee_percent / Decimal(100)


@dataclass(frozen=True)
class AmortizationRow:
    """One period of the amortization schedule.

    ``payment`` always equals ``principal_payment + interest_payment``; only
    the final period may differ from the regular EMI because it absorbs the
    rounding drift of the earlier periods.
    """

    period: int
    starting_balance: Decimal
    payment: Decimal
    principal_payment: Decimal
    interest_payment: Decimal
    ending_balance: Decimal


@dataclass
class AmortizationResult:
    """Totals and schedule of one calculation.

    ``principal`` is the amount originally borrowed while
    ``financed_principal`` is what the schedule actually amortises after the
    moratorium and balloon adjustments. For every result
    ``total_payment == total_interest + principal``.
    """

    principal: Decimal
    financed_principal: Decimal
    payment: Decimal
    total_interest: Decimal
    total_payment: Decimal
    schedule: List[AmortizationRow] = field(default_factory=list)
    periods_per_year: int = 12
    capitalized_interest: Decimal = Decimal("0")
    moratorium_interest_paid: Decimal = Decimal("0")
    balloon_payment: Decimal = Decimal("0")
    processing_fee: Decimal = Decimal("0")

    @property
    def periods(self) -> int:
        return len(self.schedule)

    @property
    def total_cost(self) -> Decimal:
        """Everything the borrower pays, including the upfront fee."""
        return self.total_payment + self.processing_fee

    def principal_interest_split(self) -> Tuple[int, int]:
        """Return whole-number percentages of principal and interest paid.

        The two values always add up to 100, or are both 0 when nothing is
        paid (zero principal).
        """
        if self.total_payment <= 0:
            return 0, 0
        share = self.principal / self.total_payment * Decimal(100)
        principal_pct = int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return principal_pct, 100 - principal_pct


@dataclass(frozen=True)
class PrepaymentImpact:
    """Effect of a lump-sum prepayment on an existing schedule.

    Attributes
    ----------
    mode: str
        ``"term"`` keeps the installment and shortens the loan,
        ``"installment"`` keeps the term and lowers the installment.
    payment: Decimal
        The regular installment after the prepayment.
    periods_saved: int
        Installments no longer needed (always 0 in ``"installment"`` mode).
    """

    mode: str
    amount: Decimal
    after_period: int
    payment: Decimal
    total_interest: Decimal
    interest_saved: Decimal
    periods_saved: int


@dataclass(frozen=True)
class ExtraPaymentImpact:
    """Effect of paying a fixed percentage more than the EMI every period.

    ``payment`` is the raised installment, ``periods`` the number of
    installments needed with it.
    """

    extra_percent: Decimal
    payment: Decimal
    periods: int
    total_interest: Decimal
    interest_saved: Decimal
    periods_saved: int


@dataclass(frozen=True)
class Affordability:
    """Installment compared with the borrower's monthly income.

    Attributes
    ----------
    monthly_payment: Decimal
        The installment converted to a monthly amount.
    max_safe_payment: Decimal
        Largest monthly installment within ``max_ratio`` of the income.
    affordable: bool
        Whether ``monthly_payment`` (in whole rupees) stays within
        ``max_safe_payment``.
    """

    monthly_income: Decimal
    max_ratio: Decimal
    monthly_payment: Decimal
    max_safe_payment: Decimal
    affordable: bool


@dataclass(frozen=True)
class TaxBenefit:
    """Income-tax saving on education-loan interest."""

    tax_bracket: Decimal
    years: Decimal
    annual_saving: Decimal
    total_saving: Decimal
    effective_interest: Decimal
