"""Output helpers for the EMI calculator.

This module renders amortization results for the terminal and serialises
them for the consumers of the engine: JSON-friendly dictionaries, CSV export
and the tab-separated text copied to the clipboard. Exports round amounts to
whole currency units the way the calculator pages display them.
"""

from __future__ import annotations

import csv
import io
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List

from .data_models import (
    Affordability,
    AmortizationResult,
    AmortizationRow,
    ExtraPaymentImpact,
    LoanParameters,
    PrepaymentImpact,
    TaxBenefit,
)

EXPORT_HEADER = ["Month", "Principal", "Interest", "Balance"]


def whole(value: Decimal) -> int:
    """Round half-up to a whole currency unit."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize(result: AmortizationResult) -> Dict[str, Any]:
    """Return the headline figures of ``result`` as plain Python values."""
    principal_pct, interest_pct = result.principal_interest_split()
    return {
        "principal": cents(result.principal),
        "financed_principal": cents(result.financed_principal),
        "payment": cents(result.payment),
        "total_interest": cents(result.total_interest),
        "total_payment": cents(result.total_payment),
        "periods": result.periods,
        "periods_per_year": result.periods_per_year,
        "capitalized_interest": cents(result.capitalized_interest),
        "moratorium_interest_paid": cents(result.moratorium_interest_paid),
        "balloon_payment": cents(result.balloon_payment),
        "processing_fee": cents(result.processing_fee),
        "total_cost": cents(result.total_cost),
        "principal_pct": principal_pct,
        "interest_pct": interest_pct,
    }


def serialize_schedule(schedule: Iterable[AmortizationRow]) -> List[Dict[str, Any]]:
    """Convert schedule rows into JSON-serialisable dictionaries for charts."""
    return [
        {
            "period": row.period,
            "starting_balance": cents(row.starting_balance),
            "payment": cents(row.payment),
            "principal": cents(row.principal_payment),
            "interest": cents(row.interest_payment),
            "balance": cents(row.ending_balance),
        }
        for row in schedule
    ]


def parameters_to_dict(params: LoanParameters) -> Dict[str, Any]:
    """Return loan inputs in a form that can be stored as JSON."""
    return {
        "principal": str(params.principal),
        "annual_rate": str(params.annual_rate),
        "periods": params.periods,
        "periods_per_year": params.periods_per_year,
        "moratorium_periods": params.moratorium_periods,
        "moratorium_mode": params.moratorium_mode,
        "balloon": str(params.balloon),
        "processing_fee_percent": str(params.processing_fee_percent),
    }


def result_to_dict(result: AmortizationResult) -> Dict[str, Any]:
    return {"summary": summarize(result), "schedule": serialize_schedule(result.schedule)}


def prepayment_to_dict(impact: PrepaymentImpact) -> Dict[str, Any]:
    return {
        "mode": impact.mode,
        "amount": cents(impact.amount),
        "after_period": impact.after_period,
        "payment": cents(impact.payment),
        "total_interest": cents(impact.total_interest),
        "interest_saved": cents(impact.interest_saved),
        "periods_saved": impact.periods_saved,
    }


def extra_payment_to_dict(impact: ExtraPaymentImpact) -> Dict[str, Any]:
    return {
        "extra_percent": float(impact.extra_percent),
        "payment": cents(impact.payment),
        "periods": impact.periods,
        "total_interest": cents(impact.total_interest),
        "interest_saved": cents(impact.interest_saved),
        "periods_saved": impact.periods_saved,
    }


def affordability_to_dict(check: Affordability) -> Dict[str, Any]:
    return {
        "monthly_income": cents(check.monthly_income),
        "monthly_payment": cents(check.monthly_payment),
        "max_safe_payment": whole(check.max_safe_payment),
        "affordable": check.affordable,
    }


def tax_benefit_to_dict(benefit: TaxBenefit) -> Dict[str, Any]:
    return {
        "tax_bracket": float(benefit.tax_bracket),
        "annual_saving": whole(benefit.annual_saving),
        "total_saving": whole(benefit.total_saving),
        "effective_interest": cents(benefit.effective_interest),
    }


def _export(result: AmortizationResult, delimiter: str) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for row in result.schedule:
        writer.writerow(
            [
                row.period,
                whole(row.principal_payment),
                whole(row.interest_payment),
                whole(row.ending_balance),
            ]
        )
    return buffer.getvalue()


def schedule_to_csv(result: AmortizationResult) -> str:
    """Return the schedule as comma-separated text (month, principal, interest, balance)."""
    return _export(result, ",")


def schedule_to_clipboard(result: AmortizationResult) -> str:
    """Return the schedule as tab-separated text suitable for pasting into a spreadsheet."""
    return _export(result, "\t")


def print_summary(result: AmortizationResult) -> None:
    """Print a summary of loan metrics in a human-readable format."""
    principal_pct, interest_pct = result.principal_interest_split()
    print("Summary")
    print("-" * 72)
    print(f"Principal          : {result.principal:,.2f}")
    if result.financed_principal != result.principal:
        print(f"Amortized principal: {result.financed_principal:,.2f}")
    print(f"Installment (EMI)  : {result.payment:,.2f}")
    print(f"Total interest     : {result.total_interest:,.2f}")
    print(f"Total payment      : {result.total_payment:,.2f}")
    if result.capitalized_interest:
        print(f"Capitalized int.   : {result.capitalized_interest:,.2f}")
    if result.moratorium_interest_paid:
        print(f"Moratorium int.    : {result.moratorium_interest_paid:,.2f}")
    if result.balloon_payment:
        print(f"Balloon payment    : {result.balloon_payment:,.2f}")
    if result.processing_fee:
        print(f"Processing fee     : {result.processing_fee:,.2f}")
        print(f"Total cost         : {result.total_cost:,.2f}")
    print(f"Installments       : {result.periods}")
    print(f"Principal/Interest : {principal_pct}% / {interest_pct}%")
    print("-" * 72)


def print_schedule(schedule: Iterable[AmortizationRow]) -> None:
    """Print the amortization schedule as a simple table."""
    headers = ["Period", "StartBal", "Payment", "Principal", "Interest", "EndBal"]
    print("\t".join(headers))
    for row in schedule:
        print(
            "\t".join(
                [
                    str(row.period),
                    f"{row.starting_balance:.2f}",
                    f"{row.payment:.2f}",
                    f"{row.principal_payment:.2f}",
                    f"{row.interest_payment:.2f}",
                    f"{row.ending_balance:.2f}",
                ]
            )
        )


def print_prepayment(impact: PrepaymentImpact) -> None:
    print("Prepayment")
    print("-" * 72)
    print(f"Amount             : {impact.amount:,.2f} after installment {impact.after_period}")
    print(f"Mode               : reduce {impact.mode}")
    print(f"New installment    : {impact.payment:,.2f}")
    print(f"Total interest     : {impact.total_interest:,.2f}")
    print(f"Interest saved     : {impact.interest_saved:,.2f}")
    if impact.periods_saved:
        print(f"Term reduction     : {impact.periods_saved} installments")
    print("-" * 72)


def print_extra_payment(impact: ExtraPaymentImpact) -> None:
    print("Extra installment")
    print("-" * 72)
    print(f"Installment        : {impact.payment:,.2f} ({impact.extra_percent}% extra)")
    print(f"Installments       : {impact.periods} ({impact.periods_saved} fewer)")
    print(f"Total interest     : {impact.total_interest:,.2f}")
    print(f"Interest saved     : {impact.interest_saved:,.2f}")
    print("-" * 72)


def print_affordability(check: Affordability) -> None:
    verdict = "within" if check.affordable else "above"
    print(f"Affordability      : {check.monthly_payment:,.2f} a month is {verdict} "
          f"the safe limit of {whole(check.max_safe_payment):,}")


def print_tax_benefit(benefit: TaxBenefit) -> None:
    print(f"Tax saving (80E)   : {whole(benefit.annual_saving):,} a year, "
          f"{whole(benefit.total_saving):,} in total")
    print(f"Effective interest : {benefit.effective_interest:,.2f}")


def print_comparison(s1: AmortizationResult, s2: AmortizationResult) -> None:
    """Print a comparison of two loan results side by side.

    The difference column is scenario2 - scenario1, so a negative difference
    means the second scenario is cheaper or shorter.
    """
    print("Comparison")
    print("=" * 72)
    metrics = [
        ("payment", s1.payment, s2.payment),
        ("total_interest", s1.total_interest, s2.total_interest),
        ("total_payment", s1.total_payment, s2.total_payment),
        ("periods", Decimal(s1.periods), Decimal(s2.periods)),
    ]
    print(f"{'Metric':20s} {'Scenario1':>15s} {'Scenario2':>15s} {'Difference':>15s}")
    for key, v1, v2 in metrics:
        print(f"{key:20s} {v1:15.2f} {v2:15.2f} {v2 - v1:15.2f}")
    print("=" * 72)
