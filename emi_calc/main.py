"""Command-line interface for the EMI calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute full amortization schedules, view summaries,
compare two loan scenarios, estimate the effect of a prepayment or of a
larger installment and keep a short history of saved calculations. Results
can be printed to the terminal or exported to JSON, CSV or tab-separated
files.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
from pathlib import Path
from typing import Any, Callable, Optional

import click

from .data_models import FREQUENCIES, MORATORIUM_MODES, PREPAYMENT_MODES, LoanParameters
from .engine import (
    affordability,
    amortize,
    extra_payment_impact,
    loan_amount,
    prepayment_impact,
    tax_benefit,
)
from .exceptions import LoanValidationError
from .formatter import (
    affordability_to_dict,
    extra_payment_to_dict,
    parameters_to_dict,
    prepayment_to_dict,
    print_affordability,
    print_comparison,
    print_extra_payment,
    print_prepayment,
    print_schedule,
    print_summary,
    print_tax_benefit,
    result_to_dict,
    schedule_to_clipboard,
    schedule_to_csv,
    summarize,
    tax_benefit_to_dict,
)
from .history_store import create_store_from_env
from .utils import parse_amount, parse_percent

MAX_PRINTED_ROWS = 120
CLI_USER = "local"


def _amount(ctx: click.Context, param: click.Parameter, value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_amount(value, param.name)
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc))


def _percent(ctx: click.Context, param: click.Parameter, value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_percent(value, param.name)
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc))


def loan_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the options describing a loan to a command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, callback=_amount,
                     help="Loan amount, e.g. 2500000, 25l, 2.5m or 1.2cr"),
        click.option("--rate", "-r", "rate", required=True, callback=_percent,
                     help="Annual interest rate (percent)"),
        click.option("--tenure", "-t", "tenure", required=True, type=click.IntRange(min=1),
                     help="Repayment tenure in years"),
        click.option("--frequency", "frequency", type=click.Choice(list(FREQUENCIES)), default="monthly",
                     show_default=True, help="Installment frequency"),
        click.option("--moratorium", "moratorium", type=click.IntRange(min=0), default=0,
                     help="Installment periods before repayment starts"),
        click.option("--moratorium-mode", "moratorium_mode", type=click.Choice(list(MORATORIUM_MODES)),
                     default=MORATORIUM_MODES[0], show_default=True,
                     help="How interest during the moratorium is handled"),
        click.option("--balloon", "balloon", default="0", callback=_amount,
                     help="Balloon amount due with the last installment"),
        click.option("--down-payment", "down_payment", default="0", callback=_amount,
                     help="Down payment; --principal is then the asset price"),
        click.option("--processing-fee", "processing_fee", default="0", callback=_percent,
                     help="One-time processing fee (percent of the loan)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_params_from_options(
    principal,
    rate,
    tenure: int,
    frequency: str = "monthly",
    moratorium: int = 0,
    moratorium_mode: str = MORATORIUM_MODES[0],
    balloon=0,
    down_payment=0,
    processing_fee=0,
) -> LoanParameters:
    periods_per_year = FREQUENCIES[frequency]
    try:
        if down_payment:
            principal = loan_amount(principal, down_payment)
        return LoanParameters(
            principal=principal,
            annual_rate=rate,
            periods=tenure * periods_per_year,
            periods_per_year=periods_per_year,
            moratorium_periods=moratorium,
            moratorium_mode=moratorium_mode,
            balloon=balloon,
            processing_fee_percent=processing_fee,
        )
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)


def _amortize(params: LoanParameters):
    try:
        return amortize(params)
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)


@click.command()
@loan_options
def _scenario(**kwargs: Any) -> None:
    """Parser for the option strings given to ``compare``."""


def parse_scenario(opts: str) -> LoanParameters:
    try:
        ctx = _scenario.make_context("scenario", shlex.split(opts))
    except click.UsageError as exc:
        raise click.BadParameter(f"Invalid scenario {opts!r}: {exc.format_message()}")
    return build_params_from_options(**ctx.params)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """An EMI calculator for amortizing loans."""
    level = "DEBUG" if verbose else os.environ.get("EMI_CALC_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json, .csv or .tsv)")
def schedule(output: Optional[str], **loan: Any) -> None:
    """Compute and print the full amortization schedule."""
    result = _amortize(build_params_from_options(**loan))
    if output:
        path = Path(output)
        suffix = path.suffix.lower()
        if suffix == ".json":
            with path.open("w", encoding="utf-8") as f:
                json.dump(result_to_dict(result), f, indent=2)
        elif suffix == ".csv":
            path.write_text(schedule_to_csv(result), encoding="utf-8")
        elif suffix == ".tsv":
            path.write_text(schedule_to_clipboard(result), encoding="utf-8")
        else:
            raise click.BadParameter("Unsupported output format; use .json, .csv or .tsv", param_hint="--output")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(result)
    # Limit schedule length printed to avoid flooding the terminal
    if len(result.schedule) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(result.schedule)} rows; showing first {MAX_PRINTED_ROWS} rows.")
        print_schedule(result.schedule[:MAX_PRINTED_ROWS])
    else:
        print_schedule(result.schedule)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.option("--income", "income", callback=_amount,
              help="Monthly income; checks the EMI against half of it")
@click.option("--tax-bracket", "tax_bracket", callback=_percent,
              help="Income-tax bracket (percent) for the education-loan interest deduction")
def summary(output: Optional[str], income, tax_bracket, **loan: Any) -> None:
    """Compute and print only the summary metrics for a loan."""
    result = _amortize(build_params_from_options(**loan))
    try:
        check = affordability(result, income) if income is not None else None
        benefit = tax_benefit(result, tax_bracket) if tax_bracket is not None else None
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension", param_hint="--output")
        data = {"summary": summarize(result)}
        if check is not None:
            data["affordability"] = affordability_to_dict(check)
        if benefit is not None:
            data["tax_benefit"] = tax_benefit_to_dict(benefit)
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(result)
        if check is not None:
            print_affordability(check)
        if benefit is not None:
            print_tax_benefit(benefit)


@cli.command()
@click.option("--scenario1", "scenario1", required=True, help="First scenario options quoted string")
@click.option("--scenario2", "scenario2", required=True, help="Second scenario options quoted string")
def compare(scenario1: str, scenario2: str) -> None:
    """Compare two loan scenarios.

    Scenarios are provided as quoted option strings, for example:

        emi-calc compare --scenario1 "-p 50l -r 8.5 -t 20" --scenario2 "-p 50l -r 8.1 -t 15"
    """
    result1 = _amortize(parse_scenario(scenario1))
    result2 = _amortize(parse_scenario(scenario2))
    print_comparison(result1, result2)


@cli.command()
@loan_options
@click.option("--amount", "amount", required=True, callback=_amount, help="Prepayment amount")
@click.option("--after", "after", type=int, default=0, show_default=True,
              help="Installment after which the prepayment is made")
@click.option("--mode", "mode", type=click.Choice(list(PREPAYMENT_MODES)), default="term", show_default=True,
              help="Reduce the remaining term or the installment")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def prepayment(amount, after: int, mode: str, as_json: bool, **loan: Any) -> None:
    """Estimate interest and time saved by a lump-sum prepayment."""
    params = build_params_from_options(**loan)
    try:
        impact = prepayment_impact(params, amount, after, mode)
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    if as_json:
        click.echo(json.dumps(prepayment_to_dict(impact), indent=2))
    else:
        print_prepayment(impact)


@cli.command("extra-emi")
@loan_options
@click.option("--extra", "extra", required=True, callback=_percent,
              help="Percentage paid on top of every installment")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def extra_emi(extra, as_json: bool, **loan: Any) -> None:
    """Estimate how much sooner the loan closes when paying more each period."""
    params = build_params_from_options(**loan)
    try:
        impact = extra_payment_impact(params, extra)
    except LoanValidationError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    if as_json:
        click.echo(json.dumps(extra_payment_to_dict(impact), indent=2))
    else:
        print_extra_payment(impact)


@cli.group()
@click.option("--database", "database", envvar="EMI_CALC_DATABASE_URL",
              help="SQLAlchemy URL of the history database")
@click.pass_context
def history(ctx: click.Context, database: Optional[str]) -> None:
    """Manage saved calculations."""
    ctx.obj = create_store_from_env(database)


@history.command("list")
@click.pass_obj
def history_list(store) -> None:
    """List saved calculations, newest first."""
    entries = store.list(CLI_USER)
    if not entries:
        click.echo("No saved calculations.")
        return
    for entry in entries:
        s = entry["summary"]
        click.echo(
            f"{entry['id']:>4}  {entry['name']:<24} EMI {s['payment']:>12,.2f}  "
            f"interest {s['total_interest']:>14,.2f}  {entry['created_at']}"
        )


@history.command("save")
@loan_options
@click.option("--name", "name", default="Calculation", help="Label for the saved calculation")
@click.pass_obj
def history_save(store, name: str, **loan: Any) -> None:
    """Compute a loan and save it to the history."""
    params = build_params_from_options(**loan)
    result = _amortize(params)
    calculation_id = store.save(CLI_USER, name, parameters_to_dict(params), summarize(result))
    click.echo(f"Saved calculation {calculation_id}")


@history.command("show")
@click.argument("calculation_id", type=int)
@click.pass_obj
def history_show(store, calculation_id: int) -> None:
    """Print a saved calculation as JSON."""
    entry = store.load(CLI_USER, calculation_id)
    if entry is None:
        raise click.ClickException(f"No saved calculation with id {calculation_id}")
    click.echo(json.dumps(entry, indent=2))


@history.command("delete")
@click.argument("calculation_id", type=int)
@click.pass_obj
def history_delete(store, calculation_id: int) -> None:
    """Delete a saved calculation."""
    if not store.delete(CLI_USER, calculation_id):
        raise click.ClickException(f"No saved calculation with id {calculation_id}")
    click.echo(f"Deleted calculation {calculation_id}")


@history.command("clear")
@click.pass_obj
def history_clear(store) -> None:
    """Delete all saved calculations."""
    store.clear(CLI_USER)
    click.echo("History cleared.")


if __name__ == "__main__":
    cli()
