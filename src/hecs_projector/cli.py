"""Interactive CLI: click entry point + interactive update loop.

Session startup:
  1. Prompt for mandatory fields (current_debt, annual_income) unless given.
  2. Run the projection with defaults for everything else.
  3. Enter the interactive update loop.

Update loop:
  - Show the schedule, chart or milestone timeline of the last projection.
  - Let the user update any field, switch rate table, save the calculation,
    or exit.
"""
from __future__ import annotations

import logging
import sys
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .calculator import MilestoneKind, SimulationResult
from .config import DEFAULT_TABLE_YEAR, HORIZON_YEARS, LOG_FORMAT, ZERO
from .rate_tables import SUPPORTED_TABLE_YEARS, RateSchedule, get_schedule
from .resolver import InputValidationError, ResolvedInputs, UserInputs, resolve, run_projection
from .store import PersistError, save_submission

console = Console()
err_console = Console(stderr=True, style="bold red")

_CHART_WIDTH = 40

# ──────────────────────────────────────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────────────────────────────────────

def _fmt_money(value: Decimal) -> str:
    return f"${value.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"


def _fmt_cents(value: Decimal) -> str:
    return f"${value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,}"


def _fmt_pct(value: Decimal) -> str:
    return f"{value}%"


_MILESTONE_STYLE = {
    MilestoneKind.START: "blue",
    MilestoneKind.PROGRESS: "blue",
    MilestoneKind.PAYMENT_EVENT: "cyan",
    MilestoneKind.PAYOFF: "green",
    MilestoneKind.HORIZON_REACHED: "yellow",
}


# ──────────────────────────────────────────────────────────────────────────────
# Result display
# ──────────────────────────────────────────────────────────────────────────────

def display_result(result: SimulationResult, resolved: ResolvedInputs) -> None:
    console.print()
    console.print(Panel(
        f"[bold green]HECS-HELP Projection[/bold green]: "
        f"table {resolved.schedule.year} / indexation {_fmt_pct(resolved.indexation_rate)}",
        expand=False,
    ))

    t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    t.add_column("Field", style="cyan")
    t.add_column("Value", justify="right")

    years = str(result.years_to_repay)
    if not result.paid_off and result.years_to_repay == HORIZON_YEARS:
        years = f"{HORIZON_YEARS}+ (not repaid)"

    t.add_row("Repayment rate", _fmt_pct(result.initial_repayment_rate))
    t.add_row("Years to repay", years)
    t.add_row("Annual repayment", _fmt_money(result.initial_annual_repayment))
    t.add_row("Weekly repayment", _fmt_cents(result.initial_weekly_repayment))
    t.add_row("Total indexation", _fmt_money(result.total_indexation_accrued))
    t.add_row("Total repayments", _fmt_money(result.total_repaid))
    t.add_row("Next year's balance (with indexation)", _fmt_money(result.projected_balance_next_period))
    console.print(t)


def display_milestones(result: SimulationResult) -> None:
    t = Table(title="Repayment Milestones", box=box.MINIMAL_HEAVY_HEAD)
    t.add_column("Year", justify="right")
    t.add_column("Milestone")
    t.add_column("Balance", justify="right")
    for m in result.milestones:
        style = _MILESTONE_STYLE[m.kind]
        t.add_row(str(m.year), f"[{style}]{m.description}[/{style}]", _fmt_money(m.debt_value_at_event))
    console.print(t)


def display_schedule(result: SimulationResult) -> None:
    if not result.yearly_records:
        console.print("  No repayments to project.")
        return

    t = Table(title="Yearly Projection", box=box.MINIMAL_HEAVY_HEAD)
    for col in ("Year", "Income", "Repayment", "Remaining Debt"):
        t.add_column(col, justify="right")
    for row in result.yearly_records:
        t.add_row(
            str(row.year),
            _fmt_money(row.income),
            _fmt_money(row.annual_repayment),
            _fmt_money(row.remaining_debt),
        )
    console.print(t)


def _bar(value: Decimal, peak: Decimal) -> str:
    if peak <= ZERO:
        return ""
    return "█" * int(value / peak * _CHART_WIDTH)


def display_chart(result: SimulationResult) -> None:
    """Text chart of remaining debt and annual repayment per year."""
    balances = result.balance_series()
    if not balances:
        console.print("  No repayments to project.")
        return
    repayments = dict(result.repayment_series())
    peak = max(
        max(v for _, v in balances),
        max(repayments.values()),
    )

    t = Table(title="Repayment Projection", box=box.SIMPLE, padding=(0, 1))
    t.add_column("Year", justify="right")
    t.add_column("Remaining Debt", style="blue", no_wrap=True)
    t.add_column("Annual Repayment", style="green", no_wrap=True)
    for year, balance in balances:
        t.add_row(
            str(year),
            f"{_bar(balance, peak)} {_fmt_money(balance)}",
            f"{_bar(repayments[year], peak)} {_fmt_money(repayments[year])}",
        )
    console.print(t)


def display_params(resolved: ResolvedInputs) -> None:
    t = Table(title="Current Parameters", box=box.SIMPLE, show_header=True, padding=(0, 2))
    t.add_column("Parameter", style="cyan")
    t.add_column("Value", justify="right")
    t.add_column("Source", style="dim")

    sim = resolved.simulation
    vp = sim.voluntary_payment
    t.add_row("current_debt", _fmt_money(sim.current_debt), "user")
    t.add_row("annual_income", _fmt_money(sim.annual_income), "user")
    t.add_row("salary_growth_rate", _fmt_pct(sim.salary_growth_rate), resolved.sources.get("salary_growth_rate", ""))
    t.add_row("table_year", resolved.schedule.year, resolved.sources.get("table_year", ""))
    t.add_row("indexation_rate", _fmt_pct(resolved.indexation_rate), resolved.sources.get("indexation_rate", ""))
    if vp is not None:
        t.add_row("voluntary_payment", f"{_fmt_money(vp.amount)} in year {vp.year}", "user")
    console.print(t)


def display_table(schedule: RateSchedule) -> None:
    t = Table(title=f"Repayment Rates {schedule.year}", box=box.SIMPLE, padding=(0, 2))
    t.add_column("Income from", justify="right")
    t.add_column("Income to", justify="right")
    t.add_column("Rate", justify="right")
    for bracket in schedule.thresholds:
        upper = "and above" if bracket.max_income is None else _fmt_money(bracket.max_income - 1)
        t.add_row(_fmt_money(bracket.min_income), upper, _fmt_pct(bracket.rate))
    console.print(t)
    if schedule.description:
        console.print(f"  [dim]{schedule.description}[/dim]")


def display_validation_errors(exc: InputValidationError) -> None:
    lines = "\n".join(f"  [cyan]{name}[/cyan]: {msg}" for name, msg in exc.errors.items())
    console.print(Panel(f"[bold red]Invalid input[/bold red]\n{lines}", expand=False))


# ──────────────────────────────────────────────────────────────────────────────
# Input helpers
# ──────────────────────────────────────────────────────────────────────────────

def _parse_decimal(raw: str) -> Decimal:
    value = Decimal(raw.replace(",", "").replace("$", "").replace(" ", ""))
    if not value.is_finite():
        raise InvalidOperation(f"not a finite number: {raw!r}")
    return value


def _prompt_decimal(prompt: str) -> Decimal:
    while True:
        raw = console.input(f"[bold]{prompt}[/bold] ").strip()
        try:
            value = _parse_decimal(raw)
        except InvalidOperation:
            err_console.print(f"  Invalid number: '{raw}'")
            continue
        if value < 0:
            err_console.print("  Value must be >= 0.")
            continue
        return value


def _prompt_int(prompt: str, *, min_val: int = 1) -> int:
    while True:
        raw = console.input(f"[bold]{prompt}[/bold] ").strip()
        try:
            value = int(raw)
        except ValueError:
            err_console.print(f"  Invalid integer: '{raw}'")
            continue
        if value < min_val:
            err_console.print(f"  Value must be >= {min_val}.")
            continue
        return value


def _prompt_table_year() -> str:
    while True:
        raw = console.input(
            f"[bold]Table year ({', '.join(sorted(SUPPORTED_TABLE_YEARS))}): [/bold]"
        ).strip()
        if raw in SUPPORTED_TABLE_YEARS:
            return raw
        err_console.print(f"  Unsupported table year '{raw}'.")


# ──────────────────────────────────────────────────────────────────────────────
# Projection runner
# ──────────────────────────────────────────────────────────────────────────────

def run_simulation(inputs: UserInputs) -> Optional[tuple[ResolvedInputs, SimulationResult]]:
    """Validate and project. Prints field errors and returns None on failure."""
    try:
        resolved = resolve(inputs)
    except InputValidationError as exc:
        display_validation_errors(exc)
        return None

    result = run_projection(resolved)
    display_result(result, resolved)
    display_milestones(result)
    return resolved, result


def save_result(resolved: ResolvedInputs, result: SimulationResult) -> bool:
    """Save the calculation; a failure is reported but never fatal."""
    try:
        record = save_submission(resolved.simulation, result)
    except PersistError as exc:
        console.print(f"[yellow]Calculation not saved: {exc}[/yellow]")
        return False
    console.print(f"[green]Calculation saved ({record.created_at}).[/green]")
    return True


# ──────────────────────────────────────────────────────────────────────────────
# Interactive update loop
# ──────────────────────────────────────────────────────────────────────────────

_UPDATABLE_FIELDS = {
    "current_debt", "annual_income", "salary_growth_rate", "table_year",
    "indexation_rate", "voluntary_payment",
}


def interactive_loop(inputs: UserInputs, *, save_first: bool = False) -> None:
    last_resolved: Optional[ResolvedInputs] = None
    last_result: Optional[SimulationResult] = None

    result = run_simulation(inputs)
    if result:
        last_resolved, last_result = result
        if save_first:
            save_result(last_resolved, last_result)

    while True:
        console.print()
        console.print(
            "[bold]Actions:[/bold] "
            "[cyan]update[/cyan] · [cyan]reset[/cyan] · [cyan]schedule[/cyan] · "
            "[cyan]chart[/cyan] · [cyan]milestones[/cyan] · [cyan]table[/cyan] · "
            "[cyan]params[/cyan] · [cyan]save[/cyan] · [cyan]exit[/cyan]"
        )
        action = console.input("[bold]> [/bold]").strip().lower()

        if action in ("exit", "quit", "q"):
            console.print("Goodbye.")
            break

        elif action in ("schedule", "chart", "milestones", "params", "save"):
            if last_result is None or last_resolved is None:
                err_console.print("Run a projection first.")
            elif action == "schedule":
                display_schedule(last_result)
            elif action == "chart":
                display_chart(last_result)
            elif action == "milestones":
                display_milestones(last_result)
            elif action == "params":
                display_params(last_resolved)
            else:
                save_result(last_resolved, last_result)

        elif action == "table":
            display_table(get_schedule(inputs.table_year or DEFAULT_TABLE_YEAR))

        elif action == "update":
            console.print(f"  Fields: {', '.join(sorted(_UPDATABLE_FIELDS))}")
            field = console.input("[bold]Field to update: [/bold]").strip().lower()
            if field not in _UPDATABLE_FIELDS:
                err_console.print(f"  Unknown field '{field}'.")
                continue
            _apply_update(field, inputs)
            result = run_simulation(inputs)
            if result:
                last_resolved, last_result = result

        elif action == "reset":
            field = console.input("[bold]Field to reset to its default: [/bold]").strip().lower()
            _reset_field(field, inputs)
            result = run_simulation(inputs)
            if result:
                last_resolved, last_result = result

        else:
            err_console.print(f"  Unknown action '{action}'.")


def _apply_update(field: str, inputs: UserInputs) -> None:
    try:
        if field == "current_debt":
            inputs.current_debt = _prompt_decimal("New HECS-HELP debt:")
        elif field == "annual_income":
            inputs.annual_income = _prompt_decimal("New annual income:")
        elif field == "salary_growth_rate":
            inputs.salary_growth_rate = _prompt_decimal("Expected annual salary increase (%):")
        elif field == "table_year":
            inputs.table_year = _prompt_table_year()
        elif field == "indexation_rate":
            inputs.indexation_rate = _prompt_decimal("Indexation rate (%):")
        elif field == "voluntary_payment":
            inputs.voluntary_payment_year = _prompt_int("Voluntary payment year (1 = this year):")
            inputs.voluntary_payment_amount = _prompt_decimal("Voluntary payment amount:")
    except (KeyboardInterrupt, EOFError):
        console.print("\n  Update cancelled.")


def _reset_field(field: str, inputs: UserInputs) -> None:
    if field == "salary_growth_rate":
        inputs.salary_growth_rate = None
    elif field == "table_year":
        inputs.table_year = None
    elif field == "indexation_rate":
        inputs.indexation_rate = None
    elif field == "voluntary_payment":
        inputs.voluntary_payment_year = None
        inputs.voluntary_payment_amount = None
    else:
        err_console.print(f"  Field '{field}' cannot be reset (it is mandatory).")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Click entry point
# ──────────────────────────────────────────────────────────────────────────────

@click.command()
@click.option("--debt", type=str, default=None, help="Current HECS-HELP debt")
@click.option("--income", type=str, default=None, help="Annual income before tax")
@click.option("--salary-growth", type=str, default=None, help="Expected annual salary increase in percent (default: 3)")
@click.option("--table-year", type=click.Choice(sorted(SUPPORTED_TABLE_YEARS)), default=None,
              help=f"Repayment table (default: {DEFAULT_TABLE_YEAR})")
@click.option("--indexation-rate", type=str, default=None, help="Override the table's indexation rate (percent)")
@click.option("--voluntary-year", type=int, default=None, help="Year of a one-off voluntary payment (1 = this year)")
@click.option("--voluntary-amount", type=str, default=None, help="Amount of the voluntary payment")
@click.option("--save", "save_", is_flag=True, default=False, help="Save the first projection to the configured store")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log each simulated year")
def main(
    debt: Optional[str],
    income: Optional[str],
    salary_growth: Optional[str],
    table_year: Optional[str],
    indexation_rate: Optional[str],
    voluntary_year: Optional[int],
    voluntary_amount: Optional[str],
    save_: bool,
    verbose: bool,
) -> None:
    """Interactive HECS-HELP repayment projector."""
    configure_logging(verbose)
    console.print(Panel("[bold blue]HECS Debt Calculator[/bold blue]", expand=False))

    def _parse_opt(s: Optional[str], name: str) -> Optional[Decimal]:
        if s is None:
            return None
        try:
            return _parse_decimal(s)
        except InvalidOperation:
            err_console.print(f"Invalid value for --{name}: '{s}'")
            sys.exit(1)

    cd = _parse_opt(debt, "debt")
    if cd is None:
        cd = _prompt_decimal("Current HECS debt?")

    inc = _parse_opt(income, "income")
    if inc is None:
        inc = _prompt_decimal("Annual income?")

    inputs = UserInputs(
        current_debt=cd,
        annual_income=inc,
        salary_growth_rate=_parse_opt(salary_growth, "salary-growth"),
        table_year=table_year,
        indexation_rate=_parse_opt(indexation_rate, "indexation-rate"),
        voluntary_payment_year=voluntary_year,
        voluntary_payment_amount=_parse_opt(voluntary_amount, "voluntary-amount"),
    )

    try:
        interactive_loop(inputs, save_first=save_)
    except (KeyboardInterrupt, EOFError):
        console.print("\nSession ended.")
