from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from securepay.domain.goals import GoalPlan, GoalUnit
from securepay.domain.insights import Insights
from securepay.domain.models import ScheduledPayment, Transaction, TransactionKind
from securepay.utils.money import format_money

OPTIMISTIC_STYLE = "dim italic"


def _when(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%d %b %Y %H:%M")


def print_transactions(
    rows: Sequence[Transaction],
    error: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render the visible transactions, newest first.

    Rows still waiting for the store are shown dim and italic.
    """
    console = console or Console()
    if error:
        console.print(f"[red]{error}[/red]")
    if not rows:
        console.print("[yellow]No transactions yet.[/yellow]")
        return

    table = Table(title="Transactions", box=box.ROUNDED, caption="Newest first")
    table.add_column("", no_wrap=True)
    table.add_column("Merchant", style="cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Amount", justify="right")
    table.add_column("When", style="green")
    table.add_column("Id", style="dim", overflow="fold")

    for tx in rows:
        colour = "green" if tx.kind is TransactionKind.INCOME else "red"
        table.add_row(
            tx.icon,
            tx.merchant,
            tx.category,
            f"[{colour}]{format_money(tx.signed_amount, signed=True)}[/{colour}]",
            _when(tx.created_at),
            tx.id,
            style=OPTIMISTIC_STYLE if tx.is_optimistic else None,
        )
    console.print(table)


def print_schedules(
    rows: Sequence[ScheduledPayment],
    error: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    if error:
        console.print(f"[red]{error}[/red]")
    if not rows:
        console.print("[yellow]No scheduled payments.[/yellow]")
        return

    table = Table(title="Scheduled payments", box=box.ROUNDED, caption="Next run first")
    table.add_column("", no_wrap=True)
    table.add_column("Payee", style="cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Amount", justify="right", style="bold")
    table.add_column("Schedule")
    table.add_column("Next run", style="green")
    table.add_column("Id", style="dim", overflow="fold")

    for item in rows:
        table.add_row(
            item.icon,
            item.payee,
            item.category,
            format_money(item.amount),
            item.summary() if item.active else f"{item.summary()} (paused)",
            _when(item.next_run),
            item.id,
            style=OPTIMISTIC_STYLE if item.is_optimistic else None,
        )
    console.print(table)


def print_insights(
    insights: Insights,
    spending: Iterable[Tuple[str, object]] = (),
    console: Optional[Console] = None,
) -> None:
    """Balance, 7-day spend and the monthly spending series."""
    console = console or Console()
    table = Table(title="Insights", box=box.SIMPLE, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_row("Balance", format_money(insights.balance, signed=True))
    table.add_row("Spent, last 7 days", format_money(insights.last_7_days))
    table.add_row("Average per day", format_money(insights.avg_per_day))
    for month, total in spending:
        table.add_row(f"Spent in {month}", format_money(total))
    console.print(table)


def print_goal(plan: GoalPlan, name: Optional[str] = None, console: Optional[Console] = None) -> None:
    console = console or Console()
    period = "week" if plan.unit is GoalUnit.WEEKS else "month"
    table = Table(title=name or "Savings goal", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")

    lines: List[Tuple[str, str]] = [
        ("Target", format_money(plan.target)),
        ("Saved", format_money(plan.saved)),
        ("Remaining", format_money(plan.remaining)),
        ("Duration", f"{plan.duration} {period}{'s' if plan.duration != 1 else ''}"),
        (f"Save per {period}", f"[bold green]{format_money(plan.per_period)}[/bold green]"),
    ]
    if plan.per_month_estimate is not None:
        lines.append(("≈ per month", format_money(plan.per_month_estimate)))
    lines.append(("Progress", f"{plan.percent}%"))

    for label, value in lines:
        table.add_row(label, value)
    console.print(table)


__all__ = ["print_goal", "print_insights", "print_schedules", "print_transactions"]
