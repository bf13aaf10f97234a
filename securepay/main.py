from __future__ import annotations

import asyncio
import contextlib
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

import typer
from rich.console import Console

from securepay.config import Settings, get_settings
from securepay.domain.drafts import TRANSACTION_CATEGORIES, parse_draft
from securepay.domain.goals import BudgetGoal, GoalUnit
from securepay.domain.models import ScheduleType, TransactionKind
from securepay.errors import DraftValidationError
from securepay.infrastructure.context import AppContext, build_context, memory_context
from securepay.infrastructure.contracts import User, WriteResult
from securepay.reporter import print_goal, print_insights, print_schedules, print_transactions
from securepay.session import DashboardSession
from securepay.utils.logging import configure_logging

app = typer.Typer(help="SecurePay+ dashboard sync CLI.")
console = Console()

DEMO_USER = User(id="demo-user", email="demo@securepay.local")


def _setup() -> Settings:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return settings


@contextlib.asynccontextmanager
async def _open_session(
    settings: Settings, ctx: Optional[AppContext] = None
) -> AsyncIterator[DashboardSession]:
    ctx = ctx or build_context(settings)
    try:
        async with DashboardSession(ctx) as session:
            if session.user is None:
                console.print("[red]Not signed in.[/red] Set SECUREPAY_USER_ID to sync a user.")
                raise typer.Exit(code=1)
            yield session
    finally:
        if settings.backend == "postgres":
            from securepay.infrastructure.db_factory import close_pools

            await close_pools()


def _report(result: WriteResult, success: str) -> None:
    if result.get("ok"):
        console.print(f"[green]{success}[/green] [dim]id={result.get('record_id')}[/dim]")
        return
    console.print(f"[red]{result.get('error') or 'Request failed.'}[/red]")
    raise typer.Exit(code=1)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"backend={settings.backend} | "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"tables={settings.transactions_table},{settings.schedules_table} | "
        f"user={settings.user_id or '-'}"
    )


@app.command()
def transactions(
    insights: bool = typer.Option(False, "--insights", "-i", help="Also show balance and spending."),
    months: int = typer.Option(6, "--months", help="Months of spending history with --insights."),
) -> None:
    """
    List the signed-in user's transactions, newest first.
    """
    settings = _setup()

    async def _run() -> None:
        async with _open_session(settings) as session:
            print_transactions(session.transactions.items, error=session.transactions.error, console=console)
            if insights:
                print_insights(session.insights(), session.spending(months), console=console)

    asyncio.run(_run())


@app.command("add-transaction")
def add_transaction(
    merchant: str = typer.Option(..., "--merchant", "-m", help="Merchant name."),
    amount: str = typer.Option(..., "--amount", "-a", help="Positive amount, e.g. 120.50."),
    category: str = typer.Option(
        "Food", "--category", "-c", help=f"One of {', '.join(TRANSACTION_CATEGORIES)} (free text allowed)."
    ),
    kind: TransactionKind = typer.Option(TransactionKind.EXPENSE, "--kind", "-k"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
) -> None:
    """
    Add a transaction (shown optimistically until the store confirms it).
    """
    settings = _setup()
    data = {
        "merchant": merchant,
        "amount": amount,
        "category": category,
        "kind": kind,
        "description": description,
    }

    async def _run() -> WriteResult:
        async with _open_session(settings) as session:
            return await session.add_transaction(data)

    _report(asyncio.run(_run()), "Transaction added successfully.")


@app.command()
def schedules() -> None:
    """
    List scheduled payments, soonest first.
    """
    settings = _setup()

    async def _run() -> None:
        async with _open_session(settings) as session:
            print_schedules(session.schedules.items, error=session.schedules.error, console=console)

    asyncio.run(_run())


@app.command("save-schedule")
def save_schedule(
    payee: str = typer.Option(..., "--payee", "-p"),
    amount: str = typer.Option(..., "--amount", "-a"),
    schedule_type: ScheduleType = typer.Option(ScheduleType.MONTHLY, "--type", "-t"),
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        help="Day of month (monthly), weekday 0-6 (weekly) or days between runs (custom).",
    ),
    next_run: Optional[datetime] = typer.Option(None, "--next-run", help="Defaults to the next occurrence."),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    currency: Optional[str] = typer.Option(None, "--currency"),
    note: Optional[str] = typer.Option(None, "--note"),
    record_id: Optional[str] = typer.Option(None, "--id", help="Edit this schedule instead of creating one."),
) -> None:
    """
    Create or edit a scheduled payment.
    """
    settings = _setup()
    data = {
        "id": record_id,
        "payee": payee,
        "amount": amount,
        "schedule_type": schedule_type,
        "interval_value": interval,
        "next_run": _aware(next_run),
        "category": category,
        "currency": currency or settings.default_currency,
        "note": note,
    }

    async def _run() -> WriteResult:
        async with _open_session(settings) as session:
            return await session.save_schedule(data)

    _report(asyncio.run(_run()), "Schedule updated." if record_id else "Schedule created.")


@app.command("delete-schedule")
def delete_schedule(record_id: str = typer.Argument(..., help="Schedule id.")) -> None:
    """
    Delete a scheduled payment.
    """
    settings = _setup()

    async def _run() -> WriteResult:
        async with _open_session(settings) as session:
            return await session.delete_schedule(record_id)

    _report(asyncio.run(_run()), "Schedule deleted.")


@app.command()
def goal(
    target: str = typer.Option(..., "--target", help="Amount to save."),
    duration: float = typer.Option(3, "--duration", help="Number of weeks or months."),
    unit: GoalUnit = typer.Option(GoalUnit.MONTHS, "--unit", "-u"),
    saved: str = typer.Option("0", "--saved", help="Amount already saved."),
    name: str = typer.Option("Savings goal", "--name", "-n"),
) -> None:
    """
    Work out how much to save per week or month to reach a target.
    """
    _setup()
    try:
        budget = parse_draft(
            BudgetGoal,
            {"name": name, "target": target, "duration": duration, "unit": unit, "saved": saved},
        )
    except DraftValidationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    print_goal(budget.plan(), name=budget.name, console=console)


@app.command()
def watch(
    seconds: Optional[float] = typer.Option(None, "--seconds", "-s", help="Stop after this many seconds."),
) -> None:
    """
    Keep both lists live and re-render them whenever the store changes.
    """
    settings = _setup()

    async def _run() -> None:
        async with _open_session(settings) as session:
            changed = asyncio.Event()
            removers = [
                synced.reconciler.add_listener(lambda _rows: changed.set()) for synced in session.lists
            ]
            loop = asyncio.get_running_loop()
            deadline = loop.time() + seconds if seconds else None
            try:
                while True:
                    print_transactions(session.transactions.items, error=session.transactions.error, console=console)
                    print_schedules(session.schedules.items, error=session.schedules.error, console=console)
                    print_insights(session.insights(), console=console)
                    console.print(f"[dim]live: {', '.join(session.subscribed) or 'none'}[/dim]")
                    timeout = None if deadline is None else deadline - loop.time()
                    if timeout is not None and timeout <= 0:
                        break
                    try:
                        await asyncio.wait_for(changed.wait(), timeout)
                    except asyncio.TimeoutError:
                        break
                    changed.clear()
            finally:
                for remove in removers:
                    remove()

    asyncio.run(_run())


def _demo_rows(owner_id: str, now: datetime) -> Dict[str, List[Dict[str, Any]]]:
    def tx(days_ago: int, merchant: str, category: str, amount: str, kind: str = "expense") -> Dict[str, Any]:
        stamp = now - timedelta(days=days_ago)
        return {
            "user_id": owner_id,
            "merchant": merchant,
            "category": category,
            "amount": amount,
            "type": kind,
            "currency": "INR",
            "created_at": stamp,
            "updated_at": stamp,
        }

    return {
        "transactions": [
            tx(40, "Acme Payroll", "Salary", "52000.00", "income"),
            tx(9, "Acme Payroll", "Salary", "52000.00", "credit"),
            tx(6, "FreshMart", "Groceries", "2340.50"),
            tx(3, "Metro Card", "Transport", "500"),
            tx(1, "Cafe Mocha", "Food", "185.00", "debit"),
        ],
        "schedules": [
            {
                "user_id": owner_id,
                "payee": "City Power",
                "category": "Bills",
                "amount": "1800",
                "schedule_type": "monthly",
                "interval_value": 5,
                "next_run": now + timedelta(days=4),
            },
            {
                "user_id": owner_id,
                "payee": "Gym",
                "category": "Health",
                "amount": "999",
                "schedule_type": "custom",
                "interval_value": 30,
                "next_run": now + timedelta(days=12),
            },
        ],
    }


@app.command()
def demo() -> None:
    """
    Run an offline walkthrough against the in-memory backend.
    """
    settings = _setup()
    ctx = memory_context(settings, user=DEMO_USER)
    rows = _demo_rows(DEMO_USER.id, datetime.now(timezone.utc))
    ctx.transactions.seed(rows["transactions"])  # type: ignore[attr-defined]
    ctx.schedules.seed(rows["schedules"])  # type: ignore[attr-defined]

    async def _run() -> None:
        async with _open_session(settings.model_copy(update={"backend": "memory"}), ctx) as session:
            print_transactions(session.transactions.items, console=console)

            pending = asyncio.create_task(
                session.add_transaction({"merchant": "Book Nook", "amount": "50.005", "category": "Shopping"})
            )
            await asyncio.sleep(0)
            console.rule("Optimistic row (pending)")
            print_transactions(session.transactions.items, console=console)
            _report(await pending, "Transaction added successfully.")

            rejected = await session.add_transaction({"merchant": "", "amount": "10"})
            console.print(f"[yellow]Rejected draft:[/yellow] {rejected.get('error')}")

            first = session.schedules.items[0]
            _report(
                await session.save_schedule(
                    {
                        "id": first.id,
                        "payee": first.payee,
                        "amount": "1950",
                        "category": first.category,
                        "schedule_type": first.schedule_type,
                        "interval_value": first.interval_value,
                        "next_run": first.next_run,
                    }
                ),
                "Schedule updated.",
            )
            _report(await session.delete_schedule(session.schedules.items[-1].id), "Schedule deleted.")

            await session.wait_idle()
            console.rule("After sync")
            print_transactions(session.transactions.items, console=console)
            print_schedules(session.schedules.items, console=console)
            print_insights(session.insights(), session.spending(3), console=console)
            print_goal(BudgetGoal(name="Vacation", target="1500", duration=3).plan(), name="Vacation", console=console)

    asyncio.run(_run())


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
