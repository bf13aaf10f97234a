"""
Sample-data script for the SecurePay+ Postgres backend.

Generates deterministic pseudo-random transactions for one user, writes them
to CSV and loads them with Postgres COPY. Run `db/init.sql` first.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import typer
from psycopg import sql

from securepay.config import get_settings
from securepay.infrastructure.db_factory import get_sync_connection

app = typer.Typer(help="Generate sample transactions and load them into Postgres (CSV + COPY).")

COLUMNS = ["user_id", "type", "amount", "currency", "category", "merchant", "icon", "created_at", "updated_at"]

MERCHANTS = {
    "Food": ["Cafe Mocha", "Spice Route", "Burger Barn"],
    "Groceries": ["FreshMart", "Daily Basket"],
    "Transport": ["Metro Card", "City Cabs"],
    "Shopping": ["Book Nook", "Urban Threads"],
    "Bills": ["City Power", "FiberNet"],
}
ICONS = {"Food": "🍔", "Groceries": "🛒", "Transport": "🚇", "Shopping": "🛍️", "Bills": "💡", "Salary": "💰"}


def _generate_rows_csv(csv_path: Path, user_id: str, rows: int, days: int, seed: int) -> None:
    rng = random.Random(seed)
    now = datetime.now(UTC)
    categories = sorted(MERCHANTS)

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(COLUMNS)
        for i in range(rows):
            created = (now - timedelta(seconds=rng.randint(0, days * 86_400))).isoformat()
            # Roughly one salary credit per twenty entries.
            if i % 20 == 0:
                writer.writerow(
                    [user_id, "income", "52000.00", "INR", "Salary", "Acme Payroll", ICONS["Salary"], created, created]
                )
                continue
            category = rng.choice(categories)
            amount = round(rng.uniform(20, 5_000), 2)
            writer.writerow(
                [
                    user_id,
                    "expense",
                    f"{amount:.2f}",
                    "INR",
                    category,
                    rng.choice(MERCHANTS[category]),
                    ICONS[category],
                    created,
                    created,
                ]
            )


def _copy_into_db(dsn: str | None, table: str, csv_path: Path) -> None:
    statement = sql.SQL("COPY {} ({}) FROM STDIN WITH (FORMAT csv, HEADER TRUE)").format(
        sql.Identifier(table),
        sql.SQL(", ").join(sql.Identifier(c) for c in COLUMNS),
    )
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            with cur.copy(statement) as copy:
                with csv_path.open("r", encoding="utf-8") as f:
                    for line in f:
                        copy.write(line)
        conn.commit()


@app.command()
def main(
    user_id: str | None = typer.Option(
        None,
        "--user-id",
        "-u",
        help="Owner of the generated rows (defaults to SECUREPAY_USER_ID).",
    ),
    rows: int = typer.Option(200, "--rows", "-r", help="Number of transactions to generate."),
    days: int = typer.Option(180, "--days", help="Spread created_at over this many past days."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    no_load: bool = typer.Option(False, "--no-load", help="Only generate CSV; skip loading into Postgres."),
) -> None:
    """
    Generate sample transactions and optionally load them into Postgres using COPY.
    """
    settings = get_settings()
    owner = user_id or settings.user_id
    if not owner:
        typer.echo("A user id is required (--user-id or SECUREPAY_USER_ID).", err=True)
        raise typer.Exit(code=2)

    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        csv_path = Path(tempfile.mkdtemp(prefix="securepay_csv_")) / "transactions.csv"

    start = time.perf_counter()
    typer.echo(f"Generating {rows:,} transactions for {owner} -> {csv_path} (seed={seed})")
    _generate_rows_csv(csv_path, user_id=owner, rows=rows, days=days, seed=seed)

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    typer.echo(f"Loading CSV into {settings.transactions_table} via COPY...")
    _copy_into_db(dsn, settings.transactions_table, csv_path)
    typer.echo(f"Done in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
