"""
CLI interface for Provider Limits.

Provides command-line access to the rate-limit and pricing store.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from provider_limits.config.loader import StoreConfig, load_fact_file, load_store_config
from provider_limits.core.pricing import record_price_change
from provider_limits.core.resolution import effective_limit
from provider_limits.ingest import ingest_bundle
from provider_limits.logging import configure_logging
from provider_limits.seed.default_data import default_bundle
from provider_limits.storage.errors import StoreError
from provider_limits.storage.models import ProviderPricing, RateLimit
from provider_limits.storage.repository import RateLimitStore

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        "-d",
        help="Path to the rate limit database (overrides --config)"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML store configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit JSON progress logs"
    ),
):
    """Provider Limits CLI."""
    configure_logging(logging.INFO if verbose else logging.WARNING)

    try:
        store_config = load_store_config(config) if config else StoreConfig()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if db:
        store_config = StoreConfig(db_path=db, busy_timeout_seconds=store_config.busy_timeout_seconds)
    ctx.obj = store_config

    if ctx.invoked_subcommand is None:
        console.print("Provider Limits - Use --help to see available commands")


@contextmanager
def _open_store(ctx: typer.Context) -> Iterator[RateLimitStore]:
    """Open the configured store, turning store failures into exit code 1."""
    store_config: StoreConfig = ctx.obj
    store = RateLimitStore(store_config.db_path, store_config.busy_timeout_seconds)
    try:
        store.initialize()
        yield store
    except (StoreError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        store.close()


@app.command()
def init(ctx: typer.Context):
    """Create the rate limit database and its schema."""
    with _open_store(ctx) as store:
        console.print(f"[green]✓[/] Database initialized at {store.db_path}")


@app.command()
def seed(ctx: typer.Context):
    """Load the built-in limits, plans and prices for core providers."""
    with _open_store(ctx) as store:
        summary = ingest_bundle(store, default_bundle())
        console.print(
            f"[green]✓[/] Seeded {summary.rate_limits} rate limits, "
            f"{summary.plans} plans and {summary.pricing} prices"
        )


@app.command()
def load(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="YAML fact file with plans, rate_limits and pricing"),
):
    """Upsert facts from a YAML file."""
    try:
        bundle = load_fact_file(path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid fact file:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    with _open_store(ctx) as store:
        summary = ingest_bundle(store, bundle)
        console.print(f"[green]✓[/] Loaded {summary.total} facts from {path}")


@app.command()
def query(
    ctx: typer.Context,
    provider: str = typer.Argument(...),
    plan: str = typer.Argument(...),
    limit_type: str = typer.Argument(..., help="rpm, tpm, rpd, rph, concurrent..."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model the call targets"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", "-e", help="Endpoint the call targets"),
):
    """Show the effective limit and the broader limits it overrides."""
    with _open_store(ctx) as store:
        candidates = store.query_rate_limit(provider, plan, limit_type, model=model, endpoint=endpoint)

    chosen = effective_limit(candidates)
    if chosen is None:
        console.print(f"[yellow]No {limit_type} limit found for {provider}/{plan}[/]")
        return

    console.print(
        f"[bold]Effective {limit_type}:[/bold] {chosen.limit_value:,} "
        f"per {_format_window(chosen.reset_window_seconds)} ({chosen.applies_to.value})"
    )
    console.print(_rate_limit_table(candidates, title="Matching limits"))


@app.command()
def limits(
    ctx: typer.Context,
    provider: str = typer.Argument(...),
    plan: str = typer.Argument(...),
):
    """List every rate limit of a provider plan."""
    with _open_store(ctx) as store:
        rows = store.get_all_rate_limits_for_provider(provider, plan)
        plan_info = store.get_plan_metadata(provider, plan)

    if plan_info is not None:
        console.print(f"[bold]{provider}[/bold] - {plan_info.official_name}")
    if not rows:
        console.print(f"[yellow]No rate limits stored for {provider}/{plan}[/]")
        return
    console.print(_rate_limit_table(rows, title=f"{provider} / {plan}"))


@app.command()
def pricing(
    ctx: typer.Context,
    provider: str = typer.Argument(...),
    model: str = typer.Argument(...),
    plan: str = typer.Argument(...),
):
    """Show the current price of a model on a plan."""
    with _open_store(ctx) as store:
        price = store.get_provider_pricing(provider, model, plan)

    if price is None:
        console.print(f"[yellow]No pricing stored for {provider}/{model}/{plan}[/]")
        return

    console.print(f"[bold]{provider} {model}[/bold] ({plan})")
    console.print(f"Input: {_format_cost(price.input_cost, price.currency)} per {price.unit_type}")
    console.print(f"Output: {_format_cost(price.output_cost, price.currency)} per {price.unit_type}")
    if price.included_units is not None:
        console.print(f"Included: {price.included_units:,} units")


@app.command("record-price")
def record_price(
    ctx: typer.Context,
    provider: str = typer.Argument(...),
    model: str = typer.Argument(...),
    plan: str = typer.Argument(...),
    input_cost: float = typer.Option(..., "--input", help="Input cost per unit"),
    output_cost: float = typer.Option(..., "--output", help="Output cost per unit"),
    unit_type: str = typer.Option("1M tokens", "--unit", help="Priced unit"),
    currency: str = typer.Option("USD", "--currency"),
    reason: str = typer.Option("", "--reason", "-r", help="Why the price changed"),
):
    """Set the current price and log the change to pricing history."""
    with _open_store(ctx) as store:
        new_price = ProviderPricing(
            provider=provider,
            model=model,
            plan=plan,
            input_cost=input_cost,
            output_cost=output_cost,
            unit_type=unit_type,
            currency=currency,
        )
        entry = record_price_change(store, new_price, reason=reason)

    if entry is None:
        console.print("[dim]Price unchanged; no history entry recorded[/]")
    else:
        console.print(f"[green]✓[/] Recorded price change #{entry.id} for {provider}/{model}/{plan}")


@app.command()
def history(
    ctx: typer.Context,
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    model: Optional[str] = typer.Option(None, "--model", "-m"),
    plan: Optional[str] = typer.Option(None, "--plan"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum entries to show"),
):
    """Show recorded price changes, newest first."""
    with _open_store(ctx) as store:
        entries = store.get_pricing_history(
            provider=provider, model=model, plan=plan, limit=limit
        )

    if not entries:
        console.print("[dim]No pricing history recorded.[/]")
        return

    table = Table(title="Pricing history")
    table.add_column("Date")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Plan")
    table.add_column("Input")
    table.add_column("Output")
    table.add_column("Reason")
    for entry in entries:
        table.add_row(
            entry.change_date.strftime("%Y-%m-%d"),
            entry.provider,
            entry.model,
            entry.plan,
            _format_change(entry.old_input_cost, entry.new_input_cost),
            _format_change(entry.old_output_cost, entry.new_output_cost),
            entry.change_reason,
        )
    console.print(table)


def _rate_limit_table(rows: List[RateLimit], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Type")
    table.add_column("Scope")
    table.add_column("Target")
    table.add_column("Limit", justify="right")
    table.add_column("Window")
    table.add_column("Burst", justify="right")
    table.add_column("Verified")
    for rl in rows:
        table.add_row(
            rl.limit_type,
            rl.applies_to.value,
            rl.endpoint or rl.model or "*",
            f"{rl.limit_value:,}",
            _format_window(rl.reset_window_seconds),
            f"{rl.burst_allowance:,}",
            rl.last_verified.strftime("%Y-%m-%d"),
        )
    return table


def _format_window(seconds: int) -> str:
    """Format a reset window for display."""
    if seconds == 0:
        return "n/a"
    for size, unit in ((86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds % size == 0:
            count = seconds // size
            return unit if count == 1 else f"{count} {unit}s"
    return f"{seconds}s"


def _format_cost(amount: float, currency: str) -> str:
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{amount:,.4f}"


def _format_change(old: Optional[float], new: float) -> str:
    if old is None:
        return f"{new:g}"
    return f"{old:g} → {new:g}"


if __name__ == "__main__":
    app()
