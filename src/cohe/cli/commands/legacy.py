"""CLI commands for the legacy single-account-per-provider configuration."""

import typer
from rich.table import Table

from cohe.accounts.models import PROVIDER_DEFAULTS, Provider
from cohe.cli.helpers import console, get_legacy_store, mask_key


app = typer.Typer(
    help="Legacy per-provider credentials used when at most one account exists",
    no_args_is_help=True,
)


@app.command("show")
def show() -> None:
    """Show the legacy provider configuration."""
    document = get_legacy_store().load()

    table = Table(title="Legacy Providers")
    table.add_column("", width=1)
    table.add_column("Provider", style="cyan")
    table.add_column("API Key")
    table.add_column("Base URL")
    table.add_column("Model")

    for provider in Provider:
        config = document.providers.get(provider)
        table.add_row(
            "●" if provider == document.provider else "○",
            str(provider),
            mask_key(config.api_key) if config and config.api_key else "-",
            config.base_url if config else "-",
            config.default_model if config and config.default_model else "-",
        )

    console.print(table)


@app.command("set")
def set_provider(
    provider: Provider = typer.Argument(..., help="zai or minimax"),
    api_key: str = typer.Option(..., "--api-key", "-k", help="Provider API key"),
    base_url: str | None = typer.Option(None, "--base-url", help="Override the API base URL"),
    model: str | None = typer.Option(None, "--model", "-m", help="Default model"),
) -> None:
    """Store the legacy credential for a provider."""
    default_url, default_model = PROVIDER_DEFAULTS[provider]
    get_legacy_store().set_provider_config(
        provider, api_key, base_url or default_url, model or default_model
    )
    console.print(f"[green]Saved {provider} credentials.[/green]")


@app.command("switch")
def switch_provider(
    provider: Provider = typer.Argument(..., help="zai or minimax"),
) -> None:
    """Make a provider the active legacy provider."""
    store = get_legacy_store()
    if not store.get_provider_config(provider).api_key:
        console.print(f"[yellow]{provider} has no API key configured.[/yellow]")
        console.print(f"Set one with: cohe legacy set {provider} --api-key <key>")
        return

    store.set_active_provider(provider)
    console.print(f"[green]Switched to {provider}.[/green]")


@app.command("history")
def history(
    provider: Provider | None = typer.Argument(
        None, help="Provider to show (defaults to the active legacy provider)"
    ),
) -> None:
    """Show the daily usage history recorded by ``cohe usage``."""
    store = get_legacy_store()
    provider = provider or store.get_active_provider()
    records = store.get_usage_history(provider)

    if not records:
        console.print("No usage history available.")
        return

    table = Table(title=f"{str(provider).upper()} Usage (last {len(records)} days)")
    table.add_column("Date", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Percent", justify="right")

    for record in records:
        percent = record.used / record.limit * 100 if record.limit > 0 else 0
        table.add_row(
            record.date, f"{record.used:g}", f"{record.limit:g}", f"{percent:.0f}%"
        )

    console.print(table)
