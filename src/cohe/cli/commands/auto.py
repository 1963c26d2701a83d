"""CLI commands for automatic rotation."""

from pathlib import Path

import orjson
import typer
from rich.table import Table

from cohe.accounts.models import RotationStrategy
from cohe.claude_settings import apply_account_to_settings
from cohe.cli.helpers import (
    console,
    err_console,
    get_engine,
    get_store,
    load_settings,
    run_async,
)
from cohe.rotation.engine import RotationEngine, RotationResult


app = typer.Typer(help="Automatic account rotation", no_args_is_help=True)


@app.command("enable")
def enable(
    strategy: RotationStrategy | None = typer.Argument(
        None, help="Rotation strategy (defaults to the configured one)"
    ),
    cross_provider: bool = typer.Option(
        False, "--cross-provider", help="Rotate across zai and minimax"
    ),
) -> None:
    """Enable automatic rotation."""
    store = get_store()
    rotation = store.configure_rotation(
        enabled=True,
        strategy=strategy,
        cross_provider=cross_provider,
    )

    console.print("[green]Auto-rotation enabled.[/green]")
    console.print(f"Strategy: {rotation.strategy}")
    console.print(f"Cross-provider: {'Yes' if rotation.cross_provider else 'No'}")


@app.command("disable")
def disable() -> None:
    """Disable automatic rotation."""
    get_store().configure_rotation(enabled=False)
    console.print("[green]Auto-rotation disabled.[/green]")


@app.command("status")
def status() -> None:
    """Show automatic rotation settings."""
    document = get_store().load()
    rotation = document.rotation

    table = Table(title="Auto-Rotation Status", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row(
        "Enabled", "[green]Yes[/green]" if rotation.enabled else "[red]No[/red]"
    )
    table.add_row("Strategy", str(rotation.strategy))
    table.add_row("Cross-provider", "Yes" if rotation.cross_provider else "No")
    table.add_row("Last rotation", rotation.last_rotation or "Never")
    console.print(table)

    active = document.active_account
    if active is not None:
        console.print(f"Active account: {active.name} ({active.provider})")


def _rotation_payload(result: RotationResult) -> dict:
    account = result.current
    if account is None:
        return {"success": False, "error": "No accounts available"}
    return {
        "success": True,
        "account": {
            "id": account.id,
            "name": account.name,
            "provider": str(account.provider),
            "apiKey": account.api_key,
            "baseUrl": account.base_url,
            "defaultModel": account.default_model,
        },
    }


@app.command("rotate")
def rotate(
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    silent: bool = typer.Option(False, "--silent", help="Suppress output"),
) -> None:
    """Rotate across all active accounts using the configured strategy."""
    engine = get_engine()
    result = run_async(engine.rotate_across_providers())

    if as_json:
        typer.echo(orjson.dumps(_rotation_payload(result)).decode())
        return
    if silent:
        return

    if result.current is None:
        console.print("[yellow]No accounts available for rotation.[/yellow]")
        console.print("Add accounts with: cohe account add")
    elif result.changed:
        console.print(
            f"[green]Rotated to {result.current.name} ({result.current.provider})[/green]"
        )
    else:
        console.print(
            f"Keeping {result.current.name} ({result.current.provider}): "
            "no better account available"
        )


async def _run_hook(engine: RotationEngine, settings_file: Path, silent: bool) -> None:
    document = engine.store.load()
    account = document.accounts.get(document.active_model_provider_id or "")

    if account is None:
        if not silent:
            err_console.print("No active model provider found")
    else:
        apply_account_to_settings(settings_file, account)

    if document.rotation.enabled:
        # Prepares the next session; this one keeps the credentials applied above.
        engine.schedule_deferred_rotation()
    await engine.wait_for_background()


@app.command("hook")
def hook(
    silent: bool = typer.Option(False, "--silent", help="No output, for use in hooks"),
) -> None:
    """Session start hook: apply the active credentials, then rotate."""
    settings = load_settings()
    engine = get_engine(settings)
    run_async(_run_hook(engine, settings.claude_settings_file, silent))
