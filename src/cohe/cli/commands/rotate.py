"""CLI command for rotating within one provider."""

import typer

from cohe.accounts.models import Provider
from cohe.claude_settings import apply_account_to_settings
from cohe.cli.helpers import console, get_engine, load_settings


def rotate(
    provider: Provider = typer.Argument(..., help="Provider to rotate (zai or minimax)"),
) -> None:
    """Rotate to the next API key for a provider."""
    settings = load_settings()
    engine = get_engine(settings)

    result = engine.rotate_provider(provider)
    if result.current is None or not result.changed:
        console.print(f"[yellow]No other accounts available for {provider}.[/yellow]")
        console.print("Add more accounts with: cohe account add")
        return

    apply_account_to_settings(settings.claude_settings_file, result.current)

    console.print(f"[green]Rotated to account: {result.current.name}[/green]")
    console.print(
        f"New active account: {result.current.name} ({result.current.provider})"
    )
