"""CLI commands for usage alerts."""

import typer
from rich.table import Table

from cohe.accounts.models import AlertType
from cohe.cli.helpers import console, get_store


app = typer.Typer(help="Manage usage alerts", no_args_is_help=True)


@app.command("list")
def list_alerts() -> None:
    """List configured alerts."""
    alerts = get_store().load().alerts

    if not alerts:
        console.print("[yellow]No alerts configured.[/yellow]")
        return

    table = Table(title="Alerts")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Threshold", justify="right")
    table.add_column("Status")

    for alert in alerts:
        unit = "%" if alert.type == AlertType.USAGE else ""
        status = "[green]Enabled[/green]" if alert.enabled else "[red]Disabled[/red]"
        table.add_row(alert.id, str(alert.type), f"{alert.threshold:g}{unit}", status)

    console.print(table)


@app.command("add")
def add_alert(
    alert_type: AlertType = typer.Argument(..., help="usage or quota"),
    threshold: float = typer.Argument(..., help="Percent used, or remaining amount"),
) -> None:
    """Add an alert."""
    if threshold < 0:
        console.print("[red]Threshold must not be negative.[/red]")
        return

    alert = get_store().add_alert(alert_type, threshold)
    console.print(f"[green]Alert added: {alert.id}[/green]")


def _set_enabled(alert_id: str, enabled: bool) -> None:
    if get_store().update_alert(alert_id, enabled=enabled) is None:
        console.print(f"[red]Alert not found: {alert_id}[/red]")
        return
    state = "enabled" if enabled else "disabled"
    console.print(f"[green]Alert {alert_id} {state}.[/green]")


@app.command("enable")
def enable_alert(alert_id: str = typer.Argument(..., help="Alert ID")) -> None:
    """Enable an alert."""
    _set_enabled(alert_id, True)


@app.command("disable")
def disable_alert(alert_id: str = typer.Argument(..., help="Alert ID")) -> None:
    """Disable an alert."""
    _set_enabled(alert_id, False)
