"""CLI commands for account management."""

import typer
from rich.markup import escape
from rich.table import Table

from cohe.accounts.models import PROVIDER_DEFAULTS, Provider
from cohe.cli.helpers import console, get_store, mask_key
from cohe.exceptions import AccountNotFoundError


app = typer.Typer(help="Manage provider accounts", no_args_is_help=True)


@app.command("list")
def list_accounts() -> None:
    """List all accounts."""
    store = get_store()
    document = store.load()
    accounts = store.list_accounts()

    if not accounts:
        console.print("[yellow]No accounts configured.[/yellow]")
        console.print("Add one with: cohe account add")
        return

    table = Table(title="Accounts")
    table.add_column("", width=1)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Provider")
    table.add_column("API Key")
    table.add_column("Priority", justify="right")
    table.add_column("Status")

    for account in accounts:
        current = "●" if account.id == document.active_account_id else "○"
        status = "[green]active[/green]" if account.is_active else "[red]inactive[/red]"
        table.add_row(
            current,
            account.id,
            escape(account.name),
            str(account.provider),
            mask_key(account.api_key),
            str(account.priority),
            status,
        )

    console.print(table)
    active = document.active_account
    console.print(f"Active account: {escape(active.name) if active else 'none'}")


@app.command("add")
def add_account(
    name: str = typer.Option(..., "--name", "-n", help="Account name"),
    provider: Provider = typer.Option(..., "--provider", "-p", help="zai or minimax"),
    api_key: str = typer.Option(..., "--api-key", "-k", help="Provider API key"),
    base_url: str | None = typer.Option(None, "--base-url", help="Override the API base URL"),
    model: str | None = typer.Option(None, "--model", "-m", help="Default model"),
    group_id: str | None = typer.Option(
        None, "--group-id", "-g", help="MiniMax GroupId for usage queries"
    ),
    priority: int = typer.Option(0, "--priority", help="Rotation priority"),
) -> None:
    """Add a provider account."""
    default_url, default_model = PROVIDER_DEFAULTS[provider]
    account = get_store().add_account(
        name=name,
        provider=provider,
        api_key=api_key,
        base_url=base_url or default_url,
        default_model=model or default_model,
        group_id=group_id,
        priority=priority,
    )

    console.print(f"[green]Account added: {escape(account.name)}[/green]")
    console.print(f"[bold]ID:[/bold] {account.id}")
    if provider == Provider.MINIMAX and not group_id:
        console.print(
            "[yellow]No groupId set - MiniMax usage data may be incomplete.[/yellow]"
        )


@app.command("switch")
def switch_account(
    account_id: str = typer.Argument(..., help="Account ID to activate"),
) -> None:
    """Make an account the active one."""
    store = get_store()
    try:
        account = store.require_account(account_id)
    except AccountNotFoundError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        return

    store.set_active(account.id)
    console.print(f"[green]Switched to {escape(account.name)} ({account.provider})[/green]")


@app.command("remove")
def remove_account(
    account_id: str = typer.Argument(..., help="Account ID to remove"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Remove an account."""
    if not force:
        confirm = typer.confirm(f"Remove account {account_id}?")
        if not confirm:
            raise typer.Abort()

    if get_store().delete_account(account_id):
        console.print(f"[green]Account {account_id} has been removed.[/green]")
    else:
        console.print(f"[red]Account not found: {account_id}[/red]")


@app.command("edit")
def edit_account(
    account_id: str = typer.Argument(..., help="Account ID to edit"),
    name: str | None = typer.Option(None, "--name", "-n"),
    api_key: str | None = typer.Option(None, "--api-key", "-k"),
    base_url: str | None = typer.Option(None, "--base-url"),
    model: str | None = typer.Option(None, "--model", "-m"),
    group_id: str | None = typer.Option(None, "--group-id", "-g"),
    priority: int | None = typer.Option(None, "--priority"),
    active: bool | None = typer.Option(
        None, "--active/--inactive", help="Include in or exclude from rotation"
    ),
) -> None:
    """Update fields of an account."""
    changes = {
        "name": name,
        "api_key": api_key,
        "base_url": base_url,
        "default_model": model,
        "group_id": group_id,
        "priority": priority,
        "is_active": active,
    }
    changes = {k: v for k, v in changes.items() if v is not None}

    if not changes:
        console.print("[yellow]Nothing to update.[/yellow]")
        return

    store = get_store()
    try:
        store.require_account(account_id)
    except AccountNotFoundError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        return

    store.update_account(account_id, **changes)

    console.print("[green]Account updated successfully![/green]")
