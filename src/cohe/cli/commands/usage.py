"""CLI command for querying provider usage."""

import asyncio

import typer
from rich.markup import escape

from cohe.accounts.legacy import LegacyProviderStore
from cohe.accounts.models import Account, AccountsDocument, AlertType, Provider
from cohe.alerts import check_usage_alerts
from cohe.cli.helpers import (
    console,
    get_fetcher,
    get_legacy_store,
    get_store,
    load_settings,
    run_async,
)
from cohe.rotation.retry import with_retry
from cohe.usage.fetcher import UsageSource
from cohe.usage.models import Usage


RULE = "─" * 50


def _active_marker(document: AccountsDocument, account: Account) -> str:
    is_model = document.active_model_provider_id == account.id
    is_mcp = document.active_mcp_provider_id == account.id

    if is_model and is_mcp:
        return " [Active: Model + MCP]"
    if is_model:
        return " [Active: Model]"
    if is_mcp:
        return " [Active: MCP]"
    if document.active_account_id == account.id:
        return " [Active account]"
    return ""


def _print_details(usage: Usage, indent: str) -> None:
    console.print(f"{indent}Used:      {round(usage.used)}")
    console.print(f"{indent}Limit:     {round(usage.limit)}")
    console.print(f"{indent}Remaining: {round(usage.remaining)}")


def _print_account_usage(
    document: AccountsDocument, account: Account, usage: Usage | None, verbose: bool
) -> None:
    marker = _active_marker(document, account)
    arrow = " →" if marker else "  "
    console.print(f"{arrow} {escape(account.name)} ({account.provider}){escape(marker)}")

    if account.provider == Provider.MINIMAX and not account.group_id:
        console.print("     [yellow]Missing groupId - usage data may be incomplete[/yellow]")

    if usage is None or not usage.is_known:
        console.print("  [red]Unable to fetch usage data[/red]")
        return

    model_mark = "* " if document.active_model_provider_id == account.id else "  "
    mcp_mark = "* " if document.active_mcp_provider_id == account.id else "  "

    if (
        account.provider == Provider.ZAI
        and usage.model_usage is not None
        and usage.mcp_usage is not None
    ):
        console.print(f"     {model_mark}Model: {round(usage.model_usage.percent_used)}%")
        console.print(f"     {mcp_mark}MCP:   {round(usage.mcp_usage.percent_used)}%")
        if verbose:
            console.print("     Model:")
            _print_details(usage.model_usage, "       ")
            console.print("     MCP:")
            _print_details(usage.mcp_usage, "       ")
    else:
        console.print(f"     {model_mark}Usage: {round(usage.percent_used)}%")
        if verbose:
            _print_details(usage, "     ")

    if verbose:
        triggered = check_usage_alerts(account.provider, usage, document.alerts)
        if triggered:
            console.print("  [yellow]Alerts triggered:[/yellow]")
            for alert in triggered:
                unit = "%" if alert.type == AlertType.USAGE else " remaining"
                console.print(f"    - {alert.type}: threshold {alert.threshold:g}{unit}")


async def collect_usage(
    accounts: list[Account],
    usage_source: UsageSource,
    max_attempts: int,
    delay: float,
) -> list[Usage | None]:
    """Fetch usage for each account through the retry wrapper, concurrently."""
    return list(
        await asyncio.gather(
            *(
                with_retry(
                    lambda account=account: usage_source.fetch_usage(account),
                    max_attempts=max_attempts,
                    validator=lambda u: u.is_known,
                    delay=delay,
                    context=f"{account.name} usage fetch",
                )
                for account in accounts
            )
        )
    )


def record_provider_history(
    legacy_store: LegacyProviderStore,
    accounts: list[Account],
    results: list[Usage | None],
) -> None:
    """Add today's per-provider totals to the legacy usage history."""
    totals: dict[Provider, tuple[float, float]] = {}
    for account, result in zip(accounts, results, strict=True):
        if result is None or result.limit <= 0:
            continue
        used, limit = totals.get(account.provider, (0, 0))
        totals[account.provider] = (used + result.used, limit + result.limit)

    for provider, (used, limit) in totals.items():
        legacy_store.record_usage(provider, used, limit)


def usage(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show detailed usage information"
    ),
) -> None:
    """Query quota and usage statistics for every active account."""
    settings = load_settings()
    store = get_store(settings)
    document = store.load()
    accounts = [a for a in document.accounts.values() if a.is_active]

    if not accounts:
        console.print("No active accounts found.")
        return

    results = run_async(
        collect_usage(
            accounts,
            get_fetcher(settings),
            settings.retry_attempts,
            settings.retry_delay_seconds,
        )
    )

    console.print()
    console.print(RULE)
    console.print(" Usage Statistics")
    console.print(RULE)
    console.print()

    for account, result in zip(accounts, results, strict=True):
        _print_account_usage(document, account, result, verbose)
        console.print()

    console.print(RULE)
    console.print(" Legend: → = Active provider, * = Active for Model/MCP")
    console.print(RULE)

    store.record_usage(
        {
            account.id: (result.used, result.limit)
            for account, result in zip(accounts, results, strict=True)
            if result is not None and result.limit > 0
        }
    )
    record_provider_history(get_legacy_store(settings), accounts, results)
