"""Shared plumbing for CLI commands."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import typer
from rich.console import Console

from cohe.accounts.legacy import LegacyProviderStore
from cohe.accounts.store import AccountStore, JsonAccountStore
from cohe.config.settings import Settings, get_settings
from cohe.exceptions import ConfigurationError
from cohe.rotation.engine import RotationEngine
from cohe.usage.fetcher import UsageFetcher


T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


def load_settings() -> Settings:
    """Settings for the current invocation; exits when they are invalid."""
    try:
        return get_settings()
    except ConfigurationError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e


def get_store(settings: Settings | None = None) -> AccountStore:
    settings = settings or load_settings()
    return JsonAccountStore(settings.accounts_file)


def get_legacy_store(settings: Settings | None = None) -> LegacyProviderStore:
    settings = settings or load_settings()
    return LegacyProviderStore(settings.legacy_file)


def get_fetcher(settings: Settings | None = None) -> UsageFetcher:
    return UsageFetcher.from_settings(settings or load_settings())


def get_engine(settings: Settings | None = None) -> RotationEngine:
    """Rotation engine wired to the configured stores and fetcher."""
    settings = settings or load_settings()
    return RotationEngine(
        store=get_store(settings),
        usage_source=get_fetcher(settings),
        legacy_store=get_legacy_store(settings),
        max_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay_seconds,
    )


def run_async(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion from a synchronous command."""

    async def runner() -> T:
        return await coro

    return asyncio.run(runner())


def mask_key(api_key: str) -> str:
    """Show only the first and last four characters of a key."""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"
