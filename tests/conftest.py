"""Shared fixtures for cohe tests."""

from collections.abc import Callable
from typing import Any

import pytest

from cohe.accounts.models import Account, CachedUsage, Provider
from cohe.accounts.store import InMemoryAccountStore
from cohe.usage.models import Usage


AccountFactory = Callable[..., Account]


@pytest.fixture
def make_account() -> AccountFactory:
    """Build accounts with predictable ids and sensible defaults."""

    def factory(
        account_id: str,
        provider: Provider = Provider.ZAI,
        priority: int = 0,
        is_active: bool = True,
        usage: tuple[float, float] | None = None,
        **kwargs: Any,
    ) -> Account:
        return Account(
            id=account_id,
            name=kwargs.pop("name", account_id),
            provider=provider,
            api_key=kwargs.pop("api_key", f"key-{account_id}"),
            base_url=kwargs.pop("base_url", f"https://{provider}.example.com"),
            default_model=kwargs.pop("default_model", "model"),
            priority=priority,
            is_active=is_active,
            usage=(
                CachedUsage(used=usage[0], limit=usage[1], last_updated="2024-01-01T00:00:00.000Z")
                if usage
                else None
            ),
            **kwargs,
        )

    return factory


@pytest.fixture
def store_with() -> Callable[..., InMemoryAccountStore]:
    """Build an in-memory store from accounts, with rotation settings."""

    def factory(
        accounts: list[Account],
        active_id: str | None = None,
        **rotation: Any,
    ) -> InMemoryAccountStore:
        rotation_data = {
            "enabled": True,
            "strategy": "round-robin",
            "crossProvider": True,
        }
        rotation_data.update(rotation)
        return InMemoryAccountStore(
            {
                "accounts": {a.id: a.to_dict() for a in accounts},
                "activeAccountId": active_id,
                "activeModelProviderId": active_id,
                "activeMcpProviderId": active_id,
                "rotation": rotation_data,
            }
        )

    return factory


class StaticUsageSource:
    """Usage source returning canned snapshots and counting calls."""

    def __init__(self, usages: dict[str, Usage | Exception]):
        self.usages = usages
        self.calls: list[str] = []

    async def fetch_usage(self, account: Account) -> Usage:
        self.calls.append(account.id)
        result = self.usages.get(account.id, Usage.zero())
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def usage_source() -> Callable[[dict[str, Usage | Exception]], StaticUsageSource]:
    return StaticUsageSource


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop structlog configuration bound to a CLI runner's streams."""
    import structlog

    from cohe.core import logging as cohe_logging

    yield
    structlog.reset_defaults()
    cohe_logging._configured = False
