"""Provider usage fetcher.

Makes one bounded-time GET per account against the provider's quota endpoint
and normalizes the answer. Every failure (missing credential, timeout,
connection error, non-2xx, malformed JSON) yields a zero :class:`Usage`; the
fetcher never raises for network problems.

Example:
    >>> fetcher = UsageFetcher.from_settings(get_settings())
    >>> usage = await fetcher.fetch_usage(account)
    >>> if not usage.is_known:
    ...     print("usage unavailable")
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

import httpx
import orjson
from pydantic import ValidationError
from structlog import get_logger

from cohe.accounts.models import Account, Provider
from cohe.config.settings import (
    DEFAULT_USAGE_TIMEOUT_SECONDS,
    MINIMAX_USAGE_URL,
    ZAI_USAGE_URL,
    Settings,
)
from cohe.usage.models import Usage, parse_usage_response
from cohe.usage.normalize import normalize_usage


logger = get_logger(__name__)


class UsageSource(Protocol):
    """Anything that can produce a usage snapshot for an account."""

    async def fetch_usage(self, account: Account) -> Usage: ...


class UsageFetcher:
    """Fetches and normalizes provider quota data for accounts."""

    def __init__(
        self,
        timeout: float = DEFAULT_USAGE_TIMEOUT_SECONDS,
        zai_url: str = ZAI_USAGE_URL,
        minimax_url: str = MINIMAX_USAGE_URL,
        default_group_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Upper bound for one usage request, in seconds
            zai_url: Z.AI quota endpoint
            minimax_url: MiniMax remains endpoint
            default_group_id: GroupId for MiniMax accounts that have none
            client: Shared HTTP client; a short-lived one is created per
                request when omitted
        """
        self.timeout = timeout
        self.zai_url = zai_url
        self.minimax_url = minimax_url
        self.default_group_id = default_group_id
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> "UsageFetcher":
        return cls(
            timeout=settings.usage_timeout_seconds,
            zai_url=settings.zai_usage_url,
            minimax_url=settings.minimax_usage_url,
            default_group_id=settings.minimax_group_id,
            client=client,
        )

    @asynccontextmanager
    async def _get_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _build_request(self, account: Account) -> tuple[str, dict[str, str]]:
        """Return (url, query params) for the account's provider."""
        if account.provider == Provider.ZAI:
            return self.zai_url, {}

        group_id = account.group_id or self.default_group_id
        if not group_id:
            logger.warning("usage_minimax_missing_group_id", account=account.id)
            return self.minimax_url, {}
        return self.minimax_url, {"GroupId": group_id}

    async def fetch_usage(self, account: Account) -> Usage:
        """Fetch the current usage for an account.

        Returns:
            Normalized usage, or a zero usage on any failure
        """
        if not account.api_key:
            logger.info("usage_fetch_skipped", account=account.id, reason="missing_api_key")
            return Usage.zero()

        url, params = self._build_request(account)
        headers = {
            "Authorization": f"Bearer {account.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with asyncio.timeout(self.timeout), self._get_client() as client:
                response = await client.get(
                    url, params=params, headers=headers, timeout=self.timeout
                )
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("usage_fetch_timeout", account=account.id, timeout=self.timeout)
            return Usage.zero()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("usage_fetch_failed", account=account.id, error=str(e))
            return Usage.zero()

        if not response.is_success:
            logger.warning(
                "usage_fetch_bad_status",
                account=account.id,
                provider=str(account.provider),
                status=response.status_code,
            )
            return Usage.zero()

        try:
            payload = orjson.loads(response.content)
            parsed = parse_usage_response(str(account.provider), payload)
        except (orjson.JSONDecodeError, ValidationError, ValueError) as e:
            logger.warning(
                "usage_fetch_malformed_payload",
                account=account.id,
                provider=str(account.provider),
                error=str(e),
            )
            return Usage.zero()

        usage = normalize_usage(parsed)
        logger.debug(
            "usage_fetched",
            account=account.id,
            provider=str(account.provider),
            used=usage.used,
            limit=usage.limit,
            percent_used=usage.percent_used,
        )
        return usage
