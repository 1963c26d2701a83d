"""Rotation engine: choose the next account and persist the choice.

Strategies:
- round-robin: priority ascending, the account after the current one
- priority: priority descending, first wins (the reverse of round-robin's
  ordering over the same field)
- random: any pool member other than the current one
- least-used: lowest freshly fetched usage percentage

The engine never raises for network problems; only store I/O may raise.
"""

import asyncio
import random
from dataclasses import dataclass

from structlog import get_logger

from cohe.accounts.legacy import LegacyProviderStore
from cohe.accounts.models import (
    Account,
    CachedUsage,
    Provider,
    RotationStrategy,
    parse_provider,
    utc_now_iso,
)
from cohe.accounts.store import AccountStore, sort_by_priority
from cohe.rotation.constants import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS
from cohe.rotation.retry import with_retry
from cohe.usage.fetcher import UsageSource
from cohe.usage.models import Usage


logger = get_logger(__name__)


@dataclass
class UsageSample:
    """Comparison percentage for one pool member."""

    account: Account
    percent: float
    usage: Usage | None = None  # None when the fetch failed or was skipped


@dataclass
class RotationResult:
    """Outcome of a rotation request."""

    previous: Account | None
    current: Account | None
    changed: bool = False
    legacy: tuple[Provider, Provider] | None = None  # (from, to) for the legacy toggle


def _round_robin(pool: list[Account], current_id: str | None) -> Account:
    ordered = sort_by_priority(pool)
    index = next((i for i, a in enumerate(ordered) if a.id == current_id), -1)
    return ordered[(index + 1) % len(ordered)]


def _highest_priority(pool: list[Account]) -> Account:
    return sorted(pool, key=lambda a: a.priority, reverse=True)[0]


def _random_other(
    pool: list[Account], current_id: str | None, rng: random.Random
) -> Account:
    others = [a for a in pool if a.id != current_id]
    if not others:
        return pool[0]
    return rng.choice(others)


async def sample_usage(
    pool: list[Account],
    usage_source: UsageSource | None,
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    delay: float = DEFAULT_RETRY_DELAY_SECONDS,
) -> list[UsageSample]:
    """Fetch usage for every pool member concurrently.

    Falls back to the cached usage percentage when a fetch fails, else 0.
    Result order follows pool order.
    """

    async def sample(account: Account) -> UsageSample:
        usage: Usage | None = None
        if usage_source is not None:
            usage = await with_retry(
                lambda: usage_source.fetch_usage(account),
                max_attempts=max_attempts,
                validator=lambda u: u.is_known,
                delay=delay,
                context=f"{account.name} usage fetch",
            )

        if usage is not None:
            return UsageSample(account=account, percent=usage.comparison_percent, usage=usage)
        if account.usage is not None and account.usage.limit > 0:
            return UsageSample(account=account, percent=account.usage.percent_used)
        return UsageSample(account=account, percent=0.0)

    return list(await asyncio.gather(*(sample(a) for a in pool)))


def pick_least_used(samples: list[UsageSample]) -> Account | None:
    """Lowest percentage wins; ties keep the earliest sample."""
    if not samples:
        return None
    return min(samples, key=lambda s: s.percent).account


async def select_next(
    strategy: RotationStrategy | str,
    pool: list[Account],
    current_id: str | None,
    usage_source: UsageSource | None = None,
    *,
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    rng: random.Random | None = None,
) -> Account | None:
    """Choose the next account from a pool of rotation-eligible accounts.

    Args:
        strategy: Rotation algorithm
        pool: Accounts with ``is_active`` set, in enumeration order
        current_id: Id of the currently active account, if any
        usage_source: Fetcher consulted by the least-used strategy
        max_attempts: Retry attempts per usage fetch
        delay: Seconds between usage fetch attempts
        rng: Random source for the random strategy

    Returns:
        The selected account, or None if the pool is empty
    """
    if not pool:
        return None

    strategy = RotationStrategy(strategy)
    if strategy == RotationStrategy.ROUND_ROBIN:
        return _round_robin(pool, current_id)
    if strategy == RotationStrategy.PRIORITY:
        return _highest_priority(pool)
    if strategy == RotationStrategy.RANDOM:
        return _random_other(pool, current_id, rng or random.Random())

    samples = await sample_usage(pool, usage_source, max_attempts, delay)
    return pick_least_used(samples)


class RotationEngine:
    """Applies rotation strategies to an account store.

    Every rotation that changes the active account updates all three active
    pointers, stamps ``lastUsed`` and ``rotation.lastRotation``, and is saved
    in one store transaction. Rotations that land on the current account are
    not recorded.
    """

    def __init__(
        self,
        store: AccountStore,
        usage_source: UsageSource | None = None,
        legacy_store: LegacyProviderStore | None = None,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.usage_source = usage_source
        self.legacy_store = legacy_store
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._rng = rng or random.Random()
        self._background_tasks: set[asyncio.Task[RotationResult | None]] = set()

    def _commit(
        self,
        selected: Account | None,
        current_id: str | None,
        previous: Account | None,
        fetched: dict[str, tuple[float, float]] | None = None,
    ) -> RotationResult:
        changed = selected is not None and selected.id != current_id
        now = utc_now_iso()

        with self.store.transaction() as document:
            for account_id, (used, limit) in (fetched or {}).items():
                account = document.accounts.get(account_id)
                if account is not None:
                    account.usage = CachedUsage(used=used, limit=limit, last_updated=now)

            if changed and selected is not None:
                account = document.accounts.get(selected.id)
                if account is None:
                    # Deleted between selection and commit.
                    changed = False
                else:
                    document.set_active_pointers(account.id)
                    account.last_used = now
                    document.rotation.last_rotation = now
                    selected = account

        if changed and selected is not None:
            logger.info(
                "account_rotated",
                previous=current_id,
                current=selected.id,
                provider=str(selected.provider),
            )
        else:
            logger.debug("rotation_unchanged", current=current_id)

        return RotationResult(previous=previous, current=selected, changed=changed)

    async def rotate_across_providers(self) -> RotationResult:
        """Rotate across every active account using the configured strategy."""
        document = self.store.load()
        pool = [a for a in document.accounts.values() if a.is_active]
        current_id = document.active_account_id
        previous = document.active_account

        if not pool:
            logger.info("rotation_no_accounts")
            return RotationResult(previous=previous, current=None)

        strategy = document.rotation.strategy
        fetched: dict[str, tuple[float, float]] = {}
        if strategy == RotationStrategy.LEAST_USED:
            samples = await sample_usage(
                pool, self.usage_source, self.max_attempts, self.retry_delay
            )
            selected = pick_least_used(samples)
            fetched = {
                s.account.id: (s.usage.used, s.usage.limit)
                for s in samples
                if s.usage is not None and s.usage.limit > 0
            }
        else:
            selected = await select_next(strategy, pool, current_id, rng=self._rng)

        return self._commit(selected, current_id, previous, fetched)

    def rotate_provider(self, provider: Provider | str) -> RotationResult:
        """Cycle to the next active account of one provider.

        Accounts are ordered by ascending cached usage under the least-used
        strategy and by ascending priority otherwise; no usage is fetched.

        Raises:
            InvalidProviderError: If the provider is not supported
        """
        provider = parse_provider(provider)
        document = self.store.load()
        current_id = document.active_account_id
        previous = document.active_account

        pool = [
            a for a in document.accounts.values()
            if a.provider == provider and a.is_active
        ]
        if not pool:
            logger.info("rotation_no_provider_accounts", provider=str(provider))
            return RotationResult(previous=previous, current=None)

        if document.rotation.strategy == RotationStrategy.LEAST_USED:
            ordered = sorted(pool, key=lambda a: a.usage.used if a.usage else 0)
        else:
            ordered = sort_by_priority(pool)

        index = next((i for i, a in enumerate(ordered) if a.id == current_id), -1)
        selected = ordered[(index + 1) % len(ordered)]
        return self._commit(selected, current_id, previous)

    async def auto_rotate(self) -> RotationResult:
        """Rotation performed before invoking the underlying CLI.

        With more than one stored account, rotates across providers or
        within the active account's provider depending on ``crossProvider``.
        With at most one account, toggles the legacy per-provider config
        between zai and minimax when both have credentials.
        """
        document = self.store.load()
        active = document.active_account

        if not document.rotation.enabled:
            return RotationResult(previous=active, current=active)

        if len(document.accounts) > 1:
            if document.rotation.cross_provider:
                return await self.rotate_across_providers()
            if active is None:
                return RotationResult(previous=None, current=None)
            return self.rotate_provider(active.provider)

        legacy = self.legacy_store.toggle_provider() if self.legacy_store else None
        return RotationResult(previous=active, current=active, legacy=legacy)

    async def _deferred_rotation(self) -> RotationResult | None:
        try:
            return await self.auto_rotate()
        except Exception:
            logger.warning("deferred_rotation_failed", exc_info=True)
            return None

    def schedule_deferred_rotation(self) -> asyncio.Task[RotationResult | None]:
        """Start an :meth:`auto_rotate` the caller does not wait for.

        Must be called from a running event loop. Failures are logged and
        discarded.
        """
        task = asyncio.create_task(self._deferred_rotation())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def wait_for_background(self) -> None:
        """Let pending deferred rotations finish before the loop shuts down."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
