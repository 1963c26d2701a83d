"""Tests for rotation strategies and the rotation engine."""

import random
from pathlib import Path
from unittest.mock import patch

import pytest

from cohe.accounts.legacy import LegacyProviderStore
from cohe.accounts.models import Provider, RotationStrategy
from cohe.exceptions import InvalidProviderError
from cohe.rotation.engine import RotationEngine, select_next
from cohe.usage.models import Usage


def pct(percent: float, mcp: float | None = None) -> Usage:
    """Known usage snapshot with the given percentages."""
    mcp_usage = None
    if mcp is not None:
        mcp_usage = Usage(used=mcp, limit=100, remaining=100 - mcp, percent_used=mcp)
    return Usage(
        used=percent,
        limit=100,
        remaining=100 - percent,
        percent_used=percent,
        mcp_usage=mcp_usage,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestSelectNext:
    """Strategy selection over an explicit pool."""

    async def test_empty_pool(self) -> None:
        for strategy in RotationStrategy:
            assert await select_next(strategy, [], None) is None

    async def test_round_robin_follows_priority_order(self, make_account) -> None:
        pool = [
            make_account("c", priority=2),
            make_account("a", priority=0),
            make_account("b", priority=1),
        ]

        assert (await select_next("round-robin", pool, "a")).id == "b"
        assert (await select_next("round-robin", pool, "b")).id == "c"
        assert (await select_next("round-robin", pool, "c")).id == "a"

    async def test_round_robin_unknown_current_starts_at_first(self, make_account) -> None:
        pool = [make_account("a", priority=0), make_account("b", priority=1)]

        assert (await select_next("round-robin", pool, None)).id == "a"
        assert (await select_next("round-robin", pool, "gone")).id == "a"

    async def test_priority_picks_highest_value(self, make_account) -> None:
        pool = [
            make_account("a", priority=1),
            make_account("b", priority=5),
            make_account("c", priority=5),
        ]

        # Ties keep enumeration order; the current account does not matter.
        assert (await select_next("priority", pool, "b")).id == "b"

    async def test_random_never_returns_current(self, make_account) -> None:
        pool = [make_account("a"), make_account("b"), make_account("c")]
        rng = random.Random(42)

        picks = {
            (await select_next("random", pool, "a", rng=rng)).id for _ in range(50)
        }

        assert picks == {"b", "c"}

    async def test_random_single_member(self, make_account) -> None:
        pool = [make_account("a")]

        assert (await select_next("random", pool, "a")).id == "a"

    async def test_least_used_picks_lowest(self, make_account, usage_source) -> None:
        pool = [make_account("a"), make_account("b"), make_account("c")]
        source = usage_source({"a": pct(50), "b": pct(10), "c": pct(30)})

        selected = await select_next("least-used", pool, "a", source, delay=0)

        assert selected.id == "b"
        assert sorted(source.calls) == ["a", "b", "c"]

    async def test_least_used_prefers_mcp_percentage(
        self, make_account, usage_source
    ) -> None:
        pool = [make_account("a"), make_account("b")]
        # a: low model usage but high MCP usage.
        source = usage_source({"a": pct(5, mcp=90), "b": pct(40, mcp=20)})

        selected = await select_next("least-used", pool, None, source, delay=0)

        assert selected.id == "b"

    async def test_least_used_ties_keep_pool_order(
        self, make_account, usage_source
    ) -> None:
        pool = [make_account("a"), make_account("b")]
        source = usage_source({"a": pct(20), "b": pct(20)})

        assert (await select_next("least-used", pool, "a", source, delay=0)).id == "a"

    async def test_least_used_falls_back_to_cache(
        self, make_account, usage_source
    ) -> None:
        pool = [
            make_account("a", usage=(90, 100)),
            make_account("b", usage=(60, 100)),
            make_account("c"),
        ]
        source = usage_source(
            {"a": ConnectionError("down"), "b": Usage.zero(), "c": pct(70)}
        )

        selected = await select_next(
            "least-used", pool, None, source, max_attempts=2, delay=0
        )

        assert selected.id == "b"
        # Failed fetches are retried through the wrapper.
        assert source.calls.count("a") == 2
        assert source.calls.count("b") == 2

    async def test_least_used_without_cache_counts_as_zero(
        self, make_account, usage_source
    ) -> None:
        pool = [make_account("a"), make_account("b")]
        source = usage_source({"a": pct(10), "b": Usage.zero()})

        selected = await select_next(
            "least-used", pool, None, source, max_attempts=1, delay=0
        )

        assert selected.id == "b"


@pytest.mark.unit
@pytest.mark.asyncio
class TestRotateAcrossProviders:
    async def test_change_updates_pointers_and_timestamps(
        self, make_account, store_with
    ) -> None:
        store = store_with(
            [make_account("a", priority=0), make_account("b", Provider.MINIMAX, priority=1)],
            active_id="a",
        )
        engine = RotationEngine(store)

        result = await engine.rotate_across_providers()

        assert result.changed
        assert result.previous.id == "a"
        assert result.current.id == "b"
        document = store.load()
        assert document.active_account_id == "b"
        assert document.active_model_provider_id == "b"
        assert document.active_mcp_provider_id == "b"
        assert document.accounts["b"].last_used is not None
        assert document.rotation.last_rotation is not None
        assert store.save_count == 1

    async def test_noop_rotation_is_not_persisted(self, make_account, store_with) -> None:
        store = store_with([make_account("a")], active_id="a")
        engine = RotationEngine(store)

        result = await engine.rotate_across_providers()

        assert not result.changed
        assert result.current.id == "a"
        assert store.save_count == 0
        assert store.load().rotation.last_rotation is None

    async def test_no_active_accounts(self, make_account, store_with) -> None:
        store = store_with([make_account("a", is_active=False)], active_id="a")

        result = await RotationEngine(store).rotate_across_providers()

        assert result.current is None
        assert store.save_count == 0

    async def test_inactive_accounts_are_skipped(self, make_account, store_with) -> None:
        store = store_with(
            [
                make_account("a", priority=0),
                make_account("b", priority=1, is_active=False),
                make_account("c", priority=2),
            ],
            active_id="a",
        )

        result = await RotationEngine(store).rotate_across_providers()

        assert result.current.id == "c"

    async def test_least_used_caches_fetched_usage(
        self, make_account, store_with, usage_source
    ) -> None:
        store = store_with(
            [make_account("a"), make_account("b", Provider.MINIMAX)],
            active_id="a",
            strategy="least-used",
        )
        source = usage_source({"a": pct(80), "b": pct(15)})
        engine = RotationEngine(store, usage_source=source, retry_delay=0)

        result = await engine.rotate_across_providers()

        assert result.current.id == "b"
        document = store.load()
        assert document.accounts["a"].usage.used == 80
        assert document.accounts["b"].usage.limit == 100
        assert store.save_count == 1

    async def test_priority_strategy_across_providers(
        self, make_account, store_with
    ) -> None:
        store = store_with(
            [
                make_account("a", priority=1),
                make_account("b", Provider.MINIMAX, priority=9),
            ],
            active_id="a",
            strategy="priority",
        )

        result = await RotationEngine(store).rotate_across_providers()

        assert result.current.id == "b"
        assert store.load().active_account_id == "b"


@pytest.mark.unit
class TestRotateProvider:
    def test_cycles_within_provider(self, make_account, store_with) -> None:
        store = store_with(
            [
                make_account("z1", priority=0),
                make_account("m1", Provider.MINIMAX, priority=1),
                make_account("z2", priority=2),
            ],
            active_id="z1",
        )
        engine = RotationEngine(store)

        assert engine.rotate_provider("zai").current.id == "z2"
        assert engine.rotate_provider("zai").current.id == "z1"

    def test_least_used_orders_by_cached_usage(self, make_account, store_with) -> None:
        store = store_with(
            [
                make_account("z1", usage=(50, 100)),
                make_account("z2", usage=(10, 100)),
                make_account("z3", usage=(30, 100)),
            ],
            active_id="z2",
            strategy="least-used",
        )

        result = RotationEngine(store).rotate_provider(Provider.ZAI)

        # Order by cached used: z2, z3, z1.
        assert result.current.id == "z3"

    def test_no_accounts_for_provider(self, make_account, store_with) -> None:
        store = store_with([make_account("z1")], active_id="z1")

        result = RotationEngine(store).rotate_provider(Provider.MINIMAX)

        assert result.current is None
        assert not result.changed
        assert store.save_count == 0

    def test_single_account_is_unchanged(self, make_account, store_with) -> None:
        store = store_with([make_account("z1")], active_id="z1")

        result = RotationEngine(store).rotate_provider(Provider.ZAI)

        assert result.current.id == "z1"
        assert not result.changed

    def test_unknown_provider_raises(self, make_account, store_with) -> None:
        store = store_with([make_account("z1")], active_id="z1")

        with pytest.raises(InvalidProviderError):
            RotationEngine(store).rotate_provider("openai")

        assert store.save_count == 0


@pytest.mark.unit
@pytest.mark.asyncio
class TestAutoRotate:
    async def test_disabled_does_nothing(self, make_account, store_with) -> None:
        store = store_with(
            [make_account("a"), make_account("b")], active_id="a", enabled=False
        )

        result = await RotationEngine(store).auto_rotate()

        assert not result.changed
        assert store.save_count == 0

    async def test_cross_provider_uses_full_pool(self, make_account, store_with) -> None:
        store = store_with(
            [make_account("a", priority=0), make_account("b", Provider.MINIMAX, priority=1)],
            active_id="a",
        )

        result = await RotationEngine(store).auto_rotate()

        assert result.current.id == "b"

    async def test_same_provider_when_cross_provider_off(
        self, make_account, store_with
    ) -> None:
        store = store_with(
            [
                make_account("z1", priority=0),
                make_account("m1", Provider.MINIMAX, priority=1),
                make_account("z2", priority=2),
            ],
            active_id="z1",
            crossProvider=False,
        )

        result = await RotationEngine(store).auto_rotate()

        assert result.current.id == "z2"

    async def test_single_account_toggles_legacy_provider(
        self, make_account, store_with, tmp_path: Path
    ) -> None:
        legacy = LegacyProviderStore(tmp_path / "legacy.json")
        legacy.set_provider_config("zai", "zk", "https://api.z.ai/api/anthropic")
        legacy.set_provider_config("minimax", "mk", "https://api.minimax.io/anthropic")
        store = store_with([make_account("a")], active_id="a")

        result = await RotationEngine(store, legacy_store=legacy).auto_rotate()

        assert result.legacy == (Provider.ZAI, Provider.MINIMAX)
        assert legacy.get_active_provider() == Provider.MINIMAX
        assert store.save_count == 0

    async def test_legacy_toggle_requires_both_keys(
        self, make_account, store_with, tmp_path: Path
    ) -> None:
        legacy = LegacyProviderStore(tmp_path / "legacy.json")
        legacy.set_provider_config("zai", "zk", "https://api.z.ai/api/anthropic")
        store = store_with([], active_id=None)

        result = await RotationEngine(store, legacy_store=legacy).auto_rotate()

        assert result.legacy is None
        assert legacy.get_active_provider() == Provider.ZAI


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeferredRotation:
    async def test_deferred_rotation_completes(self, make_account, store_with) -> None:
        store = store_with([make_account("a"), make_account("b", priority=1)], active_id="a")
        engine = RotationEngine(store)

        task = engine.schedule_deferred_rotation()
        await engine.wait_for_background()

        assert task.done()
        assert task.result().current.id == "b"
        assert store.load().active_account_id == "b"

    async def test_deferred_rotation_failure_is_swallowed(
        self, make_account, store_with
    ) -> None:
        store = store_with([make_account("a"), make_account("b", priority=1)], active_id="a")
        engine = RotationEngine(store)

        with patch.object(store, "save", side_effect=OSError("disk full")):
            task = engine.schedule_deferred_rotation()
            await engine.wait_for_background()

        assert task.result() is None
        assert store.load().active_account_id == "a"

    async def test_deferred_rotation_stays_within_provider(
        self, make_account, store_with
    ) -> None:
        store = store_with(
            [
                make_account("z1", priority=0),
                make_account("m1", Provider.MINIMAX, priority=1),
                make_account("z2", priority=2),
            ],
            active_id="z1",
            crossProvider=False,
        )
        engine = RotationEngine(store)

        engine.schedule_deferred_rotation()
        await engine.wait_for_background()

        assert store.load().active_account_id == "z2"

    async def test_deferred_rotation_toggles_legacy_provider(
        self, make_account, store_with, tmp_path: Path
    ) -> None:
        legacy = LegacyProviderStore(tmp_path / "legacy.json")
        legacy.set_provider_config("zai", "zk", "https://api.z.ai/api/anthropic")
        legacy.set_provider_config("minimax", "mk", "https://api.minimax.io/anthropic")
        store = store_with([make_account("a")], active_id="a")
        engine = RotationEngine(store, legacy_store=legacy)

        task = engine.schedule_deferred_rotation()
        await engine.wait_for_background()

        assert task.result().legacy == (Provider.ZAI, Provider.MINIMAX)
        assert legacy.get_active_provider() == Provider.MINIMAX
