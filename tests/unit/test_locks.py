"""
Unit tests for per-key serialization and concurrent updates.
"""

import asyncio

import pytest

from atomic_mastery.config import Settings
from atomic_mastery.engine.locks import KeyedLockRegistry
from atomic_mastery.engine.memory import InMemoryMasteryStore, InMemoryStructureProvider
from atomic_mastery.engine.orchestrator import MasteryOrchestrator


class TestKeyedLockRegistry:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLockRegistry()
        events = []

        async def worker(name):
            async with locks.hold(("u", "l")):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLockRegistry()
        active = 0
        peak = 0

        async def worker(key):
            nonlocal active, peak
            async with locks.hold(key):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(worker("k1"), worker("k2"))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_idle_keys_are_dropped(self):
        locks = KeyedLockRegistry()

        async with locks.hold("k"):
            assert "k" in locks
            assert len(locks) == 1

        assert "k" not in locks
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLockRegistry()

        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")

        assert len(locks) == 0


class TestConcurrentUpdates:
    @pytest.mark.asyncio
    async def test_no_lost_updates_with_shared_registry(self, single_element_lesson, settings, rng, fixed_now):
        store = InMemoryMasteryStore()
        orchestrator = MasteryOrchestrator(
            InMemoryStructureProvider([single_element_lesson]),
            store,
            settings=settings,
            rng=rng,
            clock=lambda: fixed_now,
        )

        await asyncio.gather(
            *(orchestrator.apply_element_delta("u1", "lesson-solo", "X", 5) for _ in range(20))
        )

        record = await store.get("u1", "lesson-solo")
        assert record.score_of("X") == 100
        assert record.version == 20

    @pytest.mark.asyncio
    async def test_separate_processes_resolve_by_version(self, two_element_lesson, rng, fixed_now):
        # Two orchestrators with their own lock registries model two processes
        settings = Settings(_env_file=None, log_file=None, mastery_max_retries=10, mastery_retry_base_delay=0.0)
        store = InMemoryMasteryStore()
        structures = InMemoryStructureProvider([two_element_lesson])
        first, second = (
            MasteryOrchestrator(structures, store, settings=settings, rng=rng, clock=lambda: fixed_now)
            for _ in range(2)
        )

        await asyncio.gather(
            *(first.apply_element_delta("u1", "lesson-1", "A", 10) for _ in range(3)),
            *(second.apply_element_delta("u1", "lesson-1", "A", 10) for _ in range(3)),
        )

        record = await store.get("u1", "lesson-1")
        assert record.score_of("A") == 60
        assert record.version == 6
