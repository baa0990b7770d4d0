"""Tests for the in-memory unit of work and repositories."""

from __future__ import annotations

import asyncio
import logging

import pytest

from mfa_engine import MfaMethod, OptimisticConcurrencyError, UnitOfWork
from mfa_engine.adapters.memory import (
    FrozenClock,
    InMemoryEventPublisher,
    InMemoryUnitOfWork,
    ScriptedRandomSource,
)
from mfa_engine.domain import MfaConfigured
from mfa_engine.exceptions import UnitOfWorkError


class TestInMemoryUnitOfWork:
    """Test staging, commit and rollback."""

    @pytest.mark.asyncio
    async def test_writes_applied_on_commit(self, enrollments, make_enrollment) -> None:
        """Test staged writes are invisible until commit."""
        uow = InMemoryUnitOfWork()
        async with uow:
            await enrollments.save(make_enrollment(), uow)
            assert len(enrollments) == 0
            assert uow.pending_writes == 1

        assert uow.committed
        assert uow.commit_count == 1
        assert len(enrollments) == 1

    @pytest.mark.asyncio
    async def test_exception_rolls_back(self, enrollments, make_enrollment) -> None:
        """Test an exception discards staged writes."""
        uow = InMemoryUnitOfWork()

        with pytest.raises(RuntimeError):
            async with uow:
                await enrollments.save(make_enrollment(), uow)
                raise RuntimeError("boom")

        assert uow.rolled_back
        assert not uow.committed
        assert len(enrollments) == 0

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self, enrollments, make_enrollment) -> None:
        """Test cancellation is treated like any other failure."""
        uow = InMemoryUnitOfWork()

        with pytest.raises(asyncio.CancelledError):
            async with uow:
                await enrollments.save(make_enrollment(), uow)
                raise asyncio.CancelledError()

        assert uow.rollback_count == 1
        assert len(enrollments) == 0

    @pytest.mark.asyncio
    async def test_hooks_run_after_commit(self) -> None:
        """Test on_commit hooks fire once the commit succeeded."""
        calls: list[str] = []
        uow = InMemoryUnitOfWork()

        async def hook() -> None:
            calls.append("committed" if uow.committed else "early")

        async with uow:
            uow.on_commit(hook)
            assert calls == []

        assert calls == ["committed"]

    @pytest.mark.asyncio
    async def test_hooks_discarded_on_rollback(self) -> None:
        """Test hooks never fire for a rolled back unit of work."""
        calls: list[str] = []

        async def hook() -> None:
            calls.append("fired")

        with pytest.raises(ValueError):
            async with InMemoryUnitOfWork() as uow:
                uow.on_commit(hook)
                raise ValueError("abort")

        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_hook_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a failing hook does not stop the others."""
        calls: list[str] = []

        async def broken() -> None:
            raise RuntimeError("publisher down")

        async def working() -> None:
            calls.append("ok")

        with caplog.at_level(logging.ERROR):
            async with InMemoryUnitOfWork() as uow:
                uow.on_commit(broken)
                uow.on_commit(working)

        assert calls == ["ok"]
        assert "Error in on_commit hook" in caplog.text


class TestVersionedRepositories:
    """Test optimistic concurrency in the in-memory repositories."""

    @pytest.mark.asyncio
    async def test_save_increments_version(
        self, enrollments, make_enrollment, save_enrollment
    ) -> None:
        """Test every committed save bumps the version."""
        enrollment = await save_enrollment(make_enrollment())
        assert enrollment.version == 1

        async with InMemoryUnitOfWork() as uow:
            loaded = await enrollments.get_by_user("user-1", uow)
            loaded.reset_failed_attempts(now=loaded.created_at)
            await enrollments.save(loaded, uow)

        [stored] = enrollments.stored()
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_loads_are_detached(self, enrollments, make_enrollment, save_enrollment) -> None:
        """Test mutating a loaded copy without saving changes nothing."""
        await save_enrollment(make_enrollment())

        async with InMemoryUnitOfWork() as uow:
            loaded = await enrollments.get_by_user("user-1", uow)
            loaded.failed_attempts = 3

        [stored] = enrollments.stored()
        assert stored.failed_attempts == 0

    @pytest.mark.asyncio
    async def test_stale_save_rejected(
        self, enrollments, make_enrollment, save_enrollment
    ) -> None:
        """Test saving a copy older than the stored version fails."""
        await save_enrollment(make_enrollment())
        async with InMemoryUnitOfWork() as uow:
            first = await enrollments.get_by_user("user-1", uow)
            second = await enrollments.get_by_user("user-1", uow)

        async with InMemoryUnitOfWork() as uow:
            await enrollments.save(first, uow)

        with pytest.raises(OptimisticConcurrencyError):
            async with InMemoryUnitOfWork() as uow:
                await enrollments.save(second, uow)

    @pytest.mark.asyncio
    async def test_conflict_detected_at_commit(
        self, enrollments, make_enrollment, save_enrollment
    ) -> None:
        """Test two open units of work racing on one row: the second commit fails."""
        await save_enrollment(make_enrollment())
        winner_uow = InMemoryUnitOfWork()
        loser_uow = InMemoryUnitOfWork()
        async with InMemoryUnitOfWork() as uow:
            winner = await enrollments.get_by_user("user-1", uow)
            loser = await enrollments.get_by_user("user-1", uow)
        winner.failed_attempts = 1
        loser.failed_attempts = 2

        await enrollments.save(winner, winner_uow)
        await enrollments.save(loser, loser_uow)
        await winner_uow.commit()

        with pytest.raises(OptimisticConcurrencyError):
            await loser_uow.commit()

        assert loser_uow.rolled_back
        [stored] = enrollments.stored()
        assert stored.failed_attempts == 1

    @pytest.mark.asyncio
    async def test_one_enrollment_per_user(self, make_enrollment, save_enrollment) -> None:
        """Test a second enrollment for the same user is rejected."""
        await save_enrollment(make_enrollment())

        with pytest.raises(OptimisticConcurrencyError, match="already exists"):
            await save_enrollment(make_enrollment(MfaMethod.SMS))

    @pytest.mark.asyncio
    async def test_requires_in_memory_unit_of_work(self, enrollments, make_enrollment) -> None:
        """Test foreign unit of work types are refused."""

        class OtherUnitOfWork(UnitOfWork):
            async def commit(self) -> None:
                pass

            async def rollback(self) -> None:
                pass

        with pytest.raises(UnitOfWorkError):
            await enrollments.save(make_enrollment(), OtherUnitOfWork())


class TestFakes:
    """Test the deterministic fakes."""

    def test_frozen_clock_advances(self) -> None:
        """Test the clock only moves when told to."""
        clock = FrozenClock()
        start = clock.now()

        assert clock.now().timestamp() == 1_700_000_000
        assert clock.now() == start
        assert (clock.advance(minutes=5) - start).total_seconds() == 300

    def test_scripted_random_source(self) -> None:
        """Test scripted chunks are replayed in order and checked for length."""
        source = ScriptedRandomSource([b"ab", b"cde"])

        assert source.token_bytes(2) == b"ab"
        with pytest.raises(ValueError, match="3 bytes, 4 requested"):
            source.token_bytes(4)
        assert len(source.token_bytes(16)) == 16

    def test_seeded_fallback_is_deterministic(self) -> None:
        """Test two sources with one seed produce the same bytes."""
        assert ScriptedRandomSource(seed=9).token_bytes(8) == ScriptedRandomSource(
            seed=9
        ).token_bytes(8)

    @pytest.mark.asyncio
    async def test_event_publisher_filters_by_type(self, make_enrollment) -> None:
        """Test collected events can be filtered by class."""
        publisher = InMemoryEventPublisher()
        enrollment = make_enrollment(enabled=False)
        enrollment.reconfigure(MfaMethod.EMAIL, now=enrollment.created_at, email="a@b.com")

        await publisher.publish(enrollment.collect_events())

        assert len(publisher.of_type(MfaConfigured)) == 1
