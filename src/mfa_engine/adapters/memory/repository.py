"""Dict-backed repositories with version checks, for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar, cast

from ...domain.aggregate import AggregateRoot
from ...domain.challenge import MfaChallengeCode
from ...domain.enrollment import MfaEnrollment
from ...exceptions import OptimisticConcurrencyError, UnitOfWorkError
from .unit_of_work import InMemoryUnitOfWork

if TYPE_CHECKING:
    from datetime import datetime

    from ...domain.enums import CodePurpose
    from ...ports.unit_of_work import UnitOfWork

T = TypeVar("T", bound=AggregateRoot)


class _VersionedStore(Generic[T]):
    """Stores detached copies keyed by ``id``.

    Loads hand out copies, so changes only reach the store through ``save``
    and a committed unit of work.
    """

    def __init__(self) -> None:
        self._store: dict[str, T] = {}

    def _copy(self, entity: T) -> T:
        return cast("T", entity.detached_copy())

    def _require_uow(self, uow: UnitOfWork) -> InMemoryUnitOfWork:
        if not isinstance(uow, InMemoryUnitOfWork):
            raise UnitOfWorkError(
                f"{type(self).__name__} requires an InMemoryUnitOfWork, "
                f"got {type(uow).__name__}"
            )
        return uow

    def _check_version(self, entity_id: str, expected: int) -> None:
        current = self._store.get(entity_id)
        current_version = current.version if current is not None else 0
        if current_version != expected:
            raise OptimisticConcurrencyError(
                f"Aggregate {entity_id} version conflict. "
                f"Expected version {expected} but found {current_version}."
            )

    def _check_unique(self, entity: T) -> None:
        """Hook for uniqueness constraints beyond the primary key."""

    def _stage_save(self, entity: T, uow: UnitOfWork) -> None:
        active_uow = self._require_uow(uow)
        expected = entity.version

        def check() -> None:
            self._check_version(entity.id, expected)
            if expected == 0:
                self._check_unique(entity)

        check()
        snapshot = self._copy(entity)
        snapshot._set_version(expected + 1)

        def apply() -> None:
            self._store[snapshot.id] = snapshot

        active_uow.stage(check, apply)
        entity._set_version(expected + 1)

    # ── Test helpers ─────────────────────────────────────────────

    def stored(self) -> list[T]:
        return [self._copy(entity) for entity in self._store.values()]

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class InMemoryEnrollmentRepository(_VersionedStore[MfaEnrollment]):
    """In-memory ``IEnrollmentRepository``; one enrollment per user."""

    async def get_by_user(
        self,
        user_id: str,
        uow: UnitOfWork,  # noqa: ARG002
    ) -> MfaEnrollment | None:
        for enrollment in self._store.values():
            if enrollment.user_id == user_id:
                return self._copy(enrollment)
        return None

    async def save(self, enrollment: MfaEnrollment, uow: UnitOfWork) -> None:
        self._stage_save(enrollment, uow)

    def _check_unique(self, entity: MfaEnrollment) -> None:
        for existing in self._store.values():
            if existing.user_id == entity.user_id and existing.id != entity.id:
                raise OptimisticConcurrencyError(
                    f"An MFA enrollment already exists for user {entity.user_id}"
                )


class InMemoryChallengeCodeRepository(_VersionedStore[MfaChallengeCode]):
    """In-memory ``IChallengeCodeRepository``."""

    async def get(
        self,
        code_id: str,
        uow: UnitOfWork,  # noqa: ARG002
    ) -> MfaChallengeCode | None:
        challenge = self._store.get(code_id)
        return self._copy(challenge) if challenge is not None else None

    async def find_active(
        self,
        user_id: str,
        code: str,
        purpose: CodePurpose,
        now: datetime,
        uow: UnitOfWork,  # noqa: ARG002
    ) -> MfaChallengeCode | None:
        matches = [
            challenge
            for challenge in self._store.values()
            if challenge.user_id == user_id
            and challenge.code == code
            and challenge.is_acceptable(purpose, now)
        ]
        if not matches:
            return None
        return self._copy(min(matches, key=lambda c: c.created_at))

    async def save(self, challenge: MfaChallengeCode, uow: UnitOfWork) -> None:
        self._stage_save(challenge, uow)

    def for_user(self, user_id: str) -> list[MfaChallengeCode]:
        return [c for c in self.stored() if c.user_id == user_id]
