"""Repository protocols for the MFA aggregates.

Both repositories share the same save contract:

- ``entity.version == 0``: insert, and the entity's version becomes ``1``.
- otherwise: update only if the stored row still carries ``entity.version``
  (``UPDATE ... WHERE id = :id AND version = :version``), then increment it.
  A mismatch raises :class:`~mfa_engine.exceptions.OptimisticConcurrencyError`.

Every call takes the active unit of work so reads and writes share one
transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ..domain.challenge import MfaChallengeCode
    from ..domain.enrollment import MfaEnrollment
    from ..domain.enums import CodePurpose
    from .unit_of_work import UnitOfWork


@runtime_checkable
class IEnrollmentRepository(Protocol):
    """Storage for ``MfaEnrollment``, one row per user."""

    async def get_by_user(
        self, user_id: str, uow: UnitOfWork
    ) -> MfaEnrollment | None: ...

    async def save(self, enrollment: MfaEnrollment, uow: UnitOfWork) -> None: ...


@runtime_checkable
class IChallengeCodeRepository(Protocol):
    """Storage for issued out-of-band challenge codes."""

    async def get(self, code_id: str, uow: UnitOfWork) -> MfaChallengeCode | None: ...

    async def find_active(
        self,
        user_id: str,
        code: str,
        purpose: CodePurpose,
        now: datetime,
        uow: UnitOfWork,
    ) -> MfaChallengeCode | None:
        """Return an unused, unexpired code matching ``(user_id, code, purpose)``."""
        ...

    async def save(self, challenge: MfaChallengeCode, uow: UnitOfWork) -> None: ...


__all__: list[str] = ["IEnrollmentRepository", "IChallengeCodeRepository"]
