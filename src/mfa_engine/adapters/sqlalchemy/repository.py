"""SQLAlchemy repositories for the MFA aggregates.

Writes go through explicit statements: an ``INSERT`` for new aggregates and a
conditional ``UPDATE ... WHERE id = :id AND version = :version`` otherwise.
A conditional update that matches no row means another transaction changed
the row first, and surfaces as ``OptimisticConcurrencyError``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import insert, select, update

from ...domain.challenge import MfaChallengeCode
from ...domain.enrollment import MfaEnrollment
from ...domain.enums import CodePurpose, MfaMethod
from ...exceptions import OptimisticConcurrencyError
from .models import MfaChallengeCodeModel, MfaEnrollmentModel
from .uow import SQLAlchemyUnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from ...domain.aggregate import AggregateRoot
    from ...ports.unit_of_work import UnitOfWork


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _VersionedRepository:
    model_cls: Any

    def _session(self, uow: UnitOfWork) -> AsyncSession:
        return cast("SQLAlchemyUnitOfWork", uow).session

    async def _write(
        self, entity: AggregateRoot, values: dict[str, Any], uow: UnitOfWork
    ) -> None:
        session = self._session(uow)
        expected = entity.version
        if expected == 0:
            await session.execute(
                insert(self.model_cls).values(id=entity.id, version=1, **values)
            )
        else:
            result = await session.execute(
                update(self.model_cls)
                .where(self.model_cls.id == entity.id)
                .where(self.model_cls.version == expected)
                .values(version=expected + 1, **values)
                .execution_options(synchronize_session=False)
            )
            if cast("Any", result).rowcount != 1:
                raise OptimisticConcurrencyError(
                    f"Aggregate {entity.id} version conflict. "
                    f"Expected version {expected} but was modified concurrently."
                )
        entity._set_version(expected + 1)


class SQLAlchemyEnrollmentRepository(_VersionedRepository):
    """``IEnrollmentRepository`` backed by the ``mfa_enrollments`` table."""

    model_cls = MfaEnrollmentModel

    def to_values(self, enrollment: MfaEnrollment) -> dict[str, Any]:
        return {
            "user_id": enrollment.user_id,
            "method": enrollment.method.value,
            "secret": (
                enrollment.secret.get_secret_value() if enrollment.secret else None
            ),
            "phone_number": enrollment.phone_number,
            "email": enrollment.email,
            "is_verified": enrollment.is_verified,
            "is_enabled": enrollment.is_enabled,
            "backup_code_hashes": list(enrollment.backup_code_hashes),
            "failed_attempts": enrollment.failed_attempts,
            "last_attempt_at": enrollment.last_attempt_at,
            "locked_until": enrollment.locked_until,
            "created_at": enrollment.created_at,
            "updated_at": enrollment.updated_at,
        }

    def from_model(self, model: MfaEnrollmentModel) -> MfaEnrollment:
        return MfaEnrollment(
            id=model.id,
            user_id=model.user_id,
            method=MfaMethod(model.method),
            secret=model.secret,
            phone_number=model.phone_number,
            email=model.email,
            is_verified=model.is_verified,
            is_enabled=model.is_enabled,
            backup_code_hashes=list(model.backup_code_hashes or []),
            failed_attempts=model.failed_attempts,
            last_attempt_at=_as_utc(model.last_attempt_at),
            locked_until=_as_utc(model.locked_until),
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
            _version=model.version,
        )

    async def get_by_user(
        self, user_id: str, uow: UnitOfWork
    ) -> MfaEnrollment | None:
        result = await self._session(uow).execute(
            select(MfaEnrollmentModel)
            .where(MfaEnrollmentModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalars().first()
        return self.from_model(model) if model is not None else None

    async def save(self, enrollment: MfaEnrollment, uow: UnitOfWork) -> None:
        await self._write(enrollment, self.to_values(enrollment), uow)


class SQLAlchemyChallengeCodeRepository(_VersionedRepository):
    """``IChallengeCodeRepository`` backed by the ``mfa_challenge_codes`` table."""

    model_cls = MfaChallengeCodeModel

    def to_values(self, challenge: MfaChallengeCode) -> dict[str, Any]:
        return {
            "user_id": challenge.user_id,
            "code": challenge.code,
            "method": challenge.method.value,
            "purpose": challenge.purpose.value,
            "expires_at": challenge.expires_at,
            "is_used": challenge.is_used,
            "used_at": challenge.used_at,
            "created_at": challenge.created_at,
        }

    def from_model(self, model: MfaChallengeCodeModel) -> MfaChallengeCode:
        return MfaChallengeCode(
            id=model.id,
            user_id=model.user_id,
            code=model.code,
            method=MfaMethod(model.method),
            purpose=CodePurpose(model.purpose),
            expires_at=_as_utc(model.expires_at),
            is_used=model.is_used,
            used_at=_as_utc(model.used_at),
            created_at=_as_utc(model.created_at),
            _version=model.version,
        )

    async def get(self, code_id: str, uow: UnitOfWork) -> MfaChallengeCode | None:
        result = await self._session(uow).execute(
            select(MfaChallengeCodeModel)
            .where(MfaChallengeCodeModel.id == code_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalars().first()
        return self.from_model(model) if model is not None else None

    async def find_active(
        self,
        user_id: str,
        code: str,
        purpose: CodePurpose,
        now: datetime,
        uow: UnitOfWork,
    ) -> MfaChallengeCode | None:
        result = await self._session(uow).execute(
            select(MfaChallengeCodeModel)
            .where(
                MfaChallengeCodeModel.user_id == user_id,
                MfaChallengeCodeModel.code == code,
                MfaChallengeCodeModel.is_used.is_(False),
                MfaChallengeCodeModel.purpose == purpose.value,
                MfaChallengeCodeModel.expires_at > _as_utc(now),
            )
            .order_by(MfaChallengeCodeModel.created_at)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = result.scalars().first()
        return self.from_model(model) if model is not None else None

    async def save(self, challenge: MfaChallengeCode, uow: UnitOfWork) -> None:
        await self._write(challenge, self.to_values(challenge), uow)


__all__: list[str] = [
    "SQLAlchemyEnrollmentRepository",
    "SQLAlchemyChallengeCodeRepository",
]
