"""SQLAlchemy (async) persistence adapter."""

from __future__ import annotations

from mfa_engine.adapters.sqlalchemy.models import (
    Base,
    MfaChallengeCodeModel,
    MfaEnrollmentModel,
)
from mfa_engine.adapters.sqlalchemy.repository import (
    SQLAlchemyChallengeCodeRepository,
    SQLAlchemyEnrollmentRepository,
)
from mfa_engine.adapters.sqlalchemy.uow import SQLAlchemyUnitOfWork

__all__ = [
    "Base",
    "MfaChallengeCodeModel",
    "MfaEnrollmentModel",
    "SQLAlchemyChallengeCodeRepository",
    "SQLAlchemyEnrollmentRepository",
    "SQLAlchemyUnitOfWork",
]
