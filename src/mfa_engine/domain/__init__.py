"""MFA domain model."""

from mfa_engine.domain.aggregate import AggregateRoot
from mfa_engine.domain.challenge import MfaChallengeCode
from mfa_engine.domain.enrollment import MfaEnrollment
from mfa_engine.domain.enums import CodePurpose, MfaMethod
from mfa_engine.domain.events import (
    DomainEvent,
    MfaConfigured,
    MfaDisabled,
    MfaEnabled,
    MfaVerified,
)

__all__: list[str] = [
    "AggregateRoot",
    "MfaEnrollment",
    "MfaChallengeCode",
    "MfaMethod",
    "CodePurpose",
    # Events
    "DomainEvent",
    "MfaConfigured",
    "MfaVerified",
    "MfaEnabled",
    "MfaDisabled",
]
