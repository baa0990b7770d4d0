"""mfa-engine: TOTP and delivered-code multi-factor authentication."""

from __future__ import annotations

from .backup_codes import BackupCodeGenerator
from .config import MfaSettings
from .crypto import IRandomSource, SystemRandomSource, TotpEngine
from .delivery import DeliveryDispatcher, VerificationCodeSender
from .domain import (
    AggregateRoot,
    CodePurpose,
    DomainEvent,
    MfaChallengeCode,
    MfaConfigured,
    MfaDisabled,
    MfaEnabled,
    MfaEnrollment,
    MfaMethod,
    MfaVerified,
)
from .enrollment import EnrollmentService, MfaSetupResult, MfaStatus
from .exceptions import (
    AccountLockedError,
    AlreadyEnabledError,
    DeliveryError,
    DomainError,
    InfrastructureError,
    InvalidCodeError,
    InvalidSecretError,
    InvariantViolationError,
    MfaEngineError,
    MfaError,
    MisconfiguredChannelError,
    NotConfiguredError,
    NotEnabledError,
    OptimisticConcurrencyError,
    PersistenceError,
    UnsupportedMethodError,
)
from .issuer import CodeIssuer
from .ports import (
    DeliveryChannel,
    DeliveryRecord,
    DeliveryStatus,
    IChallengeCodeRepository,
    IClock,
    IDomainEventPublisher,
    IEmailSender,
    IEnrollmentRepository,
    ISmsSender,
    SystemClock,
    UnitOfWork,
)
from .verification import VerificationCoordinator

__version__ = "0.1.0"

__all__ = [
    # Services
    "CodeIssuer",
    "DeliveryDispatcher",
    "EnrollmentService",
    "VerificationCodeSender",
    "VerificationCoordinator",
    "MfaSetupResult",
    "MfaStatus",
    # Config / crypto
    "MfaSettings",
    "TotpEngine",
    "BackupCodeGenerator",
    "IRandomSource",
    "SystemRandomSource",
    # Domain
    "AggregateRoot",
    "CodePurpose",
    "DomainEvent",
    "MfaChallengeCode",
    "MfaConfigured",
    "MfaDisabled",
    "MfaEnabled",
    "MfaEnrollment",
    "MfaMethod",
    "MfaVerified",
    # Ports
    "DeliveryChannel",
    "DeliveryRecord",
    "DeliveryStatus",
    "IChallengeCodeRepository",
    "IClock",
    "IDomainEventPublisher",
    "IEmailSender",
    "IEnrollmentRepository",
    "ISmsSender",
    "SystemClock",
    "UnitOfWork",
    # Exceptions
    "AccountLockedError",
    "AlreadyEnabledError",
    "DeliveryError",
    "DomainError",
    "InfrastructureError",
    "InvalidCodeError",
    "InvalidSecretError",
    "InvariantViolationError",
    "MfaEngineError",
    "MfaError",
    "MisconfiguredChannelError",
    "NotConfiguredError",
    "NotEnabledError",
    "OptimisticConcurrencyError",
    "PersistenceError",
    "UnsupportedMethodError",
]
