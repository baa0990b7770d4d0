"""Exception hierarchy for mfa-engine.

Domain errors describe business rejections the caller can act on.
Infrastructure errors describe faults in wiring, delivery or persistence.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .domain.enums import MfaMethod


class MfaEngineError(Exception):
    """Root exception for the entire package."""


# ═══════════════════════════════════════════════════════════════
# DOMAIN ERRORS
# ═══════════════════════════════════════════════════════════════


class DomainError(MfaEngineError):
    """Base class for all domain-related errors."""


class InvariantViolationError(DomainError):
    """Raised when a domain invariant is violated."""


class MfaError(DomainError):
    """Base class for MFA business errors."""


class NotConfiguredError(MfaError):
    """Raised when no MFA enrollment exists for the user.

    Recoverable by running setup first.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("MFA is not configured. Run MFA setup first.")


class AlreadyEnabledError(MfaError):
    """Raised when enabling (or re-configuring) an already enabled enrollment."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("MFA is already enabled. Disable it before changing it.")


class NotEnabledError(MfaError):
    """Raised when an operation requires MFA to be enabled."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("MFA is not enabled.")


class InvalidCodeError(MfaError):
    """Raised when a submitted code is rejected.

    The message is identical for wrong, expired, already used and malformed
    codes.
    """

    def __init__(self) -> None:
        super().__init__("Invalid verification code.")


class AccountLockedError(MfaError):
    """Raised while verification is locked after too many failed attempts.

    Attributes:
        locked_until: UTC instant after which attempts are accepted again.
    """

    def __init__(self, user_id: str, locked_until: datetime) -> None:
        self.user_id = user_id
        self.locked_until = locked_until
        super().__init__(
            "Too many failed attempts. Try again after "
            f"{locked_until:%Y-%m-%d %H:%M:%S} UTC."
        )


class UnsupportedMethodError(MfaError):
    """Raised when an operation does not apply to the enrolled method.

    Example: requesting a delivered code for an authenticator enrollment.
    """

    def __init__(self, method: MfaMethod, operation: str) -> None:
        self.method = method
        self.operation = operation
        super().__init__(f"{operation} is not supported for method {method.value!r}")


class InvalidSecretError(MfaError):
    """Raised when a stored TOTP secret cannot be decoded under strict decoding."""


# ═══════════════════════════════════════════════════════════════
# INFRASTRUCTURE ERRORS
# ═══════════════════════════════════════════════════════════════


class InfrastructureError(MfaEngineError):
    """Base class for all infrastructure-related errors."""


class MisconfiguredChannelError(InfrastructureError):
    """Raised when an MFA method has no bound delivery implementation.

    This is a server-side configuration fault, never a user error.
    """

    def __init__(self, method: MfaMethod) -> None:
        self.method = method
        super().__init__(
            f"No delivery sender is bound for MFA method {method.value!r}"
        )


class DeliveryError(InfrastructureError):
    """Raised when sending an already issued code fails.

    The issued code stays valid, so the caller may retry delivery.
    """

    retryable = True

    def __init__(self, channel: str, reason: str) -> None:
        self.channel = channel
        self.reason = reason
        super().__init__(f"Failed to deliver verification code via {channel}: {reason}")


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


class OptimisticConcurrencyError(PersistenceError):
    """Raised when a row version no longer matches the loaded entity.

    Another writer committed a change after the entity was loaded.
    """


class UnitOfWorkError(PersistenceError):
    """Raised when Unit of Work operations fail."""


class SessionManagementError(PersistenceError):
    """Raised when session creation or management fails."""


__all__: list[str] = [
    "MfaEngineError",
    # Domain
    "DomainError",
    "InvariantViolationError",
    "MfaError",
    "NotConfiguredError",
    "AlreadyEnabledError",
    "NotEnabledError",
    "InvalidCodeError",
    "AccountLockedError",
    "UnsupportedMethodError",
    "InvalidSecretError",
    # Infrastructure
    "InfrastructureError",
    "MisconfiguredChannelError",
    "DeliveryError",
    "PersistenceError",
    "OptimisticConcurrencyError",
    "UnitOfWorkError",
    "SessionManagementError",
]
