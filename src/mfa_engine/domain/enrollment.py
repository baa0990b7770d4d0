"""MfaEnrollment aggregate: one per user, governs the MFA state machine.

States::

    NotConfigured ──setup──▶ Configured (unverified)
    Configured ──verify──▶ Verified ──enable──▶ Enabled
    Enabled ──disable──▶ Configured (unverified)

The record is never deleted, only disabled.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import Field, SecretStr, model_validator

from ..exceptions import AlreadyEnabledError, InvariantViolationError, NotEnabledError
from .aggregate import AggregateRoot
from .enums import MfaMethod
from .events import MfaConfigured, MfaDisabled, MfaEnabled, MfaVerified


def _check_destination(
    method: MfaMethod,
    secret: SecretStr | None,
    phone_number: str | None,
    email: str | None,
) -> None:
    has_secret = secret is not None and bool(secret.get_secret_value())
    has_contact = bool(phone_number) or bool(email)
    if method is MfaMethod.AUTHENTICATOR:
        if not has_secret:
            raise InvariantViolationError("A secret is required for authenticator MFA")
        if has_contact:
            raise InvariantViolationError(
                "Authenticator MFA must not carry a phone number or email"
            )
        return
    if has_secret:
        raise InvariantViolationError(f"{method.value} MFA must not carry a secret")
    if method is MfaMethod.SMS and not phone_number:
        raise InvariantViolationError("Phone number is required for SMS MFA")
    if method is MfaMethod.EMAIL and not email:
        raise InvariantViolationError("Email is required for email MFA")


class MfaEnrollment(AggregateRoot):
    """A user's second-factor enrollment.

    ``secret`` is a ``SecretStr`` so it never shows up in ``repr`` or logs.
    ``is_enabled`` is the flag consulted at login time and implies
    ``is_verified``.
    """

    user_id: str
    method: MfaMethod
    secret: SecretStr | None = None
    phone_number: str | None = None
    email: str | None = None
    is_verified: bool = False
    is_enabled: bool = False
    backup_code_hashes: list[str] = Field(default_factory=list, repr=False)
    failed_attempts: int = 0
    last_attempt_at: datetime | None = None
    locked_until: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def check_invariants(self) -> MfaEnrollment:
        _check_destination(self.method, self.secret, self.phone_number, self.email)
        if self.is_enabled and not self.is_verified:
            raise InvariantViolationError("An enabled enrollment must be verified")
        return self

    # ── Factory ──────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        user_id: str,
        method: MfaMethod,
        *,
        now: datetime,
        secret: str | None = None,
        phone_number: str | None = None,
        email: str | None = None,
        backup_code_hashes: list[str] | None = None,
    ) -> MfaEnrollment:
        if not user_id:
            raise InvariantViolationError("user_id is required")
        enrollment = cls(
            user_id=user_id,
            method=method,
            secret=SecretStr(secret) if secret is not None else None,
            phone_number=phone_number,
            email=email,
            backup_code_hashes=list(backup_code_hashes or []),
            created_at=now,
        )
        enrollment.add_event(
            MfaConfigured(aggregate_id=enrollment.id, user_id=user_id, method=method)
        )
        return enrollment

    # ── Transitions ──────────────────────────────────────────────

    def reconfigure(
        self,
        method: MfaMethod,
        *,
        now: datetime,
        secret: str | None = None,
        phone_number: str | None = None,
        email: str | None = None,
        backup_code_hashes: list[str] | None = None,
    ) -> None:
        """Replace the method and destination; the enrollment becomes unverified."""
        if self.is_enabled:
            raise AlreadyEnabledError(self.user_id)
        new_secret = SecretStr(secret) if secret is not None else None
        _check_destination(method, new_secret, phone_number, email)

        self.method = method
        self.secret = new_secret
        self.phone_number = phone_number
        self.email = email
        if backup_code_hashes is not None:
            self.backup_code_hashes = list(backup_code_hashes)
        self.is_verified = False
        self.is_enabled = False
        self.updated_at = now
        self.add_event(
            MfaConfigured(aggregate_id=self.id, user_id=self.user_id, method=method)
        )

    def verify(self, *, now: datetime) -> None:
        if self.is_verified:
            raise InvariantViolationError("MFA is already verified")
        self.is_verified = True
        self.updated_at = now
        self.add_event(
            MfaVerified(aggregate_id=self.id, user_id=self.user_id, method=self.method)
        )

    def enable(self, *, now: datetime) -> None:
        if self.is_enabled:
            raise AlreadyEnabledError(self.user_id)
        if not self.is_verified:
            raise InvariantViolationError("MFA must be verified before enabling")
        if self.is_locked(now):
            raise InvariantViolationError("MFA enrollment is locked")
        self.is_enabled = True
        self.updated_at = now
        self.add_event(
            MfaEnabled(aggregate_id=self.id, user_id=self.user_id, method=self.method)
        )

    def disable(self, *, now: datetime) -> None:
        """Turn MFA off. A later enable needs a fresh verification."""
        if not self.is_enabled:
            raise NotEnabledError(self.user_id)
        self.is_enabled = False
        self.is_verified = False
        self.updated_at = now
        self.add_event(
            MfaDisabled(aggregate_id=self.id, user_id=self.user_id, method=self.method)
        )

    # ── Failed attempts / lockout ────────────────────────────────

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and now < self.locked_until

    def record_failed_attempt(
        self,
        *,
        now: datetime,
        max_failed_attempts: int,
        lockout_minutes: int,
    ) -> None:
        self.failed_attempts += 1
        self.last_attempt_at = now
        if self.failed_attempts >= max_failed_attempts:
            self.locked_until = now + timedelta(minutes=lockout_minutes)
        self.updated_at = now

    def reset_failed_attempts(self, *, now: datetime) -> None:
        self.failed_attempts = 0
        self.last_attempt_at = now
        self.locked_until = None
        self.updated_at = now

    # ── Backup codes ─────────────────────────────────────────────

    def replace_backup_codes(self, hashes: list[str], *, now: datetime) -> None:
        if not hashes:
            raise InvariantViolationError("Backup codes cannot be empty")
        self.backup_code_hashes = list(hashes)
        self.updated_at = now

    def consume_backup_code(self, code_hash: str, *, now: datetime) -> bool:
        """Remove a matching backup code hash; False if none matches."""
        if code_hash not in self.backup_code_hashes:
            return False
        self.backup_code_hashes = [h for h in self.backup_code_hashes if h != code_hash]
        self.updated_at = now
        return True

    def secret_value(self) -> str:
        if self.secret is None:
            raise InvariantViolationError(
                f"{self.method.value} MFA has no TOTP secret"
            )
        return self.secret.get_secret_value()
