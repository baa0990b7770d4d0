"""Enrollment State Machine: setup, enable, disable and status of a user's MFA.

::

    NotConfigured ──setup──▶ Configured ──enable(code)──▶ Verified & Enabled
                                 ▲                              │
                                 └──────── disable(code) ───────┘

Every operation loads, checks and saves inside one unit of work. Domain
events are published and codes delivered only after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .backup_codes import BackupCodeGenerator, hash_code
from .config import MfaSettings
from .crypto import totp
from .crypto.randomness import SystemRandomSource
from .domain.enrollment import MfaEnrollment
from .domain.enums import CodePurpose, MfaMethod
from .exceptions import (
    AlreadyEnabledError,
    InvalidCodeError,
    MisconfiguredChannelError,
    NotConfiguredError,
    NotEnabledError,
    UnsupportedMethodError,
)
from .ports.clock import SystemClock

if TYPE_CHECKING:
    from collections.abc import Callable

    from .crypto.randomness import IRandomSource
    from .delivery import DeliveryDispatcher
    from .domain.aggregate import AggregateRoot
    from .issuer import CodeIssuer
    from .ports.clock import IClock
    from .ports.delivery import DeliveryRecord
    from .ports.events import IDomainEventPublisher
    from .ports.repository import IEnrollmentRepository
    from .ports.unit_of_work import UnitOfWork
    from .verification import VerificationCoordinator

logger = logging.getLogger(__name__)

SETUP_MESSAGE = "2FA setup initiated. Please verify with a code to enable."
SETUP_SENT_MESSAGE = "Verification code sent via {method}. Please verify to enable 2FA."


@dataclass(frozen=True)
class MfaSetupResult:
    """Outcome of :meth:`EnrollmentService.setup`.

    ``backup_codes`` and ``secret`` are plaintext and shown to the user once.
    """

    method: MfaMethod
    message: str
    backup_codes: list[str] = field(repr=False)
    secret: str | None = field(default=None, repr=False)
    provisioning_uri: str | None = field(default=None, repr=False)
    manual_key: str | None = field(default=None, repr=False)
    delivery: DeliveryRecord | None = None


@dataclass(frozen=True)
class MfaStatus:
    """Read-only MFA summary with masked contact details."""

    is_enabled: bool
    method: MfaMethod | None = None
    phone_number: str | None = None
    email: str | None = None
    backup_codes_remaining: int = 0


def mask_phone_number(phone: str) -> str:
    """``+15551234567`` -> ``***4567``; shorter than 4 characters is returned as is."""
    if len(phone) < 4:
        return phone
    return f"***{phone[-4:]}"


def mask_email(email: str) -> str:
    """``user@example.com`` -> ``u***r@example.com``."""
    parts = email.split("@")
    if len(parts) != 2:
        return email
    username, domain = parts
    if len(username) <= 2:
        return email
    return f"{username[0]}***{username[-1]}@{domain}"


def _context(enrollment: MfaEnrollment, purpose: CodePurpose) -> dict[str, str]:
    return {
        "user_id": enrollment.user_id,
        "purpose": purpose.value,
        "method": enrollment.method.value,
    }


class EnrollmentService:
    """Drives a user's enrollment through its states.

    Example:
        ```python
        service = EnrollmentService(
            enrollments,
            coordinator,
            uow_factory=uow_factory,
            issuer=issuer,
            dispatcher=dispatcher,
        )
        result = await service.setup("user-1", MfaMethod.AUTHENTICATOR)
        # user scans result.provisioning_uri, then:
        await service.enable("user-1", "492039")
        ```
    """

    def __init__(
        self,
        enrollments: IEnrollmentRepository,
        coordinator: VerificationCoordinator,
        *,
        uow_factory: Callable[[], UnitOfWork],
        issuer: CodeIssuer | None = None,
        dispatcher: DeliveryDispatcher | None = None,
        random_source: IRandomSource | None = None,
        clock: IClock | None = None,
        settings: MfaSettings | None = None,
        event_publisher: IDomainEventPublisher | None = None,
    ) -> None:
        self.enrollments = enrollments
        self.coordinator = coordinator
        self._uow_factory = uow_factory
        self.issuer = issuer
        self.dispatcher = dispatcher
        self.random_source = random_source or SystemRandomSource()
        self.clock = clock or SystemClock()
        self.settings = settings or MfaSettings()
        self.event_publisher = event_publisher
        self.backup_codes = BackupCodeGenerator(self.random_source)

    # ── Setup ────────────────────────────────────────────────────

    async def setup(
        self,
        user_id: str,
        method: MfaMethod,
        *,
        phone_number: str | None = None,
        email: str | None = None,
        account_name: str | None = None,
    ) -> MfaSetupResult:
        """Create or re-configure the user's enrollment (unverified).

        Authenticator: a fresh secret and provisioning URI are returned.
        SMS/Email: an ENABLE_2FA code is issued and, after commit, delivered
        to the given phone number or email.

        Raises:
            UnsupportedMethodError: ``method`` is not offered by this deployment.
            MisconfiguredChannelError: No sender is bound for ``method``.
            AlreadyEnabledError: MFA is enabled; disable it first.
            InvariantViolationError: The destination does not match ``method``.
            DeliveryError: The setup code was committed but could not be sent.
        """
        context = {"user_id": user_id, "method": method.value}
        if method not in self.settings.enabled_methods:
            raise UnsupportedMethodError(method, "Setup")
        if method.is_out_of_band:
            self._ensure_can_deliver(method)

        secret = (
            totp.generate_secret(self.random_source)
            if method is MfaMethod.AUTHENTICATOR
            else None
        )
        backup_codes = self.backup_codes.generate(self.settings.backup_code_count)
        hashes = [hash_code(code) for code in backup_codes]

        challenge = None
        async with self._uow_factory() as uow:
            now = self.clock.now()
            enrollment = await self.enrollments.get_by_user(user_id, uow)
            if enrollment is not None and enrollment.is_enabled:
                logger.warning("Setup attempted while MFA is enabled", extra=context)
                raise AlreadyEnabledError(user_id)

            if enrollment is None:
                enrollment = MfaEnrollment.create(
                    user_id,
                    method,
                    now=now,
                    secret=secret,
                    phone_number=phone_number,
                    email=email,
                    backup_code_hashes=hashes,
                )
            else:
                enrollment.reconfigure(
                    method,
                    now=now,
                    secret=secret,
                    phone_number=phone_number,
                    email=email,
                    backup_code_hashes=hashes,
                )
            await self.enrollments.save(enrollment, uow)

            if method.is_out_of_band:
                assert self.issuer is not None
                challenge = await self.issuer.issue(
                    user_id, method, CodePurpose.ENABLE_2FA, uow=uow
                )
            self._publish_after_commit(uow, enrollment)

        logger.info("MFA configured", extra=context)

        if challenge is None:
            assert secret is not None
            return MfaSetupResult(
                method=method,
                message=SETUP_MESSAGE,
                backup_codes=backup_codes,
                secret=secret,
                provisioning_uri=totp.provisioning_uri(
                    secret,
                    account_name or user_id,
                    self.settings.issuer,
                    step_seconds=self.settings.totp_time_step_seconds,
                ),
                manual_key=totp.format_secret(secret),
            )

        assert self.dispatcher is not None
        record = await self.dispatcher.deliver(
            enrollment,
            challenge,
            self.settings.verification_code_expiration_minutes,
        )
        return MfaSetupResult(
            method=method,
            message=SETUP_SENT_MESSAGE.format(method=method.value),
            backup_codes=backup_codes,
            delivery=record,
        )

    # ── Enable / Disable ─────────────────────────────────────────

    async def enable(self, user_id: str, submitted_code: str) -> None:
        """Verify the first code after setup and turn MFA on.

        Raises:
            NotConfiguredError: No enrollment exists.
            AlreadyEnabledError: MFA is already enabled.
            AccountLockedError: Too many failed attempts.
            InvalidCodeError: The code was rejected, for any reason.
        """
        purpose = CodePurpose.ENABLE_2FA
        async with self._uow_factory() as uow:
            enrollment = await self._load(user_id, uow, purpose)
            if enrollment.is_enabled:
                raise AlreadyEnabledError(user_id)

            accepted = await self.coordinator.attempt(
                enrollment, submitted_code, purpose, uow=uow
            )
            if accepted:
                now = self.clock.now()
                enrollment.verify(now=now)
                enrollment.enable(now=now)
            await self.enrollments.save(enrollment, uow)
            self._publish_after_commit(uow, enrollment)

        if not accepted:
            raise InvalidCodeError()
        logger.info(
            "MFA enabled",
            extra=_context(enrollment, purpose),
        )

    async def disable(self, user_id: str, submitted_code: str) -> None:
        """Turn MFA off after checking a current code.

        The record is kept; enabling again requires a fresh verification.

        Raises:
            NotConfiguredError: No enrollment exists.
            NotEnabledError: MFA is not enabled.
            AccountLockedError: Too many failed attempts.
            InvalidCodeError: The code was rejected.
        """
        purpose = CodePurpose.DISABLE_2FA
        async with self._uow_factory() as uow:
            enrollment = await self._load(user_id, uow, purpose)
            if not enrollment.is_enabled:
                raise NotEnabledError(user_id)

            accepted = await self.coordinator.attempt(
                enrollment, submitted_code, purpose, uow=uow
            )
            if accepted:
                enrollment.disable(now=self.clock.now())
            await self.enrollments.save(enrollment, uow)
            self._publish_after_commit(uow, enrollment)

        if not accepted:
            raise InvalidCodeError()
        logger.info(
            "MFA disabled",
            extra=_context(enrollment, purpose),
        )

    # ── Backup codes ─────────────────────────────────────────────

    async def regenerate_backup_codes(self, user_id: str, submitted_code: str) -> list[str]:
        """Replace all backup codes after checking a current code.

        Returns:
            The new plaintext codes, shown to the user once.

        Raises:
            NotConfiguredError: No enrollment exists.
            NotEnabledError: MFA is not enabled.
            AccountLockedError: Too many failed attempts.
            InvalidCodeError: The code was rejected.
        """
        purpose = CodePurpose.REGENERATE_BACKUP_CODES
        codes: list[str] = []
        async with self._uow_factory() as uow:
            enrollment = await self._load(user_id, uow, purpose)
            if not enrollment.is_enabled:
                raise NotEnabledError(user_id)

            accepted = await self.coordinator.attempt(
                enrollment, submitted_code, purpose, uow=uow
            )
            if accepted:
                codes = self.backup_codes.generate(self.settings.backup_code_count)
                enrollment.replace_backup_codes(
                    [hash_code(code) for code in codes], now=self.clock.now()
                )
            await self.enrollments.save(enrollment, uow)

        if not accepted:
            raise InvalidCodeError()
        logger.info(
            "Backup codes regenerated",
            extra=_context(enrollment, purpose),
        )
        return codes

    # ── Status ───────────────────────────────────────────────────

    async def get_status(self, user_id: str) -> MfaStatus:
        async with self._uow_factory() as uow:
            enrollment = await self.enrollments.get_by_user(user_id, uow)

        if enrollment is None:
            return MfaStatus(is_enabled=False)
        return MfaStatus(
            is_enabled=enrollment.is_enabled,
            method=enrollment.method,
            phone_number=(
                mask_phone_number(enrollment.phone_number)
                if enrollment.phone_number
                else None
            ),
            email=mask_email(enrollment.email) if enrollment.email else None,
            backup_codes_remaining=len(enrollment.backup_code_hashes),
        )

    # ── Helpers ──────────────────────────────────────────────────

    async def _load(
        self, user_id: str, uow: UnitOfWork, purpose: CodePurpose
    ) -> MfaEnrollment:
        enrollment = await self.enrollments.get_by_user(user_id, uow)
        if enrollment is None:
            logger.warning(
                "MFA operation without enrollment",
                extra={"user_id": user_id, "purpose": purpose.value},
            )
            raise NotConfiguredError(user_id)
        return enrollment

    def _ensure_can_deliver(self, method: MfaMethod) -> None:
        if self.dispatcher is None or self.issuer is None:
            logger.error(
                "No delivery dispatcher bound for MFA method",
                extra={"method": method.value},
            )
            raise MisconfiguredChannelError(method)
        self.dispatcher.ensure_channel(method)

    def _publish_after_commit(self, uow: UnitOfWork, aggregate: AggregateRoot) -> None:
        events = aggregate.collect_events()
        if not events or self.event_publisher is None:
            return
        publisher = self.event_publisher

        async def publish() -> None:
            await publisher.publish(events)

        uow.on_commit(publish)


__all__: list[str] = [
    "EnrollmentService",
    "MfaSetupResult",
    "MfaStatus",
    "mask_phone_number",
    "mask_email",
]
