"""Verification Coordinator: checks submitted codes against an enrollment.

Authenticator enrollments are checked with the TOTP engine against the stored
secret. SMS and email enrollments are checked against issued challenge codes,
which are consumed inside the caller's unit of work so that a code is either
marked used and committed, or left untouched.

Callers only ever learn accept or reject; the reason for a rejection (wrong,
expired, used, malformed, raced) is never surfaced.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from typing_extensions import assert_never

from .backup_codes import hash_code
from .config import MfaSettings
from .crypto import base32
from .crypto.totp import TotpEngine
from .domain.enums import CodePurpose, MfaMethod
from .exceptions import (
    AccountLockedError,
    InvalidSecretError,
    NotConfiguredError,
    OptimisticConcurrencyError,
)
from .ports.clock import SystemClock

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .domain.enrollment import MfaEnrollment
    from .ports.clock import IClock
    from .ports.repository import IChallengeCodeRepository, IEnrollmentRepository
    from .ports.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

_NUMERIC_CODE = re.compile(r"^[0-9]{4,10}$")


def normalize_submitted_code(submitted_code: str | None) -> str | None:
    """Strip whitespace; return None unless what remains is 4-10 ASCII digits."""
    if submitted_code is None:
        return None
    code = "".join(submitted_code.split())
    if not _NUMERIC_CODE.match(code):
        return None
    return code


class VerificationCoordinator:
    """Dispatches code checks by enrollment method and tracks failed attempts.

    Example:
        ```python
        coordinator = VerificationCoordinator(
            enrollments, challenges, uow_factory=uow_factory, settings=settings
        )
        if await coordinator.verify_for_login("user-1", "123456"):
            ...
        ```
    """

    def __init__(
        self,
        enrollments: IEnrollmentRepository,
        challenges: IChallengeCodeRepository,
        *,
        uow_factory: Callable[[], UnitOfWork],
        clock: IClock | None = None,
        settings: MfaSettings | None = None,
    ) -> None:
        self.enrollments = enrollments
        self.challenges = challenges
        self._uow_factory = uow_factory
        self.clock = clock or SystemClock()
        self.settings = settings or MfaSettings()
        self.totp = TotpEngine(
            step_seconds=self.settings.totp_time_step_seconds,
            skew_steps=self.settings.totp_skew_steps,
        )

    # ── Single check ─────────────────────────────────────────────

    async def check(
        self,
        enrollment: MfaEnrollment,
        submitted_code: str,
        purpose: CodePurpose,
        *,
        uow: UnitOfWork,
    ) -> bool:
        """Check ``submitted_code`` for ``purpose``; consume it if delivered.

        Never touches ``is_verified``/``is_enabled`` and does not record
        failed attempts.

        Raises:
            InvalidSecretError: Strict decoding is on and the stored secret is
                malformed.
        """
        code = normalize_submitted_code(submitted_code)
        if code is None:
            return False

        method = enrollment.method
        if method is MfaMethod.AUTHENTICATOR:
            return self._check_totp(enrollment, code)
        elif method is MfaMethod.SMS or method is MfaMethod.EMAIL:
            return await self._consume_challenge(enrollment, code, purpose, uow)
        else:
            assert_never(method)

    def _check_totp(self, enrollment: MfaEnrollment, code: str) -> bool:
        try:
            key = base32.decode(
                enrollment.secret_value(),
                strict=self.settings.strict_secret_decoding,
            )
        except ValueError as exc:
            logger.error(
                "Stored TOTP secret is malformed",
                extra={"user_id": enrollment.user_id, "method": enrollment.method.value},
            )
            raise InvalidSecretError("Stored TOTP secret is malformed") from exc
        return self.totp.verify(key, code, self.clock.now().timestamp())

    async def _consume_challenge(
        self,
        enrollment: MfaEnrollment,
        code: str,
        purpose: CodePurpose,
        uow: UnitOfWork,
    ) -> bool:
        now = self.clock.now()
        challenge = await self.challenges.find_active(
            enrollment.user_id, code, purpose, now, uow
        )
        if challenge is None:
            return False

        challenge.mark_used(now=now)
        try:
            await self.challenges.save(challenge, uow)
        except OptimisticConcurrencyError:
            # Another request consumed the same code first.
            logger.warning(
                "Challenge code consumed by a concurrent request",
                extra={
                    "user_id": enrollment.user_id,
                    "purpose": purpose.value,
                    "method": enrollment.method.value,
                },
            )
            return False
        return True

    # ── Tracked attempt ──────────────────────────────────────────

    async def attempt(
        self,
        enrollment: MfaEnrollment,
        submitted_code: str,
        purpose: CodePurpose,
        *,
        uow: UnitOfWork,
    ) -> bool:
        """Run :meth:`check` under the failed-attempt lockout.

        Resets the counter on success; on failure increments it and locks the
        enrollment for ``lockout_minutes`` once ``max_failed_attempts`` is
        reached. The caller saves the enrollment.

        Raises:
            AccountLockedError: The enrollment is currently locked.
        """
        context = {
            "user_id": enrollment.user_id,
            "purpose": purpose.value,
            "method": enrollment.method.value,
        }
        now = self.clock.now()
        self._ensure_not_locked(enrollment, now, context)

        accepted = await self.check(enrollment, submitted_code, purpose, uow=uow)
        self._record_outcome(enrollment, accepted, now, context)
        return accepted

    # ── Login ────────────────────────────────────────────────────

    async def verify_for_login(self, user_id: str, submitted_code: str) -> bool:
        """Check a login code for ``user_id``.

        Returns:
            True if accepted. False if rejected, or if MFA is not enabled.

        Raises:
            NotConfiguredError: No enrollment exists.
            AccountLockedError: Too many failed attempts; retry after
                ``locked_until``.
        """
        purpose = CodePurpose.LOGIN
        async with self._uow_factory() as uow:
            enrollment = await self.enrollments.get_by_user(user_id, uow)
            if enrollment is None:
                logger.warning(
                    "Login verification without enrollment",
                    extra={"user_id": user_id, "purpose": purpose.value},
                )
                raise NotConfiguredError(user_id)

            context = {
                "user_id": user_id,
                "purpose": purpose.value,
                "method": enrollment.method.value,
            }
            if not enrollment.is_enabled:
                logger.info("Login verification while MFA is not enabled", extra=context)
                return False

            accepted = await self.attempt(enrollment, submitted_code, purpose, uow=uow)
            await self.enrollments.save(enrollment, uow)

        return accepted

    # ── Backup codes ─────────────────────────────────────────────

    async def verify_backup_code(self, user_id: str, backup_code: str) -> bool:
        """Consume one of the user's backup codes.

        A matching code is removed and cannot be used again. Misses count
        towards the lockout like any other failed verification.

        Raises:
            AccountLockedError: Too many failed attempts.
        """
        async with self._uow_factory() as uow:
            enrollment = await self.enrollments.get_by_user(user_id, uow)
            if enrollment is None or not enrollment.is_enabled:
                return False

            context = {"user_id": user_id, "method": enrollment.method.value}
            now = self.clock.now()
            self._ensure_not_locked(enrollment, now, context)

            consumed = enrollment.consume_backup_code(hash_code(backup_code), now=now)
            self._record_outcome(enrollment, consumed, now, context)
            await self.enrollments.save(enrollment, uow)

        if consumed:
            logger.info(
                "Backup code used, %d remaining",
                len(enrollment.backup_code_hashes),
                extra=context,
            )
        return consumed

    # ── Helpers ──────────────────────────────────────────────────

    def _ensure_not_locked(
        self, enrollment: MfaEnrollment, now: datetime, context: dict[str, str]
    ) -> None:
        if enrollment.locked_until is not None and enrollment.is_locked(now):
            logger.warning("Verification attempted while locked", extra=context)
            raise AccountLockedError(enrollment.user_id, enrollment.locked_until)

    def _record_outcome(
        self,
        enrollment: MfaEnrollment,
        accepted: bool,
        now: datetime,
        context: dict[str, str],
    ) -> None:
        if accepted:
            enrollment.reset_failed_attempts(now=now)
            logger.info("Verification succeeded", extra=context)
            return

        enrollment.record_failed_attempt(
            now=now,
            max_failed_attempts=self.settings.max_failed_attempts,
            lockout_minutes=self.settings.lockout_minutes,
        )
        if enrollment.is_locked(now):
            logger.warning(
                "Verification locked after %d failed attempts",
                enrollment.failed_attempts,
                extra=context,
            )
        else:
            logger.warning("Verification failed", extra=context)


__all__: list[str] = ["VerificationCoordinator", "normalize_submitted_code"]
