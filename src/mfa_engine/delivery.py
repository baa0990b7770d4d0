"""Delivery of issued codes over SMS and email.

Sender bindings are validated when the dispatcher is built: a deployment that
offers a method without a transport for it fails at startup instead of
issuing codes nobody can receive.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from typing_extensions import assert_never

from .config import MfaSettings
from .domain.enums import CodePurpose, MfaMethod
from .exceptions import (
    AlreadyEnabledError,
    DeliveryError,
    MisconfiguredChannelError,
    NotConfiguredError,
    NotEnabledError,
    UnsupportedMethodError,
)
from .ports.delivery import DeliveryChannel

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .domain.challenge import MfaChallengeCode
    from .domain.enrollment import MfaEnrollment
    from .issuer import CodeIssuer
    from .ports.delivery import DeliveryRecord, IEmailSender, ISmsSender
    from .ports.repository import IEnrollmentRepository
    from .ports.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

SMS_TEMPLATE = "Your verification code is: {code}. Valid for {minutes} minutes."
EMAIL_SUBJECT = "2FA Verification Code"
EMAIL_TEMPLATE = (
    "Your verification code is: {code}. This code will expire in {minutes} minutes."
)

_CHANNELS: dict[MfaMethod, DeliveryChannel] = {
    MfaMethod.SMS: DeliveryChannel.SMS,
    MfaMethod.EMAIL: DeliveryChannel.EMAIL,
}


class DeliveryDispatcher:
    """Routes a challenge code to the sender matching the enrolled method.

    Example:
        ```python
        dispatcher = DeliveryDispatcher(
            sms_sender=TwilioSmsSender(...),
            email_sender=SesEmailSender(...),
        )
        await dispatcher.deliver(enrollment, challenge, validity_minutes=10)
        ```
    """

    def __init__(
        self,
        sms_sender: ISmsSender | None = None,
        email_sender: IEmailSender | None = None,
        *,
        enabled_methods: Iterable[MfaMethod] = tuple(MfaMethod),
    ) -> None:
        """Bind the senders and check every enabled method can be served.

        Raises:
            MisconfiguredChannelError: If an enabled SMS/email method has no
                sender.
        """
        self.sms_sender = sms_sender
        self.email_sender = email_sender
        self.enabled_methods = frozenset(enabled_methods)
        for method in sorted(self.enabled_methods, key=lambda m: m.value):
            if method.is_out_of_band:
                self.ensure_channel(method)

    def ensure_channel(self, method: MfaMethod) -> None:
        """Fail fast if ``method`` cannot be delivered.

        Raises:
            UnsupportedMethodError: For authenticator enrollments.
            MisconfiguredChannelError: If the method's sender is not bound.
        """
        if method is MfaMethod.AUTHENTICATOR:
            raise UnsupportedMethodError(method, "Code delivery")
        elif method is MfaMethod.SMS:
            bound = self.sms_sender is not None
        elif method is MfaMethod.EMAIL:
            bound = self.email_sender is not None
        else:
            assert_never(method)

        if not bound:
            logger.error(
                "No delivery sender bound for MFA method",
                extra={"method": method.value},
            )
            raise MisconfiguredChannelError(method)

    async def deliver(
        self,
        enrollment: MfaEnrollment,
        challenge: MfaChallengeCode,
        validity_minutes: int,
    ) -> DeliveryRecord:
        """Send ``challenge.code`` to the enrollment's phone number or email.

        Raises:
            DeliveryError: If the transport raises or reports a failure. The
                issued code stays valid.
        """
        method = enrollment.method
        self.ensure_channel(method)
        context = {
            "user_id": enrollment.user_id,
            "purpose": challenge.purpose.value,
            "method": method.value,
        }

        channel = _CHANNELS[method]
        try:
            record = await self._send(channel, enrollment, challenge.code, validity_minutes)
        except Exception as exc:
            logger.error(
                "Verification code delivery raised %s",
                type(exc).__name__,
                extra=context,
            )
            raise DeliveryError(channel.value, str(exc) or type(exc).__name__) from exc

        if not record.succeeded:
            logger.error("Verification code delivery failed", extra=context)
            raise DeliveryError(channel.value, record.error or "delivery failed")

        logger.info("Verification code delivered", extra=context)
        return record

    async def _send(
        self,
        channel: DeliveryChannel,
        enrollment: MfaEnrollment,
        code: str,
        validity_minutes: int,
    ) -> DeliveryRecord:
        if channel is DeliveryChannel.SMS:
            assert self.sms_sender is not None
            assert enrollment.phone_number is not None
            return await self.sms_sender.send_sms(
                enrollment.phone_number,
                SMS_TEMPLATE.format(code=code, minutes=validity_minutes),
            )
        assert self.email_sender is not None
        assert enrollment.email is not None
        return await self.email_sender.send_email(
            enrollment.email,
            EMAIL_SUBJECT,
            EMAIL_TEMPLATE.format(code=code, minutes=validity_minutes),
        )


class VerificationCodeSender:
    """Issues a code for an enrolled user and delivers it.

    The code is committed before delivery starts; a delivery failure leaves
    the committed code in place and surfaces as a retryable ``DeliveryError``.
    """

    def __init__(
        self,
        enrollments: IEnrollmentRepository,
        issuer: CodeIssuer,
        dispatcher: DeliveryDispatcher,
        *,
        uow_factory: Callable[[], UnitOfWork],
        settings: MfaSettings | None = None,
    ) -> None:
        self.enrollments = enrollments
        self.issuer = issuer
        self.dispatcher = dispatcher
        self._uow_factory = uow_factory
        self.settings = settings or MfaSettings()

    async def send(
        self, user_id: str, purpose: CodePurpose = CodePurpose.LOGIN
    ) -> DeliveryRecord:
        """Issue a ``purpose`` code for ``user_id`` and send it.

        Raises:
            NotConfiguredError: No enrollment exists.
            UnsupportedMethodError: The user is enrolled with an authenticator.
            AlreadyEnabledError: An ENABLE_2FA code was requested while enabled.
            NotEnabledError: Any other purpose was requested while not enabled.
            MisconfiguredChannelError: The method's sender is not bound.
            DeliveryError: Sending failed after the code was committed.
        """
        async with self._uow_factory() as uow:
            enrollment = await self.enrollments.get_by_user(user_id, uow)
            if enrollment is None:
                logger.warning(
                    "Verification code requested without enrollment",
                    extra={"user_id": user_id, "purpose": purpose.value},
                )
                raise NotConfiguredError(user_id)
            if purpose is CodePurpose.ENABLE_2FA and enrollment.is_enabled:
                raise AlreadyEnabledError(user_id)
            if purpose is not CodePurpose.ENABLE_2FA and not enrollment.is_enabled:
                raise NotEnabledError(user_id)

            self.dispatcher.ensure_channel(enrollment.method)
            challenge = await self.issuer.issue(
                user_id, enrollment.method, purpose, uow=uow
            )

        return await self.dispatcher.deliver(
            enrollment,
            challenge,
            self.settings.verification_code_expiration_minutes,
        )


__all__: list[str] = [
    "DeliveryDispatcher",
    "VerificationCodeSender",
    "SMS_TEMPLATE",
    "EMAIL_SUBJECT",
    "EMAIL_TEMPLATE",
]
