"""Shared fixtures: in-memory wiring with a frozen clock and seeded randomness."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import pytest

from mfa_engine import (
    CodeIssuer,
    DeliveryDispatcher,
    EnrollmentService,
    MfaEnrollment,
    MfaMethod,
    MfaSettings,
    VerificationCodeSender,
    VerificationCoordinator,
)
from mfa_engine.adapters.memory import (
    FrozenClock,
    InMemoryChallengeCodeRepository,
    InMemoryEmailSender,
    InMemoryEnrollmentRepository,
    InMemoryEventPublisher,
    InMemorySmsSender,
    InMemoryUnitOfWork,
    ScriptedRandomSource,
)
from mfa_engine.crypto import base32, totp

SECRET = "JBSWY3DPEHPK3PXP"
PHONE = "+15551234567"
EMAIL = "user@example.com"


@pytest.fixture()
def clock() -> FrozenClock:
    # 2023-11-14T22:13:20Z, unix time 1_700_000_000
    return FrozenClock()


@pytest.fixture()
def random_source() -> ScriptedRandomSource:
    return ScriptedRandomSource(seed=1234)


@pytest.fixture()
def settings() -> MfaSettings:
    return MfaSettings()


@pytest.fixture()
def enrollments() -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository()


@pytest.fixture()
def challenges() -> InMemoryChallengeCodeRepository:
    return InMemoryChallengeCodeRepository()


@pytest.fixture()
def sms_sender() -> InMemorySmsSender:
    return InMemorySmsSender()


@pytest.fixture()
def email_sender() -> InMemoryEmailSender:
    return InMemoryEmailSender()


@pytest.fixture()
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture()
def issuer(challenges, random_source, clock, settings) -> CodeIssuer:
    return CodeIssuer(
        challenges,
        uow_factory=InMemoryUnitOfWork,
        random_source=random_source,
        clock=clock,
        settings=settings,
    )


@pytest.fixture()
def dispatcher(sms_sender, email_sender, settings) -> DeliveryDispatcher:
    return DeliveryDispatcher(
        sms_sender=sms_sender,
        email_sender=email_sender,
        enabled_methods=settings.enabled_methods,
    )


@pytest.fixture()
def coordinator(enrollments, challenges, clock, settings) -> VerificationCoordinator:
    return VerificationCoordinator(
        enrollments,
        challenges,
        uow_factory=InMemoryUnitOfWork,
        clock=clock,
        settings=settings,
    )


@pytest.fixture()
def code_sender(enrollments, issuer, dispatcher, settings) -> VerificationCodeSender:
    return VerificationCodeSender(
        enrollments,
        issuer,
        dispatcher,
        uow_factory=InMemoryUnitOfWork,
        settings=settings,
    )


@pytest.fixture()
def service(
    enrollments,
    coordinator,
    issuer,
    dispatcher,
    random_source,
    clock,
    settings,
    publisher,
) -> EnrollmentService:
    return EnrollmentService(
        enrollments,
        coordinator,
        uow_factory=InMemoryUnitOfWork,
        issuer=issuer,
        dispatcher=dispatcher,
        random_source=random_source,
        clock=clock,
        settings=settings,
        event_publisher=publisher,
    )


@pytest.fixture()
def totp_now(clock: FrozenClock) -> Callable[..., str]:
    """Code an authenticator app would show for the secret right now."""

    def _code(secret: str = SECRET) -> str:
        return totp.generate(
            base32.decode(secret), totp.time_step(clock.now().timestamp())
        )

    return _code


@pytest.fixture()
def make_enrollment(clock: FrozenClock) -> Callable[..., MfaEnrollment]:
    """Build an enrollment, verified and enabled unless ``enabled=False``."""

    def _make(
        method: MfaMethod = MfaMethod.AUTHENTICATOR,
        *,
        user_id: str = "user-1",
        enabled: bool = True,
        backup_code_hashes: list[str] | None = None,
        secret: str = SECRET,
    ) -> MfaEnrollment:
        enrollment = MfaEnrollment.create(
            user_id,
            method,
            now=clock.now(),
            secret=secret if method is MfaMethod.AUTHENTICATOR else None,
            phone_number=PHONE if method is MfaMethod.SMS else None,
            email=EMAIL if method is MfaMethod.EMAIL else None,
            backup_code_hashes=backup_code_hashes,
        )
        if enabled:
            enrollment.verify(now=clock.now())
            enrollment.enable(now=clock.now())
        enrollment.collect_events()
        return enrollment

    return _make


@pytest.fixture()
def save_enrollment(
    enrollments: InMemoryEnrollmentRepository,
) -> Callable[[MfaEnrollment], Awaitable[MfaEnrollment]]:
    """Persist an enrollment in a committed unit of work."""

    async def _save(enrollment: MfaEnrollment) -> MfaEnrollment:
        async with InMemoryUnitOfWork() as uow:
            await enrollments.save(enrollment, uow)
        return enrollment

    return _save
