from mfa_engine.ports.clock import IClock, SystemClock
from mfa_engine.ports.delivery import (
    DeliveryChannel,
    DeliveryRecord,
    DeliveryStatus,
    IEmailSender,
    ISmsSender,
)
from mfa_engine.ports.events import IDomainEventPublisher
from mfa_engine.ports.repository import IChallengeCodeRepository, IEnrollmentRepository
from mfa_engine.ports.unit_of_work import UnitOfWork

__all__ = [
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
]
