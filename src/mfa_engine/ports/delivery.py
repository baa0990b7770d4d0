"""Delivery tracking types and sender ports for out-of-band codes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, runtime_checkable


class DeliveryChannel(Enum):
    """Channels a verification code can be delivered through."""

    SMS = "sms"
    EMAIL = "email"


class DeliveryStatus(Enum):
    """Delivery status outcomes."""

    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryRecord:
    """Immutable record of a delivery attempt."""

    recipient: str
    channel: DeliveryChannel
    status: DeliveryStatus
    provider_id: str | None = None
    sent_at: datetime | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.sent_at is None:
            object.__setattr__(self, "sent_at", datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.status is DeliveryStatus.SENT

    @classmethod
    def sent(
        cls,
        recipient: str,
        channel: DeliveryChannel,
        provider_id: str | None = None,
    ) -> DeliveryRecord:
        """Create a successful delivery record."""
        return cls(
            recipient=recipient,
            channel=channel,
            status=DeliveryStatus.SENT,
            provider_id=provider_id,
        )

    @classmethod
    def failed(
        cls,
        recipient: str,
        channel: DeliveryChannel,
        error: str | None = None,
    ) -> DeliveryRecord:
        """Create a failed delivery record."""
        return cls(
            recipient=recipient,
            channel=channel,
            status=DeliveryStatus.FAILED,
            error=error,
        )


@runtime_checkable
class ISmsSender(Protocol):
    """Port for an SMS transport (Twilio, SNS, ...)."""

    async def send_sms(self, phone_number: str, message: str) -> DeliveryRecord:
        """Send a text message and return the delivery record."""
        ...


@runtime_checkable
class IEmailSender(Protocol):
    """Port for an email transport (SMTP, SES, ...)."""

    async def send_email(self, address: str, subject: str, body: str) -> DeliveryRecord:
        """Send a plain-text email and return the delivery record."""
        ...


__all__: list[str] = [
    "DeliveryChannel",
    "DeliveryStatus",
    "DeliveryRecord",
    "ISmsSender",
    "IEmailSender",
]
