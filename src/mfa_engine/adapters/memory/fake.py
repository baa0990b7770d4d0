"""Deterministic fakes for the delivery, clock, randomness and event ports."""

from __future__ import annotations

import logging
import random
import re
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from ...ports.delivery import DeliveryChannel, DeliveryRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ...domain.events import DomainEvent

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"code is: ([0-9]+)")


@dataclass
class SentMessage:
    """Record of a sent message for test assertions."""

    recipient: str
    channel: DeliveryChannel
    body: str
    subject: str | None = None

    @property
    def code(self) -> str | None:
        """Verification code embedded in the body, if any."""
        match = _CODE_PATTERN.search(self.body)
        return match.group(1) if match else None


class _InMemorySender:
    channel: DeliveryChannel

    def __init__(self) -> None:
        self.sent_messages: list[SentMessage] = []
        self.fail_with: str | None = None
        self.raise_error: Exception | None = None

    def _record(self, message: SentMessage) -> DeliveryRecord:
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with is not None:
            return DeliveryRecord.failed(message.recipient, self.channel, error=self.fail_with)
        self.sent_messages.append(message)
        return DeliveryRecord.sent(message.recipient, self.channel, provider_id="test-id")

    def last_code(self) -> str | None:
        """Code from the most recent message, for driving flows in tests."""
        return self.sent_messages[-1].code if self.sent_messages else None

    def assert_sent(self, recipient: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [m for m in self.sent_messages if m.recipient == recipient]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {recipient} via {self.channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear all sent messages."""
        self.sent_messages.clear()


class InMemorySmsSender(_InMemorySender):
    """
    Test double (Fake) ``ISmsSender`` that stores messages in a list.

    Set ``fail_with`` to return failed records, or ``raise_error`` to make
    the transport raise.
    """

    channel = DeliveryChannel.SMS

    async def send_sms(self, phone_number: str, message: str) -> DeliveryRecord:
        return self._record(SentMessage(phone_number, self.channel, message))


class InMemoryEmailSender(_InMemorySender):
    """Test double (Fake) ``IEmailSender`` that stores messages in a list."""

    channel = DeliveryChannel.EMAIL

    async def send_email(self, address: str, subject: str, body: str) -> DeliveryRecord:
        return self._record(SentMessage(address, self.channel, body, subject=subject))


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self._now = now or datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **delta: float) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new instant."""
        self._now = self._now + timedelta(**delta)
        return self._now


class ScriptedRandomSource:
    """Random source replaying scripted chunks, then a seeded generator.

    Each scripted chunk must have exactly the requested length. Not for
    production use.
    """

    def __init__(self, chunks: Iterable[bytes] = (), *, seed: int = 0) -> None:
        self._chunks: deque[bytes] = deque(chunks)
        self._fallback = random.Random(seed)  # noqa: S311

    def push(self, *chunks: bytes) -> None:
        self._chunks.extend(chunks)

    def token_bytes(self, n: int) -> bytes:
        if self._chunks:
            chunk = self._chunks.popleft()
            if len(chunk) != n:
                raise ValueError(f"Scripted chunk has {len(chunk)} bytes, {n} requested")
            return chunk
        return self._fallback.randbytes(n)


class InMemoryEventPublisher:
    """Collects published domain events for assertions."""

    def __init__(self) -> None:
        self.published: list[DomainEvent] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            logger.debug("Published %s", type(event).__name__)
        self.published.extend(events)

    def of_type(self, event_type: type[DomainEvent]) -> list[DomainEvent]:
        return [e for e in self.published if isinstance(e, event_type)]
