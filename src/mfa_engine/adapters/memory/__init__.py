"""In-memory adapters for unit tests."""

from mfa_engine.adapters.memory.fake import (
    FrozenClock,
    InMemoryEmailSender,
    InMemoryEventPublisher,
    InMemorySmsSender,
    ScriptedRandomSource,
    SentMessage,
)
from mfa_engine.adapters.memory.repository import (
    InMemoryChallengeCodeRepository,
    InMemoryEnrollmentRepository,
)
from mfa_engine.adapters.memory.unit_of_work import InMemoryUnitOfWork

__all__ = [
    "FrozenClock",
    "InMemoryChallengeCodeRepository",
    "InMemoryEmailSender",
    "InMemoryEnrollmentRepository",
    "InMemoryEventPublisher",
    "InMemorySmsSender",
    "InMemoryUnitOfWork",
    "ScriptedRandomSource",
    "SentMessage",
]
