"""Domain events raised by the MFA enrollment aggregate."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from .enums import MfaMethod


class DomainEvent(BaseModel):
    """Base class for all Domain Events.

    Events are immutable. ``aggregate_id`` and ``aggregate_type`` identify the
    aggregate instance the event belongs to.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    aggregate_id: str | None = None
    aggregate_type: str | None = None


class MfaConfigured(DomainEvent):
    """An enrollment was created or re-configured (unverified)."""

    aggregate_type: str | None = "MfaEnrollment"
    user_id: str
    method: MfaMethod


class MfaVerified(DomainEvent):
    """The first code after setup was accepted."""

    aggregate_type: str | None = "MfaEnrollment"
    user_id: str
    method: MfaMethod


class MfaEnabled(DomainEvent):
    aggregate_type: str | None = "MfaEnrollment"
    user_id: str
    method: MfaMethod


class MfaDisabled(DomainEvent):
    aggregate_type: str | None = "MfaEnrollment"
    user_id: str
    method: MfaMethod


__all__: list[str] = [
    "DomainEvent",
    "MfaConfigured",
    "MfaVerified",
    "MfaEnabled",
    "MfaDisabled",
]
