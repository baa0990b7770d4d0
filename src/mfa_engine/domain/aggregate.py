"""Aggregate Root base class."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

if TYPE_CHECKING:
    from .events import DomainEvent


class AggregateRoot(BaseModel):
    """Base class for all Aggregate Roots.

    Includes logic for collecting domain events and versioning. The version
    is managed by the persistence layer: ``0`` means never persisted, and
    every successful save increments it.

    Usage::

        class MfaEnrollment(AggregateRoot):
            user_id: str

        # Fresh aggregate
        enrollment = MfaEnrollment(user_id="u-1")

        # Rehydrated from storage
        enrollment = MfaEnrollment(id=row.id, user_id=row.user_id, _version=row.version)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    _version: int = PrivateAttr(default=0)
    _domain_events: list[DomainEvent] = PrivateAttr(
        default_factory=lambda: cast("list[DomainEvent]", [])
    )

    def __init__(self, **data: object) -> None:
        version = cast("int", data.pop("_version", 0))
        super().__init__(**data)
        object.__setattr__(self, "_domain_events", [])
        object.__setattr__(self, "_version", version)

    def add_event(self, event: DomainEvent) -> None:
        """Record a domain event to be dispatched later."""
        self._domain_events.append(event)

    def collect_events(self) -> list[DomainEvent]:
        """Return all recorded events and clear the internal list."""
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    @property
    def version(self) -> int:
        """Read-only version, managed by the persistence layer."""
        return self._version

    def _set_version(self, version: int) -> None:
        object.__setattr__(self, "_version", version)

    def detached_copy(self) -> AggregateRoot:
        """Deep copy carrying the version but no pending events."""
        clone = self.model_copy(deep=True)
        object.__setattr__(clone, "_domain_events", [])
        object.__setattr__(clone, "_version", self._version)
        return clone
