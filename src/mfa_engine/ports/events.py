from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.events import DomainEvent


@runtime_checkable
class IDomainEventPublisher(Protocol):
    """Protocol for publishing domain events after a successful commit."""

    async def publish(self, events: list[DomainEvent]) -> None:
        """Publish events in the order they were raised."""
        ...


__all__: list[str] = ["IDomainEventPublisher"]
