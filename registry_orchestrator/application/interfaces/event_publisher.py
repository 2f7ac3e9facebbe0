from abc import ABC, abstractmethod
from collections.abc import Iterable

from registry_orchestrator.domain.events.domain_events import DomainEvent


class EventPublisher(ABC):
    """Port for broadcasting scrape job lifecycle events."""

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """Publish one event. Implementations must not raise on delivery failure."""
        ...

    async def publish_many(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)
