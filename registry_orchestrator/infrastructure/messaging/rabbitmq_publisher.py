"""
RabbitMQ event publisher for scrape job lifecycle events.

pika is blocking, so each publish runs in the default thread-pool executor
and opens its own connection.
"""
import asyncio
import json
from functools import partial

import pika
import structlog

from registry_orchestrator.application.interfaces.event_publisher import EventPublisher
from registry_orchestrator.domain.events.domain_events import (
    DomainEvent,
    ScrapeJobCompletedEvent,
    ScrapeJobFailedEvent,
    ScrapeJobStartedEvent,
)

logger = structlog.get_logger(__name__)

EXCHANGE_NAME = "registry.scraping.events"


def event_routing_key(event: DomainEvent) -> str:
    if isinstance(event, ScrapeJobStartedEvent):
        return "scrape.job.started"
    if isinstance(event, ScrapeJobCompletedEvent):
        return "scrape.job.completed"
    if isinstance(event, ScrapeJobFailedEvent):
        return "scrape.job.failed"
    return "event.unknown"


def serialise_event(event: DomainEvent) -> str:
    payload: dict = {  # type: ignore[type-arg]
        "event_type": event_routing_key(event),
        "event_id": str(event.event_id),
        "occurred_at": event.occurred_at.isoformat(),
    }

    if isinstance(event, ScrapeJobStartedEvent):
        payload.update(
            {
                "job_id": str(event.job_id),
                "owner_id": event.owner_id,
                "category_code": event.category_code,
                "region_code": event.region_code,
                "primary_site_only": event.primary_site_only,
            }
        )
    elif isinstance(event, ScrapeJobCompletedEvent):
        payload.update(
            {
                "job_id": str(event.job_id),
                "owner_id": event.owner_id,
                "found_results": event.found_results,
                "processed_results": event.processed_results,
            }
        )
    elif isinstance(event, ScrapeJobFailedEvent):
        payload.update(
            {
                "job_id": str(event.job_id),
                "owner_id": event.owner_id,
                "error_message": event.error_message,
            }
        )

    return json.dumps(payload, default=str)


def _blocking_publish(rabbitmq_url: str, routing_key: str, body: str) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(rabbitmq_url))
    try:
        channel = connection.channel()
        channel.exchange_declare(exchange=EXCHANGE_NAME, exchange_type="topic", durable=True)
        channel.basic_publish(
            exchange=EXCHANGE_NAME,
            routing_key=routing_key,
            body=body.encode(),
            properties=pika.BasicProperties(
                delivery_mode=pika.DeliveryMode.Persistent,
                content_type="application/json",
            ),
        )
    finally:
        connection.close()


class RabbitMQPublisher(EventPublisher):
    """Publishes job lifecycle events to a topic exchange."""

    def __init__(self, rabbitmq_url: str) -> None:
        self._url = rabbitmq_url

    async def publish(self, event: DomainEvent) -> None:
        routing_key = event_routing_key(event)
        body = serialise_event(event)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                partial(_blocking_publish, self._url, routing_key, body),
            )
            logger.debug("event_published", routing_key=routing_key, event_id=str(event.event_id))
        except Exception as exc:
            # A broker outage must never fail the job that emitted the event.
            logger.error("failed_to_publish_event", routing_key=routing_key, error=str(exc))
