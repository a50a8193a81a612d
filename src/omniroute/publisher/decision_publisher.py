# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Routing decision event publisher.

Publishes every finished routing decision to Kafka as an event envelope so
downstream consumers (audit, analytics, feedback loops) can observe routing.
The producer is created lazily under a lock and shared by all publishes of
one publisher instance.

Publishing is never allowed to fail a routing request: every error is raised
as ``PersistenceError``, which the orchestrator logs and swallows.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from aiokafka import AIOKafkaProducer

from omniroute.config import ConfigRouting
from omniroute.routing.errors import PersistenceError
from omniroute.routing.models import ModelRoutingDecision

logger = logging.getLogger(__name__)

EVENT_TYPE = "omniroute.routing.decided"
SCHEMA_REF = "registry://omniroute/routing/decided/v1"
KAFKA_PUBLISH_TIMEOUT_SECONDS = 10.0
ENVELOPE_SOURCE = "omniroute"
ENVELOPE_TENANT = "default"
ENVELOPE_NAMESPACE = "omninode"


def create_event_envelope(
    payload: dict[str, Any],
    correlation_id: str,
    *,
    event_type: str = EVENT_TYPE,
    schema_ref: str = SCHEMA_REF,
    partition_key: str | None = None,
    occurred_at: datetime | None = None,
    causation_id: str | None = None,
) -> dict[str, Any]:
    """Wrap a payload in the bus envelope (OnexEnvelopeV1 field layout).

    ``occurred_at`` is when the event happened, e.g. when the decision
    was made; ``emitted_at`` is always the publish time.
    """
    emitted_at = datetime.now(UTC)
    return {
        "event_type": event_type,
        "event_id": str(uuid4()),
        "timestamp": (occurred_at or emitted_at).isoformat(),
        "emitted_at": emitted_at.isoformat(),
        "tenant_id": ENVELOPE_TENANT,
        "namespace": ENVELOPE_NAMESPACE,
        "source": ENVELOPE_SOURCE,
        "correlation_id": correlation_id,
        "causation_id": causation_id,
        "partition_key": partition_key,
        "schema_ref": schema_ref,
        "payload": payload,
    }


def decision_envelope(decision: ModelRoutingDecision) -> dict[str, Any]:
    """Envelope for one decision, correlated by decision id, keyed by pattern."""
    return create_event_envelope(
        decision_payload(decision),
        str(decision.decision_id),
        partition_key=decision.pattern_id,
        occurred_at=decision.timestamp,
    )


def decision_payload(decision: ModelRoutingDecision) -> dict[str, Any]:
    payload = decision.to_response()
    payload["pattern_id"] = decision.pattern_id
    payload["candidate_source"] = decision.candidate_source.value
    if decision.fallback_reason is not None:
        payload["fallback_reason"] = decision.fallback_reason
    return payload


class KafkaDecisionPublisher:
    """Publish routing decisions to a Kafka topic.

    Example:
        publisher = KafkaDecisionPublisher.from_settings(get_settings())
        await publisher.publish(decision)
        await publisher.close()
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        publish_timeout_seconds: float = KAFKA_PUBLISH_TIMEOUT_SECONDS,
        producer: Any | None = None,
    ) -> None:
        if not bootstrap_servers and producer is None:
            raise ValueError("Kafka bootstrap servers are required")
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.publish_timeout_seconds = publish_timeout_seconds
        self._producer = producer
        self._producer_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: ConfigRouting) -> KafkaDecisionPublisher:
        return cls(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            topic=settings.decision_topic,
            publish_timeout_seconds=settings.kafka_publish_timeout_seconds,
        )

    async def _get_producer(self) -> Any:
        producer = self._producer
        if producer is not None:
            return producer

        async with self._producer_lock:
            if self._producer is not None:
                return self._producer
            producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                compression_type="gzip",
                linger_ms=10,
                acks=1,
                max_batch_size=16384,
                request_timeout_ms=5000,
            )
            await producer.start()
            self._producer = producer
            logger.info("Kafka decision producer initialized: %s", self.bootstrap_servers)
            return producer

    async def publish(self, decision: ModelRoutingDecision) -> None:
        """Raises:
        PersistenceError: The producer could not start or the send failed or
            timed out.
        """
        correlation_id = str(decision.decision_id)
        envelope = decision_envelope(decision)
        try:
            producer = await self._get_producer()
            await asyncio.wait_for(
                producer.send_and_wait(
                    self.topic, value=envelope, key=decision.pattern_id.encode("utf-8")
                ),
                timeout=self.publish_timeout_seconds,
            )
        except TimeoutError as e:
            raise PersistenceError(
                f"Publishing decision timed out after {self.publish_timeout_seconds}s",
                details={"topic": self.topic, "decision_id": correlation_id},
            ) from e
        except Exception as e:
            raise PersistenceError(
                f"Failed to publish decision: {type(e).__name__}",
                details={"topic": self.topic, "decision_id": correlation_id},
            ) from e

        logger.debug(
            f"Published decision {correlation_id} to {self.topic}",
            extra={"pattern_id": decision.pattern_id},
        )

    async def close(self) -> None:
        producer, self._producer = self._producer, None
        if producer is None:
            return
        try:
            await producer.stop()
            logger.info("Kafka decision producer closed")
        except Exception:
            logger.error("Error closing Kafka decision producer", exc_info=True)


__all__ = [
    "EVENT_TYPE",
    "KafkaDecisionPublisher",
    "create_event_envelope",
    "decision_envelope",
    "decision_payload",
]
