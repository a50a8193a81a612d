# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""Tests for the Kafka routing decision publisher (fake producer)."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import pytest

from omniroute.config import ConfigRouting
from omniroute.publisher import (
    EVENT_TYPE,
    KafkaDecisionPublisher,
    create_event_envelope,
    decision_envelope,
    decision_payload,
)
from omniroute.routing.enums import EnumFallbackStrategy
from omniroute.routing.errors import PersistenceError
from omniroute.routing.models import ModelPrimaryAgent, ModelRoutingDecision

# ── Helpers ────────────────────────────────────────────────────────────


class _FakeProducer:
    def __init__(self, error: Exception | None = None, delay: float = 0.0) -> None:
        self.error = error
        self.delay = delay
        self.sent: list[tuple[str, Any, bytes | None]] = []
        self.stopped = False

    async def send_and_wait(self, topic: str, value: Any = None, key: bytes | None = None) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append((topic, value, key))

    async def stop(self) -> None:
        self.stopped = True


def _make_decision(**kwargs: Any) -> ModelRoutingDecision:
    defaults: dict[str, Any] = {
        "pattern_id": "p-1",
        "primary": ModelPrimaryAgent(agent_id="auth-1", name="Auth", score=0.9),
        "confidence_score": 0.8,
        "confidence_rationale": "Good confidence (0.80)",
        "reasoning": "auth-1 ranked first",
    }
    return ModelRoutingDecision(**{**defaults, **kwargs})


# ══════════════════════════════════════════════════════════════════════
# Envelope
# ══════════════════════════════════════════════════════════════════════


class TestEnvelope:
    def test_envelope_fields(self) -> None:
        envelope = create_event_envelope({"a": 1}, "corr-1", schema_ref="schema://x")

        assert envelope["event_type"] == EVENT_TYPE == "omniroute.routing.decided"
        assert envelope["correlation_id"] == "corr-1"
        assert envelope["causation_id"] is None
        assert envelope["partition_key"] is None
        assert envelope["schema_ref"] == "schema://x"
        assert envelope["source"] == "omniroute"
        assert envelope["payload"] == {"a": 1}
        assert envelope["timestamp"] == envelope["emitted_at"]
        assert envelope["event_id"]

    def test_decision_envelope(self) -> None:
        decided_at = datetime(2026, 1, 15, 10, 0, tzinfo=UTC)
        decision = _make_decision(timestamp=decided_at)

        envelope = decision_envelope(decision)

        assert envelope["correlation_id"] == str(decision.decision_id)
        assert envelope["partition_key"] == "p-1"
        assert envelope["timestamp"] == decided_at.isoformat()
        assert envelope["emitted_at"] != envelope["timestamp"]
        assert envelope["payload"]["primary_agent"]["id"] == "auth-1"

    def test_decision_payload(self) -> None:
        decision = _make_decision(
            confidence_score=0.6,
            fallback_applied=EnumFallbackStrategy.SKILL_MATCH,
            fallback_reason="no eligible agents",
        )
        payload = decision_payload(decision)

        assert payload["pattern_id"] == "p-1"
        assert payload["primary_agent"]["id"] == "auth-1"
        assert payload["candidate_source"] == "vector_search"
        assert payload["fallback_applied"] == "skill_match"
        assert payload["fallback_reason"] == "no eligible agents"


# ══════════════════════════════════════════════════════════════════════
# Publisher
# ══════════════════════════════════════════════════════════════════════


class TestKafkaDecisionPublisher:
    def test_requires_bootstrap_servers(self) -> None:
        with pytest.raises(ValueError, match="bootstrap servers"):
            KafkaDecisionPublisher(bootstrap_servers="", topic="t")

    def test_from_settings(self) -> None:
        settings = ConfigRouting(kafka_bootstrap_servers="localhost:9092")
        publisher = KafkaDecisionPublisher.from_settings(settings)
        assert publisher.topic == "onex.evt.omniroute.routing-decided.v1"
        assert publisher.bootstrap_servers == "localhost:9092"

    @pytest.mark.asyncio
    async def test_publish(self) -> None:
        producer = _FakeProducer()
        publisher = KafkaDecisionPublisher("", "decisions", producer=producer)
        decision = _make_decision()

        await publisher.publish(decision)

        topic, envelope, key = producer.sent[0]
        assert topic == "decisions"
        assert key == b"p-1"
        assert envelope["correlation_id"] == str(decision.decision_id)
        assert envelope["payload"]["primary_agent"]["id"] == "auth-1"

    @pytest.mark.asyncio
    async def test_send_failure_raises_persistence_error(self) -> None:
        publisher = KafkaDecisionPublisher(
            "", "decisions", producer=_FakeProducer(error=ConnectionError("broker down"))
        )
        with pytest.raises(PersistenceError, match="ConnectionError"):
            await publisher.publish(_make_decision())

    @pytest.mark.asyncio
    async def test_send_timeout_raises_persistence_error(self) -> None:
        publisher = KafkaDecisionPublisher(
            "", "decisions", publish_timeout_seconds=0.01, producer=_FakeProducer(delay=1.0)
        )
        with pytest.raises(PersistenceError, match="timed out"):
            await publisher.publish(_make_decision())

    @pytest.mark.asyncio
    async def test_close_stops_producer_once(self) -> None:
        producer = _FakeProducer()
        publisher = KafkaDecisionPublisher("", "decisions", producer=producer)

        await publisher.close()
        await publisher.close()

        assert producer.stopped is True
