# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Routing decision event publishing."""

from omniroute.publisher.decision_publisher import (
    EVENT_TYPE,
    KafkaDecisionPublisher,
    create_event_envelope,
    decision_envelope,
    decision_payload,
)

__all__ = [
    "EVENT_TYPE",
    "KafkaDecisionPublisher",
    "create_event_envelope",
    "decision_envelope",
    "decision_payload",
]
