# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Confidence calibration for routing decisions.

Confidence is distinct from the primary agent's raw score: it measures how
certain the engine is that the choice is right.

Components:
    - Base (60%): margin between primary and runner-up scores
    - Certainty (20%): 1 - normalized Shannon entropy of all candidate scores / 2
    - Consensus bonus: up to +0.2, proportional to validators agreed / 5
    - Pattern penalty: up to -0.15 when the pattern's own recent success rate
      is below 80%

The raw value is scaled by a factor in [0.9, 1.1] derived from the primary
agent's 7-day decision accuracy, then clamped to [0, 1].
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from omniroute.routing.enums import EnumConfidenceBand
from omniroute.routing.experts import clamp
from omniroute.routing.models import ModelExecutionContext, ModelPatternRequest

CONSENSUS_VALIDATOR_COUNT = 5
MAX_CONSENSUS_BONUS = 0.2
MAX_PATTERN_PENALTY = 0.15
PATTERN_SUCCESS_TARGET = 0.8


@dataclass(frozen=True)
class CalibrationBreakdown:
    base: float
    uncertainty: float
    consensus_bonus: float
    pattern_penalty: float
    accuracy_factor: float
    confidence: float

    @property
    def band(self) -> EnumConfidenceBand:
        return confidence_band(self.confidence)


def confidence_band(confidence: float) -> EnumConfidenceBand:
    if confidence > 0.90:
        return EnumConfidenceBand.HIGH
    if confidence > 0.75:
        return EnumConfidenceBand.GOOD
    if confidence > 0.50:
        return EnumConfidenceBand.MODERATE
    if confidence >= 0.30:
        return EnumConfidenceBand.WEAK
    return EnumConfidenceBand.LOW


def normalized_entropy(scores: Sequence[float]) -> float:
    """Shannon entropy of the score distribution divided by log(n).

    A single candidate is perfectly certain (0.0). All-zero scores are
    treated as a uniform distribution (1.0).
    """
    n = len(scores)
    if n <= 1:
        return 0.0
    total = sum(max(0.0, s) for s in scores)
    if total <= 0.0:
        return 1.0
    entropy = 0.0
    for s in scores:
        p = max(0.0, s) / total
        if p > 0.0:
            entropy -= p * math.log(p)
    return clamp(entropy / math.log(n))


def pattern_success_rate(
    request: ModelPatternRequest, context: ModelExecutionContext
) -> float | None:
    """Success rate of this pattern's own executions in the context history."""
    runs = [r for r in context.execution_history if r.pattern_id == request.pattern_id]
    if not runs:
        return None
    return sum(1 for r in runs if r.success) / len(runs)


class ConfidenceCalibrator:
    """Derive a calibrated confidence and its rationale band."""

    def breakdown(
        self,
        primary_score: float,
        secondary_score: float,
        consensus_agreement: int | None,
        request: ModelPatternRequest,
        context: ModelExecutionContext,
        *,
        candidate_scores: Sequence[float] = (),
        agent_accuracy: float | None = None,
    ) -> CalibrationBreakdown:
        base = clamp(primary_score - secondary_score)
        uncertainty = normalized_entropy(candidate_scores) / 2

        bonus = 0.0
        if consensus_agreement is not None:
            agreed = max(0, min(CONSENSUS_VALIDATOR_COUNT, consensus_agreement))
            bonus = MAX_CONSENSUS_BONUS * agreed / CONSENSUS_VALIDATOR_COUNT

        penalty = 0.0
        rate = pattern_success_rate(request, context)
        if rate is not None and rate < PATTERN_SUCCESS_TARGET:
            penalty = MAX_PATTERN_PENALTY * (PATTERN_SUCCESS_TARGET - rate) / PATTERN_SUCCESS_TARGET

        raw = 0.6 * base + 0.2 * (1.0 - uncertainty) + bonus - penalty

        factor = 1.0
        if agent_accuracy is not None:
            factor = clamp(1.0 + 2.0 * (agent_accuracy - 0.9), 0.9, 1.1)

        return CalibrationBreakdown(
            base=base,
            uncertainty=uncertainty,
            consensus_bonus=bonus,
            pattern_penalty=penalty,
            accuracy_factor=factor,
            confidence=clamp(raw * factor),
        )

    def calibrate(
        self,
        primary_score: float,
        secondary_score: float,
        consensus_agreement: int | None,
        request: ModelPatternRequest,
        context: ModelExecutionContext,
        *,
        candidate_scores: Sequence[float] = (),
        agent_accuracy: float | None = None,
    ) -> float:
        return self.breakdown(
            primary_score,
            secondary_score,
            consensus_agreement,
            request,
            context,
            candidate_scores=candidate_scores,
            agent_accuracy=agent_accuracy,
        ).confidence

    @staticmethod
    def rationale(result: CalibrationBreakdown) -> str:
        """Human-readable explanation of a calibrated confidence."""
        parts = [f"{result.band.value.capitalize()} confidence ({result.confidence:.2f})"]

        if result.base > 0.3:
            parts.append("clear margin over the runner-up")
        elif result.base > 0.1:
            parts.append("moderate margin over the runner-up")
        else:
            parts.append("close competition between candidates")

        if result.uncertainty > 0.4:
            parts.append("scores spread evenly across candidates")
        if result.consensus_bonus > 0:
            agreed = round(result.consensus_bonus / MAX_CONSENSUS_BONUS * CONSENSUS_VALIDATOR_COUNT)
            parts.append(f"{agreed}/{CONSENSUS_VALIDATOR_COUNT} validators agreed")
        if result.pattern_penalty > 0:
            parts.append("pattern has a weak recent success rate")
        if result.accuracy_factor > 1.0:
            parts.append("agent's recent decisions were accurate")
        elif result.accuracy_factor < 1.0:
            parts.append("agent's recent decisions were inaccurate")

        return ", ".join(parts)


__all__ = [
    "CalibrationBreakdown",
    "ConfidenceCalibrator",
    "confidence_band",
    "normalized_entropy",
    "pattern_success_rate",
]
