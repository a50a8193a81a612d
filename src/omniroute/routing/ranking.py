# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Hard-constraint filtering and candidate ranking."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from omniroute.routing.experts import ExpertInputs
from omniroute.routing.models import (
    MAX_ALTERNATIVES,
    ModelAgentProfile,
    ModelAlternative,
    ModelExpertScores,
    ModelPrimaryAgent,
    ModelRankedAgent,
)

logger = logging.getLogger(__name__)


def rejection_reason(agent: ModelAgentProfile, inputs: ExpertInputs) -> str | None:
    """Return why ``agent`` fails a hard constraint, or None if eligible."""
    if agent.agent_id in inputs.excluded:
        return "excluded"
    if not agent.available:
        return "unavailable"
    ceiling = inputs.latency_ceiling_ms
    if ceiling is not None and agent.latency.max_ms > ceiling:
        return f"latency {agent.latency.max_ms:.0f}ms exceeds ceiling {ceiling:.0f}ms"
    minimum = inputs.min_security_level
    if minimum is not None and agent.security_level < minimum:
        return f"security level {agent.security_level} below {minimum}"
    missing = inputs.request.required_skills - agent.skills
    if missing:
        return f"missing required skills: {', '.join(sorted(missing))}"
    return None


def filter_eligible(
    agents: Iterable[ModelAgentProfile], inputs: ExpertInputs
) -> tuple[list[ModelAgentProfile], dict[str, str]]:
    """Split agents into eligible ones and a map of rejected id -> reason."""
    eligible: list[ModelAgentProfile] = []
    rejected: dict[str, str] = {}
    for agent in agents:
        reason = rejection_reason(agent, inputs)
        if reason is None:
            eligible.append(agent)
        else:
            rejected[agent.agent_id] = reason

    if rejected:
        logger.debug(
            f"Filtered {len(rejected)} agents by hard constraints",
            extra={"pattern_id": inputs.request.pattern_id, "rejected": rejected},
        )
    return eligible, rejected


def rank(
    scores: Mapping[str, ModelExpertScores],
    profiles: Mapping[str, ModelAgentProfile],
    inputs: ExpertInputs,
) -> list[ModelRankedAgent]:
    """Sort scored agents by total descending, ties broken by agent id."""
    ordered = sorted(scores.items(), key=lambda item: (-item[1].total, item[0]))
    ranked: list[ModelRankedAgent] = []
    for position, (agent_id, agent_scores) in enumerate(ordered, start=1):
        profile = profiles.get(agent_id)
        ranked.append(
            ModelRankedAgent(
                agent_id=agent_id,
                name=profile.name if profile else agent_id,
                score=agent_scores.total,
                rank=position,
                similarity=inputs.candidates.similarity_of(agent_id) or 0.0,
                scores=agent_scores,
            )
        )
    return ranked


def select(
    ranked: list[ModelRankedAgent], include_alternatives: bool = True
) -> tuple[ModelPrimaryAgent, tuple[ModelAlternative, ...]]:
    """Top-1 becomes the primary, ranks 2-4 the alternatives."""
    if not ranked:
        raise ValueError("cannot select from an empty ranking")
    top = ranked[0]
    primary = ModelPrimaryAgent(agent_id=top.agent_id, name=top.name, score=top.score)
    if not include_alternatives:
        return primary, ()
    alternatives = tuple(
        ModelAlternative(agent_id=r.agent_id, name=r.name, score=r.score, rank=r.rank)
        for r in ranked[1 : 1 + MAX_ALTERNATIVES]
    )
    return primary, alternatives


__all__ = ["filter_eligible", "rank", "rejection_reason", "select"]
