# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Pattern routing pipeline.

Example:
    from omniroute.routing import RoutingOrchestrator
    from omniroute.storage import InMemoryProfileStore

    orchestrator = RoutingOrchestrator(InMemoryProfileStore(profiles))
    decision, elapsed_ms = await orchestrator.route(
        {"pattern_id": "p-1", "pattern_query": "rotate auth tokens"}
    )
"""

from omniroute.routing.calibration import ConfidenceCalibrator
from omniroute.routing.consensus import ConsensusValidator
from omniroute.routing.decision_cache import DecisionCache
from omniroute.routing.enums import (
    EnumCandidateSource,
    EnumConfidenceBand,
    EnumConsensusResult,
    EnumExpert,
    EnumFallbackStrategy,
    EnumPriorityTier,
    EnumTimeBucket,
    EnumValidatorVote,
)
from omniroute.routing.errors import (
    ConsensusEscalatedError,
    ConsensusTimedOutError,
    EmbeddingUnavailableError,
    EnumRoutingErrorCode,
    FallbackExhaustedError,
    NoEligibleAgentsError,
    OmniRouteError,
    PersistenceError,
    ProfileStoreError,
    RequestValidationError,
    ScoringError,
    SearchUnavailableError,
)
from omniroute.routing.experts import EXPERT_WEIGHTS, ExpertInputs, ExpertScoringEngine
from omniroute.routing.fallback import FallbackManager
from omniroute.routing.models import (
    CandidateSet,
    ModelAgentProfile,
    ModelExecutionContext,
    ModelPatternRequest,
    ModelProfileUpdate,
    ModelRoutingConstraints,
    ModelRoutingDecision,
)
from omniroute.routing.orchestrator import RoutingOrchestrator

__all__ = [
    "CandidateSet",
    "ConfidenceCalibrator",
    "ConsensusEscalatedError",
    "ConsensusTimedOutError",
    "ConsensusValidator",
    "DecisionCache",
    "EXPERT_WEIGHTS",
    "EmbeddingUnavailableError",
    "EnumCandidateSource",
    "EnumConfidenceBand",
    "EnumConsensusResult",
    "EnumExpert",
    "EnumFallbackStrategy",
    "EnumPriorityTier",
    "EnumRoutingErrorCode",
    "EnumTimeBucket",
    "EnumValidatorVote",
    "ExpertInputs",
    "ExpertScoringEngine",
    "FallbackExhaustedError",
    "FallbackManager",
    "ModelAgentProfile",
    "ModelExecutionContext",
    "ModelPatternRequest",
    "ModelProfileUpdate",
    "ModelRoutingConstraints",
    "ModelRoutingDecision",
    "NoEligibleAgentsError",
    "OmniRouteError",
    "PersistenceError",
    "ProfileStoreError",
    "RequestValidationError",
    "RoutingOrchestrator",
    "ScoringError",
    "SearchUnavailableError",
]
