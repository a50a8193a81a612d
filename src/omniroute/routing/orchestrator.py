# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Routing Orchestrator
=====================

Top-level coordinator that drives one routing request end to end.

Flow:
1. Validate the request (terminal on failure)
2. Check the decision cache
3. Embed the pattern (metadata-only candidates on failure)
4. Nearest-neighbor search (skill-based candidates on failure)
5. Batch-load candidate profiles
6. Filter by hard constraints
7. Score eligible agents with the eight experts
8. Rank, then validate the primary by consensus when required
9. Calibrate confidence and assemble the decision
10. Cache and publish the decision (non-fatal on failure)

Recoverable failures at steps 5-8 hand off to the FallbackManager with a
reason string. Only request validation and fallback exhaustion are raised.

Performance Targets:
- Total routing time: <100ms (soft; breaches are logged)
- Consensus group deadline: 50ms (hard)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from omniroute.config import ConfigRouting, get_settings
from omniroute.routing.calibration import ConfidenceCalibrator
from omniroute.routing.consensus import ConsensusValidator
from omniroute.routing.decision_cache import DecisionCache
from omniroute.routing.enums import EnumCandidateSource, EnumConsensusResult
from omniroute.routing.errors import (
    ConsensusEscalatedError,
    ConsensusTimedOutError,
    EmbeddingUnavailableError,
    FallbackExhaustedError,
    NoEligibleAgentsError,
    OmniRouteError,
    PersistenceError,
    ProfileStoreError,
    RequestValidationError,
    SearchUnavailableError,
)
from omniroute.routing.experts import ExpertInputs, ExpertScoringEngine
from omniroute.routing.fallback import FallbackManager, FallbackRequest
from omniroute.routing.models import (
    MAX_ALTERNATIVES,
    CandidateSet,
    ModelAgentProfile,
    ModelAlternative,
    ModelConsensusRecord,
    ModelExecutionContext,
    ModelPatternRequest,
    ModelPrimaryAgent,
    ModelProfileUpdate,
    ModelRankedAgent,
    ModelRoutingConstraints,
    ModelRoutingDecision,
    as_utc,
)
from omniroute.routing.protocols import (
    NullDecisionSink,
    ProtocolDecisionSink,
    ProtocolEmbeddingClient,
    ProtocolProfileStore,
    ProtocolVectorSearchClient,
)
from omniroute.routing.ranking import filter_eligible, rank, select

logger = logging.getLogger(__name__)


@dataclass
class _PhaseTimer:
    """Per-phase wall-clock tracking against soft budgets."""

    budgets: Mapping[str, float]
    pattern_id: str
    started: float = field(default_factory=time.perf_counter)
    phases: dict[str, float] = field(default_factory=dict)

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - t0) * 1000
            self.phases[name] = self.phases.get(name, 0.0) + elapsed
            budget = self.budgets.get(name)
            if budget is not None and elapsed > budget:
                logger.debug(
                    f"Phase {name} took {elapsed:.1f}ms (budget {budget:.0f}ms)",
                    extra={"pattern_id": self.pattern_id, "phase": name},
                )

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


@dataclass
class _RoutingRun:
    """Mutable per-request state. Never shared between requests."""

    request: ModelPatternRequest
    context: ModelExecutionContext
    timer: _PhaseTimer
    now: datetime
    excluded: frozenset[str]
    candidates: CandidateSet = field(
        default_factory=lambda: CandidateSet(entries=())
    )
    profiles: dict[str, ModelAgentProfile] = field(default_factory=dict)
    pool: dict[str, ModelAgentProfile] | None = None


class RoutingOrchestrator:
    """Route patterns to agents.

    Example:
        orchestrator = RoutingOrchestrator(profile_store)
        decision, elapsed_ms = await orchestrator.route(
            {"pattern_id": "p-1", "pattern_query": "rotate auth tokens"},
        )
        print(decision.primary.agent_id, decision.confidence_score)
    """

    def __init__(
        self,
        profile_store: ProtocolProfileStore,
        embedding_client: ProtocolEmbeddingClient | None = None,
        vector_search: ProtocolVectorSearchClient | None = None,
        decision_sink: ProtocolDecisionSink | None = None,
        settings: ConfigRouting | None = None,
        scoring_engine: ExpertScoringEngine | None = None,
        consensus_validator: ConsensusValidator | None = None,
        calibrator: ConfidenceCalibrator | None = None,
        fallback_manager: FallbackManager | None = None,
        cache: DecisionCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.profile_store = profile_store
        self.embedding_client = embedding_client
        self.vector_search = vector_search
        self.decision_sink = decision_sink or NullDecisionSink()
        self.scoring_engine = scoring_engine or ExpertScoringEngine(
            max_parallel=self.settings.max_parallel_scoring,
            task_timeout_ms=self.settings.scoring_task_timeout_ms,
        )
        self.consensus_validator = consensus_validator or ConsensusValidator(
            timeout_ms=self.settings.consensus_timeout_ms,
            similarity_gap_threshold=self.settings.similarity_gap_threshold,
            high_similarity_threshold=self.settings.high_similarity_threshold,
        )
        self.calibrator = calibrator or ConfidenceCalibrator()
        self.fallback_manager = fallback_manager or FallbackManager(
            default_agent_id=self.settings.default_agent_id
        )
        self.cache = cache or DecisionCache(
            ttl_seconds=self.settings.decision_cache_ttl_seconds,
            max_entries=self.settings.decision_cache_max_entries,
        )
        self._clock = clock or (lambda: datetime.now(UTC))
        self._pending_updates: set[asyncio.Task[Any]] = set()

        self.routing_stats: dict[str, Any] = {
            "total_routes": 0,
            "cache_hits": 0,
            "primary_decisions": 0,
            "fallback_decisions": 0,
            "fallback_exhausted": 0,
            "validation_errors": 0,
            "budget_breaches": 0,
            "fallbacks_by_strategy": Counter(),
            "consensus_outcomes": Counter(),
            "candidate_sources": Counter(),
        }

    # =========================================================================
    # Public API
    # =========================================================================

    async def route(
        self,
        request: ModelPatternRequest | Mapping[str, Any],
        context: ModelExecutionContext | Mapping[str, Any] | None = None,
        constraints: ModelRoutingConstraints | Mapping[str, Any] | None = None,
    ) -> tuple[ModelRoutingDecision, float]:
        """Route one pattern request.

        Args:
            request: A validated request, or a raw mapping in the routing
                request schema (its ``context`` key is used when ``context``
                is not passed).
            context: Execution context; an anonymous empty context if omitted.
            constraints: Overrides ``request.constraints`` when given.

        Returns:
            Tuple of (decision, elapsed milliseconds).

        Raises:
            RequestValidationError: The request is malformed.
            FallbackExhaustedError: No agent could be selected at all.
        """
        self.routing_stats["total_routes"] += 1
        try:
            req, ctx = self._coerce(request, context, constraints)
        except RequestValidationError:
            self.routing_stats["validation_errors"] += 1
            raise

        run = _RoutingRun(
            request=req,
            context=ctx,
            timer=_PhaseTimer(self.settings.phase_budgets_ms(), req.pattern_id),
            now=as_utc(self._clock()),
            excluded=frozenset(req.excluded_agents) | frozenset(ctx.preferences.excluded_agents),
        )

        logger.debug(
            f"Routing pattern {req.pattern_id}: {req.pattern_query[:100]}",
            extra={"pattern_id": req.pattern_id, "user_id": ctx.user_id},
        )

        cache_key = self.cache.make_key(req, ctx)
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.routing_stats["cache_hits"] += 1
            logger.debug("Cache hit - returning cached decision", extra={"pattern_id": req.pattern_id})
            return cached, run.timer.elapsed_ms

        try:
            decision = await self._run_pipeline(run)
        except FallbackExhaustedError:
            self.routing_stats["fallback_exhausted"] += 1
            self._check_budget(run)
            raise

        try:
            await self._persist(cache_key, decision)
        except PersistenceError as e:
            logger.warning(
                f"Decision {decision.decision_id} not persisted: {e.message}",
                extra={"pattern_id": req.pattern_id, **e.details},
            )

        elapsed_ms = self._check_budget(run)
        logger.info(
            f"Routed {req.pattern_id} to {decision.primary.agent_id}",
            extra={
                "pattern_id": req.pattern_id,
                "agent_id": decision.primary.agent_id,
                "confidence": decision.confidence_score,
                "fallback": decision.fallback_applied,
                "elapsed_ms": elapsed_ms,
                "phases_ms": run.timer.phases,
            },
        )
        return decision, elapsed_ms

    def submit_profile_update(self, update: ModelProfileUpdate | Mapping[str, Any]) -> asyncio.Task[Any]:
        """Schedule a post-execution profile update without awaiting it."""
        if not isinstance(update, ModelProfileUpdate):
            try:
                update = ModelProfileUpdate.model_validate(update)
            except ValidationError as e:
                raise RequestValidationError(
                    "Invalid profile update", details={"errors": e.errors(include_url=False)}
                ) from e

        task = asyncio.create_task(self._apply_update(update), name=f"profile-update-{update.agent_id}")
        self._pending_updates.add(task)
        task.add_done_callback(self._on_update_done)
        return task

    def _on_update_done(self, task: asyncio.Task[Any]) -> None:
        self._pending_updates.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Profile update task {task.get_name()} failed: {type(error).__name__}",
                exc_info=error,
            )

    async def drain_updates(self) -> None:
        """Wait for every scheduled profile update to finish."""
        if self._pending_updates:
            await asyncio.gather(*self._pending_updates, return_exceptions=True)

    def get_routing_stats(self) -> dict[str, Any]:
        total = self.routing_stats["total_routes"]
        stats = {
            key: dict(value) if isinstance(value, Counter) else value
            for key, value in self.routing_stats.items()
        }
        stats["cache_hit_rate"] = self.routing_stats["cache_hits"] / total if total else 0.0
        stats["fallback_rate"] = (
            self.routing_stats["fallback_decisions"] / total if total else 0.0
        )
        stats["cache"] = self.cache.stats()
        return stats

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _run_pipeline(self, run: _RoutingRun) -> ModelRoutingDecision:
        req, ctx = run.request, run.context

        run.candidates = await self._generate_candidates(run)
        self.routing_stats["candidate_sources"][run.candidates.source.value] += 1

        with run.timer.phase("profiles"):
            wanted = list(dict.fromkeys((*run.candidates.agent_ids, *ctx.assigned_agent_ids)))
            try:
                run.profiles = await self.profile_store.load_profiles(wanted)
            except ProfileStoreError as e:
                return await self._fallback(run, f"profile load failed: {e.message}")

        inputs = ExpertInputs.build(req, ctx, run.candidates, run.profiles, run.now)
        candidate_profiles = [
            run.profiles[agent_id] for agent_id in run.candidates.agent_ids if agent_id in run.profiles
        ]
        eligible, rejected = filter_eligible(candidate_profiles, inputs)
        if not eligible:
            error = NoEligibleAgentsError(
                f"no eligible agents among {len(run.candidates)} candidates",
                details={"rejected": rejected},
            )
            return await self._fallback(run, error.message)

        with run.timer.phase("scoring"):
            scores = await self.scoring_engine.score_all(eligible, inputs)
            ranked = rank(scores, run.profiles, inputs)

        consensus: ModelConsensusRecord | None = None
        if self.consensus_validator.is_required(req, self.settings.critical_categories):
            with run.timer.phase("consensus"):
                consensus = await self.consensus_validator.validate(
                    ranked[0],
                    ranked[1] if len(ranked) > 1 else None,
                    run.profiles[ranked[0].agent_id],
                    inputs,
                )
            self.routing_stats["consensus_outcomes"][consensus.result.value] += 1
            if consensus.result != EnumConsensusResult.APPROVE:
                error = self._consensus_error(consensus, ranked[0].agent_id)
                return await self._fallback(run, error.message, ranked=ranked, consensus=consensus)

        return self._assemble(run, ranked, consensus)

    async def _generate_candidates(self, run: _RoutingRun) -> CandidateSet:
        req = run.request
        k = self.settings.nearest_neighbor_k

        with run.timer.phase("embed"):
            vector: list[float] | None = None
            if req.pattern_embedding is not None:
                vector = list(req.pattern_embedding)
            elif self.embedding_client is not None:
                try:
                    vector = await asyncio.wait_for(
                        self.embedding_client.embed(req.pattern_query, req.pattern_metadata),
                        timeout=self.settings.embedding_timeout_seconds,
                    )
                except (EmbeddingUnavailableError, TimeoutError) as e:
                    logger.warning(
                        f"Embedding unavailable, using metadata-only candidates: {e}",
                        extra={"pattern_id": req.pattern_id},
                    )
        if vector is None:
            return await self._metadata_candidates(run, k)

        if self.vector_search is None:
            return await self._skill_candidates(run, k)
        with run.timer.phase("search"):
            try:
                pairs = await asyncio.wait_for(
                    self.vector_search.nearest_neighbors(vector, k),
                    timeout=self.settings.search_timeout_seconds,
                )
            except (SearchUnavailableError, TimeoutError) as e:
                logger.warning(
                    f"Vector search unavailable, using skill-based candidates: {e}",
                    extra={"pattern_id": req.pattern_id},
                )
                pairs = None
        if pairs is None:
            return await self._skill_candidates(run, k)
        return CandidateSet.from_pairs(pairs[:k], EnumCandidateSource.VECTOR_SEARCH)

    async def _metadata_candidates(self, run: _RoutingRun, k: int) -> CandidateSet:
        """Overlap of query/metadata terms with each agent's capability terms."""
        terms = run.request.query_terms
        pairs: list[tuple[str, float]] = []
        for profile in (await self._load_pool(run)).values():
            capabilities = profile.capability_terms
            if not capabilities:
                continue
            overlap = len(terms & capabilities) / len(capabilities)
            if overlap > 0.0:
                pairs.append((profile.agent_id, overlap))
        return CandidateSet.from_pairs(_top_k(pairs, k), EnumCandidateSource.METADATA_ONLY)

    async def _skill_candidates(self, run: _RoutingRun, k: int) -> CandidateSet:
        """Fraction of requested skills each agent covers."""
        wanted = run.request.requested_skills or run.request.query_terms
        pairs: list[tuple[str, float]] = []
        if wanted:
            for profile in (await self._load_pool(run)).values():
                coverage = len(profile.skills & wanted) / len(wanted)
                if coverage > 0.0:
                    pairs.append((profile.agent_id, coverage))
        return CandidateSet.from_pairs(_top_k(pairs, k), EnumCandidateSource.SKILL_BASED)

    async def _load_pool(self, run: _RoutingRun) -> dict[str, ModelAgentProfile]:
        """Every known profile, listed at most once per request."""
        if run.pool is None:
            try:
                run.pool = {p.agent_id: p for p in await self.profile_store.list_profiles()}
            except ProfileStoreError as e:
                logger.warning(
                    f"Could not list agent profiles: {e.message}",
                    extra={"pattern_id": run.request.pattern_id},
                )
                return dict(run.profiles)
        return run.pool

    # =========================================================================
    # Decision assembly
    # =========================================================================

    def _assemble(
        self,
        run: _RoutingRun,
        ranked: list[ModelRankedAgent],
        consensus: ModelConsensusRecord | None,
    ) -> ModelRoutingDecision:
        req = run.request
        top = ranked[0]
        secondary = ranked[1].score if len(ranked) > 1 else 0.0
        calibration = self.calibrator.breakdown(
            top.score,
            secondary,
            consensus.agreed if consensus is not None else None,
            req,
            run.context,
            candidate_scores=[r.score for r in ranked],
            agent_accuracy=run.profiles[top.agent_id].decision_accuracy(run.now),
        )
        primary, alternatives = select(ranked, req.include_alternatives)
        self.routing_stats["primary_decisions"] += 1

        return ModelRoutingDecision(
            timestamp=run.now,
            pattern_id=req.pattern_id,
            primary=primary,
            alternatives=alternatives,
            confidence_score=calibration.confidence,
            confidence_rationale=self.calibrator.rationale(calibration),
            reasoning=_explain(top, run.candidates, len(ranked)),
            scoring_breakdown=_breakdown(ranked) if req.explain_reasoning else None,
            consensus=consensus,
            candidate_source=run.candidates.source,
        )

    async def _fallback(
        self,
        run: _RoutingRun,
        reason: str,
        ranked: Sequence[ModelRankedAgent] = (),
        consensus: ModelConsensusRecord | None = None,
    ) -> ModelRoutingDecision:
        req = run.request
        logger.warning(
            f"Primary path failed for {req.pattern_id}, entering fallback: {reason}",
            extra={"pattern_id": req.pattern_id, "reason": reason},
        )
        pool = {**run.profiles, **(await self._load_pool(run))}
        selection = self.fallback_manager.select(
            FallbackRequest(
                reason=reason,
                request=req,
                ranked=ranked,
                pool=pool,
                excluded=run.excluded,
            )
        )
        self.routing_stats["fallback_decisions"] += 1
        self.routing_stats["fallbacks_by_strategy"][selection.strategy.value] += 1

        alternatives: tuple[ModelAlternative, ...] = ()
        if req.include_alternatives:
            others = [
                r
                for r in ranked
                if r.agent_id != selection.agent.agent_id
                and r.agent_id not in run.excluded
                and pool.get(r.agent_id) is not None
                and pool[r.agent_id].available
            ][:MAX_ALTERNATIVES]
            alternatives = tuple(
                ModelAlternative(agent_id=r.agent_id, name=r.name, score=r.score, rank=i)
                for i, r in enumerate(others, start=2)
            )

        strategy = selection.strategy.value
        return ModelRoutingDecision(
            timestamp=run.now,
            pattern_id=req.pattern_id,
            primary=ModelPrimaryAgent(
                agent_id=selection.agent.agent_id,
                name=selection.agent.name,
                score=selection.score,
            ),
            alternatives=alternatives,
            confidence_score=selection.confidence,
            confidence_rationale=(
                f"Fallback confidence ({selection.confidence:.2f}) from the {strategy} strategy"
            ),
            reasoning=(
                f"Selected {selection.agent.agent_id} via {strategy} fallback "
                f"({selection.note}); original failure: {reason}"
            ),
            scoring_breakdown=_breakdown(ranked) if req.explain_reasoning and ranked else None,
            consensus=consensus,
            fallback_applied=selection.strategy,
            fallback_reason=reason,
            candidate_source=run.candidates.source,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _coerce(
        self,
        request: ModelPatternRequest | Mapping[str, Any],
        context: ModelExecutionContext | Mapping[str, Any] | None,
        constraints: ModelRoutingConstraints | Mapping[str, Any] | None,
    ) -> tuple[ModelPatternRequest, ModelExecutionContext]:
        raw_context: Any = context
        try:
            if isinstance(request, ModelPatternRequest):
                req = request
            elif isinstance(request, Mapping):
                data = dict(request)
                embedded_context = data.pop("context", None)
                if raw_context is None:
                    raw_context = embedded_context
                req = ModelPatternRequest.model_validate(data)
            else:
                raise RequestValidationError(
                    f"Unsupported request type: {type(request).__name__}"
                )

            if constraints is not None:
                if not isinstance(constraints, ModelRoutingConstraints):
                    constraints = ModelRoutingConstraints.model_validate(constraints)
                req = req.model_copy(update={"constraints": constraints})

            if raw_context is None:
                ctx = ModelExecutionContext()
            elif isinstance(raw_context, ModelExecutionContext):
                ctx = raw_context
            else:
                ctx = ModelExecutionContext.model_validate(raw_context)
        except ValidationError as e:
            raise RequestValidationError(
                "Invalid routing request",
                details={"errors": e.errors(include_url=False)},
            ) from e

        limit = self.settings.history_limit
        if len(ctx.execution_history) > limit or len(ctx.routing_history) > limit:
            ctx = ctx.model_copy(
                update={
                    "execution_history": ctx.execution_history[:limit],
                    "routing_history": ctx.routing_history[:limit],
                }
            )
        return req, ctx

    @staticmethod
    def _consensus_error(consensus: ModelConsensusRecord, agent_id: str) -> OmniRouteError:
        details = {"agent_id": agent_id, "agreed": consensus.agreed}
        if consensus.result == EnumConsensusResult.TIMEOUT:
            return ConsensusTimedOutError(
                f"consensus timed out for {agent_id} ({consensus.agreed}/5 agreed)",
                details=details,
            )
        return ConsensusEscalatedError(
            f"consensus escalated for {agent_id} ({consensus.agreed}/5 agreed)",
            details=details,
        )

    async def _persist(self, cache_key: str, decision: ModelRoutingDecision) -> None:
        self.cache.set(cache_key, decision)
        try:
            await self.decision_sink.publish(decision)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"decision sink failed: {type(e).__name__}",
                details={"decision_id": str(decision.decision_id)},
            ) from e

    async def _apply_update(self, update: ModelProfileUpdate) -> None:
        try:
            profile = await self.profile_store.apply_update(update)
        except ProfileStoreError as e:
            logger.warning(
                f"Profile update failed for {update.agent_id}: {e.message}",
                extra={"agent_id": update.agent_id, "pattern_id": update.pattern_id},
            )
            return
        logger.debug(
            f"Profile {profile.agent_id} updated to version {profile.version}",
            extra={"agent_id": profile.agent_id, "pattern_id": update.pattern_id},
        )

    def _check_budget(self, run: _RoutingRun) -> float:
        elapsed_ms = run.timer.elapsed_ms
        if elapsed_ms > self.settings.latency_target_ms:
            self.routing_stats["budget_breaches"] += 1
            logger.warning(
                f"Routing {run.request.pattern_id} exceeded latency target: "
                f"{elapsed_ms:.1f}ms > {self.settings.latency_target_ms:.0f}ms",
                extra={"pattern_id": run.request.pattern_id, "phases_ms": run.timer.phases},
            )
        return elapsed_ms


def _top_k(pairs: list[tuple[str, float]], k: int) -> list[tuple[str, float]]:
    return sorted(pairs, key=lambda item: (-item[1], item[0]))[:k]


def _breakdown(ranked: Sequence[ModelRankedAgent]) -> dict[str, Any]:
    return {r.agent_id: r.scores for r in ranked}


def _explain(top: ModelRankedAgent, candidates: CandidateSet, eligible: int) -> str:
    """Summarize why the primary agent won, strongest experts first."""
    strongest = sorted(top.scores.by_expert().items(), key=lambda item: (-item[1], item[0].value))[:3]
    highlights = ", ".join(f"{expert.value.replace('_', ' ')} {value:.2f}" for expert, value in strongest)
    return (
        f"{top.name} ranked first of {eligible} eligible agents "
        f"({candidates.source.value} candidates) with score {top.score:.2f}; "
        f"strongest signals: {highlights}"
    )


__all__ = ["RoutingOrchestrator"]
