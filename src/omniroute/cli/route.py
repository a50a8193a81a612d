# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""Routing CLI for inspecting agent registries and trying routing decisions.

Usage:
    omniroute agents --registry agents.yaml [--json]
    omniroute route "rotate auth tokens" --registry agents.yaml
        [--meta KEY=VALUE ...] [--require-skill SKILL ...]
        [--exclude AGENT ...] [--prefer AGENT ...]
        [--consensus] [--max-latency MS] [--explain] [--json]

External collaborators (Gemini embeddings, Qdrant, Kafka) are used only when
enabled through OMNIROUTE_* settings. Without them, candidates come from
metadata matching against the registry.
"""

from __future__ import annotations

import asyncio
import json as json_module
import logging
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from omniroute import __version__
from omniroute.clients import GeminiEmbeddingClient, QdrantVectorSearchClient
from omniroute.config import ConfigRouting, get_settings
from omniroute.publisher import KafkaDecisionPublisher
from omniroute.routing import (
    FallbackExhaustedError,
    ModelRoutingDecision,
    OmniRouteError,
    RequestValidationError,
    RoutingOrchestrator,
)
from omniroute.storage import InMemoryProfileStore

# =============================================================================
# Console Setup
# =============================================================================

console = Console()
error_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _load_store(registry: str) -> InMemoryProfileStore:
    try:
        return InMemoryProfileStore.from_registry(registry)
    except OmniRouteError as e:
        raise click.ClickException(e.message) from e


def _parse_meta(pairs: tuple[str, ...]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--meta")
        metadata[key.strip()] = value.strip()
    return metadata


async def _route(
    settings: ConfigRouting,
    store: InMemoryProfileStore,
    payload: dict[str, Any],
) -> tuple[ModelRoutingDecision, float]:
    embedding_client = None
    vector_search = None
    publisher = None
    if settings.enable_embeddings:
        embedding_client = GeminiEmbeddingClient.from_settings(settings)
    if settings.enable_qdrant:
        vector_search = QdrantVectorSearchClient.from_settings(settings)
    if settings.enable_decision_publishing:
        publisher = KafkaDecisionPublisher.from_settings(settings)

    orchestrator = RoutingOrchestrator(
        store,
        embedding_client=embedding_client,
        vector_search=vector_search,
        decision_sink=publisher,
        settings=settings,
    )
    try:
        return await orchestrator.route(payload)
    finally:
        if embedding_client is not None:
            await embedding_client.aclose()
        if vector_search is not None:
            await vector_search.close()
        if publisher is not None:
            await publisher.close()


# =============================================================================
# CLI Group
# =============================================================================


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool) -> None:
    """OmniRoute pattern routing CLI.

    Examples:

        # List agents in a registry
        omniroute agents --registry agents.yaml

        # Route a query and show the decision
        omniroute route "rotate auth tokens" --registry agents.yaml --explain
    """
    if version:
        click.echo(f"omniroute {__version__}")
        ctx.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# =============================================================================
# Agents Command
# =============================================================================


@cli.command("agents")
@click.option(
    "--registry",
    required=True,
    type=click.Path(dir_okay=False),
    help="Agent registry YAML file.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def cmd_agents(registry: str, as_json: bool) -> None:
    """List agents in a registry."""
    store = _load_store(registry)
    profiles = asyncio.run(store.list_profiles())

    if as_json:
        output = [p.model_dump(mode="json") for p in profiles]
        click.echo(json_module.dumps(output, indent=2, sort_keys=True))
        return

    if not profiles:
        console.print("[yellow]No agents found.[/yellow]")
        return

    table = Table(title=f"Agents ({len(profiles)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Skills", style="blue", max_width=40)
    table.add_column("Security", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("p99", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Status")

    for profile in profiles:
        status = "[green]available[/green]" if profile.available else "[red]unavailable[/red]"
        table.add_row(
            profile.agent_id,
            profile.name,
            ", ".join(sorted(profile.skills)),
            str(profile.security_level),
            f"{profile.success_rate_for('default'):.0%}",
            f"{profile.latency.p99_ms:.0f}ms",
            f"{profile.current_assignments}/{profile.max_assignments}",
            status,
        )

    console.print(table)


# =============================================================================
# Route Command
# =============================================================================


@cli.command("route")
@click.argument("query")
@click.option(
    "--registry",
    required=True,
    type=click.Path(dir_okay=False),
    help="Agent registry YAML file.",
)
@click.option("--pattern-id", default="cli-pattern", help="Pattern identifier.")
@click.option("--meta", multiple=True, help="Pattern metadata as KEY=VALUE (repeatable).")
@click.option("--require-skill", multiple=True, help="Mandatory skill (repeatable).")
@click.option("--exclude", multiple=True, help="Agent to exclude (repeatable).")
@click.option("--prefer", multiple=True, help="Preferred agent (repeatable).")
@click.option("--consensus", is_flag=True, help="Require consensus validation.")
@click.option("--max-latency", type=float, help="Worst-case latency ceiling in ms.")
@click.option("--explain", is_flag=True, help="Include per-expert scoring breakdown.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def cmd_route(
    query: str,
    registry: str,
    pattern_id: str,
    meta: tuple[str, ...],
    require_skill: tuple[str, ...],
    exclude: tuple[str, ...],
    prefer: tuple[str, ...],
    consensus: bool,
    max_latency: float | None,
    explain: bool,
    as_json: bool,
) -> None:
    """Route QUERY against the agents in a registry.

    Examples:

        omniroute route "rotate auth tokens" --registry agents.yaml
        omniroute route "refund a charge" --registry agents.yaml \\
            --meta category=payments --require-skill payments --json
    """
    store = _load_store(registry)
    constraints: dict[str, Any] = {
        "required_skills": list(require_skill),
        "require_consensus": consensus,
    }
    if max_latency is not None:
        constraints["max_latency_ms"] = max_latency
    payload: dict[str, Any] = {
        "pattern_id": pattern_id,
        "pattern_query": query,
        "pattern_metadata": _parse_meta(meta),
        "preferred_agents": list(prefer),
        "excluded_agents": list(exclude),
        "constraints": constraints,
        "explain_reasoning": explain,
    }

    try:
        decision, elapsed_ms = asyncio.run(_route(get_settings(), store, payload))
    except RequestValidationError as e:
        raise click.ClickException(f"Invalid request: {e.message}") from e
    except FallbackExhaustedError as e:
        raise click.ClickException(e.message) from e

    if as_json:
        output = decision.to_response()
        output["elapsed_ms"] = round(elapsed_ms, 2)
        click.echo(json_module.dumps(output, indent=2))
        return

    _print_decision(decision, elapsed_ms)


def _print_decision(decision: ModelRoutingDecision, elapsed_ms: float) -> None:
    primary = decision.primary
    console.print(
        f"[bold]Primary:[/bold] [cyan]{primary.agent_id}[/cyan] ({primary.name}) "
        f"score {primary.score:.3f}"
    )
    console.print(
        f"[bold]Confidence:[/bold] {decision.confidence_score:.3f} - {decision.confidence_rationale}"
    )
    if decision.fallback_applied is not None:
        console.print(
            f"[yellow]Fallback:[/yellow] {decision.fallback_applied.value} "
            f"({decision.fallback_reason})"
        )
    if decision.consensus is not None:
        votes = ", ".join(f"{k}={v.value}" for k, v in decision.consensus.validators.items())
        console.print(
            f"[bold]Consensus:[/bold] {decision.consensus.result.value} "
            f"({decision.consensus.agreed}/5) {votes}"
        )
    console.print(f"[dim]{decision.reasoning}[/dim]")

    if decision.alternatives:
        table = Table(title="Alternatives")
        table.add_column("Rank", justify="right")
        table.add_column("ID", style="cyan")
        table.add_column("Score", justify="right")
        for alt in decision.alternatives:
            table.add_row(str(alt.rank), alt.agent_id, f"{alt.score:.3f}")
        console.print(table)

    if decision.scoring_breakdown:
        table = Table(title="Scoring Breakdown")
        table.add_column("Agent", style="cyan")
        for field_name in (
            "similarity",
            "metadata_match",
            "success_rate",
            "recency",
            "load_diversity",
            "latency_fit",
            "context_relevance",
            "confidence_calibration",
            "total",
        ):
            table.add_column(field_name.replace("_", " ").title(), justify="right")
        for agent_id, scores in decision.scoring_breakdown.items():
            values = scores.model_dump()
            table.add_row(agent_id, *(f"{values[k]:.2f}" for k in values))
        console.print(table)

    console.print(f"[dim]Routed in {elapsed_ms:.1f}ms ({decision.candidate_source.value})[/dim]")


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
