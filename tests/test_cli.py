# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT
"""Tests for the omniroute CLI (click CliRunner, temporary registry)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from omniroute import __version__
from omniroute.cli.route import cli

REGISTRY_YAML = """\
agents:
  agent-auth:
    name: Auth Specialist
    skills: [auth, oauth]
    specializations: [security]
    success_rates: {auth: 0.95}
    latency: {p50_ms: 40, p95_ms: 70, p99_ms: 90, max_ms: 120}
  agent-db:
    name: Database Specialist
    skills: [db, sql]
    success_rates: {db: 0.9}
"""

# ── Helpers ────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def registry(tmp_path: Path) -> str:
    path = tmp_path / "agents.yaml"
    path.write_text(REGISTRY_YAML, encoding="utf-8")
    return str(path)


# ══════════════════════════════════════════════════════════════════════
# Group
# ══════════════════════════════════════════════════════════════════════


class TestCliGroup:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert f"omniroute {__version__}" in result.output

    def test_help_without_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "route" in result.output
        assert "agents" in result.output


# ══════════════════════════════════════════════════════════════════════
# agents
# ══════════════════════════════════════════════════════════════════════


class TestAgentsCommand:
    def test_json(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(cli, ["agents", "--registry", registry, "--json"])

        assert result.exit_code == 0, result.output
        agents = json.loads(result.output)
        assert [a["agent_id"] for a in agents] == ["agent-auth", "agent-db"]
        assert agents[0]["name"] == "Auth Specialist"

    def test_table(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(cli, ["agents", "--registry", registry])
        assert result.exit_code == 0, result.output
        assert "Agents (2)" in result.output

    def test_missing_registry(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["agents", "--registry", str(tmp_path / "none.yaml")])
        assert result.exit_code == 1
        assert "Registry not found" in result.output


# ══════════════════════════════════════════════════════════════════════
# route
# ══════════════════════════════════════════════════════════════════════


class TestRouteCommand:
    def test_route_json(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(
            cli,
            [
                "route",
                "rotate auth tokens",
                "--registry",
                registry,
                "--meta",
                "pattern_type=auth",
                "--require-skill",
                "auth",
                "--json",
            ],
        )

        assert result.exit_code == 0, result.output
        output = json.loads(result.output)
        assert output["primary_agent"]["id"] == "agent-auth"
        assert "elapsed_ms" in output
        assert "fallback_applied" not in output

    def test_route_with_consensus_and_explain(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(
            cli,
            [
                "route",
                "rotate auth tokens",
                "--registry",
                registry,
                "--require-skill",
                "auth",
                "--consensus",
                "--explain",
                "--json",
            ],
        )

        assert result.exit_code == 0, result.output
        output = json.loads(result.output)
        assert output["consensus"]["required"] is True
        assert "agent-auth" in output["scoring_breakdown"]

    def test_route_human_output(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(
            cli, ["route", "rotate auth tokens", "--registry", registry, "--require-skill", "auth"]
        )
        assert result.exit_code == 0, result.output
        assert "Primary:" in result.output
        assert "agent-auth" in result.output

    def test_bad_meta(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(cli, ["route", "q", "--registry", registry, "--meta", "novalue"])
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_invalid_request(self, runner: CliRunner, registry: str) -> None:
        result = runner.invoke(
            cli, ["route", "q", "--registry", registry, "--meta", "priority=urgent"]
        )
        assert result.exit_code == 1
        assert "Invalid request" in result.output

    def test_no_agents_available(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "agents.yaml"
        path.write_text("agents:\n  solo:\n    skills: [auth]\n    available: false\n")

        result = runner.invoke(cli, ["route", "rotate auth tokens", "--registry", str(path)])

        assert result.exit_code == 1
        assert "No agents available" in result.output
