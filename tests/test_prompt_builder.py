"""Tests for PromptBuilder layer assembly."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.agent.prompt_builder import PromptBuilder
from src.coordination.extraction import extract_tagged_json
from src.coordination.roles import Role
from src.coordination.state import SharedState, Verdict, VerifierState

FRD = "# FRD\nFR-1: The app shows a login page."


def _builder(tmp_path: Path) -> PromptBuilder:
    return PromptBuilder(
        FRD,
        tmp_path,
        {
            Role.builder: "You are the builder.",
            Role.verifier: "You are the verifier.",
            Role.refactorer: "You are the refactorer.",
        },
    )


class TestPromptBuilder:
    @pytest.mark.parametrize("role", list(Role))
    def test_layers_in_order(self, tmp_path: Path, role: Role) -> None:
        prompt = _builder(tmp_path).build(role, SharedState())
        system = prompt.index(f"You are the {role.value}.")
        workspace = prompt.index(f"workspaceRoot: {tmp_path}")
        frd = prompt.index("FR-1: The app shows a login page.")
        state = prompt.index('"iteration": 0')
        contract = prompt.index("## Output contract (MUST comply)")
        assert system < workspace < frd < state < contract

    @pytest.mark.parametrize("role", list(Role))
    def test_contract_names_role_tag(self, tmp_path: Path, role: Role) -> None:
        prompt = _builder(tmp_path).build(role, SharedState())
        assert f"<<<{role.report_tag}>>>" in prompt
        assert prompt.rstrip().count("<<<END>>>") == 1

    def test_state_embedded_as_json(self, tmp_path: Path) -> None:
        state = SharedState(
            iteration=7, verifier=VerifierState(verdict=Verdict.FAIL)
        )
        prompt = _builder(tmp_path).build(Role.refactorer, state)
        block = prompt.split("```json\n", 1)[1].split("\n```", 1)[0]
        data = json.loads(block)
        assert data["iteration"] == 7
        assert data["verifier"]["verdict"] == "FAIL"

    def test_contract_sample_is_not_a_parsable_report(self, tmp_path: Path) -> None:
        """The shape sketch in the prompt is documentation, not a real report."""
        prompt = _builder(tmp_path).build(Role.verifier, SharedState())
        assert not isinstance(extract_tagged_json(prompt, Role.verifier.report_tag), dict)

    def test_verifier_told_it_is_read_only(self, tmp_path: Path) -> None:
        prompt = _builder(tmp_path).build(Role.verifier, SharedState())
        assert "read-only access" in prompt

    def test_refactorer_frd_is_context_only(self, tmp_path: Path) -> None:
        prompt = _builder(tmp_path).build(Role.refactorer, SharedState())
        assert "## FRD (context" in prompt
        assert "Do not implement new FRD features" in prompt

    def test_missing_system_prompt_skipped(self, tmp_path: Path) -> None:
        prompt = PromptBuilder(FRD, tmp_path, {}).build(Role.builder, SharedState())
        assert prompt.startswith("## Workspace")
