from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from src.constants import END_MARKER
from src.coordination.roles import Role
from src.coordination.state import SharedState


@dataclass(frozen=True)
class _Contract:
    frd_heading: str
    state_heading: str
    shape: tuple[str, ...]
    rules: tuple[str, ...]


_CONTRACTS: dict[Role, _Contract] = {
    Role.builder: _Contract(
        frd_heading="## FRD (authoritative)",
        state_heading="## Shared state (coordination)",
        shape=(
            '  "exitCriteriaMet": boolean,',
            '  "wantsRefactor": boolean,',
            '  "completed": string[],',
            '  "next": string[],',
            '  "commandsRun": { "cmd": string, "exitCode": number }[],',
            '  "notes": string',
        ),
        rules=(
            "Rules:",
            "- Implement + test + verify features; keep going until exitCriteriaMet true.",
            "- If you detect refactoring opportunities (SOLID, layering, duplication, "
            "performance), set wantsRefactor=true and describe them in notes.",
            "- Use tools to edit files and run checks.",
        ),
    ),
    Role.verifier: _Contract(
        frd_heading="## FRD (authoritative)",
        state_heading="## Shared state (context)",
        shape=(
            '  "verdict": "PASS" | "FAIL",',
            '  "refactorRecommended": boolean,',
            '  "blockers": Array<{ ids: string[], summary: string, fix: string }>,',
            '  "commands": Array<{ cmd: string, exitCode: number }>,',
            '  "coverage": { frPassed: number, frTotal: number, '
            "ucPassed: number, ucTotal: number }",
        ),
        rules=(
            "Be strict: FAIL unless you can prove compliance with tests + traceability.",
            "You have read-only access: you cannot write, edit, delete or create files.",
        ),
    ),
    Role.refactorer: _Contract(
        frd_heading=(
            "## FRD (context, do not add new features unless necessary for "
            "refactor correctness/testability)"
        ),
        state_heading="## Shared state (focus on verifier blockers / builder notes)",
        shape=(
            '  "refactorsApplied": string[],',
            '  "commandsRun": { "cmd": string, "exitCode": number }[],',
            '  "notes": string',
        ),
        rules=(
            "Rules:",
            "- You are an optimiser/refactorer. Improve SOLID, layering, testability, "
            "and performance.",
            "- Do not implement new FRD features unless strictly required to complete "
            "a refactor safely.",
            "- Keep the repository green: run checks after refactors and fix failures.",
        ),
    ),
}


class PromptBuilder:
    """Assembles a role prompt from 5 layers.

    Layers:
    1. Role system text (loaded from the operator's prompt file)
    2. Workspace root
    3. FRD (the requirements document the roles are building against)
    4. Shared coordination state as JSON
    5. Output contract: report tag, JSON shape, END marker, role rules
    """

    def __init__(self, frd: str, workspace_root: Path, system_prompts: dict[Role, str]) -> None:
        self._frd = frd
        self._workspace_root = workspace_root
        self._system_prompts = system_prompts

    def build(self, role: Role, state: SharedState) -> str:
        contract = _CONTRACTS[role]
        layers = [
            self._system_prompts.get(role, ""),
            f"## Workspace\n- workspaceRoot: {self._workspace_root}",
            f"{contract.frd_heading}\n{self._frd}",
            f"{contract.state_heading}\n```json\n{state.to_json()}\n```",
            self._layer_contract(role, contract),
        ]
        return "\n\n".join(layer for layer in layers if layer)

    @staticmethod
    def _layer_contract(role: Role, contract: _Contract) -> str:
        return "\n".join([
            "## Output contract (MUST comply)",
            "At the end of your response, output EXACTLY one JSON object inside these tags:",
            f"<<<{role.report_tag}>>>",
            "{",
            *contract.shape,
            "}",
            END_MARKER,
            "",
            *contract.rules,
        ])
