from __future__ import annotations

# Durable snapshot location, relative to the workspace root
STATE_PATH = ".agent/state.json"

END_MARKER = "<<<END>>>"

BUILDER_REPORT_TAG = "BUILDER_REPORT_JSON"
VERIFIER_REPORT_TAG = "VERIFIER_REPORT_JSON"
REFACTORER_REPORT_TAG = "REFACTORER_REPORT_JSON"

# Blocker vocabulary that marks a verifier FAIL as refactor-worthy
REFACTOR_SIGNALS: tuple[str, ...] = (
    "refactor",
    "solid",
    "architecture",
    "layering",
    "hexagonal",
    "duplication",
    "dead code",
    "cyclomatic",
    "complexity",
    "performance",
    "hot path",
    "testability",
)

# First word of a cmd_run command line must be one of these unless allow_unsafe
COMMAND_ALLOWLIST: frozenset[str] = frozenset({
    "pnpm",
    "npm",
    "yarn",
    "node",
    "npx",
    "git",
    "tsx",
    "tsc",
    "vitest",
    "jest",
    "eslint",
    "storybook",
    "build-storybook",
    "python",
    "pytest",
    "ruff",
    "mypy",
    "uv",
})

DEFAULT_GLOB_IGNORE: tuple[str, ...] = (
    "**/node_modules/**",
    "**/dist/**",
    "**/.git/**",
    "**/.agent/**",
)

MAX_READ_BYTES = 200_000
