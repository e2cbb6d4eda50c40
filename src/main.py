"""Command-line entry point.

Run: python -m src.main --frd FRD.md --builder-prompt builder.md \
        --verifier-prompt verifier.md --refactorer-prompt refactorer.md

Exit codes: 0 done, 2 incomplete, 1 fatal error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from src.agent.agent import RoleAgent
from src.agent.model_client import ModelClient, OpenAICompatModelClient
from src.agent.prompt_builder import PromptBuilder
from src.config.settings import CoordinatorSettings, ModelSettings, Settings, get_settings
from src.coordination.coordinator import Coordinator, RunOutcome
from src.coordination.lock import WorkspaceLock
from src.coordination.roles import Role
from src.coordination.state import StateStore
from src.infra.errors import CoordinatorError
from src.infra.logging import setup_logging
from src.tools.builtins import register_builtins
from src.tools.registry import ToolRegistry
from src.tools.workspace import Workspace

logger = structlog.get_logger()


def build_coordinator(
    settings: Settings,
    model_client: ModelClient,
    *,
    frd: str,
    system_prompts: dict[Role, str],
) -> Coordinator:
    """Wire workspace tools, role agents, prompts and state into a Coordinator."""
    workspace_root = settings.workspace_dir.resolve()
    coord = settings.coordinator

    # One lock for every workspace-touching call from every role
    workspace = Workspace(
        workspace_root,
        WorkspaceLock(),
        allow_unsafe=coord.allow_unsafe,
        command_timeout_s=coord.command_timeout_s,
    )
    registry = ToolRegistry()
    register_builtins(registry, workspace)

    runners = {
        role: RoleAgent(
            role,
            model_client,
            registry,
            model=settings.model.model,
            max_turns=coord.max_turns,
        )
        for role in Role
    }
    prompts = PromptBuilder(frd, workspace_root, system_prompts)
    store = StateStore(workspace_root / coord.state_path)
    return Coordinator(runners, prompts.build, store, coord)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run Builder + Verifier + Refactorer agents in parallel on one workspace"
    )
    parser.add_argument("--frd", required=True, type=Path, help="Path to FRD markdown")
    parser.add_argument("--builder-prompt", required=True, type=Path)
    parser.add_argument("--verifier-prompt", required=True, type=Path)
    parser.add_argument("--refactorer-prompt", required=True, type=Path)
    parser.add_argument(
        "--workspace", type=Path, default=None,
        help="Workspace root (default: WORKSPACE_DIR or cwd)",
    )
    parser.add_argument("--model", default=None, help="Model id (default: MODEL_MODEL)")
    parser.add_argument("--api-key", default=None, help="API key (default: MODEL_API_KEY)")
    parser.add_argument(
        "--base-url", default=None, help="OpenAI-compatible endpoint (default: MODEL_BASE_URL)"
    )
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument(
        "--verifier-interval", type=float, default=None, help="Seconds between verifier runs"
    )
    parser.add_argument("--max-turns", type=int, default=None, help="Max turns per role call")
    parser.add_argument(
        "--allow-unsafe", action="store_true",
        help="Allow any shell command (otherwise allowlist enforced)",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit JSON logs")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Fold CLI flags over env settings. Result is validated and never mutated."""
    coord_overrides = {
        key: value
        for key, value in {
            "max_iterations": args.max_iterations,
            "verifier_interval_s": args.verifier_interval,
            "max_turns": args.max_turns,
        }.items()
        if value is not None
    }
    if args.allow_unsafe:
        coord_overrides["allow_unsafe"] = True
    coordinator = CoordinatorSettings(**{**settings.coordinator.model_dump(), **coord_overrides})
    model_overrides = {
        key: value
        for key, value in {"model": args.model, "base_url": args.base_url}.items()
        if value
    }
    model = settings.model.model_copy(update=model_overrides)
    return settings.model_copy(update={
        "coordinator": coordinator,
        "model": model,
        "workspace_dir": args.workspace or settings.workspace_dir,
    })


def _load_settings(args: argparse.Namespace) -> Settings:
    # An explicit key stands in for MODEL_API_KEY, which is otherwise required
    if args.api_key:
        return Settings(model=ModelSettings(api_key=args.api_key))
    return get_settings()


async def _run(args: argparse.Namespace) -> RunOutcome:
    settings = _apply_overrides(_load_settings(args), args)
    frd = args.frd.read_text(encoding="utf-8")
    system_prompts = {
        Role.builder: args.builder_prompt.read_text(encoding="utf-8"),
        Role.verifier: args.verifier_prompt.read_text(encoding="utf-8"),
        Role.refactorer: args.refactorer_prompt.read_text(encoding="utf-8"),
    }
    logger.info(
        "starting",
        workspace=str(settings.workspace_dir.resolve()),
        model=settings.model.model,
        base_url=settings.model.base_url,
    )
    model_client = OpenAICompatModelClient.from_settings(settings.model)
    try:
        coordinator = build_coordinator(
            settings, model_client, frd=frd, system_prompts=system_prompts
        )
        return await coordinator.run()
    finally:
        await model_client.close()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logging(json_output=args.log_json, log_level=args.log_level)
    try:
        outcome = asyncio.run(_run(args))
    except ValidationError as e:
        logger.error("invalid_settings", error=str(e))
        return 1
    except (CoordinatorError, OSError) as e:
        logger.error("fatal", error=str(e), error_type=type(e).__name__)
        return 1

    print(f"Final verdict: {outcome.verdict.value}")
    print(f"Exit criteria met: {outcome.exit_criteria_met}")
    print(f"Status: {outcome.status} ({outcome.reason or 'no reason recorded'})")
    print(f"State file: {outcome.state_path}")
    return 0 if outcome.status == "done" else 2


if __name__ == "__main__":
    sys.exit(main())
