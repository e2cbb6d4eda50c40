"""Role report contracts and their translation into state sub-records.

A missing or malformed report never raises: the raw text (or the raw block
plus parse error) becomes last_report and typed fields keep safe defaults.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.coordination.extraction import MalformedReport, extract_tagged_json
from src.coordination.heuristics import KeywordRefactorDetector, RefactorPredicate
from src.coordination.roles import Role
from src.coordination.state import (
    Blocker,
    BuilderState,
    RefactorerState,
    Verdict,
    VerifierState,
)

logger = structlog.get_logger()

R = TypeVar("R", bound=BaseModel)


class _Report(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class CommandRecord(_Report):
    cmd: str = ""
    exit_code: int | None = None


class Coverage(_Report):
    fr_passed: int = 0
    fr_total: int = 0
    uc_passed: int = 0
    uc_total: int = 0


class BuilderReport(_Report):
    exit_criteria_met: bool = False
    wants_refactor: bool = False
    completed: list[str] = Field(default_factory=list)
    next: list[str] = Field(default_factory=list)
    commands_run: list[CommandRecord] = Field(default_factory=list)
    notes: str = ""


class VerifierReport(_Report):
    verdict: Literal["PASS", "FAIL"] | None = None
    refactor_recommended: bool = False
    blockers: list[Blocker] = Field(default_factory=list)
    commands: list[CommandRecord] = Field(default_factory=list)
    coverage: Coverage | None = None


class RefactorerReport(_Report):
    refactors_applied: list[str] = Field(default_factory=list)
    commands_run: list[CommandRecord] = Field(default_factory=list)
    notes: str = ""


def _prune_invalid(block: dict[str, Any], error: ValidationError) -> dict[str, Any]:
    """Drop the fields (or list entries) a validation error points at."""
    pruned = dict(block)
    bad_items: dict[str, set[int]] = {}
    for err in error.errors():
        loc = err["loc"]
        if not loc:
            continue
        key = loc[0]
        if len(loc) > 1 and isinstance(loc[1], int) and isinstance(pruned.get(key), list):
            bad_items.setdefault(key, set()).add(loc[1])
        else:
            pruned.pop(key, None)
    for key, indexes in bad_items.items():
        if key in pruned:
            pruned[key] = [item for i, item in enumerate(pruned[key]) if i not in indexes]
    return pruned


def read_report(response: str, role: Role, model: type[R]) -> tuple[Any, R | None]:
    """Extract a role's block. Returns (last_report, typed report or None).

    Fields that fail validation fall back to their defaults without taking
    the rest of the report with them, so a malformed coverage entry never
    hides a valid verdict. last_report always keeps the block as written.
    """
    block = extract_tagged_json(response, role.report_tag)
    if block is None:
        logger.warning("report_missing", role=role.value, chars=len(response))
        return response, None
    if isinstance(block, MalformedReport):
        logger.warning("report_parse_failed", role=role.value, error=block.parse_error)
        return block.to_dict(), None
    try:
        return block, model.model_validate(block)
    except ValidationError as e:
        if not isinstance(block, dict):
            logger.warning("report_invalid", role=role.value, errors=e.error_count())
            return block, None
        logger.warning(
            "report_fields_invalid",
            role=role.value,
            fields=sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]}),
        )
        pruned = _prune_invalid(block, e)
    try:
        return block, model.model_validate(pruned)
    except ValidationError as e:
        logger.warning("report_invalid", role=role.value, errors=e.error_count())
        return block, None


def builder_update(response: str) -> BuilderState:
    last_report, report = read_report(response, Role.builder, BuilderReport)
    if report is None:
        return BuilderState(last_report=last_report)
    return BuilderState(
        last_report=last_report,
        exit_criteria_met=report.exit_criteria_met,
        wants_refactor=report.wants_refactor,
    )


def verifier_update(
    response: str, detector: RefactorPredicate | None = None
) -> VerifierState:
    detector = detector or KeywordRefactorDetector()
    last_report, report = read_report(response, Role.verifier, VerifierReport)
    if report is None:
        return VerifierState(last_report=last_report)
    return VerifierState(
        last_report=last_report,
        verdict=Verdict(report.verdict) if report.verdict else Verdict.UNKNOWN,
        blockers=report.blockers,
        refactor_recommended=report.refactor_recommended or detector(report.blockers),
    )


def refactorer_update(response: str, previous: RefactorerState) -> RefactorerState:
    last_report, _ = read_report(response, Role.refactorer, RefactorerReport)
    return RefactorerState(
        last_report=last_report,
        ran_count=previous.ran_count + 1,
        last_ran_at=datetime.now(UTC),
    )
