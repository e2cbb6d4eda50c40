"""Structured report extraction from free-form role output.

A role ends its turn with exactly one block:

    <<<TAG>>>
    { ...JSON object... }
    <<<END>>>

The first start marker wins and is paired with the first END after it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from src.constants import END_MARKER


@dataclass(frozen=True)
class MalformedReport:
    """Block was found but did not parse. raw is kept verbatim for diagnosis."""

    parse_error: str
    raw: str

    def to_dict(self) -> dict[str, str]:
        return {"parseError": self.parse_error, "raw": self.raw}


def extract_tagged_json(text: str, tag: str) -> Any | MalformedReport | None:
    """Return the parsed block, a MalformedReport, or None when no block is present."""
    start = f"<<<{tag}>>>"
    i = text.find(start)
    if i < 0:
        return None
    body_start = i + len(start)
    j = text.find(END_MARKER, body_start)
    if j < 0:
        return None

    raw = text[body_start:j].strip()
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        return MalformedReport(parse_error=str(e), raw=raw)
