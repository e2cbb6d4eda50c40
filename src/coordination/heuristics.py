from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from src.constants import REFACTOR_SIGNALS

if TYPE_CHECKING:
    from src.coordination.state import Blocker

RefactorPredicate = Callable[[Sequence["Blocker"]], bool]


class KeywordRefactorDetector:
    """Fuzzy classifier: does any blocker mention a refactor-worthy concern?

    Case-insensitive substring match over the serialized blocker text. False
    positives and negatives are expected; swap in another RefactorPredicate
    to change the policy.
    """

    def __init__(self, signals: Sequence[str] = REFACTOR_SIGNALS) -> None:
        self._signals = tuple(s.lower() for s in signals)

    def __call__(self, blockers: Sequence[Blocker]) -> bool:
        if not blockers:
            return False
        text = json.dumps(
            [b.model_dump() for b in blockers], ensure_ascii=False
        ).lower()
        return any(s in text for s in self._signals)
