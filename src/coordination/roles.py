from __future__ import annotations

from enum import StrEnum

from src.constants import BUILDER_REPORT_TAG, REFACTORER_REPORT_TAG, VERIFIER_REPORT_TAG


class Role(StrEnum):
    builder = "builder"
    verifier = "verifier"
    refactorer = "refactorer"

    @property
    def report_tag(self) -> str:
        return _REPORT_TAGS[self]


_REPORT_TAGS: dict[Role, str] = {
    Role.builder: BUILDER_REPORT_TAG,
    Role.verifier: VERIFIER_REPORT_TAG,
    Role.refactorer: REFACTORER_REPORT_TAG,
}
