"""Apply per-URL outcomes back onto the document text.

Edits are computed from the matched spans, reduced to a non-overlapping set,
widened around deletions so no empty separators are left behind, and applied
from the end of the document towards the start.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from mediaport.patterns import MediaReference


class OutcomeKind(Enum):
    REPLACED = "replaced"
    DELETE = "delete"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ProcessingOutcome:
    """What happened to one unique URL."""

    kind: OutcomeKind
    new_url: str | None = None

    @classmethod
    def replaced(cls, new_url: str) -> ProcessingOutcome:
        return cls(OutcomeKind.REPLACED, new_url)

    @property
    def is_delete(self) -> bool:
        return self.kind is OutcomeKind.DELETE


DELETE = ProcessingOutcome(OutcomeKind.DELETE)
UNCHANGED = ProcessingOutcome(OutcomeKind.UNCHANGED)


@dataclass(frozen=True)
class TextEdit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str
    original: str = ""

    @property
    def is_delete(self) -> bool:
        return self.replacement == ""


_BR_RUN_AFTER = re.compile(r"(?:\s*<br\s*/?>)+", re.IGNORECASE)
_BR_RUN_BEFORE = re.compile(r"(?:<br\s*/?>)+\s*$", re.IGNORECASE)
_BR_ONLY_LINE = re.compile(r"^(?:<br\s*/?>\s*)+$", re.IGNORECASE)
_MEDIA_TAG = re.compile(r"<img[^>]*>|<video[^>]*>", re.IGNORECASE)


def build_edits(
    references: Iterable[MediaReference],
    outcomes: Mapping[str, ProcessingOutcome],
) -> list[TextEdit]:
    """One edit per reference whose URL was replaced or deleted."""
    edits: list[TextEdit] = []
    for ref in references:
        outcome = outcomes.get(ref.url, UNCHANGED)
        if outcome.kind is OutcomeKind.DELETE:
            replacement = ""
        elif outcome.kind is OutcomeKind.REPLACED and outcome.new_url:
            replacement = ref.rewrite(outcome.new_url)
        else:
            continue
        edits.append(TextEdit(ref.start, ref.end, replacement, ref.text))
    return edits


def resolve_overlaps(edits: Iterable[TextEdit]) -> list[TextEdit]:
    """Drop edits that overlap a later-starting one.

    Sorted by start then end, both descending; an edit survives only if it
    ends at or before the start of the last edit kept. Returned in that same
    descending order, ready to apply.
    """
    kept: list[TextEdit] = []
    claimed_from: float = float("inf")
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        if edit.end <= claimed_from:
            kept.append(edit)
            claimed_from = edit.start
        else:
            logger.info(f"Ignoring overlapping match: {edit.original[:80]}")
    return kept


def widen_deletion(text: str, start: int, end: int) -> tuple[int, int]:
    """Grow a deleted span over the separators that would be left dangling.

    Absorbs <br> runs after and before the span, one newline after it and
    horizontal whitespace before it.
    """
    after = _BR_RUN_AFTER.match(text, end)
    if after:
        end = after.end()

    before = _BR_RUN_BEFORE.search(text[:start])
    if before:
        start = before.start()

    if end < len(text) and text[end] == "\n":
        end += 1
    while start > 0 and text[start - 1] in " \t":
        start -= 1
    return start, end


def apply_edits(text: str, edits: Iterable[TextEdit]) -> str:
    """Apply non-overlapping edits, highest start first."""
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        start, end = edit.start, edit.end
        if edit.is_delete:
            start, end = widen_deletion(text, start, end)
        text = text[:start] + edit.replacement + text[end:]
    return text


def clean_excessive_breaks(text: str) -> str:
    """Drop lines made only of <br> tags unless they sit next to an img/video tag."""
    lines = text.split("\n")
    result: list[str] = []
    for i, line in enumerate(lines):
        if _BR_ONLY_LINE.match(line.strip()):
            prev_line = lines[i - 1] if i > 0 else ""
            next_line = lines[i + 1] if i < len(lines) - 1 else ""
            if not _MEDIA_TAG.search(prev_line) and not _MEDIA_TAG.search(next_line):
                continue
        result.append(line)
    return "\n".join(result)


def rewrite_document(
    text: str,
    references: Iterable[MediaReference],
    outcomes: Mapping[str, ProcessingOutcome],
) -> str:
    """Edits, overlap resolution, application and cleanup in one call."""
    edits = resolve_overlaps(build_edits(references, outcomes))
    return clean_excessive_breaks(apply_edits(text, edits))
