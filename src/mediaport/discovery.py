"""URL discovery over a markdown/HTML document."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from mediaport.patterns import DEFAULT_CATALOG, MediaKind, MediaPattern, MediaReference

# Loose scan used for prefix rewriting: any markdown link target or src attribute
_LOOSE_URL_PATTERN = re.compile(r"\]\((https?://[^\s)]+)\)|src=\"(https?://[^\"]+)\"")


@dataclass
class DiscoveryResult:
    """Everything discovery found in one document."""

    # url -> kind, in first-seen order
    urls: dict[str, MediaKind] = field(default_factory=dict)
    # every matched span, duplicates and overlaps included
    references: list[MediaReference] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.urls)


def discover_media(
    text: str,
    catalog: Iterable[MediaPattern] = DEFAULT_CATALOG,
) -> DiscoveryResult:
    """Run every catalog pattern over ``text``.

    Args:
        text: Document to scan
        catalog: Patterns to run, in priority order

    Returns:
        DiscoveryResult with unique URLs and all matched spans
    """
    result = DiscoveryResult()
    for pattern in catalog:
        for reference in pattern.finditer(text):
            result.references.append(reference)
            result.urls.setdefault(reference.url, reference.media_kind)
    return result


def find_prefix_candidates(text: str) -> list[str]:
    """Collect unique absolute URLs used as link targets or src attributes."""
    seen: dict[str, None] = {}
    for match in _LOOSE_URL_PATTERN.finditer(text):
        url = match.group(1) or match.group(2)
        if url:
            seen.setdefault(url, None)
    return list(seen)
