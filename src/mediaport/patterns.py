"""Catalog of the markup shapes that can reference a remote media asset.

Every shape is a :class:`MediaPattern`: it finds its matches, turns each one
into a :class:`MediaReference`, and knows how to rewrite a reference to point
at a new URL. Discovery and rewriting only talk to that interface, so a new
shape is one more entry in :data:`DEFAULT_CATALOG`.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class MediaKind(str, Enum):
    """What kind of asset a URL points at."""

    IMAGE = "image"
    VIDEO = "video"


class PatternKind(str, Enum):
    """Markup shape a reference was found in."""

    LINKED_IMAGE = "linked-image"
    BARE_IMAGE = "bare-image"
    IMG_TAG = "img-tag"
    VIDEO_TAG = "video-tag"
    SOURCE_TAG = "source-tag"


@dataclass(frozen=True)
class MediaReference:
    """One matched span of the document.

    ``url_spans`` are offsets relative to ``start`` of every URL inside the
    span that must change together; the first one is the asset URL.
    """

    url: str
    media_kind: MediaKind
    pattern_kind: PatternKind
    start: int
    end: int
    text: str
    url_spans: tuple[tuple[int, int], ...] = field(default=(), repr=False)

    def rewrite(self, new_url: str) -> str:
        """Return the matched text with all of its URLs replaced by ``new_url``."""
        result = self.text
        # Right to left so earlier offsets stay valid
        for url_start, url_end in sorted(self.url_spans, reverse=True):
            result = result[:url_start] + new_url + result[url_end:]
        return result


class MediaPattern(Protocol):
    """Capability shared by every entry of the pattern catalog."""

    kind: PatternKind
    media_kind: MediaKind

    def finditer(self, text: str) -> Iterator[MediaReference]:
        """Yield a reference for every match in ``text``."""
        ...


# Alt text: no newlines, one level of nested brackets allowed
_ALT = r"(?:[^\[\]\n]|\[[^\[\]\n]*\])*"
_HTTP_URL_IN_PARENS = r"https?://[^\s)]+"
_HTTP_URL_IN_QUOTES = r'https?://[^"]+'
_LINKED_IMAGE_BODY = rf"!\[{_ALT}\]\({_HTTP_URL_IN_PARENS}\)\]\({_HTTP_URL_IN_PARENS}\)"


@dataclass(frozen=True)
class RegexMediaPattern:
    """A media pattern backed by one regular expression.

    ``url_groups`` names the capture groups holding URLs. The first group is
    the asset URL registered for processing; any further groups are rewritten
    alongside it.
    """

    kind: PatternKind
    media_kind: MediaKind
    regex: re.Pattern[str]
    url_groups: tuple[str, ...] = ("url",)

    def finditer(self, text: str) -> Iterator[MediaReference]:
        for match in self.regex.finditer(text):
            start = match.start()
            yield MediaReference(
                url=match.group(self.url_groups[0]),
                media_kind=self.media_kind,
                pattern_kind=self.kind,
                start=start,
                end=match.end(),
                text=match.group(0),
                url_spans=tuple(
                    (match.start(name) - start, match.end(name) - start)
                    for name in self.url_groups
                ),
            )


LINKED_IMAGE = RegexMediaPattern(
    kind=PatternKind.LINKED_IMAGE,
    media_kind=MediaKind.IMAGE,
    regex=re.compile(
        rf"\[!\[{_ALT}\]\((?P<url>{_HTTP_URL_IN_PARENS})\)\]"
        rf"\((?P<link>{_HTTP_URL_IN_PARENS})\)"
    ),
    url_groups=("url", "link"),
)

BARE_IMAGE = RegexMediaPattern(
    kind=PatternKind.BARE_IMAGE,
    media_kind=MediaKind.IMAGE,
    # Inside "[...](target)" only when LINKED_IMAGE cannot take the whole link
    regex=re.compile(
        rf"(?:(?<!\[)|(?!{_LINKED_IMAGE_BODY}))"
        rf"!\[{_ALT}\]\((?P<url>{_HTTP_URL_IN_PARENS})\)"
    ),
)

IMG_TAG = RegexMediaPattern(
    kind=PatternKind.IMG_TAG,
    media_kind=MediaKind.IMAGE,
    regex=re.compile(rf'<img[^>]*?src="(?P<url>{_HTTP_URL_IN_QUOTES})"[^>]*>'),
)

VIDEO_TAG = RegexMediaPattern(
    kind=PatternKind.VIDEO_TAG,
    media_kind=MediaKind.VIDEO,
    regex=re.compile(
        rf'<video[^>]*?src="(?P<url>{_HTTP_URL_IN_QUOTES})"[^>]*>'
        r"(?:[\s\S]*?</video>)?",
        re.IGNORECASE,
    ),
)

SOURCE_TAG = RegexMediaPattern(
    kind=PatternKind.SOURCE_TAG,
    media_kind=MediaKind.VIDEO,
    regex=re.compile(
        rf'<source[^>]*?src="(?P<url>{_HTTP_URL_IN_QUOTES})"[^>]*>',
        re.IGNORECASE,
    ),
)

# Order matters: the first pattern to see a URL decides its media kind
DEFAULT_CATALOG: tuple[MediaPattern, ...] = (
    LINKED_IMAGE,
    BARE_IMAGE,
    IMG_TAG,
    VIDEO_TAG,
    SOURCE_TAG,
)
