"""Per-host handling rules applied before anything is fetched."""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from urllib.parse import urlparse

from loguru import logger

from mediaport.config import DomainPolicyConfig
from mediaport.discovery import find_prefix_candidates
from mediaport.patterns import MediaKind


class PolicyDecision(Enum):
    """What to do with a URL before fetching it."""

    PROCESS = "process"
    DELETE = "delete"
    IGNORE = "ignore"


def get_host(url: str) -> str | None:
    """Lowercased hostname of ``url``, or None when it cannot be parsed."""
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


class DomainPolicy:
    """Classifies URLs against the prefix, force-delete and ignore tables."""

    def __init__(
        self,
        config: DomainPolicyConfig | None = None,
        extra_ignored: Iterable[str] = (),
    ) -> None:
        config = config or DomainPolicyConfig()
        self.prefix_map = {host.lower(): prefix for host, prefix in config.prefix_map.items()}
        self.delete_video_domains = {host.lower() for host in config.delete_video_domains}
        self.ignore_domains = {host.lower() for host in config.ignore_domains}
        self.ignore_domains.update(host.lower() for host in extra_ignored if host)

    def prefix_for(self, url: str) -> str | None:
        """Proxy prefix configured for the URL's host, if any."""
        host = get_host(url)
        if host is None:
            return None
        return self.prefix_map.get(host)

    def apply_prefix_rewrites(self, text: str) -> str:
        """Route URLs on prefix hosts through their proxy.

        Every literal occurrence of such a URL becomes ``prefix + url``.
        """
        for url in find_prefix_candidates(text):
            prefix = self.prefix_for(url)
            if not prefix:
                continue
            new_url = f"{prefix}{url}"
            # Occurrences that already sit behind the prefix stay as they are
            text = re.sub(
                rf"(?<!{re.escape(prefix)}){re.escape(url)}",
                lambda _match: new_url,
                text,
            )
            logger.debug(f"Prefixed {url[:80]} -> {prefix}")
        return text

    def classify(self, url: str, media_kind: MediaKind) -> PolicyDecision:
        """Decide whether ``url`` is deleted, ignored or processed."""
        host = get_host(url)
        if host is None:
            return PolicyDecision.PROCESS
        if media_kind is MediaKind.VIDEO and host in self.delete_video_domains:
            return PolicyDecision.DELETE
        if host in self.ignore_domains:
            return PolicyDecision.IGNORE
        return PolicyDecision.PROCESS
