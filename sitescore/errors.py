"""Error taxonomy for a scoring run.

FetchError and DecodeError are recovered per document. IndexBuildError and
ConfigError are fatal for the run.
"""

from __future__ import annotations

from typing import Optional


class SiteScoreError(Exception):
    """Base class for every error raised by sitescore."""


class FetchError(SiteScoreError):
    """Network failure, timeout or non-success HTTP status for one URL."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class DecodeError(SiteScoreError):
    """Bytes could not be turned into text under the declared or sniffed encoding."""


class IndexBuildError(SiteScoreError):
    """The corpus cannot be indexed (sentinel collision, duplicate ids)."""


class ConfigError(SiteScoreError):
    """Invalid configuration, raised before any fetching begins."""
