"""Error kinds raised by the source store and record parser."""

from __future__ import annotations


class SourceUnavailable(Exception):
    """A whole dataset could not be fetched or read as delimited text."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Source {source!r} is unavailable: {reason}")
        self.source = source
        self.reason = reason
