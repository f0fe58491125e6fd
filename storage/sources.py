"""Fetch raw dataset text from local files or HTTP endpoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from models.errors import SourceUnavailable

logger = logging.getLogger(__name__)

_HTTP_SCHEMES = ("http://", "https://")


def decode_source(data: bytes) -> str:
    """Decode exported CSV bytes, tolerating stray non-UTF-8 unit symbols."""
    return data.decode("utf-8-sig", errors="replace")


class SourceStore:
    """Reads dataset documents by location: a filesystem path or a URL.

    Relative paths resolve against ``root_path`` when one is given.
    """

    def __init__(
        self,
        root_path: Optional[Path] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.root_path = root_path
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def read_text(self, location: str) -> str:
        if location.startswith(_HTTP_SCHEMES):
            data = self._fetch(location)
        else:
            data = self._read_file(location)
        logger.info("Fetched %d bytes", len(data), extra={"source": location})
        return decode_source(data)

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def _read_file(self, location: str) -> bytes:
        path = Path(location)
        if self.root_path is not None and not path.is_absolute():
            path = self.root_path / path
        try:
            return path.read_bytes()
        except OSError as exc:
            raise SourceUnavailable(location, exc.strerror or str(exc)) from exc

    def _fetch(self, url: str) -> bytes:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailable(
                url, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailable(url, str(exc) or type(exc).__name__) from exc
        return response.content
