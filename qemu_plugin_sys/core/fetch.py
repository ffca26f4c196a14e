"""Downloading source archives over HTTP."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import httpx

from qemu_plugin_sys.errors import TransferError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1 << 16


class Fetcher(Protocol):
    """Writes the resource at *url* to *destination*, or raises."""

    def __call__(self, url: str, destination: Path) -> None: ...


class HttpFetcher:
    """Blocking ``httpx`` downloader.

    The body is streamed into ``<destination>.part`` and renamed into place
    once complete, so an interrupted download never satisfies the cache's
    existence check. There is no resume support; a failed transfer starts
    over on the next run.

    Parameters
    ----------
    timeout:
        Per-operation timeout in seconds.
    client:
        Optional pre-configured client (tests inject a ``MockTransport``).
    """

    def __init__(self, timeout: float = 120.0, client: httpx.Client | None = None) -> None:
        self._timeout = timeout
        self._client = client

    def __call__(self, url: str, destination: Path) -> None:
        destination = Path(destination)
        partial = destination.with_name(destination.name + ".part")
        client = self._client or httpx.Client(
            timeout=self._timeout, follow_redirects=True
        )
        try:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                with partial.open("wb") as handle:
                    for chunk in response.iter_bytes(_CHUNK_SIZE):
                        handle.write(chunk)
        except httpx.HTTPError as exc:
            partial.unlink(missing_ok=True)
            raise TransferError(f"Failed to download {url}: {exc}") from exc
        except OSError:
            partial.unlink(missing_ok=True)
            raise
        finally:
            if self._client is None:
                client.close()

        partial.replace(destination)
        logger.debug("Downloaded %s to %s", url, destination)
