"""Fetch-or-reuse cache of upstream source snapshots.

Layout under the scratch directory, per revision::

    {scratch}/{prefix}-{source_identifier}.zip   downloaded archive
    {scratch}/{prefix}-{source_identifier}/      extracted tree

Existence implies validity: neither entry is re-verified once present. The
download and the extraction both stage into temporary names and are renamed
into place only when complete, so a run killed half-way leaves nothing that
looks valid. A corrupt archive from some other source is not detected; evict
it with ``evict()`` (``qemu-plugin-sys clean``) or pass ``refresh=True``.

Separate processes sharing one scratch directory are not coordinated.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from qemu_plugin_sys.core.extract import extract_archive
from qemu_plugin_sys.core.fetch import Fetcher, HttpFetcher
from qemu_plugin_sys.models.artifacts import CachedSource
from qemu_plugin_sys.models.versioning import Revision

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "https://github.com/qemu/qemu/archive/{revision}.zip"


class ArchiveCache:
    """Keeps one archive and one extracted tree per revision.

    Parameters
    ----------
    scratch_dir:
        Directory holding archives and trees. Created if missing.
    url_template:
        ``str.format`` template with a ``{revision}`` field.
    fetcher:
        Download callable; defaults to :class:`HttpFetcher`.
    prefix:
        Name prefix for cache entries.
    """

    def __init__(
        self,
        scratch_dir: Path,
        url_template: str = DEFAULT_URL_TEMPLATE,
        fetcher: Fetcher | None = None,
        *,
        prefix: str = "qemu",
    ) -> None:
        self._scratch = Path(scratch_dir)
        self._url_template = url_template
        self._fetcher: Fetcher = fetcher or HttpFetcher()
        self._prefix = prefix

    @property
    def scratch_dir(self) -> Path:
        return self._scratch

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def locate(self, revision: Revision) -> CachedSource:
        """Compute the cache paths for *revision* without touching the disk."""
        stem = f"{self._prefix}-{revision.source_identifier}"
        return CachedSource(
            revision=revision,
            archive_path=self._scratch / f"{stem}.zip",
            extracted_tree_path=self._scratch / stem,
        )

    def archive_url(self, revision: Revision) -> str:
        return self._url_template.format(revision=revision.source_identifier)

    # ------------------------------------------------------------------
    # Fetch and extract
    # ------------------------------------------------------------------

    def ensure_source(self, revision: Revision, *, refresh: bool = False) -> Path:
        """Return the extracted tree for *revision*, fetching and extracting as needed."""
        if refresh:
            self.evict(revision)

        entry = self.locate(revision)
        self._scratch.mkdir(parents=True, exist_ok=True)

        if not entry.archive_path.exists():
            url = self.archive_url(revision)
            logger.info("Downloading %s to %s", url, entry.archive_path)
            self._fetcher(url, entry.archive_path)

        if not entry.extracted_tree_path.exists():
            logger.info(
                "Extracting %s to %s", entry.archive_path, entry.extracted_tree_path
            )
            staging = entry.extracted_tree_path.with_name(
                entry.extracted_tree_path.name + ".partial"
            )
            if staging.exists():
                shutil.rmtree(staging)
            try:
                extract_archive(entry.archive_path, staging)
            except BaseException:
                shutil.rmtree(staging, ignore_errors=True)
                raise
            staging.rename(entry.extracted_tree_path)

        return entry.extracted_tree_path

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def evict(self, revision: Revision) -> bool:
        """Delete the archive and tree for *revision*. Returns True if anything was removed."""
        entry = self.locate(revision)
        removed = False
        if entry.archive_path.exists():
            entry.archive_path.unlink()
            removed = True
        if entry.extracted_tree_path.exists():
            shutil.rmtree(entry.extracted_tree_path)
            removed = True
        if removed:
            logger.info("Evicted cached source for revision %d", revision.ordinal)
        return removed
