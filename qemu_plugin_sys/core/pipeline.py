"""Multi-revision generation driver.

For every revision in the registry, in ordinal order::

    ensure_source -> patch_header -> generate bindings_v{N}.py
                  -> synthesize qemu_plugin_api_v{N}.def

The export table is read from the same extracted tree, not from the patched
header. Revisions run strictly one after another.

By default the run is all-or-nothing: the first failure propagates and later
revisions are not attempted. With ``keep_going`` each failure is recorded in
the :class:`RunReport` instead and the loop continues; callers decide what a
non-``ok`` report means.
"""

from __future__ import annotations

import logging

from qemu_plugin_sys.bindgen.adapter import BindingGenerator
from qemu_plugin_sys.bindgen.engine import TranslationEngine
from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.archive_cache import ArchiveCache
from qemu_plugin_sys.core.export_table import synthesize_exports
from qemu_plugin_sys.core.fetch import Fetcher, HttpFetcher
from qemu_plugin_sys.core.hasher import file_digest
from qemu_plugin_sys.core.header_patcher import patch_header
from qemu_plugin_sys.core.metadata import resolve_build_layout
from qemu_plugin_sys.core.version_registry import VersionRegistry
from qemu_plugin_sys.models.artifacts import (
    BuildLayout,
    OutcomeStatus,
    RevisionOutcome,
    RunReport,
)
from qemu_plugin_sys.models.policy import DEFAULT_CLANG_ARGS, GenerationPolicy
from qemu_plugin_sys.models.versioning import Revision

logger = logging.getLogger(__name__)


class Pipeline:
    """Generates bindings and export tables for every tracked revision.

    Collaborators are built from *settings* unless passed in. Layout
    resolution happens at the start of :meth:`run_all`, so a missing package
    fails before any revision is touched.

    Parameters
    ----------
    settings:
        Run settings. Uses environment defaults if not provided.
    registry:
        Revisions to generate. Defaults to the tracked QEMU commits.
    layout:
        Pre-resolved output and scratch directories.
    cache:
        Archive cache; built over ``layout.scratch_dir`` if omitted.
    generator:
        Binding generator; built from *policy* and *engine* if omitted.
    fetcher:
        Download callable for the default cache.
    engine:
        Translation engine for the default generator.
    policy:
        Generation policy for the default generator.
    """

    def __init__(
        self,
        settings: BindgenSettings | None = None,
        *,
        registry: VersionRegistry | None = None,
        layout: BuildLayout | None = None,
        cache: ArchiveCache | None = None,
        generator: BindingGenerator | None = None,
        fetcher: Fetcher | None = None,
        engine: TranslationEngine | None = None,
        policy: GenerationPolicy | None = None,
    ) -> None:
        self.settings = settings or BindgenSettings()
        self.registry = registry or VersionRegistry()
        self._layout = layout
        self._cache = cache
        self._generator = generator
        self._fetcher = fetcher
        self._engine = engine
        self._policy = policy

    # ------------------------------------------------------------------
    # Lazily built collaborators
    # ------------------------------------------------------------------

    @property
    def layout(self) -> BuildLayout:
        if self._layout is None:
            self._layout = resolve_build_layout(
                self.settings.package_name, cache_dir=self.settings.cache_dir
            )
        return self._layout

    @property
    def cache(self) -> ArchiveCache:
        if self._cache is None:
            self._cache = ArchiveCache(
                self.layout.scratch_dir,
                self.settings.archive_url_template,
                self._fetcher or HttpFetcher(timeout=self.settings.request_timeout),
            )
        return self._cache

    @property
    def generator(self) -> BindingGenerator:
        if self._generator is None:
            policy = self._policy or GenerationPolicy(
                clang_args=(*DEFAULT_CLANG_ARGS, *self.settings.extra_clang_args)
            )
            self._generator = BindingGenerator(policy, self._engine)
        return self._generator

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_all(self, *, refresh: bool = False, keep_going: bool | None = None) -> RunReport:
        """Generate every revision, in ordinal order.

        Parameters
        ----------
        refresh:
            Evict each revision's cached source before using it.
        keep_going:
            Record failures and continue; defaults to ``settings.keep_going``.
        """
        if keep_going is None:
            keep_going = self.settings.keep_going

        layout = self.layout
        logger.info(
            "Generating %d revision(s) into %s (scratch=%s)",
            len(self.registry),
            layout.output_dir,
            layout.scratch_dir,
        )
        layout.scratch_dir.mkdir(parents=True, exist_ok=True)

        outcomes: list[RevisionOutcome] = []
        for revision in self.registry:
            try:
                outcomes.append(self.run_revision(revision, refresh=refresh))
            except Exception as exc:
                if not keep_going:
                    raise
                logger.error("Revision %d failed: %s", revision.ordinal, exc)
                outcomes.append(
                    RevisionOutcome(
                        revision=revision,
                        status=OutcomeStatus.FAILED,
                        error=f"{type(exc).__name__}: {exc}",
                    )
                )
        return RunReport(outcomes=outcomes)

    def run_revision(self, revision: Revision, *, refresh: bool = False) -> RevisionOutcome:
        """Generate the bindings module and export table for one revision."""
        layout = self.layout
        logger.info(
            "Generating bindings with scratch=%s out=%s version=%d",
            layout.scratch_dir,
            layout.output_dir,
            revision.ordinal,
        )
        source_dir = self.cache.ensure_source(revision, refresh=refresh)

        header_path = source_dir / self.settings.header_path
        header_text = header_path.read_text(encoding="utf-8")
        patched = patch_header(
            header_text, require_include=self.settings.strict_header_patch
        )

        bindings_path = layout.output_dir / self.settings.bindings_name(revision.ordinal)
        self.generator.generate(patched, header_path.name, bindings_path)

        exports_path = layout.output_dir / self.settings.exports_name(revision.ordinal)
        synthesize_exports(source_dir / self.settings.symbols_path, exports_path)

        return RevisionOutcome(
            revision=revision,
            status=OutcomeStatus.GENERATED,
            bindings_path=bindings_path,
            exports_path=exports_path,
            bindings_digest=file_digest(bindings_path),
        )

