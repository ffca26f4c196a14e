"""End-to-end integration tests: every revision through fetch, patch, generate, export.

The network and the translation engine are replaced by in-memory fakes; the
cache, extraction, patching, export synthesis and atomic writes are real.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.archive_cache import ArchiveCache
from qemu_plugin_sys.core.hasher import file_digest
from qemu_plugin_sys.core.header_patcher import GLIB_INCLUDE, GLIB_STAND_INS
from qemu_plugin_sys.core.pipeline import Pipeline
from qemu_plugin_sys.errors import HeaderPatchError, ResolutionError, TranslationError
from qemu_plugin_sys.models.artifacts import BuildLayout, OutcomeStatus


class TestFullPipeline:
    """Default all-or-nothing runs."""

    @pytest.fixture
    def pipeline(self, settings, layout, snapshot_fetcher, make_engine) -> Pipeline:
        return Pipeline(settings, layout=layout, fetcher=snapshot_fetcher, engine=make_engine())

    def test_generates_four_bindings_and_four_tables(self, pipeline: Pipeline, layout: BuildLayout):
        report = pipeline.run_all()
        assert report.ok
        assert [o.revision.ordinal for o in report.outcomes] == [1, 2, 3, 4]
        names = sorted(p.name for p in layout.output_dir.iterdir())
        assert names == sorted(
            [f"bindings_v{n}.py" for n in range(1, 5)]
            + [f"qemu_plugin_api_v{n}.def" for n in range(1, 5)]
        )

    def test_export_tables_have_header(self, pipeline: Pipeline, layout: BuildLayout):
        pipeline.run_all()
        for n in range(1, 5):
            text = (layout.output_dir / f"qemu_plugin_api_v{n}.def").read_text()
            assert text.startswith("EXPORTS\n")
            assert "{" not in text and ";" not in text

    def test_engine_receives_patched_header(self, settings, layout, snapshot_fetcher, make_engine):
        engine = make_engine()
        Pipeline(settings, layout=layout, fetcher=snapshot_fetcher, engine=engine).run_all()
        assert len(engine.calls) == 4
        for ordinal, (name, text) in enumerate(engine.calls, start=1):
            assert name == "qemu-plugin.h"
            assert text.startswith("\n".join(GLIB_STAND_INS) + "\n")
            assert GLIB_INCLUDE not in text
            assert f"/* revision {ordinal} */" in text

    def test_outcomes_record_paths_and_digests(self, pipeline: Pipeline):
        report = pipeline.run_all()
        for outcome in report.outcomes:
            assert outcome.status is OutcomeStatus.GENERATED
            assert outcome.bindings_path.name == f"bindings_v{outcome.revision.ordinal}.py"
            assert outcome.bindings_digest == file_digest(outcome.bindings_path)

    def test_scratch_holds_archives_and_trees(self, pipeline: Pipeline, layout: BuildLayout):
        pipeline.run_all()
        for revision in pipeline.registry:
            assert (layout.scratch_dir / f"qemu-{revision.source_identifier}.zip").is_file()
            assert (layout.scratch_dir / f"qemu-{revision.source_identifier}").is_dir()

    def test_second_run_reuses_cache(self, pipeline: Pipeline, snapshot_fetcher):
        pipeline.run_all()
        pipeline.run_all()
        assert len(snapshot_fetcher.calls) == 4

    def test_refresh_refetches_everything(self, pipeline: Pipeline, snapshot_fetcher):
        pipeline.run_all()
        pipeline.run_all(refresh=True)
        assert len(snapshot_fetcher.calls) == 8

    def test_failure_aborts_remaining_revisions(self, settings, layout, snapshot_fetcher, make_engine):
        engine = make_engine(fail_marker="/* revision 2 */")
        pipeline = Pipeline(settings, layout=layout, fetcher=snapshot_fetcher, engine=engine)
        with pytest.raises(TranslationError):
            pipeline.run_all()
        out = layout.output_dir
        assert (out / "bindings_v1.py").is_file()
        assert (out / "qemu_plugin_api_v1.def").is_file()
        assert not (out / "bindings_v2.py").exists()
        assert not (out / "qemu_plugin_api_v2.def").exists()
        assert not (out / "bindings_v3.py").exists()
        assert len(engine.calls) == 2
        assert len(snapshot_fetcher.calls) == 2

    def test_missing_include_fails_in_strict_mode(self, settings, layout, make_fetcher, make_snapshot, make_engine):
        fetcher = make_fetcher(default=make_snapshot("any", header="int x;\n"))
        pipeline = Pipeline(settings, layout=layout, fetcher=fetcher, engine=make_engine())
        with pytest.raises(HeaderPatchError):
            pipeline.run_all()

    def test_missing_include_tolerated_when_not_strict(self, layout, make_fetcher, make_snapshot, make_engine):
        settings = BindgenSettings(_env_file=None, strict_header_patch=False)
        fetcher = make_fetcher(default=make_snapshot("any", header="int x;\n"))
        report = Pipeline(settings, layout=layout, fetcher=fetcher, engine=make_engine()).run_all()
        assert report.ok

    def test_missing_symbols_manifest_is_os_error(self, settings, layout, make_fetcher, make_zip, make_engine):
        archive = make_zip({"qemu-x/include/qemu/qemu-plugin.h": "#include <glib.h>\n"})
        pipeline = Pipeline(settings, layout=layout, fetcher=make_fetcher(default=archive), engine=make_engine())
        with pytest.raises(FileNotFoundError):
            pipeline.run_all()

    def test_layout_resolution_failure_happens_first(self, settings, tmp_path: Path, snapshot_fetcher, make_engine, monkeypatch):
        import qemu_plugin_sys.core.pipeline as pipeline_module

        def unresolvable(package_name, cache_dir=None):
            raise ResolutionError("Failed to find package")

        monkeypatch.setattr(pipeline_module, "resolve_build_layout", unresolvable)
        pipeline = Pipeline(settings, fetcher=snapshot_fetcher, engine=make_engine())
        with pytest.raises(ResolutionError):
            pipeline.run_all()
        assert snapshot_fetcher.calls == []

    def test_injected_cache_is_used(self, settings, layout, tmp_path: Path, snapshot_fetcher, make_engine):
        cache = ArchiveCache(tmp_path / "other-scratch", fetcher=snapshot_fetcher)
        Pipeline(settings, layout=layout, cache=cache, engine=make_engine()).run_all()
        assert len(list((tmp_path / "other-scratch").glob("qemu-*.zip"))) == 4


class TestKeepGoing:
    """Partial-success runs collect failures instead of aborting."""

    def test_failed_revision_recorded_and_rest_generated(self, settings, layout, snapshot_fetcher, make_engine):
        engine = make_engine(fail_marker="/* revision 2 */")
        pipeline = Pipeline(settings, layout=layout, fetcher=snapshot_fetcher, engine=engine)
        report = pipeline.run_all(keep_going=True)
        assert report.ok is False
        assert [o.revision.ordinal for o in report.failed] == [2]
        assert "TranslationError" in report.failed[0].error
        assert [o.revision.ordinal for o in report.generated] == [1, 3, 4]
        assert not (layout.output_dir / "bindings_v2.py").exists()
        assert (layout.output_dir / "bindings_v4.py").is_file()

    def test_setting_enables_keep_going(self, layout, snapshot_fetcher, make_engine):
        settings = BindgenSettings(_env_file=None, keep_going=True)
        engine = make_engine(fail_marker="/* revision 1 */")
        report = Pipeline(settings, layout=layout, fetcher=snapshot_fetcher, engine=engine).run_all()
        assert len(report.failed) == 1
        assert len(report.generated) == 3
