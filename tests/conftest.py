"""Shared test fixtures for qemu-plugin-sys."""

from __future__ import annotations

import io
import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest

from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.archive_cache import ArchiveCache
from qemu_plugin_sys.core.metadata import resolve_build_layout
from qemu_plugin_sys.core.version_registry import VersionRegistry
from qemu_plugin_sys.models.artifacts import BuildLayout
from qemu_plugin_sys.models.policy import GenerationPolicy

SAMPLE_HEADER = """\
#ifndef QEMU_QEMU_PLUGIN_H
#define QEMU_QEMU_PLUGIN_H

#include <glib.h>
#include <inttypes.h>
#include <stdbool.h>
#include <stddef.h>

typedef uint64_t qemu_plugin_id_t;

#endif /* QEMU_QEMU_PLUGIN_H */
"""

SAMPLE_SYMBOLS = """\
{
  qemu_plugin_bool_parse;
  qemu_plugin_end_code;
};
"""


# ---------------------------------------------------------------------------
# Archive helpers
# ---------------------------------------------------------------------------


def build_zip(entries: dict[str, str | None]) -> bytes:
    """Build a zip in memory; a ``None`` value makes a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            if content is None:
                zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                zf.writestr(name, content)
    return buffer.getvalue()


def qemu_snapshot(
    identifier: str,
    header: str = SAMPLE_HEADER,
    symbols: str = SAMPLE_SYMBOLS,
) -> bytes:
    """A GitHub-style archive of a QEMU tree holding only the plugin files."""
    root = f"qemu-{identifier}/"
    return build_zip(
        {
            root: None,
            f"{root}include/": None,
            f"{root}include/qemu/qemu-plugin.h": header,
            f"{root}plugins/qemu-plugins.symbols": symbols,
        }
    )


class ZipFetcher:
    """In-memory fetcher serving prebuilt archives and recording each URL."""

    def __init__(self, archives: dict[str, bytes] | None = None, default: bytes | None = None) -> None:
        self.archives = archives or {}
        self.default = default
        self.calls: list[str] = []

    def __call__(self, url: str, destination: Path) -> None:
        self.calls.append(url)
        for identifier, payload in self.archives.items():
            if identifier in url:
                destination.write_bytes(payload)
                return
        if self.default is None:
            raise KeyError(url)
        destination.write_bytes(self.default)


class FakeEngine:
    """Translation engine that echoes its input, optionally failing on a marker."""

    def __init__(self, fail_marker: str | None = None) -> None:
        self.fail_marker = fail_marker
        self.calls: list[tuple[str, str]] = []

    def translate(self, header_name: str, header_text: str, policy: GenerationPolicy) -> str:
        self.calls.append((header_name, header_text))
        if self.fail_marker and self.fail_marker in header_text:
            from qemu_plugin_sys.errors import TranslationError

            raise TranslationError(f"{header_name}: rejected")
        return f"# generated from {header_name}\nHEADER_LENGTH = {len(header_text)}\n"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> VersionRegistry:
    """The tracked QEMU revisions."""
    return VersionRegistry()


@pytest.fixture
def snapshot_fetcher(registry: VersionRegistry) -> ZipFetcher:
    """Serves one snapshot per tracked revision, each header tagged with its ordinal."""
    archives = {
        rev.source_identifier: qemu_snapshot(
            rev.source_identifier,
            header=SAMPLE_HEADER + f"/* revision {rev.ordinal} */\n",
        )
        for rev in registry
    }
    return ZipFetcher(archives)


@pytest.fixture
def cache(tmp_path: Path, snapshot_fetcher: ZipFetcher) -> ArchiveCache:
    """An ArchiveCache in a temp scratch directory backed by the zip fetcher."""
    return ArchiveCache(tmp_path / "scratch", fetcher=snapshot_fetcher)


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: lay out a minimal project declaring qemu-plugin-sys."""

    def _factory(
        name: str = "qemu-plugin-sys",
        tool_table: str = "",
        create_source: bool = True,
    ) -> Path:
        root = tmp_path / "project"
        root.mkdir(exist_ok=True)
        (root / "pyproject.toml").write_text(
            f'[project]\nname = "{name}"\nversion = "0.1.0"\n{tool_table}',
            encoding="utf-8",
        )
        if create_source:
            (root / name.replace("-", "_")).mkdir(exist_ok=True)
        return root

    return _factory


@pytest.fixture
def layout(make_project: Callable[..., Path]) -> BuildLayout:
    """A resolved BuildLayout inside a throwaway project."""
    root = make_project()
    return resolve_build_layout("qemu-plugin-sys", start=root)


@pytest.fixture
def settings() -> BindgenSettings:
    """Settings with defaults, ignoring any .env in the working directory."""
    return BindgenSettings(_env_file=None)


# ---------------------------------------------------------------------------
# Factory fixtures: shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_zip() -> Callable[[dict[str, str | None]], bytes]:
    """Factory fixture: build an in-memory zip archive."""
    return build_zip


@pytest.fixture
def make_snapshot() -> Callable[..., bytes]:
    """Factory fixture: build a QEMU snapshot archive."""
    return qemu_snapshot


@pytest.fixture
def make_fetcher() -> Callable[..., ZipFetcher]:
    """Factory fixture: build a ZipFetcher."""
    return ZipFetcher


@pytest.fixture
def make_engine() -> Callable[..., FakeEngine]:
    """Factory fixture: build a FakeEngine."""
    return FakeEngine


@pytest.fixture
def sample_header() -> str:
    """A trimmed plugin header that still includes <glib.h>."""
    return SAMPLE_HEADER


@pytest.fixture
def sample_symbols() -> str:
    """A trimmed plugin symbols manifest."""
    return SAMPLE_SYMBOLS
