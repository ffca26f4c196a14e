"""Zip extraction that strips the archive's single root directory.

GitHub archives wrap everything in ``<repo>-<commit>/``; that first component
is dropped so ``qemu-<commit>/include/...`` lands at ``<destination>/include/...``.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath

from qemu_plugin_sys.errors import ArchiveError

logger = logging.getLogger(__name__)


def _sanitized_parts(name: str) -> list[str]:
    """Split an entry name, dropping components that would escape the target."""
    parts = PurePosixPath(name.replace("\\", "/")).parts
    return [p for p in parts if p not in ("", ".", "..", "/") and not p.endswith(":")]


def extract_archive(archive: Path, destination: Path) -> None:
    """Extract *archive* into *destination* minus one leading path component.

    Entries that consist of a single component (the root directory itself)
    are skipped. Parent directories are created as needed.

    Raises
    ------
    ArchiveError
        If *archive* or any of its members cannot be read.
    """
    destination = Path(destination)
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                parts = _sanitized_parts(info.filename)
                if len(parts) <= 1:
                    continue

                out_path = destination.joinpath(*parts[1:])
                if info.is_dir():
                    out_path.mkdir(parents=True, exist_ok=True)
                    continue

                out_path.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, out_path.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        EOFError,
        zlib.error,
        NotImplementedError,
    ) as exc:
        raise ArchiveError(f"Cannot read archive {archive}: {exc}") from exc

    logger.debug("Extracted %s into %s", archive, destination)
