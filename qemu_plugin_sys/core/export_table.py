"""Windows module-definition export tables.

``plugins/qemu-plugins.symbols`` lists the API as ``{ sym; sym; ... };``.
Dropping the braces and semicolons leaves one name per line, which is what a
``.def`` file's ``EXPORTS`` section expects for delay-loaded linking.
"""

from __future__ import annotations

import logging
from pathlib import Path

from qemu_plugin_sys.core.files import atomic_write_text

logger = logging.getLogger(__name__)

EXPORTS_HEADER = "EXPORTS"

_STRIPPED = str.maketrans("", "", "{};")


def render_export_table(manifest_text: str) -> str:
    """Delete every ``{``, ``}`` and ``;`` and prepend the section header.

    Everything else, line breaks and whitespace included, is preserved. The
    result is not validated.
    """
    return f"{EXPORTS_HEADER}\n{manifest_text.translate(_STRIPPED)}"


def synthesize_exports(manifest_path: Path, output_path: Path) -> None:
    """Write the export table for *manifest_path* to *output_path*."""
    logger.info("Generating export table from %s to %s", manifest_path, output_path)
    text = Path(manifest_path).read_text(encoding="utf-8")
    atomic_write_text(Path(output_path), render_export_table(text))
