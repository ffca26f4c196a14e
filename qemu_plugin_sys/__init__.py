"""qemu-plugin-sys: ctypes bindings for every QEMU TCG plugin API revision.

Each plugin ABI revision is pinned to the QEMU commit that published it.
``qemu-plugin-sys generate`` downloads those snapshots, makes
``qemu-plugin.h`` self-contained, and writes one ``bindings_v{N}.py`` module
and one ``qemu_plugin_api_v{N}.def`` export table per revision into this
package.

At runtime pick a revision with :func:`load_bindings`::

    bindings = qemu_plugin_sys.load_bindings(4)
    lib = bindings.bind(ctypes.CDLL(None))
"""

from __future__ import annotations

import importlib
from pathlib import Path
from types import ModuleType

from qemu_plugin_sys.config import BindgenSettings
from qemu_plugin_sys.core.version_registry import QEMU_REVISIONS, VersionRegistry
from qemu_plugin_sys.errors import BindgenError

__version__ = "0.1.0"
__description__ = "Multi-version ctypes bindings for the QEMU plugin API"

API_VERSIONS: tuple[int, ...] = tuple(range(1, len(QEMU_REVISIONS) + 1))


def _selected(api_version: int | None) -> int:
    if api_version is None:
        api_version = BindgenSettings().api_version
    # Raises RevisionOutOfRangeError for unknown versions.
    return VersionRegistry().revision(api_version).ordinal


def load_bindings(api_version: int | None = None) -> ModuleType:
    """Import the generated bindings module for *api_version*.

    Defaults to ``QEMU_PLUGIN_SYS_API_VERSION`` (4 if unset). Raises
    ``ModuleNotFoundError`` if the bindings have not been generated yet.
    """
    ordinal = _selected(api_version)
    module_name = BindgenSettings().bindings_name(ordinal).removesuffix(".py")
    return importlib.import_module(f"{__name__}.{module_name}")


def export_table_path(api_version: int | None = None) -> Path:
    """Return the ``.def`` export table shipped for *api_version*."""
    ordinal = _selected(api_version)
    path = Path(__file__).resolve().parent / BindgenSettings().exports_name(ordinal)
    if not path.is_file():
        raise FileNotFoundError(f"Export table {path.name} has not been generated")
    return path


__all__ = [
    "API_VERSIONS",
    "BindgenError",
    "export_table_path",
    "load_bindings",
    "__version__",
]
