"""Make ``qemu-plugin.h`` compile without GLib's headers.

The plugin API only touches ``GArray`` and ``GByteArray`` through two fields
each. Pulling in ``<glib.h>`` for that would need pkg-config at generation
time and bloat the bindings with all of GLib, so the include is dropped and
two layout-compatible stand-ins are prepended instead.

This is a textual patch with fixed targets. If GLib ever changes the layout
of ``data``/``len`` in these types, the stand-ins must change with it.
"""

from __future__ import annotations

from qemu_plugin_sys.errors import HeaderPatchError

GLIB_INCLUDE = "#include <glib.h>"

GLIB_STAND_INS: tuple[str, str] = (
    "typedef struct GArray { char *data; unsigned int len; } GArray;",
    "typedef struct GByteArray { unsigned char *data; unsigned int len; } GByteArray;",
)


def patch_header(header_text: str, *, require_include: bool = False) -> str:
    """Remove the GLib include and prepend the stand-in definitions.

    Parameters
    ----------
    header_text:
        Original header contents.
    require_include:
        Raise :class:`HeaderPatchError` when the include line is missing,
        which means the upstream header changed shape.
    """
    if GLIB_INCLUDE not in header_text and require_include:
        raise HeaderPatchError(
            f"Expected {GLIB_INCLUDE!r} in the plugin header; "
            "the upstream header layout has changed"
        )
    body = header_text.replace(GLIB_INCLUDE, "")
    return "\n".join((*GLIB_STAND_INS, body)) + "\n"
