"""Generation policy shared by every tracked revision."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from qemu_plugin_sys.models.denylist import LIBC_DENYLIST

# The consumer defines these itself when it builds a plugin.
INSTALL_ENTRY_POINT_FUNCTIONS: frozenset[str] = frozenset({"qemu_plugin_install"})
INSTALL_ENTRY_POINT_ITEMS: frozenset[str] = frozenset({"qemu_plugin_version"})

DEFAULT_CLANG_ARGS: tuple[str, ...] = (
    "-fretain-comments-from-system-headers",
    "-fparse-all-comments",
    "-Wno-everything",
)


class GenerationPolicy(BaseModel):
    """How the translation engine shapes the generated ``ctypes`` module.

    Blocklist entries are regular expressions matched against the whole name,
    so plain identifiers match exactly.

    Attributes
    ----------
    field_visibility:
        ``public`` keeps C field names as-is; ``private`` prefixes them with
        an underscore.
    enum_style:
        ``tagged`` emits ``enum.IntEnum`` classes, ``flags`` emits
        ``enum.IntFlag`` and ``constants`` emits module-level integers.
    alias_style:
        ``alias`` binds typedef names to their target; ``newtype`` emits a
        subclass of the target.
    macro_constant_type:
        ctypes integer family recorded in ``CONSTANT_CTYPES`` for
        non-negative macro constants.
    union_style:
        ``wrapper`` emits ``ctypes.Union`` classes; ``opaque`` emits byte
        blobs of the union's size.
    derives:
        Dunder methods added to every record: ``repr``, ``eq``, ``hash``.
    layout_tests:
        Emit ``sizeof``/``alignment`` assertions after each record. Off by
        default because the layouts are not checked against a real target.
    """

    model_config = ConfigDict(frozen=True)

    field_visibility: Literal["public", "private"] = "public"
    enum_style: Literal["tagged", "flags", "constants"] = "tagged"
    alias_style: Literal["alias", "newtype"] = "alias"
    macro_constant_type: Literal["unsigned", "signed"] = "unsigned"
    union_style: Literal["wrapper", "opaque"] = "wrapper"
    derives: frozenset[Literal["repr", "eq", "hash"]] = frozenset({"repr", "eq", "hash"})
    generate_comments: bool = True
    layout_tests: bool = False
    clang_args: tuple[str, ...] = DEFAULT_CLANG_ARGS
    blocklist_functions: frozenset[str] = INSTALL_ENTRY_POINT_FUNCTIONS
    blocklist_items: frozenset[str] = Field(
        default_factory=lambda: INSTALL_ENTRY_POINT_ITEMS | LIBC_DENYLIST
    )
