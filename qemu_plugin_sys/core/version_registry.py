"""Ordered registry of the tracked plugin ABI revisions.

Each entry pins the exact QEMU commit a plugin API version was published in.
Higher ordinals are later ABI epochs of the same interface.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from qemu_plugin_sys.errors import RevisionOutOfRangeError
from qemu_plugin_sys.models.versioning import Revision

# (commit, note) in ABI order; ordinals are positions starting at 1.
QEMU_REVISIONS: tuple[tuple[str, str], ...] = (
    ("1332b8dd434674480f0feb2cdf3bbaebb85b4240", "Plugin V1 is up until 8.2.4"),
    ("c25df57ae8f9fe1c72eee2dab37d76d904ac382e", "Plugin V2 is from 9.0.0"),
    ("7de77d37880d7267a491cb32a1b2232017d1e545", "Plugin V3 is from 9.1.0"),
    ("595cd9ce2ec9330882c991a647d5bc2a5640f380", "Plugin V4 is from 9.2.0"),
)


class VersionRegistry:
    """Immutable, 1-indexed list of revisions.

    Parameters
    ----------
    entries:
        Source identifiers, or ``(identifier, note)`` pairs, in ABI order.
    """

    def __init__(self, entries: Sequence[str | tuple[str, str]] = QEMU_REVISIONS) -> None:
        revisions: list[Revision] = []
        for index, entry in enumerate(entries, start=1):
            identifier, note = (entry, "") if isinstance(entry, str) else entry
            revisions.append(
                Revision(ordinal=index, source_identifier=identifier, note=note)
            )
        self._revisions: tuple[Revision, ...] = tuple(revisions)

    def get(self, ordinal: int) -> str:
        """Return the source identifier for *ordinal*."""
        return self.revision(ordinal).source_identifier

    def revision(self, ordinal: int) -> Revision:
        """Return the full revision record for *ordinal*."""
        if not 1 <= ordinal <= len(self._revisions):
            raise RevisionOutOfRangeError(
                f"Revision ordinal {ordinal} is out of range "
                f"(1..{len(self._revisions)})"
            )
        return self._revisions[ordinal - 1]

    @property
    def latest(self) -> Revision:
        return self.revision(len(self._revisions))

    def __len__(self) -> int:
        return len(self._revisions)

    def __iter__(self) -> Iterator[Revision]:
        return iter(self._revisions)

    def __repr__(self) -> str:
        return f"<VersionRegistry revisions={len(self._revisions)}>"
