"""Error taxonomy for binding generation.

Nothing here is retried or downgraded to a warning. By default the first
failure stops the run; with ``keep_going`` the pipeline records it per
revision instead. The CLI prints the message and exits non-zero either way.
"""

from __future__ import annotations


class BindgenError(RuntimeError):
    """Base class for all generation failures."""


class ResolutionError(BindgenError):
    """Raised when the package root or its source directory cannot be located."""


class RevisionOutOfRangeError(BindgenError, IndexError):
    """Raised when an ordinal falls outside the version registry."""


class TransferError(BindgenError):
    """Raised when a source archive cannot be downloaded."""


class ArchiveError(BindgenError):
    """Raised when a cached archive is unreadable or not a valid zip file.

    A partial download that survived a previous run also lands here. The only
    remedy is evicting the cache entry (``qemu-plugin-sys clean``).
    """


class HeaderPatchError(BindgenError):
    """Raised when the plugin header no longer has the expected shape."""


class TranslationError(BindgenError):
    """Raised when the translation engine rejects a header."""
