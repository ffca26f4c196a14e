"""Data models for binding generation, all pydantic v2 and frozen."""

from qemu_plugin_sys.models.artifacts import (
    BuildLayout,
    CachedSource,
    OutcomeStatus,
    RevisionOutcome,
    RunReport,
)
from qemu_plugin_sys.models.denylist import LIBC_DENYLIST
from qemu_plugin_sys.models.policy import GenerationPolicy
from qemu_plugin_sys.models.versioning import Revision

__all__ = [
    # versioning
    "Revision",
    # artifacts
    "BuildLayout",
    "CachedSource",
    "OutcomeStatus",
    "RevisionOutcome",
    "RunReport",
    # policy
    "GenerationPolicy",
    "LIBC_DENYLIST",
]
