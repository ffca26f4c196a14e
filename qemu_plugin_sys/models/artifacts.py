"""Cache entries, build layout and per-run outcome models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from qemu_plugin_sys.models.versioning import Revision


class CachedSource(BaseModel):
    """Where a revision's archive and extracted tree live in the scratch dir.

    Existence implies validity: an archive file that exists is assumed to be a
    complete download, and a tree that exists is assumed fully extracted.
    """

    model_config = ConfigDict(frozen=True)

    revision: Revision
    archive_path: Path
    extracted_tree_path: Path

    @property
    def has_archive(self) -> bool:
        return self.archive_path.is_file()

    @property
    def has_tree(self) -> bool:
        return self.extracted_tree_path.is_dir()


class BuildLayout(BaseModel):
    """Directories resolved from the package's build metadata."""

    model_config = ConfigDict(frozen=True)

    package_root: Path
    output_dir: Path
    scratch_dir: Path


class OutcomeStatus(str, Enum):
    GENERATED = "generated"
    FAILED = "failed"


class RevisionOutcome(BaseModel):
    """What one revision's generation produced."""

    model_config = ConfigDict(frozen=True)

    revision: Revision
    status: OutcomeStatus
    bindings_path: Path | None = None
    exports_path: Path | None = None
    bindings_digest: str = ""  # sha256 of the written module
    error: str | None = None


class RunReport(BaseModel):
    """Ordered outcomes of a ``run_all`` invocation."""

    model_config = ConfigDict(frozen=True)

    outcomes: list[RevisionOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.status is OutcomeStatus.GENERATED for o in self.outcomes)

    @property
    def failed(self) -> list[RevisionOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def generated(self) -> list[RevisionOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.GENERATED]
