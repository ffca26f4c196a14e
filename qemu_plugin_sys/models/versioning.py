"""Plugin ABI revision model."""

from pydantic import BaseModel, ConfigDict, PositiveInt


class Revision(BaseModel):
    """One tracked plugin ABI epoch, pinned to an exact upstream commit.

    The ordinal is embedded in generated filenames (``bindings_v3.py``), so it
    must never be reused or reordered once published.
    """

    model_config = ConfigDict(frozen=True)

    ordinal: PositiveInt
    source_identifier: str
    note: str = ""

    @property
    def short_id(self) -> str:
        return self.source_identifier[:12]
