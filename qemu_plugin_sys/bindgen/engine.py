"""The translation capability the generator drives.

An engine turns one in-memory C header into the text of a Python module.
The generator never inspects C itself; swapping the engine (tests use a
fake) changes nothing else in the pipeline.
"""

from __future__ import annotations

from typing import Protocol

from qemu_plugin_sys.models.policy import GenerationPolicy


class TranslationEngine(Protocol):
    """Translate *header_text* (named *header_name*) under *policy*.

    Implementations raise :class:`qemu_plugin_sys.errors.TranslationError`
    when the header is rejected.
    """

    def translate(
        self, header_name: str, header_text: str, policy: GenerationPolicy
    ) -> str: ...
