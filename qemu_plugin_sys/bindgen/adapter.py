"""Drive a translation engine with the fixed policy and write the result."""

from __future__ import annotations

import logging
from pathlib import Path

from qemu_plugin_sys.bindgen.engine import TranslationEngine
from qemu_plugin_sys.core.files import atomic_write_text
from qemu_plugin_sys.models.policy import GenerationPolicy

logger = logging.getLogger(__name__)


class BindingGenerator:
    """Generates one bindings module per patched header.

    Parameters
    ----------
    policy:
        Generation policy; identical for every revision.
    engine:
        Translation engine. Defaults to :class:`ClangCtypesEngine`, imported
        lazily so that loading this package does not require libclang.
    """

    def __init__(
        self,
        policy: GenerationPolicy | None = None,
        engine: TranslationEngine | None = None,
    ) -> None:
        self.policy = policy or GenerationPolicy()
        if engine is None:
            from qemu_plugin_sys.bindgen.clang_engine import ClangCtypesEngine

            engine = ClangCtypesEngine()
        self._engine = engine

    def generate(
        self,
        patched_header_text: str,
        header_display_name: str,
        output_path: Path,
    ) -> None:
        """Translate the header and overwrite *output_path* with the module.

        Engine errors propagate unchanged. Nothing is written unless the
        translation succeeds, and the write itself is atomic, so a failure
        leaves any previous file as it was.
        """
        logger.info("Generating bindings for %s to %s", header_display_name, output_path)
        module_text = self._engine.translate(
            header_display_name, patched_header_text, self.policy
        )
        atomic_write_text(Path(output_path), module_text)
