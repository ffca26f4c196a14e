"""Header-to-ctypes binding generation.

``BindingGenerator`` is the seam the pipeline uses. ``ClangCtypesEngine``
lives in :mod:`qemu_plugin_sys.bindgen.clang_engine` and is only imported
when a generator is built without an explicit engine.
"""

from qemu_plugin_sys.bindgen.adapter import BindingGenerator
from qemu_plugin_sys.bindgen.engine import TranslationEngine
from qemu_plugin_sys.bindgen.writer import FieldSpec, ModuleWriter

__all__ = ["BindingGenerator", "TranslationEngine", "ModuleWriter", "FieldSpec"]
