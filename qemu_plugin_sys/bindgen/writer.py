"""Text emission for generated ``ctypes`` modules.

``ModuleWriter`` knows nothing about libclang. The engine feeds it resolved
declarations (names plus ctypes expressions as source text) in header order,
and ``render()`` lays them out so that every name is bound before use:

    constants -> record stubs -> enums/records/aliases -> prototype tables
"""

from __future__ import annotations

import re
from typing import NamedTuple

from qemu_plugin_sys.models.policy import GenerationPolicy

_INDENT = "    "

_DERIVE_HELPERS = '''\
def _field_values(record):
    values = []
    for field in getattr(type(record), "_fields_", ()):
        value = getattr(record, field[0])
        if isinstance(value, ctypes.Array):
            value = tuple(value)
        elif isinstance(value, (ctypes._Pointer, ctypes._CFuncPtr)):
            value = ctypes.cast(value, ctypes.c_void_p).value
        values.append(value)
    return tuple(values)
'''

_DERIVE_METHODS: dict[str, str] = {
    "repr": '''\
    def __repr__(self):
        names = [field[0] for field in getattr(type(self), "_fields_", ())]
        pairs = ", ".join(
            f"{name}={value!r}" for name, value in zip(names, _field_values(self))
        )
        return f"{type(self).__name__}({pairs})"
''',
    "eq": '''\
    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return _field_values(self) == _field_values(other)
''',
    "hash": '''\
    def __hash__(self):
        return hash((type(self).__name__, _field_values(self)))
''',
}

_BINDING_HELPERS = '''\
def bind(library):
    """Attach ``PROTOTYPES`` to the functions of a loaded ``ctypes.CDLL``.

    Inside a plugin the host process provides the symbols, so *library* is
    usually ``ctypes.CDLL(None)``.
    """
    for name, (restype, argtypes) in PROTOTYPES.items():
        function = getattr(library, name)
        function.restype = restype
        function.argtypes = argtypes
    return library


def variable(library, name):
    """Return the global *name* from *library* as its ctypes type."""
    return VARIABLES[name].in_dll(library, name)
'''


class FieldSpec(NamedTuple):
    name: str
    ctype: str
    bits: int | None = None


def comment_lines(raw: str | None) -> list[str]:
    """Turn a C comment into ``#`` lines, dropping the comment markers."""
    if not raw:
        return []
    lines: list[str] = []
    for line in raw.splitlines():
        text = line.strip()
        text = re.sub(r"^/\*+!?|\*+/$", "", text).strip()
        text = re.sub(r"^(//+!?|\*+)", "", text).rstrip()
        if text.startswith(" "):
            text = text[1:]
        lines.append(f"# {text}".rstrip())
    while lines and lines[0] == "#":
        lines.pop(0)
    while lines and lines[-1] == "#":
        lines.pop()
    return lines


def constant_ctype(value: int, policy: GenerationPolicy) -> str:
    """Pick the ctypes integer type a macro constant is recorded with."""
    if value >= 0 and policy.macro_constant_type == "unsigned":
        return "ctypes.c_uint32" if value <= 0xFFFFFFFF else "ctypes.c_uint64"
    if -(1 << 31) <= value < (1 << 31):
        return "ctypes.c_int32"
    return "ctypes.c_int64"


class ModuleWriter:
    """Accumulates declarations and renders a self-contained Python module.

    Parameters
    ----------
    header_name:
        Header the module was generated from, quoted in the banner.
    policy:
        Controls naming, enum representation, derives and layout checks.
    """

    def __init__(self, header_name: str, policy: GenerationPolicy) -> None:
        self._header_name = header_name
        self._policy = policy
        self._constants: list[str] = []
        self._constant_types: list[tuple[str, str]] = []
        self._stubs: list[str] = []
        self._declared: set[str] = set()
        self._body: list[str] = []
        self._prototypes: list[str] = []
        self._variadic: list[str] = []
        self._variables: list[str] = []

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def field_name(self, name: str) -> str:
        if self._policy.field_visibility == "private" and not name.startswith("_"):
            return f"_{name}"
        return name

    def is_declared(self, name: str) -> bool:
        return name in self._declared

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _comments(self, raw: str | None, indent: str = "") -> list[str]:
        if not self._policy.generate_comments:
            return []
        return [f"{indent}{line}" for line in comment_lines(raw)]

    def add_constant(self, name: str, value: int, comment: str | None = None) -> None:
        self._constants.extend(self._comments(comment))
        self._constants.append(f"{name} = {value}")
        self._constant_types.append((name, constant_ctype(value, self._policy)))

    def add_enum(
        self,
        name: str | None,
        members: list[tuple[str, int]],
        comment: str | None = None,
    ) -> None:
        """Emit an enum per ``enum_style``; anonymous enums become constants."""
        lines = self._comments(comment)
        if name is None or self._policy.enum_style == "constants":
            lines.extend(f"{member} = {value}" for member, value in members)
        else:
            base = "enum.IntFlag" if self._policy.enum_style == "flags" else "enum.IntEnum"
            lines.append(f"class {name}({base}):")
            if members:
                lines.extend(f"{_INDENT}{member} = {value}" for member, value in members)
            else:
                lines.append(f"{_INDENT}pass")
        self._body.append("\n".join(lines))

    def _class_statement(self, name: str, is_union: bool) -> str:
        base = "ctypes.Union" if is_union else "ctypes.Structure"
        if self._policy.derives:
            base = f"_Record, {base}"
        return f"class {name}({base}):\n{_INDENT}pass"

    def declare_record(self, name: str, is_union: bool, *, inline: bool = False) -> None:
        """Bind *name* to an empty record class.

        Top-level records are declared up front so pointers to them resolve
        regardless of order; nested anonymous records are declared inline
        right before their parent needs them.
        """
        if name in self._declared:
            return
        self._declared.add(name)
        statement = self._class_statement(name, is_union)
        if inline:
            self._body.append(statement)
        else:
            self._stubs.append(statement)

    def define_record(
        self,
        name: str,
        is_union: bool,
        fields: list[FieldSpec],
        *,
        anonymous: list[str] | None = None,
        size: int = -1,
        align: int = -1,
        comment: str | None = None,
    ) -> None:
        """Assign ``_fields_`` (and ``_anonymous_``) to a declared record."""
        lines = self._comments(comment)
        if is_union and self._policy.union_style == "opaque":
            fields = [FieldSpec("_opaque", f"(ctypes.c_ubyte * {max(size, 0)})")]
            anonymous = None

        if anonymous:
            names = ", ".join(repr(a) for a in anonymous)
            lines.append(f"{name}._anonymous_ = ({names},)")

        if fields:
            lines.append(f"{name}._fields_ = [")
            for spec in fields:
                if spec.bits is None:
                    lines.append(f"{_INDENT}({spec.name!r}, {spec.ctype}),")
                else:
                    lines.append(f"{_INDENT}({spec.name!r}, {spec.ctype}, {spec.bits}),")
            lines.append("]")
        else:
            lines.append(f"{name}._fields_ = []")

        if self._policy.layout_tests and size > 0:
            lines.append(f"assert ctypes.sizeof({name}) == {size}, {f'Size of {name}'!r}")
            if align > 0:
                lines.append(
                    f"assert ctypes.alignment({name}) == {align}, {f'Alignment of {name}'!r}"
                )
        self._body.append("\n".join(lines))

    def add_alias(self, name: str, target: str, comment: str | None = None) -> None:
        lines = self._comments(comment)
        if self._policy.alias_style == "newtype" and target != "None":
            lines.append(f"class {name}({target}):\n{_INDENT}pass")
        else:
            lines.append(f"{name} = {target}")
        self._body.append("\n".join(lines))

    def add_function(
        self,
        name: str,
        restype: str,
        argtypes: list[str],
        *,
        variadic: bool = False,
        comment: str | None = None,
    ) -> None:
        self._prototypes.extend(self._comments(comment, _INDENT))
        self._prototypes.append(f"{_INDENT}{name!r}: ({restype}, [{', '.join(argtypes)}]),")
        if variadic:
            self._variadic.append(name)

    def add_variable(self, name: str, ctype: str, comment: str | None = None) -> None:
        self._variables.extend(self._comments(comment, _INDENT))
        self._variables.append(f"{_INDENT}{name!r}: {ctype},")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def render(self) -> str:
        sections: list[str] = [
            f"# Automatically generated from {self._header_name}. Do not edit.\n"
            "# flake8: noqa\n"
            "import ctypes\n"
            "import enum",
        ]

        if self._policy.derives:
            methods = [_DERIVE_METHODS[d] for d in ("repr", "eq", "hash") if d in self._policy.derives]
            sections.append(_DERIVE_HELPERS)
            sections.append("class _Record:\n" + "\n".join(methods))

        if self._constants:
            sections.append("\n".join(self._constants))
        sections.extend(self._stubs)
        sections.extend(self._body)

        constant_types = "".join(
            f"{_INDENT}{name!r}: {ctype},\n" for name, ctype in self._constant_types
        )
        sections.append(f"CONSTANT_CTYPES = {{\n{constant_types}}}")
        sections.append("PROTOTYPES = {\n" + "".join(f"{p}\n" for p in self._prototypes) + "}")
        variadic = ", ".join(repr(v) for v in self._variadic)
        sections.append(f"VARIADIC = frozenset({{{variadic}}})" if variadic else "VARIADIC = frozenset()")
        sections.append("VARIABLES = {\n" + "".join(f"{v}\n" for v in self._variables) + "}")
        sections.append(_BINDING_HELPERS)

        return "\n\n".join(section.rstrip("\n") for section in sections) + "\n"
