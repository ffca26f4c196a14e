"""libclang-backed translation of a C header into a ``ctypes`` module.

The header text is parsed as the only compilation unit, straight from memory.
Declarations are walked in source order and handed to :class:`ModuleWriter`.
Type layout is whatever libclang infers for the host target; nothing here
second-guesses it.

Items from the main header must translate or the whole header is rejected.
Items pulled in from system headers that have no ctypes equivalent are
skipped, since the denylist cannot anticipate every libc.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path

from clang.cindex import (
    Cursor,
    CursorKind,
    Diagnostic,
    Index,
    LibclangError,
    StorageClass,
    TranslationUnit,
    TranslationUnitLoadError,
    Type,
    TypeKind,
)

from qemu_plugin_sys.bindgen.writer import FieldSpec, ModuleWriter
from qemu_plugin_sys.errors import TranslationError
from qemu_plugin_sys.models.policy import GenerationPolicy

logger = logging.getLogger(__name__)

_PRIMITIVES: dict[TypeKind, str] = {
    TypeKind.VOID: "None",
    TypeKind.BOOL: "ctypes.c_bool",
    TypeKind.CHAR_S: "ctypes.c_char",
    TypeKind.CHAR_U: "ctypes.c_char",
    TypeKind.SCHAR: "ctypes.c_byte",
    TypeKind.UCHAR: "ctypes.c_ubyte",
    TypeKind.WCHAR: "ctypes.c_wchar",
    TypeKind.CHAR16: "ctypes.c_uint16",
    TypeKind.CHAR32: "ctypes.c_uint32",
    TypeKind.SHORT: "ctypes.c_short",
    TypeKind.USHORT: "ctypes.c_ushort",
    TypeKind.INT: "ctypes.c_int",
    TypeKind.UINT: "ctypes.c_uint",
    TypeKind.LONG: "ctypes.c_long",
    TypeKind.ULONG: "ctypes.c_ulong",
    TypeKind.LONGLONG: "ctypes.c_longlong",
    TypeKind.ULONGLONG: "ctypes.c_ulonglong",
    TypeKind.FLOAT: "ctypes.c_float",
    TypeKind.DOUBLE: "ctypes.c_double",
    TypeKind.LONGDOUBLE: "ctypes.c_longdouble",
}

# Portable spellings for the fixed-width typedefs, instead of whatever
# builtin the host libc happens to alias them to.
_FIXED_WIDTH: dict[str, str] = {
    "int8_t": "ctypes.c_int8",
    "int16_t": "ctypes.c_int16",
    "int32_t": "ctypes.c_int32",
    "int64_t": "ctypes.c_int64",
    "uint8_t": "ctypes.c_uint8",
    "uint16_t": "ctypes.c_uint16",
    "uint32_t": "ctypes.c_uint32",
    "uint64_t": "ctypes.c_uint64",
    "size_t": "ctypes.c_size_t",
    "ssize_t": "ctypes.c_ssize_t",
    "intptr_t": "ctypes.c_ssize_t",
    "uintptr_t": "ctypes.c_size_t",
}

_CHAR_KINDS = frozenset({TypeKind.CHAR_S, TypeKind.CHAR_U, TypeKind.SCHAR})
_FUNCTION_KINDS = frozenset({TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO})
_RECORD_DECLS = frozenset({CursorKind.STRUCT_DECL, CursorKind.UNION_DECL})

_INT_LITERAL = re.compile(
    r"(?P<digits>0[xX][0-9a-fA-F]+|0[bB][01]+|0[0-7]*|[1-9][0-9]*)(?P<suffix>[uUlL]*)"
)


# ---------------------------------------------------------------------------
# Compiler builtin headers
# ---------------------------------------------------------------------------

# Any of these in the policy's args means the caller already chose where
# <stddef.h> and <stdbool.h> come from.
_INCLUDE_FLAGS = ("-resource-dir", "-isystem", "-I", "-nostdinc")


def _ask_compiler(command: list[str]) -> Path | None:
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=10)
    except (subprocess.SubprocessError, OSError) as exc:
        logger.debug("%s failed: %s", command[0], exc)
        return None
    output = result.stdout.strip()
    if result.returncode != 0 or not output:
        return None
    return Path(output)


def builtin_include_args() -> tuple[str, ...]:
    """Locate compiler builtin headers for the ``libclang`` wheel.

    The wheel ships the shared library without clang's resource headers, so
    ``<stddef.h>``/``<stdbool.h>`` are not found on their own. An installed
    ``clang`` gives its resource directory; failing that, ``gcc``/``cc``
    report a builtin include directory that serves the same headers.
    """
    clang = shutil.which("clang")
    if clang:
        resource_dir = _ask_compiler([clang, "-print-resource-dir"])
        if resource_dir is not None and (resource_dir / "include" / "stddef.h").is_file():
            return ("-resource-dir", str(resource_dir))

    for name in ("gcc", "cc"):
        compiler = shutil.which(name)
        if not compiler:
            continue
        include_dir = _ask_compiler([compiler, "-print-file-name=include"])
        if include_dir is not None and (include_dir / "stddef.h").is_file():
            return ("-isystem", str(include_dir))

    logger.warning(
        "No clang resource directory or gcc include directory found; "
        "set QEMU_PLUGIN_SYS_EXTRA_CLANG_ARGS if <stddef.h> is not found"
    )
    return ()


def _chooses_includes(clang_args: tuple[str, ...]) -> bool:
    return any(arg.startswith(_INCLUDE_FLAGS) for arg in clang_args)


class _Unsupported(TranslationError):
    """A type with no ctypes spelling."""


def _blocklist(patterns: frozenset[str]) -> re.Pattern[str] | None:
    if not patterns:
        return None
    return re.compile("|".join(f"(?:{p})" for p in sorted(patterns)))


def _unwrap(t: Type) -> Type:
    while t.kind == TypeKind.ELABORATED:
        t = t.get_named_type()
    return t


def _element(t: Type) -> Type:
    """Strip sugar and array dimensions down to the element type."""
    t = _unwrap(t)
    while t.kind in (TypeKind.CONSTANTARRAY, TypeKind.INCOMPLETEARRAY):
        t = _unwrap(t.element_type)
    return t


def _is_anonymous(cursor: Cursor) -> bool:
    spelling = cursor.spelling
    return not spelling or "(anonymous" in spelling or "(unnamed" in spelling


def parse_int_literal(text: str) -> int | None:
    """Parse a C integer literal, suffixes included. Returns None otherwise."""
    match = _INT_LITERAL.fullmatch(text)
    if match is None:
        return None
    digits = match.group("digits")
    if digits[:2] in ("0x", "0X"):
        return int(digits, 16)
    if digits[:2] in ("0b", "0B"):
        return int(digits[2:], 2)
    if digits.startswith("0"):
        return int(digits, 8)
    return int(digits)


def macro_value(cursor: Cursor) -> int | None:
    """Evaluate an object-like macro whose body is a single integer literal."""
    tokens = list(cursor.get_tokens())
    if len(tokens) < 2:
        return None
    name, body = tokens[0], tokens[1:]
    # Function-like: "(" immediately follows the name with no whitespace.
    if body[0].spelling == "(" and body[0].extent.start.offset == name.extent.end.offset:
        return None

    spellings = [t.spelling for t in body]
    while len(spellings) >= 2 and spellings[0] == "(" and spellings[-1] == ")":
        spellings = spellings[1:-1]
    sign = 1
    if len(spellings) == 2 and spellings[0] in ("-", "+"):
        sign = -1 if spellings[0] == "-" else 1
        spellings = spellings[1:]
    if len(spellings) != 1:
        return None
    value = parse_int_literal(spellings[0])
    return None if value is None else sign * value


class _ModuleBuilder:
    """Walks one translation unit and feeds a :class:`ModuleWriter`."""

    def __init__(self, tu: TranslationUnit, header_name: str, policy: GenerationPolicy) -> None:
        self._tu = tu
        self._header_name = header_name
        self._policy = policy
        self._writer = ModuleWriter(header_name, policy)
        self._blocked_items = _blocklist(policy.blocklist_items)
        self._blocked_functions = _blocklist(policy.blocklist_functions)
        self._record_names: dict[int, str] = {}
        self._absorbed: set[int] = set()
        self._typedefs: set[str] = set()
        self._defined: set[str] = set()
        self._functions: set[str] = set()
        self._anon_count = 0

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _blocked(self, name: str, *, function: bool = False) -> bool:
        if self._blocked_items is not None and self._blocked_items.fullmatch(name):
            return True
        if function and self._blocked_functions is not None:
            return self._blocked_functions.fullmatch(name) is not None
        return False

    def _in_main_file(self, cursor: Cursor) -> bool:
        location = cursor.location.file
        return location is not None and location.name == self._header_name

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def build(self) -> str:
        top = [c for c in self._tu.cursor.get_children() if c.location.file is not None]
        self._collect_typedefs(top)
        self._declare_records(top)
        for cursor in top:
            try:
                self._visit(cursor)
            except _Unsupported as exc:
                if self._in_main_file(cursor):
                    raise
                self._typedefs.discard(cursor.spelling)
                logger.debug("Skipping %s from %s: %s", cursor.spelling, cursor.location.file, exc)
        return self._writer.render()

    # ------------------------------------------------------------------
    # Pre-passes
    # ------------------------------------------------------------------

    def _collect_typedefs(self, cursors: list[Cursor]) -> None:
        """Name anonymous records after their typedef and note usable typedef names."""
        for cursor in cursors:
            if cursor.kind != CursorKind.TYPEDEF_DECL:
                continue
            underlying = _unwrap(cursor.underlying_typedef_type)
            decl = underlying.get_declaration()
            if underlying.kind in (TypeKind.RECORD, TypeKind.ENUM) and _is_anonymous(decl):
                # Blocked typedefs still name their record so the record stays blocked too.
                self._record_names.setdefault(decl.hash, cursor.spelling)
                self._absorbed.add(cursor.hash)
            if self._blocked(cursor.spelling) or underlying.get_canonical().kind == TypeKind.ENUM:
                continue
            self._typedefs.add(cursor.spelling)

    def _declare_records(self, cursors: list[Cursor]) -> None:
        for cursor in cursors:
            if cursor.kind in _RECORD_DECLS:
                name = self._record_name(cursor)
                if not self._blocked(name):
                    self._writer.declare_record(name, cursor.kind == CursorKind.UNION_DECL)

    def _record_name(self, decl: Cursor) -> str:
        if not _is_anonymous(decl):
            return decl.spelling
        name = self._record_names.get(decl.hash)
        if name is None:
            name = f"_anon_record_{self._anon_count}"
            self._anon_count += 1
            self._record_names[decl.hash] = name
        return name

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _visit(self, cursor: Cursor) -> None:
        kind = cursor.kind
        if kind == CursorKind.MACRO_DEFINITION:
            self._visit_macro(cursor)
        elif kind == CursorKind.ENUM_DECL:
            self._visit_enum(cursor)
        elif kind in _RECORD_DECLS:
            name = self._record_name(cursor)
            if cursor.is_definition() and name not in self._defined and not self._blocked(name):
                self._define_record(cursor, name)
        elif kind == CursorKind.TYPEDEF_DECL:
            self._visit_typedef(cursor)
        elif kind == CursorKind.FUNCTION_DECL:
            self._visit_function(cursor)
        elif kind == CursorKind.VAR_DECL:
            self._visit_variable(cursor)

    def _visit_macro(self, cursor: Cursor) -> None:
        if self._blocked(cursor.spelling):
            return
        value = macro_value(cursor)
        if value is not None:
            self._writer.add_constant(cursor.spelling, value)

    def _visit_enum(self, cursor: Cursor) -> None:
        if not cursor.is_definition():
            return
        if _is_anonymous(cursor):
            name = self._record_names.get(cursor.hash)
        else:
            name = cursor.spelling
        if name is not None and self._blocked(name):
            return
        members = [
            (child.spelling, child.enum_value)
            for child in cursor.get_children()
            if child.kind == CursorKind.ENUM_CONSTANT_DECL and not self._blocked(child.spelling)
        ]
        self._writer.add_enum(name, members, cursor.raw_comment)

    def _define_record(self, cursor: Cursor, name: str) -> None:
        self._defined.add(name)
        is_union = cursor.kind == CursorKind.UNION_DECL
        children = list(cursor.get_children())

        # Anonymous nested records named by a following field take the field's name.
        field_of: dict[int, str] = {}
        for child in children:
            if child.kind == CursorKind.FIELD_DECL and child.spelling:
                element = _element(child.type)
                if element.kind == TypeKind.RECORD:
                    field_of.setdefault(element.get_declaration().hash, child.spelling)

        fields: list[FieldSpec] = []
        anonymous: list[str] = []
        anon_members: set[int] = set()
        for child in children:
            if child.kind in _RECORD_DECLS and child.is_definition():
                if not _is_anonymous(child):
                    self._writer.declare_record(
                        child.spelling, child.kind == CursorKind.UNION_DECL, inline=True
                    )
                    self._define_record(child, child.spelling)
                    continue
                if child.hash in field_of:
                    nested = f"{name}_{field_of[child.hash]}"
                else:
                    nested = f"{name}_anon{len(anonymous)}"
                self._record_names[child.hash] = nested
                self._writer.declare_record(
                    nested, child.kind == CursorKind.UNION_DECL, inline=True
                )
                self._define_record(child, nested)
                if child.hash not in field_of:
                    member = f"_anon{len(anonymous)}"
                    anonymous.append(member)
                    anon_members.add(child.hash)
                    fields.append(FieldSpec(member, nested))
            elif child.kind == CursorKind.FIELD_DECL:
                if not child.spelling:
                    if _unwrap(child.type).get_declaration().hash in anon_members:
                        continue
                    if child.is_bitfield():
                        fields.append(
                            FieldSpec(f"_pad{len(fields)}", self._ctype(child.type), child.get_bitfield_width())
                        )
                    continue
                bits = child.get_bitfield_width() if child.is_bitfield() else None
                fields.append(
                    FieldSpec(self._writer.field_name(child.spelling), self._ctype(child.type), bits)
                )

        self._writer.define_record(
            name,
            is_union,
            fields,
            anonymous=anonymous,
            size=cursor.type.get_size(),
            align=cursor.type.get_align(),
            comment=cursor.raw_comment,
        )

    def _visit_typedef(self, cursor: Cursor) -> None:
        name = cursor.spelling
        if self._blocked(name) or cursor.hash in self._absorbed:
            return
        underlying = _unwrap(cursor.underlying_typedef_type)
        if underlying.kind in (TypeKind.RECORD, TypeKind.ENUM):
            if underlying.get_declaration().spelling == name:
                return
        if name in _FIXED_WIDTH:
            target = _FIXED_WIDTH[name]
        else:
            target = self._ctype(underlying)
        self._writer.add_alias(name, target, cursor.raw_comment)

    def _visit_function(self, cursor: Cursor) -> None:
        name = cursor.spelling
        if name in self._functions or self._blocked(name, function=True):
            return
        if cursor.storage_class == StorageClass.STATIC:
            return
        restype = self._ctype(cursor.result_type)
        argtypes = [self._param_ctype(arg.type) for arg in cursor.get_arguments()]
        variadic = (
            cursor.type.kind == TypeKind.FUNCTIONPROTO and cursor.type.is_function_variadic()
        )
        self._functions.add(name)
        self._writer.add_function(
            name, restype, argtypes, variadic=variadic, comment=cursor.raw_comment
        )

    def _visit_variable(self, cursor: Cursor) -> None:
        if self._blocked(cursor.spelling) or cursor.storage_class == StorageClass.STATIC:
            return
        self._writer.add_variable(cursor.spelling, self._ctype(cursor.type), cursor.raw_comment)

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def _ctype(self, t: Type) -> str:
        t = _unwrap(t)
        kind = t.kind

        if kind in _PRIMITIVES:
            return _PRIMITIVES[kind]

        if kind == TypeKind.TYPEDEF:
            decl = t.get_declaration()
            name = decl.spelling
            if t.get_canonical().kind == TypeKind.ENUM:
                return self._ctype(t.get_canonical())
            if name in self._typedefs and not self._blocked(name):
                return name
            if name in _FIXED_WIDTH:
                return _FIXED_WIDTH[name]
            return self._ctype(decl.underlying_typedef_type)

        if kind == TypeKind.RECORD:
            decl = t.get_declaration()
            name = self._record_name(decl)
            if not self._writer.is_declared(name):
                self._writer.declare_record(name, decl.kind == CursorKind.UNION_DECL)
            return name

        if kind == TypeKind.ENUM:
            return self._ctype(t.get_declaration().enum_type)

        if kind == TypeKind.POINTER:
            pointee = _unwrap(t.get_pointee())
            canonical = pointee.get_canonical()
            if canonical.kind == TypeKind.VOID:
                return "ctypes.c_void_p"
            if canonical.kind in _CHAR_KINDS:
                return "ctypes.c_char_p"
            if canonical.kind in _FUNCTION_KINDS:
                return self._ctype(pointee)
            return f"ctypes.POINTER({self._ctype(pointee)})"

        if kind in _FUNCTION_KINDS:
            restype = self._ctype(t.get_result())
            if kind == TypeKind.FUNCTIONNOPROTO:
                return f"ctypes.CFUNCTYPE({restype})"
            args = [self._param_ctype(a) for a in t.argument_types()]
            return f"ctypes.CFUNCTYPE({', '.join([restype, *args])})"

        if kind == TypeKind.CONSTANTARRAY:
            return f"({self._ctype(t.element_type)} * {t.element_count})"

        if kind == TypeKind.INCOMPLETEARRAY:
            return f"({self._ctype(t.element_type)} * 0)"

        canonical = t.get_canonical()
        if canonical.kind != kind:
            return self._ctype(canonical)
        raise _Unsupported(f"No ctypes equivalent for C type {t.spelling!r} ({kind.name})")

    def _param_ctype(self, t: Type) -> str:
        """Like ``_ctype`` but with array parameters decayed to pointers."""
        t = _unwrap(t)
        if t.kind in (TypeKind.CONSTANTARRAY, TypeKind.INCOMPLETEARRAY):
            element = _unwrap(t.element_type)
            if element.get_canonical().kind in _CHAR_KINDS:
                return "ctypes.c_char_p"
            return f"ctypes.POINTER({self._ctype(element)})"
        return self._ctype(t)


class ClangCtypesEngine:
    """Translation engine backed by ``clang.cindex``.

    Parameters
    ----------
    index:
        Reuse an existing ``Index``; a fresh one is created per call otherwise.
    include_args:
        Arguments locating the compiler builtin headers. Discovered with
        :func:`builtin_include_args` on first use unless given. They are
        skipped when the policy already passes include or resource-dir flags.
    """

    def __init__(
        self,
        index: Index | None = None,
        include_args: tuple[str, ...] | None = None,
    ) -> None:
        self._index = index
        self._include_args = include_args

    def clang_args(self, policy: GenerationPolicy) -> list[str]:
        """Full argument list passed to libclang for *policy*."""
        args = ["-x", "c", *policy.clang_args]
        if _chooses_includes(policy.clang_args):
            return args
        if self._include_args is None:
            self._include_args = builtin_include_args()
        return [*args, *self._include_args]

    def translate(self, header_name: str, header_text: str, policy: GenerationPolicy) -> str:
        try:
            index = self._index or Index.create()
            tu = index.parse(
                header_name,
                args=self.clang_args(policy),
                unsaved_files=[(header_name, header_text)],
                options=(
                    TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
                    | TranslationUnit.PARSE_SKIP_FUNCTION_BODIES
                ),
            )
        except (LibclangError, TranslationUnitLoadError) as exc:
            raise TranslationError(f"libclang could not parse {header_name}: {exc}") from exc

        errors = [d for d in tu.diagnostics if d.severity >= Diagnostic.Error]
        if errors:
            details = "; ".join(
                f"{d.location.line}:{d.location.column}: {d.spelling}" for d in errors[:10]
            )
            raise TranslationError(f"{header_name} has {len(errors)} error(s): {details}")

        return _ModuleBuilder(tu, header_name, policy).build()
