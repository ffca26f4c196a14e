"""Unit tests for ModuleWriter, the ctypes module emitter."""

from __future__ import annotations

import ctypes
import enum

import pytest

from qemu_plugin_sys.bindgen.writer import (
    FieldSpec,
    ModuleWriter,
    comment_lines,
    constant_ctype,
)
from qemu_plugin_sys.models.policy import GenerationPolicy


def _exec(source: str) -> dict:
    namespace: dict = {}
    exec(compile(source, "<generated>", "exec"), namespace)
    return namespace


@pytest.fixture
def writer() -> ModuleWriter:
    return ModuleWriter("qemu-plugin.h", GenerationPolicy())


class TestCommentLines:
    def test_block_comment(self):
        assert comment_lines("/**\n * Install a plugin.\n * @id: plugin id\n */") == [
            "# Install a plugin.",
            "# @id: plugin id",
        ]

    def test_line_comment(self):
        assert comment_lines("/// short") == ["# short"]

    def test_none(self):
        assert comment_lines(None) == []


class TestConstantCtype:
    def test_unsigned_policy(self):
        policy = GenerationPolicy()
        assert constant_ctype(4, policy) == "ctypes.c_uint32"
        assert constant_ctype(1 << 40, policy) == "ctypes.c_uint64"
        assert constant_ctype(-1, policy) == "ctypes.c_int32"

    def test_signed_policy(self):
        policy = GenerationPolicy(macro_constant_type="signed")
        assert constant_ctype(4, policy) == "ctypes.c_int32"
        assert constant_ctype(1 << 40, policy) == "ctypes.c_int64"


class TestRenderedModule:
    def test_banner_and_tables(self, writer: ModuleWriter):
        source = writer.render()
        assert source.startswith("# Automatically generated from qemu-plugin.h. Do not edit.")
        ns = _exec(source)
        assert ns["PROTOTYPES"] == {}
        assert ns["VARIABLES"] == {}
        assert ns["VARIADIC"] == frozenset()
        assert ns["CONSTANT_CTYPES"] == {}

    def test_constants(self, writer: ModuleWriter):
        writer.add_constant("QEMU_PLUGIN_VERSION", 4)
        ns = _exec(writer.render())
        assert ns["QEMU_PLUGIN_VERSION"] == 4
        assert ns["CONSTANT_CTYPES"]["QEMU_PLUGIN_VERSION"] is ctypes.c_uint32

    def test_tagged_enum_is_int_enum(self, writer: ModuleWriter):
        writer.add_enum("qemu_plugin_mem_rw", [("QEMU_PLUGIN_MEM_R", 1), ("QEMU_PLUGIN_MEM_W", 2)])
        ns = _exec(writer.render())
        cls = ns["qemu_plugin_mem_rw"]
        assert issubclass(cls, enum.IntEnum)
        assert not issubclass(cls, enum.IntFlag)
        assert cls.QEMU_PLUGIN_MEM_W == 2

    def test_flag_and_constant_enum_styles(self):
        flags = ModuleWriter("h", GenerationPolicy(enum_style="flags"))
        flags.add_enum("e", [("A", 1)])
        assert issubclass(_exec(flags.render())["e"], enum.IntFlag)

        consts = ModuleWriter("h", GenerationPolicy(enum_style="constants"))
        consts.add_enum("e", [("A", 1)])
        ns = _exec(consts.render())
        assert ns["A"] == 1
        assert "e" not in ns

    def test_anonymous_enum_becomes_constants(self, writer: ModuleWriter):
        writer.add_enum(None, [("QEMU_PLUGIN_EV_MAX", 7)])
        assert _exec(writer.render())["QEMU_PLUGIN_EV_MAX"] == 7

    def test_struct_with_pointer_to_later_record(self, writer: ModuleWriter):
        writer.declare_record("GArray", False)
        writer.declare_record("holder", False)
        writer.define_record(
            "holder", False, [FieldSpec("arr", "ctypes.POINTER(GArray)")]
        )
        writer.define_record(
            "GArray",
            False,
            [FieldSpec("data", "ctypes.c_char_p"), FieldSpec("len", "ctypes.c_uint")],
        )
        ns = _exec(writer.render())
        array = ns["GArray"](data=b"x", len=1)
        assert array.len == 1
        assert issubclass(ns["holder"], ctypes.Structure)

    def test_derives_give_repr_eq_hash(self, writer: ModuleWriter):
        writer.declare_record("pair", False)
        writer.define_record(
            "pair", False, [FieldSpec("a", "ctypes.c_int"), FieldSpec("b", "ctypes.c_int")]
        )
        pair = _exec(writer.render())["pair"]
        assert pair(1, 2) == pair(1, 2)
        assert pair(1, 2) != pair(2, 1)
        assert hash(pair(1, 2)) == hash(pair(1, 2))
        assert repr(pair(1, 2)) == "pair(a=1, b=2)"

    def test_no_derives(self):
        writer = ModuleWriter("h", GenerationPolicy(derives=frozenset()))
        writer.declare_record("pair", False)
        writer.define_record("pair", False, [FieldSpec("a", "ctypes.c_int")])
        source = writer.render()
        assert "_Record" not in source
        pair = _exec(source)["pair"]
        assert pair(1) != pair(1)

    def test_union_wrapper_and_opaque(self):
        wrapper = ModuleWriter("h", GenerationPolicy())
        wrapper.declare_record("u", True)
        wrapper.define_record("u", True, [FieldSpec("i", "ctypes.c_int"), FieldSpec("d", "ctypes.c_double")], size=8)
        assert issubclass(_exec(wrapper.render())["u"], ctypes.Union)

        opaque = ModuleWriter("h", GenerationPolicy(union_style="opaque"))
        opaque.declare_record("u", True)
        opaque.define_record("u", True, [FieldSpec("i", "ctypes.c_int")], size=8)
        u = _exec(opaque.render())["u"]
        assert [f[0] for f in u._fields_] == ["_opaque"]
        assert ctypes.sizeof(u) == 8

    def test_bitfields(self, writer: ModuleWriter):
        writer.declare_record("bits", False)
        writer.define_record(
            "bits", False, [FieldSpec("lo", "ctypes.c_uint", 4), FieldSpec("hi", "ctypes.c_uint", 4)]
        )
        bits = _exec(writer.render())["bits"](lo=3, hi=5)
        assert (bits.lo, bits.hi) == (3, 5)

    def test_layout_assertions_only_when_enabled(self):
        off = ModuleWriter("h", GenerationPolicy())
        off.declare_record("s", False)
        off.define_record("s", False, [FieldSpec("a", "ctypes.c_int")], size=4, align=4)
        assert "assert ctypes.sizeof" not in off.render()

        on = ModuleWriter("h", GenerationPolicy(layout_tests=True))
        on.declare_record("s", False)
        on.define_record("s", False, [FieldSpec("a", "ctypes.c_int")], size=4, align=4)
        source = on.render()
        assert "assert ctypes.sizeof(s) == 4" in source
        _exec(source)

    def test_private_fields(self):
        writer = ModuleWriter("h", GenerationPolicy(field_visibility="private"))
        assert writer.field_name("len") == "_len"
        assert writer.field_name("_x") == "_x"

    def test_alias_styles(self):
        alias = ModuleWriter("h", GenerationPolicy())
        alias.add_alias("qemu_plugin_id_t", "ctypes.c_uint64")
        assert _exec(alias.render())["qemu_plugin_id_t"] is ctypes.c_uint64

        newtype = ModuleWriter("h", GenerationPolicy(alias_style="newtype"))
        newtype.add_alias("qemu_plugin_id_t", "ctypes.c_uint64")
        cls = _exec(newtype.render())["qemu_plugin_id_t"]
        assert cls is not ctypes.c_uint64
        assert issubclass(cls, ctypes.c_uint64)

    def test_functions_and_variadic(self, writer: ModuleWriter):
        writer.add_function("qemu_plugin_outs", "None", ["ctypes.c_char_p"], comment="/** print */")
        writer.add_function("log_fmt", "ctypes.c_int", ["ctypes.c_char_p"], variadic=True)
        source = writer.render()
        assert "    # print" in source
        ns = _exec(source)
        assert ns["PROTOTYPES"]["qemu_plugin_outs"] == (None, [ctypes.c_char_p])
        assert ns["VARIADIC"] == frozenset({"log_fmt"})

    def test_comments_disabled(self):
        writer = ModuleWriter("h", GenerationPolicy(generate_comments=False))
        writer.add_function("f", "None", [], comment="/** hidden */")
        assert "hidden" not in writer.render()

    def test_bind_sets_prototypes(self, writer: ModuleWriter):
        writer.add_function("f", "ctypes.c_int", ["ctypes.c_int"])
        ns = _exec(writer.render())

        class Library:
            def __init__(self):
                self.f = type("Fn", (), {})()

        library = ns["bind"](Library())
        assert library.f.restype is ctypes.c_int
        assert library.f.argtypes == [ctypes.c_int]
