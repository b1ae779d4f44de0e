"""Tests for the attribute codec."""

import io
from dataclasses import dataclass

import pytest

from conftest import attribute, u1, u2, u4, utf8

from pyjclass.attributes import (
    ATTRIBUTE_TYPES,
    Annotation,
    AnnotationDefault,
    Attribute,
    AttributeCodec,
    BootstrapMethods,
    Code,
    ConstantValue,
    Deprecated,
    ElementValue,
    EnumConstValue,
    Exceptions,
    LineNumberTable,
    LocalVariableTable,
    LocalVariableTypeTable,
    MethodParameters,
    RuntimeInvisibleParameterAnnotations,
    RuntimeVisibleAnnotations,
    SourceDebugExtension,
    SourceFile,
    Synthetic,
    UnknownAttribute,
    iter_attributes,
)
from pyjclass.constants import ConstantPool
from pyjclass.cursor import ByteReader, ByteWriter
from pyjclass.errors import DanglingIndex, MalformedAttribute


@pytest.fixture
def pool():
    cp = ConstantPool()
    for name in ATTRIBUTE_TYPES:
        cp.add_utf8(name)
    cp.add_utf8("Vendor")
    cp.add_class("java/io/IOException")
    return cp


@pytest.fixture
def codec():
    return AttributeCodec()


def decode_one(codec, pool, data: bytes) -> Attribute:
    reader = ByteReader.from_bytes(data)
    attr = codec.read(reader, pool)
    assert reader.remaining == 0
    return attr


def encode_one(codec, pool, attr: Attribute) -> bytes:
    out = io.BytesIO()
    codec.write(ByteWriter(out), pool, attr)
    return out.getvalue()


def roundtrip(codec, pool, name: str, payload: bytes) -> Attribute:
    data = attribute(pool.find_utf8(name), payload)
    attr = decode_one(codec, pool, data)
    assert attr.attribute_name == name
    assert encode_one(codec, pool, attr) == data
    return attr


class TestKnownAttributes:
    def test_constant_value(self, codec, pool):
        attr = roundtrip(codec, pool, "ConstantValue", u2(1))
        assert attr == ConstantValue(1)
        assert attr.value(pool).value == "ConstantValue"

    def test_exceptions(self, codec, pool):
        class_idx = pool.find_utf8("java/io/IOException") + 1
        attr = roundtrip(codec, pool, "Exceptions", u2(1) + u2(class_idx))
        assert attr.expect(Exceptions).exception_names(pool) == ["java/io/IOException"]

    def test_markers_have_empty_payload(self, codec, pool):
        assert isinstance(roundtrip(codec, pool, "Synthetic", b""), Synthetic)
        assert isinstance(roundtrip(codec, pool, "Deprecated", b""), Deprecated)

    def test_source_debug_extension_takes_whole_payload(self, codec, pool):
        attr = roundtrip(codec, pool, "SourceDebugExtension", b"SMAP\nHello.java\n")
        assert attr.debug_extension == b"SMAP\nHello.java\n"

    def test_source_debug_extension_needs_bounded_reader(self, codec, pool):
        reader = ByteReader(io.BytesIO(b"SMAP\n"))
        with pytest.raises(TypeError):
            SourceDebugExtension.read_info(reader, pool, codec)

    def test_line_number_table(self, codec, pool):
        attr = roundtrip(codec, pool, "LineNumberTable", u2(2) + u2(0) + u2(10) + u2(4) + u2(11))
        assert [(e.start_pc, e.line_number) for e in attr.line_number_table] == [(0, 10), (4, 11)]

    def test_local_variable_tables_are_distinct_kinds(self, codec, pool):
        entry = u2(0) + u2(5) + u2(1) + u2(2) + u2(0)
        table = roundtrip(codec, pool, "LocalVariableTable", u2(1) + entry)
        types = roundtrip(codec, pool, "LocalVariableTypeTable", u2(1) + entry)
        assert table.local_variable_table[0].length == 5
        assert types.try_as(LocalVariableTable) is None
        assert types.try_as(LocalVariableTypeTable) is types

    def test_inner_classes(self, codec, pool):
        attr = roundtrip(codec, pool, "InnerClasses", u2(1) + u2(3) + u2(0) + u2(0) + u2(0x0008))
        assert attr.classes[0].inner_class_access_flags == 0x0008

    def test_enclosing_method(self, codec, pool):
        attr = roundtrip(codec, pool, "EnclosingMethod", u2(3) + u2(0))
        assert (attr.class_index, attr.method_index) == (3, 0)

    def test_bootstrap_methods(self, codec, pool):
        payload = u2(2) + u2(7) + u2(2) + u2(1) + u2(2) + u2(8) + u2(0)
        attr = roundtrip(codec, pool, "BootstrapMethods", payload)
        assert attr.expect(BootstrapMethods).bootstrap_methods[0].bootstrap_arguments == [1, 2]
        assert attr.bootstrap_methods[1].bootstrap_arguments == []

    def test_method_parameters_uses_u1_count(self, codec, pool):
        attr = roundtrip(codec, pool, "MethodParameters", u1(2) + u2(1) + u2(0) + u2(0) + u2(0x0010))
        assert isinstance(attr, MethodParameters)
        assert attr.parameters[1].access_flags == 0x0010

    def test_annotations(self, codec, pool):
        element = (
            u1(ord("[")) + u2(3)
            + u1(ord("I")) + u2(1)
            + u1(ord("e")) + u2(1) + u2(2)
            + u1(ord("@")) + u2(1) + u2(0)
        )
        payload = u2(1) + u2(1) + u2(1) + u2(2) + element
        attr = roundtrip(codec, pool, "RuntimeVisibleAnnotations", payload)
        ann = attr.expect(RuntimeVisibleAnnotations).annotations[0]
        value = ann.element_value_pairs[0].value
        assert value.tag == "["
        assert [v.tag for v in value.value] == ["I", "e", "@"]
        assert value.value[1].value == EnumConstValue(1, 2)
        assert isinstance(value.value[2].value, Annotation)

    def test_parameter_annotations(self, codec, pool):
        payload = u1(2) + u2(0) + u2(1) + u2(1) + u2(0)
        attr = roundtrip(codec, pool, "RuntimeInvisibleParameterAnnotations", payload)
        assert isinstance(attr, RuntimeInvisibleParameterAnnotations)
        assert [len(anns) for anns in attr.parameter_annotations] == [0, 1]

    def test_annotation_default(self, codec, pool):
        attr = roundtrip(codec, pool, "AnnotationDefault", u1(ord("c")) + u2(1))
        assert attr.default_value == ElementValue("c", 1)

    def test_unknown_element_value_tag(self, codec, pool):
        data = attribute(pool.find_utf8("AnnotationDefault"), u1(ord("?")) + u2(1))
        with pytest.raises(MalformedAttribute, match="element value tag"):
            decode_one(codec, pool, data)


class TestCode:
    def code_payload(self, pool, nested: bytes = b"", nested_count: int = 0) -> bytes:
        return (
            u2(2) + u2(1)
            + u4(3) + b"\x03\xac\x00"
            + u2(1) + u2(0) + u2(2) + u2(2) + u2(0)
            + u2(nested_count) + nested
        )

    def test_nested_attributes(self, codec, pool):
        nested = attribute(pool.find_utf8("LineNumberTable"), u2(1) + u2(0) + u2(3))
        attr = roundtrip(codec, pool, "Code", self.code_payload(pool, nested, 1))
        code = attr.expect(Code)
        assert code.code == b"\x03\xac\x00"
        assert code.exception_table[0].handler_pc == 2
        assert code.attribute(LineNumberTable).line_number_table[0].line_number == 3
        assert [a.attribute_name for a in iter_attributes([code])] == ["Code", "LineNumberTable"]

    def test_mutation_recomputes_lengths(self, codec, pool):
        nested = attribute(pool.find_utf8("LineNumberTable"), u2(1) + u2(0) + u2(3))
        code = roundtrip(codec, pool, "Code", self.code_payload(pool, nested, 1))
        code.attributes.clear()
        code.code = b"\xb1"
        data = encode_one(codec, pool, code)
        reread = decode_one(codec, pool, data)
        assert reread.code == b"\xb1"
        assert reread.attributes == []
        assert len(data) == 6 + 2 + 2 + 4 + 1 + 2 + 8 + 2

    def test_nested_overrun_is_malformed_code(self, codec, pool):
        nested = attribute(pool.find_utf8("LineNumberTable"), u2(1) + u2(0) + u2(3))
        payload = self.code_payload(pool, nested, 1)
        data = u2(pool.find_utf8("Code")) + u4(len(payload) - 1) + payload[:-1]
        with pytest.raises(MalformedAttribute, match="Code attribute overruns"):
            decode_one(codec, pool, data)


class TestLengthChecks:
    def test_declared_length_too_short(self, codec, pool):
        data = attribute(pool.find_utf8("SourceFile"), u2(1), length_delta=-1) + b"\x01"
        with pytest.raises(MalformedAttribute, match="overruns"):
            codec.read(ByteReader.from_bytes(data), pool)

    def test_declared_length_too_long(self, codec, pool):
        data = attribute(pool.find_utf8("SourceFile"), u2(1) + b"\x00")
        with pytest.raises(MalformedAttribute, match="declares 3 bytes but uses 2") as exc_info:
            decode_one(codec, pool, data)
        assert exc_info.value.offset == 0

    def test_name_must_be_utf8(self, codec, pool):
        class_idx = pool.find_utf8("java/io/IOException") + 1
        with pytest.raises(MalformedAttribute, match="not a Utf8 entry"):
            decode_one(codec, pool, attribute(class_idx, b""))

    def test_name_out_of_range(self, codec, pool):
        with pytest.raises(MalformedAttribute):
            decode_one(codec, pool, attribute(500, b""))


class TestUnknownAttributes:
    def test_payload_preserved(self, codec, pool):
        attr = roundtrip(codec, pool, "Vendor", b"\x00\xff\x10")
        assert attr == UnknownAttribute("Vendor", b"\x00\xff\x10")

    def test_unknown_length_follows_payload(self, codec, pool):
        attr = UnknownAttribute("Vendor", b"abcd")
        data = encode_one(codec, pool, attr)
        assert data == u2(pool.find_utf8("Vendor")) + u4(4) + b"abcd"

    def test_known_name_outside_table_is_unknown(self, pool):
        codec = AttributeCodec({})
        attr = decode_one(codec, pool, attribute(pool.find_utf8("SourceFile"), u2(1)))
        assert isinstance(attr, UnknownAttribute)
        assert attr.info == u2(1)


@dataclass
class Vendor(Attribute):
    NAME = "Vendor"
    level: int = 0

    @classmethod
    def read_info(cls, reader, pool, codec):
        return cls(reader.u1())

    def write_info(self, writer, pool, codec):
        writer.u1(self.level)


class TestExtension:
    def test_extended_codec_decodes_new_kind(self, pool):
        codec = AttributeCodec().extended(Vendor)
        attr = roundtrip(codec, pool, "Vendor", b"\x05")
        assert attr.expect(Vendor).level == 5
        assert "Vendor" not in ATTRIBUTE_TYPES

    def test_type_table_is_immutable(self):
        with pytest.raises(TypeError):
            ATTRIBUTE_TYPES["Vendor"] = Vendor


class TestNameIndex:
    def test_new_attribute_finds_name_in_pool(self, codec, pool):
        data = encode_one(codec, pool, SourceFile(1))
        assert data[:2] == u2(pool.find_utf8("SourceFile"))

    def test_missing_name_is_not_added_to_pool(self, codec):
        pool = ConstantPool()
        with pytest.raises(MalformedAttribute, match="no Utf8 entry"):
            encode_one(codec, pool, Deprecated())
        assert pool.count == 1

    def test_duplicate_name_entry_is_kept(self, codec):
        pool = ConstantPool.read(ByteReader.from_bytes(utf8("Deprecated") + utf8("Deprecated")), 3)
        data = attribute(2, b"")
        attr = decode_one(codec, pool, data)
        assert attr.name_index == 2
        assert encode_one(codec, pool, attr) == data

    def test_stale_name_index_is_rederived(self, pool):
        attr = Deprecated(name_index=pool.add_utf8("x"))
        assert attr.resolve_name_index(pool) == pool.find_utf8("Deprecated")


class TestProjection:
    def test_try_as(self):
        attr = SourceFile(3)
        assert attr.try_as(SourceFile) is attr
        assert attr.try_as(Code) is None

    def test_expect_wrong_kind_raises(self):
        with pytest.raises(TypeError, match="expected Code, got SourceFile"):
            SourceFile(3).expect(Code)

    def test_dangling_source_file(self, pool):
        with pytest.raises(DanglingIndex):
            SourceFile(999).source_file(pool)

    def test_empty_annotation_default_cannot_be_written(self, codec, pool):
        with pytest.raises(MalformedAttribute):
            encode_one(codec, pool, AnnotationDefault())

    def test_source_debug_extension_is_distinct(self):
        assert SourceDebugExtension(b"").try_as(SourceFile) is None
