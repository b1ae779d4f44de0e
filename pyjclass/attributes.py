"""
Class file attributes and the attribute codec.

Every attribute is a name index, a u4 length and a payload. Known names are
decoded into typed dataclasses; anything else is kept as raw bytes so that it
can be written back unchanged.
"""

import io
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar, Iterator, Mapping, Optional, TypeVar, Union

from .constants import Constant, ConstantPool
from .cursor import ByteReader, ByteWriter
from .errors import ClassFileIOError, DanglingIndex, MalformedAttribute
from .variant import Variant

T = TypeVar("T")


@dataclass
class Attribute(Variant):
    """Base class of all attributes."""

    NAME: ClassVar[str]

    # Pool index the attribute name was read from; 0 for new attributes.
    name_index: int = field(default=0, kw_only=True, compare=False, repr=False)

    @property
    def attribute_name(self) -> str:
        return self.NAME

    @classmethod
    def read_info(cls, reader: ByteReader, pool: ConstantPool,
                  codec: "AttributeCodec") -> "Attribute":
        raise NotImplementedError

    def write_info(self, writer: ByteWriter, pool: ConstantPool, codec: "AttributeCodec"):
        raise NotImplementedError

    def resolve_name_index(self, pool: ConstantPool) -> int:
        """Pool index to write as this attribute's name.

        The stored index is kept while it still names this attribute, so a
        pool with duplicate Utf8 entries round-trips. Otherwise the first
        matching Utf8 entry is used. No pool entries are ever added here.
        """
        name = self.attribute_name
        if self.name_index:
            try:
                current = pool.utf8(self.name_index)
            except DanglingIndex:
                current = None
            if current == name:
                return self.name_index
        idx = pool.find_utf8(name)
        if idx is None:
            raise MalformedAttribute(f"constant pool has no Utf8 entry for attribute name {name!r}")
        return idx


class AttributeHolder:
    """Lookup helpers for anything that owns an ``attributes`` list."""

    attributes: list[Attribute]

    def attribute(self, kind: type[T]) -> Optional[T]:
        """Return the first attribute of the given kind, if any."""
        for attr in self.attributes:
            found = attr.try_as(kind)
            if found is not None:
                return found
        return None

    def attributes_of(self, kind: type[T]) -> list[T]:
        return [attr for attr in self.attributes if isinstance(attr, kind)]

    def remove_attributes(self, names: set[str]) -> int:
        """Drop attributes by name, recursing into Code. Returns how many were removed."""
        kept = [attr for attr in self.attributes if attr.attribute_name not in names]
        removed = len(self.attributes) - len(kept)
        self.attributes = kept
        for attr in kept:
            if isinstance(attr, Code):
                removed += attr.remove_attributes(names)
        return removed


@dataclass
class UnknownAttribute(Attribute):
    """An attribute this library does not interpret, kept byte for byte."""
    name: str
    info: bytes = b""

    @property
    def attribute_name(self) -> str:
        return self.name

    def write_info(self, writer: ByteWriter, pool: ConstantPool, codec: "AttributeCodec"):
        writer.write(self.info)


@dataclass
class ConstantValue(Attribute):
    NAME = "ConstantValue"
    constantvalue_index: int = 0

    @classmethod
    def read_info(cls, reader, pool, codec) -> "ConstantValue":
        return cls(reader.u2())

    def write_info(self, writer, pool, codec):
        writer.u2(self.constantvalue_index)

    def value(self, pool: ConstantPool) -> Constant:
        return pool[self.constantvalue_index]


@dataclass
class ExceptionTableEntry:
    """An entry in the exception table."""
    start_pc: int
    end_pc: int
    handler_pc: int
    catch_type: int  # 0 for finally (catches all), otherwise constant pool index of class

    @classmethod
    def read(cls, reader: ByteReader) -> "ExceptionTableEntry":
        return cls(reader.u2(), reader.u2(), reader.u2(), reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.start_pc)
        writer.u2(self.end_pc)
        writer.u2(self.handler_pc)
        writer.u2(self.catch_type)


@dataclass
class Code(Attribute, AttributeHolder):
    """Code attribute for a method. Instructions are kept as raw bytes."""
    NAME = "Code"
    max_stack: int = 0
    max_locals: int = 0
    code: bytes = b""
    exception_table: list[ExceptionTableEntry] = field(default_factory=list)
    attributes: list[Attribute] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "Code":
        max_stack = reader.u2()
        max_locals = reader.u2()
        code = reader.read(reader.u4())
        exception_table = [ExceptionTableEntry.read(reader) for _ in range(reader.u2())]
        attributes = codec.read_attributes(reader, pool)
        return cls(max_stack, max_locals, code, exception_table, attributes)

    def write_info(self, writer, pool, codec):
        writer.u2(self.max_stack)
        writer.u2(self.max_locals)
        writer.u4(len(self.code))
        writer.write(self.code)
        writer.u2(len(self.exception_table))
        for entry in self.exception_table:
            entry.write(writer)
        codec.write_attributes(writer, pool, self.attributes)


@dataclass
class Exceptions(Attribute):
    """Checked exceptions declared by a method."""
    NAME = "Exceptions"
    exception_index_table: list[int] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "Exceptions":
        return cls([reader.u2() for _ in range(reader.u2())])

    def write_info(self, writer, pool, codec):
        writer.u2(len(self.exception_index_table))
        for idx in self.exception_index_table:
            writer.u2(idx)

    def exception_names(self, pool: ConstantPool) -> list[str]:
        return [pool.class_name(idx) for idx in self.exception_index_table]


@dataclass
class InnerClassEntry:
    """Represents an entry in the InnerClasses attribute."""
    inner_class_info_index: int
    outer_class_info_index: int  # 0 for anonymous/local classes
    inner_name_index: int  # 0 for anonymous classes
    inner_class_access_flags: int

    @classmethod
    def read(cls, reader: ByteReader) -> "InnerClassEntry":
        return cls(reader.u2(), reader.u2(), reader.u2(), reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.inner_class_info_index)
        writer.u2(self.outer_class_info_index)
        writer.u2(self.inner_name_index)
        writer.u2(self.inner_class_access_flags)


@dataclass
class InnerClasses(Attribute):
    NAME = "InnerClasses"
    classes: list[InnerClassEntry] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "InnerClasses":
        return cls([InnerClassEntry.read(reader) for _ in range(reader.u2())])

    def write_info(self, writer, pool, codec):
        writer.u2(len(self.classes))
        for entry in self.classes:
            entry.write(writer)


@dataclass
class EnclosingMethod(Attribute):
    NAME = "EnclosingMethod"
    class_index: int = 0
    method_index: int = 0  # 0 when not enclosed by a method

    @classmethod
    def read_info(cls, reader, pool, codec) -> "EnclosingMethod":
        class_index = reader.u2()
        return cls(class_index, reader.u2())

    def write_info(self, writer, pool, codec):
        writer.u2(self.class_index)
        writer.u2(self.method_index)


@dataclass
class MarkerAttribute(Attribute):
    """An attribute with an empty payload."""

    @classmethod
    def read_info(cls, reader, pool, codec) -> "MarkerAttribute":
        return cls()

    def write_info(self, writer, pool, codec):
        pass


@dataclass
class Synthetic(MarkerAttribute):
    NAME = "Synthetic"


@dataclass
class Deprecated(MarkerAttribute):
    NAME = "Deprecated"


@dataclass
class Signature(Attribute):
    """Generic signature of a class, field or method."""
    NAME = "Signature"
    signature_index: int = 0

    @classmethod
    def read_info(cls, reader, pool, codec) -> "Signature":
        return cls(reader.u2())

    def write_info(self, writer, pool, codec):
        writer.u2(self.signature_index)

    def signature(self, pool: ConstantPool) -> str:
        return pool.utf8(self.signature_index)


@dataclass
class SourceFile(Attribute):
    NAME = "SourceFile"
    sourcefile_index: int = 0

    @classmethod
    def read_info(cls, reader, pool, codec) -> "SourceFile":
        return cls(reader.u2())

    def write_info(self, writer, pool, codec):
        writer.u2(self.sourcefile_index)

    def source_file(self, pool: ConstantPool) -> str:
        return pool.utf8(self.sourcefile_index)


@dataclass
class SourceDebugExtension(Attribute):
    """Opaque debug data; the payload is the whole attribute body."""
    NAME = "SourceDebugExtension"
    debug_extension: bytes = b""

    @classmethod
    def read_info(cls, reader, pool, codec) -> "SourceDebugExtension":
        return cls(reader.read(reader.remaining))

    def write_info(self, writer, pool, codec):
        writer.write(self.debug_extension)


@dataclass
class LineNumber:
    start_pc: int
    line_number: int


@dataclass
class LineNumberTable(Attribute):
    NAME = "LineNumberTable"
    line_number_table: list[LineNumber] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "LineNumberTable":
        table = []
        for _ in range(reader.u2()):
            start_pc = reader.u2()
            table.append(LineNumber(start_pc, reader.u2()))
        return cls(table)

    def write_info(self, writer, pool, codec):
        writer.u2(len(self.line_number_table))
        for entry in self.line_number_table:
            writer.u2(entry.start_pc)
            writer.u2(entry.line_number)


@dataclass
class LocalVariable:
    """A local variable slot; `descriptor_index` holds a signature in LocalVariableTypeTable."""
    start_pc: int
    length: int
    name_index: int
    descriptor_index: int
    index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "LocalVariable":
        return cls(reader.u2(), reader.u2(), reader.u2(), reader.u2(), reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.start_pc)
        writer.u2(self.length)
        writer.u2(self.name_index)
        writer.u2(self.descriptor_index)
        writer.u2(self.index)


@dataclass
class LocalVariablesAttribute(Attribute):
    local_variable_table: list[LocalVariable] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "LocalVariablesAttribute":
        return cls([LocalVariable.read(reader) for _ in range(reader.u2())])

    def write_info(self, writer, pool, codec):
        writer.u2(len(self.local_variable_table))
        for entry in self.local_variable_table:
            entry.write(writer)


@dataclass
class LocalVariableTable(LocalVariablesAttribute):
    NAME = "LocalVariableTable"


@dataclass
class LocalVariableTypeTable(LocalVariablesAttribute):
    NAME = "LocalVariableTypeTable"


@dataclass
class BootstrapMethod:
    bootstrap_method_ref: int
    bootstrap_arguments: list[int] = field(default_factory=list)


@dataclass
class BootstrapMethods(Attribute):
    NAME = "BootstrapMethods"
    bootstrap_methods: list[BootstrapMethod] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "BootstrapMethods":
        methods = []
        for _ in range(reader.u2()):
            ref = reader.u2()
            args = [reader.u2() for _ in range(reader.u2())]
            methods.append(BootstrapMethod(ref, args))
        return cls(methods)

    def write_info(self, writer, pool, codec):
        writer.u2(len(self.bootstrap_methods))
        for method in self.bootstrap_methods:
            writer.u2(method.bootstrap_method_ref)
            writer.u2(len(method.bootstrap_arguments))
            for arg in method.bootstrap_arguments:
                writer.u2(arg)


@dataclass
class MethodParameter:
    name_index: int  # 0 for a nameless parameter
    access_flags: int


@dataclass
class MethodParameters(Attribute):
    """Parameter names and flags for reflection."""
    NAME = "MethodParameters"
    parameters: list[MethodParameter] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "MethodParameters":
        params = []
        for _ in range(reader.u1()):
            name_index = reader.u2()
            params.append(MethodParameter(name_index, reader.u2()))
        return cls(params)

    def write_info(self, writer, pool, codec):
        writer.u1(len(self.parameters))
        for param in self.parameters:
            writer.u2(param.name_index)
            writer.u2(param.access_flags)


# Annotations

CONST_VALUE_TAGS = "BCDFIJSZs"


@dataclass
class EnumConstValue:
    type_name_index: int
    const_name_index: int


@dataclass
class ElementValue:
    """An annotation element value.

    `value` depends on `tag`: a pool index for constants (BCDFIJSZs) and
    classes (c), an EnumConstValue (e), an Annotation (@) or a list of
    ElementValue ([).
    """
    tag: str
    value: Union[int, EnumConstValue, "Annotation", list["ElementValue"]]

    @classmethod
    def read(cls, reader: ByteReader) -> "ElementValue":
        offset = reader.offset
        tag = chr(reader.u1())
        if tag in CONST_VALUE_TAGS or tag == "c":
            return cls(tag, reader.u2())
        if tag == "e":
            type_idx = reader.u2()
            return cls(tag, EnumConstValue(type_idx, reader.u2()))
        if tag == "@":
            return cls(tag, Annotation.read(reader))
        if tag == "[":
            return cls(tag, [cls.read(reader) for _ in range(reader.u2())])
        raise MalformedAttribute(f"unknown annotation element value tag {tag!r}", offset)

    def write(self, writer: ByteWriter):
        writer.u1(ord(self.tag))
        if self.tag in CONST_VALUE_TAGS or self.tag == "c":
            writer.u2(self.value)
        elif self.tag == "e":
            writer.u2(self.value.type_name_index)
            writer.u2(self.value.const_name_index)
        elif self.tag == "@":
            self.value.write(writer)
        elif self.tag == "[":
            writer.u2(len(self.value))
            for elem in self.value:
                elem.write(writer)
        else:
            raise MalformedAttribute(f"unknown annotation element value tag {self.tag!r}")


@dataclass
class ElementValuePair:
    element_name_index: int
    value: ElementValue


@dataclass
class Annotation:
    """An annotation; `type_index` names a field descriptor such as Ljava/lang/Deprecated;"""
    type_index: int
    element_value_pairs: list[ElementValuePair] = field(default_factory=list)

    @classmethod
    def read(cls, reader: ByteReader) -> "Annotation":
        type_idx = reader.u2()
        pairs = []
        for _ in range(reader.u2()):
            name_idx = reader.u2()
            pairs.append(ElementValuePair(name_idx, ElementValue.read(reader)))
        return cls(type_idx, pairs)

    def write(self, writer: ByteWriter):
        writer.u2(self.type_index)
        writer.u2(len(self.element_value_pairs))
        for pair in self.element_value_pairs:
            writer.u2(pair.element_name_index)
            pair.value.write(writer)

    def type_descriptor(self, pool: ConstantPool) -> str:
        return pool.utf8(self.type_index)


@dataclass
class AnnotationsAttribute(Attribute):
    annotations: list[Annotation] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "AnnotationsAttribute":
        return cls([Annotation.read(reader) for _ in range(reader.u2())])

    def write_info(self, writer, pool, codec):
        writer.u2(len(self.annotations))
        for ann in self.annotations:
            ann.write(writer)


@dataclass
class RuntimeVisibleAnnotations(AnnotationsAttribute):
    NAME = "RuntimeVisibleAnnotations"


@dataclass
class RuntimeInvisibleAnnotations(AnnotationsAttribute):
    NAME = "RuntimeInvisibleAnnotations"


@dataclass
class ParameterAnnotationsAttribute(Attribute):
    parameter_annotations: list[list[Annotation]] = field(default_factory=list)

    @classmethod
    def read_info(cls, reader, pool, codec) -> "ParameterAnnotationsAttribute":
        params = []
        for _ in range(reader.u1()):
            params.append([Annotation.read(reader) for _ in range(reader.u2())])
        return cls(params)

    def write_info(self, writer, pool, codec):
        writer.u1(len(self.parameter_annotations))
        for anns in self.parameter_annotations:
            writer.u2(len(anns))
            for ann in anns:
                ann.write(writer)


@dataclass
class RuntimeVisibleParameterAnnotations(ParameterAnnotationsAttribute):
    NAME = "RuntimeVisibleParameterAnnotations"


@dataclass
class RuntimeInvisibleParameterAnnotations(ParameterAnnotationsAttribute):
    NAME = "RuntimeInvisibleParameterAnnotations"


@dataclass
class AnnotationDefault(Attribute):
    """Default value of an annotation interface element."""
    NAME = "AnnotationDefault"
    default_value: Optional[ElementValue] = None

    @classmethod
    def read_info(cls, reader, pool, codec) -> "AnnotationDefault":
        return cls(ElementValue.read(reader))

    def write_info(self, writer, pool, codec):
        if self.default_value is None:
            raise MalformedAttribute("AnnotationDefault has no default value")
        self.default_value.write(writer)


ATTRIBUTE_TYPES: Mapping[str, type[Attribute]] = MappingProxyType({
    kind.NAME: kind for kind in (
        ConstantValue, Code, Exceptions, InnerClasses, EnclosingMethod,
        Synthetic, Signature, SourceFile, SourceDebugExtension,
        LineNumberTable, LocalVariableTable, LocalVariableTypeTable,
        Deprecated, BootstrapMethods, MethodParameters,
        RuntimeVisibleAnnotations, RuntimeInvisibleAnnotations,
        RuntimeVisibleParameterAnnotations, RuntimeInvisibleParameterAnnotations,
        AnnotationDefault,
    )
})


class AttributeCodec:
    """Reads and writes attribute lists using a fixed name -> type table."""

    def __init__(self, types: Mapping[str, type[Attribute]] = ATTRIBUTE_TYPES):
        self.types = MappingProxyType(dict(types))

    def extended(self, *kinds: type[Attribute]) -> "AttributeCodec":
        """Return a new codec that also decodes `kinds`."""
        types = dict(self.types)
        for kind in kinds:
            types[kind.NAME] = kind
        return AttributeCodec(types)

    def read(self, reader: ByteReader, pool: ConstantPool) -> Attribute:
        offset = reader.offset
        name_index = reader.u2()
        length = reader.u4()
        try:
            name = pool.utf8(name_index)
        except DanglingIndex as e:
            raise MalformedAttribute(f"attribute name is not a Utf8 entry: {e.message}", offset) from e

        payload = reader.sub_reader(length)
        kind = self.types.get(name)
        if kind is None:
            return UnknownAttribute(name, payload.read(length), name_index=name_index)

        try:
            attr = kind.read_info(payload, pool, self)
        except ClassFileIOError as e:
            raise MalformedAttribute(
                f"{name} attribute overruns its declared length of {length} bytes", e.offset) from e
        if payload.remaining:
            raise MalformedAttribute(
                f"{name} attribute declares {length} bytes but uses {length - payload.remaining}",
                offset)
        attr.name_index = name_index
        return attr

    def write(self, writer: ByteWriter, pool: ConstantPool, attribute: Attribute):
        name_idx = attribute.resolve_name_index(pool)
        # Build attribute data
        data = io.BytesIO()
        attribute.write_info(ByteWriter(data), pool, self)
        info = data.getvalue()
        writer.u2(name_idx)
        writer.u4(len(info))
        writer.write(info)

    def read_attributes(self, reader: ByteReader, pool: ConstantPool) -> list[Attribute]:
        return [self.read(reader, pool) for _ in range(reader.u2())]

    def write_attributes(self, writer: ByteWriter, pool: ConstantPool,
                         attributes: list[Attribute]):
        writer.u2(len(attributes))
        for attr in attributes:
            self.write(writer, pool, attr)


DEFAULT_CODEC = AttributeCodec()


def iter_attributes(attributes: list[Attribute]) -> Iterator[Attribute]:
    """Yield attributes depth-first, including those nested in Code."""
    for attr in attributes:
        yield attr
        if isinstance(attr, Code):
            yield from iter_attributes(attr.attributes)
