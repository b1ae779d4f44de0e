"""
Java class file reader and writer.

Decoding keeps every pool index as a plain integer; nothing is resolved until
a caller asks for it, so a class with a dangling index still decodes and the
error surfaces at the lookup that hits it.
"""

import io
from dataclasses import dataclass, field
from enum import IntFlag
from typing import BinaryIO, Optional, Union

from .attributes import DEFAULT_CODEC, Attribute, AttributeCodec, AttributeHolder, SourceFile
from .constants import ConstantPool
from .cursor import ByteReader, ByteWriter
from .errors import BadMagic, TrailingData
from .members import FieldInfo, MethodInfo

MAGIC = 0xCAFEBABE


class ClassFileVersion:
    JAVA_6 = (50, 0)
    JAVA_7 = (51, 0)
    JAVA_8 = (52, 0)
    JAVA_11 = (55, 0)
    JAVA_17 = (61, 0)
    JAVA_21 = (65, 0)


class AccessFlags(IntFlag):
    PUBLIC = 0x0001
    PRIVATE = 0x0002
    PROTECTED = 0x0004
    STATIC = 0x0008
    FINAL = 0x0010
    SUPER = 0x0020  # For classes (invokespecial semantics)
    SYNCHRONIZED = 0x0020  # For methods
    VOLATILE = 0x0040
    BRIDGE = 0x0040
    TRANSIENT = 0x0080
    VARARGS = 0x0080
    NATIVE = 0x0100
    INTERFACE = 0x0200
    ABSTRACT = 0x0400
    STRICT = 0x0800
    SYNTHETIC = 0x1000
    ANNOTATION = 0x2000
    ENUM = 0x4000
    MODULE = 0x8000


ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


@dataclass
class ClassFile(AttributeHolder):
    """Represents a Java class file."""
    minor_version: int = 0
    major_version: int = ClassFileVersion.JAVA_8[0]
    constant_pool: ConstantPool = field(default_factory=ConstantPool)
    access_flags: int = AccessFlags.PUBLIC | AccessFlags.SUPER
    this_class: int = 0
    super_class: int = 0  # 0 only for java/lang/Object
    interfaces: list[int] = field(default_factory=list)
    fields: list[FieldInfo] = field(default_factory=list)
    methods: list[MethodInfo] = field(default_factory=list)
    attributes: list[Attribute] = field(default_factory=list)
    magic: int = MAGIC

    @property
    def version(self) -> tuple[int, int]:
        return (self.major_version, self.minor_version)

    @property
    def constant_pool_count(self) -> int:
        """The pool size as written to the header, derived from the pool layout."""
        return self.constant_pool.count

    @classmethod
    def read(cls, source: ByteSource, codec: AttributeCodec = DEFAULT_CODEC) -> "ClassFile":
        if isinstance(source, (bytes, bytearray, memoryview)):
            reader = ByteReader.from_bytes(bytes(source))
        else:
            reader = ByteReader(source)

        # Magic number
        magic = reader.u4()
        if magic != MAGIC:
            raise BadMagic(f"invalid class file magic: {magic:#010x}", 0)

        # Version
        minor = reader.u2()
        major = reader.u2()

        # Constant pool
        pool = ConstantPool.read(reader, reader.u2())

        access_flags = reader.u2()
        this_class = reader.u2()
        super_class = reader.u2()

        interfaces = [reader.u2() for _ in range(reader.u2())]
        fields = [FieldInfo.read(reader, pool, codec) for _ in range(reader.u2())]
        methods = [MethodInfo.read(reader, pool, codec) for _ in range(reader.u2())]

        # Class attributes
        attributes = codec.read_attributes(reader, pool)

        # A stream is left positioned after the class; a buffer must be used up
        if reader.remaining:
            raise TrailingData(
                f"{reader.remaining} unexpected bytes after the class file", reader.offset)

        return cls(
            minor_version=minor,
            major_version=major,
            constant_pool=pool,
            access_flags=access_flags,
            this_class=this_class,
            super_class=super_class,
            interfaces=interfaces,
            fields=fields,
            methods=methods,
            attributes=attributes,
            magic=magic,
        )

    @classmethod
    def from_bytes(cls, data: bytes, codec: AttributeCodec = DEFAULT_CODEC) -> "ClassFile":
        return cls.read(data, codec)

    def write(self, sink: BinaryIO, codec: AttributeCodec = DEFAULT_CODEC):
        writer = ByteWriter(sink)
        pool = self.constant_pool

        writer.u4(self.magic)
        writer.u2(self.minor_version)
        writer.u2(self.major_version)
        pool.write(writer)

        writer.u2(self.access_flags)
        writer.u2(self.this_class)
        writer.u2(self.super_class)

        writer.u2(len(self.interfaces))
        for idx in self.interfaces:
            writer.u2(idx)

        writer.u2(len(self.fields))
        for fld in self.fields:
            fld.write(writer, pool, codec)

        writer.u2(len(self.methods))
        for method in self.methods:
            method.write(writer, pool, codec)

        codec.write_attributes(writer, pool, self.attributes)

    def to_bytes(self, codec: AttributeCodec = DEFAULT_CODEC) -> bytes:
        out = io.BytesIO()
        self.write(out, codec)
        return out.getvalue()

    def this_class_name(self) -> str:
        return self.constant_pool.class_name(self.this_class)

    def super_class_name(self) -> Optional[str]:
        if self.super_class == 0:
            return None
        return self.constant_pool.class_name(self.super_class)

    def interface_names(self) -> list[str]:
        return [self.constant_pool.class_name(idx) for idx in self.interfaces]

    def source_file(self) -> Optional[str]:
        attr = self.attribute(SourceFile)
        if attr is None:
            return None
        return attr.source_file(self.constant_pool)

    def find_method(self, name: str, descriptor: Optional[str] = None) -> Optional[MethodInfo]:
        pool = self.constant_pool
        for method in self.methods:
            if method.name(pool) == name and (descriptor is None or method.descriptor(pool) == descriptor):
                return method
        return None

    def find_field(self, name: str) -> Optional[FieldInfo]:
        for fld in self.fields:
            if fld.name(self.constant_pool) == name:
                return fld
        return None

    def remove_attributes(self, names: set[str]) -> int:
        """Drop attributes by name from the class, its members and their code."""
        removed = super().remove_attributes(names)
        for member in [*self.fields, *self.methods]:
            removed += member.remove_attributes(names)
        return removed


def decode(source: ByteSource, codec: AttributeCodec = DEFAULT_CODEC) -> ClassFile:
    """Decode a class file from bytes or a binary stream."""
    return ClassFile.read(source, codec)


def encode(class_file: ClassFile, sink: Optional[BinaryIO] = None,
           codec: AttributeCodec = DEFAULT_CODEC) -> Optional[bytes]:
    """Encode a class file to `sink`, or return the bytes when no sink is given."""
    if sink is None:
        return class_file.to_bytes(codec)
    class_file.write(sink, codec)
    return None
