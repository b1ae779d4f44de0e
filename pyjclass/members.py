"""
Field and method records.
"""

from dataclasses import dataclass, field
from typing import Optional

from .attributes import DEFAULT_CODEC, Attribute, AttributeCodec, AttributeHolder, Code
from .constants import ConstantPool
from .cursor import ByteReader, ByteWriter
from .descriptors import FieldType, MethodDescriptor, parse_field_descriptor, parse_method_descriptor


@dataclass
class MemberInfo(AttributeHolder):
    """Layout shared by field_info and method_info."""
    access_flags: int
    name_index: int
    descriptor_index: int
    attributes: list[Attribute] = field(default_factory=list)

    @classmethod
    def read(cls, reader: ByteReader, pool: ConstantPool,
             codec: AttributeCodec = DEFAULT_CODEC) -> "MemberInfo":
        access_flags = reader.u2()
        name_index = reader.u2()
        descriptor_index = reader.u2()
        attributes = codec.read_attributes(reader, pool)
        return cls(access_flags, name_index, descriptor_index, attributes)

    def write(self, writer: ByteWriter, pool: ConstantPool,
              codec: AttributeCodec = DEFAULT_CODEC):
        writer.u2(self.access_flags)
        writer.u2(self.name_index)
        writer.u2(self.descriptor_index)
        codec.write_attributes(writer, pool, self.attributes)

    def name(self, pool: ConstantPool) -> str:
        return pool.utf8(self.name_index)

    def descriptor(self, pool: ConstantPool) -> str:
        return pool.utf8(self.descriptor_index)


@dataclass
class FieldInfo(MemberInfo):
    """Field in a class file."""

    def parsed_descriptor(self, pool: ConstantPool) -> FieldType:
        return parse_field_descriptor(self.descriptor(pool))


@dataclass
class MethodInfo(MemberInfo):
    """Method in a class file."""

    @property
    def code(self) -> Optional[Code]:
        """The Code attribute; None for abstract and native methods."""
        return self.attribute(Code)

    def parsed_descriptor(self, pool: ConstantPool) -> MethodDescriptor:
        return parse_method_descriptor(self.descriptor(pool))
