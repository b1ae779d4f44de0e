"""
Constant pool entries and the constant pool codec.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import ClassVar, Iterator, Optional, TypeVar

from .cursor import ByteReader, ByteWriter
from .errors import DanglingIndex, MalformedConstant
from .variant import Variant

T = TypeVar("T")


class ConstantPoolTag(IntEnum):
    UTF8 = 1
    INTEGER = 3
    FLOAT = 4
    LONG = 5
    DOUBLE = 6
    CLASS = 7
    STRING = 8
    FIELDREF = 9
    METHODREF = 10
    INTERFACE_METHODREF = 11
    NAME_AND_TYPE = 12
    METHOD_HANDLE = 15
    METHOD_TYPE = 16
    DYNAMIC = 17
    INVOKE_DYNAMIC = 18
    MODULE = 19
    PACKAGE = 20


class MethodHandleKind(IntEnum):
    GET_FIELD = 1
    GET_STATIC = 2
    PUT_FIELD = 3
    PUT_STATIC = 4
    INVOKE_VIRTUAL = 5
    INVOKE_STATIC = 6
    INVOKE_SPECIAL = 7
    NEW_INVOKE_SPECIAL = 8
    INVOKE_INTERFACE = 9


def decode_modified_utf8(data: bytes) -> str:
    """Decode the JVM's modified UTF-8.

    NUL is stored as C0 80 and supplementary characters as two 3-byte
    surrogates. Only the canonical form is accepted, so that re-encoding
    reproduces the input.
    """
    units = []
    i = 0
    n = len(data)
    while i < n:
        b = data[i]
        if 0 < b < 0x80:
            units.append(b)
            i += 1
        elif b & 0xE0 == 0xC0 and i + 1 < n and data[i + 1] & 0xC0 == 0x80:
            unit = ((b & 0x1F) << 6) | (data[i + 1] & 0x3F)
            if 0 < unit < 0x80:
                raise ValueError(f"overlong 2-byte sequence at {i}")
            units.append(unit)
            i += 2
        elif (b & 0xF0 == 0xE0 and i + 2 < n
              and data[i + 1] & 0xC0 == 0x80 and data[i + 2] & 0xC0 == 0x80):
            unit = ((b & 0x0F) << 12) | ((data[i + 1] & 0x3F) << 6) | (data[i + 2] & 0x3F)
            if unit < 0x800:
                raise ValueError(f"overlong 3-byte sequence at {i}")
            units.append(unit)
            i += 3
        else:
            raise ValueError(f"invalid byte 0x{b:02x} at {i}")
    # Recombine surrogate pairs; lone surrogates are kept as-is.
    raw = struct.pack(f">{len(units)}H", *units)
    return raw.decode("utf-16-be", "surrogatepass")


def encode_modified_utf8(value: str) -> bytes:
    raw = value.encode("utf-16-be", "surrogatepass")
    out = bytearray()
    for unit in struct.unpack(f">{len(raw) // 2}H", raw):
        if 0 < unit < 0x80:
            out.append(unit)
        elif unit < 0x800:
            out.append(0xC0 | (unit >> 6))
            out.append(0x80 | (unit & 0x3F))
        else:
            out.append(0xE0 | (unit >> 12))
            out.append(0x80 | ((unit >> 6) & 0x3F))
            out.append(0x80 | (unit & 0x3F))
    return bytes(out)


class Constant(Variant):
    """A constant pool entry."""

    TAG: ClassVar[ConstantPoolTag]
    SLOTS: ClassVar[int] = 1

    @classmethod
    def read(cls, reader: ByteReader) -> "Constant":
        raise NotImplementedError

    def write(self, writer: ByteWriter):
        raise NotImplementedError


@dataclass(frozen=True)
class Utf8(Constant):
    TAG = ConstantPoolTag.UTF8
    value: str

    @classmethod
    def read(cls, reader: ByteReader) -> "Utf8":
        start = reader.offset
        data = reader.read(reader.u2())
        try:
            return cls(decode_modified_utf8(data))
        except ValueError as e:
            raise MalformedConstant(f"bad modified UTF-8: {e}", start) from e

    def write(self, writer: ByteWriter):
        data = encode_modified_utf8(self.value)
        writer.u2(len(data))
        writer.write(data)


@dataclass(frozen=True)
class IntegerConstant(Constant):
    TAG = ConstantPoolTag.INTEGER
    value: int

    @classmethod
    def read(cls, reader: ByteReader) -> "IntegerConstant":
        return cls(reader.i4())

    def write(self, writer: ByteWriter):
        writer.i4(self.value)


@dataclass(frozen=True)
class FloatConstant(Constant):
    """A float, kept as its raw bit pattern so NaN payloads survive."""
    TAG = ConstantPoolTag.FLOAT
    bits: int

    @classmethod
    def from_value(cls, value: float) -> "FloatConstant":
        return cls(struct.unpack(">I", struct.pack(">f", value))[0])

    @property
    def value(self) -> float:
        return struct.unpack(">f", struct.pack(">I", self.bits))[0]

    @classmethod
    def read(cls, reader: ByteReader) -> "FloatConstant":
        return cls(reader.u4())

    def write(self, writer: ByteWriter):
        writer.u4(self.bits)


@dataclass(frozen=True)
class LongConstant(Constant):
    TAG = ConstantPoolTag.LONG
    SLOTS = 2
    value: int

    @classmethod
    def read(cls, reader: ByteReader) -> "LongConstant":
        return cls(reader.i8())

    def write(self, writer: ByteWriter):
        writer.i8(self.value)


@dataclass(frozen=True)
class DoubleConstant(Constant):
    """A double, kept as its raw bit pattern."""
    TAG = ConstantPoolTag.DOUBLE
    SLOTS = 2
    bits: int

    @classmethod
    def from_value(cls, value: float) -> "DoubleConstant":
        return cls(struct.unpack(">Q", struct.pack(">d", value))[0])

    @property
    def value(self) -> float:
        return struct.unpack(">d", struct.pack(">Q", self.bits))[0]

    @classmethod
    def read(cls, reader: ByteReader) -> "DoubleConstant":
        return cls(int.from_bytes(reader.read(8), "big"))

    def write(self, writer: ByteWriter):
        writer.write(self.bits.to_bytes(8, "big"))


@dataclass(frozen=True)
class ClassRef(Constant):
    TAG = ConstantPoolTag.CLASS
    name_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "ClassRef":
        return cls(reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.name_index)


@dataclass(frozen=True)
class StringRef(Constant):
    TAG = ConstantPoolTag.STRING
    string_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "StringRef":
        return cls(reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.string_index)


@dataclass(frozen=True)
class MemberRef(Constant):
    """Common layout of field, method and interface method references."""
    class_index: int
    name_and_type_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "MemberRef":
        class_index = reader.u2()
        return cls(class_index, reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.class_index)
        writer.u2(self.name_and_type_index)


@dataclass(frozen=True)
class FieldRef(MemberRef):
    TAG = ConstantPoolTag.FIELDREF


@dataclass(frozen=True)
class MethodRef(MemberRef):
    TAG = ConstantPoolTag.METHODREF


@dataclass(frozen=True)
class InterfaceMethodRef(MemberRef):
    TAG = ConstantPoolTag.INTERFACE_METHODREF


@dataclass(frozen=True)
class NameAndType(Constant):
    TAG = ConstantPoolTag.NAME_AND_TYPE
    name_index: int
    descriptor_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "NameAndType":
        name_index = reader.u2()
        return cls(name_index, reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.name_index)
        writer.u2(self.descriptor_index)


@dataclass(frozen=True)
class MethodHandle(Constant):
    TAG = ConstantPoolTag.METHOD_HANDLE
    reference_kind: int
    reference_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "MethodHandle":
        kind = reader.u1()
        return cls(kind, reader.u2())

    def write(self, writer: ByteWriter):
        writer.u1(self.reference_kind)
        writer.u2(self.reference_index)


@dataclass(frozen=True)
class MethodType(Constant):
    TAG = ConstantPoolTag.METHOD_TYPE
    descriptor_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "MethodType":
        return cls(reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.descriptor_index)


@dataclass(frozen=True)
class BootstrapRef(Constant):
    """Common layout of dynamically-computed constants and call sites."""
    bootstrap_method_attr_index: int
    name_and_type_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "BootstrapRef":
        bootstrap = reader.u2()
        return cls(bootstrap, reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.bootstrap_method_attr_index)
        writer.u2(self.name_and_type_index)


@dataclass(frozen=True)
class DynamicConstant(BootstrapRef):
    TAG = ConstantPoolTag.DYNAMIC


@dataclass(frozen=True)
class InvokeDynamic(BootstrapRef):
    TAG = ConstantPoolTag.INVOKE_DYNAMIC


@dataclass(frozen=True)
class NamedRef(Constant):
    """Common layout of module and package references."""
    name_index: int

    @classmethod
    def read(cls, reader: ByteReader) -> "NamedRef":
        return cls(reader.u2())

    def write(self, writer: ByteWriter):
        writer.u2(self.name_index)


@dataclass(frozen=True)
class ModuleRef(NamedRef):
    TAG = ConstantPoolTag.MODULE


@dataclass(frozen=True)
class PackageRef(NamedRef):
    TAG = ConstantPoolTag.PACKAGE


CONSTANT_TYPES = MappingProxyType({
    kind.TAG: kind for kind in (
        Utf8, IntegerConstant, FloatConstant, LongConstant, DoubleConstant,
        ClassRef, StringRef, FieldRef, MethodRef, InterfaceMethodRef,
        NameAndType, MethodHandle, MethodType, DynamicConstant, InvokeDynamic,
        ModuleRef, PackageRef,
    )
})


class ConstantPool:
    """The constant pool of a class file.

    Slots are 1-indexed. Slot 0 and the slot after every long or double hold
    no entry, so ``count`` (the value stored in the class file header) is
    larger than ``len(pool)``, the number of entries.
    """

    def __init__(self):
        self._entries: list[Optional[Constant]] = [None]  # 1-indexed
        self._cache: dict[Constant, int] = {}

    @property
    def count(self) -> int:
        """The declared pool size: number of slots including slot 0."""
        return len(self._entries)

    def __len__(self) -> int:
        return sum(1 for entry in self._entries if entry is not None)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ConstantPool):
            return NotImplemented
        return self._entries == other._entries

    __hash__ = None

    def __iter__(self) -> Iterator[Constant]:
        for entry in self._entries:
            if entry is not None:
                yield entry

    def items(self) -> Iterator[tuple[int, Constant]]:
        for index, entry in enumerate(self._entries):
            if entry is not None:
                yield index, entry

    def __getitem__(self, index: int) -> Constant:
        if index == 0:
            raise DanglingIndex("pool index 0 is never valid")
        if not 0 < index < len(self._entries):
            raise DanglingIndex(
                f"pool index {index} out of range (pool has {len(self._entries)} slots)")
        entry = self._entries[index]
        if entry is None:
            raise DanglingIndex(f"pool index {index} is the second slot of a 64-bit constant")
        return entry

    def get(self, index: int, kind: type[T]) -> T:
        entry = self[index]
        found = entry.try_as(kind)
        if found is None:
            raise DanglingIndex(
                f"pool index {index} is {type(entry).__name__}, expected {kind.__name__}")
        return found

    def utf8(self, index: int) -> str:
        return self.get(index, Utf8).value

    def class_name(self, index: int) -> str:
        return self.utf8(self.get(index, ClassRef).name_index)

    def find(self, entry: Constant) -> Optional[int]:
        return self._cache.get(entry)

    def find_utf8(self, value: str) -> Optional[int]:
        return self._cache.get(Utf8(value))

    def _append(self, entry: Constant) -> int:
        idx = len(self._entries)
        self._entries.append(entry)
        self._cache.setdefault(entry, idx)
        # Long and Double take two slots
        for _ in range(entry.SLOTS - 1):
            self._entries.append(None)
        return idx

    def add(self, entry: Constant) -> int:
        """Return the index of `entry`, appending it if the pool lacks it."""
        idx = self._cache.get(entry)
        if idx is not None:
            return idx
        return self._append(entry)

    def add_utf8(self, value: str) -> int:
        return self.add(Utf8(value))

    def add_integer(self, value: int) -> int:
        return self.add(IntegerConstant(value))

    def add_float(self, value: float) -> int:
        return self.add(FloatConstant.from_value(value))

    def add_long(self, value: int) -> int:
        return self.add(LongConstant(value))

    def add_double(self, value: float) -> int:
        return self.add(DoubleConstant.from_value(value))

    def add_class(self, internal_name: str) -> int:
        name_idx = self.add_utf8(internal_name)
        return self.add(ClassRef(name_idx))

    def add_string(self, value: str) -> int:
        utf8_idx = self.add_utf8(value)
        return self.add(StringRef(utf8_idx))

    def add_name_and_type(self, name: str, descriptor: str) -> int:
        name_idx = self.add_utf8(name)
        desc_idx = self.add_utf8(descriptor)
        return self.add(NameAndType(name_idx, desc_idx))

    def add_fieldref(self, class_name: str, field_name: str, descriptor: str) -> int:
        class_idx = self.add_class(class_name)
        nat_idx = self.add_name_and_type(field_name, descriptor)
        return self.add(FieldRef(class_idx, nat_idx))

    def add_methodref(self, class_name: str, method_name: str, descriptor: str) -> int:
        class_idx = self.add_class(class_name)
        nat_idx = self.add_name_and_type(method_name, descriptor)
        return self.add(MethodRef(class_idx, nat_idx))

    def add_interface_methodref(self, class_name: str, method_name: str, descriptor: str) -> int:
        class_idx = self.add_class(class_name)
        nat_idx = self.add_name_and_type(method_name, descriptor)
        return self.add(InterfaceMethodRef(class_idx, nat_idx))

    @classmethod
    def read(cls, reader: ByteReader, count: int) -> "ConstantPool":
        """Read entries for slots 1..count-1."""
        pool = cls()
        i = 1
        while i < count:
            offset = reader.offset
            tag = reader.u1()
            kind = CONSTANT_TYPES.get(tag)
            if kind is None:
                raise MalformedConstant(f"unknown constant pool tag {tag} at pool index {i}", offset)
            entry = kind.read(reader)
            pool._append(entry)
            i += entry.SLOTS
        if i != count:
            raise MalformedConstant(
                f"constant pool declares {count} slots but its entries fill {i}", reader.offset)
        return pool

    def write(self, writer: ByteWriter):
        writer.u2(self.count)
        for entry in self._entries[1:]:
            if entry is None:
                continue
            writer.u1(entry.TAG)
            entry.write(writer)
