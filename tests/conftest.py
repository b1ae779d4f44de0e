"""Hand-assembled class files shared by the tests."""

import io
import struct
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


def u1(value: int) -> bytes:
    return struct.pack(">B", value)


def u2(value: int) -> bytes:
    return struct.pack(">H", value)


def u4(value: int) -> bytes:
    return struct.pack(">I", value)


def utf8(value: str) -> bytes:
    data = value.encode("utf-8")
    return u1(1) + u2(len(data)) + data


def attribute(name_index: int, payload: bytes, length_delta: int = 0) -> bytes:
    return u2(name_index) + u4(len(payload) + length_delta) + payload


class TrickleSource(io.RawIOBase):
    """Unbuffered source that hands out at most three bytes per read."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def readable(self):
        return True

    def readinto(self, buffer):
        chunk = self._data[self._pos:self._pos + min(3, len(buffer))]
        buffer[:len(chunk)] = chunk
        self._pos += len(chunk)
        return len(chunk)


# Constant pool layout of the Hello class below.
HELLO_POOL_COUNT = 26
HELLO_THIS = 2
HELLO_SUPER = 4
HELLO_LONG = 13
HELLO_DOUBLE = 18
HELLO_SOURCE_NAME = 12


def hello_class_bytes(magic: int = 0xCAFEBABE, sourcefile_length_delta: int = 0,
                      code_length_delta: int = 0) -> bytes:
    """A class Hello with a long constant field, a constructor, main and a custom attribute.

    The length deltas corrupt the declared length of the class SourceFile
    attribute or the constructor's Code attribute without touching the payload.
    """
    pool = b"".join([
        utf8("Hello"),                                   # 1
        u1(7) + u2(1),                                   # 2 Class Hello
        utf8("java/lang/Object"),                        # 3
        u1(7) + u2(3),                                   # 4 Class java/lang/Object
        utf8("<init>"),                                  # 5
        utf8("()V"),                                     # 6
        utf8("Code"),                                    # 7
        utf8("LineNumberTable"),                         # 8
        u1(12) + u2(5) + u2(6),                          # 9 NameAndType <init>:()V
        u1(10) + u2(4) + u2(9),                          # 10 Methodref Object.<init>
        utf8("SourceFile"),                              # 11
        utf8("Hello.java"),                              # 12
        u1(5) + struct.pack(">q", 1234567890123),        # 13 (+14) Long
        utf8("BIG"),                                     # 15
        utf8("J"),                                       # 16
        utf8("ConstantValue"),                           # 17
        u1(6) + struct.pack(">d", 3.5),                  # 18 (+19) Double
        utf8("CustomData"),                              # 20
        utf8("main"),                                    # 21
        utf8("([Ljava/lang/String;)V"),                  # 22
        u1(8) + u2(12),                                  # 23 String "Hello.java"
        u1(3) + struct.pack(">i", -7),                   # 24 Integer
        u1(4) + struct.pack(">f", 1.5),                  # 25 Float
    ])

    field_big = (
        u2(0x0018) + u2(15) + u2(16)
        + u2(1) + attribute(17, u2(HELLO_LONG))
    )

    line_numbers = attribute(8, u2(1) + u2(0) + u2(1))
    init_code = (
        u2(1) + u2(1)
        + u4(5) + bytes([0x2A, 0xB7, 0x00, 0x0A, 0xB1])  # aload_0; invokespecial #10; return
        + u2(0)
        + u2(1) + line_numbers
    )
    method_init = (
        u2(0x0001) + u2(5) + u2(6)
        + u2(1) + attribute(7, init_code, code_length_delta)
    )

    main_code = (
        u2(0) + u2(1)
        + u4(1) + bytes([0xB1])  # return
        + u2(1) + u2(0) + u2(1) + u2(0) + u2(0)
        + u2(0)
    )
    method_main = (
        u2(0x0009) + u2(21) + u2(22)
        + u2(2) + attribute(7, main_code) + attribute(20, b"\xde\xad\xbe\xef\x00")
    )

    class_attributes = (
        u2(2)
        + attribute(11, u2(HELLO_SOURCE_NAME), sourcefile_length_delta)
        + attribute(20, b"\x01\x02\x03")
    )

    return b"".join([
        u4(magic), u2(0), u2(52),
        u2(HELLO_POOL_COUNT), pool,
        u2(0x0021), u2(HELLO_THIS), u2(HELLO_SUPER),
        u2(0),
        u2(1), field_big,
        u2(2), method_init, method_main,
        class_attributes,
    ])


def minimal_class_bytes(this_class: int, super_class: int = 0) -> bytes:
    """A class whose pool holds a single Utf8 "Object" entry."""
    return b"".join([
        u4(0xCAFEBABE), u2(0), u2(52),
        u2(2), utf8("Object"),
        u2(0x0021), u2(this_class), u2(super_class),
        u2(0), u2(0), u2(0), u2(0),
    ])


@pytest.fixture
def hello_bytes():
    return hello_class_bytes()


@pytest.fixture
def hello_path(tmp_path, hello_bytes):
    path = tmp_path / "Hello.class"
    path.write_bytes(hello_bytes)
    return path
