"""
Big-endian readers and writers over binary streams.
"""

import io
import struct
from typing import BinaryIO, Optional

from .errors import ClassFileIOError

_U2 = struct.Struct(">H")
_U4 = struct.Struct(">I")
_I4 = struct.Struct(">i")
_I8 = struct.Struct(">q")


class ByteReader:
    """Forward-only reader of big-endian values."""

    def __init__(self, source: BinaryIO, offset: int = 0, limit: Optional[int] = None):
        self._source = source
        self._pos = offset
        self._limit = limit

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> "ByteReader":
        return cls(io.BytesIO(data), offset, offset + len(data))

    @property
    def offset(self) -> int:
        """Absolute position of the next byte to be read."""
        return self._pos

    @property
    def remaining(self) -> Optional[int]:
        """Bytes left before the limit, or None for an unbounded source."""
        if self._limit is None:
            return None
        return self._limit - self._pos

    def read(self, length: int) -> bytes:
        if length == 0:
            return b""
        # Raw streams (sockets, pipes) may return fewer bytes than asked for
        data = bytearray()
        while len(data) < length:
            try:
                chunk = self._source.read(length - len(data))
            except OSError as e:
                raise ClassFileIOError(f"read failed: {e}", self._pos) from e
            if not chunk:
                raise ClassFileIOError(
                    f"unexpected end of input: wanted {length} bytes, got {len(data)}", self._pos)
            data += chunk
        self._pos += length
        return bytes(data)

    def u1(self) -> int:
        return self.read(1)[0]

    def u2(self) -> int:
        return _U2.unpack(self.read(2))[0]

    def u4(self) -> int:
        return _U4.unpack(self.read(4))[0]

    def i4(self) -> int:
        return _I4.unpack(self.read(4))[0]

    def i8(self) -> int:
        return _I8.unpack(self.read(8))[0]

    def sub_reader(self, length: int) -> "ByteReader":
        """Read `length` bytes and return a reader bounded to them."""
        start = self._pos
        return ByteReader.from_bytes(self.read(length), start)


class ByteWriter:
    """Forward-only writer of big-endian values."""

    def __init__(self, sink: BinaryIO):
        self._sink = sink
        self._pos = 0

    @property
    def offset(self) -> int:
        return self._pos

    def write(self, data: bytes):
        if not data:
            return
        try:
            written = self._sink.write(data)
        except OSError as e:
            raise ClassFileIOError(f"write failed: {e}", self._pos) from e
        if written is not None and written != len(data):
            raise ClassFileIOError(
                f"short write: {written} of {len(data)} bytes", self._pos)
        self._pos += len(data)

    def _pack(self, packer: struct.Struct, value: int, name: str):
        try:
            self.write(packer.pack(value))
        except struct.error:
            raise ValueError(f"{value} does not fit in {name}") from None

    def u1(self, value: int):
        if not 0 <= value <= 0xFF:
            raise ValueError(f"{value} does not fit in u1")
        self.write(bytes((value,)))

    def u2(self, value: int):
        self._pack(_U2, value, "u2")

    def u4(self, value: int):
        self._pack(_U4, value, "u4")

    def i4(self, value: int):
        self._pack(_I4, value, "i4")

    def i8(self, value: int):
        self._pack(_I8, value, "i8")
