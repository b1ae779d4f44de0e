"""
Exceptions raised while decoding or encoding class files.
"""

from typing import Optional


class ClassFileError(Exception):
    """Base class for all class file decoding/encoding errors."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.message = message
        self.offset = offset
        super().__init__(message)

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} (at byte offset {self.offset})"


class ClassFileIOError(ClassFileError, OSError):
    """The underlying byte source or sink failed, or ended early."""


class BadMagic(ClassFileError):
    """The input does not start with 0xCAFEBABE."""


class MalformedConstant(ClassFileError):
    """Unknown constant pool tag or broken 64-bit slot bookkeeping."""


class MalformedAttribute(ClassFileError):
    """Attribute length does not match its payload, or its name is not a Utf8 entry."""


class TrailingData(ClassFileError):
    """Bytes remain in the input after the last class attribute."""


class DanglingIndex(ClassFileError):
    """A pool index points outside the pool or at the wrong kind of entry."""
