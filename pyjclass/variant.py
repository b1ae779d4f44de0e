"""
Typed projection shared by constant pool entries and attributes.
"""

from typing import Optional, TypeVar

T = TypeVar("T")


class Variant:
    """Base for the members of a closed tagged union.

    Callers branch on the concrete type with ``try_as`` and get ``None`` back
    when the variant does not match. ``expect`` is for callers that have
    already checked the discriminant.
    """

    def try_as(self, kind: type[T]) -> Optional[T]:
        if isinstance(self, kind):
            return self
        return None

    def expect(self, kind: type[T]) -> T:
        if not isinstance(self, kind):
            raise TypeError(f"expected {kind.__name__}, got {type(self).__name__}")
        return self
