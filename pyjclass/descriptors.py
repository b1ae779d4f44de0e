"""
JVM field and method descriptor parser.

Descriptors are the compact type strings stored in the constant pool for
fields and methods, e.g. ``[Ljava/lang/String;`` or ``(IJ)V``.
See JVM Spec 4.3 for the grammar.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

GRAMMAR_FILE = Path(__file__).parent / "descriptor.lark"


class DescriptorError(ValueError):
    """Malformed field or method descriptor."""


class FieldType:
    """Base class for descriptor types."""

    @property
    def descriptor(self) -> str:
        raise NotImplementedError

    @property
    def java_name(self) -> str:
        raise NotImplementedError

    @property
    def size(self) -> int:
        """Local variable / operand stack slots taken by a value of this type."""
        return 1


@dataclass(frozen=True)
class BaseType(FieldType):
    """Primitive type (B, C, D, F, I, J, S, Z) or V for void returns."""
    code: str

    @property
    def descriptor(self) -> str:
        return self.code

    @property
    def java_name(self) -> str:
        names = {
            "B": "byte", "C": "char", "D": "double", "F": "float",
            "I": "int", "J": "long", "S": "short", "Z": "boolean", "V": "void"
        }
        return names[self.code]

    @property
    def size(self) -> int:
        if self.code == "V":
            return 0
        return 2 if self.code in "JD" else 1


VOID = BaseType("V")


@dataclass(frozen=True)
class ObjectType(FieldType):
    """Class or interface type (L<internal name>;)."""
    class_name: str  # internal form, e.g. "java/lang/String"

    @property
    def descriptor(self) -> str:
        return f"L{self.class_name};"

    @property
    def java_name(self) -> str:
        return self.class_name.replace("/", ".")


@dataclass(frozen=True)
class ArrayType(FieldType):
    """Array type ([<component>)."""
    component: FieldType

    @property
    def descriptor(self) -> str:
        return "[" + self.component.descriptor

    @property
    def java_name(self) -> str:
        return self.component.java_name + "[]"

    @property
    def dimensions(self) -> int:
        if isinstance(self.component, ArrayType):
            return self.component.dimensions + 1
        return 1


@dataclass(frozen=True)
class MethodDescriptor:
    """Parameter types and return type of a method."""
    parameters: tuple[FieldType, ...]
    return_type: FieldType

    @property
    def descriptor(self) -> str:
        params = "".join(p.descriptor for p in self.parameters)
        return f"({params}){self.return_type.descriptor}"

    @property
    def parameter_slots(self) -> int:
        """Slots taken by the arguments, not counting `this`."""
        return sum(p.size for p in self.parameters)

    def java_signature(self, name: str) -> str:
        params = ", ".join(p.java_name for p in self.parameters)
        return f"{self.return_type.java_name} {name}({params})"


@v_args(inline=True)
class DescriptorTransformer(Transformer):
    """Transforms the Lark parse tree into descriptor types."""

    def field_descriptor(self, field_type):
        return field_type

    def method_descriptor(self, *items):
        *params, return_type = items
        return MethodDescriptor(tuple(params), return_type)

    def void(self):
        return VOID

    def base(self, token):
        return BaseType(str(token))

    def object(self, token):
        return ObjectType(str(token))

    def array(self, component):
        return ArrayType(component)


class DescriptorParser:
    """Parses field and method descriptors."""

    def __init__(self):
        with open(GRAMMAR_FILE, "r") as f:
            grammar = f.read()

        self._parser = Lark(
            grammar,
            parser="lalr",
            start=["field_descriptor", "method_descriptor"],
        )
        self._transformer = DescriptorTransformer()

    def _parse(self, text: str, start: str):
        try:
            tree = self._parser.parse(text, start=start)
        except LarkError as e:
            raise DescriptorError(f"invalid descriptor {text!r}: {e}") from e
        return self._transformer.transform(tree)

    def parse_field(self, text: str) -> FieldType:
        return self._parse(text, "field_descriptor")

    def parse_method(self, text: str) -> MethodDescriptor:
        return self._parse(text, "method_descriptor")


@lru_cache(maxsize=None)
def _default_parser() -> DescriptorParser:
    return DescriptorParser()


def parse_field_descriptor(text: str) -> FieldType:
    return _default_parser().parse_field(text)


def parse_method_descriptor(text: str) -> MethodDescriptor:
    return _default_parser().parse_method(text)
