"""pyjclass - Decode and re-encode Java class files."""

from .attributes import (
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
    EnclosingMethod,
    Exceptions,
    ExceptionTableEntry,
    InnerClasses,
    LineNumberTable,
    LocalVariableTable,
    LocalVariableTypeTable,
    MethodParameters,
    RuntimeInvisibleAnnotations,
    RuntimeInvisibleParameterAnnotations,
    RuntimeVisibleAnnotations,
    RuntimeVisibleParameterAnnotations,
    Signature,
    SourceDebugExtension,
    SourceFile,
    Synthetic,
    UnknownAttribute,
)
from .classfile import MAGIC, AccessFlags, ClassFile, ClassFileVersion, decode, encode
from .constants import (
    CONSTANT_TYPES,
    ClassRef,
    Constant,
    ConstantPool,
    ConstantPoolTag,
    DoubleConstant,
    DynamicConstant,
    FieldRef,
    FloatConstant,
    IntegerConstant,
    InterfaceMethodRef,
    InvokeDynamic,
    LongConstant,
    MethodHandle,
    MethodRef,
    MethodType,
    ModuleRef,
    NameAndType,
    PackageRef,
    StringRef,
    Utf8,
)
from .descriptors import DescriptorError, parse_field_descriptor, parse_method_descriptor
from .errors import (
    BadMagic,
    ClassFileError,
    ClassFileIOError,
    DanglingIndex,
    MalformedAttribute,
    MalformedConstant,
    TrailingData,
)
from .members import FieldInfo, MethodInfo

__version__ = "0.1.0"
__all__ = [
    "decode",
    "encode",
    "ClassFile",
    "ConstantPool",
    "AttributeCodec",
    "FieldInfo",
    "MethodInfo",
    "ClassFileError",
    "ClassFileIOError",
    "BadMagic",
    "MalformedConstant",
    "MalformedAttribute",
    "DanglingIndex",
    "TrailingData",
]
