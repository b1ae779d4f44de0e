#!/usr/bin/env python3
"""
Command-line interface for pyjclass - inspect, verify and shrink class files.
"""

import argparse
import sys
from pathlib import Path

from loguru import logger

DEFAULT_STRIP = (
    "LineNumberTable",
    "LocalVariableTable",
    "LocalVariableTypeTable",
    "SourceFile",
    "SourceDebugExtension",
)

CLASS_FLAGS = [
    (0x0001, "public"), (0x0010, "final"), (0x0020, "super"), (0x0200, "interface"),
    (0x0400, "abstract"), (0x1000, "synthetic"), (0x2000, "annotation"),
    (0x4000, "enum"), (0x8000, "module"),
]
FIELD_FLAGS = [
    (0x0001, "public"), (0x0002, "private"), (0x0004, "protected"), (0x0008, "static"),
    (0x0010, "final"), (0x0040, "volatile"), (0x0080, "transient"),
    (0x1000, "synthetic"), (0x4000, "enum"),
]
METHOD_FLAGS = [
    (0x0001, "public"), (0x0002, "private"), (0x0004, "protected"), (0x0008, "static"),
    (0x0010, "final"), (0x0020, "synchronized"), (0x0040, "bridge"), (0x0080, "varargs"),
    (0x0100, "native"), (0x0400, "abstract"), (0x0800, "strict"), (0x1000, "synthetic"),
]


def _setup_logging(verbose: bool):
    logger.remove()
    logger.add(sys.stderr, format="[{level}] {message}", level="DEBUG" if verbose else "INFO")


def _format_flags(flags: int, names: list[tuple[int, str]]) -> str:
    return " ".join(name for bit, name in names if flags & bit)


def _attribute_names(attributes) -> str:
    from .attributes import Code

    parts = []
    for attr in attributes:
        if isinstance(attr, Code) and attr.attributes:
            parts.append(f"Code({', '.join(a.attribute_name for a in attr.attributes)})")
        else:
            parts.append(attr.attribute_name)
    return ", ".join(parts)


def _read_class(path: Path):
    from .classfile import decode

    with open(path, "rb") as f:
        return decode(f)


def dump_command(args):
    """Print a summary of each class file."""
    for source_file in args.files:
        path = Path(source_file)
        if not path.exists():
            print(f"Error: File not found: {source_file}", file=sys.stderr)
            sys.exit(1)

        try:
            cf = _read_class(path)
            pool = cf.constant_pool
            logger.debug(f"{path}: {len(pool)} pool entries in {pool.count} slots")

            print(f"{_format_flags(cf.access_flags, CLASS_FLAGS)} class {cf.this_class_name()}"
                  f" (version {cf.major_version}.{cf.minor_version})")
            super_name = cf.super_class_name()
            if super_name:
                print(f"  extends {super_name}")
            for name in cf.interface_names():
                print(f"  implements {name}")
            source = cf.source_file()
            if source:
                print(f"  source file: {source}")

            for fld in cf.fields:
                flags = _format_flags(fld.access_flags, FIELD_FLAGS)
                type_name = fld.parsed_descriptor(pool).java_name
                decl = f"{type_name} {fld.name(pool)}"
                line = f"field {flags} {decl}" if flags else f"field {decl}"
                if fld.attributes:
                    line += f"  [{_attribute_names(fld.attributes)}]"
                print("  " + line)

            for method in cf.methods:
                flags = _format_flags(method.access_flags, METHOD_FLAGS)
                sig = method.parsed_descriptor(pool).java_signature(method.name(pool))
                line = f"method {flags} {sig}" if flags else f"method {sig}"
                if method.attributes:
                    line += f"  [{_attribute_names(method.attributes)}]"
                print("  " + line)

            if cf.attributes:
                print(f"  attributes: {_attribute_names(cf.attributes)}")
        except Exception as e:
            print(f"Error reading {source_file}: {e}", file=sys.stderr)
            sys.exit(1)


def roundtrip_command(args):
    """Decode and re-encode each file and compare the bytes."""
    from .classfile import decode

    failures = 0
    for source_file in args.files:
        path = Path(source_file)
        try:
            data = path.read_bytes()
            encoded = decode(data).to_bytes()
        except Exception as e:
            print(f"Error reading {source_file}: {e}", file=sys.stderr)
            failures += 1
            continue

        if encoded == data:
            logger.debug(f"{path}: {len(data)} bytes reproduced")
            if not args.quiet:
                print(f"OK   {path}")
            continue

        failures += 1
        first = next((i for i, (a, b) in enumerate(zip(data, encoded)) if a != b),
                     min(len(data), len(encoded)))
        logger.warning(f"{path}: first difference at byte {first} "
                       f"({len(data)} bytes in, {len(encoded)} bytes out)")
        print(f"DIFF {path}")

    if failures:
        sys.exit(1)


def strip_command(args):
    """Remove attributes from a class file and write the result."""
    names = set(args.attributes or DEFAULT_STRIP)
    path = Path(args.file)
    output = Path(args.output)

    try:
        cf = _read_class(path)
        removed = cf.remove_attributes(names)
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "wb") as f:
            cf.write(f)
    except Exception as e:
        print(f"Error stripping {path}: {e}", file=sys.stderr)
        sys.exit(1)

    logger.debug(f"stripped attributes: {', '.join(sorted(names))}")
    if not args.quiet:
        print(f"Removed {removed} attribute(s): {path.stat().st_size} -> {output.stat().st_size} bytes")


def main(argv=None):
    """Main entry point for pyjclass CLI."""
    parser = argparse.ArgumentParser(
        prog="pyjclass",
        description="Decode, verify and rewrite Java class files",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print debug diagnostics to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    dump_parser = subparsers.add_parser(
        "dump",
        help="Print class, field, method and attribute summary",
    )
    dump_parser.add_argument(
        "files",
        nargs="+",
        help="Class files to dump",
    )
    dump_parser.set_defaults(func=dump_command)

    roundtrip_parser = subparsers.add_parser(
        "roundtrip",
        help="Check that decoding and re-encoding reproduces each file exactly",
    )
    roundtrip_parser.add_argument(
        "files",
        nargs="+",
        help="Class files to check",
    )
    roundtrip_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only report files that differ",
    )
    roundtrip_parser.set_defaults(func=roundtrip_command)

    strip_parser = subparsers.add_parser(
        "strip",
        help="Remove debug attributes to shrink a class file",
    )
    strip_parser.add_argument(
        "file",
        help="Class file to strip",
    )
    strip_parser.add_argument(
        "-o", "--output",
        required=True,
        help="Where to write the stripped class file",
    )
    strip_parser.add_argument(
        "-a", "--attribute",
        dest="attributes",
        action="append",
        help=f"Attribute name to remove (repeatable; default: {', '.join(DEFAULT_STRIP)})",
    )
    strip_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress summary output",
    )
    strip_parser.set_defaults(func=strip_command)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
