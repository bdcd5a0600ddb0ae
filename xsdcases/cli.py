import argparse
import logging
import sys
from typing import List, Optional

from .catalog import SchemaLoadError
from .config import GeneratorConfig
from .generator import TestCaseGenerator


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xsdcases",
        description="Generate positive and negative XML test documents from an XSD schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  xsdcases examples/library.xsd
  xsdcases schema.xsd generated --workers 4 --quiet
        """,
    )
    parser.add_argument("schema", help="XSD schema file")
    parser.add_argument("output_dir", nargs="?", default="test-output",
                        help="output directory (default: test-output)")
    parser.add_argument("--no-validate", dest="validate", action="store_false",
                        help="skip validating generated documents against the schema")
    parser.add_argument("--workers", type=_positive_int, default=None,
                        help="threads used to write and validate documents (default: CPU count)")
    parser.add_argument("--marker", default="INVALID_",
                        help="prefix of out-of-enumeration values (default: INVALID_)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--debug", action="store_true", help="log every generated file")
    verbosity.add_argument("--quiet", action="store_true", help="only log warnings and errors")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.INFO
    if args.debug:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    config = GeneratorConfig(
        output_dir=args.output_dir,
        validate=args.validate,
        workers=args.workers,
        sentinel_marker=args.marker,
    )
    try:
        generator = TestCaseGenerator(args.schema, config)
    except SchemaLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    summary = generator.run()
    print(f"Positive test cases: {summary.positive}")
    print(f"Negative test cases: {summary.negative}")
    print(f"Output directory: {config.output_dir}")
    print(f"Warnings: {len(summary.warnings)}")
    return 0
