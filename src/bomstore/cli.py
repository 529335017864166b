"""
bomstore CLI.

Commands:
    bomstore convert INPUT OUTPUT   Read a document, verify it, write it out
    bomstore demo OUTPUT            Build the example document, copy it into
                                    a fresh store and write it out

Output formats follow the file suffix (.json, .yaml/.yml, .xml) unless
--format is given.

Exit codes:
    0  success (verification warnings are reported but do not fail)
    1  I/O, parse, serialization or configuration failure, printed as
       "<Category>: <message>"
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from bomstore.backends import InMemoryModelStore
from bomstore.config import StoreConfig, load_config
from bomstore.document import SpdxDocument
from bomstore.errors import BomStoreError
from bomstore.examples import build_example_document
from bomstore.fileio import read_document, write_document
from bomstore.serialization import Format, Verbosity


logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_warnings(warnings: List[str]) -> str:
    """Verification result as printable lines."""
    if not warnings:
        return "Document is valid"
    lines = ["Verification failed for the following reason(s):"]
    lines.extend(f"  {w}" for w in warnings)
    return "\n".join(lines)


def format_error(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"


def _report(doc: SpdxDocument) -> None:
    warnings = doc.verify()
    if warnings:
        logger.warning("%s has %d verification warning(s)", doc.document_uri, len(warnings))
    print(format_warnings(warnings))


# =============================================================================
# CLI COMMANDS
# =============================================================================

def cmd_convert(args: argparse.Namespace, config: StoreConfig) -> int:
    """Deserialize INPUT, print its creators, verify it and write OUTPUT."""
    store = InMemoryModelStore(config)
    document_uri = read_document(store, args.input)
    print(f"Successfully deserialized {document_uri}")

    doc = SpdxDocument(store, document_uri)
    info = doc.creation_info
    if info is not None:
        print("Creators:")
        for creator in info.creators:
            print(f"  {creator}")
    _report(doc)

    path = write_document(store, document_uri, args.output,
                          format=_format(args), verbosity=_verbosity(args))
    print(f"Serialized {document_uri} to {path}")
    return 0


def cmd_demo(args: argparse.Namespace, config: StoreConfig) -> int:
    """Build the example document, copy it into a second store, write it."""
    work_store = InMemoryModelStore(config)
    doc = build_example_document(work_store)
    print(f"Successfully created {doc.document_uri}")
    _report(doc)

    out_store = InMemoryModelStore(config)
    copy = SpdxDocument(out_store, doc.document_uri, create=True)
    copy.copy_from(doc)

    path = write_document(out_store, copy.document_uri, args.output,
                          format=_format(args), verbosity=_verbosity(args))
    print(f"Serialized {copy.document_uri} to {path}")
    return 0


def _format(args: argparse.Namespace) -> Optional[Format]:
    return Format(args.format) if args.format else None


def _verbosity(args: argparse.Namespace) -> Optional[Verbosity]:
    return Verbosity(args.verbosity) if args.verbosity else None


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bomstore",
        description="Read, verify, copy and write SPDX-style bill-of-materials documents",
    )
    parser.add_argument(
        "--config",
        help="YAML configuration file",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    output_options = argparse.ArgumentParser(add_help=False)
    output_options.add_argument(
        "--format",
        choices=[f.value for f in Format],
        help="Output format (default: from the output suffix)",
    )
    output_options.add_argument(
        "--verbosity",
        choices=[v.value for v in Verbosity],
        help="Inline anonymous elements (compact) or write every element (full)",
    )

    # Convert command
    convert_parser = subparsers.add_parser(
        "convert",
        parents=[output_options],
        help="Read a document, verify it and write it out",
    )
    convert_parser.add_argument("input", help="Document to read")
    convert_parser.add_argument("output", help="Where to write the document")
    convert_parser.set_defaults(func=cmd_convert)

    # Demo command
    demo_parser = subparsers.add_parser(
        "demo",
        parents=[output_options],
        help="Build the example document and write it out",
    )
    demo_parser.add_argument("output", help="Where to write the document")
    demo_parser.set_defaults(func=cmd_demo)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"ConfigurationError: {e}")
        return 1
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args, config)
    except BomStoreError as e:
        print(format_error(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
