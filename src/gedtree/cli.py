"""
CLI interface for gedtree.

Scan a GEDCOM file, print a summary of what was found, and optionally show
records, a secondary index or the diagnostic log.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import get_config
from .diagnostics import KeyDerivationError, SourceOpenError
from .document import Document, Mode
from .dom import Node


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    cfg = get_config()

    parser = argparse.ArgumentParser(
        prog="gedtree",
        description="Scan a GEDCOM file into a record tree and query it",
    )

    parser.add_argument(
        "file",
        help="GEDCOM file to read",
    )

    parser.add_argument(
        "--mode",
        "-m",
        type=int,
        default=cfg.index.default_mode,
        help="Storage mode bits: 1 out of core, 2 write index file, 4 read index file "
             f"(default: {cfg.index.default_mode})",
    )

    parser.add_argument(
        "--out-of-core",
        action="store_true",
        help="Keep only record offsets in memory; re-read records on demand",
    )

    parser.add_argument(
        "--no-read-index",
        action="store_false",
        dest="read_index",
        default=True,
        help="Do not read the offset file before scanning",
    )

    parser.add_argument(
        "--no-write-index",
        action="store_false",
        dest="write_index",
        default=True,
        help="Do not write the offset file after scanning",
    )

    parser.add_argument(
        "--get",
        "-g",
        action="append",
        default=[],
        metavar="NAME",
        help="Print a record by key, tag or record number (repeatable)",
    )

    parser.add_argument(
        "--index",
        "-i",
        type=str,
        metavar="TAG",
        help="Build a secondary index on the data of field TAG and list its keys",
    )

    parser.add_argument(
        "--assemble",
        "-a",
        action="store_true",
        help="Print the whole file reassembled from the parsed records",
    )

    parser.add_argument(
        "--check-encoding",
        action="store_true",
        help="Report lines that are not valid in the charset declared by HEAD.CHAR",
    )

    parser.add_argument(
        "--messages",
        action="store_true",
        help="Print the diagnostic log",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log progress to stderr",
    )

    return parser.parse_args(args)


def resolve_mode(parsed: argparse.Namespace) -> Mode:
    """Combine --mode with the individual flags."""
    base = Mode.from_bits(parsed.mode)
    return Mode(
        out_of_core=base.out_of_core or parsed.out_of_core,
        write_index=base.write_index and parsed.write_index,
        read_index=base.read_index and parsed.read_index,
    )


def lookup_name(name: str) -> str | int:
    """Record numbers on the command line are plain integers."""
    return int(name) if name.isdigit() else name


def summarize(document: Document) -> str:
    lines = [
        f"{document.filename}: {len(document)} records",
        f"  individuals: {len(document.individuals)}",
        f"  families: {len(document.families)}",
        f"  other keyed: {len(document.other)}",
        f"  unkeyed tags: {', '.join(sorted(document.first_records)) or '-'}",
    ]
    return "\n".join(lines)


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parsed = parse_args(args)

    level = "INFO" if parsed.verbose else get_config().logging.level
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        mode = resolve_mode(parsed)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        document = Document(parsed.file, mode)
    except SourceOpenError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    with document:
        print(summarize(document))

        for name in parsed.get:
            found = document.get(lookup_name(name))
            if isinstance(found, Node):
                print(found.assemble(), end="")
            elif found is None:
                print(f"Error: {name} not found", file=sys.stderr)
            else:
                print(f"{name}: {found}")

        if parsed.index:
            try:
                index = document.build_index(parsed.index)
            except KeyDerivationError as e:
                print(f"Error: {e.message}", file=sys.stderr)
                return 1
            for key, record in index.items():
                print(f"{key}\t{record.key or record.tag}")
            if index.log:
                print(index.log.concat(), file=sys.stderr)

        if parsed.check_encoding:
            ok, message = document.check_encoding()
            print(message)
            if not ok:
                return 1

        if parsed.assemble:
            print(document.assemble(), end="")

        if parsed.messages:
            print(document.messages.concat())

    return 0


if __name__ == "__main__":
    sys.exit(main())
