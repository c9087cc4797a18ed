"""
Document index: one sequential scan over the source.

For every top-level record the scan remembers its byte offset and, if the
record carries a key, which record number owns that key. Unkeyed records
are indexed by tag instead, first occurrence only. This is what allows an
out-of-core document to find a record again later without holding it in
memory.

The offsets can be persisted to a sibling file (`Dirk Laurie.GED` ->
`dirk_laurie.idx`). When such a file is read before scanning, the scan
checks every stored offset against the one it computes; the freshly
computed value always wins and each disagreement is logged.

Record numbers are 1-based.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .diagnostics import DiagnosticKind, DiagnosticLog
from .dom import Node, NodeArena
from .lines import LineSource
from .parser import parse_record

logger = logging.getLogger(__name__)

INDIVIDUAL_TAG = "INDI"
FAMILY_TAG = "FAM"

GED_SUFFIX_PATTERN = re.compile(r"\.ged$")


def index_path_for(filename: str | Path, suffix: str = ".idx") -> Path | None:
    """
    Path of the offset file for `filename`, or None if it does not end in .ged.

    The file lives beside the source; its name is the source's name
    lower-cased, with spaces turned into underscores and `.ged` replaced by
    `suffix`.
    """
    path = Path(filename)
    name, count = GED_SUFFIX_PATTERN.subn(suffix, path.name.lower().replace(" ", "_"))
    if count != 1:
        return None
    return path.with_name(name)


@dataclass
class DocumentIndex:
    """Offsets and key tables built by scanning a document."""
    offsets: list[int] = field(default_factory=list)
    individuals: dict[str, int] = field(default_factory=dict)
    families: dict[str, int] = field(default_factory=dict)
    other: dict[str, int] = field(default_factory=dict)
    first_records: dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.offsets)

    def table_for(self, tag: str | None) -> dict[str, int]:
        """Keyed table that a record with this tag belongs to."""
        if tag == INDIVIDUAL_TAG:
            return self.individuals
        if tag == FAMILY_TAG:
            return self.families
        return self.other

    def lookup(self, name: str) -> int | None:
        """Record number for a key, else for an unkeyed tag, else None."""
        for table in (self.individuals, self.families, self.other, self.first_records):
            number = table.get(name)
            if number is not None:
                return number
        return None

    def register(self, number: int, node: Node, log: DiagnosticLog) -> None:
        """Enter record `number` into the key or first-occurrence table."""
        if node.key is not None:
            table = self.table_for(node.tag)
            if node.key in table:
                log.append(
                    DiagnosticKind.DUPLICATE_KEY,
                    "record #%d: duplicate key @%s@, already used by record #%d",
                    number, node.key, table[node.key],
                    record=number, position=node.pos,
                )
                return
            table[node.key] = number
        elif node.tag is not None:
            self.first_records.setdefault(node.tag, number)

    def scan(
        self,
        source: LineSource,
        log: DiagnosticLog,
        *,
        arena: NodeArena | None = None,
        on_record: Callable[[int, Node], None] | None = None,
    ) -> int:
        """
        Parse every top-level record of `source` in file order.

        Offsets already present (loaded from an offset file) are checked
        and overwritten. `arena` receives the nodes if they are to be kept;
        otherwise each record gets a throwaway arena. `on_record` is called
        with each record number and node. Returns the number of records.
        """
        expected = self.offsets
        self.offsets = []
        for table in (self.individuals, self.families, self.other, self.first_records):
            table.clear()
        number = 0
        while True:
            node = parse_record(source, 0, arena=arena, log=log)
            if node is None:
                break
            number += 1
            if number <= len(expected) and expected[number - 1] != node.pos:
                log.append(
                    DiagnosticKind.OFFSET_MISMATCH,
                    "record #%d: byte offset %d but index file expects %d",
                    number, node.pos, expected[number - 1],
                    record=number, position=node.pos,
                )
            self.offsets.append(node.pos)
            self.register(number, node, log)
            if on_record is not None:
                on_record(number, node)

        if len(expected) > number:
            log.append(
                DiagnosticKind.OFFSET_MISMATCH,
                "index file lists %d records but only %d were found",
                len(expected), number,
            )
        logger.debug("Scanned %d records", number)
        return number

    def load_offsets(self, path: Path | None, log: DiagnosticLog) -> bool:
        """Read offsets from `path` for the next scan to check."""
        if path is None:
            log.append(DiagnosticKind.AUX_FILE, "  Skipping reading of index file")
            return False
        try:
            text = path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError):
            log.append(DiagnosticKind.AUX_FILE, "Could not read from `%s`, skipping.", str(path))
            return False

        offsets: list[int] = []
        for token in text.split():
            if not token.isdigit():
                log.append(DiagnosticKind.AUX_FILE,
                           "Index file `%s` has a bad entry %r, using only the first %d offsets",
                           str(path), token, len(offsets))
                self.offsets = offsets
                return True
            offsets.append(int(token))
        self.offsets = offsets
        log.append(DiagnosticKind.NOTE, "Offsets for %d records read from `%s`",
                   len(offsets), str(path))
        return True

    def save_offsets(self, path: Path | None, log: DiagnosticLog) -> bool:
        """Write the current offsets to `path`."""
        if path is None:
            log.append(DiagnosticKind.AUX_FILE, "  Skipping writing of index file")
            return False
        try:
            path.write_text(" ".join(str(offset) for offset in self.offsets), encoding="ascii")
        except OSError:
            log.append(DiagnosticKind.AUX_FILE, "Could not write to file `%s`, skipping.", str(path))
            return False
        log.append(DiagnosticKind.NOTE, "Offsets for %d records written to `%s`",
                   len(self.offsets), str(path))
        return True
