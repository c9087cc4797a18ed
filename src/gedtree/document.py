"""
Document: the root container of a parsed GEDCOM file.

Opening a document always scans the whole file once, to learn where every
record starts and which record owns which key. What happens to the parsed
records depends on the storage mode:

- in core (default): every record is kept; the file is closed after the scan.
- out of core: only the offsets are kept; the file stays open and every
  lookup seeks to the record and parses it again. Nothing fetched this way
  is cached, so memory stays bounded by the offset table however large the
  file is and however often records are visited.

Lookups by name try, in order: individual keys, family keys, other keys,
the first unkeyed record with that tag, and finally a few attributes of
the document itself (`filename`, `mode`, `messages`, ...).

One lock per document serialises lookups, because an out-of-core fetch
moves the shared file position.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .config import Config, get_config
from .diagnostics import DiagnosticKind, DiagnosticLog, SourceOpenError, StorageError
from .dom import Node, NodeArena
from .index import DocumentIndex, index_path_for
from .lines import LineSource
from .parser import parse_record
from .secondary import KeyFunction, SecondaryIndex, build_index

logger = logging.getLogger(__name__)

OUT_OF_CORE = 1
WRITE_INDEX_FILE = 2
READ_INDEX_FILE = 4

UTF8_NAMES = ("UTF-8", "UTF8")


@dataclass(frozen=True)
class Mode:
    """Storage mode of a document."""
    out_of_core: bool = False
    write_index: bool = True
    read_index: bool = True

    @classmethod
    def from_bits(cls, bits: int) -> Mode:
        """Build from the bitmask 1 = out of core, 2 = write index, 4 = read index."""
        if isinstance(bits, bool) or not isinstance(bits, int):
            raise TypeError(f"Mode bits must be an int, got {type(bits).__name__}")
        if not 0 <= bits <= 7:
            raise ValueError(f"Mode bits must be between 0 and 7, got {bits}")
        return cls(
            out_of_core=bool(bits & OUT_OF_CORE),
            write_index=bool(bits & WRITE_INDEX_FILE),
            read_index=bool(bits & READ_INDEX_FILE),
        )

    @property
    def bits(self) -> int:
        return ((OUT_OF_CORE if self.out_of_core else 0)
                | (WRITE_INDEX_FILE if self.write_index else 0)
                | (READ_INDEX_FILE if self.read_index else 0))


class Document:
    """A scanned GEDCOM file."""

    # Attributes reachable through get() after all tables have missed.
    EXPOSED_FIELDS = (
        "filename", "mode", "messages", "offsets", "index_path",
        "individuals", "families", "other", "first_records",
    )

    def __init__(
        self,
        filename: str | Path,
        mode: Mode | int | None = None,
        *,
        config: Config | None = None,
        log: DiagnosticLog | None = None,
    ):
        config = config or get_config()
        if mode is None:
            mode = config.index.default_mode
        if isinstance(mode, int):
            mode = Mode.from_bits(mode)
        if not isinstance(mode, Mode):
            raise TypeError(f"mode must be a Mode or an int, got {type(mode).__name__}")

        self.filename = str(filename)
        self.mode = mode
        self.encoding = config.source.encoding
        self.messages = log if log is not None else DiagnosticLog()
        self.index = DocumentIndex()
        self.index_path = index_path_for(self.filename, config.index.suffix)
        self._arena: NodeArena | None = None if mode.out_of_core else NodeArena(self)
        self._records: list[Node] = []
        self._lock = threading.RLock()
        self._strategies: list[Callable[[str], object | None]] = [
            self._lookup_table,
            self._lookup_field,
        ]

        try:
            self._handle: BinaryIO | None = open(self.filename, "rb")
        except OSError as exc:
            message = f"Could not open '{self.filename}' for reading: {exc.strerror or exc}"
            self.messages.append(DiagnosticKind.SOURCE_OPEN, "%s", message)
            raise SourceOpenError(message, self.messages) from exc

        self.messages.append(DiagnosticKind.NOTE, "Reading %s", self.filename)
        if self.index_path is None and (mode.read_index or mode.write_index):
            self.messages.append(DiagnosticKind.AUX_FILE,
                                 "%s does not end in .ged or .GED", self.filename)

        if mode.read_index:
            self.index.load_offsets(self.index_path, self.messages)
        try:
            self._scan()
        except BaseException:
            self.close()
            raise
        if not mode.out_of_core:
            self.close()
        if mode.write_index:
            self.index.save_offsets(self.index_path, self.messages)

    def _scan(self) -> None:
        assert self._handle is not None
        source = LineSource.from_file(self._handle, encoding=self.encoding)
        on_record = None if self.mode.out_of_core else self._retain
        self.index.scan(source, self.messages, arena=self._arena, on_record=on_record)

    def _retain(self, number: int, node: Node) -> None:
        self._records.append(node)

    # -- read access --------------------------------------------------------

    @property
    def offsets(self) -> list[int]:
        return self.index.offsets

    @property
    def individuals(self) -> dict[str, int]:
        return self.index.individuals

    @property
    def families(self) -> dict[str, int]:
        return self.index.families

    @property
    def other(self) -> dict[str, int]:
        return self.index.other

    @property
    def first_records(self) -> dict[str, int]:
        return self.index.first_records

    @property
    def closed(self) -> bool:
        return self._handle is None

    def get(self, name: str | int) -> Node | object | None:
        """
        Look up a record by key, tag or record number.

        Strings go through the lookup strategies in order and return the
        first hit. Integers are record numbers (1-based). None means not
        found.
        """
        if isinstance(name, bool) or not isinstance(name, (str, int)):
            raise TypeError(f"Invalid key type for Document: {type(name).__name__}")
        with self._lock:
            if isinstance(name, int):
                return self._record(name)
            for strategy in self._strategies:
                found = strategy(name)
                if found is not None:
                    return found
            return None

    def _lookup_table(self, name: str) -> Node | None:
        number = self.index.lookup(name)
        if number is None:
            return None
        return self._record(number)

    def _lookup_field(self, name: str) -> object | None:
        if name in self.EXPOSED_FIELDS:
            return getattr(self, name)
        return None

    def _record(self, number: int) -> Node | None:
        if not 1 <= number <= len(self.index):
            return None
        if self.mode.out_of_core:
            return self._fetch(number)
        if number > len(self._records):
            raise StorageError(f"record #{number} is indexed but not held in memory", self.messages)
        return self._records[number - 1]

    def _fetch(self, number: int) -> Node | None:
        """Seek to record `number` and parse it into a fresh arena."""
        if self._handle is None:
            return None
        offset = self.index.offsets[number - 1]
        source = LineSource.from_file(self._handle, start=offset, encoding=self.encoding)
        return parse_record(source, 0, arena=NodeArena(self))

    def __getitem__(self, name: str | int) -> Node | object:
        found = self.get(name)
        if found is None:
            raise KeyError(name)
        return found

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (str, int)) or isinstance(name, bool):
            return False
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self.index)

    def __iter__(self) -> Iterator[Node]:
        """Records in file order (re-read one at a time when out of core)."""
        for number in range(1, len(self.index) + 1):
            record = self.get(number)
            if record is None:
                return
            yield record

    def records(self) -> Iterator[tuple[int, Node]]:
        """(record number, record) pairs in file order."""
        return enumerate(self, start=1)

    def assemble(self) -> str:
        """The source text, rebuilt from the records."""
        return "".join(record.assemble() for record in self)

    def build_index(self, tag: str, key_fn: KeyFunction | None = None) -> SecondaryIndex:
        """Secondary index of records by a value derived from their `tag` field."""
        with self._lock:
            return build_index(self, tag, key_fn, log=DiagnosticLog(translate=self.messages.translate))

    def check_encoding(self) -> tuple[bool, str]:
        """
        Check every line for bytes that are not valid in the declared charset.

        Only files whose header declares UTF-8 (HEAD.CHAR) can be checked.
        Each bad line is logged as an ENCODING diagnostic.
        """
        head = self.get("HEAD")
        char = head.get("CHAR") if isinstance(head, Node) else None
        if char is None:
            return False, "Can't check a file that does not provide HEAD.CHAR"
        if char.data.strip().upper() not in UTF8_NAMES:
            return False, f"Can't check encoding {char.data.strip()}, only UTF-8"

        bad = 0
        for number, record in self.records():
            for line in record.raw_lines():
                if _has_undecodable(line.text):
                    bad += 1
                    self.messages.append(
                        DiagnosticKind.ENCODING,
                        "record #%d: UTF-8 phase error in line at position %d",
                        number, line.pos, record=number, position=line.pos,
                    )
        if bad:
            return False, f"checked UTF-8: {bad} bad lines"
        return True, "checked UTF-8: no bad lines"

    # -- lifecycle ------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def __enter__(self) -> Document:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Document({self.filename!r}, records={len(self)}, mode={self.mode.bits})"


def _has_undecodable(text: str) -> bool:
    # surrogateescape maps every undecodable byte to U+DC80..U+DCFF
    return any("\udc80" <= ch <= "\udcff" for ch in text)


def open_document(
    filename: str | Path,
    mode: Mode | int | None = None,
    *,
    config: Config | None = None,
) -> tuple[Document, DiagnosticLog]:
    """
    Open and scan `filename`.

    Returns the document and its diagnostic log. Raises SourceOpenError
    if the file cannot be read.
    """
    document = Document(filename, mode, config=config)
    return document, document.messages
