"""
Diagnostics and faults.

Recoverable conditions (a stale offset file, a line at the wrong level, a
duplicate key) are appended to an ordered DiagnosticLog that is handed back
to the caller alongside the result. Conditions that abort an operation
are raised as GedTreeError subclasses carrying the log built so far.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class DiagnosticKind(enum.Enum):
    NOTE = "note"
    OFFSET_MISMATCH = "offset-mismatch"
    LINE_LEVEL = "line-level"
    NON_STRING_KEY = "non-string-key"
    DUPLICATE_KEY = "duplicate-key"
    AUX_FILE = "aux-file"
    KEY_DERIVATION = "key-derivation"
    SOURCE_OPEN = "source-open"
    ENCODING = "encoding"


@dataclass(frozen=True)
class Diagnostic:
    """One logged condition, with the record number and source position it concerns."""
    kind: DiagnosticKind
    message: str
    record: int | None = None
    position: int | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class DiagnosticLog:
    """
    Ordered list of diagnostics.

    `translate` maps message templates to replacement templates, so a caller
    can localise or reword messages, e.g.
        log.translate["Could not read from `%s`, skipping."] = "no index %s"
    """
    translate: dict[str, str] = field(default_factory=dict)
    entries: list[Diagnostic] = field(default_factory=list)

    def append(
        self,
        kind: DiagnosticKind,
        template: str,
        *args: object,
        record: int | None = None,
        position: int | None = None,
    ) -> Diagnostic:
        """Format `template % args` (after translation) and record it."""
        template = self.translate.get(template, template)
        message = template % args if args else template
        diagnostic = Diagnostic(kind, message, record=record, position=position)
        self.entries.append(diagnostic)
        if kind is DiagnosticKind.NOTE:
            logger.info(message)
        else:
            logger.warning(message)
        return diagnostic

    def extend(self, other: DiagnosticLog) -> None:
        self.entries.extend(other.entries)

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.entries if d.kind is kind]

    def concat(self) -> str:
        """All messages, one per line, suitable for a log file."""
        return "\n".join(d.message for d in self.entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __str__(self) -> str:
        return self.concat()


class GedTreeError(Exception):
    """Base class for faults that abort an operation."""

    def __init__(self, message: str, log: DiagnosticLog | None = None):
        super().__init__(message)
        self.message = message
        self.log = log if log is not None else DiagnosticLog()


class SourceOpenError(GedTreeError):
    """The source file could not be opened; nothing was built."""


class KeyDerivationError(GedTreeError):
    """A caller-supplied key function failed while building a secondary index."""


class StorageError(GedTreeError):
    """A record number that should be held in memory is missing."""
