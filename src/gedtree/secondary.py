"""
Secondary indexes: records looked up by a value derived from one field.

    names = build_index(document, "NAME")
    names["John /Smith/"]                  # the INDI record

    surnames = build_index(document, "NAME", lambda f: f.data.split("/")[1] if "/" in f.data else None)

The key function receives the record's first field with the given tag and
returns a string, or None to leave the record out.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .diagnostics import DiagnosticKind, DiagnosticLog, KeyDerivationError
from .dom import Node

if TYPE_CHECKING:
    from .document import Document

logger = logging.getLogger(__name__)

KeyFunction = Callable[[Node], "str | None"]


def field_data(node: Node) -> str:
    """Default key function: the field's data."""
    return node.data


@dataclass
class SecondaryIndex(Mapping[str, Node]):
    """Derived key -> record, plus the diagnostics gathered while building it."""
    tag: str
    entries: dict[str, Node] = field(default_factory=dict)
    log: DiagnosticLog = field(default_factory=DiagnosticLog)

    def __getitem__(self, key: str) -> Node:
        return self.entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def build_index(
    document: Document,
    tag: str,
    key_fn: KeyFunction | None = None,
    *,
    log: DiagnosticLog | None = None,
) -> SecondaryIndex:
    """
    Index the records of `document` by a key derived from their `tag` field.

    Records without such a field are skipped, as are records whose key
    function returns None. A non-string key or a key already taken by an
    earlier record is logged and the record skipped. If the key function
    raises, the whole build is abandoned with KeyDerivationError.
    """
    if key_fn is None:
        key_fn = field_data
    index = SecondaryIndex(tag=tag, log=log if log is not None else DiagnosticLog())
    owners: dict[str, int] = {}

    for number, record in document.records():
        target = record.get(tag)
        if target is None:
            continue
        try:
            key = key_fn(target)
        except Exception as exc:
            index.log.append(DiagnosticKind.KEY_DERIVATION,
                             "record #%d: key function for %s failed: %s",
                             number, tag, exc, record=number, position=record.pos)
            raise KeyDerivationError(
                f"record #{number}: key function for {tag} failed: {exc}", index.log
            ) from exc

        if key is None:
            logger.debug("record #%d: no %s key derived, skipping", number, tag)
            continue
        if not isinstance(key, str):
            index.log.append(DiagnosticKind.NON_STRING_KEY,
                             "record #%d: key function for %s returned %s, not a string",
                             number, tag, type(key).__name__, record=number, position=record.pos)
            continue
        if key in index.entries:
            first = owners[key]
            index.log.append(DiagnosticKind.DUPLICATE_KEY,
                             "Duplicate value for %s %r: record #%d (%s), record #%d (%s)",
                             tag, key, first, index.entries[key].key or "-",
                             number, record.key or "-", record=number, position=record.pos)
            continue
        index.entries[key] = record
        owners[key] = number

    return index
