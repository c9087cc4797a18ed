"""
Recursive-descent record parser.

parse_record(source, level) reads one node at `level` from a LineSource:
its first line, then every following line deeper than `level`. The first
line at `level` or above belongs to the next node and is pushed back. For
levels 0-2 the buffered lines are parsed again, one level down, into the
node's children; a level-3 node keeps them verbatim.

Line grammar for levels 0-3:

    LEVEL [ '@' KEY '@' ] TAG [DATA]

Deeper lines are only inspected for their leading level number.
"""

from __future__ import annotations

import logging
import re

from .diagnostics import DiagnosticKind, DiagnosticLog
from .dom import MAX_STRUCTURED_LEVEL, Node, NodeArena
from .lines import Line, LineSource

logger = logging.getLogger(__name__)

# A byte-order mark may precede the very first line of a file.
LEVEL_PATTERN = re.compile(r"^\ufeff?\s*(\d+)(?:\s|$)")
KEY_TAG_DATA_PATTERN = re.compile(r"^\ufeff?\s*\d+\s+@(\S+)@\s+(\S+)\s*(.*)$")
TAG_DATA_PATTERN = re.compile(r"^\ufeff?\s*\d+\s+(\S+)\s*(.*)$")


def line_level(text: str) -> int | None:
    """Leading level number of a line, or None if it has none."""
    match = LEVEL_PATTERN.match(text)
    if match is None:
        return None
    return int(match.group(1))


def split_line(text: str) -> tuple[str | None, str | None, str]:
    """
    Split a level 0-3 line into (key, tag, data).

    key is None for unkeyed lines; tag is None if the line does not even
    have a tag; data is "" when absent.
    """
    match = KEY_TAG_DATA_PATTERN.match(text)
    if match is not None:
        key, tag, data = match.groups()
        return key, tag, data
    match = TAG_DATA_PATTERN.match(text)
    if match is not None:
        tag, data = match.groups()
        return None, tag, data
    return None, None, ""


def parse_record(
    source: LineSource,
    level: int = 0,
    *,
    arena: NodeArena | None = None,
    log: DiagnosticLog | None = None,
) -> Node | None:
    """
    Read one node at `level` from `source`.

    Returns None at the end of input. A first line whose level differs from
    `level` is reported as a LINE_LEVEL diagnostic and the node is built
    from it anyway.
    """
    if not 0 <= level <= MAX_STRUCTURED_LEVEL:
        raise ValueError(f"No subdivision supported past level {MAX_STRUCTURED_LEVEL}, got {level}")

    first = source.next()
    if first is None:
        return None
    if arena is None:
        arena = NodeArena()

    if line_level(first.text) != level:
        _report_level(first, level, log)

    key, tag, data = split_line(first.text)
    node = arena.new(level=level, line=first, tag=tag, data=data, key=key)

    buffered: list[Line] = []
    for line in source:
        found = line_level(line.text)
        # Lines without a level never end a node.
        if found is not None and found <= level:
            source.unread(line)
            break
        buffered.append(line)

    if not buffered:
        return node

    if level < MAX_STRUCTURED_LEVEL:
        subsource = LineSource.from_sequence(buffered)
        while True:
            child = parse_record(subsource, level + 1, arena=arena, log=log)
            if child is None:
                break
            node.add_child(child)
    else:
        node.lines = buffered

    return node


def _report_level(line: Line, expected: int, log: DiagnosticLog | None) -> None:
    template = "ERROR in GEDCOM input at position %d: expected line at level %d, got %r"
    if log is None:
        logger.debug(template, line.pos, expected, line.text)
        return
    log.append(DiagnosticKind.LINE_LEVEL, template, line.pos, expected, line.text,
               position=line.pos)
