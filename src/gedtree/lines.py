"""
Line source: pull lines one at a time, with one line of push-back.

The parser needs to look one line ahead to see where a record ends. When it
reads a line that belongs to the next record it hands it back with unread(),
and the following next() returns it again before the underlying source is
touched.

Positions depend on where the lines come from:
- binary file: byte offset of the first byte of the line
- string: character offset of the first character of the line
- sequence: 1-based index (Line items keep the position they already have)
"""

from __future__ import annotations

import io
import re
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import BinaryIO

# A line is everything up to and including "\n"; the last line may lack it.
LINE_PATTERN = re.compile(r"[^\n]*\n|[^\n]+")


@dataclass(frozen=True)
class Line:
    """One source line and where it started."""
    text: str
    pos: int
    eol: str = ""  # terminator that followed the line in the source

    @property
    def raw(self) -> str:
        return self.text + self.eol


def split_eol(raw: str) -> tuple[str, str]:
    """Split a raw line into (text, terminator)."""
    if raw.endswith("\r\n"):
        return raw[:-2], "\r\n"
    if raw.endswith("\n"):
        return raw[:-1], "\n"
    return raw, ""


class LineSource:
    """Iterator over Lines with exactly one line of push-back."""

    def __init__(self, read: Callable[[], Line | None]):
        self._read = read
        self._pending: Line | None = None
        self._exhausted = False

    @classmethod
    def from_file(cls, handle: BinaryIO, start: int = 0, encoding: str = "utf-8") -> LineSource:
        """
        Read from a binary file handle, starting at byte offset `start`.

        Undecodable bytes are kept as surrogate escapes so that encoding the
        text again gives back the original bytes.
        """
        if isinstance(handle, io.TextIOBase):
            raise TypeError("LineSource needs a binary file handle, got a text-mode file")
        handle.seek(start)

        def read() -> Line | None:
            pos = handle.tell()
            raw = handle.readline()
            if not raw:
                return None
            text, eol = split_eol(raw.decode(encoding, "surrogateescape"))
            return Line(text, pos, eol)

        return cls(read)

    @classmethod
    def from_string(cls, text: str, start: int = 0) -> LineSource:
        """Read lines out of `text`, beginning at character offset `start`."""
        matches = LINE_PATTERN.finditer(text, start)

        def read() -> Line | None:
            match = next(matches, None)
            if match is None:
                return None
            body, eol = split_eol(match.group())
            return Line(body, match.start(), eol)

        return cls(read)

    @classmethod
    def from_sequence(cls, items: Sequence[str | Line], start: int = 1) -> LineSource:
        """Read from a list of strings (positions 1, 2, ...) or of Lines."""
        position = start - 1

        def read() -> Line | None:
            nonlocal position
            position += 1
            if position > len(items):
                return None
            item = items[position - 1]
            if isinstance(item, Line):
                return item
            return Line(item, position)

        return cls(read)

    @classmethod
    def from_source(cls, source: object, encoding: str = "utf-8") -> LineSource:
        """Pick the constructor that fits the type of `source`."""
        if isinstance(source, LineSource):
            return source
        if isinstance(source, str):
            return cls.from_string(source)
        if isinstance(source, (io.BufferedIOBase, io.RawIOBase)):
            return cls.from_file(source, start=source.tell(), encoding=encoding)
        if isinstance(source, Sequence) and not isinstance(source, (bytes, bytearray)):
            return cls.from_sequence(source)
        raise TypeError(f"Cannot read lines from {type(source).__name__}")

    def next(self) -> Line | None:
        """Return the pushed-back line if any, else the next line, else None."""
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        if self._exhausted:
            return None
        line = self._read()
        if line is None:
            self._exhausted = True
        return line

    def unread(self, line: Line) -> None:
        """Push `line` back so the next call to next() returns it."""
        if self._pending is not None:
            raise RuntimeError("LineSource holds only one line of push-back")
        self._pending = line

    def __iter__(self) -> Iterator[Line]:
        return self

    def __next__(self) -> Line:
        line = self.next()
        if line is None:
            raise StopIteration
        return line
