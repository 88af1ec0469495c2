"""Source adapters: turn "read N items" requests into bytes or substrings.

Binary sources hand out raw bytes. StreamSource reads from a host file
object; BufferSource walks an in-memory buffer with an integer offset. Both
raise SourceUnderrunError when fewer bytes remain than were requested.

Text sources are line oriented. Each record is one line, split into
components by a delimiter (DelimitedLine) or cut into fields of declared
width (FixedWidthLine). `iter_records` applies header skipping and comment
filtering before lines reach a decoder.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import BinaryIO, Protocol

from chunkfeed.errors import SkipLinesError, SourceUnderrunError


class BinarySource(Protocol):
    """Sequential byte reader."""

    def read(self, count: int) -> bytes:
        ...


class StreamSource:
    """Reads from a binary file object at its current position."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def read(self, count: int) -> bytes:
        if count == 0:
            return b""
        data = self.stream.read(count)
        if len(data) < count:
            raise SourceUnderrunError(count, len(data), partial=data)
        return data


class BufferSource:
    """Reads from an in-memory buffer, advancing an integer offset."""

    def __init__(self, data: bytes | bytearray | memoryview, offset: int = 0) -> None:
        if not 0 <= offset <= len(data):
            raise ValueError(f"offset {offset} is outside a buffer of {len(data)} bytes")
        self.data = memoryview(data).cast("B")
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read(self, count: int) -> bytes:
        if count > self.remaining:
            partial = bytes(self.data[self.offset :])
            self.offset = len(self.data)
            raise SourceUnderrunError(count, len(partial), partial=partial)
        start = self.offset
        self.offset += count
        return bytes(self.data[start : self.offset])


class Separator(str, enum.Enum):
    """Field delimiter for delimited text."""

    COMMA = "comma"
    WHITESPACE = "whitespace"

    def split(self, line: str) -> list[str]:
        match self:
            case Separator.COMMA:
                return line.split(",")
            case Separator.WHITESPACE:
                return line.split()


class DelimitedLine:
    """One text record split into components."""

    def __init__(self, line: str, separator: Separator) -> None:
        self.line = line
        self.components: list[str] = separator.split(line)

    def take(self, offset: int, count: int) -> Sequence[str]:
        available = max(len(self.components) - offset, 0)
        if count > available:
            raise SourceUnderrunError(count, available, what="fields")
        return self.components[offset : offset + count]


class FixedWidthLine:
    """One text record consumed left to right in fixed-width fields."""

    def __init__(self, line: str) -> None:
        self.line = line
        self.index = 0

    @property
    def remaining(self) -> int:
        return len(self.line) - self.index

    def take(self, width: int) -> str:
        if width > self.remaining:
            raise SourceUnderrunError(width, self.remaining, what="characters")
        start = self.index
        self.index += width
        return self.line[start : self.index]


def iter_records(
    lines: Iterable[str],
    skip_lines: int = 0,
    comment_indicators: Sequence[str] = (),
) -> Iterator[str]:
    """Yield the record lines of a text source.

    The first `skip_lines` lines are discarded; running out before that is an
    error. Blank lines and lines whose trimmed text starts with a comment
    indicator are dropped without producing a record.
    """
    iterator = iter(lines)
    for skipped in range(skip_lines):
        if next(iterator, None) is None:
            raise SkipLinesError(skip_lines, skipped)
    for raw in iterator:
        line = raw.rstrip("\r\n")
        trimmed = line.strip()
        if not trimmed:
            continue
        if any(trimmed.startswith(prefix) for prefix in comment_indicators if prefix):
            continue
        yield line


def split_lines(text: str) -> list[str]:
    """Split on universal newlines."""
    return text.splitlines()


def read_lines(path: Path) -> Iterator[str]:
    """Lines of a UTF-8 text file with universal newline handling."""
    with path.open("r", encoding="utf-8", newline=None) as handle:
        for line in handle:
            yield line
