from __future__ import annotations

import io

import pytest

from chunkfeed.errors import SkipLinesError, SourceUnderrunError
from chunkfeed.parse.source import (
    BufferSource,
    DelimitedLine,
    FixedWidthLine,
    Separator,
    StreamSource,
    iter_records,
    split_lines,
)


def test_buffer_source_advances_offset() -> None:
    source = BufferSource(b"\x01\x02\x03", offset=1)
    assert source.read(1) == b"\x02"
    assert source.remaining == 1
    with pytest.raises(SourceUnderrunError) as excinfo:
        source.read(2)
    assert excinfo.value.available == 1
    assert excinfo.value.partial == b"\x03"


def test_stream_source_reports_partial_read() -> None:
    source = StreamSource(io.BytesIO(b"abc"))
    assert source.read(2) == b"ab"
    with pytest.raises(SourceUnderrunError) as excinfo:
        source.read(4)
    assert excinfo.value.requested == 4
    assert excinfo.value.partial == b"c"


def test_delimited_line_splits() -> None:
    assert DelimitedLine("a, b,,c", Separator.COMMA).components == ["a", " b", "", "c"]
    assert DelimitedLine("  1.0\t2.0   5.0 ", Separator.WHITESPACE).components == [
        "1.0",
        "2.0",
        "5.0",
    ]


def test_delimited_line_underrun() -> None:
    line = DelimitedLine("1,2", Separator.COMMA)
    assert list(line.take(1, 1)) == ["2"]
    with pytest.raises(SourceUnderrunError):
        line.take(1, 2)


def test_fixed_width_line() -> None:
    line = FixedWidthLine("  5 4 5 6.2")
    assert line.take(3) == "  5"
    assert line.take(4) == " 4 5"
    assert line.remaining == 4
    with pytest.raises(SourceUnderrunError):
        line.take(5)


def test_records_skip_header_comments_and_blanks() -> None:
    lines = split_lines("header\n# note\n1 2\r\n\n  // other\n3 4")
    records = list(iter_records(lines, skip_lines=1, comment_indicators=("#", "//")))
    assert records == ["1 2", "3 4"]


def test_skip_more_lines_than_available() -> None:
    with pytest.raises(SkipLinesError):
        list(iter_records(["only"], skip_lines=2))
