"""Parser front ends: bind a chunk tree to a source family.

Every parser appends the samples it decodes to an existing SampleDataset and
returns how many it added. Parsing is async so that records can be decoded
concurrently; each async method has a `*_sync` twin for ordinary code.

Concurrency is used where records are independent and can be cut out of the
source before they are decoded:

- binary: a top-level "repeat sample until done" whose records have a fixed
  byte size, optionally preceded by skip chunks (a file header),
- text: every line is a record.

With `max_concurrency <= 1` (or when a tree does not qualify) decoding is
strictly sequential with one shared cursor. Trees that register labels are
always decoded sequentially so that label indices follow source order.
"""
from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import BinaryIO

from typing_extensions import Self

from chunkfeed.chunk.builders import validate_binary_chunks, validate_text_chunks
from chunkfeed.chunk.chunk import Chunk, ChunkKind, tree_required_bytes, walk_tree
from chunkfeed.data.dataset import SampleDataset
from chunkfeed.data.normalize import apply_normalization
from chunkfeed.errors import SourceUnderrunError
from chunkfeed.parse.coordinator import DEFAULT_MAX_CONCURRENCY, RecordCoordinator
from chunkfeed.parse.cursor import Cursor
from chunkfeed.parse.decoder import (
    DecodeState,
    decode_binary,
    decode_delimited,
    decode_fixed_width,
    decode_record,
)
from chunkfeed.parse.source import (
    BinarySource,
    BufferSource,
    DelimitedLine,
    FixedWidthLine,
    Separator,
    StreamSource,
    iter_records,
    read_lines,
    split_lines,
)

logger = logging.getLogger(__name__)


class DataParser:
    """Shared behaviour of all chunk-driven parsers."""

    def __init__(self, chunks: Iterable[Chunk]) -> None:
        self.chunks: tuple[Chunk, ...] = tuple(chunks)

    def registers_labels(self) -> bool:
        return any(
            c.kind in (ChunkKind.CLASS_LABEL, ChunkKind.OUTPUT_LABEL)
            for c in walk_tree(self.chunks)
        )

    def _finish(
        self, dataset: SampleDataset, cursor: Cursor, before: int, origin: str
    ) -> int:
        if cursor.input.normalization or cursor.output.normalization:
            apply_normalization(
                dataset, cursor.input.normalization, cursor.output.normalization
            )
        added = dataset.num_samples - before
        logger.info(
            "%s: decoded %d samples from %s (%d total)",
            type(self).__name__,
            added,
            origin,
            dataset.num_samples,
        )
        return added


# ─────────────────────────────────────────────────────────────────────────────
# Binary
# ─────────────────────────────────────────────────────────────────────────────


class BinaryParser(DataParser):
    """Decodes binary streams and buffers."""

    def __init__(self, chunks: Iterable[Chunk]) -> None:
        super().__init__(chunks)
        validate_binary_chunks(self.chunks)

    async def parse_data(
        self,
        data: bytes | bytearray | memoryview,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        return await self._parse(BufferSource(data), dataset, max_concurrency, "buffer")

    async def parse_stream(
        self,
        stream: BinaryIO,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        return await self._parse(StreamSource(stream), dataset, max_concurrency, "stream")

    async def parse_file(
        self,
        path: Path | str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        path = Path(path)
        with path.open("rb") as stream:
            return await self._parse(
                StreamSource(stream), dataset, max_concurrency, str(path)
            )

    def parse_data_sync(
        self,
        data: bytes | bytearray | memoryview,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        """Synchronous wrapper for parse_data()."""
        return asyncio.run(self.parse_data(data, dataset, max_concurrency))

    def parse_stream_sync(
        self,
        stream: BinaryIO,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        """Synchronous wrapper for parse_stream()."""
        return asyncio.run(self.parse_stream(stream, dataset, max_concurrency))

    def parse_file_sync(
        self,
        path: Path | str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        """Synchronous wrapper for parse_file()."""
        return asyncio.run(self.parse_file(path, dataset, max_concurrency))

    def concurrent_record(self) -> Chunk | None:
        """The record repeat that can be decoded concurrently, if any.

        Qualifies when the tree is `[skip..., repeat-sample-until-done]`,
        each record has a fixed, non-zero byte size and the record neither
        switches samples itself nor registers labels.
        """
        if not self.chunks:
            return None
        *prefix, last = self.chunks
        if not last.is_record_repeat or not last.is_until_exhausted:
            return None
        if any(c.kind is not ChunkKind.SKIP for c in prefix):
            return None
        size = tree_required_bytes(last.children)
        if not size:
            return None
        if any(c.is_record_marker for c in walk_tree(last.children)):
            return None
        if self.registers_labels():
            return None
        return last

    async def _parse(
        self,
        source: BinarySource,
        dataset: SampleDataset,
        max_concurrency: int,
        origin: str,
    ) -> int:
        before = dataset.num_samples
        record = self.concurrent_record() if max_concurrency > 1 else None
        with dataset.reserving():
            if record is None:
                state = DecodeState.appending(dataset)
                for chunk in self.chunks:
                    decode_binary(chunk, source, state)
                state.commit()
                cursor = state.cursor
            else:
                cursor = await self._parse_concurrently(
                    record, source, dataset, max_concurrency
                )
        return self._finish(dataset, cursor, before, origin)

    async def _parse_concurrently(
        self,
        record: Chunk,
        source: BinarySource,
        dataset: SampleDataset,
        max_concurrency: int,
    ) -> Cursor:
        cursor = Cursor(dataset.input_shape, dataset.output_shape)
        header = DecodeState(dataset, cursor)
        for chunk in self.chunks[:-1]:
            decode_binary(chunk, source, header)

        size = tree_required_bytes(record.children)
        assert size is not None
        tail = b""
        async with RecordCoordinator(max_concurrency) as coordinator:
            while True:
                try:
                    block = source.read(size)
                except SourceUnderrunError as exc:
                    tail = exc.partial
                    break
                slot = dataset.allocate_empty_sample()
                await coordinator.submit(
                    _decode_block, record.children, block, dataset, cursor.clone(), slot
                )
            logger.debug(
                "dispatched %d records of %d bytes", coordinator.submitted, size
            )

        if tail:
            # A truncated final record behaves exactly as in a sequential parse.
            state = DecodeState(dataset, cursor.clone(), index=dataset.num_samples - 1)
            decode_record(record.children, BufferSource(tail), state)
        return cursor


def _decode_block(
    children: Sequence[Chunk],
    block: bytes,
    dataset: SampleDataset,
    cursor: Cursor,
    slot: int,
) -> None:
    state = DecodeState.for_slot(dataset, cursor, slot)
    cursor.reset()
    source = BufferSource(block)
    for child in children:
        decode_binary(child, source, state)
    state.commit()


# ─────────────────────────────────────────────────────────────────────────────
# Line-oriented text
# ─────────────────────────────────────────────────────────────────────────────


class TextParser(DataParser):
    """Base for parsers that treat each text line as one record."""

    def __init__(
        self,
        chunks: Iterable[Chunk],
        skip_lines: int = 0,
        comment_indicators: Sequence[str] = (),
    ) -> None:
        super().__init__(chunks)
        validate_text_chunks(self.chunks)
        if skip_lines < 0:
            raise ValueError(f"skip_lines must be non-negative, got {skip_lines}")
        self.skip_lines = skip_lines
        self.comment_indicators: tuple[str, ...] = tuple(comment_indicators)

    def with_skip_lines(self, count: int) -> Self:
        """Copy of this parser that discards the first `count` lines."""
        if count < 0:
            raise ValueError(f"skip_lines must be non-negative, got {count}")
        clone = copy.copy(self)
        clone.skip_lines = count
        return clone

    def with_comment_indicators(self, *indicators: str) -> Self:
        """Copy of this parser that ignores lines starting with `indicators`."""
        clone = copy.copy(self)
        clone.comment_indicators = tuple(indicators)
        return clone

    def decode_line(self, line: str, state: DecodeState) -> None:
        raise NotImplementedError

    async def parse_text(
        self,
        text: str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        return await self._parse_lines(split_lines(text), dataset, max_concurrency, "text")

    async def parse_file(
        self,
        path: Path | str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        path = Path(path)
        return await self._parse_lines(read_lines(path), dataset, max_concurrency, str(path))

    def parse_text_sync(
        self,
        text: str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        """Synchronous wrapper for parse_text()."""
        return asyncio.run(self.parse_text(text, dataset, max_concurrency))

    def parse_file_sync(
        self,
        path: Path | str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        """Synchronous wrapper for parse_file()."""
        return asyncio.run(self.parse_file(path, dataset, max_concurrency))

    async def _parse_lines(
        self,
        lines: Iterable[str],
        dataset: SampleDataset,
        max_concurrency: int,
        origin: str,
    ) -> int:
        before = dataset.num_samples
        cursor = Cursor(dataset.input_shape, dataset.output_shape)
        records = iter_records(lines, self.skip_lines, self.comment_indicators)
        with dataset.reserving():
            if max_concurrency <= 1 or self.registers_labels():
                for line in records:
                    slot = dataset.allocate_empty_sample()
                    self._decode_record(line, dataset, cursor, slot)
            else:
                async with RecordCoordinator(max_concurrency) as coordinator:
                    for line in records:
                        slot = dataset.allocate_empty_sample()
                        await coordinator.submit(
                            self._decode_record, line, dataset, cursor.clone(), slot
                        )
        return self._finish(dataset, cursor, before, origin)

    def _decode_record(
        self, line: str, dataset: SampleDataset, cursor: Cursor, slot: int
    ) -> None:
        state = DecodeState.for_slot(dataset, cursor, slot)
        cursor.reset()
        self.decode_line(line, state)
        state.commit()


class DelimitedTextParser(TextParser):
    """Comma or whitespace separated text, one component per element."""

    def __init__(
        self,
        separator: Separator,
        chunks: Iterable[Chunk],
        skip_lines: int = 0,
        comment_indicators: Sequence[str] = (),
    ) -> None:
        super().__init__(chunks, skip_lines, comment_indicators)
        self.separator = separator

    def decode_line(self, line: str, state: DecodeState) -> None:
        parsed = DelimitedLine(line, self.separator)
        offset = 0
        for chunk in self.chunks:
            offset += decode_delimited(chunk, parsed, offset, state)


class FixedColumnTextParser(TextParser):
    """Fixed-width text: each chunk reads one field of `count` characters."""

    def decode_line(self, line: str, state: DecodeState) -> None:
        parsed = FixedWidthLine(line)
        for chunk in self.chunks:
            decode_fixed_width(chunk, parsed, state)
