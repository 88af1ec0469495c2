"""The chunk interpreter.

One decoder per source family walks a chunk tree against that source and a
cursor, writing into the current sample. The three families share every
placement rule; they only differ in how elements are pulled out of the
source:

- binary: fixed-width elements read from a BinarySource,
- delimited text: one component per element from a split line,
- fixed-width text: one field of `count` characters per chunk.

Sample lifecycle lives on DecodeState. A sample is allocated lazily on the
first write, at every record-repeat iteration, or by a start-new-sample
chunk, and is committed back into the dataset when its record closes.
"""
from __future__ import annotations

import logging
import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from chunkfeed.chunk.chunk import Chunk, ChunkKind, tree_required_bytes
from chunkfeed.chunk.format import Channel, ElementFormat
from chunkfeed.data.buffer import SampleBuffer
from chunkfeed.data.dataset import Sample, SampleDataset
from chunkfeed.errors import (
    ChunkTreeError,
    ClassIndexOutOfRangeError,
    InvalidNumericTextError,
    InvalidSampleIndexError,
    LabelOverflowError,
    LocationOutOfRangeError,
    SourceUnderrunError,
)
from chunkfeed.parse.cursor import Cursor, Track
from chunkfeed.parse.source import BinarySource, DelimitedLine, FixedWidthLine

logger = logging.getLogger(__name__)


@dataclass
class DecodeState:
    """Mutable context of one decode: dataset, cursor and current sample.

    `index` is the dataset slot of `sample`; -1 before any sample exists.
    """

    dataset: SampleDataset
    cursor: Cursor
    sample: Sample | None = None
    index: int = -1
    appended: bool = field(default=False, repr=False)

    @classmethod
    def appending(cls, dataset: SampleDataset) -> "DecodeState":
        """State whose first sample is appended after the existing ones."""
        return cls(
            dataset,
            Cursor(dataset.input_shape, dataset.output_shape),
            index=dataset.num_samples - 1,
        )

    @classmethod
    def for_slot(cls, dataset: SampleDataset, cursor: Cursor, index: int) -> "DecodeState":
        """State that fills a private sample destined for a reserved slot."""
        return cls(dataset, cursor, dataset.new_sample(), index)

    def begin_sample(self, index: int) -> None:
        self.sample = self.dataset.get_sample(index)
        self.index = index
        self.cursor.reset()

    def advance_sample(self) -> None:
        """Move to the slot after the current one, appending it if needed."""
        before = self.dataset.num_samples
        target = self.dataset.next_sample_index(self.index)
        self.appended = target >= before
        self.begin_sample(target)

    def require_sample(self) -> Sample:
        if self.sample is None:
            self.advance_sample()
        assert self.sample is not None
        return self.sample

    def commit(self) -> None:
        if self.sample is not None:
            self.dataset.commit_sample(self.sample, self.index)

    def discard(self) -> None:
        """Forget an allocated sample that never received data."""
        if self.sample is not None and self.appended:
            self.dataset.drop_trailing_sample()
            self.index -= 1
        self.sample = None
        self.appended = False


# ─────────────────────────────────────────────────────────────────────────────
# Binary
# ─────────────────────────────────────────────────────────────────────────────


def decode_binary(chunk: Chunk, source: BinarySource, state: DecodeState) -> None:
    """Decode one chunk (and its children) from a binary source."""
    match chunk.kind:
        case ChunkKind.REPEAT if chunk.is_record_repeat:
            _record_repeat(chunk, source, state)
        case ChunkKind.REPEAT:
            _dimension_repeat(
                chunk, state, lambda child: decode_binary(child, source, state)
            )
        case ChunkKind.SET_DIMENSION:
            _set_dimension(chunk, state)
        case ChunkKind.SKIP:
            source.read(_byte_width(chunk) * chunk.count)
        case ChunkKind.CLASS_LABEL | ChunkKind.OUTPUT_LABEL:
            raw = source.read(chunk.count)
            text = raw.decode("utf-8", errors="replace").strip("\x00").strip()
            _place_label(chunk, text, state)
        case _:
            _place(chunk, read_binary_values(chunk, source), state)


def read_binary_values(chunk: Chunk, source: BinarySource) -> list[float]:
    """Read `chunk.count` elements and apply the chunk's per-value scaling."""
    width = _byte_width(chunk)
    data = source.read(width * chunk.count)
    code = chunk.format.struct_format(chunk.byte_order)
    values = struct.unpack(f"{code[0]}{chunk.count}{code[1:]}", data)
    return [chunk.scaling.apply(v, chunk.format) for v in values]


def _record_repeat(chunk: Chunk, source: BinarySource, state: DecodeState) -> None:
    if chunk.is_until_exhausted and tree_required_bytes(chunk.children) == 0:
        raise ChunkTreeError("a record repeat until exhausted must consume bytes")
    state.commit()
    iteration = 0
    until_exhausted = chunk.is_until_exhausted
    while until_exhausted or iteration < chunk.count:
        if not decode_record(chunk.children, source, state, tolerate_eof=until_exhausted):
            return
        iteration += 1


def decode_record(
    children: Sequence[Chunk],
    source: BinarySource,
    state: DecodeState,
    tolerate_eof: bool = True,
) -> bool:
    """Decode one record into the next sample slot and commit it.

    Returns False when the source ended cleanly at the record boundary: no
    value had been written yet, so the sample allocated for the record is
    discarded instead of surfacing an error.
    """
    state.advance_sample()
    try:
        for child in children:
            decode_binary(child, source, state)
    except SourceUnderrunError:
        if tolerate_eof and not state.cursor.has_written():
            logger.debug("source exhausted at record boundary (slot %d)", state.index)
            state.discard()
            return False
        raise
    state.commit()
    return True


# ─────────────────────────────────────────────────────────────────────────────
# Delimited text
# ─────────────────────────────────────────────────────────────────────────────


def decode_delimited(
    chunk: Chunk, line: DelimitedLine, offset: int, state: DecodeState
) -> int:
    """Decode one chunk from the components of a line starting at `offset`.

    Returns the number of components consumed.
    """
    match chunk.kind:
        case ChunkKind.REPEAT:
            consumed = 0

            def run(child: Chunk) -> None:
                nonlocal consumed
                consumed += decode_delimited(child, line, offset + consumed, state)

            _dimension_repeat(chunk, state, run)
            return consumed
        case ChunkKind.SET_DIMENSION:
            _set_dimension(chunk, state)
            return 0
        case ChunkKind.SKIP:
            line.take(offset, chunk.count)
            return chunk.count
        case ChunkKind.CLASS_LABEL | ChunkKind.OUTPUT_LABEL:
            (text,) = line.take(offset, 1)
            _place_label(chunk, text.strip(), state)
            return 1
        case _:
            items = line.take(offset, chunk.count)
            values = [
                chunk.scaling.apply(parse_text_value(item, chunk.format), chunk.format)
                for item in items
            ]
            _place(chunk, values, state)
            return len(items)


# ─────────────────────────────────────────────────────────────────────────────
# Fixed-width text
# ─────────────────────────────────────────────────────────────────────────────


def decode_fixed_width(chunk: Chunk, line: FixedWidthLine, state: DecodeState) -> None:
    """Decode one chunk from the next `chunk.count` characters of a line."""
    match chunk.kind:
        case ChunkKind.REPEAT:
            _dimension_repeat(
                chunk, state, lambda child: decode_fixed_width(child, line, state)
            )
        case ChunkKind.SET_DIMENSION:
            _set_dimension(chunk, state)
        case ChunkKind.SKIP:
            line.take(chunk.count)
        case ChunkKind.CLASS_LABEL | ChunkKind.OUTPUT_LABEL:
            _place_label(chunk, line.take(chunk.count).strip(), state)
        case _:
            value = parse_text_value(line.take(chunk.count), chunk.format)
            _place(chunk, [chunk.scaling.apply(value, chunk.format)], state)


def parse_text_value(text: str, fmt: ElementFormat) -> float:
    """Parse a trimmed numeric field, raising InvalidNumericTextError."""
    trimmed = text.strip()
    match fmt:
        case ElementFormat.TEXT_INT:
            try:
                return int(trimmed)
            except ValueError:
                raise InvalidNumericTextError(text, "integer") from None
        case ElementFormat.TEXT_FLOAT:
            try:
                return float(trimmed)
            except ValueError:
                raise InvalidNumericTextError(text, "float") from None
        case _:
            raise ChunkTreeError(f"{fmt.value} is not a numeric text format")


# ─────────────────────────────────────────────────────────────────────────────
# Shared placement rules
# ─────────────────────────────────────────────────────────────────────────────


def _dimension_repeat(
    chunk: Chunk, state: DecodeState, run: Callable[[Chunk], None]
) -> None:
    dimension = chunk.format.dimension
    assert dimension is not None
    for _ in range(chunk.count):
        for child in chunk.children:
            run(child)
        state.cursor.increment(chunk.target, dimension)


def _set_dimension(chunk: Chunk, state: DecodeState) -> None:
    if chunk.format is ElementFormat.SAMPLE:
        state.commit()
        if chunk.count < 0:
            state.advance_sample()
            return
        if chunk.count >= state.dataset.num_samples:
            raise InvalidSampleIndexError(chunk.count, state.dataset.num_samples)
        state.begin_sample(chunk.count)
        return
    dimension = chunk.format.dimension
    assert dimension is not None
    state.cursor.set_or_increment(chunk.target, dimension, chunk.count)


def _place(chunk: Chunk, values: Sequence[float], state: DecodeState) -> None:
    sample = state.require_sample()
    cursor = state.cursor
    match chunk.kind:
        case ChunkKind.INPUT:
            _write_run(chunk, values, cursor.input, sample.input, state)
        case ChunkKind.OUTPUT:
            _write_run(chunk, values, cursor.output, sample.output, state)
        case ChunkKind.RED | ChunkKind.GREEN | ChunkKind.BLUE:
            _write_channel(Channel[chunk.kind.name], values, cursor.input, sample.input)
        case ChunkKind.CLASS_INDEX:
            set_class(sample, int(values[0]))
        case _:
            raise ChunkTreeError(f"cannot place values for {chunk.kind.value} chunks")


def _place_label(chunk: Chunk, text: str, state: DecodeState) -> None:
    sample = state.require_sample()
    index = state.dataset.label_index(text)
    if not _class_fits(index, sample.output.numel):
        raise LabelOverflowError(text, index, sample.output.numel)
    set_class(sample, index)


def _write_run(
    chunk: Chunk,
    values: Sequence[float],
    track: Track,
    buffer: SampleBuffer,
    state: DecodeState,
) -> None:
    """Store values along the last dimension, bounds-checking every item.

    Every position is checked before anything is stored, so a run that does
    not fit leaves the buffer untouched.
    """
    indices: list[int] = []
    for _ in values:
        indices.append(track.checked_index())
        track.increment(track.last_dimension)
    if not indices:
        return
    for index in indices:
        state.cursor.tag_normalization(track, index, chunk.scaling, state.index)
    buffer.set_elements(indices[0], values)


def _write_channel(
    channel: Channel, values: Sequence[float], track: Track, buffer: SampleBuffer
) -> None:
    for value in values:
        if track.rank < 3 or channel >= track.shape[2]:
            raise LocationOutOfRangeError(track.name, track.position, track.shape)
        track.set(2, int(channel))
        buffer.set_element(track.checked_index(), value)
        track.increment(0)


def _class_fits(index: int, output_size: int) -> bool:
    if index < 0:
        return False
    if output_size == 1 and index == 1:
        return True
    return index < output_size


def set_class(sample: Sample, index: int) -> None:
    """One-hot the output at `index` and record it as the class.

    A single-element output accepts index 1 as a boolean flag and stores the
    index itself in that element.
    """
    size = sample.output.numel
    if not _class_fits(index, size):
        raise ClassIndexOutOfRangeError(index, size)
    if size == 1:
        sample.output.set_element(0, index)
    else:
        sample.output.set_one_hot(index)
    sample.class_index = index


def _byte_width(chunk: Chunk) -> int:
    width = chunk.format.byte_length
    if width is None:
        raise ChunkTreeError(
            f"binary sources cannot read {chunk.format.value} ({chunk.describe()})"
        )
    return width
