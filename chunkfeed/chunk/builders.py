"""Chunk constructors grouped by the source family that accepts them.

Binary chunks read fixed-width elements, delimited-text chunks read one
component of a split line, and fixed-width text chunks read one field of
`width` characters. The structural helpers at the bottom work for every
family.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from chunkfeed.chunk.chunk import UNTIL_EXHAUSTED, Chunk, ChunkKind, walk_tree
from chunkfeed.chunk.format import ByteOrder, ElementFormat, Scaling, Target
from chunkfeed.errors import ChunkTreeError


# ─────────────────────────────────────────────────────────────────────────────
# Binary sources
# ─────────────────────────────────────────────────────────────────────────────


def unused_data(
    count: int, format: ElementFormat = ElementFormat.UINT8
) -> Chunk:
    """Skip `count` elements of `format`."""
    return Chunk(ChunkKind.SKIP, count, format)


def label_string(length: int) -> Chunk:
    """Read `length` bytes of text and resolve them as a class label."""
    return Chunk(ChunkKind.CLASS_LABEL, length, ElementFormat.TEXT_LABEL, target=Target.OUTPUT)


def label_index(
    format: ElementFormat = ElementFormat.UINT8,
    byte_order: ByteOrder = ByteOrder.NATIVE,
) -> Chunk:
    """Read one integer class index."""
    return Chunk(
        ChunkKind.CLASS_INDEX, 1, format, target=Target.OUTPUT, byte_order=byte_order
    )


def input_data(
    count: int,
    format: ElementFormat = ElementFormat.UINT8,
    scaling: Scaling = Scaling.NONE,
    byte_order: ByteOrder = ByteOrder.NATIVE,
) -> Chunk:
    return Chunk(
        ChunkKind.INPUT, count, format, scaling, Target.INPUT, byte_order=byte_order
    )


def red_pixel_data(
    count: int = 1,
    format: ElementFormat = ElementFormat.UINT8,
    scaling: Scaling = Scaling.NONE,
) -> Chunk:
    return Chunk(ChunkKind.RED, count, format, scaling, Target.INPUT)


def green_pixel_data(
    count: int = 1,
    format: ElementFormat = ElementFormat.UINT8,
    scaling: Scaling = Scaling.NONE,
) -> Chunk:
    return Chunk(ChunkKind.GREEN, count, format, scaling, Target.INPUT)


def blue_pixel_data(
    count: int = 1,
    format: ElementFormat = ElementFormat.UINT8,
    scaling: Scaling = Scaling.NONE,
) -> Chunk:
    return Chunk(ChunkKind.BLUE, count, format, scaling, Target.INPUT)


def output_data(
    count: int,
    format: ElementFormat = ElementFormat.UINT8,
    scaling: Scaling = Scaling.NONE,
    byte_order: ByteOrder = ByteOrder.NATIVE,
) -> Chunk:
    return Chunk(
        ChunkKind.OUTPUT, count, format, scaling, Target.OUTPUT, byte_order=byte_order
    )


def repeat_sample_until_done(children: Iterable[Chunk]) -> Chunk:
    """Decode one sample per pass over `children` until the source runs dry."""
    return Chunk(
        ChunkKind.REPEAT,
        UNTIL_EXHAUSTED,
        ElementFormat.SAMPLE,
        target=Target.BOTH,
        children=tuple(children),
    )


def repeat_samples(count: int, children: Iterable[Chunk]) -> Chunk:
    """Decode exactly `count` samples."""
    return Chunk(
        ChunkKind.REPEAT,
        count,
        ElementFormat.SAMPLE,
        target=Target.BOTH,
        children=tuple(children),
    )


def repeat_dimension(
    count: int, dimension: int, target: Target, children: Iterable[Chunk]
) -> Chunk:
    """Run `children` `count` times, advancing `dimension` after each pass."""
    return Chunk(
        ChunkKind.REPEAT,
        count,
        ElementFormat.for_dimension(dimension),
        target=target,
        children=tuple(children),
    )


def start_new_sample() -> Chunk:
    """Commit the current sample and start the next one."""
    return Chunk(ChunkKind.SET_DIMENSION, -1, ElementFormat.SAMPLE, target=Target.BOTH)


def go_to_sample(index: int) -> Chunk:
    """Commit the current sample and continue writing into sample `index`."""
    if index < 0:
        raise ChunkTreeError(f"sample index must be non-negative, got {index}")
    return Chunk(ChunkKind.SET_DIMENSION, index, ElementFormat.SAMPLE, target=Target.BOTH)


# ─────────────────────────────────────────────────────────────────────────────
# Shared structural chunks
# ─────────────────────────────────────────────────────────────────────────────


def set_dimension(dimension: int, value: int, target: Target) -> Chunk:
    if value < 0:
        raise ChunkTreeError(f"dimension value must be non-negative, got {value}")
    return Chunk(
        ChunkKind.SET_DIMENSION, value, ElementFormat.for_dimension(dimension), target=target
    )


def increment_dimension(dimension: int, target: Target) -> Chunk:
    return Chunk(
        ChunkKind.SET_DIMENSION, -1, ElementFormat.for_dimension(dimension), target=target
    )


# ─────────────────────────────────────────────────────────────────────────────
# Delimited text sources (one component per chunk)
# ─────────────────────────────────────────────────────────────────────────────


def unused_text(count: int = 1) -> Chunk:
    return Chunk(ChunkKind.SKIP, count, ElementFormat.TEXT_LABEL)


def label_text() -> Chunk:
    return Chunk(ChunkKind.CLASS_LABEL, 1, ElementFormat.TEXT_LABEL, target=Target.OUTPUT)


def label_index_text() -> Chunk:
    return Chunk(ChunkKind.CLASS_INDEX, 1, ElementFormat.TEXT_INT, target=Target.OUTPUT)


def input_integer_text(count: int = 1, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.INPUT, count, ElementFormat.TEXT_INT, scaling, Target.INPUT)


def input_float_text(count: int = 1, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.INPUT, count, ElementFormat.TEXT_FLOAT, scaling, Target.INPUT)


def output_integer_text(count: int = 1, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.OUTPUT, count, ElementFormat.TEXT_INT, scaling, Target.OUTPUT)


def output_float_text(count: int = 1, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.OUTPUT, count, ElementFormat.TEXT_FLOAT, scaling, Target.OUTPUT)


def output_label_text() -> Chunk:
    return Chunk(ChunkKind.OUTPUT_LABEL, 1, ElementFormat.TEXT_LABEL, target=Target.OUTPUT)


def repeat_dimension_text(
    count: int, dimension: int, target: Target, children: Iterable[Chunk]
) -> Chunk:
    return repeat_dimension(count, dimension, target, children)


# ─────────────────────────────────────────────────────────────────────────────
# Fixed-width text sources (`width` characters per chunk)
# ─────────────────────────────────────────────────────────────────────────────


def unused_columns(width: int) -> Chunk:
    return Chunk(ChunkKind.SKIP, width, ElementFormat.TEXT_LABEL)


def label_columns(width: int) -> Chunk:
    return Chunk(ChunkKind.CLASS_LABEL, width, ElementFormat.TEXT_LABEL, target=Target.OUTPUT)


def label_index_columns(width: int) -> Chunk:
    return Chunk(ChunkKind.CLASS_INDEX, width, ElementFormat.TEXT_INT, target=Target.OUTPUT)


def input_integer_columns(width: int, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.INPUT, width, ElementFormat.TEXT_INT, scaling, Target.INPUT)


def input_float_columns(width: int, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.INPUT, width, ElementFormat.TEXT_FLOAT, scaling, Target.INPUT)


def output_integer_columns(width: int, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.OUTPUT, width, ElementFormat.TEXT_INT, scaling, Target.OUTPUT)


def output_float_columns(width: int, scaling: Scaling = Scaling.NONE) -> Chunk:
    return Chunk(ChunkKind.OUTPUT, width, ElementFormat.TEXT_FLOAT, scaling, Target.OUTPUT)


def output_label_columns(width: int) -> Chunk:
    return Chunk(ChunkKind.OUTPUT_LABEL, width, ElementFormat.TEXT_LABEL, target=Target.OUTPUT)


def repeat_dimension_columns(
    count: int, dimension: int, target: Target, children: Iterable[Chunk]
) -> Chunk:
    return repeat_dimension(count, dimension, target, children)


# ─────────────────────────────────────────────────────────────────────────────
# Family validation
# ─────────────────────────────────────────────────────────────────────────────


def validate_binary_chunks(chunks: Sequence[Chunk]) -> None:
    """Reject chunks a binary source cannot decode."""
    for chunk in walk_tree(chunks):
        _check_label_format(chunk)
        if chunk.format in (ElementFormat.TEXT_INT, ElementFormat.TEXT_FLOAT):
            raise ChunkTreeError(
                f"binary sources cannot read {chunk.format.value} ({chunk.describe()})"
            )
        if chunk.format is ElementFormat.TEXT_LABEL and chunk.kind not in (
            ChunkKind.CLASS_LABEL,
            ChunkKind.OUTPUT_LABEL,
        ):
            raise ChunkTreeError(
                f"binary {chunk.kind.value} chunks cannot read text ({chunk.describe()})"
            )


def validate_text_chunks(chunks: Sequence[Chunk]) -> None:
    """Reject chunks a line-oriented text source cannot decode.

    Every line is an implicit record, so record-marker chunks are refused, as
    are the colour-channel kinds and binary element formats.
    """
    for chunk in walk_tree(chunks):
        _check_label_format(chunk)
        if chunk.kind.is_channel:
            raise ChunkTreeError(
                f"{chunk.kind.value} chunks are only valid for binary sources"
            )
        if chunk.is_record_marker:
            raise ChunkTreeError(
                "text sources treat each line as one record; "
                f"remove the record chunk ({chunk.describe()})"
            )
        if chunk.format.is_binary:
            raise ChunkTreeError(
                f"text sources cannot read binary format {chunk.format.value}"
            )
        if not chunk.kind.is_structural and chunk.count < 1:
            raise ChunkTreeError(f"{chunk.kind.value} text chunk needs count >= 1")


def _check_label_format(chunk: Chunk) -> None:
    if chunk.kind in (ChunkKind.CLASS_LABEL, ChunkKind.OUTPUT_LABEL):
        if chunk.format is not ElementFormat.TEXT_LABEL:
            raise ChunkTreeError(
                f"{chunk.kind.value} chunks must use {ElementFormat.TEXT_LABEL.value}"
            )
    elif chunk.format is ElementFormat.TEXT_LABEL and chunk.kind is not ChunkKind.SKIP:
        raise ChunkTreeError(
            f"{chunk.kind.value} chunks cannot use {ElementFormat.TEXT_LABEL.value}"
        )
