"""Chunk: one node of the declarative decode tree.

A list of chunks describes how a source maps onto samples. Most chunks read
elements and place them into the input or output buffer; REPEAT chunks own an
ordered list of children and loop over them, either across a tensor dimension
or across records.
"""
from __future__ import annotations

import enum
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from chunkfeed.chunk.format import ByteOrder, ElementFormat, Scaling, Target
from chunkfeed.errors import ChunkTreeError


# Counts above this threshold mean "repeat until the source is exhausted".
UNTIL_EXHAUSTED_THRESHOLD = 999_999
UNTIL_EXHAUSTED = 2**31 - 1


class ChunkKind(str, enum.Enum):
    """What a chunk does with the elements it reads."""

    SKIP = "skip"
    CLASS_LABEL = "class_label"
    CLASS_INDEX = "class_index"
    INPUT = "input"
    RED = "red"
    GREEN = "green"
    BLUE = "blue"
    OUTPUT = "output"
    OUTPUT_LABEL = "output_label"
    REPEAT = "repeat"
    SET_DIMENSION = "set_dimension"

    @property
    def is_structural(self) -> bool:
        return self in (ChunkKind.REPEAT, ChunkKind.SET_DIMENSION)

    @property
    def is_channel(self) -> bool:
        return self in (ChunkKind.RED, ChunkKind.GREEN, ChunkKind.BLUE)


@dataclass(frozen=True, slots=True)
class Chunk:
    """An immutable decode step.

    `count` is the number of elements read, the repeat count for REPEAT, or
    the value assigned by SET_DIMENSION (negative means "increment").
    For fixed-width text sources `count` is the field width in characters.
    """

    kind: ChunkKind
    count: int = 1
    format: ElementFormat = ElementFormat.UINT8
    scaling: Scaling = Scaling.NONE
    target: Target = Target.NEITHER
    children: tuple["Chunk", ...] = field(default=())
    byte_order: ByteOrder = ByteOrder.NATIVE

    def __post_init__(self) -> None:
        if self.children and self.kind is not ChunkKind.REPEAT:
            raise ChunkTreeError(f"{self.kind.value} chunks cannot have children")
        if self.kind.is_structural and not self.format.is_marker:
            raise ChunkTreeError(
                f"{self.kind.value} chunk needs a dimension or sample marker, "
                f"got {self.format.value}"
            )
        if not self.kind.is_structural and self.format.is_marker:
            raise ChunkTreeError(
                f"{self.kind.value} chunk cannot use marker format {self.format.value}"
            )
        if self.kind is ChunkKind.REPEAT and self.count < 0:
            raise ChunkTreeError(f"repeat count must be non-negative, got {self.count}")
        if not self.kind.is_structural and self.count < 0:
            raise ChunkTreeError(
                f"{self.kind.value} count must be non-negative, got {self.count}"
            )

    @property
    def is_record_repeat(self) -> bool:
        return self.kind is ChunkKind.REPEAT and self.format is ElementFormat.SAMPLE

    @property
    def is_until_exhausted(self) -> bool:
        return self.count > UNTIL_EXHAUSTED_THRESHOLD

    @property
    def is_record_marker(self) -> bool:
        return self.kind.is_structural and self.format is ElementFormat.SAMPLE

    def required_bytes(self) -> int | None:
        """Bytes this chunk consumes from a binary source.

        Returns None when the size cannot be known up front, i.e. when the
        chunk or any descendant reads text. A record repeat reports the size
        of a single record.
        """
        match self.kind:
            case ChunkKind.REPEAT:
                per_pass = tree_required_bytes(self.children)
                if per_pass is None:
                    return None
                if self.is_record_repeat:
                    return per_pass
                return per_pass * self.count
            case ChunkKind.SET_DIMENSION:
                return 0
            case _:
                width = self.format.byte_length
                if width is None:
                    return None
                return width * self.count

    def walk(self) -> Iterator["Chunk"]:
        """Yield this chunk and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def describe(self) -> str:
        """One-line human readable summary."""
        parts = [self.kind.value]
        if self.kind is ChunkKind.REPEAT and self.is_until_exhausted:
            parts.append("until-exhausted")
        else:
            parts.append(str(self.count))
        parts.append(self.format.value)
        if self.scaling is not Scaling.NONE:
            parts.append(self.scaling.value)
        if self.target is not Target.NEITHER:
            parts.append(f"target={self.target.value}")
        if self.byte_order is not ByteOrder.NATIVE:
            parts.append(self.byte_order.value)
        return " ".join(parts)


def tree_required_bytes(chunks: Sequence[Chunk]) -> int | None:
    """Sum of required_bytes over a chunk list, None if any is indeterminate."""
    total = 0
    for chunk in chunks:
        size = chunk.required_bytes()
        if size is None:
            return None
        total += size
    return total


def walk_tree(chunks: Sequence[Chunk]) -> Iterator[Chunk]:
    for chunk in chunks:
        yield from chunk.walk()
