"""Chunk tree configuration.

Each chunk kind has its own model, selected by the `type` field. Repeat
chunks nest further chunks, so a whole tree can be written as YAML:

    chunks:
      - type: skip
        count: 16
      - type: repeat
        count: until_exhausted
        chunks:
          - type: repeat
            count: 28
            dimension: 0
            target: input
            chunks:
              - type: input
                count: 28
              - type: set_dimension
                dimension: 1
                value: 0
                target: input

Formats left unset default to uint8 for binary sources and to the matching
text format for text sources, so `build(text=...)` needs to know which
family the tree is for.
"""
from __future__ import annotations

import enum
from typing import Annotated, Literal, TypeAlias

from pydantic import Field

from chunkfeed.chunk.chunk import UNTIL_EXHAUSTED, Chunk, ChunkKind
from chunkfeed.chunk.format import ByteOrder, ElementFormat, Scaling, Target
from chunkfeed.config import Config, DimensionIndex, NonNegativeInt, PositiveInt


class ChunkType(str, enum.Enum):
    """Available chunk configs, one per chunk kind."""

    SKIP = "SkipChunk"
    CLASS_LABEL = "ClassLabelChunk"
    CLASS_INDEX = "ClassIndexChunk"
    INPUT = "InputChunk"
    RED = "RedChunk"
    GREEN = "GreenChunk"
    BLUE = "BlueChunk"
    OUTPUT = "OutputChunk"
    OUTPUT_LABEL = "OutputLabelChunk"
    REPEAT = "RepeatChunk"
    SET_DIMENSION = "SetDimensionChunk"

    @property
    def kind(self) -> ChunkKind:
        return ChunkKind[self.name]


def _default_format(text: bool, numeric: ElementFormat) -> ElementFormat:
    return numeric if text else ElementFormat.UINT8


class SkipChunkConfig(Config):
    """Discard `count` elements (or characters, for fixed-width text)."""

    type: Literal[ChunkType.SKIP] = ChunkType.SKIP
    count: NonNegativeInt = 1
    format: ElementFormat | None = None

    def build(self, text: bool = False) -> Chunk:
        fmt = self.format or _default_format(text, ElementFormat.TEXT_LABEL)
        return Chunk(ChunkKind.SKIP, self.count, fmt)


class ClassLabelChunkConfig(Config):
    """A text class label; `length` is bytes (binary) or field width."""

    type: Literal[ChunkType.CLASS_LABEL] = ChunkType.CLASS_LABEL
    length: PositiveInt = 1

    def build(self, text: bool = False) -> Chunk:
        return Chunk(
            ChunkKind.CLASS_LABEL, self.length, ElementFormat.TEXT_LABEL, target=Target.OUTPUT
        )


class OutputLabelChunkConfig(Config):
    """A text label that must fit the output tensor."""

    type: Literal[ChunkType.OUTPUT_LABEL] = ChunkType.OUTPUT_LABEL
    length: PositiveInt = 1

    def build(self, text: bool = False) -> Chunk:
        return Chunk(
            ChunkKind.OUTPUT_LABEL, self.length, ElementFormat.TEXT_LABEL, target=Target.OUTPUT
        )


class ClassIndexChunkConfig(Config):
    """An integer class index; `width` only matters for fixed-width text."""

    type: Literal[ChunkType.CLASS_INDEX] = ChunkType.CLASS_INDEX
    format: ElementFormat | None = None
    width: PositiveInt = 1
    byte_order: ByteOrder = ByteOrder.NATIVE

    def build(self, text: bool = False) -> Chunk:
        fmt = self.format or _default_format(text, ElementFormat.TEXT_INT)
        count = self.width if text else 1
        return Chunk(
            ChunkKind.CLASS_INDEX, count, fmt, target=Target.OUTPUT, byte_order=self.byte_order
        )


class _ValuesChunkConfig(Config):
    count: NonNegativeInt = 1
    format: ElementFormat | None = None
    scaling: Scaling = Scaling.NONE
    byte_order: ByteOrder = ByteOrder.NATIVE

    def _build(self, kind: ChunkKind, target: Target, text: bool) -> Chunk:
        fmt = self.format or _default_format(text, ElementFormat.TEXT_FLOAT)
        return Chunk(kind, self.count, fmt, self.scaling, target, byte_order=self.byte_order)


class InputChunkConfig(_ValuesChunkConfig):
    """Values for the input tensor along its last dimension."""

    type: Literal[ChunkType.INPUT] = ChunkType.INPUT

    def build(self, text: bool = False) -> Chunk:
        return self._build(ChunkKind.INPUT, Target.INPUT, text)


class OutputChunkConfig(_ValuesChunkConfig):
    """Values for the output tensor along its last dimension."""

    type: Literal[ChunkType.OUTPUT] = ChunkType.OUTPUT

    def build(self, text: bool = False) -> Chunk:
        return self._build(ChunkKind.OUTPUT, Target.OUTPUT, text)


class RedChunkConfig(_ValuesChunkConfig):
    type: Literal[ChunkType.RED] = ChunkType.RED

    def build(self, text: bool = False) -> Chunk:
        return self._build(ChunkKind.RED, Target.INPUT, text)


class GreenChunkConfig(_ValuesChunkConfig):
    type: Literal[ChunkType.GREEN] = ChunkType.GREEN

    def build(self, text: bool = False) -> Chunk:
        return self._build(ChunkKind.GREEN, Target.INPUT, text)


class BlueChunkConfig(_ValuesChunkConfig):
    type: Literal[ChunkType.BLUE] = ChunkType.BLUE

    def build(self, text: bool = False) -> Chunk:
        return self._build(ChunkKind.BLUE, Target.INPUT, text)


class RepeatChunkConfig(Config):
    """Repeat nested chunks across a dimension, or across records.

    Without a `dimension` the repeat is a record repeat: one sample per
    pass. `count: until_exhausted` keeps going until the source runs dry.
    """

    type: Literal[ChunkType.REPEAT] = ChunkType.REPEAT
    count: NonNegativeInt | Literal["until_exhausted"] = "until_exhausted"
    dimension: DimensionIndex | None = None
    target: Target = Target.BOTH
    chunks: list["ChunkConfig"]

    def build(self, text: bool = False) -> Chunk:
        count = UNTIL_EXHAUSTED if self.count == "until_exhausted" else self.count
        fmt = (
            ElementFormat.SAMPLE
            if self.dimension is None
            else ElementFormat.for_dimension(self.dimension)
        )
        return Chunk(
            ChunkKind.REPEAT,
            int(count),
            fmt,
            target=self.target,
            children=tuple(c.build(text) for c in self.chunks),
        )


class SetDimensionChunkConfig(Config):
    """Set a cursor dimension, or switch samples when `dimension` is unset.

    A negative `value` increments instead of setting.
    """

    type: Literal[ChunkType.SET_DIMENSION] = ChunkType.SET_DIMENSION
    dimension: DimensionIndex | None = None
    value: int = -1
    target: Target = Target.BOTH

    def build(self, text: bool = False) -> Chunk:
        fmt = (
            ElementFormat.SAMPLE
            if self.dimension is None
            else ElementFormat.for_dimension(self.dimension)
        )
        return Chunk(ChunkKind.SET_DIMENSION, self.value, fmt, target=self.target)


# Union of all chunk types for discriminated parsing
ChunkConfig: TypeAlias = Annotated[
    SkipChunkConfig
    | ClassLabelChunkConfig
    | ClassIndexChunkConfig
    | InputChunkConfig
    | RedChunkConfig
    | GreenChunkConfig
    | BlueChunkConfig
    | OutputChunkConfig
    | OutputLabelChunkConfig
    | RepeatChunkConfig
    | SetDimensionChunkConfig,
    Field(discriminator="type"),
]

RepeatChunkConfig.model_rebuild()
