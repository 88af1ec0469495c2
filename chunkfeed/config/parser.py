"""Parser configuration: which source family, where, and how to read it."""
from __future__ import annotations

import enum
from pathlib import Path

from pydantic import model_validator

from chunkfeed.config import Config, NonNegativeInt, PositiveInt
from chunkfeed.config.chunk import ChunkConfig
from chunkfeed.data.dataset import SampleDataset
from chunkfeed.parse.coordinator import DEFAULT_MAX_CONCURRENCY
from chunkfeed.parse.image import ImageChunk, ImageChunkKind, ImageParser
from chunkfeed.parse.parser import (
    BinaryParser,
    DataParser,
    DelimitedTextParser,
    FixedColumnTextParser,
)
from chunkfeed.parse.source import Separator


class SourceFormat(str, enum.Enum):
    """How the source is laid out."""

    BINARY = "binary"
    COMMA = "comma"
    WHITESPACE = "whitespace"
    FIXED = "fixed"
    IMAGES = "images"

    @property
    def is_text(self) -> bool:
        return self in (SourceFormat.COMMA, SourceFormat.WHITESPACE, SourceFormat.FIXED)


class ImageSourceConfig(Config):
    """One entry of an image tree."""

    kind: ImageChunkKind = ImageChunkKind.LABELED_SUBDIRECTORIES
    path: str = "."
    class_index: NonNegativeInt | None = None
    class_label: str | None = None

    def build(self) -> ImageChunk:
        return ImageChunk(self.kind, self.path, self.class_index, self.class_label)


class ParserConfig(Config):
    """A source plus the chunk tree (or image entries) used to decode it.

    Relative `source` paths are resolved against the manifest's directory.
    """

    format: SourceFormat
    source: Path
    skip_lines: NonNegativeInt = 0
    comment_indicators: list[str] = []
    max_concurrency: PositiveInt = DEFAULT_MAX_CONCURRENCY
    chunks: list[ChunkConfig] = []
    images: list[ImageSourceConfig] = []

    @model_validator(mode="after")
    def _check_layout(self) -> "ParserConfig":
        if self.format is SourceFormat.IMAGES:
            if not self.images or self.chunks:
                raise ValueError("image sources need `images` entries and no `chunks`")
        elif not self.chunks or self.images:
            raise ValueError(
                f"{self.format.value} sources need `chunks` and no `images` entries"
            )
        if not self.format.is_text and (self.skip_lines or self.comment_indicators):
            raise ValueError(
                "skip_lines and comment_indicators only apply to text sources"
            )
        return self

    def build(self) -> DataParser | ImageParser:
        text = self.format.is_text
        chunks = [c.build(text) for c in self.chunks]
        match self.format:
            case SourceFormat.BINARY:
                return BinaryParser(chunks)
            case SourceFormat.COMMA:
                return DelimitedTextParser(
                    Separator.COMMA, chunks, self.skip_lines, self.comment_indicators
                )
            case SourceFormat.WHITESPACE:
                return DelimitedTextParser(
                    Separator.WHITESPACE, chunks, self.skip_lines, self.comment_indicators
                )
            case SourceFormat.FIXED:
                return FixedColumnTextParser(
                    chunks, self.skip_lines, self.comment_indicators
                )
            case SourceFormat.IMAGES:
                return ImageParser(i.build() for i in self.images)

    def parse_into(
        self,
        dataset: SampleDataset,
        base_dir: Path = Path("."),
        max_concurrency: int | None = None,
    ) -> int:
        """Build the parser and decode the configured source into `dataset`."""
        source = self.source if self.source.is_absolute() else base_dir / self.source
        concurrency = self.max_concurrency if max_concurrency is None else max_concurrency
        parser = self.build()
        match parser:
            case ImageParser():
                return parser.parse_sync(source, dataset, concurrency)
            case BinaryParser() | DelimitedTextParser() | FixedColumnTextParser():
                return parser.parse_file_sync(source, dataset, concurrency)
            case _:
                raise ValueError(f"Unsupported parser: {type(parser)!r}")
