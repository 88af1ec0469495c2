"""Decoding sources into a SampleDataset.

Usage:
    dataset = SampleDataset([2], DataType.FLOAT32, [1], DataType.FLOAT32)
    parser = DelimitedTextParser(
        Separator.WHITESPACE,
        [input_float_text(), input_float_text(), output_float_text()],
    )
    parser.parse_text_sync("1.0 2.0 5.0", dataset)
"""
from chunkfeed.parse.coordinator import DEFAULT_MAX_CONCURRENCY, RecordCoordinator
from chunkfeed.parse.cursor import Cursor, Track
from chunkfeed.parse.image import (
    ImageChunk,
    ImageParser,
    image_directory,
    image_directory_with_subdirectories,
    image_file,
)
from chunkfeed.parse.parser import (
    BinaryParser,
    DataParser,
    DelimitedTextParser,
    FixedColumnTextParser,
    TextParser,
)
from chunkfeed.parse.source import BufferSource, Separator, StreamSource

__all__ = [
    "DEFAULT_MAX_CONCURRENCY",
    "BinaryParser",
    "BufferSource",
    "Cursor",
    "DataParser",
    "DelimitedTextParser",
    "FixedColumnTextParser",
    "ImageChunk",
    "ImageParser",
    "RecordCoordinator",
    "Separator",
    "StreamSource",
    "TextParser",
    "Track",
    "image_directory",
    "image_directory_with_subdirectories",
    "image_file",
]
