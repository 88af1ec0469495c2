"""Typed failures raised while decoding sources into a dataset.

Every error carries a `category` so callers can tell which kind of problem
halted a parse without string-matching messages. They also subclass the
closest builtin, so `except ValueError` style handling keeps working.
"""
from __future__ import annotations

from collections.abc import Sequence


class ChunkfeedError(Exception):
    """Base class for all chunkfeed failures."""

    category: str = "error"


class SourceUnderrunError(ChunkfeedError, EOFError):
    """Fewer bytes or characters were available than a chunk required."""

    category = "source-underrun"

    def __init__(
        self, requested: int, available: int, what: str = "bytes", partial: bytes = b""
    ) -> None:
        super().__init__(
            f"source underrun: requested {requested} {what}, {available} available"
        )
        self.requested = requested
        self.available = available
        # Bytes that were read before the source ran dry.
        self.partial = partial


class SkipLinesError(SourceUnderrunError):
    """The source ended before the header lines could be skipped."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(requested, available, what="header lines")


class LocationOutOfRangeError(ChunkfeedError, IndexError):
    """A write would leave the declared tensor bounds."""

    category = "location-out-of-range"

    def __init__(self, tensor: str, position: Sequence[int], shape: Sequence[int]) -> None:
        super().__init__(
            f"{tensor} location {list(position)} is outside shape {list(shape)}"
        )
        self.tensor = tensor
        self.position = tuple(position)
        self.shape = tuple(shape)


class ClassIndexOutOfRangeError(ChunkfeedError, ValueError):
    """A class index does not fit the output tensor."""

    category = "location-out-of-range"

    def __init__(self, index: int, output_size: int) -> None:
        super().__init__(
            f"class index {index} is outside an output of size {output_size}"
        )
        self.index = index
        self.output_size = output_size


class InvalidNumericTextError(ChunkfeedError, ValueError):
    """Text could not be parsed as the declared numeric format."""

    category = "invalid-numeric-text"

    def __init__(self, text: str, expected: str) -> None:
        super().__init__(f"cannot parse {text!r} as {expected}")
        self.text = text
        self.expected = expected


class LabelOverflowError(ChunkfeedError, ValueError):
    """More unique labels were registered than the output can represent."""

    category = "label-overflow"

    def __init__(self, label: str, index: int, output_size: int) -> None:
        super().__init__(
            f"label {label!r} got index {index}, but the output only has "
            f"{output_size} elements"
        )
        self.label = label
        self.index = index
        self.output_size = output_size


class SampleShapeMismatchError(ChunkfeedError, ValueError):
    """A sample's buffer shape differs from the dataset's declared shape."""

    category = "shape-mismatch"


class SampleTypeMismatchError(ChunkfeedError, ValueError):
    """A sample's buffer dtype differs from the dataset's declared type."""

    category = "type-mismatch"


class DatasetLockedError(ChunkfeedError, RuntimeError):
    """Structural mutation was attempted while the dataset was locked."""

    category = "dataset-locked"


class InvalidSampleIndexError(ChunkfeedError, IndexError):
    """A sample index does not refer to an existing sample."""

    category = "invalid-sample-index"

    def __init__(self, index: int, num_samples: int) -> None:
        super().__init__(
            f"sample index {index} is invalid for a dataset of {num_samples} samples"
        )
        self.index = index
        self.num_samples = num_samples


class ChunkTreeError(ChunkfeedError, ValueError):
    """A chunk tree is malformed or not accepted by the chosen source family."""

    category = "malformed-chunk-tree"


class ImageDecodeError(ChunkfeedError, ValueError):
    """An image file could not be opened or converted."""

    category = "image-decode"
