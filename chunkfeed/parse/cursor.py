"""Cursor: multi-dimensional write positions for one in-flight record.

A cursor keeps one Track for the input buffer and one for the output buffer.
Each track knows the tensor shape, its row-major strides and the current
position. Every scalar store goes through `checked_index`, which refuses any
position outside the shape instead of clamping or wrapping it.
"""
from __future__ import annotations

from collections.abc import Sequence

from chunkfeed.chunk.format import Scaling, Target
from chunkfeed.errors import LocationOutOfRangeError


def row_major_strides(shape: Sequence[int]) -> tuple[int, ...]:
    """stride[d] is the product of shape[d+1:]."""
    strides = [1] * len(shape)
    for d in range(len(shape) - 2, -1, -1):
        strides[d] = strides[d + 1] * shape[d + 1]
    return tuple(strides)


class Track:
    """Position bookkeeping for a single tensor."""

    def __init__(
        self,
        name: str,
        shape: Sequence[int],
        strides: tuple[int, ...] | None = None,
        normalization: dict[int, Scaling] | None = None,
    ) -> None:
        self.name = name
        self.shape: tuple[int, ...] = tuple(shape)
        self.strides = strides if strides is not None else row_major_strides(self.shape)
        self.position: list[int] = [0] * len(self.shape)
        # Shared between clones; only written while sample 0 is decoded.
        self.normalization: dict[int, Scaling] = (
            normalization if normalization is not None else {}
        )

    @property
    def rank(self) -> int:
        return len(self.shape)

    @property
    def last_dimension(self) -> int:
        return len(self.shape) - 1

    def in_range(self) -> bool:
        return all(0 <= p < s for p, s in zip(self.position, self.shape))

    def storage_index(self) -> int:
        return sum(p * s for p, s in zip(self.position, self.strides))

    def checked_index(self) -> int:
        """Linear index of the current position, or LocationOutOfRangeError."""
        if not self.in_range():
            raise LocationOutOfRangeError(self.name, self.position, self.shape)
        return self.storage_index()

    def reset(self) -> None:
        for d in range(len(self.position)):
            self.position[d] = 0

    def increment(self, dimension: int, by: int = 1) -> None:
        if dimension < self.rank:
            self.position[dimension] += by

    def set(self, dimension: int, value: int) -> None:
        if dimension < self.rank:
            self.position[dimension] = value

    def clone(self) -> "Track":
        copy = Track(self.name, self.shape, self.strides, self.normalization)
        copy.position = list(self.position)
        return copy

    def __repr__(self) -> str:
        return f"Track({self.name}, position={self.position}, shape={list(self.shape)})"


class Cursor:
    """Input and output write positions for one record."""

    def __init__(
        self, input_shape: Sequence[int], output_shape: Sequence[int]
    ) -> None:
        self.input = Track("input", input_shape)
        self.output = Track("output", output_shape)

    def reset(self) -> None:
        """Zero all positions; called at every record start."""
        self.input.reset()
        self.output.reset()

    def has_written(self) -> bool:
        """True once any position on either track has moved."""
        return sum(self.input.position) + sum(self.output.position) != 0

    def tracks(self, target: Target) -> list[Track]:
        selected: list[Track] = []
        if target.affects_input:
            selected.append(self.input)
        if target.affects_output:
            selected.append(self.output)
        return selected

    def increment(self, target: Target, dimension: int) -> None:
        for track in self.tracks(target):
            track.increment(dimension)

    def set_or_increment(self, target: Target, dimension: int, value: int) -> None:
        """Set `dimension` to `value`, or increment it when `value` is negative."""
        for track in self.tracks(target):
            if value < 0:
                track.increment(dimension)
            else:
                track.set(dimension, value)

    def tag_normalization(
        self, track: Track, index: int, scaling: Scaling, sample_index: int
    ) -> None:
        if sample_index == 0 and scaling.is_normalization:
            track.normalization[index] = scaling

    def clone(self) -> "Cursor":
        """Copy with private positions; strides and normalization maps are shared."""
        copy = Cursor.__new__(Cursor)
        copy.input = self.input.clone()
        copy.output = self.output.clone()
        return copy

    def __repr__(self) -> str:
        return f"Cursor(input={self.input.position}, output={self.output.position})"
