"""SampleBuffer: an addressable, fixed-shape numeric buffer.

The decoder only needs a handful of operations from a buffer: read and write
by linear index or by multi-dimensional location, a bulk range write, and a
one-hot fill. SampleBuffer provides exactly those over a zero-filled torch
tensor so the finished dataset can be batched without copying.
"""
from __future__ import annotations

from collections.abc import Sequence

import torch
from torch import Tensor

from chunkfeed.data.dtype import DataType


class SampleBuffer:
    """A zero-initialised tensor addressed by linear index or location."""

    def __init__(self, shape: Sequence[int], dtype: DataType) -> None:
        if any(d <= 0 for d in shape):
            raise ValueError(f"buffer shape must be positive, got {list(shape)}")
        self.shape: tuple[int, ...] = tuple(int(d) for d in shape)
        self.dtype = dtype
        self.tensor: Tensor = torch.zeros(self.shape, dtype=dtype.torch_dtype)
        self._flat = self.tensor.view(-1)

    @classmethod
    def from_tensor(cls, tensor: Tensor) -> "SampleBuffer":
        buffer = cls(tuple(tensor.shape), DataType.from_torch(tensor.dtype))
        buffer.tensor.copy_(tensor)
        return buffer

    @property
    def numel(self) -> int:
        return self._flat.numel()

    def get_element(self, index: int | Sequence[int]) -> float:
        return float(self._flat[self._linear(index)].item())

    def set_element(self, index: int | Sequence[int], value: float) -> None:
        self._flat[self._linear(index)] = value

    def set_elements(self, start: int, values: Sequence[float]) -> None:
        """Write `values` contiguously starting at linear index `start`."""
        end = start + len(values)
        if start < 0 or end > self.numel:
            raise IndexError(
                f"range [{start}, {end}) is outside a buffer of {self.numel} elements"
            )
        self._flat[start:end] = torch.tensor(
            list(values), dtype=torch.float64
        ).to(self.tensor.dtype)

    def set_one_hot(self, index: int) -> None:
        """Zero the buffer and set element `index` to one."""
        if not 0 <= index < self.numel:
            raise IndexError(
                f"one-hot index {index} is outside a buffer of {self.numel} elements"
            )
        self._flat.zero_()
        self._flat[index] = 1

    def clone(self) -> "SampleBuffer":
        return SampleBuffer.from_tensor(self.tensor)

    def _linear(self, index: int | Sequence[int]) -> int:
        if isinstance(index, int):
            if not 0 <= index < self.numel:
                raise IndexError(
                    f"index {index} is outside a buffer of {self.numel} elements"
                )
            return index
        if len(index) != len(self.shape):
            raise IndexError(
                f"location {list(index)} does not match rank {len(self.shape)}"
            )
        linear = 0
        for position, size in zip(index, self.shape):
            if not 0 <= position < size:
                raise IndexError(
                    f"location {list(index)} is outside shape {list(self.shape)}"
                )
            linear = linear * size + position
        return linear

    def __repr__(self) -> str:
        return f"SampleBuffer(shape={list(self.shape)}, dtype={self.dtype.value})"
