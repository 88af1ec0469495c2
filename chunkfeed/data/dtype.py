"""Element types a dataset can store, mapped onto torch dtypes."""
from __future__ import annotations

import enum

import torch


class DataType(str, enum.Enum):
    """Storage type of a dataset's input or output buffers."""

    UINT8 = "uint8"
    INT32 = "int32"
    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def torch_dtype(self) -> torch.dtype:
        return _TORCH_DTYPES[self]

    @property
    def is_floating_point(self) -> bool:
        return self in (DataType.FLOAT16, DataType.FLOAT32, DataType.FLOAT64)

    @staticmethod
    def from_torch(dtype: torch.dtype) -> "DataType":
        for member, candidate in _TORCH_DTYPES.items():
            if candidate == dtype:
                return member
        raise ValueError(f"Unsupported dtype: {dtype}")


_TORCH_DTYPES: dict[DataType, torch.dtype] = {
    DataType.UINT8: torch.uint8,
    DataType.INT32: torch.int32,
    DataType.FLOAT16: torch.float16,
    DataType.FLOAT32: torch.float32,
    DataType.FLOAT64: torch.float64,
}
