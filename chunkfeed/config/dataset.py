"""Dataset configuration: the fixed shapes and types every sample shares."""
from __future__ import annotations

from pydantic import Field

from chunkfeed.config import Config, PositiveInt
from chunkfeed.data.dataset import SampleDataset
from chunkfeed.data.dtype import DataType


class DatasetConfig(Config):
    """Shape and storage type of the input and output buffers."""

    input_shape: list[PositiveInt] = Field(min_length=1, max_length=16)
    input_type: DataType = DataType.FLOAT32
    output_shape: list[PositiveInt] = Field(min_length=1, max_length=16)
    output_type: DataType = DataType.FLOAT32

    def build(self) -> SampleDataset:
        return SampleDataset(
            self.input_shape, self.input_type, self.output_shape, self.output_type
        )
