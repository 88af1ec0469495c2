"""Sample storage: buffers, samples and the dataset parsers fill.

The dataset is a regular torch Dataset, so it can be handed straight to a
DataLoader once parsing is done.
"""
from chunkfeed.data.buffer import SampleBuffer
from chunkfeed.data.dataset import Sample, SampleDataset
from chunkfeed.data.dtype import DataType

__all__ = ["DataType", "Sample", "SampleBuffer", "SampleDataset"]
