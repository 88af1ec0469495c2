from __future__ import annotations

import torch

from chunkfeed.chunk.format import Scaling
from chunkfeed.data.dataset import SampleDataset
from chunkfeed.data.dtype import DataType
from chunkfeed.data.normalize import apply_normalization


def _dataset(rows: list[list[float]]) -> SampleDataset:
    ds = SampleDataset([len(rows[0])], DataType.FLOAT32, [1], DataType.FLOAT32)
    for row in rows:
        sample = ds.new_sample()
        sample.input.set_elements(0, row)
        ds.append_sample(sample)
    return ds


def test_per_sample_normalization_uses_each_sample_range() -> None:
    ds = _dataset([[0.0, 5.0, 10.0], [2.0, 3.0, 4.0]])
    tags = {i: Scaling.NORMALIZE_0_1 for i in range(3)}
    apply_normalization(ds, tags, {})
    assert torch.allclose(ds[0][0], torch.tensor([0.0, 0.5, 1.0]))
    assert torch.allclose(ds[1][0], torch.tensor([0.0, 0.5, 1.0]))


def test_dataset_wide_normalization_uses_global_range() -> None:
    ds = _dataset([[0.0, 5.0], [10.0, 20.0]])
    tags = {0: Scaling.NORMALIZE_ALL_M1_1, 1: Scaling.NORMALIZE_ALL_M1_1}
    apply_normalization(ds, tags, {})
    assert torch.allclose(ds[0][0], torch.tensor([-1.0, -0.5]))
    assert torch.allclose(ds[1][0], torch.tensor([0.0, 1.0]))


def test_untagged_positions_are_left_alone() -> None:
    ds = _dataset([[1.0, 100.0, 3.0]])
    apply_normalization(ds, {0: Scaling.NORMALIZE_0_1, 2: Scaling.NORMALIZE_0_1}, {})
    assert ds[0][0].tolist() == [0.0, 100.0, 1.0]


def test_constant_range_maps_to_lower_bound() -> None:
    ds = _dataset([[4.0, 4.0]])
    apply_normalization(ds, {0: Scaling.NORMALIZE_M1_1, 1: Scaling.NORMALIZE_M1_1}, {})
    assert ds[0][0].tolist() == [-1.0, -1.0]
