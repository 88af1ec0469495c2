"""Post-decode normalization passes.

NORMALIZE_* scalings cannot be applied while reading because they depend on
the range of values that were eventually decoded. While decoding the first
sample the cursor records which linear positions carry which scaling; once
the whole source has been read these passes rescale exactly those positions,
using either each sample's own range or the range across the dataset.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Mapping

import torch
from torch import Tensor

from chunkfeed.chunk.format import Scaling
from chunkfeed.data.dataset import Sample, SampleDataset

logger = logging.getLogger(__name__)


NormalizationMap = Mapping[int, Scaling]


def apply_normalization(
    dataset: SampleDataset,
    input_map: NormalizationMap,
    output_map: NormalizationMap,
) -> None:
    """Rescale the positions tagged in `input_map` and `output_map`."""
    for name, mapping, pick in (
        ("input", input_map, _input_tensor),
        ("output", output_map, _output_tensor),
    ):
        for scaling, indices in _group(mapping).items():
            index = torch.tensor(sorted(indices), dtype=torch.long)
            if scaling.is_dataset_wide:
                _normalize_across(dataset, index, scaling, pick)
            else:
                for sample in dataset.samples():
                    flat = pick(sample).view(-1)
                    values = flat[index].to(torch.float64)
                    flat[index] = _rescale(
                        values, values.min(), values.max(), scaling
                    ).to(flat.dtype)
            logger.debug(
                "normalized %d %s positions with %s", len(indices), name, scaling.value
            )


def _normalize_across(
    dataset: SampleDataset,
    index: Tensor,
    scaling: Scaling,
    pick: Callable[[Sample], Tensor],
) -> None:
    samples = list(dataset.samples())
    if not samples:
        return
    stacked = torch.stack([pick(s).view(-1)[index].to(torch.float64) for s in samples])
    low, high = stacked.min(), stacked.max()
    for sample, values in zip(samples, stacked):
        flat = pick(sample).view(-1)
        flat[index] = _rescale(values, low, high, scaling).to(flat.dtype)


def _rescale(values: Tensor, low: Tensor, high: Tensor, scaling: Scaling) -> Tensor:
    span = high - low
    if span == 0:
        return torch.full_like(values, scaling.lower_bound)
    unit = (values - low) / span
    if scaling.lower_bound < 0:
        return unit * 2.0 - 1.0
    return unit


def _group(mapping: NormalizationMap) -> dict[Scaling, list[int]]:
    grouped: dict[Scaling, list[int]] = defaultdict(list)
    for index, scaling in mapping.items():
        if scaling.is_normalization:
            grouped[scaling].append(index)
    return grouped


def _input_tensor(sample: Sample) -> Tensor:
    return sample.input.tensor


def _output_tensor(sample: Sample) -> Tensor:
    return sample.output.tensor
