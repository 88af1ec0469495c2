"""SampleDataset: the ordered sample store that parsers fill.

Parsers allocate, fill and commit samples here; a training loop then reads it
like any torch Dataset. Two pieces of shared state need care:

- The label registry. Labels are matched case-insensitively and keep the
  index they were first seen with, so "Cat" and "cat" are one class.
- The exclusive "in use" state. While a consumer holds it (for example while
  assembling batches) every structural mutation is refused, so sample counts
  stay stable for the consumer.

All mutation happens under one re-entrant lock, so concurrent decode tasks may
commit samples without further coordination.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

import torch
from torch import Tensor
from torch.utils.data import Dataset

from chunkfeed.data.buffer import SampleBuffer
from chunkfeed.data.dtype import DataType
from chunkfeed.errors import (
    DatasetLockedError,
    InvalidSampleIndexError,
    SampleShapeMismatchError,
    SampleTypeMismatchError,
)

logger = logging.getLogger(__name__)


@dataclass
class Sample:
    """One (input buffer, output buffer, class index) triple."""

    input: SampleBuffer
    output: SampleBuffer
    class_index: int = 0

    def clone(self) -> "Sample":
        return Sample(self.input.clone(), self.output.clone(), self.class_index)


class SampleDataset(Dataset[tuple[Tensor, Tensor]]):
    """Ordered, fixed-shape samples plus an append-only label registry."""

    def __init__(
        self,
        input_shape: Sequence[int],
        input_type: DataType,
        output_shape: Sequence[int],
        output_type: DataType,
    ) -> None:
        super().__init__()
        if not input_shape or not output_shape:
            raise ValueError("input and output shapes must have at least one dimension")
        self.input_shape: tuple[int, ...] = tuple(int(d) for d in input_shape)
        self.output_shape: tuple[int, ...] = tuple(int(d) for d in output_shape)
        self.input_type = input_type
        self.output_type = output_type
        self._samples: list[Sample] = []
        self._labels: list[str] | None = None
        self._label_lookup: dict[str, int] = {}
        self._mutex = threading.RLock()
        self._locked = False
        # Slots handed out by allocate_empty_sample that no commit has filled.
        self._reserved: set[int] = set()

    # ─────────────────────────────────────────────────────────────────────
    # Sizes
    # ─────────────────────────────────────────────────────────────────────

    @property
    def num_samples(self) -> int:
        with self._mutex:
            return len(self._samples)

    @property
    def input_size(self) -> int:
        return _numel(self.input_shape)

    @property
    def output_size(self) -> int:
        return _numel(self.output_shape)

    def __len__(self) -> int:
        return self.num_samples

    def __getitem__(self, index: int) -> tuple[Tensor, Tensor]:
        sample = self.get_sample(index)
        return sample.input.tensor, sample.output.tensor

    # ─────────────────────────────────────────────────────────────────────
    # Sample lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def new_sample(self) -> Sample:
        """Return a zero-filled sample shaped for this dataset (not stored)."""
        return Sample(
            SampleBuffer(self.input_shape, self.input_type),
            SampleBuffer(self.output_shape, self.output_type),
        )

    def allocate_empty_sample(self) -> int:
        """Append an empty sample and return its slot index."""
        with self._mutex:
            self._require_unlocked("allocate a sample")
            self._samples.append(self.new_sample())
            index = len(self._samples) - 1
            self._reserved.add(index)
            return index

    def next_sample_index(self, current: int) -> int:
        """Slot after `current`, appending empty samples until it exists."""
        with self._mutex:
            target = current + 1
            while len(self._samples) <= target:
                self.allocate_empty_sample()
            return target

    def get_sample(self, index: int) -> Sample:
        with self._mutex:
            if not 0 <= index < len(self._samples):
                raise InvalidSampleIndexError(index, len(self._samples))
            return self._samples[index]

    def commit_sample(self, sample: Sample, index: int) -> None:
        """Store `sample` in the existing slot `index`."""
        self._validate(sample)
        with self._mutex:
            self._require_unlocked("commit a sample")
            if not 0 <= index < len(self._samples):
                raise InvalidSampleIndexError(index, len(self._samples))
            self._samples[index] = sample
            self._reserved.discard(index)

    def append_sample(self, sample: Sample) -> int:
        """Append a finished sample after checking its shape and type."""
        self._validate(sample)
        with self._mutex:
            self._require_unlocked("append a sample")
            self._samples.append(sample)
            return len(self._samples) - 1

    def drop_trailing_sample(self) -> None:
        """Remove the final sample, if any."""
        with self._mutex:
            self._require_unlocked("remove a sample")
            if self._samples:
                self._samples.pop()
                self._reserved.discard(len(self._samples))

    def release_uncommitted(self, start: int = 0) -> int:
        """Remove reserved slots at or after `start` that were never committed.

        Later committed samples move down to close the gaps. Returns the
        number of slots removed.
        """
        with self._mutex:
            stale = sorted((i for i in self._reserved if i >= start), reverse=True)
            for index in stale:
                del self._samples[index]
                self._reserved.discard(index)
            if stale:
                logger.debug("released %d uncommitted sample slots", len(stale))
            return len(stale)

    @contextmanager
    def reserving(self) -> Iterator["SampleDataset"]:
        """Scope a parse: on failure, slots it reserved but never filled go away."""
        start = self.num_samples
        try:
            yield self
        except BaseException:
            self.release_uncommitted(start)
            raise

    def samples(self) -> Iterator[Sample]:
        with self._mutex:
            snapshot = list(self._samples)
        yield from snapshot

    def _validate(self, sample: Sample) -> None:
        for name, buffer, shape, dtype in (
            ("input", sample.input, self.input_shape, self.input_type),
            ("output", sample.output, self.output_shape, self.output_type),
        ):
            if buffer.shape != shape:
                raise SampleShapeMismatchError(
                    f"sample {name} shape {list(buffer.shape)} does not match "
                    f"dataset shape {list(shape)}"
                )
            if buffer.dtype is not dtype:
                raise SampleTypeMismatchError(
                    f"sample {name} type {buffer.dtype.value} does not match "
                    f"dataset type {dtype.value}"
                )

    # ─────────────────────────────────────────────────────────────────────
    # Labels
    # ─────────────────────────────────────────────────────────────────────

    @property
    def labels(self) -> list[str] | None:
        with self._mutex:
            return None if self._labels is None else list(self._labels)

    def label_index(self, text: str) -> int:
        """Index of `text` in the registry, registering it if unseen."""
        key = text.casefold()
        with self._mutex:
            found = self._label_lookup.get(key)
            if found is not None:
                return found
            if self._labels is None:
                self._labels = []
            index = len(self._labels)
            self._labels.append(text)
            self._label_lookup[key] = index
            logger.debug("registered label %r as class %d", text, index)
            return index

    def label(self, index: int) -> str:
        with self._mutex:
            if self._labels is None or not 0 <= index < len(self._labels):
                raise IndexError(f"no label registered at index {index}")
            return self._labels[index]

    # ─────────────────────────────────────────────────────────────────────
    # Exclusive use
    # ─────────────────────────────────────────────────────────────────────

    @property
    def is_locked(self) -> bool:
        with self._mutex:
            return self._locked

    def lock(self) -> None:
        """Enter the exclusive "in use" state."""
        with self._mutex:
            if self._locked:
                raise DatasetLockedError("dataset is already locked")
            self._locked = True

    def unlock(self) -> None:
        with self._mutex:
            self._locked = False

    @contextmanager
    def exclusive(self) -> Iterator["SampleDataset"]:
        self.lock()
        try:
            yield self
        finally:
            self.unlock()

    def _require_unlocked(self, action: str) -> None:
        if self._locked:
            raise DatasetLockedError(f"cannot {action} while the dataset is locked")

    # ─────────────────────────────────────────────────────────────────────
    # Batching and splitting
    # ─────────────────────────────────────────────────────────────────────

    def get_batch(self, indices: Sequence[int]) -> tuple[Tensor, Tensor]:
        """Stack the given samples into [batch, *shape] input/output tensors.

        Holds the exclusive state while reading unless the caller already
        holds it.
        """
        with self._mutex:
            owned = not self._locked
            if owned:
                self.lock()
            try:
                picked = [self.get_sample(i) for i in indices]
            finally:
                if owned:
                    self.unlock()
        if not picked:
            return (
                torch.empty((0, *self.input_shape), dtype=self.input_type.torch_dtype),
                torch.empty((0, *self.output_shape), dtype=self.output_type.torch_dtype),
            )
        inputs = torch.stack([s.input.tensor for s in picked])
        outputs = torch.stack([s.output.tensor for s in picked])
        return inputs, outputs

    def class_indices(self) -> Tensor:
        with self._mutex:
            return torch.tensor([s.class_index for s in self._samples], dtype=torch.long)

    def split_randomly(
        self, second_count: int, generator: torch.Generator | None = None
    ) -> tuple["SampleDataset", "SampleDataset"]:
        """Partition the samples at random into two new datasets.

        The second dataset receives `second_count` samples, the first gets the
        rest. Both inherit a copy of the label registry.
        """
        with self._mutex:
            total = len(self._samples)
            if not 0 <= second_count <= total:
                raise ValueError(
                    f"second_count must be in [0, {total}], got {second_count}"
                )
            order = torch.randperm(total, generator=generator).tolist()
            first, second = self._empty_like(), self._empty_like()
            for position, index in enumerate(order):
                target = second if position < second_count else first
                target.append_sample(self._samples[index].clone())
        return first, second

    def _empty_like(self) -> "SampleDataset":
        copy = SampleDataset(
            self.input_shape, self.input_type, self.output_shape, self.output_type
        )
        if self._labels is not None:
            copy._labels = list(self._labels)
            copy._label_lookup = dict(self._label_lookup)
        return copy

    def __repr__(self) -> str:
        return (
            f"SampleDataset(samples={self.num_samples}, "
            f"input={list(self.input_shape)}:{self.input_type.value}, "
            f"output={list(self.output_shape)}:{self.output_type.value})"
        )


def _numel(shape: Sequence[int]) -> int:
    total = 1
    for d in shape:
        total *= d
    return total
