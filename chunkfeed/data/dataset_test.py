"""
Unit tests for SampleBuffer and SampleDataset.
"""
from __future__ import annotations

import threading
import unittest

import torch

from chunkfeed.data.buffer import SampleBuffer
from chunkfeed.data.dataset import Sample, SampleDataset
from chunkfeed.data.dtype import DataType
from chunkfeed.errors import (
    DatasetLockedError,
    InvalidSampleIndexError,
    SampleShapeMismatchError,
    SampleTypeMismatchError,
)


def _dataset() -> SampleDataset:
    return SampleDataset([2, 3], DataType.FLOAT32, [4], DataType.FLOAT32)


class TestSampleBuffer(unittest.TestCase):
    """Tests for the buffer collaborator interface."""

    def test_location_and_linear_index_agree(self) -> None:
        buffer = SampleBuffer([2, 3], DataType.FLOAT32)
        buffer.set_element([1, 2], 7.0)
        self.assertEqual(buffer.get_element(5), 7.0)
        self.assertEqual(buffer.tensor[1, 2].item(), 7.0)

    def test_set_elements_writes_a_range(self) -> None:
        buffer = SampleBuffer([4], DataType.INT32)
        buffer.set_elements(1, [5, 6, 7])
        self.assertEqual(buffer.tensor.tolist(), [0, 5, 6, 7])

    def test_set_elements_rejects_overflow(self) -> None:
        buffer = SampleBuffer([4], DataType.INT32)
        with self.assertRaises(IndexError):
            buffer.set_elements(2, [1, 2, 3])

    def test_set_one_hot_clears_previous_value(self) -> None:
        buffer = SampleBuffer([3], DataType.UINT8)
        buffer.set_one_hot(0)
        buffer.set_one_hot(2)
        self.assertEqual(buffer.tensor.tolist(), [0, 0, 1])

    def test_out_of_range_location(self) -> None:
        buffer = SampleBuffer([2, 2], DataType.FLOAT32)
        with self.assertRaises(IndexError):
            buffer.set_element([2, 0], 1.0)
        with self.assertRaises(IndexError):
            buffer.get_element(4)


class TestSampleLifecycle(unittest.TestCase):
    """Tests for allocation, commit and removal."""

    def test_allocate_and_commit(self) -> None:
        ds = _dataset()
        slot = ds.allocate_empty_sample()
        sample = ds.new_sample()
        sample.input.set_element(0, 3.0)
        ds.commit_sample(sample, slot)
        self.assertEqual(ds.num_samples, 1)
        self.assertEqual(ds.get_sample(0).input.get_element(0), 3.0)

    def test_next_sample_index_appends_when_needed(self) -> None:
        ds = _dataset()
        self.assertEqual(ds.next_sample_index(-1), 0)
        self.assertEqual(ds.num_samples, 1)
        self.assertEqual(ds.next_sample_index(-1), 0)
        self.assertEqual(ds.num_samples, 1)
        self.assertEqual(ds.next_sample_index(0), 1)
        self.assertEqual(ds.num_samples, 2)

    def test_append_rejects_wrong_shape(self) -> None:
        ds = _dataset()
        bad = Sample(
            SampleBuffer([3, 2], DataType.FLOAT32), SampleBuffer([4], DataType.FLOAT32)
        )
        with self.assertRaises(SampleShapeMismatchError):
            ds.append_sample(bad)

    def test_append_rejects_wrong_type(self) -> None:
        ds = _dataset()
        bad = Sample(
            SampleBuffer([2, 3], DataType.FLOAT64), SampleBuffer([4], DataType.FLOAT32)
        )
        with self.assertRaises(SampleTypeMismatchError):
            ds.append_sample(bad)

    def test_commit_to_missing_slot(self) -> None:
        ds = _dataset()
        with self.assertRaises(InvalidSampleIndexError):
            ds.commit_sample(ds.new_sample(), 0)

    def test_drop_trailing_sample(self) -> None:
        ds = _dataset()
        ds.allocate_empty_sample()
        ds.allocate_empty_sample()
        ds.drop_trailing_sample()
        self.assertEqual(len(ds), 1)

    def test_release_uncommitted_keeps_committed_samples(self) -> None:
        ds = _dataset()
        ds.append_sample(ds.new_sample())
        slots = [ds.allocate_empty_sample() for _ in range(4)]
        for slot in (slots[0], slots[2]):
            sample = ds.new_sample()
            sample.input.set_element(0, float(slot))
            ds.commit_sample(sample, slot)
        self.assertEqual(ds.release_uncommitted(1), 2)
        self.assertEqual(ds.num_samples, 3)
        self.assertEqual(
            [s.input.get_element(0) for s in ds.samples()], [0.0, 1.0, 3.0]
        )
        self.assertEqual(ds.release_uncommitted(), 0)

    def test_reserving_rolls_back_on_failure(self) -> None:
        ds = _dataset()
        ds.commit_sample(ds.new_sample(), ds.allocate_empty_sample())
        with self.assertRaises(RuntimeError):
            with ds.reserving():
                ds.commit_sample(ds.new_sample(), ds.allocate_empty_sample())
                ds.allocate_empty_sample()
                ds.allocate_empty_sample()
                raise RuntimeError("decode failed")
        self.assertEqual(ds.num_samples, 2)

    def test_reserving_leaves_a_clean_parse_alone(self) -> None:
        ds = _dataset()
        with ds.reserving():
            ds.allocate_empty_sample()
        self.assertEqual(ds.num_samples, 1)

    def test_getitem_returns_tensors(self) -> None:
        ds = _dataset()
        ds.allocate_empty_sample()
        x, y = ds[0]
        self.assertEqual(tuple(x.shape), (2, 3))
        self.assertEqual(tuple(y.shape), (4,))


class TestLabels(unittest.TestCase):
    """Tests for the case-insensitive, first-seen-wins label registry."""

    def test_labels_start_unset(self) -> None:
        self.assertIsNone(_dataset().labels)

    def test_case_insensitive_lookup(self) -> None:
        ds = _dataset()
        self.assertEqual(ds.label_index("Cat"), 0)
        self.assertEqual(ds.label_index("cat"), 0)
        self.assertEqual(ds.label_index("Dog"), 1)
        self.assertEqual(ds.labels, ["Cat", "Dog"])
        self.assertEqual(ds.label(1), "Dog")

    def test_concurrent_registration_assigns_unique_indices(self) -> None:
        ds = _dataset()
        names = [f"label{i}" for i in range(50)]

        def register() -> None:
            for name in names:
                ds.label_index(name)

        threads = [threading.Thread(target=register) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        labels = ds.labels
        assert labels is not None
        self.assertEqual(sorted(labels), sorted(names))


class TestExclusiveUse(unittest.TestCase):
    """Tests for the locked state."""

    def test_mutation_refused_while_locked(self) -> None:
        ds = _dataset()
        ds.allocate_empty_sample()
        with ds.exclusive():
            with self.assertRaises(DatasetLockedError):
                ds.allocate_empty_sample()
            with self.assertRaises(DatasetLockedError):
                ds.append_sample(ds.new_sample())
            with self.assertRaises(DatasetLockedError):
                ds.commit_sample(ds.new_sample(), 0)
            with self.assertRaises(DatasetLockedError):
                ds.drop_trailing_sample()
            self.assertEqual(ds.num_samples, 1)
        ds.allocate_empty_sample()
        self.assertEqual(ds.num_samples, 2)

    def test_double_lock_is_refused(self) -> None:
        ds = _dataset()
        ds.lock()
        with self.assertRaises(DatasetLockedError):
            ds.lock()
        ds.unlock()
        self.assertFalse(ds.is_locked)

    def test_get_batch_under_caller_lock(self) -> None:
        ds = _dataset()
        for value in (1.0, 2.0, 3.0):
            sample = ds.new_sample()
            sample.input.set_element(0, value)
            ds.append_sample(sample)
        with ds.exclusive():
            inputs, outputs = ds.get_batch([2, 0])
        self.assertEqual(tuple(inputs.shape), (2, 2, 3))
        self.assertEqual(tuple(outputs.shape), (2, 4))
        self.assertEqual(inputs[:, 0, 0].tolist(), [3.0, 1.0])
        self.assertFalse(ds.is_locked)

    def test_get_batch_releases_its_own_lock(self) -> None:
        ds = _dataset()
        ds.allocate_empty_sample()
        ds.get_batch([0])
        self.assertFalse(ds.is_locked)


class TestSplit(unittest.TestCase):
    """Tests for split_randomly."""

    def test_split_partitions_samples_and_copies_labels(self) -> None:
        ds = _dataset()
        ds.label_index("a")
        for i in range(10):
            sample = ds.new_sample()
            sample.input.set_element(0, float(i))
            ds.append_sample(sample)
        first, second = ds.split_randomly(3, generator=torch.Generator().manual_seed(0))
        self.assertEqual((first.num_samples, second.num_samples), (7, 3))
        values = sorted(
            s.input.get_element(0) for part in (first, second) for s in part.samples()
        )
        self.assertEqual(values, [float(i) for i in range(10)])
        self.assertEqual(first.labels, ["a"])
        self.assertEqual(second.labels, ["a"])

    def test_split_rejects_too_many(self) -> None:
        with self.assertRaises(ValueError):
            _dataset().split_randomly(1)


if __name__ == "__main__":
    unittest.main()
