"""
Unit tests for Cursor and Track bookkeeping.
"""
from __future__ import annotations

import unittest

from chunkfeed.chunk.format import Scaling, Target
from chunkfeed.errors import LocationOutOfRangeError
from chunkfeed.parse.cursor import Cursor, row_major_strides


class TestStrides(unittest.TestCase):
    """Tests for row-major stride tables."""

    def test_strides(self) -> None:
        self.assertEqual(row_major_strides([28, 28]), (28, 1))
        self.assertEqual(row_major_strides([4, 3, 2]), (6, 2, 1))
        self.assertEqual(row_major_strides([5]), (1,))


class TestCursor(unittest.TestCase):
    """Tests for positions, targets and cloning."""

    def test_storage_index(self) -> None:
        cursor = Cursor([4, 3, 2], [1])
        cursor.input.position = [2, 1, 1]
        self.assertEqual(cursor.input.storage_index(), 2 * 6 + 1 * 2 + 1)

    def test_checked_index_refuses_out_of_range(self) -> None:
        cursor = Cursor([2, 2], [1])
        cursor.input.position = [0, 2]
        self.assertFalse(cursor.input.in_range())
        with self.assertRaises(LocationOutOfRangeError) as ctx:
            cursor.input.checked_index()
        self.assertEqual(ctx.exception.position, (0, 2))
        self.assertEqual(ctx.exception.shape, (2, 2))

    def test_target_selection(self) -> None:
        cursor = Cursor([3, 3], [3, 3])
        cursor.increment(Target.INPUT, 0)
        cursor.increment(Target.BOTH, 1)
        cursor.increment(Target.NEITHER, 1)
        self.assertEqual(cursor.input.position, [1, 1])
        self.assertEqual(cursor.output.position, [0, 1])

    def test_set_or_increment(self) -> None:
        cursor = Cursor([5, 5], [5])
        cursor.set_or_increment(Target.INPUT, 0, 3)
        cursor.set_or_increment(Target.INPUT, 0, -1)
        self.assertEqual(cursor.input.position, [4, 0])

    def test_dimensions_beyond_rank_are_ignored(self) -> None:
        cursor = Cursor([5], [5])
        cursor.increment(Target.BOTH, 3)
        self.assertEqual(cursor.input.position, [0])
        self.assertFalse(cursor.has_written())

    def test_reset_and_has_written(self) -> None:
        cursor = Cursor([5], [5])
        cursor.increment(Target.OUTPUT, 0)
        self.assertTrue(cursor.has_written())
        cursor.reset()
        self.assertFalse(cursor.has_written())

    def test_clone_has_private_positions_and_shared_tags(self) -> None:
        cursor = Cursor([5], [5])
        copy = cursor.clone()
        copy.increment(Target.INPUT, 0)
        self.assertEqual(cursor.input.position, [0])
        copy.tag_normalization(copy.input, 2, Scaling.NORMALIZE_0_1, sample_index=0)
        self.assertEqual(cursor.input.normalization, {2: Scaling.NORMALIZE_0_1})

    def test_tags_only_written_for_first_sample(self) -> None:
        cursor = Cursor([5], [5])
        cursor.tag_normalization(cursor.input, 1, Scaling.NORMALIZE_0_1, sample_index=1)
        cursor.tag_normalization(cursor.input, 1, Scaling.SCALE_0_1, sample_index=0)
        self.assertEqual(cursor.input.normalization, {})


if __name__ == "__main__":
    unittest.main()
