"""
End-to-end decoding scenarios over realistic source layouts.
"""
from __future__ import annotations

import random
import struct
import unittest

import torch

from chunkfeed.chunk import builders as cb
from chunkfeed.chunk.format import ByteOrder, ElementFormat, Target
from chunkfeed.data.dataset import SampleDataset
from chunkfeed.data.dtype import DataType
from chunkfeed.errors import LocationOutOfRangeError
from chunkfeed.parse.parser import BinaryParser, DelimitedTextParser
from chunkfeed.parse.source import Separator


def _idx_parser() -> BinaryParser:
    """16-byte header, then 28x28 uint8 images, row by row."""
    return BinaryParser(
        [
            cb.unused_data(16),
            cb.repeat_sample_until_done(
                [
                    cb.repeat_dimension(
                        28,
                        0,
                        Target.INPUT,
                        [cb.input_data(28), cb.set_dimension(1, 0, Target.INPUT)],
                    )
                ]
            ),
        ]
    )


def _idx_bytes(images: int) -> bytes:
    header = bytes(range(16))
    body = bytes((i * 7 + j) % 256 for i in range(images) for j in range(784))
    return header + body


class TestImageRecords(unittest.TestCase):
    """A header followed by fixed-size image records."""

    def test_two_images(self) -> None:
        """Each 784-byte block becomes one 28x28 sample in source order."""
        data = _idx_bytes(2)
        for concurrency in (1, 4):
            ds = SampleDataset([28, 28], DataType.UINT8, [1], DataType.UINT8)
            self.assertEqual(_idx_parser().parse_data_sync(data, ds, concurrency), 2)
            expected = torch.tensor(list(data[16:]), dtype=torch.uint8).view(2, 28, 28)
            self.assertTrue(torch.equal(ds[0][0], expected[0]))
            self.assertTrue(torch.equal(ds[1][0], expected[1]))

    def test_short_trailing_record_is_dropped(self) -> None:
        """2 x (16 + 784) bytes: two images, then 16 bytes too few for a third."""
        data = bytes((i * 13) % 256 for i in range(2 * (16 + 28 * 28)))
        for concurrency in (1, 4):
            ds = SampleDataset([28, 28], DataType.UINT8, [1], DataType.UINT8)
            self.assertEqual(_idx_parser().parse_data_sync(data, ds, concurrency), 2)
            expected = torch.tensor(list(data[16:16 + 2 * 784]), dtype=torch.uint8)
            expected = expected.view(2, 28, 28)
            self.assertTrue(torch.equal(ds[0][0], expected[0]))
            self.assertTrue(torch.equal(ds[1][0], expected[1]))

    def test_exact_multiple_has_no_trailing_sample(self) -> None:
        """A source that ends exactly on a record boundary decodes cleanly."""
        for images in (0, 1, 5):
            ds = SampleDataset([28, 28], DataType.UINT8, [1], DataType.UINT8)
            _idx_parser().parse_data_sync(_idx_bytes(images), ds, max_concurrency=1)
            self.assertEqual(ds.num_samples, images)


class TestEncodedRecords(unittest.TestCase):
    """Known samples encoded by hand decode back to themselves."""

    def test_mixed_record_round_trip(self) -> None:
        samples = [
            ([-300, 7, 32000], [0.5, -2.25], 1),
            ([0, -1, 12], [1e-3, 8.0], 3),
            ([5, 5, 5], [0.0, 0.0], 0),
        ]
        data = b"".join(
            struct.pack(">B3h", cls, *ints) + struct.pack("<2f", *floats)
            for ints, floats, cls in samples
        )
        parser = BinaryParser(
            [
                cb.repeat_sample_until_done(
                    [
                        cb.label_index(),
                        cb.input_data(3, ElementFormat.INT16, byte_order=ByteOrder.BIG),
                        cb.output_data(2, ElementFormat.FLOAT32, byte_order=ByteOrder.LITTLE),
                    ]
                )
            ]
        )
        ds = SampleDataset([3], DataType.INT32, [4], DataType.FLOAT32)
        self.assertEqual(parser.parse_data_sync(data, ds), len(samples))
        for sample, (ints, floats, cls) in zip(ds.samples(), samples):
            self.assertEqual(sample.input.tensor.tolist(), ints)
            # The class one-hot is written first; the output values land on top.
            expected = torch.zeros(4, dtype=torch.float32)
            expected[cls] = 1.0
            expected[:2] = torch.tensor(floats, dtype=torch.float32)
            self.assertTrue(torch.equal(sample.output.tensor, expected))
            self.assertEqual(sample.class_index, cls)


class TestTextScenarios(unittest.TestCase):
    """Line-oriented sources."""

    def test_features_then_target(self) -> None:
        """Two input features followed by one output value."""
        ds = SampleDataset([2], DataType.FLOAT32, [1], DataType.FLOAT32)
        parser = DelimitedTextParser(
            Separator.WHITESPACE, [cb.input_float_text(2), cb.output_float_text()]
        )
        parser.parse_text_sync("1.0 2.0 5.0", ds)
        self.assertEqual(ds[0][0].tolist(), [1.0, 2.0])
        self.assertEqual(ds[0][1].tolist(), [5.0])

    def test_label_indices_are_stable(self) -> None:
        """Case variants share an index; the first spelling is kept."""
        ds = SampleDataset([1], DataType.FLOAT32, [3], DataType.FLOAT32)
        parser = DelimitedTextParser(
            Separator.COMMA, [cb.input_float_text(), cb.label_text()]
        )
        parser.parse_text_sync("1,Setosa\n2,versicolor\n3,SETOSA\n4,Virginica", ds)
        parser.parse_text_sync("5,VERSICOLOR", ds)
        self.assertEqual(ds.labels, ["Setosa", "versicolor", "Virginica"])
        self.assertEqual(ds.class_indices().tolist(), [0, 1, 0, 2, 1])


class TestUndersizedShapes(unittest.TestCase):
    """Writes beyond the declared shape always fail."""

    def test_random_overruns_are_refused(self) -> None:
        rng = random.Random(7)
        for _ in range(25):
            size = rng.randint(1, 6)
            extra = rng.randint(1, 4)
            ds = SampleDataset([size], DataType.FLOAT32, [1], DataType.FLOAT32)
            parser = DelimitedTextParser(
                Separator.COMMA, [cb.input_integer_text(size + extra)]
            )
            line = ",".join(str(i) for i in range(size + extra))
            with self.assertRaises(LocationOutOfRangeError):
                parser.parse_text_sync(line, ds, max_concurrency=1)


if __name__ == "__main__":
    unittest.main()
