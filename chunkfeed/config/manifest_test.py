"""
manifest_test provides tests for JSON/YAML manifest loading.
"""
from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from chunkfeed.chunk.chunk import ChunkKind
from chunkfeed.chunk.format import ElementFormat, Target
from chunkfeed.config.chunk import ChunkType, RepeatChunkConfig
from chunkfeed.config.manifest import Manifest
from chunkfeed.config.parser import SourceFormat
from chunkfeed.data.dtype import DataType
from chunkfeed.parse.image import ImageParser
from chunkfeed.parse.parser import BinaryParser, DelimitedTextParser

IDX_MANIFEST = """\
version: 1
name: digits
vars:
  side: 28
dataset:
  input_shape: ["${side}", "${side}"]
  input_type: uint8
  output_shape: [1]
parser:
  format: binary
  source: images.bin
  chunks:
    - type: skip
      count: 16
    - type: repeat
      count: until_exhausted
      chunks:
        - type: repeat
          count: "${side}"
          dimension: 0
          target: input
          chunks:
            - type: input
              count: "${side}"
            - type: set_dimension
              dimension: 1
              value: 0
              target: input
"""


def _csv_payload(**parser: object) -> dict[str, object]:
    return {
        "version": 1,
        "dataset": {"input_shape": [2], "output_shape": [1]},
        "parser": {
            "format": "comma",
            "source": "data.csv",
            "chunks": [{"type": "input", "count": 2}, {"type": "output"}],
            **parser,
        },
    }


class ManifestTest(unittest.TestCase):
    """
    ManifestTest provides tests for the Manifest class.
    """

    def test_load_yaml_manifest(self) -> None:
        """
        test loading a YAML manifest with variables and nested repeats.
        """
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "m.yml"
            path.write_text(IDX_MANIFEST, encoding="utf-8")
            m = Manifest.from_path(path)

            self.assertEqual(m.dataset.input_shape, [28, 28])
            self.assertIs(m.dataset.input_type, DataType.UINT8)
            self.assertEqual(m.source_path, Path(tmp) / "images.bin")
            outer = m.parser.chunks[1]
            self.assertIsInstance(outer, RepeatChunkConfig)
            assert isinstance(outer, RepeatChunkConfig)
            self.assertEqual(outer.chunks[0].type, ChunkType.REPEAT)

            parser = m.parser.build()
            self.assertIsInstance(parser, BinaryParser)
            assert isinstance(parser, BinaryParser)
            record = parser.concurrent_record()
            assert record is not None
            self.assertTrue(record.is_until_exhausted)
            row = record.children[0]
            self.assertEqual(row.format, ElementFormat.DIM0)
            self.assertEqual(row.target, Target.INPUT)
            self.assertEqual(row.required_bytes(), 28 * 28)

    def test_run_decodes_the_source(self) -> None:
        """
        test that run() builds the dataset and fills it from the source.
        """
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "data.csv").write_text("1,2,3\n4,5,6\n", encoding="utf-8")
            (root / "m.json").write_text(json.dumps(_csv_payload()), encoding="utf-8")
            dataset = Manifest.from_path(root / "m.json").run(max_concurrency=1)
            self.assertEqual(dataset.num_samples, 2)
            self.assertEqual(dataset[1][0].tolist(), [4.0, 5.0])
            self.assertEqual(dataset[1][1].tolist(), [6.0])

    def test_text_formats_default_to_text_numbers(self) -> None:
        """
        test that unset formats become text formats for text sources.
        """
        m = Manifest.from_payload(_csv_payload(skip_lines=1))
        parser = m.parser.build()
        self.assertIsInstance(parser, DelimitedTextParser)
        assert isinstance(parser, DelimitedTextParser)
        self.assertEqual(parser.skip_lines, 1)
        self.assertEqual(parser.chunks[0].format, ElementFormat.TEXT_FLOAT)
        self.assertEqual(parser.chunks[0].kind, ChunkKind.INPUT)

    def test_image_manifest(self) -> None:
        """
        test an image source with labelled subdirectories.
        """
        m = Manifest.from_payload({
            "version": 1,
            "dataset": {"input_shape": [8, 8, 3], "output_shape": [10]},
            "parser": {"format": "images", "source": "photos", "images": [{}]},
        })
        self.assertIs(m.parser.format, SourceFormat.IMAGES)
        self.assertIsInstance(m.parser.build(), ImageParser)

    def test_images_need_entries(self) -> None:
        """
        test that an image source without entries is rejected.
        """
        with self.assertRaises(ValidationError):
            Manifest.from_payload({
                "version": 1,
                "dataset": {"input_shape": [8, 8], "output_shape": [2]},
                "parser": {"format": "images", "source": "photos"},
            })

    def test_skip_lines_only_for_text(self) -> None:
        """
        test that binary sources refuse text-only options.
        """
        payload = _csv_payload(format="binary", skip_lines=2)
        with self.assertRaises(ValidationError):
            Manifest.from_payload(payload)

    def test_unknown_chunk_type(self) -> None:
        """
        test that an unknown chunk type fails validation.
        """
        payload = _csv_payload(chunks=[{"type": "sparkle"}])
        with self.assertRaises(ValidationError):
            Manifest.from_payload(payload)

    def test_rejects_bad_dimension(self) -> None:
        """
        test that dimension indices beyond the cursor rank limit are refused.
        """
        payload = _csv_payload(
            chunks=[{"type": "set_dimension", "dimension": 16, "value": 0}]
        )
        with self.assertRaises(ValidationError):
            Manifest.from_payload(payload)

    def test_unsupported_suffix(self) -> None:
        """
        test that unknown manifest file types are refused.
        """
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "m.txt"
            path.write_text("version: 1", encoding="utf-8")
            with self.assertRaises(ValueError):
                Manifest.from_path(path)

    def test_empty_payload(self) -> None:
        """
        test that an empty document is refused.
        """
        with self.assertRaises(ValueError):
            Manifest.from_payload(None)


if __name__ == "__main__":
    unittest.main()
