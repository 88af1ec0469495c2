"""ImageParser: samples from image files on disk.

Three ways of pointing at images, all relative to a top-level directory:

- image_file: one image with a given class index or label,
- image_directory: every image in a directory, all with the same class,
- image_directory_with_subdirectories: each subdirectory name is the class
  label for the images inside it.

Images are converted to greyscale for a [H, W] input shape or RGB for
[H, W, 3], resized to fit, and mapped onto the dataset type's value range
(0-255 for integer types, 0-1 for floating point). Outputs are one-hot.

Files are visited in sorted order, hidden files are ignored, and each image's
dataset slot and class are assigned before it is handed to a decode task, so
the result does not depend on `max_concurrency`.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import torch
from PIL import Image, UnidentifiedImageError

from chunkfeed.data.dataset import SampleDataset
from chunkfeed.data.dtype import DataType
from chunkfeed.errors import ImageDecodeError, LabelOverflowError
from chunkfeed.parse.coordinator import DEFAULT_MAX_CONCURRENCY, RecordCoordinator
from chunkfeed.parse.decoder import set_class

logger = logging.getLogger(__name__)

try:
    _RESAMPLE = Image.Resampling.BILINEAR
except AttributeError:  # Pillow < 9.1
    _RESAMPLE = Image.BILINEAR  # type: ignore[attr-defined]


class ImageChunkKind(str, enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    LABELED_SUBDIRECTORIES = "labeled_subdirectories"


@dataclass(frozen=True, slots=True)
class ImageChunk:
    """Where to find images and which class they belong to."""

    kind: ImageChunkKind
    path: str
    class_index: int | None = None
    class_label: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ImageChunkKind.LABELED_SUBDIRECTORIES:
            if self.class_index is not None or self.class_label is not None:
                raise ValueError(
                    "labeled subdirectories take their class from directory names"
                )
            return
        if self.class_index is None and self.class_label is None:
            raise ValueError(f"{self.path}: a class index or class label is required")
        if self.class_index is not None and self.class_label is not None:
            raise ValueError(
                f"{self.path}: give either a class index or a class label, not both"
            )


def image_file(
    path: str, class_index: int | None = None, class_label: str | None = None
) -> ImageChunk:
    return ImageChunk(ImageChunkKind.FILE, path, class_index, class_label)


def image_directory(
    path: str, class_index: int | None = None, class_label: str | None = None
) -> ImageChunk:
    return ImageChunk(ImageChunkKind.DIRECTORY, path, class_index, class_label)


def image_directory_with_subdirectories(path: str = ".") -> ImageChunk:
    return ImageChunk(ImageChunkKind.LABELED_SUBDIRECTORIES, path)


class ImageParser:
    """Decodes image trees into a dataset."""

    def __init__(self, chunks: Iterable[ImageChunk]) -> None:
        self.chunks: tuple[ImageChunk, ...] = tuple(chunks)

    async def parse(
        self,
        top_level_directory: Path | str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        root = Path(top_level_directory)
        _check_input_shape(dataset.input_shape)
        before = dataset.num_samples
        with dataset.reserving():
            if max_concurrency <= 1:
                for path, index in self._jobs(root, dataset):
                    slot = dataset.allocate_empty_sample()
                    _load_into(path, dataset, slot, index)
            else:
                async with RecordCoordinator(max_concurrency) as coordinator:
                    for path, index in self._jobs(root, dataset):
                        slot = dataset.allocate_empty_sample()
                        await coordinator.submit(_load_into, path, dataset, slot, index)
        added = dataset.num_samples - before
        logger.info("ImageParser: decoded %d images from %s", added, root)
        return added

    def parse_sync(
        self,
        top_level_directory: Path | str,
        dataset: SampleDataset,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> int:
        """Synchronous wrapper for parse()."""
        return asyncio.run(self.parse(top_level_directory, dataset, max_concurrency))

    def _jobs(self, root: Path, dataset: SampleDataset) -> Iterator[tuple[Path, int]]:
        """(image path, class index) pairs in placement order."""
        for chunk in self.chunks:
            target = root / chunk.path
            match chunk.kind:
                case ImageChunkKind.FILE:
                    if not target.is_file():
                        raise ImageDecodeError(f"image file not found: {target}")
                    yield target, _class_for(chunk, dataset)
                case ImageChunkKind.DIRECTORY:
                    index = _class_for(chunk, dataset)
                    for path in _image_files(target):
                        yield path, index
                case ImageChunkKind.LABELED_SUBDIRECTORIES:
                    for directory in _visible_entries(target):
                        if not directory.is_dir():
                            continue
                        index = _label_class(directory.name, dataset)
                        for path in _image_files(directory):
                            yield path, index


def _class_for(chunk: ImageChunk, dataset: SampleDataset) -> int:
    if chunk.class_label is not None:
        return _label_class(chunk.class_label, dataset)
    assert chunk.class_index is not None
    return chunk.class_index


def _label_class(label: str, dataset: SampleDataset) -> int:
    index = dataset.label_index(label)
    if index >= dataset.output_size:
        raise LabelOverflowError(label, index, dataset.output_size)
    return index


def _visible_entries(directory: Path) -> list[Path]:
    if not directory.is_dir():
        raise ImageDecodeError(f"not a directory: {directory}")
    return sorted(p for p in directory.iterdir() if not p.name.startswith("."))


def _image_files(directory: Path) -> Iterator[Path]:
    for path in _visible_entries(directory):
        if path.is_file():
            yield path


def _check_input_shape(shape: tuple[int, ...]) -> None:
    if len(shape) == 2:
        return
    if len(shape) == 3 and shape[2] == 3:
        return
    raise ValueError(
        f"image datasets need an input shape of [H, W] or [H, W, 3], got {list(shape)}"
    )


def value_range(dtype: DataType) -> tuple[float, float]:
    """Default (minimum, maximum) pixel range for a dataset type."""
    if dtype.is_floating_point:
        return 0.0, 1.0
    return 0.0, 255.0


def load_image(path: Path, shape: tuple[int, ...], dtype: DataType) -> torch.Tensor:
    """Decode, convert and resize one image to a tensor of `shape`."""
    height, width = shape[0], shape[1]
    mode = "RGB" if len(shape) == 3 else "L"
    try:
        with Image.open(path) as img:
            img = img.convert(mode)
            if img.size != (width, height):
                img = img.resize((width, height), _RESAMPLE)
            pixels = np.asarray(img, dtype=np.float64)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(f"cannot decode image {path}: {exc}") from exc
    low, high = value_range(dtype)
    scaled = pixels / 255.0 * (high - low) + low
    return torch.from_numpy(scaled.reshape(shape)).to(dtype.torch_dtype)


def _load_into(path: Path, dataset: SampleDataset, slot: int, class_index: int) -> None:
    sample = dataset.new_sample()
    sample.input.tensor.copy_(load_image(path, dataset.input_shape, dataset.input_type))
    set_class(sample, class_index)
    dataset.commit_sample(sample, slot)
