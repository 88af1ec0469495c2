"""Manifest: the top-level ingestion configuration file.

A manifest names a dataset layout and a parser for one source. It's loaded
from YAML or JSON and supports variable substitution, so shapes and widths
can be declared once and reused throughout the chunk tree.
"""
from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, PrivateAttr

from chunkfeed.config import PositiveInt
from chunkfeed.config.dataset import DatasetConfig
from chunkfeed.config.parser import ParserConfig
from chunkfeed.config.resolve import Resolver, normalize_type_names
from chunkfeed.data.dataset import SampleDataset


class Manifest(BaseModel):
    """A dataset layout plus the parser that fills it."""

    version: PositiveInt
    name: str | None = None
    notes: str = ""
    dataset: DatasetConfig
    parser: ParserConfig

    _base_dir: Path = PrivateAttr(default=Path("."))

    @property
    def base_dir(self) -> Path:
        """Directory relative source paths are resolved against."""
        return self._base_dir

    @property
    def source_path(self) -> Path:
        source = self.parser.source
        return source if source.is_absolute() else self._base_dir / source

    @classmethod
    def from_path(cls, path: Path) -> "Manifest":
        """Load and validate a manifest from a JSON or YAML file.

        Supports variable substitution via a `vars` section at the top level.
        Variables can be referenced as `${var_name}` throughout the config.
        """
        text = path.read_text(encoding="utf-8")
        match path.suffix.lower():
            case ".json":
                payload = json.loads(text)
            case ".yml" | ".yaml":
                payload = yaml.safe_load(text)
            case s:
                raise ValueError(f"Unsupported format '{s}'")

        manifest = cls.from_payload(payload)
        manifest._base_dir = path.parent
        return manifest

    @classmethod
    def from_payload(cls, payload: object) -> "Manifest":
        if payload is None:
            raise ValueError("Manifest payload is empty.")
        if not isinstance(payload, dict):
            raise ValueError(f"Manifest payload must be a dict, got {type(payload)!r}")

        vars_payload = payload.pop("vars", None)
        if vars_payload is not None:
            if not isinstance(vars_payload, dict):
                raise ValueError(
                    f"Manifest vars must be a dict, got {type(vars_payload)!r}"
                )
            payload = Resolver(vars_payload).resolve(payload)

        # Normalize shorthand type names (e.g., 'input' → 'InputChunk')
        payload = normalize_type_names(payload)

        return cls.model_validate(payload)

    def run(self, max_concurrency: int | None = None) -> SampleDataset:
        """Build the dataset and decode the configured source into it."""
        dataset = self.dataset.build()
        self.parser.parse_into(dataset, self._base_dir, max_concurrency)
        return dataset
