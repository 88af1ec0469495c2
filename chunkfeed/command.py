"""Typed CLI command payloads.

Each command type represents a distinct user intent. The CLI parses arguments
into these typed objects, which are then dispatched to the appropriate handler.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from chunkfeed.config.manifest import Manifest


@dataclass(frozen=True, slots=True)
class InspectCommand:
    """Request to validate a manifest and show its chunk tree without parsing."""

    manifest: Manifest
    manifest_path: Path


@dataclass(frozen=True, slots=True)
class ParseCommand:
    """Request to decode a manifest's source into a dataset.

    `max_concurrency` overrides the manifest's value when given; `save`
    writes the stacked tensors with torch.save.
    """

    manifest: Manifest
    manifest_path: Path
    max_concurrency: int | None
    save: Path | None
    verbose: int = 0


Command = InspectCommand | ParseCommand
