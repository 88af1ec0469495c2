"""chunkfeed: decode binary and text records into fixed-shape tensor datasets.

A chunk tree declares how a source maps onto samples; a parser walks the tree
against the source and fills a SampleDataset, which a training loop can read
like any torch Dataset.
"""
from __future__ import annotations

__all__ = ["chunk", "config", "console", "data", "parse"]
