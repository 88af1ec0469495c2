"""Declarative chunk trees describing how a source maps onto samples.

Usage:
    from chunkfeed.chunk import builders as cb

    chunks = [
        cb.unused_data(16),
        cb.repeat_sample_until_done([
            cb.repeat_dimension(28, 0, Target.INPUT, [
                cb.input_data(28),
                cb.set_dimension(1, 0, Target.INPUT),
            ]),
        ]),
    ]
"""
from chunkfeed.chunk.chunk import (
    UNTIL_EXHAUSTED,
    Chunk,
    ChunkKind,
    tree_required_bytes,
    walk_tree,
)
from chunkfeed.chunk.format import (
    ByteOrder,
    Channel,
    ElementFormat,
    Scaling,
    Target,
)

__all__ = [
    "UNTIL_EXHAUSTED",
    "ByteOrder",
    "Channel",
    "Chunk",
    "ChunkKind",
    "ElementFormat",
    "Scaling",
    "Target",
    "tree_required_bytes",
    "walk_tree",
]
