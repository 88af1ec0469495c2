"""Rich, structured console output for chunkfeed.

Usage:
    from chunkfeed.console import logger

    logger.info("Parsing train.bin...")
    logger.success("Decoded 60000 samples")
    logger.chunk_tree(parser.chunks)
    logger.dataset_summary(dataset)
"""
from chunkfeed.console.logger import Logger, get_logger

# Module-level singleton for convenient import
logger = get_logger()

__all__ = ["Logger", "get_logger", "logger"]
