"""
__main__ provides the console-script entrypoint for the chunkfeed package.
"""
from __future__ import annotations

import logging
import sys
import traceback
from pathlib import Path

import torch
from rich.logging import RichHandler

from chunkfeed.cli import CLI
from chunkfeed.command import InspectCommand, ParseCommand
from chunkfeed.console import logger
from chunkfeed.data.dataset import SampleDataset
from chunkfeed.errors import ChunkfeedError


def main(argv: list[str] | None = None) -> None:
    """
    main is the entrypoint for the `chunkfeed` console script.
    """
    try:
        command = CLI().parse_command(argv)

        match command:
            case InspectCommand() as c:
                inspect(c)
            case ParseCommand() as c:
                configure_logging(c.verbose)
                run_parse(c)
            case _:
                raise ValueError(f"Invalid command payload: {type(command)!r}")
    except SystemExit as e:
        code = int(e.code) if isinstance(e.code, int) else 1
        if code == 0:
            raise
        sys.exit(code)
    except ChunkfeedError as e:
        print(f"error ({e.category}): {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        print(f"details: {e!r}", file=sys.stderr)
        sys.exit(1)
    except (RuntimeError, OSError) as e:
        print("runtime error while running chunkfeed.", file=sys.stderr)
        print(f"details: {e!r}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"unexpected error: {type(e).__name__}: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)


def configure_logging(verbose: int) -> None:
    """Route library log records through rich when -v is given."""
    if verbose <= 0:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose > 1 else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=logger.console, show_time=False, show_path=False)],
        force=True,
    )


def inspect(command: InspectCommand) -> None:
    manifest = command.manifest
    parser = manifest.parser
    logger.header("Manifest", manifest.name or str(command.manifest_path))
    logger.key_value(
        {
            "format": parser.format.value,
            "input": f"{manifest.dataset.input_shape} {manifest.dataset.input_type.value}",
            "output": f"{manifest.dataset.output_shape} {manifest.dataset.output_type.value}",
            "max_concurrency": parser.max_concurrency,
        }
    )
    logger.path(str(manifest.source_path), label="source")
    if parser.chunks:
        logger.chunk_tree([c.build(parser.format.is_text) for c in parser.chunks])
    else:
        for image in parser.images:
            logger.log(f"  {image.kind.value}: {image.path}")
    parser.build()
    logger.success("Manifest is valid")


def run_parse(command: ParseCommand) -> None:
    manifest = command.manifest
    logger.header("Parse", manifest.name or str(command.manifest_path))
    logger.path(str(manifest.source_path), label="source")
    with logger.spinner() as progress:
        progress.add_task("Decoding source", total=None)
        dataset = manifest.run(command.max_concurrency)
    logger.dataset_summary(dataset)
    if command.save is not None:
        save_dataset(dataset, command.save)
        logger.path(str(command.save), label="saved")
    if dataset.num_samples == 0:
        logger.warning("The source produced no samples")
    else:
        logger.success(f"Decoded {dataset.num_samples} samples")


def save_dataset(dataset: SampleDataset, path: Path) -> None:
    """Write the stacked dataset tensors and labels with torch.save."""
    inputs, outputs = dataset.get_batch(range(dataset.num_samples))
    torch.save(
        {
            "inputs": inputs,
            "outputs": outputs,
            "classes": dataset.class_indices(),
            "labels": dataset.labels or [],
        },
        path,
    )


if __name__ == "__main__":
    main()
