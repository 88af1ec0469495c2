"""Command-line interface for chunkfeed.

Commands:
- inspect: Validate a manifest and print its chunk tree
- parse: Decode the manifest's source and summarize (optionally save) the dataset
"""
from __future__ import annotations

import argparse
from pathlib import Path

from chunkfeed.command import Command, InspectCommand, ParseCommand
from chunkfeed.config.manifest import Manifest


class _Args(argparse.Namespace):
    """Typed namespace for CLI arguments."""

    command: str | None = None
    manifest: Path | None = None
    max_concurrency: int | None = None
    save: Path | None = None
    verbose: int = 0


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text}")
    return value


class CLI(argparse.ArgumentParser):
    """Subcommands for inspecting and running ingestion manifests."""

    def __init__(self) -> None:
        """Set up CLI with subcommands."""
        super().__init__(
            prog="chunkfeed",
            description="chunkfeed - decode binary and text records into tensor datasets.",
        )

        _ = self.add_argument(
            "--version",
            action="version",
            version="%(prog)s 0.1.0",
            help="Show the version and exit.",
        )
        _ = self.add_argument(
            "-v",
            "--verbose",
            action="count",
            default=0,
            help="Show parser log records (-v for info, -vv for debug).",
        )

        subparsers = self.add_subparsers(
            dest="command",
            parser_class=argparse.ArgumentParser,
        )

        inspect_parser = subparsers.add_parser(
            "inspect",
            help="Validate a manifest and print its chunk tree, without parsing.",
        )
        _ = inspect_parser.add_argument(
            "manifest",
            type=Path,
            help="Manifest path (.json, .yml, or .yaml).",
        )

        parse_parser = subparsers.add_parser(
            "parse",
            help="Decode the manifest's source into a dataset.",
        )
        _ = parse_parser.add_argument(
            "manifest",
            type=Path,
            help="Manifest path (.json, .yml, or .yaml).",
        )
        _ = parse_parser.add_argument(
            "--max-concurrency",
            type=_positive_int,
            default=None,
            dest="max_concurrency",
            help="Override the manifest's max_concurrency (1 disables concurrency).",
        )
        _ = parse_parser.add_argument(
            "--save",
            type=Path,
            default=None,
            help="Write inputs, outputs, classes and labels to this file with torch.save.",
        )

    def parse_command(self, argv: list[str] | None = None) -> Command:
        """Parse CLI arguments into a typed command payload."""
        args = self.parse_args(argv, namespace=_Args())

        match args.command:
            case "inspect":
                path = self._require_manifest(args)
                return InspectCommand(manifest=Manifest.from_path(path), manifest_path=path)
            case "parse":
                path = self._require_manifest(args)
                return ParseCommand(
                    manifest=Manifest.from_path(path),
                    manifest_path=path,
                    max_concurrency=args.max_concurrency,
                    save=args.save,
                    verbose=int(args.verbose),
                )
            case None:
                raise ValueError("No command given; use `chunkfeed inspect` or `chunkfeed parse`.")
            case _:
                raise ValueError(f"Invalid command: {args.command}")

    def _require_manifest(self, args: _Args) -> Path:
        if args.manifest is None:
            raise ValueError(f"{args.command} requires a manifest path.")
        if not args.manifest.exists():
            raise ValueError(f"Manifest file not found: {args.manifest}")
        return args.manifest
