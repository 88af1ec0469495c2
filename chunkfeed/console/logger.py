"""Rich-based logger with chunkfeed theming.

Ingestion runs are easier to check when their output is structured:
- Semantic colors (cyan=info, green=success, amber=warning, red=error)
- Structured output (tables, key-value pairs)
- Spinners for long-running parses
- Helpers that render chunk trees and dataset summaries consistently
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from rich.tree import Tree

from chunkfeed.chunk.chunk import Chunk
from chunkfeed.data.dataset import SampleDataset


CHUNKFEED_THEME = Theme(
    {
        "info": "bold #7dcfff",  # Soft cyan - informational
        "success": "bold #9ece6a",  # Muted green - success
        "warning": "bold #e0af68",  # Warm amber - warnings
        "error": "bold #f7768e",  # Soft coral red - errors
        "highlight": "bold #bb9af7",  # Lavender purple - emphasis
        "muted": "dim #565f89",  # Slate gray - secondary info
        "metric": "#7aa2f7",  # Sky blue - counts/shapes
        "path": "italic #73daca",  # Teal - file paths
        "chunk": "#ff9e64",  # Orange - chunk kinds
    }
)


class Logger:
    """Unified logging interface with rich console output.

    Wraps Rich Console to provide semantic log levels, structured data
    display, and spinners, all with consistent theming.
    """

    def __init__(self) -> None:
        """Initialize with the chunkfeed theme."""
        self.console = Console(theme=CHUNKFEED_THEME)

    # ─────────────────────────────────────────────────────────────────────
    # Basic Logging
    # ─────────────────────────────────────────────────────────────────────

    def log(self, message: str) -> None:
        """Log a generic message."""
        self.console.print(message)

    def info(self, message: str) -> None:
        """Log an informational message (cyan ℹ)."""
        self.console.print(f"[info]ℹ[/info] {message}")

    def success(self, message: str) -> None:
        """Log a success message (green ✓)."""
        self.console.print(f"[success]✓[/success] {message}")

    def warning(self, message: str) -> None:
        """Log a warning message (amber ⚠)."""
        self.console.print(f"[warning]⚠[/warning] {message}")

    def error(self, message: str) -> None:
        """Log an error message (red ✗)."""
        self.console.print(f"[error]✗[/error] {message}")

    # ─────────────────────────────────────────────────────────────────────
    # Structured Output
    # ─────────────────────────────────────────────────────────────────────

    def header(self, title: str, subtitle: str | None = None) -> None:
        """Print a prominent section header."""
        header_text = Text()
        header_text.append("━" * 3 + " ", style="muted")
        header_text.append(title, style="highlight")
        if subtitle:
            header_text.append(f" • {subtitle}", style="muted")
        header_text.append(" " + "━" * 40, style="muted")
        self.console.print()
        self.console.print(header_text)
        self.console.print()

    def subheader(self, text: str) -> None:
        """Print a subtle subheader for subsections."""
        self.console.print(f"[muted]──[/muted] [highlight]{text}[/highlight]")

    def table(
        self,
        title: str | None = None,
        columns: list[str] | None = None,
        rows: list[list[str]] | None = None,
    ) -> Table:
        """Create and optionally populate a styled table.

        If columns and rows are provided, prints immediately. Otherwise
        returns the Table for manual population.
        """
        table = Table(
            title=title,
            title_style="highlight",
            header_style="info",
            border_style="muted",
            row_styles=["", "dim"],
        )

        if columns and rows:
            for col in columns:
                table.add_column(col)
            for row in rows:
                table.add_row(*row)
            self.console.print(table)

        return table

    def key_value(self, data: dict[str, Any], title: str | None = None) -> None:
        """Display key-value pairs in a clean format."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="muted")
        table.add_column("Value", style="metric")

        for key, value in data.items():
            table.add_row(f"{key}:", str(value))

        if title:
            self.subheader(title)
        self.console.print(table)

    def path(self, filepath: str, label: str = "") -> None:
        """Display a file path with optional label."""
        if label:
            self.console.print(f"  [muted]{label}:[/muted] [path]{filepath}[/path]")
        else:
            self.console.print(f"  [path]{filepath}[/path]")

    # ─────────────────────────────────────────────────────────────────────
    # Progress Tracking
    # ─────────────────────────────────────────────────────────────────────

    def spinner(self, description: str = "Parsing...") -> Progress:
        """Create a spinner for indeterminate progress.

        Usage:
            with logger.spinner() as progress:
                progress.add_task("Parsing source", total=None)
                # ... do work ...
        """
        return Progress(
            SpinnerColumn(style="info"),
            TextColumn("[info]{task.description}[/info]"),
            console=self.console,
            transient=True,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Ingestion Helpers
    # ─────────────────────────────────────────────────────────────────────

    def chunk_tree(self, chunks: Sequence[Chunk], title: str = "chunks") -> None:
        """Render a chunk tree, one node per chunk."""
        tree = Tree(f"[highlight]{title}[/highlight]", guide_style="muted")
        for chunk in chunks:
            _add_chunk(tree, chunk)
        self.console.print(tree)

    def dataset_summary(self, dataset: SampleDataset, title: str = "Dataset") -> None:
        """Display sample count, shapes and types, then the label registry."""
        self.key_value(
            {
                "samples": dataset.num_samples,
                "input": f"{list(dataset.input_shape)} {dataset.input_type.value}",
                "output": f"{list(dataset.output_shape)} {dataset.output_type.value}",
            },
            title=title,
        )
        labels = dataset.labels
        if labels:
            counts = Counter(dataset.class_indices().tolist())
            self.table(
                title="Labels",
                columns=["class", "label", "samples"],
                rows=[
                    [str(i), label, str(counts.get(i, 0))]
                    for i, label in enumerate(labels)
                ],
            )


def _add_chunk(parent: Tree, chunk: Chunk) -> None:
    kind, _, rest = chunk.describe().partition(" ")
    node = parent.add(f"[chunk]{kind}[/chunk] [muted]{rest}[/muted]")
    for child in chunk.children:
        _add_chunk(node, child)


# ─────────────────────────────────────────────────────────────────────────────
# Module-Level Singleton
# ─────────────────────────────────────────────────────────────────────────────

_logger: Logger | None = None


def get_logger() -> Logger:
    """Get or create the singleton Logger instance.

    Using a singleton ensures consistent theming and avoids creating
    multiple Console instances.
    """
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger
