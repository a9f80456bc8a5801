"""
Reporting and output formatting for dedup and cleanup runs.

Provides color-coded console output using Rich library.
"""

from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OptimizeReporter:
    """Formats and displays traversal progress and deletion results."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def detail(self, message: str) -> None:
        """Print a progress line, only in verbose mode."""
        if self.verbose:
            self.console.print(escape(message), style="dim", highlight=False)

    def info(self, message: str, style: str = "blue") -> None:
        self.console.print(escape(message), style=style, highlight=False)

    def warning(self, message: str) -> None:
        self.console.print(f"⚠️  {escape(message)}", style="yellow", highlight=False)

    def print_removal(self, path: str, what: str) -> None:
        """Announce a single removal as it happens."""
        self.console.print(
            f"🗑️  Removing {escape(what)}: {escape(path)}", style="red", highlight=False
        )

    def print_deletion_set(
        self, paths: Sequence[str], dry_run: bool, title: Optional[str] = None
    ) -> None:
        """
        Print the deletion set as a table.

        Args:
            paths: Deleted (or, in dry-run, to-be-deleted) paths in order
            dry_run: Whether the paths were only simulated
            title: Optional table title override
        """
        if not paths:
            return

        if title is None:
            title = (
                "Dry run - would delete these directories"
                if dry_run
                else "Deleted directories"
            )

        table = Table(title=title, box=box.ROUNDED, title_style="bold cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Path", overflow="fold")

        for index, path in enumerate(paths, start=1):
            table.add_row(str(index), escape(path))

        self.console.print(table)

    def print_dedup_summary(self, deleted: List[str], dry_run: bool) -> None:
        if dry_run:
            self.console.print(
                f"Dry run completed. {len(deleted)} duplicate dependencies "
                "would be removed.",
                style="yellow",
            )
        else:
            self.console.print(
                f"✅ Deduplication completed. {len(deleted)} duplicate "
                "dependencies removed.",
                style="green",
            )

    def print_cleanup_summary(self, deleted: List[str], dry_run: bool) -> None:
        if dry_run:
            self.console.print(
                "Dry run completed. No changes were made.", style="yellow"
            )
        elif deleted:
            self.console.print(
                f"✅ Cleanup completed. Removed {len(deleted)} unnecessary "
                "directories.",
                style="green",
            )
        else:
            self.console.print(
                "✅ Cleanup completed. No unnecessary directories were found.",
                style="green",
            )
