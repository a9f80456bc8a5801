"""
Cleanup of local (``file:``) dependency sources.

After ``helm dep up`` materializes a ``repository: file:./x`` dependency into
``charts/x``, the original ``./x`` directory is redundant. The cleaner walks
the chart tree depth-first and removes those source directories as it finds
them, except when the source already lives directly under a ``charts``
directory.
"""

import os
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .chart_manifest import (
    ChartManifest,
    is_in_storage_dir,
    list_subcharts,
    read_chart_manifest,
    resolve_local_repository,
)
from .cli_config import RunOptions
from .error_handling import ChartPathError
from .fs_operations import remove_directory
from .reporting import OptimizeReporter
from .structured_logging import (
    get_cleanup_logger,
    log_directory_skipped,
    log_run_complete,
    log_run_start,
)

ManifestReader = Callable[[str], Optional[ChartManifest]]
Remover = Callable[[str], None]


@dataclass
class CleanupResult:
    """Outcome of one cleanup run."""

    chart_path: str
    deleted_paths: List[str]
    charts_visited: int = 0
    dry_run: bool = False

    @property
    def removed_count(self) -> int:
        return 0 if self.dry_run else len(self.deleted_paths)


def _is_within(path: str, ancestor: str) -> bool:
    return path == ancestor or path.startswith(ancestor.rstrip(os.sep) + os.sep)


class Cleaner:
    """Cleanup engine for one chart tree."""

    def __init__(
        self,
        options: RunOptions,
        manifest_reader: ManifestReader = read_chart_manifest,
        remover: Optional[Remover] = None,
        reporter: Optional[OptimizeReporter] = None,
    ):
        self.options = options
        self.manifest_reader = manifest_reader
        self.remover = remover or (lambda path: remove_directory(path, "cleanup"))
        self.reporter = reporter or OptimizeReporter(verbose=options.verbose)
        self.logger = get_cleanup_logger()

        self.deleted_paths: List[str] = []
        self.charts_visited = 0

    def cleanup(self, chart_path: str) -> CleanupResult:
        """
        Remove redundant local dependency sources under ``chart_path``.

        Raises:
            ManifestError: If a manifest is malformed. Directories removed at
                charts visited earlier stay removed.
            RemovalError: If a removal fails.
        """
        root = os.path.abspath(chart_path)
        self._process_chart(root)

        if self.options.show_deleted:
            self.reporter.print_deletion_set(
                self.deleted_paths, dry_run=self.options.dry_run
            )

        return CleanupResult(
            chart_path=root,
            deleted_paths=list(self.deleted_paths),
            charts_visited=self.charts_visited,
            dry_run=self.options.dry_run,
        )

    def _already_deleted(self, path: str) -> bool:
        return any(_is_within(path, deleted) for deleted in self.deleted_paths)

    def _process_chart(self, chart_path: str) -> None:
        manifest = self.manifest_reader(chart_path)
        if manifest is None:
            return

        self.charts_visited += 1
        self.reporter.detail(f"Processing chart: {chart_path}")

        for dependency in manifest.dependencies:
            if dependency.is_local:
                self._cleanup_local_dependency(chart_path, dependency.repository)

        for subchart_path in list_subcharts(chart_path):
            if self._already_deleted(subchart_path):
                continue
            self._process_chart(subchart_path)

    def _cleanup_local_dependency(self, chart_path: str, repository: str) -> None:
        source_path = resolve_local_repository(chart_path, repository)

        if self._already_deleted(source_path) or not os.path.exists(source_path):
            self.reporter.detail(
                f"Directory {source_path} does not exist, skipping"
            )
            log_directory_skipped(self.logger, source_path, "missing")
            return

        if is_in_storage_dir(source_path):
            self.reporter.detail(
                f"Skipping directory {source_path} - it's under charts/ directory "
                "(preserving chart structure)"
            )
            log_directory_skipped(self.logger, source_path, "in_storage_dir")
            return

        if _is_within(chart_path, source_path):
            self.reporter.warning(
                f"Skipping {repository} in {chart_path}: it resolves to the chart "
                "itself or one of its ancestors"
            )
            log_directory_skipped(self.logger, source_path, "contains_chart")
            return

        if self.options.verbose or self.options.show_deleted:
            self.reporter.info(
                f"Found file dependency directory: {source_path}", style="cyan"
            )

        if not self.options.dry_run:
            if self.options.verbose or self.options.show_deleted:
                self.reporter.print_removal(source_path, "local dependency source")
            self.remover(source_path)
        self.deleted_paths.append(source_path)


def run_cleanup(
    options: RunOptions,
    reporter: Optional[OptimizeReporter] = None,
    manifest_reader: ManifestReader = read_chart_manifest,
    remover: Optional[Remover] = None,
) -> CleanupResult:
    """Validate the chart path and run the cleaner over it."""
    reporter = reporter or OptimizeReporter(verbose=options.verbose)

    chart_path = options.chart_path
    if not os.path.exists(chart_path):
        raise ChartPathError(f"chart path '{chart_path}' does not exist", chart_path)

    reporter.detail(f"Starting cleanup of chart at {chart_path}")

    logger = get_cleanup_logger()
    start = time.time()
    log_run_start(
        logger, f"cleanup_{int(start)}", os.path.abspath(chart_path), options.dry_run
    )

    cleaner = Cleaner(
        options, manifest_reader=manifest_reader, remover=remover, reporter=reporter
    )
    result = cleaner.cleanup(chart_path)

    log_run_complete(
        logger,
        int((time.time() - start) * 1000),
        result.removed_count,
        result.charts_visited,
    )

    reporter.print_cleanup_summary(result.deleted_paths, options.dry_run)
    return result
