"""
Dependency deduplication for chart trees.

Walks a chart and its subcharts depth-first (pre-order), registers every
declared dependency occurrence by name and version, and marks an occurrence
for deletion when the same dependency was already registered by a chart with
the same parent directory. Deletions are deferred until the whole tree has
been classified.
"""

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple

from .chart_manifest import (
    ChartManifest,
    list_subcharts,
    manifest_path,
    read_chart_manifest,
    storage_dir,
)
from .cli_config import RunOptions
from .dependency import ChartPath, Dependency
from .error_handling import ChartPathError, log_not_implemented
from .fs_operations import copy_chart, remove_directory
from .reporting import OptimizeReporter
from .structured_logging import (
    get_dedup_logger,
    log_dependency_classified,
    log_directory_skipped,
    log_run_complete,
    log_run_start,
)

ManifestReader = Callable[[str], Optional[ChartManifest]]
Remover = Callable[[str], None]


class Classification(Enum):
    """Outcome of registering one dependency occurrence."""

    NEW = "new"  # First sighting of this name and version
    CONTEXTUAL = "contextual"  # Seen before, but only under other parents
    DUPLICATE = "duplicate"  # Seen before under the same parent - delete
    REVISIT = "revisit"  # Exact same path already registered


@dataclass
class DeduplicationResult:
    """Outcome of one deduplication run."""

    chart_path: str
    deleted_paths: List[str]
    kept_paths: List[str] = field(default_factory=list)
    charts_visited: int = 0
    dry_run: bool = False
    packaged: bool = False

    @property
    def removed_count(self) -> int:
        return 0 if self.dry_run else len(self.deleted_paths)


class Deduplicator:
    """
    Deduplication engine for one chart tree.

    Holds the dependency registry and the deletion set for a single run;
    create a new instance per invocation.
    """

    def __init__(
        self,
        options: RunOptions,
        manifest_reader: ManifestReader = read_chart_manifest,
        remover: Optional[Remover] = None,
        reporter: Optional[OptimizeReporter] = None,
    ):
        """
        Initialize the deduplicator.

        Args:
            options: Run options (dry_run, show_deleted and verbose are used)
            manifest_reader: Returns the manifest of a chart directory or None
            remover: Removes a directory tree, raising on failure
            reporter: Console reporter for progress and results
        """
        self.options = options
        self.manifest_reader = manifest_reader
        self.remover = remover or (lambda path: remove_directory(path, "dedup"))
        self.reporter = reporter or OptimizeReporter(verbose=options.verbose)

        self.registry: Dict[Tuple[str, str], List[ChartPath]] = {}
        self.kept_paths: List[str] = []
        self.deletion_set: List[str] = []
        self.charts_visited = 0
        self._lock = Lock()

    def deduplicate(self, chart_path: str) -> DeduplicationResult:
        """
        Classify the whole tree rooted at ``chart_path`` and remove duplicates.

        Raises:
            ManifestError: If any manifest in the tree is malformed; nothing
                is removed in that case.
            RemovalError: If a removal fails; earlier removals stay removed.
        """
        root = os.path.abspath(chart_path)
        self._process_chart(root)
        self._prune_missing()

        if self.options.dry_run:
            if self.options.show_deleted:
                self.reporter.print_deletion_set(self.deletion_set, dry_run=True)
        else:
            self._remove_duplicates()

        return DeduplicationResult(
            chart_path=root,
            deleted_paths=list(self.deletion_set),
            kept_paths=list(self.kept_paths),
            charts_visited=self.charts_visited,
            dry_run=self.options.dry_run,
        )

    def _prune_missing(self) -> None:
        # Declared subcharts may be absent (archived or removed by an earlier run)
        present = []
        for path in self.deletion_set:
            if os.path.lexists(path):
                present.append(path)
            else:
                self.reporter.detail(f"  Skipping {path} (not present on disk)")
                log_directory_skipped(get_dedup_logger(), path, "missing")
        self.deletion_set = present

    def _remove_duplicates(self) -> None:
        for path in self.deletion_set:
            if self.options.verbose or self.options.show_deleted:
                self.reporter.print_removal(path, "duplicate dependency")
            self.remover(path)

    def _process_chart(self, chart_path: str) -> None:
        self.charts_visited += 1

        manifest = self.manifest_reader(chart_path)
        if manifest is not None:
            self.reporter.detail(
                f"Processing dependencies in {manifest_path(chart_path)}"
            )
            parent_path = os.path.dirname(chart_path)
            for chart_dependency in manifest.dependencies:
                dependency = chart_dependency.as_dependency()
                dep_path = os.path.join(str(storage_dir(chart_path)), dependency.name)
                self.classify(dependency, dep_path, parent_path)

        self._visit_subcharts(chart_path)

    def _visit_subcharts(self, chart_path: str) -> None:
        # Sibling subtrees only share the registry and deletion set, so this is
        # where traversal could fan out; classify() already holds the lock.
        for subchart_path in list_subcharts(chart_path):
            if subchart_path in self.deletion_set:
                self.reporter.detail(
                    f"  Skipping {subchart_path} (marked for deletion)"
                )
                continue
            self._process_chart(subchart_path)

    def classify(
        self, dependency: Dependency, dep_path: str, parent_path: str
    ) -> Classification:
        """
        Register one occurrence of ``dependency`` found at ``dep_path``.

        Args:
            dependency: The declared dependency
            dep_path: Expected on-disk location (``<chart>/charts/<name>``)
            parent_path: Parent directory of the declaring chart

        Returns:
            Classification: How the occurrence was treated
        """
        with self._lock:
            key = dependency.key
            occurrences = self.registry.get(key)

            if not occurrences:
                self._register(key, dep_path, parent_path)
                classification = Classification.NEW
                original = None
            elif any(existing.path == dep_path for existing in occurrences):
                classification = Classification.REVISIT
                original = occurrences[0].path
            elif any(existing.parent_path == parent_path for existing in occurrences):
                original = occurrences[0].path
                # The first registered occurrence is canonical
                if dep_path != original and dep_path not in self.deletion_set:
                    self.deletion_set.append(dep_path)
                classification = Classification.DUPLICATE
            else:
                self._register(key, dep_path, parent_path)
                classification = Classification.CONTEXTUAL
                original = occurrences[0].path

        self._report_classification(dependency, dep_path, classification, original)
        return classification

    def _register(self, key: Tuple[str, str], dep_path: str, parent_path: str) -> None:
        self.registry.setdefault(key, []).append(
            ChartPath(path=dep_path, parent_path=parent_path)
        )
        self.kept_paths.append(dep_path)

    def _report_classification(
        self,
        dependency: Dependency,
        dep_path: str,
        classification: Classification,
        original: Optional[str],
    ) -> None:
        log_dependency_classified(
            dependency.label, dep_path, classification.value, original
        )

        if classification == Classification.DUPLICATE:
            self.reporter.detail(
                f"  Found duplicate dependency {dependency.label} at {dep_path} "
                f"(original at {original})"
            )
        elif classification == Classification.CONTEXTUAL:
            self.reporter.detail(
                f"  Found contextual dependency {dependency.label} at {dep_path} "
                "(keeping)"
            )
        elif classification == Classification.NEW:
            self.reporter.detail(
                f"  Found new dependency {dependency.label} at {dep_path}"
            )
        else:
            self.reporter.detail(
                f"  Dependency {dependency.label} at {dep_path} already registered"
            )


def package_chart(chart_path: str, reporter: OptimizeReporter) -> bool:
    """Package a chart. Not implemented; reports and returns False."""
    log_not_implemented("Chart packaging", "deduplicator", "package_chart")
    reporter.warning("Packaging functionality not implemented yet.")
    return False


def _prepare_target(options: RunOptions, reporter: OptimizeReporter) -> str:
    chart_path = options.chart_path
    if not os.path.exists(chart_path):
        raise ChartPathError(f"chart path '{chart_path}' does not exist", chart_path)

    if not options.output_dir:
        return chart_path

    output_dir = os.path.abspath(options.output_dir)
    if output_dir == os.path.abspath(chart_path):
        return chart_path

    if options.dry_run:
        reporter.detail(
            f"Dry run: analysing {chart_path} in place instead of copying to "
            f"{output_dir}"
        )
        return chart_path

    if os.path.exists(output_dir):
        raise ChartPathError(
            f"output directory '{output_dir}' already exists", output_dir
        )

    reporter.info(f"Copying chart to '{output_dir}'...")
    return copy_chart(chart_path, output_dir)


def run_dedup(
    options: RunOptions,
    reporter: Optional[OptimizeReporter] = None,
    manifest_reader: ManifestReader = read_chart_manifest,
    remover: Optional[Remover] = None,
) -> DeduplicationResult:
    """
    Run deduplication for ``options.chart_path``.

    Validates the chart path, optionally copies the chart to the output
    directory, deduplicates, reports and (if requested) packages.
    """
    reporter = reporter or OptimizeReporter(verbose=options.verbose)
    target = _prepare_target(options, reporter)

    reporter.info(f"Starting deduplication for chart at '{target}'...")

    logger = get_dedup_logger()
    start = time.time()
    log_run_start(logger, f"dedup_{int(start)}", os.path.abspath(target), options.dry_run)

    deduplicator = Deduplicator(
        options, manifest_reader=manifest_reader, remover=remover, reporter=reporter
    )
    result = deduplicator.deduplicate(target)

    log_run_complete(
        logger,
        int((time.time() - start) * 1000),
        result.removed_count,
        result.charts_visited,
    )

    reporter.print_dedup_summary(result.deleted_paths, options.dry_run)

    if options.package and not options.dry_run:
        reporter.info("Packaging deduplicated chart...")
        result.packaged = package_chart(result.chart_path, reporter)

    return result
