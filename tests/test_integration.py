"""
Integration tests for helm-optimize.
Tests complete workflows over realistic chart trees, configuration loading
and structured logging.
"""

import json
import logging
import os

import pytest

from helm_optimize.cleaner import run_cleanup
from helm_optimize.cli_config import (
    RunOptions,
    build_run_options,
    find_config_file,
    get_config,
    load_config,
    reset_config,
)
from helm_optimize.deduplicator import run_dedup
from helm_optimize.error_handling import (
    ChartPathError,
    ErrorCategory,
    ManifestError,
    get_error_handler,
)
from helm_optimize.structured_logging import (
    StructuredFormatter,
    configure_logging,
    get_filesystem_logger,
)


def _snapshot(root):
    return sorted(os.path.relpath(p, root) for p in map(str, root.rglob("*")))


@pytest.fixture
def umbrella_chart(temp_dir, make_chart):
    """
    A chart after `helm dep up`, with both kinds of waste:

    platform/
      Chart.yaml         frontend, backend, metrics (file://./metrics)
      metrics/           local source of charts/metrics
      charts/
        backend/         common@2.1.0, postgresql@12.1.0
        frontend/        common@2.1.0  (same parent as backend -> duplicate)
        metrics/         common@2.1.0  (same parent as backend -> duplicate)
    """
    platform = make_chart(
        temp_dir / "platform",
        ("frontend", "1.4.0"),
        ("backend", "3.0.1"),
        ("metrics", "0.2.0", "file://./metrics"),
    )
    make_chart(platform / "metrics", ("common", "2.1.0"))

    backend = make_chart(
        platform / "charts" / "backend", ("common", "2.1.0"), ("postgresql", "12.1.0")
    )
    make_chart(backend / "charts" / "common")
    make_chart(backend / "charts" / "postgresql", ("common", "2.1.0"))
    make_chart(backend / "charts" / "postgresql" / "charts" / "common")

    for name in ("frontend", "metrics"):
        sub = make_chart(platform / "charts" / name, ("common", "2.1.0"))
        make_chart(sub / "charts" / "common")

    return platform


class TestDocumentedScenarios:
    """End-to-end behaviour on the reference chart layouts."""

    def test_repeat_under_sibling_chart_is_removed(self, temp_dir, make_chart, reporter):
        # A/charts/C and A/charts/D share the parent A/charts, so D's copy of B goes.
        a = make_chart(temp_dir / "A", ("C", "1.0"), ("D", "1.0"))
        c = make_chart(a / "charts" / "C", ("B", "1.0"))
        make_chart(c / "charts" / "B")
        d = make_chart(a / "charts" / "D", ("B", "1.0"))
        make_chart(d / "charts" / "B")

        result = run_dedup(RunOptions(chart_path=str(a)), reporter=reporter)

        assert result.deleted_paths == [str(d / "charts" / "B")]
        assert (c / "charts" / "B").is_dir()

    def test_repeat_across_nesting_levels_is_kept(self, temp_dir, make_chart, reporter):
        a = make_chart(temp_dir / "A", ("B", "1.0"), ("C", "1.0"))
        make_chart(a / "charts" / "B")
        c = make_chart(a / "charts" / "C", ("B", "1.0"))
        make_chart(c / "charts" / "B")

        result = run_dedup(RunOptions(chart_path=str(a)), reporter=reporter)

        assert result.deleted_paths == []
        assert (a / "charts" / "B").is_dir()
        assert (c / "charts" / "B").is_dir()

    def test_cleanup_of_resolved_local_dependency(self, temp_dir, make_chart, reporter):
        a = make_chart(temp_dir / "A", ("localdb", "0.1.0", "file:./localdb"))
        make_chart(a / "localdb")
        stored = make_chart(a / "charts" / "localdb")
        (stored / "values.yaml").write_text("replicas: 1\n")

        result = run_cleanup(RunOptions(chart_path=str(a)), reporter=reporter)

        assert result.deleted_paths == [str(a / "localdb")]
        assert not (a / "localdb").exists()
        assert (stored / "values.yaml").read_text() == "replicas: 1\n"

    def test_malformed_nested_manifest_aborts_dedup_without_deletions(
        self, umbrella_chart, reporter
    ):
        broken = umbrella_chart / "charts" / "backend" / "charts" / "postgresql"
        (broken / "Chart.yaml").write_text("dependencies:\n  - name: [common\n")
        before = _snapshot(umbrella_chart)

        with pytest.raises(ManifestError) as exc_info:
            run_dedup(RunOptions(chart_path=str(umbrella_chart)), reporter=reporter)

        assert str(broken) in str(exc_info.value)
        assert _snapshot(umbrella_chart) == before


class TestUmbrellaChartWorkflow:
    """Cleanup followed by deduplication on one chart."""

    def test_cleanup_then_dedup(self, umbrella_chart, reporter):
        charts = umbrella_chart / "charts"

        cleaned = run_cleanup(
            RunOptions(chart_path=str(umbrella_chart)), reporter=reporter
        )
        deduped = run_dedup(RunOptions(chart_path=str(umbrella_chart)), reporter=reporter)

        assert cleaned.deleted_paths == [str(umbrella_chart / "metrics")]
        assert deduped.deleted_paths == [
            str(charts / "frontend" / "charts" / "common"),
            str(charts / "metrics" / "charts" / "common"),
        ]
        assert (charts / "backend" / "charts" / "common").is_dir()
        # One level deeper, so a different parent context.
        assert (
            charts / "backend" / "charts" / "postgresql" / "charts" / "common"
        ).is_dir()

    def test_dry_runs_leave_tree_untouched(self, umbrella_chart, reporter):
        before = _snapshot(umbrella_chart)

        cleaned = run_cleanup(
            RunOptions(chart_path=str(umbrella_chart), dry_run=True, show_deleted=True),
            reporter=reporter,
        )
        deduped = run_dedup(
            RunOptions(chart_path=str(umbrella_chart), dry_run=True, show_deleted=True),
            reporter=reporter,
        )

        assert _snapshot(umbrella_chart) == before
        assert len(cleaned.deleted_paths) == 1
        assert len(deduped.deleted_paths) == 2
        assert "2 duplicate dependencies would be removed" in reporter.output()

    def test_second_runs_find_nothing(self, umbrella_chart, reporter):
        run_cleanup(RunOptions(chart_path=str(umbrella_chart)), reporter=reporter)
        run_dedup(RunOptions(chart_path=str(umbrella_chart)), reporter=reporter)

        assert run_cleanup(
            RunOptions(chart_path=str(umbrella_chart)), reporter=reporter
        ).deleted_paths == []
        assert run_dedup(
            RunOptions(chart_path=str(umbrella_chart)), reporter=reporter
        ).deleted_paths == []

    def test_dedup_into_output_directory(self, umbrella_chart, temp_dir, reporter):
        before = _snapshot(umbrella_chart)
        output = temp_dir / "platform-dedup"

        result = run_dedup(
            RunOptions(chart_path=str(umbrella_chart), output_dir=str(output)),
            reporter=reporter,
        )

        assert result.chart_path == str(output)
        assert _snapshot(umbrella_chart) == before
        assert not (output / "charts" / "frontend" / "charts" / "common").exists()

    def test_dry_run_with_output_directory_does_not_copy(
        self, umbrella_chart, temp_dir, reporter
    ):
        output = temp_dir / "platform-dedup"

        result = run_dedup(
            RunOptions(
                chart_path=str(umbrella_chart), output_dir=str(output), dry_run=True
            ),
            reporter=reporter,
        )

        assert not output.exists()
        assert len(result.deleted_paths) == 2

    def test_package_request_is_a_reported_no_op(self, umbrella_chart, reporter):
        handler = get_error_handler()
        seen = []
        handler.register_callback(seen.append, ErrorCategory.PACKAGING)

        result = run_dedup(
            RunOptions(chart_path=str(umbrella_chart), package=True), reporter=reporter
        )

        assert result.packaged is False
        assert "not implemented" in reporter.output()
        assert len(seen) == 1
        assert handler.get_error_stats() == {"PACKAGING_WARNING": 1}

    def test_missing_chart_path(self, temp_dir, reporter):
        with pytest.raises(ChartPathError, match="does not exist"):
            run_dedup(RunOptions(chart_path=str(temp_dir / "nope")), reporter=reporter)
        with pytest.raises(ChartPathError, match="does not exist"):
            run_cleanup(RunOptions(chart_path=str(temp_dir / "nope")), reporter=reporter)


class TestConfiguration:
    """Test configuration files and environment overrides."""

    def test_defaults(self):
        config = get_config()

        assert config.run.dry_run is False
        assert config.security.max_manifest_size_mb == 1
        assert config.logging.log_level == "WARNING"
        assert find_config_file() is None

    def test_project_config_file(self):
        with open(".helm-optimize.yaml", "w", encoding="utf-8") as f:
            f.write("run:\n  show_deleted: true\nlogging:\n  log_level: info\n")

        config = load_config()

        assert config.run.show_deleted is True
        assert config.logging.log_level == "info"

    def test_user_config_file(self):
        user_dir = os.path.join(os.path.expanduser("~"), ".config", "helm-optimize")
        os.makedirs(user_dir)
        with open(os.path.join(user_dir, "config.json"), "w", encoding="utf-8") as f:
            json.dump({"security": {"protected_paths": ["/srv/charts"]}}, f)

        assert get_config().security.protected_paths == ["/srv/charts"]

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("HELM_OPTIMIZE_VERBOSE", "yes")
        monkeypatch.setenv("HELM_OPTIMIZE_MAX_MANIFEST_SIZE_MB", "4")
        monkeypatch.setenv("HELM_OPTIMIZE_LOG_LEVEL", "debug")
        monkeypatch.setenv("HELM_OPTIMIZE_LOG_JSON", "false")

        config = get_config()

        assert config.run.verbose is True
        assert config.security.max_manifest_size_bytes == 4 * 1024 * 1024
        assert config.logging.log_level == "DEBUG"
        assert config.logging.enable_json is False

    def test_invalid_values_fall_back_to_defaults(self):
        with open(".helm-optimize.json", "w", encoding="utf-8") as f:
            json.dump(
                {"security": {"max_manifest_size_mb": 0}, "logging": {"log_level": "LOUD"}},
                f,
            )

        config = get_config()

        assert config.security.max_manifest_size_mb == 1
        assert config.logging.log_level == "WARNING"

    def test_flags_are_combined_with_config(self, monkeypatch):
        monkeypatch.setenv("HELM_OPTIMIZE_SHOW_DELETED", "1")
        reset_config()

        options = build_run_options("chart", dry_run=True)

        assert options.dry_run is True
        assert options.show_deleted is True
        assert options.verbose is False


class TestStructuredLogging:
    """Test structured log output."""

    def test_formatter_emits_json_with_extras(self):
        record = logging.LogRecord(
            "dedup", logging.INFO, __file__, 1, "", None, None
        )
        record.event_type = "duplicate_dependency_found"
        record.path = "/charts/app/charts/worker/charts/common"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["component"] == "dedup"
        assert entry["event_type"] == "duplicate_dependency_found"
        assert entry["path"] == "/charts/app/charts/worker/charts/common"
        assert "message" not in entry

    def test_removals_are_logged_to_file(self, umbrella_chart, temp_dir, reporter):
        log_file = temp_dir / "helm-optimize.log"
        configure_logging(log_level="INFO", log_file_path=str(log_file))
        try:
            run_cleanup(RunOptions(chart_path=str(umbrella_chart)), reporter=reporter)
        finally:
            configure_logging()

        events = [json.loads(line) for line in log_file.read_text().splitlines()]
        removed = [e for e in events if e["event_type"] == "directory_removed"]

        assert removed[0]["path"] == str(umbrella_chart / "metrics")
        assert removed[0]["requested_by"] == "cleanup"
        assert any(e["event_type"] == "run_completed" for e in events)

    def test_loggers_do_not_propagate(self):
        assert get_filesystem_logger().logger.propagate is False
