"""
Shared fixtures for helm-optimize tests.
"""

import io
import os
from pathlib import Path

import pytest
import yaml
from rich.console import Console

from helm_optimize.cli_config import RunOptions, reset_config
from helm_optimize.error_handling import setup_error_handling
from helm_optimize.reporting import OptimizeReporter


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config files and HELM_OPTIMIZE_* variables of the host out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    workdir = tmp_path / "workdir"
    workdir.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(workdir)
    for key in list(os.environ):
        if key.startswith("HELM_OPTIMIZE_"):
            monkeypatch.delenv(key)

    reset_config()
    setup_error_handling()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    """Directory that holds the chart trees of a test."""
    charts_root = tmp_path / "trees"
    charts_root.mkdir()
    return charts_root


def _dependency_entry(entry):
    if isinstance(entry, dict):
        return entry
    name, version, *rest = entry
    result = {"name": name, "version": version}
    if rest:
        result["repository"] = rest[0]
    return result


@pytest.fixture
def make_chart():
    """
    Factory writing a chart directory with a Chart.yaml.

    Dependencies are given as (name, version) or (name, version, repository)
    tuples, or as raw dicts.
    """

    def _make_chart(path: Path, *dependencies, name: str = None) -> Path:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        manifest = {
            "apiVersion": "v2",
            "name": name or path.name,
            "version": "0.1.0",
        }
        if dependencies:
            manifest["dependencies"] = [_dependency_entry(dep) for dep in dependencies]
        (path / "Chart.yaml").write_text(yaml.safe_dump(manifest, sort_keys=False))
        return path

    return _make_chart


@pytest.fixture
def reporter():
    """Verbose reporter writing into a buffer; read it via reporter.output()."""
    buffer = io.StringIO()
    console = Console(file=buffer, width=300, color_system=None)
    instance = OptimizeReporter(console=console, verbose=True)
    instance.output = buffer.getvalue
    return instance


@pytest.fixture
def options_factory():
    def _options(chart_path, **kwargs) -> RunOptions:
        return RunOptions(chart_path=str(chart_path), **kwargs)

    return _options


@pytest.fixture
def sibling_duplicate_tree(temp_dir, make_chart):
    """
    app/
      charts/
        api/       declares common@1.0.0
          charts/common/
        worker/    declares common@1.0.0  (same parent as api -> duplicate)
          charts/common/
    """
    app = make_chart(temp_dir / "app", ("api", "1.0.0"), ("worker", "1.0.0"))
    api = make_chart(app / "charts" / "api", ("common", "1.0.0"))
    make_chart(api / "charts" / "common")
    worker = make_chart(app / "charts" / "worker", ("common", "1.0.0"))
    make_chart(worker / "charts" / "common")
    return app
