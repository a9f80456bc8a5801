"""
Chart manifest reading and chart-tree path conventions.

A chart directory may hold a ``Chart.yaml`` manifest and a ``charts/``
dependency-storage directory whose children are subcharts named after the
dependency. Both engines read manifests and walk subcharts only through the
helpers in this module.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml

from .cli_config import get_config
from .dependency import LOCAL_REPOSITORY_PREFIX, ChartDependency
from .error_handling import ChartOptimizeError, ManifestError, log_manifest_error
from .structured_logging import get_manifest_logger

MANIFEST_FILENAME = "Chart.yaml"
CHARTS_DIRNAME = "charts"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ChartManifest:
    """The parts of a Chart.yaml the engines care about."""

    path: str
    name: str = ""
    version: str = ""
    dependencies: List[ChartDependency] = field(default_factory=list)


def manifest_path(chart_dir: PathLike) -> Path:
    return Path(chart_dir) / MANIFEST_FILENAME


def storage_dir(chart_dir: PathLike) -> Path:
    return Path(chart_dir) / CHARTS_DIRNAME


def _safe_read_manifest(path: Path, chunk_size: int = 8192) -> str:
    """
    Read a manifest in chunks, refusing files over the configured size.

    Args:
        path: Manifest file path
        chunk_size: Size of chunks to read at a time

    Returns:
        str: File contents

    Raises:
        ManifestError: If the file cannot be read or is too large
    """
    max_size = get_config().security.max_manifest_size_bytes

    try:
        content_parts = []
        total_size = 0

        with open(path, encoding="utf-8") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break

                total_size += len(chunk.encode("utf-8"))
                if total_size > max_size:
                    raise ManifestError(
                        f"manifest too large: {path} exceeds {max_size} bytes", path
                    )

                content_parts.append(chunk)

        return "".join(content_parts)

    except UnicodeDecodeError as e:
        raise ManifestError(f"manifest is not valid UTF-8: {path}", path) from e
    except OSError as e:
        raise ManifestError(f"failed to read {path}: {e}", path) from e


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_dependency(entry: Any, index: int, path: Path) -> ChartDependency:
    if not isinstance(entry, dict):
        raise ManifestError(
            f"failed to parse {path}: dependency #{index} must be a mapping", path
        )

    name = _scalar_text(entry.get("name"))
    if not name:
        raise ManifestError(
            f"failed to parse {path}: dependency #{index} has no name", path
        )

    return ChartDependency(
        name=name,
        version=_scalar_text(entry.get("version")),
        repository=_scalar_text(entry.get("repository")),
    )


def parse_chart_manifest(path: PathLike) -> ChartManifest:
    """
    Parse a Chart.yaml file.

    Unknown fields are ignored and a missing ``dependencies`` key yields an
    empty dependency list.

    Args:
        path: Path to the Chart.yaml file

    Returns:
        ChartManifest: Parsed manifest

    Raises:
        ManifestError: If the file cannot be read or is not a valid manifest
    """
    path = Path(path)

    try:
        content = _safe_read_manifest(path)
        data = yaml.safe_load(content)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestError(
                f"failed to parse {path}: top level must be a mapping, "
                f"got {type(data).__name__}",
                path,
            )

        raw_dependencies: Optional[Any] = data.get("dependencies")
        if raw_dependencies is None:
            raw_dependencies = []
        if not isinstance(raw_dependencies, list):
            raise ManifestError(
                f"failed to parse {path}: dependencies must be a list", path
            )

        dependencies = [
            _parse_dependency(entry, index, path)
            for index, entry in enumerate(raw_dependencies, start=1)
        ]
    except yaml.YAMLError as e:
        log_manifest_error(
            "Invalid YAML in chart manifest",
            "chart_manifest",
            "parse_chart_manifest",
            manifest_path=path,
            exception=e,
        )
        raise ManifestError(f"failed to parse {path}: {e}", path) from e
    except ManifestError as e:
        log_manifest_error(
            e.message,
            "chart_manifest",
            "parse_chart_manifest",
            manifest_path=path,
            exception=e,
        )
        raise

    get_manifest_logger().debug(
        "manifest_parsed", manifest_path=str(path), dependencies=len(dependencies)
    )

    return ChartManifest(
        path=str(path),
        name=_scalar_text(data.get("name")),
        version=_scalar_text(data.get("version")),
        dependencies=dependencies,
    )


def read_chart_manifest(chart_dir: PathLike) -> Optional[ChartManifest]:
    """Read the manifest of ``chart_dir``, or return None if it has none."""
    path = manifest_path(chart_dir)
    if not path.is_file():
        return None
    return parse_chart_manifest(path)


def resolve_local_repository(chart_dir: PathLike, repository: str) -> str:
    """
    Resolve a ``file:`` repository reference against its chart directory.

    ``file://./db``, ``file:./db`` and ``file:db`` all resolve to
    ``<chart_dir>/db``. Absolute references stay absolute.
    """
    rel_path = repository
    if rel_path.startswith(LOCAL_REPOSITORY_PREFIX + "//"):
        rel_path = rel_path[len(LOCAL_REPOSITORY_PREFIX) + 2 :]
    elif rel_path.startswith(LOCAL_REPOSITORY_PREFIX):
        rel_path = rel_path[len(LOCAL_REPOSITORY_PREFIX) :]

    if rel_path.startswith("./"):
        rel_path = rel_path[2:]

    return os.path.abspath(os.path.join(str(chart_dir), rel_path))


def is_in_storage_dir(path: PathLike) -> bool:
    """True when the immediate parent directory is a ``charts`` directory."""
    return Path(path).parent.name == CHARTS_DIRNAME


def list_subcharts(chart_dir: PathLike) -> List[str]:
    """
    List subchart directories under ``chart_dir/charts``, sorted by name.

    Packaged archives (``.tgz``), other files and symlinked directories are
    ignored.
    """
    charts_dir = storage_dir(chart_dir)
    if not charts_dir.is_dir():
        return []

    try:
        entries = sorted(charts_dir.iterdir(), key=lambda entry: entry.name)
    except OSError as e:
        raise ChartOptimizeError(
            f"failed to read charts directory {charts_dir}: {e}", charts_dir
        ) from e

    return [
        str(entry) for entry in entries if entry.is_dir() and not entry.is_symlink()
    ]

