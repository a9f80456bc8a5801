"""
Filesystem mutations performed on behalf of the engines.
"""

import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .cli_config import get_config
from .error_handling import (
    ChartOptimizeError,
    RemovalError,
    log_removal_error,
)
from .structured_logging import log_directory_removed

PathLike = Union[str, Path]

SYSTEM_PATHS = [
    "/etc",
    "/proc",
    "/sys",
    "/dev",
    "/usr",
    "/bin",
    "/sbin",
    "/boot",
    "c:\\windows",
    "c:\\program files",
]


def _normalize(path: PathLike) -> str:
    return os.path.normcase(os.path.abspath(str(path)))


def protected_paths(extra: Optional[Iterable[str]] = None) -> List[str]:
    """Directories that must never be removed, normalized."""
    paths = [os.path.abspath(os.sep), str(Path.home())]
    paths.extend(SYSTEM_PATHS)
    paths.extend(extra or [])
    return [_normalize(path) for path in paths]


def is_protected(path: PathLike, extra: Optional[Iterable[str]] = None) -> bool:
    """
    True if ``path`` is a protected location or lies inside a system path.

    The home directory and filesystem root are only protected themselves,
    not their contents.
    """
    target = _normalize(path)
    root = _normalize(os.sep)
    home = _normalize(Path.home())

    for protected in protected_paths(extra):
        if target == protected:
            return True
        if protected in (root, home):
            continue
        if target.startswith(protected.rstrip(os.sep) + os.sep):
            return True
    return False


def remove_directory(path: PathLike, component: str = "helm_optimize") -> None:
    """
    Recursively remove a directory tree.

    A symbolic link is unlinked without touching its target, and a plain
    file is removed.

    Args:
        path: Directory to remove
        component: Engine requesting the removal, for logging

    Raises:
        RemovalError: If the path is protected or removal fails
    """
    if is_protected(path, get_config().security.protected_paths):
        error = RemovalError(path, "refusing to remove a protected location")
        log_removal_error(
            error.message, "fs_operations", "remove_directory", path=path
        )
        raise error

    try:
        if os.path.islink(path):
            os.unlink(path)
        elif os.path.isfile(path):
            os.remove(path)
        else:
            shutil.rmtree(path)
    except OSError as e:
        log_removal_error(
            f"Failed to remove directory: {e}",
            "fs_operations",
            "remove_directory",
            path=path,
            exception=e,
        )
        raise RemovalError(path, e) from e

    log_directory_removed(str(path), component)


def copy_chart(source: PathLike, destination: PathLike) -> str:
    """
    Copy a chart tree to ``destination``, which must not exist yet.

    Returns:
        str: Absolute path of the copy
    """
    destination = os.path.abspath(str(destination))
    try:
        shutil.copytree(str(source), destination, symlinks=True)
    except (OSError, shutil.Error) as e:
        raise ChartOptimizeError(
            f"failed to copy chart {source} to {destination}: {e}", destination
        ) from e
    return destination
