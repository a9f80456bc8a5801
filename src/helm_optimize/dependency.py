# In src/helm_optimize/dependency.py
from dataclasses import dataclass
from typing import Tuple

LOCAL_REPOSITORY_PREFIX = "file:"


@dataclass(frozen=True)
class Dependency:
    """A chart dependency identified by name and version."""

    name: str
    version: str

    @property
    def key(self) -> Tuple[str, str]:
        """Registry key; a tuple so names containing '-' cannot collide."""
        return (self.name, self.version)

    @property
    def label(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass(frozen=True)
class ChartDependency:
    """A single entry of a manifest's ``dependencies`` list."""

    name: str
    version: str
    repository: str = ""

    @property
    def is_local(self) -> bool:
        return self.repository.startswith(LOCAL_REPOSITORY_PREFIX)

    def as_dependency(self) -> Dependency:
        return Dependency(name=self.name, version=self.version)


@dataclass(frozen=True)
class ChartPath:
    """One observed occurrence of a dependency in the chart tree."""

    path: str
    parent_path: str
