"""
Configuration management for helm-optimize.

Provides run defaults, manifest safety limits and logging settings, loaded
from a config file and environment variables, plus the immutable per-run
option record handed to the engines.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)

ENV_PREFIX = "HELM_OPTIMIZE_"
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class RunConfig:
    """Defaults for the per-run flags; command-line flags are OR-ed on top."""

    dry_run: bool = False
    show_deleted: bool = False
    verbose: bool = False


@dataclass
class SecurityConfig:
    """Safety limits for manifest reads and directory removal."""

    max_manifest_size_mb: int = 1
    protected_paths: List[str] = field(default_factory=list)

    @property
    def max_manifest_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_manifest_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True
    log_file_path: Optional[str] = None
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    run: RunConfig = field(default_factory=RunConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunOptions:
    """Immutable options for one dedup or cleanup invocation."""

    chart_path: str
    dry_run: bool = False
    show_deleted: bool = False
    verbose: bool = False
    output_dir: Optional[str] = None
    package: bool = False


# Global configuration instance
_global_config: Optional[ComprehensiveConfig] = None


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if not isinstance(config.security.max_manifest_size_mb, int) or (
        config.security.max_manifest_size_mb <= 0
    ):
        errors.append("security.max_manifest_size_mb must be a positive integer")
    if not isinstance(config.security.protected_paths, list):
        errors.append("security.protected_paths must be a list of paths")

    if str(config.logging.log_level).upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"logging.log_level must be one of {', '.join(VALID_LOG_LEVELS)}"
        )

    for name in ("dry_run", "show_deleted", "verbose"):
        if not isinstance(getattr(config.run, name), bool):
            errors.append(f"run.{name} must be a boolean")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                return None
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )
        return None

    if not isinstance(data, dict):
        console.print(
            f"⚠️  Config file {config_path} must contain a mapping", style="yellow"
        )
        return None
    return data


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".helm-optimize.json",
        Path.cwd() / ".helm-optimize.yaml",
        Path.cwd() / ".helm-optimize.yml",
        Path.home() / ".config" / "helm-optimize" / "config.json",
        Path.home() / ".config" / "helm-optimize" / "config.yaml",
        Path.home() / ".helm-optimize.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(
                f"⚠️  Invalid integer value for {key}, using default", style="yellow"
            )
            return default

    config.run.dry_run = get_env_bool(f"{ENV_PREFIX}DRY_RUN", config.run.dry_run)
    config.run.show_deleted = get_env_bool(
        f"{ENV_PREFIX}SHOW_DELETED", config.run.show_deleted
    )
    config.run.verbose = get_env_bool(f"{ENV_PREFIX}VERBOSE", config.run.verbose)

    if max_size := get_env_int(f"{ENV_PREFIX}MAX_MANIFEST_SIZE_MB"):
        config.security.max_manifest_size_mb = max_size

    if log_level := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    if log_file := os.environ.get(f"{ENV_PREFIX}LOG_FILE"):
        config.logging.log_file_path = log_file
    config.logging.enable_json = get_env_bool(
        f"{ENV_PREFIX}LOG_JSON", config.logging.enable_json
    )


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    if not isinstance(section_data, dict):
        console.print(
            f"⚠️  Config section {section_name} must be a mapping", style="yellow"
        )
        return

    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config() -> ComprehensiveConfig:
    """Load comprehensive configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section_name in ("run", "security", "logging"):
                if section_name in file_config:
                    apply_config_section(
                        getattr(config, section_name),
                        file_config[section_name],
                        section_name,
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        _restore_invalid_defaults(config)

    _global_config = config
    return config


def _restore_invalid_defaults(config: ComprehensiveConfig) -> None:
    defaults = ComprehensiveConfig()
    if not isinstance(config.security.max_manifest_size_mb, int) or (
        config.security.max_manifest_size_mb <= 0
    ):
        config.security.max_manifest_size_mb = defaults.security.max_manifest_size_mb
    if not isinstance(config.security.protected_paths, list):
        config.security.protected_paths = defaults.security.protected_paths
    if str(config.logging.log_level).upper() not in VALID_LOG_LEVELS:
        config.logging.log_level = defaults.logging.log_level
    for name in ("dry_run", "show_deleted", "verbose"):
        if not isinstance(getattr(config.run, name), bool):
            setattr(config.run, name, getattr(defaults.run, name))


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def build_run_options(
    chart_path: str,
    dry_run: bool = False,
    show_deleted: bool = False,
    verbose: bool = False,
    output_dir: Optional[str] = None,
    package: bool = False,
    config: Optional[ComprehensiveConfig] = None,
) -> RunOptions:
    """Combine command-line flags with configured defaults."""
    config = config or get_config()
    return RunOptions(
        chart_path=chart_path,
        dry_run=dry_run or config.run.dry_run,
        show_deleted=show_deleted or config.run.show_deleted,
        verbose=verbose or config.run.verbose,
        output_dir=output_dir,
        package=package,
    )


def create_sample_config() -> str:
    """Generate sample configuration."""
    return json.dumps(ComprehensiveConfig().to_dict(), indent=2)
