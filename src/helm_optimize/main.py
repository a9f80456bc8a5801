import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .cleaner import run_cleanup
from .cli_config import (
    ComprehensiveConfig,
    apply_config_section,
    build_run_options,
    create_sample_config,
    get_config,
    load_config_file,
    validate_config_values,
)
from .completion import get_completion_scripts
from .deduplicator import run_dedup
from .error_handling import ChartOptimizeError, setup_error_handling
from .reporting import OptimizeReporter
from .structured_logging import configure_logging

__version__ = "0.1.0"

console = Console()


def _fail(message: str, code: int = 1) -> None:
    Console(stderr=True).print(f"❌ Error: {escape(message)}", style="red")
    sys.exit(code)


def _run_guarded(operation, options) -> None:
    reporter = OptimizeReporter(console=console, verbose=options.verbose)
    try:
        operation(options, reporter=reporter)
    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except ChartOptimizeError as e:
        _fail(e.message)
    except Exception as e:
        if options.verbose:
            raise
        _fail(f"unexpected failure: {e}")


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--log-level",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    help="Structured log level (default from config or WARNING)",
)
@click.option(
    "--log-json/--log-plain",
    default=None,
    help="Emit structured logs as JSON lines or plain text",
)
@click.pass_context
def cli(ctx, version, verbose, log_level, log_json):
    """
    🧹 helm-optimize: optimize Helm chart trees.

    Removes duplicate dependency subcharts and leftover local dependency
    sources after `helm dep up`.
    """
    if version:
        console.print(f"helm-optimize version {__version__}", style="bold blue")
        ctx.exit()

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    config = get_config()
    level = (log_level or config.logging.log_level).upper()
    configure_logging(
        log_level=level,
        enable_json=config.logging.enable_json if log_json is None else log_json,
        log_file_path=config.logging.log_file_path,
        log_format=config.logging.log_format,
    )
    setup_error_handling(log_level=getattr(logging, level, logging.WARNING))

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.argument("chart_path", type=click.Path(file_okay=False))
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(file_okay=False),
    help="Output directory for deduplicated chart (default: input directory)",
)
@click.option(
    "--package", "-p", is_flag=True, help="Package chart after deduplication"
)
@click.option(
    "--dry-run", is_flag=True, help="Simulate deduplication without making changes"
)
@click.option("--show-deleted", is_flag=True, help="Show paths that would be deleted")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def dedup(
    ctx,
    chart_path: str,
    output_dir: Optional[str],
    package: bool,
    dry_run: bool,
    show_deleted: bool,
    verbose: bool,
) -> None:
    """
    Deduplicate dependency charts to reduce the size of Helm packages.

    Analyzes a chart and its dependencies, removing subcharts that appear
    twice under the same parent chart while keeping copies that other
    parts of the hierarchy rely on.

    Examples:

      helm-optimize dedup ./mychart --dry-run --show-deleted

      helm-optimize dedup ./mychart -o ./mychart-dedup
    """
    options = build_run_options(
        chart_path,
        dry_run=dry_run,
        show_deleted=show_deleted,
        verbose=verbose or ctx.obj.get("verbose", False),
        output_dir=output_dir,
        package=package,
    )
    _run_guarded(run_dedup, options)


@cli.command()
@click.argument("chart_path", type=click.Path(file_okay=False))
@click.option("--dry-run", is_flag=True, help="Simulate cleanup without making changes")
@click.option("--show-deleted", is_flag=True, help="Show paths that would be deleted")
@click.pass_context
def cleanup(ctx, chart_path: str, dry_run: bool, show_deleted: bool) -> None:
    """
    Remove unnecessary chart directories left by `helm dep up`.

    Walks the chart tree depth-first and removes the original directories of
    dependencies declared with `repository: file:...` once they have been
    materialized under charts/.

    Examples:

      helm-optimize -v cleanup ./mychart --dry-run
    """
    options = build_run_options(
        chart_path,
        dry_run=dry_run,
        show_deleted=show_deleted,
        verbose=ctx.obj.get("verbose", False),
    )
    _run_guarded(run_cleanup, options)


@cli.command()
def info():
    """Show information about the optimizations and configuration."""
    info_text = """
[bold blue]🧩 Commands:[/bold blue]

• [green]dedup[/green] - Remove subcharts duplicated under the same parent chart
• [green]cleanup[/green] - Remove original directories of [cyan]file:[/cyan] dependencies

[bold blue]🔍 Duplicate Detection:[/bold blue]

• Dependencies are identified by name and version
• The first occurrence found (depth-first) is always kept
• A repeat under a chart with the same parent directory is deleted
• Repeats elsewhere in the hierarchy are kept

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]HELM_OPTIMIZE_DRY_RUN[/cyan] - Always simulate
• [cyan]HELM_OPTIMIZE_SHOW_DELETED[/cyan] - Always list deleted paths
• [cyan]HELM_OPTIMIZE_VERBOSE[/cyan] - Always enable verbose output
• [cyan]HELM_OPTIMIZE_LOG_LEVEL[/cyan] - Structured log level
• [cyan]HELM_OPTIMIZE_LOG_FILE[/cyan] - Also write structured logs to a file

[bold blue]📄 Configuration Files:[/bold blue]

• [green].helm-optimize.json[/green] / [green].helm-optimize.yaml[/green] - Project-level config
• [green]~/.config/helm-optimize/config.json[/green] - User-level config

[bold blue]💡 Usage Examples:[/bold blue]

  # Preview deduplication
  helm-optimize dedup ./mychart --dry-run --show-deleted

  # Clean up after helm dep up
  helm-optimize -v cleanup ./mychart
"""
    console.print(
        Panel(
            info_text,
            title="[bold]helm-optimize Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(dir_okay=False),
    default=".helm-optimize.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        _fail(f"failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(
        Panel("[bold blue]🔧 Current Configuration[/bold blue]", border_style="blue")
    )

    console.print("\n[bold cyan]▶ Run Defaults:[/bold cyan]")
    console.print(f"  Dry Run: {current_config.run.dry_run}")
    console.print(f"  Show Deleted: {current_config.run.show_deleted}")
    console.print(f"  Verbose: {current_config.run.verbose}")

    console.print("\n[bold cyan]🔒 Security Settings:[/bold cyan]")
    console.print(
        f"  Max Manifest Size: {current_config.security.max_manifest_size_mb} MB"
    )
    protected = ", ".join(current_config.security.protected_paths) or "(none)"
    console.print(f"  Extra Protected Paths: {escape(protected)}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Logs: {current_config.logging.enable_json}")
    console.print(f"  Log File: {current_config.logging.log_file_path or '(none)'}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if config_data is None:
        _fail(f"could not load config from {config_file}")

    candidate = ComprehensiveConfig()
    for section_name in ("run", "security", "logging"):
        if section_name in config_data:
            apply_config_section(
                getattr(candidate, section_name),
                config_data[section_name],
                section_name,
            )

    errors = validate_config_values(candidate)
    if errors:
        console.print(f"❌ Configuration file {config_file} is invalid:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


@cli.command()
@click.argument(
    "shell", type=click.Choice(["bash", "zsh", "fish"], case_sensitive=False)
)
@click.option(
    "--install",
    is_flag=True,
    help="Install completion script to user location",
)
def completion(shell: str, install: bool):
    """Generate shell completion scripts.

    Examples:

      helm-optimize completion bash > ~/.helm-optimize-completion.bash

      helm-optimize completion fish --install
    """
    script_content = get_completion_scripts()[shell.lower()]

    if not install:
        print(script_content)
        return

    install_paths = {
        "bash": "~/.local/share/bash-completion/completions/helm-optimize",
        "zsh": "~/.local/share/zsh/site-functions/_helm-optimize",
        "fish": "~/.config/fish/completions/helm-optimize.fish",
    }

    install_path = Path(install_paths[shell.lower()]).expanduser()
    try:
        install_path.parent.mkdir(parents=True, exist_ok=True)
        with open(install_path, "w", encoding="utf-8") as f:
            f.write(script_content)
    except OSError as e:
        _fail(f"could not install completion script to {install_path}: {e}")

    console.print(f"✅ Installed {shell} completion to {install_path}", style="green")


if __name__ == "__main__":
    cli()
