"""Command-line interface for package_health.

Provides the main entry point and subcommands for scanning a project's
dependencies and printing its dependency tree.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.tree import Tree

from package_health.cache import PackageCache
from package_health.config import (
    PROJECT_TYPES,
    Config,
    ConfigError,
    find_config_file,
    load_config,
    project_type_defaults,
)
from package_health.manifest import Manifest, ManifestError, read_manifest
from package_health.models import DependencyTreeNode, ScanResult
from package_health.registry import NpmRegistryClient
from package_health.scan import HealthScanner
from package_health.tree import DependencyTreeBuilder, generate_tree_summary

app = typer.Typer(
    name="package-health",
    help="Dependency health analysis: licenses, age and transitive risk.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger("package_health")

SEVERITY_STYLES = {
    "ok": "green",
    "info": "blue",
    "warning": "yellow",
    "critical": "red",
}

RATING_STYLES = {
    "excellent": "green",
    "good": "cyan",
    "fair": "yellow",
    "poor": "red",
}


def _setup_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("package_health").setLevel(level)


def _load_settings(
    path: Path,
    config_path: Optional[Path],
    project_type: Optional[str],
    max_depth: Optional[int],
    no_cache: bool,
) -> tuple[Config, Manifest]:
    """Resolve the configuration and read the manifest.

    Raises:
        ConfigError: If the configuration is invalid.
        ManifestError: If the manifest cannot be read.
        FileNotFoundError: If an explicit config file does not exist.
    """
    project_dir = path if path.is_dir() else path.parent

    if config_path is None:
        config_path = find_config_file(project_dir)

    if config_path is not None:
        config = load_config(config_path)
        logger.debug("Loaded configuration from %s", config_path)
    else:
        config = Config()

    if project_type is not None:
        if project_type not in PROJECT_TYPES:
            raise ConfigError(
                f"Invalid project type '{project_type}'. "
                f"Expected one of: {', '.join(PROJECT_TYPES)}"
            )
        if config_path is None:
            config = project_type_defaults(project_type)
        else:
            config.project_type = project_type  # type: ignore[assignment]

    if max_depth is not None:
        config.dependency_tree.max_depth = max_depth
    if no_cache:
        config.cache.enabled = False

    manifest = read_manifest(path, include_dev=config.include_dev_dependencies)
    return config, manifest


def _format_skipped(skipped: dict[str, int]) -> str:
    return ", ".join(f"{reason}={count}" for reason, count in sorted(skipped.items()))


def _render_scan(result: ScanResult) -> None:
    table = Table(title=f"{result.project_name}@{result.project_version} ({result.project_type})")
    table.add_column("Package")
    table.add_column("Version")
    table.add_column("License")
    table.add_column("Age")
    table.add_column("Score", justify="right")
    table.add_column("Severity")

    for analysis in sorted(result.packages, key=lambda a: (a.score.overall, a.package.lower())):
        rating_style = RATING_STYLES[analysis.score.rating]
        severity_style = SEVERITY_STYLES[analysis.overall_severity]
        table.add_row(
            analysis.package,
            analysis.version,
            analysis.license.license,
            analysis.age.age_human,
            f"[{rating_style}]{analysis.score.overall}[/{rating_style}]",
            f"[{severity_style}]{analysis.overall_severity}[/{severity_style}]",
        )

    console.print(table)

    summary = result.summary
    console.print(
        f"Packages: [bold]{summary.total}[/bold]  "
        f"Average score: [bold]{summary.average_score}[/bold]  "
        f"Risk: [bold]{summary.risk_level}[/bold]"
    )
    console.print(
        f"Issues: [red]{summary.critical_issues} critical[/red], "
        f"[yellow]{summary.warning_issues} warning[/yellow], "
        f"[blue]{summary.info_issues} info[/blue]"
    )

    if result.tree_summary is not None:
        ts = result.tree_summary
        console.print(
            f"Tree: {ts.total_nodes} nodes, max depth {ts.max_depth}, "
            f"{ts.circular_dependencies} circular, {ts.duplicate_packages} duplicated"
        )

    if result.skipped:
        console.print(f"[dim]Skipped: {_format_skipped(result.skipped)}[/dim]")

    if result.ignored:
        console.print(f"[dim]Ignored: {len(result.ignored)}[/dim]")
        for entry in result.ignored:
            console.print(f"[dim]  - {entry.package}: {entry.reason}[/dim]")

    if result.below_minimum:
        console.print(
            f"\n[yellow]Below minimum score ({len(result.below_minimum)}):[/yellow]"
        )
        for name in sorted(result.below_minimum):
            console.print(f"  - {name}")

    if result.recommendations:
        console.print(f"\n[bold]Recommendations ({len(result.recommendations)}):[/bold]")
        for rec in result.recommendations:
            console.print(f"  - {rec.package} ({rec.priority}): {rec.reason}")


def _add_branch(branch: Tree, node: DependencyTreeNode) -> None:
    for child in node.dependencies:
        label = child.spec
        if child.is_circular:
            label += " [red](circular)[/red]"
        if child.is_duplicate:
            versions = ", ".join(child.duplicate_versions or [])
            label += f" [yellow](duplicate: {versions})[/yellow]"
        _add_branch(branch.add(label), child)


async def _run_scan(config: Config, manifest: Manifest) -> ScanResult:
    """Async implementation of the scan command."""
    async with NpmRegistryClient() as client:
        scanner = HealthScanner(
            config,
            client,
            cache=PackageCache(enabled=config.cache.enabled, ttl=config.cache.ttl),
            popularity_lookup=client.fetch_weekly_downloads,
        )
        return await scanner.scan(manifest)


async def _run_tree(config: Config, manifest: Manifest) -> DependencyTreeNode:
    """Async implementation of the tree command."""
    async with NpmRegistryClient() as client:
        builder = DependencyTreeBuilder(
            client,
            PackageCache(enabled=config.cache.enabled, ttl=config.cache.ttl),
            config.dependency_tree,
        )
        root, _ = await builder.build_tree(
            manifest.name, manifest.version, manifest.dependencies
        )
        return root


PathArgument = Annotated[
    Path,
    typer.Argument(
        help="Project directory or package.json file",
        exists=True,
        readable=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Configuration file (.package-health.toml or pyproject.toml)",
        exists=True,
        readable=True,
    ),
]
ProjectTypeOption = Annotated[
    Optional[str],
    typer.Option(
        "--project-type",
        "-p",
        help=f"Project type: {', '.join(PROJECT_TYPES)}",
    ),
]
MaxDepthOption = Annotated[
    Optional[int],
    typer.Option(
        "--max-depth",
        "-d",
        help="Maximum dependency tree depth (0 for unlimited)",
        min=0,
    ),
]
NoCacheOption = Annotated[
    bool,
    typer.Option(
        "--no-cache",
        help="Disable the metadata cache",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
]


@app.command()
def scan(
    path: PathArgument = Path("."),
    config_path: ConfigOption = None,
    project_type: ProjectTypeOption = None,
    max_depth: MaxDepthOption = None,
    no_cache: NoCacheOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Scan a project's dependencies and report their health.

    Exit codes:
        0 - No issue at or above the failOn threshold
        1 - Warnings at or above the threshold, or an error occurred
        2 - Critical issues found
    """
    _setup_logging(verbose)

    try:
        config, manifest = _load_settings(path, config_path, project_type, max_depth, no_cache)
    except (ConfigError, ManifestError, FileNotFoundError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Resolving dependencies...", total=None)
        result = asyncio.run(_run_scan(config, manifest))
        progress.update(task, completed=True)

    if not result.packages:
        if not manifest.dependencies:
            console.print("[yellow]No dependencies found[/yellow]")
            raise typer.Exit(code=0)
        if result.ignored and not result.skipped:
            console.print(f"[yellow]All {len(result.ignored)} dependencies are ignored[/yellow]")
            raise typer.Exit(code=0)
        err_console.print(
            f"[red]Error:[/red] None of the {len(manifest.dependencies)} dependencies "
            f"could be analyzed (skipped: {_format_skipped(result.skipped) or 'none'})"
        )
        raise typer.Exit(code=1)

    _render_scan(result)
    if verbose:
        console.print(f"[dim]Scan took {result.duration_seconds:.1f}s[/dim]")
    raise typer.Exit(code=result.exit_code)


@app.command()
def tree(
    path: PathArgument = Path("."),
    config_path: ConfigOption = None,
    max_depth: MaxDepthOption = None,
    no_cache: NoCacheOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Print the resolved dependency tree of a project."""
    _setup_logging(verbose)

    try:
        config, manifest = _load_settings(path, config_path, None, max_depth, no_cache)
    except (ConfigError, ManifestError, FileNotFoundError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    root = asyncio.run(_run_tree(config, manifest))

    rendered = Tree(f"[bold]{root.spec}[/bold]")
    _add_branch(rendered, root)
    console.print(rendered)

    summary = generate_tree_summary(root)
    console.print(
        f"{summary.total_nodes} nodes, {summary.unique_packages} unique packages, "
        f"max depth {summary.max_depth}"
    )


if __name__ == "__main__":
    app()
