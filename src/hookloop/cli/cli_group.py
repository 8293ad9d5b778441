"""
Command group for hookloop: check, init and watch.

hookloop/src/hookloop/cli/cli_group.py
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import click
from rich.console import Console

from ..config import CONFIG_FILENAME, DEFAULT_CONFIG_TEMPLATE, ConfigError, load_config
from ..detector import DetectionResults, detect_project
from ..discovery import discover_files
from ..models import FindingType
from ..reporting import BUILTIN_FORMATTERS, DEFAULT_FORMAT, FORMAT_CHOICES, HumanFormatter
from ..scheduler import AnalysisScheduler

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_LOOPS_FOUND = 1
EXIT_CONFIG_ERROR = 2

_LEVELS = ["low", "medium", "high"]


@dataclass
class HookloopContext:
    """Shared context for CLI commands."""

    verbose: bool = False


@click.group()
@click.version_option(package_name="hookloop", prog_name="hookloop")
@click.option("--verbose", "-v", is_flag=True, help="Verbose (debug) logging on stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """hookloop: find React hook patterns that re-render forever."""
    ctx.obj = HookloopContext(verbose=verbose)
    # WARNING by default keeps machine-readable stdout clean
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")


def _render(results: DetectionResults, output_format: str, quiet: bool) -> Optional[str]:
    formatter_cls = BUILTIN_FORMATTERS[output_format]
    if formatter_cls is HumanFormatter:
        if quiet and not results.findings:
            return None
        formatter = HumanFormatter(results.project_root, color=console.is_terminal, width=console.width)
    else:
        formatter = formatter_cls(results.project_root)
    return formatter.format_results(results.findings, results.summary, results.cycles)


def _exit_code(results: DetectionResults) -> int:
    if any(f.type is FindingType.CONFIRMED_INFINITE_LOOP for f in results.findings):
        return EXIT_LOOPS_FOUND
    return EXIT_OK


@cli.command("check")
@click.argument("path", required=False, default=".", type=click.Path(exists=True, path_type=Path))
@click.option("--format", "-f", "output_format", type=click.Choice(FORMAT_CHOICES), default=DEFAULT_FORMAT, help="Output format")
@click.option("--debug", is_flag=True, help="Attach decision details and show safe patterns")
@click.option("--parallel/--sequential", default=None, help="Force parallel or sequential parsing")
@click.option("--workers", type=click.IntRange(min=1), help="Parser threads in parallel mode")
@click.option("--min-severity", type=click.Choice(_LEVELS), help="Hide findings below this severity")
@click.option("--min-confidence", type=click.Choice(_LEVELS), help="Hide findings below this confidence")
@click.option("--confirmed-only", is_flag=True, help="Report confirmed infinite loops only")
@click.option("--strict/--no-strict", default=None, help="Use type information for stability (default: auto)")
@click.option("--tsconfig", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="tsconfig.json to use")
@click.option("--no-presets", is_flag=True, help="Do not apply library presets from package.json")
@click.option("--quiet", "-q", is_flag=True, help="No progress bar; no output when nothing is found")
@click.pass_context
def check(
    ctx: click.Context,
    path: Path,
    output_format: str,
    debug: bool,
    parallel: Optional[bool],
    workers: Optional[int],
    min_severity: Optional[str],
    min_confidence: Optional[str],
    confirmed_only: bool,
    strict: Optional[bool],
    tsconfig: Optional[Path],
    no_presets: bool,
    quiet: bool,
) -> None:
    """Analyze PATH (default: current directory) for hook loops."""
    show_progress = output_format == "human" and not quiet and err_console.is_terminal
    try:
        results = detect_project(
            path,
            debug=debug,
            parallel=parallel,
            workers=workers,
            strict=strict,
            tsconfig=tsconfig,
            use_presets=False if no_presets else None,
            min_severity=min_severity,
            min_confidence=min_confidence,
            confirmed_only=confirmed_only,
            show_progress=show_progress,
        )
    except ConfigError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        ctx.exit(EXIT_CONFIG_ERROR)

    output = _render(results, output_format, quiet)
    if output:
        click.echo(output)
    ctx.exit(_exit_code(results))


@cli.command("init")
@click.option("--path", "directory", type=click.Path(file_okay=False, path_type=Path), default=".", help="Directory to write into")
@click.pass_context
def init(ctx: click.Context, directory: Path) -> None:
    """Write a commented default hookloop.toml."""
    target = directory / CONFIG_FILENAME
    if target.exists():
        err_console.print(f"[yellow]{target} already exists; not overwriting.[/yellow]")
        ctx.exit(1)
    directory.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(f"[green]Wrote {target}[/green]")


def snapshot_mtimes(files: List[Path]) -> Dict[Path, float]:
    """Modification times for ``files``; files that vanished are left out."""
    snapshot = {}
    for file in files:
        try:
            snapshot[file] = file.stat().st_mtime
        except OSError:
            continue
    return snapshot


@cli.command("watch")
@click.argument("path", required=False, default=".", type=click.Path(exists=True, path_type=Path))
@click.option("--interval", type=click.FloatRange(min=0.1), default=1.0, show_default=True, help="Polling interval in seconds")
@click.option("--format", "-f", "output_format", type=click.Choice(FORMAT_CHOICES), default=DEFAULT_FORMAT, help="Output format")
@click.pass_context
def watch(ctx: click.Context, path: Path, interval: float, output_format: str) -> None:
    """Re-run the analysis whenever a source file under PATH changes."""
    try:
        config = load_config(path)
    except ConfigError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red] {e}")
        ctx.exit(EXIT_CONFIG_ERROR)

    def run() -> DetectionResults:
        return detect_project(path, config)

    def show(results: DetectionResults) -> None:
        output = _render(results, output_format, quiet=False)
        if output:
            click.echo(output)

    scheduler = AnalysisScheduler(run, on_result=show)
    previous = snapshot_mtimes(discover_files([path], config))
    scheduler.request()
    console.print(f"[dim]Watching {path.resolve()} (Ctrl+C to stop)[/dim]")
    try:
        while True:
            time.sleep(interval)
            current = snapshot_mtimes(discover_files([path], config))
            if current != previous:
                logger.debug(f"Change detected under {path}")
                previous = current
                scheduler.request()
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching.[/dim]")
        scheduler.wait_idle(timeout=5)
