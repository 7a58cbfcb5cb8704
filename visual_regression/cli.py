"""CLI entry point for the visual regression tools."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from visual_regression.compare.baseline_store import BaselineStore
from visual_regression.compare.image_diff import decode_image, diff, is_match
from visual_regression.errors import ImageDecodeError
from visual_regression.models.config import VisualRegressionConfig
from visual_regression.models.screenshot import IgnoreComparison

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> VisualRegressionConfig:
    try:
        return VisualRegressionConfig.load(config)
    except FileNotFoundError:
        console.print(f"[yellow]Config file not found: {config}, using defaults[/yellow]")
        return VisualRegressionConfig()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Screenshot baseline comparison for UI test suites"""
    setup_logging(verbose)


@cli.command()
@click.option("--baselines-dir", "-b", default="./__snapshots__", help="Where baselines are stored")
@click.option("--locale", default="en", help="Locale under test")
@click.option("--theme", default="terra-default-theme", help="Theme under test")
def init(baselines_dir: str, locale: str, theme: str) -> None:
    """Create a default configuration file."""
    config_path = Path("visual-regression.json")
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = VisualRegressionConfig(baselines_dir=baselines_dir, locale=locale, theme=theme)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")


@cli.command()
@click.argument("baseline", type=click.Path(exists=True, dir_okay=False))
@click.argument("current", type=click.Path(exists=True, dir_okay=False))
@click.option("--tolerance", "-t", type=float, default=None, help="Acceptable mismatch percentage")
@click.option(
    "--ignore", "ignore_comparison",
    type=click.Choice([m.value for m in IgnoreComparison]),
    default=None, help="Comparison mode",
)
@click.option("--diff-out", "-o", type=click.Path(dir_okay=False), default=None, help="Write the diff image here")
@click.option("--config", "-c", default="visual-regression.json", help="Config file path")
def compare(
    baseline: str, current: str, tolerance: float | None, ignore_comparison: str | None,
    diff_out: str | None, config: str,
) -> None:
    """Compare two images the way a screenshot check would."""
    cfg = _load_config(config)
    tolerance = cfg.mismatch_tolerance if tolerance is None else tolerance
    mode = IgnoreComparison(ignore_comparison) if ignore_comparison else cfg.ignore_comparison

    try:
        result = diff(
            decode_image(Path(baseline).read_bytes()),
            decode_image(Path(current).read_bytes()),
            mode,
        )
    except ImageDecodeError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(2)

    passed = is_match(result, tolerance)
    table = Table(title="Screenshot Comparison")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Mode", mode.value)
    table.add_row("Mismatch", f"{result.mis_match_percentage:.2f}%")
    table.add_row("Tolerance", f"{tolerance:.2f}%")
    table.add_row("Same dimensions", "yes" if result.is_same_dimensions else "[red]no[/red]")
    table.add_row("Verdict", "[green]pass[/green]" if passed else "[red]fail[/red]")
    console.print(table)

    if diff_out:
        result.image.save(diff_out, format="PNG")
        console.print(f"  Diff image: [blue]{diff_out}[/blue]")

    if not passed:
        sys.exit(1)


@cli.command()
@click.option("--config", "-c", default="visual-regression.json", help="Config file path")
def baselines(config: str) -> None:
    """List the registered baseline screenshots."""
    cfg = _load_config(config)
    store = BaselineStore(Path(cfg.baselines_dir))
    entries = store.entries()
    if not entries:
        console.print("[yellow]No baselines registered[/yellow]")
        return

    table = Table(title=f"Baselines in {cfg.baselines_dir}")
    table.add_column("Spec")
    table.add_column("Suite")
    table.add_column("Test")
    table.add_column("Name")
    table.add_column("Form factor")
    table.add_column("Size")
    table.add_column("Captured")
    for entry in entries:
        table.add_row(
            entry.spec or "-",
            entry.suite or "-",
            entry.test or "-",
            entry.name,
            entry.form_factor or "-",
            f"{entry.width}x{entry.height}",
            entry.captured_at,
        )
    console.print(table)


if __name__ == "__main__":
    cli()
