"""
cli.py — Command-line interface for DC-SMC inference

Usage:
    dcsmc run --input data/example.csv --output results/ [--n-particles 1000]
    dcsmc run --input data/example.csv --use-transform --level-cutoff 2
    python -m dcsmc run --input data/example.csv
"""

import argparse
import json
import logging
from pathlib import Path

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DCSMCConfig
from .dataset import load_dataset
from .diagnostics import CsvDiagnostics
from .errors import DCSMCError
from .smc_engine import run_dcsmc

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def cmd_run(args) -> int:
    """Run one DC-SMC pass and write diagnostics."""
    config = DCSMCConfig(
        n_particles=args.n_particles,
        variance_prior_rate=args.variance_prior_rate,
        use_transform=args.use_transform,
        n_summary_samples=args.n_summary_samples,
        seed=args.seed,
    )
    if args.level_cutoff is not None:
        config.level_cutoff_for_output = args.level_cutoff
    config.validate()

    tree = load_dataset(args.input)
    output_dir = Path(args.output)
    diagnostics = CsvDiagnostics(output_dir, save_samples=not args.no_samples)

    result = run_dcsmc(tree, config=config, diagnostics=diagnostics)

    with open(output_dir / "result.json", "w") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)

    if not args.quiet:
        _print_summary(result, output_dir)
    return 0


def _print_summary(result, output_dir: Path) -> None:
    console = Console()
    console.print(f"\n[bold]DC-SMC finished[/bold] in {result.runtime_sec:.1f}s")
    console.print(f"Diagnostics: {output_dir}\n")

    root = result.root_report
    table = Table(title="Root", box=box.ROUNDED)
    table.add_column("Path")
    table.add_column("Mean", justify="right")
    table.add_column("ESS", justify="right")
    table.add_column("Relative ESS", justify="right")
    table.add_row(root.path, f"{result.root_mean():.4f}", f"{root.ess:.1f}", f"{root.relative_ess:.3f}")
    console.print(table)

    worst = Table(title="Lowest relative ESS", box=box.ROUNDED)
    worst.add_column("Level", justify="right")
    worst.add_column("Path")
    worst.add_column("ESS", justify="right")
    worst.add_column("Relative ESS", justify="right")
    for report in result.lowest_ess(5):
        style = "red" if report.relative_ess < 0.1 else None
        worst.add_row(
            str(report.level), report.path, f"{report.ess:.1f}", f"{report.relative_ess:.3f}",
            style=style,
        )
    console.print(worst)


def build_parser() -> argparse.ArgumentParser:
    defaults = DCSMCConfig()
    parser = argparse.ArgumentParser(
        prog="dcsmc",
        description="Divide-and-conquer SMC for hierarchical binomial data",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run one DC-SMC pass over a dataset")
    run.add_argument("--input", required=True, help="CSV with hierarchy and count columns")
    run.add_argument("--output", default="results", help="Diagnostics folder")
    run.add_argument("--n-particles", type=int, default=defaults.n_particles)
    run.add_argument("--level-cutoff", type=int, default=None,
                     help="Skip summary output for nodes at this depth or deeper")
    run.add_argument("--variance-prior-rate", type=float, default=defaults.variance_prior_rate)
    run.add_argument("--use-transform", action="store_true", help="Logit-transform leaf probabilities")
    run.add_argument("--n-summary-samples", type=int, default=defaults.n_summary_samples)
    run.add_argument("--seed", type=int, default=defaults.seed)
    run.add_argument("--no-samples", action="store_true", help="Do not write raw sample arrays")
    run.add_argument("--quiet", action="store_true", help="No summary tables")
    run.set_defaults(func=cmd_run)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return args.func(args)
    except DCSMCError as e:
        logger.error("%s", e)
        return 2
