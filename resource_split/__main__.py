"""
CLI entry point for the summary splitter.

Usage:
    python -m resource_split split -s <field> (-L <listfile> | -J <jsonfile>) <outdir> [options]
    python -m resource_split mordor [-i infile] [-d plot.dat] [-g plot.gp] <label_column> <value_column>
"""

import argparse
import os
import sqlite3
import sys

from .config import load_config
from .constants import (
    DEFAULT_DELIMS,
    DEFAULT_PLOT_DATA,
    DEFAULT_PLOT_OUTPUT,
    DEFAULT_PLOT_SCRIPT,
)
from .context import RunContext
from .models import HistogramVariant, MordorStyle, OutlierPolicy, SortOrder
from .mordor import Mordor
from .parser import ColumnSource, parse_column_number
from .pipeline import run_pipeline


def _add_plot_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--style",
        default=None,
        choices=[s.value for s in MordorStyle],
        help="Ridge plot style (default: clean)",
    )
    parser.add_argument(
        "--sort",
        default=None,
        choices=[s.value for s in SortOrder],
        help="Order of the mountains (default: mean)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print detailed progress",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resource_split",
        description="Split resource summaries into per-group statistics and gnuplot plots",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- split command ---
    split_parser = subparsers.add_parser(
        "split",
        help="Group summaries by category and a field, write statistics and plots",
    )
    source = split_parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "-L", "--list",
        dest="listfile",
        help="File listing one summary file per line",
    )
    source.add_argument(
        "-J", "--json",
        dest="jsonfile",
        help="File with JSON-encoded summaries",
    )
    split_parser.add_argument(
        "output_dir",
        help="Output directory (one subdirectory per category)",
    )
    split_parser.add_argument(
        "-s", "--split",
        dest="split_field",
        default=None,
        help="Field to split each category on (e.g. host)",
    )
    split_parser.add_argument(
        "-t", "--threshold",
        type=int,
        default=None,
        help="Drop groups with fewer than this many summaries (default: 1)",
    )
    split_parser.add_argument(
        "-f", "--field",
        dest="output_fields",
        action="append",
        default=None,
        help="Field to summarise; repeat for several (default: wall_time cpu_time memory disk)",
    )
    split_parser.add_argument(
        "--variant",
        dest="variants",
        action="append",
        default=None,
        choices=[v.value for v in HistogramVariant],
        help="Histogram variant; repeat for several (default: value)",
    )
    split_parser.add_argument(
        "--outlier-policy",
        default=None,
        choices=[p.value for p in OutlierPolicy],
        help="Bin values beyond the boxplot whiskers (keep) or drop them (discard); default: keep",
    )
    split_parser.add_argument(
        "--scatter-x",
        default=None,
        help="Field on the x axis of scatter plots (default: wall_time)",
    )
    split_parser.add_argument(
        "--workunits-db",
        default=None,
        help="SQLite database with per-task work units",
    )
    split_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to a YAML config file",
    )
    _add_plot_options(split_parser)

    # --- mordor command ---
    mordor_parser = subparsers.add_parser(
        "mordor",
        help="Ridge histogram of a value column grouped by a label column",
    )
    mordor_parser.add_argument("label_column", help="1-based column holding the label")
    mordor_parser.add_argument("value_column", help="1-based column holding the value")
    mordor_parser.add_argument(
        "-i", "--infile",
        default="/dev/stdin",
        help="Input file (default: stdin)",
    )
    mordor_parser.add_argument(
        "-o", "--outfile",
        default=DEFAULT_PLOT_OUTPUT,
        help=f"Image the gnuplot script renders to (default: {DEFAULT_PLOT_OUTPUT})",
    )
    mordor_parser.add_argument(
        "-d", "--data",
        default=DEFAULT_PLOT_DATA,
        help=f"Histogram data file to write (default: {DEFAULT_PLOT_DATA})",
    )
    mordor_parser.add_argument(
        "-g", "--gnuplot",
        default=DEFAULT_PLOT_SCRIPT,
        help=f"gnuplot script to write (default: {DEFAULT_PLOT_SCRIPT})",
    )
    mordor_parser.add_argument("-t", "--title", default=None, help="Plot title")
    mordor_parser.add_argument(
        "-F", "--delims",
        default=DEFAULT_DELIMS,
        help="Column delimiter characters (default: space and tab)",
    )
    _add_plot_options(mordor_parser)
    return parser


def _run_split(args, context: RunContext) -> None:
    try:
        config = load_config(args.config, context)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    config = config.with_overrides(
        split_field=args.split_field,
        threshold=args.threshold,
        output_fields=args.output_fields,
        variants=[HistogramVariant(v) for v in args.variants] if args.variants else None,
        outlier_policy=OutlierPolicy(args.outlier_policy) if args.outlier_policy else None,
        mordor_style=MordorStyle(args.style) if args.style else None,
        sort_order=SortOrder(args.sort) if args.sort else None,
        scatter_x=args.scatter_x,
        workunits_db=args.workunits_db,
    )
    if not config.split_field:
        print("Error: No split field specified (use -s or the config file).", file=sys.stderr)
        sys.exit(1)
    if config.workunits_db and not os.path.exists(config.workunits_db):
        print(f"Error: Work-unit database not found: {config.workunits_db}", file=sys.stderr)
        sys.exit(1)

    input_path = args.listfile or args.jsonfile
    if not os.path.exists(input_path):
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    report = run_pipeline(
        input_path,
        args.output_dir,
        config,
        list_file=args.listfile is not None,
        context=context,
    )
    print(f"\nWrote {len(report.categories)} categories to {args.output_dir}/")


def _run_mordor(args, context: RunContext) -> None:
    try:
        source = ColumnSource(
            args.infile,
            parse_column_number(args.label_column),
            parse_column_number(args.value_column),
            delims=args.delims,
            context=context,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    plot = Mordor(title=args.title)
    for label, value in source.pairs():
        plot.insert(label, value)

    if source.skipped_lines > 0:
        context.warn(f"Skipped {source.skipped_lines} lines due to errors.")
        if not context.verbose:
            print("(Use -v for more)", file=sys.stderr)

    context.log("Writing histogram data and gnuplot script...")
    plot.plot(
        args.data,
        args.gnuplot,
        output=args.outfile,
        style=MordorStyle(args.style or MordorStyle.CLEAN.value),
        order=SortOrder(args.sort or SortOrder.MEAN.value),
        context=context,
    )


def main(argv=None):
    args = _build_parser().parse_args(argv)
    context = RunContext(verbose=args.verbose)

    try:
        if args.command == "split":
            _run_split(args, context)
        elif args.command == "mordor":
            _run_mordor(args, context)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except sqlite3.Error as e:
        print(f"Error: Work-unit lookup failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
