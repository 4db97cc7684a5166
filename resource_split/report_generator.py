"""
Per-category output files.

For a category split into groups, writes into the category directory:
  1. <split_key>.dat:                raw field values, one row per summary
  2. <field>.summary.dat, .gp:      per-group statistics and a boxplot script
  3. <key>.<field>[.<variant>].hist: sparse histograms at a shared width
  4. <field>.scatter.dat, .gp:      field vs. an x field, one fit per group

The ridge plots (<field>.mordor.*) are written by mordor.Mordor.

All data files use OUTPUT_FIELD_SEPARATOR between fields and
OUTPUT_RECORD_SEPARATOR between records, with a "#" comment header.
"""

import os
from typing import Dict, IO, List, Optional

from .constants import GNUPLOT_TERMINAL
from .context import RunContext
from .grouping import Grouping
from .histogram import Histogram
from .models import (
    GroupSummary,
    HistogramVariant,
    MordorStyle,
    Ok,
    OutlierPolicy,
    SortOrder,
    SummaryRecord,
)
from .mordor import Mordor
from .parser import UnitTable, apply_variant, extract_value
from .stats import Accumulator, PairAccumulator
from .utils import (
    format_label,
    format_number,
    gnuplot_quote,
    safe_filename,
    write_comment,
    write_row,
)

SUMMARY_COLUMNS = [
    "key", "count", "mean", "stddev", "q1", "median", "q3",
    "whisker_low", "whisker_high", "min", "max",
]


def open_category_file(category_dir: str, filename: str) -> IO[str]:
    """Open filename for writing inside category_dir, creating the directory."""
    os.makedirs(category_dir, exist_ok=True)
    return open(os.path.join(category_dir, filename), "w")


def axis_label(field_name: str, unit: Optional[str]) -> str:
    return f"{field_name} ({unit})" if unit else field_name


def field_values(
    records: List[SummaryRecord],
    field_name: str,
    variant: HistogramVariant = HistogramVariant.VALUE,
) -> List[float]:
    """Usable values of field_name across records, transformed by variant."""
    values: List[float] = []
    for record in records:
        result = extract_value(record, field_name)
        if not isinstance(result, Ok):
            continue
        value = apply_variant(record, result.value, variant)
        if value is not None:
            values.append(value)
    return values


# ---------------------------------------------------------------------------
# Values and per-group statistics
# ---------------------------------------------------------------------------

def summarize(key: str, count: int, stats: Accumulator) -> GroupSummary:
    return GroupSummary(
        key=key,
        count=count,
        mean=stats.mean(),
        stddev=stats.stddev(),
        q1=stats.q1(),
        median=stats.median(),
        q3=stats.q3(),
        whisker_low=stats.whisker_low(),
        whisker_high=stats.whisker_high(),
        minimum=stats.minimum(),
        maximum=stats.maximum(),
    )


def write_summary_row(out: IO[str], row: GroupSummary) -> None:
    write_row(out, [format_label(row.key), str(row.count)] + [
        format_number(v) for v in (
            row.mean, row.stddev, row.q1, row.median, row.q3,
            row.whisker_low, row.whisker_high, row.minimum, row.maximum,
        )
    ])


def write_averages(
    grouping: Grouping,
    category_dir: str,
    fields: List[str],
    units: UnitTable,
    context: Optional[RunContext] = None,
) -> Dict[str, List[GroupSummary]]:
    """
    Dump every group's values to <split_key>.dat and its statistics to
    <field>.summary.dat, one row per split key in alphabetical order.

    One accumulator per field is reused for every split key (reset after
    each key's row is written).
    """
    context = context or RunContext()
    summaries: Dict[str, List[GroupSummary]] = {f: [] for f in fields}
    stats = {f: Accumulator() for f in fields}
    outfiles = {f: open_category_file(category_dir, f"{safe_filename(f)}.summary.dat") for f in fields}

    try:
        for out in outfiles.values():
            write_comment(out, SUMMARY_COLUMNS)

        for split_key in sorted(grouping):
            members = grouping[split_key]
            with open_category_file(category_dir, f"{safe_filename(split_key)}.dat") as values_file:
                write_comment(values_file, fields)
                for record in members:
                    cells: List[str] = []
                    for f in fields:
                        result = extract_value(record, f)
                        if not isinstance(result, Ok):
                            cells.append(format_number(None))
                            continue
                        units.observe(f, result.unit, context)
                        cells.append(format_number(result.value))
                        stats[f].insert(result.value)
                    write_row(values_file, cells)

            for f in fields:
                row = summarize(split_key, len(members), stats[f])
                write_summary_row(outfiles[f], row)
                summaries[f].append(row)
                stats[f].reset()
    finally:
        for out in outfiles.values():
            out.close()

    context.log(f"  Wrote statistics for {len(grouping)} groups x {len(fields)} fields")
    return summaries


def write_boxplot_script(
    out: IO[str],
    data_name: str,
    title: str,
    ylabel: str,
    output: str,
    n_groups: int,
) -> None:
    """
    gnuplot candlestick boxplot over a <field>.summary.dat table.

    Box spans Q1..Q3, whiskers whisker_low..whisker_high, with a median bar.
    """
    data = gnuplot_quote(data_name)
    lines = [
        f"set terminal {GNUPLOT_TERMINAL}",
        f"set output {gnuplot_quote(output)}",
        'set datafile missing "NaN"',
        f"set title {gnuplot_quote(title)}",
        f"set ylabel {gnuplot_quote(ylabel)}",
        "unset key",
        "set border 3",
        "set tics nomirror",
        "set xtics rotate by -45",
        f"set xrange [-0.5:{n_groups - 0.5:g}]",
        "set boxwidth 0.5",
        "set style fill empty",
        f"plot {data} using 0:5:8:9:7:xticlabels(1) with candlesticks whiskerbars 0.5 lc rgb \"black\", \\",
        f"     {data} using 0:6:6:6:6 with candlesticks lw 2 lc rgb \"black\"",
        "",
    ]
    out.write("\n".join(lines))


# ---------------------------------------------------------------------------
# Histograms
# ---------------------------------------------------------------------------

def histogram_filename(split_key: str, field_name: str, variant: HistogramVariant) -> str:
    suffix = "" if variant is HistogramVariant.VALUE else f".{variant.value}"
    return f"{safe_filename(split_key)}.{safe_filename(field_name)}{suffix}.hist"


def write_histogram_table(out: IO[str], hist: Histogram) -> None:
    write_comment(out, ["bucket_size", format_number(hist.bucket_size, 10)])
    write_comment(out, ["bucket_start", "frequency"])
    for start, count in hist.items():
        write_row(out, [format_number(start, 10), str(count)])


def write_histograms(
    grouping: Grouping,
    category_dir: str,
    field_name: str,
    variant: HistogramVariant = HistogramVariant.VALUE,
    policy: OutlierPolicy = OutlierPolicy.KEEP,
    context: Optional[RunContext] = None,
) -> Optional[float]:
    """
    Write one .hist file per split key for field_name.

    The width comes from the pooled sample of the whole category so every
    key's buckets line up. Returns that width, or None when the category has
    no usable value.
    """
    context = context or RunContext()
    pooled = Accumulator()
    per_key: Dict[str, Accumulator] = {}
    for split_key in sorted(grouping):
        stats = Accumulator(field_values(grouping[split_key], field_name, variant))
        pooled.merge(stats)
        per_key[split_key] = stats

    if pooled.count == 0:
        context.log(f"  No {variant.value} values for {field_name}; no histograms")
        return None

    bucket_size = pooled.ideal_bucket_size()
    for split_key, stats in per_key.items():
        hist = stats.build_histogram(bucket_size, policy)
        if hist is None:
            continue
        with open_category_file(category_dir, histogram_filename(split_key, field_name, variant)) as out:
            write_histogram_table(out, hist)
    return bucket_size


# ---------------------------------------------------------------------------
# Ridge plots
# ---------------------------------------------------------------------------

def write_mordor(
    grouping: Grouping,
    category_dir: str,
    category: str,
    field_name: str,
    unit: Optional[str] = None,
    style: MordorStyle = MordorStyle.CLEAN,
    order: SortOrder = SortOrder.MEAN,
    context: Optional[RunContext] = None,
) -> Optional[float]:
    """Ridge plot of field_name across split keys. Returns the bucket width used."""
    plot = Mordor(title=f"{category}: {field_name}", xlabel=axis_label(field_name, unit))
    for split_key in grouping:
        for value in field_values(grouping[split_key], field_name):
            plot.insert(split_key, value)

    base = safe_filename(field_name)
    os.makedirs(category_dir, exist_ok=True)
    written = plot.plot(
        os.path.join(category_dir, f"{base}.mordor.dat"),
        os.path.join(category_dir, f"{base}.mordor.gp"),
        data_name=f"{base}.mordor.dat",
        output=f"{base}.mordor.png",
        style=style,
        order=order,
        context=context,
    )
    return plot.bucket_size if written else None


# ---------------------------------------------------------------------------
# Scatter / regression
# ---------------------------------------------------------------------------

def write_scatter(
    grouping: Grouping,
    category_dir: str,
    category: str,
    field_name: str,
    x_field: str,
    units: Optional[UnitTable] = None,
    context: Optional[RunContext] = None,
) -> bool:
    """
    Scatter of field_name against x_field with one fitted line per split key.

    Data is written as one gnuplot index block per key that has points
    (blocks separated by two blank lines). Keys whose fit fails (a single
    point, constant x) get a horizontal line at their mean instead.
    """
    context = context or RunContext()
    units = units or UnitTable()
    base = f"{safe_filename(field_name)}.scatter"

    blocks = []
    for split_key in sorted(grouping):
        pairs = PairAccumulator()
        points = []
        for record in grouping[split_key]:
            x = extract_value(record, x_field)
            y = extract_value(record, field_name)
            if isinstance(x, Ok) and isinstance(y, Ok):
                pairs.insert(x.value, y.value)
                points.append((x.value, y.value))
        if pairs.count == 0:
            continue
        fit = pairs.linear_regression()
        if fit is not None:
            line = f"{format_number(fit.slope, 10)}*x + {format_number(fit.intercept, 10)}"
        else:
            line = format_number(pairs.mean_y(), 10)
            context.log(f"  No fit for {field_name} vs {x_field} on {split_key}; using mean")
        blocks.append((split_key, points, line))

    if not blocks:
        context.log(f"  No {field_name}/{x_field} pairs in {category}; no scatter plot")
        return False

    with open_category_file(category_dir, f"{base}.dat") as out:
        write_comment(out, [x_field, field_name])
        for index, (split_key, points, _line) in enumerate(blocks):
            if index > 0:
                out.write("\n\n")
            write_comment(out, [format_label(split_key)])
            for x, y in points:
                write_row(out, [format_number(x), format_number(y)])

    data = gnuplot_quote(f"{base}.dat")
    lines = [
        f"set terminal {GNUPLOT_TERMINAL}",
        f"set output {gnuplot_quote(base + '.png')}",
        f"set title {gnuplot_quote(f'{category}: {field_name} vs {x_field}')}",
        f"set xlabel {gnuplot_quote(axis_label(x_field, units.get(x_field)))}",
        f"set ylabel {gnuplot_quote(axis_label(field_name, units.get(field_name)))}",
        "set key outside right",
        "set border 3",
        "set tics nomirror",
    ]
    plots: List[str] = []
    for index, (split_key, _points, line) in enumerate(blocks):
        lines.append(f"f{index}(x) = {line}")
        plots.append(
            f"{data} index {index} using 1:2 with points lc {index + 1} "
            f"title {gnuplot_quote(split_key)}"
        )
        plots.append(f"f{index}(x) with lines lc {index + 1} notitle")
    lines.append("plot " + ", \\\n     ".join(plots))
    lines.append("")

    with open_category_file(category_dir, f"{base}.gp") as out:
        out.write("\n".join(lines))
    return True
