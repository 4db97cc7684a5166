"""
Pipeline orchestrator — wires the stages together.

read → (work units) → group by category → per category: group by split
field → threshold → statistics → histograms → ridge plots → scatter plots

Categories are independent: an empty or unusable category is warned about
and skipped. Only I/O failures (unreadable input, unwritable output) abort
the run, as OSError.
"""

import os
import time
from typing import List, Optional

from .config import SplitConfig
from .constants import FIELD_CATEGORY
from .context import RunContext
from .grouping import Grouping, filter_by_threshold, group_by_field
from .models import CategoryReport, SplitReport, SummaryRecord
from .parser import UnitTable, open_summary_source
from .report_generator import (
    axis_label,
    open_category_file,
    write_averages,
    write_boxplot_script,
    write_histograms,
    write_mordor,
    write_scatter,
)
from .utils import filename_collisions, safe_filename
from .workunits import WorkUnitLookup


def run_pipeline(
    input_path: str,
    output_dir: str,
    config: SplitConfig,
    *,
    list_file: bool = False,
    context: Optional[RunContext] = None,
) -> SplitReport:
    """
    Run the full splitter over one input file.

    Args:
        input_path: JSON stream file, or list file when list_file is set
        output_dir: One subdirectory per category is created here
        config: Split field, threshold, output fields, plot options
        list_file: Treat input_path as a list of summary files
        context: Progress/warning channel (a quiet one by default)

    Returns:
        SplitReport describing what was written
    """
    if not config.split_field:
        raise ValueError("No split field specified.")
    context = context or RunContext()
    os.makedirs(output_dir, exist_ok=True)
    t_start = time.time()

    # ======================================================================
    # Stage 1: Read summaries
    # ======================================================================
    context.log("\n--- Stage 1: Read summaries ---")
    source = open_summary_source(input_path, list_file=list_file, context=context)
    records: List[SummaryRecord] = list(source.records())
    metadata = source.get_metadata()

    if config.workunits_db:
        context.log(f"  Looking up work units in {config.workunits_db}")
        with WorkUnitLookup(config.workunits_db, config.workunits_query) as lookup:
            lookup.annotate(records, context)

    units = UnitTable()
    report = SplitReport(
        records_read=metadata["records_read"],
        records_skipped=metadata["records_skipped"],
        categories=[],
        units=units.units,
    )
    if not records:
        context.warn("No summaries read. Check the input file.")
        return report

    # ======================================================================
    # Stage 2: Group by category, then by split field
    # ======================================================================
    context.log("\n--- Stage 2: Group by category ---")
    by_category = group_by_field(records, FIELD_CATEGORY, context)
    _warn_collisions(by_category, "Categories", context)

    for category in sorted(by_category):
        members = by_category.pop(category)
        context.info(f'Subdividing category "{category}"...')
        category_report = process_category(
            category, members, output_dir, config, units, context
        )
        if category_report is not None:
            report.categories.append(category_report)

    context.log(f"\n=== Done in {time.time() - t_start:.2f}s ===")
    context.log(f"  Categories written: {len(report.categories)}")
    return report


def process_category(
    category: str,
    members: List[SummaryRecord],
    output_dir: str,
    config: SplitConfig,
    units: UnitTable,
    context: RunContext,
) -> Optional[CategoryReport]:
    """Split one category and write all of its output files."""
    if not category:
        context.warn("No category given or empty string.")
        return None
    if not config.output_fields:
        context.warn("No output fields, so nothing to write")
        return None

    grouping: Grouping = group_by_field(members, config.split_field, context)
    filter_by_threshold(grouping, config.threshold, context)
    if not grouping:
        context.warn(f'No groups left in category "{category}"; nothing written.')
        return None

    _warn_collisions(grouping, f'Split keys in category "{category}"', context)
    category_dir = os.path.join(output_dir, safe_filename(category))
    report = CategoryReport(
        category=category,
        output_dir=category_dir,
        split_keys=sorted(grouping),
    )

    # Statistics and boxplots
    report.summaries = write_averages(
        grouping, category_dir, config.output_fields, units, context
    )
    for field_name in config.output_fields:
        base = f"{safe_filename(field_name)}.summary"
        with open_category_file(category_dir, f"{base}.gp") as out:
            write_boxplot_script(
                out,
                data_name=f"{base}.dat",
                title=f"{category}: {field_name} by {config.split_field}",
                ylabel=axis_label(field_name, units.get(field_name)),
                output=f"{base}.png",
                n_groups=len(grouping),
            )

    # Histograms and ridge plots share the category's bucket width per field
    for field_name in config.output_fields:
        for variant in config.variants:
            write_histograms(
                grouping, category_dir, field_name, variant,
                policy=config.outlier_policy, context=context,
            )
        bucket_size = write_mordor(
            grouping,
            category_dir,
            category,
            field_name,
            unit=units.get(field_name),
            style=config.mordor_style,
            order=config.sort_order,
            context=context,
        )
        if bucket_size is not None:
            report.bucket_sizes[field_name] = bucket_size

    # Scatter plots against the x field
    for field_name in config.output_fields:
        if field_name == config.scatter_x:
            continue
        write_scatter(
            grouping, category_dir, category, field_name, config.scatter_x,
            units=units, context=context,
        )

    report.files = sorted(os.listdir(category_dir))
    context.log(f"  {category}: {len(grouping)} groups, {len(report.files)} files in {category_dir}")
    return report


def _warn_collisions(grouping: Grouping, what: str, context: RunContext) -> None:
    for first, other, filename in filename_collisions(grouping):
        context.warn(
            f'{what}: "{first}" and "{other}" both write to "{filename}"; '
            f'"{other}" overwrites "{first}".'
        )
