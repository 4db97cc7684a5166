"""
Grouping of summaries by the string value of a JSON field.

The pipeline applies this twice: once by category, then, inside each
category, by the user's split field (hostname, ...). Groups below the
threshold are filtered out before any statistics are computed.
"""

import math
from typing import Callable, Dict, Iterable, List, Optional

from .context import RunContext
from .models import SortOrder, SummaryRecord

Grouping = Dict[str, List[SummaryRecord]]


def group_by_field(
    records: Iterable[SummaryRecord],
    field: str,
    context: Optional[RunContext] = None,
) -> Grouping:
    """
    Partition records by the string value of field.

    Records without the field, or whose value is not a string, are dropped
    and reported as a warning. Member order within a group follows input
    order.
    """
    context = context or RunContext()
    grouped: Grouping = {}
    total = 0
    dropped = 0

    for record in records:
        total += 1
        value = record.data.get(field) if isinstance(record.data, dict) else None
        if not isinstance(value, str):
            dropped += 1
            continue
        grouped.setdefault(value, []).append(record)

    if dropped > 0:
        context.count("dropped_records", dropped)
        context.warn(
            f'Dropped {dropped} of {total} summaries when grouping by field "{field}".'
        )
    context.info(f'Split into {len(grouped)} groups by field "{field}".')
    return grouped


def filter_by_threshold(
    grouping: Grouping,
    threshold: int,
    context: Optional[RunContext] = None,
) -> int:
    """Remove (in place) every group with fewer than threshold members."""
    context = context or RunContext()
    sparse = [key for key, members in grouping.items() if len(members) < threshold]
    for key in sparse:
        del grouping[key]
    if sparse:
        context.info(
            f"Filtered out {len(sparse)} groups with fewer than {threshold} matches."
        )
    return len(sparse)


def sort_keys(
    keys: Iterable[str],
    order: SortOrder,
    mean_of: Optional[Callable[[str], float]] = None,
) -> List[str]:
    """
    Display order for split keys.

    MEAN puts groups with similar values next to each other; ties (and NaN
    means, which sort last) keep alphabetical order.
    """
    ordered = sorted(keys)
    if order is SortOrder.MEAN and mean_of is not None:
        def _mean_key(key: str):
            mean = mean_of(key)
            if math.isnan(mean):
                return (1, 0.0)
            return (0, mean)
        ordered.sort(key=_mean_key)
    return ordered
