"""
Formatting helpers shared by the data-file writers.

Numbers are printed like C's %g so the files read the same as the ones the
gnuplot scripts were written against. NaN and missing values become the
PLACEHOLDER token, which gnuplot skips.
"""

import math
from typing import IO, Dict, Iterable, List, Optional, Tuple

from .constants import OUTPUT_FIELD_SEPARATOR, OUTPUT_RECORD_SEPARATOR, PLACEHOLDER


def format_number(value: Optional[float], precision: int = 6) -> str:
    """
    Format a number like printf("%.<precision>g").

    Examples:
        >>> format_number(4.7)
        '4.7'
        >>> format_number(1234567.0)
        '1.23457e+06'
        >>> format_number(float("nan"))
        'NaN'
    """
    if value is None:
        return PLACEHOLDER
    if isinstance(value, float) and math.isnan(value):
        return PLACEHOLDER
    if isinstance(value, int):
        return str(value)
    return f"{value:.{precision}g}"


def write_row(out: IO[str], fields: Iterable[str]) -> None:
    out.write(OUTPUT_FIELD_SEPARATOR.join(fields) + OUTPUT_RECORD_SEPARATOR)


def write_comment(out: IO[str], fields: Iterable[str]) -> None:
    out.write("# " + OUTPUT_FIELD_SEPARATOR.join(fields) + OUTPUT_RECORD_SEPARATOR)


def gnuplot_quote(text: str) -> str:
    """Double-quoted gnuplot string literal."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_label(label: str) -> str:
    """A label as one whitespace-separated data column."""
    if not label or any(c.isspace() for c in label) or '"' in label:
        return gnuplot_quote(label)
    return label


def safe_filename(name: str) -> str:
    """A split key or field name usable as a single path component."""
    cleaned = name.replace("/", "_").replace("\\", "_").replace("\0", "_")
    if cleaned in ("", ".", ".."):
        cleaned = f"_{cleaned}_"
    return cleaned


def filename_collisions(names: Iterable[str]) -> List[Tuple[str, str, str]]:
    """
    (first, other, filename) for every name whose safe_filename() was
    already taken by an earlier name, in sorted order.

    Examples:
        >>> filename_collisions(["a/b", "a_b", "c"])
        [('a/b', 'a_b', 'a_b')]
    """
    owners: Dict[str, str] = {}
    collisions: List[Tuple[str, str, str]] = []
    for name in sorted(names):
        filename = safe_filename(name)
        if filename in owners:
            collisions.append((owners[filename], name, filename))
        else:
            owners[filename] = name
    return collisions
