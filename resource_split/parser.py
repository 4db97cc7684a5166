"""
Input parsing: summary sources, field extraction and units of measure.

Three sources share the SummarySource protocol style of streaming records:
  - JsonStreamSource: one file holding concatenated JSON objects
  - ListFileSource:   a file naming one JSON summary file per line
  - ColumnSource:     delimited text with a label and a value column
                      (input of the mordor subcommand)

Malformed input is counted and skipped, never fatal. Failing to open the
top-level input file is fatal and raises OSError.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

from .constants import DEFAULT_DELIMS
from .context import RunContext
from .models import FieldResult, HistogramVariant, Ok, Skip, SummaryRecord


# ---------------------------------------------------------------------------
# SummarySource protocol
# ---------------------------------------------------------------------------

class SummarySource(Protocol):
    """Protocol for streaming summary records from any source."""

    def records(self) -> Iterator[SummaryRecord]:
        """Yield parsed summaries."""
        ...

    def get_metadata(self) -> dict:
        """Return source-specific metadata (counts of read/skipped items)."""
        ...


# ---------------------------------------------------------------------------
# JSON stream
# ---------------------------------------------------------------------------

_WHITESPACE = re.compile(r"\s*")


class JsonStreamSource:
    """
    Reads a file of JSON objects written back to back (newline-delimited or
    not). A value that fails to parse is skipped up to the next line break.
    """

    def __init__(self, path: str, context: Optional[RunContext] = None):
        self.path = path
        self.context = context or RunContext()
        self._metadata: Dict = {
            "source_type": "json_stream",
            "path": path,
            "records_read": 0,
            "records_skipped": 0,
        }

    def records(self) -> Iterator[SummaryRecord]:
        text = self._read_text()
        self.context.info(f'Reading JSON objects from "{self.path}"')

        decoder = json.JSONDecoder()
        pos = _WHITESPACE.match(text, 0).end()
        while pos < len(text):
            try:
                obj, end = decoder.raw_decode(text, pos)
            except json.JSONDecodeError as e:
                skipped = self._skip()
                self.context.log(f"  Skipping malformed JSON at offset {pos}: {e.msg} ({skipped} skipped so far)")
                newline = text.find("\n", pos)
                if newline < 0:
                    break
                pos = _WHITESPACE.match(text, newline).end()
                continue
            pos = _WHITESPACE.match(text, end).end()

            if not isinstance(obj, dict):
                skipped = self._skip()
                self.context.log(f"  Skipping non-object JSON value ({skipped} skipped so far)")
                continue
            self._metadata["records_read"] += 1
            yield SummaryRecord(data=obj)

        if self._metadata["records_skipped"] > 0:
            self.context.warn(
                f"Skipped {self._metadata['records_skipped']} malformed JSON values "
                f'in "{self.path}".'
            )
        self.context.info(f"Read {self._metadata['records_read']} JSON objects.")

    def _read_text(self) -> str:
        """File contents with every line that is not valid UTF-8 blanked out."""
        lines: List[str] = []
        with open(self.path, "rb") as f:
            for line_num, raw in enumerate(f, start=1):
                try:
                    lines.append(raw.decode("utf-8"))
                except UnicodeDecodeError as e:
                    skipped = self._skip()
                    self.context.log(
                        f"  Skipping undecodable line {line_num}: {e.reason} ({skipped} skipped so far)"
                    )
                    lines.append("\n")
        return "".join(lines)

    def _skip(self) -> int:
        self._metadata["records_skipped"] += 1
        return self._metadata["records_skipped"]

    def get_metadata(self) -> dict:
        return dict(self._metadata)


# ---------------------------------------------------------------------------
# List of summary files
# ---------------------------------------------------------------------------

class ListFileSource:
    """Reads a file listing one JSON summary file per line."""

    def __init__(self, path: str, context: Optional[RunContext] = None):
        self.path = path
        self.context = context or RunContext()
        self._metadata: Dict = {
            "source_type": "list_file",
            "path": path,
            "records_read": 0,
            "records_skipped": 0,
        }

    def records(self) -> Iterator[SummaryRecord]:
        with open(self.path, "r", encoding="utf-8") as listfile:
            filenames = [line.rstrip("\n") for line in listfile]

        for filename in filenames:
            if not filename.strip():
                continue
            data = self._load(filename)
            if not isinstance(data, dict):
                self._metadata["records_skipped"] += 1
                continue
            self._metadata["records_read"] += 1
            yield SummaryRecord(data=data, filename=filename)

        skipped = self._metadata["records_skipped"]
        if skipped > 0:
            self.context.warn(
                f"Skipped {skipped} summaries because file was not parsed or no JSON found."
            )
        self.context.info(f"Successfully read {self._metadata['records_read']} summary files.")

    def _load(self, filename: str):
        try:
            with open(filename, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            self.context.log(f"  Cannot parse summary {filename}: {e}")
            return None

    def get_metadata(self) -> dict:
        return dict(self._metadata)


def open_summary_source(
    path: str,
    *,
    list_file: bool = False,
    context: Optional[RunContext] = None,
) -> SummarySource:
    """Factory: pick the source type for the given input file."""
    if list_file:
        return ListFileSource(path, context=context)
    return JsonStreamSource(path, context=context)


# ---------------------------------------------------------------------------
# Delimited columns (mordor input)
# ---------------------------------------------------------------------------

def parse_column_number(text: str) -> int:
    """Parse a 1-based column number given on the command line."""
    try:
        value = int(text)
    except ValueError:
        raise ValueError(f"Invalid value: {text}") from None
    return value


class ColumnSource:
    """
    Streams (label, value) pairs from delimited text.

    Lines that are empty, too short, or carry a value that does not parse
    as a finite number are skipped and counted.
    """

    def __init__(
        self,
        path: str,
        label_column: int,
        value_column: int,
        *,
        delims: str = DEFAULT_DELIMS,
        context: Optional[RunContext] = None,
    ):
        if label_column == value_column:
            raise ValueError("Labels and values must be different columns")
        if label_column <= 0:
            raise ValueError(f"Label column must be positive: {label_column}")
        if value_column <= 0:
            raise ValueError(f"Value column must be positive: {value_column}")
        self.path = path
        self.label_column = label_column
        self.value_column = value_column
        self.context = context or RunContext()
        self._split = re.compile("[" + re.escape(delims) + "]+")
        self.skipped_lines = 0

    def pairs(self) -> Iterator[Tuple[str, float]]:
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            for line_num, line in enumerate(f, start=1):
                tokens = [t for t in self._split.split(line.rstrip("\r\n")) if t]
                result = self._parse_tokens(tokens)
                if isinstance(result, Skip):
                    self.skipped_lines += 1
                    self.context.log(f"Skipping line {line_num} {result.reason}")
                    continue
                yield result

    def _parse_tokens(self, tokens: List[str]):
        if not tokens:
            return Skip("(empty)")
        need = max(self.label_column, self.value_column)
        if len(tokens) < self.label_column:
            return Skip(f"without a label ({len(tokens)} columns, need {self.label_column})")
        if len(tokens) < self.value_column:
            return Skip(f"without a value ({len(tokens)} columns, need {need})")
        label = tokens[self.label_column - 1]
        token = tokens[self.value_column - 1]
        try:
            value = float(token)
        except ValueError:
            return Skip(f"with invalid value: {token}")
        if not math.isfinite(value):
            return Skip(f"with value out of range: {token}")
        return label, value


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------

def extract_value(record: SummaryRecord, field_name: str) -> FieldResult:
    """
    Numeric value of field_name in record.

    Accepts a bare number or a [number, "unit"] array; anything else is a
    Skip with the reason.
    """
    raw = record.data.get(field_name) if isinstance(record.data, dict) else None
    if raw is None:
        return Skip(f'missing field "{field_name}"')

    unit = None
    if isinstance(raw, list):
        if not raw:
            return Skip(f'empty array in field "{field_name}"')
        if len(raw) > 1 and isinstance(raw[1], str):
            unit = raw[1]
        raw = raw[0]

    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return Skip(f'non-numeric field "{field_name}"')
    return Ok(float(raw), unit)


def apply_variant(
    record: SummaryRecord,
    value: float,
    variant: HistogramVariant,
) -> Optional[float]:
    """Transform value for a histogram variant; None when the divisor is unusable."""
    if variant is HistogramVariant.VALUE:
        return value
    if variant is HistogramVariant.PER_UNIT:
        if record.units_processed <= 0:
            return None
        return value / record.units_processed
    if variant is HistogramVariant.PER_WALLTIME:
        wall = extract_value(record, "wall_time")
        if isinstance(wall, Skip) or wall.value == 0:
            return None
        return value / wall.value
    raise ValueError(f"Unknown histogram variant: {variant}")


# ---------------------------------------------------------------------------
# Units of measure
# ---------------------------------------------------------------------------

@dataclass
class UnitTable:
    """First unit seen for each field; later disagreements are warned once."""
    units: Dict[str, str] = field(default_factory=dict)

    def observe(self, field_name: str, unit: Optional[str], context: RunContext) -> None:
        if unit is None:
            return
        known = self.units.get(field_name)
        if known is None:
            self.units[field_name] = unit
            return
        if known != unit:
            context.warn_once(
                f"units:{field_name}",
                f'Inconsistent units for field "{field_name}": '
                f'"{unit}" differs from "{known}"; keeping "{known}".',
            )

    def get(self, field_name: str) -> Optional[str]:
        return self.units.get(field_name)
