"""
Data models for the summary splitter.

Records flow through the pipeline as SummaryRecord; everything the writers
produce is reported back as CategoryReport and SplitReport.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class OutlierPolicy(Enum):
    """Whether values beyond the boxplot whiskers are binned."""
    KEEP = "keep"
    DISCARD = "discard"


class HistogramVariant(Enum):
    """Transform applied to a field's value before it is histogrammed."""
    VALUE = "value"                 # raw value
    PER_UNIT = "per_unit"           # value / work units processed
    PER_WALLTIME = "per_walltime"   # value / wall_time of the same record


class MordorStyle(Enum):
    CLASSIC = "classic"
    CLEAN = "clean"


class SortOrder(Enum):
    MEAN = "mean"
    ALPHABETICAL = "alphabetical"


class SeriesState(Enum):
    """Sweep state of one mountain while writing a clean-style data file."""
    NOT_STARTED = 0
    STARTED = 1
    FINISHED = 2


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------

@dataclass
class SummaryRecord:
    """One resource summary as parsed from JSON."""
    data: Dict                          # the parsed JSON object
    filename: Optional[str] = None      # source file (list-file input only)
    units_total: int = 0                # filled by the work-unit lookup
    units_processed: int = 0


@dataclass(frozen=True)
class Ok:
    """A field value extracted from a record."""
    value: float
    unit: Optional[str] = None


@dataclass(frozen=True)
class Skip:
    """Why a field could not be extracted from a record."""
    reason: str


FieldResult = Union[Ok, Skip]


# ---------------------------------------------------------------------------
# Statistics results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegressionFit:
    """Least-squares line y = slope * x + intercept."""
    slope: float
    intercept: float


@dataclass
class GroupSummary:
    """Descriptive statistics of one field within one split group."""
    key: str
    count: int                      # records in the group
    mean: float
    stddev: float
    q1: float
    median: float
    q3: float
    whisker_low: float
    whisker_high: float
    minimum: float
    maximum: float


# ---------------------------------------------------------------------------
# Pipeline output
# ---------------------------------------------------------------------------

@dataclass
class CategoryReport:
    """What was written for one category."""
    category: str
    output_dir: str
    split_keys: List[str] = field(default_factory=list)
    summaries: Dict[str, List[GroupSummary]] = field(default_factory=dict)  # field -> rows
    bucket_sizes: Dict[str, float] = field(default_factory=dict)            # field -> width
    files: List[str] = field(default_factory=list)


@dataclass
class SplitReport:
    """Complete output from one run of the splitter."""
    records_read: int
    records_skipped: int
    categories: List[CategoryReport]
    units: Dict[str, str]           # field -> unit of record
