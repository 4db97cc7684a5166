"""
Configuration constants for the summary splitter.

Output formatting constants are part of the contract with gnuplot: the
scripts written by report_generator.py and mordor.py index columns by
position, so column order and separators must not drift.
"""

from typing import List

# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

# What a category is called in the JSON summary data
FIELD_CATEGORY = "category"

# Field used to look up work units in the auxiliary database
FIELD_TASK_ID = "task_id"

# Fields summarised when neither the CLI nor the config names any
DEFAULT_OUTPUT_FIELDS: List[str] = ["wall_time", "cpu_time", "memory", "disk"]

# Groups with fewer members than this are dropped
DEFAULT_THRESHOLD = 1

DEFAULT_WORKUNITS_QUERY = (
    "SELECT units_total, units_processed FROM tasks WHERE task_id = ?"
)

# Column splitting for the mordor subcommand
DEFAULT_DELIMS = " \t"

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

OUTPUT_FIELD_SEPARATOR = " "
OUTPUT_RECORD_SEPARATOR = "\n"

# gnuplot treats NaN as an undefined point and skips it
PLACEHOLDER = "NaN"

# Label of the pooled pseudo-group
ALL_LABEL = "(all)"

DEFAULT_PLOT_DATA = "plot.dat"
DEFAULT_PLOT_SCRIPT = "plot.gp"
DEFAULT_PLOT_OUTPUT = "plot.png"

GNUPLOT_TERMINAL = "pngcairo size 1024,768 enhanced"

# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

# Initial capacity of an accumulator's sample buffer (doubled when full)
STATS_VALUES_INITSIZE = 512

# Whiskers reach at most this many IQRs beyond the quartiles
WHISKER_IQR_FACTOR = 1.5

# Relative widening applied to a single-valued sample's range
DEGENERATE_RANGE_EPSILON = 1e6

# ---------------------------------------------------------------------------
# Ridge ("mordor") plots
# ---------------------------------------------------------------------------

# Consecutive pooled buckets farther apart than this many bucket widths get
# synthetic rows in between
MORDOR_GAP_BUCKETS = 1.5

# Vertical distance between mountains, as a fraction of the tallest bucket
MORDOR_SPACING_FACTOR = 0.5

# Fraction of the multiplot height given to the cumulative panel
MORDOR_TOP_PANEL_HEIGHT = 0.3
