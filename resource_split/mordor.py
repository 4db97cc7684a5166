"""
Ridge ("mountain") histograms, a.k.a. Mordor plots.

Every key gets its own histogram, all sharing the bucket width derived from
the pooled "(all)" sample. The rendering has two panels: the cumulative
histogram on top, and below it one histogram per key, each lifted by a
fixed spacing times its rank so the distributions stack like a mountain
range.

Data file layout (one row per sweep position):

    x_all  freq_all  x_1 freq_1  ...  x_n freq_n

Two styles:
  - classic: pooled buckets only, padded with a zero row on both ends;
    a key without a sample in a bucket writes 0.
  - clean: each key is only drawn between its first and last bucket
    (NOT_STARTED -> STARTED -> FINISHED); outside that window it writes
    NaN so the line tapers instead of dropping to the baseline. Rows are
    synthesised across gaps wider than MORDOR_GAP_BUCKETS widths so
    distant buckets are not joined by a straight line.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, IO, List, Optional, Tuple

from .constants import (
    ALL_LABEL,
    DEFAULT_PLOT_OUTPUT,
    GNUPLOT_TERMINAL,
    MORDOR_GAP_BUCKETS,
    MORDOR_SPACING_FACTOR,
    MORDOR_TOP_PANEL_HEIGHT,
)
from .context import RunContext
from .grouping import sort_keys
from .histogram import Histogram
from .models import MordorStyle, OutlierPolicy, SeriesState, SortOrder
from .stats import Accumulator
from .utils import format_number, gnuplot_quote, write_comment, write_row

# (x, frequency) of one series in one row; (None, None) is not plotted
Cell = Tuple[Optional[float], Optional[int]]


@dataclass
class Mountain:
    """One key's samples and its histogram at the plot's bucket width."""
    stats: Accumulator = field(default_factory=Accumulator)
    hist: Optional[Histogram] = None
    dirty: bool = True


class Mordor:
    """Collects (key, value) samples and renders them as a ridge plot."""

    def __init__(self, title: Optional[str] = None, xlabel: Optional[str] = None):
        self.title = title
        self.xlabel = xlabel
        self.mountains: Dict[str, Mountain] = {}
        self.cumulative = Accumulator()
        self.cumulative_hist: Optional[Histogram] = None
        self.bucket_size = 0.0
        self.dirty = True

    def __len__(self) -> int:
        return len(self.mountains)

    def insert(self, key: str, value: float) -> None:
        value = float(value)
        if math.isnan(value) or math.isinf(value):
            return
        mountain = self.mountains.get(key)
        if mountain is None:
            mountain = self.mountains[key] = Mountain()
        mountain.stats.insert(value)
        mountain.dirty = True
        self.cumulative.insert(value)
        self.dirty = True

    # -- histograms --------------------------------------------------------

    def build_histograms(self) -> None:
        """Rebuild the histograms that are out of date."""
        if not self.dirty:
            return
        self.bucket_size = self.cumulative.ideal_bucket_size()
        self.cumulative_hist = self.cumulative.build_histogram(
            self.bucket_size, OutlierPolicy.KEEP
        )
        for mountain in self.mountains.values():
            if (
                not mountain.dirty
                and mountain.hist is not None
                and mountain.hist.bucket_size == self.bucket_size
            ):
                continue
            mountain.hist = mountain.stats.build_histogram(self.bucket_size, OutlierPolicy.KEEP)
            mountain.dirty = False
        self.dirty = False

    def sorted_keys(self, order: SortOrder = SortOrder.MEAN) -> List[str]:
        return sort_keys(
            self.mountains.keys(),
            order,
            mean_of=lambda key: self.mountains[key].stats.mean(),
        )

    # -- rows --------------------------------------------------------------

    def _positions(self, style: MordorStyle) -> List[float]:
        """Sweep positions: pooled buckets, padding, and (clean) gap fillers."""
        w = self.bucket_size
        buckets = self.cumulative_hist.buckets()
        positions = [buckets[0] - w]
        for prev, current in zip(buckets, buckets[1:]):
            positions.append(prev)
            if style is MordorStyle.CLEAN and current - prev > MORDOR_GAP_BUCKETS * w:
                # Synthetic rows on the shared bucket grid
                first = int(round(prev / w)) + 1
                last = int(round(current / w))
                positions.extend(i * w for i in range(first, last))
        positions.append(buckets[-1])
        positions.append(buckets[-1] + w)
        return positions

    def rows(
        self,
        style: MordorStyle = MordorStyle.CLEAN,
        order: SortOrder = SortOrder.MEAN,
    ) -> List[List[Cell]]:
        """
        Table backing the data file: one list of cells per row, the pooled
        series first, then each key in display order.
        """
        self.build_histograms()
        if self.cumulative_hist is None:
            return []
        keys = self.sorted_keys(order)
        hists = [self.mountains[key].hist for key in keys]
        positions = self._positions(style)
        padding = {positions[0], positions[-1]}

        rows: List[List[Cell]] = []
        if style is MordorStyle.CLASSIC:
            for x in positions:
                if x in padding:
                    rows.append([(x, 0)] + [(x, 0) for _ in hists])
                else:
                    rows.append(
                        [(x, self.cumulative_hist.count(x))]
                        + [(x, h.count(x)) for h in hists]
                    )
            return rows

        half = self.bucket_size / 2.0
        states = [SeriesState.NOT_STARTED] * len(hists)
        for x in positions:
            row: List[Cell] = [(x, 0 if x in padding else self.cumulative_hist.count(x))]
            for i, hist in enumerate(hists):
                if states[i] is SeriesState.NOT_STARTED and x >= hist.min_bucket() - half:
                    states[i] = SeriesState.STARTED
                if states[i] is SeriesState.STARTED and x > hist.max_bucket() + half:
                    states[i] = SeriesState.FINISHED
                if states[i] is SeriesState.STARTED:
                    row.append((x, hist.count(x)))
                else:
                    row.append((None, None))
            rows.append(row)
        return rows

    # -- output ------------------------------------------------------------

    def write_datafile(
        self,
        out: IO[str],
        style: MordorStyle = MordorStyle.CLEAN,
        order: SortOrder = SortOrder.MEAN,
    ) -> int:
        """Write the histogram table. Returns the number of data rows."""
        rows = self.rows(style, order)
        write_comment(
            out,
            [format_number(self.bucket_size, 10), ALL_LABEL] + self.sorted_keys(order),
        )
        for row in rows:
            cells: List[str] = []
            for x, freq in row:
                cells.append(format_number(x, 10))
                cells.append(format_number(freq))
            write_row(out, cells)
        return len(rows)

    def spacing(self) -> float:
        """Vertical distance between consecutive mountains."""
        self.build_histograms()
        tallest = max(
            (m.hist.max_count() for m in self.mountains.values() if m.hist is not None),
            default=0,
        )
        return MORDOR_SPACING_FACTOR * tallest if tallest > 0 else 1.0

    def write_gnuplot(
        self,
        out: IO[str],
        data_name: str,
        output: str = DEFAULT_PLOT_OUTPUT,
        order: SortOrder = SortOrder.MEAN,
    ) -> None:
        """Write a gnuplot script drawing data_name as a two-panel ridge plot."""
        self.build_histograms()
        keys = self.sorted_keys(order)
        spacing = self.spacing()
        tallest = max(
            (self.mountains[k].hist.max_count() for k in keys if self.mountains[k].hist is not None),
            default=1,
        )
        data = gnuplot_quote(data_name)
        top_height = MORDOR_TOP_PANEL_HEIGHT
        bottom_height = 1.0 - top_height

        lines = [
            f"set terminal {GNUPLOT_TERMINAL}",
            f"set output {gnuplot_quote(output)}",
            'set datafile missing "NaN"',
            "set multiplot",
            "unset key",
            "set border 3",
            "set tics nomirror",
            "",
            "# Cumulative histogram",
            f"set size 1,{top_height:g}",
            f"set origin 0,{bottom_height:g}",
            "set lmargin 12",
            "set format x \"\"",
            'set ylabel "Frequency"',
        ]
        if self.title:
            lines.append(f"set title {gnuplot_quote(self.title)}")
        lines += [
            f"set boxwidth {format_number(self.bucket_size, 10)} absolute",
            'set style fill solid 0.5 border lc rgb "black"',
            f"plot {data} using ($1 + {format_number(self.bucket_size / 2.0, 10)}):2 with boxes lc rgb \"#4a6fa5\"",
            "",
            f"# One mountain per key, {len(keys)} keys",
            f"set size 1,{bottom_height:g}",
            "set origin 0,0",
            "unset title",
            "set format x \"%g\"",
            "unset ylabel",
        ]
        if self.xlabel:
            lines.append(f"set xlabel {gnuplot_quote(self.xlabel)}")
        ytics = ", ".join(
            f"{gnuplot_quote(key)} {format_number(rank * spacing, 10)}"
            for rank, key in enumerate(keys)
        )
        lines.append(f"set ytics ({ytics})" if ytics else "unset ytics")
        lines.append(
            f"set yrange [{format_number(-0.05 * spacing, 10)}:"
            f"{format_number(max(len(keys) - 1, 0) * spacing + 1.1 * tallest, 10)}]"
        )

        # Back to front: the highest mountain is drawn first so lower ones cover it
        plots: List[str] = []
        for rank in range(len(keys) - 1, -1, -1):
            x_col = 3 + 2 * rank
            y_col = x_col + 1
            offset = format_number(rank * spacing, 10)
            plots.append(
                f"{data} using {x_col}:(${y_col} + {offset}) "
                f"with filledcurves y1={offset} fc rgb \"white\""
            )
            plots.append(
                f"{data} using {x_col}:(${y_col} + {offset}) with lines lc rgb \"black\""
            )
        if plots:
            lines.append("plot " + ", \\\n     ".join(plots))
        lines += ["", "unset multiplot", ""]
        out.write("\n".join(lines))

    def plot(
        self,
        data_path: str,
        script_path: str,
        *,
        data_name: Optional[str] = None,
        output: str = DEFAULT_PLOT_OUTPUT,
        style: MordorStyle = MordorStyle.CLEAN,
        order: SortOrder = SortOrder.MEAN,
        context: Optional[RunContext] = None,
    ) -> bool:
        """
        Write the data file and the gnuplot script.

        data_name is how the script refers to the data file (defaults to
        data_path). Returns False, writing nothing, when no value was inserted.
        """
        context = context or RunContext()
        if not self.mountains:
            context.warn(f"No values to plot for {self.title or script_path}; nothing written.")
            return False
        with open(data_path, "w") as data_file:
            n_rows = self.write_datafile(data_file, style, order)
        with open(script_path, "w") as script_file:
            self.write_gnuplot(script_file, data_name or data_path, output, order)
        context.log(
            f"  Ridge plot: {script_path} ({len(self.mountains)} keys, {n_rows} rows, "
            f"bucket size {self.bucket_size:g})"
        )
        return True
