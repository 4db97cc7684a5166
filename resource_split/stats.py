"""
Sample accumulators: running moments plus order statistics.

Accumulator keeps every inserted sample (numpy buffer, doubled when full) so
that median, quartiles and whiskers can be computed exactly. Sorting is lazy:
insert() only marks the buffer dirty, and the first order statistic asked for
afterwards sorts it in place.

PairAccumulator keeps only streaming moments of (x, y) pairs, enough for
covariance, correlation and a least-squares line.

Empty accumulators answer NaN for every statistic. Divisions follow IEEE 754
(0/0 is NaN, x/0 is ±Inf) so degenerate groups flow through to the output
files as placeholders instead of raising.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from .constants import (
    DEGENERATE_RANGE_EPSILON,
    STATS_VALUES_INITSIZE,
    WHISKER_IQR_FACTOR,
)
from .histogram import Histogram
from .models import OutlierPolicy, RegressionFit

NAN = float("nan")


def ieee_divide(a: float, b: float) -> float:
    """a / b with IEEE 754 semantics instead of ZeroDivisionError."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(a) / np.float64(b))


def _is_finite(value: float) -> bool:
    return not (math.isnan(value) or math.isinf(value))


def _median_of(values: np.ndarray, lo: int, hi: int) -> float:
    """Median of the already sorted slice values[lo:hi]."""
    n = hi - lo
    if n <= 0:
        return NAN
    mid = lo + n // 2
    if n % 2 == 1:
        return float(values[mid])
    return (float(values[mid - 1]) + float(values[mid])) / 2.0


class Accumulator:
    """Single-variable statistics over a growing sample buffer."""

    def __init__(self, values: Iterable[float] = ()):
        self._values = np.empty(STATS_VALUES_INITSIZE, dtype=np.float64)
        self.sum = 0.0
        self.sum_squares = 0.0
        self.count = 0
        self.needs_sort = False
        for value in values:
            self.insert(value)

    # -- mutation ----------------------------------------------------------

    def _enlarge(self) -> None:
        grown = np.empty(len(self._values) * 2, dtype=np.float64)
        grown[: self.count] = self._values[: self.count]
        self._values = grown

    def insert(self, value: float) -> None:
        value = float(value)
        if not _is_finite(value):
            return
        self.sum += value
        self.sum_squares += value * value
        if self.count == len(self._values):
            self._enlarge()
        self._values[self.count] = value
        self.count += 1
        self.needs_sort = True

    def reset(self) -> None:
        """Forget all samples. The buffer keeps its capacity for reuse."""
        self.sum = 0.0
        self.sum_squares = 0.0
        self.count = 0
        self.needs_sort = False

    def merge(self, other: "Accumulator") -> None:
        """Insert every sample of other into self."""
        for value in other.values():
            self.insert(value)

    @property
    def capacity(self) -> int:
        return len(self._values)

    def _sorted(self) -> np.ndarray:
        view = self._values[: self.count]
        if self.needs_sort:
            view.sort()
            self.needs_sort = False
        return view

    def values(self) -> np.ndarray:
        """Sorted copy of the samples."""
        return self._sorted().copy()

    # -- moments -----------------------------------------------------------

    def mean(self) -> float:
        return ieee_divide(self.sum, self.count)

    def variance(self) -> float:
        mean = self.mean()
        return ieee_divide(self.sum_squares, self.count) - mean * mean

    def stddev(self) -> float:
        var = self.variance()
        if math.isnan(var):
            return NAN
        # sum_squares/count - mean^2 can dip just below zero on constant data
        return math.sqrt(max(var, 0.0))

    # -- order statistics --------------------------------------------------

    def minimum(self) -> float:
        if self.count == 0:
            return NAN
        return float(self._sorted()[0])

    def maximum(self) -> float:
        if self.count == 0:
            return NAN
        return float(self._sorted()[-1])

    def median(self) -> float:
        return _median_of(self._sorted(), 0, self.count)

    def q1(self) -> float:
        values = self._sorted()
        if self.count == 1:
            return float(values[0])
        return _median_of(values, 0, self.count // 2)

    def q3(self) -> float:
        values = self._sorted()
        if self.count == 1:
            return float(values[0])
        if self.count % 2 == 1:
            return _median_of(values, self.count // 2 + 1, self.count)
        return _median_of(values, self.count // 2, self.count)

    def iqr(self) -> float:
        return self.q3() - self.q1()

    def whisker_low(self) -> float:
        """Lowest sample within WHISKER_IQR_FACTOR * IQR below Q1."""
        if self.count == 0:
            return NAN
        q1 = self.q1()
        threshold = q1 - WHISKER_IQR_FACTOR * (self.q3() - q1)
        values = self._sorted()
        for value in values:
            if value >= threshold:
                return float(value)
        return float(values[-1])

    def whisker_high(self) -> float:
        """Highest sample within WHISKER_IQR_FACTOR * IQR above Q3."""
        if self.count == 0:
            return NAN
        q3 = self.q3()
        threshold = q3 + WHISKER_IQR_FACTOR * (q3 - self.q1())
        values = self._sorted()
        for value in values[::-1]:
            if value <= threshold:
                return float(value)
        return float(values[0])

    # -- histograms --------------------------------------------------------

    def ideal_bucket_size(self) -> float:
        """
        Bucket width giving roughly sqrt(n) buckets over the sample range.

        A single-valued sample is widened by max/1e6 so the width is never
        zero. A range crossing zero uses max - min. Where |max| - |min| is
        not positive (all zeros, or negative samples) the plain range is
        used as well, then 1.0.
        """
        if self.count == 0:
            return NAN
        low = self.minimum()
        high = self.maximum()
        if high == low:
            high += high / DEGENERATE_RANGE_EPSILON
        buckets = math.floor(math.sqrt(self.count))
        if low < 0.0 < high:
            # |max| - |min| collapses when the range straddles zero
            size = (high - low) / buckets
        else:
            size = (abs(high) - abs(low)) / buckets
        if not (size > 0 and math.isfinite(size)):
            size = (high - low) / buckets
        if not (size > 0 and math.isfinite(size)):
            size = 1.0
        return size

    def build_histogram(
        self,
        bucket_size: float,
        policy: OutlierPolicy = OutlierPolicy.KEEP,
    ) -> Optional[Histogram]:
        """Bin the samples; None when there are none."""
        if self.count == 0:
            return None
        if policy is OutlierPolicy.DISCARD:
            low, high = self.whisker_low(), self.whisker_high()
        else:
            low, high = self.minimum(), self.maximum()
        values = self._sorted()
        return Histogram(bucket_size, values[(values >= low) & (values <= high)])

    def __len__(self) -> int:
        return self.count

    def __repr__(self) -> str:
        return f"Accumulator(count={self.count}, mean={self.mean():g})"


@dataclass
class PairAccumulator:
    """Streaming two-variable moments for covariance and regression."""
    sum_x: float = 0.0
    sum_y: float = 0.0
    sum_xy: float = 0.0
    sum_squares_x: float = 0.0
    sum_squares_y: float = 0.0
    min_x: float = float("inf")
    min_y: float = float("inf")
    max_x: float = float("-inf")
    max_y: float = float("-inf")
    count: int = 0

    def insert(self, x: float, y: float) -> None:
        x, y = float(x), float(y)
        if not (_is_finite(x) and _is_finite(y)):
            return
        self.sum_x += x
        self.sum_y += y
        self.sum_xy += x * y
        self.sum_squares_x += x * x
        self.sum_squares_y += y * y
        self.min_x = min(self.min_x, x)
        self.min_y = min(self.min_y, y)
        self.max_x = max(self.max_x, x)
        self.max_y = max(self.max_y, y)
        self.count += 1

    def reset(self) -> None:
        self.sum_x = 0.0
        self.sum_y = 0.0
        self.sum_xy = 0.0
        self.sum_squares_x = 0.0
        self.sum_squares_y = 0.0
        self.min_x = float("inf")
        self.min_y = float("inf")
        self.max_x = float("-inf")
        self.max_y = float("-inf")
        self.count = 0

    def mean_x(self) -> float:
        return ieee_divide(self.sum_x, self.count)

    def mean_y(self) -> float:
        return ieee_divide(self.sum_y, self.count)

    def _stddev(self, sum_squares: float, mean: float) -> float:
        var = ieee_divide(sum_squares, self.count) - mean * mean
        if math.isnan(var):
            return NAN
        return math.sqrt(max(var, 0.0))

    def stddev_x(self) -> float:
        return self._stddev(self.sum_squares_x, self.mean_x())

    def stddev_y(self) -> float:
        return self._stddev(self.sum_squares_y, self.mean_y())

    def covariance(self) -> float:
        return ieee_divide(self.sum_xy, self.count) - self.mean_x() * self.mean_y()

    def correlation(self) -> float:
        return ieee_divide(self.covariance(), self.stddev_x() * self.stddev_y())

    def linear_regression(self) -> Optional[RegressionFit]:
        """
        Fit y = slope * x + intercept.

        Returns None with fewer than two points or when the slope is not
        finite (e.g. every x identical). Callers fall back to mean_y.
        """
        if self.count < 2:
            return None
        slope = self.correlation() * ieee_divide(self.stddev_y(), self.stddev_x())
        if not _is_finite(slope):
            return None
        return RegressionFit(slope=slope, intercept=self.mean_y() - slope * self.mean_x())
