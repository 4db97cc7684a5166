"""
Sparse fixed-width histograms.

Buckets are anchored at zero: a value v lands in bucket floor(v / width),
whose start is index * width. Every histogram built with the same width
therefore shares one bucket grid, so a group's histogram can be looked up
bucket-by-bucket against the pooled one.
"""

import math
from typing import Dict, Iterable, List

import numpy as np


class Histogram:
    """Immutable sparse mapping bucket start -> frequency."""

    def __init__(self, bucket_size: float, values: Iterable[float] = ()):
        if not (bucket_size > 0 and math.isfinite(bucket_size)):
            raise ValueError(f"Invalid bucket size: {bucket_size}")
        self._bucket_size = float(bucket_size)

        arr = np.fromiter(values, dtype=np.float64)
        arr = arr[np.isfinite(arr)]
        self._counts: Dict[int, int] = {}
        if arr.size:
            indices, counts = np.unique(
                np.floor(arr / self._bucket_size).astype(np.int64),
                return_counts=True,
            )
            self._counts = {int(i): int(c) for i, c in zip(indices, counts)}
        self._indices: List[int] = sorted(self._counts)

    @property
    def bucket_size(self) -> float:
        return self._bucket_size

    def _index_of(self, bucket_start: float) -> int:
        return int(round(bucket_start / self._bucket_size))

    def bucket_start(self, value: float) -> float:
        """Start of the bucket that value falls into."""
        return math.floor(value / self._bucket_size) * self._bucket_size

    def buckets(self) -> List[float]:
        """Starts of all non-empty buckets, ascending."""
        return [i * self._bucket_size for i in self._indices]

    def count(self, bucket_start: float) -> int:
        """Frequency of the bucket starting at bucket_start (0 if absent)."""
        return self._counts.get(self._index_of(bucket_start), 0)

    def items(self):
        """(bucket_start, frequency) pairs, ascending."""
        return [(i * self._bucket_size, self._counts[i]) for i in self._indices]

    def total(self) -> int:
        return sum(self._counts.values())

    def max_count(self) -> int:
        return max(self._counts.values()) if self._counts else 0

    def min_bucket(self) -> float:
        if not self._indices:
            return float("nan")
        return self._indices[0] * self._bucket_size

    def max_bucket(self) -> float:
        if not self._indices:
            return float("nan")
        return self._indices[-1] * self._bucket_size

    def __len__(self) -> int:
        return len(self._indices)

    def __contains__(self, bucket_start: float) -> bool:
        return self._index_of(bucket_start) in self._counts

    def __repr__(self) -> str:
        return f"Histogram(bucket_size={self._bucket_size:g}, buckets={len(self)}, total={self.total()})"
