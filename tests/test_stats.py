import math

import pytest

from resource_split.models import OutlierPolicy
from resource_split.stats import Accumulator, PairAccumulator, ieee_divide


def test_example_scenario_moments_and_quartiles():
    acc = Accumulator([1, 2, 2, 3, 4, 5, 6, 7, 8, 9])
    assert acc.count == 10
    assert acc.mean() == pytest.approx(4.7)
    assert acc.median() == pytest.approx(4.5)
    assert acc.q1() == 2
    assert acc.q3() == 7


def test_odd_count_upper_half_excludes_middle():
    acc = Accumulator([5, 1, 4, 2, 3])
    assert acc.median() == 3
    assert acc.q1() == pytest.approx(1.5)
    assert acc.q3() == pytest.approx(4.5)


def test_three_values_quartiles_are_the_extremes():
    acc = Accumulator([7, 3, 5])
    assert acc.q1() == 3
    assert acc.median() == 5
    assert acc.q3() == 7


def test_single_value_quartiles_equal_value():
    acc = Accumulator([42.0])
    assert acc.q1() == acc.median() == acc.q3() == 42.0
    assert acc.whisker_low() == acc.whisker_high() == 42.0


def test_nan_and_infinity_are_ignored():
    acc = Accumulator([1.0, 2.0])
    before = (acc.count, acc.sum, acc.sum_squares)
    acc.insert(float("nan"))
    acc.insert(float("inf"))
    acc.insert(float("-inf"))
    assert (acc.count, acc.sum, acc.sum_squares) == before


def test_variance_and_stddev():
    acc = Accumulator([2, 4, 4, 4, 5, 5, 7, 9])
    assert acc.mean() == pytest.approx(5.0)
    assert acc.variance() == pytest.approx(4.0)
    assert acc.stddev() == pytest.approx(2.0)


def test_constant_sample_has_zero_stddev():
    acc = Accumulator([0.1] * 7)
    assert acc.stddev() == pytest.approx(0.0, abs=1e-9)


def test_empty_accumulator_answers_nan():
    acc = Accumulator()
    for stat in (
        acc.mean, acc.variance, acc.stddev, acc.minimum, acc.maximum,
        acc.median, acc.q1, acc.q3, acc.whisker_low, acc.whisker_high,
        acc.ideal_bucket_size,
    ):
        assert math.isnan(stat()), stat.__name__
    assert acc.build_histogram(1.0) is None


def test_sorting_is_lazy():
    acc = Accumulator()
    for v in (3, 1, 2):
        acc.insert(v)
    assert acc.needs_sort
    assert acc.minimum() == 1
    assert not acc.needs_sort
    acc.insert(0)
    assert acc.needs_sort
    assert acc.median() == pytest.approx(1.5)


def test_buffer_grows_and_reset_keeps_capacity():
    acc = Accumulator()
    initial = acc.capacity
    for i in range(initial * 3 + 1):
        acc.insert(i)
    assert acc.count == initial * 3 + 1
    assert acc.capacity == initial * 4
    assert acc.maximum() == initial * 3

    acc.reset()
    assert acc.count == 0
    assert acc.sum == 0 and acc.sum_squares == 0
    assert not acc.needs_sort
    assert acc.capacity == initial * 4
    assert math.isnan(acc.mean())

    acc.insert(5)
    assert acc.median() == 5


def test_whiskers_exclude_outliers():
    acc = Accumulator([1, 2, 3, 4, 5, 6, 7, 100])
    assert acc.q1() == pytest.approx(2.5)
    assert acc.q3() == pytest.approx(6.5)
    assert acc.whisker_low() == 1
    assert acc.whisker_high() == 7
    assert acc.whisker_low() <= acc.q1()
    assert acc.whisker_high() >= acc.q3()


@pytest.mark.parametrize("values", [
    [1],
    [1, 2],
    [5, 5, 5, 5],
    [1, 2, 3, 4, 5],
    [1, 2, 2, 3, 4, 5, 6, 7, 8, 9],
    [-3, 10, 0.5, 8, 8, 2, -40, 17, 3],
])
def test_quartile_and_whisker_ordering(values):
    acc = Accumulator(values)
    assert acc.q1() <= acc.median() <= acc.q3()
    assert acc.whisker_low() <= acc.q1()
    assert acc.whisker_high() >= acc.q3()


def test_ideal_bucket_size_uses_sqrt_n_buckets():
    acc = Accumulator(range(100))
    assert acc.ideal_bucket_size() == pytest.approx(9.9)


def test_ideal_bucket_size_single_valued_sample_is_positive():
    acc = Accumulator([5, 5, 5, 5])
    assert acc.ideal_bucket_size() == pytest.approx(2.5e-6, rel=1e-3)


def test_ideal_bucket_size_all_zero_falls_back():
    assert Accumulator([0, 0, 0]).ideal_bucket_size() == 1.0


def test_ideal_bucket_size_range_across_zero_is_positive():
    size = Accumulator([-5, 0, 5, 1]).ideal_bucket_size()
    assert size == pytest.approx(5.0)


def test_build_histogram_policies():
    acc = Accumulator([1, 2, 3, 4, 5, 6, 7, 100])
    keep = acc.build_histogram(1.0, OutlierPolicy.KEEP)
    discard = acc.build_histogram(1.0, OutlierPolicy.DISCARD)
    assert keep.total() == 8
    assert discard.total() == 7
    assert 100.0 in keep
    assert 100.0 not in discard


def test_merge_reinserts_values():
    a = Accumulator([1, 2])
    b = Accumulator([3, 4])
    a.merge(b)
    assert a.count == 4
    assert a.sum == 10
    assert a.needs_sort
    assert a.median() == pytest.approx(2.5)
    assert b.count == 2


def test_values_returns_sorted_copy():
    acc = Accumulator([3, 1, 2])
    values = acc.values()
    assert list(values) == [1, 2, 3]
    values[0] = 99
    assert acc.minimum() == 1


def test_ieee_divide():
    assert math.isnan(ieee_divide(0.0, 0))
    assert ieee_divide(1.0, 0) == float("inf")
    assert ieee_divide(-1.0, 0) == float("-inf")
    assert ieee_divide(3.0, 2) == 1.5


# ---------------------------------------------------------------------------
# PairAccumulator
# ---------------------------------------------------------------------------

def test_regression_on_exact_line():
    pairs = PairAccumulator()
    for x in range(10):
        pairs.insert(x, 2 * x + 3)
    fit = pairs.linear_regression()
    assert fit is not None
    assert fit.slope == pytest.approx(2.0)
    assert fit.intercept == pytest.approx(3.0)
    assert pairs.correlation() == pytest.approx(1.0)


def test_regression_needs_two_points():
    pairs = PairAccumulator()
    assert pairs.linear_regression() is None
    pairs.insert(1, 1)
    assert pairs.linear_regression() is None


def test_regression_fails_on_constant_x():
    pairs = PairAccumulator()
    for y in (1, 2, 3):
        pairs.insert(4, y)
    assert pairs.linear_regression() is None
    assert pairs.mean_y() == pytest.approx(2.0)


def test_pair_moments_and_covariance():
    pairs = PairAccumulator()
    for x, y in ((1, 1), (2, 2), (3, 3)):
        pairs.insert(x, y)
    assert pairs.mean_x() == pytest.approx(2.0)
    assert pairs.stddev_y() == pytest.approx(math.sqrt(2.0 / 3.0))
    assert pairs.covariance() == pytest.approx(2.0 / 3.0)
    assert (pairs.min_x, pairs.max_x, pairs.min_y, pairs.max_y) == (1, 3, 1, 3)


def test_pair_rejects_non_finite_coordinates():
    pairs = PairAccumulator()
    pairs.insert(float("nan"), 1)
    pairs.insert(1, float("inf"))
    assert pairs.count == 0
    assert math.isnan(pairs.mean_x())
    assert math.isnan(pairs.correlation())


def test_pair_reset():
    pairs = PairAccumulator()
    pairs.insert(1, 2)
    pairs.reset()
    assert pairs.count == 0
    assert pairs.sum_xy == 0
    assert pairs.min_x == float("inf")


def test_ideal_bucket_size_symmetric_range_stays_coarse():
    acc = Accumulator([-100000, 100001])
    assert acc.ideal_bucket_size() == pytest.approx(200001.0)


def test_pair_accumulator_reusable_after_reset():
    pairs = PairAccumulator()
    pairs.insert(100, -5)
    pairs.reset()
    for x in range(4):
        pairs.insert(x, 3 * x)
    assert (pairs.min_x, pairs.max_y) == (0, 9)
    assert pairs.linear_regression().slope == pytest.approx(3.0)
