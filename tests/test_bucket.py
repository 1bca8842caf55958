import pytest
from waitscore.bucket import find_bucket

AGE = [21, 35, 45, 55, 65]
REPLY = [1, 377, 738, 1073, 1456, 1774, 2112, 2516, 2938, 3251]


@pytest.mark.parametrize(
    "value, expected",
    [(21, 1), (34.9, 1), (35, 2), (44, 2), (45, 3), (55, 4), (64.99, 4)],
)
def test_value_inside_bucket(value, expected):
    """T[k-1] <= v < T[k] ranks k."""
    assert find_bucket(AGE, value) == expected


@pytest.mark.parametrize("value", [65, 70, 1_000])
def test_at_or_above_last_threshold_is_maximal_rank(value):
    assert find_bucket(AGE, value) == len(AGE) + 1


@pytest.mark.parametrize("value", [20, 0, -5])
def test_below_first_threshold_ranks_one(value):
    """A value under the floor is the lowest rank, not the maximal one."""
    assert find_bucket(AGE, value) == 1


def test_real_valued_thresholds_and_values():
    assert find_bucket(REPLY, 376.999) == 1
    assert find_bucket(REPLY, 377.0) == 2
    assert find_bucket(REPLY, 3250.5) == 10
    assert find_bucket([0.5, 1.5, 2.5], 1.5) == 2


def test_single_threshold_table():
    assert find_bucket([10], 5) == 1
    assert find_bucket([10], 10) == 2


def test_rank_always_in_range():
    for value in range(-10, 4000, 7):
        assert 1 <= find_bucket(REPLY, value) <= len(REPLY) + 1
