"""
Ordinal bucket classification.

A baseline table is an ascending sequence of thresholds. A value is ranked by
the first bucket ``[thresholds[i], thresholds[i + 1])`` that contains it:

    thresholds = [21, 35, 45, 55, 65]
    find_bucket(thresholds, 40)  -> 2
    find_bucket(thresholds, 10)  -> 1   (below the floor)
    find_bucket(thresholds, 70)  -> 6   (at or above the last threshold)
"""

from typing import Sequence


def find_bucket(thresholds: Sequence[float], value: float) -> int:
    """
    Return the 1-based rank of ``value`` against ``thresholds``.

    The result is always in ``[1, len(thresholds) + 1]``. Non-integer values
    and thresholds are fine. A table that is not ascending still yields a rank
    in range, but which one is not meaningful.
    """
    if not thresholds or value < thresholds[0]:
        return 1
    for index in range(len(thresholds) - 1):
        if thresholds[index] <= value < thresholds[index + 1]:
            return index + 1
    return len(thresholds) + 1
