"""Shared numeric helpers for the analytics and prediction engines."""

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` decimals, ties away from zero for positives.

    ``round()`` rounds ties to even (0.25 -> 0.2); dashboards report
    ``floor(x * 10**digits + 0.5) / 10**digits`` (0.25 -> 0.3).
    With ``digits=0`` an int is returned.
    """
    if digits == 0:
        return int(math.floor(value + 0.5))
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
