"""
Numeric helpers shared by the rating and grading pipelines.

Upstream market data is untrusted: every helper here turns None, NaN,
infinities and unparsable strings into a safe value instead of raising.
"""

import math
from typing import Any, List, Optional, Sequence, Tuple

WAD = 10 ** 18
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def to_finite(value: Any) -> Optional[float]:
    """Parse value as a finite float, or return None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def finite_or_zero(value: Any) -> float:
    number = to_finite(value)
    return number if number is not None else 0.0


def non_negative(value: Any) -> float:
    """Finite, floored at zero. Used for USD amounts."""
    return max(finite_or_zero(value), 0.0)


def clamp01(x: float) -> float:
    """Clamp to [0, 1]. Non-finite values map to 0."""
    if x is None or not math.isfinite(x):
        return 0.0
    if x < 0:
        return 0.0
    if x > 1:
        return 1.0
    return x


def normalize01(value: float) -> float:
    """Score normalization: anything outside [0, 1] is pinned to the edge."""
    return clamp01(value)


def clamp(x: float, low: float, high: float) -> float:
    if x is None or not math.isfinite(x):
        return low
    return max(low, min(high, x))


def interpolate_score(value: float, breakpoints: Sequence[Tuple[float, float]]) -> float:
    """
    Piecewise-linear interpolation over (value, score) breakpoints.

    Breakpoints are sorted by value. Values below the first breakpoint take
    the first score, values above the last take the last score.

    Args:
        value: The metric value
        breakpoints: Sequence of (threshold, score) pairs

    Returns:
        Interpolated score
    """
    if not breakpoints:
        raise ValueError("interpolate_score needs at least one breakpoint")

    points: List[Tuple[float, float]] = sorted(breakpoints, key=lambda p: p[0])

    if value <= points[0][0]:
        return points[0][1]
    if value >= points[-1][0]:
        return points[-1][1]

    for (lower_x, lower_score), (upper_x, upper_score) in zip(points, points[1:]):
        if lower_x <= value <= upper_x:
            span = upper_x - lower_x
            if span == 0:
                return lower_score
            ratio = (value - lower_x) / span
            return lower_score + ratio * (upper_score - lower_score)

    return points[-1][1]


def lltv_to_ratio(lltv: Any) -> Optional[float]:
    """Convert a 1e18 fixed-point LLTV into a ratio, e.g. 860000000000000000 -> 0.86."""
    raw = to_finite(lltv)
    if raw is None or raw <= 0:
        return None
    return raw / WAD


def is_zero_address(address: Optional[str]) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


def round_half_up(x: float) -> int:
    """Round halves up for non-negative scores (89.5 -> 90)."""
    return int(math.floor(x + 0.5))
