"""
Price level table calculations.

A level table is an ordered tuple of boundary prices ``levels[0..N]`` where
``levels[0]`` is the grid's lower limit and ``levels[N]`` its upper limit.
Level ``i`` covers the half-open price interval ``[levels[i], levels[i+1])``.
"""

import bisect
import math
from typing import Sequence

from swapcore.errors import ConfigError

MIN_LEVEL_COUNT = 2


def build_levels(lower_limit: float, upper_limit: float, level_count: int) -> tuple[float, ...]:
    """
    Build an evenly spaced level table over ``[lower_limit, upper_limit]``.

    Args:
        lower_limit: Price of level 0
        upper_limit: Price of level ``level_count``
        level_count: Number of intervals (table has ``level_count + 1`` entries)

    Returns:
        Strictly increasing tuple of boundary prices

    Raises:
        ConfigError: If bounds or level count are invalid
    """
    if not (math.isfinite(lower_limit) and math.isfinite(upper_limit)):
        raise ConfigError(f"Limits must be finite, got lower={lower_limit} upper={upper_limit}")
    if upper_limit <= lower_limit:
        raise ConfigError(
            f"Upper limit must be greater than lower limit, got lower={lower_limit} upper={upper_limit}"
        )
    if level_count < MIN_LEVEL_COUNT:
        raise ConfigError(f"Level count must be at least {MIN_LEVEL_COUNT}, got {level_count}")

    step = (upper_limit - lower_limit) / level_count
    levels = [lower_limit + step * i for i in range(level_count)]
    levels.append(upper_limit)

    validate_levels(levels)
    return tuple(levels)


def validate_levels(levels: Sequence[float]) -> None:
    """
    Check that a level table is usable.

    Raises:
        ConfigError: If the table is too short, contains non-finite prices,
            or is not strictly increasing
    """
    if len(levels) < MIN_LEVEL_COUNT + 1:
        raise ConfigError(f"Level table needs at least {MIN_LEVEL_COUNT + 1} prices, got {len(levels)}")

    previous = float('-inf')
    for index, price in enumerate(levels):
        if not math.isfinite(price):
            raise ConfigError(f"Level {index} price is not finite: {price}")
        if price <= previous:
            raise ConfigError(
                f"Level table must be strictly increasing: level {index} price {price} <= {previous}"
            )
        previous = price


def locate(levels: Sequence[float], price: float) -> int:
    """
    Map a price to the level it falls in.

    Prices at or below the lower limit map to level 0, prices at or above the
    upper limit map to the top level. A price exactly on a boundary resolves
    to that boundary's level.

    Args:
        levels: Strictly increasing level table
        price: Observed price

    Returns:
        Level index in ``0..len(levels)-1``

    Raises:
        ConfigError: If the level table is invalid or the price is not finite
    """
    validate_levels(levels)
    if not math.isfinite(price):
        raise ConfigError(f"Price must be finite, got {price}")
    top = len(levels) - 1

    if price <= levels[0]:
        return 0
    if price >= levels[top]:
        return top
    return bisect.bisect_right(levels, price) - 1
