"""
Crossing resolution between two observed levels.

Every intermediate level is replayed individually. Collapsing a multi-level
move into one trade would under-trade against the per-level quantity and
misstate inventory.
"""

from typing import Optional

from swapcore.events import CrossingEvent, Direction


def resolve(grid_id: str, previous_level: Optional[int], new_level: int) -> list[CrossingEvent]:
    """
    Produce the ordered crossings between two levels.

    - previous_level unset: no crossings (first observation only records the level)
    - same level: no crossings
    - rise: one SELL per level in (previous, new], ascending
    - fall: one BUY per level in [new, previous), descending

    Args:
        grid_id: Grid the crossings belong to
        previous_level: Level before this observation, None if never observed
        new_level: Level of the current observation

    Returns:
        Crossing events in the order they must be executed
    """
    if previous_level is None or new_level == previous_level:
        return []

    if new_level > previous_level:
        return [
            CrossingEvent(grid_id=grid_id, level=level, direction=Direction.SELL)
            for level in range(previous_level + 1, new_level + 1)
        ]

    return [
        CrossingEvent(grid_id=grid_id, level=level, direction=Direction.BUY)
        for level in range(previous_level - 1, new_level - 1, -1)
    ]
