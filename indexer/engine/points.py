"""
Podium cost split.

A podium's cost is shared between its three brands 60/30/10 using integer
floor division. Whatever the floors drop is not redistributed, so the parts
sum to ``cost`` only when ``cost`` is a multiple of 10.
"""

from indexer.models.enums import Position

# Percent of the podium cost credited to each position
POSITION_SHARES: dict[Position, int] = {
    Position.GOLD: 60,
    Position.SILVER: 30,
    Position.BRONZE: 10,
}


def split_points(cost: int) -> tuple[int, int, int]:
    """
    Split a podium cost into (gold, silver, bronze) points.

    Args:
        cost: Podium cost in token base units (non-negative)

    Returns:
        Tuple of per-position points, indexed by ``Position.index``

    Raises:
        ValueError: If cost is negative

    Example:
        >>> split_points(100)
        (60, 30, 10)
        >>> split_points(7)
        (4, 2, 0)
    """
    if cost < 0:
        raise ValueError(f"cost must be non-negative, got {cost}")
    gold, silver, bronze = (
        cost * POSITION_SHARES[position] // 100 for position in Position.ordered()
    )
    return gold, silver, bronze


def podium_slots(brand_ids: list[int]) -> list[tuple[Position, int]]:
    """
    Pair each filled podium slot with its position.

    Slots beyond the provided ids, and slots holding brand id 0, are empty
    and are left out.

    >>> podium_slots([7, 0, 9])
    [(<Position.GOLD: 1>, 7), (<Position.BRONZE: 3>, 9)]
    """
    return [
        (position, brand_ids[position.index])
        for position in Position.ordered()
        if position.index < len(brand_ids) and brand_ids[position.index] != 0
    ]


def slot_brand_ids(brand_ids: list[int]) -> tuple[int, int, int]:
    """Gold, silver and bronze brand ids, 0 for an absent slot."""
    padded = list(brand_ids[:3]) + [0] * (3 - min(len(brand_ids), 3))
    return padded[0], padded[1], padded[2]
