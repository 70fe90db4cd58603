# estimator/bitmask.py
"""Occupancy sets as plain ints: bit ``y * width + x`` marks cell ``(x, y)``."""
from typing import Iterable, Iterator, List, Tuple


def cell_index(x: int, y: int, width: int) -> int:
    return y * width + x


def cell_bit(x: int, y: int, width: int) -> int:
    return 1 << (y * width + x)


def mask_from_cells(cells: Iterable[Tuple[int, int]], width: int) -> int:
    mask = 0
    for x, y in cells:
        mask |= 1 << (y * width + x)
    return mask


def rect_mask(x: int, y: int, w: int, h: int, width: int) -> int:
    row = (1 << w) - 1
    mask = 0
    for dy in range(h):
        mask |= row << ((y + dy) * width + x)
    return mask


def overlaps(a: int, b: int) -> bool:
    return (a & b) != 0


def popcount(mask: int) -> int:
    return bin(mask).count("1")


def full_mask(total_cells: int) -> int:
    return (1 << total_cells) - 1


def free_cells(total_cells: int, occupied: int, blocked: int) -> int:
    return popcount(full_mask(total_cells) & ~occupied & ~blocked)


def iter_bits(mask: int) -> Iterator[int]:
    """Yield the index of every set bit, lowest first."""
    while mask:
        low = mask & -mask
        yield low.bit_length() - 1
        mask ^= low


def add_coverage(counts: List[int], mask: int, weight: int = 1) -> None:
    while mask:
        low = mask & -mask
        counts[low.bit_length() - 1] += weight
        mask ^= low
