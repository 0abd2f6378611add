"""
Half-open interval utilities.

All intervals are [start, end): an interval ending exactly when another
begins does not overlap it, which allows back-to-back appointments.

These are pure functions over any ordered values (datetimes, minutes,
WallClockTime). Callers validate start < end before calling.
"""

from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def overlaps(a_start: T, a_end: T, b_start: T, b_end: T) -> bool:
    """Check if [a_start, a_end) and [b_start, b_end) share any instant."""
    return a_start < b_end and b_start < a_end  # type: ignore[operator]


def contains(outer_start: T, outer_end: T, inner_start: T, inner_end: T) -> bool:
    """Check if [inner_start, inner_end) lies entirely within [outer_start, outer_end)."""
    return outer_start <= inner_start and inner_end <= outer_end  # type: ignore[operator]


def subtract(
    window: Tuple[T, T],
    excluded: Sequence[Tuple[T, T]]
) -> List[Tuple[T, T]]:
    """
    Remove every excluded interval from a window.

    Args:
        window: (start, end) interval to carve
        excluded: intervals to remove, in any order, possibly overlapping

    Returns:
        Remaining pieces of the window, in chronological order. Empty pieces
        are never returned.
    """
    remaining: List[Tuple[T, T]] = [window]

    for block_start, block_end in sorted(excluded, key=lambda interval: interval[0]):  # type: ignore[arg-type, return-value]
        pieces: List[Tuple[T, T]] = []
        for piece_start, piece_end in remaining:
            if not overlaps(piece_start, piece_end, block_start, block_end):
                pieces.append((piece_start, piece_end))
                continue
            # Part before the block
            if piece_start < block_start:  # type: ignore[operator]
                pieces.append((piece_start, block_start))
            # Part after the block
            if block_end < piece_end:  # type: ignore[operator]
                pieces.append((block_end, piece_end))
        remaining = pieces

    return remaining

