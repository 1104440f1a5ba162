"""XOR masks that break up long runs of equal bits.

Long unset runs leave large blank stretches on a ring, which makes the ring
hard to find and its slots hard to count. Each ring gets the mask from the
catalog that minimizes bit transitions, preferring masks that leave more
slots drawn. Mask patterns repeat along the ring-local bit index.
"""

from __future__ import annotations

from collections.abc import Sequence

from .bits import BitArray
from .constants import MASK_PATTERNS
from .errors import InvalidArgument


def _masked_bits(data: BitArray, pattern: Sequence[int], start: int) -> list[int]:
    return [data.get_bit(i) ^ pattern[i % len(pattern)] for i in range(start, len(data))]


def mask_score(bits: Sequence[int]) -> tuple[int, int]:
    """(transitions, unset bits) of a bit sequence; lower is better."""
    transitions = sum(1 for a, b in zip(bits, bits[1:]) if a != b)
    return transitions, list(bits).count(0)


def find_best_mask(
    data: BitArray,
    start: int = 0,
    masks: Sequence[Sequence[int]] = MASK_PATTERNS,
) -> int:
    """Pick the mask id that makes ``data[start:]`` least ambiguous.

    Args:
        data: One ring's bits.
        start: First ring-local bit the mask applies to.
        masks: Mask catalog.

    Returns:
        Id of the mask with the fewest transitions, ties broken by the
        fewest unset bits and then by the lowest id.
    """
    best_id, best_score = 0, None
    for mask_id, pattern in enumerate(masks):
        score = mask_score(_masked_bits(data, pattern, start))
        if best_score is None or score < best_score:
            best_id, best_score = mask_id, score
    return best_id


def apply_mask(
    data: BitArray,
    mask_id: int,
    start: int = 0,
    masks: Sequence[Sequence[int]] = MASK_PATTERNS,
) -> None:
    """XOR mask ``mask_id`` onto ``data[start:]`` in place.

    Applying the same mask twice restores the original bits.
    """
    if not 0 <= mask_id < len(masks):
        raise InvalidArgument(f"Unknown mask id: {mask_id}")
    pattern = masks[mask_id]
    for i in range(start, len(data)):
        if pattern[i % len(pattern)]:
            data.toggle_bit(i)
