"""Quiet-zone bounding rectangle detection.

A code is surrounded by a white margin. Starting from a small rectangle in
the middle of the image, the sides first move outwards until each touches a
black pixel, then keep moving outwards until a band of white scanlines is
found. Moving one side lengthens its neighbors, so sides are revisited
round-robin until none of them moves anymore.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import structlog

from .binarizer import WHITE
from .errors import NotFound

logger = structlog.get_logger(__name__)

MIN_BORDER_WIDTH = 5
# Rough guesses for the required white band: the code covers ~40% of the
# smaller image side, half of it is the empty center, ~7 rings on average
ASSUMED_CODE_COVERAGE = 0.4
ASSUMED_RING_COUNT = 7

_SIDES = ("left", "top", "right", "bottom")


@dataclass
class BoundingRect:
    """Inclusive pixel bounds of the outermost black pixels."""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left + 1

    @property
    def height(self) -> int:
        return self.bottom - self.top + 1


def required_border_width(width: int, height: int) -> int:
    return round(
        max(min(width, height) * ASSUMED_CODE_COVERAGE / 2 / ASSUMED_RING_COUNT, MIN_BORDER_WIDTH)
    )


def _is_line_white(binary: np.ndarray, rect: dict[str, int], side: str, position: int) -> bool:
    if side in ("top", "bottom"):
        line = binary[position, rect["left"] : rect["right"] + 1]
    else:
        line = binary[rect["top"] : rect["bottom"] + 1, position]
    return bool((line == WHITE).all())


def _move_side(
    binary: np.ndarray,
    rect: dict[str, int],
    side: str,
    required_lines: int,
    want_black: bool,
) -> bool:
    """Move ``side`` outwards until ``required_lines`` consecutive lines qualify.

    Returns whether the side moved.

    Raises:
        NotFound: If the search hits the image border.
    """
    height, width = binary.shape
    step = -1 if side in ("left", "top") else 1
    border = 0 if step < 0 else (height - 1 if side in ("top", "bottom") else width - 1)

    initial = position = rect[side]
    matching = 0
    while matching < required_lines:
        if position == border:
            raise NotFound("bounding rect detection")
        if _is_line_white(binary, rect, side, position) != want_black:
            matching += 1
        else:
            matching = 0
        position += step

    # step back to the first qualifying line
    position -= required_lines * step
    rect[side] = position
    return position != initial


def _extend(binary: np.ndarray, rect: dict[str, int], required_lines: int, want_black: bool) -> None:
    pending = [True, True, True, True]
    index = 0
    while any(pending):
        if pending[index]:
            if _move_side(binary, rect, _SIDES[index], required_lines, want_black):
                pending[(index + 1) % 4] = True
                pending[(index + 3) % 4] = True
            pending[index] = False
        index = (index + 1) % 4


def detect_bounding_rect(binary: np.ndarray) -> BoundingRect:
    """Find the tightest rectangle around the code inside its quiet zone.

    Args:
        binary: Binarized image (0 = black).

    Returns:
        BoundingRect whose sides each touch a black pixel.

    Raises:
        NotFound: If no quiet zone surrounds black pixels.
    """
    height, width = binary.shape
    rect = {
        "left": int(0.4 * width),
        "top": int(0.4 * height),
        "right": min(int(np.ceil(0.6 * width)), width - 1),
        "bottom": min(int(np.ceil(0.6 * height)), height - 1),
    }
    _extend(binary, rect, 1, want_black=True)
    _extend(binary, rect, required_border_width(width, height), want_black=False)

    # the sides now sit on the first white line of the margin
    result = BoundingRect(
        left=rect["left"] + 1,
        top=rect["top"] + 1,
        right=rect["right"] - 1,
        bottom=rect["bottom"] - 1,
    )
    logger.debug(
        "bounding_rect_detected",
        left=result.left,
        top=result.top,
        right=result.right,
        bottom=result.bottom,
    )
    return result
