"""Adaptive binarization of grayscale images.

The image is split into 8x8 tiles. Tiles with enough contrast threshold at
the middle of their luma range; flat tiles borrow the threshold of their
already computed neighbors, so a tile inside a large black or white area
is classified like its surroundings. Finally every tile's threshold is
replaced by the mean of its 5x5 tile neighborhood, which evens out
lighting gradients and block artifacts.

Binary images are ``uint8`` arrays with 0 = black and 255 = white.
"""

from __future__ import annotations

import math

import numpy as np
import structlog

from .errors import InvalidArgument

logger = structlog.get_logger(__name__)

BLOCK_SIZE = 8
MIN_DYNAMIC_RANGE = 6
SMOOTHING_WINDOW = 5

BLACK = 0
WHITE = 255


def to_luma(rgb: np.ndarray) -> np.ndarray:
    """Convert an ``(h, w, 3|4)`` RGB(A) array to 8 bit luma.

    Uses the fixed point BT.601 approximation
    ``(77*R + 150*G + 29*B + 128) >> 8``.
    """
    rgb = np.asarray(rgb)
    if rgb.ndim != 3 or rgb.shape[2] < 3:
        raise InvalidArgument(f"Expected an RGB image, got shape {rgb.shape}")
    channels = rgb[..., :3].astype(np.uint32)
    luma = (77 * channels[..., 0] + 150 * channels[..., 1] + 29 * channels[..., 2] + 128) >> 8
    return luma.astype(np.uint8)


def _block_origins(size: int) -> list[int]:
    # the last block is aligned to the image end and may overlap its neighbor
    count = math.ceil(size / BLOCK_SIZE)
    return [min(i * BLOCK_SIZE, size - BLOCK_SIZE) for i in range(count)]


def calculate_block_thresholds(gray: np.ndarray) -> np.ndarray:
    """Raw (unsmoothed) threshold per 8x8 tile.

    Args:
        gray: ``(h, w)`` luma image.

    Returns:
        ``(rows, cols)`` float array of tile thresholds.
    """
    gray = np.asarray(gray)
    if gray.ndim != 2 or gray.shape[0] < BLOCK_SIZE or gray.shape[1] < BLOCK_SIZE:
        raise InvalidArgument(f"Image must be at least {BLOCK_SIZE}x{BLOCK_SIZE} pixels")

    ys = _block_origins(gray.shape[0])
    xs = _block_origins(gray.shape[1])
    thresholds = np.zeros((len(ys), len(xs)), dtype=np.float64)
    for row, y in enumerate(ys):
        for col, x in enumerate(xs):
            block = gray[y : y + BLOCK_SIZE, x : x + BLOCK_SIZE]
            low, high = int(block.min()), int(block.max())
            if high - low >= MIN_DYNAMIC_RANGE:
                thresholds[row, col] = (low + high) / 2
                continue
            # flat block: guess from the neighbors
            threshold = low / 2
            if row > 0 and col > 0:
                neighbors = (
                    thresholds[row - 1, col]
                    + thresholds[row, col - 1]
                    + thresholds[row - 1, col - 1]
                ) / 3
                if neighbors > low:
                    threshold = neighbors
            thresholds[row, col] = threshold
    return thresholds


def smooth_thresholds(thresholds: np.ndarray) -> np.ndarray:
    """Replace each tile threshold by the mean over a 5x5 tile window.

    Windows of border tiles are shifted inwards to stay inside the grid.
    """
    rows, cols = thresholds.shape
    smoothed = np.empty_like(thresholds)
    for row in range(rows):
        top = min(max(row - SMOOTHING_WINDOW // 2, 0), max(rows - SMOOTHING_WINDOW, 0))
        for col in range(cols):
            left = min(max(col - SMOOTHING_WINDOW // 2, 0), max(cols - SMOOTHING_WINDOW, 0))
            window = thresholds[top : top + SMOOTHING_WINDOW, left : left + SMOOTHING_WINDOW]
            smoothed[row, col] = window.mean()
    return smoothed


def binarize(gray: np.ndarray) -> np.ndarray:
    """Binarize a luma image. Pixels above their tile threshold are white."""
    gray = np.asarray(gray)
    thresholds = smooth_thresholds(calculate_block_thresholds(gray))

    ys = _block_origins(gray.shape[0])
    xs = _block_origins(gray.shape[1])
    threshold_map = np.empty(gray.shape, dtype=np.float64)
    for row, y in enumerate(ys):
        for col, x in enumerate(xs):
            threshold_map[y : y + BLOCK_SIZE, x : x + BLOCK_SIZE] = thresholds[row, col]

    binary = np.where(gray > threshold_map, WHITE, BLACK).astype(np.uint8)
    logger.debug(
        "image_binarized",
        width=gray.shape[1],
        height=gray.shape[0],
        black_ratio=round(float(np.mean(binary == BLACK)), 4),
    )
    return binary
