"""Tests for luma conversion and adaptive binarization."""

import numpy as np
import pytest

from hexring.binarizer import (
    BLACK,
    BLOCK_SIZE,
    WHITE,
    binarize,
    calculate_block_thresholds,
    smooth_thresholds,
    to_luma,
)
from hexring.errors import InvalidArgument


class TestLuma:
    def test_white_and_black(self):
        rgb = np.array([[[255, 255, 255], [0, 0, 0]]], dtype=np.uint8)
        assert to_luma(rgb).tolist() == [[255, 0]]

    def test_green_weighs_most(self):
        rgb = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
        red, green, blue = to_luma(rgb)[0]
        assert green > red > blue

    def test_alpha_channel_is_ignored(self):
        rgba = np.array([[[10, 20, 30, 0]]], dtype=np.uint8)
        rgb = rgba[..., :3]
        assert to_luma(rgba).tolist() == to_luma(rgb).tolist()

    def test_grayscale_input_raises(self):
        with pytest.raises(InvalidArgument):
            to_luma(np.zeros((4, 4), dtype=np.uint8))


class TestThresholds:
    def test_contrast_block_uses_mid_range(self):
        gray = np.full((8, 8), 200, dtype=np.uint8)
        gray[0, 0] = 100
        assert calculate_block_thresholds(gray)[0, 0] == 150

    def test_grid_covers_partial_blocks(self):
        gray = np.zeros((20, 17), dtype=np.uint8)
        assert calculate_block_thresholds(gray).shape == (3, 3)

    @staticmethod
    def _contrast_neighbors(flat_value: int) -> np.ndarray:
        gray = np.full((16, 16), 200, dtype=np.uint8)
        gray[0:8, 0:8] = 0
        gray[0, 0] = 255
        gray[0:8, 8] = 0
        gray[8, 0:8] = 0
        gray[8:16, 8:16] = flat_value
        return gray

    def test_dark_flat_block_borrows_from_neighbors(self):
        thresholds = calculate_block_thresholds(self._contrast_neighbors(10))
        assert thresholds[1, 1] == pytest.approx(
            (thresholds[0, 1] + thresholds[1, 0] + thresholds[0, 0]) / 3
        )

    def test_bright_flat_block_stays_white(self):
        thresholds = calculate_block_thresholds(self._contrast_neighbors(200))
        assert thresholds[1, 1] == 100

    def test_too_small_image_raises(self):
        with pytest.raises(InvalidArgument):
            calculate_block_thresholds(np.zeros((4, 40), dtype=np.uint8))

    def test_smoothing_averages_window(self):
        thresholds = np.zeros((5, 5))
        thresholds[2, 2] = 25.0
        smoothed = smooth_thresholds(thresholds)
        assert np.allclose(smoothed, 1.0)


class TestBinarize:
    def test_black_square_on_white(self):
        gray = np.full((64, 64), 230, dtype=np.uint8)
        gray[24:40, 24:40] = 20
        binary = binarize(gray)
        assert binary.dtype == np.uint8
        assert binary[32, 32] == BLACK
        assert binary[4, 4] == WHITE
        assert binary[24, 24] == BLACK
        assert binary[23, 23] == WHITE

    def test_output_values_are_binary(self):
        rng = np.random.default_rng(7)
        gray = rng.integers(0, 256, size=(40, 48), dtype=np.uint8)
        values = set(np.unique(binarize(gray)).tolist())
        assert values <= {BLACK, WHITE}

    def test_lighting_gradient(self):
        # dark lines on a background that brightens from left to right
        gray = np.tile(np.linspace(120, 250, 96), (96, 1)).astype(np.uint8)
        for y in range(4, 96, 16):
            gray[y : y + 3, :] = (gray[y : y + 3, :] * 0.3).astype(np.uint8)
        binary = binarize(gray)
        assert binary[5, 2] == BLACK and binary[5, 93] == BLACK
        assert binary[12, 2] == WHITE and binary[12, 93] == WHITE

    def test_image_smaller_than_block_raises(self):
        with pytest.raises(InvalidArgument):
            binarize(np.zeros((BLOCK_SIZE - 1, 32), dtype=np.uint8))
