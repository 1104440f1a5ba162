"""Tests for orientation, ring count detection and slot sampling."""

import io

import numpy as np
import pytest
from PIL import Image

from hexring.binarizer import BLACK, WHITE, binarize, to_luma
from hexring.bounding_hexagon import detect_bounding_hexagon
from hexring.bounding_rect import detect_bounding_rect
from hexring.constants import get_format
from hexring.encoder import decode_bits, encode
from hexring.errors import NotFound
from hexring.geometry import Point
from hexring.renderer import render_png
from hexring.ring_detector import (
    FinderScan,
    black_runs,
    bresenham,
    count_equally_spaced,
    detect_rings,
    outer_edge_apothem,
    refine_transform,
    resolve_ring_count,
    sample_points,
)
from hexring.transform import PerspectiveTransform

CONSTANTS = get_format(0)


def rendered_binary(payload: bytes, size: int = 512, rotation: float = 0.0):
    code = encode(payload)
    png = render_png(code, size=size, rotation=rotation)
    rgb = np.array(Image.open(io.BytesIO(png)).convert("RGB"))
    return code, binarize(to_luma(rgb))


class TestPixelHelpers:
    def test_bresenham_shallow(self):
        assert bresenham((0, 0), (3, 1)) == [(0, 0), (1, 0), (2, 1), (3, 1)]

    def test_bresenham_includes_both_ends(self):
        pixels = bresenham((5, 9), (5, 2))
        assert pixels[0] == (5, 9)
        assert pixels[-1] == (5, 2)
        assert len(pixels) == 8

    def test_bresenham_single_pixel(self):
        assert bresenham((4, 4), (4, 4)) == [(4, 4)]

    def test_black_runs(self):
        assert black_runs([False, True, True, False, True]) == [(1, 3), (4, 5)]
        assert black_runs([False, False]) == []

    def test_sample_points_checks_cross_neighborhood(self):
        binary = np.full((5, 5), WHITE, dtype=np.uint8)
        binary[2, 2] = BLACK
        points = np.array([[2, 2], [3.2, 2.1], [3.2, 2.9], [0, 0], [np.nan, np.nan], [10, 10]])
        assert sample_points(binary, points).tolist() == [True, True, False, False, False, False]

    def test_sample_points_ignores_diagonal_slot_end(self):
        # a stroke whose butt end runs diagonally past an unset slot
        ys, xs = np.mgrid[0:7, 0:7]
        binary = np.where(xs + ys <= 4, BLACK, WHITE).astype(np.uint8)
        assert sample_points(binary, np.array([[3, 3]])).tolist() == [False]
        assert sample_points(binary, np.array([[2, 2]])).tolist() == [True]

    def test_sample_points_tolerates_one_pixel_offset(self):
        binary = np.full((5, 5), WHITE, dtype=np.uint8)
        binary[:, 1] = BLACK
        assert sample_points(binary, np.array([[2, 2]])).tolist() == [True]


class TestRingCount:
    def test_equally_spaced_marks(self):
        assert count_equally_spaced([1.0, 0.8, 0.6, 0.4]) == 4

    def test_count_stops_at_irregular_spacing(self):
        assert count_equally_spaced([1.0, 0.8, 0.6, 0.1]) == 3

    def test_few_marks(self):
        assert count_equally_spaced([0.5]) == 1
        assert count_equally_spaced([]) == 0

    def test_clockwise_side_has_one_mark_less(self):
        ccw = FinderScan(first_black=16.0, marks=[1.0, 0.8, 0.6], count=3)
        cw = FinderScan(first_black=16.5, marks=[1.0, 0.8], count=2)
        assert resolve_ring_count(ccw, cw) == 3

    def test_single_ring(self):
        ccw = FinderScan(first_black=16.0, marks=[1.0], count=1)
        assert resolve_ring_count(ccw, FinderScan(first_black=None)) == 1
        # a clockwise hit far beyond the pattern start belongs to data slots
        assert resolve_ring_count(ccw, FinderScan(first_black=40.0, count=1)) == 1

    def test_missing_clockwise_pattern_with_several_rings_raises(self):
        ccw = FinderScan(first_black=16.0, marks=[1.0, 0.8], count=2)
        with pytest.raises(NotFound):
            resolve_ring_count(ccw, FinderScan(first_black=None))

    def test_missing_counterclockwise_pattern_raises(self):
        with pytest.raises(NotFound):
            resolve_ring_count(FinderScan(first_black=None), FinderScan(first_black=16.0, count=1))

    def test_clockwise_without_marks_raises(self):
        ccw = FinderScan(first_black=16.0, marks=[1.0, 0.8], count=2)
        with pytest.raises(NotFound):
            resolve_ring_count(ccw, FinderScan(first_black=16.0, count=0))


class TestTransform:
    def test_outer_edge_apothem(self):
        assert outer_edge_apothem(1, CONSTANTS) == 155
        assert outer_edge_apothem(2, CONSTANTS) == 205

    def test_refine_transform_rescales_preliminary(self):
        refined = refine_transform(PerspectiveTransform(), 2, CONSTANTS)
        point = refined.transform(Point(205, 0))
        assert point.x == pytest.approx(150)
        assert point.y == pytest.approx(0)


class TestDetectRings:
    def test_rendered_code(self):
        code, binary = rendered_binary(bytes.fromhex("deadbeefcafebabe"))
        hexagon = detect_bounding_hexagon(binary, detect_bounding_rect(binary))
        detection = detect_rings(binary, hexagon)
        assert detection.ring_count == code.ring_count
        assert detection.finder_flags == [(True, False)] + [(True, True)] * (code.ring_count - 1)
        assert decode_bits(detection.rings, detection.data) == code.payload

    def test_seam_corner_comes_first(self):
        _, binary = rendered_binary(bytes(8))
        hexagon = detect_bounding_hexagon(binary, detect_bounding_rect(binary))
        detection = detect_rings(binary, hexagon)
        seam = detection.hexagon.corners[0]
        center = detection.hexagon.center
        # the seam corner is the lower right one
        assert seam.x > center.x
        assert seam.y > center.y + 50

    def test_transform_maps_center(self):
        _, binary = rendered_binary(bytes(8))
        hexagon = detect_bounding_hexagon(binary, detect_bounding_rect(binary))
        detection = detect_rings(binary, hexagon)
        center = detection.transform.transform(Point(0.0, 0.0))
        assert center.distance_to(Point(256, 256)) < 3

    def test_rotated_code(self):
        code, binary = rendered_binary(bytes.fromhex("0102030405060708090a"), rotation=35)
        hexagon = detect_bounding_hexagon(binary, detect_bounding_rect(binary))
        detection = detect_rings(binary, hexagon)
        assert detection.ring_count == code.ring_count
        assert decode_bits(detection.rings, detection.data) == code.payload
