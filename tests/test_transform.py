"""Tests for perspective transforms."""

import numpy as np
import pytest

from hexring.errors import GeometryMismatch, InvalidArgument
from hexring.geometry import Point
from hexring.transform import PerspectiveTransform

SQUARE = [Point(0, 0), Point(1, 0), Point(1, 1), Point(0, 1)]


def assert_close(a: Point, b: Point, tolerance: float = 1e-6):
    assert a.distance_to(b) < tolerance, f"{a} != {b}"


class TestBasics:
    def test_identity(self):
        transform = PerspectiveTransform()
        assert transform.transform(Point(3, 4)) == Point(3, 4)

    def test_matrix_is_read_only(self):
        transform = PerspectiveTransform()
        with pytest.raises(ValueError):
            transform.matrix[0, 0] = 2.0

    def test_wrong_shape_raises(self):
        with pytest.raises(InvalidArgument):
            PerspectiveTransform([[1, 0], [0, 1]])

    def test_scaling(self):
        transform = PerspectiveTransform.from_scaling_factor(2, 3)
        assert_close(transform.transform(Point(1, 1)), Point(2, 3))

    def test_uniform_scaling(self):
        transform = PerspectiveTransform.from_scaling_factor(0.5)
        assert_close(transform.transform(Point(4, 2)), Point(2, 1))

    def test_point_at_infinity_raises(self):
        transform = PerspectiveTransform([[1, 0, 1], [0, 1, 0], [0, 0, 0]])
        with pytest.raises(GeometryMismatch):
            transform.transform(Point(0, 5))


class TestComposition:
    def test_multiply_applies_self_first(self):
        scale = PerspectiveTransform.from_scaling_factor(2)
        shift = PerspectiveTransform([[1, 0, 0], [0, 1, 0], [5, 0, 1]])
        assert_close(scale.multiply(shift).transform(Point(1, 1)), Point(7, 2))
        assert_close(shift.multiply(scale).transform(Point(1, 1)), Point(12, 2))

    def test_invert(self):
        transform = PerspectiveTransform([[2, 0.1, 0.001], [0.3, 1.5, 0.002], [10, 20, 1]])
        point = Point(13, -7)
        roundtrip = transform.multiply(transform.invert()).transform(point)
        assert_close(roundtrip, point)


class TestCorrespondingPoints:
    def test_parallelogram(self):
        destination = [Point(10, 10), Point(30, 10), Point(40, 30), Point(20, 30)]
        transform = PerspectiveTransform.from_corresponding_points(SQUARE, destination)
        for source, expected in zip(SQUARE, destination):
            assert_close(transform.transform(source), expected)
        assert_close(transform.transform(Point(0.5, 0.5)), Point(25, 20))

    def test_general_quad(self):
        source = [Point(-1, -1), Point(2, -1), Point(2, 3), Point(-1, 3)]
        destination = [Point(100, 120), Point(300, 90), Point(330, 310), Point(80, 280)]
        transform = PerspectiveTransform.from_corresponding_points(source, destination)
        for a, b in zip(source, destination):
            assert_close(transform.transform(a), b)

    def test_transform_points_matches_transform(self):
        destination = [Point(100, 120), Point(300, 90), Point(330, 310), Point(80, 280)]
        transform = PerspectiveTransform.from_corresponding_points(SQUARE, destination)
        points = np.array([[0.2, 0.7], [0.9, 0.1]])
        mapped = transform.transform_points(points)
        for (x, y), (mx, my) in zip(points, mapped):
            assert_close(transform.transform(Point(x, y)), Point(mx, my))

    def test_degenerate_quad_raises(self):
        collinear = [Point(0, 0), Point(1, 0), Point(2, 0), Point(3, 0)]
        with pytest.raises(GeometryMismatch):
            PerspectiveTransform.from_corresponding_points(SQUARE, collinear)

    def test_wrong_point_count_raises(self):
        with pytest.raises(InvalidArgument):
            PerspectiveTransform.from_corresponding_points(SQUARE[:3], SQUARE[:3])
