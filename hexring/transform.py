"""Projective (perspective) transforms between code and image coordinates.

Matrices use the row-vector convention ``[x' y' w] = [x y 1] @ M``, so the
homogeneous factor of a point is ``a13*x + a23*y + a33``. Composition with
``multiply`` applies ``self`` first and ``other`` second.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from .errors import GeometryMismatch, InvalidArgument
from .geometry import Point

# Below this the quad is treated as a parallelogram
_AFFINE_EPSILON = 1e-9


class PerspectiveTransform:
    """Immutable 3x3 homogeneous transformation."""

    __slots__ = ("_matrix",)

    def __init__(self, matrix: Sequence[Sequence[float]] | np.ndarray | None = None) -> None:
        if matrix is None:
            matrix = np.identity(3)
        array = np.array(matrix, dtype=np.float64)
        if array.shape != (3, 3):
            raise InvalidArgument(f"Transformation matrix must be 3x3, got {array.shape}")
        array.setflags(write=False)
        self._matrix = array

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    def __repr__(self) -> str:
        return f"PerspectiveTransform({self._matrix.tolist()!r})"

    def transform(self, point: Point) -> Point:
        """Map a single point."""
        x, y, w = np.array([point.x, point.y, 1.0]) @ self._matrix
        if w == 0:
            raise GeometryMismatch("Point maps to infinity")
        return Point(float(x / w), float(y / w))

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Map an ``(n, 2)`` array of points."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        homogeneous = np.hstack([points, np.ones((len(points), 1))]) @ self._matrix
        return homogeneous[:, :2] / homogeneous[:, 2:3]

    def invert(self) -> PerspectiveTransform:
        """Inverse transform via the adjugate.

        The determinant is skipped as homogeneous coordinates are
        scale invariant.
        """
        (a11, a12, a13), (a21, a22, a23), (a31, a32, a33) = self._matrix
        adjugate = [
            [a22 * a33 - a23 * a32, a13 * a32 - a12 * a33, a12 * a23 - a13 * a22],
            [a23 * a31 - a21 * a33, a11 * a33 - a13 * a31, a13 * a21 - a11 * a23],
            [a21 * a32 - a22 * a31, a12 * a31 - a11 * a32, a11 * a22 - a12 * a21],
        ]
        return PerspectiveTransform(adjugate)

    def multiply(self, other: PerspectiveTransform) -> PerspectiveTransform:
        """Compose so that ``self`` is applied first, then ``other``."""
        return PerspectiveTransform(self._matrix @ other._matrix)

    @classmethod
    def from_scaling_factor(cls, sx: float, sy: float | None = None) -> PerspectiveTransform:
        if sy is None:
            sy = sx
        return cls([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]])

    @classmethod
    def from_corresponding_points(
        cls, source: Sequence[Point], destination: Sequence[Point]
    ) -> PerspectiveTransform:
        """Estimate the transform mapping 4 source points onto 4 destination points.

        Args:
            source: Four points in order around a quadrilateral.
            destination: The four corresponding points.

        Returns:
            Transform with ``transform(source[i]) == destination[i]``.

        Raises:
            InvalidArgument: If not given exactly 4 points per side.
            GeometryMismatch: If a quadrilateral is degenerate.
        """
        if len(source) != 4 or len(destination) != 4:
            raise InvalidArgument("Exactly 4 corresponding points are required")
        return cls._square_to_quad(source).invert().multiply(cls._square_to_quad(destination))

    @classmethod
    def _square_to_quad(cls, points: Sequence[Point]) -> PerspectiveTransform:
        """Map the unit square (0,0), (1,0), (1,1), (0,1) onto ``points``."""
        (x0, y0), (x1, y1), (x2, y2), (x3, y3) = (p.as_tuple() for p in points)
        dx3 = x0 - x1 + x2 - x3
        dy3 = y0 - y1 + y2 - y3
        if abs(dx3) < _AFFINE_EPSILON and abs(dy3) < _AFFINE_EPSILON:
            return cls([[x1 - x0, y1 - y0, 0.0], [x2 - x1, y2 - y1, 0.0], [x0, y0, 1.0]])

        dx1, dx2 = x1 - x2, x3 - x2
        dy1, dy2 = y1 - y2, y3 - y2
        denominator = dx1 * dy2 - dx2 * dy1
        if abs(denominator) < _AFFINE_EPSILON:
            raise GeometryMismatch("Degenerate quadrilateral")
        a13 = (dx3 * dy2 - dx2 * dy3) / denominator
        a23 = (dx1 * dy3 - dx3 * dy1) / denominator
        return cls(
            [
                [x1 - x0 + a13 * x1, y1 - y0 + a13 * y1, a13],
                [x3 - x0 + a23 * x3, y3 - y0 + a23 * y3, a23],
                [x0, y0, 1.0],
            ]
        )
