"""Bounding hexagon detection.

Finds the six corners of the outermost ring inside a bounding rectangle:

1. Per column take the topmost and bottommost black pixel. Ordered top
   points right to left, then bottom points left to right, they form a
   simple polygon traversed counter-clockwise on screen.
2. A single monotone-stack pass turns that polygon into its convex hull.
3. Consecutive hull vertices that stay close to a common chord are merged
   into candidate lines; the six longest are the hexagon sides.
4. Neighboring sides are intersected to get the corners.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass

import numpy as np
import structlog

from .binarizer import BLACK
from .bounding_rect import BoundingRect
from .errors import GeometryMismatch, NotFound
from .geometry import Point

logger = structlog.get_logger(__name__)

# Minimum turn (as sine of the turn angle) of the hull vertex the line search starts at
MIN_CORNER_TURN = math.sin(0.005 * math.pi)
# Maximum distance in pixels of a hull vertex from the chord of its line
LINE_TOLERANCE = 1.5
# Maximum relative deviation of a side length from the average side length
MAX_SIDE_DEVIATION = 0.25


@dataclass
class BoundingHexagon:
    """Six corners in counter-clockwise order plus the center."""

    corners: list[Point]
    center: Point

    def rotated(self, start: int) -> BoundingHexagon:
        """Same hexagon with corner ``start`` as the first corner."""
        return BoundingHexagon(self.corners[start:] + self.corners[:start], self.center)

    @property
    def side_lengths(self) -> list[float]:
        return [self.corners[i].distance_to(self.corners[(i + 1) % 6]) for i in range(6)]


def _cross(a: Point, b: Point, c: Point) -> float:
    """Cross product of BA and BC."""
    return (a.x - b.x) * (c.y - b.y) - (a.y - b.y) * (c.x - b.x)


def find_candidate_points(binary: np.ndarray, rect: BoundingRect) -> list[Point]:
    """Topmost and bottommost black pixel per column, counter-clockwise."""
    region = binary[rect.top : rect.bottom + 1, rect.left : rect.right + 1] == BLACK
    has_black = region.any(axis=0)
    columns = np.nonzero(has_black)[0]
    if len(columns) == 0:
        return []
    tops = region[:, columns].argmax(axis=0)
    bottoms = region.shape[0] - 1 - region[::-1, columns].argmax(axis=0)

    top_points = [
        Point(float(rect.left + x), float(rect.top + y)) for x, y in zip(columns, tops)
    ]
    bottom_points = [
        Point(float(rect.left + x), float(rect.top + y)) for x, y in zip(columns, bottoms)
    ]
    return top_points[::-1] + bottom_points


def convex_hull(points: list[Point]) -> list[Point]:
    """Convex hull of an ordered simple polygon in a single pass.

    Raises:
        NotFound: If fewer than 3 hull vertices remain.
    """
    hull: list[Point] = []
    for point in points:
        while len(hull) >= 2 and _cross(hull[-2], hull[-1], point) <= 0:
            hull.pop()
        hull.append(point)
    # the polygon is closed; fix up the turn at the start as well
    while len(hull) >= 3 and _cross(hull[-2], hull[-1], hull[0]) <= 0:
        hull.pop()
    if len(hull) >= 2 and hull[-1] == hull[0]:
        hull.pop()
    if len(hull) < 3:
        raise NotFound("convex hull")
    return hull


def _turn(hull: list[Point], index: int) -> float:
    a = hull[index - 1]
    b = hull[index]
    c = hull[(index + 1) % len(hull)]
    norm = a.distance_to(b) * b.distance_to(c)
    return _cross(a, b, c) / norm if norm else 0.0


def _distance_to_chord(point: Point, start: Point, end: Point) -> float:
    length = start.distance_to(end)
    if length == 0:
        return point.distance_to(start)
    return abs(
        (end.x - start.x) * (start.y - point.y) - (start.x - point.x) * (end.y - start.y)
    ) / length


def find_longest_sides(hull: list[Point], count: int = 6) -> list[tuple[Point, Point]]:
    """Merge hull edges into lines and return the ``count`` longest.

    Lines are returned in hull order.

    Raises:
        NotFound: If no corner exists or fewer than ``count`` lines are found.
    """
    size = len(hull)
    start = max(range(size), key=lambda i: _turn(hull, i))
    if _turn(hull, start) < MIN_CORNER_TURN:
        raise NotFound("longest sides")

    # sorted by negative length, holds (negative length, chain start, chain end)
    longest: list[tuple[float, int, int]] = []
    chain_start = 0
    chain_end = 1
    while chain_start < size:
        candidate = chain_end + 1
        if candidate <= size:
            first = hull[(start + chain_start) % size]
            last = hull[(start + candidate) % size]
            if all(
                _distance_to_chord(hull[(start + i) % size], first, last) <= LINE_TOLERANCE
                for i in range(chain_start + 1, candidate)
            ):
                chain_end = candidate
                continue

        length = hull[(start + chain_start) % size].distance_to(hull[(start + chain_end) % size])
        bisect.insort(longest, (-length, chain_start, chain_end))
        del longest[count:]
        chain_start, chain_end = chain_end, chain_end + 1

    if len(longest) < count:
        raise NotFound("longest sides")
    lines = sorted(longest, key=lambda entry: entry[1])
    return [
        (hull[(start + first) % size], hull[(start + last) % size]) for _, first, last in lines
    ]


def intersect_lines(line_a: tuple[Point, Point], line_b: tuple[Point, Point]) -> Point:
    """Intersection of two infinite lines, each given by two points.

    Raises:
        GeometryMismatch: If the lines are parallel.
    """
    (p1, p2), (p3, p4) = line_a, line_b
    denominator = (p1.x - p2.x) * (p3.y - p4.y) - (p1.y - p2.y) * (p3.x - p4.x)
    if abs(denominator) < 1e-9:
        raise GeometryMismatch("Parallel lines do not intersect")
    det_a = p1.x * p2.y - p1.y * p2.x
    det_b = p3.x * p4.y - p3.y * p4.x
    return Point(
        (det_a * (p3.x - p4.x) - (p1.x - p2.x) * det_b) / denominator,
        (det_a * (p3.y - p4.y) - (p1.y - p2.y) * det_b) / denominator,
    )


def hexagon_from_sides(sides: list[tuple[Point, Point]]) -> BoundingHexagon:
    """Assemble corners and center from six sides in order.

    Raises:
        GeometryMismatch: If the hexagon is irregular or degenerate.
    """
    corners = [intersect_lines(sides[i], sides[(i + 1) % 6]) for i in range(6)]
    hexagon = BoundingHexagon(corners, Point(0.0, 0.0))

    lengths = hexagon.side_lengths
    average = sum(lengths) / 6
    if any(abs(length - average) > MAX_SIDE_DEVIATION * average for length in lengths):
        logger.debug("hexagon_irregular", side_lengths=[round(x, 1) for x in lengths])
        raise GeometryMismatch("Hexagon side lengths deviate too much")

    diagonals = [(corners[i], corners[i + 3]) for i in range(3)]
    centers = [
        intersect_lines(diagonals[0], diagonals[1]),
        intersect_lines(diagonals[1], diagonals[2]),
        intersect_lines(diagonals[2], diagonals[0]),
    ]
    hexagon.center = Point(
        sum(p.x for p in centers) / 3,
        sum(p.y for p in centers) / 3,
    )
    return hexagon


def detect_bounding_hexagon(binary: np.ndarray, rect: BoundingRect) -> BoundingHexagon:
    """Find the bounding hexagon of the code inside ``rect``.

    Raises:
        NotFound: If the hull or its sides cannot be found.
        GeometryMismatch: If the sides do not form a regular enough hexagon.
    """
    candidates = find_candidate_points(binary, rect)
    hull = convex_hull(candidates)
    sides = find_longest_sides(hull)
    hexagon = hexagon_from_sides(sides)
    logger.debug(
        "bounding_hexagon_detected",
        hull_size=len(hull),
        corners=[(round(p.x, 1), round(p.y, 1)) for p in hexagon.corners],
    )
    return hexagon
