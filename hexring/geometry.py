"""Geometric primitives: points, line segments and circular arcs.

Coordinates follow image conventions: the y axis grows downward. Arc angles
grow counter-clockwise as seen on screen, so a point at angle ``a`` on an arc
lies at ``(cx + r*cos(a), cy - r*sin(a))``.

``Line`` and ``Arc`` share the segment interface used by hexagon rings:
``length``, ``position_to_point``, ``between``, ``start_point`` and
``end_point``. Signed positions count from the end when negative.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .errors import InvalidArgument

# Tolerance for positions that overshoot a segment through float rounding
POSITION_EPSILON = 1e-10


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def translate(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)

    def scale(self, factor: float) -> Point:
        return Point(self.x * factor, self.y * factor)

    def rotate(self, angle: float, origin: Point | None = None) -> Point:
        """Rotate counter-clockwise on screen by ``angle`` radians."""
        ox, oy = (origin.x, origin.y) if origin is not None else (0.0, 0.0)
        dx, dy = self.x - ox, self.y - oy
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        return Point(ox + dx * cos_a + dy * sin_a, oy - dx * sin_a + dy * cos_a)

    def distance_to(self, other: Point) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


def _normalize_position(position: float, length: float) -> float:
    if not isinstance(position, (int, float)) or abs(position) - POSITION_EPSILON > length:
        raise InvalidArgument(f"Illegal position {position!r} on segment of length {length}")
    if position < 0:
        position += length
    return min(max(position, 0.0), length)


@dataclass(frozen=True)
class Line:
    start: Point
    end: Point

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)

    @property
    def start_point(self) -> Point:
        return self.start

    @property
    def end_point(self) -> Point:
        return self.end

    def position_to_point(self, position: float) -> Point:
        """Interpolate the point at a signed arclength along the line."""
        length = self.length
        position = _normalize_position(position, length)
        if length == 0:
            return self.start
        t = position / length
        return Point(
            self.start.x + t * (self.end.x - self.start.x),
            self.start.y + t * (self.end.y - self.start.y),
        )

    def sub_line(self, offset_start: float = 0.0, offset_end: float = 0.0) -> Line:
        """Trim ``offset_start`` from the start and ``offset_end`` from the end."""
        return Line(self.position_to_point(offset_start), self.position_to_point(-offset_end))

    def between(self, start: float, end: float) -> Line:
        """The piece of the line between two absolute positions."""
        return Line(self.position_to_point(start), self.position_to_point(end))


@dataclass(frozen=True)
class Arc:
    center: Point
    radius: float
    start_angle: float
    angle: float

    @classmethod
    def from_points(cls, center: Point, radius: float, start: Point, end: Point) -> Arc:
        """Build the counter-clockwise arc from ``start`` to ``end``.

        Both points must lie on the circle around ``center``.
        """
        if radius <= 0:
            raise InvalidArgument(f"Arc radius must be positive, got {radius}")
        reference = cls(center, radius, 0.0, 0.0)
        start_angle = reference.point_to_angle(start, relative=False)
        reference = cls(center, radius, start_angle, 0.0)
        return cls(center, radius, start_angle, reference.point_to_angle(end))

    @property
    def length(self) -> float:
        return self.angle * self.radius

    @property
    def start_point(self) -> Point:
        return self.angle_to_point(0.0)

    @property
    def end_point(self) -> Point:
        return self.angle_to_point(self.angle)

    def point_to_angle(self, point: Point, relative: bool = True) -> float:
        """Angle at which ``point`` lies on the circle.

        With ``relative`` the result is measured from ``start_angle`` and
        normalized into ``[0, 2*pi)``.
        """
        cos_value = (point.x - self.center.x) / self.radius
        angle = math.acos(min(1.0, max(-1.0, cos_value)))
        # acos only covers the upper half; points below the center are negative
        if point.y - self.center.y > 0:
            angle = -angle
        if relative:
            angle -= self.start_angle
            angle %= 2 * math.pi
        return angle

    def angle_to_point(self, angle: float, relative: bool = True) -> Point:
        if relative:
            angle += self.start_angle
        return Point(
            self.center.x + self.radius * math.cos(angle),
            self.center.y - self.radius * math.sin(angle),
        )

    def position_to_point(self, position: float) -> Point:
        """Point at a signed arclength along the arc."""
        position = _normalize_position(position, self.length)
        return self.angle_to_point(position / self.radius)

    def between(self, start: float, end: float) -> Arc:
        """The piece of the arc between two absolute positions."""
        start = _normalize_position(start, self.length)
        end = _normalize_position(end, self.length)
        return Arc(
            self.center,
            self.radius,
            self.start_angle + start / self.radius,
            (end - start) / self.radius,
        )

    def sub_arc(self, offset_start: float = 0.0, offset_end: float = 0.0) -> Arc:
        return self.between(offset_start, self.length - offset_end)


Segment = Line | Arc
