"""Geometry of one rounded hexagon ring.

The ring is a flat-topped hexagon centered on the origin (y axis pointing
down) whose corners are rounded with ``border_radius``. Its perimeter is
traversed counter-clockwise starting at the lower right corner. That corner
is not rounded but left open by ``start_end_offset`` on both sides; the gap
hosts the orientation finder.

The perimeter is split into equally long slots. The first
``finder_ccw_length`` and last ``finder_cw_length`` slots hold fixed finder
pattern values, the remaining ``bit_count`` slots carry data bits.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import Literal

from .bits import BitArray
from .errors import InvalidArgument
from .geometry import Arc, Line, Point, Segment

SlotPosition = Literal["start", "center", "end"]

_SLOT_FRACTIONS = {"start": 0.0, "center": 0.5, "end": 1.0}
_POSITION_EPSILON = 1e-10


class HexagonRing:
    """One concentric ring of a hexagonal code."""

    def __init__(
        self,
        inner_radius: float,
        border_radius: float,
        start_end_offset: float,
        slot_distance: float,
        slot_length: float,
        finder_cw_length: int,
        finder_ccw_length: int,
        finder_cw_set: bool,
        finder_ccw_set: bool,
    ) -> None:
        if (
            start_end_offset < 1
            or border_radius < 1
            or slot_length < 1
            or slot_distance < 0
            or finder_cw_length < 0
            or finder_ccw_length < 0
        ):
            raise InvalidArgument("Illegal hexagon ring parameters")

        self.inner_radius = float(inner_radius)
        self.outer_radius = self.inner_radius * 2 / math.sqrt(3)
        self.border_radius = float(border_radius)
        self.start_end_offset = float(start_end_offset)

        self.virtual_corners = self._virtual_corners()
        self.segments: list[Segment] = self._calculate_segments()
        if any(segment.length <= 0 for segment in self.segments):
            raise InvalidArgument("Hexagon ring too small for its border radius")
        self.length = sum(segment.length for segment in self.segments)

        self.slot_distance = float(slot_distance)
        self.slot_count = math.floor((self.length + slot_distance) / (slot_length + slot_distance))
        if self.slot_count <= finder_cw_length + finder_ccw_length:
            raise InvalidArgument("Hexagon ring has no room for data slots")
        # Recompute the slot length so that the slots tile the ring without remainder
        self.slot_length = (self.length - (self.slot_count - 1) * slot_distance) / self.slot_count

        self.finder_cw_length = finder_cw_length
        self.finder_ccw_length = finder_ccw_length
        self.finder_cw_set = finder_cw_set
        self.finder_ccw_set = finder_ccw_set

        self._data: BitArray | None = None

    def __repr__(self) -> str:
        return (
            f"HexagonRing(inner_radius={self.inner_radius}, slots={self.slot_count}, "
            f"bits={self.bit_count})"
        )

    @property
    def bit_count(self) -> int:
        return self.slot_count - self.finder_ccw_length - self.finder_cw_length

    @property
    def data(self) -> BitArray | None:
        return self._data

    @data.setter
    def data(self, data: BitArray) -> None:
        if not isinstance(data, BitArray) or len(data) != self.bit_count:
            raise InvalidArgument(f"Ring data must be a BitArray of {self.bit_count} bits")
        self._data = data

    def _virtual_corners(self) -> list[Point]:
        half_side = self.outer_radius / 2
        return [
            Point(half_side, self.inner_radius),  # bottom right
            Point(self.outer_radius, 0.0),  # right
            Point(half_side, -self.inner_radius),  # top right
            Point(-half_side, -self.inner_radius),  # top left
            Point(-self.outer_radius, 0.0),  # left
            Point(-half_side, self.inner_radius),  # bottom left
        ]

    def _calculate_segments(self) -> list[Segment]:
        # The arc joins both sides tangentially, so virtual corner, arc center
        # and arc end point form a right triangle with a 30 degree angle at
        # the arc center. Its legs give the side trim and the arc center offset.
        side_offset = math.tan(math.pi / 6) * self.border_radius
        corner_arc_offset = self.border_radius / math.cos(math.pi / 6)
        corners = self.virtual_corners

        sides = []
        for i in range(6):
            trim_start = self.start_end_offset if i == 0 else side_offset
            trim_end = self.start_end_offset if i == 5 else side_offset
            sides.append(Line(corners[i], corners[(i + 1) % 6]).sub_line(trim_start, trim_end))

        origin = Point(0.0, 0.0)
        segments: list[Segment] = [sides[0]]
        for i in range(1, 6):
            center = Line(origin, corners[i]).position_to_point(-corner_arc_offset)
            arc = Arc.from_points(center, self.border_radius, sides[i - 1].end, sides[i].start)
            segments.extend([arc, sides[i]])
        return segments

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def is_finder_slot(self, slot_index: int) -> bool:
        return (
            slot_index < self.finder_ccw_length
            or slot_index >= self.slot_count - self.finder_cw_length
        )

    def is_slot_set(self, slot_index: int) -> bool:
        if not 0 <= slot_index < self.slot_count:
            raise InvalidArgument(f"Illegal slot index: {slot_index}")
        if slot_index < self.finder_ccw_length:
            return self.finder_ccw_set
        if slot_index >= self.slot_count - self.finder_cw_length:
            return self.finder_cw_set
        if self._data is None:
            raise InvalidArgument("Ring has no data assigned")
        return bool(self._data.get_bit(slot_index - self.finder_ccw_length))

    def slot_position(self, slot_index: int, position: SlotPosition = "center") -> float:
        """Arclength of a slot's start, center or end along the perimeter."""
        if not isinstance(slot_index, int) or not 0 <= slot_index < self.slot_count:
            raise InvalidArgument(f"Illegal slot index: {slot_index!r}")
        try:
            fraction = _SLOT_FRACTIONS[position]
        except KeyError:
            raise InvalidArgument(f"Illegal slot position: {position!r}") from None
        return slot_index * (self.slot_length + self.slot_distance) + fraction * self.slot_length

    def get_slot_location(
        self, slot_index: int, position: SlotPosition = "center"
    ) -> tuple[Point, Segment]:
        """Coordinates of a slot and the segment that holds it."""
        remaining = self.slot_position(slot_index, position)
        for segment in self.segments:
            # floating point error may push the very last position past its segment
            if remaining - _POSITION_EPSILON <= segment.length:
                return segment.position_to_point(remaining), segment
            remaining -= segment.length
        raise InvalidArgument(f"Illegal slot index: {slot_index}")

    def get_data_slot_location(
        self, data_index: int, position: SlotPosition = "center"
    ) -> tuple[Point, Segment]:
        return self.get_slot_location(data_index + self.finder_ccw_length, position)

    def get_finder_pattern_slot_location(
        self, clockwise: bool = False, position: SlotPosition = "center"
    ) -> tuple[Point, Segment]:
        """Location of the outermost slot of a finder pattern."""
        return self.get_slot_location(self.slot_count - 1 if clockwise else 0, position)

    # ------------------------------------------------------------------
    # Render output
    # ------------------------------------------------------------------

    def path_between(self, start: float, end: float) -> list[Segment]:
        """Segment pieces covering the perimeter between two arclengths."""
        pieces: list[Segment] = []
        offset = 0.0
        for segment in self.segments:
            segment_end = offset + segment.length
            piece_start = max(start, offset)
            piece_end = min(end, segment_end)
            if piece_end - piece_start > 1e-9:
                pieces.append(segment.between(piece_start - offset, piece_end - offset))
            offset = segment_end
        return pieces

    def slot_runs(self) -> Iterator[tuple[list[Segment], bool]]:
        """Yield ``(segments, is_set)`` for runs of equal consecutive slots.

        Slots are only merged when no distance separates them.
        """
        run_start = 0
        run_value = self.is_slot_set(0)
        for slot_index in range(1, self.slot_count + 1):
            if slot_index < self.slot_count:
                value = self.is_slot_set(slot_index)
                if value == run_value and self.slot_distance == 0:
                    continue
            yield (
                self.path_between(
                    self.slot_position(run_start, "start"),
                    self.slot_position(slot_index - 1, "end"),
                ),
                run_value,
            )
            if slot_index < self.slot_count:
                run_start, run_value = slot_index, value
