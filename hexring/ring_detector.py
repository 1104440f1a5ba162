"""Hexagon ring detection: orientation, ring count, transform and sampling.

Works in two coordinate systems:

* code coordinates, the frame rings are defined in (center at the origin,
  ring 0 has apothem ``innermost_radius``), and
* image pixels.

Orientation
    The orientation mark is a radial stroke in the seam corner, several
    times longer than the corner arcs crossed at the other corners. Tracing
    from every corner towards the center, the corner with the longest
    leading black run is corner 0.

Ring count
    A preliminary transform maps ring 0's corners onto the detected corners,
    so it is off from the true transform by the unknown factor
    ``innermost_radius / outer edge apothem``. On both sides of the seam
    every ring starts (counter-clockwise side) or ends (clockwise side) with
    a finder pattern at a fixed distance from its corner. In the preliminary
    frame those marks lie on a line parallel to the corner-0 diagonal and
    are equally spaced, one per ring. The innermost ring's clockwise
    pattern is unset, so the clockwise side shows one mark less.

Sampling
    With the ring count known the preliminary transform is rescaled, and
    every slot center is mapped into the image and tested for black pixels.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
import structlog

from .binarizer import BLACK
from .bits import BitArray
from .bounding_hexagon import BoundingHexagon
from .constants import CURRENT_VERSION, FormatConstants, get_format
from .encoder import assign_ring_data, create_hexagon_ring, create_hexagon_rings
from .errors import GeometryMismatch, NotFound
from .geometry import Point
from .hexagon_ring import HexagonRing
from .transform import PerspectiveTransform

logger = structlog.get_logger(__name__)

# The orientation run must start within this fraction of the corner-center trace
ORIENTATION_SEARCH_FRACTION = 0.4
# The orientation run must be this much longer than any other corner's run
ORIENTATION_DOMINANCE = 1.5
# Consecutive finder mark spacings may differ by this fraction
MARK_SPACING_TOLERANCE = 0.2
# First mark spacing vs. the spacing predicted by the orientation mark
EXPECTED_SPACING_TOLERANCE = 0.35
# A clockwise pattern starting this much farther out than the
# counter-clockwise one belongs to data slots, not to a finder pattern
ONE_RING_DISTANCE_RATIO = 1.4
# Range of the mark walk, in multiples of the preliminary corner 0
MARK_WALK_START = 1.05
MARK_WALK_END = 0.15
# Pixels read per slot; diagonal neighbors reach into adjacent slots
SAMPLE_OFFSETS = ((0, 0), (-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass
class FinderScan:
    """Finder pattern measurements on one side of the seam.

    Attributes:
        first_black: Distance from corner 0 along the edge, in preliminary
            code units, of the first black pixel. None if nothing was found.
        marks: Mark positions along the walk, as multiples of corner 0,
            outermost first.
        count: Number of equally spaced marks.
    """

    first_black: float | None
    marks: list[float] = field(default_factory=list)
    count: int = 0


@dataclass
class Detection:
    """Everything recovered from one image.

    Attributes:
        hexagon: Bounding hexagon with the orientation corner first.
        ring_count: Number of detected rings.
        transform: Maps code coordinates to image pixels.
        rings: Ring geometries, innermost first, with sampled data assigned.
        data: Concatenated sampled data bits of all rings.
        finder_flags: Sampled (counter-clockwise, clockwise) finder flags per ring.
    """

    hexagon: BoundingHexagon
    ring_count: int
    transform: PerspectiveTransform
    rings: list[HexagonRing]
    data: BitArray
    finder_flags: list[tuple[bool, bool]]


# ----------------------------------------------------------------------
# Pixel helpers
# ----------------------------------------------------------------------


def _to_pixel(point: Point) -> tuple[int, int]:
    if not (math.isfinite(point.x) and math.isfinite(point.y)):
        raise GeometryMismatch("Point maps outside the image plane")
    return round(point.x), round(point.y)


def bresenham(start: tuple[int, int], end: tuple[int, int]) -> list[tuple[int, int]]:
    """Pixels on the digital line from ``start`` to ``end``, both included."""
    x0, y0 = start
    x1, y1 = end
    dx, dy = abs(x1 - x0), -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    error = dx + dy
    pixels = []
    while True:
        pixels.append((x0, y0))
        if x0 == x1 and y0 == y1:
            return pixels
        doubled = 2 * error
        if doubled >= dy:
            error += dy
            x0 += sx
        if doubled <= dx:
            error += dx
            y0 += sy


def is_black(binary: np.ndarray, x: int, y: int) -> bool:
    height, width = binary.shape
    return 0 <= x < width and 0 <= y < height and binary[y, x] == BLACK


def black_runs(flags: list[bool]) -> list[tuple[int, int]]:
    """(start, end) index pairs of consecutive True values, end exclusive."""
    runs = []
    start = None
    for index, flag in enumerate(flags):
        if flag and start is None:
            start = index
        elif not flag and start is not None:
            runs.append((start, index))
            start = None
    if start is not None:
        runs.append((start, len(flags)))
    return runs


def _unit(dx: float, dy: float) -> Point:
    length = math.hypot(dx, dy)
    return Point(dx / length, dy / length)


def _dot(a: Point, b: Point) -> float:
    return a.x * b.x + a.y * b.y


# ----------------------------------------------------------------------
# Orientation
# ----------------------------------------------------------------------


def find_orientation(
    binary: np.ndarray, hexagon: BoundingHexagon
) -> tuple[int, tuple[int, int], tuple[int, int]]:
    """Locate the corner holding the orientation mark.

    Returns:
        Corner index plus the first and last pixel of the mark.

    Raises:
        NotFound: If no corner shows a clearly longest run.
    """
    center = _to_pixel(hexagon.center)
    measurements = []
    for index, corner in enumerate(hexagon.corners):
        trace = bresenham(_to_pixel(corner), center)
        runs = black_runs([is_black(binary, x, y) for x, y in trace])
        run = next((r for r in runs if r[0] <= ORIENTATION_SEARCH_FRACTION * len(trace)), None)
        if run is None:
            measurements.append((0.0, index, None))
            continue
        start, end = run
        measurements.append(((end - start) / len(trace), index, (trace[start], trace[end - 1])))

    measurements.sort(key=lambda m: m[0], reverse=True)
    (best, index, mark), (runner_up, _, _) = measurements[0], measurements[1]
    logger.debug(
        "orientation_runs",
        runs=[round(m[0], 3) for m in measurements],
        corner=index,
    )
    if mark is None or best < ORIENTATION_DOMINANCE * runner_up:
        raise NotFound("orientation finder")
    return index, mark[0], mark[1]


# ----------------------------------------------------------------------
# Finder patterns
# ----------------------------------------------------------------------


def _scan_finder_start(
    binary: np.ndarray,
    transform: PerspectiveTransform,
    inverse: PerspectiveTransform,
    corner: Point,
    direction: Point,
    scale: float,
    constants: FormatConstants,
    edge_length: float,
) -> float | None:
    """Distance along the edge from ``corner`` to the first black pixel.

    The seam gap next to the corner is skipped. Every pixel on the edge is
    extended by a short sweep perpendicular into the code, so the stroke is
    hit even where the edge itself falls on white anti-aliasing pixels.
    """
    expected = constants.start_end_offset + constants.line_width / (2 * math.sqrt(3))
    skip = 0.6 * expected * scale
    inward = Point(-direction.y, direction.x)
    if _dot(inward, corner) > 0:
        inward = inward.scale(-1)

    start = corner.translate(direction.x * skip, direction.y * skip)
    end = corner.translate(direction.x * edge_length / 2, direction.y * edge_length / 2)
    depth_end = start.translate(
        inward.x * 0.6 * constants.line_width * scale,
        inward.y * 0.6 * constants.line_width * scale,
    )
    image_start = transform.transform(start)
    image_depth = transform.transform(depth_end)
    depth = math.hypot(image_depth.x - image_start.x, image_depth.y - image_start.y)
    if depth == 0:
        return None
    sweep = Point(
        (image_depth.x - image_start.x) / depth, (image_depth.y - image_start.y) / depth
    )

    for x, y in bresenham(_to_pixel(image_start), _to_pixel(transform.transform(end))):
        for step in range(-1, math.ceil(depth) + 1):
            px, py = round(x + sweep.x * step), round(y + sweep.y * step)
            if is_black(binary, px, py):
                hit = inverse.transform(Point(px, py))
                return _dot(Point(hit.x - corner.x, hit.y - corner.y), direction)
    return None


def _walk_finder_marks(
    binary: np.ndarray,
    transform: PerspectiveTransform,
    inverse: PerspectiveTransform,
    corner: Point,
    direction: Point,
    offset: float,
) -> list[float]:
    """Mark centers on the line parallel to the corner diagonal.

    Points on the line are ``k * corner + offset * direction``; the marks are
    returned as their ``k`` values, outermost first.
    """
    shift = Point(direction.x * offset, direction.y * offset)
    start = corner.scale(MARK_WALK_START).translate(shift.x, shift.y)
    end = corner.scale(MARK_WALK_END).translate(shift.x, shift.y)
    trace = bresenham(_to_pixel(transform.transform(start)), _to_pixel(transform.transform(end)))
    runs = black_runs([is_black(binary, x, y) for x, y in trace])

    corner_norm = _dot(corner, corner)
    marks = []
    for run_start, run_end in runs:
        x, y = trace[(run_start + run_end - 1) // 2]
        point = inverse.transform(Point(x, y))
        marks.append(_dot(Point(point.x - shift.x, point.y - shift.y), corner) / corner_norm)
    return marks


def count_equally_spaced(marks: list[float]) -> int:
    """Number of leading marks whose spacings agree with the first spacing."""
    if len(marks) < 2:
        return len(marks)
    first = marks[0] - marks[1]
    count = 2
    for outer, inner in zip(marks[1:], marks[2:]):
        if abs((outer - inner) - first) > MARK_SPACING_TOLERANCE * first:
            break
        count += 1
    return count


def scan_finder_pattern(
    binary: np.ndarray,
    transform: PerspectiveTransform,
    inverse: PerspectiveTransform,
    corner: Point,
    direction: Point,
    scale: float,
    constants: FormatConstants,
    edge_length: float,
) -> FinderScan:
    """Measure the finder pattern along one edge next to corner 0."""
    first_black = _scan_finder_start(
        binary, transform, inverse, corner, direction, scale, constants, edge_length
    )
    if first_black is None:
        return FinderScan(first_black=None)

    # from the outer edge of the pattern start to its middle line
    pattern_length = constants.finder_pattern_length * constants.slot_length
    offset = first_black * (
        (constants.start_end_offset + pattern_length / 2)
        / (constants.start_end_offset + constants.line_width / (2 * math.sqrt(3)))
    )
    marks = _walk_finder_marks(binary, transform, inverse, corner, direction, offset)
    count = count_equally_spaced(marks)

    if count >= 2:
        expected = constants.ring_distance * scale / constants.innermost_radius
        spacing = marks[0] - marks[1]
        if abs(spacing - expected) > EXPECTED_SPACING_TOLERANCE * expected:
            logger.debug("finder_spacing_unexpected", spacing=spacing, expected=expected)
            raise NotFound("finder pattern")
    return FinderScan(first_black=first_black, marks=marks, count=count)


def resolve_ring_count(counterclockwise: FinderScan, clockwise: FinderScan) -> int:
    """Combine the finder scans on both sides of the seam into a ring count.

    Raises:
        NotFound: If the scans are inconsistent.
    """
    if counterclockwise.first_black is None or counterclockwise.count == 0:
        raise NotFound("finder pattern")
    clockwise_absent = (
        clockwise.first_black is None
        or clockwise.first_black > ONE_RING_DISTANCE_RATIO * counterclockwise.first_black
    )
    if clockwise_absent:
        if counterclockwise.count != 1:
            raise NotFound("finder pattern")
        return 1
    if clockwise.count == 0:
        raise NotFound("finder pattern")
    return min(counterclockwise.count, clockwise.count) + 1


# ----------------------------------------------------------------------
# Transform and sampling
# ----------------------------------------------------------------------


def outer_edge_apothem(ring_count: int, constants: FormatConstants) -> float:
    return constants.ring_inner_radius(ring_count - 1) + constants.line_width / 2


def refine_transform(
    preliminary: PerspectiveTransform, ring_count: int, constants: FormatConstants
) -> PerspectiveTransform:
    """Rescale so the outermost ring's outer edge lands on the detected hexagon."""
    factor = constants.innermost_radius / outer_edge_apothem(ring_count, constants)
    return PerspectiveTransform.from_scaling_factor(factor).multiply(preliminary)


def sample_points(binary: np.ndarray, points: np.ndarray) -> np.ndarray:
    """True where a point's pixel or one of its 4 edge neighbors is black.

    Points outside the image, or not finite, read as unset.
    """
    height, width = binary.shape
    pixels = np.round(np.nan_to_num(points, nan=-10.0, posinf=-10.0, neginf=-10.0))
    pixels = pixels.astype(np.int64)
    result = np.zeros(len(pixels), dtype=bool)
    for dx, dy in SAMPLE_OFFSETS:
        xs = pixels[:, 0] + dx
        ys = pixels[:, 1] + dy
        inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
        hit = np.zeros(len(pixels), dtype=bool)
        hit[inside] = binary[ys[inside], xs[inside]] == BLACK
        result |= hit
    return result


def sample_rings(
    binary: np.ndarray, rings: list[HexagonRing], transform: PerspectiveTransform
) -> tuple[BitArray, list[tuple[bool, bool]]]:
    """Sample every slot of every ring.

    Returns:
        Concatenated data bits and the (counter-clockwise, clockwise) finder
        flags per ring.
    """
    data = BitArray(sum(ring.bit_count for ring in rings))
    finder_flags = []
    offset = 0
    for ring in rings:
        centers = np.array(
            [ring.get_slot_location(i)[0].as_tuple() for i in range(ring.slot_count)]
        )
        slots = sample_points(binary, transform.transform_points(centers))
        ccw = slots[: ring.finder_ccw_length]
        cw = slots[ring.slot_count - ring.finder_cw_length :]
        finder_flags.append((bool(ccw.all()), bool(cw.all())))
        data_slots = slots[ring.finder_ccw_length : ring.slot_count - ring.finder_cw_length]
        for index, value in enumerate(data_slots):
            if value:
                data.set_bit(offset + index)
        offset += ring.bit_count
    return data, finder_flags


def detect_rings(
    binary: np.ndarray,
    hexagon: BoundingHexagon,
    version: int = CURRENT_VERSION,
) -> Detection:
    """Recover ring count, transform and slot samples from a bounding hexagon.

    Args:
        binary: Binarized image (0 = black).
        hexagon: Detected bounding hexagon in counter-clockwise order.
        version: Format version whose geometry to assume.

    Returns:
        Detection with sampled ring data assigned to the rings.

    Raises:
        NotFound: If the orientation or finder patterns cannot be found.
        GeometryMismatch: If the geometry degenerates.
    """
    constants = get_format(version)
    orientation_corner, mark_start, mark_end = find_orientation(binary, hexagon)
    hexagon = hexagon.rotated(orientation_corner)

    reference = create_hexagon_ring(0, constants)
    virtual = reference.virtual_corners
    preliminary = PerspectiveTransform.from_corresponding_points(
        [virtual[0], virtual[1], virtual[3], virtual[4]],
        [hexagon.corners[0], hexagon.corners[1], hexagon.corners[3], hexagon.corners[4]],
    )
    inverse = preliminary.invert()

    # the orientation mark has a known length, which gives the preliminary scale
    mark_pixels = len(bresenham(mark_start, mark_end))
    mark_length = inverse.transform(Point(*mark_start)).distance_to(
        inverse.transform(Point(*mark_end))
    )
    if mark_pixels > 1:
        mark_length *= mark_pixels / (mark_pixels - 1)
    scale = mark_length / constants.orientation_finder_length
    logger.debug("orientation_detected", corner=orientation_corner, scale=round(scale, 4))

    corner = virtual[0]
    ccw_direction = _unit(virtual[1].x - corner.x, virtual[1].y - corner.y)
    cw_direction = _unit(virtual[5].x - corner.x, virtual[5].y - corner.y)
    edge_length = reference.outer_radius
    counterclockwise = scan_finder_pattern(
        binary, preliminary, inverse, corner, ccw_direction, scale, constants, edge_length
    )
    clockwise = scan_finder_pattern(
        binary, preliminary, inverse, corner, cw_direction, scale, constants, edge_length
    )
    ring_count = resolve_ring_count(counterclockwise, clockwise)
    logger.debug(
        "ring_count_detected",
        ring_count=ring_count,
        ccw_marks=counterclockwise.count,
        cw_marks=clockwise.count,
        ccw_start=counterclockwise.first_black,
        cw_start=clockwise.first_black,
    )

    transform = refine_transform(preliminary, ring_count, constants)
    rings = create_hexagon_rings(ring_count, constants)
    data, finder_flags = sample_rings(binary, rings, transform)
    assign_ring_data(rings, data)

    for index, (ring, flags) in enumerate(zip(rings, finder_flags)):
        if flags != (ring.finder_ccw_set, ring.finder_cw_set):
            logger.debug("finder_flags_mismatch", ring=index, sampled=flags)

    return Detection(
        hexagon=hexagon,
        ring_count=ring_count,
        transform=transform,
        rings=rings,
        data=data,
        finder_flags=finder_flags,
    )
