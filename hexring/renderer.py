"""SVG and PNG rendering for hexagonal codes.

Renders every ring as stroked paths along its perimeter:

- Set slots are drawn, unset slots are left blank; consecutive set slots
  merge into one path of straight ``L`` and arc ``A`` commands
- Strokes use butt caps so slot boundaries stay where the geometry puts them
- The orientation mark is a straight stroke in the seam corner
- A quiet zone of white margin surrounds the code so the decoder can find
  its bounding rectangle

The drawing is done in code coordinates; the SVG viewBox maps them to the
requested pixel size.
"""

from __future__ import annotations

import math

import structlog

from .encoder import HexCode
from .errors import InvalidArgument
from .geometry import Arc, Segment

logger = structlog.get_logger(__name__)

DEFAULT_COLOR = "#000000"
DEFAULT_BACKGROUND = "#ffffff"
# Margin around the code relative to the outer corner radius
QUIET_ZONE = 0.35


def _fmt(value: float) -> str:
    return f"{value:.3f}"


def segments_to_path(segments: list[Segment]) -> str:
    """SVG path data for a connected run of lines and arcs."""
    if not segments:
        return ""
    start = segments[0].start_point
    commands = [f"M {_fmt(start.x)} {_fmt(start.y)}"]
    for segment in segments:
        end = segment.end_point
        if isinstance(segment, Arc):
            # sweep flag 0: counter-clockwise on screen
            radius = _fmt(segment.radius)
            commands.append(f"A {radius} {radius} 0 0 0 {_fmt(end.x)} {_fmt(end.y)}")
        else:
            commands.append(f"L {_fmt(end.x)} {_fmt(end.y)}")
    return " ".join(commands)


def code_extent(code: HexCode) -> float:
    """Half the side of the square viewport, quiet zone included."""
    constants = code.constants
    outer_apothem = constants.ring_inner_radius(code.ring_count - 1) + constants.line_width / 2
    return outer_apothem * 2 / math.sqrt(3) * (1 + QUIET_ZONE)


def render_svg(
    code: HexCode,
    size: int = 512,
    color: str = DEFAULT_COLOR,
    background: str = DEFAULT_BACKGROUND,
    rotation: float = 0.0,
) -> str:
    """Render a code as an SVG string.

    Args:
        code: Encoded code.
        size: Output size in pixels (width = height).
        color: Stroke color of set slots and the orientation mark.
        background: Background fill color.
        rotation: Clockwise rotation of the code in degrees.

    Returns:
        Complete SVG document as a string.
    """
    if size <= 0:
        raise InvalidArgument(f"Size must be positive, got {size}")
    extent = code_extent(code)
    line_width = _fmt(code.constants.line_width)

    svg_parts: list[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'viewBox="{_fmt(-extent)} {_fmt(-extent)} {_fmt(2 * extent)} {_fmt(2 * extent)}" '
        f'width="{size}" height="{size}">',
        f'  <rect x="{_fmt(-extent)}" y="{_fmt(-extent)}" '
        f'width="{_fmt(2 * extent)}" height="{_fmt(2 * extent)}" fill="{background}"/>',
        f'  <g transform="rotate({rotation:.3f})" fill="none" stroke="{color}" '
        f'stroke-width="{line_width}" stroke-linecap="butt">',
    ]

    path_count = 0
    for ring_index, ring in enumerate(code.rings):
        for segments, is_set in ring.slot_runs():
            if not is_set:
                continue
            svg_parts.append(f'    <path class="ring-{ring_index}" d="{segments_to_path(segments)}"/>')
            path_count += 1

    mark = code.orientation_finder
    svg_parts.append(
        f'    <line class="orientation" x1="{_fmt(mark.start.x)}" y1="{_fmt(mark.start.y)}" '
        f'x2="{_fmt(mark.end.x)}" y2="{_fmt(mark.end.y)}"/>'
    )
    svg_parts.append("  </g>")
    svg_parts.append("</svg>")
    svg_content = "\n".join(svg_parts)

    logger.debug(
        "svg_rendered",
        ring_count=code.ring_count,
        path_count=path_count,
        size=size,
        rotation=rotation,
    )
    return svg_content


def render_png(
    code: HexCode,
    size: int = 512,
    color: str = DEFAULT_COLOR,
    background: str = DEFAULT_BACKGROUND,
    rotation: float = 0.0,
) -> bytes:
    """Render a code as a PNG image.

    Generates SVG first, then converts to PNG via CairoSVG.

    Args:
        code: Encoded code.
        size: Output size in pixels.
        color: Stroke color of set slots and the orientation mark.
        background: Background fill color.
        rotation: Clockwise rotation of the code in degrees.

    Returns:
        PNG image bytes.
    """
    import cairosvg

    svg = render_svg(code, size, color, background, rotation)
    png_bytes = cairosvg.svg2png(
        bytestring=svg.encode("utf-8"),
        output_width=size,
        output_height=size,
    )

    logger.debug("png_rendered", ring_count=code.ring_count, size=size, bytes=len(png_bytes))
    return png_bytes
