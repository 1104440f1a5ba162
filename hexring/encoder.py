"""Format assembler for hexagonal codes.

Builds and parses the full bitstream of a code::

    [header][payload][error correction parity + fill]

and distributes it over as many concentric hexagon rings as needed.

Encoding algorithm:
1. Add rings of increasing radius until their capacity covers the header
   (whose size depends on the ring count), the payload and the minimum
   error correction length implied by the requested factor
2. Use all remaining capacity as payload parity so no slot is wasted
3. Per ring, pick and apply the XOR mask with the fewest transitions
4. Write the header with checksum, lengths and mask ids, protected by its
   own parity
5. Hand each ring a zero-copy view of its part of the bitstream

Ring positions are fully determined by the ring count, so a decoder only
needs to find the rings and sample their slots.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import structlog

from .bits import BitArray, compute_checksum
from .constants import CURRENT_VERSION, FormatConstants, get_format
from .ecc import ecc_decode, ecc_encode
from .errors import FormatError, InvalidArgument
from .geometry import Line, Point
from .header import Header, read_header, write_header
from .hexagon_ring import HexagonRing
from .masking import apply_mask, find_best_mask

logger = structlog.get_logger(__name__)


@dataclass
class HexCode:
    """An encoded code: rings with their data views plus the bitstream.

    Attributes:
        payload: The encoded bytes.
        rings: Hexagon rings, innermost first.
        data: Global bitstream sliced into the ring views.
        header: Header fields written into ``data``.
        constants: Format constants of ``header.version``.
    """

    payload: bytes
    rings: list[HexagonRing]
    data: BitArray
    header: Header
    constants: FormatConstants = field(repr=False)

    @property
    def ring_count(self) -> int:
        return len(self.rings)

    @property
    def version(self) -> int:
        return self.header.version

    @property
    def orientation_finder(self) -> Line:
        return orientation_finder_line(self.ring_count, self.constants)


def create_hexagon_ring(index: int, constants: FormatConstants) -> HexagonRing:
    """Ring ``index`` (0 = innermost) of a code.

    The innermost ring leaves its clockwise finder pattern unset, so the
    finder patterns on both sides of the seam differ by exactly one ring.
    """
    return HexagonRing(
        inner_radius=constants.ring_inner_radius(index),
        border_radius=constants.border_radius,
        start_end_offset=constants.start_end_offset,
        slot_distance=constants.slot_distance,
        slot_length=constants.slot_length,
        finder_cw_length=constants.finder_pattern_length,
        finder_ccw_length=constants.finder_pattern_length,
        finder_cw_set=index != 0,
        finder_ccw_set=True,
    )


def create_hexagon_rings(ring_count: int, constants: FormatConstants) -> list[HexagonRing]:
    return [create_hexagon_ring(index, constants) for index in range(ring_count)]


def corner_arc_middle_distance(inner_radius: float, constants: FormatConstants) -> float:
    """Distance from the center to the middle of a ring's rounded corner."""
    return (
        inner_radius * 2 / math.sqrt(3)
        - constants.border_radius / math.cos(math.pi / 6)
        + constants.border_radius
    )


def orientation_finder_line(ring_count: int, constants: FormatConstants) -> Line:
    """Center line of the orientation mark in the seam corner.

    The mark starts where the outer edge of the outermost ring's corner arc
    would be and points towards the center.
    """
    outermost = constants.ring_inner_radius(ring_count - 1)
    outer = corner_arc_middle_distance(outermost, constants) + constants.line_width / 2
    inner = outer - constants.orientation_finder_length
    # unit vector from the center to the seam corner (bottom right)
    direction = Point(0.5, math.sqrt(3) / 2)
    return Line(direction.scale(outer), direction.scale(inner))


def assign_ring_data(rings: list[HexagonRing], data: BitArray) -> None:
    """Slice ``data`` into consecutive views, one per ring."""
    capacity = sum(ring.bit_count for ring in rings)
    if len(data) != capacity:
        raise InvalidArgument(f"Data has {len(data)} bits, rings hold {capacity}")
    offset = 0
    for ring in rings:
        ring.data = data.view(offset, offset + ring.bit_count)
        offset += ring.bit_count


def _ring_mask_ranges(rings: list[HexagonRing], header_length: int) -> list[tuple[int, int, int]]:
    """(global offset, bit count, first ring-local masked bit) per ring."""
    ranges = []
    offset = 0
    for ring in rings:
        masked_from = min(max(0, header_length - offset), ring.bit_count)
        ranges.append((offset, ring.bit_count, masked_from))
        offset += ring.bit_count
    return ranges


def encode(
    payload: bytes,
    error_correction_factor: float | None = None,
    version: int = CURRENT_VERSION,
    masking: bool = True,
) -> HexCode:
    """Encode bytes into a hexagonal code.

    Args:
        payload: Data to encode.
        error_correction_factor: Minimum parity relative to the payload size.
            Defaults to the version's default factor.
        version: Format version.
        masking: Whether to pick data masks. Disabled codes use mask 0.

    Returns:
        HexCode ready for rendering.

    Raises:
        InvalidArgument: If the payload is empty or too large, or the factor
            or version is unsupported.
    """
    constants = get_format(version)
    if not isinstance(payload, (bytes, bytearray)):
        raise InvalidArgument("Payload must be bytes")
    payload = bytes(payload)
    if not 1 <= len(payload) <= constants.max_payload_length:
        raise InvalidArgument(
            f"Payload must be 1-{constants.max_payload_length} bytes, got {len(payload)}"
        )
    if error_correction_factor is None:
        error_correction_factor = constants.default_error_correction_factor
    if (
        not isinstance(error_correction_factor, (int, float))
        or isinstance(error_correction_factor, bool)
        or not 0 <= error_correction_factor <= constants.max_error_correction_factor
    ):
        raise InvalidArgument(
            f"Error correction factor must be 0-{constants.max_error_correction_factor}, "
            f"got {error_correction_factor}"
        )

    payload_length = len(payload) * 8
    minimum_parity = math.ceil(payload_length * error_correction_factor)
    rings: list[HexagonRing] = []
    capacity = 0
    while True:
        rings.append(create_hexagon_ring(len(rings), constants))
        capacity += rings[-1].bit_count
        header_length = constants.header_length(len(rings))
        if capacity >= header_length + payload_length + minimum_parity:
            break

    error_correction_length = capacity - header_length - payload_length
    data = BitArray(capacity)
    codeword = ecc_encode(BitArray.from_buffer(payload), error_correction_length)
    data.write_bit_array(codeword, header_length)

    ring_masks = []
    for offset, bit_count, masked_from in _ring_mask_ranges(rings, header_length):
        ring_view = data.view(offset, offset + bit_count)
        mask_id = find_best_mask(ring_view, masked_from, constants.masks) if masking else 0
        apply_mask(ring_view, mask_id, masked_from, constants.masks)
        ring_masks.append(mask_id)

    header = Header(
        version=constants.version,
        payload_length=payload_length,
        error_correction_length=error_correction_length,
        checksum=compute_checksum(payload),
        ring_masks=ring_masks,
    )
    write_header(data.view(0, header_length), header, constants)
    assign_ring_data(rings, data)

    logger.debug(
        "code_encoded",
        payload_bytes=len(payload),
        ring_count=len(rings),
        header_bits=header_length,
        error_correction_bits=error_correction_length,
        masks=ring_masks,
    )
    return HexCode(payload=payload, rings=rings, data=data, header=header, constants=constants)


def decode_bits(rings: list[HexagonRing], data: BitArray) -> bytes:
    """Parse a sampled bitstream back into the payload.

    ``data`` is not modified.

    Args:
        rings: The detected rings, innermost first.
        data: Concatenated data bits of all rings.

    Returns:
        The payload bytes.

    Raises:
        InvalidArgument: If ``data`` does not match the rings' capacity.
        FormatError: On header errors, uncorrectable payloads or a checksum
            mismatch.
    """
    capacity = sum(ring.bit_count for ring in rings)
    if not rings or len(data) != capacity:
        raise InvalidArgument(f"Data has {len(data)} bits, rings hold {capacity}")

    header = read_header(data, len(rings))
    constants = get_format(header.version)
    header_length = constants.header_length(len(rings))

    unmasked = data.copy()
    for (offset, bit_count, masked_from), mask_id in zip(
        _ring_mask_ranges(rings, header_length), header.ring_masks
    ):
        apply_mask(unmasked.view(offset, offset + bit_count), mask_id, masked_from, constants.masks)

    payload_bits = ecc_decode(
        unmasked.view(header_length), header.payload_length, header.error_correction_length
    )
    payload = payload_bits.to_bytes()
    checksum = compute_checksum(payload)
    if checksum != header.checksum:
        logger.debug("checksum_mismatch", expected=header.checksum, actual=checksum)
        raise FormatError("Checksum mismatch")

    logger.debug("bits_decoded", payload_bytes=len(payload), ring_count=len(rings))
    return payload

