"""Self-describing header at the start of every bitstream.

Layout (MSB first), widths taken from the format version's constants::

    [version][payload length - 1][error correction length][checksum]
    [mask id] x ring count
    [header parity]

The header is protected by its own Reed-Solomon parity so that the length
and mask fields survive the same noise as the payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from .bits import BitArray
from .constants import CURRENT_VERSION, FORMAT_VERSIONS, FormatConstants
from .ecc import ecc_decode, ecc_encode
from .errors import FormatError, InvalidArgument

logger = structlog.get_logger(__name__)


@dataclass
class Header:
    """Decoded header fields.

    Attributes:
        version: Format version.
        payload_length: Payload size in bits.
        error_correction_length: Payload parity and fill in bits.
        checksum: Checksum over the payload bytes.
        ring_masks: Mask id per ring, innermost first.
    """

    version: int
    payload_length: int
    error_correction_length: int
    checksum: int
    ring_masks: list[int] = field(default_factory=list)

    @property
    def ring_count(self) -> int:
        return len(self.ring_masks)


def write_header(target: BitArray, header: Header, constants: FormatConstants) -> None:
    """Encode ``header`` into the first bits of ``target``.

    Raises:
        InvalidArgument: If a field does not fit its width or ``target`` is
            too short.
    """
    ring_count = header.ring_count
    data_length = constants.header_data_length(ring_count)
    parity_length = constants.header_parity_length(ring_count)
    if len(target) < data_length + parity_length:
        raise InvalidArgument("Target too short for header")
    if header.payload_length % 8 or header.payload_length <= 0:
        raise InvalidArgument(f"Payload length must be whole bytes, got {header.payload_length} bits")

    fields = BitArray(data_length)
    position = 0
    for value, width in (
        (header.version, constants.version_bits),
        (header.payload_length // 8 - 1, constants.payload_length_bits),
        (header.error_correction_length, constants.error_correction_length_bits),
        (header.checksum, constants.checksum_bits),
        *((mask, constants.mask_bits) for mask in header.ring_masks),
    ):
        fields.write_unsigned_integer(position, value, width)
        position += width

    target.write_bit_array(ecc_encode(fields, parity_length))


def read_header(source: BitArray, ring_count: int) -> Header:
    """Decode the header at the start of ``source``.

    The version field is read before correction to select the layout; it is
    verified again on the corrected bits.

    Raises:
        FormatError: On unknown versions, uncorrectable header bits, or a
            declared length that differs from the capacity of ``source``.
    """
    version_bits = FORMAT_VERSIONS[CURRENT_VERSION].version_bits
    if len(source) < version_bits:
        raise FormatError("Bitstream too short for a header")
    # every version keeps the version field first and equally wide; a
    # corrupted version falls back to the current layout until corrected
    raw_version = source.read_unsigned_integer(0, version_bits)
    constants = FORMAT_VERSIONS.get(raw_version, FORMAT_VERSIONS[CURRENT_VERSION])

    data_length = constants.header_data_length(ring_count)
    parity_length = constants.header_parity_length(ring_count)
    header_length = data_length + parity_length
    if len(source) < header_length:
        raise FormatError("Bitstream too short for a header")

    fields = ecc_decode(source.view(0, header_length), data_length, parity_length)
    position = 0

    def take(width: int) -> int:
        nonlocal position
        value = fields.read_unsigned_integer(position, width)
        position += width
        return value

    header = Header(
        version=take(constants.version_bits),
        payload_length=(take(constants.payload_length_bits) + 1) * 8,
        error_correction_length=take(constants.error_correction_length_bits),
        checksum=take(constants.checksum_bits),
        ring_masks=[take(constants.mask_bits) for _ in range(ring_count)],
    )
    if header.version != constants.version:
        raise FormatError(f"Unsupported version: {header.version}")

    total = header_length + header.payload_length + header.error_correction_length
    if total != len(source):
        logger.debug("header_length_mismatch", declared=total, capacity=len(source))
        raise FormatError(f"Declared length {total} does not match capacity {len(source)}")
    return header

