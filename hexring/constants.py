"""Versioned format constants.

Every value that shapes the bitstream or the ring geometry is published
per format version. A decoder reads the version field first and then looks
up the matching constants, so future versions may change field widths
without breaking old codes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .errors import InvalidArgument

CURRENT_VERSION = 0

# XOR mask catalog, indexed by the mask id stored in the header.
# Mask 0 leaves the data unchanged.
MASK_PATTERNS: tuple[tuple[int, ...], ...] = (
    (0,),
    (1,),
    (1, 0),
    (1, 1, 0, 0),
    (1, 0, 0),
    (1, 1, 0),
    (1, 1, 1, 0, 0, 0),
    (0, 1),
)


@dataclass(frozen=True)
class FormatConstants:
    version: int

    # Header field widths in bits
    version_bits: int = 4
    payload_length_bits: int = 8
    error_correction_length_bits: int = 16
    checksum_bits: int = 16
    mask_bits: int = 3
    # Header parity relative to the header data, rounded up to whole bytes
    header_error_correction_factor: float = 1.0

    # Ring geometry in code units
    innermost_radius: float = 150.0
    ring_distance: float = 50.0
    border_radius: float = 50.0
    line_width: float = 10.0
    slot_length: float = 10.0
    slot_distance: float = 0.0
    start_end_offset: float = 20.0
    finder_pattern_length: int = 2
    orientation_finder_length: float = 50.0

    # Payload error correction
    default_error_correction_factor: float = 0.5
    max_error_correction_factor: float = 2.0

    masks: tuple[tuple[int, ...], ...] = MASK_PATTERNS

    @property
    def max_payload_length(self) -> int:
        """Maximum payload size in bytes (the field stores length - 1)."""
        return 1 << self.payload_length_bits

    def ring_inner_radius(self, index: int) -> float:
        return self.innermost_radius + index * self.ring_distance

    def header_data_length(self, ring_count: int) -> int:
        return (
            self.version_bits
            + self.payload_length_bits
            + self.error_correction_length_bits
            + self.checksum_bits
            + self.mask_bits * ring_count
        )

    def header_parity_length(self, ring_count: int) -> int:
        data_length = self.header_data_length(ring_count)
        return 8 * math.ceil(data_length * self.header_error_correction_factor / 8)

    def header_length(self, ring_count: int) -> int:
        return self.header_data_length(ring_count) + self.header_parity_length(ring_count)


FORMAT_VERSIONS: dict[int, FormatConstants] = {
    0: FormatConstants(version=0),
}


def get_format(version: int = CURRENT_VERSION) -> FormatConstants:
    """Look up the constants of a format version.

    Raises:
        InvalidArgument: If the version is unknown.
    """
    try:
        return FORMAT_VERSIONS[version]
    except KeyError:
        raise InvalidArgument(f"Unsupported format version: {version}") from None
