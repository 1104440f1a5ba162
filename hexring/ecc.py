"""Bit-level Reed-Solomon error correction.

Adapts the byte oriented ``reedsolo`` codec to the bit containers used by
the format:

* ``ecc_encode(data_bits, parity_length)`` returns a codeword of exactly
  ``len(data_bits) + parity_length`` bits: the data bits unchanged, then
  ``parity_length // 8`` parity bytes, then zero fill for the remainder.
* ``ecc_decode(received, data_length, parity_length)`` returns the corrected
  data bits or raises ``ECCError``.

Data bits are zero padded to whole bytes before coding. Codewords longer
than a Reed-Solomon block are split into consecutive
blocks with data and parity spread evenly.
"""

from __future__ import annotations

import math

import structlog
from reedsolo import ReedSolomonError, RSCodec

from .bits import BitArray
from .errors import ECCError, InvalidArgument

logger = structlog.get_logger(__name__)

# Keeps every block below the 255 byte Reed-Solomon limit after uneven splits
_MAX_BLOCK_BYTES = 253


def _split(total: int, parts: int) -> list[int]:
    return [total // parts + (1 if i < total % parts else 0) for i in range(parts)]


def _block_layout(data_bytes: int, parity_bytes: int) -> list[tuple[int, int]]:
    """(data bytes, parity bytes) per block."""
    block_count = max(1, math.ceil((data_bytes + parity_bytes) / _MAX_BLOCK_BYTES))
    return list(zip(_split(data_bytes, block_count), _split(parity_bytes, block_count)))


def ecc_encode(data_bits: BitArray, parity_length: int) -> BitArray:
    """Append ``parity_length`` bits of Reed-Solomon parity to ``data_bits``.

    Args:
        data_bits: The bits to protect.
        parity_length: Number of bits available for parity.

    Returns:
        A new BitArray holding data, parity bytes and zero fill.

    Raises:
        InvalidArgument: If the parity length is negative.
    """
    if parity_length < 0:
        raise InvalidArgument(f"Negative parity length: {parity_length}")
    data = data_bits.to_bytes()
    parity = bytearray()
    offset = 0
    for data_size, parity_size in _block_layout(len(data), parity_length // 8):
        block = data[offset : offset + data_size]
        offset += data_size
        if parity_size:
            parity += RSCodec(parity_size).encode(block)[data_size:]

    codeword = BitArray(len(data_bits) + parity_length)
    codeword.write_bit_array(data_bits)
    if parity:
        codeword.write_bit_array(BitArray.from_buffer(parity), len(data_bits))
    return codeword


def ecc_decode(received: BitArray, data_length: int, parity_length: int) -> BitArray:
    """Correct ``received`` and return its first ``data_length`` bits.

    Raises:
        InvalidArgument: If ``received`` is shorter than data plus parity.
        ECCError: If a block holds more errors than its parity can correct.
    """
    if data_length <= 0 or parity_length < 0 or len(received) < data_length + parity_length:
        raise InvalidArgument(
            f"Received {len(received)} bits for {data_length} data and {parity_length} parity bits"
        )
    data_bytes = math.ceil(data_length / 8)
    parity_bytes = parity_length // 8
    # Padding bits are known to be zero
    padded = BitArray(data_bytes * 8)
    padded.write_bit_array(received, 0, 0, data_length)
    data = padded.to_bytes()
    parity = (
        received.view(data_length, data_length + parity_bytes * 8).to_bytes()
        if parity_bytes
        else b""
    )

    corrected = bytearray()
    data_offset = parity_offset = 0
    for block_index, (data_size, parity_size) in enumerate(_block_layout(data_bytes, parity_bytes)):
        block = data[data_offset : data_offset + data_size]
        block_parity = parity[parity_offset : parity_offset + parity_size]
        data_offset += data_size
        parity_offset += parity_size
        if not parity_size:
            corrected += block
            continue
        try:
            message = RSCodec(parity_size).decode(bytearray(block + block_parity))[0]
        except ReedSolomonError as exc:
            logger.debug("ecc_block_uncorrectable", block=block_index, error=str(exc))
            raise ECCError(f"Uncorrectable error in block {block_index}") from exc
        corrected += message

    return BitArray.from_buffer(bytearray(corrected), 0, data_length)
