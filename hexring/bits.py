"""Bit container and checksum utilities for hexring encoding.

``BitArray`` is a (buffer, bit offset, bit length) view over a shared
``bytearray``. Views created with ``view()`` or ``from_buffer()`` alias the
parent's storage unless ``copy=True`` is passed, so writing through a ring's
view updates the global bitstream it was sliced from.

Bit 0 of every byte is its most significant bit.
"""

from __future__ import annotations

import binascii
from collections.abc import Iterator

from .errors import InvalidArgument

MAX_INTEGER_BITS = 32


class BitArray:
    """Addressable bit storage with zero-copy sub-views."""

    __slots__ = ("_buffer", "_offset", "_length")

    def __init__(self, length: int) -> None:
        if not isinstance(length, int) or length < 0:
            raise InvalidArgument(f"Illegal bit length: {length!r}")
        self._buffer = bytearray((length + 7) // 8)
        self._offset = 0
        self._length = length

    @classmethod
    def _wrap(cls, buffer: bytearray, offset: int, length: int) -> BitArray:
        view = cls.__new__(cls)
        view._buffer = buffer
        view._offset = offset
        view._length = length
        return view

    @classmethod
    def from_buffer(
        cls,
        source: BitArray | bytes | bytearray | memoryview,
        start: int = 0,
        end: int | None = None,
        copy: bool = False,
    ) -> BitArray:
        """Create a view over a bit range of another container or raw buffer.

        Immutable byte sources are always copied, since a view must be
        writable.

        Args:
            source: A BitArray or a bytes-like object.
            start: First bit of the range (inclusive).
            end: Last bit of the range (exclusive). Defaults to the end.
            copy: Materialize an owned copy instead of aliasing.

        Returns:
            A BitArray covering ``source[start:end]``.

        Raises:
            InvalidArgument: If the range is empty or out of bounds.
        """
        if isinstance(source, BitArray):
            buffer, offset, available = source._buffer, source._offset, source._length
        elif isinstance(source, (bytes, bytearray, memoryview)):
            buffer = source if isinstance(source, bytearray) else bytearray(source)
            offset, available = 0, len(buffer) * 8
        else:
            raise InvalidArgument(f"Unsupported buffer type: {type(source).__name__}")

        if end is None:
            end = available
        if (
            not isinstance(start, int)
            or not isinstance(end, int)
            or start < 0
            or end > available
            or start >= end
        ):
            raise InvalidArgument(f"Illegal bit range [{start}, {end}) for {available} bits")

        view = cls._wrap(buffer, offset + start, end - start)
        return view.copy() if copy else view

    def view(self, start: int = 0, end: int | None = None, copy: bool = False) -> BitArray:
        """Return a sub-view of this container. See ``from_buffer``."""
        return BitArray.from_buffer(self, start, end, copy)

    def copy(self) -> BitArray:
        """Materialize an owned copy starting at bit offset 0."""
        result = BitArray(self._length)
        result.write_bit_array(self)
        return result

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[int]:
        for index in range(self._length):
            yield self._read(index)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitArray):
            return NotImplemented
        return self.to_list() == other.to_list()

    def __repr__(self) -> str:
        bits = "".join(str(bit) for bit in self.to_list()[:64])
        suffix = "..." if self._length > 64 else ""
        return f"BitArray(length={self._length}, bits={bits}{suffix})"

    # ------------------------------------------------------------------
    # Single bits
    # ------------------------------------------------------------------

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or index < 0 or index >= self._length:
            raise InvalidArgument(f"Bit index {index!r} out of range [0, {self._length})")

    def _read(self, index: int) -> int:
        position = self._offset + index
        return (self._buffer[position >> 3] >> (7 - (position & 7))) & 1

    def _write(self, index: int, value: int) -> None:
        position = self._offset + index
        mask = 1 << (7 - (position & 7))
        if value:
            self._buffer[position >> 3] |= mask
        else:
            self._buffer[position >> 3] &= ~mask & 0xFF

    def get_bit(self, index: int) -> int:
        self._check_index(index)
        return self._read(index)

    def set_bit(self, index: int) -> None:
        self._check_index(index)
        self._write(index, 1)

    def unset_bit(self, index: int) -> None:
        self._check_index(index)
        self._write(index, 0)

    def toggle_bit(self, index: int) -> None:
        self._check_index(index)
        self._write(index, self._read(index) ^ 1)

    def set_value(self, index: int, value: bool) -> None:
        self._check_index(index)
        self._write(index, 1 if value else 0)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def write_bit_array(
        self,
        source: BitArray,
        index: int = 0,
        read_index: int = 0,
        count: int | None = None,
    ) -> int:
        """Copy bits from ``source`` into this container.

        Args:
            source: Container to read from.
            index: First bit to write in this container.
            read_index: First bit to read from ``source``.
            count: Number of bits to copy. Defaults to as many as fit.

        Returns:
            The number of bits written.

        Raises:
            InvalidArgument: If either range exceeds its container.
        """
        if not isinstance(source, BitArray):
            raise InvalidArgument("Source must be a BitArray")
        if count is None:
            count = min(len(source) - read_index, self._length - index)
        if (
            index < 0
            or read_index < 0
            or count < 0
            or index + count > self._length
            or read_index + count > len(source)
        ):
            raise InvalidArgument(
                f"Cannot copy {count} bits from {read_index} of {len(source)} "
                f"to {index} of {self._length}"
            )
        if source._buffer is self._buffer:
            source = source.view(read_index, read_index + count, copy=True) if count else source
            read_index = 0
        for i in range(count):
            self._write(index + i, source._read(read_index + i))
        return count

    def write_unsigned_integer(self, index: int, value: int, num_bits: int = 8) -> None:
        """Write ``value`` as a ``num_bits`` wide unsigned integer, MSB first."""
        if not isinstance(num_bits, int) or not 1 <= num_bits <= MAX_INTEGER_BITS:
            raise InvalidArgument(f"Unsupported integer width: {num_bits!r}")
        if not isinstance(value, int):
            raise InvalidArgument(f"Value must be an integer, got {value!r}")
        if value < 0 or value > (1 << num_bits) - 1:
            raise InvalidArgument(f"Value {value} does not fit into {num_bits} bits")
        if not isinstance(index, int) or index < 0 or index + num_bits > self._length:
            raise InvalidArgument(f"Cannot write {num_bits} bits at index {index}")
        for i in range(num_bits):
            self._write(index + i, (value >> (num_bits - 1 - i)) & 1)

    def read_unsigned_integer(self, index: int, num_bits: int = 8) -> int:
        """Read a ``num_bits`` wide unsigned integer, MSB first."""
        if not isinstance(num_bits, int) or not 1 <= num_bits <= MAX_INTEGER_BITS:
            raise InvalidArgument(f"Unsupported integer width: {num_bits!r}")
        if not isinstance(index, int) or index < 0 or index + num_bits > self._length:
            raise InvalidArgument(f"Cannot read {num_bits} bits at index {index}")
        value = 0
        for i in range(num_bits):
            value = (value << 1) | self._read(index + i)
        return value

    def to_list(self) -> list[int]:
        """Dump the bits as a list of 0s and 1s."""
        return [self._read(i) for i in range(self._length)]

    def to_bytes(self) -> bytes:
        """Pack the bits into bytes, zero-padding the last byte."""
        result = bytearray((self._length + 7) // 8)
        for i in range(self._length):
            if self._read(i):
                result[i >> 3] |= 1 << (7 - (i & 7))
        return bytes(result)

    @classmethod
    def from_bits(cls, bits: list[int]) -> BitArray:
        """Build a container from a list of 0s and 1s."""
        result = cls(len(bits))
        for i, bit in enumerate(bits):
            if bit:
                result._write(i, 1)
        return result


def compute_checksum(data: bytes) -> int:
    """Compute the CRC-16/CCITT-FALSE checksum of a payload.

    Args:
        data: Input bytes.

    Returns:
        Checksum value (0-65535).
    """
    return binascii.crc_hqx(data, 0xFFFF)
