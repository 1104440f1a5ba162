"""Tests for the bit container and checksum."""

import pytest

from hexring.bits import BitArray, compute_checksum
from hexring.errors import InvalidArgument


class TestConstruction:
    def test_new_array_is_zeroed(self):
        bits = BitArray(12)
        assert len(bits) == 12
        assert bits.to_list() == [0] * 12

    def test_zero_length(self):
        assert len(BitArray(0)) == 0

    def test_negative_length_raises(self):
        with pytest.raises(InvalidArgument):
            BitArray(-1)

    def test_from_bytes_msb_first(self):
        bits = BitArray.from_buffer(b"\xa3")
        assert bits.to_list() == [1, 0, 1, 0, 0, 0, 1, 1]

    def test_from_bytes_range(self):
        bits = BitArray.from_buffer(b"\xff\x00", 4, 12)
        assert bits.to_list() == [1, 1, 1, 1, 0, 0, 0, 0]

    def test_empty_range_raises(self):
        with pytest.raises(InvalidArgument):
            BitArray.from_buffer(b"\xff", 3, 3)

    def test_range_out_of_bounds_raises(self):
        with pytest.raises(InvalidArgument):
            BitArray.from_buffer(b"\xff", 0, 9)

    def test_unsupported_source_raises(self):
        with pytest.raises(InvalidArgument):
            BitArray.from_buffer([1, 0, 1])

    def test_from_bits(self):
        bits = BitArray.from_bits([1, 0, 1])
        assert bits.to_list() == [1, 0, 1]


class TestViews:
    def test_view_aliases_parent(self):
        parent = BitArray(16)
        child = parent.view(4, 8)
        child.set_bit(0)
        assert parent.get_bit(4) == 1

    def test_parent_writes_visible_in_view(self):
        parent = BitArray(16)
        child = parent.view(8)
        parent.set_bit(9)
        assert child.get_bit(1) == 1

    def test_nested_view_offsets_add_up(self):
        parent = BitArray(32)
        grandchild = parent.view(5, 30).view(3, 10)
        grandchild.set_bit(0)
        assert parent.get_bit(8) == 1

    def test_copy_is_detached(self):
        parent = BitArray(8)
        snapshot = parent.view(0, 8, copy=True)
        snapshot.set_bit(0)
        assert parent.get_bit(0) == 0

    def test_bytearray_source_is_aliased(self):
        buffer = bytearray(1)
        bits = BitArray.from_buffer(buffer)
        bits.set_bit(0)
        assert buffer == bytearray(b"\x80")

    def test_bytes_source_is_copied(self):
        source = b"\x00"
        bits = BitArray.from_buffer(source)
        bits.set_bit(0)
        assert source == b"\x00"


class TestSingleBits:
    def test_set_unset_toggle(self):
        bits = BitArray(3)
        bits.set_bit(0)
        bits.toggle_bit(1)
        bits.toggle_bit(0)
        bits.set_bit(2)
        bits.unset_bit(2)
        assert bits.to_list() == [0, 1, 0]

    def test_set_value(self):
        bits = BitArray(2)
        bits.set_value(1, True)
        assert bits.to_list() == [0, 1]
        bits.set_value(1, False)
        assert bits.to_list() == [0, 0]

    def test_index_out_of_range_raises(self):
        bits = BitArray(4)
        with pytest.raises(InvalidArgument):
            bits.get_bit(4)
        with pytest.raises(InvalidArgument):
            bits.set_bit(-1)


class TestBulkOperations:
    def test_write_bit_array(self):
        target = BitArray(8)
        written = target.write_bit_array(BitArray.from_bits([1, 1, 0, 1]), 2)
        assert written == 4
        assert target.to_list() == [0, 0, 1, 1, 0, 1, 0, 0]

    def test_write_with_read_index_and_count(self):
        target = BitArray(4)
        source = BitArray.from_bits([0, 0, 1, 1, 1])
        assert target.write_bit_array(source, 1, read_index=2, count=2) == 2
        assert target.to_list() == [0, 1, 1, 0]

    def test_write_overflow_raises(self):
        with pytest.raises(InvalidArgument):
            BitArray(2).write_bit_array(BitArray(4), 0, count=4)

    def test_write_overlapping_views(self):
        bits = BitArray.from_bits([1, 0, 1, 1, 0, 0])
        bits.write_bit_array(bits.view(0, 4), 2)
        assert bits.to_list() == [1, 0, 1, 0, 1, 1]

    def test_unsigned_integer_roundtrip(self):
        bits = BitArray(20)
        bits.write_unsigned_integer(3, 0xABC, 12)
        assert bits.read_unsigned_integer(3, 12) == 0xABC
        assert bits.get_bit(3) == 1

    def test_unsigned_integer_msb_first(self):
        bits = BitArray(4)
        bits.write_unsigned_integer(0, 1, 4)
        assert bits.to_list() == [0, 0, 0, 1]

    def test_value_too_large_raises(self):
        with pytest.raises(InvalidArgument):
            BitArray(8).write_unsigned_integer(0, 16, 4)

    def test_width_limits(self):
        bits = BitArray(40)
        bits.write_unsigned_integer(0, 0xFFFFFFFF, 32)
        assert bits.read_unsigned_integer(0, 32) == 0xFFFFFFFF
        with pytest.raises(InvalidArgument):
            bits.read_unsigned_integer(0, 33)
        with pytest.raises(InvalidArgument):
            bits.read_unsigned_integer(0, 0)

    def test_to_bytes_pads_last_byte(self):
        assert BitArray.from_bits([1, 0, 1]).to_bytes() == b"\xa0"

    def test_equality_ignores_offset(self):
        parent = BitArray.from_bits([0, 1, 1, 0])
        assert parent.view(1, 3) == BitArray.from_bits([1, 1])


class TestChecksum:
    def test_known_value(self):
        # CRC-16/CCITT-FALSE check value
        assert compute_checksum(b"123456789") == 0x29B1

    def test_range(self):
        assert 0 <= compute_checksum(b"\x00" * 32) <= 0xFFFF

    def test_different_data_different_checksum(self):
        assert compute_checksum(b"\x00") != compute_checksum(b"\x01")
