"""Tests for bit-level Reed-Solomon coding."""

import pytest
from reedsolo import RSCodec

from hexring.bits import BitArray
from hexring.ecc import ecc_decode, ecc_encode
from hexring.errors import ECCError, InvalidArgument

DATA = bytes(range(10, 18))


def flip_byte(bits: BitArray, byte_index: int) -> None:
    for i in range(byte_index * 8, byte_index * 8 + 8):
        bits.toggle_bit(i)


class TestEncode:
    def test_codeword_layout(self):
        codeword = ecc_encode(BitArray.from_buffer(DATA), 50)
        assert len(codeword) == 64 + 50
        assert codeword.view(0, 64).to_bytes() == DATA
        parity = codeword.view(64, 112).to_bytes()
        assert parity == bytes(RSCodec(6).encode(DATA)[8:])
        # the two bits that do not fill a parity byte stay zero
        assert codeword.view(112).to_list() == [0, 0]

    def test_partial_byte_data(self):
        data = BitArray.from_bits([1, 0, 1, 1, 0])
        codeword = ecc_encode(data, 16)
        assert len(codeword) == 21
        assert codeword.view(0, 5) == data

    def test_zero_parity(self):
        codeword = ecc_encode(BitArray.from_buffer(DATA), 0)
        assert codeword.to_bytes() == DATA

    def test_negative_parity_raises(self):
        with pytest.raises(InvalidArgument):
            ecc_encode(BitArray.from_buffer(DATA), -8)


class TestDecode:
    def test_clean_codeword(self):
        codeword = ecc_encode(BitArray.from_buffer(DATA), 48)
        assert ecc_decode(codeword, 64, 48).to_bytes() == DATA

    def test_corrects_up_to_half_the_parity_bytes(self):
        codeword = ecc_encode(BitArray.from_buffer(DATA), 48)
        for byte_index in (0, 4, 9):
            flip_byte(codeword, byte_index)
        assert ecc_decode(codeword, 64, 48).to_bytes() == DATA

    def test_too_many_errors_raise(self):
        codeword = ecc_encode(BitArray.from_buffer(DATA), 48)
        for byte_index in range(7):
            flip_byte(codeword, byte_index)
        with pytest.raises(ECCError):
            ecc_decode(codeword, 64, 48)

    def test_partial_byte_data_roundtrip(self):
        data = BitArray.from_bits([1, 1, 0, 1, 0, 0, 1, 1, 1, 0, 1])
        codeword = ecc_encode(data, 32)
        codeword.toggle_bit(2)
        assert ecc_decode(codeword, 11, 32) == data

    def test_long_codeword_is_split_into_blocks(self):
        data = bytes(i % 251 for i in range(300))
        codeword = ecc_encode(BitArray.from_buffer(data), 160)
        # one error in the first and one in the second block
        flip_byte(codeword, 10)
        flip_byte(codeword, 200)
        assert ecc_decode(codeword, 2400, 160).to_bytes() == data

    def test_received_too_short_raises(self):
        with pytest.raises(InvalidArgument):
            ecc_decode(BitArray(60), 64, 8)
