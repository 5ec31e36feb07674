"""Tests for wire-format primitives."""

import pytest

from protoform.codec.wire import (
    MAX_DEPTH,
    DecodeError,
    WireType,
    decode_varint,
    decode_varint_scalar,
    encode_tag,
    encode_varint,
    encode_varint_scalar,
    skip_field,
    zigzag_decode,
    zigzag_encode,
)


def describe_varint():
    def encodes_small_values_in_one_byte(expect):
        expect(encode_varint(0)) == b"\x00"
        expect(encode_varint(1)) == b"\x01"
        expect(encode_varint(127)) == b"\x7f"

    def encodes_multi_byte_values(expect):
        expect(encode_varint(300)) == b"\xac\x02"

    def encodes_negatives_as_ten_bytes(expect):
        expect(encode_varint(-1)) == b"\xff" * 9 + b"\x01"

    def decodes_with_offset(expect):
        expect(decode_varint(b"\x00\xac\x02\x05", 1)) == (300, 3)

    def rejects_truncated_input():
        with pytest.raises(DecodeError):
            decode_varint(b"\xac", 0)

    def rejects_overlong_input():
        with pytest.raises(DecodeError):
            decode_varint(b"\xff" * 11, 0)


def describe_zigzag():
    def interleaves_signs(expect):
        expect([zigzag_encode(v, 32) for v in (0, -1, 1, -2, 2)]) == [0, 1, 2, 3, 4]

    def reverses(expect):
        expect([zigzag_decode(v) for v in (0, 1, 2, 3, 4)]) == [0, -1, 1, -2, 2]

    def handles_extremes(expect):
        expect(zigzag_encode(-(1 << 31), 32)) == 0xFFFFFFFF
        expect(zigzag_decode(0xFFFFFFFF)) == -(1 << 31)


def describe_scalars():
    def encodes_sint_with_zigzag(expect):
        expect(encode_varint_scalar("sint32", -1)) == b"\x01"
        expect(encode_varint_scalar("int32", -1)) == b"\xff" * 9 + b"\x01"

    def encodes_bools(expect):
        expect(encode_varint_scalar("bool", True)) == b"\x01"
        expect(encode_varint_scalar("bool", False)) == b"\x00"

    def reads_int32_as_signed(expect):
        expect(decode_varint_scalar("int32", (1 << 64) - 1)) == -1
        expect(decode_varint_scalar("enum", (1 << 64) - 2)) == -2

    def reads_unsigned_and_zigzag(expect):
        expect(decode_varint_scalar("uint64", (1 << 64) - 1)) == (1 << 64) - 1
        expect(decode_varint_scalar("sint64", 3)) == -2
        expect(decode_varint_scalar("bool", 2)) == True


def describe_tags():
    def packs_number_and_wire_type(expect):
        expect(encode_tag(1, WireType.LEN)) == b"\x0a"
        expect(encode_tag(16, WireType.VARINT)) == b"\x80\x01"


def describe_skip_field():
    def skips_each_wire_type(expect):
        expect(skip_field(b"\xac\x02", 0, 1, WireType.VARINT)) == 2
        expect(skip_field(b"\x00" * 8, 0, 1, WireType.I64)) == 8
        expect(skip_field(b"\x00" * 4, 0, 1, WireType.I32)) == 4
        expect(skip_field(b"\x02ab", 0, 1, WireType.LEN)) == 3

    def skips_groups(expect):
        # field 2 varint, then end of group 1
        data = b"\x10\x05\x0c"
        expect(skip_field(data, 0, 1, WireType.SGROUP)) == 3

    def skips_nested_groups(expect):
        # group 2 holding field 3, then end of group 1
        data = b"\x13\x18\x01\x14\x0c"
        expect(skip_field(data, 0, 1, WireType.SGROUP)) == 5

    def limits_group_nesting(expect):
        deepest = MAX_DEPTH - 1
        data = b"\x13" * deepest + b"\x14" * (deepest + 1)
        expect(skip_field(data, 0, 2, WireType.SGROUP)) == len(data)
        with pytest.raises(DecodeError):
            skip_field(b"\x13" * 5000, 0, 2, WireType.SGROUP)

    def rejects_unterminated_groups():
        with pytest.raises(DecodeError):
            skip_field(b"\x10\x05", 0, 1, WireType.SGROUP)

    def rejects_invalid_wire_types():
        with pytest.raises(DecodeError):
            skip_field(b"\x00", 0, 1, 7)
