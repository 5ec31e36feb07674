"""Wire-format primitives: varints, zigzag, fixed-width scalars."""

import struct
from enum import IntEnum

# deepest message or group nesting accepted on decode
MAX_DEPTH = 64


class DecodeError(RuntimeError):
    """Raised when bytes do not form a valid message for a descriptor."""


class WireType(IntEnum):
    VARINT = 0
    I64 = 1
    LEN = 2
    SGROUP = 3
    EGROUP = 4
    I32 = 5


# struct format for each fixed-width scalar
FIXED_FORMATS = {
    "fixed32": "<I",
    "sfixed32": "<i",
    "float": "<f",
    "fixed64": "<Q",
    "sfixed64": "<q",
    "double": "<d",
}

WIRE_TYPES = {
    "int32": WireType.VARINT,
    "int64": WireType.VARINT,
    "uint32": WireType.VARINT,
    "uint64": WireType.VARINT,
    "sint32": WireType.VARINT,
    "sint64": WireType.VARINT,
    "bool": WireType.VARINT,
    "enum": WireType.VARINT,
    "fixed32": WireType.I32,
    "sfixed32": WireType.I32,
    "float": WireType.I32,
    "fixed64": WireType.I64,
    "sfixed64": WireType.I64,
    "double": WireType.I64,
    "string": WireType.LEN,
    "bytes": WireType.LEN,
    "message": WireType.LEN,
}

# Inclusive value range of each integer scalar
INT_RANGES = {
    "int32": (-(1 << 31), (1 << 31) - 1),
    "sint32": (-(1 << 31), (1 << 31) - 1),
    "sfixed32": (-(1 << 31), (1 << 31) - 1),
    "uint32": (0, (1 << 32) - 1),
    "fixed32": (0, (1 << 32) - 1),
    "int64": (-(1 << 63), (1 << 63) - 1),
    "sint64": (-(1 << 63), (1 << 63) - 1),
    "sfixed64": (-(1 << 63), (1 << 63) - 1),
    "uint64": (0, (1 << 64) - 1),
    "fixed64": (0, (1 << 64) - 1),
}

FLOAT32_MAX = 3.4028234663852886e38

_MASK64 = (1 << 64) - 1
_MAX_VARINT_BYTES = 10


def encode_varint(value: int) -> bytes:
    """Encode an integer as a base-128 varint; negatives use 64-bit two's complement."""
    value &= _MASK64
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def decode_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Decode a varint at `offset`; returns (value, new offset)."""
    result = 0
    shift = 0
    for i in range(_MAX_VARINT_BYTES):
        if offset + i >= len(data):
            raise DecodeError("truncated varint")
        byte = data[offset + i]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result & _MASK64, offset + i + 1
        shift += 7
    raise DecodeError("varint too long")


def zigzag_encode(value: int, bits: int) -> int:
    return ((value << 1) ^ (value >> (bits - 1))) & ((1 << bits) - 1)


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def to_signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def encode_tag(number: int, wire_type: WireType) -> bytes:
    return encode_varint((number << 3) | wire_type)


def encode_length_delimited(payload: bytes) -> bytes:
    return encode_varint(len(payload)) + payload


def read_length_delimited(data: bytes, offset: int) -> tuple[bytes, int]:
    length, offset = decode_varint(data, offset)
    end = offset + length
    if end > len(data):
        raise DecodeError(f"length {length} exceeds remaining {len(data) - offset} bytes")
    return bytes(data[offset:end]), end


def read_fixed(data: bytes, offset: int, fmt: str) -> tuple[int | float, int]:
    size = struct.calcsize(fmt)
    if offset + size > len(data):
        raise DecodeError(f"truncated {size}-byte value")
    return struct.unpack_from(fmt, data, offset)[0], offset + size


def encode_varint_scalar(type_name: str, value: int | bool) -> bytes:
    """Encode the payload of a varint-typed scalar (no tag)."""
    if type_name == "bool":
        return b"\x01" if value else b"\x00"
    if type_name == "sint32":
        return encode_varint(zigzag_encode(int(value), 32))
    if type_name == "sint64":
        return encode_varint(zigzag_encode(int(value), 64))
    return encode_varint(int(value))


def decode_varint_scalar(type_name: str, raw: int) -> int | bool:
    """Interpret a raw varint as the given scalar type."""
    if type_name == "bool":
        return raw != 0
    if type_name in ("int32", "enum"):
        return to_signed(raw, 32)
    if type_name == "int64":
        return to_signed(raw, 64)
    if type_name == "uint32":
        return raw & 0xFFFFFFFF
    if type_name == "sint32":
        return zigzag_decode(raw & 0xFFFFFFFF)
    if type_name == "sint64":
        return zigzag_decode(raw)
    return raw


def skip_field(data: bytes, offset: int, number: int, wire_type: int) -> int:
    """Skip over one field value; returns the offset just past it.

    Groups are skipped with an explicit stack of open group numbers, at
    most `MAX_DEPTH` deep.
    """
    if wire_type == WireType.VARINT:
        return decode_varint(data, offset)[1]
    if wire_type == WireType.I64:
        return read_fixed(data, offset, "<Q")[1]
    if wire_type == WireType.I32:
        return read_fixed(data, offset, "<I")[1]
    if wire_type == WireType.LEN:
        return read_length_delimited(data, offset)[1]
    if wire_type != WireType.SGROUP:
        raise DecodeError(f"invalid wire type {wire_type}")

    groups = [number]
    while groups:
        if offset >= len(data):
            raise DecodeError(f"unterminated group {groups[-1]}")
        key, offset = decode_varint(data, offset)
        inner_number, inner_type = key >> 3, key & 0x7
        if inner_type == WireType.EGROUP:
            if inner_number != groups[-1]:
                raise DecodeError(f"mismatched end of group {inner_number}")
            groups.pop()
        elif inner_type == WireType.SGROUP:
            if len(groups) >= MAX_DEPTH:
                raise DecodeError(f"groups nested deeper than {MAX_DEPTH} levels")
            groups.append(inner_number)
        else:
            offset = skip_field(data, offset, inner_number, inner_type)
    return offset
