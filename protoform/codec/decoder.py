"""Structured decoding of wire bytes against a type descriptor."""

import base64
from typing import Any

from protoform.schema.descriptor import PACKABLE_KINDS, FieldDescriptor, Kind, TypeDescriptor

from .wire import (
    FIXED_FORMATS,
    MAX_DEPTH,
    WIRE_TYPES,
    DecodeError,
    WireType,
    decode_varint,
    decode_varint_scalar,
    read_fixed,
    read_length_delimited,
    skip_field,
)


def _expected_wire_type(f: FieldDescriptor) -> WireType:
    if f.kind is Kind.ENUM:
        return WireType.VARINT
    if f.kind is Kind.MESSAGE:
        return WireType.LEN
    return WIRE_TYPES[f.type_name]


def _read_scalar(f: FieldDescriptor, data: bytes, offset: int) -> tuple[Any, int]:
    if f.type_name in FIXED_FORMATS:
        return read_fixed(data, offset, FIXED_FORMATS[f.type_name])
    raw, offset = decode_varint(data, offset)
    type_name = "enum" if f.kind is Kind.ENUM else f.type_name
    return decode_varint_scalar(type_name, raw), offset


def _read_value(
    f: FieldDescriptor, data: bytes, offset: int, allow_unknown: bool, depth: int
) -> tuple[Any, int]:
    if _expected_wire_type(f) != WireType.LEN:
        return _read_scalar(f, data, offset)

    payload, offset = read_length_delimited(data, offset)
    if f.kind is Kind.STRING:
        try:
            return payload.decode("utf-8"), offset
        except UnicodeDecodeError as e:
            raise DecodeError(f"{f.name}: invalid UTF-8 in string") from e
    if f.kind is Kind.BYTES:
        return base64.b64encode(payload).decode("ascii"), offset

    nested = f.message
    if nested is None:
        raise DecodeError(f"{f.name}: type {f.type_name} could not be resolved")
    return _decode(payload, nested, allow_unknown, depth + 1), offset


def _read_packed(f: FieldDescriptor, data: bytes, offset: int) -> tuple[list[Any], int]:
    block, offset = read_length_delimited(data, offset)
    values = []
    position = 0
    while position < len(block):
        value, position = _read_scalar(f, block, position)
        values.append(value)
    return values, offset


def _merge(current: dict[str, Any], update: dict[str, Any], descriptor: TypeDescriptor) -> dict[str, Any]:
    """Merge a later occurrence of a singular message field into the earlier one."""
    merged = dict(current)
    for key, value in update.items():
        f = descriptor.field(key)
        previous = merged.get(key)
        if f is None:
            merged[key] = value
        elif f.repeated and isinstance(previous, list):
            merged[key] = previous + value
        elif f.kind is Kind.MESSAGE and f.message is not None and isinstance(previous, dict):
            merged[key] = _merge(previous, value, f.message)
        else:
            _clear_oneof(merged, descriptor, f)
            merged[key] = value
    return merged


def _clear_oneof(tree: dict[str, Any], descriptor: TypeDescriptor, f: FieldDescriptor) -> None:
    if f.oneof is None:
        return
    group = descriptor.oneof(f.oneof)
    if group is not None and not group.synthetic:
        for member in group.members:
            tree.pop(member, None)


def _decode(data: bytes, descriptor: TypeDescriptor, allow_unknown: bool, depth: int) -> dict[str, Any]:
    if depth > MAX_DEPTH:
        raise DecodeError(f"nesting deeper than {MAX_DEPTH} levels")

    tree: dict[str, Any] = {}
    offset = 0
    while offset < len(data):
        key, offset = decode_varint(data, offset)
        number, wire_type = key >> 3, key & 0x7
        if number == 0:
            raise DecodeError("invalid field number 0")

        f = descriptor.field_by_number(number)
        if f is None or f.kind is Kind.UNRESOLVED:
            if not allow_unknown:
                raise DecodeError(f"{descriptor.name} has no field number {number}")
            offset = skip_field(data, offset, number, wire_type)
            continue

        expected = _expected_wire_type(f)
        if f.repeated and wire_type == WireType.LEN and f.kind in PACKABLE_KINDS:
            values, offset = _read_packed(f, data, offset)
            tree.setdefault(f.name, []).extend(values)
            continue
        if wire_type != expected:
            raise DecodeError(f"{f.name}: wire type {wire_type} does not match {f.type_name}")

        value, offset = _read_value(f, data, offset, allow_unknown, depth)
        if f.repeated:
            tree.setdefault(f.name, []).append(value)
        elif f.kind is Kind.MESSAGE and f.message is not None and isinstance(tree.get(f.name), dict):
            tree[f.name] = _merge(tree[f.name], value, f.message)
        else:
            # last member on the wire wins
            _clear_oneof(tree, descriptor, f)
            tree[f.name] = value

    for f in descriptor.fields:
        if f.required and f.name not in tree:
            raise DecodeError(f"missing required field {f.name}")
    return tree


def decode_message(data: bytes, descriptor: TypeDescriptor, *, allow_unknown: bool = False) -> dict[str, Any]:
    """Decode `data` into a value tree holding exactly the fields present.

    Raises:
        DecodeError: the bytes do not form a `descriptor` message.
    """
    return _decode(bytes(data), descriptor, allow_unknown, 0)
