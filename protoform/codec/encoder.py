"""Value tree validation and encoding."""

import base64
import binascii
import math
import struct
from collections.abc import Mapping
from typing import Any

from protoform.schema.descriptor import FieldDescriptor, Kind, TypeDescriptor
from protoform.schema.oneof import populated_members

from .wire import (
    FIXED_FORMATS,
    FLOAT32_MAX,
    INT_RANGES,
    WIRE_TYPES,
    WireType,
    encode_length_delimited,
    encode_tag,
    encode_varint_scalar,
)


class ValueValidationError(RuntimeError):
    """Raised when a value tree does not fit its type descriptor.

    `path` names the offending field (`inner.count`, `items[2]`).
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def _path(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _bytes_value(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return base64.b64decode(value, validate=True)


def _check_scalar(f: FieldDescriptor, value: Any, path: str) -> None:
    kind = f.kind
    if kind is Kind.BOOL:
        if not isinstance(value, bool):
            raise ValueValidationError(path, "boolean expected")
    elif kind is Kind.INT:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueValidationError(path, "integer expected")
        low, high = INT_RANGES[f.type_name]
        if not low <= value <= high:
            raise ValueValidationError(path, f"{value} is out of range for {f.type_name}")
    elif kind is Kind.FLOAT:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ValueValidationError(path, "number expected")
        if f.type_name == "float" and math.isfinite(value) and abs(value) > FLOAT32_MAX:
            raise ValueValidationError(path, f"{value} is out of range for float")
    elif kind is Kind.STRING:
        if not isinstance(value, str):
            raise ValueValidationError(path, "string expected")
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ValueValidationError(path, "string is not valid UTF-8") from e
    elif kind is Kind.BYTES:
        if not isinstance(value, (str, bytes, bytearray)):
            raise ValueValidationError(path, "base64 text or bytes expected")
        try:
            _bytes_value(value)
        except (binascii.Error, ValueError) as e:
            raise ValueValidationError(path, "invalid base64 text") from e
    elif kind is Kind.ENUM and f.enum is not None:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueValidationError(path, f"enum code of {f.enum.name} expected")
        if value not in f.enum.codes:
            raise ValueValidationError(path, f"{value} is not a value of {f.enum.name}")
    elif kind is Kind.MESSAGE and f.message is not None:
        if not isinstance(value, Mapping):
            raise ValueValidationError(path, f"{f.type_name} object expected")
        _validate_tree(value, f.message, path)
    else:
        raise ValueValidationError(path, f"type {f.type_name} could not be resolved and cannot be encoded")


def _validate_tree(value: Mapping[str, Any], descriptor: TypeDescriptor, prefix: str) -> None:
    for key, item in value.items():
        f = descriptor.field(key)
        if f is None:
            raise ValueValidationError(_path(prefix, key), f"{descriptor.name} has no such field")
        if item is None:
            continue
        path = _path(prefix, key)
        if f.repeated:
            if not isinstance(item, (list, tuple)):
                raise ValueValidationError(path, "list expected")
            for i, element in enumerate(item):
                element_path = f"{path}[{i}]"
                if element is None:
                    raise ValueValidationError(element_path, "value is unset")
                _check_scalar(f, element, element_path)
        else:
            _check_scalar(f, item, path)

    for f in descriptor.fields:
        if f.required and value.get(f.name) is None:
            raise ValueValidationError(_path(prefix, f.name), "missing required field")

    for group in descriptor.oneofs:
        if group.synthetic:
            continue
        present = populated_members(value, group)
        if len(present) > 1:
            raise ValueValidationError(
                _path(prefix, group.name), f"only one of {', '.join(present)} may be set"
            )


def validate(value: Mapping[str, Any], descriptor: TypeDescriptor) -> None:
    """Check that `value` is structurally compatible with `descriptor`.

    Raises:
        ValueValidationError: naming the first offending field.
    """
    if not isinstance(value, Mapping):
        raise ValueValidationError(descriptor.name, "object expected")
    _validate_tree(value, descriptor, "")


def _scalar_payload(f: FieldDescriptor, value: Any) -> bytes:
    if f.kind is Kind.ENUM:
        return encode_varint_scalar("int32", value)
    if f.type_name in FIXED_FORMATS:
        return struct.pack(FIXED_FORMATS[f.type_name], value)
    return encode_varint_scalar(f.type_name, value)


def _wire_type(f: FieldDescriptor) -> WireType:
    if f.kind is Kind.ENUM:
        return WireType.VARINT
    if f.kind is Kind.MESSAGE:
        return WireType.LEN
    return WIRE_TYPES[f.type_name]


def _encode_value(f: FieldDescriptor, value: Any) -> bytes:
    wire_type = _wire_type(f)
    if wire_type != WireType.LEN:
        return encode_tag(f.number, wire_type) + _scalar_payload(f, value)

    if f.kind is Kind.STRING:
        payload = value.encode("utf-8")
    elif f.kind is Kind.BYTES:
        payload = _bytes_value(value)
    else:
        nested = f.message
        if nested is None:
            raise ValueValidationError(f.name, f"type {f.type_name} could not be resolved and cannot be encoded")
        payload = encode_message(value, nested)
    return encode_tag(f.number, WireType.LEN) + encode_length_delimited(payload)


def encode_message(value: Mapping[str, Any], descriptor: TypeDescriptor) -> bytes:
    """Encode an already validated value tree.

    Every present key is written, zero values included; fields follow
    declaration order.
    """
    buf = bytearray()
    for f in descriptor.fields:
        item = value.get(f.name)
        if item is None:
            continue
        if not f.repeated:
            buf.extend(_encode_value(f, item))
        elif f.packed and item:
            packed = b"".join(_scalar_payload(f, element) for element in item)
            buf.extend(encode_tag(f.number, WireType.LEN))
            buf.extend(encode_length_delimited(packed))
        else:
            for element in item:
                buf.extend(_encode_value(f, element))
    return bytes(buf)
