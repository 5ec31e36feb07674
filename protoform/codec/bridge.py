"""Codec bridge between value trees and wire payloads.

`encode` validates before producing any bytes. `decode` never raises: it
walks a fallback chain and always returns something renderable.

Example:
    td = load(schema_text).primary()
    payload = encode({"command": "ls", "args": ["-l"]}, td)
    reply = transport.send(payload)
    print(decode(reply, result_td).render())
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from protoform.schema.descriptor import FieldDescriptor, Kind, TypeDescriptor

from .decoder import decode_message
from .encoder import ValueValidationError, encode_message, validate
from .wire import DecodeError

logger = logging.getLogger(__name__)

EMPTY_PAYLOAD = b""


class DecodeFallback(DecodeError):
    """Raised by `decode_tree` when bytes do not match the descriptor."""


@dataclass(frozen=True)
class Empty:
    """Zero-length payload."""

    def render(self) -> str:
        return "Empty"


@dataclass(frozen=True)
class Structured:
    """Payload decoded against the descriptor."""

    tree: dict[str, Any]
    descriptor: TypeDescriptor | None = field(default=None, compare=False, repr=False)

    def render(self) -> str:
        shown = display_tree(self.tree, self.descriptor) if self.descriptor else self.tree
        return json.dumps(shown, indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class Text:
    """Payload that was valid UTF-8 (pretty-printed when it held JSON)."""

    text: str

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Opaque:
    """Payload that could not be interpreted at all."""

    length: int

    def render(self) -> str:
        return f"[Binary] {self.length} bytes"


DisplayValue = Empty | Structured | Text | Opaque

EMPTY = Empty()


class Transport(Protocol):
    """Anything able to carry encoded bytes to the remote service."""

    def send(self, payload: bytes) -> bytes: ...


def _display_value(f: FieldDescriptor, item: Any) -> Any:
    if f.kind is Kind.ENUM and f.enum is not None:
        name = f.enum.name_of(item)
        return name if name is not None else item
    if f.kind is Kind.MESSAGE and isinstance(item, Mapping) and f.message is not None:
        return display_tree(item, f.message)
    return item


def display_tree(tree: Mapping[str, Any], descriptor: TypeDescriptor) -> dict[str, Any]:
    """Copy of `tree` with enum codes replaced by their names."""
    shown: dict[str, Any] = {}
    for key, value in tree.items():
        f = descriptor.field(key)
        if f is None or value is None:
            shown[key] = value
        elif f.repeated and isinstance(value, list):
            shown[key] = [_display_value(f, item) for item in value]
        else:
            shown[key] = _display_value(f, value)
    return shown


def encode(value: Mapping[str, Any] | None, descriptor: TypeDescriptor | None) -> bytes:
    """Encode a value tree to wire bytes.

    An empty or absent value encodes to `EMPTY_PAYLOAD` without looking at
    the descriptor.

    Raises:
        ValueValidationError: the value does not fit the descriptor.
    """
    if not value:
        return EMPTY_PAYLOAD
    if descriptor is None:
        raise ValueValidationError("<root>", "no message type to encode against")
    validate(value, descriptor)
    return encode_message(value, descriptor)


def decode_tree(
    payload: bytes, descriptor: TypeDescriptor, *, allow_unknown: bool = False
) -> dict[str, Any]:
    """Structured decode only.

    Raises:
        DecodeFallback: the payload does not match the descriptor.
    """
    try:
        return decode_message(payload, descriptor, allow_unknown=allow_unknown)
    except DecodeError as e:
        raise DecodeFallback(str(e)) from e


def _as_text(payload: bytes) -> Text | None:
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        return None
    try:
        return Text(json.dumps(json.loads(text), indent=2, ensure_ascii=False))
    except (ValueError, RecursionError):
        return Text(text)


def decode(
    payload: bytes | None, descriptor: TypeDescriptor | None, *, allow_unknown: bool = False
) -> DisplayValue:
    """Turn payload bytes into a display value; never raises.

    Tiers: empty marker, structured decode, UTF-8 text (JSON pretty-printed
    when it parses), opaque marker with the byte length.
    """
    if not payload:
        return EMPTY
    payload = bytes(payload)

    if descriptor is not None:
        try:
            tree = decode_tree(payload, descriptor, allow_unknown=allow_unknown)
            return Structured(tree, descriptor)
        except DecodeFallback as e:
            logger.warning(f"Failed to decode using {descriptor.name}: {e}")

    text = _as_text(payload)
    if text is not None:
        return text
    return Opaque(len(payload))


def submit(
    transport: Transport,
    value: Mapping[str, Any] | None,
    descriptor: TypeDescriptor | None,
    result_descriptor: TypeDescriptor | None = None,
) -> DisplayValue:
    """Encode `value`, send it through `transport` and decode the reply.

    Raises:
        ValueValidationError: before anything is sent.
    """
    payload = encode(value, descriptor)
    logger.debug(f"Submitting {len(payload)} bytes")
    reply = transport.send(payload)
    return decode(reply, result_descriptor)
