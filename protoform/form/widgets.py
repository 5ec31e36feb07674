"""Editable projections of single scalar fields.

A widget is a snapshot: it carries the value it was built from and a
`commit` callback. Edits never touch the snapshot; they hand the new field
value to `commit`, which splices it into a fresh copy of the owning tree.
Committing `None` means "unset".
"""

import base64
import json
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from protoform.schema.descriptor import EnumDescriptor, FieldDescriptor, Kind

Commit = Callable[[Any], None]

_TRUE_WORDS = frozenset(["true", "1", "yes", "on"])
_FALSE_WORDS = frozenset(["false", "0", "no", "off"])


class EditError(ValueError):
    """Raised when an edit cannot be applied to a widget."""


@dataclass(frozen=True, eq=False)
class Widget:
    """Base class for field widgets."""

    field: FieldDescriptor
    value: Any
    commit: Commit

    @property
    def name(self) -> str:
        return self.field.name

    @property
    def label(self) -> str:
        return self.field.label

    @property
    def is_set(self) -> bool:
        return self.value is not None

    @property
    def text(self) -> str:
        """Current value as operator-facing text ("" when unset)."""
        return "" if self.value is None else str(self.value)

    def enter(self, text: str) -> None:
        """Apply operator text to the field."""
        raise NotImplementedError

    def clear(self) -> None:
        self.commit(None)


@dataclass(frozen=True, eq=False)
class Toggle(Widget):
    """Two-state switch for bool fields.

    An absent value shows as unchecked but stays absent until toggled.
    """

    @property
    def checked(self) -> bool:
        return bool(self.value)

    @property
    def text(self) -> str:
        if self.value is None:
            return ""
        return "true" if self.value else "false"

    def set(self, checked: bool) -> None:
        self.commit(bool(checked))

    def toggle(self) -> None:
        self.set(not self.checked)

    def enter(self, text: str) -> None:
        word = text.strip().lower()
        if not word:
            self.clear()
        elif word in _TRUE_WORDS:
            self.set(True)
        elif word in _FALSE_WORDS:
            self.set(False)
        else:
            raise EditError(f"{self.name}: {text!r} is not a boolean")


@dataclass(frozen=True, eq=False)
class NumberEntry(Widget):
    """Numeric entry for integer and floating point fields.

    Empty or unparsable text unsets the field; it never becomes zero.
    """

    @property
    def integral(self) -> bool:
        return self.field.kind is Kind.INT

    def parse(self, text: str) -> int | float | None:
        text = text.strip()
        if not text:
            return None
        try:
            if self.integral:
                return int(text, 10)
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number

    def set(self, number: int | float | None) -> None:
        self.commit(number)

    def enter(self, text: str) -> None:
        self.commit(self.parse(text))


@dataclass(frozen=True, eq=False)
class EnumChoice(Widget):
    """Closed choice over an enum's declared values; stores the numeric code."""

    @property
    def enum(self) -> EnumDescriptor:
        if self.field.enum is None:
            raise EditError(f"{self.name}: enum type {self.field.type_name} could not be resolved")
        return self.field.enum

    @property
    def options(self) -> list[tuple[str, int]]:
        return list(self.enum.values)

    @property
    def selected(self) -> str | None:
        if self.value is None:
            return None
        return self.enum.name_of(self.value)

    @property
    def text(self) -> str:
        return self.selected or ""

    def choose(self, choice: str | int) -> None:
        code: int | None
        if isinstance(choice, bool):
            code = None
        elif isinstance(choice, int):
            code = choice
        else:
            code = self.enum.code_of(choice)
            if code is None and choice.lstrip("-").isdigit():
                code = int(choice)
        if code is None or code not in self.enum.codes:
            raise EditError(f"{self.name}: {choice!r} is not a value of {self.enum.name}")
        self.commit(code)

    def enter(self, text: str) -> None:
        if not text.strip():
            self.clear()
        else:
            self.choose(text.strip())


@dataclass(frozen=True, eq=False)
class TextEntry(Widget):
    """Free-text entry for strings, bytes and unresolved types.

    Bytes are edited as base64 text, never as raw binary.
    """

    @property
    def surrogate(self) -> bool:
        return self.field.kind is Kind.BYTES

    @property
    def degraded(self) -> bool:
        return self.field.kind is Kind.UNRESOLVED

    @property
    def text(self) -> str:
        if isinstance(self.value, str):
            return self.value
        if isinstance(self.value, (bytes, bytearray)):
            return base64.b64encode(self.value).decode("ascii")
        return ""

    def enter(self, text: str) -> None:
        self.commit(text)


def parse_json(widget: Widget, text: str, expected: type) -> Any:
    """Parse operator JSON for composite widgets."""
    try:
        value = json.loads(text)
    except ValueError as e:
        raise EditError(f"{widget.name}: invalid JSON: {e}") from e
    if not isinstance(value, expected):
        raise EditError(f"{widget.name}: JSON {expected.__name__} expected")
    return value
