"""Runtime type descriptors derived from a parsed schema.

A `Schema` wraps the declaration tree and hands out immutable
`TypeDescriptor` views, one per message declaration. Field type references
are resolved when a descriptor is built; nested message descriptors are
built on first access, so recursive messages are fine.
"""

import logging
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Optional

from .oneof import OneofClass, classify
from .parser import find_primary, parse
from .types import ProtoEnum, ProtoField, ProtoFile, ProtoMessage, ProtoNamespace

logger = logging.getLogger(__name__)


class SchemaResolutionWarning(UserWarning):
    """Emitted when a field's type reference cannot be resolved."""


class Kind(StrEnum):
    """Closed set of field kinds the editor and codec handle."""

    BOOL = auto()
    INT = auto()
    FLOAT = auto()
    STRING = auto()
    BYTES = auto()
    ENUM = auto()
    MESSAGE = auto()
    UNRESOLVED = auto()


SCALAR_KINDS: dict[str, Kind] = {
    "double": Kind.FLOAT,
    "float": Kind.FLOAT,
    "int32": Kind.INT,
    "int64": Kind.INT,
    "uint32": Kind.INT,
    "uint64": Kind.INT,
    "sint32": Kind.INT,
    "sint64": Kind.INT,
    "fixed32": Kind.INT,
    "fixed64": Kind.INT,
    "sfixed32": Kind.INT,
    "sfixed64": Kind.INT,
    "bool": Kind.BOOL,
    "string": Kind.STRING,
    "bytes": Kind.BYTES,
}

# Kinds whose repeated form may use the packed encoding
PACKABLE_KINDS = frozenset([Kind.BOOL, Kind.INT, Kind.FLOAT, Kind.ENUM])


@dataclass(frozen=True, slots=True)
class EnumDescriptor:
    """Describes an enum type: ordered name -> code pairs."""

    name: str
    full_name: str
    values: tuple[tuple[str, int], ...]

    @property
    def codes(self) -> frozenset[int]:
        return frozenset(code for _, code in self.values)

    def name_of(self, code: int) -> str | None:
        """First declared name for `code` (aliases share a code)."""
        for name, value in self.values:
            if value == code:
                return name
        return None

    def code_of(self, name: str) -> int | None:
        for value_name, code in self.values:
            if value_name == name:
                return code
        return None


@dataclass(frozen=True, slots=True)
class OneofGroup:
    """Describes a oneof group and its classification."""

    name: str
    members: tuple[str, ...]
    classification: OneofClass

    @property
    def synthetic(self) -> bool:
        return self.classification is OneofClass.SYNTHETIC


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Describes one field of a message type.

    `type_name` is the wire-level scalar (`sint32`, `double`, ...) for scalar
    kinds and the resolved full name for enums and messages. Unresolved
    references keep the name as written.
    """

    name: str
    number: int
    kind: Kind
    type_name: str
    repeated: bool = False
    packed: bool = False
    required: bool = False
    optional: bool = False
    oneof: str | None = None
    enum: EnumDescriptor | None = None
    message_ref: str | None = None
    schema: Optional["Schema"] = field(default=None, compare=False, repr=False)

    @property
    def message(self) -> Optional["TypeDescriptor"]:
        """Nested message descriptor, built on first access."""
        if self.message_ref is None or self.schema is None:
            return None
        return self.schema.descriptor(self.message_ref)

    @property
    def label(self) -> str:
        return self.name.replace("_", " ")


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """Read-only view of one message type."""

    name: str
    full_name: str
    fields: tuple[FieldDescriptor, ...]
    oneofs: tuple[OneofGroup, ...] = ()
    syntax: str = "proto2"

    def field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def field_by_number(self, number: int) -> FieldDescriptor | None:
        for f in self.fields:
            if f.number == number:
                return f
        return None

    def oneof(self, name: str) -> OneofGroup | None:
        for group in self.oneofs:
            if group.name == name:
                return group
        return None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def unresolved(self) -> list[FieldDescriptor]:
        return [f for f in self.fields if f.kind is Kind.UNRESOLVED]


def _join(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


def _parent(scope: str) -> str:
    return scope.rpartition(".")[0]


class Schema:
    """Symbol table over a parsed schema file."""

    def __init__(self, root: ProtoFile) -> None:
        self.root = root
        self._symbols: dict[str, ProtoMessage | ProtoEnum] = {}
        self._names: dict[int, str] = {}
        self._descriptors: dict[str, TypeDescriptor] = {}
        self._enums: dict[str, EnumDescriptor] = {}
        self._index(root.nested, "")

    def _index(self, items: list, scope: str) -> None:
        for item in items:
            full_name = _join(scope, item.name)
            if isinstance(item, ProtoNamespace):
                self._index(item.nested, full_name)
                continue
            self._symbols[full_name] = item
            self._names[id(item)] = full_name
            if isinstance(item, ProtoMessage):
                self._index(item.nested, full_name)

    @property
    def syntax(self) -> str:
        return self.root.syntax

    def messages(self) -> Iterator[str]:
        """Full names of every message, in declaration order."""
        for name, item in self._symbols.items():
            if isinstance(item, ProtoMessage):
                yield name

    def primary(self) -> TypeDescriptor | None:
        """Descriptor of the first message found depth-first, or None."""
        message = find_primary(self.root)
        if message is None:
            return None
        return self.descriptor(self._names[id(message)])

    def lookup(self, name: str, scope: str = "") -> str | None:
        """Resolve a type reference relative to `scope` to a full name.

        A leading dot makes the reference absolute; otherwise the innermost
        enclosing scope that declares the name wins.
        """
        if name.startswith("."):
            return name[1:] if name[1:] in self._symbols else None
        while True:
            candidate = _join(scope, name)
            if candidate in self._symbols:
                return candidate
            if not scope:
                return None
            scope = _parent(scope)

    def descriptor(self, full_name: str) -> TypeDescriptor:
        """Return the (memoised) descriptor for a message by full name."""
        descriptor = self._descriptors.get(full_name)
        if descriptor is None:
            message = self._symbols.get(full_name)
            if not isinstance(message, ProtoMessage):
                raise KeyError(f"no message type named {full_name}")
            descriptor = self._build(message, full_name)
            self._descriptors[full_name] = descriptor
        return descriptor

    def enum(self, full_name: str) -> EnumDescriptor:
        descriptor = self._enums.get(full_name)
        if descriptor is None:
            decl = self._symbols.get(full_name)
            if not isinstance(decl, ProtoEnum):
                raise KeyError(f"no enum type named {full_name}")
            descriptor = EnumDescriptor(
                name=decl.name,
                full_name=full_name,
                values=tuple((v.name, v.number) for v in decl.values),
            )
            self._enums[full_name] = descriptor
        return descriptor

    def _build(self, message: ProtoMessage, full_name: str) -> TypeDescriptor:
        return TypeDescriptor(
            name=message.name,
            full_name=full_name,
            fields=tuple(self._field(f, full_name) for f in message.fields),
            oneofs=tuple(
                OneofGroup(
                    name=o.name,
                    members=tuple(o.fields),
                    classification=classify(o.name, o.fields),
                )
                for o in message.oneofs
            ),
            syntax=self.syntax,
        )

    def _field(self, decl: ProtoField, scope: str) -> FieldDescriptor:
        common = {
            "name": decl.name,
            "number": decl.number,
            "repeated": decl.label == "repeated",
            "required": decl.label == "required",
            "optional": decl.label == "optional",
            "oneof": decl.oneof,
        }

        if decl.is_map:
            type_name = f"map<{decl.key_type}, {decl.type}>"
            self._warn(scope, decl.name, f"map field type {type_name} is not supported")
            return FieldDescriptor(kind=Kind.UNRESOLVED, type_name=type_name, **common)

        kind = SCALAR_KINDS.get(decl.type)
        if kind is not None:
            return FieldDescriptor(
                kind=kind,
                type_name=decl.type,
                packed=self._packed(decl, kind),
                **common,
            )

        target = self.lookup(decl.type, scope)
        if target is None:
            self._warn(scope, decl.name, f"type {decl.type} could not be resolved")
            return FieldDescriptor(kind=Kind.UNRESOLVED, type_name=decl.type, **common)

        if isinstance(self._symbols[target], ProtoEnum):
            return FieldDescriptor(
                kind=Kind.ENUM,
                type_name=target,
                packed=self._packed(decl, Kind.ENUM),
                enum=self.enum(target),
                **common,
            )
        return FieldDescriptor(
            kind=Kind.MESSAGE,
            type_name=target,
            message_ref=target,
            schema=self,
            **common,
        )

    def _packed(self, decl: ProtoField, kind: Kind) -> bool:
        if decl.label != "repeated" or kind not in PACKABLE_KINDS:
            return False
        explicit = decl.option("packed")
        if explicit is not None:
            return explicit is True
        return self.syntax in ("proto3", "editions")

    def _warn(self, scope: str, field_name: str, reason: str) -> None:
        message = f"{scope}.{field_name}: {reason}; editing it as free text"
        logger.warning(message)
        warnings.warn(message, SchemaResolutionWarning, stacklevel=4)


def load(text: str) -> Schema:
    """Parse schema text into a `Schema`.

    Raises:
        SchemaParseError: the text is not a well-formed schema.
    """
    return Schema(parse(text))
