"""Declaration tree produced by the schema parser."""

from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class ProtoOption(DataClassJsonMixin):
    """Represents an option assignment (`option x = y;` or `[x = y]`)."""

    name: str
    value: Any


@dataclass
class ProtoField(DataClassJsonMixin):
    """Represents a field declaration inside a message.

    `type` is the reference as written in the source (`int32`, `Inner`,
    `.pkg.Outer`). For map fields `type` is the value type and `key_type`
    the key type.
    """

    name: str
    number: int
    type: str
    label: str | None = None
    options: list[ProtoOption] = field(default_factory=list)
    oneof: str | None = None
    key_type: str | None = None

    def option(self, name: str, default: Any = None) -> Any:
        """Return the value of a field option, or `default` when absent."""
        for opt in self.options:
            if opt.name == name:
                return opt.value
        return default

    @property
    def is_map(self) -> bool:
        return self.key_type is not None


@dataclass
class ProtoOneof(DataClassJsonMixin):
    """Represents a oneof group; `fields` lists member names in order."""

    name: str
    fields: list[str]
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoEnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    number: int
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoEnum(DataClassJsonMixin):
    """Represents an enum type definition."""

    name: str
    values: list[ProtoEnumValue]
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoMessage(DataClassJsonMixin):
    """Represents a message type definition.

    `nested` holds nested messages and enums in declaration order.
    """

    name: str
    fields: list[ProtoField]
    oneofs: list[ProtoOneof] = field(default_factory=list)
    nested: list["ProtoMessage | ProtoEnum"] = field(default_factory=list)
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoNamespace(DataClassJsonMixin):
    """Represents one component of a package name."""

    name: str
    nested: list["ProtoNamespace | ProtoMessage | ProtoEnum"] = field(default_factory=list)


@dataclass
class ProtoFile(DataClassJsonMixin):
    """Represents a complete schema file (the root namespace)."""

    syntax: str
    package: str | None
    imports: list[str]
    options: list[ProtoOption]
    nested: list[ProtoNamespace | ProtoMessage | ProtoEnum]


SCALAR_TYPES = frozenset(
    [
        "double",
        "float",
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
        "bool",
        "string",
        "bytes",
    ]
)


def scalar_types() -> list[str]:
    """Return a list of scalar type names."""
    return sorted(SCALAR_TYPES)


def is_scalar(type_name: str) -> bool:
    """Check if a type name denotes a built-in scalar type."""
    return type_name in SCALAR_TYPES
