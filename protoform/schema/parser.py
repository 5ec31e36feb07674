"""Schema definition parser using Lark."""

import ast
import logging
import os
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark, Token
from lark.exceptions import (
    LarkError,
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)
from lark.visitors import Transformer

from .types import (
    ProtoEnum,
    ProtoEnumValue,
    ProtoField,
    ProtoFile,
    ProtoMessage,
    ProtoNamespace,
    ProtoOneof,
    ProtoOption,
)

logger = logging.getLogger(__name__)

_g_parser: Lark | None = None

# Largest field number the wire format can carry.
MAX_FIELD_NUMBER = (1 << 29) - 1


class SchemaParseError(RuntimeError):
    """Raised when schema text is malformed."""


@dataclass
class _Syntax:
    value: str


@dataclass
class _Package:
    value: str


@dataclass
class _Import:
    value: str


@dataclass
class _Label:
    value: str


@dataclass
class _Custom:
    value: str


@dataclass
class _Options:
    options: list[ProtoOption]


@dataclass
class _OneofDecl:
    name: str
    fields: list[ProtoField]
    options: list[ProtoOption]


class _Discarded:
    """Placeholder for accepted declarations with no model counterpart."""


_DISCARDED = _Discarded()

TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise SchemaParseError(f"Found more than one {class_type.__name__.strip('_').lower()} statement")

    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


def _int(text: str) -> int:
    if text[:2] in ("0x", "0X"):
        return int(text, 16)
    if len(text) > 1 and text[0] == "0":
        return int(text, 8)
    return int(text)


def _unquote(text: str) -> str:
    try:
        return ast.literal_eval(text)
    except (SyntaxError, ValueError) as e:
        raise SchemaParseError(f"invalid string literal {text}") from e


def _options(value: _Options | None) -> list[ProtoOption]:
    return value.options if value else []


class TreeTransformer(Transformer):
    """Transform parse tree into declaration types."""

    def start(self, args: list[Any]) -> list[Any]:
        return args

    def syntax(self, args: list[Any]) -> _Syntax:
        return _Syntax(value=args[0])

    def edition(self, args: list[Any]) -> _Syntax:
        return _Syntax(value="editions")

    def package(self, args: list[Any]) -> _Package:
        return _Package(value=args[0])

    def import_decl(self, args: list[Any]) -> _Import:
        return _Import(value=args[-1])

    def option_decl(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=args[0], value=args[1])

    def option_name(self, args: list[Any]) -> str:
        parts = [a.value if isinstance(a, _Custom) else str(a) for a in args if not _is_dot(a)]
        return ".".join(parts)

    def custom_option(self, args: list[Any]) -> _Custom:
        return _Custom(value=f"({args[0]})")

    def field_options(self, args: list[Any]) -> _Options:
        return _Options(options=_find_many(args, ProtoOption))

    def field_option(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=args[0], value=args[1])

    def ident_constant(self, args: list[Any]) -> Any:
        ident = args[0]
        if ident in ("true", "false"):
            return ident == "true"
        if ident in ("inf", "nan"):
            return float(ident)
        return ident

    def signed_int(self, args: list[Any]) -> int:
        sign, number = args
        value = _int(str(number))
        return -value if sign == "-" else value

    def signed_float(self, args: list[Any]) -> float:
        sign, number = args
        return float(f"{sign or ''}{number}")

    def signed_ident(self, args: list[Any]) -> Any:
        sign, ident = args
        if ident in ("inf", "nan"):
            return float(f"{sign}{ident}")
        return f"{sign}{ident}"

    def string_lit(self, args: list[Any]) -> str:
        return "".join(_unquote(str(t)) for t in args)

    def aggregate(self, args: list[Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in args:
            if key in result:
                previous = result[key]
                result[key] = [*previous, value] if isinstance(previous, list) else [previous, value]
            else:
                result[key] = value
        return result

    def agg_field(self, args: list[Any]) -> tuple[str, Any]:
        return (str(args[0]), args[-1])

    def agg_list(self, args: list[Any]) -> list[Any]:
        return [a for a in args if a is not None]

    def message(self, args: list[Any]) -> ProtoMessage:
        fields: list[ProtoField] = []
        oneofs: list[ProtoOneof] = []
        for item in args[1:]:
            if isinstance(item, ProtoField):
                fields.append(item)
            elif isinstance(item, _OneofDecl):
                for member in item.fields:
                    member.oneof = item.name
                    fields.append(member)
                oneofs.append(
                    ProtoOneof(
                        name=item.name,
                        fields=[member.name for member in item.fields],
                        options=item.options,
                    )
                )

        return ProtoMessage(
            name=str(args[0]),
            fields=fields,
            oneofs=oneofs,
            nested=[a for a in args if isinstance(a, (ProtoMessage, ProtoEnum))],
            options=_find_many(args, ProtoOption),
        )

    def field(self, args: list[Any]) -> ProtoField:
        label, type_ref, name, number, options = args
        return ProtoField(
            name=str(name),
            number=_int(str(number)),
            type=type_ref,
            label=label.value if label else None,
            options=_options(options),
        )

    def optional(self, args: list[Any]) -> _Label:
        return _Label(value="optional")

    def required(self, args: list[Any]) -> _Label:
        return _Label(value="required")

    def repeated(self, args: list[Any]) -> _Label:
        return _Label(value="repeated")

    def map_field(self, args: list[Any]) -> ProtoField:
        key_type, value_type, name, number, options = args
        return ProtoField(
            name=str(name),
            number=_int(str(number)),
            type=value_type,
            options=_options(options),
            key_type=key_type,
        )

    def oneof(self, args: list[Any]) -> _OneofDecl:
        return _OneofDecl(
            name=str(args[0]),
            fields=_find_many(args, ProtoField),
            options=_find_many(args, ProtoOption),
        )

    def oneof_field(self, args: list[Any]) -> ProtoField:
        type_ref, name, number, options = args
        return ProtoField(
            name=str(name),
            number=_int(str(number)),
            type=type_ref,
            options=_options(options),
        )

    def reserved(self, args: list[Any]) -> _Discarded:
        return _DISCARDED

    def extensions(self, args: list[Any]) -> _Discarded:
        return _DISCARDED

    def extend(self, args: list[Any]) -> _Discarded:
        return _DISCARDED

    def service(self, args: list[Any]) -> _Discarded:
        return _DISCARDED

    def enum(self, args: list[Any]) -> ProtoEnum:
        return ProtoEnum(
            name=str(args[0]),
            values=_find_many(args, ProtoEnumValue),
            options=_find_many(args, ProtoOption),
        )

    def enum_value(self, args: list[Any]) -> ProtoEnumValue:
        name, number, options = args
        return ProtoEnumValue(name=str(name), number=number, options=_options(options))

    def type_ref(self, args: list[Any]) -> str:
        absolute, ident = args
        return f".{ident}" if absolute else ident

    def full_ident(self, args: list[Any]) -> str:
        return ".".join(str(a) for a in args if not _is_dot(a))


def _is_dot(item: Any) -> bool:
    return isinstance(item, Token) and item.type == "ABS"


def _add_synthetic_oneofs(message: ProtoMessage) -> None:
    """proto3 `optional` fields become single-member oneofs named `_<field>`."""
    for f in message.fields:
        if f.label == "optional" and f.oneof is None:
            f.oneof = f"_{f.name}"
            message.oneofs.append(ProtoOneof(name=f.oneof, fields=[f.name]))
    for nested in message.nested:
        if isinstance(nested, ProtoMessage):
            _add_synthetic_oneofs(nested)


def _validate_message(message: ProtoMessage) -> None:
    names: set[str] = set()
    numbers: dict[int, str] = {}
    for f in message.fields:
        if f.name in names:
            raise SchemaParseError(f"{message.name}: duplicate field name {f.name}")
        if not 1 <= f.number <= MAX_FIELD_NUMBER:
            raise SchemaParseError(f"{message.name}.{f.name}: illegal field number {f.number}")
        if f.number in numbers:
            raise SchemaParseError(
                f"{message.name}.{f.name}: field number {f.number} already used by {numbers[f.number]}"
            )
        names.add(f.name)
        numbers[f.number] = f.name

    for oneof in message.oneofs:
        if not oneof.fields:
            raise SchemaParseError(f"{message.name}: oneof {oneof.name} has no fields")

    nested_names: set[str] = set()
    for nested in message.nested:
        if nested.name in nested_names:
            raise SchemaParseError(f"{message.name}: duplicate nested type {nested.name}")
        nested_names.add(nested.name)
        if isinstance(nested, ProtoMessage):
            _validate_message(nested)


def validate(root: ProtoFile) -> None:
    """Check the well-formedness rules the grammar cannot express."""
    seen: set[str] = set()
    for item in root.nested:
        if isinstance(item, (ProtoMessage, ProtoEnum)):
            if item.name in seen:
                raise SchemaParseError(f"duplicate type {item.name}")
            seen.add(item.name)
        if isinstance(item, ProtoMessage):
            _validate_message(item)


def _describe(error: UnexpectedInput) -> str:
    if isinstance(error, UnexpectedEOF):
        return "unexpected end of input"
    if isinstance(error, UnexpectedToken):
        if error.token.type == "$END":
            return "unexpected end of input"
        return f"unexpected {error.token.value!r} at line {error.line}, column {error.column}"
    if isinstance(error, UnexpectedCharacters):
        return f"unexpected character {error.char!r} at line {error.line}, column {error.column}"
    return str(error)


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/proto.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar, parser="lalr")
    return _g_parser


def parse(text: str) -> ProtoFile:
    """Parse schema text into a declaration tree.

    Raises:
        SchemaParseError: the text is not a well-formed schema.
    """
    try:
        tree = _get_parser().parse(text)
    except UnexpectedInput as e:
        raise SchemaParseError(_describe(e)) from e
    except LarkError as e:
        raise SchemaParseError(str(e)) from e

    try:
        items = TreeTransformer().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, SchemaParseError):
            raise e.orig_exc from e
        raise SchemaParseError(str(e.orig_exc)) from e

    syntax = _find_one(items, _Syntax) or "proto2"
    package = _find_one(items, _Package)
    nested: list[ProtoNamespace | ProtoMessage | ProtoEnum] = [
        item for item in items if isinstance(item, (ProtoMessage, ProtoEnum))
    ]

    if syntax == "proto3":
        for item in nested:
            if isinstance(item, ProtoMessage):
                _add_synthetic_oneofs(item)

    root = ProtoFile(
        syntax=syntax,
        package=package,
        imports=[i.value for i in _find_many(items, _Import)],
        options=_find_many(items, ProtoOption),
        nested=nested,
    )
    validate(root)

    if package:
        # `package a.b;` nests every declaration under namespaces a -> b
        for part in reversed(package.split(".")):
            root.nested = [ProtoNamespace(name=part, nested=root.nested)]

    logger.debug(f"Parsed schema: syntax={syntax} package={package} types={len(nested)}")
    return root


def find_primary(namespace: ProtoFile | ProtoNamespace | ProtoMessage) -> ProtoMessage | None:
    """Return the first message found by a depth-first, declaration-order search.

    When several sibling messages are declared, the first one wins; nested
    messages only count when no earlier message encloses them.
    """
    for nested in namespace.nested:
        if isinstance(nested, ProtoMessage):
            return nested
        if isinstance(nested, ProtoNamespace):
            found = find_primary(nested)
            if found:
                return found
    return None
