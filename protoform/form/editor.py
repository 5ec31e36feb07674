"""Projection of a type descriptor plus a value tree onto an editable form.

`project` walks the descriptor in declaration order. Standalone fields (and
members of synthetic oneofs) become one widget each; every real oneof
becomes a single `ChoiceWidget` after them. Edits produce a new tree and
hand it to `on_change`; nothing is mutated in place, so the caller decides
when to re-project.
"""

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any

from protoform.schema.descriptor import FieldDescriptor, Kind, OneofGroup, TypeDescriptor
from protoform.schema.oneof import active_member, clear_group, real_oneofs, select_member, standalone_fields

from .widgets import Commit, EditError, EnumChoice, NumberEntry, TextEntry, Toggle, Widget, parse_json

ValueTree = dict[str, Any]
OnChange = Callable[[ValueTree], None]


def set_key(tree: Mapping[str, Any], key: str, value: Any) -> ValueTree:
    """Return a copy of `tree` with `key` set, or removed when `value` is None."""
    result = dict(tree)
    if value is None:
        result.pop(key, None)
    else:
        result[key] = value
    return result


def default_element(f: FieldDescriptor) -> Any:
    """Value appended to a repeated field by `RepeatedList.append`."""
    if f.kind is Kind.BOOL:
        return False
    if f.kind in (Kind.INT, Kind.FLOAT):
        return 0
    if f.kind is Kind.ENUM:
        return f.enum.values[0][1] if f.enum is not None and f.enum.values else 0
    if f.kind is Kind.MESSAGE:
        return {}
    return ""


@dataclass(frozen=True, eq=False)
class MessageEditor(Widget):
    """Nested message field; the nested form is projected on access."""

    @property
    def form(self) -> "Form":
        nested = self.field.message
        if nested is None:
            raise EditError(f"{self.name}: message type {self.field.type_name} could not be resolved")
        value = self.value if isinstance(self.value, Mapping) else {}
        return project(nested, value, self.commit)

    @property
    def text(self) -> str:
        return "" if self.value is None else json.dumps(self.value)

    def enter(self, text: str) -> None:
        if not text.strip():
            self.clear()
        else:
            self.commit(parse_json(self, text, dict))


@dataclass(frozen=True, eq=False)
class RepeatedList(Widget):
    """Ordered list of element widgets for a repeated field."""

    @property
    def values(self) -> list[Any]:
        if isinstance(self.value, (list, tuple)):
            return list(self.value)
        return []

    @property
    def items(self) -> list[Widget]:
        return [
            element_widget(self.field, value, partial(self.replace, i))
            for i, value in enumerate(self.values)
        ]

    def item(self, index: int) -> Widget:
        self._check(index)
        return self.items[index]

    def _check(self, index: int) -> None:
        if not 0 <= index < len(self.values):
            raise EditError(f"{self.name}: no element at index {index}")

    def append(self) -> None:
        self.commit([*self.values, default_element(self.field)])

    def remove(self, index: int) -> None:
        self._check(index)
        values = self.values
        del values[index]
        self.commit(values)

    def replace(self, index: int, value: Any) -> None:
        self._check(index)
        values = self.values
        values[index] = value
        self.commit(values)

    @property
    def text(self) -> str:
        return "" if self.value is None else json.dumps(self.value)

    def enter(self, text: str) -> None:
        if not text.strip():
            self.clear()
        else:
            self.commit(parse_json(self, text, list))


def element_widget(f: FieldDescriptor, value: Any, commit: Commit) -> Widget:
    """Widget for one value of field `f`, ignoring its repeated label."""
    if f.kind is Kind.BOOL:
        return Toggle(f, value, commit)
    if f.kind in (Kind.INT, Kind.FLOAT):
        return NumberEntry(f, value, commit)
    if f.kind is Kind.ENUM:
        return EnumChoice(f, value, commit)
    if f.kind is Kind.MESSAGE:
        return MessageEditor(f, value, commit)
    return TextEntry(f, value, commit)


def widget_for(f: FieldDescriptor, value: Any, commit: Commit) -> Widget:
    if f.repeated:
        return RepeatedList(f, value, commit)
    return element_widget(f, value, commit)


@dataclass(frozen=True, eq=False)
class ChoiceWidget:
    """Exclusive choice over the members of a real oneof.

    The selection is derived from the tree: the first member whose key is
    present. Selecting a member removes every sibling key.
    """

    group: OneofGroup
    descriptor: TypeDescriptor
    tree: Mapping[str, Any]
    on_change: OnChange

    @property
    def name(self) -> str:
        return self.group.name

    @property
    def label(self) -> str:
        return self.group.name.replace("_", " ")

    @property
    def options(self) -> list[str]:
        return list(self.group.members)

    @property
    def selected(self) -> str | None:
        return active_member(self.tree, self.group)

    @property
    def is_set(self) -> bool:
        return self.selected is not None

    @property
    def text(self) -> str:
        return self.selected or ""

    def _check(self, member: str) -> None:
        if member not in self.group.members:
            raise EditError(f"{member} is not a member of oneof {self.group.name}")

    def select(self, member: str) -> None:
        self._check(member)
        if member == self.selected:
            return
        self.on_change(select_member(self.tree, self.group, member))

    def clear(self) -> None:
        self.on_change(clear_group(self.tree, self.group))

    def member(self, name: str) -> Widget:
        """Widget for a member; committing through it also selects it."""
        self._check(name)
        f = self.descriptor.field(name)
        if f is None:
            raise EditError(f"{name} is not a field of {self.descriptor.name}")
        commit = partial(self._commit_member, name)
        return widget_for(f, self.tree.get(name), commit)

    def _commit_member(self, name: str, value: Any) -> None:
        self.on_change(select_member(self.tree, self.group, name, value))

    @property
    def active(self) -> Widget | None:
        selected = self.selected
        return self.member(selected) if selected is not None else None

    def enter(self, text: str) -> None:
        if not text.strip():
            self.clear()
        else:
            self.select(text.strip())


@dataclass(frozen=True, eq=False)
class Form:
    """Editable view of one message value."""

    descriptor: TypeDescriptor
    value: Mapping[str, Any]
    fields: tuple[Widget, ...]
    choices: tuple[ChoiceWidget, ...]

    @property
    def widgets(self) -> list[Widget | ChoiceWidget]:
        """Standalone field widgets followed by one widget per real oneof."""
        return [*self.fields, *self.choices]

    def widget(self, name: str) -> Widget | ChoiceWidget | None:
        for w in self.fields:
            if w.name == name:
                return w
        for choice in self.choices:
            if choice.name == name:
                return choice
        for choice in self.choices:
            if name in choice.group.members:
                return choice.member(name)
        return None

    def find(self, path: str) -> Widget | ChoiceWidget:
        """Resolve a dotted path such as `inner.count`, `items.2` or `kind.text`.

        Raises:
            EditError: a path segment names nothing.
        """
        target: Any = self
        for segment in path.split("."):
            if isinstance(target, MessageEditor):
                target = target.form
            found: Any = None
            if isinstance(target, Form):
                found = target.widget(segment)
            elif isinstance(target, RepeatedList):
                if segment.isdigit():
                    found = target.item(int(segment))
            elif isinstance(target, ChoiceWidget):
                if segment in target.group.members:
                    found = target.member(segment)
            if found is None:
                raise EditError(f"{path}: nothing named {segment!r}")
            target = found
        return target


def _commit_field(tree: Mapping[str, Any], name: str, on_change: OnChange, value: Any) -> None:
    on_change(set_key(tree, name, value))


def project(descriptor: TypeDescriptor, value: Mapping[str, Any] | None, on_change: OnChange) -> Form:
    """Build the form for `value` against `descriptor`.

    Keys in `value` that the descriptor does not know are carried along
    untouched; validation reports them at encode time.
    """
    tree: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    fields = tuple(
        widget_for(f, tree.get(f.name), partial(_commit_field, tree, f.name, on_change))
        for f in standalone_fields(descriptor)
    )
    choices = tuple(ChoiceWidget(group, descriptor, tree, on_change) for group in real_oneofs(descriptor))
    return Form(descriptor, tree, fields, choices)
