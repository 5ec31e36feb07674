"""Oneof classification and exclusive-choice tree updates.

A oneof group is *synthetic* when it exists only to give a single proto3
`optional` field explicit presence: exactly one member `f`, group name
`_f`. Synthetic groups are transparent; their member behaves like any
standalone field. Every other group is *real* and allows at most one
populated member at a time.
"""

from collections.abc import Mapping, Sequence
from enum import StrEnum, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .descriptor import FieldDescriptor, OneofGroup, TypeDescriptor


class OneofClass(StrEnum):
    """Classification of a oneof group."""

    REAL = auto()
    SYNTHETIC = auto()


def classify(name: str, members: Sequence[str]) -> OneofClass:
    if len(members) == 1 and name == f"_{members[0]}":
        return OneofClass.SYNTHETIC
    return OneofClass.REAL


def is_synthetic(group: "OneofGroup") -> bool:
    return group.classification is OneofClass.SYNTHETIC


def real_oneofs(descriptor: "TypeDescriptor") -> list["OneofGroup"]:
    """Groups rendered as a single exclusive-choice unit, in declaration order."""
    return [group for group in descriptor.oneofs if not is_synthetic(group)]


def standalone_fields(descriptor: "TypeDescriptor") -> list["FieldDescriptor"]:
    """Fields outside any oneof, or inside a synthetic one, in declaration order."""
    synthetic = {group.name for group in descriptor.oneofs if is_synthetic(group)}
    return [f for f in descriptor.fields if f.oneof is None or f.oneof in synthetic]


def active_member(tree: Mapping[str, Any], group: "OneofGroup") -> str | None:
    """Return the selected member: the first member whose key is present."""
    for member in group.members:
        if member in tree:
            return member
    return None


def populated_members(tree: Mapping[str, Any], group: "OneofGroup") -> list[str]:
    """Members holding an actual (non-None) value."""
    return [member for member in group.members if tree.get(member) is not None]


def clear_group(tree: Mapping[str, Any], group: "OneofGroup") -> dict[str, Any]:
    """Return a copy of `tree` without any member key of `group`."""
    return {key: value for key, value in tree.items() if key not in group.members}


def select_member(
    tree: Mapping[str, Any], group: "OneofGroup", member: str, value: Any = None
) -> dict[str, Any]:
    """Return a copy of `tree` where `member` is the only key of `group`.

    Every other member key is removed before `member` is set, so no stale
    sibling survives a selection change. A `None` value keeps the member
    selected while leaving it unset.
    """
    if member not in group.members:
        raise KeyError(f"{member} is not a member of oneof {group.name}")
    result = clear_group(tree, group)
    result[member] = value
    return result
