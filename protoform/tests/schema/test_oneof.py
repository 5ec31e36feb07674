"""Tests for oneof classification and exclusive selection."""

import pytest

from protoform.schema import (
    OneofClass,
    active_member,
    classify,
    clear_group,
    real_oneofs,
    select_member,
    standalone_fields,
)
from protoform.schema.oneof import populated_members

SCHEMA = """
syntax = "proto3";
message M {
    int32 a = 1;
    oneof choice {
        string x = 2;
        int32 y = 3;
        bool z = 4;
    }
    optional int32 n = 5;
    string b = 6;
}
"""


def describe_classify():
    def marks_single_member_underscore_groups_synthetic(expect):
        expect(classify("_n", ["n"])) == OneofClass.SYNTHETIC

    def marks_other_groups_real(expect):
        expect(classify("_n", ["n", "m"])) == OneofClass.REAL
        expect(classify("choice", ["choice"])) == OneofClass.REAL
        expect(classify("_x", ["n"])) == OneofClass.REAL


def describe_grouping():
    def keeps_synthetic_members_standalone(expect, primary):
        td = primary(SCHEMA)
        expect([f.name for f in standalone_fields(td)]) == ["a", "n", "b"]

    def lists_only_real_groups(expect, primary):
        td = primary(SCHEMA)
        expect([g.name for g in real_oneofs(td)]) == ["choice"]


def describe_selection():
    def selecting_a_member_removes_siblings(expect, primary):
        group = primary(SCHEMA).oneof("choice")
        tree = {"a": 1, "x": "hello"}
        updated = select_member(tree, group, "y")
        expect(updated) == {"a": 1, "y": None}
        expect(tree) == {"a": 1, "x": "hello"}

    def selecting_with_a_value_sets_it(expect, primary):
        group = primary(SCHEMA).oneof("choice")
        expect(select_member({"x": "a", "z": True}, group, "y", 5)) == {"y": 5}

    def rejects_non_members(primary):
        group = primary(SCHEMA).oneof("choice")
        with pytest.raises(KeyError):
            select_member({}, group, "a")

    def derives_the_active_member_from_key_presence(expect, primary):
        group = primary(SCHEMA).oneof("choice")
        expect(active_member({}, group)) == None
        expect(active_member({"y": None}, group)) == "y"
        expect(active_member({"z": False, "x": "s"}, group)) == "x"

    def reports_populated_members(expect, primary):
        group = primary(SCHEMA).oneof("choice")
        expect(populated_members({"x": "s", "y": None, "z": False}, group)) == ["x", "z"]

    def clears_every_member(expect, primary):
        group = primary(SCHEMA).oneof("choice")
        expect(clear_group({"a": 1, "x": "s", "y": 2}, group)) == {"a": 1}
