"""Tests for the schema parser."""

import pytest

from protoform.schema import (
    ProtoEnum,
    ProtoMessage,
    ProtoNamespace,
    SchemaParseError,
    find_primary,
    parse,
)


def describe_parse_file():
    def reads_syntax_statement(expect):
        root = parse('syntax = "proto3"; message M { int32 a = 1; }')
        expect(root.syntax) == "proto3"

    def defaults_to_proto2_without_syntax(expect):
        root = parse("message M { optional int32 a = 1; }")
        expect(root.syntax) == "proto2"

    def maps_edition_to_editions_syntax(expect):
        root = parse('edition = "2023"; message M { int32 a = 1; }')
        expect(root.syntax) == "editions"

    def records_imports_and_file_options(expect):
        root = parse(
            """
            syntax = "proto3";
            import "google/protobuf/empty.proto";
            import public "other.proto";
            option java_package = "com.example";
            option (my.custom).flag = true;
            message M { int32 a = 1; }
        """
        )
        expect(root.imports) == ["google/protobuf/empty.proto", "other.proto"]
        expect([(o.name, o.value) for o in root.options]) == [
            ("java_package", "com.example"),
            ("(my.custom).flag", True),
        ]

    def wraps_declarations_in_package_namespaces(expect):
        root = parse('syntax = "proto3"; package acme.jobs; message M { int32 a = 1; }')
        expect(root.package) == "acme.jobs"
        outer = root.nested[0]
        expect(isinstance(outer, ProtoNamespace)) == True
        expect(outer.name) == "acme"
        expect(outer.nested[0].name) == "jobs"
        expect(outer.nested[0].nested[0].name) == "M"

    def ignores_comments(expect):
        root = parse(
            """
            // leading comment
            syntax = "proto3";
            /* block
               comment */
            message M {
                int32 a = 1; // trailing
            }
        """
        )
        expect(root.nested[0].fields[0].name) == "a"

    def discards_services_and_extensions(expect):
        root = parse(
            """
            syntax = "proto2";
            message Req { optional string q = 1; extensions 100 to max; }
            message Resp { optional string r = 1; }
            extend Req { optional int32 extra = 100; }
            service Search {
                rpc Find (Req) returns (stream Resp);
                rpc Get (Req) returns (Resp) { option deprecated = true; }
            }
        """
        )
        expect([item.name for item in root.nested]) == ["Req", "Resp"]


def describe_parse_message():
    def keeps_fields_in_declaration_order(expect):
        root = parse('syntax = "proto3"; message M { string c = 3; int32 a = 1; bool b = 2; }')
        message = root.nested[0]
        expect([f.name for f in message.fields]) == ["c", "a", "b"]
        expect([f.number for f in message.fields]) == [3, 1, 2]
        expect([f.type for f in message.fields]) == ["string", "int32", "bool"]

    def reads_labels(expect):
        root = parse(
            """
            message M {
                required int32 a = 1;
                optional string b = 2;
                repeated bytes c = 3;
            }
        """
        )
        expect([f.label for f in root.nested[0].fields]) == ["required", "optional", "repeated"]

    def reads_hex_and_octal_numbers(expect):
        root = parse('syntax = "proto3"; message M { int32 a = 0x10; int32 b = 017; }')
        expect([f.number for f in root.nested[0].fields]) == [16, 15]

    def reads_field_options(expect):
        root = parse(
            """
            syntax = "proto2";
            message M {
                repeated int32 xs = 1 [packed = true, deprecated = false];
                optional double d = 2 [default = -1.5];
                optional string s = 3 [default = "a" "b"];
            }
        """
        )
        xs, d, s = root.nested[0].fields
        expect(xs.option("packed")) == True
        expect(xs.option("deprecated")) == False
        expect(d.option("default")) == -1.5
        expect(s.option("default")) == "ab"
        expect(s.option("missing", 7)) == 7

    def reads_aggregate_options(expect):
        root = parse(
            """
            syntax = "proto3";
            message M {
                option (rules) = { min: 1 max: 10 tags: ["a", "b"] };
                int32 a = 1;
            }
        """
        )
        option = root.nested[0].options[0]
        expect(option.name) == "(rules)"
        expect(option.value) == {"min": 1, "max": 10, "tags": ["a", "b"]}

    def flattens_oneof_members_into_fields(expect):
        root = parse(
            """
            syntax = "proto3";
            message M {
                int32 a = 1;
                oneof choice {
                    string x = 2;
                    int32 y = 3;
                }
                bool b = 4;
            }
        """
        )
        message = root.nested[0]
        expect([f.name for f in message.fields]) == ["a", "x", "y", "b"]
        expect([f.oneof for f in message.fields]) == [None, "choice", "choice", None]
        expect(message.oneofs[0].name) == "choice"
        expect(message.oneofs[0].fields) == ["x", "y"]

    def turns_proto3_optional_into_synthetic_oneof(expect):
        root = parse('syntax = "proto3"; message M { optional int32 n = 1; int32 m = 2; }')
        message = root.nested[0]
        expect(message.fields[0].oneof) == "_n"
        expect(message.fields[1].oneof) == None
        expect([(o.name, o.fields) for o in message.oneofs]) == [("_n", ["n"])]

    def leaves_proto2_optional_alone(expect):
        root = parse('syntax = "proto2"; message M { optional int32 n = 1; }')
        expect(root.nested[0].oneofs) == []

    def reads_map_fields(expect):
        root = parse('syntax = "proto3"; message M { map<string, int32> counts = 1; }')
        counts = root.nested[0].fields[0]
        expect(counts.is_map) == True
        expect(counts.key_type) == "string"
        expect(counts.type) == "int32"

    def keeps_absolute_and_qualified_type_refs(expect):
        root = parse('syntax = "proto3"; message M { .pkg.Other a = 1; Outer.Inner b = 2; }')
        expect([f.type for f in root.nested[0].fields]) == [".pkg.Other", "Outer.Inner"]

    def collects_nested_types(expect):
        root = parse(
            """
            syntax = "proto3";
            message Outer {
                message Inner { int32 v = 1; }
                enum Kind { A = 0; }
                Inner inner = 1;
                reserved 2, 5 to 7;
                reserved "old";
            }
        """
        )
        outer = root.nested[0]
        expect([type(n) for n in outer.nested]) == [ProtoMessage, ProtoEnum]
        expect([n.name for n in outer.nested]) == ["Inner", "Kind"]


def describe_parse_enum():
    def reads_values_with_negative_codes(expect):
        root = parse("enum E { option allow_alias = true; A = 0; B = -1; C = 0x2; }")
        enum = root.nested[0]
        expect(enum.name) == "E"
        expect([(v.name, v.number) for v in enum.values]) == [("A", 0), ("B", -1), ("C", 2)]
        expect(enum.options[0].value) == True


def describe_parse_errors():
    def rejects_unbalanced_braces():
        with pytest.raises(SchemaParseError):
            parse('syntax = "proto3"; message M { int32 a = 1;')

    def rejects_garbage():
        with pytest.raises(SchemaParseError):
            parse("this is not a schema")

    def rejects_duplicate_field_numbers(expect):
        with pytest.raises(SchemaParseError) as e:
            parse('syntax = "proto3"; message M { int32 a = 1; int32 b = 1; }')
        expect(str(e.value)).includes("already used")

    def rejects_duplicate_field_names():
        with pytest.raises(SchemaParseError):
            parse('syntax = "proto3"; message M { int32 a = 1; string a = 2; }')

    def rejects_field_number_zero():
        with pytest.raises(SchemaParseError):
            parse('syntax = "proto3"; message M { int32 a = 0; }')

    def rejects_duplicate_types():
        with pytest.raises(SchemaParseError):
            parse('syntax = "proto3"; message M { int32 a = 1; } message M { int32 b = 1; }')

    def rejects_two_syntax_statements():
        with pytest.raises(SchemaParseError):
            parse('syntax = "proto3"; syntax = "proto2"; message M { int32 a = 1; }')


def describe_find_primary():
    def picks_first_message_in_declaration_order(expect):
        root = parse(
            """
            syntax = "proto3";
            enum Level { LOW = 0; }
            message First { message Nested { int32 v = 1; } int32 a = 1; }
            message Second { int32 b = 1; }
        """
        )
        expect(find_primary(root).name) == "First"

    def searches_inside_package_namespaces(expect):
        root = parse('syntax = "proto3"; package a.b; message Only { int32 a = 1; }')
        expect(find_primary(root).name) == "Only"

    def returns_none_without_messages(expect):
        root = parse('syntax = "proto3"; enum E { A = 0; }')
        expect(find_primary(root)) == None
