"""Tests for the form session."""

from protoform.codec import encode
from protoform.form import FormSession, load_schema
from protoform.form.session import NO_DEFINITION, NO_MESSAGE

FIRST = 'syntax = "proto3"; message First { string a = 1; int32 b = 2; }'
SECOND = 'syntax = "proto3"; message Second { bool flag = 1; }'


def describe_load_schema():
    def loads_the_primary_type(expect):
        loaded = load_schema(FIRST)
        expect(loaded.error) == None
        expect(loaded.primary.name) == "First"
        expect(loaded.status) == "First"

    def reports_nothing_for_empty_text(expect):
        loaded = load_schema("   ")
        expect(loaded.error) == None
        expect(loaded.primary) == None
        expect(loaded.status) == NO_DEFINITION

    def reports_parse_errors(expect):
        loaded = load_schema("message {")
        expect(loaded.schema) == None
        expect(loaded.error.startswith("Failed to parse schema definition: ")) == True

    def reports_schemas_without_messages(expect):
        loaded = load_schema('syntax = "proto3"; enum E { A = 0; }')
        expect(loaded.error) == NO_MESSAGE
        expect(loaded.primary) == None


def describe_form_session():
    def starts_from_the_initial_value(expect):
        session = FormSession(FIRST, initial={"a": "x"})
        expect(session.value) == {"a": "x"}
        expect(session.form.find("a").text) == "x"

    def edits_replace_the_value_and_notify(expect):
        seen = []
        session = FormSession(FIRST, on_change=seen.append)
        session.form.find("b").enter("3")
        session.form.find("a").enter("hi")
        expect(session.value) == {"b": 3, "a": "hi"}
        expect(seen) == [{"b": 3}, {"b": 3, "a": "hi"}]

    def runs_scripted_edits(expect):
        session = FormSession(FIRST)
        value = session.edit(lambda form: form.find("b").enter("9"))
        expect(value) == {"b": 9}

    def has_no_form_without_a_message_type(expect):
        session = FormSession("message {")
        expect(session.form) == None
        expect(session.error.startswith("Failed to parse")) == True
        expect(session.edit(lambda form: form.find("a").enter("x"))) == {}

    def rebuilds_from_scratch_on_schema_change(expect):
        session = FormSession(FIRST, initial={"a": "x"})
        session.set_schema(SECOND)
        expect(session.value) == {}
        expect(session.descriptor.name) == "Second"

    def drops_stale_parse_results(expect):
        session = FormSession(FIRST)
        stale = load_schema(FIRST)
        session.begin(SECOND)
        expect(session.offer(stale)) == False
        expect(session.descriptor) == None
        expect(session.offer(load_schema(SECOND))) == True
        expect(session.descriptor.name) == "Second"

    def encodes_the_current_value(expect):
        session = FormSession(FIRST)
        session.form.find("a").enter("hello")
        expect(session.encode()) == b"\x0a\x05hello"


def describe_prefill():
    def decodes_retry_arguments_into_an_empty_tree(expect):
        session = FormSession(FIRST)
        payload = encode({"a": "again", "b": 2}, load_schema(FIRST).primary)
        expect(session.prefill(payload)) == True
        expect(session.value) == {"a": "again", "b": 2}

    def leaves_an_edited_tree_alone(expect):
        session = FormSession(FIRST, initial={"b": 1})
        expect(session.prefill(b"\x0a\x01z")) == False
        expect(session.value) == {"b": 1}

    def ignores_undecodable_payloads(expect):
        session = FormSession(FIRST)
        expect(session.prefill(b"\xff\xff")) == False
        expect(session.value) == {}
