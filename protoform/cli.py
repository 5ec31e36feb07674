"""Command-line interface for protoform."""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from protoform.catalog import CatalogError, load_catalog
from protoform.codec import ValueValidationError, decode, encode
from protoform.form import (
    ChoiceWidget,
    EditError,
    Form,
    FormSession,
    LoadedSchema,
    MessageEditor,
    RepeatedList,
    Widget,
    load_schema,
)
from protoform.form.session import NO_MESSAGE
from protoform.logger import configure_logging
from protoform.schema import Schema, TypeDescriptor, find_primary

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


def _fail(message: str) -> NoReturn:
    click.echo(message, err=True)
    sys.exit(1)


def schema_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options selecting the schema: a file, or a method from a catalog."""
    func = click.option(
        "--result", "use_result", is_flag=True, help="Use the method's result schema instead of its arguments"
    )(func)
    func = click.option("--method", "-m", default=None, help="Method name in the catalog")(func)
    func = click.option("--catalog", "catalog_file", type=_FILE, help="Method schema catalog (JSON)")(func)
    func = click.option("--schema", "-s", "schema_file", type=_FILE, help="Schema definition file")(func)
    return func


def _schema_text(
    schema_file: Path | None, catalog_file: Path | None, method: str | None, use_result: bool
) -> str:
    if schema_file and catalog_file:
        _fail("Use either --schema or --catalog, not both")
    if schema_file:
        return schema_file.read_text(encoding="utf-8")
    if not catalog_file:
        _fail("No schema given; use --schema or --catalog")

    try:
        catalog = load_catalog(catalog_file.read_text(encoding="utf-8"))
    except CatalogError as e:
        _fail(str(e))
    if use_result:
        schema = catalog.result_schema_for(method)
    else:
        schema = catalog.schema_for(catalog.resolve_method(method))
    if schema is None:
        available = ", ".join(catalog.methods) or "none"
        _fail(f"Unknown method {method or '(unspecified)'}; available: {available}")
    return schema.proto(result=use_result)


def _load(text: str) -> LoadedSchema:
    loaded = load_schema(text)
    if loaded.schema is None and loaded.error:
        _fail(loaded.error)
    return loaded


def _primary(text: str) -> tuple[Schema, TypeDescriptor]:
    loaded = _load(text)
    if loaded.schema is None or loaded.primary is None:
        _fail(loaded.status)
    return loaded.schema, loaded.primary


def _current_form(session: FormSession) -> Form:
    current = session.form
    if current is None:
        _fail(session.loaded.status)
    return current


def _read_value(value_file: Path | None) -> dict[str, Any]:
    if value_file is None:
        return {}
    try:
        value = json.loads(value_file.read_text(encoding="utf-8"))
    except ValueError as e:
        _fail(f"Invalid value JSON: {e}")
    if not isinstance(value, dict):
        _fail("Value JSON must be an object")
    return value


def _split_assignment(option: str, text: str) -> tuple[str, str]:
    path, sep, value = text.partition("=")
    if not sep or not path:
        _fail(f"{option} expects PATH=TEXT, got {text!r}")
    return path, value


@click.group()
@click.option(
    "--log-level",
    envvar="PROTOFORM_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging verbosity",
)
def cli(log_level: str) -> None:
    """Schema-driven protobuf value editor and codec."""
    configure_logging(log_level)


@cli.command()
@schema_options
@click.option("--json", "output_json", is_flag=True, help="Output the declaration as JSON")
def inspect(
    schema_file: Path | None, catalog_file: Path | None, method: str | None, use_result: bool, output_json: bool
) -> None:
    """Show the fields of the schema's primary message type."""
    schema, td = _primary(_schema_text(schema_file, catalog_file, method, use_result))

    if output_json:
        declaration = find_primary(schema.root)
        if declaration is None:
            _fail(NO_MESSAGE)
        print(json.dumps(declaration.to_dict(), indent=2))
        return

    console = Console()
    console.print(f"[bold cyan]{escape(td.full_name)}[/bold cyan] ({td.syntax})")

    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("Field", style="white")
    table.add_column("Number", style="yellow", justify="right")
    table.add_column("Kind", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Label", style="dim")
    table.add_column("Oneof", style="magenta")

    for f in td.fields:
        label = "repeated" if f.repeated else "required" if f.required else "optional" if f.optional else ""
        table.add_row(f.name, str(f.number), f.kind.value, escape(f.type_name), label, f.oneof or "")

    console.print(table)


def _add_widget(tree: Tree, widget: Widget | ChoiceWidget, label: str | None = None) -> None:
    label = escape(label or widget.label)
    if isinstance(widget, ChoiceWidget):
        branch = tree.add(f"[magenta]{label}[/magenta] (one of {escape(', '.join(widget.options))})")
        active = widget.active
        if active is None:
            branch.add("[dim](none selected)[/dim]")
        else:
            _add_widget(branch, active)
    elif isinstance(widget, RepeatedList):
        branch = tree.add(f"[cyan]{label}[/cyan] [dim]{len(widget.values)} item(s)[/dim]")
        for i, item in enumerate(widget.items):
            _add_widget(branch, item, f"[{i}]")
    elif isinstance(widget, MessageEditor):
        if not widget.is_set:
            tree.add(f"{label}: [dim](unset)[/dim]")
        else:
            _add_form(tree.add(f"[cyan]{label}[/cyan]"), widget.form)
    elif widget.is_set:
        tree.add(f"{label}: {escape(widget.text)}")
    else:
        tree.add(f"{label}: [dim](unset)[/dim]")


def _add_form(tree: Tree, form: Form) -> None:
    for widget in form.widgets:
        _add_widget(tree, widget)


@cli.command()
@schema_options
@click.option("--value", "-v", "value_file", type=_FILE, help="Initial value (JSON object)")
@click.option("--select", "selections", multiple=True, metavar="GROUP=MEMBER", help="Select a oneof member")
@click.option("--set", "assignments", multiple=True, metavar="PATH=TEXT", help="Enter text into a field")
def form(
    schema_file: Path | None,
    catalog_file: Path | None,
    method: str | None,
    use_result: bool,
    value_file: Path | None,
    selections: tuple[str, ...],
    assignments: tuple[str, ...],
) -> None:
    """Apply edits to a value and show the resulting form."""
    session = FormSession(_schema_text(schema_file, catalog_file, method, use_result))
    _current_form(session)
    session.value = _read_value(value_file)

    try:
        for selection in selections:
            group, member = _split_assignment("--select", selection)
            choice = _current_form(session).find(group)
            if not isinstance(choice, ChoiceWidget):
                _fail(f"{group} is not a oneof")
            choice.select(member)
        for assignment in assignments:
            path, value = _split_assignment("--set", assignment)
            _current_form(session).find(path).enter(value)
    except EditError as e:
        _fail(str(e))

    current = _current_form(session)
    tree = Tree(f"[bold cyan]{escape(current.descriptor.full_name)}[/bold cyan]")
    _add_form(tree, current)
    Console().print(tree)
    print(json.dumps(session.value, indent=2))


@cli.command(name="encode")
@schema_options
@click.option("--value", "-v", "value_file", type=_FILE, required=True, help="Value to encode (JSON object)")
@click.option("--output", "-o", "output_file", default=None, help="Write bytes here instead of printing hex")
def encode_value(
    schema_file: Path | None,
    catalog_file: Path | None,
    method: str | None,
    use_result: bool,
    value_file: Path,
    output_file: str | None,
) -> None:
    """Encode a JSON value to wire bytes."""
    _, td = _primary(_schema_text(schema_file, catalog_file, method, use_result))
    try:
        payload = encode(_read_value(value_file), td)
    except ValueValidationError as e:
        _fail(f"Invalid value at {e.path}: {e.reason}")

    if output_file:
        with open(output_file, "wb") as f:
            f.write(payload)
    else:
        print(payload.hex())


@cli.command(name="decode")
@schema_options
@click.option("--input", "-i", "input_file", type=_FILE, default=None, help="Payload file")
@click.option("--hex", "hex_payload", default=None, help="Payload as hex digits")
@click.option("--allow-unknown", is_flag=True, help="Skip field numbers the schema does not declare")
def decode_payload(
    schema_file: Path | None,
    catalog_file: Path | None,
    method: str | None,
    use_result: bool,
    input_file: Path | None,
    hex_payload: str | None,
    allow_unknown: bool,
) -> None:
    """Decode a payload and print it for display."""
    if input_file is not None and hex_payload is None:
        payload = input_file.read_bytes()
    elif hex_payload is not None and input_file is None:
        try:
            payload = bytes.fromhex(hex_payload)
        except ValueError as e:
            _fail(f"Invalid hex payload: {e}")
    else:
        _fail("Give exactly one of --input or --hex")

    loaded = _load(_schema_text(schema_file, catalog_file, method, use_result))
    print(decode(payload, loaded.primary, allow_unknown=allow_unknown).render())


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
