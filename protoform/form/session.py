"""Form session: the current schema, its primary type and the value tree.

Schema text may change at any time. A parse result belongs to the text that
produced it, so `offer` applies a `LoadedSchema` only while that text is
still current; anything older is dropped.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from protoform.codec import DecodeFallback, decode_tree, encode
from protoform.schema import Schema, SchemaParseError, TypeDescriptor, load

from .editor import Form, OnChange, ValueTree, project

logger = logging.getLogger(__name__)

NO_DEFINITION = "No definition loaded."
NO_MESSAGE = "No message type found in schema definition."


@dataclass(frozen=True)
class LoadedSchema:
    """Outcome of parsing one schema text."""

    source: str
    schema: Schema | None = None
    primary: TypeDescriptor | None = None
    error: str | None = None

    @property
    def status(self) -> str:
        if self.error:
            return self.error
        if self.primary is None:
            return NO_DEFINITION
        return self.primary.full_name


def load_schema(text: str) -> LoadedSchema:
    """Parse schema text for display; never raises."""
    if not text.strip():
        return LoadedSchema(text)
    try:
        schema = load(text)
    except SchemaParseError as e:
        return LoadedSchema(text, error=f"Failed to parse schema definition: {e}")
    primary = schema.primary()
    if primary is None:
        return LoadedSchema(text, schema, error=NO_MESSAGE)
    return LoadedSchema(text, schema, primary)


class FormSession:
    """Owns the current value tree and rebuilds it when the schema changes."""

    def __init__(
        self,
        schema_text: str = "",
        initial: Mapping[str, Any] | None = None,
        on_change: OnChange | None = None,
    ) -> None:
        self.on_change = on_change
        self.source = ""
        self.loaded = LoadedSchema("")
        self.value: ValueTree = {}
        self.set_schema(schema_text)
        if initial:
            self.value = dict(initial)

    @property
    def descriptor(self) -> TypeDescriptor | None:
        return self.loaded.primary

    @property
    def error(self) -> str | None:
        return self.loaded.error

    def begin(self, text: str) -> None:
        """Make `text` the current schema; results for older text become stale."""
        self.source = text
        self.loaded = LoadedSchema(text)
        self.value = {}

    def offer(self, loaded: LoadedSchema) -> bool:
        """Apply a parse result if it belongs to the current schema text."""
        if loaded.source != self.source:
            logger.info("Discarding schema result for superseded definition")
            return False
        self.loaded = loaded
        self.value = {}
        if loaded.error:
            logger.warning(loaded.error)
        return True

    def set_schema(self, text: str) -> None:
        self.begin(text)
        self.offer(load_schema(text))

    def _changed(self, value: ValueTree) -> None:
        self.value = value
        if self.on_change is not None:
            self.on_change(value)

    @property
    def form(self) -> Form | None:
        """Projection of the current tree, or None without a message type."""
        if self.descriptor is None:
            return None
        return project(self.descriptor, self.value, self._changed)

    def edit(self, action: Callable[[Form], None]) -> ValueTree:
        """Run `action` against a fresh projection and return the new tree."""
        form = self.form
        if form is not None:
            action(form)
        return self.value

    def encode(self) -> bytes:
        """Encode the current tree.

        Raises:
            ValueValidationError: the tree does not fit the primary type.
        """
        return encode(self.value, self.descriptor)

    def prefill(self, payload: bytes) -> bool:
        """Decode retry arguments into an empty tree.

        Returns False, leaving the tree alone, when the tree already holds
        values or the payload does not decode against the primary type.
        """
        if self.value or self.descriptor is None or not payload:
            return False
        try:
            tree = decode_tree(payload, self.descriptor)
        except DecodeFallback as e:
            logger.warning(f"Failed to decode using {self.descriptor.name}: {e}")
            return False
        self._changed(tree)
        return True
