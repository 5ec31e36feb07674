"""Method schema catalog.

A runner advertises, per method name, the schema text of its argument
message and of its result message:

    {"schemas": {"run": {"argsProto": "...", "resultProto": "..."}}}

The same map is accepted wrapped in a runner record under `methodProtoMap`.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin, LetterCase, config

# Method assumed for results that do not name one
DEFAULT_RESULT_METHOD = "run"


class CatalogError(RuntimeError):
    """Raised when catalog JSON is not a method schema map."""


@dataclass
class MethodSchema(DataClassJsonMixin):
    dataclass_json_config = config(letter_case=LetterCase.CAMEL)["dataclasses_json"]

    args_proto: str = ""
    result_proto: str = ""

    def proto(self, result: bool = False) -> str:
        return self.result_proto if result else self.args_proto


@dataclass
class MethodCatalog(DataClassJsonMixin):
    dataclass_json_config = config(letter_case=LetterCase.CAMEL)["dataclasses_json"]

    schemas: dict[str, MethodSchema] = field(default_factory=dict)

    @property
    def methods(self) -> list[str]:
        return list(self.schemas)

    def resolve_method(self, requested: str | None = None) -> str | None:
        """Return `requested` if the catalog has it, else the only method, else None."""
        if requested and requested in self.schemas:
            return requested
        if len(self.schemas) == 1:
            return next(iter(self.schemas))
        return None

    def schema_for(self, method: str | None) -> MethodSchema | None:
        if method is None:
            return None
        return self.schemas.get(method)

    def result_schema_for(self, method: str | None) -> MethodSchema | None:
        """Schema used to display a result; results without a method use the default."""
        return self.schema_for(method or DEFAULT_RESULT_METHOD)


def parse_catalog(data: Any) -> MethodCatalog:
    if isinstance(data, dict) and "methodProtoMap" in data:
        data = data["methodProtoMap"]
    if not isinstance(data, dict) or not isinstance(data.get("schemas", {}), dict):
        raise CatalogError("catalog must be an object with a 'schemas' map")
    return MethodCatalog.from_dict(data)


def load_catalog(text: str) -> MethodCatalog:
    """Load a catalog from JSON text.

    Raises:
        CatalogError: the text is not valid catalog JSON.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise CatalogError(f"invalid catalog JSON: {e}") from e
    return parse_catalog(data)
