"""Answer and reasoning formats derived from Python types.

`output_schema` turns a msgspec `Struct`, dataclass or `TypedDict` into the
self-contained JSON schema accepted by `RunInput.answer_format` and
`RunInput.reasoning_format`.
"""

from copy import deepcopy
from types import GenericAlias, UnionType
from typing import Any, Callable

from msgspec.json import schema_components

from subconscious.errors import SubconsciousConfigurationError

type SchemaHook = Callable[[type], dict[str, Any] | None]
type OutputType = type | UnionType | GenericAlias

DEFS_PREFIX = "#/$defs/"


def _inline_refs(
    node: Any, defs: dict[str, Any], _active: tuple[str, ...] = ()
) -> None:
    """Replace `$ref` nodes in place with the definitions they point to."""
    if isinstance(node, list):
        for item in node:
            _inline_refs(item, defs, _active)
        return
    if not isinstance(node, dict):
        return

    ref = node.get("$ref")
    if not (isinstance(ref, str) and ref.startswith(DEFS_PREFIX)):
        for value in node.values():
            _inline_refs(value, defs, _active)
        return

    name = ref.removeprefix(DEFS_PREFIX)
    if name in _active:
        raise SubconsciousConfigurationError(f"Cannot inline recursive schema {name!r}")
    siblings = {k: v for k, v in node.items() if k != "$ref"}
    node.clear()
    node.update(deepcopy(defs.get(name, {})), **siblings)
    _inline_refs(node, defs, (*_active, name))


def output_schema(
    type_: OutputType,
    title: str | None = None,
    schema_hook: SchemaHook | None = None,
) -> dict[str, Any]:
    """Build an object schema with all references inlined.

    `schema_hook` supplies schemas for types msgspec cannot describe;
    returning None falls back to the default handling.

    >>> class Analysis(Struct):
    ...     summary: str
    ...     score: float
    >>> output_schema(Analysis)["required"]
    ['summary', 'score']
    """

    def hook(t: type) -> dict[str, Any] | None:
        if schema_hook is not None and (custom := schema_hook(t)) is not None:
            return custom
        return {"type": "object"} if t is object else None

    (schema,), defs = schema_components(
        (type_,), schema_hook=hook, ref_template=DEFS_PREFIX + "{name}"
    )
    _inline_refs(schema, defs)

    if schema.get("type") != "object" or "properties" not in schema:
        raise SubconsciousConfigurationError(
            f"output_schema expects an object type (Struct, dataclass or TypedDict), got {type_!r}"
        )

    result: dict[str, Any] = {
        "type": "object",
        "title": title or schema.get("title") or getattr(type_, "__name__", "Output"),
        "properties": schema["properties"],
        "required": list(schema.get("required", [])),
    }
    if "description" in schema:
        result["description"] = schema["description"]
    return result
