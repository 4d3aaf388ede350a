"""Generate ``TypedDict`` bindings from a contract's OpenAPI projection.

The generated module is meant for handler authors and SDK users who want
static types for a route's inputs and outputs::

    source = generate_bindings(schema_validator, descriptor)
    Path("billing_types.py").write_text(source)
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from .compiler import request_shape, response_shapes
from .contracts import ContractDescriptor, as_descriptor
from .validator.base import SchemaValidator

PRIMITIVE_TYPES = {
    "string": "str",
    "number": "float",
    "integer": "int",
    "boolean": "bool",
    "null": "None",
}

SECTION_NAMES = {
    "params": "Params",
    "query": "Query",
    "headers": "Headers",
    "body": "Body",
}


def to_pascal_case(text: str) -> str:
    """``list-invoices`` -> ``ListInvoices``."""

    parts = [part for part in re.split(r"[^0-9a-zA-Z]+", text) if part]
    name = "".join(part[:1].upper() + part[1:] for part in parts)
    if not name or name[0].isdigit():
        name = f"T{name}"
    return name


class _Emitter:
    def __init__(self) -> None:
        self.classes: list[str] = []
        self.names: list[str] = []

    def annotation(self, schema: Mapping[str, Any], hint: str) -> str:
        if "const" in schema:
            return f"Literal[{schema['const']!r}]"
        if "enum" in schema:
            return f"Literal[{', '.join(repr(value) for value in schema['enum'])}]"
        for key in ("anyOf", "oneOf"):
            if key in schema:
                members: list[str] = []
                for index, variant in enumerate(schema[key]):
                    member = self.annotation(variant, f"{hint}Variant{index}")
                    if member not in members:
                        members.append(member)
                return " | ".join(members) if members else "Any"
        if schema.get("format") == "binary":
            return "bytes"
        kind = schema.get("type")
        if isinstance(kind, list):
            return " | ".join(PRIMITIVE_TYPES.get(item, "Any") for item in kind)
        if kind == "array":
            return f"list[{self.annotation(schema.get('items', {}), f'{hint}Item')}]"
        if kind == "object" or "properties" in schema:
            if schema.get("properties"):
                return self.typed_dict(hint, schema)
            extra = schema.get("additionalProperties")
            value = self.annotation(extra, f"{hint}Value") if isinstance(extra, Mapping) else "Any"
            return f"dict[str, {value}]"
        return PRIMITIVE_TYPES.get(kind, "Any")

    def typed_dict(self, name: str, schema: Mapping[str, Any]) -> str:
        required = set(schema.get("required", ()))
        fields: list[tuple[str, str]] = []
        for key, prop in schema.get("properties", {}).items():
            annotation = self.annotation(prop, name + to_pascal_case(key))
            if key not in required:
                annotation = f"NotRequired[{annotation}]"
            fields.append((key, annotation))
        if all(key.isidentifier() for key, _ in fields):
            body = [f"    {key}: {annotation}" for key, annotation in fields] or ["    pass"]
            source = f"class {name}(TypedDict):\n" + "\n".join(body)
        else:
            # Header names are not identifiers; use the functional form.
            entries = ", ".join(f"{key!r}: {annotation}" for key, annotation in fields)
            source = f"{name} = TypedDict({name!r}, {{{entries}}})"
        self.classes.append(source)
        self.names.append(name)
        return name

    def alias(self, name: str, schema: Mapping[str, Any]) -> None:
        annotation = self.annotation(schema, name)
        if annotation != name:
            self.classes.append(f"{name} = {annotation}")
            self.names.append(name)


def generate_bindings(
    schema_validator: SchemaValidator,
    descriptor: ContractDescriptor | Mapping[str, Any],
) -> str:
    """Return Python source declaring types for *descriptor*."""

    descriptor = as_descriptor(descriptor)
    prefix = to_pascal_case(descriptor.name)
    emitter = _Emitter()

    for section, shape in request_shape(descriptor).items():
        projected = schema_validator.openapi(schema_validator.schemify(shape))
        emitter.alias(prefix + SECTION_NAMES[section], projected)

    for status, schema in sorted(response_shapes(schema_validator, descriptor).items()):
        projected = schema_validator.openapi(schema)
        emitter.alias(f"{prefix}Response{status}", projected)

    lines = [
        f'"""Types for the {descriptor.name!r} contract."""',
        "",
        "from typing import Any, Literal",
        "",
        "from typing_extensions import NotRequired, TypedDict",
        "",
    ]
    for source in emitter.classes:
        lines.extend(["", source, ""])
    lines.append("")
    lines.append("__all__ = [")
    lines.extend(f"    {name!r}," for name in sorted(emitter.names))
    lines.append("]")
    return "\n".join(lines) + "\n"


__all__ = ["generate_bindings", "to_pascal_case"]
