"""Schema validator backed by ``jsonschema`` (Draft 2020-12).

Native schemas are :class:`JsonSchema` mappings. Coercing types carry an
``x-pactum-coerce`` keyword that the extended validator checks, and a
decode pass applies the same conversions once validation succeeds.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterator, Sequence

from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import SchemaError
from jsonschema.validators import extend

from . import coercion
from .base import ParseError, ParseResult, enum_values

logger = logging.getLogger("pactum.validator")

COERCE_KEY = "x-pactum-coerce"
OPENAPI_KEY = "x-pactum-openapi"
OPTIONAL_KEY = "x-pactum-optional"
INTERNAL_KEY_PREFIX = "x-pactum-"

_COERCERS: dict[str, Callable[[Any], Any]] = {
    "number": coercion.coerce_number,
    "bigint": coercion.coerce_bigint,
    "boolean": coercion.coerce_boolean,
    "date": coercion.coerce_date,
    "file": coercion.coerce_binary,
    "promise": coercion.check_awaitable,
    "function": coercion.check_callable,
}


class JsonSchema(dict):
    """A JSON schema produced by this backend, as opposed to shorthand."""


def _coerce_keyword(validator: Any, kind: str, instance: Any, schema: Any) -> Iterator[ValidationError]:
    func = _COERCERS.get(kind)
    if func is None:
        yield ValidationError(f"Unknown coercion {kind!r}")
        return
    try:
        func(instance)
    except (ValueError, OverflowError) as exc:
        yield ValidationError(str(exc))


ContractValidator = extend(Draft202012Validator, {COERCE_KEY: _coerce_keyword})


def _flatten(error: ValidationError, prefix: tuple[str, ...] = ()) -> Iterator[ParseError]:
    path = prefix + tuple(str(part) for part in error.relative_path)
    if error.validator == "anyOf" and error.context:
        optional = isinstance(error.schema, Mapping) and error.schema.get(OPTIONAL_KEY)
        for sub in error.context:
            variant = sub.relative_schema_path[0] if sub.relative_schema_path else 0
            if optional:
                if variant == 0:
                    continue
                yield from _flatten(sub, path)
            else:
                yield from _flatten(sub, path + (f"Union Schema Variant {variant}",))
        return
    yield ParseError(path=path, message=error.message)


def _project(node: Any) -> Any:
    if not isinstance(node, Mapping):
        return copy.deepcopy(node)
    if OPENAPI_KEY in node:
        return copy.deepcopy(dict(node[OPENAPI_KEY]))
    projected: dict[str, Any] = {}
    for key, value in node.items():
        if key.startswith(INTERNAL_KEY_PREFIX):
            continue
        if key == "properties":
            projected[key] = {name: _project(prop) for name, prop in value.items()}
        elif key in ("items", "additionalProperties", "not") and isinstance(value, Mapping):
            projected[key] = _project(value)
        elif key in ("anyOf", "oneOf", "allOf"):
            projected[key] = [_project(item) for item in value]
        else:
            projected[key] = copy.deepcopy(value)
    return projected


class JsonSchemaCompiledSchema:
    """A frozen schema plus its validator and one validator per union variant."""

    def __init__(self, schema: JsonSchema) -> None:
        ContractValidator.check_schema(schema)
        self.schema = schema
        self._validator = ContractValidator(schema)
        self._variants: dict[int, Any] = {}
        self._index_variants(schema)

    def _index_variants(self, node: Any) -> None:
        if isinstance(node, Mapping):
            for variant in node.get("anyOf", ()):
                self._variants[id(variant)] = ContractValidator(variant)
            for value in node.values():
                self._index_variants(value)
        elif isinstance(node, list):
            for item in node:
                self._index_variants(item)

    def validate(self, value: Any) -> bool:
        return self._validator.is_valid(value)

    def parse(self, value: Any) -> ParseResult:
        errors = [
            parse_error
            for error in self._validator.iter_errors(value)
            for parse_error in _flatten(error)
        ]
        if errors:
            return ParseResult.failure(errors)
        return ParseResult.success(self._decode(self.schema, value))

    def _decode(self, schema: Mapping[str, Any], value: Any) -> Any:
        kind = schema.get(COERCE_KEY)
        if kind is not None:
            return _COERCERS[kind](value)
        if "anyOf" in schema:
            for variant in schema["anyOf"]:
                if self._variants[id(variant)].is_valid(value):
                    return self._decode(variant, value)
            return value
        if isinstance(value, dict):
            properties = schema.get("properties", {})
            extra = schema.get("additionalProperties")
            decoded = {}
            for key, item in value.items():
                if key in properties:
                    decoded[key] = self._decode(properties[key], item)
                elif isinstance(extra, Mapping):
                    decoded[key] = self._decode(extra, item)
                else:
                    decoded[key] = item
            return decoded
        if isinstance(value, list) and isinstance(schema.get("items"), Mapping):
            return [self._decode(schema["items"], item) for item in value]
        return value


def _coercing(kind: str, openapi: dict[str, Any]) -> JsonSchema:
    return JsonSchema({COERCE_KEY: kind, OPENAPI_KEY: openapi})


class JsonSchemaValidator:
    """:class:`~pactum.validator.base.SchemaValidator` built on jsonschema."""

    string = JsonSchema({"type": "string"})
    uuid = JsonSchema(
        {"type": "string", "pattern": coercion.UUID_PATTERN, OPENAPI_KEY: {"type": "string", "format": "uuid"}}
    )
    email = JsonSchema(
        {"type": "string", "pattern": coercion.EMAIL_PATTERN, OPENAPI_KEY: {"type": "string", "format": "email"}}
    )
    uri = JsonSchema(
        {"type": "string", "pattern": coercion.URI_PATTERN, OPENAPI_KEY: {"type": "string", "format": "uri"}}
    )
    number = _coercing("number", {"type": "number"})
    bigint = _coercing("bigint", {"type": "integer", "format": "int64"})
    boolean = _coercing("boolean", {"type": "boolean"})
    date = _coercing("date", {"type": "string", "format": "date-time"})
    file = _coercing("file", {"type": "string", "format": "binary"})
    nullish = JsonSchema({"type": "null"})
    any = JsonSchema()
    unknown = JsonSchema()
    never = JsonSchema({"not": {}})

    def is_schema(self, value: Any) -> bool:
        return isinstance(value, JsonSchema)

    def schemify(self, schema: Any) -> JsonSchema:
        if self.is_schema(schema):
            return schema
        if isinstance(schema, Mapping):
            properties = {str(key): self.schemify(value) for key, value in schema.items()}
            native = JsonSchema({"type": "object", "properties": properties})
            required = [key for key, value in properties.items() if not value.get(OPTIONAL_KEY)]
            if required:
                native["required"] = required
            return native
        if isinstance(schema, (str, int, float, bool)) or schema is None:
            return self.literal(schema)
        raise TypeError(f"Cannot convert {schema!r} into a schema")

    def optional(self, schema: Any) -> JsonSchema:
        return JsonSchema({"anyOf": [{"type": "null"}, self.schemify(schema)], OPTIONAL_KEY: True})

    def array(self, schema: Any) -> JsonSchema:
        return JsonSchema({"type": "array", "items": self.schemify(schema)})

    def union(self, schemas: Sequence[Any]) -> JsonSchema:
        members = [self.schemify(schema) for schema in schemas]
        if not members:
            return self.never
        if len(members) == 1:
            return members[0]
        return JsonSchema({"anyOf": members})

    def literal(self, value: Any) -> JsonSchema:
        return JsonSchema({"const": value})

    def enum_(self, values: Any) -> JsonSchema:
        return JsonSchema({"enum": enum_values(values)})

    def record(self, schema: Any) -> JsonSchema:
        return JsonSchema({"type": "object", "additionalProperties": self.schemify(schema)})

    def promise(self, schema: Any) -> JsonSchema:
        return _coercing("promise", {})

    def function_(self, args: Sequence[Any], returns: Any) -> JsonSchema:
        return _coercing("function", {})

    def compile(self, schema: Any) -> JsonSchemaCompiledSchema:
        return JsonSchemaCompiledSchema(copy.deepcopy(self.schemify(schema)))

    def _compiled(self, schema: Any) -> JsonSchemaCompiledSchema:
        if isinstance(schema, JsonSchemaCompiledSchema):
            return schema
        return self.compile(schema)

    def validate(self, schema: Any, value: Any) -> bool:
        return self.parse(schema, value).ok

    def parse(self, schema: Any, value: Any) -> ParseResult:
        try:
            compiled = self._compiled(schema)
        except (TypeError, SchemaError) as exc:
            logger.debug("Schema compilation failed: %s", exc)
            return ParseResult.failure([ParseError(path=(), message=str(exc))])
        return compiled.parse(value)

    def openapi(self, schema: Any) -> dict[str, Any]:
        return _project(self._compiled(schema).schema)


schema_validator = JsonSchemaValidator()

string = schema_validator.string
uuid = schema_validator.uuid
email = schema_validator.email
uri = schema_validator.uri
number = schema_validator.number
bigint = schema_validator.bigint
boolean = schema_validator.boolean
date = schema_validator.date
file = schema_validator.file
nullish = schema_validator.nullish
unknown = schema_validator.unknown
never = schema_validator.never
schemify = schema_validator.schemify
optional = schema_validator.optional
array = schema_validator.array
union = schema_validator.union
literal = schema_validator.literal
enum_ = schema_validator.enum_
record = schema_validator.record
promise = schema_validator.promise
function_ = schema_validator.function_
compile = schema_validator.compile
validate = schema_validator.validate
parse = schema_validator.parse
openapi = schema_validator.openapi

__all__ = [
    "ContractValidator",
    "JsonSchema",
    "JsonSchemaCompiledSchema",
    "JsonSchemaValidator",
    "array",
    "bigint",
    "boolean",
    "compile",
    "date",
    "email",
    "enum_",
    "file",
    "function_",
    "literal",
    "never",
    "nullish",
    "number",
    "openapi",
    "optional",
    "parse",
    "promise",
    "record",
    "schema_validator",
    "schemify",
    "string",
    "unknown",
    "uri",
    "uuid",
    "validate",
]
