"""Schema validator backed by pydantic ``TypeAdapter``s.

Native schemas are ordinary type annotations: ``str``, ``list[...]``,
``Literal[...]``, ``Annotated[...]`` and dynamically created models for
object shapes. Object keys are carried as field aliases so header names
such as ``x-correlation-id`` survive untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any, Callable, Optional, Sequence, Union, get_origin

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainValidator,
    Strict,
    TypeAdapter,
    ValidationError,
    WithJsonSchema,
    WrapValidator,
    create_model,
)

from . import coercion
from .base import ParseError, ParseResult, enum_values

logger = logging.getLogger("pactum.validator")

INTERNAL_KEY_PREFIX = "x-pactum-"


class _OptionalMarker:
    """Metadata tag identifying keys that may be absent from an object."""

    def __repr__(self) -> str:
        return "OPTIONAL"


OPTIONAL = _OptionalMarker()


def _coercing(
    func: Callable[[Any], Any], json_schema: dict[str, Any], error_type: str
) -> Any:
    return Annotated[
        Any,
        PlainValidator(func),
        WithJsonSchema({**json_schema, f"{INTERNAL_KEY_PREFIX}error-type": error_type}),
    ]


def _skip_none(value: Any, handler: Callable[[Any], Any]) -> Any:
    if value is None:
        return None
    return handler(value)


def _is_optional(annotation: Any) -> bool:
    return get_origin(annotation) is Annotated and any(
        meta is OPTIONAL for meta in getattr(annotation, "__metadata__", ())
    )


@lru_cache(maxsize=512)
def _cached_type_adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


def _get_type_adapter(schema: Any) -> TypeAdapter:
    """Return a cached ``TypeAdapter`` for *schema* when it is hashable."""

    try:
        return _cached_type_adapter(schema)
    except TypeError:
        return TypeAdapter(schema)


def _inline_refs(node: Any, defs: Mapping[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            target = defs[ref.rsplit("/", 1)[-1]]
            merged = {**_inline_refs(target, defs)}
            merged.update(
                {k: _inline_refs(v, defs) for k, v in node.items() if k not in ("$ref", "$defs")}
            )
            return merged
        return {k: _inline_refs(v, defs) for k, v in node.items() if k != "$defs"}
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


def strip_internal(node: Any) -> Any:
    """Drop titles and ``x-pactum-*`` annotations from a JSON schema tree."""

    if isinstance(node, dict):
        cleaned: dict[str, Any] = {}
        for key, value in node.items():
            if key.startswith(INTERNAL_KEY_PREFIX) or key == "title":
                continue
            if key == "properties" and isinstance(value, dict):
                cleaned[key] = {name: strip_internal(prop) for name, prop in value.items()}
            else:
                cleaned[key] = strip_internal(value)
        return cleaned
    if isinstance(node, list):
        return [strip_internal(item) for item in node]
    return node


@dataclass(frozen=True)
class PydanticCompiledSchema:
    """A schema bound to its ``TypeAdapter``."""

    schema: Any
    adapter: TypeAdapter

    def validate(self, value: Any) -> bool:
        return self.parse(value).ok

    def parse(self, value: Any) -> ParseResult:
        try:
            validated = self.adapter.validate_python(value)
        except ValidationError as exc:
            return ParseResult.failure(
                ParseError(
                    path=tuple(str(part) for part in error["loc"]),
                    message=error["msg"],
                )
                for error in exc.errors(include_url=False)
            )
        return ParseResult.success(
            self.adapter.dump_python(
                validated, by_alias=True, exclude_unset=True, warnings=False
            )
        )


class PydanticSchemaValidator:
    """:class:`~pactum.validator.base.SchemaValidator` built on pydantic v2."""

    string: Any = Annotated[str, Strict()]
    uuid: Any = Annotated[
        str,
        Strict(),
        Field(pattern=coercion.UUID_PATTERN),
        WithJsonSchema({"type": "string", "format": "uuid"}),
    ]
    email: Any = Annotated[
        str,
        Strict(),
        Field(pattern=coercion.EMAIL_PATTERN),
        WithJsonSchema({"type": "string", "format": "email"}),
    ]
    uri: Any = Annotated[
        str,
        Strict(),
        Field(pattern=coercion.URI_PATTERN),
        WithJsonSchema({"type": "string", "format": "uri"}),
    ]
    number: Any = _coercing(coercion.coerce_number, {"type": "number"}, "number-like")
    bigint: Any = _coercing(
        coercion.coerce_bigint, {"type": "integer", "format": "int64"}, "bigint-like"
    )
    boolean: Any = _coercing(coercion.coerce_boolean, {"type": "boolean"}, "boolean-like")
    date: Any = _coercing(
        coercion.coerce_date, {"type": "string", "format": "date-time"}, "date-like"
    )
    file: Any = _coercing(
        coercion.coerce_binary, {"type": "string", "format": "binary"}, "binary"
    )
    nullish: Any = type(None)
    any: Any = Any
    unknown: Any = Any
    never: Any = _coercing(coercion.reject, {"not": {}}, "never")

    def is_schema(self, value: Any) -> bool:
        if value is None or value is Any:
            return True
        if isinstance(value, type):
            return True
        return get_origin(value) is not None

    def schemify(self, schema: Any) -> Any:
        if self.is_schema(schema):
            return schema
        if isinstance(schema, Mapping):
            return self._object(schema)
        if isinstance(schema, (str, int, float, bool)):
            return self.literal(schema)
        raise TypeError(f"Cannot convert {schema!r} into a schema")

    def _object(self, shape: Mapping[str, Any]) -> type[BaseModel]:
        fields: dict[str, Any] = {}
        for index, (key, value) in enumerate(shape.items()):
            annotation = self.schemify(value)
            default = None if _is_optional(annotation) else ...
            fields[f"field_{index}"] = (annotation, Field(default, alias=str(key)))
        return create_model(
            "ContractObject",
            __config__=ConfigDict(extra="allow", arbitrary_types_allowed=True),
            **fields,
        )

    def optional(self, schema: Any) -> Any:
        return Annotated[Optional[self.schemify(schema)], WrapValidator(_skip_none), OPTIONAL]

    def array(self, schema: Any) -> Any:
        return Annotated[list[self.schemify(schema)], Strict()]  # type: ignore[misc]

    def union(self, schemas: Sequence[Any]) -> Any:
        members = tuple(self.schemify(schema) for schema in schemas)
        if not members:
            return self.never
        if len(members) == 1:
            return members[0]
        return Union[members]  # type: ignore[valid-type]

    def literal(self, value: Any) -> Any:
        # same equality as JSON Schema const: booleans never equal numbers
        def _match(candidate: Any) -> Any:
            if isinstance(candidate, bool) is not isinstance(value, bool) or candidate != value:
                raise coercion.CoercionError(f"Expected {value!r}")
            return candidate

        return _coercing(_match, {"const": value}, "literal")

    def enum_(self, values: Any) -> Any:
        return self.union([self.literal(value) for value in enum_values(values)])

    def record(self, schema: Any) -> Any:
        return Annotated[dict[str, self.schemify(schema)], Strict()]  # type: ignore[misc]

    def promise(self, schema: Any) -> Any:
        return _coercing(coercion.check_awaitable, {}, "promise")

    def function_(self, args: Sequence[Any], returns: Any) -> Any:
        return _coercing(coercion.check_callable, {}, "function")

    def compile(self, schema: Any) -> PydanticCompiledSchema:
        native = self.schemify(schema)
        return PydanticCompiledSchema(schema=native, adapter=_get_type_adapter(native))

    def _compiled(self, schema: Any) -> PydanticCompiledSchema:
        if isinstance(schema, PydanticCompiledSchema):
            return schema
        return self.compile(schema)

    def validate(self, schema: Any, value: Any) -> bool:
        return self.parse(schema, value).ok

    def parse(self, schema: Any, value: Any) -> ParseResult:
        try:
            compiled = self._compiled(schema)
        except (TypeError, ValueError) as exc:
            logger.debug("Schema compilation failed: %s", exc)
            return ParseResult.failure([ParseError(path=(), message=str(exc))])
        return compiled.parse(value)

    def openapi(self, schema: Any) -> dict[str, Any]:
        compiled = self._compiled(schema)
        document = compiled.adapter.json_schema(by_alias=True, mode="validation")
        inlined = _inline_refs(document, document.get("$defs", {}))
        return strip_internal(inlined)


schema_validator = PydanticSchemaValidator()

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
    "OPTIONAL",
    "PydanticCompiledSchema",
    "PydanticSchemaValidator",
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
    "strip_internal",
    "unknown",
    "uri",
    "uuid",
    "validate",
]
