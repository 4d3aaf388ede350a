"""Pluggable schema validation backends."""

from .base import (
    CompiledSchema,
    ParseError,
    ParseResult,
    SchemaValidator,
    pretty_print_parse_errors,
)
from .coercion import CoercionError
from .jsonschema_validator import JsonSchemaValidator
from .pydantic_validator import PydanticSchemaValidator

__all__ = [
    "CoercionError",
    "CompiledSchema",
    "JsonSchemaValidator",
    "ParseError",
    "ParseResult",
    "PydanticSchemaValidator",
    "SchemaValidator",
    "pretty_print_parse_errors",
]
