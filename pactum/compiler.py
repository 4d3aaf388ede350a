"""Compile a contract descriptor into reusable request/response checkers."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from .contracts import ContractDescriptor
from .validator.base import CompiledSchema, SchemaValidator

DEFAULT_ERROR_STATUSES = (400, 401, 403, 404, 500)


@dataclass(frozen=True)
class CompiledSchemaSet:
    """Checkers for one route, built once at registration."""

    request_shape: Mapping[str, Any]
    request_schema: CompiledSchema
    response_schemas: Mapping[int, CompiledSchema]
    response_headers_schema: CompiledSchema | None = None


def _lowercase_keys(headers: Any) -> Any:
    if isinstance(headers, Mapping):
        return {str(name).lower(): schema for name, schema in headers.items()}
    return headers


def request_shape(descriptor: ContractDescriptor) -> dict[str, Any]:
    """Return ``{params?, headers?, query?, body?}`` for the declared sections.

    Header names are lowercased to match what transports hand over.
    """

    shape: dict[str, Any] = {}
    if descriptor.params is not None:
        shape["params"] = descriptor.params
    if descriptor.request_headers is not None:
        shape["headers"] = _lowercase_keys(descriptor.request_headers)
    if descriptor.query is not None:
        shape["query"] = descriptor.query
    if descriptor.request_body is not None:
        shape["body"] = descriptor.request_body.schema
    return shape


def response_shapes(
    schema_validator: SchemaValidator, descriptor: ContractDescriptor
) -> dict[int, Any]:
    """Default error responses overlaid with the declared ones."""

    shapes: dict[int, Any] = {
        status: schema_validator.string for status in DEFAULT_ERROR_STATUSES
    }
    shapes.update(
        (status, typed.schema) for status, typed in descriptor.response_bodies.items()
    )
    return shapes


def compile_contract(
    schema_validator: SchemaValidator, descriptor: ContractDescriptor
) -> CompiledSchemaSet:
    shape = request_shape(descriptor)
    request_schema = schema_validator.compile(schema_validator.schemify(shape))
    responses = {
        status: schema_validator.compile(schema_validator.schemify(schema))
        for status, schema in sorted(response_shapes(schema_validator, descriptor).items())
    }
    headers_schema = None
    if descriptor.response_headers is not None:
        headers_schema = schema_validator.compile(
            schema_validator.schemify(_lowercase_keys(descriptor.response_headers))
        )
    return CompiledSchemaSet(
        request_shape=MappingProxyType(shape),
        request_schema=request_schema,
        response_schemas=MappingProxyType(responses),
        response_headers_schema=headers_schema,
    )


__all__ = [
    "CompiledSchemaSet",
    "DEFAULT_ERROR_STATUSES",
    "compile_contract",
    "request_shape",
    "response_shapes",
]
