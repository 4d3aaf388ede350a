"""Project registered routes into an OpenAPI 3.1 document."""

from __future__ import annotations

import hashlib
import json
from http import HTTPStatus
from typing import Any, Iterable, Mapping

from infrastructure.configuration import Settings

from .compiler import DEFAULT_ERROR_STATUSES
from .contracts import ContractDescriptor, TypedBody, TypedResponse
from .registry import Route
from .utils import join_paths, path_parameters, to_camel_case, to_openapi_path
from .validator.base import SchemaValidator

OPENAPI_VERSION = "3.1.0"

BEARER_SCHEME = {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}


def tag_name(base_path: str) -> str:
    """``/billing`` -> ``Billing``."""

    name = base_path.strip("/").replace("/", " ") or "Root"
    return name[0].upper() + name[1:]


def _status_description(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"Status {status}"


def _content(
    schema_validator: SchemaValidator, typed: TypedBody | TypedResponse
) -> dict[str, Any]:
    return {typed.media_type: {"schema": schema_validator.openapi(typed.schema)}}


def _object_parameters(
    schema_validator: SchemaValidator,
    shape: Any,
    location: str,
    always_required: bool = False,
) -> list[dict[str, Any]]:
    projected = schema_validator.openapi(schema_validator.schemify(shape))
    required = set(projected.get("required", ()))
    parameters = []
    for name, schema in projected.get("properties", {}).items():
        parameters.append(
            {
                "name": name,
                "in": location,
                "required": always_required or name in required,
                "schema": schema,
            }
        )
    return parameters


def _parameters(
    schema_validator: SchemaValidator, descriptor: ContractDescriptor, path: str
) -> list[dict[str, Any]]:
    parameters: list[dict[str, Any]] = []
    if descriptor.params is not None:
        parameters.extend(
            _object_parameters(schema_validator, descriptor.params, "path", always_required=True)
        )
    declared = {parameter["name"] for parameter in parameters}
    for name in path_parameters(path):
        if name not in declared:
            parameters.append(
                {"name": name, "in": "path", "required": True, "schema": {"type": "string"}}
            )
    if descriptor.query is not None:
        parameters.extend(_object_parameters(schema_validator, descriptor.query, "query"))
    if descriptor.request_headers is not None:
        headers = descriptor.request_headers
        if isinstance(headers, Mapping):
            headers = {str(key).lower(): value for key, value in headers.items()}
        parameters.extend(_object_parameters(schema_validator, headers, "header"))
    return parameters


def operation_object(
    schema_validator: SchemaValidator, route: Route, tag: str
) -> dict[str, Any]:
    descriptor = route.contract_details
    full_path = join_paths(route.base_path, route.path)
    responses: dict[str, Any] = {}
    declared: dict[int, TypedResponse] = {
        status: TypedResponse("text", schema_validator.string)
        for status in DEFAULT_ERROR_STATUSES
    }
    declared.update(descriptor.response_bodies)
    for status, typed in sorted(declared.items()):
        responses[str(status)] = {
            "description": _status_description(status),
            "content": _content(schema_validator, typed),
        }
    if descriptor.response_headers is not None:
        header_objects = {
            name: {"schema": schema}
            for name, schema in schema_validator.openapi(
                schema_validator.schemify(descriptor.response_headers)
            )
            .get("properties", {})
            .items()
        }
        for status, response in responses.items():
            if not status.startswith(("4", "5")):
                response["headers"] = header_objects

    operation: dict[str, Any] = {
        "tags": [tag],
        "summary": f"{descriptor.name}: {descriptor.summary}",
        "operationId": to_camel_case(descriptor.name),
        "parameters": _parameters(schema_validator, descriptor, full_path),
        "responses": responses,
    }
    if descriptor.request_body is not None:
        operation["requestBody"] = {
            "required": True,
            "content": _content(schema_validator, descriptor.request_body),
        }
    auth = descriptor.auth
    if auth is not None and auth.method == "jwt":
        operation["security"] = [{"bearer": sorted(auth.allowed_slugs or ())}]
    return operation


def generate_openapi_document(
    routers: Iterable[Any], settings: Settings | None = None
) -> dict[str, Any]:
    """Walk every router's registry and build the document."""

    settings = settings or Settings()
    tags: list[dict[str, str]] = []
    paths: dict[str, dict[str, Any]] = {}
    for router in routers:
        tag = tag_name(router.base_path)
        if all(existing["name"] != tag for existing in tags):
            tags.append({"name": tag, "description": f"{tag} Operations"})
        for route in router.routes:
            full_path = to_openapi_path(join_paths(route.base_path, route.path))
            paths.setdefault(full_path, {})[route.method.lower()] = operation_object(
                router.schema_validator, route, tag
            )
    return {
        "openapi": OPENAPI_VERSION,
        "info": {"title": settings.api_title, "version": settings.api_version},
        "servers": [{"url": settings.server_url, "description": "Main server"}],
        "components": {"securitySchemes": {"bearer": dict(BEARER_SCHEME)}},
        "tags": tags,
        "paths": paths,
    }


def openapi_hash(document: Mapping[str, Any]) -> str:
    """Stable sha256 of *document* for cache validation by clients."""

    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


__all__ = [
    "BEARER_SCHEME",
    "OPENAPI_VERSION",
    "generate_openapi_document",
    "openapi_hash",
    "operation_object",
    "tag_name",
]
