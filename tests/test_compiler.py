from typing import Any

import pytest

from pactum.compiler import DEFAULT_ERROR_STATUSES, compile_contract, request_shape
from pactum.contracts import (
    AuthPolicy,
    ContractDescriptor,
    ContractOptions,
    TypedBody,
    TypedResponse,
)


def test_descriptor_from_mapping(schema_validator: Any) -> None:
    descriptor = ContractDescriptor.from_mapping(
        {
            "name": "Create invoice",
            "summary": "Create",
            "requestHeaders": {"X-Tenant": schema_validator.string},
            "body": {"amount": schema_validator.number},
            "responses": {"201": {"id": schema_validator.number}},
            "auth": {"method": "jwt", "allowedRoles": ["admin"]},
            "options": {"requestValidation": "warning"},
        }
    )
    assert descriptor.has_body
    assert list(descriptor.responses) == [201]
    assert descriptor.auth == AuthPolicy(method="jwt", allowed_roles=frozenset({"admin"}))
    assert descriptor.options == ContractOptions(request_validation="warning")
    with pytest.raises(TypeError):
        descriptor.responses[500] = schema_validator.string  # type: ignore[index]


def test_descriptor_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        ContractDescriptor(name="", summary="", responses={200: str})
    with pytest.raises(ValueError):
        ContractDescriptor(name="x", summary="", responses={})
    with pytest.raises(ValueError):
        ContractOptions(request_validation="loud")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        AuthPolicy(method="other")


def test_auth_prefixes() -> None:
    assert AuthPolicy().scheme_prefix == "Bearer "
    assert AuthPolicy(method="basic").scheme_prefix == "Basic "
    assert AuthPolicy(method="other", token_prefix="Token").scheme_prefix == "Token "
    assert not AuthPolicy().enforces_access
    assert AuthPolicy(forbidden_slugs=["x"]).enforces_access


def test_request_shape_only_declared_sections(schema_validator: Any) -> None:
    sv = schema_validator
    descriptor = ContractDescriptor(
        name="List invoices",
        summary="",
        query={"page": sv.number},
        request_headers={"X-Tenant": sv.string},
        responses={200: sv.array(sv.string)},
    )
    shape = request_shape(descriptor)
    assert set(shape) == {"query", "headers"}
    assert list(shape["headers"]) == ["x-tenant"]
    assert not descriptor.has_body


def test_compiled_request_schema(schema_validator: Any) -> None:
    sv = schema_validator
    descriptor = ContractDescriptor(
        name="Get invoice",
        summary="",
        params={"id": sv.number},
        request_headers={"X-Tenant": sv.string},
        responses={200: sv.string},
    )
    compiled = compile_contract(sv, descriptor)
    ok = compiled.request_schema.parse(
        {"params": {"id": "5"}, "headers": {"x-tenant": "acme"}, "query": {}}
    )
    assert ok.ok
    assert ok.value["params"] == {"id": 5}
    missing = compiled.request_schema.parse({"params": {"id": "5"}, "headers": {}, "query": {}})
    assert not missing.ok


def test_default_error_responses(schema_validator: Any) -> None:
    sv = schema_validator
    descriptor = ContractDescriptor(
        name="Get invoice",
        summary="",
        responses={200: {"id": sv.number}, 404: {"reason": sv.string}},
    )
    compiled = compile_contract(sv, descriptor)
    assert set(compiled.response_schemas) == {200, *DEFAULT_ERROR_STATUSES}
    assert compiled.response_schemas[400].validate("bad input")
    assert compiled.response_schemas[404].validate({"reason": "gone"})
    assert not compiled.response_schemas[404].validate("gone")
    assert compiled.response_headers_schema is None


def test_compilation_is_deterministic(schema_validator: Any) -> None:
    sv = schema_validator
    descriptor = ContractDescriptor(
        name="Get invoice",
        summary="",
        params={"id": sv.number},
        body={"lines": sv.array({"sku": sv.string, "qty": sv.number})},
        responses={200: sv.string},
    )
    first = compile_contract(sv, descriptor)
    second = compile_contract(sv, descriptor)
    assert dict(first.request_shape) == dict(second.request_shape)
    assert sv.openapi(first.request_schema) == sv.openapi(second.request_schema)
    sample = {"params": {"id": "1"}, "body": {"lines": [{"sku": "a", "qty": "2"}]}}
    assert first.request_schema.parse(sample) == second.request_schema.parse(sample)


def test_body_discrimination() -> None:
    form = TypedBody.discriminate(
        {"urlEncodedForm": {"amount": "number"}, "contentType": "application/x-www-form-urlencoded; charset=utf-8"}
    )
    assert form.kind == "urlEncodedForm"
    assert form.schema == {"amount": "number"}
    assert form.media_type == "application/x-www-form-urlencoded; charset=utf-8"
    assert TypedBody.discriminate({"multipartForm": {"a": 1}}).media_type == "multipart/form-data"
    assert TypedBody.discriminate({"schema": {"a": 1}}) == TypedBody("json", {"a": 1})
    assert TypedBody.discriminate({"text": "x", "title": "y"}).kind == "json"
    assert TypedBody.discriminate({"amount": 1}) == TypedBody("json", {"amount": 1})
    assert TypedBody.discriminate(None) is None
    explicit = TypedBody("json", {"text": "x"})
    assert TypedBody.discriminate(explicit) is explicit
    with pytest.raises(ValueError):
        TypedBody("xml", {})


def test_response_discrimination() -> None:
    assert TypedResponse.discriminate({"buffer": "b"}) == TypedResponse("file", "b")
    assert TypedResponse.discriminate({"event": "e"}).media_type == "text/event-stream"
    assert TypedResponse.discriminate("plain").media_type == "application/json"
    assert TypedResponse.discriminate({"multipartForm": {}}).kind == "json"


def test_descriptor_exposes_typed_sections(schema_validator: Any) -> None:
    sv = schema_validator
    descriptor = ContractDescriptor.from_mapping(
        {
            "name": "Upload",
            "summary": "",
            "body": {"file": sv.file, "contentType": "image/png"},
            "responses": {200: {"text": sv.string}, 201: {"id": sv.number}},
        }
    )
    assert descriptor.request_body == TypedBody("file", sv.file, "image/png")
    assert descriptor.response_bodies[200].kind == "text"
    assert descriptor.response_bodies[201].kind == "json"
    shape = request_shape(descriptor)
    assert shape["body"] is sv.file
