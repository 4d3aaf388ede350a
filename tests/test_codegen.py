from typing import Any

from pactum.codegen import generate_bindings, to_pascal_case


def test_to_pascal_case() -> None:
    assert to_pascal_case("Get invoice") == "GetInvoice"
    assert to_pascal_case("list-user_accounts") == "ListUserAccounts"
    assert to_pascal_case("2fa") == "T2fa"


def test_generated_module_declares_each_section(schema_validator: Any) -> None:
    sv = schema_validator
    source = generate_bindings(
        sv,
        {
            "name": "Get invoice",
            "summary": "",
            "params": {"id": sv.number},
            "query": {"expand": sv.optional(sv.boolean)},
            "requestHeaders": {"X-Tenant": sv.string},
            "responses": {200: {"id": sv.number, "status": sv.enum_(["open", "paid"])}},
        },
    )
    assert "class GetInvoiceParams(TypedDict):\n    id: float" in source
    assert "expand: NotRequired[" in source
    assert "GetInvoiceHeaders = TypedDict('GetInvoiceHeaders', {'x-tenant': str})" in source
    assert "GetInvoiceResponse404 = str" in source
    assert "GetInvoiceBody" not in source

    namespace: dict[str, Any] = {}
    exec(compile(source, "<bindings>", "exec"), namespace)
    assert namespace["GetInvoiceParams"].__required_keys__ == frozenset({"id"})
    assert namespace["GetInvoiceQuery"].__optional_keys__ == frozenset({"expand"})
    assert "GetInvoiceResponse200" in namespace["__all__"]


def test_nested_objects_become_their_own_types(schema_validator: Any) -> None:
    sv = schema_validator
    source = generate_bindings(
        sv,
        {
            "name": "Create order",
            "summary": "",
            "body": {"lines": sv.array({"sku": sv.string, "qty": sv.number})},
            "responses": {201: sv.record(sv.number)},
        },
    )
    assert "lines: list[CreateOrderBodyLinesItem]" in source
    assert "class CreateOrderBodyLinesItem(TypedDict):" in source
    assert "CreateOrderResponse201 = dict[str, float]" in source


def test_binary_content_is_bytes(schema_validator: Any) -> None:
    sv = schema_validator
    source = generate_bindings(
        sv,
        {
            "name": "Upload",
            "summary": "",
            "body": {"multipartForm": {"title": sv.string, "data": sv.file}},
            "responses": {200: {"file": sv.file}},
        },
    )
    assert "class UploadBody(TypedDict):\n    title: str\n    data: bytes" in source
    assert "UploadResponse200 = bytes" in source
