import asyncio
import logging
from typing import Any

import pytest

from infrastructure.monitoring import get_metric
from pactum.http import ContractResponse, Request
from pactum.local import LocalInvoker, LocalResult
from pactum.router import ContractRouter
from pactum.transport import Transport


def test_invoke_returns_code_response_and_headers(billing_router: ContractRouter) -> None:
    invoke = billing_router.sdk["getInvoice"]
    result = asyncio.run(invoke(params={"id": "42"}, query={"expand": "true"}))
    assert isinstance(result, LocalResult)
    assert result.code == 200
    assert result.response == {"id": 42, "paid": True}
    assert result.headers["content-type"] == "application/json"
    assert result.headers["access-control-allow-origin"] == "*"


def test_invoke_with_concrete_route(billing_router: ContractRouter) -> None:
    invoke = billing_router.sdk["getInvoice"]
    assert invoke.matches("/billing/7/success")
    assert not invoke.matches("/billing/7")
    assert invoke.invoke_sync("/billing/7/success").response == {"id": 7, "paid": True}
    with pytest.raises(ValueError):
        invoke.invoke_sync("/other/7")


def test_fetch_dispatches_by_path(billing_router: ContractRouter) -> None:
    result = asyncio.run(billing_router.fetch("/billing/9/success"))
    assert result.response == {"id": 9, "paid": True}
    with pytest.raises(LookupError):
        asyncio.run(billing_router.fetch("/billing/9/success", method="POST"))


def test_register_returns_invoker_and_records_route(billing_router: ContractRouter) -> None:
    route = billing_router.routes[0]
    assert (route.base_path, route.path, route.method) == ("/billing", "/:id/success", "GET")
    assert route.contract_details.name == "Get invoice"
    assert isinstance(billing_router.sdk["getInvoice"], LocalInvoker)
    assert ("GET", "/:id/success") in billing_router.compiled
    assert isinstance(billing_router.transport, Transport)


def test_handler_exception_becomes_500(schema_validator: Any, settings: Any) -> None:
    def broken(request: Request, response: ContractResponse) -> None:
        raise RuntimeError("database unavailable")

    router = ContractRouter("/billing", schema_validator, settings=settings)
    invoke = router.post(
        "/charge",
        {"name": "Charge", "summary": "", "responses": {200: schema_validator.string}},
        broken,
    )
    result = invoke.invoke_sync(headers={"x-correlation-id": "corr-1"})
    assert result.code == 500
    assert result.response == "Internal server error:\n\nCorrelation id: corr-1"
    assert "database unavailable" not in result.response
    assert get_metric("pactum.errors") == 1


def test_body_is_parsed(schema_validator: Any, settings: Any) -> None:
    sv = schema_validator
    received: list[Any] = []

    async def create(request: Request, response: ContractResponse) -> None:
        received.append(request.body)
        response.status(201).json({"id": 1})

    router = ContractRouter("/billing", sv, settings=settings)
    invoke = router.post(
        "/invoices",
        {
            "name": "Create invoice",
            "summary": "",
            "body": {"amount": sv.number, "paid": sv.optional(sv.boolean)},
            "responses": {201: {"id": sv.number}},
        },
        create,
    )
    assert invoke.invoke_sync(body={"amount": "100", "paid": "TRUE"}).code == 201
    assert received == [{"amount": 100, "paid": True}]
    assert invoke.invoke_sync(body={"paid": True}).code == 400
    assert invoke.invoke_sync().code == 400


def test_streaming_skips_response_validation(schema_validator: Any, settings: Any) -> None:
    async def ticks() -> Any:
        for n in range(3):
            yield {"event": "tick", "data": {"n": n}}

    async def stream(request: Request, response: ContractResponse) -> None:
        await response.stream(ticks())

    router = ContractRouter("/events", schema_validator, settings=settings)
    invoke = router.get(
        "/",
        {"name": "Events", "summary": "", "responses": {200: schema_validator.number}},
        stream,
    )
    result = invoke.invoke_sync()
    assert result.code == 200
    assert [record["data"]["n"] for record in result.response] == [0, 1, 2]
    assert result.headers["content-type"] == "text/event-stream"
    assert get_metric("pactum.errors") == 0


def test_unsent_response_becomes_404(schema_validator: Any, settings: Any) -> None:
    def silent(request: Request, response: ContractResponse) -> None:
        return None

    router = ContractRouter("/billing", schema_validator, settings=settings)
    invoke = router.get(
        "/noop", {"name": "Noop", "summary": "", "responses": {200: schema_validator.string}}, silent
    )
    result = invoke.invoke_sync()
    assert result.code == 404
    assert result.response == "Cannot GET /billing/noop"


def test_sdk_name_collision_keeps_latest(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    router = ContractRouter("/billing", schema_validator, settings=settings)
    contract = {"name": "Ping", "summary": "", "responses": {200: schema_validator.string}}
    router.get("/a", contract, lambda req, res: res.send("a"))
    second = router.get("/b", contract, lambda req, res: res.send("b"))
    assert router.sdk["ping"] is second
    assert "shadows" in caplog.text


def test_router_validates_paths(schema_validator: Any, settings: Any) -> None:
    with pytest.raises(ValueError):
        ContractRouter("billing", schema_validator, settings=settings)
    router = ContractRouter("/billing", schema_validator, settings=settings)
    contract = {"name": "Ping", "summary": "", "responses": {200: schema_validator.string}}
    with pytest.raises(ValueError):
        router.get("ping", contract, lambda req, res: res.send("x"))
    with pytest.raises(ValueError):
        router.get("/ping", contract)


def test_local_scenario_without_validation_noise(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    sv = schema_validator
    router = ContractRouter("/", sv, settings=settings)
    invoke = router.get(
        "/:id",
        {
            "name": "Get user",
            "summary": "",
            "params": {"id": sv.string},
            "responses": {200: {"name": sv.string}},
        },
        lambda request, response: response.status(200).json({"name": "test"}),
    )
    with caplog.at_level(logging.WARNING):
        result = invoke.invoke_sync(params={"id": "42"})
    assert (result.code, result.response) == (200, {"name": "test"})
    assert "Validation Errors" not in caplog.text
    assert get_metric("pactum.errors") == 0


def test_path_tokens_sharing_a_prefix_are_filled_separately(
    schema_validator: Any, settings: Any
) -> None:
    seen: list[str] = []

    def capture(request: Request, response: ContractResponse) -> None:
        seen.append(request.path)
        response.send("ok")

    router = ContractRouter("/shelves", schema_validator, settings=settings)
    invoke = router.get(
        "/:id/:idx",
        {"name": "Slot", "summary": "", "responses": {200: schema_validator.string}},
        capture,
    )
    assert invoke.invoke_sync(params={"id": "A", "idx": "B"}).code == 200
    assert invoke.invoke_sync(params={"id": "A"}).code == 200
    assert seen == ["/shelves/A/B", "/shelves/A/:idx"]
