import asyncio
import logging
from typing import Any

import pytest

from pactum.http import (
    ContractResponse,
    Request,
    decode_body,
    format_sse,
    parse_multipart,
    parse_query_string,
)
from pactum.local import LocalResponse
from pactum.pipeline import Next, as_stage, run_chain
from pactum.router import ContractRouter


def test_response_headers_are_stringified() -> None:
    response = ContractResponse(LocalResponse())
    response.set_header("X-Count", 3)
    response.set_header("x-tags", ["a", "b"])
    response.set_header("x-flag", True)
    assert response.get_headers() == {"x-count": "3", "x-tags": "a, b", "x-flag": "true"}


def test_second_send_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    native = LocalResponse()
    response = ContractResponse(native)
    response.status(200).json({"first": True})
    with caplog.at_level(logging.WARNING, logger="pactum"):
        response.send("second")
    assert native.response == {"first": True}
    assert response.body_data == {"first": True}
    assert "already sent" in caplog.text


def test_run_chain_stops_when_next_not_called() -> None:
    calls: list[str] = []

    def first(request: Request, response: ContractResponse, next_: Next) -> None:
        calls.append("first")

    def second(request: Request, response: ContractResponse) -> None:
        calls.append("second")

    response = ContractResponse(LocalResponse())
    asyncio.run(run_chain([as_stage(first), as_stage(second)], Request(), response))
    assert calls == ["first"]


def test_two_argument_stage_continues_automatically() -> None:
    calls: list[str] = []

    async def first(request: Request, response: ContractResponse) -> None:
        calls.append("first")

    def second(request: Request, response: ContractResponse) -> None:
        calls.append("second")
        response.send("done")

    response = ContractResponse(LocalResponse())
    asyncio.run(run_chain([as_stage(first), as_stage(second)], Request(), response))
    assert calls == ["first", "second"]
    assert response.sent


def test_error_passed_to_next_short_circuits() -> None:
    def failing(request: Request, response: ContractResponse, next_: Next) -> None:
        next_(ValueError("nope"))

    def unreachable(request: Request, response: ContractResponse) -> None:
        raise AssertionError("must not run")

    native = LocalResponse()
    response = ContractResponse(native)
    asyncio.run(run_chain([as_stage(failing), as_stage(unreachable)], Request(), response))
    assert native.status_code == 500
    assert native.response.startswith("Internal server error:")
    assert "Correlation id: unknown" in native.response


def test_parse_query_string() -> None:
    assert parse_query_string("a=1&b=2&b=3&c=") == {"a": "1", "b": ["2", "3"], "c": ""}


def test_format_sse() -> None:
    assert format_sse("hello") == b"data: hello\n\n"
    assert format_sse({"event": "tick", "id": 3, "data": {"n": 1}}) == (
        b'event: tick\nid: 3\ndata: {"n": 1}\n\n'
    )


def _router(sv: Any, settings: Any, policy: str, handler: Any, **contract: Any) -> Any:
    router = ContractRouter("/items", sv, settings=settings)
    base = {
        "name": "Get item",
        "summary": "",
        "params": {"id": sv.number},
        "responses": {200: {"id": sv.number}},
        "options": {"requestValidation": policy, "responseValidation": policy},
    }
    base.update(contract)
    return router.get("/:id", base, handler)


def _echo(request: Request, response: ContractResponse) -> None:
    response.status(200).json({"id": request.params["id"]})


def test_request_validation_error_policy(schema_validator: Any, settings: Any) -> None:
    invoke = _router(schema_validator, settings, "error", _echo)
    result = invoke.invoke_sync(params={"id": "abc"}, headers={"x-correlation-id": "c-1"})
    assert result.code == 400
    assert result.response.startswith("Invalid request parameters:\nRequest Validation Errors:")
    assert "Path: params > id" in result.response
    assert result.response.endswith("Correlation id: c-1")


def test_request_validation_warning_policy(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    invoke = _router(schema_validator, settings, "warning", _echo)
    with caplog.at_level(logging.WARNING, logger="pactum.observability"):
        result = invoke.invoke_sync(params={"id": "abc"})
    assert result.code == 200
    assert result.response == {"id": "abc"}
    assert "Request Validation Errors" in caplog.text


def test_request_validation_none_policy(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    invoke = _router(schema_validator, settings, "none", _echo)
    with caplog.at_level(logging.WARNING, logger="pactum.observability"):
        result = invoke.invoke_sync(params={"id": "abc"})
    assert result.code == 200
    assert "Validation Errors" not in caplog.text


def test_coerced_values_reach_the_handler(schema_validator: Any, settings: Any) -> None:
    seen: dict[str, Any] = {}

    def handler(request: Request, response: ContractResponse) -> None:
        seen.update(request.params)
        response.json({"id": request.params["id"]})

    invoke = _router(schema_validator, settings, "error", handler)
    assert invoke.invoke_sync(params={"id": "17"}).code == 200
    assert seen == {"id": 17}


def test_response_validation_is_advisory(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    def bad(request: Request, response: ContractResponse) -> None:
        response.status(200).json({"id": "not-a-number"})

    invoke = _router(schema_validator, settings, "error", bad)
    with caplog.at_level(logging.WARNING, logger="pactum.observability"):
        result = invoke.invoke_sync(params={"id": "1"})
    assert result.code == 200
    assert result.response == {"id": "not-a-number"}
    assert "Response Validation Errors" in caplog.text


def test_undeclared_status_is_reported(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    def created(request: Request, response: ContractResponse) -> None:
        response.status(201).json({"id": 1})

    invoke = _router(schema_validator, settings, "warning", created)
    with caplog.at_level(logging.WARNING, logger="pactum.observability"):
        result = invoke.invoke_sync(params={"id": "1"})
    assert result.code == 201
    assert "No response schema declared for status 201" in caplog.text


def test_response_headers_are_checked(
    schema_validator: Any, settings: Any, caplog: pytest.LogCaptureFixture
) -> None:
    sv = schema_validator

    def without_header(request: Request, response: ContractResponse) -> None:
        response.json({"id": 1})

    def with_header(request: Request, response: ContractResponse) -> None:
        response.set_header("X-Total", 5)
        response.json({"id": 1})

    contract = {"responseHeaders": {"X-Total": sv.number}}
    missing = _router(sv, settings, "warning", without_header, **contract)
    present = _router(sv, settings, "warning", with_header, **contract)
    with caplog.at_level(logging.WARNING, logger="pactum.observability"):
        present.invoke_sync(params={"id": "1"})
        assert "Header Validation Errors" not in caplog.text
        missing.invoke_sync(params={"id": "1"})
    assert "Header Validation Errors" in caplog.text


def test_correlation_id_is_generated_and_propagated(schema_validator: Any, settings: Any) -> None:
    invoke = _router(schema_validator, settings, "error", _echo)
    generated = invoke.invoke_sync(params={"id": "1"})
    assert len(generated.headers["x-correlation-id"]) == 32
    given = invoke.invoke_sync(params={"id": "1"}, headers={"X-Correlation-Id": "abc"})
    assert given.headers["x-correlation-id"] == "abc"


def test_user_middleware_sees_context(schema_validator: Any, settings: Any) -> None:
    seen: dict[str, Any] = {}

    def audit(request: Request, response: ContractResponse, next_: Next) -> None:
        seen["correlation_id"] = request.correlation_id
        seen["idempotency_key"] = request.context.idempotency_key
        seen["contract"] = request.contract_details.name
        next_()

    router = ContractRouter("/items", schema_validator, settings=settings)
    invoke = router.get(
        "/:id",
        {"name": "Get item", "summary": "", "responses": {200: {"id": schema_validator.number}}},
        audit,
        _echo,
    )
    result = invoke.invoke_sync(
        params={"id": "1"}, headers={"x-correlation-id": "c-9", "idempotency-key": "k-1"}
    )
    assert result.code == 200
    assert seen == {"correlation_id": "c-9", "idempotency_key": "k-1", "contract": "Get item"}


def test_decode_body_by_content_type() -> None:
    assert decode_body(b"", "application/json") is None
    assert decode_body(b'{"a": 1}', "application/json; charset=utf-8") == {"a": 1}
    assert decode_body(b"a=1&b=2&b=3", "application/x-www-form-urlencoded") == {
        "a": "1",
        "b": ["2", "3"],
    }
    assert decode_body(b"hello", "text/plain") == "hello"
    assert decode_body(b"hello", "") == "hello"
    assert decode_body(b"\x89PNG", "image/png") == b"\x89PNG"
    assert decode_body(b"no boundary here", "multipart/form-data") == b"no boundary here"


def test_parse_multipart_fields_and_files() -> None:
    raw = (
        b"--b1\r\n"
        b'Content-Disposition: form-data; name="tag"\r\n\r\n'
        b"red\r\n"
        b"--b1\r\n"
        b'Content-Disposition: form-data; name="tag"\r\n\r\n'
        b"blue\r\n"
        b"--b1\r\n"
        b'Content-Disposition: form-data; name="doc"; filename="a.bin"\r\n\r\n'
        b"\r\n\x00line\r\n\r\n"
        b"--b1--\r\n"
    )
    form = parse_multipart(raw, 'multipart/form-data; boundary="b1"')
    assert form["tag"] == ["red", "blue"]
    assert form["doc"] == {
        "filename": "a.bin",
        "content_type": "application/octet-stream",
        "content": b"\r\n\x00line\r\n",
    }
    assert parse_multipart(raw, "multipart/form-data") == form
    with pytest.raises(ValueError):
        parse_multipart(b"plain", "multipart/form-data")


def test_flush_hands_single_payloads_over_once() -> None:
    flushed: list[int] = []

    class CountingResponse(LocalResponse):
        async def flush(self) -> None:
            flushed.append(self.status_code)

    response = ContractResponse(CountingResponse())
    asyncio.run(response.flush())
    assert flushed == []
    response.status(201).send("ok")
    asyncio.run(response.flush())
    assert flushed == [201]
