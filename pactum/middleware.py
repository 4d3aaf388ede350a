"""Request and response stages that enforce a route's contract."""

from __future__ import annotations

import functools
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from infrastructure.configuration import Settings

from .auth import Authenticator
from .compiler import CompiledSchemaSet
from .contracts import ContractDescriptor
from .errors import RequestValidationError, ResponseValidationError
from .http import (
    CORRELATION_HEADER,
    IDEMPOTENCY_HEADER,
    ContractResponse,
    Request,
    RequestContext,
)
from .pipeline import Next, Stage, as_stage, telemetry_for
from .validator.base import ParseError, SchemaValidator, pretty_print_parse_errors


@dataclass(frozen=True)
class CorsPolicy:
    """Cross-Origin Resource Sharing headers applied to every response."""

    allow_origin: str = "*"
    allow_methods: str = "*"
    allow_headers: str = "*"
    allow_credentials: bool = False
    max_age: int = 600
    expose_headers: tuple[str, ...] = field(default=(CORRELATION_HEADER,))

    @classmethod
    def from_settings(cls, settings: Settings) -> "CorsPolicy":
        return cls(
            allow_origin=settings.cors_allow_origin,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            allow_credentials=settings.cors_allow_credentials,
            expose_headers=tuple(settings.cors_expose_headers),
        )

    def headers(self) -> dict[str, str]:
        headers = {
            "access-control-allow-origin": self.allow_origin,
            "access-control-allow-methods": self.allow_methods,
            "access-control-allow-headers": self.allow_headers,
            "access-control-max-age": str(self.max_age),
        }
        if self.allow_credentials:
            headers["access-control-allow-credentials"] = "true"
        if self.expose_headers:
            headers["access-control-expose-headers"] = ", ".join(self.expose_headers)
        return headers


def _mark(stage: Callable[..., Any]) -> Stage:
    stage.__pactum_stage__ = True  # type: ignore[attr-defined]
    return stage  # type: ignore[return-value]


def create_context(schema_validator: SchemaValidator, telemetry: Any = None) -> Stage:
    """First stage: establish the correlation id and request context."""

    async def create_context_stage(request: Request, response: ContractResponse, next_: Next) -> None:
        correlation_id = str(request.header(CORRELATION_HEADER) or uuid.uuid4().hex)
        response.set_header(CORRELATION_HEADER, correlation_id)
        request.context = RequestContext(
            correlation_id=correlation_id,
            idempotency_key=request.header(IDEMPOTENCY_HEADER),
        )
        request.schema_validator = schema_validator
        request.telemetry = telemetry
        next_()

    return _mark(create_context_stage)


def cors(policy: CorsPolicy | None = None) -> Stage:
    """Apply *policy* headers; answer preflight requests directly."""

    policy = policy or CorsPolicy()

    async def cors_stage(request: Request, response: ContractResponse, next_: Next) -> None:
        for name, value in policy.headers().items():
            if response.get_header(name) is None:
                response.set_header(name, value)
        response.cors = True
        if request.method == "OPTIONS" and request.header("access-control-request-method"):
            response.status(204).send("")
            return
        next_()

    return _mark(cors_stage)


def enrich_details(descriptor: ContractDescriptor, compiled: CompiledSchemaSet) -> Stage:
    async def enrich_details_stage(request: Request, response: ContractResponse, next_: Next) -> None:
        request.contract_details = descriptor
        request.request_schema = compiled.request_schema
        response.contract_details = descriptor
        response.response_schemas = compiled
        next_()

    return _mark(enrich_details_stage)


def parse_request_auth(authenticator: Authenticator) -> Stage:
    """Verify, map and enforce the route's auth policy when it declares one."""

    async def auth_stage(request: Request, response: ContractResponse, next_: Next) -> None:
        descriptor: ContractDescriptor | None = request.contract_details
        if descriptor is None or descriptor.auth is None:
            next_()
            return
        try:
            await authenticator.authorize(descriptor.auth, request)
        except Exception as exc:  # noqa: BLE001 - forwarded through next
            next_(exc)
            return
        next_()

    return _mark(auth_stage)


def _body_for(kind: str, body: Any) -> Any:
    """Match a decoded body to the parser the contract declares."""

    if kind == "text" and isinstance(body, (bytes, bytearray)):
        return bytes(body).decode(errors="replace")
    if kind == "file" and isinstance(body, str):
        return body.encode()
    return body


async def parse_request(request: Request, response: ContractResponse, next_: Next) -> None:
    """Coerce params, headers, query and body through the compiled schema."""

    descriptor: ContractDescriptor | None = request.contract_details
    schema = request.request_schema
    if descriptor is None or schema is None:
        next_()
        return

    candidate: dict[str, Any] = {
        "params": request.params,
        "headers": request.headers,
        "query": request.query,
    }
    if descriptor.request_body is not None:
        candidate["body"] = _body_for(descriptor.request_body.kind, request.body)
    result = schema.parse(candidate)
    if result.ok:
        value = result.value
        request.params = value.get("params", request.params)
        request.headers = value.get("headers", request.headers)
        request.query = value.get("query", request.query)
        if descriptor.has_body:
            request.body = value.get("body", request.body)
        next_()
        return

    policy = descriptor.options.request_validation
    if policy == "error":
        next_(RequestValidationError(result.errors))
        return
    if policy == "warning":
        telemetry_for(request).log(
            "warning",
            pretty_print_parse_errors(result.errors, "Request") or "Invalid request",
            {
                "correlation_id": request.correlation_id,
                "contract": descriptor.name,
                "path": request.path,
            },
        )
    next_()


_mark(parse_request)


def parse_response(request: Request, response: ContractResponse, next_: Next) -> None:
    """Advisory validation of the recorded body and the outgoing headers."""

    descriptor: ContractDescriptor | None = response.contract_details
    schemas: CompiledSchemaSet | None = response.response_schemas
    if descriptor is None or schemas is None:
        next_()
        return

    header_errors: tuple[ParseError, ...] = ()
    if schemas.response_headers_schema is not None:
        header_result = schemas.response_headers_schema.parse(response.get_headers())
        header_errors = header_result.errors

    body_schema = schemas.response_schemas.get(response.status_code)
    if body_schema is None:
        body_errors: tuple[ParseError, ...] = (
            ParseError(
                path=(),
                message=f"No response schema declared for status {response.status_code}",
            ),
        )
    else:
        body_errors = body_schema.parse(response.body_data).errors

    if not body_errors and not header_errors:
        next_()
        return

    error = ResponseValidationError(body_errors, header_errors)
    policy = descriptor.options.response_validation
    if policy == "error":
        next_(error)
        return
    if policy == "warning":
        telemetry_for(request).log(
            "warning",
            error.message,
            {
                "correlation_id": request.correlation_id,
                "contract": descriptor.name,
                "status": response.status_code,
            },
        )
    next_()


def run_controller(handler: Callable[..., Any]) -> Stage:
    """Wrap the terminal handler.

    Once it returns, a single-shot response is flushed to the transport
    and only then checked against the contract.
    """

    stage = as_stage(handler)

    @functools.wraps(handler)
    async def controller_stage(request: Request, response: ContractResponse, next_: Next) -> None:
        inner = Next()
        started = time.perf_counter()
        try:
            await stage(request, response, inner)
        except Exception as exc:  # noqa: BLE001 - forwarded through next
            next_(exc)
            return
        if inner.error is not None:
            next_(inner.error)
            return

        descriptor = request.contract_details
        telemetry = telemetry_for(request)
        telemetry.record_metric(
            "pactum.http.requests",
            {
                "method": request.method,
                "route": request.route_path,
                "status": response.status_code,
            },
        )
        telemetry.log(
            "info",
            "Handled request",
            {
                "correlation_id": request.correlation_id,
                "contract": descriptor.name if descriptor else None,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
            },
        )
        if response.sent and not response.streamed:
            await response.flush()
            parse_response(request, response, next_)
        else:
            next_()

    return _mark(controller_stage)


__all__ = [
    "CorsPolicy",
    "create_context",
    "cors",
    "enrich_details",
    "parse_request",
    "parse_request_auth",
    "parse_response",
    "run_controller",
]
