"""Request and response objects passed through the middleware chain."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, AsyncIterable, Iterable, Mapping, Protocol, runtime_checkable
from urllib.parse import parse_qs

from .utils import safe_stringify

logger = logging.getLogger("pactum")

CORRELATION_HEADER = "x-correlation-id"
IDEMPOTENCY_HEADER = "idempotency-key"


@dataclass(frozen=True)
class RequestContext:
    correlation_id: str
    idempotency_key: str | None = None


def parse_query_string(query_string: str) -> dict[str, Any]:
    """Decode a query string, collapsing single-valued keys to scalars."""

    return {
        key: (values[0] if len(values) == 1 else values)
        for key, values in parse_qs(query_string, keep_blank_values=True).items()
    }


def _parse_header(line: str) -> tuple[str, dict[str, str]]:
    """Split ``value; key="param"`` header syntax."""

    parts = [part.strip() for part in line.split(";") if part.strip()]
    value = parts[0].lower() if parts else ""
    params: dict[str, str] = {}
    for item in parts[1:]:
        if "=" in item:
            key, raw = item.split("=", 1)
            params[key.strip().lower()] = raw.strip().strip('"')
    return value, params


def _add_field(form: dict[str, Any], name: str, value: Any) -> None:
    if name not in form:
        form[name] = value
    elif isinstance(form[name], list):
        form[name].append(value)
    else:
        form[name] = [form[name], value]


def parse_multipart(raw: bytes, content_type: str) -> dict[str, Any]:
    """Decode a ``multipart/form-data`` body.

    Plain fields become strings. File parts become mappings with
    ``filename``, ``content_type`` and ``content`` (bytes). Repeated names
    collapse into lists, as in :func:`parse_query_string`.
    """

    _, options = _parse_header(content_type)
    boundary = options.get("boundary")
    if not boundary:
        first = raw.split(b"\r\n", 1)[0]
        if not first.startswith(b"--"):
            raise ValueError("Multipart body has no boundary")
        boundary = first[2:].decode("latin-1")
    form: dict[str, Any] = {}
    for part in raw.split(b"--" + boundary.encode("latin-1"))[1:-1]:
        if part.startswith(b"\r\n"):
            part = part[2:]
        header_block, separator, content = part.partition(b"\r\n\r\n")
        if not separator:
            continue
        headers: dict[str, str] = {}
        for line in header_block.decode("latin-1").split("\r\n"):
            name, _, value = line.partition(":")
            headers[name.strip().lower()] = value.strip()
        _, disposition = _parse_header(headers.get("content-disposition", ""))
        field_name = disposition.get("name")
        if field_name is None:
            continue
        if content.endswith(b"\r\n"):
            content = content[:-2]
        filename = disposition.get("filename")
        if filename is None:
            _add_field(form, field_name, content.decode(errors="replace"))
        else:
            _add_field(
                form,
                field_name,
                {
                    "filename": filename,
                    "content_type": headers.get("content-type", "application/octet-stream"),
                    "content": content,
                },
            )
    return form


def decode_body(raw: bytes, content_type: str) -> Any:
    """Turn a raw request body into the value handed to validation.

    JSON and both form encodings are parsed, text is decoded, and anything
    else stays as bytes.
    """

    if not raw:
        return None
    media_type, _ = _parse_header(content_type)
    if media_type == "application/x-www-form-urlencoded":
        return parse_query_string(raw.decode(errors="replace"))
    if media_type == "multipart/form-data":
        try:
            return parse_multipart(raw, content_type)
        except ValueError:
            return raw
    if "json" in media_type:
        try:
            return json.loads(raw.decode())
        except (UnicodeDecodeError, ValueError):
            return raw.decode(errors="replace")
    if media_type.startswith("text/") or not media_type:
        return raw.decode(errors="replace")
    return raw


class Request:
    """An inbound request as seen by middleware and handlers."""

    def __init__(
        self,
        method: str = "GET",
        path: str = "/",
        *,
        params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Any = None,
        route_path: str | None = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.route_path = route_path or path
        self.params: dict[str, Any] = dict(params or {})
        self.query: dict[str, Any] = dict(query or {})
        self.headers: dict[str, Any] = {k.lower(): v for k, v in (headers or {}).items()}
        self.body = body
        self.context: RequestContext | None = None
        self.contract_details: Any = None
        self.request_schema: Any = None
        self.schema_validator: Any = None
        self.telemetry: Any = None
        self.state: SimpleNamespace = SimpleNamespace()

    def header(self, name: str, default: Any = None) -> Any:
        return self.headers.get(name.lower(), default)

    @property
    def correlation_id(self) -> str | None:
        return self.context.correlation_id if self.context else None

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"


@runtime_checkable
class NativeResponse(Protocol):
    """Minimal response surface a transport binding provides."""

    status_code: int

    def status(self, code: int) -> Any:
        ...

    def send(self, data: Any) -> Any:
        ...

    def json(self, data: Any) -> Any:
        ...

    def set_header(self, name: str, value: str) -> Any:
        ...

    def get_headers(self) -> Mapping[str, str]:
        ...

    async def stream(self, records: AsyncIterable[Any]) -> None:
        ...

    async def flush(self) -> None:
        ...


def header_value(value: Any) -> str:
    """Serialize a header value; sequences become a comma-separated list."""

    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(safe_stringify(item) for item in value)
    return safe_stringify(value)


def format_sse(record: Any) -> bytes:
    """Encode one record as a Server-Sent Events frame."""

    if isinstance(record, str):
        lines = [f"data: {record}"]
    else:
        lines = []
        if isinstance(record, Mapping):
            for field in ("event", "id", "retry"):
                if record.get(field) is not None:
                    lines.append(f"{field}: {record[field]}")
            data = record.get("data", "")
        else:
            data = record
        if isinstance(data, (dict, list)):
            lines.append(f"data: {json.dumps(data, default=str)}")
        else:
            lines.append(f"data: {data}")
    return ("\n".join(lines) + "\n\n").encode()


async def _aiter(records: Iterable[Any] | AsyncIterable[Any]) -> AsyncIterable[Any]:
    if hasattr(records, "__aiter__"):
        async for record in records:  # type: ignore[union-attr]
            yield record
    else:
        for record in records:  # type: ignore[union-attr]
            yield record


class ContractResponse:
    """Wrapper that records what a handler emits before delegating.

    Built once per response by the transport binding. Header values are
    stringified on the way in, the first ``send``/``json`` payload is kept
    in :attr:`body_data` for advisory validation, and later sends are
    dropped.
    """

    def __init__(self, native: NativeResponse) -> None:
        self.native = native
        self.body_data: Any = None
        self.sent = False
        self.streamed = False
        self.cors = False
        self.contract_details: Any = None
        self.response_schemas: Any = None
        self.locals: dict[str, Any] = {}

    @property
    def status_code(self) -> int:
        return self.native.status_code

    @property
    def headers_sent(self) -> bool:
        return self.sent

    def status(self, code: int) -> "ContractResponse":
        self.native.status(int(code))
        return self

    def set_header(self, name: str, value: Any) -> "ContractResponse":
        self.native.set_header(name.lower(), header_value(value))
        return self

    def get_header(self, name: str, default: str | None = None) -> str | None:
        return self.native.get_headers().get(name.lower(), default)

    def get_headers(self) -> dict[str, str]:
        return dict(self.native.get_headers())

    def _mark_sent(self, data: Any) -> bool:
        if self.sent:
            logger.warning(
                "Response already sent; dropping second payload for status %s",
                self.status_code,
            )
            return False
        self.body_data = data
        self.sent = True
        return True

    def _apply_declared_content_type(self) -> None:
        descriptor = self.contract_details
        if descriptor is None or self.get_header("content-type") is not None:
            return
        typed = descriptor.response_bodies.get(self.status_code)
        if typed is not None and typed.content_type:
            self.set_header("content-type", typed.content_type)

    def send(self, data: Any = None) -> "ContractResponse":
        if self._mark_sent(data):
            self._apply_declared_content_type()
            self.native.send(data)
        return self

    def json(self, data: Any) -> "ContractResponse":
        if self._mark_sent(data):
            self._apply_declared_content_type()
            self.native.json(data)
        return self

    async def stream(self, records: Iterable[Any] | AsyncIterable[Any]) -> None:
        """Emit *records* incrementally; they skip single-shot validation."""

        if not self._mark_sent(None):
            return
        self.streamed = True
        self._apply_declared_content_type()
        await self.native.stream(_aiter(records))

    async def flush(self) -> None:
        """Hand a single-shot payload to the transport now."""

        if self.sent and not self.streamed:
            await self.native.flush()


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = [
    "CORRELATION_HEADER",
    "ContractResponse",
    "IDEMPOTENCY_HEADER",
    "NativeResponse",
    "Request",
    "RequestContext",
    "format_sse",
    "decode_body",
    "header_value",
    "maybe_await",
    "parse_multipart",
    "parse_query_string",
]
