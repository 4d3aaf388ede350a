"""ASGI transport binding.

Provides per-method route registration, router-wide ``use`` stages,
prefix mounting and startup/shutdown events. Each request is dispatched
through the same chain runner the local invocation engine uses.
"""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Awaitable, Callable, Dict, List, Mapping, Tuple

from .http import ContractResponse, Request, decode_body, format_sse, parse_query_string
from .pipeline import Stage, finalize_unsent, run_chain
from .utils import compile_path, join_paths

Scope = Dict[str, Any]
Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]
EventHandler = Callable[[], Awaitable[None] | None]


class ASGIResponse:
    """Native response writing straight to the ASGI ``send`` channel.

    Single-shot payloads are buffered until :meth:`flush`; streams start
    the response immediately and push one body message per record.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status_code = 200
        self.headers: dict[str, str] = {}
        self.body = b""
        self.started = False
        self.streaming = False

    def status(self, code: int) -> "ASGIResponse":
        self.status_code = code
        return self

    def send(self, data: Any) -> None:
        if data is None:
            self.body = b""
        elif isinstance(data, (bytes, bytearray)):
            self.headers.setdefault("content-type", "application/octet-stream")
            self.body = bytes(data)
        elif isinstance(data, str):
            self.headers.setdefault("content-type", "text/plain; charset=utf-8")
            self.body = data.encode()
        else:
            self.json(data)

    def json(self, data: Any) -> None:
        self.headers.setdefault("content-type", "application/json")
        self.body = json.dumps(data, default=str).encode()

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def get_headers(self) -> Mapping[str, str]:
        return self.headers

    def raw_headers(self) -> list[tuple[bytes, bytes]]:
        headers = dict(self.headers)
        if not self.streaming:
            headers["content-length"] = str(len(self.body))
        return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in headers.items()]

    async def _start(self) -> None:
        self.started = True
        await self._send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers(),
            }
        )

    async def stream(self, records: AsyncIterable[Any]) -> None:
        self.headers.setdefault("content-type", "text/event-stream")
        self.headers.setdefault("cache-control", "no-cache")
        self.streaming = True
        await self._start()
        try:
            async for record in records:
                await self._send(
                    {"type": "http.response.body", "body": format_sse(record), "more_body": True}
                )
        finally:
            await self._send({"type": "http.response.body", "body": b""})

    async def flush(self) -> None:
        if self.started:
            return
        await self._start()
        await self._send({"type": "http.response.body", "body": self.body})


@dataclass(frozen=True)
class _RouteEntry:
    method: str
    path: str
    stages: Tuple[Stage, ...]
    pattern: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", compile_path(self.path))

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if method != self.method:
            return None
        found = self.pattern.match(path)
        return found.groupdict() if found else None


@dataclass(frozen=True)
class Resolution:
    stages: Tuple[Stage, ...]
    params: dict[str, str]
    route_path: str | None


def _strip_prefix(prefix: str, path: str) -> str | None:
    if prefix in ("", "/"):
        return path
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix):]
    return None


class ASGITransport:
    """Basic ASGI app supporting contract routes and lifespan events."""

    def __init__(self) -> None:
        self._stages: List[Stage] = []
        self._routes: List[_RouteEntry] = []
        self._mounts: List[Tuple[str, "ASGITransport"]] = []
        self._startup: List[EventHandler] = []
        self._shutdown: List[EventHandler] = []

    def use(self, *stages: Stage) -> "ASGITransport":
        """Add stages that run ahead of every route registered afterwards."""
        self._stages.extend(stages)
        return self

    def mount(self, prefix: str, transport: "ASGITransport") -> "ASGITransport":
        self._mounts.append((prefix.rstrip("/") or "/", transport))
        return self

    def add_route(self, method: str, path: str, *stages: Stage) -> "ASGITransport":
        self._routes.append(
            _RouteEntry(method.upper(), path, tuple(self._stages) + tuple(stages))
        )
        return self

    def get(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("GET", path, *stages)

    def post(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("POST", path, *stages)

    def put(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("PUT", path, *stages)

    def patch(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("PATCH", path, *stages)

    def delete(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("DELETE", path, *stages)

    def options(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("OPTIONS", path, *stages)

    def head(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("HEAD", path, *stages)

    def trace(self, path: str, *stages: Stage) -> "ASGITransport":
        return self.add_route("TRACE", path, *stages)

    def on_event(self, event: str) -> Callable[[EventHandler], EventHandler]:
        """Register a startup or shutdown handler."""
        collection = self._startup if event == "startup" else self._shutdown

        def decorator(func: EventHandler) -> EventHandler:
            collection.append(func)
            return func

        return decorator

    def resolve(
        self, method: str, path: str, prefix: str = "", fallback: bool = True
    ) -> Resolution | None:
        """Return the stage list serving *method* *path*, if any router claims it.

        A concrete route anywhere in the mount tree wins over the ``use``
        stages of a mount whose prefix merely matches.
        """

        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return Resolution(
                    route.stages,
                    params,
                    join_paths(prefix, route.path),
                )
        passes = (False, True) if fallback else (False,)
        for nested_fallback in passes:
            for mount_prefix, transport in self._mounts:
                remainder = _strip_prefix(mount_prefix, path)
                if remainder is None:
                    continue
                nested = transport.resolve(
                    method, remainder, join_paths(prefix, mount_prefix), nested_fallback
                )
                if nested is not None:
                    return Resolution(
                        tuple(self._stages) + nested.stages, nested.params, nested.route_path
                    )
        if fallback and self._stages:
            return Resolution(tuple(self._stages), {}, None)
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Dispatch ASGI *scope* to handlers."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
        elif scope["type"] == "http":
            await self._handle_http(scope, receive, send)
        else:
            raise NotImplementedError(f"Unsupported scope type {scope['type']}")

    async def _run_events(self, handlers: List[EventHandler]) -> None:
        for func in handlers:
            result = func()
            if inspect.isawaitable(result):
                await result

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        await receive()  # lifespan.startup
        await self._run_events(self._startup)
        await send({"type": "lifespan.startup.complete"})
        await receive()  # lifespan.shutdown
        await self._run_events(self._shutdown)
        await send({"type": "lifespan.shutdown.complete"})

    async def _read_body(self, receive: Receive) -> bytes:
        body = b""
        while True:
            message = await receive()
            body += message.get("body", b"")
            if not message.get("more_body"):
                return body

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = str(scope.get("method", "GET")).upper()
        path = str(scope.get("path", "/"))
        headers = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in scope.get("headers", [])
        }
        raw_query = scope.get("query_string", b"")
        if isinstance(raw_query, bytes):
            raw_query = raw_query.decode("latin-1")
        raw_body = await self._read_body(receive)

        native = ASGIResponse(send)
        response = ContractResponse(native)
        resolution = self.resolve(method, path)
        request = Request(
            method,
            path,
            params=resolution.params if resolution else None,
            query=parse_query_string(raw_query),
            headers=headers,
            body=decode_body(raw_body, headers.get("content-type", "")),
            route_path=resolution.route_path if resolution and resolution.route_path else path,
        )
        if resolution is not None:
            await run_chain(resolution.stages, request, response)
        finalize_unsent(request, response)
        await native.flush()


__all__ = ["ASGIResponse", "ASGITransport", "Resolution"]
