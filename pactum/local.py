"""In-process invocation of a route's full middleware chain."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Mapping, Sequence

from .http import ContractResponse, Request
from .pipeline import Stage, finalize_unsent, run_chain
from .utils import compile_path, fill_path


class LocalResponse:
    """Native response that keeps everything in memory."""

    def __init__(self) -> None:
        self.status_code = 200
        self.response: Any = None
        self.headers: dict[str, str] = {}

    def status(self, code: int) -> "LocalResponse":
        self.status_code = code
        return self

    def send(self, data: Any) -> None:
        self.response = data

    def json(self, data: Any) -> None:
        self.headers.setdefault("content-type", "application/json")
        self.response = data

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def get_headers(self) -> Mapping[str, str]:
        return self.headers

    async def stream(self, records: AsyncIterable[Any]) -> None:
        self.headers.setdefault("content-type", "text/event-stream")
        self.response = [record async for record in records]

    async def flush(self) -> None:
        return None


@dataclass(frozen=True)
class LocalResult:
    code: int
    response: Any
    headers: dict[str, str] = field(default_factory=dict)


class LocalInvoker:
    """Replay a route without a socket.

    Holds the exact stage list registered with the transport, so a local
    call and a networked call with the same input see the same validation
    outcome.
    """

    def __init__(self, method: str, path: str, stages: Sequence[Stage]) -> None:
        self.method = method.upper()
        self.path = path
        self.stages = tuple(stages)
        self._pattern = compile_path(path)

    def __repr__(self) -> str:
        return f"<LocalInvoker {self.method} {self.path}>"

    def matches(self, route: str) -> bool:
        return self._pattern.match(route) is not None

    def _resolve(self, route: str | None, params: Mapping[str, Any] | None) -> tuple[str, dict[str, Any]]:
        resolved = dict(params or {})
        if route is None:
            return fill_path(self.path, resolved), resolved
        match = self._pattern.match(route)
        if match is None:
            raise ValueError(f"{route!r} does not match {self.path!r}")
        return route, {**match.groupdict(), **resolved}

    async def __call__(
        self,
        route: str | None = None,
        *,
        params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> LocalResult:
        path, resolved = self._resolve(route, params)
        request = Request(
            self.method,
            path,
            params=resolved,
            query=query,
            headers=headers,
            body=body,
            route_path=self.path,
        )
        native = LocalResponse()
        response = ContractResponse(native)
        await run_chain(self.stages, request, response)
        finalize_unsent(request, response)
        return LocalResult(
            code=native.status_code,
            response=native.response,
            headers=dict(native.headers),
        )

    def invoke_sync(self, route: str | None = None, **inputs: Any) -> LocalResult:
        """Run :meth:`__call__` to completion from synchronous code."""

        return asyncio.run(self(route, **inputs))


__all__ = ["LocalInvoker", "LocalResponse", "LocalResult"]
