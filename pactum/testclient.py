"""Simple in-memory HTTP client for ContractApplication."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlencode

from .asgi import Receive, Scope, Send


@dataclass
class Response:
    """Container for HTTP response data."""

    status_code: int
    text: str
    headers: Mapping[str, str]
    content: bytes
    chunks: list[str] | None = None

    def json(self) -> Any:
        """Return the body parsed as JSON."""
        return json.loads(self.text)


class TestClient:
    """Drive an ASGI application without a server."""

    __test__ = False  # prevent Pytest from treating this as a test case

    def __init__(self, app: Any) -> None:
        self.app = app

    async def _dispatch(self, scope: Scope, body: bytes) -> tuple[int, list[tuple[bytes, bytes]], list[bytes]]:
        delivered = False
        status = 500
        raw_headers: list[tuple[bytes, bytes]] = []
        parts: list[bytes] = []

        async def receive() -> dict[str, Any]:
            nonlocal delivered
            if delivered:
                return {"type": "http.disconnect"}
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}

        async def send(message: dict[str, Any]) -> None:
            nonlocal status, raw_headers
            if message["type"] == "http.response.start":
                status = message["status"]
                raw_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body":
                parts.append(message.get("body", b""))

        await self.app(scope, receive, send)
        return status, raw_headers, parts

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        body: bytes | str | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send an HTTP request and return the response."""
        if body is not None and json_body is not None:
            raise ValueError("provide either json_body or body")
        request_headers = {key.lower(): str(value) for key, value in (headers or {}).items()}
        if json_body is not None:
            payload = json.dumps(json_body).encode()
            request_headers.setdefault("content-type", "application/json")
        elif isinstance(body, str):
            payload = body.encode()
        else:
            payload = body or b""
        scope: Scope = {
            "type": "http",
            "method": method.upper(),
            "path": path,
            "query_string": urlencode(params or {}, doseq=True).encode(),
            "headers": [
                (key.encode("latin-1"), value.encode("latin-1"))
                for key, value in request_headers.items()
            ],
        }
        status, raw_headers, parts = asyncio.run(self._dispatch(scope, payload))
        response_headers = {
            key.decode("latin-1"): value.decode("latin-1") for key, value in raw_headers
        }
        content = b"".join(parts)
        try:
            text = content.decode()
        except UnicodeDecodeError:
            text = content.decode("latin1")
        chunks = None
        if response_headers.get("content-type", "").startswith("text/event-stream"):
            chunks = [part.decode() for part in parts if part]
        return Response(status, text, response_headers, content, chunks)

    def lifespan(self) -> list[str]:
        """Run the startup and shutdown events; return the messages sent."""

        messages = iter(
            [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        )
        sent: list[str] = []

        async def receive() -> dict[str, Any]:
            return next(messages)

        async def send(message: dict[str, Any]) -> None:
            sent.append(message["type"])

        asyncio.run(self.app({"type": "lifespan"}, receive, send))
        return sent

    def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a GET request."""
        return self.request("GET", path, params=params, headers=headers)

    def post(
        self,
        path: str,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a POST request."""
        return self.request(
            "POST", path, json_body=json_body, params=params, headers=headers
        )

    def put(
        self,
        path: str,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return self.request("PUT", path, json_body=json_body, params=params, headers=headers)

    def patch(
        self,
        path: str,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return self.request("PATCH", path, json_body=json_body, params=params, headers=headers)

    def delete(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return self.request("DELETE", path, params=params, headers=headers)

    def options(
        self,
        path: str,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return self.request("OPTIONS", path, headers=headers)


__all__ = ["Response", "TestClient"]
