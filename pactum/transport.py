"""Minimal surface the engine requires from a transport binding."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .pipeline import Stage


@runtime_checkable
class Transport(Protocol):
    def use(self, *stages: Stage) -> Any:
        ...

    def add_route(self, method: str, path: str, *stages: Stage) -> Any:
        ...

    def get(self, path: str, *stages: Stage) -> Any:
        ...

    def post(self, path: str, *stages: Stage) -> Any:
        ...

    def put(self, path: str, *stages: Stage) -> Any:
        ...

    def patch(self, path: str, *stages: Stage) -> Any:
        ...

    def delete(self, path: str, *stages: Stage) -> Any:
        ...


__all__ = ["Transport"]
