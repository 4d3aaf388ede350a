"""Append-only registry of compiled routes."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterator

from .contracts import ContractDescriptor


@dataclass(frozen=True)
class Route:
    base_path: str
    path: str
    method: str
    contract_details: ContractDescriptor


class RouteRegistry:
    """Routes in registration order; read-only once frozen."""

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._frozen = False
        self._lock = threading.Lock()

    def register(self, route: Route) -> Route:
        with self._lock:
            if self._frozen:
                raise RuntimeError(
                    f"Cannot register {route.method} {route.base_path}{route.path}: "
                    "registry is frozen"
                )
            self._routes.append(route)
        return route

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __iter__(self) -> Iterator[Route]:
        return iter(tuple(self._routes))

    def __len__(self) -> int:
        return len(self._routes)

    def __getitem__(self, index: int) -> Route:
        return self._routes[index]


__all__ = ["Route", "RouteRegistry"]
