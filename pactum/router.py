"""Contract-aware router: compile, register and expose routes locally."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from infrastructure.configuration import Settings

from .asgi import ASGITransport
from .auth import Authenticator, BasicVerifier, RoleMapper
from .compiler import CompiledSchemaSet, compile_contract
from .contracts import ContractDescriptor, as_descriptor
from .local import LocalInvoker, LocalResult
from .middleware import (
    CorsPolicy,
    cors,
    create_context,
    enrich_details,
    parse_request,
    parse_request_auth,
    run_controller,
)
from .pipeline import Stage, as_stage
from .registry import Route, RouteRegistry
from .transport import Transport
from .utils import join_paths, to_camel_case
from .validator.base import SchemaValidator

logger = logging.getLogger("pactum")

Handler = Callable[..., Any]


class ContractRouter:
    """Register routes against one base path.

    Each registration compiles the contract once, appends a :class:`Route`
    to :attr:`routes`, hands the full stage list to the transport and
    returns a :class:`LocalInvoker` running that same list in-process.
    """

    def __init__(
        self,
        base_path: str,
        schema_validator: SchemaValidator,
        *,
        settings: Settings | None = None,
        telemetry: Any = None,
        role_mapper: RoleMapper | None = None,
        basic_verifier: BasicVerifier | None = None,
        cors_policy: CorsPolicy | None = None,
        transport: Transport | None = None,
    ) -> None:
        if not base_path.startswith("/"):
            raise ValueError(f"Base path must start with '/': {base_path!r}")
        self.base_path = base_path.rstrip("/") or "/"
        self.schema_validator = schema_validator
        self.settings = settings or Settings()
        self.telemetry = telemetry
        self.transport: Transport = transport or ASGITransport()
        self.authenticator = Authenticator(
            jwt_secret=self.settings.jwt_secret,
            role_mapper=role_mapper,
            basic_verifier=basic_verifier,
        )
        self.routes = RouteRegistry()
        self.compiled: dict[tuple[str, str], CompiledSchemaSet] = {}
        self.sdk: dict[str, LocalInvoker] = {}
        self._invokers: list[LocalInvoker] = []
        self._stages: list[Stage] = [
            create_context(schema_validator, telemetry),
            cors(cors_policy or CorsPolicy.from_settings(self.settings)),
        ]
        self.transport.use(*self._stages)

    def __repr__(self) -> str:
        return f"<ContractRouter {self.base_path} routes={len(self.routes)}>"

    def use(self, *handlers: Handler) -> "ContractRouter":
        """Add router-wide middleware; applies to routes registered afterwards."""

        stages = [as_stage(handler) for handler in handlers]
        self._stages.extend(stages)
        self.transport.use(*stages)
        return self

    def _register(
        self,
        method: str,
        path: str,
        contract: ContractDescriptor | Mapping[str, Any],
        handlers: tuple[Handler, ...],
    ) -> LocalInvoker:
        if not handlers:
            raise ValueError(f"{method} {path} needs at least one handler")
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")
        descriptor = as_descriptor(contract)
        compiled = compile_contract(self.schema_validator, descriptor)
        route = self.routes.register(Route(self.base_path, path, method, descriptor))

        *middlewares, controller = handlers
        route_stages: list[Stage] = [enrich_details(descriptor, compiled)]
        if descriptor.auth is not None:
            route_stages.append(parse_request_auth(self.authenticator))
        route_stages.append(parse_request)
        route_stages.extend(as_stage(handler) for handler in middlewares)
        route_stages.append(run_controller(controller))

        self.transport.add_route(method, path, *route_stages)
        self.compiled[(method, path)] = compiled
        invoker = LocalInvoker(
            method,
            join_paths(self.base_path, path),
            [*self._stages, *route_stages],
        )
        self._invokers.append(invoker)
        sdk_name = to_camel_case(descriptor.name)
        if sdk_name in self.sdk:
            logger.warning(
                "Contract name %r on %s %s shadows an earlier route in the SDK map",
                descriptor.name,
                route.method,
                join_paths(self.base_path, path),
            )
        self.sdk[sdk_name] = invoker
        return invoker

    def get(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("GET", path, contract, handlers)

    def post(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("POST", path, contract, handlers)

    def put(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("PUT", path, contract, handlers)

    def patch(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("PATCH", path, contract, handlers)

    def delete(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("DELETE", path, contract, handlers)

    def options(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("OPTIONS", path, contract, handlers)

    def head(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("HEAD", path, contract, handlers)

    def trace(self, path: str, contract: Any, *handlers: Handler) -> LocalInvoker:
        return self._register("TRACE", path, contract, handlers)

    async def fetch(
        self,
        path: str,
        *,
        method: str = "GET",
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> LocalResult:
        """Dispatch a concrete path to the matching route in-process."""

        for invoker in self._invokers:
            if invoker.method != method.upper():
                continue
            if invoker.matches(path):
                return await invoker(path, query=query, headers=headers, body=body)
        raise LookupError(f"No route for {method.upper()} {path}")


__all__ = ["ContractRouter", "Handler"]
