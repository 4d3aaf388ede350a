"""Application object: mounts routers and serves the OpenAPI surface."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from infrastructure.configuration import Settings, load_settings
from infrastructure.monitoring import OpenTelemetryCollector, Telemetry

from .asgi import ASGITransport, Receive, Scope, Send
from .http import ContractResponse, Request
from .middleware import create_context
from .openapi import generate_openapi_document, openapi_hash
from .pipeline import as_stage
from .registry import Route
from .router import ContractRouter
from .validator.base import SchemaValidator

logger = logging.getLogger("pactum")

SWAGGER_HTML = """<!DOCTYPE html>
<html>
<head>
<title>{title}</title>
<link rel=\"stylesheet\"
 href=\"https://unpkg.com/swagger-ui-dist/swagger-ui.css\">
</head>
<body>
<div id=\"swagger-ui\"></div>
<script src=\"https://unpkg.com/swagger-ui-dist/swagger-ui-bundle.js\"></script>
<script>
SwaggerUIBundle({{url: \"{url}\", dom_id: \"#swagger-ui\"}});
</script>
</body>
</html>"""


class ContractApplication:
    """ASGI application composed of :class:`ContractRouter` instances.

    Routers may be added until the first request (or the lifespan startup
    event); after that every registry is frozen.
    """

    def __init__(
        self,
        schema_validator: SchemaValidator,
        *,
        settings: Settings | None = None,
        telemetry: Telemetry | None = None,
    ) -> None:
        self.schema_validator = schema_validator
        self.settings = settings or load_settings()
        self.telemetry = telemetry or OpenTelemetryCollector(self.settings.api_title)
        self.routers: list[ContractRouter] = []
        self.transport = ASGITransport()
        self._frozen = False
        self._document: dict[str, Any] | None = None
        self.transport.on_event("startup")(self.freeze)
        self._register_openapi_routes()

    def router(self, base_path: str, **options: Any) -> ContractRouter:
        """Create a router sharing this application's validator and settings."""

        options.setdefault("settings", self.settings)
        options.setdefault("telemetry", self.telemetry)
        router = ContractRouter(base_path, self.schema_validator, **options)
        self.use(router)
        return router

    def use(self, router: ContractRouter) -> "ContractApplication":
        if self._frozen:
            raise RuntimeError("Cannot mount routers after the application started serving")
        if not isinstance(router.transport, ASGITransport):
            raise TypeError("Only routers built on ASGITransport can be mounted")
        self.routers.append(router)
        self.transport.mount(router.base_path, router.transport)
        self._document = None
        return self

    @property
    def routes(self) -> Iterator[Route]:
        for router in self.routers:
            yield from router.routes

    def freeze(self) -> None:
        """Make every registry read-only; called once serving starts."""

        if self._frozen:
            return
        for router in self.routers:
            router.routes.freeze()
        self._frozen = True
        logger.info(
            "Serving %d routes across %d routers",
            sum(len(router.routes) for router in self.routers),
            len(self.routers),
        )

    def openapi(self) -> dict[str, Any]:
        if self._document is None or not self._frozen:
            self._document = generate_openapi_document(self.routers, self.settings)
        return self._document

    def openapi_hash(self) -> str:
        return openapi_hash(self.openapi())

    def _register_openapi_routes(self) -> None:
        settings = self.settings
        context = create_context(self.schema_validator, self.telemetry)

        def serve_document(request: Request, response: ContractResponse) -> None:
            response.status(200).json(self.openapi())

        def serve_hash(request: Request, response: ContractResponse) -> None:
            response.status(200).send(self.openapi_hash())

        def serve_docs(request: Request, response: ContractResponse) -> None:
            response.set_header("content-type", "text/html; charset=utf-8")
            response.status(200).send(
                SWAGGER_HTML.format(title=settings.api_title, url=settings.openapi_path)
            )

        self.transport.get(settings.openapi_path, context, as_stage(serve_document))
        self.transport.get(settings.openapi_hash_path, context, as_stage(serve_hash))
        self.transport.get(settings.docs_url, context, as_stage(serve_docs))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            self.freeze()
        await self.transport(scope, receive, send)


__all__ = ["ContractApplication", "SWAGGER_HTML"]
