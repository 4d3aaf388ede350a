"""Pactum: contract-driven routing and validation."""

__version__ = "0.1.0"

from .application import ContractApplication
from .auth import Authenticator, ClaimsRoleMapper, create_jwt, decode_jwt, parse_basic_auth
from .codegen import generate_bindings
from .compiler import CompiledSchemaSet, compile_contract
from .contracts import AuthPolicy, ContractDescriptor, ContractOptions
from .errors import (
    AuthorizationError,
    ContractError,
    HandlerError,
    RequestValidationError,
    ResponseValidationError,
)
from .http import ContractResponse, Request
from .local import LocalInvoker, LocalResult
from .middleware import CorsPolicy
from .openapi import generate_openapi_document, openapi_hash
from .pipeline import Next, handle_error, run_chain
from .registry import Route, RouteRegistry
from .router import ContractRouter
from .testclient import Response as TestResponse
from .testclient import TestClient
from .validator import JsonSchemaValidator, PydanticSchemaValidator

__all__ = [
    "__version__",
    "AuthPolicy",
    "Authenticator",
    "AuthorizationError",
    "ClaimsRoleMapper",
    "CompiledSchemaSet",
    "ContractApplication",
    "ContractDescriptor",
    "ContractError",
    "ContractOptions",
    "ContractResponse",
    "ContractRouter",
    "CorsPolicy",
    "HandlerError",
    "JsonSchemaValidator",
    "LocalInvoker",
    "LocalResult",
    "Next",
    "PydanticSchemaValidator",
    "Request",
    "RequestValidationError",
    "ResponseValidationError",
    "Route",
    "RouteRegistry",
    "TestClient",
    "TestResponse",
    "compile_contract",
    "create_jwt",
    "decode_jwt",
    "generate_bindings",
    "generate_openapi_document",
    "handle_error",
    "openapi_hash",
    "parse_basic_auth",
    "run_chain",
]
