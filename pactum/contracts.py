"""Declarative per-route contract descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping

ValidationPolicy = Literal["error", "warning", "none"]
AuthMethod = Literal["jwt", "basic", "other"]

VALIDATION_POLICIES = ("error", "warning", "none")
AUTH_METHODS = ("jwt", "basic", "other")


def _frozen_set(values: Iterable[str] | None) -> frozenset[str] | None:
    if values is None:
        return None
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


@dataclass(frozen=True)
class AuthPolicy:
    """Credential scheme plus the role and permission sets a route enforces."""

    method: AuthMethod = "jwt"
    token_prefix: str | None = None
    allowed_roles: frozenset[str] | None = None
    forbidden_roles: frozenset[str] | None = None
    allowed_slugs: frozenset[str] | None = None
    forbidden_slugs: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.method not in AUTH_METHODS:
            raise ValueError(f"Unsupported auth method: {self.method}")
        if self.method == "other" and not self.token_prefix:
            raise ValueError("Auth method 'other' requires a token_prefix")
        for name in ("allowed_roles", "forbidden_roles", "allowed_slugs", "forbidden_slugs"):
            object.__setattr__(self, name, _frozen_set(getattr(self, name)))

    @property
    def scheme_prefix(self) -> str:
        """Return the ``Authorization`` header prefix including the space."""

        if self.method == "jwt":
            return "Bearer "
        if self.method == "basic":
            return "Basic "
        return f"{self.token_prefix} "

    @property
    def enforces_access(self) -> bool:
        return any(
            value
            for value in (
                self.allowed_roles,
                self.forbidden_roles,
                self.allowed_slugs,
                self.forbidden_slugs,
            )
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AuthPolicy":
        return cls(
            method=data.get("method", "jwt"),
            token_prefix=data.get("tokenPrefix", data.get("token_prefix")),
            allowed_roles=data.get("allowedRoles", data.get("allowed_roles")),
            forbidden_roles=data.get("forbiddenRoles", data.get("forbidden_roles")),
            allowed_slugs=data.get("allowedSlugs", data.get("allowed_slugs")),
            forbidden_slugs=data.get("forbiddenSlugs", data.get("forbidden_slugs")),
        )


BodyKind = Literal["json", "text", "file", "multipartForm", "urlEncodedForm"]
ResponseKind = Literal["json", "text", "file", "event"]

BODY_CONTENT_TYPES = {
    "json": "application/json",
    "text": "text/plain",
    "file": "application/octet-stream",
    "multipartForm": "multipart/form-data",
    "urlEncodedForm": "application/x-www-form-urlencoded",
}
RESPONSE_CONTENT_TYPES = {
    "json": "application/json",
    "text": "text/plain",
    "file": "application/octet-stream",
    "event": "text/event-stream",
}
_CONTENT_TYPE_KEYS = ("contentType", "content_type")


def _typed_entry(
    data: Any, kinds: Mapping[str, str], aliases: Mapping[str, str]
) -> tuple[str, Any, str | None] | None:
    """Split ``{<kind>: schema, contentType?}`` into its parts.

    Anything else, including an object shape that merely has a ``text``
    key next to other keys, is not a typed entry.
    """

    if not isinstance(data, Mapping):
        return None
    keys = [key for key in data if key not in _CONTENT_TYPE_KEYS]
    if len(keys) != 1:
        return None
    kind = aliases.get(keys[0], keys[0])
    if kind not in kinds or data[keys[0]] is None:
        return None
    content_type = next((data[key] for key in _CONTENT_TYPE_KEYS if key in data), None)
    return kind, data[keys[0]], content_type


@dataclass(frozen=True)
class TypedBody:
    """Request body schema plus the parser and media type it implies."""

    kind: BodyKind
    schema: Any
    content_type: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in BODY_CONTENT_TYPES:
            raise ValueError(f"Unsupported body kind: {self.kind}")

    @property
    def media_type(self) -> str:
        return self.content_type or BODY_CONTENT_TYPES[self.kind]

    @classmethod
    def discriminate(cls, body: Any) -> "TypedBody | None":
        """``{"urlEncodedForm": {...}}`` -> form body; bare schemas are JSON."""

        if body is None or isinstance(body, TypedBody):
            return body
        entry = _typed_entry(body, BODY_CONTENT_TYPES, {"schema": "json"})
        if entry is None:
            return cls("json", body)
        return cls(*entry)


@dataclass(frozen=True)
class TypedResponse:
    kind: ResponseKind
    schema: Any
    content_type: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in RESPONSE_CONTENT_TYPES:
            raise ValueError(f"Unsupported response kind: {self.kind}")

    @property
    def media_type(self) -> str:
        return self.content_type or RESPONSE_CONTENT_TYPES[self.kind]

    @classmethod
    def discriminate(cls, response: Any) -> "TypedResponse":
        if isinstance(response, TypedResponse):
            return response
        entry = _typed_entry(
            response, RESPONSE_CONTENT_TYPES, {"schema": "json", "buffer": "file"}
        )
        if entry is None:
            return cls("json", response)
        return cls(*entry)


@dataclass(frozen=True)
class ContractOptions:
    request_validation: ValidationPolicy = "error"
    response_validation: ValidationPolicy = "error"

    def __post_init__(self) -> None:
        for name in ("request_validation", "response_validation"):
            if getattr(self, name) not in VALIDATION_POLICIES:
                raise ValueError(f"Unsupported {name} policy: {getattr(self, name)}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ContractOptions":
        return cls(
            request_validation=data.get(
                "requestValidation", data.get("request_validation", "error")
            ),
            response_validation=data.get(
                "responseValidation", data.get("response_validation", "error")
            ),
        )


@dataclass(frozen=True)
class ContractDescriptor:
    """Everything a route declares about its input, output and access policy.

    Schemas may be shorthand (nested dicts, literals) or native schemas of
    whichever backend the router is built with.
    """

    name: str
    summary: str
    responses: Mapping[int, Any]
    params: Any = None
    query: Any = None
    request_headers: Any = None
    response_headers: Any = None
    body: Any = None
    auth: AuthPolicy | None = None
    options: ContractOptions = field(default_factory=ContractOptions)
    request_body: TypedBody | None = field(init=False, repr=False, compare=False)
    response_bodies: Mapping[int, TypedResponse] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Contract name must not be empty")
        if not self.responses:
            raise ValueError(f"Contract {self.name!r} declares no responses")
        responses = {int(code): schema for code, schema in self.responses.items()}
        object.__setattr__(self, "responses", MappingProxyType(responses))
        object.__setattr__(self, "request_body", TypedBody.discriminate(self.body))
        object.__setattr__(
            self,
            "response_bodies",
            MappingProxyType(
                {code: TypedResponse.discriminate(schema) for code, schema in responses.items()}
            ),
        )

    @property
    def has_body(self) -> bool:
        return self.body is not None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ContractDescriptor":
        """Build a descriptor from its wire shape.

        Accepts the camelCase keys ``requestHeaders``/``responseHeaders`` as
        well as their snake_case spellings.
        """

        auth = data.get("auth")
        options = data.get("options")
        return cls(
            name=data["name"],
            summary=data.get("summary", ""),
            responses=data["responses"],
            params=data.get("params"),
            query=data.get("query"),
            request_headers=data.get("requestHeaders", data.get("request_headers")),
            response_headers=data.get("responseHeaders", data.get("response_headers")),
            body=data.get("body"),
            auth=AuthPolicy.from_mapping(auth) if isinstance(auth, Mapping) else auth,
            options=(
                ContractOptions.from_mapping(options)
                if isinstance(options, Mapping)
                else options or ContractOptions()
            ),
        )


def as_descriptor(contract: ContractDescriptor | Mapping[str, Any]) -> ContractDescriptor:
    if isinstance(contract, ContractDescriptor):
        return contract
    return ContractDescriptor.from_mapping(contract)


__all__ = [
    "AUTH_METHODS",
    "AuthMethod",
    "AuthPolicy",
    "BODY_CONTENT_TYPES",
    "BodyKind",
    "ContractDescriptor",
    "ContractOptions",
    "RESPONSE_CONTENT_TYPES",
    "ResponseKind",
    "TypedBody",
    "TypedResponse",
    "VALIDATION_POLICIES",
    "ValidationPolicy",
    "as_descriptor",
]
