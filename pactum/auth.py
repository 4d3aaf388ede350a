"""Credential verification, role mapping and access enforcement."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Protocol, Tuple, runtime_checkable

from infrastructure.configuration import DEFAULT_JWT_SECRET

from .contracts import AuthPolicy
from .errors import AuthorizationError
from .http import Request, maybe_await

MISSING_TOKEN = "No Authorization token provided."
INVALID_FORMAT = "Invalid Authorization token format."
INVALID_TOKEN = "Invalid Authorization token."
INSUFFICIENT_PERMISSIONS = "User does not have sufficient permissions to perform action."
INCORRECT_ROLE = "User does not have correct role to perform action."


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def create_jwt(payload: Dict[str, Any], secret: str) -> str:
    """Encode *payload* as a JWT using HS256."""

    header = {"alg": "HS256", "typ": "JWT"}

    def b64(obj: Dict[str, Any]) -> str:
        return _b64encode(json.dumps(obj, separators=(",", ":")).encode())

    signing_input = f"{b64(header)}.{b64(payload)}".encode()
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    return f"{signing_input.decode()}.{_b64encode(signature)}"


def decode_jwt(token: str, secret: str, *, now: float | None = None) -> Dict[str, Any] | None:
    """Return the payload of *token* if the signature and expiry check out."""

    try:
        header_b64, payload_b64, sig_b64 = token.split(".")
        header = json.loads(_b64decode(header_b64))
        if header.get("alg") != "HS256":
            return None
        signing_input = f"{header_b64}.{payload_b64}".encode()
        expected = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        if not hmac.compare_digest(expected, _b64decode(sig_b64)):
            return None
        payload = json.loads(_b64decode(payload_b64))
    except (ValueError, binascii.Error, AttributeError):
        return None
    if not isinstance(payload, dict):
        return None
    if "exp" in payload:
        expires = payload["exp"]
        # exp must be a NumericDate
        if isinstance(expires, bool) or not isinstance(expires, (int, float)):
            return None
        if not expires > (now if now is not None else time.time()):
            return None
    return payload


def parse_basic_auth(credentials: str) -> Tuple[str, str] | None:
    """Decode the base64 ``user:password`` part of a Basic header."""

    try:
        decoded = base64.b64decode(credentials.encode(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        return None
    user, sep, password = decoded.partition(":")
    if not sep:
        return None
    return user, password


@runtime_checkable
class RoleMapper(Protocol):
    """Strategy resolving a caller's roles and permissions."""

    def map_roles(
        self, subject: str, request: Request
    ) -> Iterable[str] | Awaitable[Iterable[str]]:
        ...

    def map_permissions(
        self, subject: str, request: Request
    ) -> Iterable[str] | Awaitable[Iterable[str]]:
        ...


class ClaimsRoleMapper:
    """Read ``roles``/``permissions`` from verified JWT claims."""

    def __init__(self, roles_claim: str = "roles", permissions_claim: str = "permissions") -> None:
        self.roles_claim = roles_claim
        self.permissions_claim = permissions_claim

    def _claim(self, request: Request, name: str) -> list[str]:
        claims = getattr(request.state, "claims", None) or {}
        value = claims.get(name, [])
        if isinstance(value, str):
            return value.split()
        return list(value)

    def map_roles(self, subject: str, request: Request) -> list[str]:
        return self._claim(request, self.roles_claim)

    def map_permissions(self, subject: str, request: Request) -> list[str]:
        return self._claim(request, self.permissions_claim)


@dataclass(frozen=True)
class Credential:
    scheme: str
    token: str
    subject: str
    claims: Dict[str, Any] = field(default_factory=dict)


BasicVerifier = Callable[[str, str], bool]


class Authenticator:
    """Verify a credential, map it to roles/permissions, then enforce the policy."""

    def __init__(
        self,
        jwt_secret: str = DEFAULT_JWT_SECRET,
        role_mapper: RoleMapper | None = None,
        basic_verifier: BasicVerifier | None = None,
    ) -> None:
        self.jwt_secret = jwt_secret
        self.role_mapper = role_mapper or ClaimsRoleMapper()
        self.basic_verifier = basic_verifier

    def verify(self, policy: AuthPolicy, header: Any) -> Credential:
        if not header:
            raise AuthorizationError(MISSING_TOKEN, 401)
        header = str(header)
        prefix = policy.scheme_prefix
        if not header.startswith(prefix):
            raise AuthorizationError(INVALID_FORMAT, 401)
        token = header[len(prefix):].strip()
        if not token:
            raise AuthorizationError(INVALID_FORMAT, 401)

        if policy.method == "jwt":
            claims = decode_jwt(token, self.jwt_secret)
            if claims is None:
                raise AuthorizationError(INVALID_TOKEN, 401)
            subject = claims.get("sub") or claims.get("iss") or ""
            return Credential("jwt", token, str(subject), claims)
        if policy.method == "basic":
            decoded = parse_basic_auth(token)
            if decoded is None:
                raise AuthorizationError(INVALID_FORMAT, 401)
            user, password = decoded
            if self.basic_verifier is not None and not self.basic_verifier(user, password):
                raise AuthorizationError(INVALID_TOKEN, 401)
            return Credential("basic", token, user)
        return Credential(policy.method, token, token)

    async def authorize(self, policy: AuthPolicy, request: Request) -> Credential:
        credential = self.verify(policy, request.header("authorization"))
        request.state.credential = credential
        request.state.claims = credential.claims
        if not policy.enforces_access:
            return credential

        roles = set(await maybe_await(self.role_mapper.map_roles(credential.subject, request)))
        permissions = set(
            await maybe_await(self.role_mapper.map_permissions(credential.subject, request))
        )
        request.state.roles = frozenset(roles)
        request.state.permissions = frozenset(permissions)

        if policy.allowed_roles and not roles & policy.allowed_roles:
            raise AuthorizationError(INCORRECT_ROLE, 403)
        if policy.forbidden_roles and roles & policy.forbidden_roles:
            raise AuthorizationError(INCORRECT_ROLE, 403)
        if policy.allowed_slugs and not permissions & policy.allowed_slugs:
            raise AuthorizationError(INSUFFICIENT_PERMISSIONS, 403)
        if policy.forbidden_slugs and permissions & policy.forbidden_slugs:
            raise AuthorizationError(INSUFFICIENT_PERMISSIONS, 403)
        return credential


__all__ = [
    "Authenticator",
    "BasicVerifier",
    "ClaimsRoleMapper",
    "Credential",
    "INCORRECT_ROLE",
    "INSUFFICIENT_PERMISSIONS",
    "INVALID_FORMAT",
    "INVALID_TOKEN",
    "MISSING_TOKEN",
    "RoleMapper",
    "create_jwt",
    "decode_jwt",
    "parse_basic_auth",
]
