"""Environment-specific configuration loader."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


ALLOWED_ENVS = {"dev", "test", "prod"}
DEFAULT_JWT_SECRET = "your-256-bit-secret"


def _flag(value: str) -> bool:
    return value.lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Runtime settings populated from the environment."""

    environment: str = "dev"
    debug: bool = False
    jwt_secret: str = DEFAULT_JWT_SECRET
    api_version: str = "1.0.0"
    version_prefix: str = "v1"
    docs_path: str = "/docs"
    api_title: str = "API Definition"
    port: int = 8000
    cors_allow_origin: str = "*"
    cors_allow_methods: str = "*"
    cors_allow_headers: str = "*"
    cors_allow_credentials: bool = False
    cors_expose_headers: list[str] = field(
        default_factory=lambda: ["x-correlation-id"]
    )

    @property
    def server_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def openapi_path(self) -> str:
        return f"/api/{self.version_prefix}/openapi"

    @property
    def openapi_hash_path(self) -> str:
        return f"/api/{self.version_prefix}/openapi-hash"

    @property
    def docs_url(self) -> str:
        return f"/api/{self.version_prefix}{self.docs_path}"


def validate_settings(settings: Settings) -> None:
    """Validate *settings* for safe operation.

    Raises
    ------
    ValueError
        If the environment is unsupported, the docs path is malformed, or
        production settings are insecure.
    """

    env = settings.environment
    if env not in ALLOWED_ENVS:
        raise ValueError(f"Unsupported environment: {env}")
    if not settings.docs_path.startswith("/"):
        raise ValueError(f"Docs path must start with '/': {settings.docs_path}")
    if env == "prod" and settings.debug:
        raise ValueError("Debug must be disabled in production")
    if env == "prod" and settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise ValueError("JWT_SECRET must be set in production")


def load_settings() -> Settings:
    """Return configuration derived from the process environment.

    ``PACTUM_*`` variables tune the engine itself; ``JWT_SECRET``,
    ``VERSION``, ``API_TITLE``, ``DOCS_PATH`` and ``PORT`` keep the names
    deployments already export.
    """

    env = os.getenv("PACTUM_ENV", "dev").lower()
    settings = Settings(
        environment=env,
        debug=_flag(os.getenv("PACTUM_DEBUG", "0")),
        jwt_secret=os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET),
        api_version=os.getenv("VERSION", "1.0.0"),
        version_prefix=os.getenv("PACTUM_VERSION_PREFIX", "v1"),
        docs_path=os.getenv("DOCS_PATH", "/docs"),
        api_title=os.getenv("API_TITLE", "API Definition"),
        port=int(os.getenv("PORT", "8000")),
        cors_allow_origin=os.getenv("PACTUM_CORS_ORIGIN", "*"),
        cors_allow_methods=os.getenv("PACTUM_CORS_METHODS", "*"),
        cors_allow_headers=os.getenv("PACTUM_CORS_HEADERS", "*"),
        cors_allow_credentials=_flag(os.getenv("PACTUM_CORS_CREDENTIALS", "0")),
    )
    validate_settings(settings)
    return settings


__all__ = [
    "ALLOWED_ENVS",
    "DEFAULT_JWT_SECRET",
    "Settings",
    "load_settings",
    "validate_settings",
]
