"""Error taxonomy raised and forwarded through the request pipeline."""

from __future__ import annotations

from typing import Sequence

from .validator.base import ParseError, pretty_print_parse_errors


class ContractError(Exception):
    """Base class carrying the HTTP status a failure maps to."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class RequestValidationError(ContractError):
    """Inbound params, query, headers or body failed the compiled schema."""

    status_code = 400

    def __init__(self, errors: Sequence[ParseError]) -> None:
        self.errors = tuple(errors)
        detail = pretty_print_parse_errors(self.errors, "Request") or ""
        super().__init__(f"Invalid request parameters:\n{detail}".rstrip())


class ResponseValidationError(ContractError):
    """Outbound body or headers failed the compiled schema.

    Advisory only; by the time it is raised the response is already sent.
    """

    status_code = 500

    def __init__(
        self,
        errors: Sequence[ParseError] = (),
        header_errors: Sequence[ParseError] = (),
    ) -> None:
        self.errors = tuple(errors)
        self.header_errors = tuple(header_errors)
        sections = [
            pretty_print_parse_errors(self.header_errors, "Header"),
            pretty_print_parse_errors(self.errors, "Response"),
        ]
        detail = "\n\n".join(section for section in sections if section)
        super().__init__(f"Invalid response:\n{detail}".rstrip())


class AuthorizationError(ContractError):
    """Missing, malformed or insufficient credentials (401/403)."""

    status_code = 401


class HandlerError(ContractError):
    """Uncaught exception raised by user code."""

    status_code = 500

    def __init__(self, original: BaseException) -> None:
        super().__init__(f"{type(original).__name__}: {original}")
        self.original = original


__all__ = [
    "AuthorizationError",
    "ContractError",
    "HandlerError",
    "RequestValidationError",
    "ResponseValidationError",
]
