"""Ordered, short-circuiting middleware chain shared by every transport."""

from __future__ import annotations

import functools
import inspect
from typing import Any, Awaitable, Callable, Sequence

from infrastructure.monitoring import OpenTelemetryCollector, Telemetry, start_span

from .errors import ContractError, HandlerError
from .http import ContractResponse, Request

Stage = Callable[[Request, ContractResponse, "Next"], Awaitable[None]]
ErrorHandler = Callable[[ContractError, Request, ContractResponse], Awaitable[None]]

_DEFAULT_TELEMETRY = OpenTelemetryCollector()


class Next:
    """``next`` callback handed to each stage.

    Calling it with no argument continues the chain; calling it with an
    error aborts the chain and routes the error to the error handler.
    """

    __slots__ = ("called", "error")

    def __init__(self) -> None:
        self.called = False
        self.error: BaseException | None = None

    def __call__(self, error: BaseException | None = None) -> None:
        self.called = True
        self.error = error


def _takes_next(func: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(func, follow_wrapped=False)
    except (TypeError, ValueError):
        return True
    positional = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional >= 3


def as_stage(func: Callable[..., Any]) -> Stage:
    """Normalize a sync or async ``(req, res[, next])`` callable into a stage.

    Two-argument callables continue the chain automatically unless they
    sent a response.
    """

    if getattr(func, "__pactum_stage__", False):
        return func  # type: ignore[return-value]
    takes_next = _takes_next(func)

    @functools.wraps(func)
    async def stage(request: Request, response: ContractResponse, next_: Next) -> None:
        result = func(request, response, next_) if takes_next else func(request, response)
        if inspect.isawaitable(result):
            await result
        if not takes_next and not response.sent:
            next_()

    stage.__pactum_stage__ = True  # type: ignore[attr-defined]
    return stage


def as_contract_error(error: BaseException) -> ContractError:
    if isinstance(error, ContractError):
        return error
    wrapped = HandlerError(error)
    wrapped.__cause__ = error
    return wrapped


def telemetry_for(request: Request) -> Telemetry:
    return request.telemetry or _DEFAULT_TELEMETRY


async def handle_error(
    error: ContractError, request: Request, response: ContractResponse
) -> None:
    """Log *error* in full and, if nothing was sent yet, answer tersely."""

    correlation_id = request.correlation_id or "unknown"
    status = error.status_code
    telemetry = telemetry_for(request)
    meta: dict[str, Any] = {
        "correlation_id": correlation_id,
        "method": request.method,
        "path": request.path,
        "status": status,
    }
    if status >= 500:
        meta["error"] = error.__cause__ if isinstance(error, HandlerError) else error
    telemetry.log("error" if status >= 500 else "warning", error.message, meta)
    telemetry.record_metric(
        "pactum.errors",
        {"status": status, "error": type(error).__name__, "route": request.route_path},
    )
    if response.sent:
        return
    message = "Internal server error:" if status >= 500 else error.message
    response.status(status).send(f"{message}\n\nCorrelation id: {correlation_id}")


def finalize_unsent(request: Request, response: ContractResponse) -> None:
    """Answer 404 when the chain ended without transmitting anything."""

    if not response.sent:
        response.status(404).send(f"Cannot {request.method} {request.path}")


async def run_chain(
    stages: Sequence[Stage],
    request: Request,
    response: ContractResponse,
    error_handler: ErrorHandler = handle_error,
) -> None:
    """Run *stages* in order until one terminates or forwards an error."""

    with start_span(
        f"{request.method} {request.route_path}",
        {"http.method": request.method, "http.route": request.route_path},
    ):
        for stage in stages:
            next_ = Next()
            try:
                await stage(request, response, next_)
            except Exception as exc:  # noqa: BLE001 - routed to the error handler
                next_(exc)
            if next_.error is not None:
                await error_handler(as_contract_error(next_.error), request, response)
                return
            if not next_.called:
                return


__all__ = [
    "ErrorHandler",
    "Next",
    "Stage",
    "as_contract_error",
    "as_stage",
    "finalize_unsent",
    "handle_error",
    "run_chain",
    "telemetry_for",
]
