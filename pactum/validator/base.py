"""Backend-neutral schema validator contract and parse results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class ParseError:
    """One violated leaf of a schema."""

    path: tuple[str, ...]
    message: str


@dataclass(frozen=True)
class ParseResult:
    """Outcome of ``parse``: either a coerced ``value`` or a list of ``errors``."""

    ok: bool
    value: Any = None
    errors: tuple[ParseError, ...] = ()

    @classmethod
    def success(cls, value: Any) -> "ParseResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, errors: Iterable[ParseError]) -> "ParseResult":
        return cls(ok=False, errors=tuple(errors))


@runtime_checkable
class CompiledSchema(Protocol):
    """Reusable checker produced by :meth:`SchemaValidator.compile`."""

    schema: Any

    def validate(self, value: Any) -> bool:
        ...

    def parse(self, value: Any) -> ParseResult:
        ...


@runtime_checkable
class SchemaValidator(Protocol):
    """Contract every validation backend satisfies.

    Primitive schemas are exposed as attributes so contracts can be
    written against any backend with the same shorthand::

        {"id": sv.uuid, "amount": sv.number, "tags": sv.array(sv.string)}
    """

    string: Any
    uuid: Any
    email: Any
    uri: Any
    number: Any
    bigint: Any
    boolean: Any
    date: Any
    file: Any
    nullish: Any
    any: Any
    unknown: Any
    never: Any

    def is_schema(self, value: Any) -> bool:
        """Return True when *value* is already a native schema."""

    def schemify(self, schema: Any) -> Any:
        """Convert idiomatic shorthand into a native schema."""

    def optional(self, schema: Any) -> Any:
        ...

    def array(self, schema: Any) -> Any:
        ...

    def union(self, schemas: Sequence[Any]) -> Any:
        ...

    def literal(self, value: Any) -> Any:
        ...

    def enum_(self, values: Any) -> Any:
        ...

    def record(self, schema: Any) -> Any:
        ...

    def promise(self, schema: Any) -> Any:
        ...

    def function_(self, args: Sequence[Any], returns: Any) -> Any:
        ...

    def compile(self, schema: Any) -> CompiledSchema:
        ...

    def validate(self, schema: Any, value: Any) -> bool:
        ...

    def parse(self, schema: Any, value: Any) -> ParseResult:
        """Coerce and validate *value*; never raises."""

    def openapi(self, schema: Any) -> dict[str, Any]:
        ...


def enum_values(values: Any) -> list[Any]:
    """Return the member values of an ``Enum`` class or a mapping."""

    if isinstance(values, Mapping):
        return list(values.values())
    members = getattr(values, "__members__", None)
    if members is not None:
        return [member.value for member in members.values()]
    return list(values)


def pretty_print_parse_errors(
    errors: Sequence[ParseError], kind: str
) -> str | None:
    """Render *errors* as a numbered block suitable for logs."""

    if not errors:
        return None
    lines = [
        f"{index}. Path: {' > '.join(error.path) or '<root>'}, Message: {error.message}"
        for index, error in enumerate(errors, start=1)
    ]
    return f"{kind} Validation Errors:\n" + "\n".join(lines)


__all__ = [
    "CompiledSchema",
    "ParseError",
    "ParseResult",
    "SchemaValidator",
    "enum_values",
    "pretty_print_parse_errors",
]
