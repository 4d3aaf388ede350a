"""Coercion rules shared by every schema backend.

Each ``coerce_*`` function either returns the decoded value or raises
:class:`CoercionError`. Backends wire these into their own validation
hooks so both accept exactly the same inputs.
"""

from __future__ import annotations

import inspect
import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

DIGIT_STRING = re.compile(r"^[0-9]+$")
BOOLEAN_STRING = re.compile(r"^(true|false)$", re.IGNORECASE)

UUID_PATTERN = (
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
EMAIL_PATTERN = (
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$"
)
URI_PATTERN = r"^[A-Za-z][A-Za-z0-9+.-]*:\S*$"

_ISO_DATE = re.compile(
    r"^(\d{4})(?:-(\d{2})(?:-(\d{2}))?)?"
    r"(?:T(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,3}))?)?(Z|[+-]\d{2}:\d{2})?)?$"
)
_MONTH_FIRST = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CoercionError(ValueError):
    """Raised when a value cannot be decoded into the requested type."""


def _digits(text: str) -> int:
    try:
        return int(text)
    except ValueError as exc:
        # longer than the interpreter's int conversion limit
        raise CoercionError("Number is too long") from exc


def _epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return round((value - _EPOCH) / timedelta(milliseconds=1))


def _from_millis(millis: int | float) -> datetime:
    if isinstance(millis, float) and not math.isfinite(millis):
        raise CoercionError("Expected date-like value")
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except (OverflowError, ValueError) as exc:
        raise CoercionError("Expected date-like value") from exc


def coerce_number(value: Any) -> int | float:
    """Decode number-like input.

    Accepts numbers, digit-only strings, booleans (1/0), ``None`` (0),
    dates (epoch milliseconds) and ``Decimal``.
    """

    if isinstance(value, bool):
        return int(value)
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CoercionError("Expected finite number")
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise CoercionError("Expected finite number")
        if value == value.to_integral_value():
            return int(value)
        return coerce_number(float(value))
    if isinstance(value, str) and DIGIT_STRING.match(value):
        return _digits(value)
    if isinstance(value, datetime):
        return _epoch_millis(value)
    if isinstance(value, date):
        return _epoch_millis(datetime(value.year, value.month, value.day))
    raise CoercionError("Expected number-like value")


def coerce_bigint(value: Any) -> int:
    try:
        number = coerce_number(value)
    except CoercionError as exc:
        raise CoercionError("Expected integer-like value") from exc
    if isinstance(number, float):
        if not number.is_integer():
            raise CoercionError("Expected integer-like value")
        return int(number)
    return number


def coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and BOOLEAN_STRING.match(value):
        return value.lower() == "true"
    raise CoercionError("Expected boolean-like value")


def _parse_offset(text: str | None) -> timezone:
    if text is None or text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    hours, minutes = int(text[1:3]), int(text[4:6])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _parse_date_string(text: str) -> datetime:
    if DIGIT_STRING.match(text) and len(text) != 4:
        return _from_millis(_digits(text))
    try:
        match = _ISO_DATE.match(text)
        if match:
            year, month, day, hour, minute, second, fraction, offset = match.groups()
            millis = int(fraction.ljust(3, "0")) if fraction else 0
            return datetime(
                int(year),
                int(month or 1),
                int(day or 1),
                int(hour or 0),
                int(minute or 0),
                int(second or 0),
                millis * 1000,
                tzinfo=_parse_offset(offset),
            )
        match = _MONTH_FIRST.match(text)
        if match:
            month, day, year = match.groups()
            return datetime(int(year), int(month), int(day), tzinfo=timezone.utc)
        match = _YEAR_FIRST.match(text)
        if match:
            year, month, day = match.groups()
            return datetime(int(year), int(month), int(day), tzinfo=timezone.utc)
    except ValueError as exc:
        raise CoercionError("Expected date-like value") from exc
    raise CoercionError("Expected date-like value")


def coerce_date(value: Any) -> datetime:
    """Decode date-like input into an aware ``datetime``.

    Naive inputs are taken as UTC. Booleans and ``None`` map to epoch
    milliseconds 1/0.
    """

    if isinstance(value, bool):
        return _from_millis(int(value))
    if value is None:
        return _from_millis(0)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_millis(value)
    if isinstance(value, str):
        return _parse_date_string(value)
    raise CoercionError("Expected date-like value")


def coerce_binary(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise CoercionError("Expected binary content")


def check_awaitable(value: Any) -> Any:
    if not inspect.isawaitable(value):
        raise CoercionError("Expected awaitable value")
    return value


def check_callable(value: Any) -> Any:
    if not callable(value):
        raise CoercionError("Expected callable value")
    return value


def reject(value: Any) -> Any:
    raise CoercionError("No value is accepted here")


__all__ = [
    "BOOLEAN_STRING",
    "CoercionError",
    "DIGIT_STRING",
    "EMAIL_PATTERN",
    "URI_PATTERN",
    "UUID_PATTERN",
    "check_awaitable",
    "check_callable",
    "coerce_bigint",
    "coerce_binary",
    "coerce_boolean",
    "coerce_date",
    "coerce_number",
    "reject",
]
