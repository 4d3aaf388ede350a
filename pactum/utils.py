"""Small helpers shared across the package."""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from typing import Any, Mapping

_WORD_BOUNDARY = re.compile(r"[^0-9A-Za-z]+")
_PATH_TOKEN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def safe_stringify(value: Any) -> str:
    """Render *value* as a string without ever raising."""

    if isinstance(value, str):
        return value
    if isinstance(value, BaseException):
        return json.dumps({"name": type(value).__name__, "message": str(value)})
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def to_camel_case(name: str) -> str:
    """``"Get user by id"`` -> ``"getUserById"``."""

    words = [word for word in _WORD_BOUNDARY.split(name) if word]
    if not words:
        return ""
    head, *tail = words
    return head[0].lower() + head[1:] + "".join(word[0].upper() + word[1:] for word in tail)


def join_paths(base_path: str, path: str) -> str:
    if path in ("", "/"):
        return base_path or "/"
    if base_path in ("", "/"):
        return path
    return base_path.rstrip("/") + "/" + path.lstrip("/")


def to_openapi_path(path: str) -> str:
    """Rewrite ``:name`` tokens as ``{name}``."""

    return _PATH_TOKEN.sub(r"{\1}", path)


def path_parameters(path: str) -> list[str]:
    return _PATH_TOKEN.findall(path)


def fill_path(path: str, params: Mapping[str, Any]) -> str:
    """Substitute ``:name`` tokens with *params*; unknown tokens stay as is."""

    return _PATH_TOKEN.sub(
        lambda match: str(params.get(match.group(1), match.group(0))), path
    )


def compile_path(path: str) -> re.Pattern[str]:
    """Return a regex matching *path* with ``:name`` segments as groups."""

    pattern = ""
    last = 0
    for match in _PATH_TOKEN.finditer(path):
        pattern += re.escape(path[last : match.start()])
        pattern += f"(?P<{match.group(1)}>[^/]+)"
        last = match.end()
    pattern += re.escape(path[last:])
    return re.compile(f"^{pattern}/?$")


__all__ = [
    "compile_path",
    "fill_path",
    "join_paths",
    "path_parameters",
    "safe_stringify",
    "to_camel_case",
    "to_openapi_path",
]
