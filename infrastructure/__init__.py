"""Configuration and monitoring ports consumed by the engine."""

from __future__ import annotations

from .configuration import (
    ALLOWED_ENVS,
    Settings,
    load_settings,
    validate_settings,
)

__all__ = ["Settings", "load_settings", "validate_settings", "ALLOWED_ENVS"]
