"""Configuration helpers for the EUROWATCH pipeline."""
from __future__ import annotations

from .settings import (
    AppConfig,
    EuroparlConfig,
    GeminiConfig,
    LinkerConfig,
    StorageConfig,
    load_config,
    resolve_config_path,
    save_config,
)

__all__ = [
    "AppConfig",
    "EuroparlConfig",
    "GeminiConfig",
    "LinkerConfig",
    "StorageConfig",
    "load_config",
    "resolve_config_path",
    "save_config",
]
