"""Application configuration helpers for the EUROWATCH pipeline."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Type, TypeVar, get_args, get_type_hints


_DEFAULT_CONFIG_LOCATIONS = (
    Path("eurowatch.json"),
    Path.home() / ".config" / "eurowatch" / "config.json",
)

_ENV_PREFIX = "EUROWATCH_"

T = TypeVar("T")


@dataclass(slots=True)
class EuroparlConfig:
    """Configuration for the Europarl document site and the EP Open Data API."""

    base_url: str = "https://www.europarl.europa.eu"
    open_data_url: str = "https://data.europarl.europa.eu/api/v2"
    user_agent: str = "Mozilla/5.0 (compatible; EUROWATCH/1.0)"
    timeout: float = 30.0
    max_retries: int = 3
    backoff_cap: float = 8.0
    min_document_bytes: int = 500
    discovery_max_days: int = 365


@dataclass(slots=True)
class GeminiConfig:
    """Configuration for the Gemini topic classifier."""

    api_key: Optional[str] = None
    base_url: str = "https://generativelanguage.googleapis.com"
    model: str = "gemini-2.5-flash-lite"
    timeout: float = 30.0
    max_retries: int = 3
    max_output_tokens: int = 256
    concurrency: int = 50
    requests_per_minute: int = 5000
    input_cost_per_million: float = 0.10
    output_cost_per_million: float = 0.40


@dataclass(slots=True)
class StorageConfig:
    """Configuration for the local SQLite database."""

    database_url: str = "sqlite:///eurowatch.db"
    echo_sql: bool = False
    busy_timeout: float = 10.0
    busy_retries: int = 6


@dataclass(slots=True)
class LinkerConfig:
    """Policy switches for linking speakers to MEP records."""

    surname_fallback: bool = True


@dataclass(slots=True)
class AppConfig:
    """High level application configuration."""

    europarl: EuroparlConfig
    gemini: GeminiConfig
    storage: StorageConfig
    linker: LinkerConfig


_SECTIONS: Dict[str, type] = {
    "europarl": EuroparlConfig,
    "gemini": GeminiConfig,
    "storage": StorageConfig,
    "linker": LinkerConfig,
}


_TRUE_WORDS = frozenset({"true", "1", "yes", "y", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "n", "off"})


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bool, int, float)):
        return bool(value)
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"{value!r} is not a boolean")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not an integer")
    # "4.0" from the environment is accepted as 4
    return int(float(value)) if isinstance(value, str) else int(value)


_COERCERS: Dict[Any, Callable[[Any], Any]] = {bool: _to_bool, int: _to_int, float: float, str: str}


def _field_type(annotation: Any) -> Any:
    # Optional[X] fields are coerced as X.
    members = [member for member in get_args(annotation) if member is not type(None)]
    return members[0] if len(members) == 1 else annotation


def _build_section(cls: Type[T], overrides: Dict[str, Any]) -> T:
    """Instantiate section ``cls`` from ``overrides``; missing or null keys keep their defaults."""

    hints = get_type_hints(cls)
    kwargs: Dict[str, Any] = {}
    for field in fields(cls):
        value = overrides.get(field.name)
        if value is None:
            continue
        convert = _COERCERS.get(_field_type(hints[field.name]))
        try:
            kwargs[field.name] = convert(value) if convert else value
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for {cls.__name__}.{field.name}: {value!r}") from exc
    return cls(**kwargs)


def _env_overrides(section: str) -> Dict[str, str]:
    prefix = f"{_ENV_PREFIX}{section.upper()}_"
    return {key[len(prefix):].lower(): value for key, value in os.environ.items() if key.startswith(prefix)}


def _read_config_file(explicit_path: Optional[Path]) -> Dict[str, Any]:
    candidates = (explicit_path,) if explicit_path else _DEFAULT_CONFIG_LOCATIONS
    path = next((candidate for candidate in candidates if candidate.exists()), None)
    if path is None:
        return {}
    with path.open("r", encoding="utf8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a JSON object")
    return data


def resolve_config_path(explicit_path: Optional[Path] = None) -> Path:
    """Return ``explicit_path``, else the first existing default location, else the per-user location."""

    if explicit_path:
        return explicit_path
    return next(
        (candidate for candidate in _DEFAULT_CONFIG_LOCATIONS if candidate.exists()),
        _DEFAULT_CONFIG_LOCATIONS[-1],
    )


def load_config(explicit_path: Optional[Path] = None) -> AppConfig:
    """Create the application configuration.

    Defaults, an optional JSON configuration file and environment variables
    (``EUROWATCH_SECTION_FIELD``, e.g. ``EUROWATCH_GEMINI_API_KEY``) are merged
    in that order into a single :class:`AppConfig` instance.
    """

    file_data = _read_config_file(explicit_path)
    sections: Dict[str, Any] = {}
    for name, section in _SECTIONS.items():
        overrides = dict(file_data.get(name) or {})
        overrides.update(_env_overrides(name))
        sections[name] = _build_section(section, overrides)
    return AppConfig(**sections)


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    """Persist ``config`` as JSON and return the target path."""

    target = resolve_config_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    data = {name: asdict(getattr(config, name)) for name in _SECTIONS}
    with target.open("w", encoding="utf8") as fh:
        json.dump(data, fh, ensure_ascii=False, indent=2, sort_keys=True)
        fh.write("\n")
    return target


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
