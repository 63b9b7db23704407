"""Settings for schema sources, fetch behavior and strictness.

Values are layered: defaults, then a YAML config file, then ``UCP_SCHEMA_*``
environment variables. Command-line flags are applied on top by the CLI.

Example ``.ucp-schema.yaml``::

    schema_local_base: ./schemas
    schema_remote_base: https://ucp.dev/draft
    strict: false
    http_timeout: 10
    max_workers: 4
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

import yaml

from ucp_schema.errors import ConfigError

DEFAULT_CONFIG_FILE = ".ucp-schema.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    schema_local_base: Path | None = None
    schema_remote_base: str | None = None
    strict: bool = False
    http_timeout: float = 10.0
    max_workers: int = 4

    def with_overrides(self, **overrides) -> Settings:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "schema_local_base" in changes:
            changes["schema_local_base"] = Path(changes["schema_local_base"])
        return replace(self, **changes)


def load_settings(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | Path | None = None,
) -> Settings:
    """Build settings from a config file and the environment.

    Args:
        config_path: Explicit YAML file. Must exist when given.
        env: Environment mapping (defaults to ``os.environ``).
        cwd: Directory searched for ``.ucp-schema.yaml`` when no explicit
            path is given.
    """
    env = os.environ if env is None else env
    settings = Settings()

    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}", str(path))
        settings = _apply_file(settings, path)
    else:
        default = Path(cwd or Path.cwd()) / DEFAULT_CONFIG_FILE
        if default.is_file():
            settings = _apply_file(settings, default)

    return _apply_env(settings, env)


def _apply_file(settings: Settings, path: Path) -> Settings:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid config file {path}: {e}", str(path)) from e

    if data is None:
        return settings
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping", str(path))

    local_base = data.get("schema_local_base")
    if local_base is not None:
        # Relative bases are anchored at the config file's directory
        local_base = (path.parent / local_base).resolve()

    return settings.with_overrides(
        schema_local_base=local_base,
        schema_remote_base=data.get("schema_remote_base"),
        strict=_as_bool(data.get("strict"), "strict"),
        http_timeout=_as_number(data.get("http_timeout"), "http_timeout", float),
        max_workers=_as_number(data.get("max_workers"), "max_workers", int),
    )


def _apply_env(settings: Settings, env: Mapping[str, str]) -> Settings:
    return settings.with_overrides(
        schema_local_base=env.get("UCP_SCHEMA_LOCAL_BASE") or None,
        schema_remote_base=env.get("UCP_SCHEMA_REMOTE_BASE") or None,
        strict=_as_bool(env.get("UCP_SCHEMA_STRICT"), "UCP_SCHEMA_STRICT"),
        http_timeout=_as_number(env.get("UCP_SCHEMA_HTTP_TIMEOUT"), "UCP_SCHEMA_HTTP_TIMEOUT", float),
        max_workers=_as_number(env.get("UCP_SCHEMA_MAX_WORKERS"), "UCP_SCHEMA_MAX_WORKERS", int),
    )


def _as_bool(value, name: str) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    raise ConfigError(f"'{name}' must be a boolean, got {value!r}")


def _as_number(value, name: str, kind):
    if value is None or value == "":
        return None
    try:
        number = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from e
    if number <= 0:
        raise ConfigError(f"'{name}' must be positive, got {value!r}")
    return number
