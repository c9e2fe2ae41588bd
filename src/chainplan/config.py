"""Configuration: a small pydantic schema resolved from layered sources.

Precedence, lowest to highest: schema defaults < ``[tool.chainplan]`` in
``pyproject.toml`` < ``CHAINPLAN_*`` environment variables < explicit
overrides. A ``.env`` file is loaded once (via python-dotenv) before the
environment is read.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import tomllib
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from chainplan.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

ENV_PREFIX = "CHAINPLAN_"
PYPROJECT_PATH_VAR = "CHAINPLAN_PYPROJECT_PATH"
CONFIG_TOOL_NAME = "chainplan"

# Meta variables that steer resolution but are not settings fields
_META_ENV_FIELDS = {"pyproject_path", "telemetry"}

_DOTENV_LOADED = False


class Settings(BaseModel):
    """Validated, immutable library settings."""

    validate_links: bool = Field(
        default=False,
        description="Verify handler links match the plan before each execution.",
    )
    telemetry_enabled: bool = Field(
        default=False,
        description="Record execution timings and counters.",
    )

    model_config = {"frozen": True, "extra": "forbid"}


def _coerce_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "on"}


def load_env() -> dict[str, Any]:
    """Read ``CHAINPLAN_*`` variables, coercing values for boolean fields."""
    config: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in _META_ENV_FIELDS:
            continue
        info = Settings.model_fields.get(field_name)
        if info is not None and info.annotation is bool:
            config[field_name] = _coerce_bool(value)
        else:
            # Unknown keys are left for the schema to reject
            config[field_name] = value
    return config


def get_pyproject_path() -> Path:
    """Return the project file to read, honouring ``CHAINPLAN_PYPROJECT_PATH``."""
    override = os.environ.get(PYPROJECT_PATH_VAR)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / "pyproject.toml"


def load_pyproject(path: Path | None = None) -> dict[str, Any]:
    """Return the ``[tool.chainplan]`` table, or an empty dict."""
    path = path if path is not None else get_pyproject_path()
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(
            f"Could not read {path}: {e}",
            hint=f"Fix the TOML syntax or point {PYPROJECT_PATH_VAR} elsewhere.",
        ) from e
    section = data.get("tool", {}).get(CONFIG_TOOL_NAME, {})
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"[tool.{CONFIG_TOOL_NAME}] in {path} must be a table"
        )
    return dict(section)


def _try_load_dotenv() -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    from dotenv import load_dotenv

    load_dotenv()
    _DOTENV_LOADED = True


def resolve_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Resolve settings from all sources.

    Raises:
        ConfigurationError: If the merged values fail validation.
    """
    _try_load_dotenv()

    merged: dict[str, Any] = {}
    merged.update(load_pyproject())
    merged.update(load_env())
    merged.update(overrides or {})

    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg")
        raise ConfigurationError(
            f"Configuration validation failed for {loc or 'settings'}: {msg}",
            hint=f"Known settings: {', '.join(sorted(Settings.model_fields))}",
        ) from e

    log.debug("Resolved settings: %s", settings.model_dump())
    return settings
