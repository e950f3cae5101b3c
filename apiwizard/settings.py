# File: apiwizard/settings.py
"""
NexaFlow APIWizard - Settings
==============================
Connection, caching and retry settings for the workflow engine.

Sources, lowest to highest precedence:

    1. Field defaults below.
    2. A JSON or YAML settings file (``load_settings(path)``).
    3. ``APIWIZARD_*`` environment variables.
    4. Explicit overrides (the CLI passes its flags here).

Example YAML::

    base_url: https://admin.example.com/api/v2
    api_key: your-app-api-key
    discovery_stale_seconds: 30
    discovery_max_attempts: 3
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type

import yaml
from pydantic import Field, ValidationError, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.settings")

ENV_PREFIX: str = "APIWIZARD_"

#: Values read from a settings file by ``load_settings``; they rank below the
#: environment.
_file_values: ContextVar[Dict[str, Any]] = ContextVar("apiwizard_file_settings", default={})


class _FileSettingsSource(PydanticBaseSettingsSource):
    """Settings-file values, already parsed into a mapping."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return _file_values.get().get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return dict(_file_values.get())


class WizardSettings(BaseSettings):
    """Everything the engine needs to talk to the admin service."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
    )

    # -- Connection ---------------------------------------------------------
    base_url: str = Field(
        default="http://localhost/api/v2",
        description="Admin service root URL.",
    )
    api_key: Optional[str] = Field(default=None, description="Sent as X-DreamFactory-API-Key.")
    session_token: Optional[str] = Field(
        default=None, description="Sent as X-DreamFactory-Session-Token."
    )

    # -- URL templates ({service}, {table}, {relationship} substituted) -----
    schema_path: str = "/{service}/_schema"
    preview_path: str = "/system/service/{service}/preview"
    generate_path: str = "/system/service/{service}/generate"
    relationship_path: str = "/{service}/_schema/{table}/_related/{relationship}"

    # -- Timeouts (seconds) -------------------------------------------------
    request_timeout: float = Field(
        default=30.0, gt=0, description="Max wait per retryable attempt."
    )
    generation_timeout: float = Field(
        default=300.0, gt=0, description="Max wait for a generation run."
    )

    # -- Caching ------------------------------------------------------------
    discovery_stale_seconds: float = Field(default=30.0, ge=0)
    preview_stale_seconds: float = Field(default=60.0, ge=0)

    # -- Retry policy -------------------------------------------------------
    discovery_max_attempts: int = Field(default=3, ge=1, le=10)
    preview_max_attempts: int = Field(default=2, ge=1, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)

    # -- Limits -------------------------------------------------------------
    max_selected_tables: int = Field(default=50, ge=1)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, _FileSettingsSource(settings_cls))

    @model_validator(mode="after")
    def _validate_delays(self) -> "WizardSettings":
        if self.retry_base_delay > self.retry_max_delay:
            raise ValueError(
                f"retry_base_delay ({self.retry_base_delay}) must be "
                f"<= retry_max_delay ({self.retry_max_delay})."
            )
        return self

    def headers(self) -> Dict[str, str]:
        """Auth headers to attach to every request."""
        result: Dict[str, str] = {"Accept": "application/json"}
        if self.api_key:
            result["X-DreamFactory-API-Key"] = self.api_key
        if self.session_token:
            result["X-DreamFactory-Session-Token"] = self.session_token
        return result


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_settings_file(path: Path) -> Dict[str, Any]:
    """
    Load a settings file (JSON or YAML), dispatching on the extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Settings path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s', trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


def load_settings(
    path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> WizardSettings:
    """
    Build ``WizardSettings`` from file, environment and explicit overrides.

    ``None`` values in ``overrides`` are skipped so unset CLI flags fall
    through to the lower layers.

    Raises:
        ValueError: If the merged values fail validation.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        data = load_settings_file(path)
        logger.debug("Loaded settings from %s.", path)

    explicit: Dict[str, Any] = {
        k: v for k, v in (overrides or {}).items() if v is not None
    }
    token = _file_values.set(data)
    try:
        return WizardSettings(**explicit)
    except ValidationError as exc:
        raise ValueError(f"Settings validation failed: {exc}") from exc
    finally:
        _file_values.reset(token)
