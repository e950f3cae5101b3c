"""
tests/test_settings.py
Unit tests for apiwizard.settings: defaults, file loading, environment
overrides and validation.
"""

from __future__ import annotations

import json
import os
import pathlib

import pytest
import yaml

from apiwizard.settings import ENV_PREFIX, WizardSettings, load_settings, load_settings_file


# ===========================================================================
# Model
# ===========================================================================


class TestWizardSettings:
    """Defaults and derived headers."""

    def test_defaults(self) -> None:
        settings = WizardSettings()
        assert settings.discovery_stale_seconds == 30.0
        assert settings.discovery_max_attempts == 3
        assert settings.preview_max_attempts == 2
        assert settings.schema_path.format(service="db") == "/db/_schema"

    def test_headers(self) -> None:
        settings = WizardSettings(api_key="k", session_token="s")
        assert settings.headers() == {
            "Accept": "application/json",
            "X-DreamFactory-API-Key": "k",
            "X-DreamFactory-Session-Token": "s",
        }

    def test_headers_without_credentials(self) -> None:
        assert WizardSettings().headers() == {"Accept": "application/json"}

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            WizardSettings(colour="blue")  # type: ignore[call-arg]


# ===========================================================================
# Files
# ===========================================================================


class TestSettingsFiles:
    """JSON / YAML loading."""

    def test_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "wizard.yaml"
        path.write_text(yaml.safe_dump({"base_url": "https://a.example/api/v2", "api_key": "k"}))
        settings = load_settings(path)
        assert settings.base_url == "https://a.example/api/v2"
        assert settings.api_key == "k"

    def test_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "wizard.json"
        path.write_text(json.dumps({"preview_stale_seconds": 5}))
        assert load_settings(path).preview_stale_seconds == 5.0

    def test_unknown_extension_falls_back_to_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "wizard.conf"
        path.write_text("request_timeout: 12\n")
        assert load_settings_file(path) == {"request_timeout": 12}

    def test_empty_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_settings_file(path) == {}

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings_file(tmp_path / "nope.yaml")

    def test_directory_rejected(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ValueError):
            load_settings_file(tmp_path)

    def test_invalid_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_settings_file(path)

    def test_top_level_list_rejected(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_settings_file(path)


# ===========================================================================
# Precedence & validation
# ===========================================================================


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)


class TestLoadSettings:
    """File < environment < explicit overrides."""

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APIWIZARD_BASE_URL", "https://env.example/api/v2")
        monkeypatch.setenv("APIWIZARD_DISCOVERY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("UNRELATED", "x")
        settings = load_settings()
        assert settings.base_url == "https://env.example/api/v2"
        assert settings.discovery_max_attempts == 5

    def test_environment_reaches_direct_construction(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APIWIZARD_MAX_SELECTED_TABLES", "7")
        assert WizardSettings().max_selected_tables == 7

    def test_precedence(self, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "wizard.yaml"
        path.write_text("base_url: https://file.example\napi_key: file-key\nrequest_timeout: 9\n")
        monkeypatch.setenv("APIWIZARD_BASE_URL", "https://env.example")
        monkeypatch.setenv("APIWIZARD_API_KEY", "env-key")
        settings = load_settings(
            path,
            overrides={"base_url": "https://flag.example", "api_key": None},
        )
        assert settings.base_url == "https://flag.example"
        assert settings.api_key == "env-key"
        assert settings.request_timeout == 9.0

    def test_file_values_do_not_leak(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "wizard.yaml"
        path.write_text("request_timeout: 9\n")
        load_settings(path)
        assert WizardSettings().request_timeout == 30.0

    def test_unknown_file_key(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "wizard.yaml"
        path.write_text("colour: blue\n")
        with pytest.raises(ValueError, match="Settings validation failed"):
            load_settings(path)

    def test_invalid_environment_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APIWIZARD_REQUEST_TIMEOUT", "-3")
        with pytest.raises(ValueError, match="Settings validation failed"):
            load_settings()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"discovery_max_attempts": 0},
            {"request_timeout": -1},
            {"retry_base_delay": 10, "retry_max_delay": 1},
        ],
    )
    def test_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValueError, match="Settings validation failed"):
            load_settings(overrides=overrides)
