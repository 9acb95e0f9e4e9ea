from __future__ import annotations

import json
from pathlib import Path

import pytest

from aod_dashboard.app.config import AttrDict, get_settings, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "AOD_CONFIG",
        "PORT",
        "SPREADSHEET_ID",
        "SHEET_NAME",
        "GEMINI_API_KEY",
        "CHECKLIST_SPREADSHEET_ID",
        "CHECKLIST_SUBMISSIONS_TAB",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    settings = get_settings()
    assert settings.port == 5000
    assert settings.dashboard_sheet_name == "Zomato Dashboard"
    assert settings.dashboard_read_range == "A1:Z300"
    assert settings.submissions_tab == "ChecklistSubmissions"
    assert settings.dashboard_spreadsheet_id is None
    assert settings.gemini_api_key is None


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SPREADSHEET_ID", "sheet-123")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("GEMINI_API_KEY", "  ")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = get_settings()
    assert settings.dashboard_spreadsheet_id == "sheet-123"
    assert settings.port == 8080
    assert settings.gemini_api_key is None
    assert settings.log_level == "DEBUG"


def test_json_file_is_deep_merged(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SPREADSHEET_ID", "from-env")
    cfg_file = tmp_path / "config.json"
    cfg_file.write_text(json.dumps({"dashboard": {"sheet_name": "Ops"}, "gemini": {"model": "gemini-pro"}}))

    cfg = load_config(str(cfg_file))
    assert isinstance(cfg, AttrDict)
    assert cfg.dashboard.sheet_name == "Ops"
    assert cfg.dashboard.spreadsheet_id == "from-env"
    assert cfg.dashboard.read_range == "A1:Z300"

    settings = get_settings(str(cfg_file))
    assert settings.gemini_model == "gemini-pro"


def test_yaml_and_toml_files(tmp_path: Path, monkeypatch) -> None:
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("checklist:\n  responses_tab: Answers\n")
    assert get_settings(str(yaml_file)).responses_tab == "Answers"

    toml_file = tmp_path / "config.toml"
    toml_file.write_text('[server]\nport = 9001\n')
    monkeypatch.setenv("AOD_CONFIG", str(toml_file))
    assert get_settings().port == 9001


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.json"))
