from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class AttrDict(dict):
    """Dict with attribute access (x.y)."""
    def __getattr__(self, name: str):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e
    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value
    def __delattr__(self, name: str) -> None:
        del self[name]


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def default_config() -> Dict[str, Any]:
    """Nested defaults read from the environment at call time."""
    return {
        "server": {
            "host": _env("SERVER_HOST", "0.0.0.0"),
            "port": int(_env("PORT", "5000")),
            "frontend_url": _env("FRONTEND_URL", "http://localhost:3000"),
            "log_level": _env("LOG_LEVEL", "INFO"),
        },
        "google": {
            "service_account_file": _env("GOOGLE_SERVICE_ACCOUNT_FILE", "service-account-key.json"),
            "service_account_json": _env("GOOGLE_SERVICE_ACCOUNT_JSON"),
        },
        "dashboard": {
            "spreadsheet_id": _env("SPREADSHEET_ID"),
            "sheet_name": _env("SHEET_NAME", "Zomato Dashboard"),
            "read_range": "A1:Z300",
            "debug_range": "A1:Z50",
        },
        "checklist": {
            "spreadsheet_id": _env("CHECKLIST_SPREADSHEET_ID"),
            "submissions_tab": _env("CHECKLIST_SUBMISSIONS_TAB", "ChecklistSubmissions"),
            "responses_tab": _env("CHECKLIST_RESPONSES_TAB", "ChecklistResponses"),
        },
        "gemini": {
            "api_key": _env("GEMINI_API_KEY"),
            "model": _env("GEMINI_MODEL", "gemini-1.5-flash-latest"),
            "base_url": "https://generativelanguage.googleapis.com/v1beta",
        },
    }


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext == ".json":
        return json.loads(text)
    if ext in {".yml", ".yaml"}:
        return yaml.safe_load(text) or {}
    if ext == ".toml":
        return tomllib.loads(text)
    # Fallback: try JSON
    try:
        return json.loads(text)
    except ValueError as e:
        raise RuntimeError(f"Unsupported config format for {path}. {e}")


def _deep_merge(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def load_config(config_path: Optional[str] = None) -> AttrDict:
    """Build the runtime configuration.
    - Start from the environment-derived defaults
    - If a config file is given (or named by AOD_CONFIG), deep-merge it on top
    - Return an AttrDict for dict+attribute access
    """
    base = default_config()
    path_text = config_path or _env("AOD_CONFIG")
    if path_text:
        _deep_merge(base, _read_config_file(Path(path_text)) or {})
    return AttrDict({k: AttrDict(v) if isinstance(v, dict) else v for k, v in base.items()})


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 5000
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    service_account_file: Optional[str] = "service-account-key.json"
    service_account_json: Optional[str] = None
    dashboard_spreadsheet_id: Optional[str] = None
    dashboard_sheet_name: str = "Zomato Dashboard"
    dashboard_read_range: str = "A1:Z300"
    dashboard_debug_range: str = "A1:Z50"
    checklist_spreadsheet_id: Optional[str] = None
    submissions_tab: str = "ChecklistSubmissions"
    responses_tab: str = "ChecklistResponses"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"


def get_settings(config_path: Optional[str] = None) -> Settings:
    cfg = load_config(config_path)
    sv, gg, db, cl, gm = cfg.server, cfg.google, cfg.dashboard, cfg.checklist, cfg.gemini
    return Settings(
        host=str(sv.get("host", "0.0.0.0")),
        port=int(sv.get("port", 5000)),
        frontend_url=str(sv.get("frontend_url", "http://localhost:3000")),
        log_level=str(sv.get("log_level", "INFO")).upper(),
        service_account_file=gg.get("service_account_file"),
        service_account_json=gg.get("service_account_json"),
        dashboard_spreadsheet_id=db.get("spreadsheet_id"),
        dashboard_sheet_name=str(db.get("sheet_name", "Zomato Dashboard")),
        dashboard_read_range=str(db.get("read_range", "A1:Z300")),
        dashboard_debug_range=str(db.get("debug_range", "A1:Z50")),
        checklist_spreadsheet_id=cl.get("spreadsheet_id"),
        submissions_tab=str(cl.get("submissions_tab", "ChecklistSubmissions")),
        responses_tab=str(cl.get("responses_tab", "ChecklistResponses")),
        gemini_api_key=gm.get("api_key"),
        gemini_model=str(gm.get("model", "gemini-1.5-flash-latest")),
        gemini_base_url=str(gm.get("base_url", "https://generativelanguage.googleapis.com/v1beta")),
    )
