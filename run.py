from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

import uvicorn

from aod_dashboard.app.config import get_settings
from aod_dashboard.server import create_app

ROOT = Path(__file__).resolve().parent
DEFAULT_CONFIG = ROOT / "config.json"

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the AOD dashboard API server")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG if DEFAULT_CONFIG.exists() else None,
        help=(
            "Optional path to a JSON/YAML/TOML config file (defaults to config.json when present, "
            "otherwise relies on the AOD_CONFIG environment variable or built-in defaults)"
        ),
    )
    parser.add_argument("--host", default=None, help="Host interface to bind (overrides SERVER_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (overrides PORT)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    return parser.parse_args()


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def main() -> None:
    args = parse_args()
    config_path = str(args.config) if args.config else None
    settings = get_settings(config_path)
    configure_logging(settings.log_level)

    host = args.host or settings.host
    port = args.port or settings.port
    if args.reload:
        # Reload needs an import string; configuration then comes from AOD_CONFIG / env.
        if config_path:
            os.environ["AOD_CONFIG"] = config_path
        uvicorn.run("aod_dashboard.server:app", host=host, port=port, reload=True, log_config=None)
        return
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
