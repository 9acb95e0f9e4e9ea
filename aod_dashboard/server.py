from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from . import __version__
from .app.config import Settings, get_settings
from .dependencies import get_app_settings, get_gemini_client, get_google_services
from .routers import router as api_router
from .services.gemini import GeminiClient
from .services.google_clients import GoogleServices, GoogleServicesUnavailable

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    settings: Settings = app.state.settings
    app.state.google = GoogleServices(settings)
    app.state.gemini = GeminiClient(
        settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
    )
    if not settings.dashboard_spreadsheet_id:
        logger.warning("SPREADSHEET_ID is not set; dashboard endpoints will fail")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; AI insights use rule-based fallbacks")
    try:
        app.state.google.connect()
    except GoogleServicesUnavailable as e:
        # Don't crash the server; endpoints retry the connection on demand
        logger.warning("Failed to initialize Google services at startup: %s", e)
    yield
    # Shutdown
    app.state.google.close()
    app.state.gemini.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="AOD Dashboard API", version=__version__, lifespan=lifespan)
    app.state.settings = settings or get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[app.state.settings.frontend_url],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)

    @app.get("/favicon.ico", include_in_schema=False)
    def favicon() -> Response:
        """Return an empty response so browsers stop logging 404 errors."""

        return Response(status_code=204)

    @app.get("/health")
    def health(
        settings: Settings = Depends(get_app_settings),
        google: GoogleServices = Depends(get_google_services),
        gemini: GeminiClient = Depends(get_gemini_client),
    ) -> Dict[str, Any]:
        def _flag(value: Any) -> str:
            return "Set" if value else "Missing"

        return {
            "status": "OK" if google.connected else "Not Connected",
            "services": {
                "googleSheets": "Connected" if google.connected else "Disconnected",
                "googleDrive": "Connected" if google.connected else "Disconnected",
                "geminiApi": "Configured" if gemini.configured else "Not Configured",
            },
            "environment": {
                "dashboardSpreadsheetId": _flag(settings.dashboard_spreadsheet_id),
                "dashboardSheetName": _flag(settings.dashboard_sheet_name),
                "checklistSpreadsheetId": _flag(settings.checklist_spreadsheet_id),
                "geminiApiKey": _flag(settings.gemini_api_key),
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/")
    def root(request: Request) -> Dict[str, Any]:
        # Routes pulled in through include_router are not flat entries in app.routes
        endpoints = sorted(request.app.openapi()["paths"])
        return {
            "message": "AOD Dashboard API Server",
            "version": __version__,
            "status": "Running",
            "endpoints": endpoints,
        }

    return app


app = create_app()
