from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ..app.config import Settings
from ..app.dashboard_data import process_sheet_data
from ..dependencies import get_app_settings, get_gemini_client, get_google_services
from ..services.gemini import GeminiClient
from ..services.google_clients import GOOGLE_ERRORS, GoogleServices

router = APIRouter(prefix="/api", tags=["dashboard"])
logger = logging.getLogger(__name__)

PERIOD_MARKER = "Day Data"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_response(exc: Exception, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "error": str(exc), **extra}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def find_period_markers(rows: List[List[Any]]) -> List[Dict[str, Any]]:
    markers = []
    for r, row in enumerate(rows):
        for c, cell in enumerate(row or []):
            if cell and PERIOD_MARKER in str(cell):
                markers.append({"period": str(cell), "row": r + 1, "column": c + 1})
    return markers


@router.get("/dashboard-data")
def dashboard_data(
    period: str = Query(default="7 Day"),
    settings: Settings = Depends(get_app_settings),
    google: GoogleServices = Depends(get_google_services),
    gemini: GeminiClient = Depends(get_gemini_client),
) -> Dict[str, Any]:
    """Read the dashboard tab and extract one period block."""

    range_a1 = f"{settings.dashboard_sheet_name}!{settings.dashboard_read_range}"
    logger.info("Dashboard data requested for %s from %s", period, range_a1)
    try:
        rows = google.get_values(settings.dashboard_spreadsheet_id, range_a1)
    except GOOGLE_ERRORS as exc:
        logger.error("Error fetching dashboard data: %s", exc)
        return _error_response(exc)

    data = process_sheet_data(rows, period)
    return {
        "success": True,
        "data": data,
        "period": period,
        "aiEnabled": gemini.configured,
        "timestamp": _timestamp(),
    }


@router.get("/debug-sheet")
def debug_sheet(
    settings: Settings = Depends(get_app_settings),
    google: GoogleServices = Depends(get_google_services),
) -> Dict[str, Any]:
    range_a1 = f"{settings.dashboard_sheet_name}!{settings.dashboard_debug_range}"
    try:
        rows = google.get_values(settings.dashboard_spreadsheet_id, range_a1)
    except GOOGLE_ERRORS as exc:
        logger.error("Error fetching debug dashboard data: %s", exc)
        return _error_response(
            exc,
            spreadsheetId=settings.dashboard_spreadsheet_id,
            sheetName=settings.dashboard_sheet_name,
        )

    markers = find_period_markers(rows)
    logger.debug("Found period markers: %s", markers)
    return {
        "success": True,
        "spreadsheetId": settings.dashboard_spreadsheet_id,
        "sheetName": settings.dashboard_sheet_name,
        "rawData": rows[:30],
        "totalRows": len(rows),
        "periodMarkers": markers,
        "firstRow": rows[0] if rows else None,
        "timestamp": _timestamp(),
    }
