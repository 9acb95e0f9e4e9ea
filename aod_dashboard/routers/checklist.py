from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response
from googleapiclient.errors import HttpError
from pydantic import BaseModel, ConfigDict, Field

from ..app.checklist import ChecklistFilters, build_checklist_payload, compute_stats
from ..app.config import Settings
from ..dependencies import get_app_settings, get_google_services
from ..services.google_clients import GOOGLE_ERRORS, GoogleServices

router = APIRouter(prefix="/api", tags=["checklist"])
logger = logging.getLogger(__name__)


class FilterBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: Optional[str] = None
    outlet: Optional[str] = None
    time_slot: Optional[str] = Field(default=None, alias="timeSlot")
    employee: Optional[str] = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_response(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc), "timestamp": _timestamp()},
    )


def _fetch_tabs(settings: Settings, google: GoogleServices) -> Tuple[list, list]:
    spreadsheet_id = settings.checklist_spreadsheet_id
    submissions = google.get_values(spreadsheet_id, f"{settings.submissions_tab}!A:Z")
    responses = google.get_values(spreadsheet_id, f"{settings.responses_tab}!A:Z")
    logger.info("Found %d submission rows and %d response rows", len(submissions), len(responses))
    return submissions, responses


def _checklist_response(
    settings: Settings, google: GoogleServices, filters: Optional[ChecklistFilters] = None
) -> Dict[str, Any]:
    submissions, responses = _fetch_tabs(settings, google)
    payload = build_checklist_payload(submissions, responses, google, filters)
    payload["metadata"].update(
        {
            "spreadsheetId": settings.checklist_spreadsheet_id,
            "submissionsTab": settings.submissions_tab,
            "responsesTab": settings.responses_tab,
        }
    )
    return {"success": True, **payload, "timestamp": _timestamp()}


@router.get("/checklist-data")
def checklist_data(
    settings: Settings = Depends(get_app_settings),
    google: GoogleServices = Depends(get_google_services),
) -> Dict[str, Any]:
    try:
        return _checklist_response(settings, google)
    except GOOGLE_ERRORS as exc:
        logger.error("Error fetching checklist data: %s", exc)
        return _error_response(exc)


@router.post("/checklist-filter")
def checklist_filter(
    body: FilterBody,
    settings: Settings = Depends(get_app_settings),
    google: GoogleServices = Depends(get_google_services),
) -> Dict[str, Any]:
    filters = ChecklistFilters.normalized(
        date=body.date, outlet=body.outlet, time_slot=body.time_slot, employee=body.employee
    )
    logger.info("Filtering checklist data with %s", filters.as_dict())
    try:
        return _checklist_response(settings, google, filters)
    except GOOGLE_ERRORS as exc:
        logger.error("Error filtering checklist data: %s", exc)
        return _error_response(exc)


@router.get("/checklist-stats")
def checklist_stats(
    settings: Settings = Depends(get_app_settings),
    google: GoogleServices = Depends(get_google_services),
) -> Dict[str, Any]:
    try:
        submissions, responses = _fetch_tabs(settings, google)
        stats = compute_stats(submissions, responses, google)
    except GOOGLE_ERRORS as exc:
        logger.error("Error calculating checklist stats: %s", exc)
        return _error_response(exc)
    return {"success": True, "stats": stats, "timestamp": _timestamp()}


@router.get("/debug-checklist")
def debug_checklist(
    settings: Settings = Depends(get_app_settings),
    google: GoogleServices = Depends(get_google_services),
) -> Dict[str, Any]:
    try:
        submissions, responses = _fetch_tabs(settings, google)
    except GOOGLE_ERRORS as exc:
        logger.error("Debug checklist error: %s", exc)
        return _error_response(exc)
    return {
        "success": True,
        "spreadsheetId": settings.checklist_spreadsheet_id,
        "tabs": {"submissions": settings.submissions_tab, "responses": settings.responses_tab},
        "submissionsData": submissions,
        "responsesData": responses,
        "rowCounts": {"submissions": len(submissions), "responses": len(responses)},
        "timestamp": _timestamp(),
    }


@router.get("/image-proxy/{file_id}")
def image_proxy(file_id: str, google: GoogleServices = Depends(get_google_services)) -> Response:
    """Serve a Drive image through the API so the browser avoids CORS issues."""

    try:
        metadata = google.get_file_metadata(file_id)
        content = google.download_file(file_id)
    except HttpError as exc:
        code = getattr(exc.resp, "status", 500)
        logger.error("Image proxy error for file %s: %s", file_id, exc)
        if code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Image not found",
                    "fileId": file_id,
                    "message": "The requested image file was not found or is not accessible.",
                },
            )
        if code == 403:
            return JSONResponse(
                status_code=403,
                content={
                    "error": "Access denied",
                    "fileId": file_id,
                    "message": "Permission denied. Make sure the file is shared with the service account.",
                    "serviceAccount": google.service_account_email,
                },
            )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "fileId": file_id, "message": str(exc)},
        )
    except GOOGLE_ERRORS as exc:
        logger.error("Image proxy unavailable: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "fileId": file_id, "message": str(exc)},
        )

    return Response(
        content=content,
        media_type=metadata.get("mimeType") or "image/jpeg",
        headers={"Cache-Control": "public, max-age=3600"},
    )
