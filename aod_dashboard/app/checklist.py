from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dateutil import parser as date_parser
from googleapiclient.errors import HttpError

from ..services.google_clients import GOOGLE_ERRORS

logger = logging.getLogger(__name__)

# Google Sheets serial dates count days from 1899-12-30.
SHEETS_EPOCH = datetime(1899, 12, 30)

_SERIAL_NUMBER = re.compile(r"\d+(?:\.\d*[1-9])?")
_HAS_DIGIT = re.compile(r"\d")

DRIVE_ID_PATTERNS = (
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"/open\?id=([a-zA-Z0-9_-]+)"),
    re.compile(r"^([a-zA-Z0-9_-]+)$"),
)


def get_cell_value(row: Optional[Sequence[Any]], index: int, default: str = "") -> str:
    if not row or index >= len(row):
        return default
    value = row[index]
    if value is None:
        return default
    return str(value).strip()


def format_date(date_string: str) -> str:
    """Normalize a sheet date to ``YYYY-MM-DD``; unparseable text is returned as is."""
    if not date_string:
        return ""
    text = date_string.strip()
    try:
        if _SERIAL_NUMBER.fullmatch(text):
            parsed = SHEETS_EPOCH + timedelta(days=float(text))
        elif "/" in text:
            parts = text.split("/")
            if len(parts) != 3:
                return date_string
            day, month, year = (int(p) for p in parts)
            # Out-of-range day and month roll over into the next month or year.
            months = year * 12 + month - 1
            parsed = datetime(months // 12, months % 12 + 1, 1) + timedelta(days=day - 1)
        elif _HAS_DIGIT.search(text):
            parsed = date_parser.parse(text)
        else:
            return date_string
    except (ValueError, OverflowError) as exc:
        logger.debug("Date formatting failed for %r: %s", date_string, exc)
        return date_string
    return parsed.strftime("%Y-%m-%d")


def _is_blank_row(row: Optional[Sequence[Any]]) -> bool:
    if not row:
        return True
    return all(not cell and cell != 0 for cell in row)


def extract_drive_file_id(link: str) -> Optional[str]:
    for pattern in DRIVE_ID_PATTERNS:
        match = pattern.search(link)
        if match:
            return match.group(1)
    return None


def validate_image_link(image_link: Optional[str], google) -> Dict[str, Any]:
    """Check that a Drive link points at an image the service account can read."""
    if not image_link or not image_link.strip():
        return {"accessible": False, "error": "Empty link", "fileId": None, "url": None}

    file_id = extract_drive_file_id(image_link.strip())
    if not file_id:
        logger.warning("Invalid Google Drive link format: %s", image_link)
        return {"accessible": False, "error": "Invalid link format", "fileId": None, "url": None}

    proxy_url = f"/api/image-proxy/{file_id}"
    try:
        metadata = google.get_file_metadata(file_id)
    except HttpError as exc:
        status = getattr(exc.resp, "status", None)
        account = google.service_account_email or "unknown"
        if status == 404:
            message = f"File not found: {file_id}. Ensure the file is shared with the service account ({account})"
        elif status == 403:
            message = f"Permission denied for file {file_id}. Share the file with the service account ({account})"
        else:
            message = str(exc)
        logger.warning("Error validating image %s: %s", image_link, message)
        return {"accessible": False, "error": message, "fileId": file_id, "url": proxy_url}
    except GOOGLE_ERRORS as exc:
        logger.error("Unexpected error validating image %s: %s", image_link, exc)
        return {"accessible": False, "error": f"Unexpected error: {exc}", "fileId": None, "url": None}

    mime_type = metadata.get("mimeType") or ""
    if not mime_type.startswith("image/"):
        logger.warning("File is not an image: %s, MIME: %s", file_id, mime_type)
        return {
            "accessible": False,
            "error": f"Not an image file (MIME: {mime_type})",
            "fileId": file_id,
            "url": proxy_url,
        }
    return {"accessible": True, "error": None, "fileId": file_id, "url": proxy_url}


@dataclass(frozen=True)
class ChecklistFilters:
    date: Optional[str] = None
    outlet: Optional[str] = None
    time_slot: Optional[str] = None
    employee: Optional[str] = None

    @classmethod
    def normalized(
        cls,
        date: Optional[str] = None,
        outlet: Optional[str] = None,
        time_slot: Optional[str] = None,
        employee: Optional[str] = None,
    ) -> "ChecklistFilters":
        def _lower(value: Optional[str]) -> Optional[str]:
            return value.strip().lower() if value and value.strip() else None

        return cls(
            date=format_date(date.strip()) if date and date.strip() else None,
            outlet=_lower(outlet),
            time_slot=_lower(time_slot),
            employee=_lower(employee),
        )

    def matches(self, submission: Dict[str, Any]) -> bool:
        if self.date and submission["date"] != self.date:
            return False
        for needle, field in (
            (self.outlet, "outlet"),
            (self.time_slot, "timeSlot"),
            (self.employee, "submittedBy"),
        ):
            if needle and needle not in (submission[field] or "").lower():
                return False
        return True

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "date": self.date,
            "outlet": self.outlet,
            "timeSlot": self.time_slot,
            "employee": self.employee,
        }


def parse_submissions(rows: Sequence[Any], filters: Optional[ChecklistFilters] = None) -> List[Dict[str, Any]]:
    """Turn the submissions tab into records, keeping the first row per id."""
    unique: Dict[str, Dict[str, Any]] = {}
    for i in range(1, len(rows)):
        row = rows[i]
        if _is_blank_row(row):
            logger.debug("Skipping empty submission row %d", i + 1)
            continue

        submission_id = get_cell_value(row, 0) or f"AUTO-{i}"
        submission = {
            "submissionId": submission_id,
            "date": format_date(get_cell_value(row, 1)),
            "timeSlot": get_cell_value(row, 2),
            "outlet": get_cell_value(row, 3),
            "submittedBy": get_cell_value(row, 4),
            "timestamp": get_cell_value(row, 5),
            "rowNumber": i + 1,
        }
        if filters is not None and not filters.matches(submission):
            continue
        if submission_id in unique:
            logger.warning(
                "Duplicate submissionId %s at row %d, keeping first occurrence", submission_id, i + 1
            )
            continue
        unique[submission_id] = submission
    return list(unique.values())


def parse_responses(rows: Sequence[Any]) -> List[Dict[str, Any]]:
    responses: List[Dict[str, Any]] = []
    for i in range(1, len(rows)):
        row = rows[i]
        if _is_blank_row(row):
            continue
        responses.append(
            {
                "submissionId": get_cell_value(row, 0) or f"AUTO-{i}",
                "question": get_cell_value(row, 1),
                "answer": get_cell_value(row, 2),
                "imageLink": get_cell_value(row, 3),
                "imageCode": get_cell_value(row, 4),
                "rowNumber": i + 1,
            }
        )
    return responses


def attach_image_validation(responses: Iterable[Dict[str, Any]], google) -> List[Dict[str, Any]]:
    # One Drive lookup per distinct link; the HTTP transport is not thread-safe.
    cache: Dict[str, Dict[str, Any]] = {}
    out: List[Dict[str, Any]] = []
    for r in responses:
        link = r["imageLink"]
        if link:
            if link not in cache:
                cache[link] = validate_image_link(link, google)
            v = cache[link]
        else:
            v = {"accessible": False, "error": "No image link", "fileId": None, "url": None}
        out.append(
            {
                "submissionId": r["submissionId"],
                "question": r["question"],
                "answer": r["answer"],
                "image": v["url"] or link or "",
                "imageCode": r["imageCode"],
                "imageAccessible": bool(v["accessible"]),
                "imageError": v["error"],
                "fileId": v["fileId"],
                "rowNumber": r["rowNumber"],
            }
        )
    return out


def build_checklist_payload(
    submission_rows: Sequence[Any],
    response_rows: Sequence[Any],
    google,
    filters: Optional[ChecklistFilters] = None,
) -> Dict[str, Any]:
    """Join responses onto the (optionally filtered) unique submissions."""
    submissions = parse_submissions(submission_rows, filters)
    responses = attach_image_validation(parse_responses(response_rows), google)

    submission_ids = {s["submissionId"] for s in submissions}
    matched = [r for r in responses if r["submissionId"] in submission_ids]
    unmatched_ids = list(
        dict.fromkeys(r["submissionId"] for r in responses if r["submissionId"] not in submission_ids)
    )
    if unmatched_ids:
        logger.warning("Found %d response submissionIds with no matching submission", len(unmatched_ids))

    original_submissions = max(len(submission_rows) - 1, 0)
    original_responses = max(len(response_rows) - 1, 0)
    metadata: Dict[str, Any] = {
        "submissionCount": len(submissions),
        "responseCount": len(matched),
        "originalSubmissionRows": original_submissions,
        "originalResponseRows": original_responses,
        "droppedSubmissions": original_submissions - len(submissions),
        "droppedResponses": original_responses - len(responses),
        "unmatchedSubmissionIds": unmatched_ids,
    }
    if filters is not None:
        metadata["appliedFilters"] = filters.as_dict()
    logger.info("Processed %d submissions and %d responses", len(submissions), len(matched))
    return {"submissions": submissions, "responses": matched, "metadata": metadata}


def compute_stats(
    submission_rows: Sequence[Any],
    response_rows: Sequence[Any],
    google,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    submissions = []
    for row in submission_rows[1:]:
        if not row:
            continue
        outlet = get_cell_value(row, 3)
        if outlet:
            submissions.append(
                {
                    "date": format_date(get_cell_value(row, 1)),
                    "outlet": outlet,
                    "submittedBy": get_cell_value(row, 4),
                }
            )

    links = [get_cell_value(row, 3) for row in response_rows[1:] if row]
    checked: Dict[str, bool] = {}
    image_count = 0
    for link in links:
        if not link:
            continue
        if link not in checked:
            checked[link] = validate_image_link(link, google)["accessible"]
        if checked[link]:
            image_count += 1

    today_text = (today or datetime.now(timezone.utc).date()).isoformat()
    outlets = sorted({s["outlet"] for s in submissions})
    employees = sorted({s["submittedBy"] for s in submissions if s["submittedBy"]})
    return {
        "totalSubmissions": len(submissions),
        "todaySubmissions": sum(1 for s in submissions if s["date"] == today_text),
        "uniqueOutlets": len(outlets),
        "totalImages": image_count,
        "outlets": outlets,
        "employees": employees,
    }
