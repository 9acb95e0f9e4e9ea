from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

import httplib2
import pytest
from googleapiclient.errors import HttpError

from aod_dashboard.app.checklist import (
    ChecklistFilters,
    build_checklist_payload,
    compute_stats,
    extract_drive_file_id,
    format_date,
    get_cell_value,
    parse_responses,
    parse_submissions,
    validate_image_link,
)


class FakeDrive:
    service_account_email = "reporter@project.iam.gserviceaccount.com"

    def __init__(self, files: Dict[str, Any]) -> None:
        self.files = files
        self.lookups: List[str] = []

    def get_file_metadata(self, file_id: str) -> Dict[str, Any]:
        self.lookups.append(file_id)
        entry = self.files.get(file_id)
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, int):
            raise HttpError(httplib2.Response({"status": str(entry)}), b"")
        if entry is None:
            raise HttpError(httplib2.Response({"status": "404"}), b"")
        return {"id": file_id, "mimeType": entry}


SUBMISSIONS = [
    ["Submission ID", "Date", "Time Slot", "Outlet", "Submitted By", "Timestamp"],
    ["S1", "05/03/2024", "Morning", "Indiranagar", "Asha", "09:01"],
    ["S2", "2024-03-06", "Evening", "Koramangala", "Ravi", "18:30"],
    ["", "", "", "", "", ""],
    ["S1", "07/03/2024", "Night", "HSR Layout", "Meena", "22:10"],
    ["", "45358", "Morning", "Whitefield", "Asha"],
]

RESPONSES = [
    ["Submission ID", "Question", "Answer", "Image Link", "Image Code"],
    ["S1", "Floor clean?", "Yes", "https://drive.google.com/file/d/img_1/view", "IMG1"],
    ["S2", "Fridge temp", "4C", "", ""],
    ["S9", "Orphan", "No", "", ""],
    [],
    ["S2", "Counter photo", "", "https://drive.google.com/open?id=doc_2", "IMG2"],
]


def test_get_cell_value_handles_short_rows() -> None:
    assert get_cell_value(["a", " b "], 1) == "b"
    assert get_cell_value(["a"], 3) == ""
    assert get_cell_value(None, 0, "n/a") == "n/a"
    assert get_cell_value([None], 0) == ""
    assert get_cell_value([42], 0) == "42"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("05/03/2024", "2024-03-05"),
        ("2024-03-06", "2024-03-06"),
        ("45358", "2024-03-07"),
        ("1/2", "1/2"),
        ("31/02/2024", "2024-03-02"),
        ("00/01/2024", "2023-12-31"),
        ("01/13/2024", "2025-01-01"),
        ("a/b/c", "a/b/c"),
        ("Monday", "Monday"),
        ("not a date", "not a date"),
    ],
)
def test_format_date(raw: str, expected: str) -> None:
    assert format_date(raw) == expected


@pytest.mark.parametrize(
    "link, expected",
    [
        ("https://drive.google.com/file/d/abc-123_X/view?usp=sharing", "abc-123_X"),
        ("https://drive.google.com/open?id=xyz_9", "xyz_9"),
        ("plainFileId", "plainFileId"),
        ("https://example.com/photo.jpg", None),
    ],
)
def test_extract_drive_file_id(link: str, expected) -> None:
    assert extract_drive_file_id(link) == expected


def test_validate_image_link_outcomes() -> None:
    drive = FakeDrive({"img": "image/png", "doc": "application/pdf", "secret": 403})

    assert validate_image_link("", drive)["error"] == "Empty link"
    assert validate_image_link("https://example.com/a.jpg", drive)["error"] == "Invalid link format"

    ok = validate_image_link("https://drive.google.com/file/d/img/view", drive)
    assert ok == {"accessible": True, "error": None, "fileId": "img", "url": "/api/image-proxy/img"}

    not_image = validate_image_link("doc", drive)
    assert not_image["accessible"] is False
    assert "application/pdf" in not_image["error"]

    denied = validate_image_link("secret", drive)
    assert denied["accessible"] is False
    assert denied["error"].startswith("Permission denied for file secret")
    assert drive.service_account_email in denied["error"]

    missing = validate_image_link("gone", drive)
    assert missing["error"].startswith("File not found: gone")
    assert missing["url"] == "/api/image-proxy/gone"


def test_parse_submissions_dedupes_and_autonumbers() -> None:
    submissions = parse_submissions(SUBMISSIONS)
    ids = [s["submissionId"] for s in submissions]
    assert ids == ["S1", "S2", "AUTO-5"]
    first = submissions[0]
    assert first["outlet"] == "Indiranagar"
    assert first["date"] == "2024-03-05"
    assert first["rowNumber"] == 2
    assert submissions[2]["date"] == "2024-03-07"


def test_filters_are_normalized_and_case_insensitive() -> None:
    filters = ChecklistFilters.normalized(outlet="  KORA ", employee=None, time_slot="", date=None)
    assert filters.as_dict() == {"date": None, "outlet": "kora", "timeSlot": None, "employee": None}
    assert [s["submissionId"] for s in parse_submissions(SUBMISSIONS, filters)] == ["S2"]

    by_date = ChecklistFilters.normalized(date="06/03/2024")
    assert [s["submissionId"] for s in parse_submissions(SUBMISSIONS, by_date)] == ["S2"]


def test_filtered_duplicate_does_not_shadow_later_match() -> None:
    filters = ChecklistFilters.normalized(employee="meena")
    submissions = parse_submissions(SUBMISSIONS, filters)
    assert [(s["submissionId"], s["outlet"]) for s in submissions] == [("S1", "HSR Layout")]


def test_parse_responses_skips_blank_rows() -> None:
    responses = parse_responses(RESPONSES)
    assert [r["submissionId"] for r in responses] == ["S1", "S2", "S9", "S2"]
    assert responses[-1]["rowNumber"] == 6


def test_build_payload_joins_and_reports_unmatched() -> None:
    drive = FakeDrive({"img_1": "image/jpeg", "doc_2": "application/pdf"})
    payload = build_checklist_payload(SUBMISSIONS, RESPONSES, drive)

    assert [r["submissionId"] for r in payload["responses"]] == ["S1", "S2", "S2"]
    first = payload["responses"][0]
    assert first["image"] == "/api/image-proxy/img_1"
    assert first["imageAccessible"] is True
    no_image = payload["responses"][1]
    assert no_image["image"] == ""
    assert no_image["imageError"] == "No image link"

    meta = payload["metadata"]
    assert meta["unmatchedSubmissionIds"] == ["S9"]
    assert meta["submissionCount"] == 3
    assert meta["responseCount"] == 3
    assert meta["originalSubmissionRows"] == 5
    assert meta["droppedSubmissions"] == 2
    assert meta["droppedResponses"] == 1
    assert "appliedFilters" not in meta


def test_image_links_are_validated_once() -> None:
    rows = [RESPONSES[0], ["S1", "q1", "a", "img", ""], ["S1", "q2", "a", "img", ""]]
    drive = FakeDrive({"img": "image/png"})
    build_checklist_payload(SUBMISSIONS, rows, drive)
    assert drive.lookups == ["img"]


def test_compute_stats() -> None:
    drive = FakeDrive({"img_1": "image/jpeg", "doc_2": "application/pdf"})
    stats = compute_stats(SUBMISSIONS, RESPONSES, drive, today=date(2024, 3, 6))
    assert stats == {
        "totalSubmissions": 4,
        "todaySubmissions": 1,
        "uniqueOutlets": 4,
        "totalImages": 1,
        "outlets": ["HSR Layout", "Indiranagar", "Koramangala", "Whitefield"],
        "employees": ["Asha", "Meena", "Ravi"],
    }


def test_validate_image_link_transport_failure_marks_image_only() -> None:
    drive = FakeDrive({"slow": TimeoutError("timed out")})
    result = validate_image_link("https://drive.google.com/file/d/slow/view", drive)
    assert result == {
        "accessible": False,
        "error": "Unexpected error: timed out",
        "fileId": None,
        "url": None,
    }


def test_build_payload_survives_one_failed_lookup() -> None:
    drive = FakeDrive({"img_1": TimeoutError("timed out"), "doc_2": "application/pdf"})
    payload = build_checklist_payload(SUBMISSIONS, RESPONSES, drive)
    first = payload["responses"][0]
    assert first["imageAccessible"] is False
    assert first["imageError"] == "Unexpected error: timed out"
    assert payload["metadata"]["responseCount"] == 3
