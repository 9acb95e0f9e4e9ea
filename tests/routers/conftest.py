from __future__ import annotations

from typing import Any, Dict, List, Optional

import httplib2
import pytest
from googleapiclient.errors import HttpError

from aod_dashboard.services.google_clients import GoogleServicesUnavailable


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": str(status)}), b"")


class FakeGoogle:
    """Stands in for GoogleServices with canned ranges and Drive files."""

    service_account_email = "reporter@project.iam.gserviceaccount.com"

    def __init__(
        self,
        values: Optional[Dict[str, List[List[Any]]]] = None,
        files: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.values = values or {}
        self.files = files or {}
        self.error = error
        self.requests: List[tuple] = []
        self.connected = error is None

    def get_values(self, spreadsheet_id: Optional[str], range_a1: str) -> List[List[Any]]:
        self.requests.append((spreadsheet_id, range_a1))
        if self.error is not None:
            raise self.error
        if not spreadsheet_id:
            raise GoogleServicesUnavailable("Spreadsheet id is not configured")
        return self.values.get(range_a1, [])

    def _entry(self, file_id: str) -> Dict[str, Any]:
        entry = self.files.get(file_id)
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, int):
            raise http_error(entry)
        if entry is None:
            raise http_error(404)
        return entry

    def get_file_metadata(self, file_id: str) -> Dict[str, Any]:
        return {"id": file_id, "mimeType": self._entry(file_id)["mimeType"]}

    def download_file(self, file_id: str) -> bytes:
        return self._entry(file_id)["content"]


class StubGemini:
    def __init__(self, reply: str = "", configured: bool = False) -> None:
        self.reply = reply
        self.configured = configured
        self.prompts: List[str] = []

    def generate_text(self, prompt: str, **kwargs: Any) -> str:
        self.prompts.append(prompt)
        return self.reply


@pytest.fixture
def fake_google_cls():
    return FakeGoogle


@pytest.fixture
def stub_gemini_cls():
    return StubGemini


@pytest.fixture
def make_http_error():
    return http_error
