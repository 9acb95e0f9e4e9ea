from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..app.config import Settings

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleServicesUnavailable(RuntimeError):
    """Raised when the Sheets/Drive clients cannot be built."""


# Failures a Sheets or Drive call can raise once the clients exist.
TRANSPORT_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)
GOOGLE_ERRORS = (GoogleServicesUnavailable,) + TRANSPORT_ERRORS


class GoogleServices:
    """Owns the Sheets v4 and Drive v3 resources for one application."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._lock = threading.RLock()
        self._sheets: Any = None
        self._drive: Any = None
        self.service_account_email: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self._sheets is not None and self._drive is not None

    def _load_credentials(self) -> Credentials:
        raw_json = self.settings.service_account_json
        key_file = self.settings.service_account_file
        try:
            if raw_json:
                return Credentials.from_service_account_info(json.loads(raw_json), scopes=SCOPES)
            if not key_file or not Path(key_file).is_file():
                raise GoogleServicesUnavailable(
                    "Service account credentials are not configured "
                    "(GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_SERVICE_ACCOUNT_FILE)"
                )
            return Credentials.from_service_account_file(key_file, scopes=SCOPES)
        except (ValueError, GoogleAuthError) as exc:
            # json.JSONDecodeError and google.auth MalformedError are both ValueErrors
            raise GoogleServicesUnavailable(f"Invalid service account credentials: {exc}") from exc

    def connect(self) -> None:
        with self._lock:
            if self.connected:
                return
            credentials = self._load_credentials()
            try:
                self._sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
                self._drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
            except Exception as exc:
                self._sheets = None
                self._drive = None
                raise GoogleServicesUnavailable(f"Failed to initialize Google APIs: {exc}") from exc
            self.service_account_email = credentials.service_account_email
            logger.info("Google Sheets and Drive connected as %s", self.service_account_email)

    def _execute(self, make_request) -> Any:
        # Both resources share one httplib2.Http, which is not thread-safe.
        with self._lock:
            if not self.connected:
                self.connect()
            return make_request().execute()

    def get_values(self, spreadsheet_id: Optional[str], range_a1: str) -> List[List[Any]]:
        if not spreadsheet_id:
            raise GoogleServicesUnavailable("Spreadsheet id is not configured")
        logger.debug("Fetching %s from %s", range_a1, spreadsheet_id)
        response = self._execute(
            lambda: self._sheets.spreadsheets()
            .values()
            .get(spreadsheetId=spreadsheet_id, range=range_a1, majorDimension="ROWS")
        )
        values = response.get("values", [])
        logger.debug("Retrieved %d rows from %s", len(values), range_a1)
        return values

    def get_file_metadata(self, file_id: str) -> Dict[str, Any]:
        return self._execute(
            lambda: self._drive.files().get(fileId=file_id, fields="id, mimeType, webViewLink, parents")
        )

    def download_file(self, file_id: str) -> bytes:
        return self._execute(lambda: self._drive.files().get_media(fileId=file_id))

    def close(self) -> None:
        with self._lock:
            for resource in (self._sheets, self._drive):
                if resource is None:
                    continue
                try:
                    resource.close()
                except Exception as exc:  # pragma: no cover - best effort
                    logger.warning("Failed to close Google API resource: %s", exc)
            self._sheets = None
            self._drive = None
