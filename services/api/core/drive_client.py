# services/api/core/drive_client.py
from __future__ import annotations
import logging
import json
from io import BytesIO
from typing import Optional
from pathlib import Path

from google.oauth2.credentials import Credentials as UserCredentials
from google.oauth2.service_account import Credentials as ServiceAccountCredentials
from google.auth.transport.requests import Request
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from core.errors import ConfigurationError, StorageError
from settings import get_settings

logger = logging.getLogger(__name__)

_drive_service = None

# Full Drive scope: client folders live under a pre-existing, shared root folder
SCOPES = ["https://www.googleapis.com/auth/drive"]

FOLDER_MIME = "application/vnd.google-apps.folder"

# Paths relative to services/api/
BASE_DIR = Path(__file__).resolve().parent.parent
CREDS_DIR = BASE_DIR / "creds"
TOKEN_FILE = CREDS_DIR / "drive_token.json"


def _get_drive_credentials(settings):
    """
    Load Drive credentials.

    Priority:
    1) DRIVE_TOKEN_JSON (OAuth user token) from settings/env.
    2) Local creds/drive_token.json (written by drive_oauth_init.py).
    3) The service account used for Sheets.
    """
    token_env = settings.drive_token_json

    if token_env:
        try:
            creds = UserCredentials.from_authorized_user_info(json.loads(token_env), SCOPES)
        except Exception as e:
            logger.exception("Failed to load DRIVE_TOKEN_JSON: %s", e)
            raise ConfigurationError(f"Invalid DRIVE_TOKEN_JSON: {e}") from e
    elif TOKEN_FILE.exists():
        creds = UserCredentials.from_authorized_user_file(str(TOKEN_FILE), SCOPES)
    else:
        sa = settings.resolved_google_sa_json()
        if not sa:
            raise ConfigurationError(
                f"No Drive credentials: set DRIVE_TOKEN_JSON, run drive_oauth_init.py "
                f"to create {TOKEN_FILE}, or configure GOOGLE_SA_JSON."
            )
        try:
            return ServiceAccountCredentials.from_service_account_info(json.loads(sa), scopes=SCOPES)
        except json.JSONDecodeError:
            try:
                return ServiceAccountCredentials.from_service_account_file(sa, scopes=SCOPES)
            except FileNotFoundError as e:
                raise ConfigurationError(f"Service account file not found: {sa}") from e

    # Refresh if expired and we have a refresh token
    if creds.expired and creds.refresh_token:
        logger.info("Refreshing Google Drive OAuth token...")
        creds.refresh(Request())
        if not token_env:
            CREDS_DIR.mkdir(parents=True, exist_ok=True)
            TOKEN_FILE.write_text(creds.to_json())
            logger.info("Google Drive OAuth token refreshed and saved.")

    return creds


def get_drive_service(settings=None):
    """
    Lazily construct and cache a Google Drive v3 service client.
    """
    global _drive_service
    if _drive_service is None:
        creds = _get_drive_credentials(settings or get_settings())
        _drive_service = build(
            "drive",
            "v3",
            credentials=creds,
            cache_discovery=False,
        )
        logger.info("Initialized Google Drive client.")
    return _drive_service


def _safe_segment(value: str, fallback: str = "UNKNOWN") -> str:
    """
    Clean folder/file name segments so Drive accepts them nicely.
    """
    if not value:
        return fallback
    v = value.strip()
    if not v:
        return fallback
    v = v.replace("/", "_").replace("\\", "_")
    return v[:120]


class DriveFileStore:
    """Photo storage in Google Drive: one folder per client under a root folder."""

    def __init__(self, service=None) -> None:
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = get_drive_service()
        return self._service

    def ensure_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """
        Find (or create) a folder with given name under parent_id (or My Drive root).
        Returns the folder ID. Not atomic: two concurrent calls may both create it.
        """
        folder_name = _safe_segment(name, "UNTITLED")
        safe_name = folder_name.replace("'", "\\'")
        q = f"mimeType = '{FOLDER_MIME}' and name = '{safe_name}' and trashed = false"
        if parent_id:
            q += f" and '{parent_id}' in parents"

        try:
            result = self.service.files().list(
                q=q,
                spaces="drive",
                fields="files(id, name)",
                pageSize=1,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ).execute()

            files = result.get("files", [])
            if files:
                return files[0]["id"]

            metadata = {"name": folder_name, "mimeType": FOLDER_MIME}
            if parent_id:
                metadata["parents"] = [parent_id]

            created = self.service.files().create(
                body=metadata,
                fields="id",
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise StorageError(f"Drive folder lookup/create failed for '{folder_name}': {e}") from e

        logger.info("Created Drive folder '%s' (%s)", folder_name, created["id"])
        return created["id"]

    def resolve_root(self, settings=None) -> str:
        settings = settings or get_settings()
        root_id = (settings.photos_root_folder_id or "").strip()
        if root_id:
            return root_id
        return self.ensure_folder(settings.gdrive_root_folder_name or "FARCO_Photos", parent_id="root")

    def ensure_client_folder(self, root_id: str, client: str) -> str:
        name = (client or "").strip() or "Unnamed Client"
        return self.ensure_folder(name, parent_id=root_id)

    def create_file(self, folder_id: str, name: str, data: bytes, mimetype: str) -> str:
        media = MediaIoBaseUpload(BytesIO(data), mimetype=mimetype, resumable=False)
        try:
            created = self.service.files().create(
                body={"name": name, "parents": [folder_id]},
                media_body=media,
                fields="id",
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise StorageError(f"Drive upload failed for '{name}': {e}") from e
        return created["id"]
