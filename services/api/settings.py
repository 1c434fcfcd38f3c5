# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
import base64
import re
from typing import List
from pathlib import Path

class Settings(BaseSettings):
    # Google Sheets database
    google_sa_json: str = ""
    google_sa_json_base64: str = ""
    # Can be spreadsheet_id OR full URL. Leave empty to fall back to the
    # default database spreadsheet shared with the service account (by title).
    sheets_spreadsheet_id: str = ""
    sheets_spreadsheet_title: str = "FARCO Database"

    # Externally authored lookup table: column A = historic code, column B = note text
    notes_rules_sheet: str = "NotesRules"

    # Time zone used for batch ids, dates and photo file names
    timezone: str = "Europe/London"

    # Google Drive settings
    # Folder ID where client photo folders will be created
    photos_root_folder_id: str = ""
    # Used only when photos_root_folder_id is empty: found or created at My Drive root
    gdrive_root_folder_name: str = "FARCO_Photos"
    # Optional OAuth user token (JSON). Falls back to creds/drive_token.json, then the service account.
    drive_token_json: str = ""

    # Durable key-value state (batch -> client / photo folder)
    properties_file: str = "data/properties.json"

    # CORS settings
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    # Form page served at "/"
    index_html: str = Field(
        default="static/index.html",
        description="Path to the single-page assessment form, relative to services/api",
    )

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )


    def resolved_google_sa_json(self) -> str:
        """
        Return the path to the service account JSON.
        If GOOGLE_SA_JSON_BASE64 is set, decode it to a temp file.
        Otherwise return GOOGLE_SA_JSON path (or inline JSON).
        """
        if self.google_sa_json_base64:
            import tempfile

            decoded = base64.b64decode(self.google_sa_json_base64)
            temp_file = tempfile.NamedTemporaryFile(mode='w', delete=False, suffix='.json')
            temp_file.write(decoded.decode('utf-8'))
            temp_file.close()
            return temp_file.name

        return self.google_sa_json

    def spreadsheet_key(self) -> str:
        """Accept either a bare spreadsheet id or a full Google Sheets URL."""
        s = (self.sheets_spreadsheet_id or "").strip()
        m = re.search(r"/spreadsheets/d/([a-zA-Z0-9-_]+)", s)
        if m:
            return m.group(1)
        return s

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def index_html_path(self) -> Path:
        p = Path(self.index_html)
        if not p.is_absolute():
            p = Path(__file__).resolve().parent / p
        return p


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
