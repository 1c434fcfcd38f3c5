# services/api/adapters/sheets/__init__.py
from __future__ import annotations

import functools
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.errors import ConfigurationError, SchemaError, StorageError

logger = logging.getLogger(__name__)

# ========== Sheet schema (HEADERS) ==========

SH_BATCHES = "Batches"
SH_ITEMS = "Items"
SH_SELECT = "Selections"
SH_PHOTOS = "Photos"

# Canonical headers. These lists may only grow: missing columns are appended
# to existing sheets by ensure_sheet(), existing ones are never moved.
HEADERS = {
    SH_BATCHES: ["BatchID", "Client", "StartDate", "Assessor", "Status"],
    SH_ITEMS: [
        "ItemID",
        "BatchID",
        "Code",
        "PerilType",
        "ImpactLevel",
        "Type",
        "Title",
        "Artist",
        "Material",
        "Date",
        "Dimensions",
        "Features",
        "HistoricIssuesPresent",
        "HistoricCode",
        "HistoricNotes",
        "TreatmentTimeMinutes",
        "TreatmentTimeUnit",
        "TreatmentTime",
        "AdditionalNotes",
        "OtherNotes",
        "Notes",
        "CreatedAt",
    ],
    SH_SELECT: [
        "SelectionID",
        "ItemID",
        "OptionCode",
        "Severity",
        "ExtentPercent",
        "Location",
        "ItemType",
        "UseSeverity",
        "SeverityWord",
        "BasePhrase",
        "IsLocalized",
        "LocPart",
        "ExtPart",
        "CondLine",
        "GlobalFrag",
        "LocalText",
        "LocalWhere",
        "NeedsReplacement",
        "NeedsReupholstery",
    ],
    SH_PHOTOS: ["PhotoID", "ItemID", "Image", "Caption", "TakenAt", "Lat", "Lng", "Uploader"],
}

SHEET_TAB_ORDER = [SH_BATCHES, SH_ITEMS, SH_SELECT, SH_PHOTOS]

# Key column used to find the append point of each sheet
KEY_HEADERS = {
    SH_BATCHES: "BatchID",
    SH_ITEMS: "ItemID",
    SH_SELECT: "SelectionID",
    SH_PHOTOS: "PhotoID",
}

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_gc: Optional[gspread.Client] = None


def _sa_client_from_json_or_path(google_sa_json: str) -> gspread.Client:
    """
    Accepts either:
      - absolute/relative path to a service-account JSON file, OR
      - a literal JSON string.
    Returns an authorized gspread Client.
    """
    if not google_sa_json:
        raise ConfigurationError("GOOGLE_SA_JSON is required (path to file or inline JSON).")

    # Try to treat as inline JSON first
    try:
        parsed = json.loads(google_sa_json)
        creds = Credentials.from_service_account_info(parsed, scopes=SCOPES)
        return gspread.authorize(creds)
    except json.JSONDecodeError:
        # Not JSON; treat as file path
        try:
            creds = Credentials.from_service_account_file(google_sa_json, scopes=SCOPES)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Service account file not found: {google_sa_json}") from e
        return gspread.authorize(creds)


def get_client(settings) -> gspread.Client:
    """Authorized gspread client. Only the credentials are cached, never the spreadsheet."""
    global _gc
    if _gc is None:
        _gc = _sa_client_from_json_or_path(settings.resolved_google_sa_json())
    return _gc


# ========== Retry decorator for Google Sheets API calls ==========
def retry_sheets_api(func):
    """Retry Sheets API calls with exponential backoff; surface the final failure as StorageError."""
    retrying = retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((gspread.exceptions.APIError,)),
        reraise=True,
    )(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Sheets API call {func.__name__} failed: {e}") from e

    return wrapper


def open_store(settings=None, client: Optional[gspread.Client] = None) -> "SheetsStore":
    """
    Open the database spreadsheet.

    Uses SHEETS_SPREADSHEET_ID when set, otherwise the default spreadsheet
    (SHEETS_SPREADSHEET_TITLE) shared with the service account. Called once
    per request: the spreadsheet handle is never cached between requests.
    """
    if settings is None:
        from settings import get_settings

        settings = get_settings()

    gc = client or get_client(settings)
    key = settings.spreadsheet_key()
    title = (settings.sheets_spreadsheet_title or "").strip()

    try:
        if key:
            ss = gc.open_by_key(key)
        elif title:
            ss = gc.open(title)
        else:
            raise ConfigurationError("No spreadsheet configured (SHEETS_SPREADSHEET_ID / SHEETS_SPREADSHEET_TITLE)")
    except gspread.exceptions.SpreadsheetNotFound as e:
        raise ConfigurationError(f"Spreadsheet not found: {key or title}") from e
    except PermissionError as e:
        raise ConfigurationError(f"No access to spreadsheet: {key or title}") from e
    except gspread.exceptions.APIError as e:
        raise StorageError(f"Failed to open spreadsheet: {e}") from e

    return SheetsStore(ss)


class SheetsStore:
    """
    Google Sheets record store:
    - sheets are created / repaired from canonical headers
    - rows are appended just past the last filled key cell
    - writes only touch the named cells (formula columns survive)
    """

    def __init__(self, spreadsheet: gspread.Spreadsheet) -> None:
        self.ss = spreadsheet

    @property
    def url(self) -> str:
        return self.ss.url

    # ========== Worksheet helpers ==========

    @retry_sheets_api
    def worksheet(self, name: str) -> Optional[gspread.Worksheet]:
        try:
            return self.ss.worksheet(name)
        except gspread.WorksheetNotFound:
            return None

    @retry_sheets_api
    def headers(self, ws: gspread.Worksheet) -> List[str]:
        return ws.row_values(1)

    @retry_sheets_api
    def ensure_sheet(self, name: str, header: List[str]) -> gspread.Worksheet:
        ws = self.worksheet(name)
        if ws is None:
            ws = self.ss.add_worksheet(title=name, rows=1000, cols=max(len(header), 1))
            if header:
                ws.update(values=[list(header)], range_name="A1")
            logger.info(f"Created sheet '{name}' with {len(header)} columns")
            return ws

        if not header:
            return ws

        current = self.headers(ws)
        if not current:
            ws.update(values=[list(header)], range_name="A1")
            logger.info(f"Wrote missing header row for sheet '{name}'")
            return ws

        missing = [h for h in header if h not in current]
        if missing:
            # New columns go right after the last header column; extra
            # (hand-added) columns already in the sheet are kept as they are.
            ws.insert_cols(
                [[h] for h in missing],
                col=len(current) + 1,
                value_input_option="RAW",
                inherit_from_before=True,
            )
            logger.info(f"Added {len(missing)} column(s) to '{name}': {missing}")
        return ws

    @retry_sheets_api
    def next_free_row(self, ws: gspread.Worksheet, key_header: str) -> int:
        headers = self.headers(ws)
        if key_header not in headers:
            raise SchemaError(f"Key header not found: {key_header}")
        col = headers.index(key_header) + 1

        # Display values, so ARRAYFORMULA-driven columns elsewhere don't count
        col_vals = ws.col_values(col, value_render_option="FORMATTED_VALUE")
        data = col_vals[1:]
        for i in range(len(data) - 1, -1, -1):
            if data[i] != "":
                return i + 2 + 1
        return 2

    @retry_sheets_api
    def write_record(self, ws: gspread.Worksheet, row: int, record: Mapping[str, Any]) -> None:
        headers = self.headers(ws)
        # Only set provided keys to avoid overwriting formula columns
        data = []
        for k, v in (record or {}).items():
            if k not in headers:
                continue
            a1 = gspread.utils.rowcol_to_a1(row, headers.index(k) + 1)
            data.append({"range": a1, "values": [[v]]})
        if data:
            ws.batch_update(data, value_input_option="USER_ENTERED")

    def append_record(self, name: str, key_header: str, record: Mapping[str, Any]) -> int:
        ws = self.worksheet(name)
        if ws is None:
            raise SchemaError(f"Missing sheet: {name}")
        r = self.next_free_row(ws, key_header)
        self.write_record(ws, r, record)
        return r

    @retry_sheets_api
    def read_all(self, name: str) -> List[Dict[str, Any]]:
        """Get all data rows of a tab as dictionaries keyed by header."""
        ws = self.worksheet(name)
        if ws is None:
            return []
        rows = ws.get_all_values()
        if len(rows) <= 1:
            return []
        header = rows[0]
        out = []
        for r in rows[1:]:
            obj: Dict[str, Any] = {}
            # Duplicate header names: the last column wins
            for i, key in enumerate(header):
                obj[key] = r[i] if i < len(r) else ""
            out.append(obj)
        return out

    def sheet_url(self, ws: gspread.Worksheet) -> str:
        return f"{self.ss.url}#gid={ws.id}"
