"""
Shared fixtures: in-memory stand-ins for the gspread Spreadsheet/Worksheet
surface used by SheetsStore, and for the Drive file store.
"""
import base64
import os
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

import gspread
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.sheets import SheetsStore
from core.assessment import AssessmentService
from core.errors import StorageError
from core.properties import PropertyStore


class Formula:
    """A formula cell: `text` is what was entered, `shown` what the sheet displays."""

    def __init__(self, text, shown=""):
        self.text = text
        self.shown = shown


def _text(v, value_render_option=None) -> str:
    if isinstance(v, Formula):
        return v.text if value_render_option == "FORMULA" else _text(v.shown)
    return "" if v is None else str(v)


def _trim(values):
    values = list(values)
    while values and values[-1] == "":
        values.pop()
    return values


class FakeWorksheet:
    def __init__(self, title, sheet_id, spreadsheet, rows=None):
        self.title = title
        self.id = sheet_id
        self.spreadsheet = spreadsheet
        self.grid = [list(r) for r in (rows or [])]
        self.batch_updates = 0

    # ----- grid helpers -----
    def cell(self, row, col):
        if row - 1 < len(self.grid) and col - 1 < len(self.grid[row - 1]):
            return self.grid[row - 1][col - 1]
        return ""

    def set_cell(self, row, col, value):
        while len(self.grid) < row:
            self.grid.append([])
        r = self.grid[row - 1]
        while len(r) < col:
            r.append("")
        r[col - 1] = value

    # ----- gspread surface -----
    def row_values(self, row, **kwargs):
        if row - 1 >= len(self.grid):
            return []
        return _trim(_text(v) for v in self.grid[row - 1])

    def col_values(self, col, value_render_option="FORMATTED_VALUE"):
        return _trim(_text(self.cell(r, col), value_render_option) for r in range(1, len(self.grid) + 1))

    def get_all_values(self, **kwargs):
        rows = [_trim(_text(v) for v in r) for r in self.grid]
        rows = _trim_rows(rows)
        width = max((len(r) for r in rows), default=0)
        return [r + [""] * (width - len(r)) for r in rows]

    def update(self, values=None, range_name=None, **kwargs):
        start_row, start_col = gspread.utils.a1_to_rowcol(range_name)
        for i, row in enumerate(values):
            for j, v in enumerate(row):
                self.set_cell(start_row + i, start_col + j, v)

    def insert_cols(self, values, col=1, value_input_option=None, inherit_from_before=False):
        n = len(values)
        for r in self.grid:
            if len(r) >= col - 1:
                r[col - 1:col - 1] = [""] * n
        for j, column in enumerate(values):
            for i, v in enumerate(column):
                self.set_cell(i + 1, col + j, v)

    def batch_update(self, data, value_input_option=None, **kwargs):
        self.batch_updates += 1
        for d in data:
            r, c = gspread.utils.a1_to_rowcol(d["range"])
            self.set_cell(r, c, d["values"][0][0])


def _trim_rows(rows):
    rows = list(rows)
    while rows and not rows[-1]:
        rows.pop()
    return rows


class FakeSpreadsheet:
    def __init__(self, key="fake-spreadsheet-id"):
        self.id = key
        self.url = f"https://docs.google.com/spreadsheets/d/{key}"
        self.sheets = {}
        self._next_gid = 100

    def worksheet(self, title):
        try:
            return self.sheets[title]
        except KeyError:
            raise gspread.exceptions.WorksheetNotFound(title)

    def add_worksheet(self, title, rows, cols, **kwargs):
        ws = FakeWorksheet(title, self._next_gid, self)
        self._next_gid += 1
        self.sheets[title] = ws
        return ws

    def add_sheet(self, title, rows):
        """Test helper: pre-populate a sheet."""
        ws = self.add_worksheet(title, len(rows), 0)
        ws.grid = [list(r) for r in rows]
        return ws


class FakeFileStore:
    def __init__(self):
        self.folders = {}
        self.files = []
        self.fail_names = set()

    def ensure_client_folder(self, root_id, client):
        name = (client or "").strip() or "Unnamed Client"
        key = (root_id, name)
        if key not in self.folders:
            self.folders[key] = f"folder-{len(self.folders) + 1}"
        return self.folders[key]

    def create_file(self, folder_id, name, data, mimetype):
        if name in self.fail_names:
            raise StorageError(f"Drive upload failed for '{name}'")
        file_id = f"file-{len(self.files) + 1}"
        self.files.append({"id": file_id, "folder_id": folder_id, "name": name, "data": data, "mimetype": mimetype})
        return file_id


FIXED_NOW = datetime(2024, 3, 5, 14, 7, 9, 123456, tzinfo=ZoneInfo("Europe/London"))


@pytest.fixture()
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture()
def store(spreadsheet):
    return SheetsStore(spreadsheet)


@pytest.fixture()
def files():
    return FakeFileStore()


@pytest.fixture()
def props(tmp_path):
    return PropertyStore(tmp_path / "properties.json")


@pytest.fixture()
def service(store, files, props):
    return AssessmentService(
        store=store,
        files=files,
        props=props,
        tz="Europe/London",
        photos_root_id="root-folder",
        clock=lambda: FIXED_NOW,
    )


def png_data_url(data: bytes = b"\x89PNG fake") -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")
