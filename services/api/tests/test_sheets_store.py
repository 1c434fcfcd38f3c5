"""
Tests for the Google Sheets record store (schema repair, row allocation,
sparse writes, bulk reads).

Run with: pytest tests/test_sheets_store.py -v
"""
import gspread
import pytest

from adapters.sheets import HEADERS, SH_BATCHES, open_store
from core.errors import ConfigurationError, SchemaError
from settings import Settings

from conftest import Formula


class TestEnsureSheet:
    """Sheet creation and header repair."""

    def test_creates_missing_sheet_with_header(self, store, spreadsheet):
        """A missing sheet is created with its header."""
        ws = store.ensure_sheet(SH_BATCHES, HEADERS[SH_BATCHES])
        assert SH_BATCHES in spreadsheet.sheets
        assert ws.row_values(1) == HEADERS[SH_BATCHES]

    def test_idempotent(self, store):
        """Ensuring twice does not duplicate columns."""
        store.ensure_sheet("Items", HEADERS["Items"])
        ws = store.ensure_sheet("Items", HEADERS["Items"])
        assert ws.row_values(1) == HEADERS["Items"]
        assert len(ws.row_values(1)) == len(set(ws.row_values(1)))

    def test_header_growth_appends_new_columns_at_end(self, store):
        """New columns go after the last header, data stays put."""
        ws = store.ensure_sheet("T", ["A", "B"])
        ws.update(values=[["a1", "b1"]], range_name="A2")

        store.ensure_sheet("T", ["A", "B", "C", "D"])

        assert ws.row_values(1) == ["A", "B", "C", "D"]
        assert ws.row_values(2) == ["a1", "b1"]

    def test_keeps_hand_added_columns(self, store, spreadsheet):
        """Columns added by hand are kept in place."""
        ws = spreadsheet.add_sheet("T", [
            ["A", "Formula", "B"],
            ["a1", "=1+1", "b1"],
        ])

        store.ensure_sheet("T", ["A", "B", "C"])

        assert ws.row_values(1) == ["A", "Formula", "B", "C"]
        assert ws.row_values(2) == ["a1", "=1+1", "b1"]

    def test_header_order_differs_but_complete(self, store, spreadsheet):
        """A complete header in another order is left alone."""
        ws = spreadsheet.add_sheet("T", [["B", "A"]])
        store.ensure_sheet("T", ["A", "B"])
        assert ws.row_values(1) == ["B", "A"]

    def test_empty_header_row_gets_canonical_header(self, store, spreadsheet):
        """An empty first row gets the full header."""
        ws = spreadsheet.add_sheet("T", [])
        store.ensure_sheet("T", ["A", "B"])
        assert ws.row_values(1) == ["A", "B"]


class TestNextFreeRow:
    """Append point = just past the last filled key cell."""

    def test_after_last_filled_not_first_blank(self, store, spreadsheet):
        """Append point follows the last filled key cell."""
        ws = spreadsheet.add_sheet("T", [
            ["ID", "Calc"],
            ["A", "x"],
            ["B", "x"],
            ["", "x"],
            ["", "x"],
        ])
        assert store.next_free_row(ws, "ID") == 4

    def test_interior_blank_is_not_reused(self, store, spreadsheet):
        """Gaps inside the data are not filled."""
        ws = spreadsheet.add_sheet("T", [["ID"], ["A"], [""], ["C"]])
        assert store.next_free_row(ws, "ID") == 5

    def test_empty_key_column_returns_row_2(self, store, spreadsheet):
        """An empty key column appends at row 2."""
        ws = spreadsheet.add_sheet("T", [["Other", "ID"], ["x", ""], ["y", ""]])
        assert store.next_free_row(ws, "ID") == 2

    def test_header_only(self, store, spreadsheet):
        """A header-only sheet appends at row 2."""
        ws = spreadsheet.add_sheet("T", [["ID"]])
        assert store.next_free_row(ws, "ID") == 2

    def test_formula_cells_rendering_blank_count_as_empty(self, store, spreadsheet):
        """Trailing key cells whose formulas display nothing are not data."""
        blank = '=IF(B{0}="","",B{0})'
        ws = spreadsheet.add_sheet("T", [
            ["ID", "Src"],
            ["A", "a"],
            [Formula(blank.format(3), "B"), "b"],
            [Formula(blank.format(4)), ""],
            [Formula(blank.format(5)), ""],
        ])
        assert ws.col_values(1, value_render_option="FORMULA")[-1] == blank.format(5)
        assert store.next_free_row(ws, "ID") == 4

    def test_missing_key_header_raises(self, store, spreadsheet):
        """A missing key column is a schema error."""
        ws = spreadsheet.add_sheet("T", [["ID"]])
        with pytest.raises(SchemaError):
            store.next_free_row(ws, "Nope")


class TestWriteRecord:
    """Only named cells are written."""

    def test_preserves_unmentioned_cells(self, store, spreadsheet):
        """Cells not named in the record are untouched."""
        ws = spreadsheet.add_sheet("T", [["X", "Y"], ["", "keep me"]])
        store.write_record(ws, 2, {"X": 1})
        assert ws.cell(2, 1) == 1
        assert ws.cell(2, 2) == "keep me"

    def test_unknown_column_is_ignored(self, store, spreadsheet):
        """Unknown columns are dropped without a write."""
        ws = spreadsheet.add_sheet("T", [["X", "Y"], ["a", "b"]])
        before = [list(r) for r in ws.grid]
        store.write_record(ws, 2, {"Nope": "value"})
        assert ws.grid == before
        assert ws.batch_updates == 0

    def test_resolves_columns_by_name(self, store, spreadsheet):
        """Values land in their columns by header name."""
        ws = spreadsheet.add_sheet("T", [["Y", "Extra", "X"]])
        store.write_record(ws, 2, {"X": "x", "Y": "y", "Unknown": "?"})
        assert ws.row_values(2) == ["y", "", "x"]


class TestAppendRecord:
    def test_appends_contiguously(self, store):
        """Appended records fill consecutive rows."""
        store.ensure_sheet("T", ["ID", "V"])
        assert store.append_record("T", "ID", {"ID": "1", "V": "a"}) == 2
        assert store.append_record("T", "ID", {"ID": "2", "V": "b"}) == 3
        assert [r["ID"] for r in store.read_all("T")] == ["1", "2"]

    def test_missing_sheet_raises(self, store):
        """Appending to a missing sheet is a schema error."""
        with pytest.raises(SchemaError):
            store.append_record("Nope", "ID", {"ID": "1"})


class TestReadAll:
    def test_absent_sheet(self, store):
        """A missing sheet reads as no rows."""
        assert store.read_all("Nope") == []

    def test_header_only(self, store, spreadsheet):
        """A header-only sheet reads as no rows."""
        spreadsheet.add_sheet("T", [["A", "B"]])
        assert store.read_all("T") == []

    def test_rows_keyed_by_header(self, store, spreadsheet):
        """Rows are keyed by header and padded to full width."""
        spreadsheet.add_sheet("T", [["A", "B"], ["1", "2"], ["3"]])
        assert store.read_all("T") == [{"A": "1", "B": "2"}, {"A": "3", "B": ""}]

    def test_duplicate_header_last_wins(self, store, spreadsheet):
        """With duplicate headers the rightmost value wins."""
        spreadsheet.add_sheet("T", [["A", "A"], ["first", "second"]])
        assert store.read_all("T") == [{"A": "second"}]


class FakeClient:
    def __init__(self, spreadsheet=None):
        self.spreadsheet = spreadsheet
        self.opened = []

    def open_by_key(self, key):
        self.opened.append(("key", key))
        if self.spreadsheet is None:
            raise gspread.exceptions.SpreadsheetNotFound(key)
        return self.spreadsheet

    def open(self, title):
        self.opened.append(("title", title))
        if self.spreadsheet is None:
            raise gspread.exceptions.SpreadsheetNotFound(title)
        return self.spreadsheet


class TestOpenStore:
    def test_opens_configured_id_from_url(self, spreadsheet):
        """A spreadsheet URL is reduced to its id."""
        client = FakeClient(spreadsheet)
        s = Settings(sheets_spreadsheet_id="https://docs.google.com/spreadsheets/d/abc-123_X/edit#gid=0")
        store = open_store(s, client=client)
        assert client.opened == [("key", "abc-123_X")]
        assert store.url == spreadsheet.url

    def test_falls_back_to_default_document(self, spreadsheet):
        """Without an id the default document is opened by title."""
        client = FakeClient(spreadsheet)
        s = Settings(sheets_spreadsheet_id="", sheets_spreadsheet_title="FARCO Database")
        open_store(s, client=client)
        assert client.opened == [("title", "FARCO Database")]

    def test_nothing_configured(self):
        """No id and no title is a configuration error."""
        s = Settings(sheets_spreadsheet_id="", sheets_spreadsheet_title="")
        with pytest.raises(ConfigurationError):
            open_store(s, client=FakeClient())

    def test_not_found_is_configuration_error(self):
        """A missing spreadsheet is a configuration error."""
        s = Settings(sheets_spreadsheet_id="missing")
        with pytest.raises(ConfigurationError):
            open_store(s, client=FakeClient())

    def test_not_cached_between_calls(self, spreadsheet):
        """Every call opens the spreadsheet again."""
        client = FakeClient(spreadsheet)
        s = Settings(sheets_spreadsheet_id="abc")
        open_store(s, client=client)
        open_store(s, client=client)
        assert len(client.opened) == 2
