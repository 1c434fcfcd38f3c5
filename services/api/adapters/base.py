"""
Storage interfaces for the FARCO assessment backend.
Defines the contracts the record builders depend on, so the Sheets / Drive
implementations can be swapped for in-memory fakes in tests.
"""

from typing import Protocol, List, Dict, Any, Mapping, Optional


class TabularStore(Protocol):
    """
    Protocol for the spreadsheet-backed record store.

    A store is opened fresh for every request and wraps one spreadsheet
    ("document") containing one worksheet per record type.
    """

    @property
    def url(self) -> str:
        """URL of the underlying spreadsheet."""
        ...

    def worksheet(self, name: str) -> Optional[Any]:
        """Return the named worksheet, or None if it does not exist."""
        ...

    def ensure_sheet(self, name: str, header: List[str]) -> Any:
        """
        Create the sheet if missing, otherwise append any canonical columns
        that are not yet in its header row. Never drops or reorders columns.
        """
        ...

    def headers(self, ws: Any) -> List[str]:
        """Return the live header row (row 1)."""
        ...

    def next_free_row(self, ws: Any, key_header: str) -> int:
        """
        Return the 1-based row just past the last non-empty cell of the
        key column (2 when there are no data rows).
        """
        ...

    def write_record(self, ws: Any, row: int, record: Mapping[str, Any]) -> None:
        """Write only the named cells of `row`; unknown names are ignored."""
        ...

    def append_record(self, name: str, key_header: str, record: Mapping[str, Any]) -> int:
        """Allocate the next row by `key_header` and write `record` into it."""
        ...

    def read_all(self, name: str) -> List[Dict[str, Any]]:
        """Read every data row as a dict keyed by header name."""
        ...

    def sheet_url(self, ws: Any) -> str:
        """Direct link to a worksheet tab."""
        ...


class FileStore(Protocol):
    """Protocol for the binary file store holding photos (Google Drive)."""

    def ensure_client_folder(self, root_id: str, client: str) -> str:
        """Find or create the per-client folder under root_id. Returns its id."""
        ...

    def create_file(self, folder_id: str, name: str, data: bytes, mimetype: str) -> str:
        """Store `data` as a named file in folder_id. Returns the new file id."""
        ...
