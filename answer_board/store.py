"""Remote tabular store: row-oriented reads and writes against Google Sheets.

Rows come back as lists of strings, first row of a sheet is the header. The
adapter does not cache values; it only memoizes worksheet handles.
"""

from __future__ import annotations
import logging
from typing import Dict, List, Optional, Protocol

import gspread
import gspread.utils as a1
from gspread.exceptions import APIError, WorksheetNotFound

from .quotas import retry_429, safe_batch_get

logger = logging.getLogger(__name__)

Rows = List[List[str]]


class TabularStore(Protocol):
    def read_range(self, sheet: str, a1_range: str) -> Rows:
        ...

    def read_all(self, sheet: str) -> Rows:
        ...

    def append_row(self, sheet: str, values: List[str]) -> None:
        ...

    def update_range(self, sheet: str, a1_range: str, values: Rows) -> None:
        ...

    def ping(self) -> bool:
        ...


class GspreadStore:
    def __init__(self, ss: gspread.Spreadsheet):
        self.ss = ss
        self._ws_cache: Dict[str, gspread.Worksheet] = {}

    def _ws(self, sheet: str) -> gspread.Worksheet:
        ws = self._ws_cache.get(sheet)
        if ws is None:
            ws = retry_429(self.ss.worksheet, sheet)
            self._ws_cache[sheet] = ws
        return ws

    def ensure_sheet(self, sheet: str, headers: List[str]) -> gspread.Worksheet:
        """Open the sheet, creating it with a header row if missing."""
        try:
            return self._ws(sheet)
        except WorksheetNotFound:
            pass
        try:
            ws = retry_429(self.ss.add_worksheet, title=sheet, rows=1000, cols=max(len(headers), 6))
        except APIError as e:
            if "already exists" not in str(e).lower():
                raise
            ws = retry_429(self.ss.worksheet, sheet)
        end = a1.rowcol_to_a1(1, len(headers))
        retry_429(ws.update, range_name=f"A1:{end}", values=[headers])
        logger.info("Created sheet %r with %d header columns", sheet, len(headers))
        self._ws_cache[sheet] = ws
        return ws

    def read_range(self, sheet: str, a1_range: str) -> Rows:
        return safe_batch_get(self._ws(sheet), [a1_range])[0]

    def read_all(self, sheet: str) -> Rows:
        return [list(r) for r in retry_429(self._ws(sheet).get_all_values)]

    def append_row(self, sheet: str, values: List[str]) -> None:
        retry_429(self._ws(sheet).append_row, values, value_input_option="RAW")

    def update_range(self, sheet: str, a1_range: str, values: Rows) -> None:
        retry_429(self._ws(sheet).update, range_name=a1_range, values=values)

    def ping(self) -> bool:
        try:
            retry_429(self.ss.worksheets)
        except Exception:
            logger.warning("Spreadsheet %s not reachable", getattr(self.ss, "id", "?"), exc_info=True)
            return False
        return True


def row_range(row_number: int, first_col: int, last_col: int) -> str:
    """A1 range covering columns first_col..last_col (1-based) of one row."""
    start = a1.rowcol_to_a1(row_number, first_col)
    end = a1.rowcol_to_a1(row_number, last_col)
    return f"{start}:{end}"


def header_index(headers: List[str], field: str) -> Optional[int]:
    """0-based column position of a header name, or None."""
    for idx, name in enumerate(headers):
        if (name or "").strip() == field:
            return idx
    return None
