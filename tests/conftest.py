"""Pytest fixtures: in-memory stand-ins for the users sheet and the cache store."""

from unittest.mock import MagicMock

import gspread.utils as a1
import pytest

from answer_board.backends import MemoryCacheStore
from answer_board.cache import TieredCache
from answer_board.guard import TenantGuard
from answer_board.lookup import UserLookup
from answer_board.wrappers import UserDirectory

ADMIN = "admin@school.edu"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSheetStore:
    """Row-oriented store backed by lists; mimics GspreadStore's surface."""

    def __init__(self, sheets=None):
        self.sheets = {name: [list(r) for r in rows] for name, rows in (sheets or {}).items()}
        self.reads = 0
        self.writes = []
        self.fail_reads = False
        self.fail_writes = False

    def _rows(self, sheet):
        return self.sheets.setdefault(sheet, [])

    def read_range(self, sheet, a1_range):
        if self.fail_reads:
            raise RuntimeError("sheets API unavailable")
        self.reads += 1
        rows = [list(r) for r in self._rows(sheet)]
        start, _, end = a1_range.partition(":")
        if end and end[-1].isdigit():
            last_row = a1.a1_to_rowcol(end)[0]
            rows = rows[:last_row]
        return rows

    def read_all(self, sheet):
        return self.read_range(sheet, "A1:Z")

    def append_row(self, sheet, values):
        if self.fail_writes:
            raise RuntimeError("sheets API unavailable")
        self.writes.append(("append", sheet, list(values)))
        self._rows(sheet).append(list(values))

    def update_range(self, sheet, a1_range, values):
        if self.fail_writes:
            raise RuntimeError("sheets API unavailable")
        self.writes.append(("update", sheet, a1_range, [list(v) for v in values]))
        rows = self._rows(sheet)
        row0, col0 = a1.a1_to_rowcol(a1_range.split(":")[0])
        for r_off, vals in enumerate(values):
            r = row0 - 1 + r_off
            while len(rows) <= r:
                rows.append([])
            row = rows[r]
            for c_off, v in enumerate(vals):
                c = col0 - 1 + c_off
                while len(row) <= c:
                    row.append("")
                row[c] = v

    def ping(self):
        return not self.fail_reads


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_store(clock) -> MagicMock:
    """MemoryCacheStore wrapped so tests can assert on get/put/remove calls."""
    return MagicMock(wraps=MemoryCacheStore(clock=clock))


@pytest.fixture
def cache(cache_store) -> TieredCache:
    return TieredCache(cache_store)


@pytest.fixture
def sheet_store() -> FakeSheetStore:
    return FakeSheetStore({
        "users": [
            ["userId", "adminEmail", "isActive", "configJson", "createdAt", "lastModified"],
            ["U1", "a@x.com", "TRUE", '{"isPublished": false}', "2024-04-01T09:00:00+00:00", "2024-04-01T09:00:00+00:00"],
            ["U2", "b@x.com", "TRUE", '{"isPublished": true}', "2024-04-02T09:00:00+00:00", "2024-04-02T09:00:00+00:00"],
            ["U3", "c@x.com", "FALSE", "", "2024-04-03T09:00:00+00:00", "2024-04-03T09:00:00+00:00"],
        ]
    })


@pytest.fixture
def guard() -> TenantGuard:
    return TenantGuard([ADMIN])


@pytest.fixture
def caller():
    """Mutable session identity; tests assign caller['email']."""
    return {"email": None}


@pytest.fixture
def lookup(sheet_store, cache, guard, caller) -> UserLookup:
    ids = iter(f"NEW{i}" for i in range(1, 100))
    return UserLookup(sheet_store, cache, guard, identity=lambda: caller["email"], id_factory=lambda: next(ids))


@pytest.fixture
def directory(lookup) -> UserDirectory:
    return UserDirectory(lookup)
