import re
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from pengeluaran_bot.dispatcher import Dispatcher
from pengeluaran_bot.ledger_sheet import INCOME_HEADERS, TRANSAKSI_HEADERS, SheetLedger

JAKARTA = ZoneInfo("Asia/Jakarta")
USER = "1001"
OTHER = "2002"


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeSpreadsheet:
    """Pengganti gspread.Spreadsheet: batch_update diterapkan semua atau tidak sama sekali."""

    def __init__(self):
        self.worksheets = {}
        self.error = None

    def batch_update(self, body):
        if self.error is not None:
            raise self.error
        requests = body["requests"]
        for request in requests:
            rng = request["deleteDimension"]["range"]
            ws = self.worksheets[rng["sheetId"]]
            ws.calls.append(("batch_update", rng["startIndex"], rng["endIndex"]))
            del ws.values[rng["startIndex"]:rng["endIndex"]]
        return {"replies": [{} for _ in requests]}


class FakeWorksheet:
    """Pengganti gspread.Worksheet untuk method yang dipakai SheetLedger."""

    _next_sheet_id = 0

    def __init__(self, headers, rows=(), spreadsheet=None):
        self.values = [list(headers)] + [list(r) for r in rows]
        self.calls = []
        self.error = None
        FakeWorksheet._next_sheet_id += 1
        self.id = FakeWorksheet._next_sheet_id
        self.spreadsheet = spreadsheet or FakeSpreadsheet()
        self.spreadsheet.worksheets[self.id] = self

    def _check(self):
        if self.error is not None:
            raise self.error

    def get_all_values(self, **kwargs):
        self._check()
        return [list(r) for r in self.values]

    def append_row(self, values, value_input_option=None):
        self._check()
        self.calls.append(("append_row", list(values)))
        self.values.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check()
        self.calls.append(("update", range_name, values))
        index = int(re.match(r"A(\d+):", range_name).group(1))
        self.values[index - 1] = list(values[0])

    @property
    def writes(self):
        return [c for c in self.calls if c[0] in ("append_row", "batch_update", "update")]


@pytest.fixture
def clock():
    # Juni punya 30 hari
    return FakeClock(datetime(2026, 6, 15, 10, 0, 0, tzinfo=JAKARTA))


@pytest.fixture
def transaksi_ws():
    return FakeWorksheet(TRANSAKSI_HEADERS)


@pytest.fixture
def income_ws():
    return FakeWorksheet(INCOME_HEADERS)


@pytest.fixture
def ledger(transaksi_ws, income_ws, clock):
    return SheetLedger(transaksi_ws, income_ws, tz=JAKARTA, clock=clock)


@pytest.fixture
def dispatcher(ledger, clock):
    return Dispatcher(ledger, tz=JAKARTA, store_timeout=5, clock=clock)
