# ledger_sheet.py
#
# Ledger Store di atas Google Sheets (gspread).
#
# Pastikan Google Sheet punya sheet berikut (dibuat otomatis kalau belum ada):
#   - Transaksi : ID | Timestamp | User | Kategori | Nominal | Deskripsi
#   - Income    : User | BulanAwal | IncomeBulan | TargetTabungan | MaxHarian
#
# Semua baris dibaca sekali lalu diubah jadi Transaction / MonthlyBudget.
# Baris yang tidak bisa dibaca (rusak / diedit manual) dilewati + di-log.

import json
import logging
import threading
from datetime import datetime

import gspread
from gspread.exceptions import WorksheetNotFound
from gspread.utils import ValueInputOption, ValueRenderOption
from google.oauth2.service_account import Credentials

from .errors import InvalidInput
from .models import (
    DEFAULT_DESCRIPTION,
    TIMESTAMP_FORMAT,
    MonthlyBudget,
    Transaction,
)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

TRANSAKSI_SHEET = "Transaksi"
INCOME_SHEET = "Income"
TRANSAKSI_HEADERS = ["ID", "Timestamp", "User", "Kategori", "Nominal", "Deskripsi"]
INCOME_HEADERS = ["User", "BulanAwal", "IncomeBulan", "TargetTabungan", "MaxHarian"]

logger = logging.getLogger(__name__)


# ================== GOOGLE SHEETS HELPERS ==================

def get_client(settings):
    """Membuat client gspread dari GOOGLE_CREDENTIALS atau GOOGLE_CREDENTIALS_FILE."""
    if settings.google_credentials_json:
        try:
            info = json.loads(settings.google_credentials_json)
        except json.JSONDecodeError as e:
            raise RuntimeError("GOOGLE_CREDENTIALS bukan JSON yang valid") from e
        creds = Credentials.from_service_account_info(info, scopes=SCOPES)
    else:
        creds = Credentials.from_service_account_file(
            settings.google_credentials_file, scopes=SCOPES
        )
    return gspread.authorize(creds)


def _ensure_worksheet(sh, title, headers):
    try:
        return sh.worksheet(title)
    except WorksheetNotFound:
        logger.warning("Sheet %s belum ada, dibuat baru", title)
        ws = sh.add_worksheet(title=title, rows=1000, cols=len(headers))
        ws.append_row(headers, value_input_option=ValueInputOption.raw)
        return ws


def open_ledger(settings):
    """Koneksi ke Google Sheets dan return SheetLedger siap pakai."""
    client = get_client(settings)
    if settings.sheet_id:
        sh = client.open_by_key(settings.sheet_id)
    else:
        sh = client.open(settings.sheet_name)
    logger.info("Terhubung ke spreadsheet: %s", sh.title)

    return SheetLedger(
        _ensure_worksheet(sh, TRANSAKSI_SHEET, TRANSAKSI_HEADERS),
        _ensure_worksheet(sh, INCOME_SHEET, INCOME_HEADERS),
        tz=settings.tz,
    )


# ================== SKEMA BARIS ==================

class MalformedRow(ValueError):
    pass


def _cell_str(value):
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _cell_int(value):
    if isinstance(value, bool):
        raise MalformedRow(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise MalformedRow(value)
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        raise MalformedRow(value) from None


def _padded(values, width):
    return list(values) + [""] * (width - len(values))


def transaction_from_row(values):
    id_, timestamp, user, kategori, nominal, deskripsi = _padded(values, 6)[:6]
    id_, timestamp, user = _cell_str(id_), _cell_str(timestamp), _cell_str(user)
    kategori = _cell_str(kategori)
    if not id_ or not user or not kategori:
        raise MalformedRow(values)
    try:
        datetime.strptime(timestamp, TIMESTAMP_FORMAT)
    except ValueError:
        raise MalformedRow(values) from None
    return Transaction(
        id=id_,
        timestamp=timestamp,
        user=user,
        category=kategori,
        amount=_cell_int(nominal),
        description=_cell_str(deskripsi) or DEFAULT_DESCRIPTION,
    )


def budget_from_row(values):
    user, bulan, income, target, _max_harian = _padded(values, 5)[:5]
    user, bulan = _cell_str(user), _cell_str(bulan)
    try:
        datetime.strptime(bulan, "%Y-%m")
    except ValueError:
        raise MalformedRow(values) from None
    if not user:
        raise MalformedRow(values)
    income, target = _cell_int(income), _cell_int(target)
    if income < 0 or target < 0:
        raise MalformedRow(values)
    return MonthlyBudget(user=user, month=bulan, income_total=income, savings_target=target)


# ================== LEDGER ==================

class SheetLedger:
    """Ledger Store dengan dua worksheet gspread.

    Semua method blocking (HTTP ke Google); dispatcher memanggilnya lewat
    thread terpisah. Urutan baca-lalu-tulis (hapus, upsert) dikunci supaya
    nomor baris tidak bergeser oleh panggilan lain di proses yang sama.
    """

    def __init__(self, transaksi_ws, income_ws, tz=None, clock=None):
        self.transaksi_ws = transaksi_ws
        self.income_ws = income_ws
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(self.tz))
        self._write_lock = threading.Lock()
        self._last_id = 0

    # ---------- baca ----------

    def _rows(self, ws):
        values = ws.get_all_values(value_render_option=ValueRenderOption.unformatted)
        # baris pertama = header; nomor baris sheet mulai dari 1
        return [(index, row) for index, row in enumerate(values[1:], start=2) if any(row)]

    def _transactions(self):
        result = []
        for index, values in self._rows(self.transaksi_ws):
            try:
                result.append((index, transaction_from_row(values)))
            except MalformedRow:
                logger.warning("Baris %s di sheet %s tidak valid, dilewati", index, TRANSAKSI_SHEET)
        return result

    def _budgets(self):
        result = []
        for index, values in self._rows(self.income_ws):
            try:
                result.append((index, budget_from_row(values)))
            except MalformedRow:
                logger.warning("Baris %s di sheet %s tidak valid, dilewati", index, INCOME_SHEET)
        return result

    def list_transactions_for_user_on_date(self, user, day):
        return [t for _, t in self._transactions() if t.user == user and t.date == day]

    def list_transactions_for_user_in_month(self, user, year_month):
        return [t for _, t in self._transactions() if t.user == user and t.month == year_month]

    def monthly_total_for_user(self, user, year_month):
        return sum(t.amount for t in self.list_transactions_for_user_in_month(user, year_month))

    def get_monthly_budget(self, user, year_month):
        for _, budget in self._budgets():
            if budget.user == user and budget.month == year_month:
                return budget
        return None

    def list_monthly_budgets(self, year_month):
        seen = set()
        result = []
        for _, budget in self._budgets():
            if budget.month == year_month and budget.user not in seen:
                seen.add(budget.user)
                result.append(budget)
        return result

    # ---------- tulis ----------

    def _next_id(self, now):
        candidate = int(now.strftime("%Y%m%d%H%M%S%f")[:-3])
        with self._write_lock:
            if candidate <= self._last_id:
                candidate = self._last_id + 1
            self._last_id = candidate
        return str(candidate)

    def append_transaction(self, user, category, amount, description=None):
        category = (category or "").strip()
        if not user or not category:
            raise InvalidInput("user dan kategori wajib diisi")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise InvalidInput("nominal harus angka bulat dan tidak boleh 0")

        now = self.clock()
        transaksi = Transaction(
            id=self._next_id(now),
            timestamp=now.strftime(TIMESTAMP_FORMAT),
            user=user,
            category=category,
            amount=amount,
            description=(description or "").strip() or DEFAULT_DESCRIPTION,
        )
        self.transaksi_ws.append_row(
            [
                transaksi.id,
                transaksi.timestamp,
                transaksi.user,
                transaksi.category,
                transaksi.amount,
                transaksi.description,
            ],
            value_input_option=ValueInputOption.raw,
        )
        return transaksi

    def delete_transaction(self, transaction_id):
        return self.delete_transactions([transaction_id]) == 1

    def delete_transactions(self, transaction_ids):
        """Hapus beberapa transaksi dalam satu batch_update (semua atau tidak sama sekali).

        Return jumlah baris yang terhapus.
        """
        targets = set(transaction_ids)
        with self._write_lock:
            indexes = [i for i, t in self._transactions() if t.id in targets]
            if not indexes:
                return 0
            # dari bawah supaya nomor baris di atasnya tidak bergeser
            requests = [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": self.transaksi_ws.id,
                            "dimension": "ROWS",
                            "startIndex": index - 1,
                            "endIndex": index,
                        }
                    }
                }
                for index in sorted(indexes, reverse=True)
            ]
            self.transaksi_ws.spreadsheet.batch_update({"requests": requests})
        return len(indexes)

    def upsert_monthly_budget(self, user, year_month, income, target, daily_limit):
        row = [user, year_month, income, target, daily_limit]
        with self._write_lock:
            existing = [
                i for i, b in self._budgets() if b.user == user and b.month == year_month
            ]
            if existing:
                index = existing[0]
                self.income_ws.update(
                    range_name=f"A{index}:E{index}",
                    values=[row],
                    value_input_option=ValueInputOption.raw,
                )
            else:
                self.income_ws.append_row(row, value_input_option=ValueInputOption.raw)
