# commands.py
#
# Parser perintah teks -> command bertipe.
#
# Ada dua dialek input yang sama-sama dipakai user:
#   +ngopi 15000 kopi susu          (dialek simbol)
#   tambah ngopi 15000 kopi susu    (dialek kata kunci)
# Keduanya menghasilkan AddExpense yang sama; sisanya (refund, set income,
# laporan) berbagi satu parser kata kunci.

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from .errors import ParseError
from .models import DEFAULT_DESCRIPTION

HELP_WORDS = {"help", "menu", "panduan", "?", "/start", "/help"}

USAGE_ADD = "+kategori jumlah deskripsi\nContoh: +ngopi 15000 kopi susu"
USAGE_TAMBAH = "tambah kategori jumlah deskripsi\nContoh: tambah ngopi 15000 kopi susu"
USAGE_REFUND = "refund jumlah\nContoh: refund 15000"
USAGE_SET_INCOME = "set income <jumlah> tabungan <target>\nContoh: set income 5000000 tabungan 1000000"
USAGE_DATE = "ringkasan | ringkasan 3 | ringkasan 05-06 | ringkasan kemarin"

_SYMBOL_RE = re.compile(r"^\+\s*(.+?)\s+([+-]?\d+)(?:\s+(.*))?$", re.DOTALL)
_SET_INCOME_RE = re.compile(
    r"^set\s+income\s+(\S+)\s+(?:tabungan\s+)?(\S+)\s*$", re.IGNORECASE
)
_AMOUNT_RE = re.compile(r"^[+-]?\d+$")
_DAY_MONTH_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})$")

MAX_DAYS_BACK = 366


# ================== COMMANDS ==================

@dataclass(frozen=True)
class DaySelector:
    """Tanggal relatif terhadap hari ini: N hari ke belakang, atau DD-MM."""

    days_back: int = 0
    day: Optional[int] = None
    month: Optional[int] = None

    def resolve(self, today: date) -> date:
        if self.day is None:
            return today - timedelta(days=self.days_back)
        try:
            target = date(today.year, self.month, self.day)
        except ValueError:
            raise ParseError("malformed", USAGE_DATE)
        if target > today:
            # "31-12" di bulan Januari maksudnya tahun lalu
            try:
                target = target.replace(year=today.year - 1)
            except ValueError:
                raise ParseError("malformed", USAGE_DATE)
        return target


TODAY = DaySelector()


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class AddExpense:
    category: str
    amount: int
    description: str = DEFAULT_DESCRIPTION


@dataclass(frozen=True)
class Refund:
    amount: int


@dataclass(frozen=True)
class SetIncome:
    income: int
    target: int


@dataclass(frozen=True)
class DailyReport:
    selector: DaySelector = TODAY


@dataclass(frozen=True)
class MonthlyReport:
    pass


@dataclass(frozen=True)
class SpendAnalysis:
    pass


@dataclass(frozen=True)
class DeleteByDate:
    selector: DaySelector = TODAY


# ================== UTILITAS ==================

def _parse_amount(token, usage):
    if not _AMOUNT_RE.match(token):
        raise ParseError("malformed", usage)
    amount = int(token)
    if amount == 0:
        raise ParseError("zero_amount", usage)
    return amount


def _parse_selector(tokens):
    if not tokens:
        return TODAY
    if len(tokens) > 1:
        raise ParseError("malformed", USAGE_DATE)

    token = tokens[0]
    if token == "kemarin":
        return DaySelector(days_back=1)
    if token.isdigit():
        if int(token) > MAX_DAYS_BACK:
            raise ParseError("malformed", USAGE_DATE)
        return DaySelector(days_back=int(token))

    match = _DAY_MONTH_RE.match(token)
    if not match:
        raise ParseError("malformed", USAGE_DATE)
    day, month = int(match.group(1)), int(match.group(2))
    try:
        # tahun kabisat supaya 29-02 lolos validasi awal
        date(2000, month, day)
    except ValueError:
        raise ParseError("malformed", USAGE_DATE)
    return DaySelector(day=day, month=month)


# ================== DIALEK ==================

def parse_symbol_dialect(text):
    """`+<kategori> <jumlah> [deskripsi...]`"""
    match = _SYMBOL_RE.match(text)
    if not match:
        raise ParseError("malformed", USAGE_ADD)

    kategori = match.group(1).strip()
    nominal = _parse_amount(match.group(2), USAGE_ADD)
    deskripsi = (match.group(3) or "").strip() or DEFAULT_DESCRIPTION
    return AddExpense(kategori, nominal, deskripsi)


def parse_keyword_dialect(text):
    """Semua perintah berbasis kata kunci (tambah, refund, set income, laporan)."""
    tokens = text.split()
    words = [t.lower() for t in tokens]

    if words[0] == "tambah":
        if len(tokens) < 3:
            raise ParseError("malformed", USAGE_TAMBAH)
        nominal = _parse_amount(tokens[2], USAGE_TAMBAH)
        deskripsi = " ".join(tokens[3:]) or DEFAULT_DESCRIPTION
        return AddExpense(tokens[1], nominal, deskripsi)

    if words[0] == "refund":
        if len(tokens) < 2:
            raise ParseError("malformed", USAGE_REFUND)
        return Refund(_parse_amount(tokens[1], USAGE_REFUND))

    if words[:2] == ["set", "income"]:
        match = _SET_INCOME_RE.match(" ".join(tokens))
        if not match or not all(g.isdigit() for g in match.groups()):
            raise ParseError("malformed", USAGE_SET_INCOME)
        return SetIncome(int(match.group(1)), int(match.group(2)))

    if words[0] == "ringkasan":
        return DailyReport(_parse_selector(words[1:]))
    if words[:2] == ["hari", "ini"]:
        return DailyReport(_parse_selector(words[2:]))

    if words == ["bulan", "ini"]:
        return MonthlyReport()

    if words in (["progress", "tabungan"], ["analisis", "boros"]):
        return SpendAnalysis()

    if words[:2] == ["hapus", "pengeluaran"]:
        return DeleteByDate(_parse_selector(words[2:]))

    raise ParseError("unrecognized")


def parse_command(text):
    """Ubah teks mentah jadi command. Melempar ParseError kalau gagal."""
    text = (text or "").strip()
    if not text:
        raise ParseError("unrecognized")

    if text.lower() in HELP_WORDS:
        return Help()
    if text.startswith("+"):
        return parse_symbol_dialect(text)
    return parse_keyword_dialect(text)
