# models.py
#
# Tipe data ledger + representasi tanggal kanonik.
#
# Semua perbandingan tanggal memakai string lokal:
#   tanggal  -> "YYYY-MM-DD"
#   bulan    -> "YYYY-MM"
#   waktu    -> "YYYY-MM-DD HH:MM:SS"

import calendar
from dataclasses import dataclass
from datetime import datetime

DATE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_DESCRIPTION = "-"


def date_key(value):
    return value.strftime(DATE_FORMAT)


def month_key(value):
    return value.strftime(MONTH_FORMAT)


def days_in_month(year_month: str) -> int:
    year, month = (int(p) for p in year_month.split("-"))
    return calendar.monthrange(year, month)[1]


def compute_daily_limit(income: int, target: int, days: int) -> int:
    """floor((income - target) / jumlah hari)."""
    return (income - target) // days


def display_date(key: str) -> str:
    """'2026-06-15' -> '15/06/2026'."""
    return datetime.strptime(key, DATE_FORMAT).strftime("%d/%m/%Y")


def format_rupiah(amount) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp{abs(int(amount)):,}".replace(",", ".")


@dataclass(frozen=True)
class Transaction:
    id: str
    timestamp: str
    user: str
    category: str
    amount: int
    description: str = DEFAULT_DESCRIPTION

    @property
    def date(self) -> str:
        return self.timestamp.split(" ")[0]

    @property
    def month(self) -> str:
        return self.timestamp[:7]


@dataclass(frozen=True)
class MonthlyBudget:
    user: str
    month: str
    income_total: int
    savings_target: int

    @property
    def daily_limit(self) -> int:
        # selalu dihitung ulang dari income & target, tidak pernah disimpan
        return compute_daily_limit(
            self.income_total, self.savings_target, days_in_month(self.month)
        )
