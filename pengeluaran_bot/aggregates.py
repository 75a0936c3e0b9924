# aggregates.py
#
# Fungsi murni di atas baris Transaction / MonthlyBudget. Tidak ada I/O.

import enum
from collections import Counter


class LimitStatus(enum.Enum):
    OK = "OK"
    OVER_LIMIT = "OVER_LIMIT"


def daily_total(rows, user, day):
    """Total nominal milik `user` di tanggal `day` ("YYYY-MM-DD")."""
    return sum(r.amount for r in rows if r.user == user and r.date == day)


def monthly_total(rows, user, year_month):
    return sum(r.amount for r in rows if r.user == user and r.month == year_month)


def savings(budget, spent):
    # boleh negatif kalau pengeluaran melebihi income
    return budget.income_total - spent


def limit_status(total, daily_limit):
    if total <= daily_limit:
        return LimitStatus.OK
    return LimitStatus.OVER_LIMIT


def remaining_allowance(total, daily_limit):
    return daily_limit - total


def refund_match(rows, user, amount, day):
    """Cari transaksi hari ini dengan nominal persis `amount`.

    Dicari dari yang paling baru dibuat (ID terbesar) ke belakang, jadi
    kalau ada dua `15000` di hari yang sama, yang terakhir yang di-refund.
    Return None kalau tidak ketemu.
    """
    candidates = [r for r in rows if r.user == user and r.date == day]
    for row in sorted(candidates, key=lambda r: r.id, reverse=True):
        if row.amount == amount:
            return row
    return None


def category_totals(rows, user, year_month, limit=None):
    """[(kategori, total), ...] urut dari total terbesar."""
    totals = Counter()
    for r in rows:
        if r.user == user and r.month == year_month:
            totals[r.category.lower()] += r.amount
    return totals.most_common(limit)
