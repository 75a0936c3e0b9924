# dispatcher.py
#
# Satu pesan masuk -> parse -> validasi -> eksekusi ke ledger -> satu balasan.
#
# Aturan:
# - tiap pesan diproses sendiri, tidak ada state antar pesan
# - maksimal satu tulis ke ledger per pesan
# - selalu tepat satu balasan, termasuk kalau error
# - pesan dari user yang sama diproses berurutan (lock per user)

import asyncio
import contextlib
import logging
from collections import Counter
from datetime import datetime

from google.auth.exceptions import GoogleAuthError
from gspread.exceptions import GSpreadException

from . import aggregates
from .commands import (
    AddExpense,
    DailyReport,
    DeleteByDate,
    Help,
    MonthlyReport,
    Refund,
    SetIncome,
    SpendAnalysis,
    parse_command,
)
from .errors import InvalidInput, ParseError, StoreUnavailable
from .models import (
    compute_daily_limit,
    date_key,
    days_in_month,
    display_date,
    format_rupiah,
    month_key,
)

DEFAULT_STORE_TIMEOUT = 20.0

logger = logging.getLogger(__name__)


# ================== TEKS BALASAN ==================

HELP_TEXT = (
    "📘 Panduan Bot Pengeluaran\n\n"
    "Catat pengeluaran:\n"
    "+kategori jumlah deskripsi\n"
    "Contoh: +ngopi 15000 kopi susu\n"
    "atau: tambah ngopi 15000 kopi susu\n\n"
    "Batalkan pengeluaran hari ini:\n"
    "refund 15000\n\n"
    "Laporan:\n"
    "ringkasan / hari ini\nringkasan 3\nringkasan 05-06\nringkasan kemarin\n"
    "bulan ini\n\n"
    "hapus pengeluaran\nhapus pengeluaran 05-06\n\n"
    "set income 5000000 tabungan 1000000\n"
    "progress tabungan / analisis boros"
)

MSG_NO_BUDGET = "❗ Set income dulu: set income <jumlah> tabungan <target>"
MSG_STORE_UNAVAILABLE = "❗ Google Sheets sedang tidak bisa diakses. Coba lagi."
MSG_ERROR = "❗ Terjadi kesalahan. Coba lagi."
MSG_UNRECOGNIZED = "🤔 Perintah tidak dikenal. Ketik help untuk panduan."


def format_parse_error(error):
    if error.reason == "unrecognized":
        return MSG_UNRECOGNIZED
    if error.reason == "zero_amount":
        head = "❗ Nominal tidak boleh 0."
    else:
        head = "❗ Format salah."
    if error.usage:
        return f"{head}\n{error.usage}"
    return head


def _status_line(status):
    if status is aggregates.LimitStatus.OK:
        return "✅ Aman (OK)"
    return "🚨 Boros (OVER_LIMIT)"


# ================== AKSES LEDGER ==================

async def call_store(fn, *args, timeout=DEFAULT_STORE_TIMEOUT):
    """Jalankan method ledger (blocking) di thread lain, dengan timeout.

    Kegagalan gspread / jaringan / timeout dilaporkan sebagai StoreUnavailable.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)
    except asyncio.TimeoutError as e:
        raise StoreUnavailable(f"{fn.__name__}: timeout {timeout}s") from e
    except (GSpreadException, GoogleAuthError, OSError) as e:
        raise StoreUnavailable(f"{fn.__name__}: {e}") from e


class Dispatcher:
    def __init__(self, ledger, tz=None, store_timeout=DEFAULT_STORE_TIMEOUT, clock=None):
        self.ledger = ledger
        self.tz = tz
        self.store_timeout = store_timeout
        self.clock = clock or (lambda: datetime.now(self.tz))
        # lock dibuang lagi begitu tidak ada pesan user itu yang menunggu
        self._locks = {}
        self._waiting = Counter()

    async def store(self, fn, *args):
        return await call_store(fn, *args, timeout=self.store_timeout)

    @contextlib.asynccontextmanager
    async def _user_lock(self, user):
        self._waiting[user] += 1
        lock = self._locks.setdefault(user, asyncio.Lock())
        try:
            async with lock:
                yield
        finally:
            self._waiting[user] -= 1
            if not self._waiting[user]:
                del self._waiting[user]
                del self._locks[user]

    async def handle(self, user, text):
        """Proses satu pesan dari `user`, return teks balasan (selalu ada)."""
        async with self._user_lock(user):
            now = self.clock()
            try:
                command = parse_command(text)
                return await self.execute(user, command, now)
            except ParseError as e:
                logger.debug("Parse gagal dari %s: %s", user, e.reason)
                return format_parse_error(e)
            except InvalidInput as e:
                return f"❗ Data tidak valid: {e}"
            except StoreUnavailable:
                logger.exception("Gagal akses Google Sheets untuk %s", user)
                return MSG_STORE_UNAVAILABLE
            except Exception:
                logger.exception("Error tak terduga saat memproses pesan dari %s", user)
                return MSG_ERROR

    async def execute(self, user, command, now):
        if isinstance(command, Help):
            return HELP_TEXT
        if isinstance(command, AddExpense):
            return await self.add_expense(user, command, now)
        if isinstance(command, Refund):
            return await self.refund(user, command, now)
        if isinstance(command, SetIncome):
            return await self.set_income(user, command, now)
        if isinstance(command, DailyReport):
            return await self.daily_report(user, command.selector.resolve(now.date()))
        if isinstance(command, MonthlyReport):
            return await self.monthly_report(user, now)
        if isinstance(command, SpendAnalysis):
            return await self.spend_analysis(user, now)
        if isinstance(command, DeleteByDate):
            return await self.delete_by_date(user, command.selector.resolve(now.date()))
        raise TypeError(f"command tidak dikenal: {command!r}")

    # ================== HANDLER ==================

    async def add_expense(self, user, command, now):
        bulan = month_key(now)
        budget = await self.store(self.ledger.get_monthly_budget, user, bulan)
        if budget is None:
            return MSG_NO_BUDGET

        transaksi = await self.store(
            self.ledger.append_transaction,
            user,
            command.category,
            command.amount,
            command.description,
        )
        reply = (
            f"✅ Dicatat:\n{transaksi.category} - "
            f"{format_rupiah(transaksi.amount)} ({transaksi.description})"
        )

        today = date_key(now)
        try:
            rows = await self.store(self.ledger.list_transactions_for_user_on_date, user, today)
        except StoreUnavailable:
            # transaksi sudah tersimpan, peringatan limit cukup dilewati
            logger.warning("Gagal cek limit harian untuk %s", user)
            return reply

        total = aggregates.daily_total(rows, user, today)
        if aggregates.limit_status(total, budget.daily_limit) is aggregates.LimitStatus.OVER_LIMIT:
            reply += (
                f"\n\n⚠️ Pengeluaran hari ini {format_rupiah(total)} "
                f"melebihi limit harian {format_rupiah(budget.daily_limit)}"
            )
        return reply

    async def refund(self, user, command, now):
        today = date_key(now)
        rows = await self.store(self.ledger.list_transactions_for_user_on_date, user, today)
        match = aggregates.refund_match(rows, user, command.amount, today)
        if match is None:
            return f"🔍 Tidak ada transaksi {format_rupiah(command.amount)} hari ini."

        deleted = await self.store(self.ledger.delete_transaction, match.id)
        if not deleted:
            return f"🔍 Tidak ada transaksi {format_rupiah(command.amount)} hari ini."
        return (
            f"↩️ Refund berhasil, dihapus:\n{match.category} - "
            f"{format_rupiah(match.amount)} ({match.description})"
        )

    async def set_income(self, user, command, now):
        if command.income < 0 or command.target < 0:
            return "❗ Income dan target tidak boleh negatif."

        bulan = month_key(now)
        max_harian = compute_daily_limit(command.income, command.target, days_in_month(bulan))
        await self.store(
            self.ledger.upsert_monthly_budget,
            user,
            bulan,
            command.income,
            command.target,
            max_harian,
        )
        return (
            f"✅ Income {bulan}\n"
            f"💰 {format_rupiah(command.income)}\n"
            f"🎯 Target {format_rupiah(command.target)}\n"
            f"💸 Limit Harian {format_rupiah(max_harian)}"
        )

    async def daily_report(self, user, day):
        tanggal = date_key(day)
        rows = await self.store(self.ledger.list_transactions_for_user_on_date, user, tanggal)
        if not rows:
            return f"📭 Belum ada transaksi pada {display_date(tanggal)}."

        rows = sorted(rows, key=lambda r: r.id)
        lines = [f"🧾 Ringkasan {display_date(tanggal)}", ""]
        for i, r in enumerate(rows, start=1):
            lines.append(f"{i}. {r.category} - {format_rupiah(r.amount)}")
        lines.append("")
        lines.append(f"Total: {format_rupiah(aggregates.daily_total(rows, user, tanggal))}")
        return "\n".join(lines)

    async def monthly_report(self, user, now):
        bulan = month_key(now)
        budget = await self.store(self.ledger.get_monthly_budget, user, bulan)
        if budget is None:
            return MSG_NO_BUDGET

        rows = await self.store(self.ledger.list_transactions_for_user_in_month, user, bulan)
        keluar = aggregates.monthly_total(rows, user, bulan)
        tabungan = aggregates.savings(budget, keluar)
        return (
            f"📊 Laporan Bulan {bulan}\n\n"
            f"Income: {format_rupiah(budget.income_total)}\n"
            f"Pengeluaran: {format_rupiah(keluar)}\n"
            f"Tabungan: {format_rupiah(tabungan)}\n"
            f"Target: {format_rupiah(budget.savings_target)}"
        )

    async def spend_analysis(self, user, now):
        bulan = month_key(now)
        today = date_key(now)
        budget = await self.store(self.ledger.get_monthly_budget, user, bulan)
        if budget is None:
            return MSG_NO_BUDGET

        rows = await self.store(self.ledger.list_transactions_for_user_in_month, user, bulan)
        hari_ini = aggregates.daily_total(rows, user, today)
        status = aggregates.limit_status(hari_ini, budget.daily_limit)
        tabungan = aggregates.savings(budget, aggregates.monthly_total(rows, user, bulan))

        lines = [
            "📈 Analisis Pengeluaran",
            "",
            f"Hari ini: {format_rupiah(hari_ini)}",
            f"Limit harian: {format_rupiah(budget.daily_limit)}",
            f"Sisa hari ini: {format_rupiah(aggregates.remaining_allowance(hari_ini, budget.daily_limit))}",
            f"Status: {_status_line(status)}",
            "",
            f"Tabungan bulan ini: {format_rupiah(tabungan)} / target {format_rupiah(budget.savings_target)}",
        ]
        top = aggregates.category_totals(rows, user, bulan, limit=3)
        if top:
            lines.append("")
            lines.append("Kategori terbesar:")
            for kategori, total in top:
                lines.append(f"- {kategori}: {format_rupiah(total)}")
        return "\n".join(lines)

    async def delete_by_date(self, user, day):
        tanggal = date_key(day)
        rows = await self.store(self.ledger.list_transactions_for_user_on_date, user, tanggal)
        if not rows:
            return f"🔍 Tidak ada pengeluaran pada {display_date(tanggal)}."

        jumlah = await self.store(self.ledger.delete_transactions, [r.id for r in rows])
        return f"🗑️ {jumlah} pengeluaran pada {display_date(tanggal)} dihapus."
