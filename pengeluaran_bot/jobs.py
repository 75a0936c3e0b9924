# jobs.py
#
# Dua job harian yang berdiri sendiri:
#   - reminder : ke semua user yang sudah set income bulan ini tapi belum
#                mencatat apa pun hari ini
#   - summary  : ringkasan akhir hari ke satu penerima (SUMMARY_CHAT_ID)
#
# `send` adalah coroutine (chat_id, text) -> bool; kegagalan kirim di-log
# oleh pemanggil dan tidak diulang.

import logging

from telegram.error import TelegramError

from . import aggregates
from .errors import StoreUnavailable
from .models import date_key, display_date, format_rupiah, month_key

logger = logging.getLogger(__name__)

REMINDER_JOB = "reminder_pengeluaran"
SUMMARY_JOB = "ringkasan_harian"


def reminder_text(tanggal):
    return (
        "👋 Hai!\n\n"
        f"Kamu belum mencatat pengeluaran hari ini ({display_date(tanggal)}).\n\n"
        "Contoh:\n"
        "+ngopi 15000 kopi susu"
    )


async def broadcast_reminders(dispatcher, send, notified):
    """Kirim reminder ke user yang belum mencatat hari ini.

    `notified` dimiliki pemanggil (satu set per run); user yang sudah ada di
    dalamnya dilewati, user yang berhasil dikirimi ditambahkan.
    """
    now = dispatcher.clock()
    today = date_key(now)
    budgets = await dispatcher.store(dispatcher.ledger.list_monthly_budgets, month_key(now))

    for budget in budgets:
        if budget.user in notified:
            continue
        try:
            rows = await dispatcher.store(
                dispatcher.ledger.list_transactions_for_user_on_date, budget.user, today
            )
        except StoreUnavailable:
            logger.exception("Gagal cek transaksi %s untuk reminder", budget.user)
            continue
        if rows:
            continue
        if await send(budget.user, reminder_text(today)):
            notified.add(budget.user)

    logger.info("Reminder terkirim ke %d user", len(notified))
    return notified


async def daily_summary_text(dispatcher, user):
    now = dispatcher.clock()
    today = date_key(now)
    rows = await dispatcher.store(dispatcher.ledger.list_transactions_for_user_on_date, user, today)
    total = aggregates.daily_total(rows, user, today)

    lines = [f"🌙 Ringkasan {display_date(today)}", "", f"Total hari ini: {format_rupiah(total)}"]
    budget = await dispatcher.store(dispatcher.ledger.get_monthly_budget, user, month_key(now))
    if budget is None:
        lines.append("Income bulan ini belum diset, limit harian tidak tersedia.")
    else:
        sisa = aggregates.remaining_allowance(total, budget.daily_limit)
        status = aggregates.limit_status(total, budget.daily_limit)
        lines.append(f"Limit harian: {format_rupiah(budget.daily_limit)}")
        lines.append(f"Sisa: {format_rupiah(sisa)}")
        lines.append(f"Status: {status.value}")
    return "\n".join(lines)


async def send_daily_summary(dispatcher, send, recipient):
    try:
        text = await daily_summary_text(dispatcher, str(recipient))
    except StoreUnavailable:
        logger.exception("Gagal menyusun ringkasan harian untuk %s", recipient)
        return False
    return await send(str(recipient), text)


# ================== JOB QUEUE (python-telegram-bot) ==================

def bot_sender(bot):
    async def send(chat_id, text):
        try:
            await bot.send_message(chat_id=chat_id, text=text)
        except TelegramError:
            logger.exception("Gagal kirim pesan ke %s", chat_id)
            return False
        return True

    return send


async def reminder_callback(context):
    logger.info("⏰ Reminder job running...")
    dispatcher = context.bot_data["dispatcher"]
    try:
        await broadcast_reminders(dispatcher, bot_sender(context.bot), notified=set())
    except StoreUnavailable:
        logger.exception("Reminder job gagal membaca Google Sheets")


async def summary_callback(context):
    logger.info("⏰ Summary job running...")
    dispatcher = context.bot_data["dispatcher"]
    await send_daily_summary(dispatcher, bot_sender(context.bot), context.job.data)


def schedule_jobs(job_queue, settings):
    """Daftarkan job harian sesuai konfigurasi. Return nama job yang aktif."""
    names = []
    if settings.reminder_enabled:
        job_queue.run_daily(
            reminder_callback,
            time=settings.reminder_time.replace(tzinfo=settings.tz),
            name=REMINDER_JOB,
        )
        names.append(REMINDER_JOB)
    if settings.summary_enabled:
        job_queue.run_daily(
            summary_callback,
            time=settings.summary_time.replace(tzinfo=settings.tz),
            data=settings.summary_chat_id,
            name=SUMMARY_JOB,
        )
        names.append(SUMMARY_JOB)
    for name in names:
        logger.info("Job %s dijadwalkan", name)
    return names
