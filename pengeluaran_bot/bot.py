# bot.py
#
# Bot Telegram untuk mencatat pengeluaran harian ke Google Sheets.
#
# Cara kerja:
# - Membaca TOKEN bot & kredensial Google dari Environment Variables
#   (lihat config.py untuk daftar lengkapnya)
# - Setiap pesan teks diteruskan ke Dispatcher, balasannya dikirim balik
# - Reminder harian & ringkasan harian dijadwalkan lewat JobQueue
#
# Perintah utama (ketik "help" untuk daftar lengkap):
#   +ngopi 15000 kopi susu               -> catat pengeluaran
#   set income 5000000 tabungan 1000000  -> set income & target bulan ini
#   ringkasan / bulan ini / progress tabungan

import asyncio
import logging
import signal
import sys

from telegram.error import TelegramError
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from .config import get_settings
from .connection import ConnectionSupervisor
from .dispatcher import Dispatcher
from .errors import ConfigError, TransportFatal
from .jobs import schedule_jobs
from .ledger_sheet import open_ledger

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


# ================== HANDLERS ==================

async def reply(message, text):
    # transaksi sudah tersimpan walaupun balasan gagal terkirim
    try:
        await message.reply_text(text)
    except TelegramError:
        logger.exception("Gagal mengirim balasan ke chat %s", message.chat_id)


async def cmd_help(update, context):
    dispatcher = context.bot_data["dispatcher"]
    text = await dispatcher.handle(str(update.effective_chat.id), "help")
    await reply(update.effective_message, text)


async def on_text(update, context):
    """Semua pesan teks biasa (bukan /command) masuk ke sini."""
    message = update.effective_message
    sender = str(update.effective_chat.id)
    dispatcher = context.bot_data["dispatcher"]

    text = await dispatcher.handle(sender, message.text)
    await reply(message, text)


async def on_error(update, context):
    logger.error("Error saat memproses update %s", update, exc_info=context.error)


# ================== APPLICATION ==================

def build_application(settings, dispatcher):
    application = (
        Application.builder()
        .token(settings.telegram_token)
        .concurrent_updates(settings.concurrent_updates)
        .build()
    )
    application.bot_data["dispatcher"] = dispatcher

    if settings.owner_chat_id is not None:
        allowed = filters.Chat(chat_id=settings.owner_chat_id)
    else:
        allowed = filters.ALL

    application.add_handler(CommandHandler(["start", "help"], cmd_help, filters=allowed))
    application.add_handler(
        MessageHandler(
            filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND & allowed,
            on_text,
        )
    )
    application.add_error_handler(on_error)

    schedule_jobs(application.job_queue, settings)
    return application


async def serve(settings, ledger):
    dispatcher = Dispatcher(ledger, tz=settings.tz, store_timeout=settings.store_timeout_secs)
    application = build_application(settings, dispatcher)
    supervisor = ConnectionSupervisor(application)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await supervisor.run(stop)


# ================== MAIN ==================

def main():
    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        settings = get_settings()
    except ConfigError as e:
        for problem in e.problems:
            logger.error("❌ ENV tidak lengkap: %s", problem)
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level)
    logger.info(
        "🚀 Bot starting (sheet=%s, owner=%s, reminder=%s, summary=%s)",
        settings.sheet_id or settings.sheet_name,
        settings.owner_chat_id or "-",
        settings.reminder_enabled,
        settings.summary_enabled,
    )

    # sheet / kredensial bermasalah: berhenti sebelum polling dimulai
    try:
        ledger = open_ledger(settings)
    except Exception:
        logger.exception("❌ Gagal terhubung ke Google Sheets")
        sys.exit(1)

    try:
        asyncio.run(serve(settings, ledger))
    except TransportFatal as e:
        logger.error("Bot dihentikan: %s", e)
        sys.exit(2)


if __name__ == "__main__":
    main()
