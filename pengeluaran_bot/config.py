# config.py
#
# Konfigurasi dari Environment Variables (file .env ikut dibaca):
#     TELEGRAM_TOKEN           -> token dari BotFather (wajib)
#     GOOGLE_CREDENTIALS       -> isi credentials.json service account (JSON), atau
#     GOOGLE_CREDENTIALS_FILE  -> path ke credentials.json
#     GOOGLE_SHEET_ID          -> ID spreadsheet, atau
#     SHEET_NAME               -> nama spreadsheet
#     OWNER_CHAT_ID            -> (opsional) hanya layani chat ini
#     BOT_TIMEZONE             -> default Asia/Jakarta
#     STORE_TIMEOUT_SECS       -> batas waktu panggilan Google Sheets, default 20
#     REMINDER_ENABLED         -> default true
#     REMINDER_TIME            -> default 15:00
#     SUMMARY_CHAT_ID          -> (opsional) penerima ringkasan harian
#     SUMMARY_TIME             -> default 21:00
#     CONCURRENT_UPDATES       -> default false
#     LOG_LEVEL                -> default INFO

import os
from datetime import time
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from .errors import ConfigError

_TRUE = {"1", "true", "yes", "on", "ya"}
_FALSE = {"0", "false", "no", "off", "tidak"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings:
    def __init__(
        self,
        telegram_token: str,
        google_credentials_json: str | None,
        google_credentials_file: str | None,
        sheet_id: str | None,
        sheet_name: str | None,
        owner_chat_id: int | None,
        timezone: str,
        store_timeout_secs: float,
        reminder_enabled: bool,
        reminder_time: time,
        summary_chat_id: int | None,
        summary_time: time,
        concurrent_updates: bool,
        log_level: str,
    ) -> None:
        self.telegram_token = telegram_token
        self.google_credentials_json = google_credentials_json
        self.google_credentials_file = google_credentials_file
        self.sheet_id = sheet_id
        self.sheet_name = sheet_name
        self.owner_chat_id = owner_chat_id
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.store_timeout_secs = store_timeout_secs
        self.reminder_enabled = reminder_enabled
        self.reminder_time = reminder_time
        self.summary_chat_id = summary_chat_id
        self.summary_time = summary_time
        self.concurrent_updates = concurrent_updates
        self.log_level = log_level

    @property
    def summary_enabled(self) -> bool:
        return self.summary_chat_id is not None


def _get(environ, name):
    value = environ.get(name, "").strip()
    return value or None


def load_settings(environ) -> Settings:
    """Baca & validasi konfigurasi. Semua masalah dikumpulkan jadi satu ConfigError."""
    problems = []

    def as_int(name):
        raw = _get(environ, name)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            problems.append(f"{name} harus angka (chat id), bukan {raw!r}")
            return None

    def as_bool(name, default):
        raw = _get(environ, name)
        if raw is None:
            return default
        if raw.lower() in _TRUE:
            return True
        if raw.lower() in _FALSE:
            return False
        problems.append(f"{name} harus true/false, bukan {raw!r}")
        return default

    def as_time(name, default):
        raw = _get(environ, name) or default
        try:
            hour, minute = (int(p) for p in raw.split(":"))
            return time(hour=hour, minute=minute)
        except ValueError:
            problems.append(f"{name} harus format HH:MM, bukan {raw!r}")
            return None

    token = _get(environ, "TELEGRAM_TOKEN")
    if not token:
        problems.append("TELEGRAM_TOKEN tidak di-set. Isi dengan token dari BotFather.")

    creds_json = _get(environ, "GOOGLE_CREDENTIALS")
    creds_file = _get(environ, "GOOGLE_CREDENTIALS_FILE")
    if not creds_json and not creds_file:
        problems.append("GOOGLE_CREDENTIALS atau GOOGLE_CREDENTIALS_FILE wajib diisi.")

    sheet_id = _get(environ, "GOOGLE_SHEET_ID")
    sheet_name = _get(environ, "SHEET_NAME")
    if not sheet_id and not sheet_name:
        problems.append("GOOGLE_SHEET_ID atau SHEET_NAME wajib diisi.")

    timezone = _get(environ, "BOT_TIMEZONE") or "Asia/Jakarta"
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"BOT_TIMEZONE tidak dikenal: {timezone!r}")

    raw_timeout = _get(environ, "STORE_TIMEOUT_SECS") or "20"
    try:
        store_timeout = float(raw_timeout)
        if store_timeout <= 0:
            raise ValueError(raw_timeout)
    except ValueError:
        problems.append(f"STORE_TIMEOUT_SECS harus angka > 0, bukan {raw_timeout!r}")
        store_timeout = None

    owner_chat_id = as_int("OWNER_CHAT_ID")
    summary_chat_id = as_int("SUMMARY_CHAT_ID")
    reminder_enabled = as_bool("REMINDER_ENABLED", True)
    concurrent_updates = as_bool("CONCURRENT_UPDATES", False)
    reminder_time = as_time("REMINDER_TIME", "15:00")
    summary_time = as_time("SUMMARY_TIME", "21:00")

    log_level = (_get(environ, "LOG_LEVEL") or "INFO").upper()
    if log_level not in _LOG_LEVELS:
        problems.append(f"LOG_LEVEL tidak dikenal: {log_level!r}")

    if problems:
        raise ConfigError(problems)

    return Settings(
        telegram_token=token,
        google_credentials_json=creds_json,
        google_credentials_file=creds_file,
        sheet_id=sheet_id,
        sheet_name=sheet_name,
        owner_chat_id=owner_chat_id,
        timezone=timezone,
        store_timeout_secs=store_timeout,
        reminder_enabled=reminder_enabled,
        reminder_time=reminder_time,
        summary_chat_id=summary_chat_id,
        summary_time=summary_time,
        concurrent_updates=concurrent_updates,
        log_level=log_level,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return load_settings(os.environ)
