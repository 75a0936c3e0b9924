# connection.py
#
# Siklus hidup koneksi Telegram, terpisah dari pemrosesan perintah.
#
#   DISCONNECTED -> CONNECTING -> CONNECTED
#        ^              |          |
#        +-- backoff ---+          | get_me tiap health_interval
#                       |          |
#                       +----------+-> LOGGED_OUT (InvalidToken, final)

import asyncio
import enum
import logging

from telegram import Update
from telegram.error import InvalidToken, NetworkError

from .errors import TransportFatal

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOGGED_OUT = "logged_out"


class ConnectionSupervisor:
    def __init__(
        self,
        application,
        base_backoff=1.0,
        max_backoff=60.0,
        max_attempts=None,
        health_interval=300.0,
        sleep=asyncio.sleep,
    ):
        self.application = application
        self.base_backoff = base_backoff
        self.max_backoff = max_backoff
        self.max_attempts = max_attempts
        self.health_interval = health_interval
        self.sleep = sleep
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0

    def _set_state(self, state):
        if state is not self.state:
            logger.info("🔄 Koneksi: %s -> %s", self.state.value, state.value)
        self.state = state

    def backoff(self, attempt):
        return min(self.max_backoff, self.base_backoff * 2 ** (attempt - 1))

    def _polling_error(self, error):
        # dipanggil updater saat get_updates gagal; updater akan mencoba lagi sendiri
        logger.warning("Polling error: %s", error)

    async def connect(self):
        """Satu kali percobaan connect. Return True kalau berhasil."""
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self.application.initialize()
            await self.application.updater.start_polling(
                allowed_updates=Update.ALL_TYPES,
                error_callback=self._polling_error,
            )
            await self.application.start()
        except InvalidToken as e:
            self._set_state(ConnectionState.LOGGED_OUT)
            logger.error("⚠️ Token Telegram ditolak. Perbarui TELEGRAM_TOKEN lalu jalankan ulang.")
            raise TransportFatal("token Telegram tidak valid") from e
        except NetworkError as e:
            self._set_state(ConnectionState.DISCONNECTED)
            logger.warning("❌ Gagal connect: %s", e)
            return False

        self.attempts = 0
        self._set_state(ConnectionState.CONNECTED)
        logger.info("✅ Telegram Connected")
        return True

    async def run(self, stop_event):
        """Connect (dengan retry) lalu cek token berkala sampai `stop_event` di-set."""
        try:
            while not await self.connect():
                self.attempts += 1
                if self.max_attempts is not None and self.attempts >= self.max_attempts:
                    raise TransportFatal(f"gagal connect setelah {self.attempts} percobaan")
                delay = self.backoff(self.attempts)
                logger.info("🔁 Reconnecting dalam %.0f detik...", delay)
                await self.sleep(delay)
                if stop_event.is_set():
                    return
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), self.health_interval)
                except asyncio.TimeoutError:
                    await self.check_health()
        finally:
            await self.shutdown()

    async def check_health(self):
        """Token yang dicabut saat sudah connect baru ketahuan lewat get_me."""
        try:
            await self.application.bot.get_me()
        except InvalidToken as e:
            self._set_state(ConnectionState.LOGGED_OUT)
            logger.error("⚠️ Token Telegram dicabut. Perbarui TELEGRAM_TOKEN lalu jalankan ulang.")
            raise TransportFatal("token Telegram tidak valid lagi") from e
        except NetworkError as e:
            # updater retry sendiri; cek lagi di putaran berikutnya
            logger.warning("Health check gagal: %s", e)

    async def shutdown(self):
        if self.application.updater.running:
            await self.application.updater.stop()
        if self.application.running:
            await self.application.stop()
        await self.application.shutdown()
        if self.state is not ConnectionState.LOGGED_OUT:
            self._set_state(ConnectionState.DISCONNECTED)
