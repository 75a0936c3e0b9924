"""Bot Telegram pencatat pengeluaran harian ke Google Sheets."""

__version__ = "1.0.0"
