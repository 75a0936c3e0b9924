# errors.py
#
# Hirarki error bot pengeluaran.
# NoBudgetSet & NotFound bukan exception: itu cabang normal di dispatcher.


class ParseError(ValueError):
    """Perintah tidak bisa diparse. `reason` salah satu dari:
    malformed, zero_amount, unrecognized.
    """

    def __init__(self, reason, usage=None):
        super().__init__(reason)
        self.reason = reason
        self.usage = usage


class LedgerError(Exception):
    pass


class InvalidInput(LedgerError):
    """Data transaksi ditolak oleh ledger (kategori kosong, nominal 0, dsb)."""


class StoreUnavailable(LedgerError):
    """Google Sheets gagal dipanggil atau timeout."""


class ConfigError(RuntimeError):
    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class TransportFatal(RuntimeError):
    """Sesi messaging tidak bisa dipulihkan tanpa campur tangan operator."""
