import pytest

from pengeluaran_bot.errors import InvalidInput
from pengeluaran_bot.ledger_sheet import budget_from_row, MalformedRow, transaction_from_row
from pengeluaran_bot.models import MonthlyBudget

from conftest import OTHER, USER


def test_append_transaction_writes_typed_row(ledger, transaksi_ws):
    transaksi = ledger.append_transaction(USER, " ngopi ", 15000, "")

    assert transaksi.id == "20260615100000000"
    assert transaksi.timestamp == "2026-06-15 10:00:00"
    assert transaksi.category == "ngopi"
    assert transaksi.description == "-"
    assert transaksi_ws.values[-1] == [
        "20260615100000000",
        "2026-06-15 10:00:00",
        USER,
        "ngopi",
        15000,
        "-",
    ]


def test_ids_are_unique_within_same_millisecond(ledger):
    first = ledger.append_transaction(USER, "a", 1000)
    second = ledger.append_transaction(USER, "b", 2000)
    assert int(second.id) == int(first.id) + 1


@pytest.mark.parametrize(
    "user, category, amount",
    [("", "ngopi", 1000), (USER, "", 1000), (USER, "  ", 1000), (USER, "ngopi", 0), (USER, "ngopi", "15000")],
)
def test_append_transaction_rejects_invalid_input(ledger, transaksi_ws, user, category, amount):
    with pytest.raises(InvalidInput):
        ledger.append_transaction(user, category, amount, "x")
    assert transaksi_ws.writes == []


def test_list_for_date_skips_malformed_rows(ledger, transaksi_ws, clock):
    ledger.append_transaction(USER, "ngopi", 15000)
    transaksi_ws.values.append(["rusak", "bukan tanggal", USER, "x", 1, ""])
    transaksi_ws.values.append(["123", "2026-06-15 11:00:00", USER, "x", "abc", ""])
    transaksi_ws.values.append([])

    rows = ledger.list_transactions_for_user_on_date(USER, "2026-06-15")
    assert [r.category for r in rows] == ["ngopi"]
    assert ledger.list_transactions_for_user_on_date(OTHER, "2026-06-15") == []


def test_monthly_total_for_user(ledger, clock):
    ledger.append_transaction(USER, "ngopi", 15000)
    clock.advance(days=1)
    ledger.append_transaction(USER, "makan", 25000)
    ledger.append_transaction(OTHER, "makan", 99000)
    clock.advance(days=30)
    ledger.append_transaction(USER, "makan", 1000)

    assert ledger.monthly_total_for_user(USER, "2026-06") == 40000
    assert ledger.monthly_total_for_user(USER, "2026-07") == 1000


def test_delete_transaction(ledger, transaksi_ws, clock):
    first = ledger.append_transaction(USER, "ngopi", 15000)
    clock.advance(minutes=1)
    second = ledger.append_transaction(USER, "makan", 25000)

    assert ledger.delete_transaction(first.id) is True
    assert ledger.delete_transaction(first.id) is False
    assert [r[0] for r in transaksi_ws.values[1:]] == [second.id]


def test_delete_transactions_removes_from_bottom(ledger, transaksi_ws, clock):
    ids = []
    for amount in (1000, 2000, 3000):
        ids.append(ledger.append_transaction(USER, "x", amount).id)
        clock.advance(seconds=1)

    assert ledger.delete_transactions([ids[0], ids[2]]) == 2
    # satu batch, baris paling bawah dulu
    assert [c for c in transaksi_ws.calls if c[0] == "batch_update"] == [
        ("batch_update", 3, 4),
        ("batch_update", 1, 2),
    ]
    assert [r[4] for r in transaksi_ws.values[1:]] == [2000]


def test_upsert_monthly_budget_inserts_then_updates(ledger, income_ws):
    ledger.upsert_monthly_budget(USER, "2026-06", 5000000, 1000000, 133333)
    ledger.upsert_monthly_budget(USER, "2026-06", 6000000, 1000000, 166666)
    ledger.upsert_monthly_budget(USER, "2026-07", 6000000, 0, 193548)

    assert income_ws.values[1:] == [
        [USER, "2026-06", 6000000, 1000000, 166666],
        [USER, "2026-07", 6000000, 0, 193548],
    ]
    assert ledger.get_monthly_budget(USER, "2026-06") == MonthlyBudget(USER, "2026-06", 6000000, 1000000)
    assert ledger.get_monthly_budget(OTHER, "2026-06") is None


def test_budget_daily_limit_is_derived_not_read(ledger, income_ws):
    # kolom MaxHarian basi / diedit manual tidak dipakai
    income_ws.values.append([USER, "2026-06", 3000000, 0, 1])
    assert ledger.get_monthly_budget(USER, "2026-06").daily_limit == 100000


def test_list_monthly_budgets(ledger, income_ws):
    income_ws.values.append([USER, "2026-06", 3000000, 0, 100000])
    income_ws.values.append([OTHER, "2026-05", 3000000, 0, 96774])
    income_ws.values.append([OTHER, "2026-06", "oops", 0, 0])

    assert [b.user for b in ledger.list_monthly_budgets("2026-06")] == [USER]


def test_row_schema_handles_numeric_cells():
    transaksi = transaction_from_row([20260615100000000, "2026-06-15 10:00:00", 1001, "ngopi", 15000.0])
    assert transaksi.id == "20260615100000000"
    assert transaksi.user == "1001"
    assert transaksi.amount == 15000
    assert transaksi.description == "-"

    with pytest.raises(MalformedRow):
        transaction_from_row(["1", "2026-06-15 10:00:00", "u", "x", 10.5, ""])
    with pytest.raises(MalformedRow):
        budget_from_row(["u", "Juni", 100, 0])
    with pytest.raises(MalformedRow):
        budget_from_row(["u", "2026-06", -100, 0])
