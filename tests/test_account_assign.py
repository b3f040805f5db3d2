import sqlite3

import pytest

from tradedesk.account_assign import AccountAssign, AccountInfo


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def assign(conn):
    return AccountAssign(conn)


def test_open_adds_accounts_with_distinct_refs(assign, conn):
    assign.handle_trader_open(["u2", "u1"])
    assert set(assign.accounts) == {"u1", "u2"}
    refs = [assign.accounts[u].order_ref for u in ("u1", "u2")]
    assert assign.accounts["u1"].order_ref == 999_000_000
    assert len(set(refs)) == 2
    assert all(ref % 1_000_000 == 0 for ref in refs)
    rows = {row[0] for row in conn.execute("select user_id from account_info")}
    assert rows == {"u1", "u2"}


def test_open_replaces_accounts(assign):
    assign.handle_trader_open(["u1", "u2"])
    kept = assign.accounts["u2"]
    assign.handle_trader_open(["u2", "u3"])
    assert set(assign.accounts) == {"u2", "u3"}
    assert assign.accounts["u2"] is kept


def test_open_does_not_duplicate_rows(assign, conn):
    assign.handle_trader_open(["u1"])
    first = assign.accounts["u1"]
    assign.remove_account_status()
    assert assign.accounts == {}
    assign.handle_trader_open(["u1"])
    assert list(assign.accounts) == ["u1"]
    second = assign.accounts["u1"]
    assert second is not first
    assert second.order_ref % 1_000_000 == 0
    assert second.order_ref != first.order_ref
    count = conn.execute("select count(*) from account_info where user_id = 'u1'").fetchone()[0]
    assert count == 1


def test_update_status_persists_blacklist(assign, conn):
    assign.handle_trader_open(["u1"])
    assign.update_open_blacklist("u1", "rb2305", "a")
    assign.update_account_status(5000.0, 4000.0, 7, "u1")
    info = assign.accounts["u1"]
    assert (info.balance, info.available, info.session_id) == (5000.0, 4000.0, 7)
    row = conn.execute(
        "select session_id, balance, available, open_blacklist from account_info where user_id = 'u1'"
    ).fetchone()
    assert row == (7, 5000.0, 4000.0, "rb2305.a.")


def test_unknown_user_is_ignored(assign):
    assign.handle_trader_open(["u1"])
    assign.update_account_status(1.0, 1.0, 1, "zz")
    assign.update_open_blacklist("zz", "rb2305", "a")
    assert list(assign.accounts) == ["u1"]


def test_blacklist_check(assign):
    assign.handle_trader_open(["u1"])
    assign.update_open_blacklist("u1", "rb2305", "a")
    info = assign.accounts["u1"]
    assert not info.not_on_blacklist("rb2305.a")
    assert info.not_on_blacklist("rb2305.b")


def test_next_order_ref_increments():
    info = AccountInfo(41)
    assert info.next_order_ref() == 42
    assert info.next_order_ref() == 43
    assert info.order_ref == 43


def test_close_records_active_balances(assign, conn):
    assign.handle_trader_open(["u1", "u2"])
    assign.update_account_status(5000.0, 4000.0, 7, "u1")
    assign.update_open_blacklist("u1", "rb2305", "a")
    assign.handle_trader_close("20230102")
    assign.handle_trader_close("20230102")
    rows = conn.execute("select date, user_id, balance from account").fetchall()
    assert rows == [("20230102", "u1", 5000.0)]
    assert assign.accounts["u1"].open_blacklist == set()


def test_remove_account_status(assign):
    assign.handle_trader_open(["u1"])
    assign.remove_account_status()
    assert assign.accounts == {}