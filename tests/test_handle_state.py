import sqlite3
from datetime import datetime

import pytest

from tradedesk.account_assign import AccountAssign
from tradedesk.group_assign import DEFAULT_GROUP, GroupAssign
from tradedesk.handle_state import HandleState
from tradedesk.order_lookup import OrderLookup
from tradedesk.order_manage import CombOffsetType
from tradedesk.time_state import TraderTimeState


@pytest.fixture
def setup():
    conn = sqlite3.connect(":memory:")
    time_state = TraderTimeState("09:00-15:00")
    accounts = AccountAssign(conn)
    groups = GroupAssign(conn)
    lookup = OrderLookup(conn)
    calls = []

    def login_date(text):
        calls.append(text)
        return "D" + text[:10]

    handle = HandleState(time_state, accounts, groups, lookup, ["u1", "u2"], login_date)
    yield conn, time_state, accounts, groups, lookup, handle, calls
    conn.close()


def to_day_login(time_state):
    moment = datetime(2024, 1, 2, 10, 0, 0)
    time_state.update(moment)
    time_state.update(moment)


def test_nothing_happens_when_logged_out(setup):
    _, time_state, accounts, _, _, handle, calls = setup
    to_day_login(time_state)
    handle.handle_event(False)
    assert accounts.accounts == {}
    assert handle.trader_date == ""
    assert calls == []


def test_day_login_opens_accounts_and_groups(setup):
    _, time_state, accounts, groups, _, handle, calls = setup
    to_day_login(time_state)
    handle.handle_event(True)
    assert set(accounts.accounts) == {"u1", "u2"}
    assert set(groups.groups[DEFAULT_GROUP].accounts) == {"u1", "u2"}
    assert calls == ["2024-01-02 10:00:00"]
    assert handle.trader_date == "D2024-01-02"


def test_same_state_handled_once(setup):
    _, time_state, _, _, _, handle, calls = setup
    to_day_login(time_state)
    handle.handle_event(True)
    handle.handle_event(True)
    assert len(calls) == 1


def test_deferred_until_logged_in(setup):
    _, time_state, accounts, _, _, handle, calls = setup
    to_day_login(time_state)
    handle.handle_event(False)
    handle.handle_event(True)
    assert set(accounts.accounts) == {"u1", "u2"}
    assert len(calls) == 1


def test_day_logout_rolls_positions_and_records_balance(setup):
    conn, time_state, accounts, _, lookup, handle, _ = setup
    to_day_login(time_state)
    handle.handle_event(True)
    accounts.update_account_status(5000.0, 4000.0, 3, "u1")
    lookup.update_order_index("rb", "1", DEFAULT_GROUP, "u1", CombOffsetType.OPEN, "r")
    lookup.update_open_interest("rb", "1", DEFAULT_GROUP, "u1", 1, 4)

    time_state.update(datetime(2024, 1, 2, 16, 0, 0))
    handle.handle_event(True)

    para = lookup.order_index_map["rb.1"][f"{DEFAULT_GROUP}.u1"]
    assert para.today_volume == 0
    assert para.total_volume() == 5
    saved = conn.execute("select date, user_id, balance from account").fetchall()
    assert saved == [(handle.trader_date, "u1", 5000.0)]
    assert handle.trader_date == "D2024-01-02"