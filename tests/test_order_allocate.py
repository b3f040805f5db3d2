import sqlite3

import pytest

from tradedesk.account_assign import AccountAssign
from tradedesk.group_assign import GroupAssign
from tradedesk.order_allocate import AssignMode, OrderAllocate
from tradedesk.order_lookup import OrderLookup
from tradedesk.order_manage import CombOffsetType, OrderContent, OrderManage


@pytest.fixture
def parts():
    conn = sqlite3.connect(":memory:")
    accounts = AccountAssign(conn)
    accounts.handle_trader_open(["u1", "u2"])
    accounts.update_account_status(1000.0, 1000.0, 7, "u1")
    accounts.update_account_status(1000.0, 1000.0, 8, "u2")
    groups = GroupAssign(conn)
    groups.update_group_info("g1", ["u1", "u2"])
    lookup = OrderLookup(conn)
    manage = OrderManage()
    yield accounts, groups, lookup, manage
    conn.close()


def make(parts, mode):
    return OrderAllocate(*parts, mode)


def open_content(once=5, hold=5):
    return OrderContent(instrument_id="rb", index="1", once_volume=once, hold_volume=hold)


def test_first_mode_opens_on_first_account(parts):
    accounts, _, lookup, manage = parts
    allocate = make(parts, AssignMode.FIRST)
    content = open_content()
    orders = allocate.update_order_list(content)
    assert len(orders) == 1
    order = orders[0]
    assert order.user_id == "u1"
    assert order.group_id == "g1"
    assert order.once_volume == 5
    assert order.comboffset == CombOffsetType.OPEN
    assert order.order_ref == str(accounts.accounts["u1"].order_ref)
    assert manage.get_order(order.order_ref) is order
    assert lookup.order_index_map["rb.1"]["g1.u1"].today_order_ref == order.order_ref
    assert content.once_volume == 0
    assert allocate.order_list == orders


def test_cycle_mode_alternates_accounts(parts):
    allocate = make(parts, "cycle")
    first = allocate.update_order_list(open_content())[0].user_id
    second = allocate.update_order_list(open_content())[0].user_id
    assert {first, second} == {"u1", "u2"}


def test_share_mode_spreads_volume(parts):
    allocate = make(parts, AssignMode.SHARE)
    orders = allocate.update_order_list(open_content(once=4, hold=4))
    assert len(orders) == 2
    assert sum(order.once_volume for order in orders) == 4
    assert {order.user_id for order in orders} == {"u1", "u2"}


def test_low_funds_blocks_opening(parts):
    accounts = parts[0]
    accounts.update_account_status(1000.0, 50.0, 7, "u1")
    allocate = make(parts, AssignMode.FIRST)
    content = open_content()
    assert allocate.update_order_list(content) == []
    assert content.once_volume == 5


def test_blacklist_blocks_opening(parts):
    accounts = parts[0]
    accounts.update_open_blacklist("u1", "rb", "1")
    allocate = make(parts, AssignMode.FIRST)
    assert allocate.update_order_list(open_content()) == []


def test_hold_volume_already_reached(parts):
    lookup = parts[2]
    lookup.update_order_index("rb", "1", "g1", "u1", CombOffsetType.OPEN, "r")
    lookup.update_open_interest("rb", "1", "g1", "u1", 0, 5)
    allocate = make(parts, AssignMode.FIRST)
    content = open_content()
    assert allocate.update_order_list(content) == []
    assert content.once_volume == 5


def test_close_takes_yesterday_then_today(parts):
    lookup = parts[2]
    lookup.update_order_index("rb", "1", "g1", "u1", CombOffsetType.OPEN, "r")
    lookup.update_open_interest("rb", "1", "g1", "u1", 2, 3)
    allocate = make(parts, AssignMode.FIRST)
    content = OrderContent(
        instrument_id="rb", index="1", once_volume=4, comboffset=CombOffsetType.CLOSE
    )
    orders = allocate.update_order_list(content)
    assert [order.comboffset for order in orders] == [
        CombOffsetType.CLOSE_YESTERDAY,
        CombOffsetType.CLOSE_TODAY,
    ]
    assert sum(order.once_volume for order in orders) == 4
    assert orders[0].once_volume == 2
    assert content.once_volume == 0


def test_close_without_position(parts):
    allocate = make(parts, AssignMode.FIRST)
    content = OrderContent(
        instrument_id="rb", index="1", once_volume=4, comboffset=CombOffsetType.CLOSE
    )
    assert allocate.update_order_list(content) == []
    assert content.once_volume == 4


def test_order_list_is_replaced(parts):
    accounts = parts[0]
    allocate = make(parts, AssignMode.FIRST)
    allocate.update_order_list(open_content())
    accounts.update_account_status(1000.0, 0.0, 7, "u1")
    allocate.update_order_list(open_content())
    assert allocate.order_list == []


def test_unknown_mode_is_rejected(parts):
    with pytest.raises(ValueError):
        make(parts, "random")