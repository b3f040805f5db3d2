"""Splits a strategy order over the configured account groups."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum

from tradedesk.account_assign import AccountAssign, AccountInfo
from tradedesk.group_assign import GroupAssign, GroupInfo
from tradedesk.order_lookup import OrderLookup
from tradedesk.order_manage import CombOffsetType, OrderContent, OrderManage

log = logging.getLogger(__name__)

MINIMUM_ACCOUNT_AVAILABLE = 100.0


class AssignMode(str, Enum):
    """How an opening order is spread over the accounts of a group."""

    FIRST = "first"
    CYCLE = "cycle"
    SHARE = "share"


class OrderAllocate:
    """Turns one strategy order into per-account orders."""

    def __init__(
        self,
        accounts: AccountAssign,
        groups: GroupAssign,
        lookup: OrderLookup,
        manage: OrderManage,
        assign_mode: AssignMode | str = AssignMode.FIRST,
    ) -> None:
        self._accounts = accounts
        self._groups = groups
        self._lookup = lookup
        self._manage = manage
        self._mode = AssignMode(assign_mode)
        self._orders: list[OrderContent] = []

    @property
    def order_list(self) -> list[OrderContent]:
        """The orders produced by the last call to :meth:`update_order_list`."""
        return self._orders

    def update_order_list(self, content: OrderContent) -> list[OrderContent]:
        """Allocate ``content`` and register every resulting order.

        ``content.once_volume`` is left holding the volume that could not be
        allocated.
        """
        self._orders = []
        if content.comboffset == CombOffsetType.OPEN:
            self._open_order(content)
        else:
            self._close_order(content)

        for item in self._orders:
            self._manage.build_order(item.order_ref, item)
            self._lookup.update_order_index(
                item.instrument_id,
                item.index,
                item.group_id,
                item.user_id,
                item.comboffset,
                item.order_ref,
            )
            log.info(
                "%s %s %d %s %d",
                item.instrument_id,
                item.index,
                int(item.comboffset),
                item.order_ref,
                item.once_volume,
            )
        return self._orders

    @staticmethod
    def _key(content: OrderContent) -> str:
        return f"{content.instrument_id}.{content.index}"

    def _held_volume(self, key: str, group_id: str, group: GroupInfo) -> int:
        users = self._lookup.order_index_map.get(key, {})
        total = 0
        for account in group.accounts:
            para = users.get(f"{group_id}.{account}")
            if para is not None:
                total += para.total_volume()
        return total

    @staticmethod
    def _eligible(info: AccountInfo | None, key: str) -> bool:
        return (
            info is not None
            and info.available >= MINIMUM_ACCOUNT_AVAILABLE
            and info.not_on_blacklist(key)
        )

    def _emit(self, content: OrderContent, group_id: str, account: str, info: AccountInfo) -> None:
        content.session_id = info.session_id
        content.order_ref = str(info.next_order_ref())
        content.user_id = account
        content.group_id = group_id
        self._orders.append(replace(content))

    def _open_order(self, content: OrderContent) -> None:
        key = self._key(content)
        left = content.once_volume
        for group_id, group in list(self._groups.groups.items()):
            held = self._held_volume(key, group_id, group)
            if content.hold_volume == held:
                continue
            missing = content.hold_volume - held
            content.once_volume = missing if 0 <= missing < left else left

            if self._mode is AssignMode.FIRST:
                opened = self._first_open(group_id, group, content)
            elif self._mode is AssignMode.CYCLE:
                opened = self._cycle_open(group_id, group, content)
            else:
                opened = self._share_open(group_id, group, content)
            left = max(left - opened, 0)
            if left == 0:
                break
        content.once_volume = left

    def _single_open(self, group_id: str, account: str, content: OrderContent) -> int:
        info = self._accounts.accounts.get(account)
        if not self._eligible(info, self._key(content)):
            return 0
        self._emit(content, group_id, account, info)
        return content.once_volume

    def _first_open(self, group_id: str, group: GroupInfo, content: OrderContent) -> int:
        if not group.accounts:
            return 0
        return self._single_open(group_id, group.accounts[0], content)

    def _cycle_open(self, group_id: str, group: GroupInfo, content: OrderContent) -> int:
        if not group.accounts:
            return 0
        return self._single_open(group_id, group.accounts[group.next_account_index()], content)

    def _share_open(self, group_id: str, group: GroupInfo, content: OrderContent) -> int:
        key = self._key(content)
        once = content.once_volume
        eligible = [
            (account, info)
            for account in group.accounts
            if self._eligible(info := self._accounts.accounts.get(account), key)
        ]
        total_money = sum(info.available for _, info in eligible)
        opened = 0
        carry = 0.0
        for account, info in eligible:
            share = info.available / total_money * once
            volume = int(share + 0.5000001 + carry)
            carry += share - volume
            if volume > 0:
                content.once_volume = volume
                self._emit(content, group_id, account, info)
                opened += volume
        return opened

    def _close_order(self, content: OrderContent) -> None:
        key = self._key(content)
        left = content.once_volume
        for group_id, group in list(self._groups.groups.items()):
            held = self._held_volume(key, group_id, group)
            if held == 0:
                continue
            content.once_volume = min(left, held)
            left -= content.once_volume
            self._sequence_close(group_id, group, content)
            if left == 0:
                break
        content.once_volume = left

    def _sequence_close(self, group_id: str, group: GroupInfo, content: OrderContent) -> None:
        key = self._key(content)
        users = self._lookup.order_index_map.get(key, {})
        once = content.once_volume
        sent = 0
        for account in group.accounts:
            para = users.get(f"{group_id}.{account}")
            if para is None:
                continue
            for volume, offset in (
                (para.yesterday_volume, CombOffsetType.CLOSE_YESTERDAY),
                (para.today_volume, CombOffsetType.CLOSE_TODAY),
            ):
                info = self._accounts.accounts.get(account)
                if volume <= 0 or info is None:
                    continue
                content.comboffset = offset
                if volume + sent < once:
                    content.once_volume = volume
                    sent += volume
                    self._emit(content, group_id, account, info)
                else:
                    content.once_volume = once - sent
                    sent = once
                    self._emit(content, group_id, account, info)
                    return