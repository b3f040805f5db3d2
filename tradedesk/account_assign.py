"""Trading accounts, their funds and per-index open blacklists."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

_CREATE_INFO = (
    "create table if not exists account_info(user_id TEXT, session_id INT, balance REAL, "
    "available REAL, open_blacklist TEXT)"
)
_CREATE_ACCOUNT = "create table if not exists account(date TEXT, user_id TEXT, balance REAL)"
_INSERT_INFO = (
    "insert into account_info(user_id, session_id, balance, available, open_blacklist) "
    "select ?, ?, ?, ?, '' where not exists (select * from account_info where user_id = ?)"
)
_UPDATE_INFO = (
    "update account_info set session_id = ?, balance = ?, available = ?, open_blacklist = ? "
    "where user_id = ?"
)
_DELETE_DAY = "delete from account where date = ?"
_INSERT_DAY = "insert into account values (?, ?, ?)"

_UINT16 = 0xFFFF
_UINT32 = 0xFFFFFFFF


@dataclass
class AccountInfo:
    """Funds and order reference counter of one account."""

    order_ref: int
    balance: float = 0.0
    available: float = 0.0
    session_id: int = 0
    open_blacklist: set[str] = field(default_factory=set)

    def not_on_blacklist(self, key: str) -> bool:
        return key not in self.open_blacklist

    def next_order_ref(self) -> int:
        """Advance and return the account's order reference."""
        self.order_ref = (self.order_ref + 1) & _UINT32
        return self.order_ref


class AccountAssign:
    """Holds the accounts the trader works with."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._accounts: dict[str, AccountInfo] = {}
        self._ref_base = 1000
        self._conn.execute(_CREATE_INFO)
        self._conn.execute(_CREATE_ACCOUNT)

    def update_account_status(
        self, balance: float, available: float, session_id: int, user_id: str
    ) -> None:
        """Store funds reported for a known account; unknown ones are ignored."""
        info = self._accounts.get(user_id)
        if info is None:
            return
        blacklist = "".join(f"{item}." for item in sorted(info.open_blacklist))
        info.balance = balance
        info.available = available
        info.session_id = session_id
        self._conn.execute(_UPDATE_INFO, (session_id, balance, available, blacklist, user_id))

    def update_open_blacklist(self, user_id: str, ins: str, index: str) -> None:
        """Bar an account from opening more on ``ins.index``."""
        info = self._accounts.get(user_id)
        if info is not None:
            info.open_blacklist.add(f"{ins}.{index}")

    def remove_account_status(self) -> None:
        self._accounts.clear()

    def _new_order_ref(self) -> int:
        self._ref_base = (self._ref_base - 1) & _UINT16
        return (self._ref_base % 1000) * 1_000_000 & _UINT32

    def handle_trader_open(self, user_ids: Iterable[str]) -> None:
        """Bring the account set in line with the configured user ids."""
        wanted = set(user_ids)
        removed = [user for user in self._accounts if user not in wanted]
        added = sorted(user for user in wanted if user not in self._accounts)
        if not removed and not added:
            log.info("no need to change account info.")
        for user in removed:
            del self._accounts[user]
            log.info("del account: %s", user)
        for user in added:
            self._accounts[user] = AccountInfo(self._new_order_ref())
            self._conn.execute(_INSERT_INFO, (user, 0, 0.0, 0.0, user))

    def handle_trader_close(self, trader_date: str) -> None:
        """Clear blacklists and record the day's balances of active accounts."""
        self._conn.execute(_DELETE_DAY, (trader_date,))
        for user, info in self._accounts.items():
            info.open_blacklist.clear()
            if info.session_id != 0:
                self._conn.execute(_INSERT_DAY, (trader_date, user, info.balance))

    @property
    def accounts(self) -> dict[str, AccountInfo]:
        return self._accounts