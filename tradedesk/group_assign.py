"""Account groups that orders are spread over, persisted in SQLite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

_CREATE = "create table if not exists group_info(group_id TEXT, account TEXT)"
_SELECT = "select group_id, account from group_info"
_DELETE = "delete from group_info where group_id = ?"
_INSERT = "insert into group_info(group_id, account) values (?, ?)"

DEFAULT_GROUP = "name01"


class GroupInfo:
    """An ordered list of accounts with a round-robin cursor."""

    def __init__(self) -> None:
        self.accounts: list[str] = []
        self._index = 0

    def add_account(self, account: str) -> None:
        self.accounts.append(account)

    def clear(self) -> None:
        self.accounts.clear()

    def next_account_index(self) -> int:
        """Return the next position in round-robin order."""
        if not self.accounts:
            raise ValueError("group has no accounts")
        position = self._index % len(self.accounts)
        self._index += 1
        return position


class GroupAssign:
    """Maps group ids to their :class:`GroupInfo`."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._groups: dict[str, GroupInfo] = {}
        self._conn.execute(_CREATE)
        for group_id, account in self._conn.execute(_SELECT).fetchall():
            self._groups.setdefault(group_id, GroupInfo()).add_account(account)

    def update_group_info(self, group_id: str, account_list: Iterable[str]) -> None:
        """Replace a group's accounts; an empty list removes the group."""
        accounts = sorted(set(account_list))
        if not accounts:
            self._groups.pop(group_id, None)
        else:
            group = self._groups.setdefault(group_id, GroupInfo())
            group.clear()
            for account in accounts:
                group.add_account(account)

        self._conn.execute(_DELETE, (group_id,))
        self._conn.executemany(_INSERT, ((group_id, account) for account in accounts))

    def handle_trader_open(self, user_ids: Iterable[str]) -> None:
        """Put every user into the default group if no group exists yet."""
        if not self._groups:
            self.update_group_info(DEFAULT_GROUP, user_ids)

    @property
    def groups(self) -> dict[str, GroupInfo]:
        return self._groups