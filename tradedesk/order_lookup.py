"""Positions held per strategy index and account, persisted in SQLite."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from tradedesk.order_manage import CombOffsetType

log = logging.getLogger(__name__)

_CREATE = (
    "create table if not exists order_lookup(order_index TEXT, user_id TEXT, "
    "yesterday_order_ref TEXT, today_order_ref TEXT, yesterday_volume INT, today_volume INT)"
)
_SELECT = (
    "select order_index, user_id, yesterday_order_ref, today_order_ref, "
    "yesterday_volume, today_volume from order_lookup"
)
_INSERT = (
    "insert into order_lookup(order_index, user_id, yesterday_order_ref, today_order_ref, "
    "yesterday_volume, today_volume) values (?, ?, '', '', 0, 0)"
)
_UPDATE_REF = (
    "update order_lookup set yesterday_order_ref = ?, today_order_ref = ? "
    "where order_index = ? and user_id = ?"
)
_UPDATE_POSITION = (
    "update order_lookup set yesterday_volume = ?, today_volume = ? "
    "where order_index = ? and user_id = ?"
)
_DELETE = "delete from order_lookup where order_index = ?"


@dataclass
class OrderPara:
    """Order references and open volume of one account for one index."""

    yesterday_order_ref: str = ""
    today_order_ref: str = ""
    yesterday_volume: int = 0
    today_volume: int = 0

    def move_today_to_yesterday(self) -> None:
        """Roll today's volume into yesterday's at the close of trading."""
        self.yesterday_volume += self.today_volume
        self.today_volume = 0

    def total_volume(self) -> int:
        return self.yesterday_volume + self.today_volume


def _index_key(ins: str, index: str) -> str:
    return f"{ins}.{index}"


def _user_key(group_id: str, user_id: str) -> str:
    return f"{group_id}.{user_id}"


class OrderLookup:
    """Maps ``instrument.index`` to ``group.user`` to an :class:`OrderPara`."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._map: dict[str, dict[str, OrderPara]] = {}
        self._conn.execute(_CREATE)
        self._restore()

    def _restore(self) -> None:
        for order_index, user, y_ref, t_ref, y_vol, t_vol in self._conn.execute(_SELECT):
            self._map.setdefault(order_index, {})[user] = OrderPara(
                y_ref or "", t_ref or "", int(y_vol), int(t_vol)
            )

    def _persist_position(self, key: str, user: str, para: OrderPara) -> None:
        self._conn.execute(
            _UPDATE_POSITION, (para.yesterday_volume, para.today_volume, key, user)
        )

    def update_order_index(
        self,
        ins: str,
        index: str,
        group_id: str,
        user_id: str,
        comboffset: int,
        order_ref: str,
    ) -> bool:
        """Record the latest order reference sent for an account and index."""
        key = _index_key(ins, index)
        user = _user_key(group_id, user_id)
        users = self._map.setdefault(key, {})
        para = users.get(user)
        if para is None:
            self._conn.execute(_INSERT, (key, user))
            para = users[user] = OrderPara()

        if comboffset == CombOffsetType.CLOSE_YESTERDAY:
            para.yesterday_order_ref = order_ref
        else:
            para.today_order_ref = order_ref
        self._conn.execute(
            _UPDATE_REF, (para.yesterday_order_ref, para.today_order_ref, key, user)
        )
        return True

    def update_open_interest(
        self,
        ins: str,
        index: str,
        group_id: str,
        user_id: str,
        yesterday_volume: int,
        today_volume: int,
    ) -> None:
        """Add volume changes to a known entry; unknown entries are ignored."""
        key = _index_key(ins, index)
        user = _user_key(group_id, user_id)
        para = self._map.get(key, {}).get(user)
        if para is None:
            return
        para.yesterday_volume += yesterday_volume
        para.today_volume += today_volume
        self._persist_position(key, user, para)

    def del_order_index(self, ins: str, index: str) -> bool:
        """Forget every account entry of an index; raise KeyError if unknown."""
        key = _index_key(ins, index)
        if key not in self._map:
            raise KeyError(f"order index not found: {key}")
        del self._map[key]
        log.info("del order index[%s] ok, total order index map size [%d]", key, len(self._map))
        self._conn.execute(_DELETE, (key,))
        return True

    def handle_trader_close(self) -> None:
        """Move today's volume to yesterday for every entry."""
        for key, users in self._map.items():
            for user, para in users.items():
                para.move_today_to_yesterday()
                self._persist_position(key, user, para)

    @property
    def order_index_map(self) -> dict[str, dict[str, OrderPara]]:
        return self._map