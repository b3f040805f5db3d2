"""In-memory registry of orders that have been sent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

log = logging.getLogger(__name__)


class CombOffsetType(IntEnum):
    """Whether an order opens a position or closes one."""

    OPEN = 0
    CLOSE = 1
    CLOSE_TODAY = 2
    CLOSE_YESTERDAY = 3


@dataclass
class OrderContent:
    """One order as it is allocated to an account."""

    instrument_id: str = ""
    index: str = ""
    once_volume: int = 0
    hold_volume: int = 0
    comboffset: CombOffsetType = CombOffsetType.OPEN
    session_id: int = 0
    order_ref: str = ""
    user_id: str = ""
    group_id: str = ""
    exchange_id: str = ""
    limit_price: float = 0.0


class OrderManage:
    """Keeps orders by their order key."""

    def __init__(self) -> None:
        self._orders: dict[str, OrderContent] = {}

    def build_order(self, order_key: str, content: OrderContent) -> bool:
        """Register an order; return False if the key is already taken."""
        if order_key in self._orders:
            return False
        self._orders[order_key] = content
        return True

    def del_order(self, order_key: str) -> None:
        """Remove an order; raise KeyError if it is unknown."""
        try:
            del self._orders[order_key]
        except KeyError:
            raise KeyError(f"order not found: {order_key}") from None
        log.info("del order[%s] ok, total order map size [%d]", order_key, len(self._orders))

    def get_order(self, order_key: str) -> OrderContent | None:
        """Return the order for a key, or None."""
        return self._orders.get(order_key)

    def __len__(self) -> int:
        return len(self._orders)