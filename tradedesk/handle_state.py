"""Reacts to the trading session opening and closing."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from tradedesk.account_assign import AccountAssign
from tradedesk.group_assign import GroupAssign
from tradedesk.order_lookup import OrderLookup
from tradedesk.time_state import SubTimeState, TraderTimeState

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class HandleState:
    """Runs the open and close routines when the session changes.

    ``login_date`` maps a ``YYYY-mm-dd HH:MM:SS`` time to the trading date it
    belongs to.
    """

    def __init__(
        self,
        time_state: TraderTimeState,
        accounts: AccountAssign,
        groups: GroupAssign,
        lookup: OrderLookup,
        user_ids: Iterable[str],
        login_date: Callable[[str], str],
    ) -> None:
        self._time_state = time_state
        self._accounts = accounts
        self._groups = groups
        self._lookup = lookup
        self._user_ids = tuple(user_ids)
        self._login_date = login_date
        self._trader_date = ""
        self._prev_sub_time_state = SubTimeState.IN_INIT

    @property
    def trader_date(self) -> str:
        return self._trader_date

    def handle_event(self, logged_in: bool) -> None:
        """Handle a session change; waits until the trader is logged in."""
        now = self._time_state.sub_time_state
        if now != self._prev_sub_time_state and logged_in:
            self.handle_state_change()
            self._prev_sub_time_state = now

    def handle_state_change(self) -> None:
        """Refresh the trading date and run the open or close routine."""
        moment = self._time_state.time_now or datetime.now()
        self._trader_date = self._login_date(moment.strftime(_TIME_FORMAT))

        sub = self._time_state.sub_time_state
        if sub in (SubTimeState.IN_NIGHT_LOGIN, SubTimeState.IN_DAY_LOGIN):
            self._accounts.handle_trader_open(self._user_ids)
            self._groups.handle_trader_open(self._user_ids)
        elif sub is SubTimeState.IN_DAY_LOGOUT:
            self._lookup.handle_trader_close()
            self._accounts.handle_trader_close(self._trader_date)