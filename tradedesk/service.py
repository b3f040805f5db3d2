"""The trader's service loop: login handling and periodic upkeep."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from enum import IntEnum
from typing import Protocol

from tradedesk.account_assign import AccountAssign
from tradedesk.diagnostic import Diagnostic
from tradedesk.group_assign import GroupAssign
from tradedesk.handle_state import HandleState
from tradedesk.order_allocate import AssignMode, OrderAllocate
from tradedesk.order_lookup import OrderLookup
from tradedesk.order_manage import OrderManage
from tradedesk.store import TraderStore
from tradedesk.time_state import TimeState, TraderTimeState

log = logging.getLogger(__name__)

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_STARTED = datetime.now().strftime(_TIME_FORMAT)

_CREATE = "create table if not exists service_info(compile_time TEXT, login_state INT)"
_SEED = (
    "insert into service_info(compile_time, login_state) select '', 3 "
    "where not exists (select * from service_info)"
)
_UPDATE = "update service_info set compile_time = ?, login_state = ?"

WAIT_TIMES = (10, 60, 600)
MAX_ERROR_RETRIES = 10
RECONNECT_INTERVAL = 3
MAX_RECONNECT_RETRIES = 600


class TraderLoginState(IntEnum):
    """Login state of the trader towards its broker gateway."""

    ERROR = 0
    LOGIN = 1
    LOGOUT = 2
    MANUAL_EXIT = 3
    LOSS_CONNECTION = 4


class Gateway(Protocol):
    """The broker connection the service logs in and out of."""

    def req_user_login(self) -> bool: ...

    def req_user_logout(self) -> None: ...

    def req_available_funds(self) -> None: ...

    def loss_connection(self) -> bool: ...

    def request_account_status(self) -> None: ...


class SimulatedGateway:
    """A gateway without a broker behind it; it records every request."""

    def __init__(self) -> None:
        self.login_ok = True
        self.connection_lost = False
        self.logged_in = False
        self.login_requests = 0
        self.logout_requests = 0
        self.funds_requests = 0
        self.status_requests = 0

    def req_user_login(self) -> bool:
        self.login_requests += 1
        if self.login_ok:
            self.logged_in = True
            self.connection_lost = False
        return self.login_ok

    def req_user_logout(self) -> None:
        self.logout_requests += 1
        self.logged_in = False

    def req_available_funds(self) -> None:
        self.funds_requests += 1

    def loss_connection(self) -> bool:
        return self.connection_lost

    def request_account_status(self) -> None:
        self.status_requests += 1


def _calendar_date(timestring: str) -> str:
    return datetime.strptime(timestring, _TIME_FORMAT).strftime("%Y%m%d")


class TraderService:
    """Wires the trader components together and drives them once per tick."""

    tick_interval = 1.0

    def __init__(
        self,
        store: TraderStore,
        time_state: TraderTimeState,
        gateway: Gateway,
        user_ids: Iterable[str],
        assign_mode: AssignMode | str = AssignMode.FIRST,
        fast_back: bool = False,
        login_date: Callable[[str], str] | None = None,
    ) -> None:
        self.store = store
        self.time_state = time_state
        self.gateway = gateway
        self.user_ids = tuple(user_ids)
        self.fast_back = fast_back

        conn = store.connection
        self.orders = OrderManage()
        self.lookup = OrderLookup(conn)
        self.accounts = AccountAssign(conn)
        self.groups = GroupAssign(conn)
        self.allocate = OrderAllocate(
            self.accounts, self.groups, self.lookup, self.orders, assign_mode
        )
        self.diagnostic = Diagnostic(conn)
        self.handle_state = HandleState(
            time_state,
            self.accounts,
            self.groups,
            self.lookup,
            self.user_ids,
            login_date or _calendar_date,
        )

        self._login_state = TraderLoginState.LOGOUT
        self._heartbeat = 0
        self._tries = 0
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        conn.execute(_CREATE)
        conn.execute(_SEED)

    @property
    def login_state(self) -> TraderLoginState:
        return self._login_state

    def update_login_state(self, state: TraderLoginState) -> None:
        """Set the login state and persist it."""
        with self._lock:
            self._login_state = TraderLoginState(state)
            self.store.connection.execute(_UPDATE, (_STARTED, int(self._login_state)))

    def _req_account_status(self) -> None:
        if self._login_state is TraderLoginState.LOGIN:
            self.gateway.request_account_status()

    def real_time_tick(self, period_count: int) -> None:
        """One pass of the real-time loop."""
        with self._lock:
            self.time_state.update()
            self.handle_state.handle_event(self._login_state is TraderLoginState.LOGIN)
            if period_count % 10 == 9:
                self.diagnostic.monitor_status()
                self._req_account_status()
            if period_count % 2 == 1:
                self.store.checkpoint()
            self._real_time_login_logout_change()

    def fast_back_tick(self) -> None:
        """One pass of the back-testing loop."""
        with self._lock:
            if self._login_state is TraderLoginState.LOGOUT:
                self.update_login_state(TraderLoginState.LOGIN)
            self._req_account_status()
            self.store.checkpoint()

    def _real_time_login_logout_change(self) -> None:
        state = self._login_state
        if state is TraderLoginState.LOGOUT:
            self._handle_logout_state()
        elif state is TraderLoginState.ERROR:
            self._handle_error_state()
        elif state is TraderLoginState.LOGIN:
            self._handle_login_state()
        elif state is TraderLoginState.LOSS_CONNECTION:
            self._handle_loss_connection()

    def _login(self) -> bool:
        if self.gateway.req_user_login():
            self.gateway.req_available_funds()
            return True
        return False

    def _logout(self) -> None:
        self.gateway.req_user_logout()
        self.update_login_state(TraderLoginState.LOGOUT)

    def _handle_error_state(self) -> None:
        state = self.time_state.time_state
        if state == TimeState.LOGIN_TIME:
            interval = WAIT_TIMES[self._tries % len(WAIT_TIMES)]
            beat = self._heartbeat
            self._heartbeat += 1
            if beat % interval == interval - 1:
                tries = self._tries
                self._tries += 1
                if tries <= MAX_ERROR_RETRIES and self._login():
                    self.update_login_state(TraderLoginState.LOGIN)
        elif state == TimeState.LOGOUT_TIME:
            self._logout()

    def _handle_login_state(self) -> None:
        if self.time_state.time_state == TimeState.LOGOUT_TIME:
            self._logout()
        elif self.gateway.loss_connection():
            self.update_login_state(TraderLoginState.LOSS_CONNECTION)

    def _handle_logout_state(self) -> None:
        if self.time_state.time_state == TimeState.LOGIN_TIME:
            self._heartbeat = 0
            self._tries = 0
            if self._login():
                self.update_login_state(TraderLoginState.LOGIN)
            else:
                self.update_login_state(TraderLoginState.ERROR)

    def _handle_loss_connection(self) -> None:
        state = self.time_state.time_state
        if state == TimeState.LOGIN_TIME:
            beat = self._heartbeat
            self._heartbeat += 1
            if beat % RECONNECT_INTERVAL == RECONNECT_INTERVAL - 1:
                tries = self._tries
                self._tries += 1
                if tries <= MAX_RECONNECT_RETRIES and self._login():
                    self.update_login_state(TraderLoginState.LOGIN)
        elif state == TimeState.LOGOUT_TIME:
            self._logout()

    def _loop(self) -> None:
        period = 0
        while not self._stop_event.is_set():
            try:
                if self.fast_back:
                    self.fast_back_tick()
                else:
                    self.real_time_tick(period)
            except Exception:
                log.exception("trader periodic task failed")
            period += 1
            self._stop_event.wait(self.tick_interval)

    def run(self) -> bool:
        """Start the periodic task in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("trader service is already running")
        self._stop_event.clear()
        name = "trader-fast-back" if self.fast_back else "trader-real-time"
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)
        self._thread.start()
        log.info("trader %s thread start", name)
        return True

    def stop(self) -> bool:
        """Mark a manual exit and wait for the periodic task to end."""
        self.update_login_state(TraderLoginState.MANUAL_EXIT)
        log.info("set login state to manual exit.")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        log.info("trader thread exit")
        return True