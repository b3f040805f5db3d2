"""Login and logout windows of the trading day as a small state machine."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import IntEnum

log = logging.getLogger(__name__)

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class TimeState(IntEnum):
    """Whether the trader should currently be logged in."""

    RESERVE = 0
    LOGIN_TIME = 1
    LOGOUT_TIME = 2


class SubTimeState(IntEnum):
    """Which trading session the clock is in."""

    IN_DAY_LOGIN = 1
    IN_DAY_LOGOUT = 2
    IN_INIT = 3
    IN_NIGHT_LOGIN = 4
    IN_NIGHT_LOGOUT = 5


class LoginCommand(IntEnum):
    """Manual override commands for the login state."""

    LOGIN = 1
    LOGOUT = 2
    RESERVE = 3


_Window = tuple[int, int]


def _parse_minutes(text: str) -> int:
    hours, minutes = text.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def _parse_window(text: str) -> _Window:
    start, end = text.split("-")[:2]
    return _parse_minutes(start), _parse_minutes(end)


def _in_window(now: int, window: _Window) -> bool:
    start, end = window
    if start <= end:
        return start <= now <= end
    return now >= start or now <= end


class TraderTimeState:
    """Tracks the day and optional night login windows.

    ``login_time_list`` is ``"HH:MM-HH:MM"`` for a day session alone or
    ``"HH:MM-HH:MM;HH:MM-HH:MM"`` for a day and a night session.
    """

    def __init__(self, login_time_list: str) -> None:
        parts = login_time_list.split(";")
        if len(parts) not in (1, 2):
            raise ValueError(f"time string: {login_time_list} is error.")
        try:
            self._day: _Window = _parse_window(parts[0])
            self._night: _Window | None = _parse_window(parts[1]) if len(parts) == 2 else None
        except (ValueError, IndexError) as exc:
            raise ValueError(f"time string: {login_time_list} is error.") from exc

        self._active = False
        self._sub_time_state = SubTimeState.IN_INIT
        self._debug_sub_time_state = SubTimeState.IN_INIT
        self._time_state = TimeState.RESERVE
        self._debug_time_state = TimeState.RESERVE
        self._time_now: datetime | None = None
        self._now_mins = 0
        log.info("login windows: day %s, night %s", self._day, self._night)

    def _day_login(self) -> bool:
        return _in_window(self._now_mins, self._day)

    def _day_logout(self) -> bool:
        return not self._day_login()

    def _night_login(self) -> bool:
        return self._night is not None and _in_window(self._now_mins, self._night)

    def _night_logout(self) -> bool:
        return self._night is not None and not _in_window(self._now_mins, self._night)

    def _set(self, sub: SubTimeState, state: TimeState) -> None:
        self._sub_time_state = sub
        self._time_state = state

    def step(self) -> None:
        """Advance the state machine using the last recorded time."""
        if not self._active:
            self._active = True
            self._set(SubTimeState.IN_INIT, TimeState.LOGOUT_TIME)
            return

        sub = self._sub_time_state
        if sub is SubTimeState.IN_DAY_LOGIN:
            if self._day_logout():
                self._set(SubTimeState.IN_DAY_LOGOUT, TimeState.LOGOUT_TIME)
        elif sub is SubTimeState.IN_DAY_LOGOUT:
            if self._night_login():
                self._set(SubTimeState.IN_NIGHT_LOGIN, TimeState.LOGIN_TIME)
            elif self._day_login():
                self._set(SubTimeState.IN_DAY_LOGIN, TimeState.LOGIN_TIME)
        elif sub is SubTimeState.IN_INIT:
            if self._day_logout() and not self._night_login():
                self._set(SubTimeState.IN_DAY_LOGOUT, TimeState.LOGOUT_TIME)
            elif self._night_logout() and not self._day_login():
                self._set(SubTimeState.IN_NIGHT_LOGOUT, TimeState.LOGOUT_TIME)
            elif self._day_login():
                self._set(SubTimeState.IN_DAY_LOGIN, TimeState.LOGIN_TIME)
            elif self._night_login():
                self._set(SubTimeState.IN_NIGHT_LOGIN, TimeState.LOGIN_TIME)
        elif sub is SubTimeState.IN_NIGHT_LOGIN:
            if self._night_logout():
                self._set(SubTimeState.IN_NIGHT_LOGOUT, TimeState.LOGOUT_TIME)
        elif sub is SubTimeState.IN_NIGHT_LOGOUT:
            if self._day_login():
                self._set(SubTimeState.IN_DAY_LOGIN, TimeState.LOGIN_TIME)
            elif self._night_login():
                self._set(SubTimeState.IN_NIGHT_LOGIN, TimeState.LOGIN_TIME)

    def _record(self, moment: datetime) -> None:
        self._time_now = moment
        self._now_mins = moment.hour * 60 + moment.minute

    def update(self, now: datetime | None = None) -> None:
        """Record the current (or given) local time and step."""
        self._record(now if now is not None else datetime.now())
        self.step()

    def simulate(self, time_str: str) -> None:
        """Record a ``YYYY-mm-dd HH:MM:SS`` time and step.

        A string that does not parse leaves the recorded time unchanged.
        """
        try:
            self._record(datetime.strptime(time_str, _TIME_FORMAT))
        except ValueError:
            log.warning("cannot parse simulated time %r", time_str)
        self.step()

    def set_time_state(self, command: int) -> None:
        """Override the reported time state; RESERVE removes the override."""
        if command == LoginCommand.LOGIN:
            self._debug_time_state = TimeState.LOGIN_TIME
        elif command == LoginCommand.LOGOUT:
            self._debug_time_state = TimeState.LOGOUT_TIME
        elif command == LoginCommand.RESERVE:
            self._debug_time_state = TimeState.RESERVE

    def set_sub_time_state(self, command: int) -> None:
        """Override the reported sub state; RESERVE removes the override."""
        if command == LoginCommand.LOGIN:
            self._debug_sub_time_state = SubTimeState.IN_DAY_LOGIN
        elif command == LoginCommand.LOGOUT:
            self._debug_sub_time_state = SubTimeState.IN_DAY_LOGOUT
        elif command == LoginCommand.RESERVE:
            self._debug_sub_time_state = SubTimeState.IN_INIT

    @property
    def time_state(self) -> TimeState:
        if self._debug_time_state is not TimeState.RESERVE:
            return self._debug_time_state
        return self._time_state

    @property
    def sub_time_state(self) -> SubTimeState:
        if self._debug_sub_time_state is not SubTimeState.IN_INIT:
            return self._debug_sub_time_state
        return self._sub_time_state

    @property
    def time_now(self) -> datetime | None:
        return self._time_now