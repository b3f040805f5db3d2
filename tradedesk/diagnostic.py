"""Diagnostic events of the trader and their persisted status."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

log = logging.getLogger(__name__)

_CREATE = "create table if not exists diagnostic_info(id INT, status INT, time TEXT)"
_SEED = (
    "insert into diagnostic_info(id, status, time) select ?, 0, '' "
    "where not exists (select * from diagnostic_info where id = ?)"
)
_UPDATE = "update diagnostic_info set status = ?, time = ? where id = ?"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class DiagnosticEventId(IntEnum):
    API_CALL_FAILED = 0
    POSITION_MISMATCHED = 1
    LOGIN_FAILED = 2
    NO_ENOUGH_MONEY = 3
    STRATEGY_DIED = 4
    EVENT_MAX = 5


class DiagEventStatus(IntEnum):
    TEST_NOT_COMPLETED = 0
    PASS = 1
    FAIL = 2


@dataclass
class DiagnosticEvent:
    """Current status of one monitored event."""

    event_id: DiagnosticEventId
    status: DiagEventStatus = DiagEventStatus.TEST_NOT_COMPLETED
    reason: str = ""
    fail_recorded: bool = False
    pass_recorded: bool = False


_MONITORED = (
    DiagnosticEventId.API_CALL_FAILED,
    DiagnosticEventId.POSITION_MISMATCHED,
    DiagnosticEventId.LOGIN_FAILED,
    DiagnosticEventId.NO_ENOUGH_MONEY,
)


class Diagnostic:
    """Tracks event statuses and writes each change to the database once."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._events = {event_id: DiagnosticEvent(event_id) for event_id in _MONITORED}
        self._conn.execute(_CREATE)
        self._conn.executemany(_SEED, ((int(e), int(e)) for e in self._events))

    @property
    def events(self) -> dict[DiagnosticEventId, DiagnosticEvent]:
        return self._events

    def set_event_status(self, event_id: int, status: DiagEventStatus, reason: str) -> None:
        """Set the status of a monitored event; KeyError if it is not monitored."""
        event = self._events[DiagnosticEventId(event_id)]
        event.status = DiagEventStatus(status)
        event.reason = reason

    def monitor_status(self) -> None:
        """Record every pass or fail that has not been recorded yet."""
        for event in self._events.values():
            if event.status is DiagEventStatus.FAIL and not event.fail_recorded:
                self._record(event.event_id, DiagEventStatus.FAIL)
                event.fail_recorded = True
            elif event.status is DiagEventStatus.PASS and not event.pass_recorded:
                self._record(event.event_id, DiagEventStatus.PASS)
                event.pass_recorded = True

    def clear_status(self, event_id: int) -> None:
        """Reset an event to not completed; ids at or past EVENT_MAX are ignored."""
        if event_id >= DiagnosticEventId.EVENT_MAX:
            return
        event = self._events[DiagnosticEventId(event_id)]
        event.fail_recorded = False
        event.pass_recorded = False
        self.set_event_status(event_id, DiagEventStatus.TEST_NOT_COMPLETED, "manual clear")
        self._record(event.event_id, DiagEventStatus.TEST_NOT_COMPLETED)
        log.info("clear diagnostic event id %d' status ok.", int(event_id))

    def _record(self, event_id: DiagnosticEventId, status: DiagEventStatus) -> None:
        snapshot = datetime.now().strftime(_TIME_FORMAT)
        self._conn.execute(_UPDATE, (int(status), snapshot, int(event_id)))