"""Command-line entry of the trader."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from tradedesk.service import SimulatedGateway, TraderService
from tradedesk.store import TraderStore
from tradedesk.time_state import TraderTimeState

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/marktrade/config.json"
LOG_FILE_NAME = "traderlog.log"
HOLD_ON_INTERVAL = 1.0
EXIT_DELAY = 0.1


class TraderConfig:
    """The trader's JSON configuration."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    @classmethod
    def from_file(cls, path: str | Path) -> "TraderConfig":
        with open(path, encoding="utf-8") as handle:
            return cls(json.load(handle))

    def get(self, *args: str) -> Any:
        """Look up a nested value; KeyError names the missing path."""
        node: Any = self._data
        for key in args:
            try:
                node = node[key]
            except (KeyError, TypeError, IndexError):
                raise KeyError(".".join(str(part) for part in args)) from None
        return node

    def user_ids(self) -> list[str]:
        """The broker user ids of the users the trader runs for."""
        return [str(self.get("users", str(user), "UserID")) for user in self.get("trader", "User")]

    def _optional(self, default: Any, *args: str) -> Any:
        try:
            return self.get(*args)
        except KeyError:
            return default


class TraderMain:
    """Starts the trader service and keeps it running until told to exit."""

    name = "trader"

    def __init__(self, config: TraderConfig) -> None:
        self.config = config
        self.service: TraderService | None = None
        self._exit = threading.Event()

    @property
    def holding(self) -> bool:
        return not self._exit.is_set()

    def exit(self) -> None:
        time.sleep(EXIT_DELAY)
        self._exit.set()

    def hold_on(self) -> None:
        while not self._exit.wait(HOLD_ON_INTERVAL):
            pass

    def entry(self) -> None:
        """Set up logging and storage, run the service, stop it on exit."""
        log_path = Path(self.config.get("trader", "LogPath"))
        log_path.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path / LOG_FILE_NAME, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger = logging.getLogger("tradedesk")
        previous_level = package_logger.level
        package_logger.addHandler(handler)
        package_logger.setLevel(logging.INFO)

        previous_handler = None
        in_main_thread = threading.current_thread() is threading.main_thread()
        if in_main_thread:
            previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: self.exit())
        try:
            log.info("trade log path is %s", log_path)
            data_path = Path(self.config.get("trader", "ControlParaFilePath"))
            with TraderStore(data_path) as store:
                time_state = TraderTimeState(self.config.get("trader", "LogInTimeList"))
                service = TraderService(
                    store,
                    time_state,
                    SimulatedGateway(),
                    self.config.user_ids(),
                    self.config._optional("first", "trader", "AccountAssignMode"),
                    self.config._optional("", "common", "ApiType") == "ftp",
                )
                self.service = service
                service.run()
                try:
                    self.hold_on()
                finally:
                    service.stop()
        finally:
            if in_main_thread and previous_handler is not None:
                signal.signal(signal.SIGINT, previous_handler)
            package_logger.removeHandler(handler)
            package_logger.setLevel(previous_level)
            handler.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tradedesk", description="Run the trader.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="path of the JSON configuration")
    args = parser.parse_args(argv)
    try:
        config = TraderConfig.from_file(args.config)
    except (OSError, ValueError) as exc:
        print(f"cannot read config {args.config}: {exc}", file=sys.stderr)
        return 1
    TraderMain(config).entry()
    return 0


if __name__ == "__main__":
    sys.exit(main())