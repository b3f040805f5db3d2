# tradedesk

The core of a trading desk service. It does four things:

- It tracks when the trader may be logged in.
- It spreads a strategy's order over groups of trading accounts.
- It records the open positions for each instrument and account.
- It keeps its state in a local SQLite database, so a restart continues from
  where the last run stopped.

## Components

- **`tradedesk.store.TraderStore`**
  - Opens `control.db` in a data directory.
  - Keeps a transaction open at all times.
  - `checkpoint()` commits the current transaction and starts a new one.
  - `close()`, or leaving a `with` block, commits and closes the database.
- **`tradedesk.time_state.TraderTimeState`**
  - Reads login windows such as `"08:45-15:30;20:45-02:45"`: a day window,
    optionally followed by a night window.
  - Steps through the day and night login and logout states.
  - `update()` steps using the current clock, or a `datetime` you pass in.
  - `simulate()` steps using a `"YYYY-mm-dd HH:MM:SS"` string.
  - `set_time_state()` and `set_sub_time_state()` override the reported
    states with a `LoginCommand`.
- **`tradedesk.account_assign.AccountAssign`**
  - Holds one `AccountInfo` per account: balance, available funds, session
    id, order-ref counter and open blacklist.
  - `handle_trader_open()` aligns the accounts with the configured user ids.
  - `handle_trader_close()` clears the blacklists and stores the day's
    balances.
- **`tradedesk.group_assign.GroupAssign`**
  - Holds named groups of accounts.
  - `handle_trader_open()` puts every user into group `name01` when no group
    exists yet.
- **`tradedesk.order_lookup.OrderLookup`**
  - For each `instrument.index` and `group.user`, records yesterday's and
    today's volume and the latest order refs.
- **`tradedesk.order_manage.OrderManage`**
  - Keeps the built `OrderContent` objects, keyed by order ref.
- **`tradedesk.order_allocate.OrderAllocate`**
  - Splits an `OrderContent` into orders for individual accounts.
  - Opening orders use the `AssignMode` `first`, `cycle` or `share`.
  - Closing orders take yesterday's position first, then today's.
  - Accounts with less than 100 available, or blacklisted for the index, are
    skipped.
- **`tradedesk.diagnostic.Diagnostic`**
  - Tracks these diagnostic events: API call failed, position mismatch,
    login failed, not enough money.
  - Writes each pass or fail to the database once.
- **`tradedesk.handle_state.HandleState`**
  - Acts when the session changes while logged in.
  - At day or night login, it opens the accounts and groups.
  - At the day logout, it rolls positions over and stores balances.
- **`tradedesk.service.TraderService`**
  - Wires all of the components above together.
  - Runs the login/logout state machine against a `Gateway`.
  - Work happens once per tick, in a background thread started by `run()`
    and ended by `stop()`.
  - `real_time_tick()` and `fast_back_tick()` run a single pass and can be
    called directly.

## Running the service

The service reads a JSON configuration file:

```json
{
  "common": {"ApiType": "ctp"},
  "trader": {
    "LogPath": "/tmp/tradedesk/log",
    "ControlParaFilePath": "/tmp/tradedesk/data",
    "LogInTimeList": "08:45-15:30;20:45-02:45",
    "AccountAssignMode": "cycle",
    "User": ["alpha"]
  },
  "users": {"alpha": {"UserID": "100001"}}
}
```

Start the service with:

```
tradedesk --config /path/to/config.json
```

If you leave out `--config`, the service reads `/etc/marktrade/config.json`.

While running:

- The service ticks once a second until Ctrl-C.
- It writes its log to `traderlog.log` in `LogPath`.
- `AccountAssignMode` defaults to `first`.

On exit, the service records a manual exit and commits the database.

If `ApiType` is `ftp`, the service runs in fast-back mode. In that mode each
tick marks the trader as logged in and commits the database. It does not
consult the time-of-day state machine.

## Using it as a library

```python
from tradedesk.main import TraderConfig, TraderMain

config = TraderConfig.from_file("config.json")
print(config.user_ids())

app = TraderMain(config)
app.entry()  # blocks until app.exit() is called
```

## What it does not do

- **No broker connection.** The command always runs against
  `SimulatedGateway`, which only counts login, logout, funds and
  account-status requests. To trade for real, pass `TraderService` your own
  object that implements the `Gateway` protocol.
- **No messaging.** The package does not receive or send messages to
  strategies, market data or monitoring tools.
- **No exchange calendar.** By default the trading date is the calendar date
  of the recorded time. To use a different rule, pass a `login_date`
  function.

## Tests

```
pip install -e ".[test]"
pytest
```