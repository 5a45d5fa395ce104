"""
Event Log — fire-and-forget ledger history (open / close / liquidate / pause).

The ledger emits; it never reads back. Sinks are plain callables taking the
event dict. A failing sink is logged and skipped so history can never block
or roll back an operation that has already committed.
"""
import json
import time
from pathlib import Path
from typing import Callable

import pandas as pd
from loguru import logger

from config import EVENT_LOG_PATH

Sink = Callable[[dict], None]

POSITION_OPENED     = 'PositionOpened'
POSITION_CLOSED     = 'PositionClosed'
POSITION_LIQUIDATED = 'PositionLiquidated'
PAYOUT_PENDING      = 'PayoutPending'
PAYOUT_CLAIMED      = 'PayoutClaimed'
FEES_WITHDRAWN      = 'FeesWithdrawn'
PAUSE_TOGGLED       = 'PauseToggled'


class JsonlSink:
    """Append each event as one JSON line."""

    def __init__(self, path: str | Path = EVENT_LOG_PATH):
        self.path = Path(path)

    def __call__(self, event: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a') as f:
            f.write(json.dumps(event) + '\n')


def log_sink(event: dict):
    fields = ' | '.join(f'{k}: {v}' for k, v in event.items() if k not in ('event', '_logged_at'))
    logger.info(f'[EVENTS] {event["event"]} | {fields}')


class EventLog:
    def __init__(self, sinks: list[Sink] | None = None):
        self.sinks: list[Sink] = list(sinks) if sinks is not None else [log_sink]

    def emit(self, event_type: str, **payload):
        record = {'event': event_type, **payload, '_logged_at': time.time()}
        for sink in self.sinks:
            try:
                sink(record)
            except Exception as e:
                logger.warning(f'[EVENTS] Sink {sink!r} failed on {event_type}: {e}')


class MemorySink:
    """Keeps events in a list (dashboard history, tests)."""

    def __init__(self):
        self.events: list[dict] = []

    def __call__(self, event: dict):
        self.events.append(event)

    def of_type(self, event_type: str) -> list[dict]:
        return [e for e in self.events if e['event'] == event_type]


# ── Offline Analysis ──────────────────────────────────────────────────
def load_events(path: str | Path = EVENT_LOG_PATH, n: int | None = None) -> list[dict]:
    """Load the last N events from a JSONL log."""
    path = Path(path)
    if not path.exists():
        return []
    records = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                records.append(json.loads(line))
    return records if n is None else records[-n:]


def pnl_by_account(records: list[dict]) -> pd.DataFrame:
    """
    Summarize realized history per account:
      closes, liquidations (as owner), realized_pnl, fees_earned.
    Trade fees accrue to the opener; liquidation fees to the keeper.
    """
    columns = ['account', 'closes', 'liquidations', 'realized_pnl', 'fees_earned']
    if not records:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(records)
    for col in ('account', 'keeper', 'pnl', 'fee'):
        if col not in df.columns:
            df[col] = None

    closes = df[df['event'] == POSITION_CLOSED]
    liqs   = df[df['event'] == POSITION_LIQUIDATED]
    opens  = df[df['event'] == POSITION_OPENED]

    accounts = set(df['account'].dropna()) | set(liqs['keeper'].dropna())
    rows = []
    for account in sorted(accounts):
        own_closes = closes[closes['account'] == account]
        rows.append({
            'account': account,
            'closes': len(own_closes),
            'liquidations': int((liqs['account'] == account).sum()),
            'realized_pnl': int(own_closes['pnl'].fillna(0).sum()),
            'fees_earned': int(
                opens.loc[opens['account'] == account, 'fee'].fillna(0).sum()
                + liqs.loc[liqs['keeper'] == account, 'fee'].fillna(0).sum()
            ),
        })
    return pd.DataFrame(rows, columns=columns)
