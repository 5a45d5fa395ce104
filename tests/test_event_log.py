import asyncio

from monitoring import telegram
from monitoring.event_log import (
    POSITION_CLOSED,
    POSITION_LIQUIDATED,
    POSITION_OPENED,
    EventLog,
    JsonlSink,
    MemorySink,
    load_events,
    log_sink,
    pnl_by_account,
)
from monitoring.telegram import format_event, telegram_sink


def test_emit_fans_out_to_every_sink():
    a, b = MemorySink(), MemorySink()
    log = EventLog([a, b])
    log.emit(POSITION_OPENED, account='alice', index=0)
    assert a.events[0]['event'] == POSITION_OPENED
    assert b.events[0]['account'] == 'alice'
    assert '_logged_at' in a.events[0]


def test_failing_sink_does_not_propagate():
    def broken(event):
        raise OSError('disk full')

    mem = MemorySink()
    log = EventLog([broken, mem])
    log.emit(POSITION_CLOSED, account='alice', pnl=5)
    assert len(mem.events) == 1


def test_jsonl_roundtrip(tmp_path):
    path = tmp_path / 'events' / 'ledger.jsonl'
    log = EventLog([JsonlSink(path)])
    for i in range(5):
        log.emit(POSITION_OPENED, account='alice', index=i)
    records = load_events(path)
    assert [r['index'] for r in records] == [0, 1, 2, 3, 4]
    assert [r['index'] for r in load_events(path, n=2)] == [3, 4]


def test_load_missing_file(tmp_path):
    assert load_events(tmp_path / 'nope.jsonl') == []


def test_pnl_by_account():
    records = [
        {'event': POSITION_OPENED, 'account': 'alice', 'fee': 10},
        {'event': POSITION_OPENED, 'account': 'bob', 'fee': 4},
        {'event': POSITION_CLOSED, 'account': 'alice', 'pnl': 250},
        {'event': POSITION_CLOSED, 'account': 'alice', 'pnl': -50},
        {'event': POSITION_LIQUIDATED, 'account': 'bob', 'keeper': 'k1', 'fee': 100},
    ]
    df = pnl_by_account(records).set_index('account')
    assert df.loc['alice', 'realized_pnl'] == 200
    assert df.loc['alice', 'closes'] == 2
    assert df.loc['alice', 'fees_earned'] == 10
    assert df.loc['bob', 'liquidations'] == 1
    assert df.loc['k1', 'fees_earned'] == 100


def test_pnl_by_account_empty():
    df = pnl_by_account([])
    assert df.empty
    assert 'realized_pnl' in df.columns


def test_telegram_format():
    text = format_event({'event': POSITION_LIQUIDATED, 'account': 'bob', 'index': 0,
                         'keeper': 'k1', 'fee': 100})
    assert 'LIQUIDATED' in text and 'k1' in text
    assert format_event({'event': 'Unknown'}) is None


def test_telegram_sink_without_credentials_is_noop():
    telegram_sink({'event': POSITION_OPENED})


def test_telegram_sink_from_worker_thread_uses_attached_loop(monkeypatch):
    sent = []

    async def fake_send(text):
        sent.append(text)

    monkeypatch.setattr(telegram, 'TELEGRAM_TOKEN', 'token')
    monkeypatch.setattr(telegram, 'TELEGRAM_CHAT_ID', 'chat')
    monkeypatch.setattr(telegram, '_send', fake_send)
    event = {'event': POSITION_LIQUIDATED, 'account': 'bob', 'index': 0, 'keeper': 'k1', 'fee': 100}

    async def run():
        telegram.attach_loop(asyncio.get_running_loop())
        await asyncio.to_thread(telegram_sink, event)
        await asyncio.sleep(0.05)

    try:
        asyncio.run(run())
    finally:
        telegram.attach_loop(None)
    assert len(sent) == 1 and 'k1' in sent[0]


def test_emit_without_sinks_argument_logs_only():
    log = EventLog()
    assert log.sinks == [log_sink]
