"""
Telegram Notifier — async Telegram alerts for ledger events.
"""
import asyncio

import aiohttp
from loguru import logger

from config import MARKET_SYMBOL, TELEGRAM_CHAT_ID, TELEGRAM_TOKEN

_loop: asyncio.AbstractEventLoop | None = None


async def _send(text: str):
    if not TELEGRAM_TOKEN or not TELEGRAM_CHAT_ID:
        return
    url = f'https://api.telegram.org/bot{TELEGRAM_TOKEN}/sendMessage'
    payload = {'chat_id': TELEGRAM_CHAT_ID, 'text': text, 'parse_mode': 'HTML'}
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=5)) as resp:
                if resp.status != 200:
                    logger.warning(f'[TG] Failed: {resp.status}')
    except Exception as e:
        logger.warning(f'[TG] Error: {e}')


def format_event(event: dict) -> str | None:
    kind = event.get('event')
    if kind == 'PositionOpened':
        emoji = '🟢' if event.get('direction') == 'long' else '🔴'
        return (
            f'{emoji} <b>OPEN {event["direction"].upper()} {MARKET_SYMBOL}</b>\n'
            f'Account: <code>{event["account"]}</code> #{event["index"]}\n'
            f'Size: <code>{event["size"]}</code>  Collateral: <code>{event["collateral"]}</code>  '
            f'{event["leverage"]}x @ <code>{event["entry_price"]}</code>'
        )
    if kind == 'PositionClosed':
        emoji = '✅' if event.get('pnl', 0) > 0 else '❌'
        return (
            f'{emoji} <b>CLOSE {MARKET_SYMBOL}</b> <code>{event["account"]}</code> #{event["index"]}\n'
            f'PnL: <code>{event["pnl"]:+d}</code>  Payout: <code>{event["payout"]}</code>'
        )
    if kind == 'PositionLiquidated':
        return (
            f'⚠️ <b>LIQUIDATED {MARKET_SYMBOL}</b> <code>{event["account"]}</code> #{event["index"]}\n'
            f'Keeper: <code>{event["keeper"]}</code>  Fee: <code>{event["fee"]}</code>'
        )
    if kind == 'PayoutPending':
        return f'⛔ <b>Payout pending</b> <code>{event["account"]}</code>: {event["amount"]}'
    if kind == 'PauseToggled':
        return f'⏸ <b>Market {"paused" if event["paused"] else "resumed"}</b> by {event["caller"]}'
    return None


def attach_loop(loop: asyncio.AbstractEventLoop | None):
    """Loop that alerts raised from worker threads are scheduled on."""
    global _loop
    _loop = loop


def telegram_sink(event: dict):
    """Event sink: schedule the alert on the running loop, else the attached one."""
    if not TELEGRAM_TOKEN or not TELEGRAM_CHAT_ID:
        return
    text = format_event(event)
    if text is None:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        loop.create_task(_send(text))
    elif _loop is not None and _loop.is_running():
        asyncio.run_coroutine_threadsafe(_send(text), _loop)
    else:
        logger.debug(f'[TG] No event loop — skipped {event.get("event")} alert')


async def send_startup_alert(market: str):
    """Notify that the ledger service has started."""
    text = (
        f'🚀 <b>Perps Ledger Started</b>\n'
        f'Market: {market}\n'
        f'Accepting positions.'
    )
    await _send(text)
