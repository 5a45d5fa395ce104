"""
Perps Ledger — Service Entry Point

Architecture:
  - One PositionLedger per market, guarded by its own lock
  - Paper collaborators: manual price feed + in-memory collateral gateway
  - FastAPI server exposes the ledger; uvicorn serves it
  - Event log fans out to loguru, a JSONL history file, and Telegram

Flow per request:
  1. Resolve caller (trusted forwarder) and check gates
  2. Refresh funding, fetch price
  3. Mutate ledger, move collateral, emit event
"""
import asyncio
from pathlib import Path

from loguru import logger

from config import (
    ADMIN_ACCOUNT, COLLATERAL_ASSET, DASHBOARD_HOST, DASHBOARD_PORT,
    EVENT_LOG_PATH, KEEPER_ACCOUNTS, LOG_LEVEL, MARKET_SYMBOL,
    PAPER_TRADE, TRUSTED_FORWARDERS,
)
from data.price_feed import ManualPriceSource, PriceAdapter
from execution.access import PauseSwitch, RoleRegistry, TrustedForwarder
from execution.collateral import PaperCollateralGateway
from execution.ledger import PositionLedger
from monitoring import telegram
from monitoring.event_log import EventLog, JsonlSink, log_sink


def setup_logging():
    Path('logs').mkdir(exist_ok=True)
    logger.remove()
    logger.add(
        'logs/perps_ledger.log',
        level=LOG_LEVEL,
        rotation='50 MB',
        retention='7 days',
        format='{time:HH:mm:ss.SSS} | {level:<7} | {message}',
    )
    logger.add(
        lambda msg: print(msg, end=''),
        level='INFO',
        format='{time:HH:mm:ss} | {level:<7} | {message}',
    )


def create_ledger() -> tuple[PositionLedger, ManualPriceSource]:
    """Wire a ledger with the paper collaborators from config."""
    source = ManualPriceSource()
    ledger = PositionLedger(
        price_adapter=PriceAdapter(source),
        gateway=PaperCollateralGateway(asset=COLLATERAL_ASSET),
        roles=RoleRegistry(admin=ADMIN_ACCOUNT, keepers=KEEPER_ACCOUNTS),
        pause=PauseSwitch(),
        forwarder=TrustedForwarder(TRUSTED_FORWARDERS),
        events=EventLog([log_sink, JsonlSink(EVENT_LOG_PATH), telegram.telegram_sink]),
    )
    return ledger, source


def main():
    setup_logging()
    if not PAPER_TRADE:
        logger.warning('[MAIN] Only the paper collateral gateway is available — running paper mode')

    ledger, source = create_ledger()

    import uvicorn
    from dashboard.server import app, bind
    bind(ledger, price_source=source)

    logger.info(
        f'[MAIN] {MARKET_SYMBOL} ledger up | Collateral: {COLLATERAL_ASSET} | '
        f'Keepers: {len(KEEPER_ACCOUNTS)} | Forwarders: {len(TRUSTED_FORWARDERS)}'
    )
    asyncio.run(telegram.send_startup_alert(MARKET_SYMBOL))

    uvicorn.run(app, host=DASHBOARD_HOST, port=DASHBOARD_PORT, log_level='warning')


if __name__ == '__main__':
    main()
