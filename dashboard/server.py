"""
Ledger API — FastAPI server over a single market's PositionLedger.

Serves:
  - Market card: open interest, funding rate, pause state
  - Account view: position slots, fee reserve, pending payout
  - Position health: mark-to-market PnL and underwater flag
  - Mutations: open / close / liquidate / withdraw fees / claim payout
  - Operator: price push (paper feed), pause toggle
  - Realized PnL history from the event log

Routes are plain functions: FastAPI runs them in its threadpool, so the
ledger lock and JSONL appends never block the event loop. Telegram alerts
are handed back to the loop captured at startup.
"""
import asyncio

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from config import EVENT_LOG_PATH, MARKET_SYMBOL
from data.price_feed import ManualPriceSource
from execution.access import ADMIN
from execution.errors import LedgerError
from execution.ledger import PositionLedger
from monitoring import telegram
from monitoring.event_log import MemorySink, load_events, pnl_by_account

app = FastAPI(title=f"{MARKET_SYMBOL} Position Ledger")

# ── Bound state ───────────────────────────────────────────────
_ledger: PositionLedger | None = None
_price_source: ManualPriceSource | None = None
_history: MemorySink | None = None

STATUS_BY_CODE = {
    'STALE_PRICE': 503,
    'INVALID_LEVERAGE': 400,
    'INVALID_POSITION': 400,
    'POSITION_SAFE': 409,
    'DEGENERATE_MARKET': 409,
    'UNDERFLOW': 409,
    'TRANSFER_FAILED': 502,
    'UNAUTHORIZED': 403,
    'PAUSED': 423,
}


def bind(
    ledger: PositionLedger,
    price_source: ManualPriceSource | None = None,
    history: MemorySink | None = None,
):
    """Attach the ledger (and optional paper price feed / history sink) to the app."""
    global _ledger, _price_source, _history
    _ledger = ledger
    _price_source = price_source
    _history = history


def _get_ledger() -> PositionLedger:
    if _ledger is None:
        raise HTTPException(status_code=503, detail='Ledger not bound')
    return _ledger


@app.on_event("startup")
async def _attach_alert_loop():
    telegram.attach_loop(asyncio.get_running_loop())


@app.exception_handler(LedgerError)
async def _ledger_error(request: Request, exc: LedgerError):
    status = STATUS_BY_CODE.get(exc.code, 400)
    logger.info(f'[API] {request.method} {request.url.path} rejected: {exc.code} — {exc}')
    return JSONResponse(status_code=status, content={'error': exc.code, 'detail': str(exc)})


@app.exception_handler(ValueError)
async def _value_error(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={'error': 'BAD_REQUEST', 'detail': str(exc)})


# ── Request bodies ────────────────────────────────────────────
class Caller(BaseModel):
    caller: str
    relayed_sender: str | None = None


class OpenRequest(Caller):
    size: int
    collateral: int
    is_long: bool
    leverage: int


class CloseRequest(Caller):
    index: int


class LiquidateRequest(Caller):
    account: str
    index: int


class WithdrawRequest(Caller):
    amount: int


class PauseRequest(Caller):
    paused: bool


class PriceRequest(Caller):
    price: int
    updated_at: int | None = None


# ── Read views ────────────────────────────────────────────────
@app.get("/market")
def market():
    return {'market': MARKET_SYMBOL, **_get_ledger().market_state()}


@app.get("/accounts/{account}")
def account(account: str):
    ledger = _get_ledger()
    return {
        'account': account,
        'positions': ledger.positions(account),
        'fee_reserve': ledger.fee_reserve(account),
        'pending_payout': ledger.pending_payout(account),
    }


@app.get("/accounts/{account}/positions/{index}/health")
def position_health(account: str, index: int):
    return _get_ledger().position_health(account, index)


@app.get("/history/pnl")
def history_pnl():
    records = _history.events if _history is not None else load_events(EVENT_LOG_PATH)
    return pnl_by_account(records).to_dict(orient='records')


# ── Mutations ─────────────────────────────────────────────────
@app.post("/positions")
def open_position(req: OpenRequest):
    index = _get_ledger().open_position(
        req.caller, req.size, req.collateral, req.is_long, req.leverage,
        relayed_sender=req.relayed_sender,
    )
    return {'index': index}


@app.post("/positions/close")
def close_position(req: CloseRequest):
    return _get_ledger().close_position(req.caller, req.index, relayed_sender=req.relayed_sender)


@app.post("/positions/liquidate")
def liquidate(req: LiquidateRequest):
    return _get_ledger().liquidate(
        req.caller, req.account, req.index, relayed_sender=req.relayed_sender,
    )


@app.post("/fees/withdraw")
def withdraw_fees(req: WithdrawRequest):
    reserve = _get_ledger().withdraw_fees(req.caller, req.amount, relayed_sender=req.relayed_sender)
    return {'fee_reserve': reserve}


@app.post("/payouts/claim")
def claim_payout(req: Caller):
    paid = _get_ledger().claim_payout(req.caller, relayed_sender=req.relayed_sender)
    return {'paid': paid}


# ── Operator ──────────────────────────────────────────────────
@app.post("/pause")
def pause(req: PauseRequest):
    paused = _get_ledger().set_paused(req.caller, req.paused, relayed_sender=req.relayed_sender)
    return {'paused': paused}


@app.post("/price")
def push_price(req: PriceRequest):
    ledger = _get_ledger()
    if _price_source is None:
        raise HTTPException(status_code=404, detail='No manual price feed bound')
    operator = ledger.forwarder.resolve(req.caller, req.relayed_sender)
    ledger.roles.require(operator, ADMIN)
    updated_at = req.updated_at if req.updated_at is not None else ledger.clock()
    _price_source.push(req.price, updated_at)
    return {'price': req.price, 'updated_at': updated_at}
