"""
Perps Ledger — Central Configuration
All thresholds, scales, and env vars for the position ledger and risk engine.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Fixed-Point Scales ───────────────────────────────────────────────
PRICE_SCALE = 10 ** 8    # oracle decimals (1e8)
RATE_SCALE  = 10 ** 18   # funding rate, 1e18 = 100%
BPS_SCALE   = 10_000

# ── Market ───────────────────────────────────────────────────────────
COLLATERAL_ASSET = os.getenv('COLLATERAL_ASSET', 'USDC')
MARKET_SYMBOL    = os.getenv('MARKET_SYMBOL', 'ETH-PERP')

# ── Leverage ─────────────────────────────────────────────────────────
MIN_LEVERAGE = int(os.getenv('MIN_LEVERAGE', '1'))
MAX_LEVERAGE = int(os.getenv('MAX_LEVERAGE', '100'))   # fixed at open, no adjustment

# ── Fees ─────────────────────────────────────────────────────────────
TRADE_FEE_BPS           = int(os.getenv('TRADE_FEE_BPS', '5'))            # 0.05% of size
LIQUIDATION_FEE_DIVISOR = int(os.getenv('LIQUIDATION_FEE_DIVISOR', '10'))  # 10% of collateral

# ── Price Feed ───────────────────────────────────────────────────────
PRICE_STALENESS_SECONDS = int(os.getenv('PRICE_STALENESS_SECONDS', '60'))

# ── Funding ──────────────────────────────────────────────────────────
FUNDING_INTERVAL_SECONDS = int(os.getenv('FUNDING_INTERVAL_SECONDS', str(8 * 3600)))
FUNDING_HISTORY_SIZE     = int(os.getenv('FUNDING_HISTORY_SIZE', '500'))

# ── Roles & Relay ────────────────────────────────────────────────────
ADMIN_ACCOUNT      = os.getenv('ADMIN_ACCOUNT', 'admin')
KEEPER_ACCOUNTS    = [a for a in os.getenv('KEEPER_ACCOUNTS', '').split(',') if a]
TRUSTED_FORWARDERS = [a for a in os.getenv('TRUSTED_FORWARDERS', '').split(',') if a]

# ── System ──────────────────────────────────────────────────────────
PAPER_TRADE    = os.getenv('PAPER_TRADE', 'true').lower() == 'true'
LOG_LEVEL      = os.getenv('LOG_LEVEL', 'INFO')
EVENT_LOG_PATH = os.getenv('EVENT_LOG_PATH', 'data/ledger_events.jsonl')

# ── Dashboard ────────────────────────────────────────────────────────
DASHBOARD_HOST = os.getenv('DASHBOARD_HOST', '0.0.0.0')
DASHBOARD_PORT = int(os.getenv('DASHBOARD_PORT', '8000'))

# ── Telegram ─────────────────────────────────────────────────────────
TELEGRAM_TOKEN   = os.getenv('TELEGRAM_TOKEN', '')
TELEGRAM_CHAT_ID = os.getenv('TELEGRAM_CHAT_ID', '')
