"""
Ledger Errors — every rejection the engine can raise.

All of these are local, non-retryable rejections of the triggering
operation. A raised error means no ledger state was committed.
"""


class LedgerError(Exception):
    """Base ledger rejection."""
    code = 'LEDGER_ERROR'


class StalePrice(LedgerError):
    """Price round is older than the staleness bound."""
    code = 'STALE_PRICE'

    def __init__(self, age: int, max_age: int):
        super().__init__(f'Price is {age}s old (max {max_age}s)')
        self.age = age
        self.max_age = max_age


class InvalidLeverage(LedgerError):
    code = 'INVALID_LEVERAGE'


class InvalidPosition(LedgerError):
    """Zeroed, out-of-range, or malformed position slot."""
    code = 'INVALID_POSITION'


class PositionSafe(LedgerError):
    """Liquidation attempted on a solvent position."""
    code = 'POSITION_SAFE'


class DegenerateMarket(LedgerError):
    """Funding computed with zero total open interest."""
    code = 'DEGENERATE_MARKET'


class Underflow(LedgerError):
    """Open interest or a reserve would go negative."""
    code = 'UNDERFLOW'


class TransferFailed(LedgerError):
    code = 'TRANSFER_FAILED'


class Unauthorized(LedgerError):
    code = 'UNAUTHORIZED'


class Paused(LedgerError):
    code = 'PAUSED'
