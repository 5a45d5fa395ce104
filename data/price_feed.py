"""
Price Adapter — validated mark price from an external price source.

The source exposes latest_round_data() -> (price, updated_at), with price on
the oracle's 1e8 scale. The adapter keeps no state: every call re-queries the
source, and a round older than PRICE_STALENESS_SECONDS, or stamped after
`now`, is rejected.

ManualPriceSource is the paper-mode stand-in for an oracle: an operator (or a
test) pushes rounds into it and the adapter reads them like any other source.
"""
import threading
from typing import Protocol

from loguru import logger

from config import PRICE_STALENESS_SECONDS
from execution.errors import StalePrice


class PriceSource(Protocol):
    def latest_round_data(self) -> tuple[int, int]: ...


class ManualPriceSource:
    """Holds the last pushed (price, updated_at) round."""

    def __init__(self, price: int = 0, updated_at: int = 0):
        self._lock = threading.Lock()
        self._round = (price, updated_at)

    def push(self, price: int, updated_at: int):
        with self._lock:
            self._round = (int(price), int(updated_at))
        logger.debug(f'[PRICE] Round pushed: {price} @ {updated_at}')

    def latest_round_data(self) -> tuple[int, int]:
        with self._lock:
            return self._round


class PriceAdapter:
    """Freshness-checked view over a PriceSource."""

    def __init__(self, source: PriceSource, max_age: int = PRICE_STALENESS_SECONDS):
        self.source = source
        self.max_age = max_age

    def current_price(self, now: int) -> tuple[int, int]:
        """Return (price, observed_at) or raise StalePrice. No retry."""
        price, observed_at = self.source.latest_round_data()
        age = now - observed_at
        if age < 0:
            logger.warning(f'[PRICE] Future-dated round rejected — stamped {-age}s ahead')
            raise StalePrice(age, self.max_age)
        if age > self.max_age:
            logger.warning(f'[PRICE] Stale round rejected — age {age}s > {self.max_age}s')
            raise StalePrice(age, self.max_age)
        return price, observed_at
