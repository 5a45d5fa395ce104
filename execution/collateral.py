"""
Collateral Gateway — moves collateral between account wallets and the pool.

The ledger only depends on the two-call contract:
    pull_in(account, amount)   wallet → pool
    push_out(account, amount)  pool   → wallet
Both raise TransferFailed when the asset movement does not go through; the
success of every transfer is checked, never assumed.

PaperCollateralGateway keeps wallets and the custody pool in memory for paper
mode and tests.
"""
import threading
from collections import defaultdict
from typing import Protocol

from loguru import logger

from config import COLLATERAL_ASSET
from execution.errors import TransferFailed


class CollateralGateway(Protocol):
    asset: str

    def pull_in(self, account: str, amount: int) -> None: ...

    def push_out(self, account: str, amount: int) -> None: ...


class PaperCollateralGateway:
    """In-memory wallets + pool. Frozen accounts cannot receive transfers."""

    def __init__(self, asset: str = COLLATERAL_ASSET):
        self.asset   = asset
        self.wallets: dict[str, int] = defaultdict(int)
        self.pool    = 0
        self.frozen: set[str] = set()
        self._lock   = threading.Lock()

    # ── Wallet Admin ──────────────────────────────────────────────────
    def deposit(self, account: str, amount: int):
        """Credit a wallet from outside the market (faucet / bridge)."""
        if amount < 0:
            raise ValueError('Deposit must be non-negative')
        with self._lock:
            self.wallets[account] += amount

    def seed_pool(self, amount: int):
        with self._lock:
            self.pool += amount

    def freeze(self, account: str):
        self.frozen.add(account)

    def unfreeze(self, account: str):
        self.frozen.discard(account)

    def balance_of(self, account: str) -> int:
        return self.wallets.get(account, 0)

    # ── Contract ──────────────────────────────────────────────────────
    def pull_in(self, account: str, amount: int):
        with self._lock:
            if amount < 0:
                raise TransferFailed(f'Negative transfer in: {amount}')
            balance = self.wallets.get(account, 0)
            if balance < amount:
                logger.warning(
                    f'[GATEWAY] Pull-in failed: {account} has {balance} {self.asset}, needs {amount}'
                )
                raise TransferFailed(f'{account}: insufficient {self.asset} ({balance} < {amount})')
            self.wallets[account] = balance - amount
            self.pool += amount
        logger.debug(f'[GATEWAY] Pulled {amount} {self.asset} from {account}')

    def push_out(self, account: str, amount: int):
        with self._lock:
            if amount < 0:
                raise TransferFailed(f'Negative transfer out: {amount}')
            if account in self.frozen:
                logger.warning(f'[GATEWAY] Push-out failed: {account} is frozen')
                raise TransferFailed(f'{account}: account frozen')
            if self.pool < amount:
                logger.warning(f'[GATEWAY] Push-out failed: pool {self.pool} < {amount}')
                raise TransferFailed(f'Pool cannot cover {amount} {self.asset}')
            self.pool -= amount
            self.wallets[account] += amount
        logger.debug(f'[GATEWAY] Pushed {amount} {self.asset} to {account}')
