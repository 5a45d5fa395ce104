"""
Position Ledger — Perps Position Lifecycle & Accounting Engine.

═══════════════════════════════════════════════════════════════
PURPOSE:
  Owns every account's position slots and fee reserve and runs the
  three state-changing operations of a perpetual market:
    OPEN → (mark to price) → CLOSE by owner | LIQUIDATE by keeper

ORDER OF EVERY OPERATION:
  1. Resolve the logical caller (trusted forwarder)
  2. Gate: pause switch, keeper role for liquidations
  3. Refresh funding (no scheduler — every call)
  4. Fetch a fresh price (rejects stale rounds)
  5. PnL / fees → mutate ledger → collateral transfer → emit event

ATOMICITY:
  Anything that can fail (funding refresh, price, pull-in, open-interest
  underflow, solvency check) runs before the first ledger mutation, and the
  funding refresh is rolled back if a later step rejects. The one exception
  is close: a failed payout leaves the position closed and records the
  amount as a pending payout the owner can claim later.

CONCURRENCY:
  One RLock per market. Every public method holds it for its whole body.

USAGE:
  ledger = PositionLedger(PriceAdapter(source), PaperCollateralGateway())
  idx = ledger.open_position('alice', size=1000, collateral=100,
                             is_long=True, leverage=10)
  ledger.close_position('alice', idx)
  ledger.liquidate('keeper-1', 'bob', 0)
═══════════════════════════════════════════════════════════════
"""
import threading
import time
from contextlib import contextmanager
from typing import Callable, Optional

from loguru import logger

from config import ADMIN_ACCOUNT, MAX_LEVERAGE, MIN_LEVERAGE
from data.price_feed import PriceAdapter
from execution.access import ADMIN, KEEPER, PauseSwitch, RoleRegistry, TrustedForwarder
from execution.collateral import CollateralGateway
from execution.errors import InvalidLeverage, InvalidPosition, PositionSafe, TransferFailed, Underflow
from execution.fee_model import liquidation_fee, trade_fee
from execution.funding import FundingController
from execution.margin import health, is_underwater, settlement_payout, unrealized_pnl
from execution.position import CLOSED, LIQUIDATED, Account, PerpPosition
from monitoring import event_log
from monitoring.event_log import EventLog


def _wall_clock() -> int:
    return int(time.time())


class PositionLedger:
    """
    Per-market ledger. Collaborators are injected so the accounting core
    never knows how prices are sourced or collateral is moved.
    """

    def __init__(
        self,
        price_adapter: PriceAdapter,
        gateway: CollateralGateway,
        funding: Optional[FundingController] = None,
        roles: Optional[RoleRegistry] = None,
        pause: Optional[PauseSwitch] = None,
        forwarder: Optional[TrustedForwarder] = None,
        events: Optional[EventLog] = None,
        clock: Callable[[], int] = _wall_clock,
    ):
        self.clock     = clock
        self.price     = price_adapter
        self.gateway   = gateway
        self.funding   = funding or FundingController(start=clock())
        self.roles     = roles or RoleRegistry(admin=ADMIN_ACCOUNT)
        self.pause     = pause or PauseSwitch()
        self.forwarder = forwarder or TrustedForwarder()
        self.events    = events or EventLog()
        self.accounts: dict[str, Account] = {}
        self._lock = threading.RLock()

    # ── Helpers ───────────────────────────────────────────────────────
    def _account(self, account_id: str) -> Account:
        acct = self.accounts.get(account_id)
        if acct is None:
            acct = Account(account_id=account_id)
            self.accounts[account_id] = acct
        return acct

    def _active_slot(self, account_id: str, index: int) -> tuple[Account, PerpPosition]:
        acct = self.accounts.get(account_id)
        pos = acct.slot(index) if acct else None
        if pos is None:
            raise InvalidPosition(f'{account_id} has no position #{index}')
        if not pos.is_active:
            raise InvalidPosition(f'{account_id} position #{index} is {pos.status}')
        return acct, pos

    @contextmanager
    def _rollback_funding(self):
        """Undo a funding refresh if the enclosing step rejects."""
        state = self.funding.snapshot()
        try:
            yield
        except Exception:
            self.funding.restore(state)
            raise

    # ── Open ──────────────────────────────────────────────────────────
    def open_position(
        self,
        caller: str,
        size: int,
        collateral: int,
        is_long: bool,
        leverage: int,
        relayed_sender: Optional[str] = None,
    ) -> int:
        """
        Open a new position and return its slot index.

        Pulls collateral + trade_fee(size) from the opener; the fee part is
        credited to the opener's fee reserve.

        Raises:
            InvalidLeverage: leverage outside MIN_LEVERAGE..=MAX_LEVERAGE
            InvalidPosition: non-positive size or collateral
            Paused, StalePrice, TransferFailed
        """
        with self._lock:
            account_id = self.forwarder.resolve(caller, relayed_sender)
            self.pause.require_live()

            if isinstance(leverage, bool) or not isinstance(leverage, int) \
                    or not MIN_LEVERAGE <= leverage <= MAX_LEVERAGE:
                raise InvalidLeverage(f'Leverage {leverage} outside {MIN_LEVERAGE}..{MAX_LEVERAGE}')
            if size <= 0 or collateral <= 0:
                raise InvalidPosition(f'Size ({size}) and collateral ({collateral}) must be positive')

            now = self.clock()
            fee = trade_fee(size)
            with self._rollback_funding():
                self.funding.refresh(now)
                price, _ = self.price.current_price(now)
                self.gateway.pull_in(account_id, collateral + fee)

            acct = self._account(account_id)
            pos = PerpPosition(
                size=size,
                collateral=collateral,
                entry_price=price,
                is_long=bool(is_long),
                leverage=leverage,
                opened_at=now,
            )
            acct.positions.append(pos)
            index = len(acct.positions) - 1

            self.funding.adjust_open_interest(pos.is_long, size)
            acct.fee_reserve += fee

            logger.info(
                f'[LEDGER] OPEN {pos.direction.upper()} {account_id} #{index} | '
                f'Size: {size} | Collateral: {collateral} @ {leverage}x | Entry: {price}'
            )
            self.events.emit(
                event_log.POSITION_OPENED,
                account=account_id,
                index=index,
                size=size,
                collateral=collateral,
                direction=pos.direction,
                leverage=leverage,
                entry_price=price,
                fee=fee,
                timestamp=now,
            )
            return index

    # ── Close ─────────────────────────────────────────────────────────
    def close_position(
        self,
        caller: str,
        index: int,
        relayed_sender: Optional[str] = None,
    ) -> dict:
        """
        Close the caller's position at the current price.

        Payout is collateral + pnl floored at zero. If the outbound transfer
        fails, the position still closes and the payout is parked as pending.
        """
        with self._lock:
            account_id = self.forwarder.resolve(caller, relayed_sender)
            self.pause.require_live()
            acct, pos = self._active_slot(account_id, index)

            now = self.clock()
            with self._rollback_funding():
                self.funding.refresh(now)
                price, _ = self.price.current_price(now)
                pnl = unrealized_pnl(pos, price)
                payout = settlement_payout(pos, price)
                self.funding.adjust_open_interest(pos.is_long, -pos.size)

            size, direction, entry = pos.size, pos.direction, pos.entry_price
            pos.zero(CLOSED)

            pending = False
            if payout > 0:
                try:
                    self.gateway.push_out(account_id, payout)
                except TransferFailed as e:
                    pending = True
                    acct.pending_payout += payout
                    logger.warning(f'[LEDGER] Payout {payout} to {account_id} parked as pending — {e}')
                    self.events.emit(
                        event_log.PAYOUT_PENDING,
                        account=account_id,
                        amount=payout,
                        reason=str(e),
                        timestamp=now,
                    )

            result = 'WIN' if pnl > 0 else 'LOSS'
            logger.info(
                f'[LEDGER] CLOSE {result} {account_id} #{index} {direction.upper()} | '
                f'Entry: {entry} → Exit: {price} | PnL: {pnl} | Payout: {payout}'
            )
            record = {
                'account': account_id,
                'index': index,
                'size': size,
                'direction': direction,
                'entry_price': entry,
                'exit_price': price,
                'pnl': pnl,
                'payout': payout,
                'payout_pending': pending,
                'timestamp': now,
            }
            self.events.emit(event_log.POSITION_CLOSED, **record)
            return record

    # ── Liquidate ─────────────────────────────────────────────────────
    def liquidate(
        self,
        caller: str,
        account_id: str,
        index: int,
        relayed_sender: Optional[str] = None,
    ) -> dict:
        """
        Liquidate an underwater position. Keeper-only.

        The keeper's fee reserve is credited liquidation_fee(collateral);
        the rest of the collateral stays in the pool. Open interest is
        released on this path as well as on close.
        """
        with self._lock:
            keeper = self.forwarder.resolve(caller, relayed_sender)
            self.pause.require_live()
            self.roles.require(keeper, KEEPER)
            _, pos = self._active_slot(account_id, index)

            now = self.clock()
            with self._rollback_funding():
                self.funding.refresh(now)
                price, _ = self.price.current_price(now)
                pnl = unrealized_pnl(pos, price)
                if not is_underwater(pos, price):
                    raise PositionSafe(
                        f'{account_id} #{index} solvent: equity {pos.collateral + pnl} > 0'
                    )
                self.funding.adjust_open_interest(pos.is_long, -pos.size)

            fee = liquidation_fee(pos.collateral)
            size, collateral, direction = pos.size, pos.collateral, pos.direction
            pos.zero(LIQUIDATED)
            self._account(keeper).fee_reserve += fee

            logger.warning(
                f'[LEDGER] LIQUIDATED {account_id} #{index} {direction.upper()} | '
                f'Mark: {price} | PnL: {pnl} | Collateral: {collateral} | '
                f'Keeper: {keeper} earns {fee}'
            )
            record = {
                'account': account_id,
                'index': index,
                'keeper': keeper,
                'size': size,
                'direction': direction,
                'collateral': collateral,
                'mark_price': price,
                'pnl': pnl,
                'fee': fee,
                'timestamp': now,
            }
            self.events.emit(event_log.POSITION_LIQUIDATED, **record)
            return record

    # ── Reserves & Payouts ────────────────────────────────────────────
    def withdraw_fees(self, caller: str, amount: int, relayed_sender: Optional[str] = None) -> int:
        """Pay `amount` out of the caller's fee reserve. Returns the new reserve."""
        with self._lock:
            account_id = self.forwarder.resolve(caller, relayed_sender)
            self.pause.require_live()
            if amount <= 0:
                raise ValueError('Withdrawal amount must be positive')
            acct = self.accounts.get(account_id)
            reserve = acct.fee_reserve if acct else 0
            if amount > reserve:
                raise Underflow(f'{account_id} fee reserve {reserve} < {amount}')

            self.gateway.push_out(account_id, amount)
            acct.fee_reserve -= amount
            logger.info(f'[LEDGER] {account_id} withdrew {amount} fees | Reserve: {acct.fee_reserve}')
            self.events.emit(
                event_log.FEES_WITHDRAWN,
                account=account_id,
                amount=amount,
                timestamp=self.clock(),
            )
            return acct.fee_reserve

    def claim_payout(self, caller: str, relayed_sender: Optional[str] = None) -> int:
        """Retry a payout parked by a failed close. Returns the amount paid."""
        with self._lock:
            account_id = self.forwarder.resolve(caller, relayed_sender)
            self.pause.require_live()
            acct = self.accounts.get(account_id)
            amount = acct.pending_payout if acct else 0
            if amount == 0:
                return 0

            self.gateway.push_out(account_id, amount)
            acct.pending_payout = 0
            logger.info(f'[LEDGER] {account_id} claimed pending payout {amount}')
            self.events.emit(
                event_log.PAYOUT_CLAIMED,
                account=account_id,
                amount=amount,
                timestamp=self.clock(),
            )
            return amount

    # ── Admin ─────────────────────────────────────────────────────────
    def set_paused(self, caller: str, paused: bool, relayed_sender: Optional[str] = None) -> bool:
        with self._lock:
            admin = self.forwarder.resolve(caller, relayed_sender)
            self.roles.require(admin, ADMIN)
            if self.pause.set(paused):
                logger.warning(f'[LEDGER] Market {"PAUSED" if paused else "RESUMED"} by {admin}')
                self.events.emit(
                    event_log.PAUSE_TOGGLED,
                    caller=admin,
                    paused=paused,
                    timestamp=self.clock(),
                )
            return self.pause.is_paused()

    # ── Read Views ────────────────────────────────────────────────────
    def position(self, account_id: str, index: int) -> PerpPosition:
        with self._lock:
            acct = self.accounts.get(account_id)
            pos = acct.slot(index) if acct else None
            if pos is None:
                raise InvalidPosition(f'{account_id} has no position #{index}')
            return pos

    def positions(self, account_id: str) -> list[dict]:
        with self._lock:
            acct = self.accounts.get(account_id)
            if not acct:
                return []
            return [{'index': i, **p.to_dict()} for i, p in enumerate(acct.positions)]

    def fee_reserve(self, account_id: str) -> int:
        with self._lock:
            acct = self.accounts.get(account_id)
            return acct.fee_reserve if acct else 0

    def pending_payout(self, account_id: str) -> int:
        with self._lock:
            acct = self.accounts.get(account_id)
            return acct.pending_payout if acct else 0

    def position_health(self, account_id: str, index: int) -> dict:
        """Mark an active position to the current price (read-only)."""
        with self._lock:
            _, pos = self._active_slot(account_id, index)
            price, _ = self.price.current_price(self.clock())
            return {'account': account_id, 'index': index, **health(pos, price)}

    def market_state(self) -> dict:
        with self._lock:
            return {
                **self.funding.status(),
                'paused': self.pause.is_paused(),
                'collateral_asset': self.gateway.asset,
                'accounts': len(self.accounts),
                'open_positions': sum(
                    1 for a in self.accounts.values() for p in a.positions if p.is_active
                ),
            }
