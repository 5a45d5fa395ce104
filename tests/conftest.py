import pytest

from config import FUNDING_INTERVAL_SECONDS
from data.price_feed import ManualPriceSource, PriceAdapter
from execution.access import PauseSwitch, RoleRegistry, TrustedForwarder
from execution.collateral import PaperCollateralGateway
from execution.funding import FundingController
from execution.ledger import PositionLedger
from monitoring.event_log import EventLog, MemorySink

# Start on an exact funding boundary so tests control when the next one lands.
T0 = FUNDING_INTERVAL_SECONDS * 60_000
ENTRY_PRICE = 50_000
WALLET = 10 ** 12


class FakeClock:
    """Manually advanced integer clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def price_source(clock):
    return ManualPriceSource(ENTRY_PRICE, clock.now)


@pytest.fixture
def gateway():
    gw = PaperCollateralGateway(asset='USDC')
    for account in ('alice', 'bob', 'carol'):
        gw.deposit(account, WALLET)
    gw.seed_pool(WALLET)
    return gw


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def ledger(clock, price_source, gateway, sink):
    return PositionLedger(
        price_adapter=PriceAdapter(price_source),
        gateway=gateway,
        funding=FundingController(start=clock.now),
        roles=RoleRegistry(admin='admin', keepers=['keeper']),
        pause=PauseSwitch(),
        forwarder=TrustedForwarder(['relay']),
        events=EventLog([sink]),
        clock=clock,
    )


@pytest.fixture
def set_price(price_source, clock):
    """Push a fresh round at the current clock time."""
    def _set(price: int):
        price_source.push(price, clock.now)
    return _set
