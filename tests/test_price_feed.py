import pytest

from data.price_feed import ManualPriceSource, PriceAdapter
from execution.errors import StalePrice


class CountingSource:
    def __init__(self, price, updated_at):
        self.round = (price, updated_at)
        self.calls = 0

    def latest_round_data(self):
        self.calls += 1
        return self.round


def test_fresh_round_returned():
    adapter = PriceAdapter(ManualPriceSource(50_000, 1_000))
    assert adapter.current_price(1_030) == (50_000, 1_000)


def test_exactly_at_staleness_bound_is_fresh():
    adapter = PriceAdapter(ManualPriceSource(50_000, 1_000), max_age=60)
    assert adapter.current_price(1_060) == (50_000, 1_000)


def test_past_bound_is_stale():
    adapter = PriceAdapter(ManualPriceSource(50_000, 1_000), max_age=60)
    with pytest.raises(StalePrice) as exc:
        adapter.current_price(1_061)
    assert exc.value.age == 61
    assert exc.value.max_age == 60


def test_default_bound_is_sixty_seconds():
    assert PriceAdapter(ManualPriceSource()).max_age == 60


def test_every_call_requeries_source():
    source = CountingSource(50_000, 1_000)
    adapter = PriceAdapter(source)
    adapter.current_price(1_000)
    source.round = (51_000, 1_010)
    assert adapter.current_price(1_010) == (51_000, 1_010)
    assert source.calls == 2


def test_manual_source_push():
    source = ManualPriceSource()
    source.push(42, 7)
    assert source.latest_round_data() == (42, 7)


def test_future_dated_round_rejected():
    adapter = PriceAdapter(ManualPriceSource(50_000, 1_000 + 10 ** 6))
    for now in (1_000, 1_000 + 10 ** 5):
        with pytest.raises(StalePrice) as exc:
            adapter.current_price(now)
        assert exc.value.age < 0


def test_round_stamped_now_is_fresh():
    adapter = PriceAdapter(ManualPriceSource(50_000, 1_000))
    assert adapter.current_price(1_000) == (50_000, 1_000)
