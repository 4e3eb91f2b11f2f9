"""
Tests for the financial derivation engine and rate settings
"""
import asyncio
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from taskbot.errors import InvalidArgument, NotFound
from taskbot.models.financial import (
    CalculationHistory,
    FinancialSettings,
    MARKETING_RATE,
    RENTAL_RATE,
    TAX_RATE,
)
from taskbot.models.order import Order
from taskbot.services.financial_service import FinancialService, RateSnapshot, compute_financials
from taskbot.services.order_service import OrderService


@pytest.mark.parametrize("gross, tax, marketing, rental", [
    (1_000_000, 10, 5, 3),
    (250.5, 0, 0, 0),
    (0, 10, 5, 3),
    (99.99, 12.5, 7.25, 1),
    (1000, 60, 50, 0),
])
def test_net_profit_is_gross_minus_all_costs(gross, tax, marketing, rental):
    rates = RateSnapshot(tax_rate=tax, marketing_rate=marketing, rental_rate=rental)
    result = compute_financials(gross, rates)

    assert result.tax_amount == gross * (tax / 100)
    assert result.marketing_cost == gross * (marketing / 100)
    assert result.rental_cost == gross * (rental / 100)
    assert result.net_profit == gross - result.tax_amount - result.marketing_cost - result.rental_cost


def test_rates_over_one_hundred_percent_give_negative_profit():
    result = compute_financials(1000, RateSnapshot(tax_rate=60, marketing_rate=50, rental_rate=0))
    assert result.net_profit == pytest.approx(-100)


async def test_create_order_records_one_history_row(db_session, seed_data):
    service = OrderService(db_session)
    order = await service.create_order("John Doe", 1_000_000, seed_data["manager"].id)

    assert order.tax_percentage == 10.0
    assert order.tax_amount == pytest.approx(100_000)
    assert order.marketing_cost == pytest.approx(50_000)
    assert order.rental_cost == pytest.approx(30_000)
    assert order.net_profit == pytest.approx(820_000)
    assert order.calculation_timestamp is not None

    history = await service.financial.get_history(order.id)
    assert len(history) == 1
    assert history[0].calculation_type == "net_profit"
    assert history[0].input_value == 1_000_000
    assert history[0].percentage_used == pytest.approx(18.0)
    assert history[0].calculated_amount == pytest.approx(order.net_profit)


async def test_update_rederives_and_keeps_previous_history(db_session, seed_data):
    service = OrderService(db_session)
    order = await service.create_order("Acme", 1000, seed_data["manager"].id)

    await service.financial.set_rate(TAX_RATE, 20, seed_data["boss"].id)
    updated = await service.update_order(order.id, {"total_amount": 2000.0})

    assert updated.tax_percentage == 20
    assert updated.net_profit == pytest.approx(2000 - 400 - 100 - 60)

    history = await service.financial.get_history(order.id)
    assert [h.input_value for h in history] == [1000, 2000]
    assert history[0].calculated_amount == pytest.approx(820)
    assert history[1].percentage_used == pytest.approx(28)


async def test_missing_rate_aborts_order_creation(db_session, seed_data):
    await db_session.execute(
        FinancialSettings.__table__.delete().where(FinancialSettings.setting_name == MARKETING_RATE)
    )
    await db_session.commit()

    with pytest.raises(NotFound, match="marketing"):
        await OrderService(db_session).create_order("Acme", 500, seed_data["manager"].id)

    orders = await db_session.scalar(select(func.count(Order.id)))
    rows = await db_session.scalar(select(func.count(CalculationHistory.id)))
    assert orders == 0
    assert rows == 0


async def test_set_rate_newest_wins_and_history_is_kept(db_session, seed_data):
    service = FinancialService(db_session)
    await service.set_rate(RENTAL_RATE, 4, seed_data["boss"].id)
    await service.set_rate(RENTAL_RATE, 6, seed_data["boss"].id)

    assert await service.get_current_rate(RENTAL_RATE) == 6
    history = await service.financial_repo.get_setting_history(RENTAL_RATE)
    assert [row.percentage_value for row in history] == [3.0, 4, 6]


async def test_set_rate_accepts_out_of_range_values(db_session, seed_data):
    service = FinancialService(db_session)
    await service.set_rate(TAX_RATE, -5, None)
    assert await service.get_current_rate(TAX_RATE) == -5
    await service.set_rate(TAX_RATE, 150, None)
    assert await service.get_current_rate(TAX_RATE) == 150


async def test_set_unknown_rate_rejected(db_session):
    with pytest.raises(InvalidArgument):
        await FinancialService(db_session).set_rate("discount_rate", 5, None)


async def test_ensure_default_rates_only_fills_gaps(db_session, seed_data):
    service = FinancialService(db_session)
    created = await service.ensure_default_rates({TAX_RATE: 11, MARKETING_RATE: 5, RENTAL_RATE: 3})
    assert created == 0
    assert await service.get_current_rate(TAX_RATE) == 10.0


class FakeFinancialRepo:
    """Rate source shared between services; optionally pauses before the last rate"""

    def __init__(self, rates, fetched=None, release=None):
        self.rates = rates
        self.fetched = fetched
        self.release = release
        self.calculations = []

    async def get_current_setting(self, setting_name):
        value = self.rates[setting_name]
        if self.release is not None and setting_name == RENTAL_RATE:
            self.fetched.set()
            await self.release.wait()
        return FinancialSettings(setting_name=setting_name, percentage_value=value, is_active=True)

    async def save(self, instance):
        return instance

    async def add_calculation(self, history):
        self.calculations.append(history)
        return history


class TestConcurrentDerivation:
    @pytest.mark.asyncio
    async def test_each_derivation_keeps_the_rates_it_fetched(self):
        rates = {TAX_RATE: 10.0, MARKETING_RATE: 5.0, RENTAL_RATE: 3.0}
        fetched, release = asyncio.Event(), asyncio.Event()
        slow = FinancialService(MagicMock(), financial_repo=FakeFinancialRepo(rates, fetched, release))
        fast = FinancialService(MagicMock(), financial_repo=FakeFinancialRepo(rates))

        first = Order(order_number="ORD-1", customer_name="A", total_amount=1000.0)
        second = Order(order_number="ORD-2", customer_name="B", total_amount=1000.0)

        pending = asyncio.create_task(slow.derive_and_record(first))
        await fetched.wait()

        # rates change while the first derivation is in flight
        rates.update({TAX_RATE: 20.0, MARKETING_RATE: 10.0, RENTAL_RATE: 5.0})
        second_history = await fast.derive_and_record(second)

        release.set()
        first_history = await pending

        assert first_history.percentage_used == pytest.approx(18)
        assert first.tax_percentage == 10.0
        assert first.net_profit == pytest.approx(820)

        assert second_history.percentage_used == pytest.approx(35)
        assert second.tax_percentage == 20.0
        assert second.net_profit == pytest.approx(650)
