"""
Financial derivation engine.

Recomputes tax, marketing, rental and net profit for an order from the
currently active percentage rates and appends a calculation-history row.
Rate setters live here too, backed by the same FinancialRepository.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.errors import InvalidArgument, NotFound, PersistenceFailure
from taskbot.models.financial import (
    CalculationHistory,
    FinancialSettings,
    MARKETING_RATE,
    RATE_NAMES,
    RENTAL_RATE,
    TAX_RATE,
)
from taskbot.models.order import Order
from taskbot.repositories.base import unit_of_work
from taskbot.repositories.financial_repository import FinancialRepository

logger = logging.getLogger(__name__)

NET_PROFIT = "net_profit"

RATE_LABELS = {
    TAX_RATE: "tax",
    MARKETING_RATE: "marketing",
    RENTAL_RATE: "rental",
}


class RateSnapshot(BaseModel):
    tax_rate: float
    marketing_rate: float
    rental_rate: float

    @property
    def combined(self) -> float:
        return self.tax_rate + self.marketing_rate + self.rental_rate


class FinancialBreakdown(BaseModel):
    gross: float
    rates: RateSnapshot
    tax_amount: float
    marketing_cost: float
    rental_cost: float
    net_profit: float


def compute_financials(gross: float, rates: RateSnapshot) -> FinancialBreakdown:
    """Pure derivation: every amount is a percentage of the gross total"""
    tax_amount = gross * (rates.tax_rate / 100)
    marketing_cost = gross * (rates.marketing_rate / 100)
    rental_cost = gross * (rates.rental_rate / 100)
    return FinancialBreakdown(
        gross=gross,
        rates=rates,
        tax_amount=tax_amount,
        marketing_cost=marketing_cost,
        rental_cost=rental_cost,
        net_profit=gross - tax_amount - marketing_cost - rental_cost,
    )


class FinancialService:
    def __init__(
        self,
        db: AsyncSession,
        financial_repo: Optional[FinancialRepository] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.financial_repo = financial_repo or FinancialRepository(db)
        self._clock = clock

    async def get_current_rate(self, setting_name: str) -> float:
        label = RATE_LABELS.get(setting_name, setting_name)
        try:
            setting = await self.financial_repo.get_current_setting(setting_name)
        except PersistenceFailure as e:
            raise PersistenceFailure(f"Failed to get {label} settings: {e}") from e
        if setting is None:
            raise NotFound(f"Failed to get {label} settings: no active {setting_name} configured")
        return setting.percentage_value

    async def get_rates(self) -> RateSnapshot:
        """Fetch all three rates; any failure aborts the whole snapshot"""
        return RateSnapshot(
            tax_rate=await self.get_current_rate(TAX_RATE),
            marketing_rate=await self.get_current_rate(MARKETING_RATE),
            rental_rate=await self.get_current_rate(RENTAL_RATE),
        )

    async def derive_and_record(self, order: Order) -> CalculationHistory:
        """
        Stamp the derived fields on `order` and append one history row.

        Runs inside the caller's transaction: the order is flushed (so it has
        an id) but nothing is committed here.
        """
        rates = await self.get_rates()
        breakdown = compute_financials(order.total_amount, rates)
        now = self._clock()

        order.tax_percentage = rates.tax_rate
        order.tax_amount = breakdown.tax_amount
        order.marketing_percentage = rates.marketing_rate
        order.marketing_cost = breakdown.marketing_cost
        order.rental_percentage = rates.rental_rate
        order.rental_cost = breakdown.rental_cost
        order.net_profit = breakdown.net_profit
        order.calculation_timestamp = now

        if order.id is None:
            self.db.add(order)
        await self.financial_repo.save(order)

        history = CalculationHistory(
            order_id=order.id,
            calculation_type=NET_PROFIT,
            input_value=order.total_amount,
            percentage_used=rates.combined,
            calculated_amount=breakdown.net_profit,
            calculation_timestamp=now,
        )
        await self.financial_repo.add_calculation(history)

        logger.info(
            f"Order {order.order_number}: gross={order.total_amount} "
            f"rates={rates.combined}% net={breakdown.net_profit}"
        )
        return history

    async def get_history(self, order_id: int) -> List[CalculationHistory]:
        return list(await self.financial_repo.get_calculations(order_id))

    async def set_rate(self, setting_name: str, percentage: float, created_by: Optional[int]) -> FinancialSettings:
        """Append a new active row; older rows stay as history"""
        if setting_name not in RATE_NAMES:
            raise InvalidArgument(f"Unknown rate: {setting_name}")
        setting = FinancialSettings(
            setting_name=setting_name,
            percentage_value=percentage,
            is_active=True,
            created_by=created_by,
            created_at=self._clock(),
        )
        async with unit_of_work(self.db):
            await self.financial_repo.add(setting)
        logger.info(f"{setting_name} set to {percentage}% by user {created_by}")
        return setting

    async def ensure_default_rates(self, defaults: dict, created_by: Optional[int] = None) -> int:
        """Seed any rate that has never been configured"""
        created = 0
        for name, value in defaults.items():
            if await self.financial_repo.get_current_setting(name) is None:
                await self.set_rate(name, value, created_by)
                created += 1
        return created
