"""
Financial settings and calculation history repository
"""
from typing import Optional, Sequence

from sqlalchemy import select

from taskbot.models.financial import FinancialSettings, CalculationHistory
from taskbot.repositories.base import Repository


class FinancialRepository(Repository):
    model = FinancialSettings

    async def get_current_setting(self, setting_name: str) -> Optional[FinancialSettings]:
        """Most recent active row for a rate name"""
        return await self._first(
            select(FinancialSettings)
            .where(
                FinancialSettings.setting_name == setting_name,
                FinancialSettings.is_active.is_(True),
            )
            .order_by(FinancialSettings.created_at.desc(), FinancialSettings.id.desc())
        )

    async def get_setting_history(self, setting_name: str) -> Sequence[FinancialSettings]:
        return await self._all(
            select(FinancialSettings)
            .where(FinancialSettings.setting_name == setting_name)
            .order_by(FinancialSettings.id)
        )

    async def add_calculation(self, history: CalculationHistory) -> CalculationHistory:
        return await self.add(history)

    async def get_calculations(self, order_id: int) -> Sequence[CalculationHistory]:
        return await self._all(
            select(CalculationHistory)
            .where(CalculationHistory.order_id == order_id)
            .order_by(CalculationHistory.id)
        )
