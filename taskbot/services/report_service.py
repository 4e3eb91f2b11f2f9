"""
Financial reports over orders and their derived figures
"""
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.models.order import Order
from taskbot.repositories.order_repository import OrderRepository


class ReportSummary(BaseModel):
    title: str
    total_orders: int = 0
    total_amount: float = 0.0
    total_tax: float = 0.0
    total_marketing: float = 0.0
    total_rental: float = 0.0
    net_profit: float = 0.0


def summarize(title: str, orders: Iterable[Order]) -> ReportSummary:
    report = ReportSummary(title=title)
    for order in orders:
        report.total_orders += 1
        report.total_amount += order.total_amount or 0.0
        report.total_tax += order.tax_amount or 0.0
        report.total_marketing += order.marketing_cost or 0.0
        report.total_rental += order.rental_cost or 0.0
        report.net_profit += order.net_profit or 0.0
    return report


def month_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime(day.year, day.month, 1)
    if day.month == 12:
        end = datetime(day.year + 1, 1, 1)
    else:
        end = datetime(day.year, day.month + 1, 1)
    return start, end


class ReportService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = OrderRepository(db)

    async def personal_report(self, user_id: int) -> ReportSummary:
        return summarize("Your Personal Report", await self.orders.get_by_creator(user_id))

    async def report_by_date(self, start: date, end: date) -> ReportSummary:
        """Inclusive of both start and end days"""
        orders = await self.orders.get_by_date_range(
            datetime.combine(start, datetime.min.time()),
            datetime.combine(end, datetime.min.time()) + timedelta(days=1),
        )
        return summarize(f"Report for {start.isoformat()} to {end.isoformat()}", orders)

    async def financial_report(self) -> ReportSummary:
        return summarize("Financial Report", await self.orders.get_all())

    async def daily_report(self, day: Optional[date] = None) -> ReportSummary:
        day = day or datetime.utcnow().date()
        start = datetime.combine(day, datetime.min.time())
        orders = await self.orders.get_by_date_range(start, start + timedelta(days=1))
        return summarize("Daily Report", orders)

    async def monthly_report(self, day: Optional[date] = None) -> ReportSummary:
        day = day or datetime.utcnow().date()
        start, end = month_bounds(day)
        return summarize("Monthly Report", await self.orders.get_by_date_range(start, end))
