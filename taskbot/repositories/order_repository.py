"""
Order and order-item repositories
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select

from taskbot.models.order import Order, OrderItem
from taskbot.repositories.base import Repository


class OrderRepository(Repository):
    model = Order

    def _active(self):
        return select(Order).where(Order.deleted_at.is_(None))

    async def get(self, order_id: int) -> Optional[Order]:
        return await self._first(self._active().where(Order.id == order_id))

    async def get_all(self) -> Sequence[Order]:
        return await self._all(self._active().order_by(Order.order_date.desc(), Order.id.desc()))

    async def get_by_creator(self, user_id: int) -> Sequence[Order]:
        return await self._all(
            self._active()
            .where(Order.created_by == user_id)
            .order_by(Order.order_date.desc(), Order.id.desc())
        )

    async def get_by_date_range(self, start: datetime, end: datetime) -> Sequence[Order]:
        """Orders with start <= order_date < end"""
        return await self._all(
            self._active()
            .where(Order.order_date >= start, Order.order_date < end)
            .order_by(Order.order_date)
        )

    async def soft_delete(self, order: Order) -> None:
        order.deleted_at = datetime.utcnow()
        await self.save(order)


class OrderItemRepository(Repository):
    model = OrderItem

    async def get_by_order(self, order_id: int) -> Sequence[OrderItem]:
        return await self._all(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        )
