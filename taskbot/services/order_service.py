"""
Order operations - orders, line items and their summaries
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.errors import InvalidArgument, NotFound
from taskbot.models.order import Order, OrderItem, OrderItemStatus, OrderStatus
from taskbot.repositories.base import unit_of_work
from taskbot.repositories.order_repository import OrderItemRepository, OrderRepository
from taskbot.services.financial_service import FinancialService

logger = logging.getLogger(__name__)

UPDATABLE_ORDER_FIELDS = {"customer_name", "customer_phone", "total_amount", "status"}


class NewOrderItem(BaseModel):
    item_name: str
    quantity: int
    unit_price: float
    description: Optional[str] = None


class OrderItemsSummary(BaseModel):
    order_id: int
    total_items: int
    total_quantity: int
    total_value: float
    pending_items: int
    completed_items: int
    completion_rate: float


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"ORD-{int(now.timestamp())}-{uuid.uuid4().hex[:4].upper()}"


class OrderService:
    def __init__(self, db: AsyncSession, financial: Optional[FinancialService] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.items = OrderItemRepository(db)
        self.financial = financial or FinancialService(db)

    async def create_order(
        self,
        customer_name: str,
        total_amount: float,
        created_by: int,
        customer_phone: Optional[str] = None,
        items: Optional[List[NewOrderItem]] = None,
    ) -> Order:
        """Derive financials, persist the order, its history row and items together"""
        if not customer_name:
            raise InvalidArgument("Customer name is required")
        now = datetime.utcnow()
        order = Order(
            order_number=generate_order_number(now),
            customer_name=customer_name,
            customer_phone=customer_phone,
            total_amount=total_amount,
            status=OrderStatus.PENDING,
            order_date=now,
            created_by=created_by,
        )
        async with unit_of_work(self.db):
            await self.financial.derive_and_record(order)
            for item in items or []:
                await self.items.add(self._build_item(order.id, item))

        logger.info(f"Order created: {order.order_number} ({customer_name}, {total_amount})")
        return order

    async def get_order(self, order_id: int) -> Order:
        order = await self.orders.get(order_id)
        if not order:
            raise NotFound(f"Order not found: {order_id}")
        return order

    async def list_orders(self) -> List[Order]:
        return list(await self.orders.get_all())

    async def list_orders_for_user(self, user_id: int) -> List[Order]:
        return list(await self.orders.get_by_creator(user_id))

    async def list_orders_by_date_range(self, start: datetime, end: datetime) -> List[Order]:
        return list(await self.orders.get_by_date_range(start, end))

    async def update_order(self, order_id: int, changes: Dict[str, Any]) -> Order:
        """Apply field changes then re-run the derivation (new history row)"""
        order = await self.get_order(order_id)
        unknown = set(changes) - UPDATABLE_ORDER_FIELDS
        if unknown:
            raise InvalidArgument(f"Cannot update order field(s): {', '.join(sorted(unknown))}")

        async with unit_of_work(self.db):
            for key, value in changes.items():
                if key == "status":
                    try:
                        value = OrderStatus(value)
                    except ValueError:
                        raise InvalidArgument(f"Invalid order status: {value}")
                setattr(order, key, value)
            await self.financial.derive_and_record(order)
        return order

    async def delete_order(self, order_id: int) -> None:
        order = await self.get_order(order_id)
        async with unit_of_work(self.db):
            await self.orders.soft_delete(order)

    # --- Items ---

    @staticmethod
    def _build_item(order_id: int, item: NewOrderItem) -> OrderItem:
        if item.quantity <= 0:
            raise InvalidArgument("Quantity must be positive")
        return OrderItem(
            order_id=order_id,
            item_name=item.item_name,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.quantity * item.unit_price,
            status=OrderItemStatus.PENDING,
        )

    async def add_item(
        self,
        order_id: int,
        item_name: str,
        quantity: int,
        unit_price: float,
        description: Optional[str] = None,
    ) -> OrderItem:
        await self.get_order(order_id)
        item = self._build_item(
            order_id,
            NewOrderItem(item_name=item_name, quantity=quantity, unit_price=unit_price, description=description),
        )
        async with unit_of_work(self.db):
            await self.items.add(item)
        return item

    async def get_items(self, order_id: int) -> List[OrderItem]:
        await self.get_order(order_id)
        return list(await self.items.get_by_order(order_id))

    async def get_item(self, item_id: int) -> OrderItem:
        item = await self.items.get(item_id)
        if not item:
            raise NotFound(f"Order item not found: {item_id}")
        return item

    async def update_item(
        self,
        item_id: int,
        item_name: Optional[str] = None,
        quantity: Optional[int] = None,
        unit_price: Optional[float] = None,
        description: Optional[str] = None,
    ) -> OrderItem:
        """Edits always recompute the line total"""
        item = await self.get_item(item_id)
        async with unit_of_work(self.db):
            if item_name is not None:
                item.item_name = item_name
            if description is not None:
                item.description = description
            if quantity is not None:
                if quantity <= 0:
                    raise InvalidArgument("Quantity must be positive")
                item.quantity = quantity
            if unit_price is not None:
                item.unit_price = unit_price
            item.total_price = item.quantity * item.unit_price
            await self.items.save(item)
        return item

    async def update_item_status(self, item_id: int, status: str) -> OrderItem:
        item = await self.get_item(item_id)
        try:
            new_status = OrderItemStatus(status)
        except ValueError:
            raise InvalidArgument(f"Invalid item status: {status}")
        async with unit_of_work(self.db):
            item.status = new_status
            await self.items.save(item)
        return item

    async def delete_item(self, item_id: int) -> None:
        item = await self.get_item(item_id)
        async with unit_of_work(self.db):
            await self.items.remove(item)

    async def get_items_summary(self, order_id: int) -> OrderItemsSummary:
        items = await self.get_items(order_id)
        total_items = len(items)
        completed = sum(1 for i in items if i.status == OrderItemStatus.COMPLETED)
        pending = sum(1 for i in items if i.status == OrderItemStatus.PENDING)
        return OrderItemsSummary(
            order_id=order_id,
            total_items=total_items,
            total_quantity=sum(i.quantity for i in items),
            total_value=sum(i.total_price for i in items),
            pending_items=pending,
            completed_items=completed,
            # no items -> 0% rather than a division error
            completion_rate=(completed / total_items * 100) if total_items else 0.0,
        )
