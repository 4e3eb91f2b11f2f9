"""
Order models - customer orders, their line items and derived financials
"""
from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum
from taskbot.database import Base


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderItemStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, nullable=False, index=True)
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=True)
    order_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    delivery_date = Column(DateTime, nullable=True)
    status = Column(SQLEnum(OrderStatus, native_enum=False), nullable=False, default=OrderStatus.PENDING)
    total_amount = Column(Float, nullable=False)

    # Derived fields - written only by FinancialService.derive_and_record
    tax_percentage = Column(Float, nullable=True)
    tax_amount = Column(Float, nullable=True)
    marketing_percentage = Column(Float, nullable=True)
    marketing_cost = Column(Float, nullable=True)
    rental_percentage = Column(Float, nullable=True)
    rental_cost = Column(Float, nullable=True)
    net_profit = Column(Float, nullable=True)
    calculation_timestamp = Column(DateTime, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)  # soft delete

    # Relationships
    items = relationship("OrderItem", back_populates="order")
    calculations = relationship("CalculationHistory", back_populates="order", order_by="CalculationHistory.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    item_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)  # quantity * unit_price
    status = Column(SQLEnum(OrderItemStatus, native_enum=False), nullable=False, default=OrderItemStatus.PENDING)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="items")
