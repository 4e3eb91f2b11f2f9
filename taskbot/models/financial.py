"""
Financial models - configurable percentage rates and calculation history
"""
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from taskbot.database import Base

TAX_RATE = "tax_rate"
MARKETING_RATE = "marketing_rate"
RENTAL_RATE = "rental_rate"

RATE_NAMES = (TAX_RATE, MARKETING_RATE, RENTAL_RATE)


class FinancialSettings(Base):
    """One row per rate change; the newest active row for a name is current"""
    __tablename__ = "financial_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_name = Column(String, nullable=False, index=True)
    percentage_value = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class CalculationHistory(Base):
    """Write-once snapshot of one derivation run"""
    __tablename__ = "calculation_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    calculation_type = Column(String, nullable=False)  # net_profit
    input_value = Column(Float, nullable=False)
    percentage_used = Column(Float, nullable=False)
    calculated_amount = Column(Float, nullable=False)
    calculation_timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    order = relationship("Order", back_populates="calculations")
