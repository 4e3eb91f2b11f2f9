"""
Reminder model - scheduled WhatsApp nudges tied to a task
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from taskbot.database import Base


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    reminder_type = Column(String, nullable=False)  # deadline, follow_up, ...
    scheduled_time = Column(DateTime, nullable=False, index=True)
    whatsapp_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task")
