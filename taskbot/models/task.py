"""
Task models - assigned work items and their progress audit trail
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum
from taskbot.database import Base


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskType(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(SQLEnum(TaskStatus, native_enum=False), nullable=False, default=TaskStatus.PENDING)
    priority = Column(SQLEnum(TaskPriority, native_enum=False), nullable=False, default=TaskPriority.MEDIUM)

    # Progress - percentage and implemented flag move independently
    completion_percentage = Column(Integer, nullable=False, default=0)
    is_implemented = Column(Boolean, nullable=False, default=False)
    implementation_notes = Column(Text, nullable=True)

    task_type = Column(SQLEnum(TaskType, native_enum=False), nullable=False, default=TaskType.CUSTOM)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(String, nullable=True)  # daily, monthly

    due_date = Column(DateTime, nullable=True)
    last_updated_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    assignee = relationship("User", foreign_keys=[assigned_to])
    progress_entries = relationship("TaskProgress", back_populates="task", order_by="TaskProgress.id")


class TaskProgress(Base):
    """Append-only audit row, one per progress update"""
    __tablename__ = "task_progress"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    completion_percentage = Column(Integer, nullable=False)
    is_implemented = Column(Boolean, nullable=False, default=False)
    implementation_notes = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task", back_populates="progress_entries")
