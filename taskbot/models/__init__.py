from taskbot.models.user import User, Role
from taskbot.models.task import Task, TaskProgress, TaskStatus, TaskPriority, TaskType
from taskbot.models.order import Order, OrderItem, OrderStatus, OrderItemStatus
from taskbot.models.financial import FinancialSettings, CalculationHistory
from taskbot.models.reminder import Reminder

__all__ = [
    "User",
    "Role",
    "Task",
    "TaskProgress",
    "TaskStatus",
    "TaskPriority",
    "TaskType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderItemStatus",
    "FinancialSettings",
    "CalculationHistory",
    "Reminder",
]
