"""
Command dispatcher - routes a resolved intent to its domain operation.

The role gate runs before any handler, and every failure comes back as a
chat line; ``dispatch`` never raises.
"""
import logging
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.bot import formatter
from taskbot.bot.intents import (
    AddOrderItem,
    AddUser,
    BaseIntent,
    CreateOrder,
    CreateOrderWithItem,
    CreateReminder,
    CreateTask,
    DeleteOrder,
    DeleteOrderItem,
    DeleteReminder,
    DeleteTask,
    DeleteUser,
    InvalidCommand,
    MarkComplete,
    MarkReminderSent,
    ReportByDate,
    SetItemStatus,
    SetRate,
    SetRole,
    UpdateOrder,
    UpdateOrderItem,
    UpdateProgress,
    UpdateUser,
    ViewCalculations,
    ViewOrderItems,
    ViewReminders,
)
from taskbot.bot.permissions import check_permission, is_admin
from taskbot.bot.prompts import GENERAL_FALLBACK_MESSAGE
from taskbot.bot.resolver import IntentResolver
from taskbot.errors import InvalidArgument, PermissionDenied, TaskBotError
from taskbot.models.task import TaskType
from taskbot.models.user import Role, User
from taskbot.services.cache import CacheStore
from taskbot.services.conversation_memory import ConversationMemory
from taskbot.services.financial_service import FinancialService
from taskbot.services.order_service import NewOrderItem, OrderService
from taskbot.services.reminder_service import ReminderService, progress_nudge_text
from taskbot.services.report_service import ReportService
from taskbot.services.task_service import TaskService, validate_percentage
from taskbot.services.user_service import UserService, parse_role

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong while processing your command. Please try again."

Handler = Callable[[User, BaseIntent], Awaitable[str]]

TASK_TYPES = {
    "create_task": (TaskType.CUSTOM, "Task"),
    "assign_task": (TaskType.CUSTOM, "Task"),
    "create_daily_task": (TaskType.DAILY, "Daily task"),
    "create_monthly_task": (TaskType.MONTHLY, "Monthly task"),
}

ITEM_FIELDS = ("item_name", "quantity", "price", "description")

RATE_LABELS = {
    "set_tax_rate": "Tax",
    "set_marketing_rate": "Marketing",
    "set_rental_rate": "Rental",
}


def parse_amount(value: str, label: str = "total amount") -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid {label}")


def parse_quantity(value: str) -> int:
    quantity = parse_amount(value, "quantity")
    if not quantity.is_integer():
        raise InvalidArgument("Invalid quantity")
    return int(quantity)


class CommandDispatcher:
    """
    Maps intent tags to handlers, like an agent router keyed by name.

    Services are built on the request's session unless injected.
    """

    def __init__(
        self,
        db: Optional[AsyncSession],
        memory: ConversationMemory,
        cache: Optional[CacheStore] = None,
        progress_ttl: int = 60 * 60 * 24,
        users: Optional[UserService] = None,
        tasks: Optional[TaskService] = None,
        orders: Optional[OrderService] = None,
        financial: Optional[FinancialService] = None,
        reminders: Optional[ReminderService] = None,
        reports: Optional[ReportService] = None,
    ):
        self.memory = memory
        self.users = users or UserService(db)
        self.tasks = tasks or TaskService(db, cache=cache, progress_ttl=progress_ttl)
        self.financial = financial or FinancialService(db)
        self.orders = orders or OrderService(db, financial=self.financial)
        self.reminders = reminders or ReminderService(db)
        self.reports = reports or ReportService(db)

        self.handlers: Dict[str, Handler] = {
            "help": self._help,
            "clear_history": self._clear_history,
            "show_history": self._show_history,
            "general": self._general,
            "invalid": self._invalid,
            # tasks
            "view_tasks": self._view_tasks,
            "view_daily_tasks": self._view_daily_tasks,
            "view_monthly_tasks": self._view_monthly_tasks,
            "list_tasks": self._list_tasks,
            "update_progress": self._update_progress,
            "mark_complete": self._mark_complete,
            "delete_task": self._delete_task,
            "create_task": self._create_task,
            "assign_task": self._create_task,
            "create_daily_task": self._create_task,
            "create_monthly_task": self._create_task,
            # orders
            "create_order": self._create_order,
            "create_order_with_item": self._create_order_with_item,
            "view_orders": self._view_orders,
            "update_order": self._update_order,
            "delete_order": self._delete_order,
            "add_order_item": self._add_order_item,
            "update_order_item": self._update_order_item,
            "set_item_status": self._set_item_status,
            "delete_order_item": self._delete_order_item,
            "view_order_items": self._view_order_items,
            "view_calculations": self._view_calculations,
            # financial settings and reports
            "set_tax_rate": self._set_rate,
            "set_marketing_rate": self._set_rate,
            "set_rental_rate": self._set_rate,
            "my_report": self._my_report,
            "report_by_date": self._report_by_date,
            "generate_report": self._generate_report,
            "daily_report": self._daily_report,
            "monthly_report": self._monthly_report,
            # reminders
            "create_reminder": self._create_reminder,
            "view_reminders": self._view_reminders,
            "mark_reminder_sent": self._mark_reminder_sent,
            "delete_reminder": self._delete_reminder,
            "daily_progress_reminder": self._progress_reminder,
            "monthly_progress_reminder": self._progress_reminder,
            # users
            "add_user": self._add_user,
            "list_users": self._list_users,
            "update_user": self._update_user,
            "delete_user": self._delete_user,
            "set_role": self._set_role,
        }

    async def dispatch(self, caller: User, intent: BaseIntent) -> str:
        try:
            check_permission(caller.role, intent.gate)
            handler = self.handlers.get(intent.type)
            if handler is None:
                raise InvalidArgument(f"Unsupported command: {intent.type}")
            return await handler(caller, intent)
        except PermissionDenied as e:
            logger.info(f"{caller.username} denied '{intent.gate}'")
            return formatter.failure(e.message)
        except TaskBotError as e:
            return formatter.failure(e.message)
        except Exception as e:
            logger.error(f"Error handling '{intent.type}' for {caller.username}: {e}", exc_info=True)
            return formatter.failure(GENERIC_FAILURE)

    # --- local / general ---

    async def _help(self, caller: User, intent: BaseIntent) -> str:
        return formatter.help_text(caller.role)

    async def _clear_history(self, caller: User, intent: BaseIntent) -> str:
        await self.memory.clear(caller.id)
        return formatter.success("Conversation history cleared")

    async def _show_history(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_history(await self.memory.read(caller.id))

    async def _general(self, caller: User, intent: BaseIntent) -> str:
        return intent.message or GENERAL_FALLBACK_MESSAGE

    async def _invalid(self, caller: User, intent: InvalidCommand) -> str:
        return formatter.failure(intent.reason)

    # --- tasks ---

    async def _view_tasks(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_tasks(await self.tasks.tasks_for_user(caller.id))

    async def _view_daily_tasks(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_recurring_tasks(await self.tasks.daily_tasks(caller.id), "daily")

    async def _view_monthly_tasks(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_recurring_tasks(await self.tasks.monthly_tasks(caller.id), "monthly")

    async def _list_tasks(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_tasks(await self.tasks.list_tasks(), "All Tasks")

    async def _update_progress(self, caller: User, intent: UpdateProgress) -> str:
        validate_percentage(intent.percentage)
        await self.tasks.update_progress(
            intent.task_id, intent.percentage, intent.is_implemented, intent.notes, caller.id
        )
        return formatter.success(f"Task progress updated to {intent.percentage}%")

    async def _mark_complete(self, caller: User, intent: MarkComplete) -> str:
        await self.tasks.mark_complete(intent.task_id, caller.id)
        return formatter.success("Task marked as implemented")

    async def _delete_task(self, caller: User, intent: DeleteTask) -> str:
        await self.tasks.delete_task(intent.task_id)
        return formatter.success(f"Task {intent.task_id} deleted")

    async def _create_task(self, caller: User, intent: CreateTask) -> str:
        task_type, label = TASK_TYPES[intent.type]
        assignee_id = caller.id
        if intent.assigned_to:
            assignee_id = (await self.users.resolve(intent.assigned_to)).id
        task = await self.tasks.create_task(
            intent.title, intent.description, assignee_id, caller.id, task_type=task_type
        )
        return formatter.format_task_created(task, label)

    # --- orders ---

    async def _create_order(self, caller: User, intent: CreateOrder) -> str:
        items = [
            NewOrderItem(item_name=line.item_name, quantity=line.quantity, unit_price=line.price,
                         description=line.description)
            for line in intent.items
        ]
        order = await self.orders.create_order(
            intent.customer_name, intent.total_amount, caller.id, intent.customer_phone, items
        )
        return formatter.format_order_created(order, items)

    async def _create_order_with_item(self, caller: User, intent: CreateOrderWithItem) -> str:
        items = [NewOrderItem(item_name=intent.item_name, quantity=intent.quantity, unit_price=intent.price)]
        order = await self.orders.create_order(intent.customer_name, intent.total_amount, caller.id, items=items)
        return formatter.format_order_created(order, items)

    async def _view_orders(self, caller: User, intent: BaseIntent) -> str:
        if is_admin(caller.role):
            return formatter.format_orders(await self.orders.list_orders(), "All Orders")
        return formatter.format_orders(await self.orders.list_orders_for_user(caller.id))

    async def _update_order(self, caller: User, intent: UpdateOrder) -> str:
        changes = dict(intent.changes)
        if "total_amount" in changes:
            changes["total_amount"] = parse_amount(changes["total_amount"])
        order = await self.orders.update_order(intent.order_id, changes)
        return formatter.success(
            f"Order {order.order_number} updated\nTotal: {formatter.money(order.total_amount)}\n"
            f"Net Profit: {formatter.money(order.net_profit)}"
        )

    async def _delete_order(self, caller: User, intent: DeleteOrder) -> str:
        await self.orders.delete_order(intent.order_id)
        return formatter.success(f"Order {intent.order_id} deleted")

    async def _add_order_item(self, caller: User, intent: AddOrderItem) -> str:
        item = await self.orders.add_item(
            intent.order_id, intent.item_name, intent.quantity, intent.price, intent.description
        )
        return formatter.success(
            f"Added {item.quantity} x {item.item_name} to order {intent.order_id} "
            f"({formatter.money(item.total_price)})"
        )

    async def _update_order_item(self, caller: User, intent: UpdateOrderItem) -> str:
        changes = intent.changes
        unknown = sorted(set(changes) - set(ITEM_FIELDS))
        if unknown:
            raise InvalidArgument(f"Unknown item field(s): {', '.join(unknown)}")
        if not changes:
            raise InvalidArgument("No changes given")
        item = await self.orders.update_item(
            intent.item_id,
            item_name=changes.get("item_name"),
            quantity=parse_quantity(changes["quantity"]) if "quantity" in changes else None,
            unit_price=parse_amount(changes["price"], "price") if "price" in changes else None,
            description=changes.get("description"),
        )
        return formatter.success(
            f"Item #{item.id} updated: {item.quantity} x {item.item_name} ({formatter.money(item.total_price)})"
        )

    async def _set_item_status(self, caller: User, intent: SetItemStatus) -> str:
        item = await self.orders.update_item_status(intent.item_id, intent.status.lower())
        return formatter.success(f"Item #{item.id} marked {item.status.value}")

    async def _delete_order_item(self, caller: User, intent: DeleteOrderItem) -> str:
        await self.orders.delete_item(intent.item_id)
        return formatter.success(f"Item {intent.item_id} deleted")

    async def _view_order_items(self, caller: User, intent: ViewOrderItems) -> str:
        items = await self.orders.get_items(intent.order_id)
        summary = await self.orders.get_items_summary(intent.order_id)
        return formatter.format_order_items(items, summary)

    async def _view_calculations(self, caller: User, intent: ViewCalculations) -> str:
        order = await self.orders.get_order(intent.order_id)
        return formatter.format_calculations(order, await self.financial.get_history(order.id))

    # --- financial settings and reports ---

    async def _set_rate(self, caller: User, intent: SetRate) -> str:
        await self.financial.set_rate(intent.setting_name, intent.percentage, caller.id)
        return formatter.success(f"{RATE_LABELS[intent.type]} rate set to {intent.percentage:.2f}%")

    async def _my_report(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_report(await self.reports.personal_report(caller.id))

    async def _report_by_date(self, caller: User, intent: ReportByDate) -> str:
        if intent.start_date > intent.end_date:
            raise InvalidArgument("Start date must not be after end date")
        report = await self.reports.report_by_date(intent.start_date, intent.end_date)
        return formatter.format_report(
            report, empty_message="📊 No orders found for the specified date range."
        )

    async def _generate_report(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_report(await self.reports.financial_report())

    async def _daily_report(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_report(await self.reports.daily_report(), detailed=False)

    async def _monthly_report(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_report(await self.reports.monthly_report(), detailed=False)

    # --- reminders ---

    async def _create_reminder(self, caller: User, intent: CreateReminder) -> str:
        reminder = await self.reminders.create_reminder(
            intent.task_id, intent.reminder_type, intent.scheduled_time
        )
        return formatter.success(
            f"Reminder #{reminder.id} ({reminder.reminder_type}) scheduled for "
            f"{reminder.scheduled_time.strftime('%Y-%m-%d %H:%M')}"
        )

    async def _view_reminders(self, caller: User, intent: ViewReminders) -> str:
        if intent.task_id is not None:
            reminders = await self.reminders.reminders_for_task(intent.task_id)
        elif is_admin(caller.role):
            reminders = await self.reminders.list_reminders()
        else:
            reminders = await self.reminders.reminders_for_user(caller.id)
        return formatter.format_reminders(reminders)

    async def _mark_reminder_sent(self, caller: User, intent: MarkReminderSent) -> str:
        await self.reminders.mark_sent(intent.reminder_id)
        return formatter.success(f"Reminder #{intent.reminder_id} marked as sent")

    async def _delete_reminder(self, caller: User, intent: DeleteReminder) -> str:
        await self.reminders.delete_reminder(intent.reminder_id)
        return formatter.success(f"Reminder #{intent.reminder_id} deleted")

    async def _progress_reminder(self, caller: User, intent: BaseIntent) -> str:
        task_type = TaskType.DAILY if intent.type == "daily_progress_reminder" else TaskType.MONTHLY
        progress = await self.tasks.average_progress(caller.id, task_type)
        return progress_nudge_text(task_type, progress)

    # --- users ---

    def _check_role_grant(self, caller: User, role: Role) -> None:
        if role == Role.SUPER_ADMIN and caller.role != Role.SUPER_ADMIN:
            raise PermissionDenied("Only a SuperAdmin can grant the SuperAdmin role")

    def _check_target(self, caller: User, target: User) -> None:
        if target.role == Role.SUPER_ADMIN and caller.role != Role.SUPER_ADMIN:
            raise PermissionDenied("Only a SuperAdmin can modify a SuperAdmin")

    async def _add_user(self, caller: User, intent: AddUser) -> str:
        role = parse_role(intent.role)
        await self.users.create_user(intent.username, intent.email, intent.phone, role)
        return formatter.success("User created successfully")

    async def _list_users(self, caller: User, intent: BaseIntent) -> str:
        return formatter.format_users(await self.users.list_users())

    async def _update_user(self, caller: User, intent: UpdateUser) -> str:
        if "role" in intent.changes:
            self._check_role_grant(caller, parse_role(intent.changes["role"]))
        target = await self.users.resolve(intent.user)
        self._check_target(caller, target)
        await self.users.update_user(target.id, intent.changes)
        return formatter.success(f"User {target.username} updated")

    async def _delete_user(self, caller: User, intent: DeleteUser) -> str:
        target = await self.users.resolve(intent.user)
        self._check_target(caller, target)
        if target.id == caller.id:
            raise InvalidArgument("You cannot delete your own account")
        await self.users.delete_user(target.id)
        return formatter.success(f"User {target.username} deleted")

    async def _set_role(self, caller: User, intent: SetRole) -> str:
        role = parse_role(intent.role)
        self._check_role_grant(caller, role)
        target = await self.users.resolve(intent.user)
        self._check_target(caller, target)
        await self.users.set_role(target.id, role)
        return formatter.success(f"{target.username} is now {role.value}")


async def handle_message(
    resolver: IntentResolver,
    dispatcher: CommandDispatcher,
    caller: User,
    text: str,
) -> str:
    """Resolve then dispatch one inbound message; always returns a reply"""
    try:
        intent = await resolver.resolve(text, caller)
    except TaskBotError as e:
        return formatter.failure(e.message)
    return await dispatcher.dispatch(caller, intent)
