"""
Response formatter - domain results rendered as WhatsApp chat text
"""
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from taskbot.models.financial import CalculationHistory
from taskbot.models.order import Order, OrderItem
from taskbot.models.reminder import Reminder
from taskbot.models.task import Task, TaskStatus
from taskbot.models.user import Role, User
from taskbot.services.conversation_memory import ConversationTurn
from taskbot.services.order_service import OrderItemsSummary
from taskbot.services.report_service import ReportSummary

OK = "✅"
FAIL = "❌"

STATUS_LABELS = {
    TaskStatus.PENDING: "⏳ Pending",
    TaskStatus.IN_PROGRESS: "🔄 In Progress",
    TaskStatus.COMPLETED: "✅ Completed",
    TaskStatus.OVERDUE: "⚠️ Overdue",
}

USER_COMMANDS = """
📱 **Available Commands:**

**General Commands:**
/my_tasks - View assigned tasks
/my_daily_tasks - View today's daily tasks
/my_monthly_tasks - View this month's tasks
/update_progress [task_id] [percentage] - Update task progress
/mark_complete [task_id] - Mark task as implemented
/view_orders - View related orders
/order_items [order_id] - View items of an order
/my_report - View personal financial reports
/report_by_date [start_date] [end_date] - Generate reports by date range
/view_reminders [task_id] - View reminders
/daily_progress_reminder - Send yourself today's progress
/monthly_progress_reminder - Send yourself this month's progress
/show_history - Show recent conversation
/clear_history - Forget recent conversation
/help - Show this help message
"""

ADMIN_COMMANDS = """
**Admin Commands:**
/list_users - View all users
/create_order [customer_name] [total_amount] - Create new order
/view_orders - List all orders
/update_order [order_id] [field]=[value] ... - Update order
/delete_order [order_id] - Delete order
/add_item [order_id] [item_name] [quantity] [price] [description] - Add order item
/update_item [item_id] [field]=[value] ... - Update order item
/item_status [item_id] [status] - Set item status (pending, completed, cancelled)
/delete_item [item_id] - Delete order item
/order_history [order_id] - View financial calculations
/list_tasks - View all tasks
/assign_task [user_id] [title] [description] - Assign task to user
/create_daily_task [user_id] [title] [description] - Create daily recurring task
/create_monthly_task [user_id] [title] [description] - Create monthly recurring task
/delete_task [task_id] - Delete task
/create_reminder [task_id] [type] [YYYY-MM-DD HH:MM] - Schedule a reminder
/mark_reminder_sent [reminder_id] - Mark reminder as sent
/delete_reminder [reminder_id] - Delete reminder
/set_tax_rate [percentage] - Set tax percentage
/set_marketing_rate [percentage] - Set marketing cost percentage
/set_rental_rate [percentage] - Set rental cost percentage
/generate_report - Generate financial reports
/daily_report - Generate daily report
/monthly_report - Generate monthly report
/update_user [user_id] [field]=[value] ... - Update user
/delete_user [user_id] - Delete user
/set_role [user_id] [role] - Change user role
"""

SUPER_ADMIN_COMMANDS = """
**Super Admin Commands:**
/add_user [username] [email] [phone] [role] - Add new user
"""


def _label(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def money(value) -> str:
    return f"${(value or 0.0):.2f}"


def success(text: str) -> str:
    return f"{OK} {text}"


def failure(text: str) -> str:
    return f"{FAIL} {text}"


def help_text(role: Role) -> str:
    text = USER_COMMANDS
    if role in (Role.ADMIN, Role.SUPER_ADMIN):
        text += ADMIN_COMMANDS
    if role == Role.SUPER_ADMIN:
        text += SUPER_ADMIN_COMMANDS
    return text


def format_tasks(tasks: Sequence[Task], title: str = "Your Tasks") -> str:
    if not tasks:
        return "📝 No tasks assigned to you."

    lines = [f"📝 **{title}:**", ""]
    for task in tasks:
        lines.append(f"**#{task.id} {task.title}**")
        lines.append(f"Status: {STATUS_LABELS.get(task.status, _label(task.status))}")
        lines.append(f"Progress: {task.completion_percentage}%")
        lines.append(f"Priority: {_label(task.priority)}")
        if task.due_date:
            lines.append(f"Due: {task.due_date.strftime('%Y-%m-%d')}")
        lines.append("")
    return "\n".join(lines)


def format_recurring_tasks(tasks: Sequence[Task], period: str) -> str:
    """period: 'daily' or 'monthly'"""
    if not tasks:
        return "📅 No daily tasks for today." if period == "daily" else "📅 No monthly tasks for this month."

    title = "Today's Daily Tasks" if period == "daily" else "This Month's Tasks"
    lines = [f"📅 **{title}:**", ""]
    for task in tasks:
        lines.append(f"**#{task.id} {task.title}**")
        lines.append(f"Progress: {task.completion_percentage}%")
        lines.append(f"Implemented: {'yes' if task.is_implemented else 'no'}")
        lines.append("")
    return "\n".join(lines)


def format_task_created(task: Task, label: str = "Task") -> str:
    return success(f"{label} created successfully\nTask #: {task.id}\nTitle: {task.title}")


def format_orders(orders: Sequence[Order], title: str = "Your Orders") -> str:
    if not orders:
        return "📦 No orders found."

    lines = [f"📦 **{title}:**", ""]
    for order in orders:
        lines.append(f"**Order #{order.order_number}** (id {order.id})")
        lines.append(f"Customer: {order.customer_name}")
        lines.append(f"Total: {money(order.total_amount)}")
        lines.append(f"Status: {_label(order.status)}")
        lines.append(f"Date: {order.order_date.strftime('%Y-%m-%d')}")
        lines.append("")
    return "\n".join(lines)


def format_order_created(order: Order, items: Iterable[OrderItem] = ()) -> str:
    lines = [
        success("Order created successfully"),
        f"Order #: {order.order_number}",
        f"Customer: {order.customer_name}",
        f"Total: {money(order.total_amount)}",
        f"Net Profit: {money(order.net_profit)}",
    ]
    for item in items:
        lines.append(f"• {item.item_name} x{item.quantity} @ {money(item.unit_price)}")
    return "\n".join(lines)


def format_order_items(items: Sequence[OrderItem], summary: OrderItemsSummary) -> str:
    if not items:
        return f"📦 Order {summary.order_id} has no items."

    lines = [f"📦 **Items for order {summary.order_id}:**", ""]
    for item in items:
        lines.append(
            f"• #{item.id} {item.item_name} x{item.quantity} @ {money(item.unit_price)} "
            f"= {money(item.total_price)} ({_label(item.status)})"
        )
        if item.description:
            lines.append(f"  {item.description}")
    lines.append("")
    lines.append(f"Items: {summary.total_items} | Quantity: {summary.total_quantity}")
    lines.append(f"Value: {money(summary.total_value)}")
    lines.append(f"Completion: {summary.completion_rate:.0f}%")
    return "\n".join(lines)


def format_calculations(order: Order, rows: Sequence[CalculationHistory]) -> str:
    if not rows:
        return f"🧮 No calculations recorded for order {order.order_number}."

    lines = [f"🧮 **Calculations for order {order.order_number}:**", ""]
    for row in rows:
        when = row.calculation_timestamp.strftime("%Y-%m-%d %H:%M")
        lines.append(
            f"{when} - gross {money(row.input_value)}, rates {row.percentage_used:g}%, "
            f"net {money(row.calculated_amount)}"
        )
    return "\n".join(lines)


def format_users(users: Sequence[User]) -> str:
    if not users:
        return "👥 No users found."

    lines = ["👥 **All Users:**", ""]
    for user in users:
        status = f"{OK} Active" if user.is_active else f"{FAIL} Inactive"
        lines.append(f"**#{user.id} {user.username}** ({user.email})")
        lines.append(f"Role: {_label(user.role)}")
        lines.append(f"Status: {status}")
        lines.append("")
    return "\n".join(lines)


def format_reminders(reminders: Sequence[Reminder]) -> str:
    if not reminders:
        return "🔔 No reminders found."

    lines = ["🔔 **Reminders:**", ""]
    for reminder in reminders:
        sent = "sent" if reminder.whatsapp_sent else "scheduled"
        lines.append(
            f"#{reminder.id} task {reminder.task_id} - {reminder.reminder_type} "
            f"at {reminder.scheduled_time.strftime('%Y-%m-%d %H:%M')} ({sent})"
        )
    return "\n".join(lines)


def format_history(turns: List[ConversationTurn]) -> str:
    if not turns:
        return "💬 No recent conversation history."

    lines = ["💬 **Recent conversation:**", ""]
    for turn in turns:
        speaker = "You" if turn.role == "user" else "Bot"
        lines.append(f"{speaker}: {turn.content}")
    return "\n".join(lines)


def format_report(report: ReportSummary, detailed: bool = True, empty_message: Optional[str] = None) -> str:
    if report.total_orders == 0 and empty_message:
        return empty_message

    lines = [
        f"📊 **{report.title}:**",
        "",
        f"Total Orders: {report.total_orders}",
        f"Total Amount: {money(report.total_amount)}",
    ]
    if detailed:
        lines.append(f"Total Tax: {money(report.total_tax)}")
        lines.append(f"Total Marketing: {money(report.total_marketing)}")
        lines.append(f"Total Rental: {money(report.total_rental)}")
    lines.append(f"Net Profit: {money(report.net_profit)}")
    return "\n".join(lines)
