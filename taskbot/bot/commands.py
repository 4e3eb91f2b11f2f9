"""
Slash command table - argv-style parsing of ``/command arg1 arg2 ...``
"""
from typing import Callable, Dict, List, NamedTuple, Optional

from taskbot.bot.intents import BaseIntent, InvalidCommand, build_intent
from taskbot.errors import InvalidArgument

COMMAND_PREFIX = "/"

# resolved without the classifier
LOCAL_COMMANDS = {
    "/help": "help",
    "/clear_history": "clear_history",
    "/show_history": "show_history",
}


class Command(NamedTuple):
    intent_type: str
    usage: str
    min_args: int
    build: Callable[[List[str]], dict]


def split_command(text: str) -> tuple[str, List[str]]:
    tokens = text.strip().split()
    return tokens[0], tokens[1:]


def _no_args(args: List[str]) -> dict:
    return {}


def _field_pairs(tokens: List[str]) -> Dict[str, str]:
    changes = {}
    for token in tokens:
        if "=" not in token:
            raise InvalidArgument(f"Expected field=value, got '{token}'")
        key, value = token.split("=", 1)
        changes[key.strip()] = value.strip()
    return changes


def _task_args(args: List[str]) -> dict:
    return {"assigned_to": args[0], "title": args[1], "description": " ".join(args[2:])}


def _order_args(args: List[str]) -> dict:
    # last token is the amount so customer names may contain spaces
    return {"customer_name": " ".join(args[:-1]), "total_amount": args[-1]}


def _progress_args(args: List[str]) -> dict:
    return {"task_id": args[0], "percentage": args[1]}


def _order_item_args(args: List[str]) -> dict:
    return {
        "order_id": args[0],
        "item_name": args[1],
        "quantity": args[2],
        "price": args[3],
        "description": " ".join(args[4:]) or None,
    }


def _reminder_args(args: List[str]) -> dict:
    return {"task_id": args[0], "reminder_type": args[1], "scheduled_time": " ".join(args[2:])}


COMMANDS: Dict[str, Command] = {
    "/my_tasks": Command("view_tasks", "/my_tasks", 0, _no_args),
    "/my_daily_tasks": Command("view_daily_tasks", "/my_daily_tasks", 0, _no_args),
    "/my_monthly_tasks": Command("view_monthly_tasks", "/my_monthly_tasks", 0, _no_args),
    "/list_tasks": Command("list_tasks", "/list_tasks", 0, _no_args),
    "/update_progress": Command(
        "update_progress", "/update_progress [task_id] [percentage]", 2, _progress_args
    ),
    "/mark_complete": Command("mark_complete", "/mark_complete [task_id]", 1, lambda a: {"task_id": a[0]}),
    "/delete_task": Command("delete_task", "/delete_task [task_id]", 1, lambda a: {"task_id": a[0]}),
    "/assign_task": Command("assign_task", "/assign_task [user_id] [title] [description]", 3, _task_args),
    "/create_daily_task": Command(
        "create_daily_task", "/create_daily_task [user_id] [title] [description]", 3, _task_args
    ),
    "/create_monthly_task": Command(
        "create_monthly_task", "/create_monthly_task [user_id] [title] [description]", 3, _task_args
    ),
    "/view_orders": Command("view_orders", "/view_orders", 0, _no_args),
    "/create_order": Command("create_order", "/create_order [customer_name] [total_amount]", 2, _order_args),
    "/update_order": Command(
        "update_order",
        "/update_order [order_id] [field]=[value] ...",
        2,
        lambda a: {"order_id": a[0], "changes": _field_pairs(a[1:])},
    ),
    "/delete_order": Command("delete_order", "/delete_order [order_id]", 1, lambda a: {"order_id": a[0]}),
    "/add_item": Command(
        "add_order_item",
        "/add_item [order_id] [item_name] [quantity] [price] [description]",
        4,
        _order_item_args,
    ),
    "/update_item": Command(
        "update_order_item",
        "/update_item [item_id] [field]=[value] ...",
        2,
        lambda a: {"item_id": a[0], "changes": _field_pairs(a[1:])},
    ),
    "/item_status": Command(
        "set_item_status",
        "/item_status [item_id] [pending|completed|cancelled]",
        2,
        lambda a: {"item_id": a[0], "status": a[1]},
    ),
    "/delete_item": Command("delete_order_item", "/delete_item [item_id]", 1, lambda a: {"item_id": a[0]}),
    "/order_items": Command("view_order_items", "/order_items [order_id]", 1, lambda a: {"order_id": a[0]}),
    "/order_history": Command(
        "view_calculations", "/order_history [order_id]", 1, lambda a: {"order_id": a[0]}
    ),
    "/set_tax_rate": Command("set_tax_rate", "/set_tax_rate [percentage]", 1, lambda a: {"percentage": a[0]}),
    "/set_marketing_rate": Command(
        "set_marketing_rate", "/set_marketing_rate [percentage]", 1, lambda a: {"percentage": a[0]}
    ),
    "/set_rental_rate": Command(
        "set_rental_rate", "/set_rental_rate [percentage]", 1, lambda a: {"percentage": a[0]}
    ),
    "/my_report": Command("my_report", "/my_report", 0, _no_args),
    "/report_by_date": Command(
        "report_by_date",
        "/report_by_date [start_date] [end_date] (format: YYYY-MM-DD)",
        2,
        lambda a: {"start_date": a[0], "end_date": a[1]},
    ),
    "/generate_report": Command("generate_report", "/generate_report", 0, _no_args),
    "/daily_report": Command("daily_report", "/daily_report", 0, _no_args),
    "/monthly_report": Command("monthly_report", "/monthly_report", 0, _no_args),
    "/create_reminder": Command(
        "create_reminder",
        "/create_reminder [task_id] [type] [YYYY-MM-DD HH:MM]",
        3,
        _reminder_args,
    ),
    "/view_reminders": Command(
        "view_reminders", "/view_reminders [task_id]", 0, lambda a: {"task_id": a[0]} if a else {}
    ),
    "/mark_reminder_sent": Command(
        "mark_reminder_sent", "/mark_reminder_sent [reminder_id]", 1, lambda a: {"reminder_id": a[0]}
    ),
    "/delete_reminder": Command(
        "delete_reminder", "/delete_reminder [reminder_id]", 1, lambda a: {"reminder_id": a[0]}
    ),
    "/daily_progress_reminder": Command("daily_progress_reminder", "/daily_progress_reminder", 0, _no_args),
    "/monthly_progress_reminder": Command(
        "monthly_progress_reminder", "/monthly_progress_reminder", 0, _no_args
    ),
    "/add_user": Command(
        "add_user",
        "/add_user [username] [email] [phone] [role]",
        4,
        lambda a: {"username": a[0], "email": a[1], "phone": a[2], "role": a[3]},
    ),
    "/list_users": Command("list_users", "/list_users", 0, _no_args),
    "/update_user": Command(
        "update_user",
        "/update_user [user_id] [field]=[value] ...",
        2,
        lambda a: {"user": a[0], "changes": _field_pairs(a[1:])},
    ),
    "/delete_user": Command("delete_user", "/delete_user [user_id]", 1, lambda a: {"user": a[0]}),
    "/set_role": Command("set_role", "/set_role [user_id] [role]", 2, lambda a: {"user": a[0], "role": a[1]}),
}


def is_command(text: str) -> bool:
    return text.lstrip().startswith(COMMAND_PREFIX)


def parse_command(text: str, source: str) -> Optional[BaseIntent]:
    """
    Parse a known slash command into its intent.

    Returns None for unknown commands. Arity or type problems come back as
    an InvalidCommand carrying the usage string so the role gate still runs
    first.
    """
    name, args = split_command(text)
    if name in LOCAL_COMMANDS:
        return build_intent(LOCAL_COMMANDS[name], {}, source=source)

    command = COMMANDS.get(name)
    if command is None:
        return None

    usage = f"Usage: {command.usage}"
    if len(args) < command.min_args:
        return InvalidCommand(source=source, target=command.intent_type, reason=usage)
    try:
        return build_intent(command.intent_type, command.build(args), source=source)
    except InvalidArgument as e:
        return InvalidCommand(source=source, target=command.intent_type, reason=f"{e.message}\n{usage}")
