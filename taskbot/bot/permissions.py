"""
Role gate - minimum role per intent, as explicit allow-lists
"""
from typing import Dict, FrozenSet

from taskbot.errors import PermissionDenied
from taskbot.models.user import Role

EVERYONE: FrozenSet[Role] = frozenset({Role.USER, Role.ADMIN, Role.SUPER_ADMIN})
ADMINS: FrozenSet[Role] = frozenset({Role.ADMIN, Role.SUPER_ADMIN})
SUPER_ADMINS: FrozenSet[Role] = frozenset({Role.SUPER_ADMIN})

INTENT_ROLES: Dict[str, FrozenSet[Role]] = {
    # own data and conversation
    "help": EVERYONE,
    "clear_history": EVERYONE,
    "show_history": EVERYONE,
    "general": EVERYONE,
    "view_tasks": EVERYONE,
    "view_daily_tasks": EVERYONE,
    "view_monthly_tasks": EVERYONE,
    "update_progress": EVERYONE,
    "mark_complete": EVERYONE,
    "view_orders": EVERYONE,
    "view_order_items": EVERYONE,
    "my_report": EVERYONE,
    "report_by_date": EVERYONE,
    "view_reminders": EVERYONE,
    "daily_progress_reminder": EVERYONE,
    "monthly_progress_reminder": EVERYONE,
    # management
    "list_users": ADMINS,
    "list_tasks": ADMINS,
    "create_task": ADMINS,
    "assign_task": ADMINS,
    "create_daily_task": ADMINS,
    "create_monthly_task": ADMINS,
    "delete_task": ADMINS,
    "create_order": ADMINS,
    "create_order_with_item": ADMINS,
    "update_order": ADMINS,
    "delete_order": ADMINS,
    "add_order_item": ADMINS,
    "update_order_item": ADMINS,
    "set_item_status": ADMINS,
    "delete_order_item": ADMINS,
    "view_calculations": ADMINS,
    "set_tax_rate": ADMINS,
    "set_marketing_rate": ADMINS,
    "set_rental_rate": ADMINS,
    "generate_report": ADMINS,
    "daily_report": ADMINS,
    "monthly_report": ADMINS,
    "create_reminder": ADMINS,
    "mark_reminder_sent": ADMINS,
    "delete_reminder": ADMINS,
    "update_user": ADMINS,
    "delete_user": ADMINS,
    "set_role": ADMINS,
    # user provisioning
    "add_user": SUPER_ADMINS,
}


def allowed_roles(intent_type: str) -> FrozenSet[Role]:
    # unlisted intents need the highest privilege
    return INTENT_ROLES.get(intent_type, SUPER_ADMINS)


def is_allowed(role: Role, intent_type: str) -> bool:
    return role in allowed_roles(intent_type)


def check_permission(role: Role, intent_type: str) -> None:
    if not is_allowed(role, intent_type):
        raise PermissionDenied()


def is_admin(role: Role) -> bool:
    return role in ADMINS
