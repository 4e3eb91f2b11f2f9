"""
Tests for slash command parsing, intent validation and the permission table
"""
from datetime import date, datetime

import pytest

from taskbot.bot.commands import COMMANDS, parse_command
from taskbot.bot.formatter import format_report, money
from taskbot.bot.intents import (
    INTENT_TYPES,
    SOURCE_LOCAL,
    CreateOrder,
    CreateReminder,
    DeleteUser,
    InvalidCommand,
    ReportByDate,
    SetItemStatus,
    SetRate,
    SetRole,
    UpdateOrder,
    UpdateOrderItem,
    UpdateUser,
    build_intent,
    from_classifier,
)
from taskbot.bot.permissions import INTENT_ROLES, allowed_roles, is_allowed
from taskbot.errors import InvalidArgument
from taskbot.models.user import Role
from taskbot.services.report_service import ReportSummary


def test_unknown_command_is_none():
    assert parse_command("/dance now", SOURCE_LOCAL) is None


def test_create_order_name_may_contain_spaces():
    intent = parse_command("/create_order John Doe 1500.5", SOURCE_LOCAL)
    assert isinstance(intent, CreateOrder)
    assert (intent.customer_name, intent.total_amount) == ("John Doe", 1500.5)


def test_bad_amount_reports_field_and_usage():
    intent = parse_command("/create_order John lots", SOURCE_LOCAL)
    assert isinstance(intent, InvalidCommand)
    assert intent.reason == (
        "Invalid or missing value for: total_amount\nUsage: /create_order [customer_name] [total_amount]"
    )


def test_update_order_field_pairs():
    intent = parse_command("/update_order 4 customer_name=Budi total_amount=900", SOURCE_LOCAL)
    assert isinstance(intent, UpdateOrder)
    assert intent.changes == {"customer_name": "Budi", "total_amount": "900"}

    bad = parse_command("/update_order 4 Budi", SOURCE_LOCAL)
    assert isinstance(bad, InvalidCommand)
    assert "field=value" in bad.reason


def test_rate_command_sets_setting_name():
    intent = parse_command("/set_marketing_rate 7.5", SOURCE_LOCAL)
    assert isinstance(intent, SetRate)
    assert intent.setting_name == "marketing_rate"
    assert intent.percentage == 7.5


def test_report_dates_parsed():
    intent = parse_command("/report_by_date 2024-01-01 2024-01-31", SOURCE_LOCAL)
    assert isinstance(intent, ReportByDate)
    assert intent.end_date == date(2024, 1, 31)


def test_reminder_time_parsed():
    intent = parse_command("/create_reminder 3 deadline 2024-07-01 09:30", SOURCE_LOCAL)
    assert isinstance(intent, CreateReminder)
    assert intent.scheduled_time == datetime(2024, 7, 1, 9, 30)


def test_view_reminders_task_is_optional():
    assert parse_command("/view_reminders", SOURCE_LOCAL).task_id is None
    assert parse_command("/view_reminders 8", SOURCE_LOCAL).task_id == 8


def test_build_intent_names_missing_fields():
    with pytest.raises(InvalidArgument, match="percentage, task_id"):
        build_intent("update_progress", {"notes": "x"})


def test_classifier_empty_strings_count_as_missing():
    intent = from_classifier({"type": "create_task", "data": {"title": "", "assigned_to": 4}})
    assert isinstance(intent, InvalidCommand)
    assert "title" in intent.reason


def test_classifier_user_id_stringified():
    intent = from_classifier({"type": "assign_task", "data": {"title": "Audit", "assigned_to": 4}})
    assert intent.assigned_to == "4"


@pytest.mark.parametrize("payload, model", [
    ({"type": "delete_user", "data": {"user": 5}}, DeleteUser),
    ({"type": "set_role", "data": {"user": 5, "role": "Admin"}}, SetRole),
    ({"type": "update_user", "data": {"user": 5.0, "changes": {"email": "a@b.c"}}}, UpdateUser),
])
def test_classifier_numeric_user_accepted(payload, model):
    intent = from_classifier(payload)
    assert isinstance(intent, model)
    assert intent.user == "5"


def test_classifier_numeric_change_values_accepted():
    intent = from_classifier(
        {"type": "update_order", "data": {"order_id": 1, "changes": {"total_amount": 2000000, "notes": "rush"}}}
    )
    assert isinstance(intent, UpdateOrder)
    assert intent.changes == {"total_amount": "2000000", "notes": "rush"}

    intent = from_classifier({"type": "update_order_item", "data": {"item_id": 2, "changes": {"price": 12.5}}})
    assert intent.changes == {"price": "12.5"}


def test_item_commands():
    intent = parse_command("/update_item 7 quantity=3 price=4.5", SOURCE_LOCAL)
    assert isinstance(intent, UpdateOrderItem)
    assert (intent.item_id, intent.changes) == (7, {"quantity": "3", "price": "4.5"})

    intent = parse_command("/item_status 7 completed", SOURCE_LOCAL)
    assert isinstance(intent, SetItemStatus)
    assert intent.status == "completed"

    assert parse_command("/delete_item 7", SOURCE_LOCAL).item_id == 7
    assert parse_command("/delete_task 3", SOURCE_LOCAL).task_id == 3
    assert parse_command("/delete_reminder 9", SOURCE_LOCAL).reminder_id == 9
    assert parse_command("/mark_reminder_sent 9", SOURCE_LOCAL).type == "mark_reminder_sent"


def test_classifier_cannot_emit_invalid_tag():
    assert from_classifier({"type": "invalid", "data": {}}).type == "general"


def test_every_command_maps_to_a_known_intent():
    for name, command in COMMANDS.items():
        assert command.intent_type in INTENT_TYPES, name


def test_every_intent_has_a_role_rule():
    assert INTENT_TYPES - {"invalid"} <= set(INTENT_ROLES)


@pytest.mark.parametrize("intent_type, role, expected", [
    ("view_tasks", Role.USER, True),
    ("create_order", Role.USER, False),
    ("create_order", Role.ADMIN, True),
    ("add_user", Role.ADMIN, False),
    ("add_user", Role.SUPER_ADMIN, True),
    ("something_new", Role.ADMIN, False),
])
def test_role_rules(intent_type, role, expected):
    assert is_allowed(role, intent_type) is expected


def test_unlisted_intent_needs_super_admin():
    assert allowed_roles("something_new") == frozenset({Role.SUPER_ADMIN})


def test_report_formatting():
    report = ReportSummary(title="Daily Report", total_orders=2, total_amount=300, net_profit=246)
    text = format_report(report, detailed=False)
    assert text.splitlines()[0] == "📊 **Daily Report:**"
    assert "Total Amount: $300.00" in text
    assert "Total Tax" not in text

    assert format_report(ReportSummary(title="x"), empty_message="none") == "none"
    assert money(None) == "$0.00"
