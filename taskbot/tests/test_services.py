"""
Tests for task, order, reminder, report and user operations
"""
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from taskbot.errors import InvalidArgument, NotFound, PersistenceFailure, UpstreamUnavailable
from taskbot.models.order import Order, OrderItem, OrderItemStatus
from taskbot.models.reminder import Reminder
from taskbot.models.task import TaskStatus, TaskType
from taskbot.models.user import Role
from taskbot.services.order_service import NewOrderItem, OrderService
from taskbot.services.reminder_service import ReminderService, run_reminder_sweep
from taskbot.services.report_service import ReportService, month_bounds
from taskbot.services.task_service import TaskService, run_recurring_resets
from taskbot.services.user_service import UserService, phone_variants


async def make_task(db_session, seed_data, task_type=TaskType.CUSTOM, assignee="worker"):
    return await TaskService(db_session).create_task(
        "Count stock", "back room", seed_data[assignee].id, seed_data["manager"].id, task_type=task_type
    )


class TestTaskService:
    @pytest.mark.asyncio
    async def test_every_progress_update_appends_a_row(self, db_session, seed_data):
        task = await make_task(db_session, seed_data)
        service = TaskService(db_session)

        for _ in range(3):
            await service.update_progress(task.id, 50, False, None, seed_data["worker"].id)

        rows = await service.get_progress_history(task.id)
        assert len(rows) == 3
        assert all(r.completion_percentage == 50 for r in rows)

    @pytest.mark.asyncio
    async def test_status_follows_percentage(self, db_session, seed_data):
        task = await make_task(db_session, seed_data)
        service = TaskService(db_session)

        task = await service.update_progress(task.id, 30, False, "started", None)
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.implementation_notes == "started"

        task = await service.update_progress(task.id, 100, False, None, None)
        assert task.status == TaskStatus.COMPLETED
        assert task.completed_at is not None
        # percentage and implemented flag are independent
        assert task.is_implemented is False

    @pytest.mark.asyncio
    async def test_mark_complete(self, db_session, seed_data):
        task = await make_task(db_session, seed_data)
        task = await TaskService(db_session).mark_complete(task.id, seed_data["worker"].id)
        assert task.completion_percentage == 100
        assert task.is_implemented is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percentage", [-1, 101, 150])
    async def test_invalid_percentage_writes_nothing(self, db_session, seed_data, percentage):
        task = await make_task(db_session, seed_data)
        service = TaskService(db_session)

        with pytest.raises(InvalidArgument):
            await service.update_progress(task.id, percentage, False, None, None)
        assert await service.get_progress_history(task.id) == []

    @pytest.mark.asyncio
    async def test_unknown_task(self, db_session, seed_data):
        with pytest.raises(NotFound):
            await TaskService(db_session).update_progress(404, 10, False, None, None)

    @pytest.mark.asyncio
    async def test_progress_cached(self, db_session, seed_data, cache):
        task = await make_task(db_session, seed_data)
        await TaskService(db_session, cache=cache).update_progress(task.id, 70, False, None, None)
        assert await cache.get(f"task_progress:{task.id}") == 70

    @pytest.mark.asyncio
    async def test_recurring_flags(self, db_session, seed_data):
        daily = await make_task(db_session, seed_data, TaskType.DAILY)
        custom = await make_task(db_session, seed_data)
        assert (daily.is_recurring, daily.recurring_pattern) == (True, "daily")
        assert custom.is_recurring is False

    @pytest.mark.asyncio
    async def test_recurring_reset_on_new_day_and_month(self, session_factory, db_session, seed_data):
        service = TaskService(db_session)
        daily = await make_task(db_session, seed_data, TaskType.DAILY)
        monthly = await make_task(db_session, seed_data, TaskType.MONTHLY)
        await service.update_progress(daily.id, 80, True, None, None)
        await service.update_progress(monthly.id, 60, False, None, None)

        await run_recurring_resets(session_factory, date(2024, 5, 30), date(2024, 5, 31))
        await db_session.refresh(daily)
        await db_session.refresh(monthly)
        assert daily.completion_percentage == 0
        assert monthly.completion_percentage == 60

        await run_recurring_resets(session_factory, date(2024, 5, 31), date(2024, 6, 1))
        await db_session.refresh(monthly)
        assert monthly.completion_percentage == 0
        assert monthly.status == TaskStatus.PENDING

    @pytest.mark.asyncio
    async def test_deleted_task_hidden(self, db_session, seed_data):
        service = TaskService(db_session)
        task = await make_task(db_session, seed_data)
        await service.delete_task(task.id)

        with pytest.raises(NotFound):
            await service.get_task(task.id)
        assert await service.tasks_for_user(seed_data["worker"].id) == []

    @pytest.mark.asyncio
    async def test_average_progress(self, db_session, seed_data):
        service = TaskService(db_session)
        first = await make_task(db_session, seed_data, TaskType.MONTHLY)
        await make_task(db_session, seed_data, TaskType.MONTHLY)
        await service.update_progress(first.id, 50, False, None, None)

        assert await service.average_progress(seed_data["worker"].id, TaskType.MONTHLY) == 25
        assert await service.average_progress(seed_data["worker"].id, TaskType.DAILY) == 0


class TestOrderService:
    @pytest.mark.asyncio
    async def test_item_on_missing_order_leaves_no_row(self, db_session, seed_data):
        with pytest.raises(NotFound):
            await OrderService(db_session).add_item(999, "Rice", 2, 10.0)
        assert await db_session.scalar(select(func.count(OrderItem.id))) == 0

    @pytest.mark.asyncio
    async def test_items_created_with_order(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order(
            "Acme", 500, seed_data["manager"].id,
            items=[NewOrderItem(item_name="Rice", quantity=2, unit_price=25.0)],
        )
        items = await service.get_items(order.id)
        assert [(i.item_name, i.total_price) for i in items] == [("Rice", 50.0)]

    @pytest.mark.asyncio
    async def test_empty_summary_is_zero(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)

        summary = await service.get_items_summary(order.id)
        assert summary.total_items == 0
        assert summary.total_value == 0
        assert summary.completion_rate == 0.0

    @pytest.mark.asyncio
    async def test_summary_counts(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        rice = await service.add_item(order.id, "Rice", 2, 10.0)
        await service.add_item(order.id, "Tea", 1, 5.0)
        await service.update_item_status(rice.id, "completed")

        summary = await service.get_items_summary(order.id)
        assert (summary.total_items, summary.total_quantity, summary.total_value) == (2, 3, 25.0)
        assert (summary.completed_items, summary.pending_items) == (1, 1)
        assert summary.completion_rate == 50.0

    @pytest.mark.asyncio
    async def test_item_total_recomputed_on_edit(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        item = await service.add_item(order.id, "Rice", 2, 10.0)

        item = await service.update_item(item.id, quantity=5)
        assert item.total_price == 50.0
        item = await service.update_item(item.id, unit_price=3.0)
        assert item.total_price == 15.0

    @pytest.mark.asyncio
    async def test_delete_item(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        item = await service.add_item(order.id, "Rice", 1, 1.0)
        await service.delete_item(item.id)
        assert await service.get_items(order.id) == []

    @pytest.mark.asyncio
    async def test_list_by_date_range(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        start = order.order_date - timedelta(minutes=1)

        assert [o.id for o in await service.list_orders_by_date_range(start, start + timedelta(hours=1))] == [order.id]
        assert await service.list_orders_by_date_range(start - timedelta(days=2), start) == []

    @pytest.mark.asyncio
    async def test_invalid_item_status(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        item = await service.add_item(order.id, "Rice", 1, 1.0)
        with pytest.raises(InvalidArgument):
            await service.update_item_status(item.id, "lost")
        assert (await service.get_item(item.id)).status == OrderItemStatus.PENDING

    @pytest.mark.asyncio
    async def test_non_positive_quantity_rejected(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        with pytest.raises(InvalidArgument):
            await service.add_item(order.id, "Rice", 0, 1.0)

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_field(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        with pytest.raises(InvalidArgument):
            await service.update_order(order.id, {"net_profit": "1"})

    @pytest.mark.asyncio
    async def test_deleted_orders_disappear(self, db_session, seed_data):
        service = OrderService(db_session)
        order = await service.create_order("Acme", 500, seed_data["manager"].id)
        await service.delete_order(order.id)

        with pytest.raises(NotFound):
            await service.get_order(order.id)
        assert await service.list_orders() == []
        assert await db_session.scalar(select(func.count(Order.id))) == 1


class TestReminderService:
    @pytest.mark.asyncio
    async def test_create_for_missing_task(self, db_session, seed_data):
        with pytest.raises(NotFound):
            await ReminderService(db_session).create_reminder(99, "deadline", datetime(2030, 1, 1))

    @pytest.mark.asyncio
    async def test_sweep_sends_due_reminders_once(self, db_session, seed_data, whatsapp):
        now = datetime(2024, 6, 1, 12, 0)
        task = await make_task(db_session, seed_data)
        service = ReminderService(db_session, whatsapp, clock=lambda: now)
        due = await service.create_reminder(task.id, "deadline", now - timedelta(minutes=5))
        later = await service.create_reminder(task.id, "follow_up", now + timedelta(hours=1))

        result = await service.process_due_reminders()

        assert (result.due, result.sent, result.skipped, result.failed) == (1, 1, 0, 0)
        phone, text = whatsapp.send_text.call_args.args
        assert phone == "628333"
        assert "Count stock" in text
        assert (await service.get_reminder(due.id)).whatsapp_sent is True
        assert (await service.get_reminder(later.id)).whatsapp_sent is False

        result = await service.process_due_reminders()
        assert result.due == 0
        assert whatsapp.send_text.await_count == 1

    @pytest.mark.asyncio
    async def test_reminder_without_contact_is_skipped(self, db_session, seed_data, whatsapp):
        now = datetime(2024, 6, 1, 12, 0)
        task = await make_task(db_session, seed_data, assignee="silent")
        service = ReminderService(db_session, whatsapp, clock=lambda: now)
        reminder = await service.create_reminder(task.id, "deadline", now)

        result = await service.process_due_reminders()

        assert (result.sent, result.skipped) == (0, 1)
        whatsapp.send_text.assert_not_called()
        assert (await service.get_reminder(reminder.id)).whatsapp_sent is False

    @pytest.mark.asyncio
    async def test_send_failure_does_not_stop_sweep(self, db_session, seed_data, whatsapp):
        now = datetime(2024, 6, 1, 12, 0)
        task = await make_task(db_session, seed_data)
        service = ReminderService(db_session, whatsapp, clock=lambda: now)
        first = await service.create_reminder(task.id, "deadline", now - timedelta(minutes=2))
        second = await service.create_reminder(task.id, "follow_up", now - timedelta(minutes=1))
        whatsapp.send_text.side_effect = [UpstreamUnavailable("gateway down"), None]

        result = await service.process_due_reminders()

        assert (result.sent, result.failed) == (1, 1)
        assert (await service.get_reminder(first.id)).whatsapp_sent is False
        assert (await service.get_reminder(second.id)).whatsapp_sent is True

    @pytest.mark.asyncio
    async def test_mark_failure_is_counted(self, db_session, seed_data, whatsapp):
        now = datetime(2024, 6, 1, 12, 0)
        task = await make_task(db_session, seed_data)
        service = ReminderService(db_session, whatsapp, clock=lambda: now)
        await service.create_reminder(task.id, "deadline", now)
        service._mark_sent = AsyncMock(side_effect=PersistenceFailure("disk full"))

        result = await service.process_due_reminders()
        assert (result.sent, result.failed) == (0, 1)

    @pytest.mark.asyncio
    async def test_sweep_with_session_factory(self, session_factory, db_session, seed_data, whatsapp):
        task = await make_task(db_session, seed_data)
        db_session.add(Reminder(task_id=task.id, reminder_type="deadline",
                                scheduled_time=datetime.utcnow() - timedelta(minutes=1), whatsapp_sent=False))
        await db_session.commit()

        result = await run_reminder_sweep(session_factory, whatsapp)
        assert result.sent == 1

    @pytest.mark.asyncio
    async def test_user_sees_reminders_for_own_tasks(self, db_session, seed_data):
        service = ReminderService(db_session)
        mine = await make_task(db_session, seed_data)
        other = await make_task(db_session, seed_data, assignee="manager")
        await service.create_reminder(mine.id, "deadline", datetime(2030, 1, 1))
        await service.create_reminder(other.id, "deadline", datetime(2030, 1, 1))

        reminders = await service.reminders_for_user(seed_data["worker"].id)
        assert [r.task_id for r in reminders] == [mine.id]

    @pytest.mark.asyncio
    async def test_mark_sent_excludes_from_sweep(self, db_session, seed_data, whatsapp):
        now = datetime(2024, 6, 1, 12, 0)
        task = await make_task(db_session, seed_data)
        service = ReminderService(db_session, whatsapp, clock=lambda: now)
        reminder = await service.create_reminder(task.id, "deadline", now)

        assert (await service.mark_sent(reminder.id)).whatsapp_sent is True
        assert (await service.process_due_reminders()).due == 0

    @pytest.mark.asyncio
    async def test_delete_reminder(self, db_session, seed_data):
        service = ReminderService(db_session)
        task = await make_task(db_session, seed_data)
        reminder = await service.create_reminder(task.id, "deadline", datetime(2030, 1, 1))
        await service.delete_reminder(reminder.id)
        assert await service.list_reminders() == []


class TestReportService:
    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self, db_session, seed_data):
        service = OrderService(db_session)
        for day, amount in [(1, 100.0), (15, 200.0), (16, 400.0)]:
            order = await service.create_order("Acme", amount, seed_data["manager"].id)
            order.order_date = datetime(2024, 3, day, 18, 30)
        await db_session.commit()

        report = await ReportService(db_session).report_by_date(date(2024, 3, 1), date(2024, 3, 15))
        assert report.total_orders == 2
        assert report.total_amount == 300.0
        assert report.net_profit == pytest.approx(300 * 0.82)

    @pytest.mark.asyncio
    async def test_personal_report_counts_own_orders(self, db_session, seed_data):
        service = OrderService(db_session)
        await service.create_order("Acme", 100, seed_data["manager"].id)
        await service.create_order("Other", 100, seed_data["boss"].id)

        report = await ReportService(db_session).personal_report(seed_data["manager"].id)
        assert report.total_orders == 1
        assert report.total_tax == pytest.approx(10)

    def test_month_bounds_cross_year(self):
        assert month_bounds(date(2024, 12, 9)) == (datetime(2024, 12, 1), datetime(2025, 1, 1))


class TestUserService:
    def test_phone_variants(self):
        assert phone_variants("628333@s.whatsapp.net") == ["628333@s.whatsapp.net", "628333", "08333"]
        assert phone_variants("+08333") == ["+08333", "08333", "628333"]

    @pytest.mark.asyncio
    async def test_lookup_by_sender_jid(self, db_session, seed_data):
        service = UserService(db_session)
        assert (await service.get_by_whatsapp_number("628333@s.whatsapp.net")).username == "worker"
        assert (await service.get_by_whatsapp_number("0822")) is None

    @pytest.mark.asyncio
    async def test_local_number_matches_phone_field(self, db_session, seed_data):
        user = await UserService(db_session).get_by_whatsapp_number("08333")
        assert user.username == "worker"

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, db_session, seed_data):
        with pytest.raises(InvalidArgument):
            await UserService(db_session).create_user("worker", "other@example.com", None)

    @pytest.mark.asyncio
    async def test_resolve_by_id_or_name(self, db_session, seed_data):
        service = UserService(db_session)
        assert (await service.resolve(str(seed_data["boss"].id))).username == "boss"
        assert (await service.resolve("manager")).id == seed_data["manager"].id
        with pytest.raises(NotFound):
            await service.resolve("nobody")

    @pytest.mark.asyncio
    async def test_update_user_fields(self, db_session, seed_data):
        service = UserService(db_session)
        user = await service.update_user(seed_data["worker"].id, {"phone": "0899", "role": "admin"})
        assert (user.phone_number, user.whatsapp_number, user.role) == ("0899", "0899", Role.ADMIN)

        with pytest.raises(InvalidArgument):
            await service.update_user(seed_data["worker"].id, {"password": "x"})

    @pytest.mark.asyncio
    async def test_deleted_user_cannot_be_found(self, db_session, seed_data):
        service = UserService(db_session)
        await service.delete_user(seed_data["worker"].id)
        assert await service.get_by_whatsapp_number("628333") is None

    @pytest.mark.asyncio
    async def test_deleted_users_name_and_email_stay_reserved(self, db_session, seed_data):
        service = UserService(db_session)
        await service.delete_user(seed_data["worker"].id)

        with pytest.raises(InvalidArgument, match="Username already exists"):
            await service.create_user("worker", "fresh@example.com", None)
        with pytest.raises(InvalidArgument, match="Email already exists"):
            await service.create_user("fresh", "worker@example.com", None)

    @pytest.mark.asyncio
    async def test_rename_to_taken_username_rejected(self, db_session, seed_data):
        service = UserService(db_session)
        with pytest.raises(InvalidArgument, match="Username already exists"):
            await service.update_user(seed_data["worker"].id, {"username": "manager"})

        user = await service.update_user(seed_data["worker"].id, {"username": "worker", "email": "w@example.com"})
        assert user.email == "w@example.com"

    @pytest.mark.asyncio
    async def test_default_admin_created_once(self, db_session):
        service = UserService(db_session)
        admin = await service.ensure_default_admin("root", "root@example.com", "62800")
        assert admin.role == Role.SUPER_ADMIN
        assert await service.ensure_default_admin("root", "root@example.com", "62800") is None
