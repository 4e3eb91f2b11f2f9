"""
Reminder operations and the periodic delivery sweep
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.errors import InvalidArgument, NotFound, PersistenceFailure, UpstreamUnavailable
from taskbot.models.reminder import Reminder
from taskbot.models.task import TaskType
from taskbot.repositories.base import unit_of_work
from taskbot.repositories.reminder_repository import ReminderRepository
from taskbot.repositories.task_repository import TaskRepository
from taskbot.repositories.user_repository import UserRepository
from taskbot.services.task_service import run_recurring_resets
from taskbot.services.whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)


class SweepResult(BaseModel):
    due: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def reminder_message(reminder: Reminder, task_title: str) -> str:
    when = reminder.scheduled_time.strftime("%Y-%m-%d %H:%M")
    return f"🔔 Reminder ({reminder.reminder_type}): {task_title}\nScheduled: {when}"


def progress_nudge_text(task_type: TaskType, progress: int) -> str:
    if task_type == TaskType.DAILY:
        return f"📅 Daily Progress Reminder: {progress}% completed"
    return f"📆 Monthly Progress Reminder: {progress}% completed"


class ReminderService:
    def __init__(
        self,
        db: AsyncSession,
        whatsapp: Optional[WhatsAppClient] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.reminders = ReminderRepository(db)
        self.tasks = TaskRepository(db)
        self.users = UserRepository(db)
        self.whatsapp = whatsapp
        self._clock = clock

    async def create_reminder(self, task_id: int, reminder_type: str, scheduled_time: datetime) -> Reminder:
        if not reminder_type:
            raise InvalidArgument("Reminder type is required")
        if not await self.tasks.get(task_id):
            raise NotFound(f"Task not found: {task_id}")
        reminder = Reminder(
            task_id=task_id,
            reminder_type=reminder_type,
            scheduled_time=scheduled_time,
            whatsapp_sent=False,
            created_at=self._clock(),
        )
        async with unit_of_work(self.db):
            await self.reminders.add(reminder)
        return reminder

    async def list_reminders(self) -> List[Reminder]:
        return list(await self.reminders.get_all())

    async def reminders_for_task(self, task_id: int) -> List[Reminder]:
        return list(await self.reminders.get_by_task(task_id))

    async def reminders_for_user(self, user_id: int) -> List[Reminder]:
        """Reminders on tasks assigned to the user"""
        task_ids = {task.id for task in await self.tasks.get_by_assignee(user_id)}
        return [r for r in await self.reminders.get_all() if r.task_id in task_ids]

    async def get_reminder(self, reminder_id: int) -> Reminder:
        reminder = await self.reminders.get(reminder_id)
        if not reminder:
            raise NotFound(f"Reminder not found: {reminder_id}")
        return reminder

    async def mark_sent(self, reminder_id: int) -> Reminder:
        reminder = await self.get_reminder(reminder_id)
        await self._mark_sent(reminder)
        return reminder

    async def _mark_sent(self, reminder: Reminder) -> None:
        async with unit_of_work(self.db):
            reminder.whatsapp_sent = True
            await self.reminders.save(reminder)

    async def delete_reminder(self, reminder_id: int) -> None:
        reminder = await self.get_reminder(reminder_id)
        async with unit_of_work(self.db):
            await self.reminders.remove(reminder)

    async def _recipient(self, reminder: Reminder):
        task = await self.tasks.get(reminder.task_id)
        if not task:
            return None, None
        user = await self.users.get(task.assigned_to)
        if not user:
            return task, None
        return task, (user.whatsapp_number or user.phone_number)

    async def process_due_reminders(self) -> SweepResult:
        """
        Deliver every unsent reminder whose time has passed.

        Each reminder is handled on its own: no resolvable contact -> skipped
        and left unsent, send failure -> logged and left unsent, success ->
        marked sent. Nothing here stops the sweep.
        """
        due = await self.reminders.get_due(self._clock())
        result = SweepResult(due=len(due))

        for reminder in due:
            task, phone = await self._recipient(reminder)
            if not phone or self.whatsapp is None:
                logger.debug(f"Reminder {reminder.id}: no deliverable contact, skipping")
                result.skipped += 1
                continue
            try:
                await self.whatsapp.send_text(phone, reminder_message(reminder, task.title))
            except UpstreamUnavailable as e:
                logger.warning(f"Reminder {reminder.id} delivery failed: {e}")
                result.failed += 1
                continue

            try:
                await self._mark_sent(reminder)
            except PersistenceFailure as e:
                logger.error(f"Reminder {reminder.id} sent but not marked: {e}")
                result.failed += 1
                continue
            result.sent += 1

        if result.due:
            logger.info(
                f"Reminder sweep: due={result.due} sent={result.sent} "
                f"skipped={result.skipped} failed={result.failed}"
            )
        return result


async def run_reminder_sweep(session_factory, whatsapp: WhatsAppClient) -> SweepResult:
    async with session_factory() as db:
        return await ReminderService(db, whatsapp).process_due_reminders()


async def start_reminder_scheduler(
    session_factory,
    whatsapp: WhatsAppClient,
    interval_min: int,
    clock: Callable[[], datetime] = datetime.utcnow,
):
    """
    Background loop: sweep due reminders every interval and reset recurring
    tasks when the UTC day rolls over.
    """
    interval = max(interval_min, 1) * 60
    last_day = clock().date()
    logger.info(f"Reminder scheduler started: sweeping every {interval_min} min")

    while True:
        try:
            today = clock().date()
            if today != last_day:
                await run_recurring_resets(session_factory, last_day, today)
                last_day = today
            await run_reminder_sweep(session_factory, whatsapp)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Reminder scheduler error: {e}")

        await asyncio.sleep(interval)
