"""
Reminder repository
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select

from taskbot.models.reminder import Reminder
from taskbot.repositories.base import Repository


class ReminderRepository(Repository):
    model = Reminder

    async def get_all(self) -> Sequence[Reminder]:
        return await self._all(select(Reminder).order_by(Reminder.scheduled_time))

    async def get_by_task(self, task_id: int) -> Sequence[Reminder]:
        return await self._all(
            select(Reminder).where(Reminder.task_id == task_id).order_by(Reminder.scheduled_time)
        )

    async def get_due(self, now: Optional[datetime] = None) -> Sequence[Reminder]:
        """Unsent reminders whose scheduled time has passed"""
        now = now or datetime.utcnow()
        return await self._all(
            select(Reminder)
            .where(Reminder.whatsapp_sent.is_(False), Reminder.scheduled_time <= now)
            .order_by(Reminder.scheduled_time, Reminder.id)
        )
