"""
Task operations - creation, progress tracking and recurring resets
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.errors import InvalidArgument, NotFound, PersistenceFailure
from taskbot.models.task import Task, TaskPriority, TaskProgress, TaskStatus, TaskType
from taskbot.repositories.base import unit_of_work
from taskbot.repositories.task_repository import TaskProgressRepository, TaskRepository
from taskbot.services.cache import CacheStore

logger = logging.getLogger(__name__)

PROGRESS_KEY_PREFIX = "task_progress:"


def validate_percentage(percentage: int) -> int:
    if percentage < 0 or percentage > 100:
        raise InvalidArgument("Invalid progress percentage (0-100)")
    return percentage


class TaskService:
    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[CacheStore] = None,
        progress_ttl: int = 60 * 60 * 24,
    ):
        self.db = db
        self.tasks = TaskRepository(db)
        self.progress = TaskProgressRepository(db)
        self.cache = cache
        self.progress_ttl = progress_ttl

    async def create_task(
        self,
        title: str,
        description: Optional[str],
        assigned_to: int,
        created_by: int,
        task_type: TaskType = TaskType.CUSTOM,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[datetime] = None,
    ) -> Task:
        if not title:
            raise InvalidArgument("Task title is required")
        task = Task(
            title=title,
            description=description,
            assigned_to=assigned_to,
            created_by=created_by,
            status=TaskStatus.PENDING,
            priority=priority,
            task_type=task_type,
            completion_percentage=0,
            is_implemented=False,
            due_date=due_date,
        )
        if task_type in (TaskType.DAILY, TaskType.MONTHLY):
            task.is_recurring = True
            task.recurring_pattern = task_type.value
        else:
            task.is_recurring = False

        async with unit_of_work(self.db):
            await self.tasks.add(task)
        logger.info(f"Task created: #{task.id} '{title}' ({task_type.value}) -> user {assigned_to}")
        return task

    async def create_daily_task(self, title: str, description: Optional[str], assigned_to: int, created_by: int) -> Task:
        return await self.create_task(title, description, assigned_to, created_by, task_type=TaskType.DAILY)

    async def create_monthly_task(self, title: str, description: Optional[str], assigned_to: int, created_by: int) -> Task:
        return await self.create_task(title, description, assigned_to, created_by, task_type=TaskType.MONTHLY)

    async def get_task(self, task_id: int) -> Task:
        task = await self.tasks.get(task_id)
        if not task:
            raise NotFound(f"Task not found: {task_id}")
        return task

    async def list_tasks(self) -> List[Task]:
        return list(await self.tasks.get_all())

    async def tasks_for_user(self, user_id: int) -> List[Task]:
        return list(await self.tasks.get_by_assignee(user_id))

    async def daily_tasks(self, user_id: int) -> List[Task]:
        return list(await self.tasks.get_by_type(user_id, TaskType.DAILY))

    async def monthly_tasks(self, user_id: int) -> List[Task]:
        return list(await self.tasks.get_by_type(user_id, TaskType.MONTHLY))

    async def update_progress(
        self,
        task_id: int,
        percentage: int,
        is_implemented: bool,
        notes: Optional[str],
        updated_by: Optional[int],
    ) -> Task:
        """
        Update the live progress fields and append one TaskProgress row.

        Both writes commit together. Every call appends a new audit row,
        even when the arguments repeat.
        """
        validate_percentage(percentage)
        task = await self.get_task(task_id)
        now = datetime.utcnow()

        async with unit_of_work(self.db):
            task.completion_percentage = percentage
            task.is_implemented = is_implemented
            task.implementation_notes = notes
            task.last_updated_date = now
            task.updated_at = now
            if percentage >= 100:
                task.status = TaskStatus.COMPLETED
                task.completed_at = task.completed_at or now
            elif percentage > 0:
                task.status = TaskStatus.IN_PROGRESS
                task.completed_at = None
            else:
                task.status = TaskStatus.PENDING
                task.completed_at = None
            await self.tasks.save(task)

            await self.progress.add(TaskProgress(
                task_id=task.id,
                completion_percentage=percentage,
                is_implemented=is_implemented,
                implementation_notes=notes,
                updated_by=updated_by,
                updated_at=now,
            ))

        await self._cache_progress(task.id, percentage)
        return task

    async def mark_complete(self, task_id: int, updated_by: Optional[int]) -> Task:
        return await self.update_progress(task_id, 100, True, "Task completed", updated_by)

    async def get_progress_history(self, task_id: int) -> List[TaskProgress]:
        return list(await self.progress.get_by_task(task_id))

    async def delete_task(self, task_id: int) -> None:
        task = await self.get_task(task_id)
        async with unit_of_work(self.db):
            await self.tasks.soft_delete(task)

    async def reset_daily_tasks(self) -> int:
        async with unit_of_work(self.db):
            count = await self.tasks.reset_recurring(TaskType.DAILY)
        logger.info(f"Reset {count} daily tasks")
        return count

    async def reset_monthly_tasks(self) -> int:
        async with unit_of_work(self.db):
            count = await self.tasks.reset_recurring(TaskType.MONTHLY)
        logger.info(f"Reset {count} monthly tasks")
        return count

    async def average_progress(self, user_id: int, task_type: TaskType) -> int:
        tasks = await self.tasks.get_by_type(user_id, task_type)
        if not tasks:
            return 0
        return round(sum(t.completion_percentage for t in tasks) / len(tasks))

    async def _cache_progress(self, task_id: int, percentage: int) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(f"{PROGRESS_KEY_PREFIX}{task_id}", percentage, self.progress_ttl)
        except PersistenceFailure as e:
            logger.warning(f"Could not cache progress for task {task_id}: {e}")


async def run_recurring_resets(session_factory, previous: date, today: date) -> None:
    """Daily tasks restart every new day, monthly tasks every new month"""
    async with session_factory() as db:
        service = TaskService(db)
        await service.reset_daily_tasks()
        if (previous.year, previous.month) != (today.year, today.month):
            await service.reset_monthly_tasks()
