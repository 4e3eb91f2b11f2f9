"""
Task and task-progress repositories
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select, update

from taskbot.models.task import Task, TaskProgress, TaskStatus, TaskType
from taskbot.repositories.base import Repository, persistence_guard


class TaskRepository(Repository):
    model = Task

    def _active(self):
        return select(Task).where(Task.deleted_at.is_(None))

    async def get(self, task_id: int) -> Optional[Task]:
        return await self._first(self._active().where(Task.id == task_id))

    async def get_all(self) -> Sequence[Task]:
        return await self._all(self._active().order_by(Task.id))

    async def get_by_assignee(self, user_id: int) -> Sequence[Task]:
        return await self._all(
            self._active().where(Task.assigned_to == user_id).order_by(Task.id)
        )

    async def get_by_type(self, user_id: int, task_type: TaskType) -> Sequence[Task]:
        return await self._all(
            self._active()
            .where(Task.assigned_to == user_id, Task.task_type == task_type)
            .order_by(Task.id)
        )

    async def reset_recurring(self, task_type: TaskType) -> int:
        """Zero out progress on every recurring task of a type"""
        async with persistence_guard("reset recurring tasks"):
            result = await self.db.execute(
                update(Task)
                .where(
                    Task.task_type == task_type,
                    Task.is_recurring.is_(True),
                    Task.deleted_at.is_(None),
                )
                .values(
                    completion_percentage=0,
                    is_implemented=False,
                    completed_at=None,
                    status=TaskStatus.PENDING,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session="fetch")
            )
            return result.rowcount or 0

    async def soft_delete(self, task: Task) -> None:
        task.deleted_at = datetime.utcnow()
        await self.save(task)


class TaskProgressRepository(Repository):
    """Append-only: exposes add and reads, never update/delete"""
    model = TaskProgress

    async def get_by_task(self, task_id: int) -> Sequence[TaskProgress]:
        return await self._all(
            select(TaskProgress)
            .where(TaskProgress.task_id == task_id)
            .order_by(TaskProgress.id)
        )
