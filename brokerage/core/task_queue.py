"""Priority queue view over the persisted pending task set"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from shared.enums import TaskPriority, TaskStatus
from shared.models import WorkflowTask
from brokerage.core.task_store import TaskStore

logger = logging.getLogger(__name__)

PRIORITY_RANK = {
    TaskPriority.CRITICAL: 3,
    TaskPriority.HIGH: 2,
    TaskPriority.NORMAL: 1,
    TaskPriority.LOW: 0,
}


def queue_key(task: WorkflowTask) -> Tuple[int, datetime, datetime]:
    """Higher priority first, then earlier scheduled time, then creation"""
    return (-PRIORITY_RANK[task.priority], task.scheduled_at, task.created_at)


class TaskQueue:
    """Ordering is recomputed from the store on every read.

    After a restart the queue is whatever the store says is pending.
    """

    def __init__(self, store: TaskStore):
        self.store = store

    async def enqueue(self, task: WorkflowTask) -> WorkflowTask:
        if task.status != TaskStatus.PENDING:
            raise ValueError(f"Only pending tasks can be queued, got {task.status.value}")
        await self.store.create(task)
        logger.debug(f"Queued task {task.id} ({task.priority.value}) for {task.scheduled_at}")
        return task

    async def pending(self) -> List[WorkflowTask]:
        """All pending tasks in execution order, due or not"""
        tasks = await self.store.list_tasks(status=TaskStatus.PENDING)
        return sorted(tasks, key=queue_key)

    async def due(self, now: datetime) -> List[WorkflowTask]:
        return [t for t in await self.pending() if t.scheduled_at <= now]

    async def next_due(self, now: datetime) -> Optional[WorkflowTask]:
        due = await self.due(now)
        return due[0] if due else None

    async def next_scheduled_at(self) -> Optional[datetime]:
        """Earliest scheduled time among pending tasks"""
        tasks = await self.store.list_tasks(status=TaskStatus.PENDING)
        if not tasks:
            return None
        return min(t.scheduled_at for t in tasks)

    async def size(self) -> int:
        return len(await self.store.list_tasks(status=TaskStatus.PENDING))
