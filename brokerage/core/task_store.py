"""Durable storage for workflow tasks"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from shared.enums import TaskStatus
from shared.models import WorkflowTask
from brokerage.core.errors import StoreConflictError


class TaskStore(ABC):
    """Persistence boundary for workflow tasks.

    The pending set in this store is the queue; nothing else holds tasks.
    """

    @abstractmethod
    async def create(self, task: WorkflowTask) -> WorkflowTask:
        ...

    @abstractmethod
    async def update(self, task: WorkflowTask) -> WorkflowTask:
        ...

    @abstractmethod
    async def get(self, task_id: str) -> Optional[WorkflowTask]:
        ...

    @abstractmethod
    async def list_tasks(self,
                         status: Optional[TaskStatus] = None,
                         order_id: Optional[str] = None) -> List[WorkflowTask]:
        """Tasks filtered by status and/or order, oldest first"""

    @abstractmethod
    async def list_created_between(self, start: datetime,
                                   end: datetime) -> List[WorkflowTask]:
        ...

    @abstractmethod
    async def delete_completed_before(self, cutoff: datetime) -> int:
        """Remove completed tasks finished before ``cutoff``"""


class InMemoryTaskStore(TaskStore):
    """Task store backed by a dict, used by tests and database-less runs"""

    def __init__(self):
        self.tasks: Dict[str, WorkflowTask] = {}
        self._lock = asyncio.Lock()

    async def create(self, task: WorkflowTask) -> WorkflowTask:
        async with self._lock:
            if task.id in self.tasks:
                raise StoreConflictError(f"Task {task.id} already exists",
                                         details={"task_id": task.id})
            self.tasks[task.id] = task.model_copy(deep=True)
        return task

    async def update(self, task: WorkflowTask) -> WorkflowTask:
        async with self._lock:
            if task.id not in self.tasks:
                raise StoreConflictError(f"Task {task.id} does not exist",
                                         details={"task_id": task.id})
            self.tasks[task.id] = task.model_copy(deep=True)
        return task

    async def get(self, task_id: str) -> Optional[WorkflowTask]:
        task = self.tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def list_tasks(self,
                         status: Optional[TaskStatus] = None,
                         order_id: Optional[str] = None) -> List[WorkflowTask]:
        tasks = [
            t for t in self.tasks.values()
            if (status is None or t.status == status) and (
                order_id is None or t.order_id == order_id)
        ]
        tasks.sort(key=lambda t: t.created_at)
        return [t.model_copy(deep=True) for t in tasks]

    async def list_created_between(self, start: datetime,
                                   end: datetime) -> List[WorkflowTask]:
        return [
            t.model_copy(deep=True) for t in self.tasks.values()
            if start <= t.created_at <= end
        ]

    async def delete_completed_before(self, cutoff: datetime) -> int:
        async with self._lock:
            stale = [
                task_id for task_id, t in self.tasks.items()
                if t.status == TaskStatus.COMPLETED and t.completed_at
                and t.completed_at < cutoff
            ]
            for task_id in stale:
                del self.tasks[task_id]
        return len(stale)
