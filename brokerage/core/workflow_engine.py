"""Workflow engine for order status transitions: scheduling, execution, retries"""
import asyncio
import contextlib
import logging
import math
import uuid
from datetime import datetime, timedelta, UTC
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from shared.enums import (
    EventSeverity,
    NotificationPriority,
    NotificationType,
    OrderStatus,
    TaskPriority,
    TaskStatus,
    UserRole,
    WorkflowEventType,
)
from shared.models import (
    Actor,
    Notification,
    Order,
    OrderDraft,
    OrderFile,
    OrderUpdate,
    Scalar,
    TaskSpec,
    WorkflowCondition,
    WorkflowEvent,
    WorkflowResult,
    WorkflowStatistics,
    WorkflowTask,
)
from brokerage.config import WorkflowConfig
from brokerage.core.auto_transitions import DEFAULT_RULES, RuleTable, first_matching_rule
from brokerage.core.conditions import ConditionEvaluator
from brokerage.core.errors import (
    ActiveTaskExistsError,
    ConditionFailedError,
    DependencyNotMetError,
    InvalidTransitionError,
    OrderLockedError,
    OrderNotFoundError,
    TaskInterruptedError,
    TaskTimeoutError,
    WorkflowError,
)
from brokerage.core.order_store import OrderStore
from brokerage.core.sinks import EventSink, NotificationSink
from brokerage.core.task_queue import TaskQueue
from brokerage.core.task_store import TaskStore
from brokerage.core.transitions import (
    SYSTEM_ACTOR,
    action_for_transition,
    is_terminal,
    is_transition_allowed,
)
from brokerage.db.redis import RedisCache

logger = logging.getLogger(__name__)

_NOTIFICATION_TYPES = {
    OrderStatus.APPROVED: NotificationType.ORDER_APPROVED,
    OrderStatus.REJECTED: NotificationType.ORDER_REJECTED,
    OrderStatus.COMPLETED: NotificationType.ORDER_COMPLETED,
    OrderStatus.CANCELLED: NotificationType.ORDER_CANCELLED,
}

_ACTIVE_STATUSES = (TaskStatus.PENDING, TaskStatus.EXECUTING)


def _status_text(status: OrderStatus) -> str:
    return status.value.replace("_", " ")


class WorkflowEngine:
    """Orchestrates order status transitions as queued, retried tasks.

    A single worker loop drains due tasks one at a time, so the event trail
    of each order is appended in execution order. Tasks are durable: the
    pending set in the task store is the queue.
    """

    def __init__(self,
                 orders: OrderStore,
                 tasks: TaskStore,
                 events: EventSink,
                 notifications: NotificationSink,
                 config: Optional[WorkflowConfig] = None,
                 rules: Optional[RuleTable] = None,
                 evaluator: Optional[ConditionEvaluator] = None,
                 redis: Optional[RedisCache] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.orders = orders
        self.tasks = tasks
        self.events = events
        self.notifications = notifications
        self.config = config or WorkflowConfig()
        self.rules = DEFAULT_RULES if rules is None else rules
        self._now = clock or (lambda: datetime.now(UTC))
        self.evaluator = evaluator or ConditionEvaluator(
            self.config.unknown_condition_fields, clock=self._now)
        self.redis = redis
        self.queue = TaskQueue(tasks)

        self._process_lock = asyncio.Lock()
        self._claim_lock = asyncio.Lock()
        self._schedule_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ========================================================================
    # Orders
    # ========================================================================

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Read an order, through the Redis snapshot cache when configured"""
        if self.redis:
            cached = await self.redis.get_cached_order(order_id)
            if cached:
                return Order(**cached)

        order = await self.orders.get_order(order_id)
        if order and self.redis:
            await self.redis.cache_order(order)
        return order

    async def submit_order(self, draft: OrderDraft) -> Order:
        """Create an order and fire any auto-transition for ``submitted``"""
        order = await self.orders.create_order(draft)
        await self.check_auto_transitions(order.order_id)
        return order

    async def edit_order(self, order_id: str, updates: OrderUpdate,
                         edited_by: str) -> Order:
        order = await self.orders.update_order(order_id, updates, edited_by)
        await self._invalidate_order(order_id)
        return order

    async def attach_file(self, order_id: str, file: OrderFile) -> Order:
        """Attach a proof file; an upload may satisfy an auto-transition rule"""
        order = await self.orders.add_order_file(order_id, file)
        await self._invalidate_order(order_id)
        await self.check_auto_transitions(order_id)
        return order

    # ========================================================================
    # Scheduling
    # ========================================================================

    async def schedule_task(self, spec: TaskSpec) -> WorkflowResult:
        """Persist a task for deferred execution.

        Scheduling never touches the order; conditions and dependencies are
        checked when the task runs.
        """
        try:
            task = await self._create_task(spec)
        except Exception as e:
            logger.exception(f"Failed to schedule task for order {spec.order_id}")
            return WorkflowResult(success=False, error=str(e))
        return WorkflowResult(success=True, task_id=task.id)

    async def execute_status_transition(
            self,
            order_id: str,
            new_status: OrderStatus,
            performed_by: str,
            role: UserRole,
            notes: Optional[str] = None,
            reason: Optional[str] = None,
            priority: TaskPriority = TaskPriority.NORMAL,
            conditions: Optional[List[WorkflowCondition]] = None,
            delay_ms: int = 0) -> WorkflowResult:
        """Validate a status change and schedule the task that performs it.

        Args:
            order_id: Order to transition
            new_status: Requested status
            performed_by: Id of the acting user
            role: Role of the acting user
            notes: Free-form notes recorded with the change
            reason: Rejection or cancellation reason
            priority: Task priority
            conditions: Guards that must hold now and again at execution
            delay_ms: Delay before the task becomes due

        Returns:
            WorkflowResult: ``task_id`` on success, ``error`` otherwise. No
            task is created when validation fails.
        """
        actor = Actor(id=performed_by, role=role)
        new_status = OrderStatus(new_status)
        try:
            order = await self.orders.get_order(order_id)
            if order is None:
                raise OrderNotFoundError(f"Order {order_id} not found")

            if not is_transition_allowed(order.status, new_status, actor):
                raise InvalidTransitionError(
                    f"Invalid status transition from {order.status.value} "
                    f"to {new_status.value} for {actor.role.value}")

            if conditions:
                result = self.evaluator.evaluate_all(order, conditions)
                if not result.passed:
                    raise ConditionFailedError(
                        f"Condition failed: {result.failed_condition}")

            metadata: Dict[str, Scalar] = {
                "previous_status": order.status.value
            }
            if notes:
                metadata["notes"] = notes
            if reason:
                metadata["reason"] = reason

            async with self._scheduling(order_id):
                active = await self._active_task(order_id)
                if active is not None:
                    raise ActiveTaskExistsError(
                        f"Order {order_id} already has {active.status.value} task {active.id}"
                    )
                task = await self._create_task(
                    TaskSpec(order_id=order_id,
                             action=action_for_transition(order.status, new_status),
                             target_status=new_status,
                             performed_by=actor.id,
                             performed_by_role=actor.role,
                             priority=priority,
                             scheduled_at=self._now() +
                             timedelta(milliseconds=delay_ms),
                             metadata=metadata,
                             conditions=conditions or []))
        except WorkflowError as e:
            logger.warning(
                f"Transition of order {order_id} to {new_status.value} by {performed_by} rejected: {e.message}"
            )
            return WorkflowResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"Failed to request transition for order {order_id}")
            return WorkflowResult(success=False, error=str(e))

        return WorkflowResult(success=True, task_id=task.id)

    async def cancel_task(self, task_id: str) -> WorkflowResult:
        """Cancel a task that has not started executing"""
        async with self._claim_lock:
            task = await self.tasks.get(task_id)
            if task is None:
                return WorkflowResult(success=False,
                                      error=f"Task {task_id} not found")
            if task.status != TaskStatus.PENDING:
                return WorkflowResult(
                    success=False,
                    error=f"Task {task_id} is {task.status.value} and cannot be cancelled",
                    task_id=task_id)
            task.status = TaskStatus.CANCELLED
            task.updated_at = self._now()
            await self.tasks.update(task)

        logger.info(f"Cancelled task {task_id} for order {task.order_id}")
        await self._emit(task.order_id, WorkflowEventType.TASK_CANCELLED,
                         task.id, {"action": task.action.value})
        return WorkflowResult(success=True, task_id=task_id)

    async def check_auto_transitions(self,
                                     order_id: str) -> Optional[WorkflowResult]:
        """Schedule the first auto-transition rule matching the order's status"""
        if not self.config.enable_auto_transitions:
            return None
        try:
            order = await self.orders.get_order(order_id)
            if order is None:
                return None
            rule = await first_matching_rule(self.rules, order, self.evaluator)
        except Exception:
            logger.exception(f"Auto-transition check failed for order {order_id}")
            return None
        if rule is None:
            return None

        result = await self.execute_status_transition(
            order_id,
            rule.target_status,
            SYSTEM_ACTOR.id,
            SYSTEM_ACTOR.role,
            notes=rule.description or None,
            delay_ms=rule.delay_ms)
        if result.success:
            logger.info(
                f"Auto-transition of order {order_id} to {rule.target_status.value} "
                f"scheduled in {rule.delay_ms} ms")
        return result

    async def _create_task(self, spec: TaskSpec) -> WorkflowTask:
        now = self._now()
        task = WorkflowTask(
            id=str(uuid.uuid4()),
            order_id=spec.order_id,
            action=spec.action,
            target_status=spec.target_status,
            performed_by=spec.performed_by,
            performed_by_role=spec.performed_by_role,
            priority=spec.priority,
            scheduled_at=spec.scheduled_at or now,
            max_retries=self.config.max_retries
            if spec.max_retries is None else spec.max_retries,
            metadata=dict(spec.metadata),
            dependencies=list(spec.dependencies),
            conditions=list(spec.conditions),
            created_at=now,
            updated_at=now,
        )
        await self.queue.enqueue(task)
        logger.info(
            f"Scheduled task {task.id}: order {task.order_id} -> {task.target_status.value}"
        )
        await self._emit(
            task.order_id, WorkflowEventType.TASK_SCHEDULED, task.id, {
                "action": task.action.value,
                "target_status": task.target_status.value,
                "priority": task.priority.value,
                "scheduled_at": task.scheduled_at.isoformat(),
            })
        self._wakeup.set()
        return task

    @contextlib.asynccontextmanager
    async def _scheduling(self, order_id: str) -> AsyncIterator[None]:
        """Make the active-task check and task creation one step per order.

        The in-process lock covers this engine; the Redis lock, when
        configured, covers other engine instances sharing the stores.
        """
        async with self._schedule_lock:
            if not self.redis:
                yield
                return
            lock_key = f"schedule:{order_id}"
            token = str(uuid.uuid4())
            if not await self.redis.acquire_lock(lock_key, token, ttl=10):
                raise OrderLockedError(
                    f"Order {order_id} is being scheduled by another engine")
            try:
                yield
            finally:
                await self.redis.release_lock(lock_key, token)

    async def _active_task(self, order_id: str) -> Optional[WorkflowTask]:
        for task in await self.tasks.list_tasks(order_id=order_id):
            if task.status in _ACTIVE_STATUSES:
                return task
        return None

    # ========================================================================
    # Worker loop
    # ========================================================================

    async def start(self) -> None:
        """Recover interrupted work and start the worker loop"""
        if self._running:
            return
        await self.recover()
        self._running = True
        self._worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the worker loop; a task already executing runs to completion"""
        if not self._running:
            return
        self._running = False
        self._wakeup.set()
        if self._worker:
            await self._worker
            self._worker = None

    async def _run(self) -> None:
        logger.info("Workflow worker started")
        while self._running:
            self._wakeup.clear()
            try:
                await self.process_pending()
                timeout = await self._idle_timeout()
            except Exception:
                logger.exception("Workflow worker iteration failed")
                timeout = self.config.poll_interval_ms / 1000
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        logger.info("Workflow worker stopped")

    async def _idle_timeout(self) -> float:
        """Sleep until the next task is due, bounded by the poll interval"""
        timeout = self.config.poll_interval_ms / 1000
        next_at = await self.queue.next_scheduled_at()
        if next_at is not None:
            timeout = min(timeout, (next_at - self._now()).total_seconds())
        return max(timeout, 0.01)

    async def process_pending(self) -> int:
        """Execute every due task in queue order.

        Returns:
            int: Number of tasks executed
        """
        processed = 0
        async with self._process_lock:
            while True:
                task = await self.queue.next_due(self._now())
                if task is None:
                    break
                claimed = await self._claim(task)
                if claimed is None:
                    continue
                await self._run_task(claimed)
                processed += 1
        return processed

    async def recover(self) -> int:
        """Route tasks left executing by a previous process through failure handling"""
        interrupted = await self.tasks.list_tasks(status=TaskStatus.EXECUTING)
        for task in interrupted:
            logger.warning(f"Recovering interrupted task {task.id} for order {task.order_id}")
            await self._handle_task_failure(
                task, TaskInterruptedError("Interrupted by engine restart"))
        pending = await self.queue.size()
        logger.info(
            f"Recovered {len(interrupted)} interrupted tasks, {pending} pending")
        return len(interrupted)

    async def _claim(self, task: WorkflowTask) -> Optional[WorkflowTask]:
        """Mark a pending task executing unless it was cancelled meanwhile"""
        async with self._claim_lock:
            current = await self.tasks.get(task.id)
            if current is None or current.status != TaskStatus.PENDING:
                return None
            now = self._now()
            current.status = TaskStatus.EXECUTING
            current.executed_at = now
            current.updated_at = now
            await self.tasks.update(current)
        return current

    # ========================================================================
    # Task execution
    # ========================================================================

    async def _run_task(self, task: WorkflowTask) -> None:
        logger.info(
            f"Executing task {task.id} (attempt {task.retry_count + 1}): "
            f"order {task.order_id} -> {task.target_status.value}")
        await self._emit(task.order_id, WorkflowEventType.TASK_STARTED, task.id,
                         {"retry_count": task.retry_count})
        try:
            previous, order = await self._execute_task(task)
        except WorkflowError as e:
            await self._handle_task_failure(task, e)
        except Exception as e:
            logger.exception(f"Unexpected error executing task {task.id}")
            await self._handle_task_failure(task, e)
        else:
            await self._complete_task(task, previous, order)

    async def _execute_task(self,
                            task: WorkflowTask) -> Tuple[OrderStatus, Order]:
        """Run the task under the order lock and the execution deadline.

        The deadline ends when the store write returns: once the status
        change is committed the task is completed, however long the
        follow-up work takes.
        """
        lock_key = f"order:{task.order_id}"
        if self.redis:
            ttl = math.ceil(self.config.timeout_ms / 1000)
            if not await self.redis.acquire_lock(lock_key, task.id, ttl=ttl):
                raise OrderLockedError(
                    f"Order {task.order_id} is locked by another engine")
        try:
            return await asyncio.wait_for(
                self._apply_transition(task),
                timeout=self.config.timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise TaskTimeoutError(
                f"Task timed out after {self.config.timeout_ms} ms") from None
        finally:
            if self.redis:
                await self.redis.release_lock(lock_key, task.id)

    async def _apply_transition(
            self, task: WorkflowTask) -> Tuple[OrderStatus, Order]:
        await self._check_dependencies(task)

        order = await self.orders.get_order(task.order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {task.order_id} not found")

        if task.conditions:
            result = self.evaluator.evaluate_all(order, task.conditions)
            if not result.passed:
                raise ConditionFailedError(
                    f"Condition failed: {result.failed_condition}")

        updated = await self.orders.update_order_status(
            task.order_id,
            task.target_status,
            task.actor,
            notes=task.metadata.get("notes"),
            reason=task.metadata.get("reason"))
        return order.status, updated

    async def _check_dependencies(self, task: WorkflowTask) -> None:
        for dependency_id in task.dependencies:
            if not await self._dependency_completed(dependency_id):
                raise DependencyNotMetError(
                    f"Dependency {dependency_id} not completed",
                    details={"dependency_id": dependency_id})

    async def _dependency_completed(self, task_id: str) -> bool:
        """A dependency is met when any attempt of its retry chain completed"""
        dependency = await self.tasks.get(task_id)
        if dependency is None:
            return False
        if dependency.status == TaskStatus.COMPLETED:
            return True
        root_id = dependency.root_task_id or dependency.id
        return any(t.status == TaskStatus.COMPLETED and (
            t.root_task_id or t.id) == root_id
                   for t in await self.tasks.list_tasks(
                       order_id=dependency.order_id))

    async def _complete_task(self, task: WorkflowTask, previous: OrderStatus,
                             order: Order) -> None:
        now = self._now()
        await self._invalidate_order(order.order_id)
        await self._emit(
            order.order_id, WorkflowEventType.STATUS_CHANGED, task.id, {
                "from": previous.value,
                "to": order.status.value,
                "performed_by": task.performed_by,
            })
        await self._notify_status_change(task, order)

        task.status = TaskStatus.COMPLETED
        task.completed_at = now
        task.updated_at = now
        try:
            await self.tasks.update(task)
        except Exception:
            logger.exception(f"Failed to mark task {task.id} completed")

        execution_ms = (now - task.executed_at).total_seconds() * 1000 \
            if task.executed_at else 0.0
        await self._emit(order.order_id, WorkflowEventType.TASK_COMPLETED,
                         task.id, {
                             "target_status": order.status.value,
                             "execution_time_ms": round(execution_ms, 2),
                         })
        await self._incr_metric("tasks_completed")
        logger.info(f"Task {task.id} completed: order {order.order_id} is {order.status.value}")

        if is_terminal(order.status):
            await self._emit(order.order_id,
                             WorkflowEventType.WORKFLOW_COMPLETED, task.id,
                             {"final_status": order.status.value})

        await self.check_auto_transitions(order.order_id)

    # ========================================================================
    # Failure handling
    # ========================================================================

    async def _handle_task_failure(self, task: WorkflowTask,
                                   error: Exception) -> None:
        """Retry a failed attempt as a new task or fail it permanently"""
        if isinstance(error, WorkflowError):
            message, retryable = error.message, error.retryable
        else:
            message, retryable = str(error) or type(error).__name__, True

        now = self._now()
        task.status = TaskStatus.FAILED
        task.error = message
        task.failed_at = now
        task.updated_at = now
        try:
            await self.tasks.update(task)
        except Exception:
            logger.exception(f"Failed to record failure of task {task.id}")

        if retryable and task.retry_count < task.max_retries:
            if await self._retry_task(task, message):
                return
            message = f"{message} (retry could not be scheduled)"

        logger.error(
            f"Task {task.id} for order {task.order_id} failed after "
            f"{task.retry_count} retries: {message}")
        await self._emit(task.order_id,
                         WorkflowEventType.TASK_FAILED,
                         task.id, {
                             "error": message,
                             "retry_count": task.retry_count,
                             "action": task.action.value,
                             "target_status": task.target_status.value,
                         },
                         severity=EventSeverity.ERROR)
        await self._incr_metric("tasks_failed")
        await self._notify(
            Notification(
                id=str(uuid.uuid4()),
                user_id=self.config.admin_channel,
                type=NotificationType.SYSTEM_ALERT,
                title="Workflow Task Failed",
                message=f"Task {task.action.value} for order {task.order_id} failed "
                f"after {task.retry_count} retries: {message}",
                order_id=task.order_id,
                priority=NotificationPriority.HIGH,
                metadata={"task_id": task.id},
                created_at=now,
            ), task)

    async def _retry_task(self, task: WorkflowTask, message: str) -> bool:
        now = self._now()
        retry = task.model_copy(
            update={
                "id": str(uuid.uuid4()),
                "status": TaskStatus.PENDING,
                "retry_count": task.retry_count + 1,
                "scheduled_at": now +
                timedelta(milliseconds=self.config.retry_delay_ms),
                "executed_at": None,
                "completed_at": None,
                "failed_at": None,
                "error": None,
                "retry_of": task.id,
                "root_task_id": task.root_task_id or task.id,
                "created_at": now,
                "updated_at": now,
            },
            deep=True)
        try:
            await self.queue.enqueue(retry)
        except Exception:
            logger.exception(f"Failed to schedule retry of task {task.id}")
            return False

        logger.warning(
            f"Task {task.id} failed ({message}); retry {retry.retry_count}/{retry.max_retries} "
            f"scheduled as {retry.id}")
        await self._emit(task.order_id,
                         WorkflowEventType.TASK_RETRIED,
                         task.id, {
                             "error": message,
                             "retry_task_id": retry.id,
                             "retry_count": retry.retry_count,
                             "scheduled_at": retry.scheduled_at.isoformat(),
                         },
                         severity=EventSeverity.WARNING)
        await self._incr_metric("tasks_retried")
        self._wakeup.set()
        return True

    # ========================================================================
    # Events and notifications
    # ========================================================================

    async def _emit(self,
                    order_id: str,
                    event_type: WorkflowEventType,
                    task_id: Optional[str] = None,
                    details: Optional[Dict[str, Scalar]] = None,
                    severity: EventSeverity = EventSeverity.INFO) -> None:
        event = WorkflowEvent(id=str(uuid.uuid4()),
                              order_id=order_id,
                              task_id=task_id,
                              type=event_type,
                              timestamp=self._now(),
                              details=details or {},
                              severity=severity)
        try:
            await self.events.append(event)
        except Exception:
            logger.exception(
                f"Failed to record {event_type.value} event for order {order_id}")

    async def _notify_status_change(self, task: WorkflowTask,
                                    order: Order) -> None:
        status_text = _status_text(order.status)
        amount = order.final_amount if order.final_amount is not None \
            else order.submitted_amount
        await self._notify(
            Notification(
                id=str(uuid.uuid4()),
                user_id=order.exchange_id,
                type=_NOTIFICATION_TYPES.get(
                    order.status, NotificationType.ORDER_STATUS_CHANGED),
                title=f"Order {order.order_id} {status_text}",
                message=f"Your {order.type.value} transfer of {amount} JOD has been {status_text}.",
                order_id=order.order_id,
                priority=NotificationPriority.NORMAL,
                action_url=f"/orders/{order.order_id}",
                action_text="View order",
                metadata={
                    "status": order.status.value,
                    "channels": ",".join(c.value for c in self.config.notifications.channels),
                },
                created_at=self._now(),
            ), task)

    async def _notify(self, notification: Notification,
                      task: WorkflowTask) -> None:
        if not self.config.notifications.enabled:
            return
        try:
            await self.notifications.add(notification)
        except Exception:
            logger.exception(
                f"Failed to send notification to {notification.user_id} for task {task.id}")
            return
        await self._emit(task.order_id, WorkflowEventType.NOTIFICATION_SENT,
                         task.id, {
                             "notification_id": notification.id,
                             "user_id": notification.user_id,
                             "type": notification.type.value,
                         })

    async def _invalidate_order(self, order_id: str) -> None:
        if not self.redis:
            return
        try:
            await self.redis.invalidate_order(order_id)
        except Exception:
            logger.exception(f"Failed to invalidate cached order {order_id}")

    async def _incr_metric(self, metric: str) -> None:
        if not self.redis:
            return
        try:
            await self.redis.increment_metric(metric)
        except Exception:
            logger.exception(f"Failed to increment metric {metric}")

    # ========================================================================
    # Statistics and housekeeping
    # ========================================================================

    async def get_workflow_statistics(
            self,
            start: Optional[datetime] = None,
            end: Optional[datetime] = None) -> WorkflowStatistics:
        """Task counts and rates for tasks created within [start, end]"""
        end = end or self._now()
        start = start or datetime.min.replace(tzinfo=UTC)
        tasks = await self.tasks.list_created_between(start, end)

        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        failed = [t for t in tasks if t.status == TaskStatus.FAILED]
        retried = [t for t in tasks if t.retry_count > 0]
        durations = [(t.completed_at - t.executed_at).total_seconds() * 1000
                     for t in completed if t.completed_at and t.executed_at]
        total = len(tasks)

        return WorkflowStatistics(
            total_tasks=total,
            completed_tasks=len(completed),
            failed_tasks=len(failed),
            avg_execution_time_ms=sum(durations) /
            len(durations) if durations else 0.0,
            retry_rate=len(retried) / total * 100 if total else 0.0,
            error_rate=len(failed) / total * 100 if total else 0.0,
        )

    async def cleanup_old_tasks(self, days_old: int = 30) -> int:
        """Delete completed tasks older than ``days_old`` days"""
        cutoff = self._now() - timedelta(days=days_old)
        removed = await self.tasks.delete_completed_before(cutoff)
        logger.info(f"Cleaned up {removed} completed tasks older than {days_old} days")
        return removed
