"""Client for the brokerage order workflow service."""
import requests
import time
from typing import List, Dict, Any, Optional
from shared.enums import OrderStatus, TaskPriority, TaskStatus, UserRole
from shared.models import (
    Notification,
    Order,
    OrderDraft,
    OrderWorkflowAction,
    WorkflowEvent,
    WorkflowResult,
    WorkflowStatistics,
    WorkflowTask,
)


class BrokerageClient:
    """Client for interacting with the workflow service."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize the client."""
        self.base_url = base_url

    def create_order(self, draft: OrderDraft) -> Order:
        """Submit a new order.

        Args:
            draft: Order fields supplied by the exchange

        Returns:
            Order: The stored order with its generated id

        Raises:
            requests.HTTPError: If the API request fails
        """
        response = requests.post(f"{self.base_url}/orders",
                                 json=draft.model_dump(mode="json"))
        response.raise_for_status()
        return Order.model_validate(response.json())

    def get_order(self, order_id: str) -> Order:
        """Get an order by ID.

        Raises:
            requests.HTTPError: If the API request fails (e.g., 404 if not found)
        """
        response = requests.get(f"{self.base_url}/orders/{order_id}")
        response.raise_for_status()
        return Order.model_validate(response.json())

    def list_orders(self, **params: Any) -> Dict[str, Any]:
        """List orders; keyword arguments are passed as query parameters.

        Returns:
            Dict with ``items`` (list of Order) and page metadata
        """
        response = requests.get(f"{self.base_url}/orders", params=params)
        response.raise_for_status()
        page = response.json()
        page["items"] = [Order.model_validate(o) for o in page["items"]]
        return page

    def request_transition(self,
                           order_id: str,
                           new_status: OrderStatus,
                           performed_by: str,
                           role: UserRole,
                           notes: Optional[str] = None,
                           reason: Optional[str] = None,
                           priority: TaskPriority = TaskPriority.NORMAL
                           ) -> WorkflowResult:
        """Request a status change.

        Returns:
            WorkflowResult: Carries the id of the scheduled task

        Raises:
            requests.HTTPError: If the transition is rejected (400) or the
                order does not exist (404)
        """
        response = requests.post(
            f"{self.base_url}/orders/{order_id}/transitions",
            json={
                "new_status": OrderStatus(new_status).value,
                "performed_by": performed_by,
                "role": UserRole(role).value,
                "notes": notes,
                "reason": reason,
                "priority": TaskPriority(priority).value,
            })
        response.raise_for_status()
        return WorkflowResult.model_validate(response.json())

    def allowed_statuses(self, order_id: str, role: UserRole) -> List[str]:
        response = requests.get(
            f"{self.base_url}/orders/{order_id}/allowed-statuses",
            params={"role": UserRole(role).value})
        response.raise_for_status()
        return response.json()["allowed"]

    def get_history(self, order_id: str) -> List[OrderWorkflowAction]:
        response = requests.get(f"{self.base_url}/orders/{order_id}/history")
        response.raise_for_status()
        return [OrderWorkflowAction.model_validate(a) for a in response.json()]

    def get_events(self, order_id: str) -> List[WorkflowEvent]:
        response = requests.get(f"{self.base_url}/orders/{order_id}/events")
        response.raise_for_status()
        return [WorkflowEvent.model_validate(e) for e in response.json()]

    def get_task(self, task_id: str) -> WorkflowTask:
        response = requests.get(f"{self.base_url}/tasks/{task_id}")
        response.raise_for_status()
        return WorkflowTask.model_validate(response.json())

    def cancel_task(self, task_id: str) -> WorkflowResult:
        """Cancel a pending task.

        Raises:
            requests.HTTPError: 409 if the task already started
        """
        response = requests.post(f"{self.base_url}/tasks/{task_id}/cancel")
        response.raise_for_status()
        return WorkflowResult.model_validate(response.json())

    def get_statistics(self) -> WorkflowStatistics:
        response = requests.get(f"{self.base_url}/tasks/statistics")
        response.raise_for_status()
        return WorkflowStatistics.model_validate(response.json())

    def get_notifications(self,
                          user_id: str,
                          unread_only: bool = False) -> List[Notification]:
        response = requests.get(f"{self.base_url}/notifications/{user_id}",
                                params={"unread_only": unread_only})
        response.raise_for_status()
        return [Notification.model_validate(n) for n in response.json()]

    def wait_for_task(self,
                      task_id: str,
                      timeout: float = 30.0,
                      interval: float = 0.5) -> WorkflowTask:
        """Poll a task until it leaves pending/executing.

        Raises:
            TimeoutError: If the task is still active after ``timeout`` seconds
        """
        deadline = time.monotonic() + timeout
        while True:
            task = self.get_task(task_id)
            if task.status not in (TaskStatus.PENDING, TaskStatus.EXECUTING):
                return task
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Task {task_id} still {task.status.value} after {timeout}s")
            time.sleep(interval)
