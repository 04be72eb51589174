"""Integration test fixtures"""
import pytest
import time
from typing import Callable, Iterator

from fastapi.testclient import TestClient

from brokerage.config import Settings, WorkflowConfig
from brokerage.main import create_app
from shared.enums import TaskStatus


def _test_settings(run_worker: bool) -> Settings:
    return Settings(run_worker=run_worker,
                    workflow=WorkflowConfig(poll_interval_ms=20,
                                            retry_delay_ms=50))


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Client for an app with in-memory stores and a running worker"""
    with TestClient(create_app(_test_settings(run_worker=True))) as test_client:
        yield test_client


@pytest.fixture
def idle_client() -> Iterator[TestClient]:
    """Client for an app whose worker is not started, so tasks stay pending"""
    with TestClient(create_app(_test_settings(run_worker=False))) as test_client:
        yield test_client


@pytest.fixture
def order_payload() -> Callable:
    """Factory for order submission bodies"""

    def _create_payload(order_type: str = "incoming",
                        amount: float = 500.0,
                        exchange_id: str = "exchange-1",
                        **kwargs) -> dict:
        return {
            "exchange_id": exchange_id,
            "type": order_type,
            "submitted_amount": amount,
            "commission_rate": {
                "type": "percentage",
                "value": 1.5
            },
            **kwargs,
        }

    return _create_payload


@pytest.fixture
def create_order(order_payload: Callable) -> Callable:
    """Submit an order through the API and return its body"""

    def _create(client: TestClient, **kwargs) -> dict:
        response = client.post("/orders", json=order_payload(**kwargs))
        assert response.status_code == 200, response.text
        return response.json()

    return _create


def wait_for_task(client: TestClient, task_id: str, timeout: float = 5.0) -> dict:
    """Poll the task endpoint until the task leaves pending/executing"""
    deadline = time.monotonic() + timeout
    while True:
        task = client.get(f"/tasks/{task_id}").json()
        if task["status"] not in (TaskStatus.PENDING, TaskStatus.EXECUTING):
            return task
        if time.monotonic() >= deadline:
            raise AssertionError(f"Task {task_id} still {task['status']}")
        time.sleep(0.02)
