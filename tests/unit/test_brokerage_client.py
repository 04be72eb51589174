"""Unit tests for BrokerageClient with the HTTP layer mocked"""
import pytest
import requests
from typing import Callable
from unittest.mock import MagicMock, patch

from client.brokerage_client import BrokerageClient
from shared.enums import OrderStatus, TaskStatus, UserRole


def json_response(payload, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status_code} error")
    return response


@pytest.fixture
def client() -> BrokerageClient:
    return BrokerageClient("http://orders.test")


@pytest.mark.unit
def test_request_transition_posts_json(client: BrokerageClient) -> None:
    with patch("client.brokerage_client.requests.post") as post:
        post.return_value = json_response({"success": True, "task_id": "t-1"})

        result = client.request_transition("T25010001", OrderStatus.REJECTED,
                                           "admin-1", UserRole.ADMIN,
                                           reason="Blurry proof")

    assert result.task_id == "t-1"
    url = post.call_args.args[0]
    body = post.call_args.kwargs["json"]
    assert url == "http://orders.test/orders/T25010001/transitions"
    assert body["new_status"] == "rejected"
    assert body["role"] == "admin"
    assert body["reason"] == "Blurry proof"
    assert body["priority"] == "normal"


@pytest.mark.unit
def test_rejected_transition_raises(client: BrokerageClient) -> None:
    with patch("client.brokerage_client.requests.post") as post:
        post.return_value = json_response({"detail": "Invalid status transition"},
                                          400)
        with pytest.raises(requests.HTTPError):
            client.request_transition("T25010001", OrderStatus.PROCESSING,
                                      "exchange-1", UserRole.EXCHANGE)


@pytest.mark.unit
def test_get_order_parses_model(client: BrokerageClient,
                                order_factory: Callable) -> None:
    order = order_factory("T25010001")
    with patch("client.brokerage_client.requests.get") as get:
        get.return_value = json_response(order.model_dump(mode="json"))
        fetched = client.get_order("T25010001")

    assert fetched == order


@pytest.mark.unit
def test_list_orders_passes_query(client: BrokerageClient,
                                  order_factory: Callable) -> None:
    page = {
        "items": [order_factory("T25010001").model_dump(mode="json")],
        "total": 1,
        "page": 1,
        "limit": 10,
        "total_pages": 1,
        "has_next": False,
        "has_previous": False,
    }
    with patch("client.brokerage_client.requests.get") as get:
        get.return_value = json_response(page)
        result = client.list_orders(status="submitted", limit=10)

    assert get.call_args.kwargs["params"] == {"status": "submitted", "limit": 10}
    assert result["items"][0].order_id == "T25010001"


@pytest.mark.unit
def test_wait_for_task_polls_until_finished(client: BrokerageClient,
                                            clock) -> None:
    base = {
        "id": "t-1",
        "order_id": "T25010001",
        "action": "process",
        "target_status": "processing",
        "performed_by": "admin-1",
        "performed_by_role": "admin",
        "scheduled_at": clock().isoformat(),
        "created_at": clock().isoformat(),
        "updated_at": clock().isoformat(),
    }
    responses = [
        json_response({**base, "status": "pending"}),
        json_response({**base, "status": "executing"}),
        json_response({**base, "status": "completed"}),
    ]
    with patch("client.brokerage_client.requests.get",
               side_effect=responses) as get, \
            patch("client.brokerage_client.time.sleep"):
        task = client.wait_for_task("t-1", timeout=5)

    assert task.status == TaskStatus.COMPLETED
    assert get.call_count == 3


@pytest.mark.unit
def test_wait_for_task_times_out(client: BrokerageClient, clock) -> None:
    pending = {
        "id": "t-1",
        "order_id": "T25010001",
        "action": "process",
        "target_status": "processing",
        "performed_by": "admin-1",
        "performed_by_role": "admin",
        "status": "pending",
        "scheduled_at": clock().isoformat(),
        "created_at": clock().isoformat(),
        "updated_at": clock().isoformat(),
    }
    with patch("client.brokerage_client.requests.get",
               return_value=json_response(pending)):
        with pytest.raises(TimeoutError, match="still pending"):
            client.wait_for_task("t-1", timeout=0, interval=0)
