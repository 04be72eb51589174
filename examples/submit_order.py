#!/usr/bin/env python3
"""Example script: submit an order and walk it through the admin workflow."""

import argparse
import sys

import requests

from client.brokerage_client import BrokerageClient
from shared.enums import CommissionType, OrderStatus, OrderType, TaskStatus, UserRole
from shared.models import CommissionRate, OrderDraft


def main():
    """Submit an order, then process and complete it as an admin."""
    parser = argparse.ArgumentParser(
        description="Submit an order and move it to completed")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--type",
                        choices=[t.value for t in OrderType],
                        default=OrderType.OUTGOING.value)
    parser.add_argument("--amount", type=float, default=1000.0)
    parser.add_argument("--exchange", default="exchange-1")
    args = parser.parse_args()

    client = BrokerageClient(base_url=args.url)

    try:
        order = client.create_order(
            OrderDraft(exchange_id=args.exchange,
                       type=args.type,
                       submitted_amount=args.amount,
                       commission_rate=CommissionRate(
                           type=CommissionType.PERCENTAGE, value=1.5)))
        print(f"\n✓ Order submitted: {order.order_id}")
        print(f"  Amount: {order.submitted_amount} JOD")
        print(f"  Commission: {order.commission} JOD")

        for status in (OrderStatus.PROCESSING, OrderStatus.COMPLETED):
            result = client.request_transition(order.order_id, status,
                                               "admin-1", UserRole.ADMIN)
            task = client.wait_for_task(result.task_id)
            if task.status != TaskStatus.COMPLETED:
                print(f"✗ Task {task.id} {task.status.value}: {task.error}")
                return 1
            print(f"  -> {status.value}")

        print("\nHistory:")
        for action in client.get_history(order.order_id):
            print(f"  - {action.action.value} by {action.performed_by}"
                  f" ({action.previous_status.value} -> {action.new_status.value})")

        print("\nNotifications:")
        for notification in client.get_notifications(args.exchange):
            print(f"  - {notification.title}")

    except requests.HTTPError as e:
        print(f"✗ Error: {e.response.text if e.response is not None else e}")
        return 1
    except TimeoutError as e:
        print(f"✗ Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
