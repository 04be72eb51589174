"""Condition evaluator for workflow guards"""
import logging
from datetime import datetime, UTC
from typing import Any, Callable, Iterable, Optional

from shared.enums import ConditionOperator, UnknownFieldPolicy
from shared.models import ConditionResult, Order, WorkflowCondition

logger = logging.getLogger(__name__)

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConditionEvaluator:
    """Evaluate declarative conditions against an order.

    Supported fields are ``amount``, ``type``, ``priority``, ``exchangeId``,
    ``created_hours_ago`` and ``screenshot_count``. A condition on any other
    field is decided by ``unknown_field_policy``.

    Comparisons that do not apply to the operand types (``greater_than`` on
    a string, ``contains`` on a number) are treated as passing.
    """

    def __init__(self,
                 unknown_field_policy: UnknownFieldPolicy = UnknownFieldPolicy.PASS,
                 clock: Optional[Callable[[], datetime]] = None):
        self.unknown_field_policy = UnknownFieldPolicy(unknown_field_policy)
        self._now = clock or (lambda: datetime.now(UTC))

    def evaluate_all(self, order: Order,
                     conditions: Iterable[WorkflowCondition]) -> ConditionResult:
        """Evaluate conditions in order, stopping at the first failure."""
        for condition in conditions:
            if not self.evaluate(order, condition):
                return ConditionResult(passed=False,
                                       failed_condition=condition.description
                                       or f"{condition.field} {condition.operator.value} {condition.value}")
        return ConditionResult(passed=True)

    def evaluate(self, order: Order, condition: WorkflowCondition) -> bool:
        """Evaluate a single condition"""
        try:
            field_value = self._field_value(order, condition.field)
            if field_value is _MISSING:
                return self._unknown_field(order, condition)
            return self._compare(field_value, condition.operator,
                                 condition.value)
        except Exception as e:
            logger.warning(
                f"Condition '{condition.description}' on order {order.order_id} could not be evaluated: {e}"
            )
            return False

    def _unknown_field(self, order: Order,
                       condition: WorkflowCondition) -> bool:
        passed = self.unknown_field_policy == UnknownFieldPolicy.PASS
        logger.warning(
            f"Unknown condition field '{condition.field}' on order {order.order_id}; "
            f"treating as {'passed' if passed else 'failed'}")
        return passed

    def _field_value(self, order: Order, field: str) -> Any:
        if field == "amount":
            return order.submitted_amount
        if field == "type":
            return order.type.value
        if field == "priority":
            return order.priority.value
        if field == "exchangeId":
            return order.exchange_id
        if field == "created_hours_ago":
            created = order.timestamps["created"]
            return (self._now() - created).total_seconds() / 3600
        if field == "screenshot_count":
            return len(order.screenshots)
        return _MISSING

    def _compare(self, field_value: Any, operator: ConditionOperator,
                 compare_value: Any) -> bool:
        operator = ConditionOperator(operator)

        if operator == ConditionOperator.EQUALS:
            # bool and number never compare equal to each other
            if isinstance(field_value, bool) != isinstance(compare_value, bool):
                return False
            return field_value == compare_value

        if operator in (ConditionOperator.GREATER_THAN,
                        ConditionOperator.LESS_THAN):
            if not (_is_number(field_value) and _is_number(compare_value)):
                return True
            if operator == ConditionOperator.GREATER_THAN:
                return field_value > compare_value
            return field_value < compare_value

        if operator == ConditionOperator.CONTAINS:
            if not (isinstance(field_value, str)
                    and isinstance(compare_value, str)):
                return True
            return compare_value in field_value

        return True
