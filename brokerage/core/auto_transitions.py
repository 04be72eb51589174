"""Auto-transition rules keyed by the status an order has just reached"""
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from shared.enums import OrderStatus, OrderType
from shared.models import Order, WorkflowCondition
from brokerage.core.conditions import ConditionEvaluator

OrderPredicate = Callable[[Order], Awaitable[bool]]


@dataclass(frozen=True)
class AutoTransitionRule:
    """Move an order to ``target_status`` when the rule matches.

    A rule matches when its predicate (if any) returns true and all of its
    conditions (if any) pass.
    """
    target_status: OrderStatus
    predicate: Optional[OrderPredicate] = None
    conditions: List[WorkflowCondition] = field(default_factory=list)
    delay_ms: int = 0
    description: str = ""

    async def matches(self, order: Order, evaluator: ConditionEvaluator) -> bool:
        if self.predicate is not None and not await self.predicate(order):
            return False
        if self.conditions:
            return evaluator.evaluate_all(order, self.conditions).passed
        return True


RuleTable = Dict[OrderStatus, List[AutoTransitionRule]]


async def _incoming_with_proof(order: Order) -> bool:
    return order.type == OrderType.INCOMING and len(order.screenshots) > 0


async def _outgoing(order: Order) -> bool:
    return order.type == OrderType.OUTGOING


DEFAULT_RULES: RuleTable = {
    OrderStatus.SUBMITTED: [
        AutoTransitionRule(
            target_status=OrderStatus.PENDING_REVIEW,
            predicate=_incoming_with_proof,
            delay_ms=1000,
            description="Incoming order with proof of payment goes to review",
        ),
    ],
    OrderStatus.APPROVED: [
        AutoTransitionRule(
            target_status=OrderStatus.PROCESSING,
            predicate=_outgoing,
            delay_ms=5000,
            description="Approved outgoing order starts processing",
        ),
    ],
}


async def first_matching_rule(rules: RuleTable, order: Order,
                              evaluator: ConditionEvaluator
                              ) -> Optional[AutoTransitionRule]:
    """The first rule for the order's current status that matches"""
    for rule in rules.get(order.status, []):
        if await rule.matches(order, evaluator):
            return rule
    return None
