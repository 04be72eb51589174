"""Commission and net amount calculation"""
import math
from typing import Optional

from shared.enums import CommissionType, OrderType
from shared.models import CommissionRate


def calculate_commission(amount: float, rate: Optional[CommissionRate]) -> float:
    """Commission for an order amount, rounded to 2 decimals.

    Invalid amounts or rates yield 0.
    """
    if rate is None or amount is None or math.isnan(amount) or amount < 0:
        return 0
    if math.isnan(rate.value) or rate.value < 0:
        return 0

    if rate.type == CommissionType.PERCENTAGE:
        return round(amount * rate.value / 100, 2)
    if rate.type == CommissionType.FIXED:
        return round(rate.value, 2)
    return 0


def calculate_net_amount(submitted_amount: float, commission: float,
                         order_type: OrderType) -> float:
    """Incoming transfers are credited net of commission; outgoing are not."""
    if order_type == OrderType.INCOMING:
        return round(submitted_amount - commission, 2)
    return submitted_amount
