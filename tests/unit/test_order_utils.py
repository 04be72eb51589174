"""Unit tests for order id formatting and commission calculation"""
import math
import pytest
from datetime import datetime, UTC

from brokerage.utils.commission import calculate_commission, calculate_net_amount
from brokerage.utils.order_ids import format_order_id, order_id_prefix
from shared.enums import CommissionType, OrderType
from shared.models import CommissionRate


@pytest.mark.unit
def test_order_id_prefix_uses_amman_time() -> None:
    assert order_id_prefix(datetime(2025, 1, 15, 10, tzinfo=UTC)) == ("T2501",
                                                                      "orders_2501")
    assert order_id_prefix(datetime(2025, 12, 31, 21, 30,
                                    tzinfo=UTC)) == ("T2601", "orders_2601")


@pytest.mark.unit
def test_format_order_id() -> None:
    assert format_order_id("T2501", 1) == "T25010001"
    assert format_order_id("T2501", 9999) == "T25019999"
    with pytest.raises(ValueError):
        format_order_id("T2501", 0)


@pytest.mark.unit
@pytest.mark.parametrize("amount,rate,expected", [
    (1000, CommissionRate(type=CommissionType.PERCENTAGE, value=1.5), 15.0),
    (333, CommissionRate(type=CommissionType.PERCENTAGE, value=1), 3.33),
    (1000, CommissionRate(type=CommissionType.FIXED, value=2.5), 2.5),
    (1000, None, 0),
    (-5, CommissionRate(type=CommissionType.FIXED, value=2.5), 0),
    (math.nan, CommissionRate(type=CommissionType.FIXED, value=2.5), 0),
    (100, CommissionRate(type=CommissionType.PERCENTAGE, value=-1), 0),
])
def test_calculate_commission(amount, rate, expected) -> None:
    assert calculate_commission(amount, rate) == expected


@pytest.mark.unit
def test_net_amount_depends_on_direction() -> None:
    assert calculate_net_amount(1000, 15, OrderType.INCOMING) == 985
    assert calculate_net_amount(1000, 15, OrderType.OUTGOING) == 1000
