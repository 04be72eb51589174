"""Order identifier format: T + YY + MM + 4-digit monthly sequence"""
from datetime import datetime
from typing import Tuple
from zoneinfo import ZoneInfo

# Months roll over in Jordanian local time
JORDAN_TIMEZONE = ZoneInfo("Asia/Amman")


def order_id_prefix(now: datetime) -> Tuple[str, str]:
    """Return (prefix, counter_key) for the calendar month containing ``now``.

    >>> order_id_prefix(datetime(2025, 1, 15, tzinfo=JORDAN_TIMEZONE))
    ('T2501', 'orders_2501')
    """
    local = now.astimezone(JORDAN_TIMEZONE)
    year = f"{local.year % 100:02d}"
    month = f"{local.month:02d}"
    return f"T{year}{month}", f"orders_{year}{month}"


def format_order_id(prefix: str, sequence: int) -> str:
    if sequence < 1:
        raise ValueError(f"Order sequence must be positive, got {sequence}")
    return f"{prefix}{sequence:04d}"
