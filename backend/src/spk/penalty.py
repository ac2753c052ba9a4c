"""
Late-penalty and settlement calculator.

Pure and deterministic: given a deadline, the approval timestamp and the
order value it classifies the completion and computes the payable amount.
Every started day past the deadline costs 3% of the original value.
"""
import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from .models import SettlementResult, WorkOrderStatus

# Penalty configuration
PENALTY_PERCENT_PER_DAY = 3
CENT = Decimal('0.01')

_ONE_DAY = datetime.timedelta(days=1)


def days_late(deadline: datetime.datetime, now: datetime.datetime) -> int:
    """
    Number of started days between deadline and now.

    Zero when now <= deadline (the deadline instant itself is on time),
    otherwise ceil((now - deadline) / 1 day), which is at least 1.
    """
    if now <= deadline:
        return 0
    overdue = now - deadline
    days = overdue // _ONE_DAY
    if overdue % _ONE_DAY:
        days += 1
    return max(1, days)


def calculate_settlement(
    deadline: datetime.datetime,
    now: datetime.datetime,
    value: Decimal
) -> Tuple[str, SettlementResult]:
    """
    Classify a completion and compute its settlement.

    Args:
        deadline: The order deadline
        now: Approval timestamp, treated as the completion time
        value: Original (pre-penalty) order value

    Returns:
        tuple: (terminal_state, SettlementResult)

    The penalty amount is rounded to cents and capped at the original value,
    so final_value never drops below zero. penalty_percentage is reported
    uncapped (days_late * 3).
    """
    value = Decimal(value)
    late_days = days_late(deadline, now)

    if late_days == 0:
        return WorkOrderStatus.DONE_ON_TIME, SettlementResult(
            original_value=value,
            days_late=0,
            penalty_percentage=0,
            penalty_amount=Decimal('0'),
            final_value=value,
        )

    penalty_percentage = late_days * PENALTY_PERCENT_PER_DAY
    penalty_amount = (value * penalty_percentage / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    penalty_amount = min(penalty_amount, value)

    return WorkOrderStatus.DONE_LATE, SettlementResult(
        original_value=value,
        days_late=late_days,
        penalty_percentage=penalty_percentage,
        penalty_amount=penalty_amount,
        final_value=value - penalty_amount,
    )
