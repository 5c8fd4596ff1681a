"""Weekly totals and overtime allocation."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from timeclock.core import detector
from timeclock.core.policy import OvertimeAllocator, PayrollPolicy, allocator_for
from timeclock.core.schema import DailySnapshot, EmployeeType, WeeklySummary

WORKDAYS_PER_WEEK = 5


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def minutes_to_hours(minutes: int) -> Decimal:
    return _quantize(Decimal(minutes) / Decimal(60))


def week_end_for(week_start: date) -> date:
    return week_start + timedelta(days=6)


def weekdays_for(week_start: date) -> list[date]:
    return [week_start + timedelta(days=offset) for offset in range(WORKDAYS_PER_WEEK)]


def aggregate_week(
    employee_id: str,
    week_start: date,
    snapshots: Sequence[DailySnapshot],
    policy: PayrollPolicy,
    *,
    employee_type: EmployeeType | None = None,
    allocator: OvertimeAllocator | None = None,
) -> WeeklySummary:
    """Total a week of snapshots and spread overtime across its days.

    ``snapshots`` must be in chronological order. Their ``overtime_minutes``
    are overwritten and each day that receives overtime gets an
    ``overtime_threshold`` exception appended.
    """

    allocator = allocator or allocator_for(policy)
    paid = [snapshot.paid_minutes for snapshot in snapshots]
    weekly_paid = sum(paid)
    overtime_week = max(0, weekly_paid - policy.weekly_overtime_threshold_minutes)
    regular_week = weekly_paid - overtime_week

    allocation = allocator.allocate(paid, overtime_week) if overtime_week > 0 else [0] * len(paid)
    for snapshot, ot in zip(snapshots, allocation):
        snapshot.overtime_minutes = ot
        if ot > 0:
            snapshot.exceptions.append(detector.overtime_threshold(ot))

    if employee_type is None:
        employee_type = snapshots[0].employee_type if snapshots else "workshop"

    return WeeklySummary(
        employee_id=employee_id,
        week_start=week_start,
        week_end=week_end_for(week_start),
        employee_type=employee_type,
        total_paid_hours=minutes_to_hours(weekly_paid),
        regular_hours=minutes_to_hours(regular_week),
        overtime_hours=minutes_to_hours(overtime_week),
        total_exceptions=sum(len(snapshot.exceptions) for snapshot in snapshots),
        status="draft",
    )
