"""Build one employee's paid-time snapshot for one workday."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from timeclock.core import detector
from timeclock.core.policy import PayrollPolicy
from timeclock.core.schema import DailySnapshot, Employee, EmployeeType, PayrollException, Punch


def to_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_employee_type(employee: Employee, policy: PayrollPolicy) -> EmployeeType:
    if employee.employee_type:
        return employee.employee_type
    department = (employee.department or "").lower()
    if any(keyword in department for keyword in policy.office_department_keywords):
        return "office"
    return "workshop"


def gross_minutes(clock_in: datetime, clock_out: datetime) -> int:
    seconds = Decimal(str((to_utc(clock_out) - to_utc(clock_in)).total_seconds()))
    return int((seconds / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _apply_lunch(gross: int, policy: PayrollPolicy) -> tuple[int, int]:
    """Return ``(lunch_deducted, paid_minutes)`` for a gross shift length."""

    if gross < policy.lunch_min_shift_minutes:
        return 0, max(0, gross)
    lunch = policy.lunch_deduction_minutes
    return lunch, max(0, gross - lunch)


def build_daily_snapshot(
    employee: Employee,
    work_date: date,
    punches: Iterable[Punch],
    policy: PayrollPolicy,
) -> DailySnapshot:
    """Compute paid minutes and exceptions for ``work_date``.

    ``punches`` should already be limited to the ones whose clock-in falls
    on ``work_date``. Overtime is left at zero; the weekly aggregation owns it.
    """

    employee_type = resolve_employee_type(employee, policy)
    expected = employee.expected_minutes if employee.expected_minutes is not None else policy.expected_minutes
    day_punches = sorted(punches, key=lambda punch: to_utc(punch.clock_in))

    lunch = policy.lunch_deduction_minutes
    paid_break = policy.workshop_paid_break_minutes if employee_type == "workshop" else 0
    raw_in: datetime | None = None
    raw_out: datetime | None = None
    paid = 0
    exceptions: list[PayrollException] = []

    if not day_punches:
        exceptions.append(detector.missing_day())
    elif policy.punch_mode == "first":
        primary = day_punches[0]
        raw_in, raw_out = primary.clock_in, primary.clock_out
        if primary.clock_out is None:
            exceptions.append(detector.missing_clock_out())
        else:
            lunch, paid = _apply_lunch(gross_minutes(primary.clock_in, primary.clock_out), policy)
            exceptions.extend(detector.detect_closed_shift(paid, expected, to_utc(primary.clock_in), policy))
    else:
        raw_in = day_punches[0].clock_in
        raw_out = day_punches[-1].clock_out
        closed = [punch for punch in day_punches if punch.clock_out is not None]
        total = sum(gross_minutes(punch.clock_in, punch.clock_out) for punch in closed)
        if closed:
            lunch, paid = _apply_lunch(total, policy)
        if len(closed) < len(day_punches):
            exceptions.append(detector.missing_clock_out())
        else:
            exceptions.extend(detector.detect_closed_shift(paid, expected, to_utc(raw_in), policy))

    return DailySnapshot(
        employee_id=employee.id,
        company_id=employee.company_id,
        work_date=work_date,
        employee_type=employee_type,
        raw_clock_in=raw_in,
        raw_clock_out=raw_out,
        lunch_deducted_minutes=lunch,
        paid_break_minutes=paid_break,
        expected_minutes=expected,
        paid_minutes=paid,
        exceptions=exceptions,
        status="auto",
    )
