"""Attendance anomaly rules evaluated against a single workday."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from timeclock.core.policy import PayrollPolicy
from timeclock.core.schema import PayrollException


def format_hours(minutes: int) -> str:
    """One-decimal hours, halves rounded away from zero."""

    hours = Decimal(minutes) / Decimal(60)
    return str(hours.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def missing_day() -> PayrollException:
    return PayrollException(type="missing_punch", message="No clock entry for this workday", confidence=95)


def missing_clock_out() -> PayrollException:
    return PayrollException(type="missing_punch", message="Clocked in but no clock-out recorded", confidence=90)


def hours_mismatch(paid_minutes: int, expected_minutes: int, policy: PayrollPolicy) -> PayrollException | None:
    diff = paid_minutes - expected_minutes
    if abs(diff) <= policy.hours_mismatch_tolerance_minutes:
        return None
    sign = "+" if diff > 0 else ""
    return PayrollException(
        type="hours_mismatch",
        message=f"Paid {format_hours(paid_minutes)}h vs expected {format_hours(expected_minutes)}h ({sign}{format_hours(diff)}h)",
        confidence=85,
    )


def early_late(clock_in: datetime, policy: PayrollPolicy) -> PayrollException | None:
    if policy.early_clock_in_hour <= clock_in.hour <= policy.late_clock_in_hour:
        return None
    return PayrollException(
        type="early_late",
        message=f"Unusual clock-in time: {clock_in:%H:%M}",
        confidence=70,
    )


def overtime_threshold(overtime_minutes: int) -> PayrollException:
    return PayrollException(
        type="overtime_threshold",
        message=f"{format_hours(overtime_minutes)}h overtime on this day",
        confidence=100,
    )


def detect_closed_shift(
    paid_minutes: int,
    expected_minutes: int,
    clock_in: datetime,
    policy: PayrollPolicy,
) -> list[PayrollException]:
    """Run the rules that apply once a shift has both punches."""

    found = [hours_mismatch(paid_minutes, expected_minutes, policy), early_late(clock_in, policy)]
    return [item for item in found if item is not None]
