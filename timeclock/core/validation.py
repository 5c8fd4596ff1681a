from __future__ import annotations

from datetime import date, datetime
from typing import Any

from timeclock.core.schema import PayrollRunRequest


class ValidationError(Exception):
    """Raised when a payroll request fails validation."""


class WeekLockedError(ValidationError):
    """Raised when a locked payroll week would be modified."""


def parse_week_start(value: Any) -> date:
    if isinstance(value, datetime):
        week_start = value.date()
    elif isinstance(value, date):
        week_start = value
    else:
        raw = str(value or "").strip()
        if not raw:
            raise ValidationError("week_start is required")
        try:
            week_start = date.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError(f"week_start must be an ISO date, got {raw!r}") from exc
    if week_start.weekday() != 0:
        raise ValidationError(f"week_start must be a Monday, got {week_start.isoformat()}")
    return week_start


def validate_run_request(company_id: Any, week_start: Any) -> PayrollRunRequest:
    company = str(company_id or "").strip()
    if not company:
        raise ValidationError("company_id is required")
    return PayrollRunRequest(company_id=company, week_start=parse_week_start(week_start))
