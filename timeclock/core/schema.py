from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field, PlainSerializer, field_validator

EmployeeType = Literal["office", "workshop"]
ExceptionType = Literal["missing_punch", "hours_mismatch", "early_late", "overtime_threshold"]

# Stored as 2dp Decimal, written to JSON rows as numbers.
Hours = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class Employee(BaseModel):
    id: str
    name: str = ""
    department: str | None = None
    employee_type: EmployeeType | None = None
    expected_minutes: int | None = Field(default=None, ge=0)
    company_id: str | None = None
    is_active: bool = True

    @field_validator("employee_type", mode="before")
    @classmethod
    def _blank_type_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Punch(BaseModel):
    employee_id: str
    clock_in: datetime
    clock_out: datetime | None = None


class PayrollException(BaseModel):
    type: ExceptionType
    message: str
    confidence: int = Field(ge=0, le=100)


class DailySnapshot(BaseModel):
    employee_id: str
    company_id: str | None = None
    work_date: date
    employee_type: EmployeeType
    raw_clock_in: datetime | None = None
    raw_clock_out: datetime | None = None
    lunch_deducted_minutes: int = 0
    paid_break_minutes: int = 0
    expected_minutes: int
    paid_minutes: int = Field(default=0, ge=0)
    overtime_minutes: int = Field(default=0, ge=0)
    exceptions: list[PayrollException] = Field(default_factory=list)
    ai_notes: str | None = None
    status: Literal["auto", "manual"] = "auto"


class WeeklySummary(BaseModel):
    employee_id: str
    company_id: str | None = None
    week_start: date
    week_end: date
    employee_type: EmployeeType
    total_paid_hours: Hours = Decimal("0")
    regular_hours: Hours = Decimal("0")
    overtime_hours: Hours = Decimal("0")
    total_exceptions: int = 0
    status: Literal["draft", "approved", "locked"] = "draft"
    approved_by: str | None = None
    approved_at: datetime | None = None
    locked_at: datetime | None = None


class PayrollRunRequest(BaseModel):
    """Invocation payload for a single (company, week) computation."""

    company_id: str
    week_start: date
