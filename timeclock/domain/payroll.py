"""Domain entities for payroll week orchestration."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(slots=True, frozen=True)
class WeekWindow:
    """Monday-to-Sunday window; only the first five days are paid workdays."""

    start: date
    end: date
    weekdays: tuple[date, ...]

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(slots=True)
class AnnotationRequest:
    """Plain-text week digest for one employee, sent for audit notes."""

    employee_id: str
    employee_name: str
    summary_text: str


@dataclass(slots=True)
class PayrollRunResult:
    company_id: str
    window: WeekWindow
    employees_processed: int
    snapshots_created: int
    annotation_requests: list[AnnotationRequest] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "employees_processed": self.employees_processed,
            "snapshots_created": self.snapshots_created,
            "week": self.window.as_dict(),
        }


@dataclass(slots=True)
class AuditEntry:
    actor_id: str | None
    action: str
    entity_type: str
    entity_id: str
    company_id: str
    after_data: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None


@dataclass(slots=True)
class CompanyPayrollState:
    """Everything the in-memory store keeps for one company."""

    company_id: str
    employees: dict[str, dict[str, Any]] = field(default_factory=dict)
    punches: list[dict[str, Any]] = field(default_factory=list)
    snapshots: dict[tuple[str, str], dict[str, Any]] = field(default_factory=dict)
    summaries: dict[tuple[str, str], dict[str, Any]] = field(default_factory=dict)
    audit_log: list[AuditEntry] = field(default_factory=list)
