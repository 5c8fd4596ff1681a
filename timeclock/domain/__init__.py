"""Domain layer definitions."""

from .payroll import AnnotationRequest, AuditEntry, CompanyPayrollState, PayrollRunResult, WeekWindow

__all__ = [
    "AnnotationRequest",
    "AuditEntry",
    "CompanyPayrollState",
    "PayrollRunResult",
    "WeekWindow",
]
