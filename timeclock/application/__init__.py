"""Application services."""

from .payroll import PayrollService, get_payroll_repository, get_payroll_service, reset_payroll_state, resolve_week

__all__ = [
    "PayrollService",
    "get_payroll_repository",
    "get_payroll_service",
    "reset_payroll_state",
    "resolve_week",
]
