"""Infrastructure layer for employee, punch and payroll persistence."""
from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Any, Iterable, Protocol

from timeclock.domain import AuditEntry, CompanyPayrollState


class StoreError(RuntimeError):
    """Raised when a bulk read or write against the backing store fails."""


class EmployeeDirectory(Protocol):
    def list_active_employees(self, company_id: str) -> list[dict]: ...


class PunchStore(Protocol):
    def list_punches(self, employee_ids: Iterable[str], start: date, end: date) -> list[dict]: ...


class PayrollStore(Protocol):
    """Snapshot and summary persistence with idempotent batch upserts."""

    def upsert_daily_snapshots(self, rows: list[dict]) -> None: ...

    def upsert_weekly_summaries(self, rows: list[dict]) -> None: ...

    def list_daily_snapshots(self, company_id: str, start: date, end: date) -> list[dict]: ...

    def list_weekly_summaries(
        self,
        company_id: str,
        week_start: date | None = None,
        *,
        status: str | None = None,
    ) -> list[dict]: ...

    def update_weekly_summary(self, company_id: str, employee_id: str, week_start: date, changes: dict) -> dict | None: ...

    def set_ai_notes(self, company_id: str, employee_id: str, work_dates: Iterable[date], note: str | None) -> None: ...

    def add_audit_entry(self, entry: AuditEntry) -> None: ...

    def list_audit_entries(self, company_id: str) -> list[dict]: ...


class PayrollRepository(EmployeeDirectory, PunchStore, PayrollStore, Protocol):
    """Every collaborator the payroll service reads from or writes to."""

    def reset(self) -> None: ...


def _key(employee_id: str, day: date | str) -> tuple[str, str]:
    return employee_id, day.isoformat() if isinstance(day, date) else str(day)


def _clock_in_date(row: dict) -> date:
    value = row["clock_in"]
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


class InMemoryPayrollRepository:
    """Simple in-memory repository for fast iteration and tests."""

    def __init__(self) -> None:
        self._companies: dict[str, CompanyPayrollState] = {}

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _ensure_company(self, company_id: str) -> CompanyPayrollState:
        state = self._companies.get(company_id)
        if state is None:
            state = CompanyPayrollState(company_id=company_id)
            self._companies[company_id] = state
        return state

    def _company_for_row(self, row: dict) -> CompanyPayrollState:
        company_id = row.get("company_id")
        if not company_id:
            raise StoreError("row is missing company_id")
        return self._ensure_company(str(company_id))

    # ------------------------------------------------------------------
    # directory and punches
    # ------------------------------------------------------------------
    def add_employee(self, company_id: str, record: dict) -> None:
        state = self._ensure_company(company_id)
        state.employees[str(record["id"])] = {"is_active": True, **record, "company_id": company_id}

    def list_active_employees(self, company_id: str) -> list[dict]:
        state = self._companies.get(company_id)
        if state is None:
            return []
        return [dict(row) for row in state.employees.values() if row.get("is_active", True)]

    def add_punch(self, company_id: str, record: dict) -> None:
        state = self._ensure_company(company_id)
        state.punches.append(dict(record))

    def list_punches(self, employee_ids: Iterable[str], start: date, end: date) -> list[dict]:
        wanted = set(employee_ids)
        rows = [
            dict(row)
            for state in self._companies.values()
            for row in state.punches
            if row.get("employee_id") in wanted and start <= _clock_in_date(row) <= end
        ]
        rows.sort(key=lambda row: str(row["clock_in"]))
        return rows

    # ------------------------------------------------------------------
    # snapshots and summaries
    # ------------------------------------------------------------------
    def upsert_daily_snapshots(self, rows: list[dict]) -> None:
        for row in rows:
            state = self._company_for_row(row)
            state.snapshots[_key(row["employee_id"], row["work_date"])] = dict(row)

    def upsert_weekly_summaries(self, rows: list[dict]) -> None:
        for row in rows:
            state = self._company_for_row(row)
            state.summaries[_key(row["employee_id"], row["week_start"])] = dict(row)

    def list_daily_snapshots(self, company_id: str, start: date, end: date) -> list[dict]:
        state = self._companies.get(company_id)
        if state is None:
            return []
        first, last = start.isoformat(), end.isoformat()
        rows = [dict(row) for (_, day), row in state.snapshots.items() if first <= day <= last]
        rows.sort(key=lambda row: (row["employee_id"], row["work_date"]))
        return rows

    def list_weekly_summaries(
        self,
        company_id: str,
        week_start: date | None = None,
        *,
        status: str | None = None,
    ) -> list[dict]:
        state = self._companies.get(company_id)
        if state is None:
            return []
        rows: list[dict] = []
        for (_, start), row in state.summaries.items():
            if week_start is not None and start != week_start.isoformat():
                continue
            if status is not None and row.get("status") != status:
                continue
            rows.append(dict(row))
        rows.sort(key=lambda row: (row["week_start"], row["employee_id"]))
        return rows

    def update_weekly_summary(self, company_id: str, employee_id: str, week_start: date, changes: dict) -> dict | None:
        state = self._companies.get(company_id)
        if state is None:
            return None
        row = state.summaries.get(_key(employee_id, week_start))
        if row is None:
            return None
        row.update(changes)
        return dict(row)

    def set_ai_notes(self, company_id: str, employee_id: str, work_dates: Iterable[date], note: str | None) -> None:
        state = self._companies.get(company_id)
        if state is None:
            return
        for day in work_dates:
            row = state.snapshots.get(_key(employee_id, day))
            if row is not None:
                row["ai_notes"] = note

    # ------------------------------------------------------------------
    # audit trail
    # ------------------------------------------------------------------
    def add_audit_entry(self, entry: AuditEntry) -> None:
        state = self._ensure_company(entry.company_id)
        state.audit_log.append(entry)

    def list_audit_entries(self, company_id: str) -> list[dict]:
        state = self._companies.get(company_id)
        return [asdict(entry) for entry in state.audit_log] if state else []

    def reset(self) -> None:
        self._companies.clear()
