"""Application service layer for payroll week computation and review."""
from __future__ import annotations

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable

from pydantic import ValidationError as RowValidationError

from timeclock.core.daily import build_daily_snapshot, resolve_employee_type, to_utc
from timeclock.core.detector import format_hours
from timeclock.core.logging import get_logger
from timeclock.core.policy import PayrollPolicy, allocator_for, load_policy
from timeclock.core.schema import DailySnapshot, Employee, Punch, WeeklySummary
from timeclock.core.validation import ValidationError, WeekLockedError, parse_week_start, validate_run_request
from timeclock.core.weekly import aggregate_week, week_end_for, weekdays_for
from timeclock.domain import AnnotationRequest, AuditEntry, PayrollRunResult, WeekWindow
from timeclock.infrastructure import InMemoryPayrollRepository, PayrollRepository, StoreError

logger = get_logger(__name__)


@dataclass(slots=True)
class EmployeeWeek:
    employee: Employee
    snapshots: list[DailySnapshot]
    summary: WeeklySummary


def resolve_week(week_start: date) -> WeekWindow:
    return WeekWindow(start=week_start, end=week_end_for(week_start), weekdays=tuple(weekdays_for(week_start)))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _summary_text(result: EmployeeWeek) -> str:
    employee = result.employee
    summary = result.summary
    lines = [
        f"Employee: {employee.name} ({summary.employee_type})",
        f"Week total: {format_hours(sum(snapshot.paid_minutes for snapshot in result.snapshots))}h",
        f"Overtime: {format_hours(sum(snapshot.overtime_minutes for snapshot in result.snapshots))}h",
        f"Exceptions: {summary.total_exceptions}",
    ]
    for snapshot in result.snapshots:
        day = snapshot.work_date.isoformat()
        if snapshot.raw_clock_in is None:
            lines.append(f"{day}: absent/missing")
            continue
        issues = f" ({len(snapshot.exceptions)} issues)" if snapshot.exceptions else ""
        lines.append(f"{day}: {format_hours(snapshot.paid_minutes)}h{issues}")
    return "\n".join(lines)


class PayrollService:
    """Coordinates payroll computation and review use cases."""

    def __init__(
        self,
        repository: PayrollRepository,
        policy: PayrollPolicy | None = None,
        *,
        max_workers: int = 1,
    ) -> None:
        self._repository = repository
        self._policy = policy or load_policy()
        self._max_workers = max(1, max_workers)

    @property
    def policy(self) -> PayrollPolicy:
        return self._policy

    def configure(self, policy: PayrollPolicy | None = None, *, max_workers: int | None = None) -> None:
        if policy is not None:
            self._policy = policy
        if max_workers is not None:
            self._max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # computation
    # ------------------------------------------------------------------
    def compute_employee_week(self, employee: Employee, punches: Iterable[Punch], window: WeekWindow) -> EmployeeWeek:
        """Build the five daily snapshots and the weekly summary for one employee."""

        by_day: dict[date, list[Punch]] = defaultdict(list)
        for punch in punches:
            by_day[to_utc(punch.clock_in).date()].append(punch)

        snapshots = [build_daily_snapshot(employee, day, by_day.get(day, []), self._policy) for day in window.weekdays]
        summary = aggregate_week(
            employee.id,
            window.start,
            snapshots,
            self._policy,
            employee_type=resolve_employee_type(employee, self._policy),
            allocator=allocator_for(self._policy),
        )
        for snapshot in snapshots:
            snapshot.company_id = employee.company_id
        summary.company_id = employee.company_id
        return EmployeeWeek(employee=employee, snapshots=snapshots, summary=summary)

    def _compute_all(self, employees: list[Employee], punches: dict[str, list[Punch]], window: WeekWindow) -> list[EmployeeWeek]:
        def work(employee: Employee) -> EmployeeWeek:
            return self.compute_employee_week(employee, punches.get(employee.id, []), window)

        if self._max_workers == 1 or len(employees) <= 1:
            return [work(employee) for employee in employees]
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            # map() yields in submission order whatever the completion order.
            return list(pool.map(work, employees))

    def run_week(self, company_id: object, week_start: object) -> PayrollRunResult:
        """Recompute and persist every snapshot and summary for a company's week."""

        request = validate_run_request(company_id, week_start)
        window = resolve_week(request.week_start)
        self._ensure_unlocked(request.company_id, window.start)

        logger.info("payroll_run_started", company_id=request.company_id, week_start=window.start.isoformat())

        employee_rows = self._repository.list_active_employees(request.company_id)
        try:
            employees = [Employee(**{**row, "company_id": request.company_id}) for row in employee_rows]
        except RowValidationError as exc:
            raise StoreError(f"malformed employee row: {exc}") from exc
        punch_rows = self._repository.list_punches([employee.id for employee in employees], window.start, window.end)

        punches: dict[str, list[Punch]] = defaultdict(list)
        try:
            for row in punch_rows:
                punch = Punch(**row)
                punches[punch.employee_id].append(punch)
        except RowValidationError as exc:
            raise StoreError(f"malformed punch row: {exc}") from exc

        results = self._compute_all(employees, punches, window)

        snapshot_rows = [snapshot.model_dump(mode="json") for result in results for snapshot in result.snapshots]
        summary_rows = [result.summary.model_dump(mode="json") for result in results]
        self._repository.upsert_daily_snapshots(snapshot_rows)
        self._repository.upsert_weekly_summaries(summary_rows)

        logger.info(
            "payroll_run_completed",
            company_id=request.company_id,
            week_start=window.start.isoformat(),
            employees=len(employees),
            snapshots=len(snapshot_rows),
            overtime_employees=sum(1 for result in results if result.summary.overtime_hours > 0),
        )

        return PayrollRunResult(
            company_id=request.company_id,
            window=window,
            employees_processed=len(employees),
            snapshots_created=len(snapshot_rows),
            annotation_requests=[
                AnnotationRequest(
                    employee_id=result.employee.id,
                    employee_name=result.employee.name,
                    summary_text=_summary_text(result),
                )
                for result in results
            ],
        )

    # ------------------------------------------------------------------
    # annotations
    # ------------------------------------------------------------------
    def apply_ai_notes(self, company_id: str, window: WeekWindow, notes: dict[str, str]) -> int:
        """Write notes onto the week's snapshots unless the week has been locked meanwhile."""
        if self.is_locked(company_id, window.start):
            logger.warning(
                "annotation_skipped_locked_week",
                company_id=company_id,
                week_start=window.start.isoformat(),
                notes=len(notes),
            )
            return 0
        for employee_id, note in notes.items():
            self._repository.set_ai_notes(company_id, employee_id, window.weekdays, note)
        return len(notes)

    # ------------------------------------------------------------------
    # review workflow
    # ------------------------------------------------------------------
    def list_snapshots(self, company_id: str, week_start: object) -> list[dict]:
        window = resolve_week(parse_week_start(week_start))
        return self._repository.list_daily_snapshots(company_id, window.start, window.end)

    def list_summaries(self, company_id: str, week_start: object) -> list[dict]:
        return self._repository.list_weekly_summaries(company_id, parse_week_start(week_start))

    def is_locked(self, company_id: str, week_start: date) -> bool:
        return any(row.get("status") == "locked" for row in self._repository.list_weekly_summaries(company_id, week_start))

    def _ensure_unlocked(self, company_id: str, week_start: date) -> None:
        if self.is_locked(company_id, week_start):
            raise WeekLockedError(f"payroll week {week_start.isoformat()} is locked")

    def approve_employee(self, company_id: str, week_start: object, employee_id: str, actor_id: str | None = None) -> dict:
        start = parse_week_start(week_start)
        self._ensure_unlocked(company_id, start)
        row = self._repository.update_weekly_summary(
            company_id,
            employee_id,
            start,
            {"status": "approved", "approved_by": actor_id, "approved_at": _now()},
        )
        if row is None:
            raise LookupError(f"no weekly summary for employee {employee_id} in week {start.isoformat()}")
        self._audit(
            company_id,
            actor_id,
            "approve_employee_week",
            entity_id=employee_id,
            after_data={"week_start": start.isoformat(), "status": "approved"},
        )
        return row

    def approve_all_clean(self, company_id: str, week_start: object, actor_id: str | None = None) -> int:
        start = parse_week_start(week_start)
        self._ensure_unlocked(company_id, start)
        clean = [
            row
            for row in self._repository.list_weekly_summaries(company_id, start, status="draft")
            if row.get("total_exceptions") == 0
        ]
        approved_at = _now()
        for row in clean:
            self._repository.update_weekly_summary(
                company_id,
                row["employee_id"],
                start,
                {"status": "approved", "approved_by": actor_id, "approved_at": approved_at},
            )
        self._audit(
            company_id,
            actor_id,
            "approve_all_clean",
            after_data={"week_start": start.isoformat(), "count": len(clean)},
        )
        return len(clean)

    def lock_week(self, company_id: str, week_start: object, actor_id: str | None = None) -> int:
        start = parse_week_start(week_start)
        rows = self._repository.list_weekly_summaries(company_id, start)
        if not rows:
            raise ValidationError(f"no payroll computed for week {start.isoformat()}")
        locked_at = _now()
        for row in rows:
            if row.get("status") == "locked":
                continue
            self._repository.update_weekly_summary(
                company_id,
                row["employee_id"],
                start,
                {"status": "locked", "locked_at": locked_at},
            )
        self._audit(company_id, actor_id, "lock_week", after_data={"week_start": start.isoformat()})
        logger.info("payroll_week_locked", company_id=company_id, week_start=start.isoformat(), rows=len(rows))
        return len(rows)

    def history(self, company_id: str, limit: int = 20) -> list[dict]:
        rows = self._repository.list_weekly_summaries(company_id, status="locked")
        rows.sort(key=lambda row: row["week_start"], reverse=True)
        return rows[:limit]

    def employee_names(self, company_id: str) -> dict[str, str]:
        return {str(row["id"]): str(row.get("name") or "") for row in self._repository.list_active_employees(company_id)}

    def list_audit_entries(self, company_id: str) -> list[dict]:
        return self._repository.list_audit_entries(company_id)

    def _audit(
        self,
        company_id: str,
        actor_id: str | None,
        action: str,
        *,
        entity_id: str = "00000000-0000-0000-0000-000000000000",
        after_data: dict | None = None,
    ) -> None:
        self._repository.add_audit_entry(
            AuditEntry(
                actor_id=actor_id,
                action=action,
                entity_type="payroll_weekly_summary",
                entity_id=entity_id,
                company_id=company_id,
                after_data=after_data or {},
                created_at=_now(),
            )
        )

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()


_repository = InMemoryPayrollRepository()
_service = PayrollService(_repository)


def get_payroll_service() -> PayrollService:
    """Return the singleton payroll service for the process."""

    return _service


def get_payroll_repository() -> InMemoryPayrollRepository:
    """Return the process-wide store backing the singleton service."""

    return _repository


def reset_payroll_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
