from __future__ import annotations

import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from timeclock.application import PayrollService, resolve_week
from timeclock.core.policy import PayrollPolicy
from timeclock.core.validation import ValidationError, WeekLockedError
from timeclock.infrastructure import InMemoryPayrollRepository, StoreError

COMPANY = "acme"
MONDAY = date(2025, 1, 6)


class CountingRepository(InMemoryPayrollRepository):
    def __init__(self) -> None:
        super().__init__()
        self.calls: dict[str, int] = {}

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def list_active_employees(self, company_id: str) -> list[dict]:
        self._count("list_active_employees")
        return super().list_active_employees(company_id)

    def list_punches(self, employee_ids, start, end) -> list[dict]:
        self._count("list_punches")
        return super().list_punches(employee_ids, start, end)

    def upsert_daily_snapshots(self, rows: list[dict]) -> None:
        self._count("upsert_daily_snapshots")
        super().upsert_daily_snapshots(rows)

    def upsert_weekly_summaries(self, rows: list[dict]) -> None:
        self._count("upsert_weekly_summaries")
        super().upsert_weekly_summaries(rows)


@pytest.fixture()
def repository() -> CountingRepository:
    return CountingRepository()


@pytest.fixture()
def service(repository) -> PayrollService:
    return PayrollService(repository, PayrollPolicy())


def _shift(repository, employee_id: str, day: date, start: tuple[int, int], end: tuple[int, int] | None) -> None:
    clock_in = datetime(day.year, day.month, day.day, *start)
    clock_out = datetime(day.year, day.month, day.day, *end) if end else None
    repository.add_punch(COMPANY, {"employee_id": employee_id, "clock_in": clock_in, "clock_out": clock_out})


def _seed_two_employees(repository) -> None:
    repository.add_employee(COMPANY, {"id": "e-office", "name": "Olga Office", "department": "Office"})
    repository.add_employee(COMPANY, {"id": "e-shop", "name": "Sam Shop", "department": "Workshop"})
    for offset in range(5):
        day = MONDAY + timedelta(days=offset)
        _shift(repository, "e-office", day, (8, 0), (17, 0))
        if offset != 2:
            _shift(repository, "e-shop", day, (7, 0), (16, 0))


def _summary(service, employee_id: str) -> dict:
    return next(row for row in service.list_summaries(COMPANY, MONDAY) if row["employee_id"] == employee_id)


def test_end_to_end_week_for_office_and_workshop(service, repository):
    _seed_two_employees(repository)

    result = service.run_week(COMPANY, "2025-01-06")

    assert result.as_dict() == {
        "success": True,
        "employees_processed": 2,
        "snapshots_created": 10,
        "week": {"start": "2025-01-06", "end": "2025-01-12"},
    }

    office = _summary(service, "e-office")
    assert office["total_paid_hours"] == 42.5
    assert office["overtime_hours"] == 0
    assert office["total_exceptions"] == 0
    assert office["employee_type"] == "office"
    assert office["status"] == "draft"
    assert office["company_id"] == COMPANY

    shop = _summary(service, "e-shop")
    assert shop["employee_type"] == "workshop"
    assert shop["total_exceptions"] >= 1
    assert shop["total_paid_hours"] == 34.0
    assert shop["overtime_hours"] == 0

    snapshots = {(row["employee_id"], row["work_date"]): row for row in service.list_snapshots(COMPANY, MONDAY)}
    wednesday = snapshots[("e-shop", "2025-01-08")]
    assert wednesday["paid_minutes"] == 0
    assert [item["type"] for item in wednesday["exceptions"]] == ["missing_punch"]
    assert wednesday["paid_break_minutes"] == 30
    assert all(row["overtime_minutes"] == 0 for row in snapshots.values())
    assert all(row["status"] == "auto" for row in snapshots.values())
    assert all(row["ai_notes"] is None for row in snapshots.values())


def test_rerun_is_idempotent(service, repository):
    _seed_two_employees(repository)

    service.run_week(COMPANY, MONDAY)
    first_snapshots = service.list_snapshots(COMPANY, MONDAY)
    first_summaries = service.list_summaries(COMPANY, MONDAY)

    service.run_week(COMPANY, MONDAY)

    assert service.list_snapshots(COMPANY, MONDAY) == first_snapshots
    assert service.list_summaries(COMPANY, MONDAY) == first_summaries
    assert len(first_snapshots) == 10
    assert len(first_summaries) == 2


def test_reads_and_writes_are_batched(service, repository):
    _seed_two_employees(repository)
    repository.add_employee(COMPANY, {"id": "e-three", "name": "Third", "department": "Admin"})

    service.run_week(COMPANY, MONDAY)

    assert repository.calls == {
        "list_active_employees": 1,
        "list_punches": 1,
        "upsert_daily_snapshots": 1,
        "upsert_weekly_summaries": 1,
    }


def test_overtime_week_is_back_distributed(service, repository):
    repository.add_employee(COMPANY, {"id": "e-long", "name": "Lee Long", "employee_type": "workshop"})
    for offset in range(5):
        _shift(repository, "e-long", MONDAY + timedelta(days=offset), (7, 0), (17, 0))

    service.run_week(COMPANY, MONDAY)

    summary = _summary(service, "e-long")
    assert summary["total_paid_hours"] == 47.5
    assert summary["regular_hours"] == 44.0
    assert summary["overtime_hours"] == 3.5
    # five hours_mismatch flags plus one overtime flag on Friday
    assert summary["total_exceptions"] == 6

    rows = service.list_snapshots(COMPANY, MONDAY)
    assert [row["overtime_minutes"] for row in rows] == [0, 0, 0, 0, 210]
    assert [item["type"] for item in rows[-1]["exceptions"]] == ["hours_mismatch", "overtime_threshold"]


def test_punches_outside_weekdays_are_ignored(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "department": "Office"})
    _shift(repository, "e-1", MONDAY - timedelta(days=1), (8, 0), (17, 0))
    _shift(repository, "e-1", MONDAY + timedelta(days=5), (8, 0), (17, 0))
    _shift(repository, "e-1", MONDAY, (8, 0), (17, 0))

    service.run_week(COMPANY, MONDAY)

    summary = _summary(service, "e-1")
    assert summary["total_paid_hours"] == 8.5
    assert summary["total_exceptions"] == 4


def test_only_active_employees_of_the_company_are_processed(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "department": "Office"})
    repository.add_employee(COMPANY, {"id": "e-gone", "name": "Gone", "is_active": False})
    repository.add_employee("other-co", {"id": "e-other", "name": "Other"})

    result = service.run_week(COMPANY, MONDAY)

    assert result.employees_processed == 1
    assert {row["employee_id"] for row in service.list_summaries(COMPANY, MONDAY)} == {"e-1"}
    assert service.list_summaries("other-co", MONDAY) == []


def test_worker_pool_matches_sequential_run(repository):
    for index in range(6):
        employee_id = f"e-{index}"
        repository.add_employee(COMPANY, {"id": employee_id, "name": employee_id, "department": "Office" if index % 2 else "Shop"})
        for offset in range(5):
            if (index + offset) % 4 == 0:
                continue
            _shift(repository, employee_id, MONDAY + timedelta(days=offset), (6 + index % 3, 0), (16 + offset % 3, 30))

    PayrollService(repository, PayrollPolicy(), max_workers=1).run_week(COMPANY, MONDAY)
    sequential = (repository.list_daily_snapshots(COMPANY, MONDAY, MONDAY + timedelta(days=6)), repository.list_weekly_summaries(COMPANY, MONDAY))

    PayrollService(repository, PayrollPolicy(), max_workers=4).run_week(COMPANY, MONDAY)
    parallel = (repository.list_daily_snapshots(COMPANY, MONDAY, MONDAY + timedelta(days=6)), repository.list_weekly_summaries(COMPANY, MONDAY))

    assert parallel == sequential


@pytest.mark.parametrize(
    ("company_id", "week_start"),
    [
        ("", "2025-01-06"),
        (None, "2025-01-06"),
        (COMPANY, None),
        (COMPANY, "2025-01-07"),
        (COMPANY, "next monday"),
    ],
)
def test_invalid_requests_are_rejected_before_any_read(service, repository, company_id, week_start):
    with pytest.raises(ValidationError):
        service.run_week(company_id, week_start)

    assert repository.calls == {}


def test_read_failure_aborts_the_run(service, repository, monkeypatch):
    _seed_two_employees(repository)

    def broken(*args, **kwargs):
        raise StoreError("punch store unavailable")

    monkeypatch.setattr(repository, "list_punches", broken)

    with pytest.raises(StoreError, match="punch store unavailable"):
        service.run_week(COMPANY, MONDAY)

    assert "upsert_daily_snapshots" not in repository.calls
    assert service.list_snapshots(COMPANY, MONDAY) == []


def test_snapshot_write_failure_skips_summaries(service, repository, monkeypatch):
    _seed_two_employees(repository)

    def broken(rows):
        raise StoreError("snapshot upsert failed")

    monkeypatch.setattr(repository, "upsert_daily_snapshots", broken)

    with pytest.raises(StoreError):
        service.run_week(COMPANY, MONDAY)

    assert service.list_summaries(COMPANY, MONDAY) == []


def test_annotation_requests_describe_each_week(service, repository):
    _seed_two_employees(repository)

    result = service.run_week(COMPANY, MONDAY)

    requests = {item.employee_id: item for item in result.annotation_requests}
    assert requests["e-shop"].employee_name == "Sam Shop"
    assert requests["e-shop"].summary_text.splitlines() == [
        "Employee: Sam Shop (workshop)",
        "Week total: 34.0h",
        "Overtime: 0.0h",
        "Exceptions: 1",
        "2025-01-06: 8.5h",
        "2025-01-07: 8.5h",
        "2025-01-08: absent/missing",
        "2025-01-09: 8.5h",
        "2025-01-10: 8.5h",
    ]


def test_ai_notes_are_applied_to_every_weekday(service, repository):
    _seed_two_employees(repository)
    service.run_week(COMPANY, MONDAY)

    service.apply_ai_notes(COMPANY, resolve_week(MONDAY), {"e-shop": "Wednesday missing"})

    notes = {(row["employee_id"], row["ai_notes"]) for row in service.list_snapshots(COMPANY, MONDAY)}
    assert notes == {("e-shop", "Wednesday missing"), ("e-office", None)}


def test_approval_and_lock_workflow(service, repository):
    _seed_two_employees(repository)
    service.run_week(COMPANY, MONDAY)

    assert service.approve_all_clean(COMPANY, MONDAY, actor_id="boss") == 1
    assert _summary(service, "e-office")["status"] == "approved"
    assert _summary(service, "e-office")["approved_by"] == "boss"
    assert _summary(service, "e-shop")["status"] == "draft"

    row = service.approve_employee(COMPANY, MONDAY, "e-shop", actor_id="boss")
    assert row["status"] == "approved"
    assert row["approved_at"]

    assert service.lock_week(COMPANY, MONDAY, actor_id="boss") == 2
    assert {row["status"] for row in service.list_summaries(COMPANY, MONDAY)} == {"locked"}
    assert [row["employee_id"] for row in service.history(COMPANY)] == ["e-office", "e-shop"]

    actions = [entry["action"] for entry in service.list_audit_entries(COMPANY)]
    assert actions == ["approve_all_clean", "approve_employee_week", "lock_week"]

    with pytest.raises(WeekLockedError):
        service.run_week(COMPANY, MONDAY)
    with pytest.raises(WeekLockedError):
        service.approve_employee(COMPANY, MONDAY, "e-office")


def test_rerun_resets_approval_to_draft(service, repository):
    _seed_two_employees(repository)
    service.run_week(COMPANY, MONDAY)
    service.approve_employee(COMPANY, MONDAY, "e-office", actor_id="boss")

    service.run_week(COMPANY, MONDAY)

    office = _summary(service, "e-office")
    assert office["status"] == "draft"
    assert office["approved_by"] is None


def test_approving_unknown_employee_raises(service, repository):
    _seed_two_employees(repository)
    service.run_week(COMPANY, MONDAY)

    with pytest.raises(LookupError):
        service.approve_employee(COMPANY, MONDAY, "nobody")


def test_locking_an_uncomputed_week_is_rejected(service):
    with pytest.raises(ValidationError):
        service.lock_week(COMPANY, MONDAY)


def test_history_orders_newest_week_first(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "department": "Office"})
    for week in (MONDAY, MONDAY + timedelta(days=7), MONDAY + timedelta(days=14)):
        service.run_week(COMPANY, week)
        service.lock_week(COMPANY, week)

    weeks = [row["week_start"] for row in service.history(COMPANY, limit=2)]
    assert weeks == ["2025-01-20", "2025-01-13"]


def test_malformed_punch_row_is_reported_as_store_error(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "department": "Office"})
    repository.add_punch(COMPANY, {"employee_id": "e-1", "clock_in": datetime(2025, 1, 6, 8), "clock_out": "garbage"})

    with pytest.raises(StoreError, match="malformed punch row"):
        service.run_week(COMPANY, MONDAY)

    assert "upsert_daily_snapshots" not in repository.calls


def test_malformed_employee_row_is_reported_as_store_error(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "employee_type": "contractor"})

    with pytest.raises(StoreError, match="malformed employee row"):
        service.run_week(COMPANY, MONDAY)

    assert "list_punches" not in repository.calls


def test_explicit_type_wins_over_department_in_summary(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "department": "Workshop", "employee_type": "office"})
    _shift(repository, "e-1", MONDAY, (8, 0), (17, 0))

    service.run_week(COMPANY, MONDAY)

    assert _summary(service, "e-1")["employee_type"] == "office"


def test_annotation_digest_rounds_week_total_half_up(service, repository):
    repository.add_employee(COMPANY, {"id": "e-1", "name": "Una", "department": "Office"})
    for offset in range(5):
        _shift(repository, "e-1", MONDAY + timedelta(days=offset), (8, 0), (16, 57))

    result = service.run_week(COMPANY, MONDAY)

    # 5 x 507 paid minutes = 42.25h
    lines = result.annotation_requests[0].summary_text.splitlines()
    assert lines[1] == "Week total: 42.3h"
    assert _summary(service, "e-1")["total_paid_hours"] == 42.25


def test_locked_week_rejects_late_ai_notes(service, repository):
    _seed_two_employees(repository)
    service.run_week(COMPANY, MONDAY)
    service.lock_week(COMPANY, MONDAY, "boss")

    applied = service.apply_ai_notes(COMPANY, resolve_week(MONDAY), {"e-shop": "late note"})

    assert applied == 0
    assert all(row["ai_notes"] is None for row in service.list_snapshots(COMPANY, MONDAY))
