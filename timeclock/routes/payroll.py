from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query
from fastapi.responses import FileResponse

from timeclock.application import get_payroll_service
from timeclock.core.exports import export_path
from timeclock.core.validation import ValidationError, WeekLockedError, parse_week_start
from timeclock.exporters.weekly_summary import export_weekly_csv, export_weekly_xlsx
from timeclock.workers.enrichment import EnrichmentRequest, get_enrichment_worker

router = APIRouter(prefix="/payroll", tags=["payroll"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, WeekLockedError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.post("/run")
async def run_payroll(payload: dict, background_tasks: BackgroundTasks) -> dict:
    """Recompute a company's week and queue audit-note enrichment."""
    service = get_payroll_service()
    try:
        result = service.run_week(payload.get("company_id"), payload.get("week_start"))
    except ValidationError as exc:
        raise _http_error(exc) from exc

    if result.annotation_requests:
        request = EnrichmentRequest(
            company_id=result.company_id,
            window=result.window,
            requests=result.annotation_requests,
        )
        background_tasks.add_task(get_enrichment_worker().enrich, request)
    return result.as_dict()


@router.get("/{company_id}/weeks/{week_start}/snapshots")
async def get_snapshots(company_id: str, week_start: str) -> dict:
    service = get_payroll_service()
    try:
        rows = service.list_snapshots(company_id, week_start)
    except ValidationError as exc:
        raise _http_error(exc) from exc
    return {"company_id": company_id, "week_start": week_start, "items": rows}


@router.get("/{company_id}/weeks/{week_start}/summaries")
async def get_summaries(company_id: str, week_start: str) -> dict:
    service = get_payroll_service()
    try:
        rows = service.list_summaries(company_id, week_start)
    except ValidationError as exc:
        raise _http_error(exc) from exc
    return {"company_id": company_id, "week_start": week_start, "items": rows}


@router.post("/{company_id}/weeks/{week_start}/approve")
async def approve_employee(company_id: str, week_start: str, payload: dict) -> dict:
    employee_id = payload.get("employee_id")
    if not employee_id:
        raise HTTPException(status_code=400, detail="employee_id is required")
    service = get_payroll_service()
    try:
        row = service.approve_employee(company_id, week_start, str(employee_id), payload.get("actor_id"))
    except (ValidationError, LookupError) as exc:
        raise _http_error(exc) from exc
    return {"item": row}


@router.post("/{company_id}/weeks/{week_start}/approve-clean")
async def approve_all_clean(company_id: str, week_start: str, payload: dict | None = None) -> dict:
    service = get_payroll_service()
    try:
        count = service.approve_all_clean(company_id, week_start, (payload or {}).get("actor_id"))
    except ValidationError as exc:
        raise _http_error(exc) from exc
    return {"approved": count}


@router.post("/{company_id}/weeks/{week_start}/lock")
async def lock_week(company_id: str, week_start: str, payload: dict | None = None) -> dict:
    service = get_payroll_service()
    try:
        count = service.lock_week(company_id, week_start, (payload or {}).get("actor_id"))
    except ValidationError as exc:
        raise _http_error(exc) from exc
    return {"locked": count}


@router.get("/{company_id}/history")
async def get_history(company_id: str, limit: int = Query(default=20, ge=1, le=200)) -> dict:
    service = get_payroll_service()
    return {"company_id": company_id, "items": service.history(company_id, limit)}


@router.get("/{company_id}/weeks/{week_start}/export")
async def export_week(company_id: str, week_start: str, format: str = Query(default="csv")) -> FileResponse:
    if format not in {"csv", "xlsx"}:
        raise HTTPException(status_code=400, detail="format must be csv or xlsx")
    service = get_payroll_service()
    try:
        start = parse_week_start(week_start)
    except ValidationError as exc:
        raise _http_error(exc) from exc
    rows = service.list_summaries(company_id, start)
    if not rows:
        raise HTTPException(status_code=404, detail="no payroll computed for this week")

    names = service.employee_names(company_id)
    path = export_path(company_id, start, format)
    if format == "csv":
        export_weekly_csv(path, rows, names)
        media_type = "text/csv"
    else:
        export_weekly_xlsx(path, rows, names)
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    return FileResponse(path, media_type=media_type, filename=path.name)
