from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from timeclock.application import PayrollService, get_payroll_service
from timeclock.core.logging import get_logger
from timeclock.domain import AnnotationRequest, WeekWindow
from timeclock.infrastructure import AnnotationClient, build_prompt, get_annotation_client, parse_annotation_lines

logger = get_logger(__name__)


@dataclass
class EnrichmentRequest:
    company_id: str
    window: WeekWindow
    requests: list[AnnotationRequest] = field(default_factory=list)


@dataclass
class EnrichmentOutcome:
    status: str
    notes_applied: int = 0
    error: str | None = None


class EnrichmentWorker:
    """Fills ``ai_notes`` on already-persisted snapshots, best effort."""

    def __init__(
        self,
        service: PayrollService | None = None,
        client: AnnotationClient | None = None,
        *,
        timeout: float = 20.0,
    ) -> None:
        self._service = service
        self._client = client
        self._timeout = timeout
        self._lock = asyncio.Lock()

    def configure(self, *, timeout: float | None = None) -> None:
        if timeout is not None:
            self._timeout = timeout

    async def enrich(self, payload: EnrichmentRequest) -> EnrichmentOutcome:
        if not payload.requests:
            return EnrichmentOutcome(status="skipped")

        service = self._service or get_payroll_service()
        client = self._client or get_annotation_client()
        prompt = build_prompt(payload.requests)
        known_ids = [item.employee_id for item in payload.requests]

        async with self._lock:
            try:
                content = await asyncio.wait_for(asyncio.to_thread(client.annotate, prompt), timeout=self._timeout)
                notes = parse_annotation_lines(content, known_ids)
                applied = service.apply_ai_notes(payload.company_id, payload.window, notes) if notes else 0
            except Exception as exc:
                logger.warning(
                    "annotation_failed",
                    company_id=payload.company_id,
                    week_start=payload.window.start.isoformat(),
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                return EnrichmentOutcome(status="failed", error=str(exc) or type(exc).__name__)

            if not applied:
                return EnrichmentOutcome(status="empty")

            logger.info(
                "annotation_applied",
                company_id=payload.company_id,
                week_start=payload.window.start.isoformat(),
                notes=applied,
            )
            return EnrichmentOutcome(status="completed", notes_applied=applied)


_worker: EnrichmentWorker | None = None


def get_enrichment_worker() -> EnrichmentWorker:
    global _worker
    if _worker is None:
        _worker = EnrichmentWorker()
    return _worker
