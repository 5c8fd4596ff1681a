"""Audit-note generation hooks.

Notes are optional decoration on top of the computed payroll. This module
defines the client contract, a no-op default used when no provider is
configured, and the helpers that build the batched prompt and read the
line-oriented ``id|note`` reply.
"""
from __future__ import annotations

from typing import Iterable, Protocol

from timeclock.domain import AnnotationRequest

SYSTEM_PROMPT = (
    "You are a payroll auditor. For each employee below, write 1-2 SHORT actionable audit notes. "
    "Focus on exceptions and anomalies. If clean, say 'Clean week - no issues.' "
    "Return format: one line per employee: PROFILE_ID|note text"
)


class AnnotationClient(Protocol):
    """Contract for text-generation integrations."""

    def annotate(self, prompt: str) -> str:
        """Return free text for the batched ``prompt``."""


class NoOpAnnotationClient:
    """Fallback client used when no provider is configured."""

    def annotate(self, prompt: str) -> str:
        return ""


_client: AnnotationClient = NoOpAnnotationClient()


def configure_annotation_client(client: AnnotationClient) -> None:
    """Install the client used by the enrichment worker."""

    global _client
    _client = client


def get_annotation_client() -> AnnotationClient:
    return _client


def build_prompt(requests: Iterable[AnnotationRequest]) -> str:
    return "\n\n".join(
        f"--- {item.employee_name} ({item.employee_id}) ---\n{item.summary_text}" for item in requests
    )


def parse_annotation_lines(content: str, known_ids: Iterable[str] | None = None) -> dict[str, str]:
    """Map employee id to note, skipping anything that is not ``id|note``."""

    allowed = set(known_ids) if known_ids is not None else None
    notes: dict[str, str] = {}
    for line in (content or "").splitlines():
        pipe_idx = line.find("|")
        if pipe_idx <= 0:
            continue
        employee_id = line[:pipe_idx].strip()
        note = line[pipe_idx + 1 :].strip()
        if not employee_id or not note:
            continue
        if allowed is not None and employee_id not in allowed:
            continue
        notes[employee_id] = note
    return notes
