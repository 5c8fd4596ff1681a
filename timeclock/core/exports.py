from __future__ import annotations

import os
from datetime import date
from pathlib import Path


def _base_root() -> Path:
    env_root = os.getenv("PAYROLL_EXPORTS_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "exports"


def export_path(company_id: str, week_start: date, suffix: str) -> Path:
    """Return the file path for a company's weekly export, creating its folder."""

    folder = _base_root() / Path(company_id).name
    folder.mkdir(parents=True, exist_ok=True)
    return folder / f"payroll_{week_start.isoformat()}.{suffix}"
