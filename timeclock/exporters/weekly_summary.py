from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

COLUMNS = [
    "employee_id",
    "employee_name",
    "employee_type",
    "week_start",
    "week_end",
    "total_paid_hours",
    "regular_hours",
    "overtime_hours",
    "total_exceptions",
    "status",
]


def _frame(rows: Iterable[dict], names: dict[str, str] | None = None) -> pd.DataFrame:
    records = []
    for row in rows:
        record = {column: row.get(column) for column in COLUMNS}
        record["employee_name"] = (names or {}).get(row["employee_id"], "")
        for column in ("total_paid_hours", "regular_hours", "overtime_hours"):
            record[column] = float(record[column] or 0)
        records.append(record)
    return pd.DataFrame(records, columns=COLUMNS)


def export_weekly_csv(path: Path, rows: Iterable[dict], names: dict[str, str] | None = None) -> Path:
    df = _frame(rows, names)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path


def export_weekly_xlsx(path: Path, rows: Iterable[dict], names: dict[str, str] | None = None) -> Path:
    df = _frame(rows, names)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_excel(path, index=False, sheet_name="Weekly payroll", engine="openpyxl")
    return path
