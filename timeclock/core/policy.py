"""Business rules that vary by company or jurisdiction."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol, Sequence

import yaml
from pydantic import BaseModel, Field

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class PayrollPolicy(BaseModel):
    expected_minutes: int = Field(default=510, ge=0)
    hours_mismatch_tolerance_minutes: int = Field(default=15, ge=0)
    lunch_deduction_minutes: int = Field(default=30, ge=0)
    lunch_min_shift_minutes: int = Field(default=300, ge=0)
    workshop_paid_break_minutes: int = Field(default=30, ge=0)
    early_clock_in_hour: int = Field(default=5, ge=0, le=23)
    late_clock_in_hour: int = Field(default=10, ge=0, le=23)
    weekly_overtime_threshold_minutes: int = Field(default=2640, ge=0)
    overtime_allocation_order: Literal["latest_first", "earliest_first"] = "latest_first"
    punch_mode: Literal["first", "sum"] = "first"
    office_department_keywords: list[str] = Field(default_factory=lambda: ["office", "admin", "management"])


def _policy_path() -> Path:
    env_path = os.getenv("PAYROLL_POLICY_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return CONFIG_DIR / "payroll_policy.yaml"


def load_policy(path: Path | None = None) -> PayrollPolicy:
    """Read the policy file, falling back to built-in defaults when absent."""

    path = path or _policy_path()
    if not path.exists():
        return PayrollPolicy()
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    return PayrollPolicy(**data)


class OvertimeAllocator(Protocol):
    """Assigns a week's overtime minutes to individual days."""

    def allocate(self, paid_minutes: Sequence[int], overtime_minutes: int) -> list[int]:
        """Return per-day overtime minutes aligned with ``paid_minutes``."""


@dataclass(frozen=True)
class BackDistributionAllocator:
    """Fill overtime from the most recent weekday backward.

    ``earliest_first`` walks the week forward instead. A day never receives
    more overtime than it has paid minutes.
    """

    order: Literal["latest_first", "earliest_first"] = "latest_first"

    def allocate(self, paid_minutes: Sequence[int], overtime_minutes: int) -> list[int]:
        allocation = [0] * len(paid_minutes)
        indices = range(len(paid_minutes))
        if self.order == "latest_first":
            indices = reversed(indices)

        remaining = overtime_minutes
        for index in indices:
            if remaining <= 0:
                break
            ot = min(paid_minutes[index], remaining)
            allocation[index] = ot
            remaining -= ot
        return allocation


def allocator_for(policy: PayrollPolicy) -> OvertimeAllocator:
    return BackDistributionAllocator(order=policy.overtime_allocation_order)
