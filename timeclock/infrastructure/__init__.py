"""Infrastructure layer exports."""

from .annotations import (
    AnnotationClient,
    NoOpAnnotationClient,
    build_prompt,
    configure_annotation_client,
    get_annotation_client,
    parse_annotation_lines,
)
from .repositories import (
    EmployeeDirectory,
    InMemoryPayrollRepository,
    PayrollRepository,
    PayrollStore,
    PunchStore,
    StoreError,
)

__all__ = [
    "AnnotationClient",
    "EmployeeDirectory",
    "InMemoryPayrollRepository",
    "NoOpAnnotationClient",
    "PayrollRepository",
    "PayrollStore",
    "PunchStore",
    "StoreError",
    "build_prompt",
    "configure_annotation_client",
    "get_annotation_client",
    "parse_annotation_lines",
]
