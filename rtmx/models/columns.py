"""Column names of the RTM table and header normalization."""

from __future__ import annotations

import re

STANDARD_COLUMNS: tuple[str, ...] = (
    "req_id",
    "category",
    "subcategory",
    "requirement_text",
    "target_value",
    "test_module",
    "test_function",
    "validation_method",
    "status",
    "priority",
    "phase",
    "notes",
    "effort_weeks",
    "dependencies",
    "blocks",
    "assignee",
    "sprint",
    "started_date",
    "completed_date",
    "requirement_file",
    "external_id",
)

STANDARD_SET = frozenset(STANDARD_COLUMNS)

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z])(?=[A-Z])")


def normalize_column_name(name: str) -> str:
    """Normalize a header cell to snake_case.

    ``ReqId`` -> ``req_id``, ``REQUIREMENT_TEXT`` -> ``requirement_text``,
    ``testModule`` -> ``test_module``.  Runs of capitals are not split.
    """
    name = name.strip()
    if "_" in name or name.lower() == name:
        return name.lower()
    return _CAMEL_BOUNDARY_RE.sub("_", name).lower()


def standard_column(name: str) -> str | None:
    """The standard column *name* refers to, or ``None`` for a custom column."""
    normalized = normalize_column_name(name)
    return normalized if normalized in STANDARD_SET else None
