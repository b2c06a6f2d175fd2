"""In-memory RTM database: keyed, insertion-ordered requirement storage."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rtmx.errors import DuplicateError, NotFoundError, ValidationFailedError
from rtmx.models.columns import standard_column
from rtmx.models.enums import Priority, Status
from rtmx.models.requirement import Requirement
from rtmx.models.stringset import StringSet

logger = logging.getLogger(__name__)

# Plain-text columns that Update assigns verbatim.
_TEXT_FIELDS = frozenset({
    "category",
    "subcategory",
    "requirement_text",
    "target_value",
    "notes",
    "test_module",
    "test_function",
    "validation_method",
    "assignee",
    "sprint",
    "started_date",
    "completed_date",
    "requirement_file",
    "external_id",
})


@dataclass
class FilterOptions:
    """Filter criteria for :meth:`RTMDatabase.filter`.

    ``None`` (or an empty string for the text criteria) leaves that
    axis unconstrained.  Criteria compose conjunctively.
    """

    status: Status | None = None
    priority: Priority | None = None
    category: str = ""
    phase: int | None = None
    has_test: bool | None = None
    is_complete: bool | None = None
    is_blocked: bool | None = None
    assignee: str = ""


@dataclass(frozen=True)
class ReciprocityIssue:
    """``req_id`` lacks ``other_id`` in its ``column`` (``blocks`` or ``dependencies``)."""

    req_id: str
    column: str
    other_id: str


class RTMDatabase:
    """Keyed collection of requirements that remembers insertion order.

    The database tracks the path it was loaded from and a dirty flag
    that any mutation sets and a successful save clears.  It is not safe
    for concurrent mutation.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._requirements: dict[str, Requirement] = {}
        self._order: list[str] = []
        self._path: Path | None = Path(path) if path else None
        self._dirty = False

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path | None:
        return self._path

    @path.setter
    def path(self, value: str | Path | None) -> None:
        self._path = Path(value) if value else None

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    def __len__(self) -> int:
        return len(self._requirements)

    def __iter__(self) -> Iterator[Requirement]:
        return iter(self.all())

    def __contains__(self, req_id: object) -> bool:
        return req_id in self._requirements

    def __repr__(self) -> str:
        return f"RTMDatabase(path={self._path!s}, requirements={len(self)})"

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def get(self, req_id: str) -> Requirement | None:
        return self._requirements.get(req_id)

    def exists(self, req_id: str) -> bool:
        return req_id in self._requirements

    def add(self, req: Requirement) -> None:
        if not req.req_id:
            raise ValidationFailedError("requirement ID cannot be empty", field="req_id")
        if req.req_id in self._requirements:
            raise DuplicateError(f"requirement {req.req_id!r} already exists", req_id=req.req_id)
        self._requirements[req.req_id] = req
        self._order.append(req.req_id)
        self._dirty = True

    def update(self, req_id: str, updates: Mapping[str, Any]) -> None:
        """Apply per-field *updates* to an existing requirement.

        Field names are matched like CSV header cells, so ``Status`` sets
        ``status``; names that match no standard column go to ``extra``.
        Fields are applied in mapping order.  The batch is not
        transactional: the first value that fails validation stops the
        batch, fields applied before it stay applied (and the database is
        marked dirty), and the error is raised.
        """
        req = self.get(req_id)
        if req is None:
            raise NotFoundError(f"requirement {req_id!r} not found", req_id=req_id)

        applied = 0
        try:
            for key, value in updates.items():
                _apply_field(req, key, value)
                applied += 1
        finally:
            if applied:
                self._dirty = True
        logger.debug("Updated %d field(s) on %s", applied, req_id)

    def remove(self, req_id: str) -> Requirement:
        if req_id not in self._requirements:
            raise NotFoundError(f"requirement {req_id!r} not found", req_id=req_id)
        req = self._requirements.pop(req_id)
        self._order = [rid for rid in self._order if rid != req_id]
        self._dirty = True
        return req

    def all(self) -> list[Requirement]:
        """Return all requirements in insertion order."""
        return [self._requirements[rid] for rid in self._order]

    def ids(self) -> list[str]:
        return list(self._order)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def filter(self, opts: FilterOptions | None = None, **criteria: Any) -> list[Requirement]:
        """Return requirements matching *opts* (or keyword criteria)."""
        if opts is None:
            opts = FilterOptions(**criteria)
        elif criteria:
            raise TypeError("pass either FilterOptions or keyword criteria, not both")

        results = []
        for req in self.all():
            if opts.status is not None and req.status is not opts.status:
                continue
            if opts.priority is not None and req.priority is not opts.priority:
                continue
            if opts.category and req.category != opts.category:
                continue
            if opts.phase is not None and req.phase != opts.phase:
                continue
            if opts.has_test is not None and req.has_test != opts.has_test:
                continue
            if opts.is_complete is not None and req.is_complete != opts.is_complete:
                continue
            if opts.is_blocked is not None and req.is_blocked(self) != opts.is_blocked:
                continue
            if opts.assignee and req.assignee != opts.assignee:
                continue
            results.append(req)
        return results

    def incomplete(self) -> list[Requirement]:
        return self.filter(is_complete=False)

    def complete(self) -> list[Requirement]:
        return self.filter(is_complete=True)

    def backlog(self) -> list[Requirement]:
        """Incomplete requirements by priority weight, then phase, then ID."""
        return sorted(
            self.incomplete(),
            key=lambda r: (r.priority.weight, r.phase, r.req_id),
        )

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def status_counts(self) -> dict[Status, int]:
        counts: dict[Status, int] = {}
        for req in self.all():
            counts[req.status] = counts.get(req.status, 0) + 1
        return counts

    def priority_counts(self) -> dict[Priority, int]:
        counts: dict[Priority, int] = {}
        for req in self.all():
            counts[req.priority] = counts.get(req.priority, 0) + 1
        return counts

    def categories(self) -> list[str]:
        return sorted({req.category for req in self.all()})

    def phases(self) -> list[int]:
        return sorted({req.phase for req in self.all() if req.phase > 0})

    def completion_percentage(self) -> float:
        """Mean completion over all rows, in ``[0, 100]``."""
        if not self._requirements:
            return 0.0
        total = sum(req.status.completion_fraction for req in self.all())
        return total / len(self._requirements) * 100.0

    def by_category(self) -> dict[str, list[Requirement]]:
        groups: dict[str, list[Requirement]] = {}
        for req in self.all():
            groups.setdefault(req.category, []).append(req)
        return groups

    def by_phase(self) -> dict[int, list[Requirement]]:
        groups: dict[int, list[Requirement]] = {}
        for req in self.all():
            groups.setdefault(req.phase, []).append(req)
        return groups

    # ------------------------------------------------------------------
    # Reciprocity
    # ------------------------------------------------------------------

    def reciprocity_issues(self) -> list[ReciprocityIssue]:
        """Back-references missing between ``dependencies`` and ``blocks``.

        If A depends on B then B should block A, and if A blocks B then B
        should depend on A.  IDs that are not in this database (including
        cross-repository ones) are ignored.  Missing blocks are listed
        before missing dependencies.
        """
        missing_blocks = []
        missing_deps = []
        for req in self.all():
            for dep in req.dependencies:
                dep_req = self.get(dep)
                if dep_req is not None and req.req_id not in dep_req.blocks:
                    missing_blocks.append(ReciprocityIssue(dep, "blocks", req.req_id))
            for blocked in req.blocks:
                blocked_req = self.get(blocked)
                if blocked_req is not None and req.req_id not in blocked_req.dependencies:
                    missing_deps.append(ReciprocityIssue(blocked, "dependencies", req.req_id))
        return missing_blocks + missing_deps

    def reconcile(self) -> list[ReciprocityIssue]:
        """Add every missing back-reference and return what was added."""
        issues = self.reciprocity_issues()
        for issue in issues:
            getattr(self._requirements[issue.req_id], issue.column).add(issue.other_id)
        if issues:
            self._dirty = True
            logger.info("Added %d reciprocal reference(s)", len(issues))
        return issues


# ---------------------------------------------------------------------------
# Field coercion) for update()
# ---------------------------------------------------------------------------


def _apply_field(req: Requirement, key: str, value: Any) -> None:
    # "Status" or "effortWeeks" name the standard field, never a custom one.
    key = standard_column(key) or key
    if key == "req_id":
        raise ValidationFailedError("req_id cannot be changed", field=key, value=value)
    if key in _TEXT_FIELDS:
        setattr(req, key, _as_text(key, value))
    elif key == "status":
        req.status = value if isinstance(value, Status) else Status.parse(_as_text(key, value))
    elif key == "priority":
        req.priority = value if isinstance(value, Priority) else Priority.parse(_as_text(key, value))
    elif key == "phase":
        req.phase = _as_phase(value)
    elif key == "effort_weeks":
        req.effort_weeks = _as_effort(value)
    elif key in ("dependencies", "blocks"):
        setattr(req, key, _as_stringset(key, value))
    else:
        req.extra[key] = _as_text(key, value)


def _as_text(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationFailedError(
            f"field {key!r} expects a string, got {type(value).__name__}",
            field=key,
            value=value,
        )
    return value


def _as_phase(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationFailedError(f"invalid phase: {value!r}", field="phase", value=value)
    if isinstance(value, str):
        try:
            value = int(value.strip() or "0")
        except ValueError:
            raise ValidationFailedError(
                f"invalid phase: {value!r}", field="phase", value=value
            ) from None
    if not isinstance(value, int) or value < 0:
        raise ValidationFailedError(f"invalid phase: {value!r}", field="phase", value=value)
    return value


def _as_effort(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationFailedError(f"invalid effort: {value!r}", field="effort_weeks", value=value)
    if isinstance(value, str):
        try:
            value = float(value.strip() or "0")
        except ValueError:
            raise ValidationFailedError(
                f"invalid effort: {value!r}", field="effort_weeks", value=value
            ) from None
    if not isinstance(value, (int, float)) or value < 0 or not math.isfinite(value):
        raise ValidationFailedError(f"invalid effort: {value!r}", field="effort_weeks", value=value)
    return float(value)


def _as_stringset(key: str, value: Any) -> StringSet:
    if isinstance(value, StringSet):
        return value.copy()
    if isinstance(value, str):
        return StringSet.parse(value)
    if isinstance(value, Iterable) and not isinstance(value, Mapping):
        items = list(value)
        if all(isinstance(item, str) for item in items):
            return StringSet(items)
    raise ValidationFailedError(
        f"field {key!r} expects identifiers, got {type(value).__name__}",
        field=key,
        value=value,
    )
