"""The Requirement record: one row of the RTM."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from rtmx.models.enums import Priority, Status
from rtmx.models.stringset import StringSet

if TYPE_CHECKING:
    from rtmx.db.store import RTMDatabase

# Separator for dependencies that live in another repository ("repo:REQ-ID").
CROSS_REPO_MARKER = ":"


def is_cross_repo(req_id: str) -> bool:
    return CROSS_REPO_MARKER in req_id


@dataclass
class Requirement:
    """A single traceable requirement.

    ``dependencies`` lists the IDs this requirement depends on and
    ``blocks`` the IDs it blocks.  The two need not be symmetric; the
    dependency graph derives the inverse from ``dependencies`` alone.
    ``extra`` keeps user-defined columns keyed by their original header.
    """

    req_id: str
    category: str = ""
    subcategory: str = ""

    requirement_text: str = ""
    target_value: str = ""
    notes: str = ""

    test_module: str = ""
    test_function: str = ""
    validation_method: str = ""

    status: Status = Status.MISSING
    priority: Priority = Priority.MEDIUM
    phase: int = 0
    effort_weeks: float = 0.0
    assignee: str = ""
    sprint: str = ""

    dependencies: StringSet = field(default_factory=StringSet)
    blocks: StringSet = field(default_factory=StringSet)

    started_date: str = ""
    completed_date: str = ""

    requirement_file: str = ""
    external_id: str = ""

    extra: dict[str, str] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Derived predicates
    # ------------------------------------------------------------------

    @property
    def is_complete(self) -> bool:
        return self.status.is_complete

    @property
    def is_incomplete(self) -> bool:
        return not self.status.is_complete

    @property
    def has_test(self) -> bool:
        return bool(self.test_module) and bool(self.test_function)

    @property
    def is_high_priority(self) -> bool:
        return self.priority.is_high_priority

    def is_blocked(self, db: RTMDatabase) -> bool:
        """True if any local dependency present in *db* is incomplete."""
        return bool(self.blocking_deps(db))

    def blocking_deps(self, db: RTMDatabase) -> list[str]:
        """Return incomplete local dependencies, sorted by ID.

        Cross-repository dependencies are skipped, as are IDs that are
        not in *db*.
        """
        blocking = []
        for dep in self.dependencies:
            if is_cross_repo(dep):
                continue
            dep_req = db.get(dep)
            if dep_req is not None and dep_req.is_incomplete:
                blocking.append(dep)
        return blocking

    # ------------------------------------------------------------------
    # Date helpers
    # ------------------------------------------------------------------

    def set_started_date(self, today: date | None = None) -> None:
        """Stamp ``started_date`` unless one is already recorded."""
        if not self.started_date:
            self.started_date = (today or date.today()).isoformat()

    def set_completed_date(self, today: date | None = None) -> None:
        self.completed_date = (today or date.today()).isoformat()

    def clone(self) -> Requirement:
        return copy.deepcopy(self)
