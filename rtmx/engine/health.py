"""Database health checks for CI pipelines.

Each check yields PASS, WARN, FAIL or SKIP.  Any FAIL makes the report
UNHEALTHY (exit code 2); otherwise any WARN makes it WARNING (exit
code 1); otherwise it is HEALTHY (exit code 0).
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from rtmx.db.store import RTMDatabase
from rtmx.graph import DependencyGraph
from rtmx.models import Status, is_cross_repo

logger = logging.getLogger(__name__)

PASS = "PASS"
WARN = "WARN"
FAIL = "FAIL"
SKIP = "SKIP"

HEALTHY = "HEALTHY"
WARNING = "WARNING"
UNHEALTHY = "UNHEALTHY"

# Share of requirements that must name a test before coverage passes.
TEST_COVERAGE_THRESHOLD = 80.0


@dataclass
class HealthCheck:
    name: str
    status: str
    message: str
    blocking: bool = False


@dataclass
class HealthStats:
    total: int = 0
    complete: int = 0
    partial: int = 0
    missing: int = 0
    completion_percent: float = 0.0
    with_tests: int = 0
    without_tests: int = 0
    blocked: int = 0
    cycle_count: int = 0
    orphaned_deps: int = 0
    missing_reciprocity: int = 0


@dataclass
class HealthReport:
    checks: list[HealthCheck] = field(default_factory=list)
    stats: HealthStats = field(default_factory=HealthStats)

    def count(self, status: str) -> int:
        return sum(1 for check in self.checks if check.status == status)

    @property
    def status(self) -> str:
        if self.count(FAIL):
            return UNHEALTHY
        if self.count(WARN):
            return WARNING
        return HEALTHY

    @property
    def exit_code(self) -> int:
        return {HEALTHY: 0, WARNING: 1, UNHEALTHY: 2}[self.status]

    def summary(self) -> dict[str, int]:
        return {
            "passed": self.count(PASS),
            "warnings": self.count(WARN),
            "failed": self.count(FAIL),
            "skipped": self.count(SKIP),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "exit_code": self.exit_code,
            "checks": [asdict(check) for check in self.checks],
            "summary": self.summary(),
            "stats": asdict(self.stats),
        }


def orphaned_dependencies(db: RTMDatabase) -> list[tuple[str, str]]:
    """``(req_id, dep)`` for each local dependency missing from *db*."""
    return [
        (req.req_id, dep)
        for req in db
        for dep in req.dependencies
        if not is_cross_repo(dep) and dep not in db
    ]


def run_health_checks(db: RTMDatabase) -> HealthReport:
    report = HealthReport()
    stats = report.stats

    counts = db.status_counts()
    stats.total = len(db)
    stats.complete = counts.get(Status.COMPLETE, 0)
    stats.partial = counts.get(Status.PARTIAL, 0)
    stats.missing = counts.get(Status.MISSING, 0) + counts.get(Status.NOT_STARTED, 0)
    stats.completion_percent = db.completion_percentage()
    stats.with_tests = sum(1 for req in db if req.has_test)
    stats.without_tests = stats.total - stats.with_tests
    stats.blocked = sum(1 for req in db if req.is_incomplete and req.is_blocked(db))

    report.checks.append(
        HealthCheck("rtm_loads", PASS, f"RTM database loaded: {stats.total} requirements")
    )

    orphans = orphaned_dependencies(db)
    stats.orphaned_deps = len(orphans)
    for req_id, dep in orphans:
        logger.info("%s depends on non-existent %s", req_id, dep)
    if orphans:
        report.checks.append(
            HealthCheck(
                "orphaned_deps",
                FAIL,
                f"Orphaned dependencies: {len(orphans)} errors",
                blocking=True,
            )
        )
    else:
        report.checks.append(HealthCheck("orphaned_deps", PASS, "No orphaned dependencies"))

    missing_blocks = [i for i in db.reciprocity_issues() if i.column == "blocks"]
    stats.missing_reciprocity = len(missing_blocks)
    if missing_blocks:
        report.checks.append(
            HealthCheck("reciprocity", WARN, f"Reciprocity violations: {len(missing_blocks)}")
        )
    else:
        report.checks.append(
            HealthCheck("reciprocity", PASS, "All dependencies have reciprocal blocks")
        )

    coverage = stats.with_tests / stats.total * 100 if stats.total else 0.0
    if coverage >= TEST_COVERAGE_THRESHOLD:
        report.checks.append(
            HealthCheck(
                "test_coverage",
                PASS,
                f"Test coverage: {coverage:.1f}% ({stats.with_tests} requirements)",
            )
        )
    else:
        report.checks.append(
            HealthCheck(
                "test_coverage",
                WARN,
                f"Test coverage: {coverage:.1f}% "
                f"({stats.without_tests} requirements without tests)",
            )
        )

    cycles = DependencyGraph(db).find_cycles()
    stats.cycle_count = len(cycles)
    if cycles:
        report.checks.append(
            HealthCheck("cycles", WARN, f"Circular dependencies: {len(cycles)} group(s)")
        )
    else:
        report.checks.append(HealthCheck("cycles", PASS, "No circular dependencies detected"))

    logger.debug("Health check finished: %s", report.status)
    return report
