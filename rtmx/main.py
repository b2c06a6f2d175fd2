"""RTMX command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from rtmx import __version__
from rtmx.config import AppConfig, load_config, load_config_from_dir
from rtmx.db import RTMDatabase, find_database, load, save
from rtmx.engine.health import run_health_checks
from rtmx.engine.sync import MANUAL, PREFER_LOCAL, PREFER_REMOTE, SyncEngine, SyncResult
from rtmx.errors import NotFoundError, RTMXError
from rtmx.graph import DependencyGraph
from rtmx.models import Status
from rtmx.providers.registry import ProviderRegistry

logger = logging.getLogger("rtmx")

TEXT_WIDTH = 60


def _setup_logging(config: AppConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.rtmx.logging.level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _truncate(text: str, width: int = TEXT_WIDTH) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def _load_database(args: argparse.Namespace, config: AppConfig) -> RTMDatabase:
    if args.database:
        return load(args.database)
    path = config.database_path()
    if not path.exists():
        path = find_database(Path.cwd())
    return load(path)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def cmd_status(args: argparse.Namespace, config: AppConfig) -> int:
    db = _load_database(args, config)
    counts = db.status_counts()
    missing = counts.get(Status.MISSING, 0) + counts.get(Status.NOT_STARTED, 0)
    print(f"Requirements: {db.completion_percentage():.1f}% complete ({len(db)} total)")
    print(
        f"  {counts.get(Status.COMPLETE, 0)} complete, "
        f"{counts.get(Status.PARTIAL, 0)} partial, {missing} missing"
    )
    by_phase = db.by_phase()
    for phase in db.phases():
        reqs = by_phase[phase]
        done = sum(1 for r in reqs if r.is_complete)
        pct = sum(r.status.completion_fraction for r in reqs) / len(reqs) * 100
        print(
            f"Phase {phase} ({config.phase_description(phase)}): "
            f"{pct:5.1f}%  ({done}/{len(reqs)} complete)"
        )
    return 0


def cmd_backlog(args: argparse.Namespace, config: AppConfig) -> int:
    db = _load_database(args, config)
    backlog = db.backlog()
    if not backlog:
        print("Backlog is empty")
        return 0
    shown = backlog[: args.limit] if args.limit else backlog
    for req in shown:
        blocked = " (blocked)" if req.is_blocked(db) else ""
        print(
            f"{req.req_id:<16} {str(req.priority):<7} P{req.phase:<3} "
            f"{_truncate(req.requirement_text)}{blocked}"
        )
    if len(shown) < len(backlog):
        print(f"... {len(backlog) - len(shown)} more")
    return 0


def cmd_deps(args: argparse.Namespace, config: AppConfig) -> int:
    db = _load_database(args, config)
    req = db.get(args.req_id)
    if req is None:
        raise NotFoundError(f"requirement {args.req_id} not found", req_id=args.req_id)
    graph = DependencyGraph(db)

    print(f"{req.req_id} [{req.status}] {_truncate(req.requirement_text)}")
    print("Depends on:")
    for dep in graph.dependencies(req.req_id) or ["(none)"]:
        print(f"  {dep}")
    print("Required by:")
    for dep in graph.dependents(req.req_id) or ["(none)"]:
        print(f"  {dep}")
    blocking = graph.blocking_dependencies(req.req_id)
    if blocking:
        print(f"Blocked by {len(blocking)} incomplete requirement(s): {', '.join(blocking)}")
    else:
        print("All dependencies are complete")
    print(f"Transitively blocks {len(graph.transitive_dependents(req.req_id))} requirement(s)")
    return 0


def cmd_cycles(args: argparse.Namespace, config: AppConfig) -> int:
    """Exit status 1 when any cycle exists."""
    db = _load_database(args, config)
    graph = DependencyGraph(db)
    cycles = graph.find_cycles()
    if not cycles:
        print("No circular dependencies found")
        return 0
    print(f"Found {len(cycles)} circular dependency group(s):")
    for members in cycles:
        print("  " + " -> ".join(graph.find_cycle_path(members)))
    return 1


def cmd_reconcile(args: argparse.Namespace, config: AppConfig) -> int:
    """Report missing blocks/dependencies back-references; fix them with --execute."""
    db = _load_database(args, config)
    issues = db.reciprocity_issues()
    if not issues:
        print("All dependencies are reciprocal, no fixes needed")
        return 0

    print(f"Found {len(issues)} reciprocity issue(s):")
    for issue in issues:
        relation = "block" if issue.column == "blocks" else "depend on"
        print(f"  {issue.req_id} should {relation} {issue.other_id}")
    missing_blocks = sum(1 for issue in issues if issue.column == "blocks")
    print(
        f"Summary: {missing_blocks} missing blocks, "
        f"{len(issues) - missing_blocks} missing dependencies"
    )
    if not args.execute:
        print("Dry run: no changes were made (use --execute to apply fixes)")
        return 0

    applied = db.reconcile()
    path = save(db)
    logger.info("Saved %s", path)
    print(f"Applied {len(applied)} fix(es) and saved the database")
    return 0


def cmd_health(args: argparse.Namespace, config: AppConfig) -> int:
    """Exit status 0 when healthy, 1 on warnings, 2 on failures."""
    db = _load_database(args, config)
    report = run_health_checks(db)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return report.exit_code

    for check in report.checks:
        blocking = " [blocking]" if check.blocking else ""
        print(f"  [{check.status}] {check.name}: {check.message}{blocking}")
    summary = report.summary()
    status = report.status
    if summary["failed"]:
        status += " (blocking errors)"
    elif summary["warnings"]:
        status += " (non-blocking warnings)"
    print(f"Status: {status}")
    print(
        f"Summary: {summary['passed']} passed, {summary['warnings']} warnings, "
        f"{summary['failed']} failed, {summary['skipped']} skipped"
    )
    return report.exit_code


def _print_sync_result(result: SyncResult) -> None:
    print(f"Sync summary: {result.summary()}")
    for conflict in result.conflicts:
        print(f"  conflict {conflict.id}: {conflict.reason}")
    for error in result.errors:
        print(f"  error {error.id or '-'}: {error.error}")


async def _run_sync(
    args: argparse.Namespace, config: AppConfig, registry: ProviderRegistry
) -> int:
    db = _load_database(args, config)
    try:
        adapter = await registry.create_tracker(args.service, config.rtmx.adapters)
    except KeyError as e:
        print(f"Unknown service: {args.service} ({e.args[0]})", file=sys.stderr)
        return 1

    try:
        health = await adapter.test_connection()
        if not health.healthy:
            print(health.message, file=sys.stderr)
            return 1
        print(health.message)

        engine = SyncEngine(adapter, db)
        if args.prefer_local:
            policy = PREFER_LOCAL
        elif args.prefer_remote:
            policy = PREFER_REMOTE
        else:
            policy = config.rtmx.sync.conflict_resolution or MANUAL

        if args.do_import:
            result = await engine.pull(dry_run=args.dry_run)
        elif args.export:
            result = await engine.push(dry_run=args.dry_run)
        else:
            result = await engine.bidirectional(conflict_resolution=policy, dry_run=args.dry_run)
    finally:
        await adapter.cleanup()

    if args.dry_run:
        print("Dry run: no changes were made")
    elif db.is_dirty:
        path = save(db)
        logger.info("Saved %s", path)
    _print_sync_result(result)
    return 0 if result.ok else 1


def cmd_sync(
    args: argparse.Namespace, config: AppConfig, registry: ProviderRegistry | None = None
) -> int:
    return asyncio.run(_run_sync(args, config, registry or ProviderRegistry()))


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rtmx", description="Requirements traceability matrix")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--database", default=None, help="path to the RTM database CSV")
    parser.add_argument("--config", default=None, help="path to rtmx.yaml")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show completion status")

    backlog_parser = sub.add_parser("backlog", help="List incomplete requirements by priority")
    backlog_parser.add_argument("--limit", type=int, default=0)

    deps_parser = sub.add_parser("deps", help="Show dependencies of a requirement")
    deps_parser.add_argument("req_id")

    sub.add_parser("cycles", help="Detect circular dependencies")

    reconcile_parser = sub.add_parser("reconcile", help="Check dependency/blocks reciprocity")
    reconcile_parser.add_argument(
        "--execute", action="store_true", help="apply the fixes (default is a dry run)"
    )

    health_parser = sub.add_parser("health", help="Run database health checks")
    health_parser.add_argument("--json", action="store_true", help="machine-readable output")

    sync_parser = sub.add_parser("sync", help="Synchronize with an issue tracker")
    sync_parser.add_argument("--service", required=True, help="github or jira")
    direction = sync_parser.add_mutually_exclusive_group(required=True)
    direction.add_argument("--import", dest="do_import", action="store_true")
    direction.add_argument("--export", action="store_true")
    direction.add_argument("--bidirectional", action="store_true")
    sync_parser.add_argument("--dry-run", action="store_true")
    preference = sync_parser.add_mutually_exclusive_group()
    preference.add_argument("--prefer-local", action="store_true")
    preference.add_argument("--prefer-remote", action="store_true")
    return parser


_COMMANDS = {
    "status": cmd_status,
    "backlog": cmd_backlog,
    "deps": cmd_deps,
    "cycles": cmd_cycles,
    "reconcile": cmd_reconcile,
    "health": cmd_health,
}


def main(argv: list[str] | None = None, registry: ProviderRegistry | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config) if args.config else load_config_from_dir(Path.cwd())
        _setup_logging(config, args.verbose)
        if args.command == "sync":
            return cmd_sync(args, config, registry)
        return _COMMANDS[args.command](args, config)
    except RTMXError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


def cli() -> None:
    load_dotenv()
    sys.exit(main())


if __name__ == "__main__":
    cli()
