"""CSV reading and writing for the RTM database.

The file is RFC-4180 CSV with a mandatory header row.  Header cells are
normalized to snake_case before matching; columns that are not
recognized are carried through ``Requirement.extra`` under their
original spelling and written back after the standard columns.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Callable
from decimal import Decimal
from pathlib import Path
from typing import IO

from rtmx.db.store import RTMDatabase
from rtmx.errors import DuplicateError, IOFailureError, SchemaError, ValidationFailedError
from rtmx.models.columns import STANDARD_COLUMNS, STANDARD_SET, normalize_column_name
from rtmx.models.enums import Priority, Status
from rtmx.models.requirement import Requirement
from rtmx.models.stringset import StringSet

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: tuple[str, ...] = ("req_id", "category", "requirement_text")

# Where find_database() looks, relative to the starting directory.
DATABASE_CANDIDATES: tuple[str, ...] = (
    ".rtmx/database.csv",
    "docs/rtm_database.csv",
    "rtm_database.csv",
)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_csv(stream: IO[str]) -> RTMDatabase:
    """Parse CSV text from *stream* into a new, clean database.

    Raises :class:`SchemaError` for a missing header, a missing required
    column, an empty ``req_id`` or malformed quoting, and
    :class:`DuplicateError` when an ID repeats.  Unparseable typed cells
    fall back to their defaults and are logged.
    """
    reader = csv.reader(stream, strict=True)
    try:
        header = next(reader, None)
    except csv.Error as e:
        raise SchemaError(f"failed to read CSV header: {e}") from e
    if not header:
        raise SchemaError("failed to read CSV header: no header row")

    col_index: dict[str, int] = {}
    extra_cols: list[tuple[str, int]] = []
    for idx, cell in enumerate(header):
        normalized = normalize_column_name(cell)
        if normalized not in STANDARD_SET:
            extra_cols.append((cell, idx))
        elif normalized not in col_index:
            col_index[normalized] = idx
        elif cell != normalized:
            # A second spelling of a standard column stays a custom column.
            extra_cols.append((cell, idx))
        else:
            logger.warning("Ignoring duplicate column %r at position %d", cell, idx + 1)

    for col in REQUIRED_COLUMNS:
        if col not in col_index:
            raise SchemaError(f"missing required column: {col}", column=col)

    db = RTMDatabase()
    row_num = 1
    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            raise SchemaError(f"failed to read CSV row {row_num + 1}: {e}", row=row_num + 1) from e
        if not record:
            continue
        row_num += 1

        req = _parse_row(record, col_index, extra_cols, row_num)
        try:
            db.add(req)
        except DuplicateError as e:
            raise DuplicateError(f"row {row_num}: {e.message}", row=row_num, **e.details) from e

    db.mark_clean()
    return db


def _parse_row(
    record: list[str],
    col_index: dict[str, int],
    extra_cols: list[tuple[str, int]],
    row_num: int,
) -> Requirement:
    def get(col: str) -> str:
        idx = col_index.get(col)
        if idx is None or idx >= len(record):
            return ""
        return record[idx].strip()

    req_id = get("req_id")
    if not req_id:
        raise SchemaError(f"failed to parse row {row_num}: req_id is required", row=row_num)

    req = Requirement(
        req_id=req_id,
        category=get("category"),
        subcategory=get("subcategory"),
        requirement_text=get("requirement_text"),
        target_value=get("target_value"),
        notes=get("notes"),
        test_module=get("test_module"),
        test_function=get("test_function"),
        validation_method=get("validation_method"),
        assignee=get("assignee"),
        sprint=get("sprint"),
        dependencies=StringSet.parse(get("dependencies")),
        blocks=StringSet.parse(get("blocks")),
        started_date=get("started_date"),
        completed_date=get("completed_date"),
        requirement_file=get("requirement_file"),
        external_id=get("external_id"),
    )

    req.status = _best_effort(Status.parse, get("status"), Status.MISSING, "status", req_id)
    req.priority = _best_effort(Priority.parse, get("priority"), Priority.MEDIUM, "priority", req_id)
    req.phase = _best_effort(_parse_phase, get("phase"), 0, "phase", req_id)
    req.effort_weeks = _best_effort(_parse_effort, get("effort_weeks"), 0.0, "effort_weeks", req_id)

    for name, idx in extra_cols:
        if idx < len(record):
            value = record[idx].strip()
            if value:
                req.extra[name] = value

    return req


def _best_effort(parse: Callable[[str], object], text: str, default, field: str, req_id: str):
    try:
        return parse(text)
    except ValidationFailedError:
        logger.warning("%s: invalid %s %r, using %r", req_id, field, text, default)
        return default


def _parse_phase(text: str) -> int:
    if not text:
        return 0
    try:
        phase = int(text)
    except ValueError:
        raise ValidationFailedError(f"invalid phase: {text!r}", field="phase") from None
    if phase < 0:
        raise ValidationFailedError(f"invalid phase: {text!r}", field="phase")
    return phase


def _parse_effort(text: str) -> float:
    if not text:
        return 0.0
    try:
        effort = float(text)
    except ValueError:
        raise ValidationFailedError(f"invalid effort: {text!r}", field="effort_weeks") from None
    if effort < 0 or not math.isfinite(effort):
        raise ValidationFailedError(f"invalid effort: {text!r}", field="effort_weeks")
    return effort


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def header_for(db: RTMDatabase) -> list[str]:
    """Standard columns followed by every ``extra`` key, sorted."""
    extra_keys: set[str] = set()
    for req in db.all():
        extra_keys.update(req.extra)
    return list(STANDARD_COLUMNS) + sorted(extra_keys - STANDARD_SET)


def write_csv(db: RTMDatabase, stream: IO[str]) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    header = header_for(db)
    writer.writerow(header)
    for req in db.all():
        writer.writerow(_format_row(req, header))


def _format_row(req: Requirement, header: list[str]) -> list[str]:
    row = []
    for col in header:
        if col in STANDARD_SET:
            row.append(_format_standard(req, col))
        else:
            row.append(req.extra.get(col, ""))
    return row


def _format_standard(req: Requirement, col: str) -> str:
    if col == "status":
        return req.status.value
    if col == "priority":
        return req.priority.value
    if col == "phase":
        return str(req.phase) if req.phase > 0 else ""
    if col == "effort_weeks":
        return format_effort(req.effort_weeks)
    if col in ("dependencies", "blocks"):
        return getattr(req, col).render()
    return getattr(req, col)


def format_effort(effort: float) -> str:
    """Render effort in its shortest form (``2``, ``1.5``); empty for zero."""
    if effort <= 0:
        return ""
    # Shortest round-tripping digits, never in exponent form.
    return format(Decimal(repr(float(effort))).normalize(), "f")


# ---------------------------------------------------------------------------
# String and file helpers
# ---------------------------------------------------------------------------


def loads(text: str) -> RTMDatabase:
    return read_csv(io.StringIO(text, newline=""))


def dumps(db: RTMDatabase) -> str:
    buf = io.StringIO(newline="")
    write_csv(db, buf)
    return buf.getvalue()


def load(path: str | Path) -> RTMDatabase:
    """Load a database from *path* and remember the path for saving."""
    path = Path(path)
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            db = read_csv(f)
    except OSError as e:
        raise IOFailureError(f"failed to open database: {e}", path=str(path)) from e
    db.path = path
    logger.debug("Loaded %d requirements from %s", len(db), path)
    return db


def save(db: RTMDatabase, path: str | Path | None = None) -> Path:
    """Write *db* to *path* (or its origin path) and mark it clean."""
    target = Path(path) if path else db.path
    if target is None:
        raise IOFailureError("no path specified for saving database")
    try:
        with target.open("w", encoding="utf-8", newline="") as f:
            write_csv(db, f)
    except OSError as e:
        raise IOFailureError(f"failed to write database: {e}", path=str(target)) from e
    db.path = target
    db.mark_clean()
    logger.info("Saved %d requirements to %s", len(db), target)
    return target


def find_database(start_dir: str | Path = ".") -> Path:
    """Return the first existing database under *start_dir*."""
    base = Path(start_dir)
    for candidate in DATABASE_CANDIDATES:
        path = base / candidate
        if path.is_file():
            return path
    raise IOFailureError(f"no RTM database found under {base}", searched=list(DATABASE_CANDIDATES))
