"""Synchronization between the requirements database and a tracker.

Three passes are supported:

* **pull** (import): remote status flows into linked requirements, and
  remote items that reference a known requirement get linked to it.
* **push** (export): linked requirements are pushed onto their items,
  unlinked ones are created remotely and linked.
* **bidirectional**: linked pairs whose statuses disagree are resolved
  by a conflict policy.

Dry runs report what would happen without touching the database or the
tracker.  Saving the database is left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rtmx.db.store import RTMDatabase
from rtmx.errors import RTMXError, ValidationFailedError
from rtmx.providers.tracker.base import ExternalItem, TrackerAdapter

logger = logging.getLogger(__name__)

MANUAL = "manual"
PREFER_LOCAL = "prefer-local"
PREFER_REMOTE = "prefer-remote"
CONFLICT_POLICIES = (MANUAL, PREFER_LOCAL, PREFER_REMOTE)


@dataclass
class SyncConflict:
    id: str
    reason: str


@dataclass
class SyncError:
    id: str
    error: str


@dataclass
class SyncResult:
    """Outcome of one sync pass, as lists of IDs per disposition."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    conflicts: list[SyncConflict] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        counts = [
            (len(self.created), "created"),
            (len(self.updated), "updated"),
            (len(self.skipped), "skipped"),
            (len(self.conflicts), "conflicts"),
            (len(self.errors), "errors"),
        ]
        parts = [f"{n} {label}" for n, label in counts if n]
        return ", ".join(parts) if parts else "No changes"


class SyncEngine:
    """Runs sync passes between *db* and *adapter*."""

    def __init__(self, adapter: TrackerAdapter, db: RTMDatabase) -> None:
        self.adapter = adapter
        self.db = db

    def _linked(self) -> dict[str, str]:
        """external_id -> req_id for every requirement already linked."""
        return {req.external_id: req.req_id for req in self.db if req.external_id}

    async def _fetch(self, result: SyncResult) -> list[ExternalItem] | None:
        try:
            items = await self.adapter.fetch_items()
        except RTMXError as e:
            logger.error("Fetching items from %s failed: %s", self.adapter.name, e.message)
            result.errors.append(SyncError(id="", error=e.message))
            return None
        logger.info("Fetched %d items from %s", len(items), self.adapter.name)
        return items

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def pull(self, dry_run: bool = False) -> SyncResult:
        result = SyncResult()
        items = await self._fetch(result)
        if items is None:
            return result

        linked = self._linked()
        for item in items:
            req_id = linked.get(item.external_id)
            if req_id is not None:
                remote_status = self.adapter.map_status_to_rtmx(item.status)
                req = self.db.get(req_id)
                if remote_status is req.status:
                    result.skipped.append(item.external_id)
                    continue
                logger.info("%s status %s -> %s", req_id, req.status, remote_status)
                if not dry_run:
                    self.db.update(req_id, {"status": remote_status})
                result.updated.append(req_id)
            elif item.requirement_id and item.requirement_id in self.db:
                logger.info("Linking %s to %s", item.requirement_id, item.external_id)
                if not dry_run:
                    self.db.update(item.requirement_id, {"external_id": item.external_id})
                result.updated.append(item.requirement_id)
            elif item.requirement_id:
                # References a requirement this database does not have.
                result.skipped.append(item.external_id)
            else:
                logger.info("Import candidate: [%s] %s", item.external_id, item.title[:50])
                result.created.append(item.external_id)
        return result

    async def push(self, dry_run: bool = False) -> SyncResult:
        result = SyncResult()
        for req in self.db.all():
            if req.external_id:
                if dry_run:
                    logger.info("Would update %s -> %s", req.req_id, req.external_id)
                    result.updated.append(req.req_id)
                elif await self.adapter.update_item(req.external_id, req):
                    result.updated.append(req.req_id)
                else:
                    result.errors.append(SyncError(id=req.req_id, error="update failed"))
                continue

            if dry_run:
                logger.info("Would export %s", req.req_id)
                result.created.append(req.req_id)
                continue
            try:
                external_id = await self.adapter.create_item(req)
            except RTMXError as e:
                logger.error("Failed to export %s: %s", req.req_id, e.message)
                result.errors.append(SyncError(id=req.req_id, error=e.message))
                continue
            self.db.update(req.req_id, {"external_id": external_id})
            result.created.append(req.req_id)
        return result

    async def bidirectional(
        self, conflict_resolution: str = MANUAL, dry_run: bool = False
    ) -> SyncResult:
        """Reconcile linked pairs, then report unlinked items on both sides.

        Unlinked remote items are listed in ``created`` as import
        candidates; unlinked requirements are listed in ``skipped`` as
        export candidates.  Neither is acted upon.
        """
        if conflict_resolution not in CONFLICT_POLICIES:
            raise ValidationFailedError(
                f"unknown conflict resolution {conflict_resolution!r}",
                field="conflict_resolution",
                value=conflict_resolution,
            )
        result = SyncResult()
        items = await self._fetch(result)
        if items is None:
            return result

        remote = {item.external_id: item for item in items}
        for req in self.db.all():
            item = remote.pop(req.external_id, None) if req.external_id else None
            if item is None:
                result.skipped.append(req.req_id)
                continue

            remote_status = self.adapter.map_status_to_rtmx(item.status)
            if remote_status is req.status:
                result.skipped.append(req.req_id)
            elif conflict_resolution == PREFER_LOCAL:
                if dry_run or await self.adapter.update_item(item.external_id, req):
                    result.updated.append(req.req_id)
                else:
                    result.errors.append(SyncError(id=req.req_id, error="update failed"))
            elif conflict_resolution == PREFER_REMOTE:
                if not dry_run:
                    self.db.update(req.req_id, {"status": remote_status})
                result.updated.append(req.req_id)
            else:
                result.conflicts.append(
                    SyncConflict(
                        id=req.req_id,
                        reason=f"Status conflict: {req.status} vs {remote_status}",
                    )
                )

        result.created.extend(remote)
        return result
