"""Issue-tracker adapter contract."""

from __future__ import annotations

import logging
import re
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any

from rtmx.errors import ValidationFailedError
from rtmx.models import Requirement, Status
from rtmx.providers.base import Provider

logger = logging.getLogger(__name__)

# Deadlines in seconds.
CONNECTION_TIMEOUT = 10.0
ITEM_TIMEOUT = 10.0

REQUIREMENT_REF_RE = re.compile(r"(?:RTMX:|REQ-)\s*(REQ-[A-Z]+-\d+)")


def extract_requirement_id(text: str | None) -> str:
    """Return the requirement ID referenced in *text*, or ``""``."""
    if not text:
        return ""
    match = REQUIREMENT_REF_RE.search(text)
    return match.group(1) if match else ""


@dataclass
class ExternalItem:
    """An issue or ticket as seen by an adapter."""

    external_id: str
    title: str = ""
    description: str = ""
    status: str = ""
    labels: list[str] = field(default_factory=list)
    url: str = ""
    created_at: str = ""
    updated_at: str = ""
    assignee: str = ""
    priority: str = ""
    requirement_id: str = ""


def default_status_to_rtmx(external_status: str) -> Status:
    text = external_status.lower()
    if "done" in text or "closed" in text or "complete" in text:
        return Status.COMPLETE
    if "progress" in text or "review" in text:
        return Status.PARTIAL
    return Status.MISSING


def default_status_from_rtmx(status: Status) -> str:
    if status is Status.COMPLETE:
        return "Done"
    if status is Status.PARTIAL:
        return "In Progress"
    return "Open"


def format_summary(req: Requirement, limit: int = 80) -> str:
    """Issue title for *req*: ``[REQ-ID] text`` with the text cut at *limit*."""
    text = req.requirement_text
    if len(text) > limit:
        text = text[:limit]
    return f"[{req.req_id}] {text}"


def format_description(req: Requirement) -> str:
    """Issue body for *req*, ending with the back-reference line."""
    body = req.requirement_text
    if req.notes:
        body += f"\n\nNotes:\n{req.notes}"
    return f"{body}\n\n---\nRTMX: {req.req_id}"


class TrackerAdapter(Provider):
    """A provider that mirrors requirements into an external issue tracker.

    Status translation consults the configured ``status_mapping`` first
    (native status -> RTMX status text) and falls back to the default
    substring rules.  Mapping entries whose value does not parse as a
    status are ignored.
    """

    def _status_mapping(self) -> dict[str, str]:
        return getattr(self.config, "status_mapping", None) or {}

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether every connection parameter and credential is present."""

    @abstractmethod
    async def fetch_items(self, query: dict[str, Any] | None = None) -> list[ExternalItem]:
        """Fetch many items, filtered by a service-specific *query*."""

    @abstractmethod
    async def get_item(self, external_id: str) -> ExternalItem:
        """Fetch one item.  Raises ``NotFoundError`` when it does not exist."""

    @abstractmethod
    async def create_item(self, req: Requirement) -> str:
        """Create an item for *req* and return its external ID."""

    @abstractmethod
    async def update_item(self, external_id: str, req: Requirement) -> bool:
        """Push *req* onto an existing item.  Any failure yields ``False``."""

    def map_status_to_rtmx(self, external_status: str) -> Status:
        mapped = self._status_mapping().get(external_status)
        if mapped is not None:
            try:
                return Status.parse(mapped)
            except ValidationFailedError:
                logger.debug("Ignoring unparseable status mapping %r -> %r", external_status, mapped)
        return self._default_to_rtmx(external_status)

    def map_status_from_rtmx(self, status: Status) -> str:
        for external_status, mapped in self._status_mapping().items():
            try:
                if Status.parse(mapped) is status:
                    return external_status
            except ValidationFailedError:
                continue
        return self._default_from_rtmx(status)

    def _default_to_rtmx(self, external_status: str) -> Status:
        return default_status_to_rtmx(external_status)

    def _default_from_rtmx(self, status: Status) -> str:
        return default_status_from_rtmx(status)
