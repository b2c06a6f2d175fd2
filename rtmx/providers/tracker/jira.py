"""Jira Cloud tracker adapter (REST v3)."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

from rtmx.config import JiraAdapterConfig
from rtmx.errors import MisconfiguredAdapterError, RTMXError
from rtmx.models import Requirement
from rtmx.providers.base import HealthStatus
from rtmx.providers.tracker.base import (
    CONNECTION_TIMEOUT,
    ITEM_TIMEOUT,
    ExternalItem,
    TrackerAdapter,
    extract_requirement_id,
    format_description,
    format_summary,
)
from rtmx.providers.tracker.http import (
    EnvLookup,
    HTTPRequester,
    default_client,
    default_getenv,
    require_field,
    resolve_env,
    send_json,
    with_deadline,
)

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 60.0
PAGE_SIZE = 50

# Atlassian Document Format nodes that end a line when flattened.
_ADF_BLOCKS = frozenset({"paragraph", "heading", "listItem", "codeBlock", "blockquote", "rule"})


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text in a single-paragraph ADF document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}],
    }


def adf_to_text(node: Any) -> str:
    """Flatten an ADF document (or plain string) to text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(child) for child in node)
    if not isinstance(node, dict):
        return ""
    kind = node.get("type")
    if kind == "text":
        return node.get("text", "")
    if kind == "hardBreak":
        return "\n"
    inner = adf_to_text(node.get("content"))
    if kind in _ADF_BLOCKS:
        return inner + "\n"
    return inner


class JiraAdapter(TrackerAdapter):
    """Mirror requirements into the tickets of one Jira project.

    Authenticates with basic auth (account email + API token).  Ticket
    keys are the external IDs.
    """

    def __init__(
        self,
        config: JiraAdapterConfig | dict[str, Any],
        client: HTTPRequester | None = None,
        getenv: EnvLookup = default_getenv,
    ) -> None:
        if isinstance(config, dict):
            config = JiraAdapterConfig.model_validate(config)
        super().__init__(config)
        if not config.enabled:
            raise MisconfiguredAdapterError("Jira adapter is not enabled", adapter="jira")
        token = resolve_env(getenv, config.token_env or "JIRA_API_TOKEN", "Jira API token")
        email = resolve_env(getenv, config.email_env or "JIRA_EMAIL", "Jira email")
        self._auth = base64.b64encode(f"{email}:{token}".encode()).decode()
        self._owns_client = client is None
        self._client = client if client is not None else default_client()

    @property
    def name(self) -> str:
        return "jira"

    def is_configured(self) -> bool:
        return bool(self.config.enabled and self.config.server and self.config.project and self._auth)

    async def cleanup(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    @property
    def _server(self) -> str:
        return self.config.server.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Basic {self._auth}", "Accept": "application/json"}

    async def _call(self, method: str, path: str, timeout: float, **kwargs: Any) -> Any:
        return await send_json(
            self._client,
            method,
            f"{self._server}/rest/api/3/{path}",
            timeout=timeout,
            headers=self._headers(),
            **kwargs,
        )

    def build_jql(self, query: dict[str, Any] | None = None) -> str:
        """JQL for *query*.  An explicit ``jql`` entry is used verbatim."""
        query = query or {}
        if query.get("jql"):
            return query["jql"]
        parts = [f"project = {self.config.project}"]
        if self.config.issue_type:
            parts.append(f"issuetype = '{self.config.issue_type}'")
        if self.config.jql_filter:
            parts.append(f"({self.config.jql_filter})")
        if query.get("status"):
            parts.append(f"status = '{query['status']}'")
        labels = query.get("labels") or []
        if isinstance(labels, str):
            labels = [labels]
        parts.extend(f"labels = '{label}'" for label in labels)
        return " AND ".join(parts)

    def _fields(self, req: Requirement) -> dict[str, Any]:
        return {
            "summary": format_summary(req),
            "description": text_to_adf(format_description(req)),
        }

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def test_connection(self) -> HealthStatus:
        started = time.monotonic()
        try:
            project = await with_deadline(
                self._call("GET", f"project/{self.config.project}", CONNECTION_TIMEOUT),
                CONNECTION_TIMEOUT,
                "Jira connection test",
            )
        except RTMXError as e:
            return HealthStatus(healthy=False, message=f"Connection failed: {e.message}")
        latency = int((time.monotonic() - started) * 1000)
        project = project or {}
        return HealthStatus(
            healthy=True,
            message=f"Connected to {project.get('name', '')} ({project.get('key', self.config.project)})",
            latency_ms=latency,
        )

    async def fetch_items(self, query: dict[str, Any] | None = None) -> list[ExternalItem]:
        return await with_deadline(self._fetch(self.build_jql(query)), FETCH_TIMEOUT, "Jira search")

    async def _fetch(self, jql: str) -> list[ExternalItem]:
        items = []
        start_at = 0
        while True:
            page = await self._call(
                "GET",
                "search",
                FETCH_TIMEOUT,
                params={"jql": jql, "startAt": start_at, "maxResults": PAGE_SIZE},
            )
            issues = (page or {}).get("issues") or []
            items.extend(self._issue_to_item(issue) for issue in issues)
            if len(issues) < PAGE_SIZE:
                break
            start_at += PAGE_SIZE
        logger.debug("Fetched %d issues with JQL %r", len(items), jql)
        return items

    async def get_item(self, external_id: str) -> ExternalItem:
        issue = await with_deadline(
            self._call("GET", f"issue/{external_id}", ITEM_TIMEOUT),
            ITEM_TIMEOUT,
            f"Jira get issue {external_id}",
        )
        return self._issue_to_item(issue)

    async def create_item(self, req: Requirement) -> str:
        fields = {
            "project": {"key": self.config.project},
            **self._fields(req),
            "issuetype": {"name": self.config.issue_type or "Task"},
        }
        if self.config.labels:
            fields["labels"] = list(self.config.labels)
        created = await with_deadline(
            self._call("POST", "issue", ITEM_TIMEOUT, json={"fields": fields}, expected=(201,)),
            ITEM_TIMEOUT,
            f"Jira create issue for {req.req_id}",
        )
        key = require_field(created, "key", f"Jira create issue for {req.req_id}")
        logger.info("Created Jira issue %s for %s", key, req.req_id)
        return key

    async def update_item(self, external_id: str, req: Requirement) -> bool:
        try:
            return await with_deadline(
                self._update(external_id, req), ITEM_TIMEOUT, f"Jira update issue {external_id}"
            )
        except RTMXError as e:
            logger.warning("Failed to update Jira issue %s: %s", external_id, e.message)
            return False

    async def _update(self, external_id: str, req: Requirement) -> bool:
        await self._call(
            "PUT",
            f"issue/{external_id}",
            ITEM_TIMEOUT,
            json={"fields": self._fields(req)},
            expected=(200, 204),
        )
        return await self._transition(external_id, self.map_status_from_rtmx(req.status))

    async def _transition(self, external_id: str, target_status: str) -> bool:
        """Move the issue to *target_status* if a transition leads there.

        No matching transition is not a failure: the issue may already be
        in that status, or the workflow may not allow the move.
        """
        path = f"issue/{external_id}/transitions"
        available = await self._call("GET", path, ITEM_TIMEOUT)
        target = target_status.lower()
        for transition in (available or {}).get("transitions") or []:
            transition_id = transition.get("id")
            if not transition_id:
                continue
            if (transition.get("to") or {}).get("name", "").lower() == target:
                await self._call(
                    "POST",
                    path,
                    ITEM_TIMEOUT,
                    json={"transition": {"id": transition_id}},
                    expected=(200, 204),
                )
                return True
        logger.debug("No transition to %r for %s", target_status, external_id)
        return True

    def _issue_to_item(self, issue: dict[str, Any]) -> ExternalItem:
        key = require_field(issue, "key", "Jira issue")
        fields = issue.get("fields") or {}
        raw_description = fields.get("description")
        if isinstance(raw_description, str):
            description = raw_description
        else:
            description = adf_to_text(raw_description).rstrip("\n")
        return ExternalItem(
            external_id=key,
            title=fields.get("summary") or "",
            description=description,
            status=(fields.get("status") or {}).get("name", ""),
            labels=list(fields.get("labels") or []),
            url=f"{self._server}/browse/{key}",
            created_at=fields.get("created") or "",
            updated_at=fields.get("updated") or "",
            assignee=(fields.get("assignee") or {}).get("displayName", ""),
            priority=(fields.get("priority") or {}).get("name", ""),
            requirement_id=extract_requirement_id(description),
        )
