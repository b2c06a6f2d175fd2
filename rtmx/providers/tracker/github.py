"""GitHub Issues tracker adapter (REST v3)."""

from __future__ import annotations

import logging
import time
from typing import Any

from rtmx.config import GitHubAdapterConfig
from rtmx.errors import MisconfiguredAdapterError, RTMXError
from rtmx.models import Requirement, Status
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

API_URL = "https://api.github.com"
FETCH_TIMEOUT = 30.0
PER_PAGE = 100

_PRIORITY_LABELS = {
    "priority:critical": "CRITICAL",
    "priority:high": "HIGH",
    "priority:medium": "MEDIUM",
    "priority:low": "LOW",
    "p0": "CRITICAL",
    "p1": "HIGH",
    "p2": "MEDIUM",
    "p3": "LOW",
}


def priority_from_labels(labels: list[str]) -> str:
    """First recognised priority label, normalised; ``""`` if none."""
    for label in labels:
        priority = _PRIORITY_LABELS.get(label.lower())
        if priority:
            return priority
    return ""


class GitHubAdapter(TrackerAdapter):
    """Mirror requirements into the issues of one GitHub repository.

    Issue numbers are the external IDs.  Pull requests returned by the
    issues endpoint are skipped.
    """

    def __init__(
        self,
        config: GitHubAdapterConfig | dict[str, Any],
        client: HTTPRequester | None = None,
        getenv: EnvLookup = default_getenv,
    ) -> None:
        if isinstance(config, dict):
            config = GitHubAdapterConfig.model_validate(config)
        super().__init__(config)
        if not config.enabled:
            raise MisconfiguredAdapterError("GitHub adapter is not enabled", adapter="github")
        self._token = resolve_env(getenv, config.token_env or "GITHUB_TOKEN", "GitHub token")
        self._owns_client = client is None
        self._client = client if client is not None else default_client()

    @property
    def name(self) -> str:
        return "github"

    def is_configured(self) -> bool:
        return bool(self.config.enabled and self.config.repo and self._token)

    async def cleanup(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def _repo_url(self, path: str = "") -> str:
        url = f"{API_URL}/repos/{self.config.repo}"
        return f"{url}/{path}" if path else url

    async def _call(self, method: str, path: str, timeout: float, **kwargs: Any) -> Any:
        return await send_json(
            self._client,
            method,
            self._repo_url(path),
            timeout=timeout,
            headers=self._headers(),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def test_connection(self) -> HealthStatus:
        started = time.monotonic()
        try:
            repo = await with_deadline(
                self._call("GET", "", CONNECTION_TIMEOUT),
                CONNECTION_TIMEOUT,
                "GitHub connection test",
            )
        except RTMXError as e:
            return HealthStatus(healthy=False, message=f"Connection failed: {e.message}")
        latency = int((time.monotonic() - started) * 1000)
        full_name = (repo or {}).get("full_name") or self.config.repo
        return HealthStatus(healthy=True, message=f"Connected to {full_name}", latency_ms=latency)

    async def fetch_items(self, query: dict[str, Any] | None = None) -> list[ExternalItem]:
        """Fetch issues, following pages until a short page.

        *query* may carry ``state`` (default ``all``) and ``labels`` (a
        string or a list of label names).
        """
        return await with_deadline(self._fetch(query or {}), FETCH_TIMEOUT, "GitHub fetch")

    async def _fetch(self, query: dict[str, Any]) -> list[ExternalItem]:
        params: dict[str, Any] = {"state": query.get("state") or "all", "per_page": PER_PAGE}
        labels = query.get("labels")
        if labels:
            params["labels"] = labels if isinstance(labels, str) else ",".join(labels)

        items = []
        page = 1
        while True:
            batch = await self._call(
                "GET", "issues", FETCH_TIMEOUT, params={**params, "page": page}
            )
            batch = batch or []
            for issue in batch:
                if "pull_request" in issue:
                    continue
                items.append(self._issue_to_item(issue))
            if len(batch) < PER_PAGE:
                break
            page += 1
        logger.debug("Fetched %d issues from %s", len(items), self.config.repo)
        return items

    async def get_item(self, external_id: str) -> ExternalItem:
        issue = await with_deadline(
            self._call("GET", f"issues/{external_id}", ITEM_TIMEOUT),
            ITEM_TIMEOUT,
            f"GitHub get issue {external_id}",
        )
        return self._issue_to_item(issue)

    async def create_item(self, req: Requirement) -> str:
        payload = {
            "title": format_summary(req),
            "body": format_description(req),
            "labels": [self.config.labels.requirement] if self.config.labels.requirement else [],
        }
        issue = await with_deadline(
            self._call("POST", "issues", ITEM_TIMEOUT, json=payload, expected=(201,)),
            ITEM_TIMEOUT,
            f"GitHub create issue for {req.req_id}",
        )
        external_id = str(require_field(issue, "number", f"GitHub issue for {req.req_id}"))
        logger.info("Created GitHub issue #%s for %s", external_id, req.req_id)
        return external_id

    async def update_item(self, external_id: str, req: Requirement) -> bool:
        payload = {
            "title": format_summary(req),
            "body": format_description(req),
            "state": self.map_status_from_rtmx(req.status),
        }
        try:
            await with_deadline(
                self._call("PATCH", f"issues/{external_id}", ITEM_TIMEOUT, json=payload),
                ITEM_TIMEOUT,
                f"GitHub update issue {external_id}",
            )
        except RTMXError as e:
            logger.warning("Failed to update GitHub issue #%s: %s", external_id, e.message)
            return False
        return True

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _default_from_rtmx(self, status: Status) -> str:
        return "closed" if status is Status.COMPLETE else "open"

    def _issue_to_item(self, issue: dict[str, Any]) -> ExternalItem:
        number = require_field(issue, "number", "GitHub issue")
        body = issue.get("body") or ""
        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in issue.get("labels") or []
        ]
        assignee = issue.get("assignee") or {}
        return ExternalItem(
            external_id=str(number),
            title=issue.get("title") or "",
            description=body,
            status=issue.get("state") or "",
            labels=labels,
            url=issue.get("html_url") or "",
            created_at=issue.get("created_at") or "",
            updated_at=issue.get("updated_at") or "",
            assignee=assignee.get("login", ""),
            priority=priority_from_labels(labels),
            requirement_id=extract_requirement_id(body),
        )
