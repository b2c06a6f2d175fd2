"""Shared test fixtures for RTMX."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from rtmx.db import RTMDatabase
from rtmx.errors import IOFailureError
from rtmx.models import Priority, Requirement, Status, StringSet
from rtmx.providers.base import HealthStatus
from rtmx.providers.tracker.base import ExternalItem, TrackerAdapter


# --- Helpers ---


def make_req(req_id: str, status: Status = Status.MISSING, deps: str = "", **fields) -> Requirement:
    return Requirement(
        req_id=req_id,
        category=fields.pop("category", "CORE"),
        requirement_text=fields.pop("requirement_text", f"Requirement {req_id}"),
        status=status,
        dependencies=StringSet.parse(deps),
        **fields,
    )


def build_db(*reqs: Requirement) -> RTMDatabase:
    db = RTMDatabase()
    for req in reqs:
        db.add(req)
    db.mark_clean()
    return db


class RecordingTransport:
    """Routes requests to a handler and keeps every request it saw."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


class FakeTracker(TrackerAdapter):
    """In-memory tracker.  Items live in ``items`` keyed by external ID."""

    def __init__(self, config=None, items=(), healthy=True, fail_updates=(), fetch_error=False):
        super().__init__(config if config is not None else {})
        self.items = {item.external_id: item for item in items}
        self.healthy = healthy
        self.fail_updates = set(fail_updates)
        self.fetch_error = fetch_error
        self.created: list[str] = []
        self.updated: list[str] = []
        self.cleaned_up = False

    @property
    def name(self) -> str:
        return "fake"

    def is_configured(self) -> bool:
        return True

    async def cleanup(self) -> None:
        self.cleaned_up = True

    async def test_connection(self) -> HealthStatus:
        if not self.healthy:
            return HealthStatus(healthy=False, message="Connection failed: offline")
        return HealthStatus(healthy=True, message="Connected to fake")

    async def fetch_items(self, query=None):
        if self.fetch_error:
            raise IOFailureError("tracker unreachable")
        return list(self.items.values())

    async def get_item(self, external_id):
        return self.items[external_id]

    async def create_item(self, req):
        external_id = f"T-{len(self.items) + 1}"
        self.items[external_id] = ExternalItem(
            external_id=external_id,
            title=req.requirement_text,
            status=self.map_status_from_rtmx(req.status),
            requirement_id=req.req_id,
        )
        self.created.append(req.req_id)
        return external_id

    async def update_item(self, external_id, req):
        if external_id in self.fail_updates:
            return False
        self.items[external_id].status = self.map_status_from_rtmx(req.status)
        self.updated.append(external_id)
        return True


# --- Fixtures ---


@pytest.fixture
def sample_db():
    """Five requirements over two categories and phases."""
    return build_db(
        make_req("REQ-CLI-001", Status.COMPLETE, category="CLI", phase=1, priority=Priority.HIGH,
                 test_module="tests/test_cli.py", test_function="test_init"),
        make_req("REQ-CLI-002", Status.PARTIAL, "REQ-CLI-001", category="CLI", phase=1,
                 assignee="alice"),
        make_req("REQ-DATA-001", Status.MISSING, category="DATA", phase=2, priority=Priority.P0),
        make_req("REQ-DATA-002", Status.MISSING, "REQ-DATA-001", category="DATA", phase=2,
                 priority=Priority.LOW, effort_weeks=1.5),
        make_req("REQ-DATA-003", Status.NOT_STARTED, "REQ-CLI-002|other-repo:REQ-X-1",
                 category="DATA", phase=2),
    )


@pytest.fixture
def blocking_db():
    """A <- B <- D, A <- C <- D with C complete, E isolated."""
    return build_db(
        make_req("A"),
        make_req("B", deps="A"),
        make_req("C", Status.COMPLETE, deps="A"),
        make_req("D", deps="B|C"),
        make_req("E"),
    )


@pytest.fixture
def cycle_db():
    """A -> C -> B -> A."""
    return build_db(
        make_req("A", deps="C"),
        make_req("B", deps="A"),
        make_req("C", deps="B"),
    )


@pytest.fixture
def fake_env():
    env = {
        "GITHUB_TOKEN": "gh-secret",
        "JIRA_API_TOKEN": "jira-secret",
        "JIRA_EMAIL": "dev@example.com",
    }
    return env.get
