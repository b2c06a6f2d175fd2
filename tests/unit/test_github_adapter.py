"""Unit tests for rtmx.providers.tracker.github."""

from __future__ import annotations

import httpx
import pytest
from conftest import RecordingTransport, build_db, make_req

from rtmx.engine.sync import SyncEngine
from rtmx.errors import IOFailureError, MisconfiguredAdapterError, NotFoundError, RemoteError
from rtmx.models import Requirement, Status
from rtmx.providers.tracker.github import GitHubAdapter, priority_from_labels

REPO_URL = "https://api.github.com/repos/acme/widgets"


def issue(number, state="open", body="", labels=(), **extra):
    data = {
        "number": number,
        "title": f"Issue {number}",
        "body": body,
        "state": state,
        "html_url": f"https://github.com/acme/widgets/issues/{number}",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z",
        "labels": [{"name": name} for name in labels],
        "assignee": None,
    }
    data.update(extra)
    return data


def config(**overrides):
    base = {"enabled": True, "repo": "acme/widgets", "labels": {"requirement": "requirement"}}
    base.update(overrides)
    return base


def make_adapter(handler, fake_env, **overrides):
    transport = RecordingTransport(handler)
    adapter = GitHubAdapter(config(**overrides), client=transport.client(), getenv=fake_env)
    return adapter, transport


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_disabled_rejected(self, fake_env):
        with pytest.raises(MisconfiguredAdapterError, match="not enabled"):
            GitHubAdapter(config(enabled=False), getenv=fake_env)

    def test_missing_token_rejected(self):
        with pytest.raises(MisconfiguredAdapterError, match="GITHUB_TOKEN"):
            GitHubAdapter(config(), getenv={}.get)

    def test_custom_token_env(self):
        adapter = GitHubAdapter(
            config(token_env="MY_TOKEN"),
            client=RecordingTransport(lambda r: httpx.Response(200)).client(),
            getenv={"MY_TOKEN": "t"}.get,
        )
        assert adapter.is_configured()

    def test_unconfigured_without_repo(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(200), fake_env, repo="")
        assert adapter.name == "github"
        assert not adapter.is_configured()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class TestConnection:
    async def test_success(self, fake_env):
        adapter, transport = make_adapter(
            lambda r: httpx.Response(200, json={"full_name": "acme/widgets"}), fake_env
        )
        health = await adapter.test_connection()
        assert health.healthy
        assert health.message == "Connected to acme/widgets"
        request = transport.requests[0]
        assert str(request.url) == REPO_URL
        assert request.headers["Authorization"] == "token gh-secret"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"

    async def test_failure_is_reported_not_raised(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(401), fake_env)
        health = await adapter.test_connection()
        assert not health.healthy
        assert "HTTP 401" in health.message


class TestFetch:
    async def test_fetch_maps_issues_and_skips_pull_requests(self, fake_env):
        payload = [
            issue(1, body="RTMX: REQ-CLI-001", labels=["requirement", "P1"],
                  assignee={"login": "octocat"}),
            issue(2, state="closed"),
            issue(3, pull_request={"url": "..."}),
        ]
        adapter, transport = make_adapter(lambda r: httpx.Response(200, json=payload), fake_env)
        items = await adapter.fetch_items()

        assert [i.external_id for i in items] == ["1", "2"]
        first = items[0]
        assert first.requirement_id == "REQ-CLI-001"
        assert first.labels == ["requirement", "P1"]
        assert first.priority == "HIGH"
        assert first.assignee == "octocat"
        assert first.url.endswith("/issues/1")
        assert items[1].status == "closed"

        params = transport.requests[0].url.params
        assert params["state"] == "all"
        assert params["per_page"] == "100"

    async def test_fetch_follows_pages(self, fake_env):
        def handler(request):
            page = int(request.url.params["page"])
            if page == 1:
                return httpx.Response(200, json=[issue(n) for n in range(1, 101)])
            return httpx.Response(200, json=[issue(101)])

        adapter, transport = make_adapter(handler, fake_env)
        items = await adapter.fetch_items()
        assert len(items) == 101
        assert len(transport.requests) == 2

    async def test_fetch_query_filters(self, fake_env):
        adapter, transport = make_adapter(lambda r: httpx.Response(200, json=[]), fake_env)
        await adapter.fetch_items({"state": "open", "labels": ["requirement", "bug"]})
        params = transport.requests[0].url.params
        assert params["state"] == "open"
        assert params["labels"] == "requirement,bug"

    async def test_fetch_error_raises(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(502), fake_env)
        with pytest.raises(RemoteError):
            await adapter.fetch_items()


class TestItems:
    async def test_get_item(self, fake_env):
        adapter, transport = make_adapter(lambda r: httpx.Response(200, json=issue(7)), fake_env)
        item = await adapter.get_item("7")
        assert item.external_id == "7"
        assert str(transport.requests[0].url) == f"{REPO_URL}/issues/7"

    async def test_get_item_not_found(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(404), fake_env)
        with pytest.raises(NotFoundError):
            await adapter.get_item("999")

    async def test_create_item(self, fake_env):
        adapter, transport = make_adapter(lambda r: httpx.Response(201, json=issue(42)), fake_env)
        req = Requirement(req_id="REQ-CLI-001", requirement_text="Init command")
        assert await adapter.create_item(req) == "42"

        request = transport.requests[0]
        assert request.method == "POST"
        body = transport.bodies()[0]
        assert body["title"] == "[REQ-CLI-001] Init command"
        assert body["body"].endswith("RTMX: REQ-CLI-001")
        assert body["labels"] == ["requirement"]

    async def test_create_requires_201(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(200, json=issue(42)), fake_env)
        with pytest.raises(RemoteError):
            await adapter.create_item(Requirement(req_id="REQ-CLI-001"))

    async def test_create_with_empty_body_raises(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(201), fake_env)
        with pytest.raises(IOFailureError, match="number"):
            await adapter.create_item(Requirement(req_id="REQ-CLI-001"))

    async def test_get_item_without_number_raises(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(200, json={"title": "x"}), fake_env)
        with pytest.raises(IOFailureError):
            await adapter.get_item("7")

    async def test_push_keeps_going_after_empty_create(self, fake_env):
        responses = iter([httpx.Response(201), httpx.Response(201, json=issue(8))])
        adapter, _ = make_adapter(lambda r: next(responses), fake_env)
        db = build_db(make_req("REQ-A-1"), make_req("REQ-A-2"))

        result = await SyncEngine(adapter, db).push()
        assert [e.id for e in result.errors] == ["REQ-A-1"]
        assert result.created == ["REQ-A-2"]
        assert db.get("REQ-A-1").external_id == ""
        assert db.get("REQ-A-2").external_id == "8"

    async def test_update_item_sets_state(self, fake_env):
        adapter, transport = make_adapter(lambda r: httpx.Response(200, json=issue(5)), fake_env)
        req = Requirement(req_id="REQ-CLI-001", status=Status.COMPLETE)
        assert await adapter.update_item("5", req) is True
        assert transport.requests[0].method == "PATCH"
        assert transport.bodies()[0]["state"] == "closed"

    async def test_update_failure_returns_false(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(422), fake_env)
        assert await adapter.update_item("5", Requirement(req_id="REQ-CLI-001")) is False


class TestMapping:
    def test_state_mapping(self, fake_env):
        adapter, _ = make_adapter(lambda r: httpx.Response(200), fake_env)
        assert adapter.map_status_to_rtmx("closed") is Status.COMPLETE
        assert adapter.map_status_to_rtmx("open") is Status.MISSING
        assert adapter.map_status_from_rtmx(Status.COMPLETE) == "closed"
        assert adapter.map_status_from_rtmx(Status.PARTIAL) == "open"

    @pytest.mark.parametrize(
        "labels, expected",
        [
            (["bug", "priority:critical"], "CRITICAL"),
            (["P2"], "MEDIUM"),
            (["p3", "p0"], "LOW"),
            (["bug"], ""),
        ],
    )
    def test_priority_from_labels(self, labels, expected):
        assert priority_from_labels(labels) == expected


async def test_cleanup_closes_owned_client(fake_env):
    adapter = GitHubAdapter(config(), getenv=fake_env)
    await adapter.cleanup()
    assert adapter._client.is_closed
