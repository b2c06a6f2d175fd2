"""Unit tests for rtmx.models.requirement."""

from __future__ import annotations

from datetime import date

from conftest import build_db, make_req

from rtmx.models import Priority, Requirement, Status, StringSet, is_cross_repo


class TestDefaults:
    def test_defaults(self):
        req = Requirement(req_id="REQ-1")
        assert req.status is Status.MISSING
        assert req.priority is Priority.MEDIUM
        assert req.phase == 0
        assert req.effort_weeks == 0.0
        assert len(req.dependencies) == 0
        assert req.extra == {}

    def test_collections_not_shared(self):
        a = Requirement(req_id="A")
        b = Requirement(req_id="B")
        a.dependencies.add("X")
        a.extra["k"] = "v"
        assert len(b.dependencies) == 0
        assert b.extra == {}


class TestPredicates:
    def test_has_test_needs_module_and_function(self):
        req = Requirement(req_id="R", test_module="tests/test_x.py")
        assert not req.has_test
        req.test_function = "test_x"
        assert req.has_test

    def test_complete(self):
        req = Requirement(req_id="R", status=Status.COMPLETE)
        assert req.is_complete
        assert not req.is_incomplete

    def test_high_priority(self):
        assert Requirement(req_id="R", priority=Priority.P0).is_high_priority

    def test_cross_repo(self):
        assert is_cross_repo("other-repo:REQ-1")
        assert not is_cross_repo("REQ-1")


class TestBlocking:
    def test_blocked_by_incomplete_dependency(self):
        db = build_db(make_req("A"), make_req("B", deps="A"))
        assert db.get("B").is_blocked(db)
        assert db.get("B").blocking_deps(db) == ["A"]

    def test_not_blocked_when_dependency_complete(self):
        db = build_db(make_req("A", Status.COMPLETE), make_req("B", deps="A"))
        assert not db.get("B").is_blocked(db)

    def test_skips_cross_repo_and_unknown_ids(self):
        db = build_db(make_req("B", deps="repo:A|GHOST"))
        assert not db.get("B").is_blocked(db)


class TestDates:
    def test_started_date_set_once(self):
        req = Requirement(req_id="R")
        req.set_started_date(date(2024, 1, 2))
        req.set_started_date(date(2024, 5, 6))
        assert req.started_date == "2024-01-02"

    def test_completed_date_overwrites(self):
        req = Requirement(req_id="R", completed_date="2023-01-01")
        req.set_completed_date(date(2024, 3, 4))
        assert req.completed_date == "2024-03-04"


class TestClone:
    def test_clone_is_deep(self):
        req = Requirement(req_id="R", dependencies=StringSet(["A"]), extra={"k": "v"})
        clone = req.clone()
        clone.dependencies.add("B")
        clone.extra["k"] = "changed"
        assert req.dependencies == {"A"}
        assert req.extra == {"k": "v"}
        assert clone == clone.clone()
