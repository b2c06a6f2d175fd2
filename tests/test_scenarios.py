"""End-to-end scenarios across the store, codec, graph and tracker mapping."""

from __future__ import annotations

from types import SimpleNamespace

from conftest import FakeTracker, build_db, make_req

from rtmx.db import dumps, loads
from rtmx.graph import DependencyGraph
from rtmx.models import Priority, Status
from rtmx.providers.tracker.base import extract_requirement_id


def test_load_and_round_trip():
    text = (
        "req_id,category,requirement_text,status,priority,phase,dependencies\n"
        "REQ-001,CLI,First,COMPLETE,HIGH,1,\n"
        "REQ-002,DATA,Second,MISSING,MEDIUM,2,REQ-001\n"
    )
    db = loads(text)
    assert len(db) == 2
    assert db.get("REQ-002").dependencies == {"REQ-001"}
    assert db.get("REQ-001").priority is Priority.HIGH

    reloaded = loads(dumps(db))
    for req in db:
        assert reloaded.get(req.req_id) == req


def test_completion_percentage():
    db = build_db(
        make_req("A", Status.COMPLETE),
        make_req("B", Status.COMPLETE),
        make_req("C", Status.PARTIAL),
        make_req("D", Status.MISSING),
    )
    assert db.completion_percentage() == 62.5


def test_blocking(blocking_db):
    g = DependencyGraph(blocking_db)
    assert sorted(g.roots()) == ["A", "E"]
    assert sorted(g.leaves()) == ["D", "E"]
    assert g.is_blocked("B")
    assert g.is_blocked("D")
    assert sorted(g.unblocked_incomplete()) == ["A", "E"]


def test_cycle(cycle_db):
    g = DependencyGraph(cycle_db)
    cycles = g.find_cycles()
    assert len(cycles) == 1
    assert set(cycles[0]) == {"A", "B", "C"}
    assert g.topological_sort() is None


def test_external_requirement_extraction():
    assert extract_requirement_id("RTMX: REQ-FOO-123\nMore content") == "REQ-FOO-123"
    assert extract_requirement_id("No requirement here") == ""


def test_default_status_mapping():
    adapter = FakeTracker(SimpleNamespace(status_mapping={}))
    assert adapter.map_status_to_rtmx("Done") is Status.COMPLETE
    assert adapter.map_status_to_rtmx("In Progress") is Status.PARTIAL
    assert adapter.map_status_to_rtmx("Todo") is Status.MISSING
    assert adapter.map_status_from_rtmx(Status.COMPLETE) == "Done"
