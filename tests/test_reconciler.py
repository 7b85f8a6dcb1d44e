import threading

from src.gatesolve.models.domain import ElementType, PlanningInputSnapshot, PointOfInterest
from src.gatesolve.services.routing.models import RouteMode, RouteQuery
from src.gatesolve.services.routing.reconciler import RouteReconciler

SNAPSHOT = PlanningInputSnapshot(origin=(60.17, 24.94), destination_id=None, entrance_set_id=1, unloading_place_preference_id=None)


def _query(target_id: int) -> RouteQuery:
    target = PointOfInterest(id=target_id, type=ElementType.NODE, lat=60.1705, lon=24.9415)
    return RouteQuery(origin=(60.17, 24.94), target=target, mode=RouteMode.DEFAULT)


def _segment(target_id: int, part: str = "route") -> dict:
    return {"type": "Feature", "geometry": None, "properties": {"target_id": target_id, "part": part}}


class RecordingCommit:
    def __init__(self, accept: bool = True):
        self.accept = accept
        self.routes = []

    def __call__(self, snapshot, route):
        assert snapshot == SNAPSHOT
        self.routes.append(route)
        return self.accept


def test_run_plan_accumulates_all_segments():
    def planner(query):
        yield _segment(query.target.id)
        yield _segment(query.target.id, "connector")

    commit = RecordingCommit()
    result = RouteReconciler(planner, max_workers=3).run_plan([_query(1), _query(2), _query(3)], SNAPSHOT, commit)

    assert result.completed == 3
    assert result.failed == 0
    assert result.skipped == 0
    assert not result.stale
    assert len(result.route["features"]) == 6
    # Every commit carries the full accumulation so far
    assert [len(route["features"]) for route in commit.routes] == [1, 2, 3, 4, 5, 6]
    assert {feature["properties"]["target_id"] for feature in result.route["features"]} == {1, 2, 3}


def test_run_plan_keeps_segments_of_successful_queries():
    def planner(query):
        if query.target.id == 2:
            raise ConnectionError("planner unreachable")
        yield _segment(query.target.id)

    result = RouteReconciler(planner, max_workers=2).run_plan([_query(1), _query(2), _query(3)], SNAPSHOT, RecordingCommit())

    assert result.completed == 2
    assert result.failed == 1
    assert sorted(feature["properties"]["target_id"] for feature in result.route["features"]) == [1, 3]


def test_run_plan_stops_after_refused_commit():
    def planner(query):
        yield _segment(query.target.id)
        yield _segment(query.target.id, "connector")

    commit = RecordingCommit(accept=False)
    result = RouteReconciler(planner, max_workers=1).run_plan([_query(1), _query(2)], SNAPSHOT, commit)

    assert result.stale
    assert result.route["features"] == []
    assert len(commit.routes) == 1
    # Neither stream ran to its end
    assert result.completed == 0
    assert result.skipped == 2


def test_run_plan_skips_queries_when_already_aborted():
    abort = threading.Event()
    abort.set()
    calls = []

    def planner(query):
        calls.append(query)
        yield _segment(query.target.id)

    result = RouteReconciler(planner, max_workers=1).run_plan([_query(1)], SNAPSHOT, RecordingCommit(), abort=abort)

    assert calls == []
    assert result.route["features"] == []
    assert result.completed == 0
    assert result.skipped == 1


def test_run_plan_without_queries():
    result = RouteReconciler(lambda query: iter(()), max_workers=1).run_plan([], SNAPSHOT, RecordingCommit())

    assert result.completed == 0
    assert result.route == {"type": "FeatureCollection", "features": []}


def test_run_plan_counts_stream_cut_by_abort_as_skipped():
    abort = threading.Event()

    def planner(query):
        yield _segment(query.target.id)
        # A newer cycle starts while this stream is still producing
        abort.set()
        yield _segment(query.target.id, "connector")

    result = RouteReconciler(planner, max_workers=1).run_plan([_query(1)], SNAPSHOT, RecordingCommit(), abort=abort)

    assert result.completed == 0
    assert result.skipped == 1
    assert len(result.route["features"]) == 1
