"""Run planner queries in parallel and fold their segments into one route."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from ...config import settings
from ...models.domain import PlanningInputSnapshot
from .models import RouteQuery

logger = logging.getLogger(__name__)

PathPlanner = Callable[[RouteQuery], Iterable[dict[str, Any]]]
# Caller-side write-back; returns False when the snapshot is no longer current
CommitFn = Callable[[PlanningInputSnapshot, dict[str, Any]], bool]


def empty_feature_collection() -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": []}


@dataclass(slots=True)
class ReconcileResult:
    route: dict[str, Any] = field(default_factory=empty_feature_collection)
    completed: int = 0
    failed: int = 0
    # Queries cut short by the abort token or a refused commit
    skipped: int = 0
    stale: bool = False


class RouteReconciler:
    """Dispatch queries to the path planner and accumulate segments in completion order.

    Every update goes through ``commit`` together with the snapshot the plan
    was started from. Once a commit is refused the run is treated as stale:
    the abort token is set, remaining segments are dropped and no further
    commits are attempted.
    """

    def __init__(self, planner: PathPlanner, max_workers: int | None = None) -> None:
        self.planner = planner
        self.max_workers = max_workers or settings.max_parallel_route_requests

    def _run_query(
        self,
        query: RouteQuery,
        snapshot: PlanningInputSnapshot,
        commit: CommitFn,
        abort: threading.Event,
        result: ReconcileResult,
        lock: threading.Lock,
    ) -> bool:
        """Fold one query's segments; False when the stream was cut short."""
        if abort.is_set():
            return False
        for segment in self.planner(query):
            with lock:
                if abort.is_set():
                    return False
                features = [*result.route["features"], segment]
                route = {"type": "FeatureCollection", "features": features}
                if not commit(snapshot, route):
                    logger.debug("Dropping route segment for stale snapshot %s", snapshot)
                    result.stale = True
                    abort.set()
                    return False
                result.route = route
        return True

    def run_plan(
        self,
        queries: Sequence[RouteQuery],
        snapshot: PlanningInputSnapshot,
        commit: CommitFn,
        abort: Optional[threading.Event] = None,
    ) -> ReconcileResult:
        abort = abort or threading.Event()
        result = ReconcileResult()
        lock = threading.Lock()
        if not queries:
            return result

        start_time = time.time()
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(queries))) as executor:
            future_to_query = {
                executor.submit(self._run_query, query, snapshot, commit, abort, result, lock): query
                for query in queries
            }
            for future in as_completed(future_to_query):
                query = future_to_query[future]
                try:
                    if future.result():
                        result.completed += 1
                    else:
                        result.skipped += 1
                except Exception as e:
                    # Segments of the other queries are kept
                    result.failed += 1
                    logger.warning(
                        f"Route query {query.mode.value} {query.origin} -> {query.target.lat_lng} failed: {e}"
                    )

        elapsed = time.time() - start_time
        if result.stale or result.skipped:
            logger.info(f"Route plan superseded after {elapsed:.2f}s; {result.skipped}/{len(queries)} queries skipped")
        elif result.failed:
            logger.warning(f"Partial route: {result.failed}/{len(queries)} queries failed ({elapsed:.2f}s)")
        else:
            logger.info(f"Completed {result.completed} route queries in {elapsed:.2f}s")
        return result
