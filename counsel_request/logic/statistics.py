"""
Statistics Aggregator

Read-only figures derived from counsel request snapshots and their status
history: status distribution, conversion funnel, time-to-milestone averages,
completion/rejection rates and the daily trend. Nothing here writes.
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from .clock import SystemClock
from .constants import (
    CounselRequestStatus,
    FUNNEL_STAGES,
    FUNNEL_CREATED,
    DEFAULT_STATISTICS_WINDOW_DAYS,
    PIPELINE_ORDER,
)
from .contracts import (
    CounselRequestSnapshot,
    CounselRequestStatistics,
    ConversionFunnelStage,
    PeriodStatistics,
    StatusCount,
)
from .unit_of_work import run_read
from . import repository as repo

S = CounselRequestStatus


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def conversion_rate(count: int, previous_count: int) -> float:
    """
    Stage-over-stage conversion in percent, one decimal.
    A stage with no prior cohort converts at 100.
    """
    if previous_count == 0:
        return 100.0
    return math.floor(count / previous_count * 1000 + 0.5) / 10


def status_distribution(snapshots: Iterable[CounselRequestSnapshot]) -> List[StatusCount]:
    counts: Dict[CounselRequestStatus, int] = {status: 0 for status in CounselRequestStatus}
    for snapshot in snapshots:
        counts[snapshot.status] += 1
    return [StatusCount(status=status, count=count) for status, count in counts.items()]


def _first_reached(history) -> Dict[str, Dict[str, datetime]]:
    """counsel_request_id -> {to_status: first changed_at}."""
    reached: Dict[str, Dict[str, datetime]] = defaultdict(dict)
    for entry in history:
        seen = reached[entry.counsel_request_id]
        if entry.to_status not in seen or entry.changed_at < seen[entry.to_status]:
            seen[entry.to_status] = entry.changed_at
    return reached


def conversion_funnel(snapshots: List[CounselRequestSnapshot], history) -> List[ConversionFunnelStage]:
    """
    Count requests that ever reached each funnel stage.

    CREATED counts every request. A request that reached a pipeline stage
    (in its history or current status) also counts for every earlier stage,
    so an admin skip never pushes a stage above its predecessor.
    """
    reached = _first_reached(history)
    members: Dict[str, Set[str]] = {stage: set() for stage in FUNNEL_STAGES}
    for snapshot in snapshots:
        members[FUNNEL_CREATED].add(snapshot.id)
        stages = set(reached.get(snapshot.id, {}))
        stages.add(snapshot.status.value)
        furthest = max(
            (PIPELINE_ORDER[S(stage)] for stage in stages if S(stage) in PIPELINE_ORDER),
            default=0,
        )
        for stage in FUNNEL_STAGES[1:]:
            if PIPELINE_ORDER[S(stage)] <= furthest:
                members[stage].add(snapshot.id)

    funnel: List[ConversionFunnelStage] = []
    previous: Optional[int] = None
    for stage in FUNNEL_STAGES:
        count = len(members[stage])
        rate = 100.0 if previous is None else conversion_rate(count, previous)
        funnel.append(ConversionFunnelStage(stage=stage, count=count, conversion_rate=rate))
        previous = count
    return funnel


def _average_elapsed(
    snapshots: List[CounselRequestSnapshot],
    history,
    milestone: CounselRequestStatus,
    unit: timedelta,
) -> Optional[float]:
    """Mean time from creation to first reaching `milestone`; None if nobody did."""
    reached = _first_reached(history)
    spans = []
    for snapshot in snapshots:
        at = reached.get(snapshot.id, {}).get(milestone.value)
        if at is not None:
            spans.append((at - snapshot.created_at) / unit)
    if not spans:
        return None
    return round_half_up(sum(spans) / len(spans))


def average_processing_days(snapshots, history) -> Optional[float]:
    return _average_elapsed(snapshots, history, S.COMPLETED, timedelta(days=1))


def average_matching_hours(snapshots, history) -> Optional[float]:
    return _average_elapsed(snapshots, history, S.MATCHED, timedelta(hours=1))


def daily_trend(snapshots: List[CounselRequestSnapshot]) -> List[PeriodStatistics]:
    """Requests created per day, with how many of that day's cohort completed or were rejected."""
    by_day: Dict[str, PeriodStatistics] = {}
    for snapshot in snapshots:
        period = snapshot.created_at.strftime("%Y-%m-%d")
        bucket = by_day.setdefault(period, PeriodStatistics(period=period))
        bucket.created += 1
        if snapshot.status == S.COMPLETED:
            bucket.completed += 1
        elif snapshot.status == S.REJECTED:
            bucket.rejected += 1
    return [by_day[period] for period in sorted(by_day)]


def _share(count: int, total: int) -> float:
    if total == 0:
        return 0.0
    return math.floor(count / total * 1000 + 0.5) / 10


def compute_statistics(
    snapshots: List[CounselRequestSnapshot],
    history,
    start: datetime,
    end: datetime,
) -> CounselRequestStatistics:
    total = len(snapshots)
    by_status = status_distribution(snapshots)
    counts = {item.status: item.count for item in by_status}
    trend = daily_trend(snapshots)

    return CounselRequestStatistics(
        start_date=start,
        end_date=end,
        total_counsel_requests=total,
        by_status=by_status,
        conversion_funnel=conversion_funnel(snapshots, history),
        daily_trend=trend,
        average_processing_days=average_processing_days(snapshots, history),
        average_matching_hours=average_matching_hours(snapshots, history),
        completion_rate=_share(counts[S.COMPLETED], total),
        rejection_rate=_share(counts[S.REJECTED], total),
        period_new_requests=sum(item.created for item in trend),
        period_completed_requests=sum(item.completed for item in trend),
    )


class StatisticsService:
    """Loads the cohort for a date range and hands it to the pure aggregators."""

    def __init__(self, session_factory=None, clock=None):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    def get_counsel_request_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> CounselRequestStatistics:
        end = end_date or self.clock.now()
        start = start_date or end - timedelta(days=DEFAULT_STATISTICS_WINDOW_DAYS)

        def work(db: Session):
            snapshots = repo.requests_created_between(db, start, end)
            history = repo.list_history_for(db, [s.id for s in snapshots])
            return compute_statistics(snapshots, history, start, end)

        return run_read(self.session_factory, work)
