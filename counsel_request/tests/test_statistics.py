"""
Tests for the statistics aggregator.
"""

from datetime import datetime, timedelta

import pytest

from counsel_request.logic import repository as repo
from counsel_request.logic.constants import CounselRequestStatus
from counsel_request.logic.statistics import (
    compute_statistics,
    conversion_funnel,
    conversion_rate,
    round_half_up,
)
from db import session_scope

S = CounselRequestStatus


@pytest.mark.parametrize("count,previous,expected", [
    (0, 0, 100.0),
    (3, 0, 100.0),
    (2, 3, 66.7),
    (1, 16, 6.3),
    (1, 8, 12.5),
    (5, 5, 100.0),
])
def test_conversion_rate(count, previous, expected):
    assert conversion_rate(count, previous) == expected


def test_round_half_up():
    assert round_half_up(2.25) == 2.3
    assert round_half_up(2.35) == 2.4
    assert round_half_up(0.04) == 0.0


def test_empty_range():
    start = datetime(2026, 3, 1)
    end = datetime(2026, 3, 31)
    stats = compute_statistics([], [], start, end)
    assert stats.total_counsel_requests == 0
    assert all(stage.count == 0 for stage in stats.conversion_funnel)
    assert all(stage.conversion_rate == 100.0 for stage in stats.conversion_funnel)
    assert stats.average_processing_days is None
    assert stats.average_matching_hours is None
    assert stats.completion_rate == 0.0
    assert {item.status for item in stats.by_status} == set(S)


def test_funnel_counts_requests_that_passed_through(lifecycle, admin_service, new_request, session_factory, clock):
    first = lifecycle.create(new_request())
    lifecycle.request_recommendation(first.id)
    lifecycle.select_institution(first.id, "inst-a")
    # rolled back below MATCHED, still counted as having matched
    admin_service.force_status(first.id, S.RECOMMENDED, "Guardian changed their mind", "admin-1")

    second = lifecycle.create(new_request(child_id="child-2"))
    lifecycle.request_recommendation(second.id)

    lifecycle.create(new_request(child_id="child-3"))

    with session_scope(session_factory) as db:
        snapshots = repo.list_where(db)
        history = repo.list_history_for(db, [s.id for s in snapshots])
        funnel = {stage.stage: stage for stage in conversion_funnel(snapshots, history)}

    assert funnel["CREATED"].count == 3
    assert funnel["RECOMMENDED"].count == 2
    assert funnel["RECOMMENDED"].conversion_rate == 66.7
    assert funnel["MATCHED"].count == 1
    assert funnel["MATCHED"].conversion_rate == 50.0
    assert funnel["IN_PROGRESS"].count == 0
    assert funnel["IN_PROGRESS"].conversion_rate == 0.0
    assert funnel["COMPLETED"].count == 0
    assert funnel["COMPLETED"].conversion_rate == 100.0


def test_service_figures(lifecycle, statistics_service, new_request, clock):
    start = clock.now()

    done = lifecycle.create(new_request())
    lifecycle.request_recommendation(done.id)
    clock.advance(hours=3)
    lifecycle.select_institution(done.id, "inst-a")
    clock.advance(hours=21)
    lifecycle.start(done.id)
    clock.advance(days=2)
    lifecycle.complete(done.id)

    clock.advance(hours=1)
    cancelled = lifecycle.create(new_request(child_id="child-2"))
    lifecycle.reject(cancelled.id)

    lifecycle.create(new_request(child_id="child-3"))
    lifecycle.create(new_request(child_id="child-4"))

    stats = statistics_service.get_counsel_request_statistics(start, clock.now())
    counts = {item.status: item.count for item in stats.by_status}

    assert stats.total_counsel_requests == 4
    assert counts[S.COMPLETED] == 1
    assert counts[S.REJECTED] == 1
    assert counts[S.PENDING] == 2
    assert stats.completion_rate == 25.0
    assert stats.rejection_rate == 25.0
    # only the completed request counts toward the averages
    assert stats.average_processing_days == 3.0
    assert stats.average_matching_hours == 3.0
    assert stats.period_new_requests == 4
    assert [p.period for p in stats.daily_trend] == ["2026-03-02", "2026-03-05"]
    assert stats.daily_trend[0].completed == 1
    assert stats.daily_trend[1].rejected == 1


def test_default_window_is_last_30_days(lifecycle, statistics_service, new_request, clock):
    old = lifecycle.create(new_request())
    clock.advance(days=31)
    recent = lifecycle.create(new_request(child_id="child-2"))

    stats = statistics_service.get_counsel_request_statistics()
    assert stats.total_counsel_requests == 1
    assert stats.end_date == clock.now()
    assert stats.start_date == clock.now() - timedelta(days=30)
    assert old.id != recent.id


def test_funnel_is_cumulative_across_admin_skips(lifecycle, admin_service, new_request, session_factory):
    skipped = lifecycle.create(new_request())
    admin_service.force_status(skipped.id, S.IN_PROGRESS, "Counseling arranged by phone", "admin-1")
    lifecycle.create(new_request(child_id="child-2"))

    with session_scope(session_factory) as db:
        snapshots = repo.list_where(db)
        history = repo.list_history_for(db, [s.id for s in snapshots])
        funnel = {stage.stage: stage for stage in conversion_funnel(snapshots, history)}

    assert funnel["CREATED"].count == 2
    assert funnel["RECOMMENDED"].count == 1
    assert funnel["MATCHED"].count == 1
    assert funnel["IN_PROGRESS"].count == 1
    assert funnel["IN_PROGRESS"].conversion_rate == 100.0
    assert all(stage.conversion_rate <= 100.0 for stage in funnel.values())
