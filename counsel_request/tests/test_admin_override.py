"""
Tests for the admin force-status override and admin reads.
"""

from datetime import date

import pytest

from counsel_request.logic import repository as repo
from counsel_request.logic.constants import CounselRequestStatus, ActorKind, ADMIN_ALLOWED_TARGETS
from counsel_request.logic.contracts import AdminCounselRequestQuery, CounselRequestForm, NewCounselRequest
from counsel_request.logic.errors import (
    ForbiddenTransition,
    ImmutableTerminalState,
    InvalidJustification,
    InvalidTransition,
    NoOpTransition,
    NotFound,
)
from counsel_request.models import StatusHistoryRecord
from db import session_scope

S = CounselRequestStatus
REASON = "Guardian requested a different center"


def history_of(session_factory, counsel_request_id):
    with session_scope(session_factory) as db:
        return repo.list_history(db, counsel_request_id)


def test_rollback_from_in_progress_clears_match(admin_service, lifecycle, in_progress, session_factory):
    result = admin_service.force_status(in_progress.id, S.MATCHED, REASON, "admin-1")
    assert result.previous_status == S.IN_PROGRESS
    assert result.new_status == S.MATCHED

    after = lifecycle.get(in_progress.id)
    assert after.status == S.MATCHED
    assert after.matched_institution_id is None
    assert after.matched_counselor_id is None
    assert not any(r.selected for r in lifecycle.get_recommendations(in_progress.id))

    last = history_of(session_factory, in_progress.id)[-1]
    assert last.from_status == S.IN_PROGRESS
    assert last.to_status == S.MATCHED
    assert last.reason == REASON
    assert last.changed_by == "admin-1"
    assert last.actor_kind == ActorKind.ADMIN


def test_reject_keeps_recommendations(admin_service, lifecycle, recommended):
    admin_service.force_status(recommended.id, S.REJECTED, "Duplicate of another request", "admin-1")
    assert lifecycle.get(recommended.id).status == S.REJECTED
    assert len(lifecycle.get_recommendations(recommended.id)) == 3


def test_completed_cannot_be_changed(admin_service, lifecycle, in_progress, session_factory):
    lifecycle.complete(in_progress.id)
    before = lifecycle.get(in_progress.id)
    with pytest.raises(ImmutableTerminalState):
        admin_service.force_status(in_progress.id, S.PENDING, REASON, "admin-1")

    after = lifecycle.get(in_progress.id)
    assert after.status == S.COMPLETED
    assert after.version == before.version
    assert len(history_of(session_factory, in_progress.id)) == 4


def test_completed_cannot_be_forced(admin_service, in_progress):
    with pytest.raises(ForbiddenTransition):
        admin_service.force_status(in_progress.id, S.COMPLETED, REASON, "admin-1")


def test_same_status_is_no_op(admin_service, pending, session_factory):
    with pytest.raises(NoOpTransition):
        admin_service.force_status(pending.id, S.PENDING, REASON, "admin-1")
    assert history_of(session_factory, pending.id) == []


def test_rejected_to_rejected_is_no_op(admin_service, lifecycle, pending):
    lifecycle.reject(pending.id)
    with pytest.raises(NoOpTransition):
        admin_service.force_status(pending.id, S.REJECTED, REASON, "admin-1")


@pytest.mark.parametrize("reason", ["", "   ", "short", "x" * 501])
def test_bad_justification(admin_service, pending, reason):
    with pytest.raises(InvalidJustification):
        admin_service.force_status(pending.id, S.REJECTED, reason, "admin-1")


def test_justification_is_trimmed(admin_service, pending, session_factory):
    admin_service.force_status(pending.id, S.REJECTED, "  " + REASON + "  ", "admin-1")
    assert history_of(session_factory, pending.id)[-1].reason == REASON


def test_reopen_rejected_request(admin_service, lifecycle, pending):
    lifecycle.reject(pending.id)
    admin_service.force_status(pending.id, S.PENDING, "Rejected by mistake, reopening", "admin-1")
    assert lifecycle.get(pending.id).status == S.PENDING


def test_admin_can_force_recommended_without_rows(admin_service, lifecycle, pending):
    admin_service.force_status(pending.id, S.RECOMMENDED, REASON, "admin-1")
    assert lifecycle.get(pending.id).status == S.RECOMMENDED
    assert lifecycle.get_recommendations(pending.id) == []


def test_one_history_entry_per_change(admin_service, pending, session_factory):
    admin_service.force_status(pending.id, S.IN_PROGRESS, REASON, "admin-1")
    admin_service.force_status(pending.id, S.REJECTED, REASON, "admin-2")
    history = history_of(session_factory, pending.id)
    assert [(h.from_status, h.to_status, h.changed_by) for h in history] == [
        (S.PENDING, S.IN_PROGRESS, "admin-1"),
        (S.IN_PROGRESS, S.REJECTED, "admin-2"),
    ]


def test_guardian_flow_resumes_after_rollback(admin_service, lifecycle, in_progress):
    admin_service.force_status(in_progress.id, S.RECOMMENDED, REASON, "admin-1")
    with pytest.raises(InvalidTransition):
        lifecycle.start(in_progress.id)
    matched = lifecycle.select_institution(in_progress.id, "inst-c")
    assert matched.matched_institution_id == "inst-c"


def test_unknown_request(admin_service):
    with pytest.raises(NotFound):
        admin_service.force_status("nope", S.PENDING, REASON, "admin-1")


# =============================================================================
# READS
# =============================================================================

def test_list_filters_and_search(admin_service, lifecycle, new_request, form_data, clock):
    first = lifecycle.create(new_request(guardian_id="guardian-1"))
    clock.advance(days=2)
    form_data["coverInfo"]["centerName"] = "Maple Family Center"
    form_data["basicInfo"]["childInfo"]["name"] = "Lee Jun"
    second = lifecycle.create(NewCounselRequest(
        child_id="child-2", guardian_id="guardian-2", form=CounselRequestForm.model_validate(form_data)
    ))
    lifecycle.reject(second.id)

    by_search = admin_service.list_requests(AdminCounselRequestQuery(search="maple"))
    assert [r.id for r in by_search.items] == [second.id]

    by_child_name = admin_service.list_requests(AdminCounselRequestQuery(search="Minji"))
    assert [r.id for r in by_child_name.items] == [first.id]

    by_status = admin_service.list_requests(AdminCounselRequestQuery(status=S.REJECTED))
    assert by_status.total == 1

    by_guardian = admin_service.list_requests(AdminCounselRequestQuery(guardian_id="guardian-1"))
    assert [r.id for r in by_guardian.items] == [first.id]

    by_day = admin_service.list_requests(AdminCounselRequestQuery(end_date=date(2026, 3, 2)))
    assert [r.id for r in by_day.items] == [first.id]

    paged = admin_service.list_requests(AdminCounselRequestQuery(page=2, limit=1))
    assert paged.total == 2
    assert paged.total_pages == 2
    assert [r.id for r in paged.items] == [first.id]


def test_detail_includes_history(admin_service, recommended):
    admin_service.force_status(recommended.id, S.PENDING, REASON, "admin-1")
    detail = admin_service.get_detail(recommended.id)
    assert detail.counsel_request.status == S.PENDING
    assert len(detail.recommendations) == 3
    assert [h.to_status for h in detail.status_history] == [S.RECOMMENDED, S.PENDING]


ADMIN_PAIRS = [
    (current, target)
    for current in S
    if current != S.COMPLETED
    for target in ADMIN_ALLOWED_TARGETS
    if target != current
]


@pytest.mark.parametrize("current,target", ADMIN_PAIRS)
def test_every_allowed_admin_move(admin_service, lifecycle, pending, session_factory, current, target):
    if current != S.PENDING:
        admin_service.force_status(pending.id, current, "Moving into the starting status", "admin-0")
    before = history_of(session_factory, pending.id)

    result = admin_service.force_status(pending.id, target, REASON, "admin-1")

    assert result.previous_status == current
    assert result.new_status == target
    assert lifecycle.get(pending.id).status == target
    after = history_of(session_factory, pending.id)
    assert len(after) == len(before) + 1
    assert (after[-1].from_status, after[-1].to_status) == (current, target)
    assert after[-1].changed_by == "admin-1"


@pytest.mark.parametrize("reason", [None, ""])
def test_missing_justification(admin_service, pending, reason):
    with pytest.raises(InvalidJustification):
        admin_service.force_status(pending.id, S.REJECTED, reason, "admin-1")


def test_completed_check_precedes_missing_justification(admin_service, lifecycle, in_progress):
    lifecycle.complete(in_progress.id)
    with pytest.raises(ImmutableTerminalState):
        admin_service.force_status(in_progress.id, S.PENDING, None, "admin-1")


def test_long_admin_id_is_recorded(admin_service, pending, session_factory):
    admin_id = "admin|" + "x" * 120
    admin_service.force_status(pending.id, S.REJECTED, REASON, admin_id)
    assert history_of(session_factory, pending.id)[-1].changed_by == admin_id
    # SQLite ignores VARCHAR lengths, so check the declared width too
    assert StatusHistoryRecord.__table__.c.changed_by.type.length >= len(admin_id)
