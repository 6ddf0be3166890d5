"""
Repository

All SQL for the counsel request core. Functions take an open Session and
never commit; the calling service owns the transaction. Aggregate writes are
guarded by the optimistic `version` column.
"""

import uuid
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.orm import Session

from counsel_request.models import CounselRequestRecord, RecommendationRecord, StatusHistoryRecord
from .constants import CounselRequestStatus, ActorKind
from .errors import NotFound
from .contracts import (
    CounselRequestSnapshot,
    RankedRecommendation,
    RecommendationView,
    StatusHistoryView,
    AdminCounselRequestQuery,
)


class StaleVersionError(Exception):
    """Another writer bumped the row version since it was read."""

    def __init__(self, counsel_request_id: str, expected_version: int):
        super().__init__(f"{counsel_request_id} is no longer at version {expected_version}")
        self.counsel_request_id = counsel_request_id
        self.expected_version = expected_version


_SNAPSHOT_COLUMNS = (
    "child_id",
    "guardian_id",
    "status",
    "form_data",
    "center_name",
    "child_name",
    "care_type",
    "request_date",
    "matched_institution_id",
    "matched_counselor_id",
    "source",
    "external_session_id",
    "created_at",
    "updated_at",
)


def _column_values(snapshot: CounselRequestSnapshot) -> Dict:
    values = {name: getattr(snapshot, name) for name in _SNAPSHOT_COLUMNS}
    values["status"] = snapshot.status.value
    values["care_type"] = snapshot.care_type.value
    return values


def to_snapshot(record: CounselRequestRecord) -> CounselRequestSnapshot:
    return CounselRequestSnapshot.model_validate(record)


# =============================================================================
# AGGREGATE
# =============================================================================

def get_snapshot(db: Session, counsel_request_id: str) -> Optional[CounselRequestSnapshot]:
    record = db.get(CounselRequestRecord, counsel_request_id, populate_existing=True)
    return to_snapshot(record) if record else None


def load_or_raise(db: Session, counsel_request_id: str) -> CounselRequestSnapshot:
    snapshot = get_snapshot(db, counsel_request_id)
    if snapshot is None:
        raise NotFound(counsel_request_id)
    return snapshot


def insert_request(db: Session, snapshot: CounselRequestSnapshot) -> CounselRequestSnapshot:
    record = CounselRequestRecord(id=snapshot.id, version=snapshot.version, **_column_values(snapshot))
    db.add(record)
    db.flush()
    return snapshot


def save_snapshot(
    db: Session,
    before: CounselRequestSnapshot,
    after: CounselRequestSnapshot,
) -> CounselRequestSnapshot:
    """
    Write `after` only if the row is still at `before.version`.

    Raises:
        StaleVersionError: Zero rows matched the version guard
    """
    next_version = before.version + 1
    result = db.execute(
        update(CounselRequestRecord)
        .where(CounselRequestRecord.id == before.id)
        .where(CounselRequestRecord.version == before.version)
        .values(version=next_version, **_column_values(after))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StaleVersionError(before.id, before.version)
    return after.model_copy(update={"version": next_version})


def delete_pending_request(db: Session, snapshot: CounselRequestSnapshot) -> None:
    """Delete the request and its recommendations, guarded by version and PENDING."""
    db.execute(
        delete(RecommendationRecord)
        .where(RecommendationRecord.counsel_request_id == snapshot.id)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(
        delete(CounselRequestRecord)
        .where(CounselRequestRecord.id == snapshot.id)
        .where(CounselRequestRecord.version == snapshot.version)
        .where(CounselRequestRecord.status == CounselRequestStatus.PENDING.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StaleVersionError(snapshot.id, snapshot.version)


# =============================================================================
# STATUS HISTORY
# =============================================================================

def append_history(
    db: Session,
    counsel_request_id: str,
    from_status: CounselRequestStatus,
    to_status: CounselRequestStatus,
    reason: str,
    changed_by: Optional[str],
    actor_kind: ActorKind,
    changed_at: datetime,
) -> StatusHistoryRecord:
    entry = StatusHistoryRecord(
        counsel_request_id=counsel_request_id,
        from_status=from_status.value,
        to_status=to_status.value,
        reason=reason,
        changed_by=changed_by,
        actor_kind=actor_kind.value,
        changed_at=changed_at,
    )
    db.add(entry)
    db.flush()
    return entry


def list_history(db: Session, counsel_request_id: str) -> List[StatusHistoryView]:
    rows = db.execute(
        select(StatusHistoryRecord)
        .where(StatusHistoryRecord.counsel_request_id == counsel_request_id)
        .order_by(StatusHistoryRecord.changed_at, StatusHistoryRecord.id)
    ).scalars().all()
    return [StatusHistoryView.model_validate(r) for r in rows]


def list_history_for(db: Session, counsel_request_ids: Iterable[str]) -> List[StatusHistoryRecord]:
    ids = list(counsel_request_ids)
    if not ids:
        return []
    return list(db.execute(
        select(StatusHistoryRecord)
        .where(StatusHistoryRecord.counsel_request_id.in_(ids))
        .order_by(StatusHistoryRecord.changed_at, StatusHistoryRecord.id)
    ).scalars().all())


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

def list_recommendations(db: Session, counsel_request_id: str) -> List[RecommendationView]:
    rows = db.execute(
        select(RecommendationRecord)
        .where(RecommendationRecord.counsel_request_id == counsel_request_id)
        .order_by(RecommendationRecord.rank)
    ).scalars().all()
    return [RecommendationView.model_validate(r) for r in rows]


def replace_recommendations(
    db: Session,
    counsel_request_id: str,
    ranked: List[RankedRecommendation],
    created_at: datetime,
) -> List[RecommendationView]:
    """Drop any previous cycle and store the new ranked set."""
    db.execute(
        delete(RecommendationRecord)
        .where(RecommendationRecord.counsel_request_id == counsel_request_id)
        .execution_options(synchronize_session=False)
    )
    records = [
        RecommendationRecord(
            id=str(uuid.uuid4()),
            counsel_request_id=counsel_request_id,
            institution_id=r.institution_id,
            score=r.score,
            reason=r.reason,
            rank=r.rank,
            is_high_score=r.is_high_score,
            selected=False,
            created_at=created_at,
        )
        for r in ranked
    ]
    db.add_all(records)
    db.flush()
    return [RecommendationView.model_validate(r) for r in records]


def mark_selected(db: Session, counsel_request_id: str, institution_id: str) -> None:
    """Flag exactly one recommendation as selected."""
    db.execute(
        update(RecommendationRecord)
        .where(RecommendationRecord.counsel_request_id == counsel_request_id)
        .values(selected=(RecommendationRecord.institution_id == institution_id))
        .execution_options(synchronize_session=False)
    )


def clear_selection(db: Session, counsel_request_id: str) -> None:
    db.execute(
        update(RecommendationRecord)
        .where(RecommendationRecord.counsel_request_id == counsel_request_id)
        .values(selected=False)
        .execution_options(synchronize_session=False)
    )


# =============================================================================
# QUERIES
# =============================================================================

def list_where(db: Session, *criteria) -> List[CounselRequestSnapshot]:
    rows = db.execute(
        select(CounselRequestRecord)
        .where(*criteria)
        .order_by(CounselRequestRecord.created_at.desc())
    ).scalars().all()
    return [to_snapshot(r) for r in rows]


def paginate(db: Session, criteria: list, page: int, limit: int) -> Tuple[List[CounselRequestSnapshot], int]:
    total = db.execute(
        select(func.count()).select_from(CounselRequestRecord).where(*criteria)
    ).scalar_one()
    rows = db.execute(
        select(CounselRequestRecord)
        .where(*criteria)
        .order_by(CounselRequestRecord.created_at.desc(), CounselRequestRecord.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return [to_snapshot(r) for r in rows], total


def admin_criteria(query: AdminCounselRequestQuery) -> list:
    """Translate admin list filters into SQL criteria."""
    criteria = []
    if query.status:
        criteria.append(CounselRequestRecord.status == query.status.value)
    if query.care_type:
        criteria.append(CounselRequestRecord.care_type == query.care_type.value)
    if query.guardian_id:
        criteria.append(CounselRequestRecord.guardian_id == query.guardian_id)
    if query.institution_id:
        criteria.append(CounselRequestRecord.matched_institution_id == query.institution_id)
    if query.counselor_id:
        criteria.append(CounselRequestRecord.matched_counselor_id == query.counselor_id)
    if query.start_date:
        criteria.append(CounselRequestRecord.created_at >= datetime.combine(query.start_date, time.min))
    if query.end_date:
        # inclusive of the whole end day
        criteria.append(
            CounselRequestRecord.created_at < datetime.combine(query.end_date + timedelta(days=1), time.min)
        )
    if query.search and query.search.strip():
        pattern = f"%{query.search.strip()}%"
        criteria.append(or_(
            CounselRequestRecord.center_name.ilike(pattern),
            CounselRequestRecord.child_name.ilike(pattern),
        ))
    return criteria


def requests_created_between(db: Session, start: datetime, end: datetime) -> List[CounselRequestSnapshot]:
    return list_where(
        db,
        CounselRequestRecord.created_at >= start,
        CounselRequestRecord.created_at <= end,
    )
