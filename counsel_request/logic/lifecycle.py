"""
Lifecycle Service

Owns the guardian/self-service mutations of a CounselRequest:

1. create            -> PENDING
2. request_recommendation  PENDING -> RECOMMENDED (oracle + ranker)
3. select_institution      RECOMMENDED -> MATCHED
4. start                   MATCHED -> IN_PROGRESS
5. complete                IN_PROGRESS -> COMPLETED
6. reject                  any open status -> REJECTED
7. delete                  PENDING only

Every mutation is load -> apply_transition -> save + history, serialized on
the row version.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from counsel_request.models import CounselRequestRecord
from .clock import SystemClock
from .constants import (
    CounselRequestStatus,
    ActorKind,
    MIN_PROFILE_TEXT_LENGTH,
    MAX_PROFILE_TEXT_LENGTH,
    REASON_RECOMMENDED,
    REASON_SELECTED,
    REASON_STARTED,
    REASON_COMPLETED,
    REASON_REJECTED,
)
from .contracts import (
    CounselRequestForm,
    CounselRequestSnapshot,
    NewCounselRequest,
    PaginatedCounselRequests,
    RecommendationResult,
    RecommendationView,
    TransitionCommand,
)
from .errors import (
    CounselRequestError,
    NotDeletable,
    InvalidTransition,
    InsufficientInformation,
)
from .forms import validate_form, searchable_fields, form_data_to_text
from .oracle_client import OracleClient
from .ranker import rank_candidates
from .status_table import apply_transition, ensure_self_service
from .unit_of_work import run_serialized, run_read
from . import repository as repo

logger = logging.getLogger(__name__)

S = CounselRequestStatus


class LifecycleService:
    """Self-service write path plus the read operations behind the public API."""

    def __init__(self, session_factory=None, oracle: Optional[OracleClient] = None, clock=None):
        self.session_factory = session_factory
        self.oracle = oracle or OracleClient()
        self.clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------

    def _commit_transition(
        self,
        db: Session,
        snapshot: CounselRequestSnapshot,
        command: TransitionCommand,
        default_reason: str,
        recommended_institution_ids=None,
    ) -> CounselRequestSnapshot:
        now = self.clock.now()
        try:
            updated = apply_transition(snapshot, command, now, recommended_institution_ids)
        except CounselRequestError as e:
            logger.warning(f"Rejected transition on {snapshot.id}: {e.message}")
            raise
        saved = repo.save_snapshot(db, snapshot, updated)
        repo.append_history(
            db,
            counsel_request_id=snapshot.id,
            from_status=snapshot.status,
            to_status=saved.status,
            reason=(command.reason or "").strip() or default_reason,
            changed_by=command.actor_id,
            actor_kind=ActorKind.SELF_SERVICE,
            changed_at=now,
        )
        logger.info(f"Counsel request {snapshot.id}: {snapshot.status.value} -> {saved.status.value}")
        return saved

    def _simple_transition(
        self,
        counsel_request_id: str,
        target: CounselRequestStatus,
        default_reason: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CounselRequestSnapshot:
        def work(db: Session) -> CounselRequestSnapshot:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            command = TransitionCommand(target=target, actor_id=actor_id, reason=reason)
            return self._commit_transition(db, snapshot, command, default_reason)

        return run_serialized(self.session_factory, counsel_request_id, work)

    # -------------------------------------------------------------------------
    # writes
    # -------------------------------------------------------------------------

    def create(self, new_request: NewCounselRequest) -> CounselRequestSnapshot:
        """Validate the intake form and store a PENDING request."""
        validate_form(new_request.form)
        now = self.clock.now()
        snapshot = CounselRequestSnapshot(
            id=str(uuid.uuid4()),
            child_id=new_request.child_id,
            guardian_id=new_request.guardian_id,
            status=S.PENDING,
            source=new_request.source,
            external_session_id=new_request.external_session_id,
            created_at=now,
            updated_at=now,
            version=1,
            **searchable_fields(new_request.form),
        )

        def work(db: Session) -> CounselRequestSnapshot:
            return repo.insert_request(db, snapshot)

        created = run_serialized(self.session_factory, snapshot.id, work)
        logger.info(f"Counsel request {created.id} created from {created.source} for child {created.child_id}")
        return created

    def update_form(self, counsel_request_id: str, form: CounselRequestForm) -> CounselRequestSnapshot:
        """Replace the intake form; only allowed while PENDING."""
        validate_form(form)

        def work(db: Session) -> CounselRequestSnapshot:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            if snapshot.status != S.PENDING:
                raise InvalidTransition(
                    snapshot.status, S.PENDING,
                    f"Form data can only be edited while PENDING (current: {snapshot.status.value})",
                )
            updated = snapshot.model_copy(update={**searchable_fields(form), "updated_at": self.clock.now()})
            return repo.save_snapshot(db, snapshot, updated)

        return run_serialized(self.session_factory, counsel_request_id, work)

    def request_recommendation(self, counsel_request_id: str, actor_id: Optional[str] = None) -> RecommendationResult:
        """
        Rank institutions for a PENDING request and move it to RECOMMENDED.

        The oracle is called outside any transaction. Rows and the status change
        are written together afterwards, so a failed or cancelled oracle call
        leaves the request PENDING with no recommendations.
        """
        scored = run_read(self.session_factory, lambda db: repo.load_or_raise(db, counsel_request_id))
        ensure_self_service(scored.status, S.RECOMMENDED)

        text = form_data_to_text(scored.form_data)
        if len(text) < MIN_PROFILE_TEXT_LENGTH:
            raise InsufficientInformation("The counsel request does not contain enough information to recommend institutions")
        text = text[:MAX_PROFILE_TEXT_LENGTH]

        candidates = self.oracle.score(text)
        ranked = rank_candidates(candidates)

        def work(db: Session) -> RecommendationResult:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            ids = [r.institution_id for r in ranked]
            command = TransitionCommand(target=S.RECOMMENDED, actor_id=actor_id)
            # status first so a request that moved on reports InvalidTransition
            ensure_self_service(snapshot.status, S.RECOMMENDED)
            if snapshot.version != scored.version:
                raise repo.StaleVersionError(snapshot.id, scored.version)
            self._commit_transition(db, snapshot, command, REASON_RECOMMENDED, ids)
            views = repo.replace_recommendations(db, snapshot.id, ranked, self.clock.now())
            return RecommendationResult(counsel_request_id=snapshot.id, recommendations=views)

        result = run_serialized(self.session_factory, counsel_request_id, work)
        logger.info(f"Stored {len(result.recommendations)} recommendations for {counsel_request_id}")
        return result

    def select_institution(
        self,
        counsel_request_id: str,
        institution_id: str,
        actor_id: Optional[str] = None,
    ) -> CounselRequestSnapshot:
        def work(db: Session) -> CounselRequestSnapshot:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            recommendations = repo.list_recommendations(db, counsel_request_id)
            command = TransitionCommand(
                target=S.MATCHED, actor_id=actor_id, institution_id=institution_id
            )
            saved = self._commit_transition(
                db, snapshot, command, REASON_SELECTED,
                [r.institution_id for r in recommendations],
            )
            repo.mark_selected(db, counsel_request_id, institution_id)
            return saved

        return run_serialized(self.session_factory, counsel_request_id, work)

    def start(self, counsel_request_id: str, actor_id: Optional[str] = None) -> CounselRequestSnapshot:
        return self._simple_transition(counsel_request_id, S.IN_PROGRESS, REASON_STARTED, actor_id)

    def complete(self, counsel_request_id: str, actor_id: Optional[str] = None) -> CounselRequestSnapshot:
        return self._simple_transition(counsel_request_id, S.COMPLETED, REASON_COMPLETED, actor_id)

    def reject(
        self,
        counsel_request_id: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CounselRequestSnapshot:
        return self._simple_transition(counsel_request_id, S.REJECTED, REASON_REJECTED, actor_id, reason)

    def delete(self, counsel_request_id: str) -> None:
        def work(db: Session) -> None:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            if snapshot.status != S.PENDING:
                raise NotDeletable(
                    f"Only PENDING requests can be deleted (current: {snapshot.status.value})"
                )
            repo.delete_pending_request(db, snapshot)

        run_serialized(self.session_factory, counsel_request_id, work)
        logger.info(f"Counsel request {counsel_request_id} deleted")

    # -------------------------------------------------------------------------
    # reads
    # -------------------------------------------------------------------------

    def get(self, counsel_request_id: str) -> CounselRequestSnapshot:
        return run_read(self.session_factory, lambda db: repo.load_or_raise(db, counsel_request_id))

    def get_recommendations(self, counsel_request_id: str) -> List[RecommendationView]:
        def work(db: Session) -> List[RecommendationView]:
            repo.load_or_raise(db, counsel_request_id)
            return repo.list_recommendations(db, counsel_request_id)

        return run_read(self.session_factory, work)

    def list_by_child(self, child_id: str) -> List[CounselRequestSnapshot]:
        return run_read(
            self.session_factory,
            lambda db: repo.list_where(db, CounselRequestRecord.child_id == child_id),
        )

    def list_by_guardian(self, guardian_id: str) -> List[CounselRequestSnapshot]:
        return run_read(
            self.session_factory,
            lambda db: repo.list_where(db, CounselRequestRecord.guardian_id == guardian_id),
        )

    def list_by_status(self, status: CounselRequestStatus) -> List[CounselRequestSnapshot]:
        return run_read(
            self.session_factory,
            lambda db: repo.list_where(db, CounselRequestRecord.status == S(status).value),
        )

    def list_paginated(self, page: int = 1, limit: int = 20) -> PaginatedCounselRequests:
        items, total = run_read(self.session_factory, lambda db: repo.paginate(db, [], page, limit))
        return PaginatedCounselRequests(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=(total + limit - 1) // limit,
        )
