"""
Admin Override Service

The operator's remediation path into the CounselRequest aggregate. Uses the
admin half of the status table: any open status can be forced to any allowed
target except COMPLETED, always with a written justification that lands in
the status history.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .clock import SystemClock
from .constants import CounselRequestStatus, ActorKind
from .contracts import (
    AdminCounselRequestDetail,
    AdminCounselRequestQuery,
    PaginatedCounselRequests,
    StatusChangeResult,
    TransitionCommand,
)
from .errors import CounselRequestError
from .status_table import apply_transition, clears_match, validate_admin_override
from .unit_of_work import run_serialized, run_read
from . import repository as repo

logger = logging.getLogger(__name__)


class AdminOverrideService:
    """Force-status plus the admin list/detail reads."""

    def __init__(self, session_factory=None, clock=None):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    def force_status(
        self,
        counsel_request_id: str,
        new_status: CounselRequestStatus,
        reason: Optional[str],
        admin_id: str,
    ) -> StatusChangeResult:
        """
        Force a request into `new_status`.

        Never calls the oracle. Recommendation rows are only touched to drop
        the selected flag when the match itself is cleared.

        Raises:
            NotFound, ImmutableTerminalState, ForbiddenTransition,
            NoOpTransition, InvalidJustification, ConcurrentModification
        """
        target = CounselRequestStatus(new_status)

        def work(db: Session) -> StatusChangeResult:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            now = self.clock.now()
            try:
                justification = validate_admin_override(snapshot.status, target, reason)
                command = TransitionCommand(
                    target=target,
                    actor_kind=ActorKind.ADMIN,
                    actor_id=admin_id,
                    reason=justification,
                )
                updated = apply_transition(snapshot, command, now)
            except CounselRequestError as e:
                logger.warning(
                    f"Admin {admin_id} refused on {counsel_request_id} "
                    f"({snapshot.status.value} -> {target.value}): {e.message}"
                )
                raise

            repo.save_snapshot(db, snapshot, updated)
            if clears_match(snapshot.status, target):
                repo.clear_selection(db, counsel_request_id)
            repo.append_history(
                db,
                counsel_request_id=counsel_request_id,
                from_status=snapshot.status,
                to_status=target,
                reason=justification,
                changed_by=admin_id,
                actor_kind=ActorKind.ADMIN,
                changed_at=now,
            )
            logger.info(
                f"Admin {admin_id} forced counsel request {counsel_request_id} "
                f"{snapshot.status.value} -> {target.value}: {justification}"
            )
            return StatusChangeResult(previous_status=snapshot.status, new_status=target)

        return run_serialized(self.session_factory, counsel_request_id, work)

    def list_requests(self, query: AdminCounselRequestQuery) -> PaginatedCounselRequests:
        items, total = run_read(
            self.session_factory,
            lambda db: repo.paginate(db, repo.admin_criteria(query), query.page, query.limit),
        )
        return PaginatedCounselRequests(
            items=items,
            total=total,
            page=query.page,
            limit=query.limit,
            total_pages=(total + query.limit - 1) // query.limit,
        )

    def get_detail(self, counsel_request_id: str) -> AdminCounselRequestDetail:
        def work(db: Session) -> AdminCounselRequestDetail:
            snapshot = repo.load_or_raise(db, counsel_request_id)
            return AdminCounselRequestDetail(
                counsel_request=snapshot,
                recommendations=repo.list_recommendations(db, counsel_request_id),
                status_history=repo.list_history(db, counsel_request_id),
            )

        return run_read(self.session_factory, work)
