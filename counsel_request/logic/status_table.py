"""
Status Table

Single source of truth for which status moves are legal and who may make them.
Pure policy: no I/O, no clock, no database. `apply_transition` takes a snapshot
and returns the next snapshot or raises the specific domain error.
"""

from datetime import datetime
from typing import Iterable, Optional, Set, Tuple

from .constants import (
    CounselRequestStatus,
    ActorKind,
    ADMIN_ALLOWED_TARGETS,
    TERMINAL_STATUSES,
    PIPELINE_ORDER,
    MIN_JUSTIFICATION_LENGTH,
    MAX_JUSTIFICATION_LENGTH,
)
from .contracts import CounselRequestSnapshot, TransitionCommand
from .errors import (
    InvalidTransition,
    InvalidSelection,
    InsufficientInformation,
    ForbiddenTransition,
    ImmutableTerminalState,
    NoOpTransition,
    InvalidJustification,
)

S = CounselRequestStatus

Transition = Tuple[CounselRequestStatus, CounselRequestStatus, ActorKind]


def _build_self_service_transitions() -> Set[Transition]:
    table = {
        (S.PENDING, S.RECOMMENDED, ActorKind.SELF_SERVICE),
        (S.RECOMMENDED, S.MATCHED, ActorKind.SELF_SERVICE),
        (S.MATCHED, S.IN_PROGRESS, ActorKind.SELF_SERVICE),
        (S.IN_PROGRESS, S.COMPLETED, ActorKind.SELF_SERVICE),
    }
    # owner may cancel anything still open
    for current in CounselRequestStatus:
        if current in TERMINAL_STATUSES:
            continue
        table.add((current, S.REJECTED, ActorKind.SELF_SERVICE))
    return table


def _build_admin_transitions() -> Set[Transition]:
    table = set()
    for current in CounselRequestStatus:
        if current == S.COMPLETED:
            continue
        for target in ADMIN_ALLOWED_TARGETS:
            if target != current:
                table.add((current, target, ActorKind.ADMIN))
    return table


SELF_SERVICE_TRANSITIONS: Set[Transition] = _build_self_service_transitions()
ADMIN_TRANSITIONS: Set[Transition] = _build_admin_transitions()
TRANSITIONS: Set[Transition] = SELF_SERVICE_TRANSITIONS | ADMIN_TRANSITIONS


def can_transition(
    current: CounselRequestStatus,
    target: CounselRequestStatus,
    actor_kind: ActorKind = ActorKind.SELF_SERVICE,
) -> bool:
    """Check whether the table lists (current, target, actor_kind)."""
    return (S(current), S(target), ActorKind(actor_kind)) in TRANSITIONS


def clears_match(current: CounselRequestStatus, target: CounselRequestStatus) -> bool:
    """
    Whether an admin move from `current` to `target` drops the match.

    Anything below MATCHED loses it; MATCHED itself loses it only when the
    request is being rolled back from further down the pipeline.
    """
    if target == S.REJECTED:
        return False
    target_position = PIPELINE_ORDER[target]
    matched_position = PIPELINE_ORDER[S.MATCHED]
    if target_position < matched_position:
        return True
    if target_position == matched_position and current in PIPELINE_ORDER:
        return PIPELINE_ORDER[current] > matched_position
    return False


def validate_justification(reason: Optional[str]) -> str:
    """Return the trimmed admin justification or raise InvalidJustification."""
    text = (reason or "").strip()
    if len(text) < MIN_JUSTIFICATION_LENGTH:
        raise InvalidJustification(
            f"A reason of at least {MIN_JUSTIFICATION_LENGTH} characters is required"
        )
    if len(text) > MAX_JUSTIFICATION_LENGTH:
        raise InvalidJustification(
            f"The reason may be at most {MAX_JUSTIFICATION_LENGTH} characters"
        )
    return text


def validate_admin_override(
    current: CounselRequestStatus,
    target: CounselRequestStatus,
    reason: Optional[str],
) -> str:
    """
    Check an admin force-status against the admin table.

    Precedence: terminal current state, forbidden target, no-op, justification.
    Returns the trimmed justification.
    """
    if current == S.COMPLETED:
        raise ImmutableTerminalState("Completed requests cannot be changed")
    if target == S.COMPLETED:
        raise ForbiddenTransition(
            "Admins cannot mark a request COMPLETED, use the normal counseling completion flow"
        )
    if target == current:
        raise NoOpTransition(f"Request is already {current.value}")
    if (current, target, ActorKind.ADMIN) not in ADMIN_TRANSITIONS:
        raise ForbiddenTransition(f"Status {target.value} cannot be forced")
    return validate_justification(reason)


def _self_service_error(current: CounselRequestStatus, target: CounselRequestStatus) -> InvalidTransition:
    messages = {
        S.RECOMMENDED: f"Recommendations can only be requested while PENDING (current: {current.value})",
        S.MATCHED: f"An institution can only be selected while RECOMMENDED (current: {current.value})",
        S.IN_PROGRESS: f"Counseling can only start while MATCHED (current: {current.value})",
        S.COMPLETED: f"Counseling can only be completed while IN_PROGRESS (current: {current.value})",
        S.PENDING: "Requests only return to PENDING through an admin override",
    }
    if target == S.REJECTED:
        if current == S.COMPLETED:
            message = "Completed requests cannot be cancelled"
        else:
            message = "Request is already rejected"
    else:
        message = messages[target]
    return InvalidTransition(current, target, message)


def ensure_self_service(current: CounselRequestStatus, target: CounselRequestStatus) -> None:
    """Raise InvalidTransition unless the owner may move current -> target."""
    if (current, target, ActorKind.SELF_SERVICE) not in SELF_SERVICE_TRANSITIONS:
        raise _self_service_error(current, target)


def apply_transition(
    snapshot: CounselRequestSnapshot,
    command: TransitionCommand,
    now: datetime,
    recommended_institution_ids: Optional[Iterable[str]] = None,
) -> CounselRequestSnapshot:
    """
    Apply `command` to `snapshot` and return the resulting snapshot.

    Args:
        snapshot: Current state of the request
        command: Target status plus actor and payload
        now: Timestamp written to updated_at
        recommended_institution_ids: Institutions ranked for this request;
            required when entering RECOMMENDED or MATCHED

    Raises:
        The specific CounselRequestError for the violated rule
    """
    current = snapshot.status
    target = command.target
    updates = {"status": target, "updated_at": now}

    if command.actor_kind == ActorKind.ADMIN:
        validate_admin_override(current, target, command.reason)
        if clears_match(current, target):
            updates["matched_institution_id"] = None
            updates["matched_counselor_id"] = None
        return snapshot.model_copy(update=updates)

    ensure_self_service(current, target)

    if target == S.RECOMMENDED:
        if not list(recommended_institution_ids or []):
            raise InsufficientInformation("The oracle returned no candidate institutions")

    elif target == S.MATCHED:
        candidates = set(recommended_institution_ids or [])
        if not command.institution_id or command.institution_id not in candidates:
            raise InvalidSelection("The selected institution is not among this request's recommendations")
        updates["matched_institution_id"] = command.institution_id
        updates["matched_counselor_id"] = command.counselor_id

    return snapshot.model_copy(update=updates)
