"""
Domain errors for the counsel request core.

Every error carries the message shown to guardians and admins, and the HTTP
status the API layer answers with.
"""


class CounselRequestError(Exception):
    """Base class for recoverable, caller-facing domain errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def error_name(self) -> str:
        return type(self).__name__


class NotFound(CounselRequestError):
    status_code = 404

    def __init__(self, counsel_request_id: str):
        super().__init__(f"Counsel request not found: {counsel_request_id}")
        self.counsel_request_id = counsel_request_id


class InvalidIntake(CounselRequestError):
    """Intake payload failed domain validation."""


class InvalidTransition(CounselRequestError):
    """The self-service status table does not allow this move."""

    def __init__(self, current, target, message: str | None = None):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            message or f"Cannot move counsel request from {current_value} to {target_value}"
        )
        self.current = current
        self.target = target


class ForbiddenTransition(CounselRequestError):
    """Admin tried to assert completion."""


class ImmutableTerminalState(CounselRequestError):
    """Admin tried to change a completed request."""


class NoOpTransition(CounselRequestError):
    """Target status equals current status."""


class InvalidJustification(CounselRequestError):
    """Admin reason missing or outside the accepted length."""


class InvalidSelection(CounselRequestError):
    """Institution is not among the request's recommendations."""


class InsufficientInformation(CounselRequestError):
    """Not enough profile data, or the oracle produced no candidates."""


class OracleUnavailable(CounselRequestError):
    """Scoring oracle timed out, failed, or answered with garbage."""


class NotDeletable(CounselRequestError):
    """Only PENDING requests can be deleted."""


class ConcurrentModification(CounselRequestError):
    status_code = 409

    def __init__(self, counsel_request_id: str):
        super().__init__(
            f"Counsel request {counsel_request_id} was modified concurrently, reload and try again"
        )
        self.counsel_request_id = counsel_request_id
