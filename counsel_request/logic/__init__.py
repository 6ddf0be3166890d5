"""
Counsel Request Logic Module

State machine, recommendation ranking, lifecycle/admin services and
statistics for counsel requests.
"""

from .constants import CounselRequestStatus, CareType, ActorKind
from .contracts import (
    CounselRequestForm,
    CounselRequestSnapshot,
    NewCounselRequest,
    OracleCandidate,
    RankedRecommendation,
    RecommendationView,
    StatusChangeResult,
    TransitionCommand,
    CounselRequestStatistics,
)
from .errors import (
    CounselRequestError,
    NotFound,
    InvalidIntake,
    InvalidTransition,
    ForbiddenTransition,
    ImmutableTerminalState,
    NoOpTransition,
    InvalidJustification,
    InvalidSelection,
    InsufficientInformation,
    OracleUnavailable,
    NotDeletable,
    ConcurrentModification,
)
from .status_table import apply_transition, can_transition
from .ranker import rank_candidates
from .oracle_client import OracleClient
from .lifecycle import LifecycleService
from .admin_override import AdminOverrideService
from .statistics import StatisticsService

__all__ = [
    # Services
    "LifecycleService",
    "AdminOverrideService",
    "StatisticsService",
    "OracleClient",

    # Policy
    "apply_transition",
    "can_transition",
    "rank_candidates",

    # Contracts
    "CounselRequestForm",
    "CounselRequestSnapshot",
    "NewCounselRequest",
    "OracleCandidate",
    "RankedRecommendation",
    "RecommendationView",
    "StatusChangeResult",
    "TransitionCommand",
    "CounselRequestStatistics",

    # Enums
    "CounselRequestStatus",
    "CareType",
    "ActorKind",

    # Errors
    "CounselRequestError",
    "NotFound",
    "InvalidIntake",
    "InvalidTransition",
    "ForbiddenTransition",
    "ImmutableTerminalState",
    "NoOpTransition",
    "InvalidJustification",
    "InvalidSelection",
    "InsufficientInformation",
    "OracleUnavailable",
    "NotDeletable",
    "ConcurrentModification",
]
