"""
Counsel Request Constants

Statuses, actor kinds, funnel stages and the tunables read from the
environment. Everything the status table and ranker need to agree on lives here.
"""

import os
from enum import Enum
from typing import Dict, List

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# ENUMS
# =============================================================================

class CounselRequestStatus(str, Enum):
    """Lifecycle status of a counsel request."""
    PENDING = "PENDING"            # received, waiting for recommendation
    RECOMMENDED = "RECOMMENDED"    # oracle ranked institutions
    MATCHED = "MATCHED"            # institution selected
    IN_PROGRESS = "IN_PROGRESS"    # counseling under way
    COMPLETED = "COMPLETED"        # counseling finished
    REJECTED = "REJECTED"          # cancelled


class CareType(str, Enum):
    """Center usage basis recorded at intake."""
    PRIORITY = "PRIORITY"
    GENERAL = "GENERAL"
    SPECIAL = "SPECIAL"


class ActorKind(str, Enum):
    """Who is driving a transition."""
    SELF_SERVICE = "SELF_SERVICE"
    ADMIN = "ADMIN"


class ConsentStatus(str, Enum):
    AGREED = "AGREED"
    DISAGREED = "DISAGREED"


# =============================================================================
# STATUS GROUPS
# =============================================================================

TERMINAL_STATUSES = {
    CounselRequestStatus.COMPLETED,
    CounselRequestStatus.REJECTED,
}

# Statuses an administrator may force a request into
ADMIN_ALLOWED_TARGETS = (
    CounselRequestStatus.PENDING,
    CounselRequestStatus.RECOMMENDED,
    CounselRequestStatus.MATCHED,
    CounselRequestStatus.IN_PROGRESS,
    CounselRequestStatus.REJECTED,
)

# Position on the normal pipeline; REJECTED sits outside it
PIPELINE_ORDER: Dict[CounselRequestStatus, int] = {
    CounselRequestStatus.PENDING: 0,
    CounselRequestStatus.RECOMMENDED: 1,
    CounselRequestStatus.MATCHED: 2,
    CounselRequestStatus.IN_PROGRESS: 3,
    CounselRequestStatus.COMPLETED: 4,
}


# =============================================================================
# FUNNEL
# =============================================================================

FUNNEL_CREATED = "CREATED"

FUNNEL_STAGES: List[str] = [
    FUNNEL_CREATED,
    CounselRequestStatus.RECOMMENDED.value,
    CounselRequestStatus.MATCHED.value,
    CounselRequestStatus.IN_PROGRESS.value,
    CounselRequestStatus.COMPLETED.value,
]

DEFAULT_STATISTICS_WINDOW_DAYS = 30


# =============================================================================
# ADMIN JUSTIFICATION
# =============================================================================

MIN_JUSTIFICATION_LENGTH = 10
MAX_JUSTIFICATION_LENGTH = 500


# =============================================================================
# RECOMMENDATION / ORACLE
# =============================================================================

MAX_RECOMMENDATIONS = int(os.getenv("MAX_RECOMMENDATIONS", "5"))
HIGH_SCORE_THRESHOLD = float(os.getenv("HIGH_SCORE_THRESHOLD", "0.8"))
MIN_PROFILE_TEXT_LENGTH = 10
MAX_PROFILE_TEXT_LENGTH = 5000

ORACLE_URL = os.getenv("ORACLE_URL", "http://localhost:8001")
ORACLE_TIMEOUT_SECONDS = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "8"))

# Retries after a lost optimistic-version race
CONCURRENT_MODIFICATION_RETRIES = 1


# =============================================================================
# SYNTHESIZED HISTORY REASONS
# =============================================================================

REASON_RECOMMENDED = "oracle returned ranked institutions"
REASON_SELECTED = "guardian selected institution"
REASON_STARTED = "counseling started"
REASON_COMPLETED = "counseling completed"
REASON_REJECTED = "request cancelled by owner"
