"""
Data Contracts for the Counsel Request Core

Pydantic models for intake payloads (input), the immutable aggregate snapshot
the status table operates on, and the views returned at the API boundary.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import date, datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .constants import CounselRequestStatus, CareType, ActorKind, ConsentStatus


class CamelModel(BaseModel):
    """Base for every contract: camelCase aliases, snake_case attributes."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# =============================================================================
# INTAKE CONTRACTS
# =============================================================================

class RequestDate(CamelModel):
    year: int
    month: int
    day: int


class CoverInfo(CamelModel):
    center_name: str = ""
    counselor_name: str = ""
    request_date: RequestDate


class ChildInfo(CamelModel):
    name: str = ""
    gender: Optional[str] = None
    age: Optional[int] = None
    grade: Optional[str] = None


class BasicInfo(CamelModel):
    care_type: CareType = CareType.GENERAL
    priority_reason: Optional[str] = None
    child_info: ChildInfo = Field(default_factory=ChildInfo)


class CounselRequestForm(CamelModel):
    """
    Intake form as captured by a guardian or the triage chatbot.
    Only the cover and basic sections are interpreted by this core; the rest
    is carried through to the oracle as free text.
    """
    cover_info: CoverInfo
    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    psychological_info: Dict[str, Any] = Field(default_factory=dict)
    request_motivation: Dict[str, Any] = Field(default_factory=dict)
    test_results: Dict[str, Any] = Field(default_factory=dict)
    consent: Optional[ConsentStatus] = None


class CreateCounselRequestBody(CamelModel):
    """Guardian submission."""
    child_id: str
    guardian_id: Optional[str] = None
    form_data: CounselRequestForm


class UpdateCounselRequestBody(CamelModel):
    form_data: CounselRequestForm


class SouliWebhookPayload(CamelModel):
    """Payload pushed by the Souli triage chatbot."""
    souli_session_id: str = Field(min_length=1)
    child_id: str
    guardian_id: Optional[str] = None
    cover_info: CoverInfo
    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    psychological_info: Dict[str, Any] = Field(default_factory=dict)
    request_motivation: Dict[str, Any] = Field(default_factory=dict)
    test_results: Dict[str, Any] = Field(default_factory=dict)
    consent: Optional[ConsentStatus] = None


class NewCounselRequest(CamelModel):
    """What an intake adapter hands to the lifecycle service."""
    child_id: str
    guardian_id: Optional[str] = None
    form: CounselRequestForm
    source: str = "GUARDIAN"
    external_session_id: Optional[str] = None


# =============================================================================
# AGGREGATE SNAPSHOT
# =============================================================================

class CounselRequestSnapshot(CamelModel):
    """
    Immutable view of a CounselRequest at a given version.
    The status table returns a new snapshot instead of mutating this one.
    """
    id: str
    child_id: str
    guardian_id: Optional[str] = None
    status: CounselRequestStatus
    form_data: Dict[str, Any] = Field(default_factory=dict)
    center_name: str
    child_name: str = ""
    care_type: CareType
    request_date: date
    matched_institution_id: Optional[str] = None
    matched_counselor_id: Optional[str] = None
    source: str = "GUARDIAN"
    external_session_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int = 1

    class Config:
        frozen = True


class TransitionCommand(CamelModel):
    """A request to move a snapshot to `target`."""
    target: CounselRequestStatus
    actor_kind: ActorKind = ActorKind.SELF_SERVICE
    actor_id: Optional[str] = None
    reason: Optional[str] = None
    institution_id: Optional[str] = None
    counselor_id: Optional[str] = None


# =============================================================================
# ORACLE / RECOMMENDATION CONTRACTS
# =============================================================================

class OracleCandidate(CamelModel):
    """One entry from the scoring oracle response."""
    institution_id: str = Field(min_length=1)
    score: float
    reason: str = Field(default="", alias="reasoning")


class RankedRecommendation(CamelModel):
    """Oracle candidate after sorting and ranking, before persistence."""
    institution_id: str
    score: float
    reason: str
    rank: int = Field(ge=1)
    is_high_score: bool = False


class RecommendationView(CamelModel):
    id: str
    counsel_request_id: str
    institution_id: str
    score: float
    reason: str
    rank: int
    selected: bool = False
    is_high_score: bool = False
    created_at: datetime


class RecommendationResult(CamelModel):
    counsel_request_id: str
    recommendations: List[RecommendationView] = Field(default_factory=list)


class SelectInstitutionBody(CamelModel):
    institution_id: str = Field(min_length=1)


class RejectBody(CamelModel):
    reason: Optional[str] = None


# =============================================================================
# HISTORY / ADMIN CONTRACTS
# =============================================================================

class StatusHistoryView(CamelModel):
    id: int
    counsel_request_id: str
    from_status: CounselRequestStatus
    to_status: CounselRequestStatus
    reason: str
    changed_by: Optional[str] = None
    actor_kind: ActorKind
    changed_at: datetime


class AdminUpdateStatusBody(CamelModel):
    new_status: CounselRequestStatus
    reason: Optional[str] = None


class StatusChangeResult(CamelModel):
    previous_status: CounselRequestStatus
    new_status: CounselRequestStatus


class AdminCounselRequestQuery(CamelModel):
    search: Optional[str] = None
    status: Optional[CounselRequestStatus] = None
    care_type: Optional[CareType] = None
    guardian_id: Optional[str] = None
    institution_id: Optional[str] = None
    counselor_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class PaginatedCounselRequests(CamelModel):
    items: List[CounselRequestSnapshot] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0


class AdminCounselRequestDetail(CamelModel):
    counsel_request: CounselRequestSnapshot
    recommendations: List[RecommendationView] = Field(default_factory=list)
    status_history: List[StatusHistoryView] = Field(default_factory=list)


# =============================================================================
# STATISTICS CONTRACTS
# =============================================================================

class StatusCount(CamelModel):
    status: CounselRequestStatus
    count: int


class ConversionFunnelStage(CamelModel):
    stage: str
    count: int
    conversion_rate: float


class PeriodStatistics(CamelModel):
    period: str
    created: int = 0
    completed: int = 0
    rejected: int = 0


class CounselRequestStatistics(CamelModel):
    start_date: datetime
    end_date: datetime
    total_counsel_requests: int = 0
    by_status: List[StatusCount] = Field(default_factory=list)
    conversion_funnel: List[ConversionFunnelStage] = Field(default_factory=list)
    daily_trend: List[PeriodStatistics] = Field(default_factory=list)
    average_processing_days: Optional[float] = None
    average_matching_hours: Optional[float] = None
    completion_rate: float = 0.0
    rejection_rate: float = 0.0
    period_new_requests: int = 0
    period_completed_requests: int = 0
