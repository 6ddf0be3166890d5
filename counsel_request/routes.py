"""
Counsel Request API Routes

Guardian-facing endpoints: intake, reads, recommendation, institution
selection and the remaining self-service lifecycle steps. Domain errors are
turned into HTTP responses by the handler registered in main.py.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from .dependencies import Actor, optional_actor, get_lifecycle_service
from .logic.constants import CounselRequestStatus
from .logic.contracts import (
    CounselRequestSnapshot,
    CreateCounselRequestBody,
    PaginatedCounselRequests,
    RecommendationResult,
    RecommendationView,
    RejectBody,
    SelectInstitutionBody,
    SouliWebhookPayload,
    UpdateCounselRequestBody,
)
from .logic.intake import submit_guardian_request, receive_webhook
from .logic.lifecycle import LifecycleService


router = APIRouter(prefix="/counsel-requests", tags=["counsel-requests"])


def _actor_id(actor: Optional[Actor]) -> Optional[str]:
    return actor.id if actor else None


# =============================================================================
# INTAKE
# =============================================================================

@router.post("", response_model=CounselRequestSnapshot, status_code=201, summary="Submit a counsel request")
def create_counsel_request(
    body: CreateCounselRequestBody,
    actor: Optional[Actor] = Depends(optional_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Store a new PENDING counsel request.

    When called with a guardian token the token subject is used as the
    guardian id.
    """
    guardian_id = actor.id if actor and actor.role == "guardian" else None
    return submit_guardian_request(lifecycle, body, guardian_id)


@router.post(
    "/webhook/{source}",
    response_model=CounselRequestSnapshot,
    status_code=201,
    summary="Receive a counsel request from a triage system",
)
def counsel_request_webhook(
    source: str,
    payload: SouliWebhookPayload,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return receive_webhook(lifecycle, source, payload)


# =============================================================================
# READS
# =============================================================================

@router.get("", response_model=PaginatedCounselRequests, summary="List counsel requests")
def list_counsel_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.list_paginated(page, limit)


@router.get("/oracle/health", summary="Recommendation service health")
def oracle_health(lifecycle: LifecycleService = Depends(get_lifecycle_service)):
    healthy = lifecycle.oracle.health_check()
    return {"status": "healthy" if healthy else "unavailable"}


@router.get("/child/{child_id}", response_model=List[CounselRequestSnapshot])
def list_by_child(child_id: str, lifecycle: LifecycleService = Depends(get_lifecycle_service)):
    return lifecycle.list_by_child(child_id)


@router.get("/guardian/{guardian_id}", response_model=List[CounselRequestSnapshot])
def list_by_guardian(guardian_id: str, lifecycle: LifecycleService = Depends(get_lifecycle_service)):
    return lifecycle.list_by_guardian(guardian_id)


@router.get("/status/{status}", response_model=List[CounselRequestSnapshot])
def list_by_status(
    status: CounselRequestStatus,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.list_by_status(status)


@router.get("/{counsel_request_id}", response_model=CounselRequestSnapshot)
def get_counsel_request(counsel_request_id: str, lifecycle: LifecycleService = Depends(get_lifecycle_service)):
    return lifecycle.get(counsel_request_id)


@router.get("/{counsel_request_id}/recommendations", response_model=List[RecommendationView])
def get_recommendations(counsel_request_id: str, lifecycle: LifecycleService = Depends(get_lifecycle_service)):
    return lifecycle.get_recommendations(counsel_request_id)


# =============================================================================
# MUTATIONS
# =============================================================================

@router.patch("/{counsel_request_id}", response_model=CounselRequestSnapshot, summary="Edit a PENDING request")
def update_counsel_request(
    counsel_request_id: str,
    body: UpdateCounselRequestBody,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.update_form(counsel_request_id, body.form_data)


@router.delete("/{counsel_request_id}", status_code=204, summary="Delete a PENDING request")
def delete_counsel_request(counsel_request_id: str, lifecycle: LifecycleService = Depends(get_lifecycle_service)):
    lifecycle.delete(counsel_request_id)
    return Response(status_code=204)


@router.post(
    "/{counsel_request_id}/request-recommendation",
    response_model=RecommendationResult,
    summary="Rank institutions for a PENDING request",
)
def request_recommendation(
    counsel_request_id: str,
    actor: Optional[Actor] = Depends(optional_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Ask the recommendation service for institutions and store the ranked list.

    **Errors:**
    - 400 if the request is not PENDING, carries too little information,
      or the recommendation service is down or answered badly
    - 409 if the request changed while it was being scored
    """
    return lifecycle.request_recommendation(counsel_request_id, _actor_id(actor))


@router.post("/{counsel_request_id}/select-institution", response_model=CounselRequestSnapshot)
def select_institution(
    counsel_request_id: str,
    body: SelectInstitutionBody,
    actor: Optional[Actor] = Depends(optional_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.select_institution(counsel_request_id, body.institution_id, _actor_id(actor))


@router.post("/{counsel_request_id}/start", response_model=CounselRequestSnapshot)
def start_counseling(
    counsel_request_id: str,
    actor: Optional[Actor] = Depends(optional_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.start(counsel_request_id, _actor_id(actor))


@router.post("/{counsel_request_id}/complete", response_model=CounselRequestSnapshot)
def complete_counseling(
    counsel_request_id: str,
    actor: Optional[Actor] = Depends(optional_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    return lifecycle.complete(counsel_request_id, _actor_id(actor))


@router.post("/{counsel_request_id}/reject", response_model=CounselRequestSnapshot)
def reject_counsel_request(
    counsel_request_id: str,
    body: Optional[RejectBody] = None,
    actor: Optional[Actor] = Depends(optional_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    reason = body.reason if body else None
    return lifecycle.reject(counsel_request_id, _actor_id(actor), reason)
