"""
Admin API Routes

Operator endpoints: force-status override, filtered listing, detail with
status history, and the statistics dashboard. All require an admin token.
"""

from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, Query

from .dependencies import Actor, require_admin, get_admin_service, get_statistics_service
from .logic.admin_override import AdminOverrideService
from .logic.constants import CounselRequestStatus, CareType
from .logic.contracts import (
    AdminCounselRequestDetail,
    AdminCounselRequestQuery,
    AdminUpdateStatusBody,
    CounselRequestStatistics,
    PaginatedCounselRequests,
    StatusChangeResult,
)
from .logic.statistics import StatisticsService


router = APIRouter(prefix="/admin", tags=["admin"])


def admin_query(
    search: Optional[str] = Query(None),
    status: Optional[CounselRequestStatus] = Query(None),
    care_type: Optional[CareType] = Query(None, alias="careType"),
    guardian_id: Optional[str] = Query(None, alias="guardianId"),
    institution_id: Optional[str] = Query(None, alias="institutionId"),
    counselor_id: Optional[str] = Query(None, alias="counselorId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> AdminCounselRequestQuery:
    return AdminCounselRequestQuery(
        search=search,
        status=status,
        care_type=care_type,
        guardian_id=guardian_id,
        institution_id=institution_id,
        counselor_id=counselor_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.patch(
    "/counsel-requests/{counsel_request_id}/status",
    response_model=StatusChangeResult,
    summary="Force a counsel request into another status",
)
def force_counsel_request_status(
    counsel_request_id: str,
    body: AdminUpdateStatusBody,
    admin: Actor = Depends(require_admin),
    service: AdminOverrideService = Depends(get_admin_service),
):
    """
    Override the guardian flow for remediation.

    **Rules:**
    - COMPLETED requests cannot be changed
    - COMPLETED can never be set by an admin
    - the new status must differ from the current one
    - `reason` is required, 10 to 500 characters
    """
    return service.force_status(counsel_request_id, body.new_status, body.reason, admin.id)


@router.get("/counsel-requests", response_model=PaginatedCounselRequests)
def admin_list_counsel_requests(
    query: AdminCounselRequestQuery = Depends(admin_query),
    admin: Actor = Depends(require_admin),
    service: AdminOverrideService = Depends(get_admin_service),
):
    return service.list_requests(query)


@router.get("/counsel-requests/{counsel_request_id}", response_model=AdminCounselRequestDetail)
def admin_get_counsel_request(
    counsel_request_id: str,
    admin: Actor = Depends(require_admin),
    service: AdminOverrideService = Depends(get_admin_service),
):
    return service.get_detail(counsel_request_id)


@router.get(
    "/statistics/counsel-requests",
    response_model=CounselRequestStatistics,
    summary="Counsel request statistics for a date range",
)
def counsel_request_statistics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    admin: Actor = Depends(require_admin),
    service: StatisticsService = Depends(get_statistics_service),
):
    """Defaults to the last 30 days. `endDate` covers the whole day."""
    start = datetime.combine(start_date, time.min) if start_date else None
    end = datetime.combine(end_date, time.max) if end_date else None
    return service.get_counsel_request_statistics(start, end)
