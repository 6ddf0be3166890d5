"""
Intake Adapters

Two ways a counsel request enters the system, both ending in
LifecycleService.create:

- guardian submission through the public API
- the Souli triage chatbot webhook
"""

import logging
from typing import Optional

from .contracts import (
    CounselRequestForm,
    CounselRequestSnapshot,
    CreateCounselRequestBody,
    NewCounselRequest,
    SouliWebhookPayload,
)
from .errors import InvalidIntake
from .lifecycle import LifecycleService

logger = logging.getLogger(__name__)

GUARDIAN_SOURCE = "GUARDIAN"
KNOWN_WEBHOOK_SOURCES = {"souli"}


def submit_guardian_request(
    lifecycle: LifecycleService,
    body: CreateCounselRequestBody,
    guardian_id: Optional[str] = None,
) -> CounselRequestSnapshot:
    """
    Create a request submitted by a guardian.
    An authenticated guardian id takes precedence over the one in the body.
    """
    new_request = NewCounselRequest(
        child_id=body.child_id,
        guardian_id=guardian_id or body.guardian_id,
        form=body.form_data,
        source=GUARDIAN_SOURCE,
    )
    return lifecycle.create(new_request)


def receive_webhook(
    lifecycle: LifecycleService,
    source: str,
    payload: SouliWebhookPayload,
) -> CounselRequestSnapshot:
    """Create a request pushed by an external triage system."""
    source_key = source.strip().lower()
    if source_key not in KNOWN_WEBHOOK_SOURCES:
        raise InvalidIntake(f"Unknown webhook source: {source}")

    form = CounselRequestForm(
        cover_info=payload.cover_info,
        basic_info=payload.basic_info,
        psychological_info=payload.psychological_info,
        request_motivation=payload.request_motivation,
        test_results=payload.test_results,
        consent=payload.consent,
    )
    created = lifecycle.create(NewCounselRequest(
        child_id=payload.child_id,
        guardian_id=payload.guardian_id,
        form=form,
        source=source_key,
        external_session_id=payload.souli_session_id,
    ))
    logger.info(f"Webhook intake from {source_key} session {payload.souli_session_id} -> {created.id}")
    return created
