"""
Tests for the guardian and webhook intake adapters.
"""

import pytest
from pydantic import ValidationError

from counsel_request.logic.constants import CounselRequestStatus
from counsel_request.logic.contracts import CreateCounselRequestBody, SouliWebhookPayload
from counsel_request.logic.errors import InvalidIntake
from counsel_request.logic.forms import form_data_to_text
from counsel_request.logic.intake import submit_guardian_request, receive_webhook, GUARDIAN_SOURCE


def webhook_payload(form_data, **overrides):
    payload = {
        "souliSessionId": "souli-session-42",
        "childId": "child-9",
        "guardianId": "guardian-9",
        **{k: v for k, v in form_data.items() if k != "consent"},
    }
    payload.update(overrides)
    return SouliWebhookPayload.model_validate(payload)


def test_guardian_submission(lifecycle, form_data):
    body = CreateCounselRequestBody.model_validate({
        "childId": "child-1", "guardianId": "guardian-from-body", "formData": form_data,
    })
    created = submit_guardian_request(lifecycle, body)
    assert created.status == CounselRequestStatus.PENDING
    assert created.source == GUARDIAN_SOURCE
    assert created.guardian_id == "guardian-from-body"


def test_token_guardian_overrides_body(lifecycle, form_data):
    body = CreateCounselRequestBody.model_validate({
        "childId": "child-1", "guardianId": "guardian-from-body", "formData": form_data,
    })
    created = submit_guardian_request(lifecycle, body, guardian_id="guardian-from-token")
    assert created.guardian_id == "guardian-from-token"


def test_webhook_creates_pending_request(lifecycle, form_data):
    created = receive_webhook(lifecycle, "Souli", webhook_payload(form_data))
    assert created.status == CounselRequestStatus.PENDING
    assert created.source == "souli"
    assert created.external_session_id == "souli-session-42"
    assert created.child_id == "child-9"
    assert created.center_name == "Sunflower Community Center"


def test_webhook_unknown_source(lifecycle, form_data):
    with pytest.raises(InvalidIntake):
        receive_webhook(lifecycle, "mystery-bot", webhook_payload(form_data))


def test_webhook_requires_session_id(form_data):
    with pytest.raises(ValidationError):
        webhook_payload(form_data, souliSessionId="")


def test_invalid_request_date(lifecycle, form_data):
    form_data["coverInfo"]["requestDate"] = {"year": 2026, "month": 2, "day": 30}
    body = CreateCounselRequestBody.model_validate({"childId": "child-1", "formData": form_data})
    with pytest.raises(InvalidIntake):
        submit_guardian_request(lifecycle, body)


def test_form_text_skips_empty_sections(form_data):
    form_data["testResults"] = {}
    text = form_data_to_text(form_data)
    assert "Care type: general care child" in text
    assert "Requesting center: Sunflower Community Center" in text
    assert "concerns: Anxiety before school, trouble sleeping" in text
    assert "[Test results]" not in text


def test_form_text_of_nothing():
    assert form_data_to_text({}) == ""
