"""
Intake form helpers: validation, searchable column extraction, and the plain
text rendering the scoring oracle reads.
"""

from datetime import date
from typing import Any, Dict, List

from .constants import CareType
from .contracts import CounselRequestForm
from .errors import InvalidIntake


_CARE_TYPE_LABELS = {
    CareType.PRIORITY.value: "priority care child",
    CareType.GENERAL.value: "general care child",
    CareType.SPECIAL.value: "special care child",
}


def _flatten(value: Any, prefix: str = "") -> List[str]:
    lines: List[str] = []
    if isinstance(value, dict):
        for key, item in value.items():
            label = f"{prefix}{key}"
            lines.extend(_flatten(item, f"{label}."))
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v not in (None, "")]
        if items:
            lines.append(f"{prefix.rstrip('.')}: {', '.join(items)}")
    elif value not in (None, ""):
        lines.append(f"{prefix.rstrip('.')}: {value}")
    return lines


def form_data_to_text(form_data: Dict[str, Any]) -> str:
    """
    Build the oracle input text from stored form data.

    Accepts the camelCase dict persisted on the request. Empty sections are
    skipped so a bare form renders to a short string.
    """
    if not form_data:
        return ""

    lines: List[str] = []

    basic = form_data.get("basicInfo") or {}
    child = basic.get("childInfo") or {}
    care_type = basic.get("careType")
    if care_type:
        lines.append(f"Care type: {_CARE_TYPE_LABELS.get(care_type, care_type)}")
    if basic.get("priorityReason"):
        lines.append(f"Priority reason: {basic['priorityReason']}")
    child_bits = [
        str(child[key]) for key in ("gender", "age", "grade") if child.get(key) not in (None, "")
    ]
    if child_bits:
        lines.append(f"Child: {', '.join(child_bits)}")

    cover = form_data.get("coverInfo") or {}
    if cover.get("centerName"):
        lines.append(f"Requesting center: {cover['centerName']}")

    for section, title in (
        ("psychologicalInfo", "Psychological information"),
        ("requestMotivation", "Request motivation"),
        ("testResults", "Test results"),
    ):
        section_lines = _flatten(form_data.get(section) or {})
        if section_lines:
            lines.append(f"[{title}]")
            lines.extend(section_lines)

    return "\n".join(lines).strip()


# =============================================================================
# VALIDATION
# =============================================================================

def validate_form(form: CounselRequestForm) -> None:
    """
    Domain checks on an intake form.

    Raises:
        InvalidIntake: The first rule the form breaks
    """
    cover = form.cover_info
    basic = form.basic_info

    if not cover.center_name.strip():
        raise InvalidIntake("Center name is required")
    if not cover.counselor_name.strip():
        raise InvalidIntake("Counselor name is required")
    if not basic.child_info.name.strip():
        raise InvalidIntake("Child name is required")

    requested = cover.request_date
    if not 1 <= requested.month <= 12:
        raise InvalidIntake("Request month must be between 1 and 12")
    if not 1 <= requested.day <= 31:
        raise InvalidIntake("Request day must be between 1 and 31")
    try:
        date(requested.year, requested.month, requested.day)
    except ValueError as e:
        raise InvalidIntake(f"Invalid request date: {e}") from e

    if basic.care_type == CareType.PRIORITY and not basic.priority_reason:
        raise InvalidIntake("Priority care children need a priority reason")


def searchable_fields(form: CounselRequestForm) -> Dict[str, Any]:
    """Columns copied out of the form for filtering and search."""
    requested = form.cover_info.request_date
    return {
        "center_name": form.cover_info.center_name.strip(),
        "child_name": form.basic_info.child_info.name.strip(),
        "care_type": form.basic_info.care_type,
        "request_date": date(requested.year, requested.month, requested.day),
        "form_data": form.model_dump(mode="json", by_alias=True),
    }
