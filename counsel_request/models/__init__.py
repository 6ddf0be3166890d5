# Export all counsel request models for easy imports
from .base import Base
from .counsel_request import CounselRequestRecord
from .recommendation import RecommendationRecord
from .status_history import StatusHistoryRecord

__all__ = [
    "Base",
    "CounselRequestRecord",
    "RecommendationRecord",
    "StatusHistoryRecord",
]
