from sqlalchemy import Column, String, Text, DateTime, Float, Integer, Boolean, ForeignKey, UniqueConstraint

from .base import Base


class RecommendationRecord(Base):
    __tablename__ = "counsel_request_recommendations"
    __table_args__ = (
        UniqueConstraint("counsel_request_id", "rank", name="uq_recommendation_rank"),
    )

    id = Column(String(36), primary_key=True)
    counsel_request_id = Column(
        String(36), ForeignKey("counsel_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    institution_id = Column(String(36), nullable=False)

    # Oracle output
    score = Column(Float, nullable=False)
    reason = Column(Text, nullable=False, default="")
    rank = Column(Integer, nullable=False)
    is_high_score = Column(Boolean, nullable=False, default=False)

    # Selection
    selected = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=False), nullable=False)
