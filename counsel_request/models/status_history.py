from sqlalchemy import Column, Integer, String, Text, DateTime

from .base import Base


class StatusHistoryRecord(Base):
    """
    Append-only audit of status changes.
    No foreign key: entries outlive a deleted request.
    """
    __tablename__ = "counsel_request_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    counsel_request_id = Column(String(36), nullable=False, index=True)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    changed_by = Column(String(255), nullable=True)
    actor_kind = Column(String(20), nullable=False)
    changed_at = Column(DateTime(timezone=False), nullable=False)
