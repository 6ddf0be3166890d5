from sqlalchemy import Column, Integer, String, Date, DateTime, JSON, Index

from .base import Base


class CounselRequestRecord(Base):
    __tablename__ = "counsel_requests"
    __table_args__ = (
        Index("ix_counsel_requests_status_created", "status", "created_at"),
    )

    # Identifiers
    id = Column(String(36), primary_key=True)
    child_id = Column(String(36), nullable=False, index=True)
    guardian_id = Column(String(255), nullable=True, index=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default="PENDING")
    matched_institution_id = Column(String(36), nullable=True, index=True)
    matched_counselor_id = Column(String(36), nullable=True, index=True)

    # Intake (searchable copies of form fields)
    center_name = Column(String(255), nullable=False)
    child_name = Column(String(100), nullable=False, default="")
    care_type = Column(String(20), nullable=False)
    request_date = Column(Date, nullable=False)
    form_data = Column(JSON, nullable=False)

    # Origin
    source = Column(String(50), nullable=False, default="GUARDIAN")
    external_session_id = Column(String(255), nullable=True)

    # Meta
    created_at = Column(DateTime(timezone=False), nullable=False)
    updated_at = Column(DateTime(timezone=False), nullable=False)
    version = Column(Integer, nullable=False, default=1)
