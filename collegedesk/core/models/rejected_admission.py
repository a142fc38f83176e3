"""Archive of rejected applications. Insert-only."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from collegedesk.db.session import Base


class RejectedAdmission(Base):
    __tablename__ = "rejected_admissions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    college_id = Column(UUID(as_uuid=True), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    # Id of the pending row this came from; not a FK because that row is deleted right after
    pending_admission_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    rejected_by = Column(String(255), nullable=False)
    rejected_reason = Column(Text, nullable=False)
    rejected_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    # Full copy of the pending record at rejection time
    application_data = Column(JSON, nullable=False, default=dict)

    college = relationship("College")
