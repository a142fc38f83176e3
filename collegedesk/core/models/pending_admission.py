"""
Pending admission: a submitted application waiting for an approve/reject decision.
The row is moved, never status-flagged: approval and rejection both delete it.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from collegedesk.db.session import Base


class PendingAdmission(Base):
    __tablename__ = "pending_admissions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    college_id = Column(UUID(as_uuid=True), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    # Loosely structured form payload: personal info, academics, parents, document URLs
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    college = relationship("College")
