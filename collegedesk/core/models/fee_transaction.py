"""Fee ledger entry. A student's fee status is always derived from these rows, never stored."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String
from sqlalchemy.dialects.postgresql import UUID

from collegedesk.db.session import Base


class FeeTransaction(Base):
    __tablename__ = "fee_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Identity id of the student (students.user_id)
    student_id = Column(UUID(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # charge, payment
    fee_type = Column(String(255), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=True)
    payment_mode = Column(String(50), nullable=True)
    academic_year = Column(String(20), nullable=True, index=True)
    program = Column(String(100), nullable=True, index=True)
    branch = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
