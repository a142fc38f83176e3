import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declared_attr, relationship

from collegedesk.db.session import Base


class Identity(Base):
    """Login identity owned by the identity provider. Knows nothing about colleges or roles."""

    __tablename__ = "identities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    user_metadata = Column(JSON, nullable=False, default=dict)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    profile = relationship(
        "Profile", back_populates="identity", uselist=False, cascade="all, delete-orphan"
    )
    refresh_tokens = relationship(
        "RefreshToken", back_populates="identity", cascade="all, delete-orphan"
    )


class RefreshToken(Base):
    """Stored refresh tokens (sessions). college_id is bound once tenant membership is verified."""

    __tablename__ = "refresh_tokens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True)
    college_id = Column(UUID(as_uuid=True), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=True)
    token = Column(String(512), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    identity = relationship("Identity", back_populates="refresh_tokens")


class Profile(Base):
    """Display data for an identity; created together with it."""

    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, unique=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    identity = relationship("Identity", back_populates="profile")


class RoleAssignmentMixin:
    """Columns shared by the three role tables. One row = (identity, college) membership."""

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @declared_attr
    def user_id(cls):
        return Column(UUID(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def college_id(cls):
        return Column(UUID(as_uuid=True), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def college(cls):
        return relationship("College")


class AdminAccount(RoleAssignmentMixin, Base):
    __tablename__ = "admins"
    __table_args__ = (UniqueConstraint("user_id", "college_id", name="uq_admin_user_college"),)


class StaffAccount(RoleAssignmentMixin, Base):
    __tablename__ = "staff"
    __table_args__ = (UniqueConstraint("user_id", "college_id", name="uq_staff_user_college"),)


class StudentAccount(RoleAssignmentMixin, Base):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("user_id", "college_id", name="uq_student_user_college"),)

    # Display fields used by fee summaries
    full_name = Column(String(255), nullable=True)
    roll_number = Column(String(50), nullable=True)
