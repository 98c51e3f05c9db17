import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from originator.db.base import Base
from originator.models.types import JSONType


class ApplicationStatusHistory(Base):
    """Append-only record of one status transition."""

    __tablename__ = "application_status_history"
    __table_args__ = (
        CheckConstraint(
            "changed_by_type IN ('staff', 'applicant', 'system')",
            name="ck_application_status_history_actor_type",
        ),
        Index("ix_application_status_history_app_created", "application_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status = Column(String(30), nullable=True)
    to_status = Column(String(30), nullable=False)
    changed_by = Column(UUID(as_uuid=True), nullable=True)
    changed_by_type = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes.
    transition_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
