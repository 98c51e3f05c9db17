import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from originator.db.base import Base
from originator.models.types import EncryptedString, JSONType


class DataVerification(Base):
    """Current verified value and trust state of one field of one person."""

    __tablename__ = "data_verifications"
    __table_args__ = (
        UniqueConstraint("person_id", "field_name", name="uq_data_verifications_person_field"),
        CheckConstraint("status IN ('PENDING', 'VERIFIED')", name="ck_data_verifications_status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(UUID(as_uuid=True), ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    field_name = Column(String(50), nullable=False)
    field_value = Column(EncryptedString(), nullable=True)
    method = Column(String(30), nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="PENDING")
    verification_metadata = Column("metadata", JSONType, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
