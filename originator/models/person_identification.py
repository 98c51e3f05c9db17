import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from originator.db.base import Base
from originator.models.types import EncryptedString


IDENTIFICATION_TYPES = ("CURP", "RFC", "INE", "PASSPORT", "DRIVER_LICENSE")

STATUS_PENDING = "PENDING"
STATUS_VERIFIED = "VERIFIED"
STATUS_REJECTED = "REJECTED"
STATUS_EXPIRED = "EXPIRED"
STATUS_SUPERSEDED = "SUPERSEDED"


class PersonIdentification(Base):
    """Identification document of a person; versions are appended, only one is current per type."""

    __tablename__ = "person_identifications"
    __table_args__ = (
        CheckConstraint(
            "type IN ('CURP', 'RFC', 'INE', 'PASSPORT', 'DRIVER_LICENSE')",
            name="ck_person_identifications_type",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'VERIFIED', 'REJECTED', 'EXPIRED', 'SUPERSEDED')",
            name="ck_person_identifications_status",
        ),
        Index("ix_person_identifications_person_type_current", "person_id", "type", "is_current"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(UUID(as_uuid=True), ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(30), nullable=False)
    identifier_value = Column(EncryptedString(), nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    is_current = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_method = Column(String(40), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
