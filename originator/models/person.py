import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from originator.db.base import Base
from originator.models.types import JSONType


KYC_PENDING = "PENDING"
KYC_IN_PROGRESS = "IN_PROGRESS"
KYC_VERIFIED = "VERIFIED"
KYC_REJECTED = "REJECTED"
KYC_EXPIRED = "EXPIRED"

KYC_STATUSES = (KYC_PENDING, KYC_IN_PROGRESS, KYC_VERIFIED, KYC_REJECTED, KYC_EXPIRED)


class Person(Base):
    __tablename__ = "persons"
    __table_args__ = (
        CheckConstraint(
            "kyc_status IN ('PENDING', 'IN_PROGRESS', 'VERIFIED', 'REJECTED', 'EXPIRED')",
            name="ck_persons_kyc_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name_1 = Column(String(100), nullable=True)
    last_name_2 = Column(String(100), nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String(1), nullable=True)
    nationality = Column(String(3), nullable=True)
    curp = Column(String(18), nullable=True, index=True)
    rfc = Column(String(13), nullable=True)
    kyc_status = Column(String(20), nullable=False, default=KYC_PENDING)
    kyc_verified_at = Column(DateTime(timezone=True), nullable=True)
    kyc_verified_by = Column(String(100), nullable=True)
    kyc_data = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name_1, self.last_name_2]
        return " ".join(part for part in parts if part)

    @property
    def is_kyc_verified(self) -> bool:
        return self.kyc_status == KYC_VERIFIED
