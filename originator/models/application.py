import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from originator.db.base import Base
from originator.models.types import JSONType


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'IN_REVIEW', 'DOCS_PENDING', 'CORRECTIONS_PENDING', "
            "'COUNTER_OFFERED', 'APPROVED', 'REJECTED', 'CANCELLED', 'DISBURSED', 'ACTIVE', "
            "'COMPLETED', 'DEFAULT', 'SYNCED')",
            name="ck_applications_status",
        ),
        CheckConstraint(
            "(person_id IS NOT NULL) OR (company_id IS NOT NULL)",
            name="ck_applications_applicant_ref",
        ),
        CheckConstraint(
            "risk_level IS NULL OR risk_level IN ('LOW', 'MEDIUM', 'HIGH', 'VERY_HIGH')",
            name="ck_applications_risk_level",
        ),
        CheckConstraint("requested_amount > 0", name="ck_applications_requested_amount_positive"),
        CheckConstraint("requested_term_months > 0", name="ck_applications_requested_term_positive"),
        CheckConstraint("version >= 1", name="ck_applications_version_positive"),
        Index("ix_applications_tenant_status", "tenant_id", "status"),
        Index("ix_applications_tenant_assigned_to", "tenant_id", "assigned_to"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    person_id = Column(UUID(as_uuid=True), ForeignKey("persons.id", ondelete="RESTRICT"), nullable=True)
    company_id = Column(UUID(as_uuid=True), nullable=True)
    product_id = Column(UUID(as_uuid=True), nullable=True)
    status = Column(String(30), nullable=False, default="DRAFT")
    version = Column(Integer, nullable=False, default=1)

    requested_amount = Column(Numeric(14, 2), nullable=False)
    requested_term_months = Column(Integer, nullable=False)
    interest_rate = Column(Numeric(7, 4), nullable=True)

    decision = Column(String(20), nullable=True)
    decision_at = Column(DateTime(timezone=True), nullable=True)
    decision_by = Column(UUID(as_uuid=True), nullable=True)
    decision_notes = Column(Text, nullable=True)
    approved_amount = Column(Numeric(14, 2), nullable=True)
    approved_term_months = Column(Integer, nullable=True)
    approved_interest_rate = Column(Numeric(7, 4), nullable=True)
    approved_monthly_payment = Column(Numeric(14, 2), nullable=True)
    rejection_reason = Column(String(100), nullable=True)

    counter_offer = Column(JSONType, nullable=True)
    counter_offer_accepted = Column(Boolean, nullable=True)
    counter_offer_responded_at = Column(DateTime(timezone=True), nullable=True)

    assigned_to = Column(UUID(as_uuid=True), ForeignKey("staff_accounts.id", ondelete="SET NULL"), nullable=True)
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("staff_accounts.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    risk_level = Column(String(20), nullable=True)
    risk_data = Column(JSONType, nullable=True)
    verification_checklist = Column(JSONType, nullable=False, default=dict)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_by = Column(UUID(as_uuid=True), nullable=True)
    status_changed_by_type = Column(String(20), nullable=True)

    external_id = Column(String(100), nullable=True)
    external_system = Column(String(50), nullable=True)
    sync_data = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def has_counter_offer(self) -> bool:
        return bool(self.counter_offer) and self.counter_offer_responded_at is None
