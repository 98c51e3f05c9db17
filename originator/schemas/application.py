from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    DOCS_PENDING = "DOCS_PENDING"
    CORRECTIONS_PENDING = "CORRECTIONS_PENDING"
    COUNTER_OFFERED = "COUNTER_OFFERED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    DISBURSED = "DISBURSED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFAULT = "DEFAULT"
    SYNCED = "SYNCED"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    ApplicationStatus.DRAFT: "Borrador",
    ApplicationStatus.SUBMITTED: "Enviada",
    ApplicationStatus.IN_REVIEW: "En revisión",
    ApplicationStatus.DOCS_PENDING: "Documentos pendientes",
    ApplicationStatus.CORRECTIONS_PENDING: "Correcciones pendientes",
    ApplicationStatus.COUNTER_OFFERED: "Contraoferta",
    ApplicationStatus.APPROVED: "Aprobada",
    ApplicationStatus.REJECTED: "Rechazada",
    ApplicationStatus.CANCELLED: "Cancelada",
    ApplicationStatus.DISBURSED: "Desembolsada",
    ApplicationStatus.ACTIVE: "Activa",
    ApplicationStatus.COMPLETED: "Completada",
    ApplicationStatus.DEFAULT: "En mora",
    ApplicationStatus.SYNCED: "Sincronizada",
}


class ApplicationDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COUNTER_OFFER = "COUNTER_OFFER"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class ActorType(str, Enum):
    STAFF = "staff"
    APPLICANT = "applicant"
    SYSTEM = "system"


class ApplicationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    person_id: UUID | None = None
    company_id: UUID | None = None
    product_id: UUID | None = None
    status: ApplicationStatus
    version: int | None = None
    requested_amount: Decimal
    requested_term_months: int
    interest_rate: Decimal | None = None
    decision: str | None = None
    decision_at: datetime | None = None
    decision_notes: str | None = None
    approved_amount: Decimal | None = None
    approved_term_months: int | None = None
    approved_interest_rate: Decimal | None = None
    approved_monthly_payment: Decimal | None = None
    rejection_reason: str | None = None
    counter_offer: dict[str, Any] | None = None
    counter_offer_accepted: bool | None = None
    assigned_to: UUID | None = None
    assigned_by: UUID | None = None
    assigned_at: datetime | None = None
    risk_level: RiskLevel | None = None
    risk_data: dict[str, Any] | None = None
    verification_checklist: dict[str, bool] | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    disbursed_at: datetime | None = None
    synced_at: datetime | None = None
    status_changed_at: datetime | None = None
    external_id: str | None = None
    external_system: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StatusHistoryEntryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    from_status: ApplicationStatus | None = None
    to_status: ApplicationStatus
    changed_by: UUID | None = None
    changed_by_type: ActorType
    notes: str | None = None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("transition_metadata", "metadata"),
    )
    created_at: datetime | None = None


class StatusHistoryListResponse(BaseModel):
    items: list[StatusHistoryEntryDTO]
    total: int


class StatusOption(BaseModel):
    value: ApplicationStatus
    label: str


class AllowedStatusesResponse(BaseModel):
    current_status: ApplicationStatus
    is_terminal: bool
    is_stale: bool
    allowed: list[StatusOption]


class StatusChangeRequest(BaseModel):
    status: ApplicationStatus
    reason: str | None = Field(default=None, max_length=1000)
    metadata: dict[str, Any] | None = None


class ApproveRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    term_months: int | None = Field(default=None, ge=1, le=360)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=1000)


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=100)
    notes: str | None = Field(default=None, max_length=1000)


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class AssignRequest(BaseModel):
    assignee_id: UUID


class CounterOfferRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    term_months: int = Field(ge=1, le=360)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    reason: str | None = Field(default=None, max_length=1000)


class CounterOfferResponseRequest(BaseModel):
    accepted: bool


class VerificationChecklistUpdate(BaseModel):
    checks: dict[str, bool]


class RiskAssessmentRequest(BaseModel):
    level: RiskLevel
    data: dict[str, Any] | None = None
