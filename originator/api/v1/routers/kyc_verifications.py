from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from originator.api import deps
from originator.core.errors import http_error_from
from originator.core.permissions import PermissionCode
from originator.db.session import get_db
from originator.models.person import Person
from originator.models.staff_account import StaffAccount
from originator.schemas.verification import (
    DataVerificationDTO,
    IneDocumentRequest,
    LockedFieldsResponse,
    ProofOfAddressRequest,
    SelfieDocumentRequest,
    KycDocumentType,
    VerifiableField,
    VerificationMethod,
    VerificationSummary,
    VerifyFieldRequest,
    VerifyFieldResponse,
)
from originator.services import authz, verification

router = APIRouter(prefix="/staff/persons/{person_id}/verifications", tags=["kyc-verifications"])


async def _load_person(db: AsyncSession, ctx: deps.TenantContext, person_id: UUID) -> Person:
    result = await db.execute(
        select(Person).where(Person.id == person_id, Person.tenant_id == ctx.tenant_id)
    )
    person = result.scalar_one_or_none()
    if not person:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found")
    return person


async def _lock_allows(db: AsyncSession, person: Person, field: VerifiableField, method: VerificationMethod) -> bool:
    """False when a locked field would ignore a write from this method."""
    return method.is_official_source or not await verification.is_locked(db, person, field)


def _verify_response(record, value_applied: bool) -> VerifyFieldResponse:
    return VerifyFieldResponse(
        applied=value_applied,
        verification=DataVerificationDTO.model_validate(record) if record is not None else None,
    )


@router.get("", response_model=VerificationSummary, summary="Verification summary for a person")
async def get_summary(
    person_id: UUID,
    _: object = Depends(deps.require_permission(PermissionCode.KYC_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerificationSummary:
    person = await _load_person(db, ctx, person_id)
    summary = await verification.get_summary(db, person)
    kyc_completed = await verification.has_completed_kyc(db, person)
    return VerificationSummary(**summary, kyc_completed=kyc_completed)


@router.get("/locked", response_model=LockedFieldsResponse, summary="Fields locked by automated sources")
async def get_locked_fields(
    person_id: UUID,
    _: object = Depends(deps.require_permission(PermissionCode.KYC_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> LockedFieldsResponse:
    person = await _load_person(db, ctx, person_id)
    return LockedFieldsResponse(fields=await verification.get_locked_fields(db, person))


@router.get("/{field}", response_model=DataVerificationDTO, summary="Current verification of one field")
async def get_field_verification(
    person_id: UUID,
    field: VerifiableField,
    _: object = Depends(deps.require_permission(PermissionCode.KYC_VIEW)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> DataVerificationDTO:
    person = await _load_person(db, ctx, person_id)
    record = await verification.get_verification(db, person, field)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Verification not found")
    return DataVerificationDTO.model_validate(record)


@router.post("", response_model=VerifyFieldResponse, summary="Record a verified field value")
async def verify_field(
    person_id: UUID,
    payload: VerifyFieldRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.KYC_VERIFY)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerifyFieldResponse:
    person = await _load_person(db, ctx, person_id)
    applies = await _lock_allows(db, person, payload.field, payload.method)
    try:
        record = await verification.verify(
            db,
            ctx,
            person,
            payload.field,
            payload.value,
            payload.method,
            metadata=payload.metadata,
            notes=payload.notes,
            actor=authz.actor_for_staff(current_staff),
        )
    except verification.VerificationError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _verify_response(record, record is not None and applies)


@router.post("/documents/ine", response_model=VerifyFieldResponse, summary="Verify an INE side")
async def verify_ine(
    person_id: UUID,
    payload: IneDocumentRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.KYC_VERIFY)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerifyFieldResponse:
    person = await _load_person(db, ctx, person_id)
    applies = await _lock_allows(
        db, person, verification.ine_document_type(payload.side).field, VerificationMethod.KYC_INE_OCR
    )
    try:
        record = await verification.verify_ine_document(
            db,
            ctx,
            person,
            payload.side,
            payload.document_id,
            payload.ocr_data,
            actor=authz.actor_for_staff(current_staff),
        )
    except verification.VerificationError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _verify_response(record, record is not None and applies)


@router.post("/documents/selfie", response_model=VerifyFieldResponse, summary="Verify a selfie face match")
async def verify_selfie(
    person_id: UUID,
    payload: SelfieDocumentRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.KYC_VERIFY)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerifyFieldResponse:
    person = await _load_person(db, ctx, person_id)
    applies = await _lock_allows(db, person, KycDocumentType.SELFIE.field, VerificationMethod.KYC_FACE_MATCH)
    try:
        record = await verification.verify_selfie_document(
            db,
            ctx,
            person,
            payload.document_id,
            payload.face_match_data,
            actor=authz.actor_for_staff(current_staff),
        )
    except verification.VerificationError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _verify_response(record, record is not None and applies)


@router.post(
    "/documents/proof-of-address",
    response_model=VerifyFieldResponse,
    summary="Verify a proof of address",
)
async def verify_proof_of_address(
    person_id: UUID,
    payload: ProofOfAddressRequest,
    current_staff: StaffAccount = Depends(deps.require_permission(PermissionCode.KYC_VERIFY)),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerifyFieldResponse:
    person = await _load_person(db, ctx, person_id)
    applies = await _lock_allows(
        db, person, KycDocumentType.PROOF_OF_ADDRESS.field, VerificationMethod.DOCUMENT
    )
    try:
        record = await verification.verify_proof_of_address(
            db,
            ctx,
            person,
            payload.document_id,
            payload.address_data,
            actor=authz.actor_for_staff(current_staff),
        )
    except verification.VerificationError as exc:
        raise http_error_from(exc) from exc
    await db.commit()
    return _verify_response(record, record is not None and applies)
