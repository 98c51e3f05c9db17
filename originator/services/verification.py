from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field as dataclass_field
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from originator.api import deps
from originator.core.logging import get_audit_logger
from originator.models.applicant_account import ApplicantAccount
from originator.models.data_verification import DataVerification
from originator.models.person import KYC_VERIFIED, Person
from originator.models.person_identification import STATUS_VERIFIED, PersonIdentification
from originator.schemas.verification import (
    IneSide,
    KycDocumentType,
    VerifiableField,
    VerificationMethod,
    VerificationStatus,
)
from originator.services import authz
from originator.services.audit import record_actor_audit


logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

Subject = Union[Person, ApplicantAccount]

F = VerifiableField

IDENTIFICATION_FIELDS: Mapping[VerifiableField, str] = MappingProxyType(
    {
        F.CURP: "CURP",
        F.RFC: "RFC",
        F.INE_DOCUMENT_FRONT: "INE",
        F.INE_DOCUMENT_BACK: "INE",
        F.INE_CIC: "INE",
        F.INE_CLAVE: "INE",
    }
)

PERSON_DATA_FIELDS = frozenset(
    {
        F.FIRST_NAME,
        F.LAST_NAME_1,
        F.LAST_NAME_2,
        F.BIRTH_DATE,
        F.GENDER,
        F.NATIONALITY,
        F.BIRTH_STATE,
        F.BIRTH_COUNTRY,
    }
)

KYC_RELATED_FIELDS = frozenset(IDENTIFICATION_FIELDS) | PERSON_DATA_FIELDS

KYC_CRITICAL_FIELDS = frozenset({F.CURP, F.FIRST_NAME, F.LAST_NAME_1, F.BIRTH_DATE})

INE_FRONT_OCR_FIELDS = (F.CURP, F.FIRST_NAME, F.LAST_NAME_1, F.LAST_NAME_2, F.BIRTH_DATE)

ADDRESS_FIELDS = (
    F.STREET,
    F.EXTERIOR_NUMBER,
    F.INTERIOR_NUMBER,
    F.COLONY,
    F.CITY,
    F.STATE,
    F.POSTAL_CODE,
)


@dataclass(frozen=True)
class VerificationError(ValueError):
    code: str
    message: str
    details: dict = dataclass_field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class UnknownVerificationValue(VerificationError):
    pass


def _parse(enum_cls, value, kind: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise UnknownVerificationValue(
            code=f"unknown_{kind}",
            message=f"Valor desconocido para {kind}: {value!r}",
            details={kind: value, "allowed": [member.value for member in enum_cls]},
        ) from None


def parse_verification_method(value: VerificationMethod | str) -> VerificationMethod:
    return _parse(VerificationMethod, value, "method")


def parse_verifiable_field(value: VerifiableField | str) -> VerifiableField:
    return _parse(VerifiableField, value, "field")


def parse_document_type(value: KycDocumentType | str) -> KycDocumentType:
    return _parse(KycDocumentType, value, "document_type")


def parse_ine_side(value: IneSide | str) -> IneSide:
    return _parse(IneSide, value, "side")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def serialize_value(value: Any) -> str | None:
    """Structured values are stored as JSON, scalars as their string form."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def generate_notes(field: VerifiableField, method: VerificationMethod) -> str:
    return f"{field.label} verificado vía {method.label}"


async def resolve_person(db: AsyncSession, subject: Subject) -> Person | None:
    """A person is the unit of verification; accounts resolve through their linked person."""
    if isinstance(subject, Person):
        return subject
    if subject.person_id is None:
        return None
    return await db.get(Person, subject.person_id)


async def _get_current_verification(
    db: AsyncSession,
    person_id: UUID,
    field_name: str,
    *,
    for_update: bool = False,
) -> DataVerification | None:
    stmt = select(DataVerification).where(
        DataVerification.person_id == person_id,
        DataVerification.field_name == field_name,
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _list_verifications(db: AsyncSession, person_id: UUID) -> list[DataVerification]:
    stmt = (
        select(DataVerification)
        .where(DataVerification.person_id == person_id)
        .order_by(DataVerification.field_name.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _verified_field_names(db: AsyncSession, person_id: UUID, field_names: Iterable[str]) -> set[str]:
    stmt = select(DataVerification.field_name).where(
        DataVerification.person_id == person_id,
        DataVerification.field_name.in_(list(field_names)),
        DataVerification.is_verified.is_(True),
    )
    result = await db.execute(stmt)
    return set(result.scalars().all())


async def _get_current_identification(
    db: AsyncSession,
    person_id: UUID,
    identification_type: str,
) -> PersonIdentification | None:
    stmt = select(PersonIdentification).where(
        PersonIdentification.person_id == person_id,
        PersonIdentification.type == identification_type,
        PersonIdentification.is_current.is_(True),
    )
    result = await db.execute(stmt)
    return result.scalars().first()


def _update_entity_timestamps(db: AsyncSession, subject: Subject, field: VerifiableField) -> None:
    if not isinstance(subject, ApplicantAccount):
        return
    if field == F.PHONE and subject.phone_verified_at is None:
        subject.phone_verified_at = _now()
        db.add(subject)
    elif field == F.EMAIL and subject.email_verified_at is None:
        subject.email_verified_at = _now()
        db.add(subject)


def _blocked_by_lock(existing: DataVerification | None, method: VerificationMethod) -> bool:
    return existing is not None and bool(existing.is_locked) and not method.is_official_source


def _apply_verification(
    verification: DataVerification,
    *,
    value: str | None,
    method: VerificationMethod,
    metadata: dict[str, Any],
    notes: str,
) -> None:
    verification.field_value = value
    verification.method = method.value
    verification.is_verified = True
    verification.is_locked = method.is_automated
    verification.status = VerificationStatus.VERIFIED.value
    verification.verification_metadata = metadata
    verification.notes = notes


async def _upsert(
    db: AsyncSession,
    person: Person,
    field: VerifiableField,
    method: VerificationMethod,
    existing: DataVerification | None,
    **values: Any,
) -> DataVerification | None:
    """Write the verification; returns None when a concurrent writer's lock wins."""
    if existing is not None:
        _apply_verification(existing, method=method, **values)
        db.add(existing)
        await db.flush()
        return existing

    verification = DataVerification(
        tenant_id=person.tenant_id,
        person_id=person.id,
        field_name=field.value,
    )
    _apply_verification(verification, method=method, **values)
    try:
        async with db.begin_nested():
            db.add(verification)
    except IntegrityError:
        logger.warning(
            "Concurrent first verification of %s for person %s; re-reading",
            field.value,
            person.id,
        )
        winner = await _get_current_verification(db, person.id, field.value, for_update=True)
        if winner is None:
            raise
        if _blocked_by_lock(winner, method):
            return None
        _apply_verification(winner, method=method, **values)
        db.add(winner)
        await db.flush()
        return winner
    return verification


async def verify(
    db: AsyncSession,
    ctx: deps.TenantContext,
    subject: Subject,
    field: VerifiableField | str,
    value: Any,
    method: VerificationMethod | str,
    *,
    metadata: dict[str, Any] | None = None,
    notes: str | None = None,
    actor: authz.Actor | None = None,
) -> DataVerification | None:
    """Record a verified value for one field of the subject's person.

    Returns None when there is no person to attach the record to. A locked field
    is only overwritten by an official registry; any other source gets the
    existing record back unchanged.
    """
    field = parse_verifiable_field(field)
    method = parse_verification_method(method)

    _update_entity_timestamps(db, subject, field)
    person = await resolve_person(db, subject)
    if person is None:
        await db.flush()
        return None

    existing = await _get_current_verification(db, person.id, field.value, for_update=True)
    if _blocked_by_lock(existing, method):
        logger.info(
            "Field %s of person %s is locked; ignoring %s verification",
            field.value,
            person.id,
            method.value,
        )
        await db.flush()
        return existing

    full_metadata = {"verified_at": _now().isoformat(), **(metadata or {})}
    verification = await _upsert(
        db,
        person,
        field,
        method,
        existing,
        value=serialize_value(value),
        metadata=full_metadata,
        notes=notes or generate_notes(field, method),
    )
    if verification is None:
        # Lost the first-insert race to a locking writer.
        return await _get_current_verification(db, person.id, field.value)

    await sync_to_related(db, ctx, person, field, method)

    actor = actor or authz.SYSTEM_ACTOR
    record_actor_audit(
        db,
        ctx,
        actor,
        action="verification.field_verified",
        resource_type="person",
        resource_id=str(person.id),
        new_value={
            "field": field.value,
            "method": method.value,
            "is_locked": verification.is_locked,
        },
    )
    await db.flush()
    await db.refresh(verification)
    audit_logger.info(
        "Field %s of person %s verified via %s (locked=%s)",
        field.value,
        person.id,
        method.value,
        verification.is_locked,
        extra={"event": "verification.field_verified"},
    )
    return verification


def _unpack_batch_item(data: Any, default_method: VerificationMethod | str) -> dict[str, Any]:
    if isinstance(data, dict):
        value = data.get("value")
        return {
            "value": value if value is not None else data.get(0),
            "method": data.get("method") or default_method,
            "metadata": data.get("metadata"),
            "notes": data.get("notes"),
        }
    if isinstance(data, (list, tuple)):
        padded = list(data) + [None] * (4 - len(data))
        return {
            "value": padded[0],
            "method": padded[1] or default_method,
            "metadata": padded[2],
            "notes": padded[3],
        }
    return {"value": data, "method": default_method, "metadata": None, "notes": None}


async def verify_batch(
    db: AsyncSession,
    ctx: deps.TenantContext,
    subject: Subject,
    verifications: Mapping[VerifiableField | str, Any],
    *,
    default_method: VerificationMethod | str = VerificationMethod.API,
    actor: authz.Actor | None = None,
) -> dict[str, DataVerification | None]:
    """Each entry is a bare value, a ``{"value", "method", "metadata", "notes"}`` map or a tuple."""
    parsed = {parse_verifiable_field(name): data for name, data in verifications.items()}
    results: dict[str, DataVerification | None] = {}
    for field, data in parsed.items():
        item = _unpack_batch_item(data, default_method)
        results[field.value] = await verify(
            db,
            ctx,
            subject,
            field,
            item["value"],
            item["method"],
            metadata=item["metadata"],
            notes=item["notes"],
            actor=actor,
        )
    return results


async def sync_to_related(
    db: AsyncSession,
    ctx: deps.TenantContext,
    person: Person,
    field: VerifiableField,
    method: VerificationMethod,
) -> None:
    identification_type = IDENTIFICATION_FIELDS.get(field)
    if identification_type is not None:
        identification = await _get_current_identification(db, person.id, identification_type)
        if identification is not None and identification.status != STATUS_VERIFIED:
            identification.status = STATUS_VERIFIED
            identification.verified_at = _now()
            identification.verification_method = method.value
            db.add(identification)

    if field in KYC_RELATED_FIELDS:
        await reevaluate_kyc_status(db, ctx, person)


async def has_completed_kyc(db: AsyncSession, subject: Subject) -> bool:
    person = await resolve_person(db, subject)
    if person is None:
        return False
    critical = {field.value for field in KYC_CRITICAL_FIELDS}
    verified = await _verified_field_names(db, person.id, critical)
    return critical <= verified


async def reevaluate_kyc_status(db: AsyncSession, ctx: deps.TenantContext, person: Person) -> bool:
    """Stamp the person as KYC-verified once every critical field is verified; never reverts."""
    if person.kyc_verified_at is not None:
        return False
    if not await has_completed_kyc(db, person):
        return False
    old_status = person.kyc_status
    person.kyc_status = KYC_VERIFIED
    person.kyc_verified_at = _now()
    person.kyc_verified_by = "verification"
    db.add(person)
    record_actor_audit(
        db,
        ctx,
        authz.SYSTEM_ACTOR,
        action="person.kyc_verified",
        resource_type="person",
        resource_id=str(person.id),
        old_value={"kyc_status": old_status},
        new_value={"kyc_status": KYC_VERIFIED},
    )
    audit_logger.info(
        "Person %s completed KYC",
        person.id,
        extra={"event": "person.kyc_verified"},
    )
    return True


async def is_locked(db: AsyncSession, subject: Subject, field: VerifiableField | str) -> bool:
    field = parse_verifiable_field(field)
    person = await resolve_person(db, subject)
    if person is None:
        return False
    verification = await _get_current_verification(db, person.id, field.value)
    return verification is not None and bool(verification.is_locked)


async def is_verified(db: AsyncSession, subject: Subject, field: VerifiableField | str) -> bool:
    field = parse_verifiable_field(field)
    person = await resolve_person(db, subject)
    if person is None:
        return False
    verification = await _get_current_verification(db, person.id, field.value)
    return verification is not None and bool(verification.is_verified)


async def get_verification(
    db: AsyncSession, subject: Subject, field: VerifiableField | str
) -> DataVerification | None:
    field = parse_verifiable_field(field)
    person = await resolve_person(db, subject)
    if person is None:
        return None
    return await _get_current_verification(db, person.id, field.value)


async def get_locked_fields(db: AsyncSession, subject: Subject) -> list[str]:
    person = await resolve_person(db, subject)
    if person is None:
        return []
    return [item.field_name for item in await _list_verifications(db, person.id) if item.is_locked]


async def get_summary(db: AsyncSession, subject: Subject) -> dict[str, Any]:
    person = await resolve_person(db, subject)
    if person is None:
        return {"total": 0, "verified": 0, "locked": 0, "pending": 0, "fields": {}}
    verifications = await _list_verifications(db, person.id)
    return {
        "total": len(verifications),
        "verified": sum(1 for item in verifications if item.is_verified),
        "locked": sum(1 for item in verifications if item.is_locked),
        "pending": sum(1 for item in verifications if item.status == VerificationStatus.PENDING.value),
        "fields": {
            item.field_name: {
                "verified": bool(item.is_verified),
                "locked": bool(item.is_locked),
                "method": item.method,
                "status": item.status,
            }
            for item in verifications
        },
    }


async def verify_document(
    db: AsyncSession,
    ctx: deps.TenantContext,
    subject: Subject,
    document_type: KycDocumentType | str,
    document_id: str,
    method: VerificationMethod | str,
    *,
    metadata: dict[str, Any] | None = None,
    fields_to_lock: Mapping[VerifiableField | str, Any] | None = None,
    actor: authz.Actor | None = None,
) -> DataVerification | None:
    """Verify the document field, then push each extracted value through ``verify``."""
    document_type = parse_document_type(document_type)
    method = parse_verification_method(method)
    derived = {parse_verifiable_field(name): value for name, value in (fields_to_lock or {}).items()}

    verification = await verify(
        db,
        ctx,
        subject,
        document_type.field,
        document_id,
        method,
        metadata={
            **(metadata or {}),
            "document_id": document_id,
            "document_type": document_type.value,
        },
        actor=actor,
    )
    if verification is None or not derived:
        return verification

    person = await resolve_person(db, subject)
    for derived_field, value in derived.items():
        await verify(
            db,
            ctx,
            person,
            derived_field,
            value,
            method,
            metadata={
                "locked_by_document": document_type.value,
                "document_id": document_id,
            },
            actor=actor,
        )
    return verification


def _present(data: Mapping[str, Any], fields: Iterable[VerifiableField]) -> dict[VerifiableField, Any]:
    return {field: data[field.value] for field in fields if data.get(field.value)}


def ine_document_type(side: IneSide | str) -> KycDocumentType:
    return KycDocumentType.INE_FRONT if parse_ine_side(side) == IneSide.FRONT else KycDocumentType.INE_BACK


async def verify_ine_document(
    db: AsyncSession,
    ctx: deps.TenantContext,
    subject: Subject,
    side: IneSide | str,
    document_id: str,
    ocr_data: dict[str, Any] | None = None,
    *,
    actor: authz.Actor | None = None,
) -> DataVerification | None:
    """Front-side OCR also locks the identity fields it read."""
    side = parse_ine_side(side)
    ocr_data = ocr_data or {}
    fields_to_lock = _present(ocr_data, INE_FRONT_OCR_FIELDS) if side == IneSide.FRONT else {}
    return await verify_document(
        db,
        ctx,
        subject,
        ine_document_type(side),
        document_id,
        VerificationMethod.KYC_INE_OCR,
        metadata={"ocr_data": ocr_data, "ine_valid": True, "auto_approved": True},
        fields_to_lock=fields_to_lock,
        actor=actor,
    )


async def verify_selfie_document(
    db: AsyncSession,
    ctx: deps.TenantContext,
    subject: Subject,
    document_id: str,
    face_match_data: dict[str, Any] | None = None,
    *,
    actor: authz.Actor | None = None,
) -> DataVerification | None:
    face_match_data = face_match_data or {}
    return await verify_document(
        db,
        ctx,
        subject,
        KycDocumentType.SELFIE,
        document_id,
        VerificationMethod.KYC_FACE_MATCH,
        metadata={
            "face_match_score": face_match_data.get("face_match_score"),
            "face_match_passed": face_match_data.get("face_match_passed", False),
            "liveness_passed": face_match_data.get("liveness_passed"),
            "liveness_score": face_match_data.get("liveness_score"),
            "auto_approved": True,
        },
        actor=actor,
    )


async def verify_proof_of_address(
    db: AsyncSession,
    ctx: deps.TenantContext,
    subject: Subject,
    document_id: str,
    address_data: dict[str, Any] | None = None,
    *,
    actor: authz.Actor | None = None,
) -> DataVerification | None:
    address_data = address_data or {}
    return await verify_document(
        db,
        ctx,
        subject,
        KycDocumentType.PROOF_OF_ADDRESS,
        document_id,
        VerificationMethod.DOCUMENT,
        metadata={"address_data": address_data},
        fields_to_lock=_present(address_data, ADDRESS_FIELDS),
        actor=actor,
    )
