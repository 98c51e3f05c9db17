from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class VerificationMethod(str, Enum):
    MANUAL = "MANUAL"
    OTP = "OTP"
    API = "API"
    DOCUMENT = "DOCUMENT"
    BUREAU = "BUREAU"
    KYC_INE_OCR = "KYC_INE_OCR"
    KYC_INE_LIST = "KYC_INE_LIST"
    KYC_CURP_RENAPO = "KYC_CURP_RENAPO"
    KYC_RFC_SAT = "KYC_RFC_SAT"
    RENAPO = "RENAPO"
    SAT = "SAT"
    KYC_FACE_MATCH = "KYC_FACE_MATCH"
    KYC_LIVENESS = "KYC_LIVENESS"
    KYC_OFAC = "KYC_OFAC"
    KYC_PLD = "KYC_PLD"
    NUBARIUM = "NUBARIUM"

    @property
    def label(self) -> str:
        return _METHOD_LABELS[self]

    @property
    def is_automated(self) -> bool:
        """Machine-verified methods lock the field they verify."""
        return self not in _HUMAN_METHODS

    @property
    def is_official_source(self) -> bool:
        """Government registry lookups, the only methods allowed to overwrite a locked field."""
        return self in _OFFICIAL_SOURCES


_METHOD_LABELS = {
    VerificationMethod.MANUAL: "Manual",
    VerificationMethod.OTP: "OTP",
    VerificationMethod.API: "API",
    VerificationMethod.DOCUMENT: "Documento",
    VerificationMethod.BUREAU: "Buró de crédito",
    VerificationMethod.KYC_INE_OCR: "OCR de INE",
    VerificationMethod.KYC_INE_LIST: "Lista Nominal INE",
    VerificationMethod.KYC_CURP_RENAPO: "CURP RENAPO",
    VerificationMethod.KYC_RFC_SAT: "RFC SAT",
    VerificationMethod.RENAPO: "RENAPO",
    VerificationMethod.SAT: "SAT",
    VerificationMethod.KYC_FACE_MATCH: "Reconocimiento facial",
    VerificationMethod.KYC_LIVENESS: "Prueba de vida",
    VerificationMethod.KYC_OFAC: "Lista OFAC",
    VerificationMethod.KYC_PLD: "Listas PLD",
    VerificationMethod.NUBARIUM: "Nubarium",
}

_HUMAN_METHODS = frozenset({VerificationMethod.MANUAL, VerificationMethod.DOCUMENT})

_OFFICIAL_SOURCES = frozenset(
    {
        VerificationMethod.RENAPO,
        VerificationMethod.KYC_CURP_RENAPO,
        VerificationMethod.SAT,
        VerificationMethod.KYC_RFC_SAT,
    }
)


class VerifiableField(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    CURP = "curp"
    RFC = "rfc"
    FIRST_NAME = "first_name"
    LAST_NAME_1 = "last_name_1"
    LAST_NAME_2 = "last_name_2"
    BIRTH_DATE = "birth_date"
    GENDER = "gender"
    NATIONALITY = "nationality"
    BIRTH_STATE = "birth_state"
    BIRTH_COUNTRY = "birth_country"
    INE_CIC = "ine_cic"
    INE_CLAVE = "ine_clave"
    INE_DOCUMENT_FRONT = "ine_document_front"
    INE_DOCUMENT_BACK = "ine_document_back"
    SELFIE_DOCUMENT = "selfie_document"
    FACE_MATCH = "face_match"
    PROOF_OF_ADDRESS = "proof_of_address"
    INCOME_PROOF_DOCUMENT = "income_proof_document"
    BANK_STATEMENT_DOCUMENT = "bank_statement_document"
    ADDRESS = "address"
    STREET = "street"
    EXTERIOR_NUMBER = "exterior_number"
    INTERIOR_NUMBER = "interior_number"
    COLONY = "colony"
    CITY = "city"
    STATE = "state"
    POSTAL_CODE = "postal_code"

    @property
    def label(self) -> str:
        return _FIELD_LABELS.get(self, self.value)


_FIELD_LABELS = {
    VerifiableField.PHONE: "Teléfono",
    VerifiableField.EMAIL: "Email",
    VerifiableField.CURP: "CURP",
    VerifiableField.RFC: "RFC",
    VerifiableField.FIRST_NAME: "Nombre",
    VerifiableField.LAST_NAME_1: "Apellido paterno",
    VerifiableField.LAST_NAME_2: "Apellido materno",
    VerifiableField.BIRTH_DATE: "Fecha de nacimiento",
    VerifiableField.INE_CIC: "INE",
    VerifiableField.INE_DOCUMENT_FRONT: "INE Frente",
    VerifiableField.INE_DOCUMENT_BACK: "INE Reverso",
    VerifiableField.PROOF_OF_ADDRESS: "Comprobante de domicilio",
    VerifiableField.ADDRESS: "Dirección",
    VerifiableField.STREET: "Calle",
    VerifiableField.EXTERIOR_NUMBER: "Número exterior",
    VerifiableField.COLONY: "Colonia",
    VerifiableField.CITY: "Ciudad",
    VerifiableField.STATE: "Estado",
    VerifiableField.POSTAL_CODE: "Código postal",
}


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


class KycDocumentType(str, Enum):
    INE_FRONT = "INE_FRONT"
    INE_BACK = "INE_BACK"
    PROOF_OF_ADDRESS = "PROOF_OF_ADDRESS"
    SELFIE = "SELFIE"
    INCOME_PROOF = "INCOME_PROOF"
    BANK_STATEMENT = "BANK_STATEMENT"

    @property
    def field(self) -> VerifiableField:
        return _DOCUMENT_FIELDS[self]


_DOCUMENT_FIELDS = {
    KycDocumentType.INE_FRONT: VerifiableField.INE_DOCUMENT_FRONT,
    KycDocumentType.INE_BACK: VerifiableField.INE_DOCUMENT_BACK,
    KycDocumentType.PROOF_OF_ADDRESS: VerifiableField.PROOF_OF_ADDRESS,
    KycDocumentType.SELFIE: VerifiableField.SELFIE_DOCUMENT,
    KycDocumentType.INCOME_PROOF: VerifiableField.INCOME_PROOF_DOCUMENT,
    KycDocumentType.BANK_STATEMENT: VerifiableField.BANK_STATEMENT_DOCUMENT,
}


class DataVerificationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    person_id: UUID
    field_name: VerifiableField
    field_value: str | None = None
    method: VerificationMethod
    is_verified: bool
    is_locked: bool
    status: VerificationStatus
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("verification_metadata", "metadata"),
    )
    notes: str | None = None
    updated_at: datetime | None = None


class FieldVerificationSummary(BaseModel):
    verified: bool
    locked: bool
    method: VerificationMethod | None = None
    status: VerificationStatus | None = None


class VerificationSummary(BaseModel):
    total: int
    verified: int
    locked: int
    pending: int
    kyc_completed: bool
    fields: dict[str, FieldVerificationSummary]


class LockedFieldsResponse(BaseModel):
    fields: list[VerifiableField]


class VerifyFieldRequest(BaseModel):
    field: VerifiableField
    value: str | int | float | dict[str, Any] | list[Any]
    method: VerificationMethod
    metadata: dict[str, Any] | None = None
    notes: str | None = Field(default=None, max_length=1000)


class VerifyFieldResponse(BaseModel):
    applied: bool
    verification: DataVerificationDTO | None = None


class IneSide(str, Enum):
    FRONT = "front"
    BACK = "back"


class IneDocumentRequest(BaseModel):
    side: IneSide
    document_id: str = Field(min_length=1, max_length=100)
    ocr_data: dict[str, Any] = Field(default_factory=dict)


class SelfieDocumentRequest(BaseModel):
    document_id: str = Field(min_length=1, max_length=100)
    face_match_data: dict[str, Any] = Field(default_factory=dict)


class ProofOfAddressRequest(BaseModel):
    document_id: str = Field(min_length=1, max_length=100)
    address_data: dict[str, Any] = Field(default_factory=dict)
