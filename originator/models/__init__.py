from originator.models.applicant_account import ApplicantAccount
from originator.models.application import Application
from originator.models.application_status_history import ApplicationStatusHistory
from originator.models.audit_log import AuditLog
from originator.models.data_verification import DataVerification
from originator.models.person import Person
from originator.models.person_identification import PersonIdentification
from originator.models.staff_account import StaffAccount
from originator.models.tenant import Tenant

__all__ = [
    "ApplicantAccount",
    "Application",
    "ApplicationStatusHistory",
    "AuditLog",
    "DataVerification",
    "Person",
    "PersonIdentification",
    "StaffAccount",
    "Tenant",
]
