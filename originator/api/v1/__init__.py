from fastapi import APIRouter

from originator.api.v1.routers import (
    applicant_applications,
    health,
    kyc_verifications,
    staff_applications,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(staff_applications.router)
api_router.include_router(applicant_applications.router)
api_router.include_router(kyc_verifications.router)

__all__ = ["api_router"]
