from fastapi import APIRouter

from examhub.api.v1.endpoints import attempts, auth, exams, health, profiles, storage
from examhub.schemas.common import ErrorResponse

DOMAIN_ERRORS = {code: {"model": ErrorResponse} for code in (403, 404, 409, 422)}

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(profiles.router, responses=DOMAIN_ERRORS)
api_router.include_router(exams.router, responses=DOMAIN_ERRORS)
api_router.include_router(attempts.router, responses=DOMAIN_ERRORS)
api_router.include_router(storage.router, responses=DOMAIN_ERRORS)
api_router.include_router(health.router)
