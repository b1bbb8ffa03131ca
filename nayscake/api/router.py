"""
API router that includes all endpoint routers.
"""

from fastapi import APIRouter

from nayscake.api.endpoints import migrate_user

api_router = APIRouter()

api_router.include_router(
    migrate_user.router, prefix="/migrate-user", tags=["migration"]
)
