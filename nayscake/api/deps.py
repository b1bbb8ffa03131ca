"""
API dependencies for request validation and database access.
"""

from typing import Any, Tuple

from fastapi import Depends
from sqlalchemy.orm import Session

from nayscake.db.database import get_db
from nayscake.schemas.migration import MigrateUserRequest
from nayscake.services import auth_provider
from nayscake.services.user_migration import UserMigrationService, validate_credentials

__all__ = [
    "get_auth_provider",
    "get_db",
    "get_migration_credentials",
    "get_migration_service",
]


def get_migration_credentials(payload: MigrateUserRequest) -> Tuple[str, str]:
    """
    Validate the submitted credentials.

    Declared ahead of the database dependency so that a missing field is
    rejected before any connection is requested.
    """
    return validate_credentials(payload.username, payload.password)


def get_auth_provider() -> Any:
    return auth_provider.auth_provider_service


def get_migration_service(
    db: Session = Depends(get_db),
    provider: Any = Depends(get_auth_provider),
) -> UserMigrationService:
    return UserMigrationService(db, provider=provider)
