"""
Legacy user migration endpoint, called by the login flow before every sign-in.
"""

from typing import Tuple

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from nayscake.api.deps import get_migration_credentials, get_migration_service
from nayscake.core.logging import get_logger
from nayscake.schemas.migration import MigrateUserResponse
from nayscake.services.user_migration import MigrationStatus, UserMigrationService

logger = get_logger(__name__)

router = APIRouter()

MIGRATION_ERROR_MESSAGE = "An error occurred during user migration."


def _migration_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=MigrateUserResponse(
            success=False, message=MIGRATION_ERROR_MESSAGE
        ).model_dump(exclude_none=True),
    )


@router.post(
    "",
    response_model=MigrateUserResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Username or password missing"},
        500: {"description": "Migration failed or database not configured"},
    },
)
def migrate_user(
    credentials: Tuple[str, str] = Depends(get_migration_credentials),
    service: UserMigrationService = Depends(get_migration_service),
):
    """
    Migrate a legacy user to the new auth provider, if one exists.

    Process:
    1. Look up the username in the legacy user table
    2. Check the password against the legacy hash
    3. Create the user in the auth provider with a placeholder email
    4. Re-point transactions from the legacy id to the new id
    5. Delete the legacy user row

    An unknown username and a wrong password give the same response, so the
    endpoint reveals nothing about which legacy accounts exist. A failure
    never blocks the caller's subsequent sign-in.

    Returns:
        {"success": true, "migrated": true|false} or, on failure,
        HTTP 500 with {"success": false, "message": ...}
    """
    username, password = credentials
    try:
        outcome = service.migrate(username, password)
    except Exception as e:
        logger.error(
            "Unhandled error in migrate-user endpoint",
            exc_info=e,
            extra={"username": username},
        )
        return _migration_error_response()

    if outcome.status == MigrationStatus.FAILED:
        return _migration_error_response()

    return MigrateUserResponse(success=True, migrated=outcome.migrated)
