"""
Legacy user migration: moves a user from the legacy password table into the
new auth provider the first time they log in.

One attempt walks START -> LOOKED_UP -> AUTHENTICATED -> PROVISIONED ->
REPOINTED -> CLEANED_UP -> DONE. An unknown username and a wrong password both
end the attempt early with the same NOT_APPLICABLE outcome. Any failure ends
it with FAILED; nothing is retried within a request because the legacy row
survives until the final step, so the user's next login re-enters the flow.

The auth provider and the database are independent systems and no
transaction spans them. Failures after the provider user exists are logged
with both ids so resume_migration() can finish the job by hand.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from sqlalchemy.orm import Session

from nayscake.core.config import settings
from nayscake.core.logging import get_logger
from nayscake.core.metrics import get_metrics_collector
from nayscake.crud import legacy_user as legacy_crud
from nayscake.schemas.migration import RecordCounts
from nayscake.services import auth_provider
from nayscake.services.auth_provider import (
    ProvisioningError,
    UsernameAlreadyExistsError,
)

logger = get_logger(__name__)


class ValidationError(Exception):
    """Raised when username or password is missing from the request."""

    def __init__(self, message: str = "Username and password are required."):
        super().__init__(message)


class MigrationStepError(Exception):
    """A step failed after the auth provider user was created."""

    def __init__(self, message: str, legacy_user_id: int, new_user_id: str):
        super().__init__(message)
        self.legacy_user_id = legacy_user_id
        self.new_user_id = new_user_id


class RepointError(MigrationStepError):
    """Ownership records could not be moved to the new user id."""


class CleanupError(MigrationStepError):
    """The legacy user row could not be deleted."""


class MigrationStatus(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    MIGRATED = "migrated"
    FAILED = "failed"


class MigrationState(str, Enum):
    START = "start"
    LOOKED_UP = "looked_up"
    AUTHENTICATED = "authenticated"
    PROVISIONED = "provisioned"
    REPOINTED = "repointed"
    CLEANED_UP = "cleaned_up"
    DONE = "done"


# Outcome reasons. The two NOT_APPLICABLE reasons are only ever logged;
# callers see the same response for both.
REASON_NOT_FOUND = "legacy_user_not_found"
REASON_CREDENTIALS_MISMATCH = "credentials_mismatch"
REASON_MIGRATED = "migrated"
REASON_PROVISIONING_FAILED = "provisioning_failed"
REASON_USERNAME_TAKEN = "username_already_exists"
REASON_REPOINT_FAILED = "repoint_failed"
REASON_CLEANUP_FAILED = "cleanup_failed"
REASON_UNEXPECTED = "unexpected_error"


@dataclass
class MigrationOutcome:
    """Result of one migration attempt."""

    status: MigrationStatus
    reason: str
    legacy_user_id: Optional[int] = None
    new_user_id: Optional[str] = None
    failed_state: Optional[MigrationState] = None
    records: Optional[RecordCounts] = None

    @property
    def migrated(self) -> bool:
        return self.status == MigrationStatus.MIGRATED

    @property
    def failed(self) -> bool:
        return self.status == MigrationStatus.FAILED


@dataclass
class MigrationAttempt:
    """Transient state of a single request; never persisted."""

    username: str
    password: str = field(repr=False)
    state: MigrationState = MigrationState.START
    legacy_user_id: Optional[int] = None
    new_user_id: Optional[str] = None

    def advance(self, state: MigrationState) -> None:
        logger.debug(
            f"Migration attempt {self.state.value} -> {state.value}",
            extra={"username": self.username},
        )
        self.state = state


def validate_credentials(username: Any, password: Any) -> Tuple[str, str]:
    """
    Check that both credentials are present and non-blank.

    Raises:
        ValidationError: If either is missing
    """
    if not isinstance(username, str) or not username.strip():
        raise ValidationError()
    if not isinstance(password, str) or not password:
        raise ValidationError()
    return username, password


def placeholder_email(username: str) -> str:
    """Synthesize the non-functional email the auth provider requires."""
    return f"{username}@{settings.PLACEHOLDER_EMAIL_DOMAIN}"


def _record_outcome(outcome: MigrationOutcome, duration_ms: float) -> None:
    """Record the outcome metric; a metrics failure never changes the outcome."""
    collector = get_metrics_collector()
    if not collector:
        return
    try:
        collector.record_migration(outcome.status.value, outcome.reason, duration_ms)
    except Exception as e:
        logger.warning(
            f"Failed to record migration metrics: {e}",
            extra={"status": outcome.status.value, "reason": outcome.reason},
        )


class UserMigrationService:
    """Runs the migration flow for one login attempt."""

    def __init__(self, db: Session, provider: Any = None):
        self.db = db
        self.provider = provider or auth_provider.auth_provider_service

    def migrate(self, username: str, password: str) -> MigrationOutcome:
        """
        Migrate the legacy user behind these credentials, if there is one.

        Never raises for store or provider failures; they are logged and
        returned as a FAILED outcome.

        Raises:
            ValidationError: If username or password is missing
        """
        validate_credentials(username, password)
        attempt = MigrationAttempt(username=username, password=password)
        start_time = time.perf_counter()

        try:
            outcome = self._run(attempt)
        except ProvisioningError as e:
            outcome = self._provisioning_failed(attempt, e)
        except MigrationStepError as e:
            outcome = self._step_failed(attempt, e)
        except Exception as e:
            outcome = self._unexpected_failure(attempt, e)
        finally:
            attempt.advance(MigrationState.DONE)

        _record_outcome(outcome, (time.perf_counter() - start_time) * 1000)
        return outcome

    def _run(self, attempt: MigrationAttempt) -> MigrationOutcome:
        legacy_user = legacy_crud.get_legacy_user_by_username(self.db, attempt.username)
        attempt.advance(MigrationState.LOOKED_UP)
        if not legacy_user:
            logger.info(
                "No legacy user found, migration not needed",
                extra={"username": attempt.username},
            )
            return MigrationOutcome(MigrationStatus.NOT_APPLICABLE, REASON_NOT_FOUND)

        legacy_user_id = int(legacy_user.id)
        attempt.legacy_user_id = legacy_user_id

        identity = legacy_crud.authenticate_legacy_user(
            self.db, attempt.username, attempt.password
        )
        attempt.advance(MigrationState.AUTHENTICATED)
        if identity is None or identity.user_id != attempt.legacy_user_id:
            logger.info(
                "Legacy authentication failed, migration skipped",
                extra={
                    "username": attempt.username,
                    "legacy_user_id": attempt.legacy_user_id,
                },
            )
            return MigrationOutcome(
                MigrationStatus.NOT_APPLICABLE,
                REASON_CREDENTIALS_MISMATCH,
                legacy_user_id=attempt.legacy_user_id,
            )

        legacy_username = str(legacy_user.username)
        new_user = self.provider.create_user(
            password=attempt.password,
            name=legacy_username,
            username=legacy_username,
            display_username=legacy_username,
            email=placeholder_email(legacy_username),
            # Password ownership was just proven against the legacy hash
            email_verified=True,
        )
        new_user_id = new_user.get("id") if new_user else None
        if not new_user_id:
            raise ProvisioningError("Failed to create user in the new system.")
        attempt.new_user_id = str(new_user_id)
        attempt.advance(MigrationState.PROVISIONED)

        records = self._repoint(legacy_user_id, attempt.new_user_id)
        attempt.advance(MigrationState.REPOINTED)

        self._cleanup(legacy_user_id, attempt.new_user_id)
        attempt.advance(MigrationState.CLEANED_UP)

        logger.info(
            "Legacy user migrated",
            extra={
                "username": attempt.username,
                "legacy_user_id": attempt.legacy_user_id,
                "new_user_id": attempt.new_user_id,
                "records_repointed": records.model_dump(),
            },
        )
        return MigrationOutcome(
            MigrationStatus.MIGRATED,
            REASON_MIGRATED,
            legacy_user_id=attempt.legacy_user_id,
            new_user_id=attempt.new_user_id,
            records=records,
        )

    def _repoint(self, legacy_user_id: int, new_user_id: str) -> RecordCounts:
        try:
            return legacy_crud.repoint_ownership_links(
                self.db, str(legacy_user_id), new_user_id
            )
        except Exception as e:
            raise RepointError(
                f"Failed to re-point records: {e}", legacy_user_id, new_user_id
            ) from e

    def _cleanup(self, legacy_user_id: int, new_user_id: str) -> None:
        try:
            legacy_crud.delete_legacy_user(self.db, legacy_user_id)
        except Exception as e:
            raise CleanupError(
                f"Failed to delete legacy user: {e}", legacy_user_id, new_user_id
            ) from e

    def _provisioning_failed(
        self, attempt: MigrationAttempt, error: ProvisioningError
    ) -> MigrationOutcome:
        reason = (
            REASON_USERNAME_TAKEN
            if isinstance(error, UsernameAlreadyExistsError)
            else REASON_PROVISIONING_FAILED
        )
        logger.error(
            "Auth provider user creation failed, legacy user left in place",
            extra={
                "username": attempt.username,
                "legacy_user_id": attempt.legacy_user_id,
                "reason": reason,
                "status_code": error.status_code,
                "error": str(error),
            },
        )
        return MigrationOutcome(
            MigrationStatus.FAILED,
            reason,
            legacy_user_id=attempt.legacy_user_id,
            failed_state=attempt.state,
        )

    def _step_failed(
        self, attempt: MigrationAttempt, error: MigrationStepError
    ) -> MigrationOutcome:
        reason = (
            REASON_REPOINT_FAILED
            if isinstance(error, RepointError)
            else REASON_CLEANUP_FAILED
        )
        logger.error(
            "Migration incomplete, manual reconciliation required",
            exc_info=error,
            extra={
                "username": attempt.username,
                "legacy_user_id": error.legacy_user_id,
                "new_user_id": error.new_user_id,
                "reason": reason,
                "failed_state": attempt.state.value,
            },
        )
        return MigrationOutcome(
            MigrationStatus.FAILED,
            reason,
            legacy_user_id=error.legacy_user_id,
            new_user_id=error.new_user_id,
            failed_state=attempt.state,
        )

    def _unexpected_failure(
        self, attempt: MigrationAttempt, error: Exception
    ) -> MigrationOutcome:
        self.db.rollback()
        logger.error(
            "Migration error",
            exc_info=error,
            extra={
                "username": attempt.username,
                "legacy_user_id": attempt.legacy_user_id,
                "new_user_id": attempt.new_user_id,
                "failed_state": attempt.state.value,
            },
        )
        return MigrationOutcome(
            MigrationStatus.FAILED,
            REASON_UNEXPECTED,
            legacy_user_id=attempt.legacy_user_id,
            new_user_id=attempt.new_user_id,
            failed_state=attempt.state,
        )


def resume_migration(
    db: Session, legacy_user_id: int, new_user_id: str, dry_run: bool = False
) -> Tuple[RecordCounts, bool]:
    """
    Finish a migration that stopped after the auth provider user was created.

    Re-points ownership records from the legacy id to new_user_id, then
    deletes the legacy row. Both steps are safe to repeat.

    Args:
        db: Database session
        legacy_user_id: Id from the RepointError/CleanupError log record
        new_user_id: Auth provider user id from the same record
        dry_run: Only count the records that would move

    Returns:
        (records re-pointed or to be re-pointed, whether the legacy row was deleted)
    """
    old_id = str(legacy_user_id)
    if dry_run:
        return legacy_crud.count_ownership_links(db, old_id), False

    records = legacy_crud.repoint_ownership_links(db, old_id, new_user_id)
    deleted = legacy_crud.delete_legacy_user(db, legacy_user_id)
    logger.info(
        "Migration resumed",
        extra={
            "legacy_user_id": legacy_user_id,
            "new_user_id": new_user_id,
            "records_repointed": records.model_dump(),
            "legacy_user_deleted": deleted,
        },
    )
    return records, deleted
