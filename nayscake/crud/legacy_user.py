"""
CRUD operations for the legacy user store.

Legacy passwords are crypt-format hashes. In production they are checked by
the ``authenticate_user`` database function (pgcrypto), so the hash never
leaves the database; ``passlib`` mode performs the same comparison in-process
for databases that do not have the function installed.
"""

import re
from typing import List, NamedTuple, Optional, Tuple

from passlib.context import CryptContext
from sqlalchemy import text
from sqlalchemy.orm import Session

from nayscake.core.config import settings
from nayscake.core.logging import get_logger
from nayscake.models.legacy_user import LegacyUser, Transaction
from nayscake.schemas.migration import RecordCounts

logger = get_logger(__name__)

# Every crypt() flavour pgcrypto can produce
legacy_pwd_context = CryptContext(
    schemes=["bcrypt", "md5_crypt", "bsdi_crypt", "des_crypt"],
    deprecated="auto",
)

# (model, RecordCounts field) for every table whose user_id references a user
OWNERSHIP_LINKS: List[Tuple[type, str]] = [
    (Transaction, "transactions"),
]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class LegacyIdentity(NamedTuple):
    """Minimal identity returned by a successful legacy authentication."""

    user_id: int
    username: str


def get_legacy_user_by_username(db: Session, username: str) -> Optional[LegacyUser]:
    """
    Get a legacy user by exact username.

    Args:
        db: Database session
        username: Username as submitted at login

    Returns:
        LegacyUser or None if not found
    """
    return db.query(LegacyUser).filter(LegacyUser.username == username).first()


def get_legacy_user_by_id(db: Session, legacy_user_id: int) -> Optional[LegacyUser]:
    return db.query(LegacyUser).filter(LegacyUser.id == legacy_user_id).first()


def verify_legacy_password(plain_password: str, password_hash: str) -> bool:
    """
    Verify a password against a crypt-format legacy hash.

    Unknown or malformed hashes never match.
    """
    if not password_hash:
        return False
    try:
        return legacy_pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        return False


def _auth_function_name() -> str:
    name = settings.LEGACY_AUTH_FUNCTION
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid LEGACY_AUTH_FUNCTION: {name!r}")
    return name


def authenticate_legacy_user(
    db: Session, username: str, password: str, mode: Optional[str] = None
) -> Optional[LegacyIdentity]:
    """
    Check a username/password pair against the legacy store.

    Args:
        db: Database session
        username: Username
        password: Plaintext password
        mode: "database" or "passlib"; defaults to settings.LEGACY_AUTH_MODE

    Returns:
        LegacyIdentity on a match, None otherwise
    """
    mode = mode or settings.LEGACY_AUTH_MODE

    if mode == "database":
        row = db.execute(
            text(
                f"SELECT user_id, username FROM {_auth_function_name()}"
                "(:username, :password)"
            ),
            {"username": username, "password": password},
        ).first()
        if row is None:
            return None
        return LegacyIdentity(user_id=int(row[0]), username=str(row[1]))

    legacy_user = get_legacy_user_by_username(db, username)
    if not legacy_user:
        return None
    if not verify_legacy_password(password, str(legacy_user.password_hash)):
        return None
    return LegacyIdentity(user_id=int(legacy_user.id), username=str(legacy_user.username))


def count_ownership_links(db: Session, user_id: str) -> RecordCounts:
    """Count rows in every ownership table that reference user_id."""
    counts = RecordCounts()
    for model, field in OWNERSHIP_LINKS:
        setattr(
            counts, field, db.query(model).filter(model.user_id == user_id).count()
        )
    return counts


def repoint_ownership_links(db: Session, old_user_id: str, new_user_id: str) -> RecordCounts:
    """
    Move every ownership row from old_user_id to new_user_id and commit.

    Raises whatever the database raises, after rolling back.
    """
    counts = RecordCounts()
    try:
        for model, field in OWNERSHIP_LINKS:
            updated = (
                db.query(model)
                .filter(model.user_id == old_user_id)
                .update({model.user_id: new_user_id}, synchronize_session=False)
            )
            setattr(counts, field, updated)
            logger.info(
                f"Re-pointed {updated} {field} records",
                extra={"old_user_id": old_user_id, "new_user_id": new_user_id},
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return counts


def delete_legacy_user(db: Session, legacy_user_id: int) -> bool:
    """
    Delete a legacy user row and commit.

    Returns:
        True if a row was deleted, False if it was already gone
    """
    try:
        deleted = (
            db.query(LegacyUser)
            .filter(LegacyUser.id == legacy_user_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if not deleted:
        logger.info(
            "Legacy user already deleted",
            extra={"legacy_user_id": legacy_user_id},
        )
    return bool(deleted)
