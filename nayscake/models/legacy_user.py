"""
Database models for the legacy user table and the records that reference users.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from nayscake.db.database import Base


class LegacyUser(Base):
    """User row carried over from the previous system, pending migration."""

    __tablename__ = "legacy_users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    username = Column(String(50), nullable=False, index=True, unique=True)
    # Crypt-format hash (bcrypt / md5-crypt / des-crypt) as written by pgcrypto
    password_hash = Column(String(255), nullable=False)


class Transaction(Base):
    """Customer transaction header; user_id holds a legacy or new-system user id."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    # Text so it can hold both "7" (legacy) and opaque auth provider ids
    user_id = Column(String(64), nullable=False, index=True)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
