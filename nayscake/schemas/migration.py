"""
Pydantic schemas for the legacy user migration endpoint.
"""

from typing import Optional

from pydantic import BaseModel, Field


class MigrateUserRequest(BaseModel):
    """
    Credentials submitted at login time.

    Both fields are optional at the schema level so that a missing value is
    reported by the endpoint as a 400 validation failure rather than a 422.
    """

    username: Optional[str] = Field(None, description="Username entered at login")
    password: Optional[str] = Field(None, description="Plaintext password")


class MigrateUserResponse(BaseModel):
    """Result of a migration attempt; never blocks the subsequent sign-in."""

    success: bool = Field(..., description="Whether the request was handled")
    migrated: Optional[bool] = Field(
        None, description="True when a legacy user was moved to the new system"
    )
    message: Optional[str] = Field(None, description="Generic failure message")


class RecordCounts(BaseModel):
    """Number of ownership rows re-pointed per table."""

    transactions: int = 0

    @property
    def total(self) -> int:
        return sum(self.model_dump().values())
