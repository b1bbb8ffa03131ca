"""
Client-side login sequence.

Every login first asks the backend to migrate a possible legacy user, without
waiting on or trusting the answer, then signs in against the auth provider.
Whatever goes wrong, the user only ever sees "Invalid username or password".
"""

from typing import Any, Optional

import requests

from nayscake.core.config import settings
from nayscake.core.logging import get_logger
from nayscake.services import auth_provider
from nayscake.services.auth_provider import AuthProviderError
from nayscake.services.session_cache import (
    CachedSession,
    SessionCache,
    build_session_cache,
)

logger = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"


class InvalidCredentialsError(Exception):
    """The only error a login surfaces to the user."""

    def __init__(self):
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


class LoginFlow:
    """Orchestrates migrate-then-sign-in and owns the session cache."""

    def __init__(
        self,
        provider: Any = None,
        session_cache: Optional[SessionCache] = None,
        migration_url: Optional[str] = None,
        timeout: int = 10,
    ):
        self.provider = provider or auth_provider.auth_provider_service
        self.session_cache = session_cache or build_session_cache()
        self.migration_url = migration_url or settings.MIGRATION_ENDPOINT_URL
        self.timeout = timeout

    def _request_migration(self, username: str, password: str) -> None:
        """Call the migration endpoint; the outcome is only logged."""
        try:
            response = requests.post(
                self.migration_url,
                json={"username": username, "password": password},
                timeout=self.timeout,
            )
            try:
                body = response.json()
            except ValueError:
                body = None
            logger.info(
                "Migration check completed",
                extra={
                    "username": username,
                    "status_code": response.status_code,
                    "migrated": body.get("migrated") if isinstance(body, dict) else None,
                },
            )
        except requests.exceptions.RequestException as e:
            logger.warning(
                "Migration check failed, continuing with sign-in",
                extra={"username": username, "error": str(e)},
            )

    def login(self, username: str, password: str) -> CachedSession:
        """
        Log in and cache the resulting session.

        Raises:
            InvalidCredentialsError: For any sign-in failure
        """
        username = (username or "").strip()
        if not username or not password:
            raise InvalidCredentialsError()

        self._request_migration(username, password)

        try:
            session = self.provider.sign_in(username, password)
        except AuthProviderError as e:
            logger.info(
                "Sign-in rejected",
                extra={"username": username, "status_code": e.status_code},
            )
            raise InvalidCredentialsError() from e

        user = session.get("user") or {}
        return self.session_cache.store(
            token=session["token"],
            user_id=str(user.get("id", "")),
            username=user.get("username") or username,
        )

    def current_session(self) -> Optional[CachedSession]:
        return self.session_cache.load()

    def refresh(self) -> Optional[CachedSession]:
        """
        Re-validate the cached session with the auth provider.

        Any failure clears the cache.
        """
        cached = self.session_cache.load()
        if cached is None:
            return None

        try:
            remote = self.provider.get_session(cached.token)
        except AuthProviderError as e:
            logger.warning(
                "Session refresh failed",
                extra={"username": cached.username, "error": str(e)},
            )
            remote = None

        if not remote:
            self.session_cache.clear()
            return None
        return cached

    def logout(self) -> None:
        cached = self.session_cache.load()
        if cached is not None:
            self.provider.sign_out(cached.token)
        self.session_cache.clear()
