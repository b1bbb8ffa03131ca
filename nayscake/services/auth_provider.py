"""
HTTP client for the new auth provider (better-auth compatible API).

This service handles:
- Creating users on behalf of the legacy migration (admin API)
- Username/password sign-in for the login flow
- Session lookup and sign-out for the client session cache
- Structured logging of every call with credentials redacted
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from nayscake.core.config import settings
from nayscake.core.logging import get_logger
from nayscake.core.metrics import get_metrics_collector

logger = get_logger(__name__)

REDACTED = "***REDACTED***"  # nosec B105


class AuthProviderError(Exception):
    """Base class for auth provider failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


class ProvisioningError(AuthProviderError):
    """Raised when the auth provider rejects or fails user creation."""


class UsernameAlreadyExistsError(ProvisioningError):
    """Raised when the auth provider already has a user with this username."""

    def __init__(self, username: str, status_code: Optional[int] = None):
        super().__init__(
            f"Auth provider user already exists with username '{username}'",
            status_code=status_code,
        )
        self.username = username


class SignInError(AuthProviderError):
    """Raised when sign-in is rejected or cannot be completed."""


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_duplicate_user_error(error_response: Dict[str, Any]) -> bool:
    code = str(error_response.get("code", "")).upper()
    message = str(error_response.get("message", "")).lower()
    return (
        "ALREADY_EXISTS" in code
        or "ALREADY_TAKEN" in code
        or "already exists" in message
        or "already taken" in message
    )


def _record_request(operation: str, success: bool) -> None:
    collector = get_metrics_collector()
    if collector:
        collector.record_auth_provider_request(operation, success)


class AuthProviderService:
    """Service for interacting with the auth provider's HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.AUTH_PROVIDER_URL or "").rstrip("/")
        self.api_key = api_key if api_key is not None else settings.AUTH_PROVIDER_API_KEY
        self.timeout = timeout or settings.AUTH_PROVIDER_TIMEOUT
        self._last_error: Optional[Dict[str, Any]] = None

        if not self.base_url:
            logger.error("AUTH_PROVIDER_URL is required but not configured")
            raise ValueError("AUTH_PROVIDER_URL is required but not configured")

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Make a request to the auth provider.

        Args:
            method: HTTP method
            endpoint: Path below the base URL, without leading slash
            data: JSON body
            token: Bearer token (a session token, or the admin API key)

        Returns:
            Decoded JSON body ({} for empty responses)

        Raises:
            AuthProviderError: On transport failures and non-2xx responses;
                status_code and details carry the provider's answer
        """
        url = f"{self.base_url}/{endpoint}"
        logger.info(
            json.dumps(
                {
                    "event": "auth_provider_request_started",
                    "method": method,
                    "endpoint": endpoint,
                }
            )
        )

        try:
            response = requests.request(
                method=method,
                url=url,
                headers=self._headers(token),
                json=data,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            self._last_error = {"error_message": str(e)}
            logger.error(
                json.dumps(
                    {
                        "event": "auth_provider_request_failed",
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                        "method": method,
                        "endpoint": endpoint,
                        "timestamp": _timestamp(),
                    }
                )
            )
            raise AuthProviderError(f"Auth provider request failed: {e}") from e

        if 200 <= response.status_code < 300:
            self._last_error = None
            logger.info(
                json.dumps(
                    {
                        "event": "auth_provider_request_success",
                        "method": method,
                        "endpoint": endpoint,
                        "status_code": response.status_code,
                    }
                )
            )
            if response.status_code == 204 or not response.content:
                return {}
            try:
                body = response.json()
            except ValueError:
                return {}
            if body is None:
                return {}
            return body if isinstance(body, dict) else {"data": body}

        try:
            error_response = response.json()
        except ValueError:
            error_response = {"raw_response": response.text}
        if not isinstance(error_response, dict):
            error_response = {"raw_response": error_response}

        self._last_error = {
            "status_code": response.status_code,
            "error_response": error_response,
        }
        logger.error(
            json.dumps(
                {
                    "event": "auth_provider_request_failed",
                    "method": method,
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "error_response": error_response,
                    "timestamp": _timestamp(),
                }
            )
        )
        raise AuthProviderError(
            error_response.get("message")
            or f"Auth provider returned HTTP {response.status_code}",
            status_code=response.status_code,
            details=error_response,
        )

    def create_user(
        self,
        password: str,
        name: str,
        username: str,
        display_username: str,
        email: str,
        email_verified: bool,
    ) -> Dict[str, Any]:
        """
        Create a user in the auth provider.

        The plaintext password is sent as-is; the provider hashes it.

        Returns:
            Created user dictionary, guaranteed to contain "id"

        Raises:
            UsernameAlreadyExistsError: The username is already registered
            ProvisioningError: Any other failure, including a missing id
        """
        user_data = {
            "email": email,
            "password": password,
            "name": name,
            "data": {
                "username": username,
                "displayUsername": display_username,
                "emailVerified": email_verified,
            },
        }
        safe_user_data = {**user_data, "password": REDACTED}

        logger.debug(
            json.dumps(
                {
                    "event": "auth_provider_user_creation_started",
                    "username": username,
                    "user_data": safe_user_data,
                    "timestamp": _timestamp(),
                }
            )
        )

        try:
            response = self._make_request(
                "POST", "admin/create-user", user_data, token=self.api_key
            )
        except AuthProviderError as e:
            _record_request("create_user", False)
            logger.error(
                json.dumps(
                    {
                        "event": "auth_provider_user_creation_failed",
                        "username": username,
                        "status_code": e.status_code,
                        "user_data": safe_user_data,
                        "timestamp": _timestamp(),
                    }
                )
            )
            if e.status_code is not None and _is_duplicate_user_error(e.details):
                raise UsernameAlreadyExistsError(username, e.status_code) from e
            raise ProvisioningError(
                "Failed to create user in the auth provider",
                status_code=e.status_code,
                details=e.details,
            ) from e

        user = response.get("user") if isinstance(response.get("user"), dict) else response
        if not user or not user.get("id"):
            _record_request("create_user", False)
            logger.error(
                json.dumps(
                    {
                        "event": "auth_provider_user_id_missing",
                        "username": username,
                        "timestamp": _timestamp(),
                    }
                )
            )
            raise ProvisioningError("Auth provider did not return a user id")

        _record_request("create_user", True)
        logger.info(
            json.dumps(
                {
                    "event": "auth_provider_user_created",
                    "username": username,
                    "user_id": user["id"],
                    "timestamp": _timestamp(),
                }
            )
        )
        return user

    def sign_in(self, username: str, password: str) -> Dict[str, Any]:
        """
        Sign in with username and password.

        Returns:
            Session payload, containing at least "token" and "user"

        Raises:
            SignInError: Credentials rejected or provider unreachable
        """
        try:
            response = self._make_request(
                "POST",
                "sign-in/username",
                {"username": username, "password": password},
            )
        except AuthProviderError as e:
            _record_request("sign_in", False)
            raise SignInError(
                "Sign-in failed", status_code=e.status_code, details=e.details
            ) from e

        if not response.get("token"):
            _record_request("sign_in", False)
            raise SignInError("Auth provider did not return a session token")

        _record_request("sign_in", True)
        return response

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the session behind a token.

        Returns:
            Session payload or None when the token is no longer valid
        """
        try:
            response = self._make_request("GET", "get-session", token=token)
        except AuthProviderError as e:
            if e.status_code is None:
                raise
            return None
        return response or None

    def sign_out(self, token: str) -> bool:
        try:
            self._make_request("POST", "sign-out", token=token)
        except AuthProviderError:
            return False
        return True


class DisabledAuthProviderService:
    """No-op auth provider used when configuration is missing.

    Provides the same interface as AuthProviderService; user creation and
    sign-in always fail.
    """

    def create_user(
        self,
        password: str,
        name: str,
        username: str,
        display_username: str,
        email: str,
        email_verified: bool,
    ) -> Dict[str, Any]:
        logger.warning(
            json.dumps(
                {"event": "auth_provider_disabled_create_user", "username": username}
            )
        )
        raise ProvisioningError("Auth provider is not configured")

    def sign_in(self, username: str, password: str) -> Dict[str, Any]:
        logger.warning(
            json.dumps({"event": "auth_provider_disabled_sign_in", "username": username})
        )
        raise SignInError("Auth provider is not configured")

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        return None

    def sign_out(self, token: str) -> bool:
        return False


def build_auth_provider_service() -> Any:
    """Return the HTTP client when AUTH_PROVIDER_URL is set, the disabled service otherwise."""
    if not settings.auth_provider_enabled:
        logger.warning(
            json.dumps(
                {
                    "event": "auth_provider_not_configured",
                    "note": "Using DisabledAuthProviderService",
                }
            )
        )
        return DisabledAuthProviderService()
    try:
        return AuthProviderService()
    except ValueError as e:
        logger.warning(
            json.dumps(
                {
                    "event": "auth_provider_initialization_failed",
                    "error": str(e),
                    "note": "Using DisabledAuthProviderService",
                }
            )
        )
        return DisabledAuthProviderService()


# Global instance with safe fallback when not configured
auth_provider_service: Any = build_auth_provider_service()
