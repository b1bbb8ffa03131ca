"""
Tests for application settings.
"""

import pytest
from pydantic import ValidationError

from nayscake.core.config import ConfigurationError, Settings


class TestSettings:
    def test_default_values(self):
        """Check the field defaults directly, bypassing environment loading."""
        model_fields = Settings.model_fields

        assert model_fields["API_PREFIX"].default == "/api"
        assert model_fields["PROJECT_NAME"].default == "NAY'S CAKE API"
        assert model_fields["DATABASE_URL"].default is None
        assert model_fields["LEGACY_AUTH_MODE"].default == "database"
        assert model_fields["LEGACY_AUTH_FUNCTION"].default == "authenticate_user"
        assert model_fields["PLACEHOLDER_EMAIL_DOMAIN"].default == "placeholder.local"
        assert model_fields["AUTH_PROVIDER_URL"].default is None
        assert model_fields["SESSION_MAX_AGE_SECONDS"].default == 604800
        assert model_fields["LOG_LEVEL"].default == "INFO"

    def test_legacy_auth_mode_is_normalised(self):
        settings = Settings(LEGACY_AUTH_MODE=" Passlib ", _env_file=None)

        assert settings.LEGACY_AUTH_MODE == "passlib"

    def test_legacy_auth_mode_rejects_unknown(self):
        with pytest.raises(ValidationError):
            Settings(LEGACY_AUTH_MODE="plaintext", _env_file=None)

    def test_cors_origins_string_parsing(self):
        settings = Settings(
            BACKEND_CORS_ORIGINS="http://localhost:3000,https://nayscake.app",
            _env_file=None,
        )

        assert len(settings.BACKEND_CORS_ORIGINS) == 2
        assert str(settings.BACKEND_CORS_ORIGINS[1]) == "https://nayscake.app/"

    def test_cors_origins_json_list(self):
        settings = Settings(
            BACKEND_CORS_ORIGINS='["http://localhost:3000"]', _env_file=None
        )

        assert str(settings.BACKEND_CORS_ORIGINS[0]) == "http://localhost:3000/"

    def test_require_database_url(self):
        settings = Settings(DATABASE_URL="postgresql://u:p@db/nayscake", _env_file=None)

        assert settings.require_database_url() == "postgresql://u:p@db/nayscake"

    def test_require_database_url_missing(self):
        settings = Settings(DATABASE_URL=None, _env_file=None)

        with pytest.raises(ConfigurationError, match="DATABASE_URL is not set."):
            settings.require_database_url()

    def test_auth_provider_enabled(self):
        assert Settings(AUTH_PROVIDER_URL=None, _env_file=None).auth_provider_enabled is False
        assert (
            Settings(
                AUTH_PROVIDER_URL="https://nayscake.app/api/auth", _env_file=None
            ).auth_provider_enabled
            is True
        )
