"""
Tests for lazy database connection functionality.
"""

from unittest.mock import MagicMock, patch

import pytest

from nayscake.core.config import ConfigurationError, settings
from nayscake.db import database
from nayscake.db.database import get_db, get_engine, get_session_local, reset_engine


@pytest.fixture
def fresh_engine(monkeypatch):
    """Start each test without a cached engine or session factory."""
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_SessionLocal", None)


class TestLazyDatabaseConnection:
    def test_get_engine_creates_engine_lazily(self, fresh_engine, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://u:p@db/nayscake")

        with patch("nayscake.db.database.create_engine") as mock_create_engine:
            engine1 = get_engine()
            engine2 = get_engine()

        assert engine1 is engine2
        assert mock_create_engine.call_count == 1

    def test_get_engine_uses_pool_settings(self, fresh_engine, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://u:p@db/nayscake")

        with patch("nayscake.db.database.create_engine") as mock_create_engine:
            get_engine()

        call_args = mock_create_engine.call_args
        assert call_args[0][0] == "postgresql://u:p@db/nayscake"
        assert call_args[1]["pool_pre_ping"] is True
        assert call_args[1]["pool_recycle"] == settings.DATABASE_POOL_RECYCLE
        assert call_args[1]["pool_size"] == settings.DATABASE_POOL_SIZE
        assert call_args[1]["echo"] is False

    def test_sqlite_has_no_pool_size(self, fresh_engine, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", "sqlite:///nayscake.db")

        with patch("nayscake.db.database.create_engine") as mock_create_engine:
            get_engine()

        assert "pool_size" not in mock_create_engine.call_args[1]

    def test_missing_database_url(self, fresh_engine, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", None)

        with pytest.raises(ConfigurationError, match="DATABASE_URL is not set."):
            get_engine()

    def test_session_local_is_cached(self, fresh_engine, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://u:p@db/nayscake")

        with patch("nayscake.db.database.create_engine"):
            assert get_session_local() is get_session_local()

    def test_get_db_closes_session(self):
        mock_session = MagicMock()
        with patch(
            "nayscake.db.database.get_session_local",
            return_value=MagicMock(return_value=mock_session),
        ):
            generator = get_db()
            assert next(generator) is mock_session
            with pytest.raises(StopIteration):
                next(generator)

        mock_session.close.assert_called_once()

    def test_get_db_closes_session_on_error(self):
        mock_session = MagicMock()
        with patch(
            "nayscake.db.database.get_session_local",
            return_value=MagicMock(return_value=mock_session),
        ):
            generator = get_db()
            next(generator)
            with pytest.raises(RuntimeError):
                generator.throw(RuntimeError("request failed"))

        mock_session.close.assert_called_once()

    def test_reset_engine_disposes(self, fresh_engine):
        engine = MagicMock()
        database._engine = engine
        database._SessionLocal = MagicMock()

        reset_engine()

        engine.dispose.assert_called_once()
        assert database._engine is None
        assert database._SessionLocal is None
