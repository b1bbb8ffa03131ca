"""
Tests for scripts/reconcile_migration.py.
"""

from unittest.mock import patch

import pytest

from nayscake.core.config import ConfigurationError
from nayscake.models.legacy_user import LegacyUser, Transaction
from scripts import reconcile_migration


def _owners(db):
    db.expire_all()
    return sorted(row.user_id for row in db.query(Transaction.user_id).all())


class TestReconcileMigrationScript:
    def test_parse_args(self):
        args = reconcile_migration.parse_args(
            ["--legacy-user-id", "7", "--new-user-id", "ba_user_123", "--dry-run"]
        )

        assert args.legacy_user_id == 7
        assert args.new_user_id == "ba_user_123"
        assert args.dry_run is True

    def test_ids_are_required(self):
        with pytest.raises(SystemExit):
            reconcile_migration.parse_args(["--legacy-user-id", "7"])

    def test_dry_run_changes_nothing(
        self, db, session_factory, make_legacy_user, make_transaction, capsys
    ):
        make_legacy_user("sari", "rahasia", user_id=7)
        make_transaction(7)

        with patch.object(
            reconcile_migration, "get_session_local", return_value=session_factory
        ):
            exit_code = reconcile_migration.main(
                ["--legacy-user-id", "7", "--new-user-id", "ba_user_123", "--dry-run"]
            )

        assert exit_code == 0
        assert "[DRY RUN] Would re-point 1 records" in capsys.readouterr().out
        assert _owners(db) == ["7"]

    def test_finishes_migration(
        self, db, session_factory, make_legacy_user, make_transaction, capsys
    ):
        make_legacy_user("sari", "rahasia", user_id=7)
        make_transaction(7)

        with patch.object(
            reconcile_migration, "get_session_local", return_value=session_factory
        ):
            exit_code = reconcile_migration.main(
                ["--legacy-user-id", "7", "--new-user-id", "ba_user_123"]
            )

        output = capsys.readouterr().out
        assert exit_code == 0
        assert "Deleted legacy user 7" in output
        assert _owners(db) == ["ba_user_123"]
        assert db.query(LegacyUser).filter(LegacyUser.id == 7).count() == 0

    def test_missing_database_url(self, capsys):
        with patch.object(
            reconcile_migration,
            "get_session_local",
            side_effect=ConfigurationError("DATABASE_URL"),
        ):
            exit_code = reconcile_migration.main(
                ["--legacy-user-id", "7", "--new-user-id", "ba_user_123"]
            )

        assert exit_code == 1
        assert "DATABASE_URL is not set." in capsys.readouterr().out
