#!/usr/bin/env python3
"""
Finish a legacy user migration that stopped after the auth provider user was
created.

The migrate-user endpoint logs "Migration incomplete, manual reconciliation
required" with legacy_user_id and new_user_id when re-pointing transactions or
deleting the legacy row fails. This script takes those two ids and:
1. Re-points every transaction from the legacy id to the new id
2. Deletes the legacy user row

Both steps are safe to repeat.

Usage:
    python scripts/reconcile_migration.py --legacy-user-id 7 --new-user-id abc123
    python scripts/reconcile_migration.py --legacy-user-id 7 --new-user-id abc123 --dry-run

Environment variables required:
    DATABASE_URL
"""

import argparse
import sys
from typing import List, Optional

from nayscake.core.config import ConfigurationError
from nayscake.crud.legacy_user import get_legacy_user_by_id
from nayscake.db.database import get_session_local
from nayscake.services.user_migration import resume_migration


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Finish a half-completed legacy user migration"
    )
    parser.add_argument(
        "--legacy-user-id",
        type=int,
        required=True,
        help="Legacy user id from the reconciliation log record",
    )
    parser.add_argument(
        "--new-user-id",
        required=True,
        help="Auth provider user id from the same log record",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report what would change",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        db = get_session_local()()
    except ConfigurationError as e:
        print(f"✗ {e}")
        return 1

    try:
        legacy_user = get_legacy_user_by_id(db, args.legacy_user_id)
        if legacy_user is None:
            print(f"⊘ Legacy user {args.legacy_user_id} no longer exists")
        else:
            print(f"Legacy user {args.legacy_user_id} ({legacy_user.username})")

        records, deleted = resume_migration(
            db, args.legacy_user_id, args.new_user_id, dry_run=args.dry_run
        )
    except Exception as e:
        print(f"✗ Reconciliation failed: {e}")
        return 1
    finally:
        db.close()

    if args.dry_run:
        print(
            f"[DRY RUN] Would re-point {records.total} records "
            f"({records.transactions} transactions) to {args.new_user_id}"
        )
        if legacy_user is not None:
            print(f"[DRY RUN] Would delete legacy user {args.legacy_user_id}")
        return 0

    print(
        f"✓ Re-pointed {records.total} records "
        f"({records.transactions} transactions) to {args.new_user_id}"
    )
    if deleted:
        print(f"✓ Deleted legacy user {args.legacy_user_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
