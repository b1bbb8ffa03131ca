"""legacy_authenticate_user_function

Revision ID: 5b2d9c41e7a3
Revises:
Create Date: 2026-10-19 10:12:07.318204

"""

from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "5b2d9c41e7a3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - install the legacy password check.

    authenticate_user() compares a plaintext password with the crypt() hash in
    legacy_users and returns the matching (user_id, username) row, or nothing.
    """
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    op.execute(
        """
        CREATE OR REPLACE FUNCTION authenticate_user(p_username text, p_password text)
        RETURNS TABLE(user_id integer, username text)
        LANGUAGE sql
        STABLE
        SECURITY DEFINER
        SET search_path = public, extensions
        AS $$
            SELECT lu.id, lu.username::text
            FROM legacy_users lu
            WHERE lu.username = p_username
              AND lu.password_hash = crypt(p_password, lu.password_hash)
        $$
        """
    )


def downgrade() -> None:
    """Downgrade schema - drop the legacy password check.

    The pgcrypto extension is left installed.
    """
    op.execute("DROP FUNCTION IF EXISTS authenticate_user(text, text)")
