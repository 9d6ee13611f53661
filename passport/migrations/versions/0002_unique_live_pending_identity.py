"""Unique live pending identity: one pending onboarding per username and wallet

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE = sa.text("status = 'pending'")


def upgrade() -> None:
    op.create_index(
        "uq_pending_users_live_username",
        "pending_users",
        ["username"],
        unique=True,
        postgresql_where=LIVE,
        sqlite_where=LIVE,
    )
    op.create_index(
        "uq_pending_users_live_wallet",
        "pending_users",
        [sa.text("lower(wallet_address)")],
        unique=True,
        postgresql_where=LIVE,
        sqlite_where=LIVE,
    )


def downgrade() -> None:
    op.drop_index("uq_pending_users_live_wallet", table_name="pending_users")
    op.drop_index("uq_pending_users_live_username", table_name="pending_users")
