"""Create cached_stocks table

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cached_stocks",
        sa.Column("symbol", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, server_default=sa.text("''")),
        sa.Column("price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("change", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("change_percent", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("volume", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.BigInteger(), nullable=False),
        sa.Column("in_watchlist", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_cached_stocks_last_updated", "cached_stocks", ["last_updated"])


def downgrade() -> None:
    op.drop_index("ix_cached_stocks_last_updated", table_name="cached_stocks")
    op.drop_table("cached_stocks")
