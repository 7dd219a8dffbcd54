"""Create trader schema with trades and state tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "trader"


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    op.create_table(
        "trades",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("symbol", sa.Text, nullable=False),
        sa.Column("action", sa.Text, nullable=False),
        sa.Column("order_id", sa.Text, nullable=True),
        sa.Column("success", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("record", JSONB, nullable=False),
        schema=SCHEMA,
    )
    op.create_index("ix_trades_ts", "trades", ["ts"], schema=SCHEMA)
    op.create_index("ix_trades_symbol_ts", "trades", ["symbol", "ts"], schema=SCHEMA)

    op.create_table(
        "state",
        sa.Column("key", sa.Text, primary_key=True),
        sa.Column("value", JSONB, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("state", schema=SCHEMA)
    op.drop_index("ix_trades_symbol_ts", table_name="trades", schema=SCHEMA)
    op.drop_index("ix_trades_ts", table_name="trades", schema=SCHEMA)
    op.drop_table("trades", schema=SCHEMA)
