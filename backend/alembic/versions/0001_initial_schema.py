"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the remote tables mirrored from the station working copy:
purchase_orders, logs, activity_logs, suppliers, drivers, trucks,
gps_data, ai_insights.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PLAIN_TABLES = ("suppliers", "drivers", "trucks", "gps_data", "ai_insights")


def _record_columns() -> list:
    return [
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # --- purchase_orders ---
    op.create_table(
        "purchase_orders",
        *_record_columns(),
        sa.Column("po_number", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("payment_status", sa.String(32), nullable=True),
    )
    op.create_index("ix_purchase_orders_po_number", "purchase_orders", ["po_number"])
    op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])

    # --- logs ---
    op.create_table(
        "logs",
        *_record_columns(),
        sa.Column("po_id", sa.String(64), nullable=True),
    )
    op.create_index("ix_logs_po_id", "logs", ["po_id"])

    # --- activity_logs ---
    op.create_table(
        "activity_logs",
        *_record_columns(),
        sa.Column("entity_type", sa.String(64), nullable=True),
        sa.Column("action", sa.String(255), nullable=True),
    )
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])

    # --- registries and opaque collections ---
    for table in PLAIN_TABLES:
        op.create_table(table, *_record_columns())


def downgrade() -> None:
    for table in reversed(PLAIN_TABLES):
        op.drop_table(table)
    op.drop_index("ix_activity_logs_entity_type", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_logs_po_id", table_name="logs")
    op.drop_table("logs")
    op.drop_index("ix_purchase_orders_status", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_po_number", table_name="purchase_orders")
    op.drop_table("purchase_orders")
