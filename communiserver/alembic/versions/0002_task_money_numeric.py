"""task money columns hold decimals

Revision ID: 0002_task_money_numeric
Revises: 0001_init
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


revision = "0002_task_money_numeric"
down_revision = "0001_init"
branch_labels = None
depends_on = None

_MONEY = ("estimated_cost", "actual_cost", "expected_financial_impact", "actual_financial_impact")


def upgrade() -> None:
    with op.batch_alter_table("tasks") as batch:
        for name in _MONEY:
            batch.alter_column(name, type_=sa.Numeric(12, 2), existing_type=sa.Integer(), existing_nullable=False)


def downgrade() -> None:
    with op.batch_alter_table("tasks") as batch:
        for name in _MONEY:
            batch.alter_column(name, type_=sa.Integer(), existing_type=sa.Numeric(12, 2), existing_nullable=False)
