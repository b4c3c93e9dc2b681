"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _entity_columns():
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    ]


def _leader_columns():
    return [
        sa.Column("has_leader", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("leader_id", sa.Uuid(), nullable=True),
    ]


def upgrade():
    op.create_table(
        "provinces",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.UniqueConstraint("name", name="uq_provinces_name"),
    )
    op.create_table(
        "districts",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("province_id", sa.Uuid(), sa.ForeignKey("provinces.id"), nullable=False),
    )
    op.create_table(
        "sectors",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("district_id", sa.Uuid(), sa.ForeignKey("districts.id"), nullable=False),
    )
    op.create_table(
        "cells",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("sector_id", sa.Uuid(), sa.ForeignKey("sectors.id"), nullable=False),
        *_leader_columns(),
        sa.UniqueConstraint("name", name="uq_cells_name"),
    )
    op.create_table(
        "villages",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("cell_id", sa.Uuid(), sa.ForeignKey("cells.id"), nullable=False),
        *_leader_columns(),
    )
    op.create_table(
        "isibos",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("village_id", sa.Uuid(), sa.ForeignKey("villages.id"), nullable=False),
        *_leader_columns(),
        sa.Column("members", sa.JSON(), nullable=False),
    )
    op.create_table(
        "houses",
        *_entity_columns(),
        sa.Column("code", sa.String(length=60), nullable=False),
        sa.Column("street", sa.String(length=255), nullable=True),
        sa.Column("isibo_id", sa.Uuid(), sa.ForeignKey("isibos.id"), nullable=False),
        sa.Column("representative_id", sa.Uuid(), nullable=True),
    )

    op.create_table(
        "profiles",
        *_entity_columns(),
        sa.Column("names", sa.String(length=160), nullable=False),
        sa.Column("is_cell_leader", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_village_leader", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_isibo_leader", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("cell_id", sa.Uuid(), sa.ForeignKey("cells.id"), nullable=True),
        sa.Column("village_id", sa.Uuid(), sa.ForeignKey("villages.id"), nullable=True),
        sa.Column("isibo_id", sa.Uuid(), sa.ForeignKey("isibos.id"), nullable=True),
        sa.Column("house_id", sa.Uuid(), sa.ForeignKey("houses.id"), nullable=True),
    )
    op.create_table(
        "users",
        *_entity_columns(),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=40), nullable=False, server_default="CITIZEN"),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("activated", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("profile_id", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("phone", name="uq_users_phone"),
        sa.UniqueConstraint("profile_id", name="uq_users_profile_id"),
    )
    op.create_table(
        "verifications",
        *_entity_columns(),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.UniqueConstraint("code", name="uq_verifications_code"),
        sa.UniqueConstraint("user_id", name="uq_verifications_user_id"),
    )
    op.create_table(
        "settings",
        *_entity_columns(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("value", sa.Text(), nullable=False, server_default=""),
        sa.UniqueConstraint("name", name="uq_settings_name"),
    )

    op.create_table(
        "activities",
        *_entity_columns(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("village_id", sa.Uuid(), sa.ForeignKey("villages.id"), nullable=False),
    )
    op.create_table(
        "tasks",
        *_entity_columns(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("activity_id", sa.Uuid(), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("isibo_id", sa.Uuid(), sa.ForeignKey("isibos.id"), nullable=False),
        sa.Column("estimated_cost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actual_cost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expected_participants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actual_participants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expected_financial_impact", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actual_financial_impact", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("activity_id", "isibo_id", name="uq_tasks_activity_isibo"),
    )
    op.create_table(
        "reports",
        *_entity_columns(),
        sa.Column("task_id", sa.Uuid(), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("activity_id", sa.Uuid(), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("evidence_urls", sa.JSON(), nullable=False),
        sa.Column("attendance", sa.JSON(), nullable=False),
        sa.Column("materials_used", sa.JSON(), nullable=False),
        sa.Column("challenges_faced", sa.Text(), nullable=True),
        sa.Column("suggestions", sa.Text(), nullable=True),
        sa.Column("estimated_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("actual_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("expected_participants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actual_participants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expected_financial_impact", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("actual_financial_impact", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )

    for table, cols in {
        "districts": ["province_id"],
        "sectors": ["district_id"],
        "cells": ["sector_id"],
        "villages": ["cell_id"],
        "isibos": ["village_id"],
        "houses": ["isibo_id"],
        "profiles": ["cell_id", "village_id", "isibo_id", "house_id"],
        "users": ["email"],
        "activities": ["title", "village_id"],
        "tasks": ["status", "activity_id", "isibo_id"],
        "reports": ["task_id", "activity_id"],
    }.items():
        for col in cols:
            op.create_index(f"ix_{table}_{col}", table, [col])

    for table in (
        "provinces",
        "districts",
        "sectors",
        "cells",
        "villages",
        "isibos",
        "houses",
        "profiles",
        "users",
        "verifications",
        "settings",
        "activities",
        "tasks",
        "reports",
    ):
        op.create_index(f"ix_{table}_created_at", table, ["created_at"])


def downgrade():
    for table in (
        "reports",
        "tasks",
        "activities",
        "settings",
        "verifications",
        "users",
        "profiles",
        "houses",
        "isibos",
        "villages",
        "cells",
        "sectors",
        "districts",
        "provinces",
    ):
        op.drop_table(table)
