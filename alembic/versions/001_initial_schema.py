"""Initial schema — admin users, WhatsApp conversions, plan catalogue.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Admin users
    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(80), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    # WhatsApp conversions (append-only)
    op.create_table(
        "whatsapp_conversions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(40)),
        sa.Column("button_type", sa.String(30), nullable=False),
        sa.Column("plan_name", sa.String(255)),
        sa.Column("doctor_name", sa.String(255)),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "button_type IN ('plan_subscription', 'doctor_appointment', 'enterprise_quote')",
            name="chk_whatsapp_conversions_button_type",
        ),
        sa.CheckConstraint("length(trim(name)) > 0", name="chk_whatsapp_conversions_name"),
    )
    op.create_index("ix_whatsapp_conversions_created_at", "whatsapp_conversions", ["created_at"])
    op.create_index("ix_whatsapp_conversions_button_type", "whatsapp_conversions", ["button_type"])

    # Plans
    op.create_table(
        "plans",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("annual_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("monthly_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("adhesion_fee", sa.Numeric(10, 2), server_default="0"),
        sa.Column("max_dependents", sa.Integer, server_default="0"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type IN ('individual', 'familiar', 'empresarial')", name="chk_plans_type"),
    )


def downgrade() -> None:
    op.drop_table("plans")
    op.drop_index("ix_whatsapp_conversions_button_type", table_name="whatsapp_conversions")
    op.drop_index("ix_whatsapp_conversions_created_at", table_name="whatsapp_conversions")
    op.drop_table("whatsapp_conversions")
    op.drop_table("admin_users")
