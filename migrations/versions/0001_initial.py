"""Create tuition posts, applications and payment records

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STATUS_VALUES = ("pending", "approved", "rejected", "closed")


def upgrade() -> None:
    op.create_table(
        "tuition_posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("class_level", sa.String(50), nullable=False),
        sa.Column("location", sa.String(200), nullable=False),
        sa.Column("budget_min", sa.Numeric(19, 4), nullable=False),
        sa.Column("budget_max", sa.Numeric(19, 4), nullable=False),
        sa.Column("schedule", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*STATUS_VALUES, name="post_status_enum", create_constraint=True),
            nullable=False,
        ),
        sa.Column("application_count", sa.Integer(), nullable=False),
        sa.Column("assigned_tutor_id", sa.Integer(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tuition_posts_owner_id", "tuition_posts", ["owner_id"])
    op.create_index("ix_tuition_posts_subject", "tuition_posts", ["subject"])
    op.create_index("ix_tuition_posts_status", "tuition_posts", ["status"])

    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("tuition_posts.id"), nullable=False
        ),
        sa.Column("tutor_id", sa.Integer(), nullable=False),
        sa.Column("qualifications", sa.Text(), nullable=False),
        sa.Column("experience", sa.Text(), nullable=False),
        sa.Column("expected_price", sa.Numeric(19, 4), nullable=False),
        sa.Column("availability", sa.String(200), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                *STATUS_VALUES, name="application_status_enum", create_constraint=True
            ),
            nullable=False,
        ),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("post_id", "tutor_id", name="uq_application_post_tutor"),
    )
    op.create_index("ix_applications_post_id", "applications", ["post_id"])
    op.create_index("ix_applications_tutor_id", "applications", ["tutor_id"])
    op.create_index("ix_applications_status", "applications", ["status"])

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_charge_reference", sa.String(100), nullable=False),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("applications.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("tuition_posts.id"), nullable=False
        ),
        sa.Column("payer_id", sa.Integer(), nullable=False),
        sa.Column("payee_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("gateway_amount", sa.Integer(), nullable=False),
        sa.Column("gateway_currency", sa.String(3), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_payment_records_external_charge_reference",
        "payment_records",
        ["external_charge_reference"],
        unique=True,
    )
    op.create_index("ix_payment_records_post_id", "payment_records", ["post_id"])
    op.create_index("ix_payment_records_payer_id", "payment_records", ["payer_id"])
    op.create_index("ix_payment_records_payee_id", "payment_records", ["payee_id"])


def downgrade() -> None:
    op.drop_table("payment_records")
    op.drop_table("applications")
    op.drop_table("tuition_posts")
    sa.Enum(name="application_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="post_status_enum").drop(op.get_bind(), checkfirst=True)
