"""initial tenancy schema

Revision ID: 0001_initial_tenancy
Revises:
Create Date: 2024-04-15

Organisations, employees and contacts, scoped by row-level security, plus
the public ``api`` schema exposing contacts as (id, full_name).
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from tenantgate.db.policies import TENANCY_DOWNGRADE, TENANCY_UPGRADE


revision = "0001_initial_tenancy"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- organisation ---
    op.create_table(
        "organisation",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.Text, unique=True, nullable=False),
    )

    # --- employee ---
    op.create_table(
        "employee",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organisation_id",
            UUID(as_uuid=True),
            sa.ForeignKey("organisation.id", onupdate="RESTRICT", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", UUID(as_uuid=True), unique=True, nullable=True),
    )
    op.create_index("ix_employee_organisation_id", "employee", ["organisation_id"])

    # --- contact ---
    op.create_table(
        "contact",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organisation_id",
            UUID(as_uuid=True),
            sa.ForeignKey("organisation.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("full_name", sa.Text, nullable=True),
    )
    op.create_index("ix_contact_organisation_id", "contact", ["organisation_id"])

    for statement in TENANCY_UPGRADE:
        op.execute(statement)


def downgrade() -> None:
    for statement in TENANCY_DOWNGRADE:
        op.execute(statement)

    op.drop_index("ix_contact_organisation_id", table_name="contact")
    op.drop_table("contact")
    op.drop_index("ix_employee_organisation_id", table_name="employee")
    op.drop_table("employee")
    op.drop_table("organisation")
