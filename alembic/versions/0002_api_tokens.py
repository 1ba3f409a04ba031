"""api tokens

Revision ID: 0002_api_tokens
Revises: 0001_initial_tenancy
Create Date: 2024-04-16

Revocable long-lived tokens: the api_token table, the token-aware tenant
resolver, ``public.create_api_token`` and the ``private.check_request``
pre-request hook.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from tenantgate.db.policies import API_TOKEN_DOWNGRADE, API_TOKEN_UPGRADE


revision = "0002_api_tokens"
down_revision = "0001_initial_tenancy"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "api_token",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "organisation_id",
            UUID(as_uuid=True),
            sa.ForeignKey("organisation.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_api_token_organisation_id", "api_token", ["organisation_id"])

    for statement in API_TOKEN_UPGRADE:
        op.execute(statement)


def downgrade() -> None:
    for statement in API_TOKEN_DOWNGRADE:
        op.execute(statement)

    op.drop_index("ix_api_token_organisation_id", table_name="api_token")
    op.drop_table("api_token")
