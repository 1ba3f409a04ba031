"""
Tenant resolution for the current caller.

``private.organisation_id()`` does the same inside Postgres for every RLS
policy; this is the application-side twin used by the IAM API.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.core.identity import CallerIdentity, SessionCaller, TokenCaller
from tenantgate.models.tenancy import Employee, Organisation


async def resolve_caller_tenant(
    caller: CallerIdentity, db: AsyncSession
) -> UUID | None:
    if isinstance(caller, TokenCaller):
        # signature and revocation were already checked
        return caller.organisation_id

    if isinstance(caller, SessionCaller):
        result = await db.execute(
            select(Employee.organisation_id).where(Employee.user_id == caller.user_id)
        )
        return result.scalar_one_or_none()

    return None


def tenant_scope(model, tenant_id: UUID | None):
    """Row filter: visible iff the row's tenant equals ``tenant_id``."""
    column = model.id if model is Organisation else model.organisation_id
    return column == tenant_id
