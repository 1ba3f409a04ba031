from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.api.v1.helpers.authentication import get_authorized_caller
from tenantgate.api.v1.helpers.responses import forbidden_response
from tenantgate.core.access_policy import resolve_caller_tenant, tenant_scope
from tenantgate.core.identity import CallerIdentity
from tenantgate.db.session import get_db
from tenantgate.models.pydantic_models.core_models import OrganisationModel
from tenantgate.models.tenancy import Organisation

router = APIRouter(prefix="/organisation", tags=["Organisation"])


@router.get("", response_model=OrganisationModel)
async def get_my_organisation(
    caller: CallerIdentity = Depends(get_authorized_caller),
    db: AsyncSession = Depends(get_db),
):
    """Return the organisation the caller acts for."""
    tenant_id = await resolve_caller_tenant(caller, db)
    result = await db.execute(
        select(Organisation).where(tenant_scope(Organisation, tenant_id))
    )
    organisation = result.scalar_one_or_none()
    if organisation is None:
        raise forbidden_response("Caller does not belong to an organisation")
    return OrganisationModel.model_validate(organisation)
