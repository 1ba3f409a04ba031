"""
IAM - API token management.

Members (session callers) issue and revoke long-lived API tokens for their
own organisation. Token callers may list their organisation's tokens but
never mint or revoke one. Every query is scoped by the caller's tenant.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.api.v1.helpers.authentication import (
    get_authorized_caller,
    get_proxy_config,
)
from tenantgate.api.v1.helpers.responses import (
    forbidden_response,
    not_found_response,
    success_response,
)
from tenantgate.config import ProxyConfig
from tenantgate.core.access_policy import resolve_caller_tenant, tenant_scope
from tenantgate.core.identity import CallerIdentity, SessionCaller
from tenantgate.core.tokens import ConstraintViolation, issue_api_token
from tenantgate.db.session import get_db
from tenantgate.models.pydantic_models.core_models import (
    ApiTokenModel,
    IssuedTokenModel,
)
from tenantgate.models.tenancy import ApiToken

router = APIRouter(prefix="/tokens", tags=["Tokens"])


# ── request / response schemas ────────────────────────────────────────────


class CreateTokenRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class TokenListResponse(BaseModel):
    tokens: List[ApiTokenModel]
    total_count: int


# ── helpers ───────────────────────────────────────────────────────────────


async def _require_tenant(caller: CallerIdentity, db: AsyncSession) -> UUID:
    tenant_id = await resolve_caller_tenant(caller, db)
    if tenant_id is None:
        raise forbidden_response("Caller does not belong to an organisation")
    return tenant_id


def _require_member(caller: CallerIdentity) -> None:
    if not isinstance(caller, SessionCaller):
        raise forbidden_response("Only organisation members can manage tokens")


# ── endpoints ─────────────────────────────────────────────────────────────


@router.post("/", response_model=IssuedTokenModel, status_code=201)
async def create_token(
    body: CreateTokenRequest,
    caller: CallerIdentity = Depends(get_authorized_caller),
    config: ProxyConfig = Depends(get_proxy_config),
    db: AsyncSession = Depends(get_db),
):
    """Issue a token for the caller's organisation. The credential is shown once."""
    _require_member(caller)
    tenant_id = await _require_tenant(caller, db)

    try:
        token, credential = await issue_api_token(db, tenant_id, body.name, config)
    except ConstraintViolation as e:
        raise not_found_response(str(e))

    return IssuedTokenModel(
        id=token.id,
        organisation_id=token.organisation_id,
        name=token.name,
        created_at=token.created_at,
        token=credential,
    )


@router.get("/", response_model=TokenListResponse)
async def list_tokens(
    caller: CallerIdentity = Depends(get_authorized_caller),
    db: AsyncSession = Depends(get_db),
):
    """List the caller organisation's tokens, newest first."""
    tenant_id = await _require_tenant(caller, db)

    result = await db.execute(
        select(ApiToken)
        .where(tenant_scope(ApiToken, tenant_id))
        .order_by(ApiToken.created_at.desc())
    )
    tokens = result.scalars().all()

    return TokenListResponse(
        tokens=[ApiTokenModel.model_validate(t) for t in tokens],
        total_count=len(tokens),
    )


@router.delete("/{token_id}")
async def delete_token(
    token_id: UUID,
    caller: CallerIdentity = Depends(get_authorized_caller),
    db: AsyncSession = Depends(get_db),
):
    """Revoke a token. Credentials referencing it stop working immediately."""
    _require_member(caller)
    tenant_id = await _require_tenant(caller, db)

    result = await db.execute(
        select(ApiToken).where(
            and_(ApiToken.id == token_id, tenant_scope(ApiToken, tenant_id))
        )
    )
    token = result.scalar_one_or_none()
    if token is None:
        raise not_found_response("Token not found")

    await db.delete(token)
    await db.commit()

    return success_response(message="Token deleted successfully")
