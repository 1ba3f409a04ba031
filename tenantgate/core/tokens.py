"""
API token issuing and the per-request token check.

Mirrors ``public.create_api_token`` and ``private.check_request`` in the
database (see ``tenantgate.db.policies``) so the IAM API applies the same
rules PostgREST does.
"""

import logging
import secrets
from datetime import datetime, timezone
from uuid import UUID

from jose import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.api.v1.helpers.responses import unauthorized_response
from tenantgate.config import ProxyConfig
from tenantgate.core.identity import CallerIdentity, TokenCaller
from tenantgate.db.policies import TOKEN_ROLE
from tenantgate.models.tenancy import ApiToken, Organisation

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Same message for every rejection
REJECTED = "Unauthorized"


class ConstraintViolation(Exception):
    """The token could not be stored (unknown organisation, bad label)."""


def sign_api_token(
    token_id: UUID,
    organisation_id: UUID,
    *,
    secret: str,
    issuer: str,
    role: str,
    issued_at: datetime | None = None,
) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    claims = {
        "jti": str(token_id),
        "iss": issuer,
        "sub": str(organisation_id),
        "role": role,
        "iat": int(issued_at.timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


async def issue_api_token(
    db: AsyncSession,
    organisation_id: UUID,
    name: str,
    config: ProxyConfig,
) -> tuple[ApiToken, str]:
    """Persist a token row for the organisation and return it with its credential.

    The row is committed before the credential exists, so anything holding
    the credential can always resolve the reference.
    """
    if await db.get(Organisation, organisation_id) is None:
        raise ConstraintViolation(f"Organisation {organisation_id} does not exist")

    token = ApiToken(organisation_id=organisation_id, name=name)
    db.add(token)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConstraintViolation(str(e.orig)) from e
    await db.refresh(token)

    credential = sign_api_token(
        token.id,
        organisation_id,
        secret=config.jwt_secret,
        issuer=config.token_issuer,
        role=TOKEN_ROLE,
    )
    logger.info("Issued API token %s for organisation %s", token.id, organisation_id)
    return token, credential


def _secrets_match(carried: str | None, expected: str) -> bool:
    if carried is None:
        return False
    return secrets.compare_digest(carried.encode("utf-8"), expected.encode("utf-8"))


async def check_request(
    caller: CallerIdentity,
    carried_secret: str | None,
    db: AsyncSession,
    proxy_secret: str | None = None,
) -> None:
    """Reject token callers whose token row is gone or who skipped the proxy.

    Session and anonymous callers pass straight through; their access is
    governed by tenant resolution alone.
    """
    if not isinstance(caller, TokenCaller):
        return

    if proxy_secret and not _secrets_match(carried_secret, proxy_secret):
        logger.warning("Token %s presented without the proxy secret", caller.token_id)
        raise unauthorized_response(REJECTED)

    result = await db.execute(select(ApiToken.id).where(ApiToken.id == caller.token_id))
    if result.scalar_one_or_none() is None:
        logger.info("Rejected revoked API token %s", caller.token_id)
        raise unauthorized_response(REJECTED)
