"""
Bearer credential verification and caller resolution.

Both session JWTs (from the identity provider) and API tokens are HS256
JWTs signed with the same secret PostgREST uses, so one verification step
serves the edge proxy and the IAM API alike.
"""

from typing import Any
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from tenantgate.api.v1.helpers.responses import unauthorized_response
from tenantgate.config import ProxyConfig
from tenantgate.core.identity import CallerIdentity, caller_from_claims
from tenantgate.core.tokens import ALGORITHM, check_request
from tenantgate.db.policies import PROXY_SECRET_HEADER
from tenantgate.db.session import get_db
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_proxy_config(request: Request) -> ProxyConfig:
    return request.app.state.proxy_config


def decode_credential(credential: str, secret: str) -> dict[str, Any]:
    """Verify the signature (and ``exp`` when present) and return the claims."""
    try:
        return jwt.decode(
            credential,
            secret,
            algorithms=[ALGORITHM],
            # session tokens carry aud=authenticated; nothing here depends on it
            options={"verify_aud": False},
        )
    except JWTError:
        raise unauthorized_response("Invalid JWT")


async def verify_bearer(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    config: ProxyConfig = Depends(get_proxy_config),
) -> dict[str, Any]:
    if credentials is None:
        logger.info("Rejected %s %s: no bearer credential", request.method, request.url.path)
        raise unauthorized_response("No authentication method found")
    claims = decode_credential(credentials.credentials, config.jwt_secret)
    request.state.jwt_claims = claims
    return claims


async def get_current_caller(
    claims: dict[str, Any] = Depends(verify_bearer),
) -> CallerIdentity:
    return caller_from_claims(claims)


async def get_authorized_caller(
    request: Request,
    caller: CallerIdentity = Depends(get_current_caller),
    config: ProxyConfig = Depends(get_proxy_config),
    db: AsyncSession = Depends(get_db),
) -> CallerIdentity:
    """Current caller after the token validator has accepted it."""
    await check_request(
        caller,
        request.headers.get(PROXY_SECRET_HEADER),
        db,
        proxy_secret=config.proxy_secret,
    )
    return caller
