"""
First-run bootstrap - provision an organisation and an API token when the
database has none, so a fresh deployment can be exercised through the proxy
straight away.

Only runs when BOOTSTRAP_ORGANISATION_NAME is set.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.config import ProxyConfig
from tenantgate.core.tokens import issue_api_token
from tenantgate.models.tenancy import Organisation

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_NAME = "Default Token"


async def ensure_default_organisation(
    db: AsyncSession, name: str, config: ProxyConfig
) -> str | None:
    """Create the organisation and its first token on an empty database.

    Returns the credential when something was provisioned, otherwise None.
    If *any* organisation already exists this is a no-op.
    """
    result = await db.execute(select(Organisation).limit(1))
    if result.scalar_one_or_none() is not None:
        return None

    organisation = Organisation(name=name)
    db.add(organisation)
    await db.commit()

    token, credential = await issue_api_token(
        db, organisation.id, DEFAULT_TOKEN_NAME, config
    )

    logger.info(
        "=== FIRST RUN: provisioned default organisation ===\n"
        "  organisation: %s (id: %s)\n"
        "  token id:     %s\n"
        "  API token:    %s",
        organisation.name,
        organisation.id,
        token.id,
        credential,
    )
    return credential
