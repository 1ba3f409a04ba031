"""
Router assembly.

The IAM endpoints live under ``/api/v1``; the edge proxy owns every other
single-segment path and is mounted last so it never shadows them.
"""

from fastapi import APIRouter

from tenantgate.api.v1.endpoints import proxy
from tenantgate.api.v1.endpoints.iam import (
    organisations as iam_organisations,
    tokens as iam_tokens,
)

# Each endpoint authenticates itself via get_authorized_caller
iam_router = APIRouter()
iam_router.include_router(iam_organisations.router, prefix="/iam", tags=["iam"])
iam_router.include_router(iam_tokens.router, prefix="/iam", tags=["iam"])

proxy_router = APIRouter()
proxy_router.include_router(proxy.router, tags=["proxy"])
