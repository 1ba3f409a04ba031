"""
Edge proxy: the public API surface.

``ANY /{resource}`` - authenticated by a bearer JWT, limited to the
resources in ``ExposedResource``, forwarded to ``{upstream}/rest/v1``.
"""

import logging
from enum import Enum

from fastapi import APIRouter, Depends, Request

from tenantgate.api.v1.helpers.authentication import get_proxy_config, verify_bearer
from tenantgate.api.v1.helpers.responses import validation_error_response
from tenantgate.config import ProxyConfig
from tenantgate.core.forwarding import UpstreamClientManager, forward

logger = logging.getLogger(__name__)

router = APIRouter()

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


class ExposedResource(str, Enum):
    """Resources reachable through the proxy. Anything else is refused."""

    CONTACT = "contact"


def parse_resource(resource: str) -> ExposedResource:
    try:
        return ExposedResource(resource)
    except ValueError:
        allowed = ", ".join(r.value for r in ExposedResource)
        logger.info("Rejected request for non-exposed resource %r", resource)
        raise validation_error_response(
            errors=[f"Invalid resource '{resource}': expected one of {allowed}"],
            message="Invalid resource",
        )


def get_upstream(request: Request) -> UpstreamClientManager:
    return request.app.state.upstream


@router.api_route(
    "/{resource}",
    methods=PROXY_METHODS,
    dependencies=[Depends(verify_bearer)],
    include_in_schema=False,
)
async def proxy_resource(
    resource: str,
    request: Request,
    config: ProxyConfig = Depends(get_proxy_config),
    upstream: UpstreamClientManager = Depends(get_upstream),
):
    """Forward an authenticated request for an exposed resource upstream."""
    # verify_bearer has already run: bad credentials never reach this check
    target = parse_resource(resource)
    return await forward(request, target.value, config, upstream)


@router.api_route(
    "/{resource}/{rest:path}",
    methods=PROXY_METHODS,
    dependencies=[Depends(verify_bearer)],
    include_in_schema=False,
)
async def reject_nested_path(resource: str, rest: str):
    """Any deeper path is authenticated like a resource, then refused."""
    logger.info("Rejected request for nested path %r", f"{resource}/{rest}")
    raise validation_error_response(
        errors=[f"Invalid resource '{resource}/{rest}': only top-level resources are exposed"],
        message="Invalid resource",
    )
