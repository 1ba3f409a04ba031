"""
Upstream forwarding for the edge proxy.

One shared ``httpx.AsyncClient`` per app (its pool is the only state kept
between requests). A proxied call is a single send: no retries, no
caching, and the upstream response is streamed back as it arrives.
"""

import asyncio
import logging
from typing import AsyncIterator, Iterable, Mapping

import httpx
from fastapi import Request
from starlette.responses import StreamingResponse

from tenantgate.api.v1.helpers.responses import bad_gateway_response
from tenantgate.config import ProxyConfig
from tenantgate.db.policies import PROXY_SECRET_HEADER

logger = logging.getLogger(__name__)

READ_METHODS = frozenset({"GET", "HEAD"})

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

PREFER_RETURN_REPRESENTATION = "return=representation"


class UpstreamClientManager:
    """Owns the app-wide httpx client, created on first use."""

    def __init__(
        self,
        config: ProxyConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client

        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    transport=self._transport,
                    timeout=httpx.Timeout(self._config.upstream_timeout),
                    follow_redirects=False,
                )
            return self._client

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _strip_hop_by_hop(items: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(k, v) for k, v in items if k.lower() not in HOP_BY_HOP_HEADERS]


def merge_prefer(caller_prefer: str | None) -> str:
    return ",".join(p for p in (caller_prefer, PREFER_RETURN_REPRESENTATION) if p)


def build_upstream_headers(
    method: str,
    headers: Iterable[tuple[str, str]],
    query_params: Mapping[str, str],
    config: ProxyConfig,
) -> httpx.Headers:
    """Caller headers plus the upstream routing headers.

    ``Host`` is dropped so it follows the upstream URL, and callers cannot
    pick a schema profile or supply the proxy secret themselves. The
    caller's ``Authorization`` is kept: PostgREST derives the database role
    from it.
    """
    reserved = {
        "host",
        "accept-profile",
        "content-profile",
        PROXY_SECRET_HEADER,
    }
    upstream = httpx.Headers(
        [(k, v) for k, v in _strip_hop_by_hop(headers) if k.lower() not in reserved]
    )

    upstream["apikey"] = config.anon_key

    if method.upper() in READ_METHODS:
        upstream["Accept-Profile"] = config.api_schema
    else:
        upstream["Content-Profile"] = config.api_schema

    wants_projection = bool(query_params.get("select"))
    if wants_projection:
        upstream["Prefer"] = merge_prefer(upstream.get("Prefer"))

    if config.proxy_secret and (
        wants_projection or config.proxy_secret_on_every_request
    ):
        upstream[PROXY_SECRET_HEADER] = config.proxy_secret

    return upstream


def build_upstream_url(resource: str, raw_query: str, config: ProxyConfig) -> str:
    url = config.upstream_resource_url(resource)
    return f"{url}?{raw_query}" if raw_query else url


async def relay_body(upstream_response: httpx.Response) -> AsyncIterator[bytes]:
    """Raw upstream bytes; the upstream response is closed however iteration ends."""
    try:
        async for chunk in upstream_response.aiter_raw():
            yield chunk
    finally:
        await upstream_response.aclose()


def _has_body(request: Request) -> bool:
    return (
        "content-length" in request.headers or "transfer-encoding" in request.headers
    )


async def forward(
    request: Request,
    resource: str,
    config: ProxyConfig,
    client_manager: UpstreamClientManager,
) -> StreamingResponse:
    client = await client_manager.get_client()

    upstream_request = client.build_request(
        request.method,
        build_upstream_url(resource, request.url.query, config),
        headers=build_upstream_headers(
            request.method,
            request.headers.items(),
            request.query_params,
            config,
        ),
        content=request.stream() if _has_body(request) else None,
    )

    try:
        upstream_response = await client.send(upstream_request, stream=True)
    except httpx.TransportError as e:
        logger.error(
            "Upstream %s %s failed: %s",
            request.method,
            upstream_request.url,
            e,
        )
        raise bad_gateway_response(f"Upstream request failed: {type(e).__name__}")

    logger.debug(
        "%s /%s -> upstream %s",
        request.method,
        resource,
        upstream_response.status_code,
    )

    response = StreamingResponse(
        relay_body(upstream_response),
        status_code=upstream_response.status_code,
    )
    response.raw_headers = [
        (k.encode("latin-1"), v.encode("latin-1"))
        for k, v in _strip_hop_by_hop(upstream_response.headers.multi_items())
    ]
    return response
