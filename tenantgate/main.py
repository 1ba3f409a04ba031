"""
tenantgate entry point.

``create_app`` builds the application around an explicit ``ProxyConfig``;
the module-level ``app`` uses the one derived from the environment.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import httpx
from tenantgate.config import ProxyConfig, settings
from tenantgate.api.v1.router import iam_router, proxy_router
from tenantgate.core.forwarding import UpstreamClientManager
from tenantgate.db.session import dispose_engine, get_session_local
from tenantgate.bootstrap import ensure_default_organisation
from logging import getLogger, Filter
import logging

logger = getLogger(__name__)
logger.setLevel(logging.INFO)


class HealthCheckFilter(Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.getMessage().find("/health") == -1


logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())


def create_app(
    config: ProxyConfig | None = None,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    config = config or ProxyConfig.from_settings(settings)

    # docs only in debug; every other path except /health needs a credential
    docs_enabled = settings.debug
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        redirect_slashes=False,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.proxy_config = config
    app.state.upstream = UpstreamClientManager(config, transport=upstream_transport)

    @app.on_event("startup")
    async def startup_event():
        logger.info("--- Starting tenantgate (upstream %s) ---", config.upstream_url)
        if not settings.bootstrap_organisation_name:
            return

        AsyncSessionLocal = get_session_local()
        async with AsyncSessionLocal() as db:
            try:
                await ensure_default_organisation(
                    db, settings.bootstrap_organisation_name, config
                )
            except Exception as e:
                logger.error(f"Warning: Error during bootstrap: {e}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("--- Server shutting down! ---")
        await app.state.upstream.close()
        await dispose_engine()
        logger.info("--- Upstream client and database connections closed. ---")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    app.include_router(iam_router, prefix="/api/v1")
    app.include_router(proxy_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
