"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from api.routers import health, proxy
from core.config import get_settings
from core.redis import RedisClient
from core.request_context import ClientDisconnectedError
from db.session import create_engine, create_session_factory, ping_database
from services.exceptions import UpstreamResponseError
from services.proxy_transport import create_http_client

logger = logging.getLogger(__name__)

# Non-standard status popularised by nginx for requests the client abandoned
CLIENT_CLOSED_REQUEST = 499


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: the durable store is required, so a failed ping aborts startup
    engine = create_engine(app_settings)
    try:
        await ping_database(engine)
    except Exception:
        logger.critical("Failed to connect to the durable store, refusing to start")
        await engine.dispose()
        raise

    # Startup: the fast cache is optional; RedisClient degrades to misses
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()

    http_client = create_http_client(read_timeout=app_settings.upstream_timeout_seconds)

    app.state.session_factory = create_session_factory(engine)
    app.state.redis_client = redis_client
    app.state.http_client = http_client
    logger.info(
        "media_cdn_proxy_started backend=%s bucket=%s",
        app_settings.minio_endpoint,
        app_settings.minio_bucket,
    )

    yield

    # Shutdown: close upstream, cache and database pools
    await http_client.aclose()
    await redis_client.close()
    await engine.dispose()


async def upstream_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Answer 502 when the backend failed or its response could not be rebuilt."""
    logger.warning("upstream_error path=%s error=%r", request.url.path, exc)
    return PlainTextResponse("Bad Gateway", status_code=502)


async def upstream_timeout_handler(request: Request, _exc: Exception) -> PlainTextResponse:
    """Answer 504 when the per-request deadline passed."""
    logger.warning("upstream_timeout path=%s", request.url.path)
    return PlainTextResponse("Gateway Timeout", status_code=504)


async def client_disconnected_handler(request: Request, _exc: Exception) -> PlainTextResponse:
    """Record an abandoned request; nobody is left to read the response."""
    logger.info("client_disconnected path=%s", request.url.path)
    return PlainTextResponse("", status_code=CLIENT_CLOSED_REQUEST)


def create_app() -> FastAPI:
    """Create the proxy application."""
    # No docs/openapi routes: every path other than /healthz belongs to the bucket
    application = FastAPI(
        title="Media CDN Proxy",
        description="Serves avatars, banners and songs from the media bucket.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.add_exception_handler(UpstreamResponseError, upstream_error_handler)
    application.add_exception_handler(httpx.HTTPError, upstream_error_handler)
    application.add_exception_handler(TimeoutError, upstream_timeout_handler)
    application.add_exception_handler(ClientDisconnectedError, client_disconnected_handler)

    application.include_router(health.router)
    application.include_router(proxy.router)
    return application


app = create_app()


def run() -> None:
    """Configure logging and serve the proxy on LISTEN_ADDR."""
    app_settings = get_settings()
    logging.basicConfig(
        level=app_settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("starting media-cdn-proxy on %s", app_settings.listen_addr)
    uvicorn.run(
        "api.main:app",
        host=app_settings.listen_host,
        port=app_settings.listen_port,
        log_level=app_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
