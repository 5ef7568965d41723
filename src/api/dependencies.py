"""FastAPI dependencies for injection."""
import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, get_settings
from core.redis import RedisClient
from services.audio_name_resolver import AudioNameResolver
from services.proxy_transport import ProxyTransport
from services.response_transformer import ResponseTransformer


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared backend HTTP client created at startup."""
    return request.app.state.http_client


def get_redis_client(request: Request) -> RedisClient:
    """Get the shared fast cache client created at startup."""
    return request.app.state.redis_client


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Get the durable store session factory created at startup."""
    return request.app.state.session_factory


def get_audio_name_resolver(
    redis_client: RedisClient = Depends(get_redis_client),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> AudioNameResolver:
    """Build the audio filename resolver from the shared handles."""
    return AudioNameResolver(
        redis_client,
        session_factory,
        cache_ttl=settings.audio_name_cache_ttl_seconds,
        repopulate=settings.audio_name_cache_repopulate,
    )


def get_proxy_transport(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    resolver: AudioNameResolver = Depends(get_audio_name_resolver),
    settings: Settings = Depends(get_settings),
) -> ProxyTransport:
    """Build the proxy transport for the configured backend."""
    transformer = ResponseTransformer(resolver)
    return ProxyTransport(http_client, settings.backend_url, transformer)
