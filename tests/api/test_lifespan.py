"""Tests for application startup, shutdown and route layout."""
from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import respx
from fastapi import FastAPI
from httpx import AsyncClient

from api.main import lifespan
from core.config import Settings
from core.redis import RedisClient


@pytest.fixture
def engine() -> MagicMock:
    """Engine stand-in whose dispose can be awaited."""
    mock = MagicMock()
    mock.dispose = AsyncMock()
    return mock


@pytest.fixture
def patched_startup(settings: Settings, engine: MagicMock) -> Generator[dict[str, MagicMock]]:
    """Patch the database handles the lifespan creates."""
    session_factory = MagicMock()
    with (
        patch("api.main.get_settings", return_value=settings),
        patch("api.main.create_engine", return_value=engine),
        patch("api.main.ping_database", new_callable=AsyncMock) as ping,
        patch("api.main.create_session_factory", return_value=session_factory),
    ):
        yield {"ping": ping, "session_factory": session_factory}


async def test_lifespan_populates_state(
    engine: MagicMock, patched_startup: dict[str, MagicMock],
) -> None:
    """Test that startup stores the shared handles on app.state."""
    app = FastAPI()

    async with lifespan(app):
        assert app.state.session_factory is patched_startup["session_factory"]
        assert isinstance(app.state.redis_client, RedisClient)
        assert isinstance(app.state.http_client, httpx.AsyncClient)
        http_client = app.state.http_client
        patched_startup["ping"].assert_awaited_once_with(engine)

    assert http_client.is_closed
    engine.dispose.assert_awaited_once()


async def test_lifespan_without_cache_still_starts(patched_startup: dict[str, MagicMock]) -> None:
    """Test that a disabled cache leaves the proxy serving from the database."""
    app = FastAPI()

    async with lifespan(app):
        assert not app.state.redis_client.is_connected


async def test_lifespan_database_unreachable_aborts_startup(
    engine: MagicMock, patched_startup: dict[str, MagicMock],
) -> None:
    """Test that startup fails when the durable store cannot be reached."""
    patched_startup["ping"].side_effect = OSError("connection refused")
    app = FastAPI()

    with pytest.raises(OSError, match="connection refused"):
        async with lifespan(app):
            pytest.fail("lifespan should not yield")

    engine.dispose.assert_awaited_once()
    assert not hasattr(app.state, "http_client")


@pytest.mark.parametrize("path", ["/docs", "/redoc", "/openapi.json"])
async def test_docs_paths_reach_the_bucket(
    path: str, client: AsyncClient, backend: respx.MockRouter,
) -> None:
    """Test that documentation routes are disabled and their paths are proxied."""
    route = backend.get(f"/media{path}").mock(return_value=httpx.Response(404))

    response = await client.get(path)

    assert response.status_code == 404
    assert route.called


async def test_healthz_is_served_locally(client: AsyncClient, backend: respx.MockRouter) -> None:
    """Test that the health route takes precedence over the catch-all."""
    route = backend.get("/media/healthz")

    response = await client.get("/healthz")

    assert response.status_code == 200
    assert not route.called
