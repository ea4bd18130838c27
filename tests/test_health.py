"""Health endpoint tests."""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from glitch.main import create_app


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness(client: AsyncClient) -> None:
    """GET /ready checks the database; Redis is skipped when not configured."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok"}


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    """GET /version returns version and environment."""
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "0.1.0"
    assert "environment" in data


@pytest.mark.asyncio
async def test_lifespan_starts_and_stops_sweeps(settings, database, clock) -> None:
    """With the scheduler enabled, startup runs the sweeps and /ready reports them."""
    app = create_app(
        settings.model_copy(update={"scheduler_enabled": True, "create_tables": True}),
        database=database,
        clock=clock,
    )

    async with app.router.lifespan_context(app):
        sweeper = app.state.sweeper
        assert sweeper.expiry.running
        assert sweeper.purge.running

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            for _ in range(100):
                if sweeper.expiry.last_report and sweeper.purge.last_report:
                    break
                await asyncio.sleep(0.01)
            response = await ac.get("/ready")

        sweeps = response.json()["checks"]["sweeps"]
        assert sweeps["quest_expiry"]["running"] is True
        assert sweeps["quest_expiry"]["last_error"] is None

    assert not sweeper.expiry.running
    assert not sweeper.purge.running
