from collections.abc import AsyncIterator

import httpx
import pytest
from fastapi import FastAPI

from ocdesk.stub import IDENTITY_HEADER, STUB_VERSION, create_app

pytestmark = pytest.mark.anyio


@pytest.fixture
def app() -> FastAPI:
    return create_app(version="1.4.2")


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://localhost:1504"
    ) as client:
        yield client


class TestStubBackend:
    async def test_index_identifies_backend(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/")

        assert response.status_code == 200
        assert response.headers[IDENTITY_HEADER] == "1.4.2"
        assert "OpenChamber" in response.text

    async def test_version(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/version")

        assert response.json() == {"name": "openchamber", "version": "1.4.2"}

    async def test_health_toggle(self, app: FastAPI, client: httpx.AsyncClient) -> None:
        assert (await client.get("/api/health")).status_code == 200

        app.state.healthy = False
        response = await client.get("/api/health")

        assert response.status_code == 503
        assert response.json() == {"status": "unhealthy"}

    async def test_unidentified(self) -> None:
        app = create_app(identify=False)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(
            transport=transport, base_url="http://localhost:1504"
        ) as client:
            response = await client.get("/")

        assert IDENTITY_HEADER not in response.headers
        assert "It works!" in response.text
        assert "OpenChamber" not in response.text

    def test_default_version(self) -> None:
        assert create_app().state.version == STUB_VERSION
