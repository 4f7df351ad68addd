import pytest
from httpx import ASGITransport, AsyncClient

from agora_viewer.main import app


@pytest.mark.asyncio
async def test_health_endpoint() -> None:
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/api/health")
        head = await client.head("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert head.status_code == 200
