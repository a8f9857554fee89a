"""Bearer auth on user, admin and cron endpoints."""

import pytest
from httpx import AsyncClient

from tests.conftest import USER_A, admin_headers, auth_headers, cron_headers
from jsa.auth.jwt import create_access_token


@pytest.mark.asyncio
async def test_missing_header_is_401(client: AsyncClient) -> None:
    response = await client.get("/api/v1/users/me/xp")
    assert response.status_code == 401
    assert response.json() == {"detail": "Missing authorization header"}


@pytest.mark.asyncio
async def test_garbage_token_is_401(client: AsyncClient) -> None:
    response = await client.get("/api/v1/users/me/coins", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_expired_token_is_401(client: AsyncClient) -> None:
    token = create_access_token(USER_A, expires_minutes=-5)
    response = await client.get("/api/v1/users/me/xp", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


@pytest.mark.asyncio
async def test_user_token_cannot_call_admin(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/admin/competitions/end",
        json={"competition_id": 1},
        headers=auth_headers(USER_A),
    )
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid token"}


@pytest.mark.asyncio
async def test_admin_secret_cannot_call_cron(client: AsyncClient) -> None:
    response = await client.post("/api/v1/cron/daily-rollover", headers=admin_headers())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_cron_secret_runs_rollover(client: AsyncClient) -> None:
    response = await client.post("/api/v1/cron/daily-rollover", headers=cron_headers())
    assert response.status_code == 200
    assert response.json()["skipped"] is False

    again = await client.post("/api/v1/cron/daily-rollover", headers=cron_headers())
    assert again.json()["skipped"] is True
