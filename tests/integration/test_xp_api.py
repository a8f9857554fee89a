"""XP, streak and multiplier endpoint tests."""

import pytest
from httpx import AsyncClient

from tests.conftest import USER_A, auth_headers, seed
from jsa.db.models import Profile, SubscriptionTier, UserSubscription


@pytest.mark.asyncio
async def test_new_user_starts_at_level_one(client: AsyncClient) -> None:
    response = await client.get("/api/v1/users/me/xp", headers=auth_headers(USER_A))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 0
    assert data["level"] == 1
    assert data["level_progress"] == 0.0
    assert data["streak"] == 0


@pytest.mark.asyncio
async def test_grant_applies_streak_bonus(client: AsyncClient) -> None:
    await seed(Profile(user_id=USER_A, xp_total=450, xp_streak=5))

    response = await client.post(
        "/api/v1/users/me/xp",
        json={"amount": 20, "source": "lesson"},
        headers=auth_headers(USER_A),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["granted"] is True
    assert data["transaction"]["final_amount"] == 30
    assert data["xp"]["total"] == 480
    assert data["xp"]["level"] == 5
    assert data["xp"]["level_progress"] == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_grant_with_idempotency_key_applies_once(client: AsyncClient) -> None:
    body = {"amount": 10, "source": "flashcards", "idempotency_key": "deck-7"}
    first = await client.post("/api/v1/users/me/xp", json=body, headers=auth_headers(USER_A))
    second = await client.post("/api/v1/users/me/xp", json=body, headers=auth_headers(USER_A))

    assert first.json()["granted"] is True
    assert second.json()["granted"] is False
    assert second.json()["xp"]["total"] == 10


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -10])
async def test_non_positive_grant_is_422(client: AsyncClient, amount: int) -> None:
    response = await client.post(
        "/api/v1/users/me/xp",
        json={"amount": amount, "source": "lesson"},
        headers=auth_headers(USER_A),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_oversized_grant_is_400(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/users/me/xp",
        json={"amount": 5000, "source": "lesson"},
        headers=auth_headers(USER_A),
    )
    assert response.status_code == 400
    assert "at most" in response.json()["detail"]


@pytest.mark.asyncio
async def test_history_is_paginated(client: AsyncClient) -> None:
    for amount in (1, 2, 3):
        await client.post(
            "/api/v1/users/me/xp",
            json={"amount": amount, "source": "lesson"},
            headers=auth_headers(USER_A),
        )

    response = await client.get(
        "/api/v1/users/me/xp/history", params={"per_page": 2}, headers=auth_headers(USER_A),
    )
    data = response.json()
    assert data["total"] == 3
    assert [e["amount"] for e in data["entries"]] == [3, 2]


@pytest.mark.asyncio
async def test_streak_endpoint(client: AsyncClient) -> None:
    await seed(Profile(user_id=USER_A, xp_streak=3))
    response = await client.get("/api/v1/users/me/streak", headers=auth_headers(USER_A))
    assert response.status_code == 200
    data = response.json()
    assert data["streak"] == 3
    assert data["streak_bonus"] == 1.25
    assert data["reset_in"] is None


@pytest.mark.asyncio
async def test_multipliers_endpoint(client: AsyncClient) -> None:
    tier = SubscriptionTier(name="Elite Legend Squad", perks={"double_xp": True})
    await seed(tier)
    await seed(
        UserSubscription(user_id=USER_A, tier_id=tier.id, status="active"),
        Profile(user_id=USER_A, xp_streak=7),
    )

    response = await client.get("/api/v1/multipliers", headers=auth_headers(USER_A))
    assert response.json() == {"tier": 2.0, "streak": 2.0, "combined": 4.0, "policy": "multiply"}
