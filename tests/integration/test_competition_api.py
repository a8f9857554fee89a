"""Competition endpoint tests: admin lifecycle, scoring, leaderboard."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from tests.conftest import USER_A, USER_B, USER_C, admin_headers, auth_headers, seed
from jsa.db.base import utcnow
from jsa.db.models import Competition


async def _start(client: AsyncClient, **overrides) -> dict:
    body = {
        "title": "Spelling Bee",
        "description": "Spell all the words",
        "subject": "english",
        "duration_days": 7,
    }
    body.update(overrides)
    response = await client.post("/api/v1/admin/competitions", json=body, headers=admin_headers())
    assert response.status_code == 200, response.text
    return response.json()


async def _score(client: AsyncClient, user_id: str, competition_id: int, xp: int, challenge: str | None = None):
    return await client.post(
        "/api/v1/competitions/submit-score",
        json={"competition_id": competition_id, "xp_points": xp, "challenge_id": challenge},
        headers=auth_headers(user_id),
    )


@pytest.mark.asyncio
async def test_admin_starts_competition(client: AsyncClient) -> None:
    data = await _start(client)
    assert data["is_active"] is True
    assert data["participation_threshold"] == 3

    rewards = await client.get(f"/api/v1/competitions/{data['id']}/rewards", headers=auth_headers(USER_A))
    assert [r["reward_amount"] for r in rewards.json()["rewards"]] == [100, 50, 25]


@pytest.mark.asyncio
async def test_start_requires_admin_secret(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/admin/competitions",
        json={"title": "x", "description": "y", "subject": "z", "duration_days": 1},
        headers={"Authorization": "Bearer wrong"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_active_and_detail(client: AsyncClient) -> None:
    data = await _start(client)

    listing = await client.get("/api/v1/competitions", headers=auth_headers(USER_A))
    assert listing.json()["total"] == 1

    active = await client.get("/api/v1/competitions/active", headers=auth_headers(USER_A))
    assert active.json()["competition"]["id"] == data["id"]

    detail = await client.get(f"/api/v1/competitions/{data['id']}", headers=auth_headers(USER_A))
    assert detail.json()["title"] == "Spelling Bee"

    missing = await client.get("/api/v1/competitions/9999", headers=auth_headers(USER_A))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_submit_score_and_leaderboard(client: AsyncClient) -> None:
    competition_id = (await _start(client))["id"]

    await _score(client, USER_A, competition_id, 30, "c1")
    await _score(client, USER_B, competition_id, 50, "c1")
    response = await _score(client, USER_A, competition_id, 40, "c2")

    assert response.status_code == 200
    data = response.json()
    assert data["participant"]["total_xp"] == 70
    assert data["participant"]["challenges_completed"] == 2
    assert data["rank"] == 1

    board = await client.get(
        f"/api/v1/competitions/{competition_id}/leaderboard", headers=auth_headers(USER_B),
    )
    entries = board.json()["entries"]
    assert [e["user_id"] for e in entries] == [USER_A, USER_B]
    assert entries[1]["is_current_user"] is True
    assert board.json()["final"] is False


@pytest.mark.asyncio
async def test_score_for_unknown_competition_is_404(client: AsyncClient) -> None:
    response = await _score(client, USER_A, 4242, 10)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_score_outside_window_is_400(client: AsyncClient) -> None:
    now = utcnow()
    finished = Competition(
        title="Last week",
        description="Done",
        subject="science",
        start_date=now - timedelta(days=14),
        end_date=now - timedelta(days=7),
    )
    await seed(finished)

    response = await _score(client, USER_A, finished.id, 10, "c1")
    assert response.status_code == 400
    assert response.json() == {"detail": "Competition is not active"}

    board = await client.get(
        f"/api/v1/competitions/{finished.id}/leaderboard", headers=auth_headers(USER_A),
    )
    assert board.json()["entries"] == []


@pytest.mark.asyncio
async def test_join_and_leave(client: AsyncClient) -> None:
    competition_id = (await _start(client))["id"]

    joined = await client.post(f"/api/v1/competitions/{competition_id}/join", headers=auth_headers(USER_A))
    assert joined.status_code == 200
    assert joined.json()["opted_in"] is True

    left = await client.post(f"/api/v1/competitions/{competition_id}/leave", headers=auth_headers(USER_A))
    assert left.json()["opted_in"] is False


@pytest.mark.asyncio
async def test_end_pays_rewards_once(client: AsyncClient) -> None:
    competition_id = (await _start(client))["id"]
    for i in range(3):
        await _score(client, USER_A, competition_id, 20, f"a{i}")
    await _score(client, USER_B, competition_id, 10, "b0")
    await _score(client, USER_C, competition_id, 5, None)

    ended = await client.post(
        "/api/v1/admin/competitions/end", json={"competition_id": competition_id}, headers=admin_headers(),
    )
    assert ended.status_code == 200
    data = ended.json()
    assert [e["user_id"] for e in data["leaderboard"]] == [USER_A, USER_B, USER_C]
    assert {(p["user_id"], p["kind"], p["amount"]) for p in data["payouts"]} == {
        (USER_A, "rank", 100),
        (USER_A, "participation", 25),
        (USER_B, "rank", 50),
        (USER_C, "rank", 25),
    }

    coins = await client.get("/api/v1/users/me/coins", headers=auth_headers(USER_A))
    assert coins.json()["balance"] == 5 + 100 + 25

    again = await client.post(
        "/api/v1/admin/competitions/end", json={"competition_id": competition_id}, headers=admin_headers(),
    )
    assert again.status_code == 400

    late = await _score(client, USER_B, competition_id, 500, "b1")
    assert late.status_code == 400

    board = await client.get(
        f"/api/v1/competitions/{competition_id}/leaderboard", headers=auth_headers(USER_A),
    )
    assert board.json()["final"] is True
    assert [e["rank"] for e in board.json()["entries"]] == [1, 2, 3]
