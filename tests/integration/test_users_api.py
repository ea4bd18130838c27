"""Profile endpoints."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from glitch.db.models import User


class TestProfile:
    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user("njeri", is_premium=True)

        response = await client.get("/api/v1/users/me", headers=auth_headers(user))

        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "njeri"
        assert data["is_premium"] is True
        assert data["xp"] == 0
        assert data["level"] == 1
        assert data["level_progress"]["next_level_at"] == 100

    @pytest.mark.asyncio
    async def test_quest_count_tracks_creations(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        await client.post(
            "/api/v1/quests",
            json={"title": "Chess at the park", "latitude": -1.29, "longitude": 36.82},
            headers=auth_headers(user),
        )

        response = await client.get(f"/api/v1/users/{user.id}", headers=auth_headers(user))

        assert response.json()["quest_count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.get("/api/v1/users/nobody", headers=auth_headers(user))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/users/me", headers=auth_headers(SimpleNamespace(id="gone")))
        assert response.status_code == 401


class TestFollowEndpoints:
    @pytest.mark.asyncio
    async def test_follow_and_unfollow(self, client: AsyncClient, make_user, auth_headers):
        fan = await make_user()
        host = await make_user("amani")

        followed = await client.post(f"/api/v1/users/{host.id}/follow", headers=auth_headers(fan))
        assert followed.status_code == 200
        assert followed.json() == {"user_id": host.id, "following": True, "followers_count": 1}

        profile = await client.get(f"/api/v1/users/{host.id}", headers=auth_headers(fan))
        assert profile.json()["is_following"] is True
        assert profile.json()["followers_count"] == 1

        mine = await client.get("/api/v1/users/me", headers=auth_headers(fan))
        assert mine.json()["following_count"] == 1

        unfollowed = await client.delete(f"/api/v1/users/{host.id}/follow", headers=auth_headers(fan))
        assert unfollowed.status_code == 200
        assert unfollowed.json()["followers_count"] == 0

        again = await client.delete(f"/api/v1/users/{host.id}/follow", headers=auth_headers(fan))
        assert again.status_code == 404
        assert again.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_follow_self_is_rejected(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.post(f"/api/v1/users/{user.id}/follow", headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_follow_unknown_user(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.post("/api/v1/users/nobody/follow", headers=auth_headers(user))
        assert response.status_code == 404


class TestPushTokenEndpoint:
    @pytest.mark.asyncio
    async def test_register(self, client: AsyncClient, db_session, make_user, auth_headers):
        user = await make_user()

        response = await client.post(
            "/api/v1/users/me/push-token",
            json={"push_token": "ExponentPushToken[abc123]"},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert response.json() == {"registered": True}
        stored = await db_session.execute(select(User.push_token).where(User.id == user.id))
        assert stored.scalar_one() == "ExponentPushToken[abc123]"

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.post("/api/v1/users/me/push-token", json={}, headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"
