"""Grant registry tests: exactly-once claims and TTL re-arming."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from jsa.gamification.grants import claim_grant, get_grant, is_granted

NOW = datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc)


class TestClaimGrant:

    @pytest.mark.asyncio
    async def test_permanent_key_claims_once(self, db_session):
        assert await claim_grant(db_session, "achievement:u1:7", user_id="u1", now=NOW) is True
        assert await claim_grant(db_session, "achievement:u1:7", user_id="u1", now=NOW) is False
        assert await claim_grant(
            db_session, "achievement:u1:7", user_id="u1", now=NOW + timedelta(days=3650),
        ) is False

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, db_session):
        assert await claim_grant(db_session, "quote_share:u1:1:twitter", now=NOW)
        assert await claim_grant(db_session, "quote_share:u1:1:facebook", now=NOW)
        assert await claim_grant(db_session, "quote_share:u2:1:twitter", now=NOW)

    @pytest.mark.asyncio
    async def test_ttl_key_rearms_after_expiry(self, db_session):
        ttl = timedelta(days=7)
        assert await claim_grant(db_session, "k", ttl=ttl, now=NOW)
        assert not await claim_grant(db_session, "k", ttl=ttl, now=NOW + timedelta(days=6))
        assert await claim_grant(db_session, "k", ttl=ttl, now=NOW + timedelta(days=7))

        grant = await get_grant(db_session, "k")
        assert grant.issued_at == NOW + timedelta(days=7)
        assert grant.expires_at == NOW + timedelta(days=14)

    @pytest.mark.asyncio
    async def test_is_granted(self, db_session):
        assert not await is_granted(db_session, "k", NOW)
        await claim_grant(db_session, "k", ttl=timedelta(hours=1), now=NOW)
        assert await is_granted(db_session, "k", NOW + timedelta(minutes=59))
        assert not await is_granted(db_session, "k", NOW + timedelta(hours=1))
