"""Expiry and purge sweeps."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from glitch.chat.service import post_message
from glitch.db.models import ChatMessage, Quest, QuestParticipant, QuestReview
from glitch.errors import NotFoundError
from glitch.quests.expiry import PURGE_RETENTION, expire_quests, purge_stale_quests
from glitch.quests.service import QUEST_TTL, create_quest, get_quest, join_quest
from glitch.reviews.service import add_review
from glitch.workers.scheduler import QuestSweeper

NAIROBI = (-1.2864, 36.8172)


async def _count(db, model, quest_id) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(model.quest_id == quest_id))
    return int(result.scalar_one())


async def _busy_quest(db, make_user, clock):
    """A quest with one member, one chat message and one review."""
    creator = await make_user()
    member = await make_user()
    quest = await create_quest(db, creator, "Matatu art tour", *NAIROBI, now=clock.now())
    await join_quest(db, quest.id, member.id, now=clock.now())
    await post_message(db, quest.id, member.id, "On my way", now=clock.now())
    await add_review(db, None, quest.id, member.id, 5, now=clock.now())
    await db.commit()
    return quest


class TestExpireQuests:
    @pytest.mark.asyncio
    async def test_nothing_expires_early(self, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)

        result = await expire_quests(db_session, clock.now() + QUEST_TTL - timedelta(seconds=1))

        assert result.expired_ids == []
        await db_session.refresh(quest)
        assert quest.is_active is True
        assert await _count(db_session, QuestParticipant, quest.id) == 1

    @pytest.mark.asyncio
    async def test_deactivates_and_clears_ephemeral_state(self, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)

        result = await expire_quests(db_session, clock.now() + QUEST_TTL)

        assert result.expired_ids == [quest.id]
        assert result.messages_deleted == 1
        assert result.memberships_deleted == 1
        assert not result.cleanup_failed

        state = await db_session.execute(select(Quest.is_active).where(Quest.id == quest.id))
        assert state.scalar_one() is False
        assert await _count(db_session, ChatMessage, quest.id) == 0
        assert await _count(db_session, QuestParticipant, quest.id) == 0

    @pytest.mark.asyncio
    async def test_reviews_survive_expiry(self, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)

        await expire_quests(db_session, clock.now() + QUEST_TTL)

        assert await _count(db_session, QuestReview, quest.id) == 1

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, db_session, make_user, clock):
        await _busy_quest(db_session, make_user, clock)
        later = clock.now() + QUEST_TTL

        first = await expire_quests(db_session, later)
        second = await expire_quests(db_session, later)

        assert first.affected == 1
        assert second.affected == 0
        assert second.messages_deleted == 0
        assert second.memberships_deleted == 0

    @pytest.mark.asyncio
    async def test_only_past_due_quests_expire(self, db_session, make_user, clock):
        old = await _busy_quest(db_session, make_user, clock)
        clock.advance(hours=2)
        fresh = await _busy_quest(db_session, make_user, clock)

        result = await expire_quests(db_session, clock.now() + timedelta(hours=1))

        assert result.expired_ids == [old.id]
        assert await _count(db_session, QuestParticipant, fresh.id) == 1

    @pytest.mark.asyncio
    async def test_publishes_expired_ids(self, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)

        class Recorder:
            def __init__(self):
                self.published = []

            async def publish(self, channel, payload):
                self.published.append((channel, payload))

        redis = Recorder()
        await expire_quests(db_session, clock.now() + QUEST_TTL, redis)

        [(channel, payload)] = redis.published
        assert channel == "pubsub:quest_expired"
        assert quest.id in payload


class TestPurgeStaleQuests:
    @pytest.mark.asyncio
    async def test_purge_respects_retention(self, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)
        expired_at = clock.now() + QUEST_TTL
        await expire_quests(db_session, expired_at)

        purged = await purge_stale_quests(db_session, expired_at + PURGE_RETENTION - timedelta(minutes=1))
        assert purged == 0

        purged = await purge_stale_quests(db_session, expired_at + PURGE_RETENTION)
        assert purged == 1
        remaining = await db_session.execute(select(Quest.id).where(Quest.id == quest.id))
        assert remaining.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_purge_cascades_to_reviews(self, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)
        expired_at = clock.now() + QUEST_TTL
        await expire_quests(db_session, expired_at)

        await purge_stale_quests(db_session, expired_at + PURGE_RETENTION)

        assert await _count(db_session, QuestReview, quest.id) == 0

    @pytest.mark.asyncio
    async def test_active_quests_are_never_purged(self, db_session, make_user, clock):
        """A quest the expiry sweep hasn't reached yet is left alone."""
        await _busy_quest(db_session, make_user, clock)

        purged = await purge_stale_quests(db_session, clock.now() + QUEST_TTL + PURGE_RETENTION * 2)
        assert purged == 0


class TestQuestSweeper:
    @pytest.mark.asyncio
    async def test_sweeps_use_their_own_sessions(self, database, settings, db_session, make_user, clock):
        quest = await _busy_quest(db_session, make_user, clock)
        sweeper = QuestSweeper(database, settings, clock=clock)

        clock.advance(hours=3)
        report = await sweeper.expiry.run_once()
        assert report.ok
        assert report.affected == 1

        clock.advance(hours=24)
        report = await sweeper.purge.run_once()
        assert report.affected == 1
        remaining = await db_session.execute(select(Quest.id).where(Quest.id == quest.id))
        assert remaining.scalar_one_or_none() is None


class TestExpiryVersusJoin:
    @pytest.mark.asyncio
    async def test_join_after_a_sweep_in_another_session(self, database, db_session, make_user, clock):
        creator = await make_user()
        joiner = await make_user()
        quest = await create_quest(db_session, creator, "Night market", *NAIROBI, now=clock.now())
        await db_session.commit()
        quest_id = quest.id
        sweep_time = clock.now() + QUEST_TTL

        async with database.session_factory() as joiner_session:
            seen = await get_quest(joiner_session, quest_id)
            assert seen.is_active is True

            async with database.session_factory() as sweeper_session:
                result = await expire_quests(sweeper_session, sweep_time)
            assert result.expired_ids == [quest_id]

            # The joiner's clock lags the sweeper's; only the flag stops the join.
            with pytest.raises(NotFoundError):
                await join_quest(joiner_session, quest_id, joiner.id, now=sweep_time - timedelta(seconds=1))

        assert await _count(db_session, QuestParticipant, quest_id) == 0

    @pytest.mark.asyncio
    async def test_membership_committed_during_a_sweep_is_cleared(self, database, db_session, make_user, clock):
        creator = await make_user()
        joiner = await make_user()
        quest = await create_quest(db_session, creator, "Night market", *NAIROBI, now=clock.now())
        await db_session.commit()
        quest_id = quest.id
        sweep_time = clock.now() + QUEST_TTL

        async with database.session_factory() as sweeper_session:
            async with database.session_factory() as joiner_session:
                await join_quest(joiner_session, quest_id, joiner.id, now=sweep_time - timedelta(seconds=1))
                sweep = asyncio.create_task(expire_quests(sweeper_session, sweep_time))
                await asyncio.sleep(0.05)
                await joiner_session.commit()
            result = await sweep

        assert result.expired_ids == [quest_id]
        assert await _count(db_session, QuestParticipant, quest_id) == 0
        state = await db_session.execute(select(Quest.is_active).where(Quest.id == quest_id))
        assert state.scalar_one() is False
