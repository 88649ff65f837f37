import asyncio

import pytest

from hellogt.config import settings
from hellogt.models import Match
from hellogt.services.match_feed import MatchSubscription

from conftest import settle


async def write_match(store, user_a, user_b):
    match = Match.between(user_a, user_b)
    await store.upsert(settings.MATCHES_COLLECTION, match.id, match.to_document())
    return match


def test_both_participant_roles_are_delivered_once(store):
    async def scenario():
        feed = MatchSubscription(store)
        delivered = []
        feed.subscribe("m", delivered.append)
        await write_match(store, "a", "m")
        await write_match(store, "m", "z")
        await write_match(store, "x", "y")
        await settle()
        # Rewriting a known match is a modification, not a new match
        await write_match(store, "a", "m")
        await settle()
        await feed.unsubscribe()
        return feed, delivered

    feed, delivered = asyncio.run(scenario())
    assert sorted(m.id for m in delivered) == ["a_m", "m_z"]
    assert sorted(feed.matched_user_ids("m")) == ["a", "z"]


def test_initial_load_is_not_redelivered_by_the_feed(store):
    async def scenario():
        await write_match(store, "a", "m")
        feed = MatchSubscription(store)
        initial = await feed.load_initial_matches("m")
        delivered = []
        feed.subscribe("m", delivered.append)
        await settle()
        await write_match(store, "b", "m")
        await settle()
        await feed.unsubscribe()
        return initial, delivered, feed

    initial, delivered, feed = asyncio.run(scenario())
    assert [m.id for m in initial] == ["a_m"]
    assert [m.id for m in delivered] == ["b_m"]
    assert {m.id for m in feed.matches} == {"a_m", "b_m"}


def test_recorded_match_is_not_redelivered(store):
    async def scenario():
        feed = MatchSubscription(store)
        delivered = []
        feed.subscribe("m", delivered.append)
        await settle()
        match = await write_match(store, "a", "m")
        assert feed.record(match) is True
        assert feed.record(match) is False
        await settle()
        await feed.unsubscribe()
        return delivered

    assert asyncio.run(scenario()) == []


def test_undecodable_documents_and_failing_callbacks_do_not_stop_the_feed(store):
    async def scenario():
        feed = MatchSubscription(store)
        delivered = []

        async def on_match(match):
            if match.id == "a_m":
                raise ValueError("boom")
            delivered.append(match)

        feed.subscribe("m", on_match)
        await store.upsert(settings.MATCHES_COLLECTION, "broken", {"user1Id": "m"})
        await write_match(store, "a", "m")
        await write_match(store, "b", "m")
        await settle()
        active = feed.is_active
        await feed.unsubscribe()
        return delivered, active

    delivered, active = asyncio.run(scenario())
    assert [m.id for m in delivered] == ["b_m"]
    assert active is True


def test_unsubscribe_stops_delivery_and_allows_resubscribe(store):
    async def scenario():
        feed = MatchSubscription(store)
        delivered = []
        feed.subscribe("m", delivered.append)
        with pytest.raises(RuntimeError):
            feed.subscribe("m", delivered.append)
        await feed.unsubscribe()
        assert feed.is_active is False
        await write_match(store, "a", "m")
        await settle()
        assert delivered == []

        feed.subscribe("m", delivered.append)
        await settle()
        await feed.unsubscribe()
        return delivered

    assert [m.id for m in asyncio.run(scenario())] == ["a_m"]


def test_initial_load_failure_returns_cached_matches(store):
    async def scenario():
        await write_match(store, "a", "m")
        feed = MatchSubscription(store)
        await feed.load_initial_matches("m")
        store.fail("query")
        again = await feed.load_initial_matches("m")
        return feed, again

    feed, again = asyncio.run(scenario())
    assert [m.id for m in again] == ["a_m"]
    assert feed.last_error is not None
