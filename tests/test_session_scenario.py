import asyncio

import pytest

from hellogt.config import settings
from hellogt.core.errors import AuthenticationRequired, OptimisticWriteFailed, StoreUnavailable
from hellogt.core.session import SessionContext, SessionRegistry
from hellogt.db.redis import LocalStateService
from hellogt.models import MatchOutcome

from conftest import BrokenKeyValue, SlowStore, add_profile, settle


async def seed_profiles(store):
    await add_profile(store, "A", "Ada")
    await add_profile(store, "B", "Ben")
    await add_profile(store, "C", "Cleo")


def test_two_users_match_and_see_each_other_at_an_event(store, local_state):
    async def scenario():
        await seed_profiles(store)
        registry = SessionRegistry(store, local_state)
        a = await registry.sign_in("A")
        b = await registry.sign_in("B")

        first = await a.swipe_right("B")
        assert first == MatchOutcome.no_match()
        assert "B" in (await a.swipes.state_for("A")).right_swipes

        second = await b.swipe_right("A")
        assert second.is_match
        assert second.match.id == "A_B"
        await settle()

        # Both sides hold one unread notification naming the other
        assert [n.counterpart_display_name for n in a.notifications.unread_notifications] == ["Ben"]
        assert [n.counterpart_display_name for n in b.notifications.unread_notifications] == ["Ada"]

        await a.join_event("E1", "Trivia")
        await settle()
        assert a.attendance.attendee_count("E1") == 1
        await b.join_event("E1")
        await settle()
        assert a.attendance.attendee_count("E1") == 2

        assert a.friends_attending("E1") == set()
        await a.acknowledge(a.notifications.notifications[0].id)
        assert a.friends_attending("E1") == {"B"}
        # B has not acknowledged, so A is not yet B's friend
        assert b.friends_attending("E1") == set()

        await registry.close_all()
        return a, b

    a, b = asyncio.run(scenario())
    assert a.matches.is_active is False
    assert a.attendance.is_listening is False


def test_candidates_exclude_self_and_decided_profiles(store, local_state):
    async def scenario():
        await seed_profiles(store)
        session = SessionContext("A", store, local_state)
        await session.start()
        await session.swipe_left("C")
        candidates = await session.candidates()
        await session.close()
        return candidates

    assert [p.id for p in asyncio.run(scenario())] == ["B"]


def test_sign_in_backfills_notifications_for_existing_matches(store, local_state):
    async def scenario():
        await seed_profiles(store)
        registry = SessionRegistry(store, local_state)
        a = await registry.sign_in("A")
        await a.swipe_right("B")
        await registry.sign_out("A")

        # B matches while A is signed out
        b = await registry.sign_in("B")
        await b.swipe_right("A")
        await registry.sign_out("B")

        a = await registry.sign_in("A")
        notifications = a.notifications.notifications
        await registry.close_all()
        return notifications

    notifications = asyncio.run(scenario())
    assert [n.counterpart_user_id for n in notifications] == ["B"]
    assert notifications[0].is_read is False


def test_failed_swipe_is_reverted_and_profile_shown_again(store, local_state):
    async def scenario():
        await seed_profiles(store)
        session = SessionContext("A", store, local_state)
        await session.start()
        store.fail("upsert")
        with pytest.raises(OptimisticWriteFailed):
            await session.swipe_left("B")
        with pytest.raises(OptimisticWriteFailed):
            await session.join_event("E1")
        store.recover()
        candidates = await session.candidates()
        attending = session.attendance.is_attending("E1", "A")
        await session.close()
        return candidates, attending

    candidates, attending = asyncio.run(scenario())
    assert sorted(p.id for p in candidates) == ["B", "C"]
    assert attending is False


def test_session_requires_user_and_registry_lookup(store, local_state):
    with pytest.raises(AuthenticationRequired):
        SessionContext("", store, local_state)
    with pytest.raises(AuthenticationRequired):
        SessionRegistry(store, local_state).get("A")


def test_sign_in_twice_returns_the_same_session(store, local_state):
    async def scenario():
        registry = SessionRegistry(store, local_state)
        first = await registry.sign_in("A")
        second = await registry.sign_in("A")
        await registry.close_all()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second


def test_concurrent_sign_ins_share_one_started_session(local_state):
    async def scenario():
        registry = SessionRegistry(SlowStore(), local_state)
        first = asyncio.ensure_future(registry.sign_in("A"))
        await asyncio.sleep(0)
        second = await registry.sign_in("A")
        observed = (second.started, second.matches.is_active, second is await first)
        await registry.close_all()
        return observed

    assert asyncio.run(scenario()) == (True, True, True)


def test_failed_start_leaves_no_session_behind(store, local_state):
    async def scenario():
        registry = SessionRegistry(store, local_state)
        store.fail("subscribe", settings.MATCHES_COLLECTION)
        with pytest.raises(StoreUnavailable):
            await registry.sign_in("A")
        with pytest.raises(AuthenticationRequired):
            registry.get("A")

        store.recover()
        session = await registry.sign_in("A")
        observed = (session.started, session.matches.is_active)
        await registry.close_all()
        return observed

    assert asyncio.run(scenario()) == (True, True)


def test_concurrent_mutual_likes_give_each_side_one_notification(local_state):
    async def scenario():
        store = SlowStore()
        await seed_profiles(store)
        registry = SessionRegistry(store, local_state)
        a = await registry.sign_in("A")
        b = await registry.sign_in("B")

        outcomes = await asyncio.gather(a.swipe_right("B"), b.swipe_right("A"))
        await asyncio.sleep(0.1)
        await settle()

        observed = (
            outcomes,
            await store.query(settings.MATCHES_COLLECTION),
            [n.match_id for n in a.notifications.notifications],
            [n.match_id for n in b.notifications.notifications],
        )
        await registry.close_all()
        return observed

    outcomes, matches, a_notifications, b_notifications = asyncio.run(scenario())
    assert any(outcome.is_match for outcome in outcomes)
    assert [m.id for m in matches] == ["A_B"]
    assert a_notifications == ["A_B"]
    assert b_notifications == ["A_B"]


def test_failed_acknowledgement_keeps_match_out_of_friends(store):
    async def scenario():
        await seed_profiles(store)
        key_value = BrokenKeyValue(broken=False)
        registry = SessionRegistry(store, LocalStateService(key_value))
        a = await registry.sign_in("A")
        b = await registry.sign_in("B")
        await a.swipe_right("B")
        await b.swipe_right("A")
        await settle()

        key_value.broken = True
        notification = a.notifications.notification_for("A_B")
        with pytest.raises(OptimisticWriteFailed):
            await a.acknowledge(notification.id)
        observed = (a.notifications.is_friend_visible("A_B"), a.friend_ids(), a.notifications.unread_count)
        await registry.close_all()
        return observed

    assert asyncio.run(scenario()) == (False, set(), 1)


def test_candidate_load_failure_returns_empty_deck_with_banner(store, local_state):
    async def scenario():
        await seed_profiles(store)
        session = SessionContext("A", store, local_state)
        await session.start()
        store.fail("query", settings.USERS_COLLECTION)
        failed = (await session.candidates(), session.banner())
        store.recover()
        recovered = (len(await session.candidates()), session.banner())
        await session.close()
        return failed, recovered

    failed, recovered = asyncio.run(scenario())
    assert failed[0] == []
    assert failed[1] is not None
    assert recovered == (2, None)
