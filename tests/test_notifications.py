import asyncio

import pytest

from hellogt.core.errors import OptimisticWriteFailed, UnknownNotification
from hellogt.db.redis import LocalStateService
from hellogt.models import Match, MatchNotification
from hellogt.services.notifications import NotificationGate
from hellogt.services.profiles import ProfileDirectory

from conftest import BrokenKeyValue, add_profile


def gate_for(store, local_state, viewer):
    return NotificationGate(viewer, ProfileDirectory(store), local_state)


def test_match_is_not_a_friend_until_acknowledged(store, local_state):
    async def scenario():
        await add_profile(store, "bob", "Bob")
        gate = gate_for(store, local_state, "alice")
        match = Match.between("alice", "bob")
        notification = await gate.on_match_observed(match)
        visible_before = gate.is_friend_visible(match.id)
        await gate.acknowledge(notification)
        return gate, match, notification, visible_before

    gate, match, notification, visible_before = asyncio.run(scenario())
    assert visible_before is False
    assert gate.is_friend_visible(match.id) is True
    assert notification.counterpart_user_id == "bob"
    assert notification.counterpart_display_name == "Bob"
    assert notification.id == MatchNotification.id_for(match.id, "alice")
    assert gate.unread_count == 0
    assert gate.acknowledged_match_ids == {match.id}


def test_observing_a_match_twice_keeps_one_notification(store, local_state):
    async def scenario():
        await add_profile(store, "bob", "Bob")
        gate = gate_for(store, local_state, "alice")
        match = Match.between("alice", "bob")
        first, second = await asyncio.gather(gate.on_match_observed(match), gate.on_match_observed(match))
        await gate.acknowledge(first)
        third = await gate.on_match_observed(match)
        return gate, first, second, third

    gate, first, second, third = asyncio.run(scenario())
    assert len(gate.notifications) == 1
    assert first.id == second.id
    # Re-observing never flips an acknowledged notification back to unread
    assert third.is_read is True


def test_missing_profile_defers_notification_until_next_observation(store, local_state):
    async def scenario():
        gate = gate_for(store, local_state, "alice")
        match = Match.between("alice", "bob")
        deferred = await gate.on_match_observed(match)
        await add_profile(store, "bob", "Bob")
        created = await gate.on_match_observed(match)
        return deferred, created

    deferred, created = asyncio.run(scenario())
    assert deferred is None
    assert created is not None and created.is_read is False


def test_notifications_persist_per_viewer(store, local_state):
    async def scenario():
        await add_profile(store, "alice", "Alice")
        await add_profile(store, "bob", "Bob")
        await add_profile(store, "carol", "Carol")
        alice = gate_for(store, local_state, "alice")
        notification = await alice.on_match_observed(Match.between("alice", "bob"))
        await alice.acknowledge(notification)
        carol = gate_for(store, local_state, "carol")
        await carol.on_match_observed(Match.between("carol", "bob"))

        reloaded_alice = gate_for(store, local_state, "alice")
        await reloaded_alice.load()
        reloaded_carol = gate_for(store, local_state, "carol")
        await reloaded_carol.load()
        return reloaded_alice, reloaded_carol

    alice, carol = asyncio.run(scenario())
    assert [n.counterpart_display_name for n in alice.notifications] == ["Bob"]
    assert alice.notifications[0].is_read is True
    assert [n.match_id for n in carol.notifications] == ["bob_carol"]
    assert carol.unread_count == 1


def test_notifications_are_listed_newest_first(store, local_state):
    async def scenario():
        await add_profile(store, "bob", "Bob")
        await add_profile(store, "dan", "Dan")
        gate = gate_for(store, local_state, "alice")
        older = Match.between("alice", "bob")
        newer = Match.between("alice", "dan", created_at=older.created_at.replace(year=older.created_at.year + 1))
        await gate.on_match_observed(older)
        await gate.on_match_observed(newer)
        return gate

    gate = asyncio.run(scenario())
    assert [n.counterpart_user_id for n in gate.notifications] == ["dan", "bob"]


def test_acknowledging_unknown_notification_raises(store, local_state):
    async def scenario():
        gate = gate_for(store, local_state, "alice")
        with pytest.raises(UnknownNotification):
            await gate.acknowledge_by_id("nope:alice")

    asyncio.run(scenario())


def test_persist_failure_keeps_notification_in_memory(store):
    async def scenario():
        await add_profile(store, "bob", "Bob")
        gate = gate_for(store, LocalStateService(BrokenKeyValue()), "alice")
        return gate, await gate.on_match_observed(Match.between("alice", "bob"))

    gate, notification = asyncio.run(scenario())
    assert notification is not None
    assert gate.unread_count == 1


def test_clear_all_removes_stored_notifications(store, local_state):
    async def scenario():
        await add_profile(store, "bob", "Bob")
        gate = gate_for(store, local_state, "alice")
        await gate.on_match_observed(Match.between("alice", "bob"))
        await gate.clear_all()
        reloaded = gate_for(store, local_state, "alice")
        await reloaded.load()
        return gate, reloaded

    gate, reloaded = asyncio.run(scenario())
    assert gate.notifications == []
    assert reloaded.notifications == []


def test_failed_acknowledgement_can_be_reverted_to_unread(store):
    async def scenario():
        await add_profile(store, "bob", "Bob")
        key_value = BrokenKeyValue(broken=False)
        gate = gate_for(store, LocalStateService(key_value), "alice")
        match = Match.between("alice", "bob")
        notification = await gate.on_match_observed(match)

        key_value.broken = True
        with pytest.raises(OptimisticWriteFailed) as exc_info:
            await gate.acknowledge(notification)
        exc_info.value.update.revert()
        return gate, match

    gate, match = asyncio.run(scenario())
    assert gate.is_friend_visible(match.id) is False
    assert gate.unread_count == 1
